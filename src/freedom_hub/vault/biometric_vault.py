# Quick Unlock Vault - Biometric Vault
#
# Keeps one secret (a session refresh token) on this device, encrypted
# under a key that the platform authenticator only releases after a
# biometric / security-key prompt. No server round-trip is needed to unlock.
#
# States: Unconfigured --enable--> Configured --disable--> Unconfigured
#         unlock is a non-mutating self-loop on Configured.
#
# Key material is the WebAuthn PRF output for a fixed application salt,
# hashed with SHA-256 into an AES-256-GCM key. The raw credential id is the
# associated data, so a record cannot be replayed under another credential.

import asyncio
import logging
import os
from typing import Any, Dict, Optional

from cryptography.exceptions import InvalidTag

from ..core import AuditLogger, EventSeverity, EventType, get_audit_logger
from .authenticator import (
    Assertion,
    AssertionRequestOptions,
    Authenticator,
    AuthenticatorCancelled,
    AuthenticatorError,
    AuthenticatorUnavailable,
    CredentialCreationOptions,
    RelyingParty,
    UserEntity,
    rp_id_hash,
)
from .encryption import EncryptionService
from .errors import (
    AuthenticationFailed,
    DecryptionFailed,
    NotConfigured,
    Unavailable,
    UserCancelled,
    VaultError,
)
from .record import STORAGE_KEY, MalformedRecord, VaultRecord
from .storage import KeyValueStore, record_lock

logger = logging.getLogger(__name__)

CHALLENGE_LENGTH = 32
USER_HANDLE_LENGTH = 16
PRF_SALT = b"freedom-hub/quick-unlock/" + STORAGE_KEY.encode("ascii")

USER_NAME = "ff-user"
USER_DISPLAY_NAME = "Freedom Family User"


def _fingerprint(credential_id: bytes) -> str:
    """Short, non-reversible label for audit details."""
    return EncryptionService.derive_key(credential_id).hex()[:12]


class BiometricVault:
    """
    Biometric-gated local secret vault.

    PRD: "Quick Unlock (Face/Touch ID): unlock without re-requesting a key"

    Collaborators are passed in; nothing here reaches for a process-wide
    store or authenticator.

    Security:
    - Plaintext is never persisted; only {credId, iv, ct}
    - Fresh random IV per enable
    - enable is all-or-nothing: the record is written once, at the end
    - enable / unlock / disable on one record are serialised
    """

    def __init__(
        self,
        store: KeyValueStore,
        authenticator: Optional[Authenticator],
        rp_id: str,
        *,
        rp_name: str = "Freedom Family",
        audit_logger: Optional[AuditLogger] = None,
        storage_key: str = STORAGE_KEY,
        timeout_ms: int = 60_000,
    ):
        """
        Args:
            store: Local key-value store holding the record
            authenticator: Platform authenticator, or None if the runtime has none
            rp_id: Relying-party id (the application's host domain)
            rp_name: Relying-party display name
            audit_logger: Audit logger (default: global audit logger)
            storage_key: Key the record is stored under
            timeout_ms: Prompt timeout passed to the authenticator
        """
        self.store = store
        self.authenticator = authenticator
        self.rp_id = rp_id
        self.rp_name = rp_name
        self.storage_key = storage_key
        self.timeout_ms = timeout_ms
        self._audit = audit_logger
        self._lock = record_lock(store, storage_key)

    @property
    def audit(self) -> AuditLogger:
        if self._audit is None:
            self._audit = get_audit_logger()
        return self._audit

    # ── State ────────────────────────────────────────────────────────

    def is_available(self) -> bool:
        """True if a usable platform authenticator is present. Never raises."""
        if self.authenticator is None:
            return False
        try:
            return bool(self.authenticator.is_available())
        except Exception:
            logger.debug("Authenticator availability check failed", exc_info=True)
            return False

    def has_record(self) -> bool:
        """
        True if a record is stored (no prompt, no decryption).

        Raises:
            StorageError: If the store cannot be read
        """
        return self.store.get(self.storage_key) is not None

    # ── Operations ───────────────────────────────────────────────────

    async def enable(self, secret: str) -> None:
        """
        Register a platform credential and store `secret` encrypted under it.

        Two prompts: credential creation, then an assertion from the new
        credential to obtain key material. Any prior record is overwritten
        only when every step has succeeded.

        Raises:
            Unavailable: If no platform authenticator is present
            ValueError: If secret is empty
            UserCancelled, AuthenticationFailed, StorageError
        """
        self._require_available()
        if not secret:
            raise ValueError("secret must be a non-empty string")

        async with self._lock:
            try:
                record = await self._seal(secret)
                self.store.set(self.storage_key, record.to_json())
            except VaultError as e:
                self._log_failure(EventType.VAULT_ENABLE_FAILED, "enable failed", e)
                raise

        self.audit.log_vault_event(
            EventType.VAULT_ENABLED,
            "Quick Unlock enabled",
            details={"credential": _fingerprint(record.credential_id)},
        )

    async def unlock(self) -> str:
        """
        Prompt for the stored credential and return the decrypted secret.

        Raises:
            Unavailable, NotConfigured, UserCancelled, AuthenticationFailed,
            DecryptionFailed, StorageError
        """
        self._require_available()

        async with self._lock:
            try:
                secret, record = await self._open()
            except VaultError as e:
                self._log_failure(EventType.VAULT_UNLOCK_FAILED, "unlock failed", e)
                raise

        self.audit.log_vault_event(
            EventType.VAULT_UNLOCKED,
            "Quick Unlock succeeded",
            details={"credential": _fingerprint(record.credential_id)},
        )
        return secret

    async def disable(self) -> None:
        """
        Delete the stored record. Idempotent; no prompt.

        Raises:
            StorageError: If the store cannot be written
        """
        async with self._lock:
            try:
                existed = self.store.delete(self.storage_key)
            except VaultError as e:
                self._log_failure(EventType.VAULT_DISABLE_FAILED, "disable failed", e)
                raise

        self.audit.log_vault_event(
            EventType.VAULT_DISABLED,
            "Quick Unlock disabled",
            details={"had_record": bool(existed)},
        )

    # ── Internals ────────────────────────────────────────────────────

    def _require_available(self) -> None:
        if not self.is_available():
            raise Unavailable()

    async def _seal(self, secret: str) -> VaultRecord:
        challenge = os.urandom(CHALLENGE_LENGTH)
        user_handle = os.urandom(USER_HANDLE_LENGTH)

        credential = await self._call_authenticator(
            self.authenticator.create_credential(CredentialCreationOptions(
                challenge=challenge,
                rp=RelyingParty(id=self.rp_id, name=self.rp_name),
                user=UserEntity(id=user_handle, name=USER_NAME, display_name=USER_DISPLAY_NAME),
                timeout_ms=self.timeout_ms,
            ))
        )

        key = await self._assert_and_derive(credential.raw_id)
        iv, ciphertext = EncryptionService.encrypt(secret, key, credential.raw_id)
        return VaultRecord(credential_id=credential.raw_id, iv=iv, ciphertext=ciphertext)

    async def _open(self):
        raw = self.store.get(self.storage_key)
        if raw is None:
            raise NotConfigured()

        try:
            record = VaultRecord.from_json(raw)
        except MalformedRecord as e:
            raise DecryptionFailed(f"Stored Quick Unlock record is corrupt: {e}") from e

        key = await self._assert_and_derive(record.credential_id)
        try:
            secret = EncryptionService.decrypt(
                record.iv, record.ciphertext, key, record.credential_id
            )
        except InvalidTag as e:
            raise DecryptionFailed() from e
        except UnicodeDecodeError as e:
            raise DecryptionFailed("Decrypted secret is not valid UTF-8") from e
        return secret, record

    async def _assert_and_derive(self, credential_id: bytes) -> bytes:
        """Request an assertion from `credential_id`, check it, derive the key."""
        challenge = os.urandom(CHALLENGE_LENGTH)
        assertion = await self._call_authenticator(
            self.authenticator.get_assertion(AssertionRequestOptions(
                challenge=challenge,
                rp_id=self.rp_id,
                allow_credentials=(credential_id,),
                timeout_ms=self.timeout_ms,
                prf_salt=PRF_SALT,
            ))
        )
        self._check_assertion(assertion, credential_id, challenge)

        if not assertion.prf_output:
            raise AuthenticationFailed("Authenticator does not support the PRF extension")
        return EncryptionService.derive_key(assertion.prf_output)

    def _check_assertion(self, assertion: Assertion, credential_id: bytes, challenge: bytes) -> None:
        if assertion.credential_id != credential_id:
            raise AuthenticationFailed("Assertion came from a different credential")

        try:
            client_data = assertion.client_data()
        except ValueError as e:
            raise AuthenticationFailed(f"Malformed client data: {e}") from e

        if client_data.get("type") != "webauthn.get":
            raise AuthenticationFailed("Unexpected ceremony type in client data")
        if client_data.get("challenge") != EncryptionService.encode_b64url(challenge):
            raise AuthenticationFailed("Assertion challenge mismatch")
        if assertion.rp_id_hash != rp_id_hash(self.rp_id):
            raise AuthenticationFailed("Assertion is for a different relying party")
        if not assertion.user_verified:
            raise AuthenticationFailed("Authenticator did not verify the user")

    async def _call_authenticator(self, ceremony):
        """Await an authenticator call, translating its errors."""
        try:
            return await ceremony
        except AuthenticatorCancelled as e:
            raise UserCancelled(str(e) or UserCancelled.default_message) from e
        except asyncio.TimeoutError as e:
            raise UserCancelled("Biometric prompt timed out") from e
        except AuthenticatorUnavailable as e:
            raise Unavailable(str(e) or Unavailable.default_message) from e
        except AuthenticatorError as e:
            raise AuthenticationFailed(str(e) or AuthenticationFailed.default_message) from e

    def _log_failure(self, event_type: EventType, message: str, error: VaultError) -> None:
        severity = {
            "user_cancelled": EventSeverity.INVESTIGATE,
            "authentication_failed": EventSeverity.ALERT,
            "decryption_failed": EventSeverity.CRITICAL,
            "storage_error": EventSeverity.CRITICAL,
        }.get(error.kind.value, EventSeverity.INFO)

        details: Dict[str, Any] = {"error": error.kind.value, "retryable": error.retryable}
        self.audit.log_vault_event(
            event_type,
            f"Quick Unlock {message}: {error.message}",
            severity=severity,
            details=details,
        )
