# Quick Unlock Vault - Platform Authenticator Interface
#
# WebAuthn-shaped options and results exchanged with the platform
# authenticator, the Authenticator protocol the vault depends on, and two
# implementations:
#
#   SoftwareAuthenticator    - in-process platform authenticator (P-256 /
#                              RSA keys, user-verification prompt, sign
#                              counter, PRF / hmac-secret)
#   UnsupportedAuthenticator - a platform without WebAuthn
#
# Assertions carry the WebAuthn PRF extension output: HMAC-SHA256 of a
# per-credential random secret over SHA-256("WebAuthn PRF" || 0x00 || salt).
# It is deterministic for a given credential and salt and is only released
# after user verification, which makes it usable as key material.

import asyncio
import hashlib
import hmac
import inspect
import json
import logging
import os
import struct
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Dict, List, Optional, Protocol, Tuple, Union

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec, padding, rsa

from .encryption import EncryptionService

logger = logging.getLogger(__name__)

# COSE algorithm identifiers
ALG_ES256 = -7
ALG_RS256 = -257

# authenticatorData flags
FLAG_USER_PRESENT = 0x01
FLAG_USER_VERIFIED = 0x04

PRF_LABEL = b"WebAuthn PRF\x00"
CREDENTIAL_ID_LENGTH = 32


# ── Errors ───────────────────────────────────────────────────────────


class AuthenticatorError(Exception):
    """Base class for authenticator failures."""


class AuthenticatorCancelled(AuthenticatorError):
    """User dismissed the prompt or it timed out (WebAuthn NotAllowedError)."""


class AuthenticatorRejected(AuthenticatorError):
    """Request refused: unknown credential, unsupported algorithm, etc."""


class AuthenticatorUnavailable(AuthenticatorError):
    """No platform authenticator on this device."""


# ── Options / results ────────────────────────────────────────────────


@dataclass(frozen=True)
class RelyingParty:
    id: str
    name: str


@dataclass(frozen=True)
class UserEntity:
    id: bytes
    name: str
    display_name: str


@dataclass(frozen=True)
class CredentialCreationOptions:
    challenge: bytes
    rp: RelyingParty
    user: UserEntity
    algorithms: Tuple[int, ...] = (ALG_ES256, ALG_RS256)
    authenticator_attachment: str = "platform"
    user_verification: str = "required"
    resident_key: str = "preferred"
    attestation: str = "none"
    timeout_ms: int = 60_000
    prf: bool = True


@dataclass(frozen=True)
class AssertionRequestOptions:
    challenge: bytes
    rp_id: str
    allow_credentials: Tuple[bytes, ...] = ()
    user_verification: str = "required"
    timeout_ms: int = 60_000
    prf_salt: Optional[bytes] = None


@dataclass(frozen=True)
class Credential:
    raw_id: bytes
    public_key: bytes  # SubjectPublicKeyInfo, DER
    algorithm: int
    prf_enabled: bool = False


@dataclass(frozen=True)
class Assertion:
    credential_id: bytes
    authenticator_data: bytes
    client_data_json: bytes
    signature: bytes
    user_handle: Optional[bytes] = None
    prf_output: Optional[bytes] = None

    @property
    def rp_id_hash(self) -> bytes:
        return self.authenticator_data[:32]

    @property
    def flags(self) -> int:
        return self.authenticator_data[32] if len(self.authenticator_data) > 32 else 0

    @property
    def user_verified(self) -> bool:
        return bool(self.flags & FLAG_USER_VERIFIED)

    @property
    def sign_count(self) -> int:
        if len(self.authenticator_data) < 37:
            return 0
        return struct.unpack(">I", self.authenticator_data[33:37])[0]

    def client_data(self) -> dict:
        """
        Parsed clientDataJSON.

        Raises:
            ValueError: If it is not a JSON object
        """
        data = json.loads(self.client_data_json.decode("utf-8"))
        if not isinstance(data, dict):
            raise ValueError("clientDataJSON must be an object")
        return data


class Authenticator(Protocol):
    def is_available(self) -> bool: ...

    async def create_credential(self, options: CredentialCreationOptions) -> Credential: ...

    async def get_assertion(self, options: AssertionRequestOptions) -> Assertion: ...


# ── Helpers ──────────────────────────────────────────────────────────


def rp_id_hash(rp_id: str) -> bytes:
    return hashlib.sha256(rp_id.encode("utf-8")).digest()


def build_client_data(ceremony: str, challenge: bytes, rp_id: str) -> bytes:
    """clientDataJSON for a `webauthn.create` / `webauthn.get` ceremony."""
    return json.dumps({
        "type": ceremony,
        "challenge": EncryptionService.encode_b64url(challenge),
        "origin": f"https://{rp_id}",
        "crossOrigin": False,
    }, separators=(",", ":")).encode("utf-8")


def prf_eval_input(salt: bytes) -> bytes:
    """Salt transform applied by clients before hmac-secret evaluation."""
    return hashlib.sha256(PRF_LABEL + salt).digest()


def verify_assertion_signature(credential: Credential, assertion: Assertion) -> bool:
    """Check an assertion signature against the credential's public key."""
    public_key = serialization.load_der_public_key(credential.public_key)
    signed = assertion.authenticator_data + hashlib.sha256(assertion.client_data_json).digest()
    try:
        if credential.algorithm == ALG_ES256:
            public_key.verify(assertion.signature, signed, ec.ECDSA(hashes.SHA256()))
        elif credential.algorithm == ALG_RS256:
            public_key.verify(assertion.signature, signed, padding.PKCS1v15(), hashes.SHA256())
        else:
            return False
    except InvalidSignature:
        return False
    return True


# ── Implementations ──────────────────────────────────────────────────


class UnsupportedAuthenticator:
    """Platform without a public-key credential API."""

    def is_available(self) -> bool:
        return False

    async def create_credential(self, options: CredentialCreationOptions) -> Credential:
        raise AuthenticatorUnavailable("PublicKeyCredential is not supported")

    async def get_assertion(self, options: AssertionRequestOptions) -> Assertion:
        raise AuthenticatorUnavailable("PublicKeyCredential is not supported")


# Decision for a user-verification prompt: a fixed answer, or a callable
# (sync or async) receiving the ceremony name ("create" / "get").
PromptPolicy = Union[bool, Callable[[str], Union[bool, Awaitable[bool]]]]


@dataclass
class _StoredCredential:
    private_key: Union[ec.EllipticCurvePrivateKey, rsa.RSAPrivateKey]
    algorithm: int
    rp_id: str
    user_handle: bytes
    prf_secret: Optional[bytes]
    sign_count: int = 0


@dataclass
class SoftwareAuthenticator:
    """
    In-process platform authenticator.

    Keys never leave the object. Every ceremony runs the user-verification
    prompt first; a False answer or a timeout raises AuthenticatorCancelled.
    Removing a credential simulates the OS deleting a passkey.
    """

    approve: PromptPolicy = True
    supports_prf: bool = True
    algorithms: Tuple[int, ...] = (ALG_ES256, ALG_RS256)
    prompts: List[str] = field(default_factory=list)
    _credentials: Dict[bytes, _StoredCredential] = field(default_factory=dict, init=False, repr=False)

    def is_available(self) -> bool:
        return True

    @property
    def credential_ids(self) -> List[bytes]:
        return list(self._credentials)

    def remove_credential(self, credential_id: bytes) -> bool:
        """Forget a credential. Returns False if it was unknown."""
        return self._credentials.pop(credential_id, None) is not None

    async def _verify_user(self, ceremony: str, timeout_ms: int) -> None:
        self.prompts.append(ceremony)
        if isinstance(self.approve, bool):
            approved = self.approve
        else:
            decision = self.approve(ceremony)
            if inspect.isawaitable(decision):
                try:
                    decision = await asyncio.wait_for(decision, timeout_ms / 1000)
                except asyncio.TimeoutError:
                    raise AuthenticatorCancelled(
                        f"{ceremony} prompt timed out after {timeout_ms} ms"
                    ) from None
            approved = bool(decision)

        if not approved:
            raise AuthenticatorCancelled(f"User dismissed the {ceremony} prompt")

    async def create_credential(self, options: CredentialCreationOptions) -> Credential:
        if options.authenticator_attachment not in ("platform", ""):
            raise AuthenticatorRejected(
                f"Unsupported attachment: {options.authenticator_attachment}"
            )

        algorithm = next((a for a in options.algorithms if a in self.algorithms), None)
        if algorithm is None:
            raise AuthenticatorRejected("NotSupportedError: no supported algorithm offered")

        await self._verify_user("create", options.timeout_ms)

        if algorithm == ALG_ES256:
            private_key = ec.generate_private_key(ec.SECP256R1())
        else:
            private_key = rsa.generate_private_key(public_exponent=65537, key_size=2048)

        raw_id = os.urandom(CREDENTIAL_ID_LENGTH)
        prf_enabled = options.prf and self.supports_prf
        self._credentials[raw_id] = _StoredCredential(
            private_key=private_key,
            algorithm=algorithm,
            rp_id=options.rp.id,
            user_handle=options.user.id,
            prf_secret=os.urandom(32) if prf_enabled else None,
        )
        logger.debug("Created credential for rp %s (alg %d)", options.rp.id, algorithm)

        public_der = private_key.public_key().public_bytes(
            serialization.Encoding.DER,
            serialization.PublicFormat.SubjectPublicKeyInfo,
        )
        return Credential(
            raw_id=raw_id,
            public_key=public_der,
            algorithm=algorithm,
            prf_enabled=prf_enabled,
        )

    def _select(self, options: AssertionRequestOptions) -> Tuple[bytes, _StoredCredential]:
        if options.allow_credentials:
            candidates = options.allow_credentials
        else:
            # Discoverable credentials, newest first
            candidates = tuple(reversed(self._credentials))

        for credential_id in candidates:
            stored = self._credentials.get(credential_id)
            if stored is not None and stored.rp_id == options.rp_id:
                return credential_id, stored
        raise AuthenticatorRejected("NotAllowedError: no matching credential on this device")

    async def get_assertion(self, options: AssertionRequestOptions) -> Assertion:
        credential_id, stored = self._select(options)

        await self._verify_user("get", options.timeout_ms)

        stored.sign_count += 1
        authenticator_data = (
            rp_id_hash(stored.rp_id)
            + bytes([FLAG_USER_PRESENT | FLAG_USER_VERIFIED])
            + struct.pack(">I", stored.sign_count)
        )
        client_data_json = build_client_data("webauthn.get", options.challenge, options.rp_id)
        signed = authenticator_data + hashlib.sha256(client_data_json).digest()

        if stored.algorithm == ALG_ES256:
            signature = stored.private_key.sign(signed, ec.ECDSA(hashes.SHA256()))
        else:
            signature = stored.private_key.sign(signed, padding.PKCS1v15(), hashes.SHA256())

        prf_output = None
        if options.prf_salt is not None and stored.prf_secret is not None:
            prf_output = hmac.new(
                stored.prf_secret, prf_eval_input(options.prf_salt), hashlib.sha256
            ).digest()

        return Assertion(
            credential_id=credential_id,
            authenticator_data=authenticator_data,
            client_data_json=client_data_json,
            signature=signature,
            user_handle=stored.user_handle,
            prf_output=prf_output,
        )
