# Quick Unlock Vault - Encryption Service
#
# Authenticator key material -> wrapping key (SHA-256)
# Secret encryption (AES-256-GCM, 96-bit random nonce per encryption)
# Base64 / base64url codecs for the stored record

import base64
import binascii
import hashlib
import os
from typing import Optional, Tuple

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

KEY_LENGTH = 32  # 256 bits for AES-256
NONCE_LENGTH = 12  # 96-bit nonce for GCM
TAG_LENGTH = 16


class EncryptionService:
    """
    Key derivation and authenticated encryption for the Quick Unlock vault.

    Flow:
    1. Authenticator releases per-credential key material after user verification
    2. SHA-256 turns that material into a 256-bit AES key
    3. AES-256-GCM encrypts the secret under a fresh nonce
    4. The tag is appended to the ciphertext; decryption verifies it
    """

    @staticmethod
    def derive_key(key_material: bytes) -> bytes:
        """
        One-way hash authenticator key material into a 256-bit key.

        Raises:
            ValueError: If key_material is empty
        """
        if not key_material:
            raise ValueError("key material must not be empty")
        return hashlib.sha256(key_material).digest()

    @staticmethod
    def generate_nonce() -> bytes:
        return os.urandom(NONCE_LENGTH)

    @staticmethod
    def encrypt(
        plaintext: str,
        key: bytes,
        associated_data: Optional[bytes] = None,
    ) -> Tuple[bytes, bytes]:
        """
        Encrypt plaintext using AES-256-GCM.

        Returns:
            Tuple of (nonce, ciphertext_with_tag)
        """
        nonce = EncryptionService.generate_nonce()
        aesgcm = AESGCM(key)
        ciphertext = aesgcm.encrypt(nonce, plaintext.encode('utf-8'), associated_data)
        return nonce, ciphertext

    @staticmethod
    def decrypt(
        nonce: bytes,
        ciphertext: bytes,
        key: bytes,
        associated_data: Optional[bytes] = None,
    ) -> str:
        """
        Decrypt ciphertext using AES-256-GCM.

        Raises:
            cryptography.exceptions.InvalidTag: If authentication fails
        """
        aesgcm = AESGCM(key)
        plaintext_bytes = aesgcm.decrypt(nonce, ciphertext, associated_data)
        return plaintext_bytes.decode('utf-8')

    # ── Storage codecs ────────────────────────────────────────────────

    @staticmethod
    def encode_for_storage(data: bytes) -> str:
        """Standard base64 (padded)."""
        return base64.b64encode(data).decode('ascii')

    @staticmethod
    def decode_from_storage(data: str) -> bytes:
        """
        Decode standard base64.

        Raises:
            ValueError: If data is not valid base64
        """
        try:
            return base64.b64decode(data.encode('ascii'), validate=True)
        except (binascii.Error, UnicodeEncodeError) as e:
            raise ValueError(f"invalid base64: {e}") from e

    @staticmethod
    def encode_b64url(data: bytes) -> str:
        """base64url without padding (WebAuthn credential id encoding)."""
        return base64.urlsafe_b64encode(data).rstrip(b"=").decode('ascii')

    @staticmethod
    def decode_b64url(data: str) -> bytes:
        """
        Decode base64url with or without padding.

        Raises:
            ValueError: If data is not valid base64url
        """
        stripped = data.rstrip("=")
        padding = "=" * (-len(stripped) % 4)
        try:
            return base64.b64decode(
                (stripped + padding).encode('ascii'), altchars=b"-_", validate=True
            )
        except (binascii.Error, UnicodeEncodeError) as e:
            raise ValueError(f"invalid base64url: {e}") from e


__all__ = [
    "EncryptionService",
    "InvalidTag",
    "KEY_LENGTH",
    "NONCE_LENGTH",
    "TAG_LENGTH",
]
