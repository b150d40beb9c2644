# Quick Unlock Vault
#
# One refresh token per device, encrypted with AES-256-GCM under a key the
# platform authenticator releases only after biometric verification.

from .authenticator import (
    Authenticator,
    AuthenticatorCancelled,
    AuthenticatorError,
    AuthenticatorRejected,
    AuthenticatorUnavailable,
    SoftwareAuthenticator,
    UnsupportedAuthenticator,
)
from .biometric_vault import BiometricVault
from .encryption import EncryptionService
from .errors import (
    AuthenticationFailed,
    DecryptionFailed,
    NotConfigured,
    StorageError,
    Unavailable,
    UserCancelled,
    VaultError,
    VaultErrorKind,
)
from .record import STORAGE_KEY, VaultRecord
from .storage import (
    CorruptStoreFile,
    JsonFileStore,
    KeyValueStore,
    MemoryStore,
    SQLiteStore,
    create_store,
)

__all__ = [
    "BiometricVault",
    "EncryptionService",
    "VaultRecord",
    "STORAGE_KEY",
    # Storage
    "KeyValueStore",
    "MemoryStore",
    "JsonFileStore",
    "CorruptStoreFile",
    "SQLiteStore",
    "create_store",
    # Authenticators
    "Authenticator",
    "SoftwareAuthenticator",
    "UnsupportedAuthenticator",
    "AuthenticatorError",
    "AuthenticatorCancelled",
    "AuthenticatorRejected",
    "AuthenticatorUnavailable",
    # Errors
    "VaultError",
    "VaultErrorKind",
    "Unavailable",
    "NotConfigured",
    "UserCancelled",
    "AuthenticationFailed",
    "DecryptionFailed",
    "StorageError",
]
