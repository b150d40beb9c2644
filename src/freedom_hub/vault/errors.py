# Quick Unlock Vault - Error Taxonomy
#
# Every vault operation fails with a VaultError subclass. `kind` is the
# stable machine-readable name (used by the API layer), `retryable` tells
# the caller whether re-invoking the same operation can succeed.

from enum import Enum


class VaultErrorKind(str, Enum):
    UNAVAILABLE = "unavailable"
    NOT_CONFIGURED = "not_configured"
    USER_CANCELLED = "user_cancelled"
    AUTHENTICATION_FAILED = "authentication_failed"
    DECRYPTION_FAILED = "decryption_failed"
    STORAGE_ERROR = "storage_error"


class VaultError(Exception):
    """Base class for Quick Unlock vault failures."""

    kind: VaultErrorKind
    retryable: bool = False
    default_message = "Quick Unlock failed"

    def __init__(self, message: str = ""):
        super().__init__(message or self.default_message)

    @property
    def message(self) -> str:
        return str(self)

    def to_dict(self) -> dict:
        return {
            "error": self.kind.value,
            "message": self.message,
            "retryable": self.retryable,
        }


class Unavailable(VaultError):
    """Platform has no usable authenticator. Callers should hide the feature."""
    kind = VaultErrorKind.UNAVAILABLE
    default_message = "Biometric unlock is not available on this device"


class NotConfigured(VaultError):
    """Unlock attempted before enable."""
    kind = VaultErrorKind.NOT_CONFIGURED
    default_message = "Quick Unlock is not set up on this device yet"


class UserCancelled(VaultError):
    """Biometric prompt dismissed (or timed out)."""
    kind = VaultErrorKind.USER_CANCELLED
    retryable = True
    default_message = "Biometric prompt was cancelled"


class AuthenticationFailed(VaultError):
    """Authenticator rejected the request (wrong device, revoked credential)."""
    kind = VaultErrorKind.AUTHENTICATION_FAILED
    retryable = True
    default_message = "Authenticator rejected the request"


class DecryptionFailed(VaultError):
    """Stored record failed authentication. Clear and re-enable to recover."""
    kind = VaultErrorKind.DECRYPTION_FAILED
    default_message = "Could not unlock. Try re-enabling Quick Unlock"


class StorageError(VaultError):
    """Local persistent store could not be read or written."""
    kind = VaultErrorKind.STORAGE_ERROR
    retryable = True
    default_message = "Local vault storage failed"
