# Freedom Family Hub - Quick Unlock
#
# Biometric-gated local storage of the session refresh token, plus the
# local backend and CLI that expose it.

__version__ = "0.3.0"
__author__ = "Freedom Family Hub Team"
__description__ = "Biometric Quick Unlock vault for the Freedom Family Hub"

from .core import (
    EventSeverity,
    EventType,
    get_audit_logger,
)
from .vault import BiometricVault, VaultError

__all__ = [
    "__version__",
    "BiometricVault",
    "VaultError",
    "EventType",
    "EventSeverity",
    "get_audit_logger",
]
