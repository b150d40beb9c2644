"""
Shared pytest fixtures for the Freedom Family Hub test suite.

The autouse fixture below isolates tests from the live audit trail:
  - Audit logger -> temp directory (prevents fake vault events in ./audit_logs)
"""

import pytest

from freedom_hub.vault import BiometricVault, MemoryStore, SoftwareAuthenticator


@pytest.fixture(autouse=True)
def _isolate_audit_logs(tmp_path, monkeypatch):
    """Redirect the global AuditLogger to a temp directory for every test.

    Without this, any test that (directly or indirectly) calls
    ``get_audit_logger().log_event(...)`` writes into the real
    ``./audit_logs/`` directory.
    """
    import freedom_hub.core.audit_log as audit_mod

    # Reset the singleton so the next get_audit_logger() builds a fresh one.
    old_logger = audit_mod._audit_logger
    audit_mod._audit_logger = None

    orig_init = audit_mod.AuditLogger.__init__

    def patched_init(self, log_dir=None):
        orig_init(self, log_dir=log_dir or tmp_path / "audit_logs")

    monkeypatch.setattr(audit_mod.AuditLogger, "__init__", patched_init)

    yield

    audit_mod._audit_logger = old_logger


@pytest.fixture
def store():
    return MemoryStore()


@pytest.fixture
def authenticator():
    return SoftwareAuthenticator()


@pytest.fixture
def vault(store, authenticator):
    return BiometricVault(store, authenticator, rp_id="hub.example.org")
