# Tests for the freedom-hub command line

import asyncio

import pytest

from freedom_hub.__main__ import main
from freedom_hub.vault import BiometricVault, JsonFileStore, SoftwareAuthenticator
from freedom_hub.vault.record import STORAGE_KEY


@pytest.fixture
def env(tmp_path, monkeypatch):
    monkeypatch.setenv("FFHUB_DATA_DIR", str(tmp_path / "data"))
    monkeypatch.setenv("FFHUB_AUDIT_DIR", str(tmp_path / "audit"))
    monkeypatch.setenv("FFHUB_STORE", "file")
    monkeypatch.setenv("FFHUB_RP_ID", "hub.example.org")
    monkeypatch.delenv("FFHUB_AUTHENTICATOR", raising=False)
    return tmp_path


def _enable(data_dir):
    store = JsonFileStore(data_dir / "quick_unlock.json")
    vault = BiometricVault(store, SoftwareAuthenticator(), rp_id="hub.example.org")
    asyncio.run(vault.enable("cli-refresh-token"))
    return store


def test_status_unconfigured(env, capsys):
    assert main(["status"]) == 0
    out = capsys.readouterr().out
    assert "Available:  no" in out
    assert "Configured: no" in out


def test_status_configured(env, capsys):
    _enable(env / "data")
    assert main(["status"]) == 0
    assert "Configured: yes" in capsys.readouterr().out


def test_disable(env, capsys):
    store = _enable(env / "data")
    assert main(["disable"]) == 0
    assert store.get(STORAGE_KEY) is None
    assert "disabled" in capsys.readouterr().out


def test_storage_error_exit_code(env, capsys):
    (env / "data").mkdir()
    (env / "data" / "quick_unlock.json").write_text("{corrupt")
    assert main(["status"]) == 1
    assert "[ERROR]" in capsys.readouterr().err


def test_invalid_settings_exit_code(env, monkeypatch, capsys):
    monkeypatch.setenv("FFHUB_STORE", "redis")
    assert main(["status"]) == 2
    assert "FFHUB_STORE" in capsys.readouterr().err


def test_serve_starts_backend(env, monkeypatch):
    calls = {}

    def fake_start(host, port, settings):
        calls.update(host=host, port=port, rp_id=settings.rp_id)

    monkeypatch.setattr("freedom_hub.api.main.start_api_server", fake_start)
    assert main(["serve", "--port", "8123"]) == 0
    assert calls == {"host": "127.0.0.1", "port": 8123, "rp_id": "hub.example.org"}


def test_command_required(env):
    with pytest.raises(SystemExit):
        main([])
