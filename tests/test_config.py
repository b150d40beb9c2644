# Tests for settings loading

from pathlib import Path

import pytest

from freedom_hub.config import Settings, load_settings


def test_defaults():
    settings = load_settings(environ={})
    assert settings == Settings()
    assert settings.store_backend == "file"
    assert settings.rp_id == "localhost"
    assert settings.authenticator == "none"
    assert settings.auth_timeout_ms == 60_000


def test_overrides():
    settings = load_settings(environ={
        "FFHUB_DATA_DIR": "/srv/ffhub",
        "FFHUB_STORE": "SQLite",
        "FFHUB_RP_ID": "hub.example.org",
        "FFHUB_RP_NAME": "Freedom Family Hub",
        "FFHUB_AUDIT_DIR": "/var/log/ffhub",
        "FFHUB_AUTH_TIMEOUT_MS": "30000",
        "FFHUB_AUTHENTICATOR": "software",
    })
    assert settings.data_dir == Path("/srv/ffhub")
    assert settings.store_backend == "sqlite"
    assert settings.rp_id == "hub.example.org"
    assert settings.rp_name == "Freedom Family Hub"
    assert settings.audit_dir == Path("/var/log/ffhub")
    assert settings.auth_timeout_ms == 30000
    assert settings.authenticator == "software"


@pytest.mark.parametrize("environ, message", [
    ({"FFHUB_STORE": "redis"}, "FFHUB_STORE"),
    ({"FFHUB_RP_ID": "  "}, "FFHUB_RP_ID"),
    ({"FFHUB_AUTH_TIMEOUT_MS": "soon"}, "integer"),
    ({"FFHUB_AUTH_TIMEOUT_MS": "0"}, "positive"),
    ({"FFHUB_AUTHENTICATOR": "yubikey"}, "FFHUB_AUTHENTICATOR"),
])
def test_invalid_values(environ, message):
    with pytest.raises(ValueError, match=message):
        load_settings(environ=environ)


def test_dotenv_file(tmp_path, monkeypatch):
    # setenv first so the values load_dotenv writes are undone afterwards
    for name in ("FFHUB_RP_ID", "FFHUB_STORE"):
        monkeypatch.setenv(name, "")
        monkeypatch.delenv(name)
    env_file = tmp_path / ".env"
    env_file.write_text("FFHUB_RP_ID=dotenv.example.org\nFFHUB_STORE=memory\n")

    settings = load_settings(dotenv_path=env_file)

    assert settings.rp_id == "dotenv.example.org"
    assert settings.store_backend == "memory"


def test_environment_beats_dotenv(tmp_path, monkeypatch):
    monkeypatch.setenv("FFHUB_RP_ID", "env.example.org")
    env_file = tmp_path / ".env"
    env_file.write_text("FFHUB_RP_ID=dotenv.example.org\n")

    assert load_settings(dotenv_path=env_file).rp_id == "env.example.org"
