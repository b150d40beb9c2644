# Freedom Family Hub - Configuration
#
# Settings come from environment variables; a `.env` file in the working
# directory is loaded first (values already in the environment win).

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional

from dotenv import load_dotenv

STORE_BACKENDS = ("file", "sqlite", "memory")
AUTHENTICATORS = ("none", "software")


@dataclass(frozen=True)
class Settings:
    """Runtime settings for the Quick Unlock backend."""
    data_dir: Path = Path("./data")
    store_backend: str = "file"
    rp_id: str = "localhost"
    rp_name: str = "Freedom Family"
    audit_dir: Path = Path("./audit_logs")
    auth_timeout_ms: int = 60_000
    authenticator: str = "none"


def load_settings(
    environ: Optional[Mapping[str, str]] = None,
    dotenv_path: Optional[Path] = None,
) -> Settings:
    """
    Build Settings from the environment.

    Args:
        environ: Mapping to read instead of os.environ (tests pass a dict;
                 no .env file is read in that case)
        dotenv_path: Explicit .env file to load

    Raises:
        ValueError: If a variable holds an invalid value
    """
    if environ is None:
        load_dotenv(dotenv_path=dotenv_path, override=False)
        environ = os.environ

    store_backend = environ.get("FFHUB_STORE", "file").strip().lower()
    if store_backend not in STORE_BACKENDS:
        raise ValueError(
            f"FFHUB_STORE must be one of {', '.join(STORE_BACKENDS)}, got {store_backend!r}"
        )

    rp_id = environ.get("FFHUB_RP_ID", "localhost").strip()
    if not rp_id:
        raise ValueError("FFHUB_RP_ID must not be empty")

    authenticator = environ.get("FFHUB_AUTHENTICATOR", "none").strip().lower()
    if authenticator not in AUTHENTICATORS:
        raise ValueError(
            f"FFHUB_AUTHENTICATOR must be one of {', '.join(AUTHENTICATORS)}, got {authenticator!r}"
        )

    raw_timeout = environ.get("FFHUB_AUTH_TIMEOUT_MS", "60000")
    try:
        auth_timeout_ms = int(raw_timeout)
    except ValueError:
        raise ValueError(f"FFHUB_AUTH_TIMEOUT_MS must be an integer, got {raw_timeout!r}") from None
    if auth_timeout_ms <= 0:
        raise ValueError("FFHUB_AUTH_TIMEOUT_MS must be positive")

    return Settings(
        data_dir=Path(environ.get("FFHUB_DATA_DIR", "./data")),
        store_backend=store_backend,
        rp_id=rp_id,
        rp_name=environ.get("FFHUB_RP_NAME", "Freedom Family"),
        audit_dir=Path(environ.get("FFHUB_AUDIT_DIR", "./audit_logs")),
        auth_timeout_ms=auth_timeout_ms,
        authenticator=authenticator,
    )
