# Freedom Family Hub - Local Backend
#
# FastAPI app serving the Quick Unlock endpoints to the front-end. The
# vault and its collaborators are built once per app from Settings and
# kept on app.state.

import logging
from contextlib import asynccontextmanager
from typing import Optional

import uvicorn
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from .. import __version__
from ..config import Settings, load_settings
from ..core import AuditLogger, EventSeverity, EventType, set_audit_logger
from ..vault import (
    BiometricVault,
    SoftwareAuthenticator,
    UnsupportedAuthenticator,
    create_store,
)
from .security import get_session_token, initialize_session_token
from .vault_routes import router as quick_unlock_router

logger = logging.getLogger(__name__)


def build_vault(settings: Settings, audit_logger: Optional[AuditLogger] = None) -> BiometricVault:
    """Wire a BiometricVault from settings."""
    if settings.authenticator == "software":
        authenticator = SoftwareAuthenticator()
    else:
        authenticator = UnsupportedAuthenticator()

    return BiometricVault(
        store=create_store(settings.store_backend, settings.data_dir),
        authenticator=authenticator,
        rp_id=settings.rp_id,
        rp_name=settings.rp_name,
        audit_logger=audit_logger,
        timeout_ms=settings.auth_timeout_ms,
    )


def create_app(
    settings: Optional[Settings] = None,
    vault: Optional[BiometricVault] = None,
) -> FastAPI:
    """
    Build the backend app.

    Args:
        settings: Runtime settings (default: load_settings())
        vault: Pre-built vault (tests inject one with fakes)
    """
    settings = settings or load_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        audit = app.state.vault.audit
        audit.log_event(
            event_type=EventType.SYSTEM_START,
            severity=EventSeverity.INFO,
            message="Freedom Family Hub backend starting",
            details={"version": __version__, "store": settings.store_backend},
        )
        yield
        audit.log_event(
            event_type=EventType.SYSTEM_STOP,
            severity=EventSeverity.INFO,
            message="Freedom Family Hub backend stopping",
        )

    app = FastAPI(
        title="Freedom Family Hub API",
        description="Local backend for Quick Unlock",
        version=__version__,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=[
            "http://localhost:3000", "http://127.0.0.1:3000",
            f"https://{settings.rp_id}",
        ],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.state.settings = settings
    app.state.vault = vault or build_vault(settings)
    initialize_session_token(app)

    app.include_router(quick_unlock_router)

    @app.get("/api/session")
    async def get_session(request: Request):
        """
        Session token for the X-Session-Token header.

        Unprotected: the front-end needs it to authenticate. The token is
        random, changes every restart and is only served on localhost.
        """
        return {"session_token": get_session_token(request.app)}

    @app.get("/api")
    async def api_info():
        return {
            "name": "Freedom Family Hub API",
            "version": __version__,
            "status": "operational",
        }

    return app


def start_api_server(
    host: str = "127.0.0.1",
    port: int = 8000,
    settings: Optional[Settings] = None,
):
    """
    Start the backend.

    Args:
        host: Host to bind to (default: localhost only)
        port: Port to listen on
    """
    settings = settings or load_settings()
    set_audit_logger(AuditLogger(settings.audit_dir))
    logger.info("Starting Quick Unlock backend on %s:%d", host, port)
    uvicorn.run(create_app(settings), host=host, port=port, log_level="info")
