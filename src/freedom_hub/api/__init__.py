# Freedom Family Hub - Local Backend API

from .main import build_vault, create_app, start_api_server

__all__ = ["build_vault", "create_app", "start_api_server"]
