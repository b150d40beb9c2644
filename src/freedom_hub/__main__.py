# Freedom Family Hub - Command Line Entry Point
#
#   freedom-hub status            show whether Quick Unlock is set up here
#   freedom-hub disable           forget the stored record
#   freedom-hub serve [--host --port]
#                                 run the local backend for the front-end

import argparse
import asyncio
import sys

from . import __version__
from .config import load_settings
from .core import AuditLogger, EventSeverity, EventType, set_audit_logger
from .vault import VaultError


def _cmd_status(settings) -> int:
    from .api.main import build_vault

    vault = build_vault(settings)
    print(f"  Store:      {settings.store_backend} ({settings.data_dir})")
    print(f"  RP id:      {settings.rp_id}")
    print(f"  Available:  {'yes' if vault.is_available() else 'no'}")
    print(f"  Configured: {'yes' if vault.has_record() else 'no'}")
    return 0


def _cmd_disable(settings) -> int:
    from .api.main import build_vault

    vault = build_vault(settings)
    asyncio.run(vault.disable())
    print("  Quick Unlock disabled on this device.")
    return 0


def _cmd_serve(settings, host: str, port: int) -> int:
    from .api.main import start_api_server

    start_api_server(host=host, port=port, settings=settings)
    return 0


def main(argv=None) -> int:
    """Main entry point for the freedom-hub command."""
    parser = argparse.ArgumentParser(
        prog="freedom-hub",
        description="Freedom Family Hub - biometric Quick Unlock",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"Freedom Family Hub v{__version__}"
    )
    parser.add_argument(
        "--env-file",
        default=None,
        help="Load settings from this .env file (default: ./.env if present)"
    )

    sub = parser.add_subparsers(dest="command", required=True)
    sub.add_parser("status", help="Show Quick Unlock state for this device")
    sub.add_parser("disable", help="Remove the stored Quick Unlock record")

    serve = sub.add_parser("serve", help="Run the local backend API")
    serve.add_argument("--host", default="127.0.0.1", help="Bind host (default: 127.0.0.1)")
    serve.add_argument("--port", type=int, default=8000, help="Bind port (default: 8000)")

    args = parser.parse_args(argv)

    try:
        settings = load_settings(dotenv_path=args.env_file)
    except ValueError as e:
        print(f"  [ERROR] {e}", file=sys.stderr)
        return 2

    audit = AuditLogger(settings.audit_dir)
    set_audit_logger(audit)
    audit.log_event(
        event_type=EventType.SYSTEM_START,
        severity=EventSeverity.INFO,
        message="freedom-hub CLI starting",
        details={"version": __version__, "command": args.command},
    )

    try:
        if args.command == "status":
            return _cmd_status(settings)
        if args.command == "disable":
            return _cmd_disable(settings)
        return _cmd_serve(settings, args.host, args.port)
    except VaultError as e:
        print(f"  [ERROR] {e.message}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
