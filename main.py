"""Command-line interface for the roster user and company services."""

from __future__ import annotations
import argparse
import logging
import sys
from pathlib import Path
from typing import Sequence

from roster.config import RosterConfig, load_config
from roster.database import CompanyStore, UserStore

logger = logging.getLogger("roster.main")

_DEFAULT_PORTS = {"users": 8001, "companies": 8002, "all": 8000}
_SERVICE_CHOICES = ("users", "companies", "all")


def _parse_args(argv: Sequence[str] | None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Roster user and company services")
    subparsers = parser.add_subparsers(dest="command")

    parser.set_defaults(command="serve")

    init_parser = subparsers.add_parser("init-db", help="Create the service database tables")
    init_parser.add_argument(
        "--service",
        choices=_SERVICE_CHOICES,
        default="all",
        help="Which service database to initialise (default: all)",
    )

    serve_parser = subparsers.add_parser("serve", help="Start an HTTP service")
    serve_parser.add_argument(
        "--service",
        choices=_SERVICE_CHOICES,
        default="all",
        help="Service to run: users, companies or both in one process (default: all)",
    )
    serve_parser.add_argument("--host", default="0.0.0.0", help="Bind address for the API")
    serve_parser.add_argument(
        "--port",
        type=int,
        default=None,
        help="Port for the API (default: 8001 users, 8002 companies, 8000 all)",
    )

    for sub in (init_parser, serve_parser):
        sub.add_argument(
            "--config",
            type=Path,
            default=None,
            help="Path to the YAML configuration (default: ROSTER_CONFIG or config/roster.yaml)",
        )

    args_list = list(argv) if argv is not None else sys.argv[1:]
    known_commands = {"serve", "init-db"}

    if not args_list:
        args_list = ["serve"]
    else:
        first = args_list[0]
        if first in ("-h", "--help"):
            return parser.parse_args(args_list)
        if first not in known_commands:
            if any(flag in args_list for flag in ("-h", "--help")):
                return parser.parse_args(args_list)
            args_list = ["serve", *args_list]

    return parser.parse_args(args_list)


def _initialise_databases(config: RosterConfig, service: str) -> None:
    if service in ("users", "all"):
        UserStore(config.users.database_path).initialize()
        logger.info("User database initialised at %s", config.users.database_path)
    if service in ("companies", "all"):
        CompanyStore(config.companies.database_path).initialize()
        logger.info("Company database initialised at %s", config.companies.database_path)


def _serve(*, config: RosterConfig, service: str, host: str, port: int | None) -> None:
    import uvicorn

    bind_port = port if port is not None else _DEFAULT_PORTS[service]

    if service == "users":
        from roster.user_api import create_user_app

        app = create_user_app(config=config.users)
    elif service == "companies":
        from roster.company_api import create_company_app

        app = create_company_app(config=config.companies)
    else:
        from roster.application import create_application

        app = create_application(config=config, self_url=f"http://127.0.0.1:{bind_port}")

    logger.info("Starting %s service on http://%s:%s", service, host, bind_port)
    uvicorn.run(app, host=host, port=bind_port, log_level=logging.getLevelName(config.logging_level).lower())


def main(argv: Sequence[str] | None = None) -> None:
    """Entry point for CLI usage."""

    args = _parse_args(argv)
    config = load_config(args.config)

    logging.basicConfig(level=config.logging_level, format="%(asctime)s [%(levelname)s] %(message)s")

    if args.command == "serve":
        _serve(
            config=config,
            service=getattr(args, "service", "all"),
            host=getattr(args, "host", "0.0.0.0"),
            port=getattr(args, "port", None),
        )
    elif args.command == "init-db":
        _initialise_databases(config, args.service)
        print("Database initialisation complete.")


if __name__ == "__main__":
    main()
