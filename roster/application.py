"""Application factory that serves both services from a single process."""
from __future__ import annotations

from typing import Dict, Optional

from fastapi import FastAPI

from .companies import CompanyService
from .company_api import register_company_routes
from .config import RosterConfig, load_config
from .database import CompanyStore, UserStore
from .peers import CompanyServiceClient, UserServiceClient
from .user_api import register_user_routes
from .users import UserService


def create_application(
    *,
    config: Optional[RosterConfig] = None,
    self_url: Optional[str] = None,
) -> FastAPI:
    """Create the combined ASGI application.

    Both route sets share one app, but each service still reaches the other
    over HTTP so the peer contract is identical to a split deployment. Pass
    ``self_url`` to point both peer clients at this process.
    """

    settings = config or load_config()

    user_store = UserStore(settings.users.database_path)
    user_store.initialize()
    company_store = CompanyStore(settings.companies.database_path)
    company_store.initialize()

    company_client = CompanyServiceClient(
        self_url or settings.users.peer_url,
        timeout=settings.users.peer_timeout,
    )
    user_client = UserServiceClient(
        self_url or settings.companies.peer_url,
        timeout=settings.companies.peer_timeout,
    )

    user_service = UserService(user_store, company_client)
    company_service = CompanyService(company_store, user_client)

    app = FastAPI(
        title="Roster",
        version="0.1.0",
        description="User and company services behind a single entry point.",
    )
    app.state.user_service = user_service
    app.state.company_service = company_service

    @app.get("/healthz")
    def healthcheck() -> Dict[str, str]:
        return {"status": "ok"}

    register_user_routes(app, user_service)
    register_company_routes(app, company_service)

    return app


__all__ = ["create_application"]
