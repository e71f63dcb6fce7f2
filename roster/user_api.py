"""HTTP API of the user service."""

from __future__ import annotations

import logging
from typing import Dict, List, Optional

from fastapi import APIRouter, Body, FastAPI, HTTPException, Path, Query, Response, status

from .config import ServiceConfig, load_config
from .database import UserStore
from .errors import ConflictError, NotFoundError, PeerValidationError
from .models import DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE, PageRequest
from .peers import API_PREFIX, CompanyServiceClient
from .schemas import (
    CreateUserRequest,
    UpdateUserRequest,
    UserPageResponse,
    UserResponse,
    UserSummaryResponse,
    parse_id_list,
)
from .users import CompanyDirectory, UserService

logger = logging.getLogger("roster.user_api")


def build_user_router(service: UserService) -> APIRouter:
    """Return the ``/users`` routes bound to ``service``."""

    router = APIRouter(prefix=API_PREFIX, tags=["users"])

    @router.get("/users", response_model=UserPageResponse)
    def list_users(
        page: int = Query(0, ge=0),
        size: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
        sort: Optional[str] = Query(None),
    ) -> UserPageResponse:
        try:
            request = PageRequest.parse(page, size, sort)
            outcome = service.list_users(request)
        except ValueError as exc:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
        return UserPageResponse.from_page(outcome.value)

    @router.get("/users/by-ids", response_model=List[UserSummaryResponse])
    def get_users_by_ids(ids: List[str] = Query(...)) -> List[UserSummaryResponse]:
        try:
            user_ids = parse_id_list(ids)
        except ValueError as exc:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
        logger.info("getUsersByIds request for %d ids", len(user_ids))
        return [UserSummaryResponse.from_summary(item) for item in service.get_users_by_ids(user_ids)]

    @router.get("/users/{user_id}", response_model=UserResponse)
    def get_user(user_id: int = Path(..., ge=1)) -> UserResponse:
        try:
            outcome = service.get_user(user_id)
        except NotFoundError as exc:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
        return UserResponse.from_enriched(outcome.value)

    @router.post("/users", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
    def create_user(request: CreateUserRequest) -> UserResponse:
        try:
            outcome = service.create_user(
                first_name=request.first_name,
                last_name=request.last_name,
                phone_number=request.phone_number,
                company_id=request.company_id,
            )
        except PeerValidationError as exc:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
        except ConflictError as exc:
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc
        return UserResponse.from_enriched(outcome.value)

    @router.put("/users/{user_id}", response_model=UserResponse)
    def update_user(request: UpdateUserRequest, user_id: int = Path(..., ge=1)) -> UserResponse:
        try:
            outcome = service.update_user(user_id, request.changes())
        except (NotFoundError, PeerValidationError) as exc:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
        except ConflictError as exc:
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc
        return UserResponse.from_enriched(outcome.value)

    @router.delete("/users/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
    def delete_user(user_id: int = Path(..., ge=1)) -> Response:
        try:
            service.delete_user(user_id)
        except NotFoundError as exc:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
        return Response(status_code=status.HTTP_204_NO_CONTENT)

    @router.put("/users/{user_id}/company")
    def set_user_company(
        user_id: int = Path(..., ge=1),
        company_id: Optional[int] = Body(default=None, ge=1),
    ) -> Response:
        try:
            service.set_user_company(user_id, company_id)
        except (NotFoundError, PeerValidationError) as exc:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
        return Response(status_code=status.HTTP_200_OK)

    return router


def register_user_routes(app: FastAPI, service: UserService) -> None:
    app.include_router(build_user_router(service))


def create_user_app(
    *,
    config: ServiceConfig | None = None,
    store: UserStore | None = None,
    companies: CompanyDirectory | None = None,
) -> FastAPI:
    """Instantiate the FastAPI application of the user service."""

    settings = config or load_config().users
    user_store = store or UserStore(settings.database_path)
    user_store.initialize()
    company_client = companies or CompanyServiceClient(settings.peer_url, timeout=settings.peer_timeout)

    service = UserService(user_store, company_client)

    app = FastAPI(
        title="Roster User Service",
        version="0.1.0",
        description="Users, enriched with summaries from the company service.",
    )
    app.state.store = user_store
    app.state.user_service = service

    @app.get("/healthz")
    def healthcheck() -> Dict[str, str]:
        return {"status": "ok"}

    register_user_routes(app, service)
    return app


__all__ = ["build_user_router", "create_user_app", "register_user_routes"]
