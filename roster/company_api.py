"""HTTP API of the company service."""

from __future__ import annotations

import logging
from typing import Dict, List, Optional

from fastapi import APIRouter, FastAPI, HTTPException, Path, Query, Response, status

from .companies import CompanyService, UserDirectory
from .config import ServiceConfig, load_config
from .database import CompanyStore
from .errors import NotFoundError
from .models import DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE, PageRequest
from .peers import API_PREFIX, UserServiceClient
from .schemas import (
    CompanyPageResponse,
    CompanyResponse,
    CompanySummaryResponse,
    CreateCompanyRequest,
    UpdateCompanyRequest,
    parse_id_list,
)

logger = logging.getLogger("roster.company_api")


def build_company_router(service: CompanyService) -> APIRouter:
    """Return the ``/companies`` routes bound to ``service``."""

    router = APIRouter(prefix=API_PREFIX, tags=["companies"])

    @router.get("/companies", response_model=CompanyPageResponse)
    def list_companies(
        page: int = Query(0, ge=0),
        size: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
        sort: Optional[str] = Query(None),
    ) -> CompanyPageResponse:
        try:
            request = PageRequest.parse(page, size, sort)
            outcome = service.list_companies(request)
        except ValueError as exc:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
        return CompanyPageResponse.from_page(outcome.value)

    @router.get("/companies/by-ids", response_model=List[CompanySummaryResponse])
    def get_companies_by_ids(ids: List[str] = Query(...)) -> List[CompanySummaryResponse]:
        try:
            company_ids = parse_id_list(ids)
        except ValueError as exc:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
        logger.info("getCompaniesByIds request for %d ids", len(company_ids))
        return [CompanySummaryResponse.from_summary(item) for item in service.get_companies_by_ids(company_ids)]

    @router.get("/companies/{company_id}", response_model=CompanyResponse)
    def get_company(company_id: int = Path(..., ge=1)) -> CompanyResponse:
        try:
            outcome = service.get_company(company_id)
        except NotFoundError as exc:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
        return CompanyResponse.from_enriched(outcome.value)

    @router.post("/companies", response_model=CompanyResponse, status_code=status.HTTP_201_CREATED)
    def create_company(request: CreateCompanyRequest) -> CompanyResponse:
        outcome = service.create_company(company_name=request.company_name, budget=request.budget)
        return CompanyResponse.from_enriched(outcome.value)

    @router.put("/companies/{company_id}", response_model=CompanyResponse)
    def update_company(request: UpdateCompanyRequest, company_id: int = Path(..., ge=1)) -> CompanyResponse:
        try:
            outcome = service.update_company(company_id, request.changes())
        except NotFoundError as exc:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
        return CompanyResponse.from_enriched(outcome.value)

    @router.delete("/companies/{company_id}", status_code=status.HTTP_204_NO_CONTENT)
    def delete_company(company_id: int = Path(..., ge=1)) -> Response:
        try:
            outcome = service.delete_company(company_id)
        except NotFoundError as exc:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
        if outcome.degraded:
            logger.warning(
                "Company %s deleted with %d unsynchronised employee reference(s)",
                company_id,
                len(outcome.failures),
            )
        return Response(status_code=status.HTTP_204_NO_CONTENT)

    @router.post("/companies/{company_id}/employees/{employee_id}", response_model=CompanyResponse)
    def add_employee(
        company_id: int = Path(..., ge=1),
        employee_id: int = Path(..., ge=1),
    ) -> CompanyResponse:
        try:
            outcome = service.add_employee(company_id, employee_id)
        except NotFoundError as exc:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
        return CompanyResponse.from_enriched(outcome.value)

    @router.delete("/companies/{company_id}/employees/{employee_id}", response_model=CompanyResponse)
    def remove_employee(
        company_id: int = Path(..., ge=1),
        employee_id: int = Path(..., ge=1),
    ) -> CompanyResponse:
        try:
            outcome = service.remove_employee(company_id, employee_id)
        except NotFoundError as exc:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
        return CompanyResponse.from_enriched(outcome.value)

    return router


def register_company_routes(app: FastAPI, service: CompanyService) -> None:
    app.include_router(build_company_router(service))


def create_company_app(
    *,
    config: ServiceConfig | None = None,
    store: CompanyStore | None = None,
    users: UserDirectory | None = None,
) -> FastAPI:
    """Instantiate the FastAPI application of the company service."""

    settings = config or load_config().companies
    company_store = store or CompanyStore(settings.database_path)
    company_store.initialize()
    user_client = users or UserServiceClient(settings.peer_url, timeout=settings.peer_timeout)

    service = CompanyService(company_store, user_client)

    app = FastAPI(
        title="Roster Company Service",
        version="0.1.0",
        description="Companies and their employees, resolved through the user service.",
    )
    app.state.store = company_store
    app.state.company_service = service

    @app.get("/healthz")
    def healthcheck() -> Dict[str, str]:
        return {"status": "ok"}

    register_company_routes(app, service)
    return app


__all__ = ["build_company_router", "create_company_app", "register_company_routes"]
