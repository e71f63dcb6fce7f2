"""Request and response models for the HTTP API of both services."""
from __future__ import annotations

from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator

from .models import (
    CompanySummary,
    EnrichedCompany,
    EnrichedUser,
    Page,
    UserSummary,
)

MAX_BULK_IDS = 1000


def _strip_required(value: str) -> str:
    stripped = value.strip()
    if not stripped:
        raise ValueError("must not be blank")
    return stripped


def _strip_optional(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    stripped = value.strip()
    return stripped or None


def parse_id_list(values: List[str]) -> List[int]:
    """Parse ``ids=1,2,3`` (or repeated ``ids``) into positive integers."""

    ids: List[int] = []
    for value in values:
        for part in value.split(","):
            cleaned = part.strip()
            if not cleaned:
                continue
            try:
                parsed = int(cleaned)
            except ValueError as exc:
                raise ValueError(f"Invalid id {cleaned!r}") from exc
            if parsed < 1:
                raise ValueError("Ids must be positive")
            ids.append(parsed)
    if not ids:
        raise ValueError("Id list cannot be empty")
    if len(ids) > MAX_BULK_IDS:
        raise ValueError(f"Cannot request more than {MAX_BULK_IDS} ids at once")
    return ids


# ----------------------------------------------------------------------
# Users
# ----------------------------------------------------------------------
class CreateUserRequest(BaseModel):
    first_name: str = Field(..., min_length=3, max_length=50)
    last_name: str = Field(..., min_length=3, max_length=50)
    phone_number: Optional[str] = Field(default=None, max_length=11)
    company_id: Optional[int] = Field(default=None, ge=1)

    @field_validator("first_name", "last_name", mode="before")
    @classmethod
    def _normalize_name(cls, value: object) -> object:
        if isinstance(value, str):
            return _strip_required(value)
        return value

    @field_validator("phone_number", mode="before")
    @classmethod
    def _normalize_phone(cls, value: object) -> object:
        if isinstance(value, str):
            return _strip_optional(value)
        return value


class UpdateUserRequest(BaseModel):
    first_name: Optional[str] = Field(default=None, min_length=3, max_length=50)
    last_name: Optional[str] = Field(default=None, min_length=3, max_length=50)
    phone_number: Optional[str] = Field(default=None, max_length=11)
    company_id: Optional[int] = Field(default=None, ge=1)

    @field_validator("first_name", "last_name", mode="before")
    @classmethod
    def _normalize_name(cls, value: object) -> object:
        if isinstance(value, str):
            return _strip_required(value)
        return value

    @field_validator("first_name", "last_name")
    @classmethod
    def _reject_null_name(cls, value: Optional[str]) -> str:
        if value is None:
            raise ValueError("must not be null")
        return value

    @field_validator("phone_number", mode="before")
    @classmethod
    def _normalize_phone(cls, value: object) -> object:
        if isinstance(value, str):
            return _strip_optional(value)
        return value

    def changes(self) -> dict:
        """Return only the fields the client actually sent."""

        return self.model_dump(exclude_unset=True)


class CompanySummaryResponse(BaseModel):
    id: int
    company_name: str
    budget: Optional[Decimal] = None

    @classmethod
    def from_summary(cls, summary: CompanySummary) -> "CompanySummaryResponse":
        return cls(id=summary.id, company_name=summary.company_name, budget=summary.budget)


class UserSummaryResponse(BaseModel):
    id: int
    first_name: str
    last_name: str
    phone_number: Optional[str] = None
    company_id: Optional[int] = None

    @classmethod
    def from_summary(cls, summary: UserSummary) -> "UserSummaryResponse":
        return cls(
            id=summary.id,
            first_name=summary.first_name,
            last_name=summary.last_name,
            phone_number=summary.phone_number,
            company_id=summary.company_id,
        )


class UserResponse(UserSummaryResponse):
    company: Optional[CompanySummaryResponse] = None

    @classmethod
    def from_enriched(cls, enriched: EnrichedUser) -> "UserResponse":
        user = enriched.user
        return cls(
            id=user.id,
            first_name=user.first_name,
            last_name=user.last_name,
            phone_number=user.phone_number,
            company_id=user.company_id,
            company=(
                CompanySummaryResponse.from_summary(enriched.company)
                if enriched.company is not None
                else None
            ),
        )


class UserPageResponse(BaseModel):
    content: List[UserResponse]
    page: int
    size: int
    total_elements: int
    total_pages: int

    @classmethod
    def from_page(cls, page: Page[EnrichedUser]) -> "UserPageResponse":
        return cls(
            content=[UserResponse.from_enriched(item) for item in page.items],
            page=page.request.page,
            size=page.request.size,
            total_elements=page.total_elements,
            total_pages=page.total_pages,
        )


# ----------------------------------------------------------------------
# Companies
# ----------------------------------------------------------------------
class CreateCompanyRequest(BaseModel):
    company_name: str = Field(..., min_length=1, max_length=100)
    budget: Optional[Decimal] = Field(default=None, ge=0)

    @field_validator("company_name", mode="before")
    @classmethod
    def _normalize_name(cls, value: object) -> object:
        if isinstance(value, str):
            return _strip_required(value)
        return value


class UpdateCompanyRequest(BaseModel):
    company_name: Optional[str] = Field(default=None, min_length=2, max_length=100)
    budget: Optional[Decimal] = Field(default=None, ge=0)

    @field_validator("company_name", mode="before")
    @classmethod
    def _normalize_name(cls, value: object) -> object:
        if isinstance(value, str):
            return _strip_required(value)
        return value

    @field_validator("company_name")
    @classmethod
    def _reject_null_name(cls, value: Optional[str]) -> str:
        if value is None:
            raise ValueError("must not be null")
        return value

    def changes(self) -> dict:
        """Return only the fields the client actually sent."""

        return self.model_dump(exclude_unset=True)


class CompanyResponse(CompanySummaryResponse):
    employee_ids: List[int] = Field(default_factory=list)
    employees: List[UserSummaryResponse] = Field(default_factory=list)

    @classmethod
    def from_enriched(cls, enriched: EnrichedCompany) -> "CompanyResponse":
        company = enriched.company
        return cls(
            id=company.id,
            company_name=company.company_name,
            budget=company.budget,
            employee_ids=list(company.employee_ids),
            employees=[UserSummaryResponse.from_summary(item) for item in enriched.employees],
        )


class CompanyPageResponse(BaseModel):
    content: List[CompanyResponse]
    page: int
    size: int
    total_elements: int
    total_pages: int

    @classmethod
    def from_page(cls, page: Page[EnrichedCompany]) -> "CompanyPageResponse":
        return cls(
            content=[CompanyResponse.from_enriched(item) for item in page.items],
            page=page.request.page,
            size=page.request.size,
            total_elements=page.total_elements,
            total_pages=page.total_pages,
        )


__all__ = [
    "CompanyPageResponse",
    "CompanyResponse",
    "CompanySummaryResponse",
    "CreateCompanyRequest",
    "CreateUserRequest",
    "MAX_BULK_IDS",
    "UpdateCompanyRequest",
    "UpdateUserRequest",
    "UserPageResponse",
    "UserResponse",
    "UserSummaryResponse",
    "parse_id_list",
]
