"""Domain models for the user and company services."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from typing import Generic, List, Mapping, Optional, TypeVar

from .errors import PeerRequestError

T = TypeVar("T")

DEFAULT_PAGE_SIZE = 20
MAX_PAGE_SIZE = 100


@dataclass
class User:
    """A user record owned by the user service."""

    first_name: str
    last_name: str
    phone_number: Optional[str] = None
    company_id: Optional[int] = None
    id: Optional[int] = None


@dataclass
class Company:
    """A company record owned by the company service."""

    company_name: str
    budget: Optional[Decimal] = None
    employee_ids: List[int] = field(default_factory=list)
    id: Optional[int] = None


def _parse_decimal(value: object) -> Optional[Decimal]:
    if value is None:
        return None
    try:
        return Decimal(str(value))
    except InvalidOperation as exc:
        raise PeerRequestError(f"Invalid decimal value {value!r} in peer payload") from exc


def _parse_optional_int(value: object) -> Optional[int]:
    if value is None:
        return None
    return int(value)  # type: ignore[arg-type]


@dataclass(frozen=True)
class CompanySummary:
    """Company projection exchanged between services, without the employee list."""

    id: int
    company_name: str
    budget: Optional[Decimal] = None

    @classmethod
    def from_company(cls, company: Company) -> "CompanySummary":
        if company.id is None:
            raise ValueError("Company must be persisted before it can be summarised")
        return cls(id=company.id, company_name=company.company_name, budget=company.budget)

    @classmethod
    def from_payload(cls, data: Mapping[str, object]) -> "CompanySummary":
        try:
            return cls(
                id=int(data["id"]),  # type: ignore[arg-type]
                company_name=str(data["company_name"]),
                budget=_parse_decimal(data.get("budget")),
            )
        except (KeyError, TypeError, ValueError) as exc:
            raise PeerRequestError("Company payload was missing required fields") from exc


@dataclass(frozen=True)
class UserSummary:
    """User projection exchanged between services, never enriched with a company."""

    id: int
    first_name: str
    last_name: str
    phone_number: Optional[str] = None
    company_id: Optional[int] = None

    @classmethod
    def from_user(cls, user: User) -> "UserSummary":
        if user.id is None:
            raise ValueError("User must be persisted before it can be summarised")
        return cls(
            id=user.id,
            first_name=user.first_name,
            last_name=user.last_name,
            phone_number=user.phone_number,
            company_id=user.company_id,
        )

    @classmethod
    def from_payload(cls, data: Mapping[str, object]) -> "UserSummary":
        try:
            phone = data.get("phone_number")
            return cls(
                id=int(data["id"]),  # type: ignore[arg-type]
                first_name=str(data["first_name"]),
                last_name=str(data["last_name"]),
                phone_number=str(phone) if phone is not None else None,
                company_id=_parse_optional_int(data.get("company_id")),
            )
        except (KeyError, TypeError, ValueError) as exc:
            raise PeerRequestError("User payload was missing required fields") from exc


@dataclass(frozen=True)
class EnrichedUser:
    user: User
    company: Optional[CompanySummary] = None


@dataclass(frozen=True)
class EnrichedCompany:
    company: Company
    employees: List[UserSummary] = field(default_factory=list)


@dataclass(frozen=True)
class PageRequest:
    """Offset pagination parameters with a single sort column."""

    page: int = 0
    size: int = DEFAULT_PAGE_SIZE
    sort: str = "id"
    descending: bool = False

    def __post_init__(self) -> None:
        if self.page < 0:
            raise ValueError("Page index must not be negative")
        if not 1 <= self.size <= MAX_PAGE_SIZE:
            raise ValueError(f"Page size must be between 1 and {MAX_PAGE_SIZE}")

    @property
    def offset(self) -> int:
        return self.page * self.size

    @classmethod
    def parse(cls, page: int = 0, size: int = DEFAULT_PAGE_SIZE, sort: Optional[str] = None) -> "PageRequest":
        """Build a request from ``page``/``size`` and a ``field[,asc|desc]`` sort string."""

        field_name = "id"
        descending = False
        if sort:
            parts = [part.strip() for part in sort.split(",")]
            field_name = parts[0] or "id"
            if len(parts) > 2:
                raise ValueError(f"Invalid sort expression {sort!r}")
            if len(parts) == 2:
                direction = parts[1].lower()
                if direction not in {"asc", "desc"}:
                    raise ValueError(f"Invalid sort direction {parts[1]!r}")
                descending = direction == "desc"
        return cls(page=page, size=size, sort=field_name, descending=descending)


@dataclass(frozen=True)
class Page(Generic[T]):
    items: List[T]
    request: PageRequest
    total_elements: int

    @property
    def total_pages(self) -> int:
        if self.total_elements == 0:
            return 0
        return math.ceil(self.total_elements / self.request.size)


__all__ = [
    "Company",
    "CompanySummary",
    "DEFAULT_PAGE_SIZE",
    "EnrichedCompany",
    "EnrichedUser",
    "MAX_PAGE_SIZE",
    "Page",
    "PageRequest",
    "User",
    "UserSummary",
]
