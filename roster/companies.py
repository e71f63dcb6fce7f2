"""Business logic of the company service.

``Company.employee_ids`` is the authoritative association list. Whenever it
changes, the user service is told to update the matching ``company_id`` so the
user side acts as a cache of this list. That notification is best effort: the
local write is committed first and a failed notification is only logged and
reported as a soft failure, never rolled back.
"""

from __future__ import annotations

import logging
from decimal import Decimal
from typing import Dict, List, Mapping, Optional, Protocol, Sequence

from .database import CompanyStore
from .enrichment import resolve_many
from .errors import Outcome, PeerRequestError, SoftFailure, SoftFailureKind
from .models import Company, CompanySummary, EnrichedCompany, Page, PageRequest, UserSummary

logger = logging.getLogger("roster.companies")

_UPDATABLE_FIELDS = ("company_name", "budget")


class UserDirectory(Protocol):
    """The part of the user service the company service depends on."""

    def get_user(self, user_id: int) -> UserSummary: ...

    def get_users_by_ids(self, user_ids: Sequence[int]) -> List[UserSummary]: ...

    def set_user_company(self, user_id: int, company_id: Optional[int]) -> None: ...


class CompanyService:
    """Read and write companies and coordinate employee associations with the user service."""

    def __init__(self, store: CompanyStore, users: UserDirectory) -> None:
        self._store = store
        self._users = users

    # ------------------------------------------------------------------
    # Read path
    # ------------------------------------------------------------------
    def list_companies(self, request: PageRequest) -> Outcome[Page[EnrichedCompany]]:
        logger.info(
            "Fetching companies page %s (size=%s, sort=%s, descending=%s)",
            request.page,
            request.size,
            request.sort,
            request.descending,
        )
        page = self._store.get_page(request)
        enriched = self._enrich_many(page.items)
        result = Page(items=enriched.value, request=page.request, total_elements=page.total_elements)
        return Outcome(result, enriched.failures)

    def get_company(self, company_id: int) -> Outcome[EnrichedCompany]:
        logger.info("Fetching company with id: %s", company_id)
        company = self._store.get(company_id)
        return self._enrich_one(company)

    def get_companies_by_ids(self, company_ids: Sequence[int]) -> List[CompanySummary]:
        """Return summaries, without employee lists, for the companies that exist."""

        companies = self._store.get_batch(company_ids)
        logger.debug("Found %d companies for %d requested ids", len(companies), len(set(company_ids)))
        return [CompanySummary.from_company(company) for company in companies]

    # ------------------------------------------------------------------
    # Company mutations
    # ------------------------------------------------------------------
    def create_company(self, *, company_name: str, budget: Optional[Decimal] = None) -> Outcome[EnrichedCompany]:
        logger.info("Creating new company with name: %s", company_name)
        saved = self._store.save(Company(company_name=company_name, budget=budget))
        logger.info("Company created with id: %s", saved.id)
        return Outcome(EnrichedCompany(company=saved, employees=[]))

    def update_company(self, company_id: int, changes: Mapping[str, object]) -> Outcome[EnrichedCompany]:
        """Update name and budget; the employee list only changes through add/remove."""

        unknown = set(changes) - set(_UPDATABLE_FIELDS)
        if unknown:
            raise ValueError(f"Unknown company fields: {', '.join(sorted(unknown))}")

        logger.info("Updating company with id: %s", company_id)
        company = self._store.get(company_id)
        for name, value in changes.items():
            setattr(company, name, value)
        updated = self._store.save(company)
        logger.info("Company updated with id: %s", company_id)
        return self._enrich_one(updated)

    def delete_company(self, company_id: int) -> Outcome[None]:
        """Clear every employee's company reference, then delete the company."""

        logger.info("Deleting company with id: %s", company_id)
        company = self._store.get(company_id)

        failures: List[SoftFailure] = []
        for employee_id in company.employee_ids:
            failure = self._notify(employee_id, None)
            if failure is not None:
                failures.append(failure)

        self._store.delete(company_id)
        if failures:
            logger.warning(
                "Company %s deleted but %d employee(s) may still reference it",
                company_id,
                len(failures),
            )
        logger.info("Company deleted with id: %s", company_id)
        return Outcome(None, failures)

    # ------------------------------------------------------------------
    # Association state machine
    # ------------------------------------------------------------------
    def add_employee(self, company_id: int, employee_id: int) -> Outcome[EnrichedCompany]:
        logger.info("Adding employee %s to company %s", employee_id, company_id)
        company = self._store.get(company_id)

        try:
            logger.debug("Checking existence of employee with id: %s", employee_id)
            self._users.get_user(employee_id)
            logger.debug("Employee %s found via user service", employee_id)
        except PeerRequestError as exc:
            logger.error("Error checking employee %s via user service: %s", employee_id, exc)

        failures: List[SoftFailure] = []
        if employee_id in company.employee_ids:
            logger.warning("Employee %s already exists in company %s", employee_id, company_id)
        else:
            company.employee_ids.append(employee_id)
            company = self._store.save(company)
            logger.info("Employee %s reference added locally to company %s", employee_id, company_id)
            failure = self._notify(employee_id, company_id)
            if failure is not None:
                failures.append(failure)

        return self._enrich_one(company).merge(failures)

    def remove_employee(self, company_id: int, employee_id: int) -> Outcome[EnrichedCompany]:
        logger.info("Removing employee %s from company %s", employee_id, company_id)
        company = self._store.get(company_id)

        failures: List[SoftFailure] = []
        if employee_id in company.employee_ids:
            company.employee_ids.remove(employee_id)
            company = self._store.save(company)
            logger.info("Employee %s reference removed locally from company %s", employee_id, company_id)
            failure = self._notify(employee_id, None)
            if failure is not None:
                failures.append(failure)
        else:
            logger.warning("Employee %s not found in company %s", employee_id, company_id)

        return self._enrich_one(company).merge(failures)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    def _notify(self, employee_id: int, company_id: Optional[int]) -> Optional[SoftFailure]:
        action = "set" if company_id is not None else "clear"
        try:
            logger.debug("Attempting to %s companyId %s for user %s", action, company_id, employee_id)
            self._users.set_user_company(employee_id, company_id)
        except PeerRequestError as exc:
            logger.error(
                "Failed to notify user service to %s company for user %s: %s",
                action,
                employee_id,
                exc,
            )
            return SoftFailure(
                kind=SoftFailureKind.PEER_NOTIFICATION_FAILED,
                peer="user",
                ids=(employee_id,),
                reason=str(exc),
            )
        logger.info("Successfully notified user service to %s company for user %s", action, employee_id)
        return None

    def _enrich_one(self, company: Company) -> Outcome[EnrichedCompany]:
        enriched = self._enrich_many([company])
        return Outcome(enriched.value[0], enriched.failures)

    def _enrich_many(self, companies: List[Company]) -> Outcome[List[EnrichedCompany]]:
        if not companies:
            return Outcome([])
        lookup = resolve_many(
            (employee_id for company in companies for employee_id in company.employee_ids),
            self._users.get_users_by_ids,
            key=lambda summary: summary.id,
            peer="user",
        )
        users: Dict[int, UserSummary] = lookup.value
        enriched = [
            EnrichedCompany(
                company=company,
                employees=[users[employee_id] for employee_id in company.employee_ids if employee_id in users],
            )
            for company in companies
        ]
        return Outcome(enriched, lookup.failures)


__all__ = ["CompanyService", "UserDirectory"]
