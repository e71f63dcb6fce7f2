"""Business logic of the user service."""

from __future__ import annotations

import logging
from typing import Dict, List, Mapping, Optional, Protocol, Sequence

from .database import UserStore
from .enrichment import resolve_many, resolve_one
from .errors import Outcome, PeerRequestError, PeerValidationError
from .models import CompanySummary, EnrichedUser, Page, PageRequest, User, UserSummary

logger = logging.getLogger("roster.users")

_UPDATABLE_FIELDS = ("first_name", "last_name", "phone_number", "company_id")


class CompanyDirectory(Protocol):
    """The part of the company service the user service depends on."""

    def get_company(self, company_id: int) -> CompanySummary: ...

    def get_companies_by_ids(self, company_ids: Sequence[int]) -> List[CompanySummary]: ...


class UserService:
    """Read and write users, enriching them with company summaries."""

    def __init__(self, store: UserStore, companies: CompanyDirectory) -> None:
        self._store = store
        self._companies = companies

    # ------------------------------------------------------------------
    # Read path
    # ------------------------------------------------------------------
    def list_users(self, request: PageRequest) -> Outcome[Page[EnrichedUser]]:
        logger.info(
            "Fetching users page %s (size=%s, sort=%s, descending=%s)",
            request.page,
            request.size,
            request.sort,
            request.descending,
        )
        page = self._store.get_page(request)
        enriched = self._enrich_many(page.items)
        result = Page(items=enriched.value, request=page.request, total_elements=page.total_elements)
        return Outcome(result, enriched.failures)

    def get_user(self, user_id: int) -> Outcome[EnrichedUser]:
        user = self._store.get(user_id)
        logger.info("User found with id: %s", user_id)
        return self._enrich_one(user)

    def get_users_by_ids(self, user_ids: Sequence[int]) -> List[UserSummary]:
        """Return plain summaries for the users that exist among ``user_ids``."""

        users = self._store.get_batch(user_ids)
        logger.debug("Found %d users for %d requested ids", len(users), len(set(user_ids)))
        return [UserSummary.from_user(user) for user in users]

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------
    def create_user(
        self,
        *,
        first_name: str,
        last_name: str,
        phone_number: Optional[str] = None,
        company_id: Optional[int] = None,
    ) -> Outcome[EnrichedUser]:
        if company_id is not None:
            self._require_company(company_id, action="create user")

        saved = self._store.save(
            User(
                first_name=first_name,
                last_name=last_name,
                phone_number=phone_number,
                company_id=company_id,
            )
        )
        logger.info("Created new user with id %s and name %s", saved.id, saved.first_name)
        return self._enrich_one(saved)

    def update_user(self, user_id: int, changes: Mapping[str, object]) -> Outcome[EnrichedUser]:
        """Apply the provided fields only; an explicit ``company_id`` of ``None`` clears it."""

        unknown = set(changes) - set(_UPDATABLE_FIELDS)
        if unknown:
            raise ValueError(f"Unknown user fields: {', '.join(sorted(unknown))}")

        user = self._store.get(user_id)
        if "company_id" in changes:
            new_company_id = changes["company_id"]
            if new_company_id is not None and new_company_id != user.company_id:
                self._require_company(int(new_company_id), action="update user")  # type: ignore[arg-type]

        for name, value in changes.items():
            setattr(user, name, value)
        updated = self._store.save(user)
        logger.info("Updated user with id %s", user_id)
        return self._enrich_one(updated)

    def set_user_company(self, user_id: int, company_id: Optional[int]) -> None:
        logger.info(
            "Setting companyId %s for user %s",
            company_id if company_id is not None else "null (remove association)",
            user_id,
        )
        user = self._store.get(user_id)
        if company_id is not None:
            self._require_company(company_id, action="set user company")
            logger.debug("Verified company %s exists", company_id)
        user.company_id = company_id
        self._store.save(user)
        logger.info("Successfully updated companyId for user %s", user_id)

    def delete_user(self, user_id: int) -> None:
        """Delete the user; employee lists on the company side are left to drop the id on read."""

        logger.info("Attempting to delete user with id: %s", user_id)
        self._store.delete(user_id)
        logger.info("User with id %s successfully deleted", user_id)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    def _require_company(self, company_id: int, *, action: str) -> CompanySummary:
        try:
            return self._companies.get_company(company_id)
        except PeerRequestError as exc:
            logger.error("Cannot %s, company %s not confirmed: %s", action, company_id, exc)
            raise PeerValidationError("company", company_id, action=action) from exc

    def _enrich_one(self, user: User) -> Outcome[EnrichedUser]:
        company = resolve_one(user.company_id, self._companies.get_company, peer="company")
        return Outcome(EnrichedUser(user=user, company=company.value), company.failures)

    def _enrich_many(self, users: List[User]) -> Outcome[List[EnrichedUser]]:
        if not users:
            return Outcome([])
        lookup = resolve_many(
            (user.company_id for user in users),
            self._companies.get_companies_by_ids,
            key=lambda summary: summary.id,
            peer="company",
        )
        companies: Dict[int, CompanySummary] = lookup.value
        enriched = [
            EnrichedUser(
                user=user,
                company=companies.get(user.company_id) if user.company_id is not None else None,
            )
            for user in users
        ]
        return Outcome(enriched, lookup.failures)


__all__ = ["CompanyDirectory", "UserService"]
