"""Tests for the company service and its best-effort user notifications."""

from __future__ import annotations

import tempfile
import unittest
from decimal import Decimal
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Set, Tuple

from roster.companies import CompanyService
from roster.database import CompanyStore
from roster.errors import NotFoundError, PeerNotFoundError, PeerRequestError, SoftFailureKind
from roster.models import PageRequest, UserSummary


class FakeUserDirectory:
    def __init__(self) -> None:
        self.users: Dict[int, UserSummary] = {}
        self.down = False
        self.reject_notifications: Set[int] = set()
        self.notifications: List[Tuple[int, Optional[int]]] = []
        self.bulk_calls: List[List[int]] = []

    def add(self, user_id: int, first_name: str, company_id: Optional[int] = None) -> None:
        self.users[user_id] = UserSummary(
            id=user_id,
            first_name=first_name,
            last_name="Tester",
            company_id=company_id,
        )

    def get_user(self, user_id: int) -> UserSummary:
        if self.down:
            raise PeerRequestError("Failed to contact user service: connection refused")
        try:
            return self.users[user_id]
        except KeyError:
            raise PeerNotFoundError(f"User not found with id: {user_id}", status_code=404) from None

    def get_users_by_ids(self, user_ids: Sequence[int]) -> List[UserSummary]:
        self.bulk_calls.append(list(user_ids))
        if self.down:
            raise PeerRequestError("Failed to contact user service: connection refused")
        return [self.users[item] for item in user_ids if item in self.users]

    def set_user_company(self, user_id: int, company_id: Optional[int]) -> None:
        self.notifications.append((user_id, company_id))
        if self.down or user_id in self.reject_notifications:
            raise PeerRequestError("User service request failed with status 500", status_code=500)
        if user_id in self.users:
            current = self.users[user_id]
            self.users[user_id] = UserSummary(
                id=current.id,
                first_name=current.first_name,
                last_name=current.last_name,
                phone_number=current.phone_number,
                company_id=company_id,
            )


class CompanyServiceTests(unittest.TestCase):
    def setUp(self) -> None:
        self._tempdir = tempfile.TemporaryDirectory()
        self.store = CompanyStore(Path(self._tempdir.name) / "companies.sqlite3")
        self.store.initialize()
        self.users = FakeUserDirectory()
        self.users.add(42, "Alice")
        self.users.add(43, "Bob")
        self.service = CompanyService(self.store, self.users)

    def tearDown(self) -> None:
        self._tempdir.cleanup()

    def _create(self, name: str = "Acme", budget: Optional[str] = "1000") -> int:
        outcome = self.service.create_company(
            company_name=name,
            budget=Decimal(budget) if budget is not None else None,
        )
        return outcome.value.company.id

    def test_create_company_starts_without_employees(self) -> None:
        outcome = self.service.create_company(company_name="Acme", budget=Decimal("12.50"))

        company = outcome.value.company
        self.assertIsNotNone(company.id)
        self.assertEqual(company.employee_ids, [])
        self.assertEqual(outcome.value.employees, [])
        self.assertEqual(self.users.bulk_calls, [])

    def test_add_employee_twice_appends_and_notifies_once(self) -> None:
        company_id = self._create()

        first = self.service.add_employee(company_id, 42)
        second = self.service.add_employee(company_id, 42)

        self.assertEqual(first.value.company.employee_ids, [42])
        self.assertEqual(second.value.company.employee_ids, [42])
        self.assertEqual(self.users.notifications, [(42, company_id)])
        self.assertEqual(self.users.users[42].company_id, company_id)
        self.assertEqual([user.first_name for user in second.value.employees], ["Alice"])

    def test_add_employee_commits_even_when_notification_fails(self) -> None:
        company_id = self._create()
        self.users.reject_notifications.add(42)

        outcome = self.service.add_employee(company_id, 42)

        self.assertEqual(self.store.get(company_id).employee_ids, [42])
        self.assertTrue(outcome.degraded)
        kinds = [failure.kind for failure in outcome.failures]
        self.assertIn(SoftFailureKind.PEER_NOTIFICATION_FAILED, kinds)

    def test_add_employee_when_user_service_is_down(self) -> None:
        company_id = self._create()
        self.users.down = True

        outcome = self.service.add_employee(company_id, 42)

        self.assertEqual(outcome.value.company.employee_ids, [42])
        self.assertEqual(outcome.value.employees, [])
        kinds = {failure.kind for failure in outcome.failures}
        self.assertEqual(
            kinds,
            {SoftFailureKind.PEER_NOTIFICATION_FAILED, SoftFailureKind.PEER_ENRICHMENT_UNAVAILABLE},
        )

    def test_add_employee_to_missing_company_raises(self) -> None:
        with self.assertRaises(NotFoundError):
            self.service.add_employee(999, 42)
        self.assertEqual(self.users.notifications, [])

    def test_remove_employee_clears_reference(self) -> None:
        company_id = self._create()
        self.service.add_employee(company_id, 42)
        self.service.add_employee(company_id, 43)

        outcome = self.service.remove_employee(company_id, 42)

        self.assertEqual(outcome.value.company.employee_ids, [43])
        self.assertEqual(self.users.notifications[-1], (42, None))
        self.assertIsNone(self.users.users[42].company_id)

    def test_remove_non_member_is_a_no_op(self) -> None:
        company_id = self._create()
        self.service.add_employee(company_id, 42)
        self.users.notifications.clear()

        outcome = self.service.remove_employee(company_id, 43)

        self.assertEqual(outcome.value.company.employee_ids, [42])
        self.assertEqual(self.users.notifications, [])
        self.assertFalse(outcome.degraded)

    def test_delete_company_clears_every_employee(self) -> None:
        company_id = self._create()
        self.service.add_employee(company_id, 42)
        self.service.add_employee(company_id, 43)
        self.users.notifications.clear()

        outcome = self.service.delete_company(company_id)

        self.assertFalse(outcome.degraded)
        self.assertEqual(self.users.notifications, [(42, None), (43, None)])
        with self.assertRaises(NotFoundError):
            self.store.get(company_id)

    def test_delete_company_succeeds_with_failed_notifications(self) -> None:
        company_id = self._create()
        self.service.add_employee(company_id, 42)
        self.service.add_employee(company_id, 43)
        self.users.reject_notifications.add(43)

        outcome = self.service.delete_company(company_id)

        self.assertEqual([failure.ids for failure in outcome.failures], [(43,)])
        self.assertFalse(self.store.exists(company_id))

    def test_get_company_drops_unresolved_employees(self) -> None:
        company_id = self._create()
        self.service.add_employee(company_id, 42)
        self.service.add_employee(company_id, 77)
        self.users.bulk_calls.clear()

        outcome = self.service.get_company(company_id)

        self.assertEqual(outcome.value.company.employee_ids, [42, 77])
        self.assertEqual([user.id for user in outcome.value.employees], [42])
        self.assertEqual(self.users.bulk_calls, [[42, 77]])

    def test_list_companies_issues_one_bulk_user_call(self) -> None:
        first = self._create("Acme")
        second = self._create("Globex")
        self.service.add_employee(first, 42)
        self.service.add_employee(second, 43)
        self.service.add_employee(second, 42)
        self.users.bulk_calls.clear()

        outcome = self.service.list_companies(PageRequest(sort="company_name"))

        self.assertEqual(self.users.bulk_calls, [[42, 43]])
        employees = [[user.id for user in item.employees] for item in outcome.value.items]
        self.assertEqual(employees, [[42], [43, 42]])

    def test_update_company_keeps_employee_list(self) -> None:
        company_id = self._create()
        self.service.add_employee(company_id, 42)

        outcome = self.service.update_company(company_id, {"company_name": "Acme Corp"})

        self.assertEqual(outcome.value.company.company_name, "Acme Corp")
        self.assertEqual(outcome.value.company.budget, Decimal("1000"))
        self.assertEqual(outcome.value.company.employee_ids, [42])

        with self.assertRaises(ValueError):
            self.service.update_company(company_id, {"employee_ids": []})
        with self.assertRaises(NotFoundError):
            self.service.update_company(999, {"budget": Decimal("1")})

    def test_get_companies_by_ids_returns_summaries(self) -> None:
        first = self._create("Acme")
        second = self._create("Globex", None)

        summaries = self.service.get_companies_by_ids([second, 404, first])

        self.assertEqual([summary.company_name for summary in summaries], ["Acme", "Globex"])
        self.assertIsNone(summaries[1].budget)


if __name__ == "__main__":  # pragma: no cover
    unittest.main()
