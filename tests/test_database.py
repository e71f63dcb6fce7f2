from __future__ import annotations

from decimal import Decimal
from pathlib import Path

import pytest

from roster.database import CompanyStore, UserStore
from roster.errors import ConflictError, NotFoundError
from roster.models import Company, PageRequest, User


@pytest.fixture()
def users(tmp_path: Path) -> UserStore:
    store = UserStore(tmp_path / "users.sqlite3")
    store.initialize()
    return store


@pytest.fixture()
def companies(tmp_path: Path) -> CompanyStore:
    store = CompanyStore(tmp_path / "companies.sqlite3")
    store.initialize()
    return store


def test_save_assigns_id_and_get_round_trips(users: UserStore) -> None:
    saved = users.save(User(first_name="Alice", last_name="Smith", phone_number="5551234", company_id=3))

    assert saved.id is not None
    loaded = users.get(saved.id)
    assert loaded == saved
    assert users.exists(saved.id)
    assert users.count() == 1


def test_get_missing_user_raises_not_found(users: UserStore) -> None:
    with pytest.raises(NotFoundError) as excinfo:
        users.get(42)
    assert str(excinfo.value) == "User not found with id: 42"


def test_duplicate_phone_number_is_a_conflict(users: UserStore) -> None:
    users.save(User(first_name="Alice", last_name="Smith", phone_number="5551234"))

    with pytest.raises(ConflictError):
        users.save(User(first_name="Bob", last_name="Jones", phone_number="5551234"))

    # Users without a phone number never collide.
    users.save(User(first_name="Carol", last_name="White"))
    users.save(User(first_name="David", last_name="Black"))
    assert users.count() == 3


def test_update_of_missing_user_raises_not_found(users: UserStore) -> None:
    with pytest.raises(NotFoundError):
        users.save(User(id=7, first_name="Ghost", last_name="User"))


def test_get_batch_skips_missing_ids(users: UserStore) -> None:
    first = users.save(User(first_name="Alice", last_name="Smith"))
    second = users.save(User(first_name="Bob", last_name="Jones"))

    found = users.get_batch([second.id, 999, first.id, first.id])

    assert [user.id for user in found] == [first.id, second.id]
    assert users.get_batch([]) == []


def test_get_page_sorts_and_counts(users: UserStore) -> None:
    for first_name in ("Carol", "Alice", "Bob"):
        users.save(User(first_name=first_name, last_name="Smith"))

    page = users.get_page(PageRequest(page=0, size=2, sort="first_name"))
    assert [user.first_name for user in page.items] == ["Alice", "Bob"]
    assert page.total_elements == 3
    assert page.total_pages == 2

    second = users.get_page(PageRequest(page=1, size=2, sort="first_name"))
    assert [user.first_name for user in second.items] == ["Carol"]

    descending = users.get_page(PageRequest(sort="id", descending=True))
    assert [user.first_name for user in descending.items] == ["Bob", "Alice", "Carol"]


def test_get_page_rejects_unknown_sort_field(users: UserStore) -> None:
    with pytest.raises(ValueError):
        users.get_page(PageRequest(sort="password"))


def test_delete_user(users: UserStore) -> None:
    saved = users.save(User(first_name="Alice", last_name="Smith"))
    users.delete(saved.id)

    assert not users.exists(saved.id)
    with pytest.raises(NotFoundError):
        users.delete(saved.id)


def test_company_employee_order_is_preserved(companies: CompanyStore) -> None:
    saved = companies.save(Company(company_name="Acme", budget=Decimal("1000.50"), employee_ids=[5, 2, 9, 2]))

    loaded = companies.get(saved.id)
    assert loaded.employee_ids == [5, 2, 9]
    assert loaded.budget == Decimal("1000.50")

    loaded.employee_ids.remove(2)
    loaded.employee_ids.append(1)
    companies.save(loaded)
    assert companies.get(saved.id).employee_ids == [5, 9, 1]


def test_company_batch_and_page(companies: CompanyStore) -> None:
    acme = companies.save(Company(company_name="Acme", budget=Decimal("50"), employee_ids=[1]))
    globex = companies.save(Company(company_name="Globex", budget=Decimal("500")))
    initech = companies.save(Company(company_name="Initech", budget=Decimal("75.5")))

    batch = companies.get_batch([initech.id, 404, acme.id])
    assert [company.company_name for company in batch] == ["Acme", "Initech"]
    assert batch[0].employee_ids == [1]

    page = companies.get_page(PageRequest(sort="budget", descending=True))
    assert [company.id for company in page.items] == [globex.id, initech.id, acme.id]


def test_delete_company_drops_employee_rows(companies: CompanyStore) -> None:
    saved = companies.save(Company(company_name="Acme", employee_ids=[1, 2]))
    companies.delete(saved.id)

    with pytest.raises(NotFoundError) as excinfo:
        companies.get(saved.id)
    assert str(excinfo.value) == f"Company not found with id: {saved.id}"

    again = companies.save(Company(company_name="Acme II", employee_ids=[1]))
    assert companies.get(again.id).employee_ids == [1]
