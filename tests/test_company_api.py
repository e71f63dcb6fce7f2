import sys
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Tuple

import pytest
from fastapi.testclient import TestClient

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from roster.company_api import create_company_app
from roster.config import ServiceConfig
from roster.errors import PeerNotFoundError, PeerRequestError
from roster.models import UserSummary


class StubUsers:
    def __init__(self) -> None:
        self.users: Dict[int, UserSummary] = {
            42: UserSummary(id=42, first_name="Alice", last_name="Smith", phone_number="5551234"),
            43: UserSummary(id=43, first_name="Bob", last_name="Jones"),
        }
        self.down = False
        self.notifications: List[Tuple[int, Optional[int]]] = []

    def get_user(self, user_id: int) -> UserSummary:
        if self.down:
            raise PeerRequestError("Failed to contact user service")
        if user_id not in self.users:
            raise PeerNotFoundError(f"User not found with id: {user_id}", status_code=404)
        return self.users[user_id]

    def get_users_by_ids(self, user_ids: Sequence[int]) -> List[UserSummary]:
        if self.down:
            raise PeerRequestError("Failed to contact user service")
        return [self.users[item] for item in user_ids if item in self.users]

    def set_user_company(self, user_id: int, company_id: Optional[int]) -> None:
        self.notifications.append((user_id, company_id))
        if self.down:
            raise PeerRequestError("Failed to contact user service")


@pytest.fixture
def company_api(tmp_path):
    config = ServiceConfig(
        name="companies",
        database_path=tmp_path / "companies.sqlite3",
        peer_url="http://users.invalid",
    )
    users = StubUsers()
    app = create_company_app(config=config, users=users)
    yield TestClient(app), users


def _create(client: TestClient, **fields) -> dict:
    payload = {"company_name": "Acme", "budget": "1000.50"}
    payload.update(fields)
    response = client.post("/api/v1/companies", json=payload)
    assert response.status_code == 201, response.text
    return response.json()


def test_create_company(company_api):
    client, _users = company_api

    created = _create(client)

    assert created["company_name"] == "Acme"
    assert created["budget"] == "1000.50"
    assert created["employee_ids"] == []
    assert created["employees"] == []


@pytest.mark.parametrize(
    "payload",
    [{"company_name": ""}, {"company_name": "   "}, {"company_name": "Acme", "budget": "-1"}, {}],
)
def test_create_company_validation_errors(company_api, payload):
    client, _users = company_api

    assert client.post("/api/v1/companies", json=payload).status_code == 422


def test_add_employee_twice_is_idempotent(company_api):
    client, users = company_api
    company = _create(client)

    first = client.post(f"/api/v1/companies/{company['id']}/employees/42")
    second = client.post(f"/api/v1/companies/{company['id']}/employees/42")

    assert first.status_code == 200
    assert second.status_code == 200
    assert second.json()["employee_ids"] == [42]
    assert [item["first_name"] for item in second.json()["employees"]] == ["Alice"]
    assert users.notifications == [(42, company["id"])]


def test_add_employee_with_user_service_down_still_succeeds(company_api):
    client, users = company_api
    company = _create(client)
    users.down = True

    response = client.post(f"/api/v1/companies/{company['id']}/employees/42")

    assert response.status_code == 200
    assert response.json()["employee_ids"] == [42]
    assert response.json()["employees"] == []


def test_remove_employee(company_api):
    client, users = company_api
    company = _create(client)
    client.post(f"/api/v1/companies/{company['id']}/employees/42")
    client.post(f"/api/v1/companies/{company['id']}/employees/43")

    removed = client.delete(f"/api/v1/companies/{company['id']}/employees/42")
    not_member = client.delete(f"/api/v1/companies/{company['id']}/employees/42")

    assert removed.status_code == 200
    assert removed.json()["employee_ids"] == [43]
    assert not_member.status_code == 200
    assert users.notifications.count((42, None)) == 1


def test_employee_routes_on_missing_company_return_404(company_api):
    client, users = company_api

    assert client.post("/api/v1/companies/999/employees/42").status_code == 404
    assert client.delete("/api/v1/companies/999/employees/42").status_code == 404
    assert users.notifications == []


def test_get_and_update_company(company_api):
    client, _users = company_api
    company = _create(client)
    client.post(f"/api/v1/companies/{company['id']}/employees/43")

    fetched = client.get(f"/api/v1/companies/{company['id']}")
    assert fetched.status_code == 200
    assert [item["id"] for item in fetched.json()["employees"]] == [43]

    updated = client.put(f"/api/v1/companies/{company['id']}", json={"budget": "250"})
    assert updated.status_code == 200
    assert updated.json()["company_name"] == "Acme"
    assert updated.json()["budget"] == "250"
    assert updated.json()["employee_ids"] == [43]

    assert client.put(f"/api/v1/companies/{company['id']}", json={"company_name": "A"}).status_code == 422
    assert client.put("/api/v1/companies/999", json={"budget": "1"}).status_code == 404
    assert client.get("/api/v1/companies/999").status_code == 404


def test_delete_company_clears_employees(company_api):
    client, users = company_api
    company = _create(client)
    client.post(f"/api/v1/companies/{company['id']}/employees/42")
    client.post(f"/api/v1/companies/{company['id']}/employees/43")
    users.notifications.clear()

    response = client.delete(f"/api/v1/companies/{company['id']}")

    assert response.status_code == 204
    assert users.notifications == [(42, None), (43, None)]
    assert client.get(f"/api/v1/companies/{company['id']}").status_code == 404
    assert client.delete(f"/api/v1/companies/{company['id']}").status_code == 404


def test_companies_by_ids_returns_two_of_three(company_api):
    client, _users = company_api
    first = _create(client, company_name="Acme")
    second = _create(client, company_name="Globex")

    response = client.get("/api/v1/companies/by-ids", params={"ids": f"{first['id']},{second['id']},999"})

    assert response.status_code == 200
    payload = response.json()
    assert [item["company_name"] for item in payload] == ["Acme", "Globex"]
    assert "employees" not in payload[0]


def test_list_companies_sorted_by_budget(company_api):
    client, _users = company_api
    _create(client, company_name="Acme", budget="50")
    _create(client, company_name="Globex", budget="500")
    _create(client, company_name="Initech", budget="75")

    response = client.get("/api/v1/companies", params={"sort": "budget,desc", "size": 2})

    assert response.status_code == 200
    payload = response.json()
    assert [item["company_name"] for item in payload["content"]] == ["Globex", "Initech"]
    assert payload["total_elements"] == 3
    assert payload["total_pages"] == 2
    assert client.get("/api/v1/companies", params={"sort": "employees"}).status_code == 400
