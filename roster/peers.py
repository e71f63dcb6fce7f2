"""HTTP clients used by each service to reach its peer."""

from __future__ import annotations

import json
import logging
from typing import Any, List, Optional, Sequence

import httpx

from .errors import PeerNotFoundError, PeerRequestError
from .models import CompanySummary, UserSummary

API_PREFIX = "/api/v1"
DEFAULT_PEER_TIMEOUT = 5.0

logger = logging.getLogger("roster.peers")


def _normalize_base_url(base_url: str) -> str:
    cleaned = (base_url or "").strip()
    if not cleaned:
        raise ValueError("Peer base URL must not be empty")
    return cleaned.rstrip("/")


def _extract_error_message(payload: object, default: str) -> str:
    if isinstance(payload, dict):
        for key in ("message", "detail", "error"):
            value = payload.get(key)
            if isinstance(value, str) and value.strip():
                return value.strip()
    if isinstance(payload, str) and payload.strip():
        return payload.strip()
    return default


def _format_ids(ids: Sequence[int]) -> str:
    return ",".join(str(int(item)) for item in ids)


class PeerClient:
    """Blocking JSON client for one peer service with a bounded per-call timeout."""

    peer_name = "peer"

    def __init__(
        self,
        base_url: str | None = None,
        *,
        timeout: float = DEFAULT_PEER_TIMEOUT,
        client: httpx.Client | None = None,
    ) -> None:
        if client is None:
            client = httpx.Client(base_url=_normalize_base_url(base_url or ""), timeout=timeout)
        self._client = client
        self._timeout = timeout

    def close(self) -> None:
        self._client.close()

    def _request(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        url = f"{API_PREFIX}{path}"
        logger.debug("%s %s on %s service", method, url, self.peer_name)
        try:
            response = self._client.request(method, url, timeout=self._timeout, **kwargs)
        except httpx.HTTPError as exc:
            raise PeerRequestError(f"Failed to contact {self.peer_name} service: {exc}") from exc

        if response.status_code >= 400:
            default = f"{self.peer_name.capitalize()} service request failed with status {response.status_code}"
            try:
                parsed = response.json()
            except ValueError:
                parsed = None
            message = _extract_error_message(parsed, default)
            if response.status_code == 404:
                raise PeerNotFoundError(message, status_code=404)
            raise PeerRequestError(message, status_code=response.status_code)

        return response

    def _json(self, response: httpx.Response) -> Any:
        try:
            return response.json()
        except ValueError as exc:
            raise PeerRequestError(f"{self.peer_name.capitalize()} service returned an invalid response") from exc

    def _json_list(self, response: httpx.Response) -> List[dict]:
        data = self._json(response)
        if not isinstance(data, list) or not all(isinstance(item, dict) for item in data):
            raise PeerRequestError(f"{self.peer_name.capitalize()} service returned an unexpected response payload")
        return data

    def _json_object(self, response: httpx.Response) -> dict:
        data = self._json(response)
        if not isinstance(data, dict):
            raise PeerRequestError(f"{self.peer_name.capitalize()} service returned an unexpected response payload")
        return data


class CompanyServiceClient(PeerClient):
    """Client used by the user service to read company summaries."""

    peer_name = "company"

    def get_company(self, company_id: int) -> CompanySummary:
        response = self._request("GET", f"/companies/{int(company_id)}")
        return CompanySummary.from_payload(self._json_object(response))

    def get_companies_by_ids(self, company_ids: Sequence[int]) -> List[CompanySummary]:
        if not company_ids:
            return []
        response = self._request("GET", "/companies/by-ids", params={"ids": _format_ids(company_ids)})
        return [CompanySummary.from_payload(item) for item in self._json_list(response)]


class UserServiceClient(PeerClient):
    """Client used by the company service to read users and push associations."""

    peer_name = "user"

    def get_user(self, user_id: int) -> UserSummary:
        response = self._request("GET", f"/users/{int(user_id)}")
        return UserSummary.from_payload(self._json_object(response))

    def get_users_by_ids(self, user_ids: Sequence[int]) -> List[UserSummary]:
        if not user_ids:
            return []
        response = self._request("GET", "/users/by-ids", params={"ids": _format_ids(user_ids)})
        return [UserSummary.from_payload(item) for item in self._json_list(response)]

    def set_user_company(self, user_id: int, company_id: Optional[int]) -> None:
        """Set or clear the company reference held by a user."""

        body = json.dumps(int(company_id) if company_id is not None else None)
        self._request(
            "PUT",
            f"/users/{int(user_id)}/company",
            content=body,
            headers={"Content-Type": "application/json"},
        )


__all__ = [
    "API_PREFIX",
    "CompanyServiceClient",
    "DEFAULT_PEER_TIMEOUT",
    "PeerClient",
    "UserServiceClient",
]
