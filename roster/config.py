"""Configuration management for the user and company services."""
from __future__ import annotations

import logging
import os
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Dict, Mapping, Optional

import yaml

from .peers import DEFAULT_PEER_TIMEOUT

SERVICE_NAMES = ("users", "companies")

_DEFAULTS: Dict[str, Dict[str, object]] = {
    "users": {
        "database_path": "users.sqlite3",
        "peer_url": "http://127.0.0.1:8002",
    },
    "companies": {
        "database_path": "companies.sqlite3",
        "peer_url": "http://127.0.0.1:8001",
    },
}

_DB_PATH_ENV = {
    "users": "ROSTER_USERS_DB_PATH",
    "companies": "ROSTER_COMPANIES_DB_PATH",
}

# Each service is configured with the URL of the *other* service.
_PEER_URL_ENV = {
    "users": "ROSTER_COMPANY_SERVICE_URL",
    "companies": "ROSTER_USER_SERVICE_URL",
}


def _resolve_path(raw: str, base_path: Path | None) -> Path:
    candidate = Path(raw).expanduser()
    if candidate.is_absolute():
        return candidate.resolve(strict=False)
    if base_path is not None:
        return (base_path / candidate).resolve(strict=False)
    return candidate.resolve(strict=False)


def _parse_timeout(value: object) -> float:
    try:
        timeout = float(value)  # type: ignore[arg-type]
    except (TypeError, ValueError) as exc:
        raise ValueError(f"Invalid peer timeout {value!r}") from exc
    if timeout <= 0:
        raise ValueError("Peer timeout must be positive")
    return timeout


@dataclass(frozen=True)
class ServiceConfig:
    """Settings for one of the two services."""

    name: str
    database_path: Path
    peer_url: str
    peer_timeout: float = DEFAULT_PEER_TIMEOUT

    @staticmethod
    def from_dict(name: str, data: Mapping[str, object], base_path: Path | None = None) -> "ServiceConfig":
        """Create a :class:`ServiceConfig` from raw dictionary data merged over defaults."""

        if name not in _DEFAULTS:
            raise ValueError(f"Unknown service {name!r}; expected one of: {', '.join(SERVICE_NAMES)}")
        merged: Dict[str, object] = dict(_DEFAULTS[name])
        merged.update({key: value for key, value in data.items() if value is not None})

        peer_url = str(merged["peer_url"]).strip().rstrip("/")
        if not peer_url:
            raise ValueError(f"Service {name!r} must define a peer_url")

        default_base = Path(__file__).resolve().parent.parent / "data"
        return ServiceConfig(
            name=name,
            database_path=_resolve_path(str(merged["database_path"]), base_path or default_base),
            peer_url=peer_url,
            peer_timeout=_parse_timeout(merged.get("peer_timeout", DEFAULT_PEER_TIMEOUT)),
        )


@dataclass(frozen=True)
class RosterConfig:
    """Configuration for both services, as distributed to each process."""

    users: ServiceConfig
    companies: ServiceConfig
    log_level: str = "INFO"

    def service(self, name: str) -> ServiceConfig:
        if name == "users":
            return self.users
        if name == "companies":
            return self.companies
        raise KeyError(f"Unknown service '{name}'")

    @property
    def logging_level(self) -> int:
        level = logging.getLevelName(self.log_level.upper())
        return level if isinstance(level, int) else logging.INFO


def _apply_env_overrides(config: RosterConfig, environ: Mapping[str, str]) -> RosterConfig:
    services = {}
    timeout_override = environ.get("ROSTER_PEER_TIMEOUT")
    for name in SERVICE_NAMES:
        service = config.service(name)
        db_path = environ.get(_DB_PATH_ENV[name])
        if db_path:
            service = replace(service, database_path=Path(db_path).expanduser().resolve(strict=False))
        peer_url = environ.get(_PEER_URL_ENV[name])
        if peer_url and peer_url.strip():
            service = replace(service, peer_url=peer_url.strip().rstrip("/"))
        if timeout_override:
            service = replace(service, peer_timeout=_parse_timeout(timeout_override))
        services[name] = service

    log_level = environ.get("ROSTER_LOG_LEVEL") or config.log_level
    return RosterConfig(users=services["users"], companies=services["companies"], log_level=log_level)


def load_config(config_path: Optional[Path] = None, *, environ: Optional[Mapping[str, str]] = None) -> RosterConfig:
    """Load configuration from YAML (if present) and apply environment overrides."""

    env = os.environ if environ is None else environ
    path = config_path if config_path is not None else resolve_config_path(env.get("ROSTER_CONFIG"))

    raw: Dict[str, object] = {}
    base_path: Path | None = None
    if path.is_file():
        with path.open("r", encoding="utf-8") as handle:
            loaded = yaml.safe_load(handle) or {}
        if not isinstance(loaded, dict):
            raise ValueError(f"Configuration file {path} must contain a mapping")
        raw = loaded
        base_path = path.parent

    sections = {}
    for name in SERVICE_NAMES:
        section = raw.get(name) or {}
        if not isinstance(section, dict):
            raise ValueError(f"Configuration section {name!r} must be a mapping")
        sections[name] = ServiceConfig.from_dict(name, section, base_path=base_path)

    config = RosterConfig(
        users=sections["users"],
        companies=sections["companies"],
        log_level=str(raw.get("log_level", "INFO")),
    )
    return _apply_env_overrides(config, env)


def resolve_config_path(env_value: Optional[str]) -> Path:
    """Resolve the path to the configuration file."""
    if env_value:
        candidate = Path(env_value).expanduser().resolve(strict=False)
    else:
        candidate = (Path(__file__).resolve().parent.parent / "config" / "roster.yaml").resolve(strict=False)
    return candidate


__all__ = [
    "RosterConfig",
    "SERVICE_NAMES",
    "ServiceConfig",
    "load_config",
    "resolve_config_path",
]
