"""Error taxonomy and soft-failure results shared by both services."""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Generic, List, Sequence, TypeVar

T = TypeVar("T")


class RosterError(RuntimeError):
    """Base class for errors raised by the user and company services."""


class NotFoundError(RosterError):
    """Raised when a locally owned record does not exist."""

    def __init__(self, entity: str, entity_id: int) -> None:
        super().__init__(f"{entity.capitalize()} not found with id: {entity_id}")
        self.entity = entity
        self.entity_id = entity_id


class ConflictError(RosterError):
    """Raised when a write violates a uniqueness constraint."""


class PeerValidationError(RosterError):
    """Raised when a referenced peer record could not be confirmed during a write."""

    def __init__(self, entity: str, entity_id: int, *, action: str) -> None:
        super().__init__(f"Cannot {action}, {entity} not found: {entity_id}")
        self.entity = entity
        self.entity_id = entity_id


class PeerRequestError(RosterError):
    """Raised when a call to the peer service fails for any reason."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class PeerNotFoundError(PeerRequestError):
    """Raised when the peer service answers 404 for the requested record."""


class SoftFailureKind(str, Enum):
    """Categories of peer failures that degrade but never abort an operation."""

    PEER_ENRICHMENT_UNAVAILABLE = "peer_enrichment_unavailable"
    PEER_NOTIFICATION_FAILED = "peer_notification_failed"


@dataclass(frozen=True)
class SoftFailure:
    """A swallowed peer failure, kept so callers can tell a degraded result apart."""

    kind: SoftFailureKind
    peer: str
    ids: tuple[int, ...]
    reason: str


@dataclass
class Outcome(Generic[T]):
    """Result of an operation together with the soft failures it absorbed."""

    value: T
    failures: List[SoftFailure] = field(default_factory=list)

    @property
    def degraded(self) -> bool:
        return bool(self.failures)

    def merge(self, failures: Sequence[SoftFailure]) -> "Outcome[T]":
        self.failures.extend(failures)
        return self


__all__ = [
    "ConflictError",
    "NotFoundError",
    "Outcome",
    "PeerNotFoundError",
    "PeerRequestError",
    "PeerValidationError",
    "RosterError",
    "SoftFailure",
    "SoftFailureKind",
]
