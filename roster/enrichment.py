"""Resolve peer summaries for local records without letting peer failures fail a read.

Single lookups skip the peer entirely when the reference is empty. Bulk lookups
collect the distinct non-null references of a whole batch and issue exactly one
peer call, so a page of N records never costs N round trips. Either way a
failing peer only produces a :class:`~roster.errors.SoftFailure` on the
returned :class:`~roster.errors.Outcome`; the caller keeps its local data.
"""

from __future__ import annotations

import logging
from typing import Callable, Dict, Iterable, List, Optional, Sequence, TypeVar

from .errors import (
    Outcome,
    PeerNotFoundError,
    PeerRequestError,
    SoftFailure,
    SoftFailureKind,
)

S = TypeVar("S")

logger = logging.getLogger("roster.enrichment")


def distinct_ids(ref_ids: Iterable[Optional[int]]) -> List[int]:
    """Return the sorted, de-duplicated non-null ids of ``ref_ids``."""

    return sorted({int(ref_id) for ref_id in ref_ids if ref_id is not None})


def resolve_one(
    ref_id: Optional[int],
    fetch: Callable[[int], S],
    *,
    peer: str,
) -> Outcome[Optional[S]]:
    if ref_id is None:
        return Outcome(None)

    try:
        summary = fetch(ref_id)
    except PeerNotFoundError:
        logger.warning("No %s found for id %s; returning record without it", peer, ref_id)
        return Outcome(None)
    except PeerRequestError as exc:
        logger.error("Failed to fetch %s details for id %s: %s", peer, ref_id, exc)
        failure = SoftFailure(
            kind=SoftFailureKind.PEER_ENRICHMENT_UNAVAILABLE,
            peer=peer,
            ids=(ref_id,),
            reason=str(exc),
        )
        return Outcome(None, [failure])

    return Outcome(summary)


def resolve_many(
    ref_ids: Iterable[Optional[int]],
    fetch_many: Callable[[Sequence[int]], Sequence[S]],
    *,
    key: Callable[[S], int],
    peer: str,
) -> Outcome[Dict[int, S]]:
    """Fetch summaries for every distinct reference in one call and index them by id."""

    wanted = distinct_ids(ref_ids)
    if not wanted:
        logger.debug("No %s ids to resolve", peer)
        return Outcome({})

    try:
        logger.debug("Fetching %s details for ids: %s", peer, wanted)
        summaries = fetch_many(wanted)
    except PeerRequestError as exc:
        logger.error("Failed to fetch %s details for ids %s: %s", peer, wanted, exc)
        failure = SoftFailure(
            kind=SoftFailureKind.PEER_ENRICHMENT_UNAVAILABLE,
            peer=peer,
            ids=tuple(wanted),
            reason=str(exc),
        )
        return Outcome({}, [failure])

    lookup = {key(summary): summary for summary in summaries}
    missing = [ref_id for ref_id in wanted if ref_id not in lookup]
    if missing:
        logger.warning("Could not find %s details for ids: %s", peer, missing)
    logger.debug("Resolved %d of %d requested %s ids", len(wanted) - len(missing), len(wanted), peer)
    return Outcome(lookup)


__all__ = ["distinct_ids", "resolve_many", "resolve_one"]
