"""
Pagination cursors and per-session search state.

A cursor is an opaque, URL-safe token carrying the sort it was produced
under, a signature of the filter set, and the sort value and key of the last
row returned. A cursor presented with a different sort or filter set is
ignored and the search starts again from the beginning.
"""

from __future__ import annotations

import base64
import binascii
import hashlib
import json
import logging
from dataclasses import asdict, dataclass
from typing import Any, Dict, Iterable, List, Optional, Tuple

from backoffice.database.interfaces import KEY_FIELD, OrderBy, Predicate, Snapshot
from backoffice.database.query_eval import with_key_tiebreak
from backoffice.search.query_composer import ComposedQuery, SortSpec

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CursorState:
    sort_field: str
    direction: str
    filter_signature: str
    last_value: Any
    last_key: str


def filter_signature(predicates: Iterable[Predicate]) -> str:
    """Order-independent fingerprint of a predicate set."""
    canonical = sorted(
        json.dumps([p.field, p.op, p.value], sort_keys=True, default=str) for p in predicates
    )
    return hashlib.sha1("\n".join(canonical).encode("utf-8")).hexdigest()[:16]


def encode_cursor(state: CursorState) -> str:
    raw = json.dumps(asdict(state), separators=(",", ":"), default=str).encode("utf-8")
    return base64.urlsafe_b64encode(raw).decode("ascii").rstrip("=")


def decode_cursor(token: str) -> Optional[CursorState]:
    try:
        padded = token + "=" * (-len(token) % 4)
        data = json.loads(base64.urlsafe_b64decode(padded.encode("ascii")))
        return CursorState(**data)
    except (binascii.Error, ValueError, TypeError, UnicodeError):
        logger.warning("Ignoring malformed search cursor")
        return None


def sort_ordering(sort: SortSpec) -> List[OrderBy]:
    return with_key_tiebreak([OrderBy(sort.field, sort.direction)])


def position_from_state(state: CursorState, sort: SortSpec) -> Tuple[Any, ...]:
    """Resume position with one value per entry in the sort's ordering."""
    return tuple(
        state.last_key if o.field == KEY_FIELD else state.last_value for o in sort_ordering(sort)
    )


@dataclass
class SearchPage:
    rows: List[Snapshot]
    cursor: Optional[str]
    has_more: bool


class CursorManager:
    """
    Issues and checks cursors, and remembers the last page of each search
    session in a cache (in-memory or Redis) so callers can "load more" with
    just a session id.
    """

    def __init__(self, cache: Any = None, session_ttl: Optional[int] = None) -> None:
        self._cache = cache
        self._session_ttl = session_ttl

    def issue(self, composed: ComposedQuery, last_row: Snapshot) -> str:
        state = CursorState(
            sort_field=composed.sort.field,
            direction=composed.sort.direction,
            filter_signature=filter_signature(composed.predicates),
            last_value=last_row.get(composed.sort.field),
            last_key=last_row.key,
        )
        return encode_cursor(state)

    def resume_position(self, token: Optional[str], composed: ComposedQuery) -> Optional[Tuple[Any, ...]]:
        """Position to resume after, or None to start from the beginning."""
        if not token:
            return None
        state = decode_cursor(token)
        if state is None:
            return None
        if state.sort_field != composed.sort.field or state.direction != composed.sort.direction:
            logger.info(
                "Cursor was issued for sort %s %s; restarting search sorted by %s %s",
                state.sort_field,
                state.direction,
                composed.sort.field,
                composed.sort.direction,
            )
            return None
        if state.filter_signature != filter_signature(composed.predicates):
            logger.info("Cursor was issued for a different filter set; restarting search")
            return None
        return position_from_state(state, composed.sort)

    # ------------------------------------------------------------------ #
    # Session state
    # ------------------------------------------------------------------ #
    def remember(self, session_id: str, page: SearchPage, sort: SortSpec) -> None:
        if self._cache is None or not session_id:
            return
        payload: Dict[str, Any] = {
            "cursor": page.cursor,
            "has_more": page.has_more,
            "sort": {"field": sort.field, "direction": sort.direction},
        }
        self._cache.set_session(session_id, payload, ttl=self._session_ttl)

    def recall(self, session_id: str) -> Optional[Dict[str, Any]]:
        if self._cache is None or not session_id:
            return None
        return self._cache.get_session(session_id)

    def session_cursor(self, session_id: str) -> Optional[str]:
        state = self.recall(session_id)
        return state.get("cursor") if state else None

    def forget(self, session_id: str) -> None:
        if self._cache is not None and session_id:
            self._cache.delete_session(session_id)
