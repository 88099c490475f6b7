"""
Paged execution of composed queries.

With store ordering, successive store pages are fetched after the resume
position and filtered in memory until the page is full or the store runs
out. Without it, every matching row is fetched, sorted in memory and paged
with the same cursor format. Either way the cursor points at the last row
*returned*, so consecutive pages concatenate to the unpaginated result.
"""

from __future__ import annotations

import logging
from typing import Any, List, Optional, Tuple

from backoffice.database.interfaces import KEY_FIELD, DocumentStore, Snapshot
from backoffice.database.query_eval import compare_positions, matches_all, position_of, sort_snapshots
from backoffice.search.cursor import CursorManager, SearchPage, sort_ordering
from backoffice.search.query_composer import ComposedQuery

logger = logging.getLogger(__name__)


class PagedExecutor:
    def __init__(self, store: DocumentStore, cursors: CursorManager, scan_batch_size: int = 100) -> None:
        self.store = store
        self.cursors = cursors
        self.scan_batch_size = scan_batch_size

    async def run(
        self,
        composed: ComposedQuery,
        page_size: int,
        cursor: Optional[str] = None,
        session_id: Optional[str] = None,
        load_more: bool = False,
    ) -> SearchPage:
        """Fetch one page.

        With `load_more`, a caller that has no cursor at hand continues from the
        last page remembered for `session_id`. Every page produced under a
        session id is remembered for the next "load more".
        """
        if page_size < 1:
            raise ValueError("page_size must be at least 1")
        if cursor is None and load_more and session_id:
            cursor = self.cursors.session_cursor(session_id)
        anchor = self.cursors.resume_position(cursor, composed)
        if composed.store_ordered:
            rows = await self._store_ordered_page(composed, page_size, anchor)
        else:
            rows = await self._memory_sorted_page(composed, page_size, anchor)

        if rows:
            next_cursor = self.cursors.issue(composed, rows[-1])
        else:
            # Exhausted: keep pointing past the end rather than back at the start.
            next_cursor = cursor if anchor is not None else None
        page = SearchPage(rows=rows, cursor=next_cursor, has_more=len(rows) == page_size)
        if session_id:
            self.cursors.remember(session_id, page, composed.sort)
        return page

    async def _store_ordered_page(
        self, composed: ComposedQuery, page_size: int, anchor: Optional[Tuple[Any, ...]]
    ) -> List[Snapshot]:
        ordering = sort_ordering(composed.sort)
        # Without in-memory predicates every fetched row is returned, so one
        # store page of exactly `page_size` is enough.
        batch = page_size if not composed.memory_predicates else max(page_size, self.scan_batch_size)
        rows: List[Snapshot] = []
        fetches = 0

        while len(rows) < page_size:
            fetched = await self.store.query(composed.store_query(start_after=anchor, limit=batch))
            fetches += 1
            for snap in fetched:
                anchor = position_of(snap, ordering)
                if matches_all(snap, composed.memory_predicates):
                    rows.append(snap)
                    if len(rows) == page_size:
                        break
            if len(fetched) < batch:
                break

        if fetches > 1:
            logger.debug("Filled %s page of %d rows in %d store fetches", composed.collection, len(rows), fetches)
        return rows

    async def _memory_sorted_page(
        self, composed: ComposedQuery, page_size: int, anchor: Optional[Tuple[Any, ...]]
    ) -> List[Snapshot]:
        ordering = sort_ordering(composed.sort)
        fetched = await self.store.query(composed.store_query())
        candidates = [
            s
            for s in fetched
            if matches_all(s, composed.memory_predicates)
            and (composed.sort.field == KEY_FIELD or composed.sort.field in s.data)
        ]
        candidates = sort_snapshots(candidates, ordering)
        if anchor is not None:
            candidates = [s for s in candidates if compare_positions(position_of(s, ordering), anchor, ordering) > 0]
        logger.debug(
            "Sorted %d %s rows in memory by %s", len(candidates), composed.collection, composed.sort.field
        )
        return candidates[:page_size]
