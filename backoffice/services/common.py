"""Helpers shared by the services: write-role checks, sort and page-size
resolution, and the search result envelope."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Mapping, Optional

from backoffice.config import SearchConfig
from backoffice.database.interfaces import ASCENDING, DESCENDING
from backoffice.errors import FormValidationError, PermissionDeniedError
from backoffice.search.query_composer import SortSpec

READ_ONLY_ROLE = "View Only"


def require_write_role(role: Optional[str], action: str) -> None:
    if not role or not role.strip() or role.strip() == READ_ONLY_ROLE:
        raise PermissionDeniedError(role, action)


def resolve_sort(
    field_name: Optional[str],
    direction: Optional[str],
    allowed: Mapping[str, str],
    default: SortSpec,
) -> SortSpec:
    """Map a caller's sort request onto a stored field.

    `allowed` maps accepted names (including aliases) to stored field names.
    """
    if not field_name:
        field_name = default.field
    if field_name not in allowed:
        raise FormValidationError(
            field_errors={"sort": f"Cannot sort by '{field_name}'"},
            message="Unsupported sort field",
        )
    direction = (direction or default.direction).lower()
    if direction not in (ASCENDING, DESCENDING):
        raise FormValidationError(
            field_errors={"direction": "direction must be 'asc' or 'desc'"},
            message="Unsupported sort direction",
        )
    return SortSpec(allowed[field_name], direction)


def resolve_page_size(page_size: Optional[int], cfg: SearchConfig) -> int:
    if page_size is None:
        return cfg.default_page_size
    if page_size < 1:
        raise FormValidationError(field_errors={"pageSize": "pageSize must be at least 1"})
    return min(page_size, cfg.max_page_size)


@dataclass
class SearchResult:
    rows: List[Any] = field(default_factory=list)
    cursor: Optional[str] = None
    has_more: bool = False

    def to_dict(self, row_to_dict: Callable[[Any], Dict[str, Any]] = lambda r: r.to_dict()) -> Dict[str, Any]:
        return {
            "rows": [row_to_dict(r) for r in self.rows],
            "cursor": self.cursor,
            "hasMore": self.has_more,
        }
