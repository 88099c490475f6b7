"""Shared validation for back-office submissions.

Callers submit payloads as dictionaries. These helpers check that required
fields are present and well-formed, collecting one message per field.

On validation failure, raise `FormValidationError` so the API can return HTTP 422
with structured `field_errors`. Nothing is written when validation fails.
"""

from __future__ import annotations

from datetime import date, datetime
from typing import Any, Dict, Iterable, List, Optional

from backoffice.errors import FormValidationError
from backoffice.utils.time import to_utc_iso

# Values that mean "no filter" when they arrive from a search form.
FILTER_SENTINELS = ("", "all")


def _as_str(v: Any) -> str:
    return "" if v is None else str(v)


def _strip(v: Any) -> str:
    return _as_str(v).strip()


def add_error(errors: Dict[str, str], field: str, message: str) -> None:
    if field not in errors:
        errors[field] = message


def require_str(payload: Dict[str, Any], field: str, errors: Dict[str, str], *, label: Optional[str] = None) -> str:
    value = _strip(payload.get(field))
    if not value:
        add_error(errors, field, f"{label or field} is required")
    return value


def optional_str(payload: Dict[str, Any], field: str) -> str:
    return _strip(payload.get(field))


def parse_amount(payload: Dict[str, Any], field: str, errors: Dict[str, str], *, min_value: Optional[float] = None, exclusive_min: bool = False, required: bool = False) -> float:
    raw = payload.get(field)
    if raw is None or _strip(raw) == "":
        if required:
            add_error(errors, field, f"{field} is required")
        return 0.0
    try:
        val = float(_strip(raw))
    except ValueError:
        add_error(errors, field, f"{field} must be a number")
        return 0.0
    if min_value is not None:
        if exclusive_min and val <= min_value:
            add_error(errors, field, f"{field} must be greater than {min_value:g}")
        elif not exclusive_min and val < min_value:
            add_error(errors, field, f"{field} must be at least {min_value:g}")
    return val


def parse_int(payload: Dict[str, Any], field: str, errors: Dict[str, str], *, min_value: Optional[int] = None, required: bool = False) -> int:
    raw = payload.get(field)
    if raw is None or _strip(raw) == "":
        if required:
            add_error(errors, field, f"{field} is required")
        return 0
    try:
        val = int(_strip(raw))
    except ValueError:
        add_error(errors, field, f"{field} must be a whole number")
        return 0
    if min_value is not None and val < min_value:
        add_error(errors, field, f"{field} must be at least {min_value}")
    return val


def validate_date_iso(value: Any, errors: Dict[str, str], field: str, *, required: bool = True, not_future: bool = False) -> str:
    raw = _strip(value)
    if not raw:
        if required:
            add_error(errors, field, f"{field} is required")
        return raw
    try:
        d = date.fromisoformat(raw[:10])
    except ValueError:
        add_error(errors, field, f"{field} must be a valid date (YYYY-MM-DD)")
        return raw
    if not_future and d > date.today():
        add_error(errors, field, f"{field} cannot be in the future")
    return raw


def validate_in(value: Any, allowed: Iterable[str], errors: Dict[str, str], field: str, *, required: bool = True) -> str:
    raw = _strip(value)
    if not raw:
        if required:
            add_error(errors, field, f"{field} is required")
        return raw
    if raw not in set(allowed):
        add_error(errors, field, f"{field} has an invalid value")
    return raw


def parse_str_list(value: Any, errors: Dict[str, str], field: str) -> List[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [v.strip() for v in value.split(",") if v.strip()]
    if isinstance(value, (list, tuple)):
        return [str(v).strip() for v in value if str(v).strip()]
    add_error(errors, field, f"{field} must be a list")
    return []


def normalize_filter_value(value: Any) -> Optional[Any]:
    """None for values that must not become a filter (None, blank, "all")."""
    if value is None:
        return None
    if isinstance(value, str):
        stripped = value.strip()
        if stripped.lower() in FILTER_SENTINELS:
            return None
        return stripped
    return value


def parse_date_bound(value: Any, errors: Dict[str, str], field: str, *, end_of_day: bool = False) -> Optional[str]:
    """Turn a date or datetime filter into an ISO-8601 UTC bound.

    A bare date used as an upper bound covers the whole day.
    """
    raw = normalize_filter_value(value)
    if raw is None:
        return None
    if isinstance(raw, datetime):
        return to_utc_iso(raw)
    if isinstance(raw, date):
        raw = raw.isoformat()
    raw = str(raw)
    if len(raw) == 10:
        try:
            date.fromisoformat(raw)
        except ValueError:
            add_error(errors, field, f"{field} must be a valid date (YYYY-MM-DD)")
            return None
        return f"{raw}T23:59:59.999Z" if end_of_day else f"{raw}T00:00:00.000Z"
    try:
        parsed = datetime.fromisoformat(raw.replace("Z", "+00:00"))
    except ValueError:
        add_error(errors, field, f"{field} must be a valid ISO-8601 date or timestamp")
        return None
    return to_utc_iso(parsed)


def raise_if_errors(errors: Dict[str, str], message: str = "Please correct the highlighted fields") -> None:
    if errors:
        raise FormValidationError(field_errors=errors, message=message)
