"""Small helpers shared by the job store, schemas and pipeline phases."""
from __future__ import annotations

import json
from datetime import UTC, datetime
from typing import Any

_MISSING = object()


def json_parse(value: str | None, default: Any = _MISSING) -> Any:
    """Decode a stored JSON column, returning *default* on failure.

    If no default is given, returns ``{}`` on parse error.
    """
    try:
        return json.loads(value or "")
    except (json.JSONDecodeError, TypeError):
        return {} if default is _MISSING else default


def json_dump(value: Any) -> str:
    return json.dumps(value, ensure_ascii=False)


def clip(value: Any, limit: int) -> str:
    """Stringify and hard-truncate to *limit* characters."""
    text = "" if value is None else str(value).strip()
    return text[:limit]


def utcnow() -> datetime:
    return datetime.now(UTC)


def contains_needle(haystack: str, needle: str | None) -> bool:
    """Case-insensitive substring test; an empty needle never matches."""
    n = (needle or "").strip().lower()
    return bool(n) and n in (haystack or "").lower()
