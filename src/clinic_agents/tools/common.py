"""Small helpers shared by the tool modules."""

from __future__ import annotations

from typing import Any


def date_only(value: Any) -> str | None:
    """Trim an ISO-8601 timestamp ("2024-03-01T00:00:00Z") to its date part."""
    if not value:
        return None
    return str(value).split("T")[0]


def bounded_limit(value: Any, default: int, maximum: int) -> int:
    """Coerce a model-supplied limit to an int within [1, maximum].

    Models send numbers as ints, floats or strings; anything unparseable
    falls back to the default.
    """
    try:
        limit = int(float(value)) if value is not None else default
    except (TypeError, ValueError):
        limit = default
    return max(1, min(limit, maximum))


def as_number(value: Any) -> float:
    """Money and counts come back from the API as numbers or decimal strings."""
    try:
        return float(value) if value is not None else 0.0
    except (TypeError, ValueError):
        return 0.0


def clean(value: Any) -> str | None:
    """Strip a string argument; blank or missing becomes None."""
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def person_name(record: dict[str, Any] | None) -> str:
    """Display name for a provider or patient record.

    Organizations carry orgName; individuals carry first/last names.
    """
    if not record:
        return ""
    if record.get("orgName"):
        return str(record["orgName"])
    return f"{record.get('firstName') or ''} {record.get('lastName') or ''}".strip()
