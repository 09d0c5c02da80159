"""Schema fragments and argument helpers shared by the tool families."""

from datetime import date
from typing import Any

from agentdesk.mcp_server.results import ValidationError

DEFAULT_LIMIT = 50
MAX_LIMIT = 100

PAGINATION_PROPERTIES: dict[str, Any] = {
    "limit": {"type": "integer", "minimum": 1, "maximum": MAX_LIMIT, "description": "Max results"},
    "offset": {"type": "integer", "minimum": 0, "description": "Results to skip"},
}

DATE_RANGE_PROPERTIES: dict[str, Any] = {
    "start_date": {"type": "string", "description": "Start date (YYYY-MM-DD)"},
    "end_date": {"type": "string", "description": "End date (YYYY-MM-DD)"},
}


def id_property(description: str) -> dict[str, Any]:
    return {"type": "string", "description": description}


def nullable(prop: dict[str, Any]) -> dict[str, Any]:
    """``prop`` also accepting ``null``, which clears the field on update."""
    return {**prop, "type": [prop["type"], "null"]}


def parse_date(value: Any, field_name: str) -> date | None:
    if value is None or value == "":
        return None
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value))
    except ValueError as e:
        raise ValidationError(f"{field_name} must be a date in YYYY-MM-DD format") from e


def _integer(value: Any, field_name: str) -> int:
    try:
        return int(value)
    except (TypeError, ValueError) as e:
        raise ValidationError(f"{field_name} must be an integer") from e


def page_bounds(arguments: dict[str, Any], default_limit: int = DEFAULT_LIMIT) -> tuple[int, int]:
    """(limit, offset) clamped to ``MAX_LIMIT``."""
    limit = _integer(arguments.get("limit") or default_limit, "limit")
    offset = _integer(arguments.get("offset") or 0, "offset")
    return max(1, min(limit, MAX_LIMIT)), max(0, offset)


def date_range_label(start: date | None, end: date | None) -> dict[str, str]:
    return {
        "start": start.isoformat() if start else "all time",
        "end": end.isoformat() if end else "present",
    }
