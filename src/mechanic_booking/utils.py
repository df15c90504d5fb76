"""Utility helpers for parsing and formatting booking values."""

from __future__ import annotations

import math
import re
import uuid
from datetime import datetime, timezone
from typing import Any, Iterable, List, Optional

import structlog
from dateutil import parser as date_parser

LOGGER = structlog.get_logger(__name__)

POSTCODE_PATTERN = re.compile(
    r"(GIR ?0AA)"
    r"|((([A-Z][0-9]{1,2})|(([A-Z][A-HJ-Y][0-9]{1,2})|(([A-Z][0-9][A-Z])|([A-Z][A-HJ-Y][0-9][A-Z]?))))"
    r"\s?[0-9][A-Z]{2})",
    re.IGNORECASE,
)


def now_iso() -> str:
    """Current UTC timestamp in ISO-8601 form."""
    return datetime.now(tz=timezone.utc).isoformat()


def new_temporary_id(prefix: str) -> str:
    return f"{prefix}{uuid.uuid4().hex}"


def to_float(value: Any, default: float = 0.0) -> float:
    """Best-effort float coercion; non-finite and unparseable values give ``default``."""
    if value is None or value == "" or isinstance(value, bool):
        return default
    try:
        result = float(value)
    except (TypeError, ValueError):
        return default
    if not math.isfinite(result):
        return default
    return result


def to_int(value: Any, default: int = 0) -> int:
    """Best-effort integer coercion, truncating floats like ``parseInt``."""
    number = to_float(value, float(default))
    return int(number)


def to_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return str(value)
    return ""


def normalise_whitespace(text: str) -> str:
    """Collapse repeated whitespace into single spaces."""
    return re.sub(r"\s+", " ", text or "").strip()


def split_dates(text: str) -> List[str]:
    """Split a comma-delimited date list, trimming each entry and dropping blanks."""
    return [piece.strip() for piece in (text or "").split(",") if piece.strip()]


def is_valid_postcode(code: str) -> bool:
    """Whether ``code`` has the shape of a UK postcode."""
    return bool(POSTCODE_PATTERN.fullmatch((code or "").strip()))


def format_date(value: str) -> str:
    """Render a date as ``DD-MM-YYYY``; empty string when unparseable."""
    if not value:
        return ""
    try:
        parsed = date_parser.parse(value)
    except (ValueError, OverflowError) as exc:
        LOGGER.debug("format_date.unparseable", value=value, error=str(exc))
        return ""
    return parsed.strftime("%d-%m-%Y")


def format_duration(minutes: int) -> str:
    """Format a duration as hours and minutes."""
    minutes = max(0, int(minutes))
    if minutes < 60:
        return f"{minutes} min"
    hours, remaining = divmod(minutes, 60)
    if remaining:
        return f"{hours} hr {remaining} min"
    return f"{hours} hr"


def first_non_empty(values: Iterable[Optional[str]]) -> Optional[str]:
    """Return the first non-empty string from an iterable."""
    for value in values:
        if value:
            stripped = value.strip()
            if stripped:
                return stripped
    return None
