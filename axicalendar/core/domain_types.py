"""Domain Types — rich types that replace bare primitives across the codebase.

Invariants:
    - EntryDate values are calendar dates rendered as YYYY-MM-DD in keys
    - All valid field types encoded as an Enum — no raw string matching

Design Decisions:
    - str Enums: serialize into item attributes without custom encoders
"""

from datetime import date, datetime
from enum import Enum


# ─── Enums ───────────────────────────────────────────────────────

class FieldType(str, Enum):
    """Data type of a theme field — drives entry data validation."""
    TEXT = "text"
    DATE = "date"
    DATETIME = "datetime"
    NUMBER = "number"
    BOOLEAN = "boolean"
    TEXTAREA = "textarea"
    SELECT = "select"


# Field types whose required values must be non-empty strings
TEXT_LIKE_TYPES = frozenset({FieldType.TEXT, FieldType.TEXTAREA, FieldType.SELECT})


def format_entry_date(value: date | str) -> str:
    """Render an entry date as YYYY-MM-DD (strings pass through after parsing)."""
    if isinstance(value, str):
        return date.fromisoformat(value).isoformat()
    if isinstance(value, datetime):
        return value.date().isoformat()
    if isinstance(value, date):
        return value.isoformat()
    raise TypeError(f"expected a date or YYYY-MM-DD string, got {type(value).__name__}")
