"""Entries — dated records whose data conforms to a theme's field schema.

Invariants:
    - Data keys are a subset of the theme's field names
    - Required fields are present, non-null, and non-empty for text-like types
    - ThemeID never changes after creation; EntryDate and Data may
    - An entry item carries both its primary key and its GSI1 projection

Design Decisions:
    - Entry date kept as datetime.date in memory, YYYY-MM-DD on disk: the key
      scheme sorts lexically, ISO dates sort the same way
    - validate_entry_data is a pure function the use-case layer calls before
      persisting; repositories trust their input
"""

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any
from uuid import UUID

from axicalendar.core.domain_types import FieldType, TEXT_LIKE_TYPES
from axicalendar.core.errors import InvalidArgumentError
from axicalendar.core.item_store import Item, PK, SK, GSI1PK, GSI1SK
from axicalendar.core.keys import entry_index_pk, entry_index_sk, entry_key, render_entry_date
from axicalendar.core.themes import ThemeField


@dataclass
class Entry:
    """Calendar entry — item under OWNER#<owner>/ENTRY#<date>#<id>."""
    owner_id: UUID
    theme_id: UUID
    entry_date: date
    data: dict[str, Any] = field(default_factory=dict)
    entry_id: UUID | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


def entry_to_item(entry: Entry) -> Item:
    """Full item for an entry. entry_id and timestamps must be set."""
    key = entry_key(entry.owner_id, entry.entry_date, entry.entry_id)
    return {
        PK: key.pk,
        SK: key.sk,
        GSI1PK: entry_index_pk(entry.owner_id),
        GSI1SK: entry_index_sk(entry.entry_date, entry.theme_id),
        "EntryID": str(entry.entry_id),
        "ThemeID": str(entry.theme_id),
        "OwnerID": str(entry.owner_id),
        "EntryDate": render_entry_date(entry.entry_date),
        "Data": dict(entry.data),
        "CreatedAt": entry.created_at.isoformat(),
        "UpdatedAt": entry.updated_at.isoformat(),
    }


def entry_from_item(item: Item) -> Entry:
    return Entry(
        entry_id=UUID(item["EntryID"]),
        theme_id=UUID(item["ThemeID"]),
        owner_id=UUID(item["OwnerID"]),
        entry_date=date.fromisoformat(item["EntryDate"]),
        data=dict(item.get("Data") or {}),
        created_at=datetime.fromisoformat(item["CreatedAt"]) if item.get("CreatedAt") else None,
        updated_at=datetime.fromisoformat(item["UpdatedAt"]) if item.get("UpdatedAt") else None,
    )


# ─── Data validation ─────────────────────────────────────────────

def validate_entry_data(data: dict[str, Any], fields: list[ThemeField]) -> None:
    """Check entry data against a theme's fields. Raises InvalidArgumentError."""
    defined = {f.name: f for f in fields}

    for f in fields:
        if not f.required:
            continue
        if f.name not in data:
            raise InvalidArgumentError(f"required field '{f.name}' is missing", f.name)
        value = data[f.name]
        if value is None:
            raise InvalidArgumentError(f"required field '{f.name}' cannot be null", f.name)
        if FieldType(f.type) in TEXT_LIKE_TYPES and (not isinstance(value, str) or value == ""):
            raise InvalidArgumentError(f"required field '{f.name}' cannot be empty", f.name)

    for name, value in data.items():
        if name not in defined:
            raise InvalidArgumentError(f"field '{name}' is not defined in the theme", name)
        if value is None:
            continue
        _check_value_type(name, FieldType(defined[name].type), value)


def _check_value_type(name: str, field_type: FieldType, value: Any) -> None:
    if field_type in TEXT_LIKE_TYPES:
        if not isinstance(value, str):
            raise InvalidArgumentError(
                f"field '{name}' expects a string, got {type(value).__name__}", name,
            )
    elif field_type == FieldType.NUMBER:
        # bool is an int subclass
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise InvalidArgumentError(
                f"field '{name}' expects a number, got {type(value).__name__}", name,
            )
    elif field_type == FieldType.BOOLEAN:
        if not isinstance(value, bool):
            raise InvalidArgumentError(
                f"field '{name}' expects a boolean, got {type(value).__name__}", name,
            )
    elif field_type == FieldType.DATE:
        if not isinstance(value, str):
            raise InvalidArgumentError(
                f"field '{name}' expects a date string (YYYY-MM-DD)", name,
            )
        try:
            date.fromisoformat(value)
        except ValueError as e:
            raise InvalidArgumentError(
                f"field '{name}' has invalid date format, expected YYYY-MM-DD", name,
            ) from e
    elif field_type == FieldType.DATETIME:
        if not isinstance(value, str):
            raise InvalidArgumentError(
                f"field '{name}' expects a datetime string (RFC 3339)", name,
            )
        try:
            parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError as e:
            raise InvalidArgumentError(
                f"field '{name}' has invalid datetime format, expected RFC 3339", name,
            ) from e
        if parsed.tzinfo is None:
            raise InvalidArgumentError(
                f"field '{name}' datetime must carry a UTC offset", name,
            )
