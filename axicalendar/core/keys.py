"""Key Derivation — maps entity identifiers onto the single-table key scheme.

Invariants:
    - Theme metadata:  PK=THEME#<theme_id>  SK=METADATA
    - Ownership link:  PK=OWNER#<owner_id>  SK=THEME#<theme_id>
    - Entry:           PK=OWNER#<owner_id>  SK=ENTRY#<date>#<entry_id>
    - Entry index:     GSI1PK=OWNER#<owner_id>  GSI1SK=ENTRY_DATE#<date>#<theme_id>
    - THEME# and OWNER# partitions are disjoint: theme and entry keys never collide
    - Empty identifiers are rejected, never rendered into a key

Design Decisions:
    - Date before theme in GSI1SK: a date range is one contiguous index read,
      theme selection is a filter (or a prefix for exact date + theme)
    - Upper range bound gets a high sentinel so the whole end date is included
    - These strings are the on-disk format: changing them orphans stored items
"""

from datetime import date
from uuid import UUID

from axicalendar.core.domain_types import format_entry_date
from axicalendar.core.errors import InvalidArgumentError
from axicalendar.core.item_store import ItemKey

THEME_PREFIX = "THEME#"
OWNER_PREFIX = "OWNER#"
ENTRY_PREFIX = "ENTRY#"
ENTRY_DATE_PREFIX = "ENTRY_DATE#"
THEME_METADATA_SK = "METADATA"

RANGE_SENTINEL = "\uffff"


def _identifier(value: UUID | str | None, name: str) -> str:
    if value is None:
        raise InvalidArgumentError(f"{name} is required", name)
    rendered = str(value).strip()
    if not rendered:
        raise InvalidArgumentError(f"{name} is required", name)
    return rendered


def render_entry_date(value: date | str | None) -> str:
    """YYYY-MM-DD for a date, datetime, or ISO date string. Raises InvalidArgumentError."""
    if value is None or value == "":
        raise InvalidArgumentError("entry_date is required", "entry_date")
    try:
        return format_entry_date(value)
    except (ValueError, TypeError) as e:
        raise InvalidArgumentError(
            f"entry_date '{value}' is not a YYYY-MM-DD date", "entry_date",
        ) from e


def parse_entry_date(value: date | str | None) -> date:
    """Normalize any accepted entry date input to a plain date (time of day dropped)."""
    return date.fromisoformat(render_entry_date(value))


# ─── Theme keys ──────────────────────────────────────────────────

def theme_pk(theme_id: UUID | str) -> str:
    return THEME_PREFIX + _identifier(theme_id, "theme_id")


def theme_metadata_key(theme_id: UUID | str) -> ItemKey:
    return ItemKey(pk=theme_pk(theme_id), sk=THEME_METADATA_SK)


def owner_pk(owner_id: UUID | str) -> str:
    return OWNER_PREFIX + _identifier(owner_id, "owner_id")


def theme_link_sk(theme_id: UUID | str) -> str:
    return THEME_PREFIX + _identifier(theme_id, "theme_id")


def theme_link_key(owner_id: UUID | str, theme_id: UUID | str) -> ItemKey:
    return ItemKey(pk=owner_pk(owner_id), sk=theme_link_sk(theme_id))


# ─── Entry keys ──────────────────────────────────────────────────

def entry_sk(entry_date: date | str, entry_id: UUID | str) -> str:
    return f"{ENTRY_PREFIX}{render_entry_date(entry_date)}#{_identifier(entry_id, 'entry_id')}"


def entry_key(
    owner_id: UUID | str, entry_date: date | str, entry_id: UUID | str,
) -> ItemKey:
    return ItemKey(pk=owner_pk(owner_id), sk=entry_sk(entry_date, entry_id))


def entry_index_pk(owner_id: UUID | str) -> str:
    """Index partition is the owner partition."""
    return owner_pk(owner_id)


def entry_date_prefix(fragment: str = "") -> str:
    """ENTRY_DATE#<fragment> — fragment may be empty, YYYY-MM, or YYYY-MM-DD."""
    return ENTRY_DATE_PREFIX + fragment


def entry_index_sk(entry_date: date | str, theme_id: UUID | str) -> str:
    return f"{entry_date_prefix(render_entry_date(entry_date))}#{_identifier(theme_id, 'theme_id')}"


def entry_index_range(start: date | str, end: date | str) -> tuple[str, str]:
    """Inclusive GSI1SK bounds covering every entry dated start..end."""
    lower = entry_date_prefix(render_entry_date(start))
    upper = entry_date_prefix(render_entry_date(end)) + RANGE_SENTINEL
    return lower, upper
