"""Entry Repository — dated records in the owner partition, listed through GSI1.

Invariants:
    - Every entry lives at OWNER#<owner>/ENTRY#<date>#<id> and is projected
      into GSI1 as OWNER#<owner>/ENTRY_DATE#<date>#<theme>
    - A date change moves the item: old key deleted and new key written in one
      transaction, so an entry is never visible at zero or two keys
    - ThemeID is immutable after creation
    - Store exceptions are translated here; callers only see CalendarError kinds

Design Decisions:
    - get_entry has no date, so it walks the owner's index partition with an
      EntryID filter and stops at the first match: O(owner's entries)
    - Range and month queries filter ThemeID in the store, date order comes
      from the index sort key
    - Cancellation reasons name the failing op: the delete (stale or missing
      source) reads as NotFound, the put or a write conflict as ConflictError
"""

import logging
import re
from dataclasses import replace
from datetime import date, datetime, timezone
from uuid import UUID, uuid4

from axicalendar.core.entries import Entry, entry_from_item, entry_to_item
from axicalendar.core.entry_updates import InPlaceUpdate, KeyMigration, plan_entry_update
from axicalendar.core.errors import (
    AlreadyExistsError,
    ConflictError,
    ErrorContext,
    InvalidArgumentError,
    NotFoundError,
    UnavailableError,
)
from axicalendar.core.item_store import (
    CONDITIONAL_CHECK_FAILED,
    TRANSACTION_CONFLICT,
    ConditionalCheckFailedError,
    DeleteOp,
    ItemStore,
    Match,
    Precondition,
    PutOp,
    StoreError,
    TransactionCanceledError,
)
from axicalendar.core.keys import (
    entry_date_prefix,
    entry_index_pk,
    entry_index_range,
    entry_key,
    parse_entry_date,
)

logger = logging.getLogger(__name__)

YEAR_MONTH_PATTERN = re.compile(r"^\d{4}-(0[1-9]|1[0-2])$")


class EntryRepository:
    """Entry persistence over the single-table item store."""

    def __init__(self, store: ItemStore):
        self._store = store

    # ─── Reads ───────────────────────────────────────────────────

    async def get_entry(self, owner_id: UUID, entry_id: UUID) -> Entry:
        _require(owner_id, "owner_id")
        _require(entry_id, "entry_id")
        try:
            async for page in self._store.query_index_prefix(
                entry_index_pk(owner_id),
                entry_date_prefix(),
                Match("EntryID", str(entry_id)),
            ):
                if page:
                    return entry_from_item(page[0])
        except StoreError as e:
            raise UnavailableError(str(e), "get_entry") from e
        raise NotFoundError("Entry", str(entry_id))

    async def list_entries_by_date_range(
        self, owner_id: UUID, start: date, end: date, theme_id: UUID,
    ) -> list[Entry]:
        """Entries of one theme dated start..end inclusive, in date order."""
        _require(owner_id, "owner_id")
        _require(theme_id, "theme_id")
        if start is None or end is None:
            raise InvalidArgumentError("start and end dates are required", "start")
        lower, upper = entry_index_range(start, end)
        if lower > upper:
            raise InvalidArgumentError(
                f"start date {start} is after end date {end}", "start",
            )
        try:
            return [
                entry_from_item(item)
                async for page in self._store.query_index_range(
                    entry_index_pk(owner_id), lower, upper,
                    Match("ThemeID", str(theme_id)),
                )
                for item in page
            ]
        except StoreError as e:
            raise UnavailableError(str(e), "list_entries_by_date_range") from e

    async def list_entries_for_month(
        self, owner_id: UUID, theme_id: UUID, year_month: str,
    ) -> list[Entry]:
        """Entries of one theme within a YYYY-MM month, for summaries."""
        _require(owner_id, "owner_id")
        _require(theme_id, "theme_id")
        if not year_month or not YEAR_MONTH_PATTERN.match(year_month):
            raise InvalidArgumentError(
                f"year_month '{year_month}' must be YYYY-MM", "year_month",
            )
        try:
            return [
                entry_from_item(item)
                async for page in self._store.query_index_prefix(
                    entry_index_pk(owner_id),
                    entry_date_prefix(year_month),
                    Match("ThemeID", str(theme_id)),
                )
                for item in page
            ]
        except StoreError as e:
            raise UnavailableError(str(e), "list_entries_for_month") from e

    # ─── Writes ──────────────────────────────────────────────────

    async def create_entry(self, entry: Entry) -> Entry:
        """Persist a new entry. Returns it with EntryID (generated when absent) and timestamps set."""
        _require(entry.owner_id, "owner_id")
        _require(entry.theme_id, "theme_id")
        entry_date = parse_entry_date(entry.entry_date)

        now = _now()
        entry = Entry(
            owner_id=entry.owner_id,
            theme_id=entry.theme_id,
            entry_date=entry_date,
            data=dict(entry.data or {}),
            entry_id=entry.entry_id or uuid4(),
            created_at=now,
            updated_at=now,
        )
        try:
            await self._store.put(entry_to_item(entry), Precondition.MUST_NOT_EXIST)
        except ConditionalCheckFailedError as e:
            raise AlreadyExistsError("Entry", str(entry.entry_id)) from e
        except StoreError as e:
            raise UnavailableError(str(e), "create_entry") from e

        logger.info(
            f"Created entry {entry.entry_id} on {entry.entry_date}",
            extra=_log_extra(entry),
        )
        return entry

    async def update_entry(self, entry: Entry) -> None:
        """Replace data and date of a stored entry, moving it when the date changes."""
        _require(entry.owner_id, "owner_id")
        _require(entry.entry_id, "entry_id")
        entry = replace(entry, entry_date=parse_entry_date(entry.entry_date))

        existing = await self.get_entry(entry.owner_id, entry.entry_id)
        plan = plan_entry_update(existing, entry, _now())

        if isinstance(plan, InPlaceUpdate):
            await self._update_in_place(plan, entry)
        elif isinstance(plan, KeyMigration):
            await self._migrate_key(plan, entry)
        logger.info(f"Updated entry {entry.entry_id}", extra=_log_extra(entry))

    async def delete_entry(self, owner_id: UUID, entry_id: UUID, entry_date: date) -> None:
        key = entry_key(owner_id, entry_date, entry_id)
        try:
            await self._store.delete(key, Precondition.MUST_EXIST)
        except ConditionalCheckFailedError as e:
            raise NotFoundError("Entry", str(entry_id)) from e
        except StoreError as e:
            raise UnavailableError(str(e), "delete_entry") from e
        logger.info(
            f"Deleted entry {entry_id}",
            extra={"owner_id": str(owner_id), "entry_id": str(entry_id)},
        )

    # ─── Internals ───────────────────────────────────────────────

    async def _update_in_place(self, plan: InPlaceUpdate, entry: Entry) -> None:
        try:
            await self._store.update(plan.key, plan.attributes, Precondition.MUST_EXIST)
        except ConditionalCheckFailedError as e:
            raise NotFoundError("Entry", str(entry.entry_id)) from e
        except StoreError as e:
            raise UnavailableError(str(e), "update_entry") from e

    async def _migrate_key(self, plan: KeyMigration, entry: Entry) -> None:
        try:
            await self._store.transact([
                DeleteOp(plan.old_key, Precondition.MUST_EXIST),
                PutOp(plan.new_item, Precondition.MUST_NOT_EXIST),
            ])
        except TransactionCanceledError as e:
            raise _explain_cancelled_migration(e, entry) from e
        except StoreError as e:
            raise UnavailableError(str(e), "update_entry") from e


def _explain_cancelled_migration(error: TransactionCanceledError, entry: Entry) -> Exception:
    reasons = error.reasons + [None] * (2 - len(error.reasons))
    logger.warning(
        f"Date-change transaction for entry {entry.entry_id} cancelled",
        extra={**_log_extra(entry), "reasons": error.reasons},
    )
    if reasons[0] == CONDITIONAL_CHECK_FAILED:
        return NotFoundError("Entry", str(entry.entry_id))
    if reasons[1] == CONDITIONAL_CHECK_FAILED or TRANSACTION_CONFLICT in reasons:
        return ConflictError(
            f"Entry {entry.entry_id} could not move to {entry.entry_date}, retry the update",
            context=ErrorContext(
                owner_id=str(entry.owner_id), resource_type="Entry",
                resource_id=str(entry.entry_id),
            ),
        )
    return UnavailableError(str(error), "update_entry")


def _log_extra(entry: Entry) -> dict:
    return {
        "owner_id": str(entry.owner_id),
        "theme_id": str(entry.theme_id),
        "entry_id": str(entry.entry_id),
    }


def _require(value, name: str) -> None:
    if value is None or str(value).strip() == "":
        raise InvalidArgumentError(f"{name} is required", name)


def _now() -> datetime:
    return datetime.now(timezone.utc)
