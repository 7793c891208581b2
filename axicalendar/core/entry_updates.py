"""Entry Update Planning — decides between an in-place update and a key migration.

Invariants:
    - EntryDate is embedded in the sort key, so a date change moves the item
    - InPlaceUpdate touches only Data, EntryDate, UpdatedAt and GSI1SK of the
      existing key
    - KeyMigration carries the complete new item; CreatedAt comes from the
      stored record, never from the caller
    - ThemeID is immutable: a differing ThemeID is rejected before any write

Design Decisions:
    - Tagged variant instead of branching inside the repository: each path's
      invariants are tested here without a store
    - Pure function of (existing, updated, now): the clock is injected
"""

from dataclasses import dataclass, replace
from datetime import datetime
from typing import Union

from axicalendar.core.entries import Entry, entry_to_item
from axicalendar.core.errors import InvalidArgumentError
from axicalendar.core.item_store import Item, ItemKey, GSI1SK
from axicalendar.core.keys import entry_index_sk, entry_key, parse_entry_date


@dataclass(frozen=True)
class InPlaceUpdate:
    """Same date: conditional update of the existing item."""
    key: ItemKey
    attributes: Item


@dataclass(frozen=True)
class KeyMigration:
    """New date: delete old_key and put new_item atomically."""
    old_key: ItemKey
    new_item: Item


EntryUpdatePlan = Union[InPlaceUpdate, KeyMigration]


def plan_entry_update(existing: Entry, updated: Entry, now: datetime) -> EntryUpdatePlan:
    """Build the write plan that turns the stored entry into the updated one."""
    theme_id = updated.theme_id or existing.theme_id
    if theme_id != existing.theme_id:
        raise InvalidArgumentError(
            "theme_id cannot be changed after creation", "theme_id",
        )

    new_date = parse_entry_date(updated.entry_date)
    if new_date == parse_entry_date(existing.entry_date):
        return InPlaceUpdate(
            key=entry_key(existing.owner_id, existing.entry_date, existing.entry_id),
            attributes={
                "Data": dict(updated.data),
                "EntryDate": new_date.isoformat(),
                "UpdatedAt": now.isoformat(),
                GSI1SK: entry_index_sk(new_date, theme_id),
            },
        )

    migrated = replace(
        existing,
        entry_date=new_date,
        data=dict(updated.data),
        created_at=existing.created_at or now,
        updated_at=now,
    )
    return KeyMigration(
        old_key=entry_key(existing.owner_id, existing.entry_date, existing.entry_id),
        new_item=entry_to_item(migrated),
    )
