"""Entry Update Planning — verifies the in-place vs key-migration decision.

Tests:
    - Same date → InPlaceUpdate on the existing key with the four mutable attributes
    - New date → KeyMigration with the full item under the new key
    - CreatedAt is preserved from the stored entry
    - ThemeID is immutable; a missing ThemeID inherits the stored one
"""

from dataclasses import replace
from datetime import date, datetime, timezone
from uuid import uuid4

import pytest

from axicalendar.core.entries import Entry
from axicalendar.core.entry_updates import InPlaceUpdate, KeyMigration, plan_entry_update
from axicalendar.core.errors import InvalidArgumentError
from axicalendar.core.keys import entry_key

CREATED = datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)
NOW = datetime(2024, 1, 20, 8, 0, tzinfo=timezone.utc)


@pytest.fixture
def existing() -> Entry:
    return Entry(
        owner_id=uuid4(), theme_id=uuid4(), entry_date=date(2024, 1, 10),
        data={"title": "old"}, entry_id=uuid4(), created_at=CREATED, updated_at=CREATED,
    )


def test_same_date_updates_in_place(existing):
    updated = replace(existing, data={"title": "new"})
    plan = plan_entry_update(existing, updated, NOW)

    assert isinstance(plan, InPlaceUpdate)
    assert plan.key == entry_key(existing.owner_id, existing.entry_date, existing.entry_id)
    assert plan.attributes == {
        "Data": {"title": "new"},
        "EntryDate": "2024-01-10",
        "UpdatedAt": NOW.isoformat(),
        "GSI1SK": f"ENTRY_DATE#2024-01-10#{existing.theme_id}",
    }


def test_new_date_migrates_key(existing):
    updated = replace(existing, entry_date=date(2024, 2, 3), data={"title": "moved"})
    plan = plan_entry_update(existing, updated, NOW)

    assert isinstance(plan, KeyMigration)
    assert plan.old_key == entry_key(existing.owner_id, date(2024, 1, 10), existing.entry_id)
    item = plan.new_item
    assert item["SK"] == f"ENTRY#2024-02-03#{existing.entry_id}"
    assert item["GSI1SK"] == f"ENTRY_DATE#2024-02-03#{existing.theme_id}"
    assert item["Data"] == {"title": "moved"}
    assert item["UpdatedAt"] == NOW.isoformat()


def test_migration_preserves_created_at(existing):
    updated = replace(existing, entry_date=date(2024, 2, 3), created_at=NOW)
    plan = plan_entry_update(existing, updated, NOW)
    assert plan.new_item["CreatedAt"] == CREATED.isoformat()


def test_theme_change_rejected(existing):
    updated = replace(existing, theme_id=uuid4())
    with pytest.raises(InvalidArgumentError) as exc:
        plan_entry_update(existing, updated, NOW)
    assert exc.value.field == "theme_id"


def test_missing_theme_inherits_stored(existing):
    updated = replace(existing, theme_id=None, entry_date=date(2024, 3, 1))
    plan = plan_entry_update(existing, updated, NOW)
    assert plan.new_item["ThemeID"] == str(existing.theme_id)


@pytest.mark.parametrize("same_day", [datetime(2024, 1, 10, 18, 45), "2024-01-10"])
def test_same_day_as_datetime_or_string_updates_in_place(existing, same_day):
    updated = replace(existing, entry_date=same_day, data={"title": "new"})
    plan = plan_entry_update(existing, updated, NOW)

    assert isinstance(plan, InPlaceUpdate)
    assert plan.attributes["EntryDate"] == "2024-01-10"
    assert plan.attributes["GSI1SK"] == f"ENTRY_DATE#2024-01-10#{existing.theme_id}"


def test_string_date_change_migrates_with_plain_date(existing):
    updated = replace(existing, entry_date="2024-02-03")
    plan = plan_entry_update(existing, updated, NOW)

    assert isinstance(plan, KeyMigration)
    assert plan.new_item["EntryDate"] == "2024-02-03"
    assert plan.new_item["SK"] == f"ENTRY#2024-02-03#{existing.entry_id}"


def test_unparseable_date_rejected(existing):
    with pytest.raises(InvalidArgumentError) as exc:
        plan_entry_update(existing, replace(existing, entry_date="2024-13-40"), NOW)
    assert exc.value.field == "entry_date"
