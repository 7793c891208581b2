"""Themes — verifies validation rules and the persisted item layout.

Tests:
    - Field names, labels, types and uniqueness are enforced
    - Unknown features are tolerated with a warning, duplicates rejected
    - theme_to_item/theme_from_item preserve every attribute
    - Default themes omit OwnerID; visibility follows ownership
"""

import logging
from datetime import datetime, timezone
from uuid import uuid4

import pytest

from axicalendar.core.domain_types import FieldType
from axicalendar.core.errors import InvalidArgumentError
from axicalendar.core.themes import (
    Theme,
    ThemeField,
    ThemeOwnershipLink,
    link_to_item,
    theme_from_item,
    theme_to_item,
    validate_supported_features,
    validate_theme,
    validate_theme_fields,
)

NOW = datetime(2024, 1, 15, 9, 30, tzinfo=timezone.utc)


def _field(name="mood", label="Mood", type=FieldType.TEXT, required=False):
    return ThemeField(name=name, label=label, type=type, required=required)


def _theme(**overrides) -> Theme:
    values = dict(
        theme_name="Journal",
        fields=[_field(), _field("hours", "Hours", FieldType.NUMBER, True)],
        theme_id=uuid4(),
        owner_id=uuid4(),
        supported_features=["monthly_summary"],
        created_at=NOW,
        updated_at=NOW,
    )
    values.update(overrides)
    return Theme(**values)


def test_valid_theme_passes():
    validate_theme(_theme())


def test_blank_theme_name_rejected():
    with pytest.raises(InvalidArgumentError) as exc:
        validate_theme(_theme(theme_name="  "))
    assert exc.value.field == "theme_name"


def test_theme_needs_at_least_one_field():
    with pytest.raises(InvalidArgumentError):
        validate_theme_fields([])


@pytest.mark.parametrize("name", ["Mood", "1st", "my-field", "has space", ""])
def test_field_name_pattern_enforced(name):
    with pytest.raises(InvalidArgumentError):
        validate_theme_fields([_field(name=name)])


@pytest.mark.parametrize("name", ["mood", "_private", "field_2"])
def test_field_name_pattern_accepts(name):
    validate_theme_fields([_field(name=name)])


def test_duplicate_field_names_rejected():
    with pytest.raises(InvalidArgumentError, match="duplicated"):
        validate_theme_fields([_field(), _field()])


def test_missing_label_rejected():
    with pytest.raises(InvalidArgumentError):
        validate_theme_fields([_field(label="")])


def test_invalid_field_type_rejected():
    with pytest.raises(InvalidArgumentError, match="invalid type"):
        validate_theme_fields([_field(type="color")])


def test_unknown_feature_logged_not_rejected(caplog):
    with caplog.at_level(logging.WARNING, logger="axicalendar.core.themes"):
        validate_supported_features(["monthly_summary", "weather_overlay"])
    assert "weather_overlay" in caplog.text


def test_duplicate_feature_rejected():
    with pytest.raises(InvalidArgumentError):
        validate_supported_features(["SumAll", "SumAll"])


def test_empty_feature_rejected():
    with pytest.raises(InvalidArgumentError):
        validate_supported_features([""])


def test_theme_item_round_trip():
    theme = _theme()
    item = theme_to_item(theme)
    assert item["PK"] == f"THEME#{theme.theme_id}"
    assert item["SK"] == "METADATA"
    assert item["OwnerID"] == str(theme.owner_id)
    assert item["Fields"][1] == {
        "Name": "hours", "Label": "Hours", "Type": "number", "Required": True,
    }
    assert theme_from_item(item) == theme


def test_default_theme_item_has_no_owner():
    theme = _theme(owner_id=None, is_default=True)
    item = theme_to_item(theme)
    assert "OwnerID" not in item
    assert item["IsDefault"] is True
    assert theme_from_item(item).owner_id is None


def test_visibility():
    owner, stranger = uuid4(), uuid4()
    assert _theme(owner_id=owner).is_visible_to(owner)
    assert not _theme(owner_id=owner).is_visible_to(stranger)
    assert _theme(owner_id=None, is_default=True).is_visible_to(stranger)


def test_link_item_layout():
    link = ThemeOwnershipLink(
        owner_id=uuid4(), theme_id=uuid4(), theme_name="Journal", created_at=NOW,
    )
    item = link_to_item(link)
    assert item["PK"] == f"OWNER#{link.owner_id}"
    assert item["SK"] == f"THEME#{link.theme_id}"
    assert item["OwnerID"] == str(link.owner_id)
    assert item["ThemeID"] == str(link.theme_id)
    assert item["ThemeName"] == "Journal"
    assert item["CreatedAt"] == NOW.isoformat()
    assert "IsDefault" not in item
