"""Themes — user-definable record schemas and their ownership links.

Invariants:
    - A theme has at least one field; field names match ^[a-z_][a-z0-9_]*$ and are unique
    - Default themes have no owner; non-default themes have exactly one
    - Supported features behave as a set (no duplicates, order kept for display)
    - Item layout (attribute names, value encodings) is the persisted format

Design Decisions:
    - Dataclasses, not ORM rows: a theme is two items in the keyed store
      (metadata + ownership link), never a table row of its own
    - Unknown feature names are logged, not rejected: the feature registry
      lives outside this package and may know names this module does not
"""

import logging
import re
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any
from uuid import UUID

from axicalendar.core.domain_types import FieldType
from axicalendar.core.errors import InvalidArgumentError
from axicalendar.core.item_store import Item, PK, SK
from axicalendar.core.keys import theme_link_key, theme_metadata_key

logger = logging.getLogger(__name__)

FIELD_NAME_PATTERN = re.compile(r"^[a-z_][a-z0-9_]*$")

KNOWN_FEATURES = frozenset({"monthly_summary", "category_aggregation", "SumAll"})


@dataclass
class ThemeField:
    """Single field definition within a theme."""
    name: str
    label: str
    type: FieldType
    required: bool = False


@dataclass
class Theme:
    """Theme definition — metadata item under THEME#<id>/METADATA."""
    theme_name: str
    fields: list[ThemeField]
    theme_id: UUID | None = None
    owner_id: UUID | None = None
    is_default: bool = False
    supported_features: list[str] = field(default_factory=list)
    created_at: datetime | None = None
    updated_at: datetime | None = None

    def is_visible_to(self, owner_id: UUID) -> bool:
        return self.is_default or self.owner_id == owner_id


@dataclass
class ThemeOwnershipLink:
    """Denormalized OWNER#/THEME# item letting an owner find their themes."""
    owner_id: UUID
    theme_id: UUID
    theme_name: str
    created_at: datetime


# ─── Validation ──────────────────────────────────────────────────

def validate_theme(theme: Theme) -> None:
    """Check the theme's own attributes. Raises InvalidArgumentError."""
    if not theme.theme_name or not theme.theme_name.strip():
        raise InvalidArgumentError("theme name is required", "theme_name")
    validate_theme_fields(theme.fields)
    validate_supported_features(theme.supported_features)


def validate_theme_fields(fields: list[ThemeField]) -> None:
    if not fields:
        raise InvalidArgumentError("theme must have at least one field", "fields")
    seen: set[str] = set()
    for i, f in enumerate(fields):
        if not f.name:
            raise InvalidArgumentError(f"field {i}: name is required", "fields")
        if not FIELD_NAME_PATTERN.match(f.name):
            raise InvalidArgumentError(
                f"field {i} ('{f.name}'): name must match {FIELD_NAME_PATTERN.pattern}",
                "fields",
            )
        if not f.label:
            raise InvalidArgumentError(
                f"field {i} ('{f.name}'): label is required", "fields",
            )
        if f.name in seen:
            raise InvalidArgumentError(
                f"field name '{f.name}' is duplicated", "fields",
            )
        seen.add(f.name)
        try:
            FieldType(f.type)
        except ValueError as e:
            raise InvalidArgumentError(
                f"field '{f.name}': invalid type '{f.type}'", "fields",
            ) from e


def validate_supported_features(features: list[str]) -> None:
    seen: set[str] = set()
    for i, feature in enumerate(features):
        if not feature:
            raise InvalidArgumentError(
                f"feature {i}: name cannot be empty", "supported_features",
            )
        if feature in seen:
            raise InvalidArgumentError(
                f"feature name '{feature}' is duplicated", "supported_features",
            )
        seen.add(feature)
        if feature not in KNOWN_FEATURES:
            logger.warning(f"Potentially unsupported feature '{feature}' in theme definition")


# ─── Item mapping ────────────────────────────────────────────────

def fields_to_attribute(fields: list[ThemeField]) -> list[dict]:
    return [
        {
            "Name": f.name,
            "Label": f.label,
            "Type": FieldType(f.type).value,
            "Required": bool(f.required),
        }
        for f in fields
    ]


def theme_to_item(theme: Theme) -> Item:
    """Metadata item for a theme. theme_id and timestamps must be set."""
    key = theme_metadata_key(theme.theme_id)
    item: Item = {
        PK: key.pk,
        SK: key.sk,
        "ThemeID": str(theme.theme_id),
        "ThemeName": theme.theme_name,
        "Fields": fields_to_attribute(theme.fields),
        "IsDefault": theme.is_default,
        "SupportedFeatures": list(theme.supported_features),
        "CreatedAt": theme.created_at.isoformat(),
        "UpdatedAt": theme.updated_at.isoformat(),
    }
    if theme.owner_id is not None:
        item["OwnerID"] = str(theme.owner_id)
    return item


def theme_from_item(item: Item) -> Theme:
    owner = item.get("OwnerID")
    return Theme(
        theme_id=UUID(item["ThemeID"]),
        theme_name=item["ThemeName"],
        fields=[
            ThemeField(
                name=f["Name"],
                label=f.get("Label", ""),
                type=FieldType(f["Type"]),
                required=bool(f.get("Required", False)),
            )
            for f in item.get("Fields") or []
        ],
        is_default=bool(item.get("IsDefault", False)),
        owner_id=UUID(owner) if owner else None,
        supported_features=list(item.get("SupportedFeatures") or []),
        created_at=_parse_timestamp(item.get("CreatedAt")),
        updated_at=_parse_timestamp(item.get("UpdatedAt")),
    )


def link_to_item(link: ThemeOwnershipLink) -> Item:
    key = theme_link_key(link.owner_id, link.theme_id)
    return {
        PK: key.pk,
        SK: key.sk,
        "OwnerID": str(link.owner_id),
        "ThemeID": str(link.theme_id),
        "ThemeName": link.theme_name,
        "CreatedAt": link.created_at.isoformat(),
    }


def _parse_timestamp(value: Any) -> datetime | None:
    if not value:
        return None
    return datetime.fromisoformat(value)
