"""Theme Repository — CRUD and listing over theme metadata and ownership links.

Invariants:
    - A theme is two items: metadata (THEME#<id>/METADATA) and an ownership link
      (OWNER#<owner>/THEME#<id>); default themes have metadata only
    - Default themes are visible to every caller and never updated or deleted
    - Non-default themes are visible, updatable, and deletable only by their owner
    - Link maintenance after a successful metadata write is best-effort: failures
      are logged, never raised, and list_themes does not depend on links
    - Store exceptions are translated here; callers only see CalendarError kinds

Design Decisions:
    - atomic_create=True writes metadata and link in one transact() call, so a
      theme can never exist without its link
    - atomic_create=False keeps the dual write with compensation: metadata first,
      link second, metadata deleted if the link write fails. A failed rollback
      surfaces as InconsistentError because residual drift needs an operator
    - update_theme uses one conditional write (exists, not default, owned) and
      only reads again when that condition fails, to name the failure precisely
    - list_themes scans every METADATA item: linear in total theme count, kept
      until an owner-scoped index for defaults exists
"""

import logging
from dataclasses import replace
from datetime import datetime, timezone
from uuid import UUID, uuid4

from axicalendar.core.errors import (
    AlreadyExistsError,
    ConflictError,
    DefaultThemeImmutableError,
    ErrorContext,
    ForbiddenError,
    InconsistentError,
    InvalidArgumentError,
    NotFoundError,
    UnavailableError,
)
from axicalendar.core.item_store import (
    SK,
    ConditionalCheckFailedError,
    ItemStore,
    Match,
    Precondition,
    PutOp,
    StoreError,
    TransactionCanceledError,
)
from axicalendar.core.keys import (
    THEME_METADATA_SK,
    theme_link_key,
    theme_metadata_key,
)
from axicalendar.core.themes import (
    Theme,
    ThemeOwnershipLink,
    fields_to_attribute,
    link_to_item,
    theme_from_item,
    theme_to_item,
    validate_theme,
)

logger = logging.getLogger(__name__)


class ThemeRepository:
    """Theme persistence over the single-table item store."""

    def __init__(self, store: ItemStore, *, atomic_create: bool = True):
        self._store = store
        self._atomic_create = atomic_create

    # ─── Reads ───────────────────────────────────────────────────

    async def get_theme(self, owner_id: UUID, theme_id: UUID) -> Theme:
        """Fetch a theme the caller may see (default, or owned by the caller)."""
        _require(owner_id, "owner_id")
        key = theme_metadata_key(theme_id)
        try:
            item = await self._store.get(key)
        except StoreError as e:
            raise UnavailableError(str(e), "get_theme") from e
        if item is None:
            raise NotFoundError("Theme", str(theme_id))

        theme = theme_from_item(item)
        if not theme.is_visible_to(owner_id):
            logger.info(
                f"Theme {theme_id} requested by non-owner",
                extra={"owner_id": str(owner_id), "theme_id": str(theme_id)},
            )
            raise ForbiddenError(
                "Theme", str(theme_id),
                context=ErrorContext(owner_id=str(owner_id)),
            )
        return theme

    async def list_themes(self, owner_id: UUID) -> list[Theme]:
        """All default themes plus the caller's own."""
        _require(owner_id, "owner_id")
        themes: list[Theme] = []
        try:
            async for page in self._store.scan_all(Match(SK, THEME_METADATA_SK)):
                for item in page:
                    theme = theme_from_item(item)
                    if theme.is_visible_to(owner_id):
                        themes.append(theme)
        except StoreError as e:
            raise UnavailableError(str(e), "list_themes") from e
        return themes

    # ─── Writes ──────────────────────────────────────────────────

    async def create_theme(self, theme: Theme) -> Theme:
        """Persist a new owned theme and its ownership link.

        Returns the stored theme (generated ThemeID, timestamps, is_default=False).
        """
        if theme.owner_id is None:
            raise InvalidArgumentError("owner_id is required to create a theme", "owner_id")
        validate_theme(theme)

        now = _now()
        theme = replace(
            theme,
            theme_id=theme.theme_id or uuid4(),
            is_default=False,
            supported_features=list(theme.supported_features or []),
            created_at=now,
            updated_at=now,
        )
        link = ThemeOwnershipLink(
            owner_id=theme.owner_id,
            theme_id=theme.theme_id,
            theme_name=theme.theme_name,
            created_at=now,
        )
        if self._atomic_create:
            await self._create_atomically(theme, link)
        else:
            await self._create_with_compensation(theme, link)

        logger.info(
            f"Created theme {theme.theme_id}",
            extra={"owner_id": str(theme.owner_id), "theme_id": str(theme.theme_id)},
        )
        return theme

    async def seed_default_theme(self, theme: Theme) -> Theme:
        """Persist a system theme: no owner, no link, immutable afterwards."""
        if theme.owner_id is not None:
            raise InvalidArgumentError("default themes cannot have an owner", "owner_id")
        validate_theme(theme)

        now = _now()
        theme = replace(
            theme,
            theme_id=theme.theme_id or uuid4(),
            is_default=True,
            supported_features=list(theme.supported_features or []),
            created_at=now,
            updated_at=now,
        )
        try:
            await self._store.put(theme_to_item(theme), Precondition.MUST_NOT_EXIST)
        except ConditionalCheckFailedError as e:
            raise AlreadyExistsError("Theme", str(theme.theme_id)) from e
        except StoreError as e:
            raise UnavailableError(str(e), "seed_default_theme") from e
        logger.info(f"Seeded default theme {theme.theme_id}", extra={"theme_id": str(theme.theme_id)})
        return theme

    async def update_theme(self, theme: Theme) -> None:
        """Replace name, fields, and features of a theme the caller owns."""
        _require(theme.theme_id, "theme_id")
        _require(theme.owner_id, "owner_id")
        validate_theme(theme)

        key = theme_metadata_key(theme.theme_id)
        attributes = {
            "ThemeName": theme.theme_name,
            "Fields": fields_to_attribute(theme.fields),
            "SupportedFeatures": list(theme.supported_features or []),
            "UpdatedAt": _now().isoformat(),
        }
        try:
            await self._store.update(
                key,
                attributes,
                precondition=Precondition.MUST_EXIST,
                expected={"IsDefault": False, "OwnerID": str(theme.owner_id)},
            )
        except ConditionalCheckFailedError as e:
            raise await self._explain_rejected_update(theme) from e
        except StoreError as e:
            raise UnavailableError(str(e), "update_theme") from e

        await self._rename_link(theme)

    async def delete_theme(self, owner_id: UUID, theme_id: UUID) -> None:
        """Delete an owned theme: metadata first, then the link (best-effort)."""
        theme = await self.get_theme(owner_id, theme_id)
        if theme.is_default:
            raise DefaultThemeImmutableError(str(theme_id), "delete")

        try:
            await self._store.delete(theme_metadata_key(theme_id), Precondition.MUST_EXIST)
        except ConditionalCheckFailedError as e:
            raise NotFoundError("Theme", str(theme_id)) from e
        except StoreError as e:
            raise UnavailableError(str(e), "delete_theme") from e

        link_key = theme_link_key(owner_id, theme_id)
        try:
            await self._store.delete(link_key)
        except StoreError as e:
            logger.warning(
                f"Failed to delete ownership link for theme {theme_id} after metadata deletion: {e}",
                extra={
                    "owner_id": str(owner_id), "theme_id": str(theme_id),
                    "pk": link_key.pk, "sk": link_key.sk,
                    "error_code": "DANGLING_THEME_LINK",
                },
            )
        logger.info(
            f"Deleted theme {theme_id}",
            extra={"owner_id": str(owner_id), "theme_id": str(theme_id)},
        )

    # ─── Internals ───────────────────────────────────────────────

    async def _create_atomically(self, theme: Theme, link: ThemeOwnershipLink) -> None:
        try:
            await self._store.transact([
                PutOp(theme_to_item(theme), Precondition.MUST_NOT_EXIST),
                PutOp(link_to_item(link), Precondition.MUST_NOT_EXIST),
            ])
        except TransactionCanceledError as e:
            raise AlreadyExistsError("Theme", str(theme.theme_id)) from e
        except StoreError as e:
            raise UnavailableError(str(e), "create_theme") from e

    async def _create_with_compensation(self, theme: Theme, link: ThemeOwnershipLink) -> None:
        metadata_key = theme_metadata_key(theme.theme_id)
        try:
            await self._store.put(theme_to_item(theme), Precondition.MUST_NOT_EXIST)
        except ConditionalCheckFailedError as e:
            raise AlreadyExistsError("Theme", str(theme.theme_id)) from e
        except StoreError as e:
            raise UnavailableError(str(e), "create_theme") from e

        try:
            await self._store.put(link_to_item(link))
        except StoreError as link_error:
            logger.warning(
                f"Failed to create ownership link for theme {theme.theme_id}, "
                f"rolling back metadata: {link_error}",
                extra={"owner_id": str(theme.owner_id), "theme_id": str(theme.theme_id)},
            )
            try:
                await self._store.delete(metadata_key)
            except StoreError as rollback_error:
                logger.error(
                    f"Failed to roll back metadata for theme {theme.theme_id}: {rollback_error}",
                    extra={
                        "owner_id": str(theme.owner_id), "theme_id": str(theme.theme_id),
                        "pk": metadata_key.pk, "sk": metadata_key.sk,
                        "error_code": "ORPHANED_THEME_METADATA",
                    },
                )
                raise InconsistentError(
                    f"Theme {theme.theme_id} metadata left without ownership link",
                    "create_theme",
                    ErrorContext(
                        owner_id=str(theme.owner_id),
                        resource_type="Theme",
                        resource_id=str(theme.theme_id),
                    ),
                ) from link_error
            raise UnavailableError(str(link_error), "create_theme") from link_error

    async def _explain_rejected_update(self, theme: Theme) -> Exception:
        """Name why the conditional update failed, via a follow-up read."""
        try:
            current = await self.get_theme(theme.owner_id, theme.theme_id)
        except (NotFoundError, ForbiddenError, UnavailableError) as e:
            return e
        if current.is_default:
            return DefaultThemeImmutableError(str(theme.theme_id), "update")
        # Owned and not default now: the item changed between write and read
        return ConflictError(
            f"Theme {theme.theme_id} changed concurrently, retry the update",
        )

    async def _rename_link(self, theme: Theme) -> None:
        link_key = theme_link_key(theme.owner_id, theme.theme_id)
        try:
            await self._store.update(
                link_key,
                {"ThemeName": theme.theme_name},
                precondition=Precondition.MUST_EXIST,
            )
        except StoreError as e:
            logger.warning(
                f"Failed to propagate ThemeName to ownership link for theme {theme.theme_id}: {e}",
                extra={
                    "owner_id": str(theme.owner_id), "theme_id": str(theme.theme_id),
                    "pk": link_key.pk, "sk": link_key.sk,
                    "error_code": "STALE_THEME_LINK",
                },
            )


def _require(value, name: str) -> None:
    if value is None or str(value).strip() == "":
        raise InvalidArgumentError(f"{name} is required", name)


def _now() -> datetime:
    return datetime.now(timezone.utc)
