"""SQL Item Store — ItemStore implementation over the calendar_items table.

Invariants:
    - Every call runs in its own transaction; nothing is held between calls
    - MUST_NOT_EXIST writes insert and rely on the primary key: of two racing
      creates of one key exactly one commits, the other sees ConditionalCheckFailed
    - Existence and expected-attribute checks read the row FOR UPDATE, so the
      check and the write it guards see the same row version
    - transact() evaluates every op's condition before applying any op and
      reports one reason per op when it cancels
    - Query pages are ordered by the index sort key (or the primary key for
      scans) and resume with keyset pagination, never OFFSET

Design Decisions:
    - Key attributes live in columns, everything else in a JSON bag: range
      queries hit the (gsi1pk, gsi1sk) index, attribute filters use JSON paths
    - Each call is bounded by asyncio.timeout(store_timeout_seconds); task
      cancellation from the caller reaches the in-flight statement directly
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Mapping, Sequence

from sqlalchemy import and_, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from axicalendar.core.item_store import (
    CONDITIONAL_CHECK_FAILED,
    GSI1PK,
    GSI1SK,
    KEY_ATTRIBUTES,
    PK,
    SK,
    TRANSACTION_CONFLICT,
    ConditionalCheckFailedError,
    DeleteOp,
    Item,
    ItemKey,
    Match,
    Precondition,
    PutOp,
    StoreUnavailableError,
    TransactionCanceledError,
    TransactOp,
    item_key,
)
from axicalendar.infrastructure.database import DatabaseSessionManager
from axicalendar.models.item import CalendarItem

logger = logging.getLogger(__name__)

_KEY_COLUMNS = {
    PK: CalendarItem.pk,
    SK: CalendarItem.sk,
    GSI1PK: CalendarItem.gsi1pk,
    GSI1SK: CalendarItem.gsi1sk,
}


class SqlItemStore:
    """Single-table keyed store backed by async SQLAlchemy."""

    def __init__(
        self,
        db: DatabaseSessionManager,
        page_size: int = 100,
        timeout_seconds: float | None = None,
    ):
        if page_size < 1:
            raise ValueError("page_size must be positive")
        self._db = db
        self._page_size = page_size
        self._timeout_seconds = timeout_seconds

    # ─── Single-item operations ──────────────────────────────────

    async def get(self, key: ItemKey) -> Item | None:
        async with self._deadline("get"):
            async with self._db.session() as session:
                row = await self._load(session, key)
                return _to_item(row) if row is not None else None

    async def put(
        self, item: Item, precondition: Precondition = Precondition.NONE,
    ) -> None:
        async with self._deadline("put"):
            async with self._db.session() as session:
                async with session.begin():
                    await self._write(session, item, precondition)

    async def update(
        self,
        key: ItemKey,
        attributes: Mapping[str, Any],
        precondition: Precondition = Precondition.MUST_EXIST,
        expected: Mapping[str, Any] | None = None,
    ) -> None:
        if PK in attributes or SK in attributes:
            raise ValueError("primary key attributes cannot be updated")
        async with self._deadline("update"):
            async with self._db.session() as session:
                async with session.begin():
                    row = await self._load(session, key, lock=True)
                    if row is None:
                        if precondition == Precondition.MUST_EXIST or expected:
                            raise ConditionalCheckFailedError(
                                f"Item {key.pk}/{key.sk} does not exist",
                            )
                        row = CalendarItem(pk=key.pk, sk=key.sk, attributes={})
                        session.add(row)
                    elif precondition == Precondition.MUST_NOT_EXIST:
                        raise ConditionalCheckFailedError(
                            f"Item {key.pk}/{key.sk} already exists",
                        )
                    if expected and not _matches_expected(row, expected):
                        raise ConditionalCheckFailedError(
                            f"Item {key.pk}/{key.sk} failed expected-attribute check",
                        )
                    _apply_attributes(row, attributes)

    async def delete(
        self, key: ItemKey, precondition: Precondition = Precondition.NONE,
    ) -> None:
        async with self._deadline("delete"):
            async with self._db.session() as session:
                async with session.begin():
                    await self._remove(session, key, precondition)

    # ─── Multi-item transaction ──────────────────────────────────

    async def transact(self, ops: Sequence[TransactOp]) -> None:
        if not ops:
            return
        keys = [_op_key(op) for op in ops]
        if len(set(keys)) != len(keys):
            raise ValueError("a transaction cannot touch the same item twice")
        try:
            async with self._deadline("transact"):
                async with self._db.session() as session:
                    async with session.begin():
                        reasons = [await self._check(session, op) for op in ops]
                        if any(reasons):
                            logger.info(
                                "Transaction cancelled by condition check",
                                extra={"reasons": reasons},
                            )
                            raise TransactionCanceledError(reasons)
                        for op in ops:
                            if isinstance(op, PutOp):
                                await self._write(session, op.item, op.precondition)
                            else:
                                await self._remove(session, op.key, op.precondition)
                        await session.flush()
        except ConditionalCheckFailedError as e:
            # A concurrent writer committed between our checks and our flush
            raise TransactionCanceledError([TRANSACTION_CONFLICT] * len(ops)) from e

    # ─── Queries ─────────────────────────────────────────────────

    async def query_index_range(
        self, index_pk: str, lower: str, upper: str, match: Match | None = None,
    ) -> AsyncIterator[list[Item]]:
        conditions = [
            CalendarItem.gsi1pk == index_pk,
            CalendarItem.gsi1sk >= lower,
            CalendarItem.gsi1sk <= upper,
        ]
        async for page in self._paginate(
            "query_index_range", conditions, match, _INDEX_ORDER,
        ):
            yield page

    async def query_index_prefix(
        self, index_pk: str, prefix: str, match: Match | None = None,
    ) -> AsyncIterator[list[Item]]:
        conditions = [
            CalendarItem.gsi1pk == index_pk,
            CalendarItem.gsi1sk.is_not(None),
        ]
        if prefix:
            conditions += [
                CalendarItem.gsi1sk >= prefix,
                func.substr(CalendarItem.gsi1sk, 1, len(prefix)) == prefix,
            ]
        async for page in self._paginate(
            "query_index_prefix", conditions, match, _INDEX_ORDER,
        ):
            yield page

    async def scan_all(self, match: Match | None = None) -> AsyncIterator[list[Item]]:
        async for page in self._paginate("scan_all", [], match, _PRIMARY_ORDER):
            yield page

    async def health_check(self) -> bool:
        return await self._db.health_check()

    # ─── Internals ───────────────────────────────────────────────

    @asynccontextmanager
    async def _deadline(self, operation: str):
        try:
            async with asyncio.timeout(self._timeout_seconds):
                yield
        except TimeoutError as e:
            logger.error(
                f"Store {operation} timed out after {self._timeout_seconds}s",
                extra={"operation": operation},
            )
            raise StoreUnavailableError(
                f"{operation} timed out after {self._timeout_seconds}s", operation,
            ) from e

    async def _load(
        self, session: AsyncSession, key: ItemKey, lock: bool = False,
    ) -> CalendarItem | None:
        return await session.get(
            CalendarItem, (key.pk, key.sk), with_for_update=lock or None,
        )

    async def _write(
        self, session: AsyncSession, item: Item, precondition: Precondition,
    ) -> None:
        key = item_key(item)
        if precondition == Precondition.MUST_NOT_EXIST:
            if await self._load(session, key) is not None:
                raise ConditionalCheckFailedError(
                    f"Item {key.pk}/{key.sk} already exists",
                )
            session.add(_to_row(item))
            await session.flush()
            return
        row = await self._load(session, key, lock=True)
        if row is None:
            if precondition == Precondition.MUST_EXIST:
                raise ConditionalCheckFailedError(
                    f"Item {key.pk}/{key.sk} does not exist",
                )
            session.add(_to_row(item))
        else:
            _replace_row(row, item)

    async def _remove(
        self, session: AsyncSession, key: ItemKey, precondition: Precondition,
    ) -> None:
        row = await self._load(session, key, lock=True)
        if row is None:
            if precondition == Precondition.MUST_EXIST:
                raise ConditionalCheckFailedError(
                    f"Item {key.pk}/{key.sk} does not exist",
                )
            return
        if precondition == Precondition.MUST_NOT_EXIST:
            raise ConditionalCheckFailedError(f"Item {key.pk}/{key.sk} exists")
        await session.delete(row)

    async def _check(self, session: AsyncSession, op: TransactOp) -> str | None:
        if op.precondition == Precondition.NONE:
            return None
        exists = await self._load(session, _op_key(op), lock=True) is not None
        if op.precondition == Precondition.MUST_EXIST and not exists:
            return CONDITIONAL_CHECK_FAILED
        if op.precondition == Precondition.MUST_NOT_EXIST and exists:
            return CONDITIONAL_CHECK_FAILED
        return None

    async def _paginate(
        self, operation: str, conditions: list, match: Match | None, order: tuple,
    ) -> AsyncIterator[list[Item]]:
        last: tuple | None = None
        while True:
            stmt = select(CalendarItem).where(*conditions)
            if match is not None:
                stmt = stmt.where(_match_clause(match))
            if last is not None:
                stmt = stmt.where(_after(order, last))
            stmt = stmt.order_by(*order).limit(self._page_size)

            async with self._deadline(operation):
                async with self._db.session() as session:
                    rows = (await session.execute(stmt)).scalars().all()
                    page = [_to_item(row) for row in rows]
            if page:
                yield page
            if len(rows) < self._page_size:
                return
            last = tuple(getattr(rows[-1], col.key) for col in order)


_INDEX_ORDER = (CalendarItem.gsi1sk, CalendarItem.pk, CalendarItem.sk)
_PRIMARY_ORDER = (CalendarItem.pk, CalendarItem.sk)


# ─── Row <-> item mapping ────────────────────────────────────────

def _to_row(item: Item) -> CalendarItem:
    return CalendarItem(
        pk=item[PK],
        sk=item[SK],
        gsi1pk=item.get(GSI1PK),
        gsi1sk=item.get(GSI1SK),
        attributes=_attribute_bag(item),
    )


def _replace_row(row: CalendarItem, item: Item) -> None:
    row.gsi1pk = item.get(GSI1PK)
    row.gsi1sk = item.get(GSI1SK)
    row.attributes = _attribute_bag(item)


def _apply_attributes(row: CalendarItem, attributes: Mapping[str, Any]) -> None:
    bag = dict(row.attributes or {})
    for name, value in attributes.items():
        if name == GSI1PK:
            row.gsi1pk = value
        elif name == GSI1SK:
            row.gsi1sk = value
        else:
            bag[name] = value
    # New dict so the JSON column registers the change
    row.attributes = bag


def _to_item(row: CalendarItem) -> Item:
    item: Item = dict(row.attributes or {})
    item[PK] = row.pk
    item[SK] = row.sk
    if row.gsi1pk is not None:
        item[GSI1PK] = row.gsi1pk
    if row.gsi1sk is not None:
        item[GSI1SK] = row.gsi1sk
    return item


def _attribute_bag(item: Item) -> dict:
    return {k: v for k, v in item.items() if k not in KEY_ATTRIBUTES}


def _attribute(row: CalendarItem, name: str) -> Any:
    column = _KEY_COLUMNS.get(name)
    if column is not None:
        return getattr(row, column.key)
    return (row.attributes or {}).get(name)


def _matches_expected(row: CalendarItem, expected: Mapping[str, Any]) -> bool:
    return all(_attribute(row, name) == value for name, value in expected.items())


def _op_key(op: TransactOp) -> ItemKey:
    if isinstance(op, DeleteOp):
        return op.key
    return item_key(op.item)


# ─── Query clauses ───────────────────────────────────────────────

def _match_clause(match: Match):
    column = _KEY_COLUMNS.get(match.attribute)
    if column is not None:
        return column == match.value
    element = CalendarItem.attributes[match.attribute]
    if isinstance(match.value, bool):
        return element.as_boolean() == match.value
    if isinstance(match.value, (int, float)):
        return element.as_float() == match.value
    return element.as_string() == str(match.value)


def _after(order: tuple, values: tuple):
    """Keyset predicate: (c1, c2, ...) > (v1, v2, ...) without row-value syntax."""
    clauses = []
    for i, col in enumerate(order):
        equal_prefix = [order[j] == values[j] for j in range(i)]
        clauses.append(and_(*equal_prefix, col > values[i]))
    return or_(*clauses)
