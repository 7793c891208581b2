"""Item Store Contract — the ordered keyed store that every repository writes through.

Invariants:
    - An item is a flat attribute mapping; PK and SK identify it, GSI1PK/GSI1SK
      (when present) project it into the secondary index
    - Conditional writes (Precondition, expected attributes) are the only
      concurrency-control primitive — there are no locks in this contract
    - transact() is all-or-nothing; on failure it reports one reason per op
    - Store exceptions (StoreError family) never cross a repository boundary

Design Decisions:
    - Protocol over ABC: structural subtyping, the SQL store and test fakes
      need no common base class
    - Queries return async iterators of pages: callers that stop early (lookup
      by id) never read pages they do not need
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, AsyncIterator, Mapping, Protocol, Sequence, Union


Item = dict[str, Any]

# ─── Key attribute names ─────────────────────────────────────────

PK = "PK"
SK = "SK"
GSI1PK = "GSI1PK"
GSI1SK = "GSI1SK"

KEY_ATTRIBUTES = (PK, SK, GSI1PK, GSI1SK)

# ─── Transaction cancellation reasons ────────────────────────────

CONDITIONAL_CHECK_FAILED = "ConditionalCheckFailed"
TRANSACTION_CONFLICT = "TransactionConflict"


class Precondition(str, Enum):
    """Existence predicate attached to a write."""
    NONE = "none"
    MUST_EXIST = "must_exist"
    MUST_NOT_EXIST = "must_not_exist"


@dataclass(frozen=True)
class ItemKey:
    """Primary key of an item."""
    pk: str
    sk: str


@dataclass(frozen=True)
class Match:
    """Equality filter on a single attribute, evaluated by the store."""
    attribute: str
    value: Any


@dataclass(frozen=True)
class PutOp:
    """Transaction member: write a whole item."""
    item: Item
    precondition: Precondition = Precondition.NONE


@dataclass(frozen=True)
class DeleteOp:
    """Transaction member: remove an item."""
    key: ItemKey
    precondition: Precondition = Precondition.NONE


TransactOp = Union[PutOp, DeleteOp]


def item_key(item: Mapping[str, Any]) -> ItemKey:
    """Extract the primary key from an item."""
    return ItemKey(pk=item[PK], sk=item[SK])


# ─── Store-level exceptions ──────────────────────────────────────

class StoreError(Exception):
    """Base for every failure raised by an ItemStore."""


class ConditionalCheckFailedError(StoreError):
    """A write's precondition or expected attributes did not hold."""


class TransactionCanceledError(StoreError):
    """A transact() call was rolled back.

    reasons[i] is None when op i was fine, otherwise a reason code
    (CONDITIONAL_CHECK_FAILED or TRANSACTION_CONFLICT).
    """

    def __init__(self, reasons: Sequence[str | None]):
        self.reasons = list(reasons)
        failed = [r for r in self.reasons if r]
        super().__init__(f"Transaction cancelled, reasons: {failed}")


class StoreUnavailableError(StoreError):
    """Connection, driver, or timeout failure."""

    def __init__(self, message: str, operation: str):
        super().__init__(message)
        self.operation = operation


# ─── Boundary Protocol ───────────────────────────────────────────

class ItemStore(Protocol):
    """Contract for the single-table store — implemented by infrastructure."""
    async def get(self, key: ItemKey) -> Item | None: ...
    async def put(
        self, item: Item, precondition: Precondition = Precondition.NONE,
    ) -> None: ...
    async def update(
        self,
        key: ItemKey,
        attributes: Mapping[str, Any],
        precondition: Precondition = Precondition.MUST_EXIST,
        expected: Mapping[str, Any] | None = None,
    ) -> None: ...
    async def delete(
        self, key: ItemKey, precondition: Precondition = Precondition.NONE,
    ) -> None: ...
    def query_index_range(
        self, index_pk: str, lower: str, upper: str, match: Match | None = None,
    ) -> AsyncIterator[list[Item]]: ...
    def query_index_prefix(
        self, index_pk: str, prefix: str, match: Match | None = None,
    ) -> AsyncIterator[list[Item]]: ...
    async def transact(self, ops: Sequence[TransactOp]) -> None: ...
    def scan_all(self, match: Match | None = None) -> AsyncIterator[list[Item]]: ...
    async def health_check(self) -> bool: ...
