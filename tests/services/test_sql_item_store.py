"""SQL Item Store — verifies conditional writes, transactions, and paged queries.

Tests:
    - put/get/delete honor each Precondition
    - update merges attributes and enforces expected values
    - transact is all-or-nothing and reports one reason per op
    - Index range/prefix queries filter, order by sort key, and span pages
    - scan_all visits every item through keyset pagination
"""

import pytest

from axicalendar.core.item_store import (
    CONDITIONAL_CHECK_FAILED,
    ConditionalCheckFailedError,
    DeleteOp,
    ItemKey,
    Match,
    Precondition,
    PutOp,
    StoreUnavailableError,
    TransactionCanceledError,
)
from axicalendar.infrastructure.sql_item_store import SqlItemStore


def _item(pk="P#1", sk="S#1", **attributes):
    return {"PK": pk, "SK": sk, **attributes}


def _indexed(sk_suffix, theme="t1", pk="OWNER#o1"):
    return _item(
        pk, f"ENTRY#{sk_suffix}",
        GSI1PK=pk, GSI1SK=f"ENTRY_DATE#{sk_suffix}", ThemeID=theme,
    )


async def _collect(pages):
    return [item async for page in pages for item in page]


async def _page_sizes(pages):
    return [len(page) async for page in pages]


# ─── Single-item operations ──────────────────────────────────────

async def test_put_then_get(store):
    await store.put(_item(Name="a", Count=3))
    assert await store.get(ItemKey("P#1", "S#1")) == _item(Name="a", Count=3)


async def test_get_missing_returns_none(store):
    assert await store.get(ItemKey("P#1", "nope")) is None


async def test_put_must_not_exist_rejects_duplicate(store):
    await store.put(_item(), Precondition.MUST_NOT_EXIST)
    with pytest.raises(ConditionalCheckFailedError):
        await store.put(_item(Name="b"), Precondition.MUST_NOT_EXIST)


async def test_put_must_exist_rejects_missing(store):
    with pytest.raises(ConditionalCheckFailedError):
        await store.put(_item(), Precondition.MUST_EXIST)


async def test_unconditional_put_replaces_item(store):
    await store.put(_item(Name="a", Extra=1))
    await store.put(_item(Name="b"))
    assert await store.get(ItemKey("P#1", "S#1")) == _item(Name="b")


async def test_update_merges_attributes(store):
    await store.put(_item(Name="a", Keep=True))
    await store.update(ItemKey("P#1", "S#1"), {"Name": "b", "GSI1SK": "X#1"})
    assert await store.get(ItemKey("P#1", "S#1")) == _item(Name="b", Keep=True, GSI1SK="X#1")


async def test_update_missing_item_fails(store):
    with pytest.raises(ConditionalCheckFailedError):
        await store.update(ItemKey("P#1", "S#1"), {"Name": "b"})


async def test_update_expected_mismatch_fails(store):
    await store.put(_item(IsDefault=True, OwnerID="o1"))
    with pytest.raises(ConditionalCheckFailedError):
        await store.update(
            ItemKey("P#1", "S#1"), {"Name": "b"},
            expected={"IsDefault": False, "OwnerID": "o1"},
        )
    assert "Name" not in await store.get(ItemKey("P#1", "S#1"))


async def test_update_expected_match_succeeds(store):
    await store.put(_item(IsDefault=False, OwnerID="o1"))
    await store.update(
        ItemKey("P#1", "S#1"), {"Name": "b"},
        expected={"IsDefault": False, "OwnerID": "o1"},
    )
    assert (await store.get(ItemKey("P#1", "S#1")))["Name"] == "b"


async def test_update_rejects_primary_key_change(store):
    await store.put(_item())
    with pytest.raises(ValueError):
        await store.update(ItemKey("P#1", "S#1"), {"SK": "S#2"})


async def test_delete_must_exist(store):
    with pytest.raises(ConditionalCheckFailedError):
        await store.delete(ItemKey("P#1", "S#1"), Precondition.MUST_EXIST)
    await store.put(_item())
    await store.delete(ItemKey("P#1", "S#1"), Precondition.MUST_EXIST)
    assert await store.get(ItemKey("P#1", "S#1")) is None


async def test_unconditional_delete_of_missing_item_is_noop(store):
    await store.delete(ItemKey("P#1", "S#1"))


# ─── Transactions ────────────────────────────────────────────────

async def test_transact_applies_all_ops(store):
    await store.put(_item(sk="S#old"))
    await store.transact([
        DeleteOp(ItemKey("P#1", "S#old"), Precondition.MUST_EXIST),
        PutOp(_item(sk="S#new"), Precondition.MUST_NOT_EXIST),
    ])
    assert await store.get(ItemKey("P#1", "S#old")) is None
    assert await store.get(ItemKey("P#1", "S#new")) is not None


async def test_transact_reports_failing_op_and_applies_nothing(store):
    await store.put(_item(sk="S#old"))
    await store.put(_item(sk="S#new", Name="occupant"))

    with pytest.raises(TransactionCanceledError) as exc:
        await store.transact([
            DeleteOp(ItemKey("P#1", "S#old"), Precondition.MUST_EXIST),
            PutOp(_item(sk="S#new"), Precondition.MUST_NOT_EXIST),
        ])

    assert exc.value.reasons == [None, CONDITIONAL_CHECK_FAILED]
    assert await store.get(ItemKey("P#1", "S#old")) is not None
    assert (await store.get(ItemKey("P#1", "S#new")))["Name"] == "occupant"


async def test_transact_missing_source_reported_first(store):
    with pytest.raises(TransactionCanceledError) as exc:
        await store.transact([
            DeleteOp(ItemKey("P#1", "S#old"), Precondition.MUST_EXIST),
            PutOp(_item(sk="S#new"), Precondition.MUST_NOT_EXIST),
        ])
    assert exc.value.reasons == [CONDITIONAL_CHECK_FAILED, None]
    assert await store.get(ItemKey("P#1", "S#new")) is None


async def test_transact_rejects_duplicate_keys(store):
    with pytest.raises(ValueError):
        await store.transact([PutOp(_item()), DeleteOp(ItemKey("P#1", "S#1"))])


# ─── Queries ─────────────────────────────────────────────────────

async def test_query_index_range_inclusive_and_ordered(store):
    for day in ["2024-01-03", "2024-01-01", "2024-01-02", "2024-01-04"]:
        await store.put(_indexed(day))
    items = await _collect(store.query_index_range(
        "OWNER#o1", "ENTRY_DATE#2024-01-01", "ENTRY_DATE#2024-01-03\uffff",
    ))
    assert [i["GSI1SK"] for i in items] == [
        "ENTRY_DATE#2024-01-01", "ENTRY_DATE#2024-01-02", "ENTRY_DATE#2024-01-03",
    ]


async def test_query_index_range_spans_pages(store):
    for day in range(1, 6):
        await store.put(_indexed(f"2024-01-0{day}"))
    sizes = await _page_sizes(store.query_index_range(
        "OWNER#o1", "ENTRY_DATE#", "ENTRY_DATE#\uffff",
    ))
    assert sizes == [2, 2, 1]


async def test_query_index_range_applies_match(store):
    await store.put(_indexed("2024-01-01", theme="t1"))
    await store.put(_indexed("2024-01-02", theme="t2"))
    await store.put(_indexed("2024-01-03", theme="t1"))
    items = await _collect(store.query_index_range(
        "OWNER#o1", "ENTRY_DATE#", "ENTRY_DATE#\uffff", Match("ThemeID", "t1"),
    ))
    assert [i["GSI1SK"] for i in items] == ["ENTRY_DATE#2024-01-01", "ENTRY_DATE#2024-01-03"]


async def test_query_index_is_partitioned(store):
    await store.put(_indexed("2024-01-01", pk="OWNER#o1"))
    await store.put(_indexed("2024-01-01", pk="OWNER#o2"))
    items = await _collect(store.query_index_prefix("OWNER#o1", "ENTRY_DATE#"))
    assert [i["PK"] for i in items] == ["OWNER#o1"]


async def test_query_index_prefix(store):
    for day in ["2024-01-31", "2024-02-01", "2024-02-29", "2024-03-01"]:
        await store.put(_indexed(day))
    items = await _collect(store.query_index_prefix("OWNER#o1", "ENTRY_DATE#2024-02"))
    assert [i["GSI1SK"] for i in items] == ["ENTRY_DATE#2024-02-01", "ENTRY_DATE#2024-02-29"]


async def test_prefix_query_skips_unindexed_items(store):
    await store.put(_item("OWNER#o1", "THEME#t1"))
    await store.put(_indexed("2024-01-01"))
    items = await _collect(store.query_index_prefix("OWNER#o1", ""))
    assert len(items) == 1


async def test_scan_all_with_match(store):
    for n in range(5):
        await store.put(_item(f"THEME#{n}", "METADATA"))
        await store.put(_item(f"OWNER#{n}", f"THEME#{n}"))
    items = await _collect(store.scan_all(Match("SK", "METADATA")))
    assert sorted(i["PK"] for i in items) == [f"THEME#{n}" for n in range(5)]
    assert len(await _collect(store.scan_all())) == 10


async def test_empty_query_yields_no_pages(store):
    assert await _page_sizes(store.query_index_prefix("OWNER#none", "ENTRY_DATE#")) == []


# ─── Infrastructure ──────────────────────────────────────────────

async def test_health_check(store):
    assert await store.health_check() is True


async def test_page_size_must_be_positive(db):
    with pytest.raises(ValueError):
        SqlItemStore(db, page_size=0)


async def test_timeout_maps_to_unavailable(db, monkeypatch):
    import asyncio

    store = SqlItemStore(db, timeout_seconds=0.01)

    async def slow_load(*args, **kwargs):
        await asyncio.sleep(1)

    monkeypatch.setattr(store, "_load", slow_load)
    with pytest.raises(StoreUnavailableError) as exc:
        await store.get(ItemKey("P#1", "S#1"))
    assert exc.value.operation == "get"
