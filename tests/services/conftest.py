"""Service test fixtures — in-memory item store, repositories, and fault injection.

Invariants:
    - Every test gets a fresh in-memory SQLite database with the schema created
    - The store pages with a tiny page size so multi-page paths are exercised
    - flaky_store wraps the real store and fails only the calls a test arms

Design Decisions:
    - SQLite in-memory with StaticPool: one shared connection, so the schema
      survives across sessions; PostgreSQL-only behavior (collation, row locks)
      is not exercised here
    - Fault injection at the ItemStore boundary, not in SQLAlchemy: repository
      compensation logic only sees store exceptions
"""

from uuid import uuid4

import pytest
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.pool import StaticPool

from axicalendar.infrastructure.database import DatabaseSessionManager
from axicalendar.infrastructure.sql_item_store import SqlItemStore
from axicalendar.services.entry_repository import EntryRepository
from axicalendar.services.theme_repository import ThemeRepository
from tests.services.store_fakes import FlakyStore


@pytest.fixture
async def db():
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:", poolclass=StaticPool, echo=False,
    )
    manager = DatabaseSessionManager.from_engine(engine)
    await manager.create_schema()
    yield manager
    await manager.dispose()


@pytest.fixture
async def store(db):
    return SqlItemStore(db, page_size=2)


@pytest.fixture
def flaky_store(store):
    return FlakyStore(store)


@pytest.fixture
def theme_repo(store):
    return ThemeRepository(store)


@pytest.fixture
def entry_repo(store):
    return EntryRepository(store)


@pytest.fixture
def owner_id():
    return uuid4()


@pytest.fixture
def other_owner_id():
    return uuid4()
