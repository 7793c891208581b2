"""AxiCalendar API — FastAPI application entry point.

Invariants:
    - Routes registered explicitly (no auto-discovery)
    - Global error handlers map CalendarError → structured JSON responses
    - CORS configured from settings (not hardcoded)
    - Database, item store, and repositories built on startup via lifespan and
      exposed on app.state

Design Decisions:
    - Lifespan over @app.on_event: FastAPI recommended pattern, cleaner cleanup
    - Repositories share one SqlItemStore: a single pool, one timeout policy
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from axicalendar.api.error_handlers import register_error_handlers
from axicalendar.api.routes import health
from axicalendar.config import get_settings
from axicalendar.infrastructure.database import init_db
from axicalendar.infrastructure.observability import setup_logging
from axicalendar.infrastructure.sql_item_store import SqlItemStore
from axicalendar.services.entry_repository import EntryRepository
from axicalendar.services.theme_repository import ThemeRepository

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup/shutdown lifecycle."""
    settings = get_settings()
    setup_logging(settings.log_level, settings.log_format)
    db = init_db(
        settings.database_url,
        pool_size=settings.database_pool_size,
        max_overflow=settings.database_max_overflow,
    )
    if settings.database_auto_create:
        await db.create_schema()

    store = SqlItemStore(
        db,
        page_size=settings.store_page_size,
        timeout_seconds=settings.store_timeout_seconds,
    )
    app.state.item_store = store
    app.state.theme_repository = ThemeRepository(
        store, atomic_create=settings.theme_atomic_create,
    )
    app.state.entry_repository = EntryRepository(store)
    logger.info("AxiCalendar API started")
    yield
    logger.info("AxiCalendar API shutting down")
    await db.dispose()


app = FastAPI(
    title="AxiCalendar API", version="1.0.0", lifespan=lifespan,
)

settings = get_settings()
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(health.router)

register_error_handlers(app)
