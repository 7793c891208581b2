"""Root conftest — shared test configuration."""

import os

# Keep the app shell off any real database
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("LOG_FORMAT", "text")
