"""Root conftest — shared test configuration and the per-test database.

Invariants:
    - Every test that asks for `database` gets a fresh SQLite file under tmp_path
    - The users table is created by Database.start() (metadata passed in)
    - The database is closed after the test, even when the test fails
"""

import os

import pytest

from userservice.db.base import Base
from userservice.infrastructure.database import Database
from userservice.models import user as _user_model  # noqa: F401

# Settings must never pick up a developer's real store
os.environ.setdefault("DATABASE_URL", "")
os.environ.setdefault("LOG_FORMAT", "text")


@pytest.fixture
def database_url(tmp_path) -> str:
    return f"sqlite+aiosqlite:///{tmp_path / 'users.db'}"


@pytest.fixture
async def database(database_url):
    db = Database(database_url, metadata=Base.metadata)
    await db.start()
    assert db.is_connected
    yield db
    await db.close()
