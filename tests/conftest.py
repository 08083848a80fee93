"""
Pytest configuration for the Bazaar social core tests.

Every test gets its own SQLite database file with the ORM-managed tables.
The `follows` table is created per test through `make_follows_table`,
because its column pair is exactly what the tests vary.
"""

import os

# Settings are read at import time
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key-that-is-at-least-32-characters")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///./bazaar-test.db")
os.environ.pop("FOLLOW_COLUMNS", None)

import pytest
import pytest_asyncio
from sqlalchemy import event, text
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine

from bazaar.models import Base
from bazaar.social.follows import FollowGraph
from bazaar.social.friend_requests import FriendRequestLedger
from bazaar.social.schema_probe import KNOWN_FOLLOW_COLUMNS, FollowColumns

# Configure pytest-asyncio
pytest_plugins = ('pytest_asyncio',)


@pytest_asyncio.fixture
async def engine(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'bazaar.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, expire_on_commit=False)


@pytest.fixture
def make_follows_table(engine):
    """Create `follows` with the given column pair (plus any extra columns)."""

    async def _make(columns: FollowColumns, extra_columns=(), unique=True, references_profiles=False):
        edge = " REFERENCES profiles (id)" if references_profiles else ""
        ddl = ", ".join(
            [f"{name} VARCHAR(64){edge}" for name in (columns.follower, columns.followee)]
            + [f"{name} VARCHAR(64)" for name in extra_columns]
        )
        if unique:
            ddl += f", UNIQUE ({columns.follower}, {columns.followee})"
        async with engine.begin() as conn:
            await conn.execute(text(f"CREATE TABLE follows ({ddl})"))

    return _make


@pytest.fixture
def fetch(engine):
    """Run a raw SELECT and return all rows."""

    async def _fetch(sql: str, **params):
        async with engine.connect() as conn:
            result = await conn.execute(text(sql), params)
            return result.all()

    return _fetch


@pytest.fixture
def execute(engine):
    """Run a raw statement in its own transaction."""

    async def _execute(sql: str, **params):
        async with engine.begin() as conn:
            await conn.execute(text(sql), params)

    return _execute


@pytest.fixture
def follow_graph(session_factory):
    return FollowGraph(session_factory, KNOWN_FOLLOW_COLUMNS)


@pytest.fixture
def ledger(session_factory):
    return FriendRequestLedger(session_factory)


def _enable_foreign_keys(dbapi_connection, connection_record):
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


@pytest_asyncio.fixture
async def enforce_foreign_keys(engine):
    """SQLite ignores REFERENCES unless asked; drop pooled connections so every new one is"""
    event.listen(engine.sync_engine, "connect", _enable_foreign_keys)
    await engine.dispose()


@pytest.fixture
def add_profiles(execute):
    async def _add(*ids):
        for profile_id in ids:
            await execute(
                "INSERT INTO profiles (id, username, is_verified, created_at, updated_at)"
                " VALUES (:id, :username, 0, CURRENT_TIMESTAMP, CURRENT_TIMESTAMP)",
                id=profile_id,
                username=f"user_{profile_id}",
            )

    return _add
