"""
Database infrastructure

Async SQLAlchemy engine / session factory, plus classification of driver
errors that the social core treats as expected (schema drift) rather than
as failures.
"""

from typing import Optional

from sqlalchemy.exc import DBAPIError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from bazaar.core.config import settings
from bazaar.core.logging import get_logger

logger = get_logger(__name__)

_engine: Optional[AsyncEngine] = None
_session_factory: Optional[async_sessionmaker[AsyncSession]] = None

# SQLSTATE / vendor codes
PG_UNDEFINED_COLUMN = "42703"
PG_UNDEFINED_TABLE = "42P01"
MYSQL_BAD_FIELD_ERROR = 1054
MYSQL_NO_SUCH_TABLE = 1146


def get_engine() -> AsyncEngine:
    global _engine
    if _engine is None:
        engine_kwargs = {"echo": settings.db_echo, "pool_pre_ping": True}
        if not settings.is_sqlite:
            engine_kwargs["pool_size"] = settings.db_pool_size
            engine_kwargs["max_overflow"] = settings.db_max_overflow
        _engine = create_async_engine(settings.database_url, **engine_kwargs)
    return _engine


def get_sessionmaker() -> async_sessionmaker[AsyncSession]:
    global _session_factory
    if _session_factory is None:
        _session_factory = async_sessionmaker(get_engine(), expire_on_commit=False)
    return _session_factory


async def get_session_factory() -> async_sessionmaker[AsyncSession]:
    """
    Social core services open one short transaction per table operation,
    so they take the factory instead of a request-scoped session.
    """
    return get_sessionmaker()


async def close_db_connection() -> None:
    global _engine, _session_factory
    if _engine is not None:
        await _engine.dispose()
        logger.info("db.closed")
    _engine = None
    _session_factory = None


def _error_code(exc: DBAPIError):
    orig = exc.orig
    code = getattr(orig, "sqlstate", None) or getattr(orig, "pgcode", None)
    if code:
        return code
    args = getattr(orig, "args", ())
    if args and isinstance(args[0], int):
        return args[0]
    return None


def is_schema_mismatch(exc: DBAPIError) -> bool:
    """True when the statement referenced a column the table does not have"""
    code = _error_code(exc)
    if code in (PG_UNDEFINED_COLUMN, MYSQL_BAD_FIELD_ERROR):
        return True
    message = str(exc.orig).lower()
    return (
        "no such column" in message
        or "has no column named" in message
        or "unknown column" in message
    )


def is_missing_table(exc: DBAPIError) -> bool:
    """True when the statement referenced a table this deployment does not have"""
    code = _error_code(exc)
    if code in (PG_UNDEFINED_TABLE, MYSQL_NO_SUCH_TABLE):
        return True
    return "no such table" in str(exc.orig).lower()
