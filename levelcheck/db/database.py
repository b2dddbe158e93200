"""Database access for SQLite (aiosqlite) and PostgreSQL (asyncpg).

Backend is selected via the DATABASE_URL setting:
  - starts with "postgresql://" → asyncpg
  - absent / empty             → aiosqlite (uses DATABASE_PATH)

The PostgreSQL connection is wrapped so the store can be written once against
the aiosqlite interface:
  - ? placeholders → $1, $2, …
  - execute() returns a cursor with fetchone()/fetchall()
  - rows support access by column name
"""

import re
import logging
from collections.abc import AsyncGenerator
from pathlib import Path

from alembic import command
from alembic.config import Config

from levelcheck.config import settings

logger = logging.getLogger(__name__)

PROJECT_ROOT = Path(__file__).resolve().parents[2]
SCHEMA_PATH = Path(__file__).resolve().parent / "schema.sql"


def _is_postgres() -> bool:
    return settings.database_url.startswith("postgresql://")


async def _connect_sqlite():
    import aiosqlite
    db = await aiosqlite.connect(settings.database_path)
    db.row_factory = aiosqlite.Row
    await db.execute("PRAGMA foreign_keys = ON")
    return db


# ── PostgreSQL wrapper ────────────────────────────────────────────────

_pg_pool = None


async def _get_pg_pool():
    global _pg_pool
    if _pg_pool is None:
        import asyncpg
        _pg_pool = await asyncpg.create_pool(
            settings.database_url,
            min_size=2,
            max_size=10,
        )
    return _pg_pool


class PgRow:
    """asyncpg Record with the sqlite3.Row access pattern (row["col"], keys())."""

    __slots__ = ("_record",)

    def __init__(self, record):
        self._record = record

    def __getitem__(self, key):
        return self._record[key]

    def __contains__(self, key):
        return key in self._record.keys()

    def keys(self):
        return self._record.keys()


# Matches quoted strings (left alone) or a bare ? placeholder
_PARAM_RE = re.compile(r"'[^']*'|(\?)")


def _convert_placeholders(sql: str) -> str:
    """Replace ? with $1, $2, … for asyncpg, skipping ?s inside string literals."""
    counter = [0]

    def _replacer(match):
        if match.group(1) is None:
            return match.group(0)
        counter[0] += 1
        return f"${counter[0]}"

    return _PARAM_RE.sub(_replacer, sql)


class PgCursor:
    """Result of PgConnection.execute(), consumed like an aiosqlite cursor."""

    __slots__ = ("_rows", "_idx")

    def __init__(self, rows=None):
        self._rows = rows or []
        self._idx = 0

    async def fetchone(self):
        if self._idx < len(self._rows):
            row = self._rows[self._idx]
            self._idx += 1
            return PgRow(row)
        return None

    async def fetchall(self):
        remaining = self._rows[self._idx:]
        self._idx = len(self._rows)
        return [PgRow(r) for r in remaining]


class PgConnection:
    """Wraps an asyncpg connection to present the subset of aiosqlite we use."""

    def __init__(self, conn):
        self._conn = conn

    async def execute(self, sql: str, params=None):
        pg_sql = _convert_placeholders(sql)
        args = tuple(params) if params else ()
        stripped = pg_sql.lstrip().upper()
        if stripped.startswith("SELECT") or "RETURNING" in stripped:
            return PgCursor(rows=await self._conn.fetch(pg_sql, *args))
        await self._conn.execute(pg_sql, *args)
        return PgCursor()

    async def commit(self):
        # asyncpg runs each statement in autocommit mode
        pass

    async def close(self):
        # Pool release is handled by get_db()
        pass


# ── Public API ────────────────────────────────────────────────────────

async def get_db() -> AsyncGenerator:
    """FastAPI dependency that yields a database connection and closes it after the request."""
    if _is_postgres():
        pool = await _get_pg_pool()
        conn = await pool.acquire()
        try:
            yield PgConnection(conn)
        finally:
            await pool.release(conn)
    else:
        db = await _connect_sqlite()
        try:
            yield db
        finally:
            await db.close()


def _run_alembic_upgrade():
    """Run Alembic migrations to head (synchronous, called once at startup)."""
    alembic_cfg = Config(str(PROJECT_ROOT / "alembic.ini"))
    alembic_cfg.set_main_option("script_location", str(PROJECT_ROOT / "migrations"))

    if _is_postgres():
        alembic_cfg.set_main_option("sqlalchemy.url", settings.database_url)
    else:
        alembic_cfg.set_main_option(
            "sqlalchemy.url", f"sqlite:///{settings.database_path}"
        )

    command.upgrade(alembic_cfg, "head")


async def init_db():
    if _is_postgres():
        logger.info("Using PostgreSQL backend: %s", settings.database_url.split("@")[-1])
    else:
        # Ensure parent directory exists (for Docker volume mounts)
        db_path = Path(settings.database_path)
        db_path.parent.mkdir(parents=True, exist_ok=True)
        logger.info("Using SQLite backend: %s", settings.database_path)

    _run_alembic_upgrade()


async def close_db():
    """Shutdown hook: close the connection pool if using PostgreSQL."""
    global _pg_pool
    if _pg_pool is not None:
        await _pg_pool.close()
        _pg_pool = None
