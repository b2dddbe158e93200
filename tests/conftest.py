"""Shared test setup.

Settings are read when levelcheck.config is first imported, so the
environment is prepared here before any test module imports the app.
"""

import asyncio
import os
import sys
import tempfile
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

_TMP_DIR = tempfile.mkdtemp(prefix="levelcheck-tests-")

os.environ.setdefault("JWT_SECRET", "test-secret-for-levelcheck-0123456789abcdef")
os.environ["DATABASE_PATH"] = str(Path(_TMP_DIR) / "levelcheck_test.db")
os.environ["DATABASE_URL"] = ""

# Imported after the environment is set; importing the app loads settings
from levelcheck.db.database import SCHEMA_PATH  # noqa: E402


async def open_memory_db():
    """In-memory database with the full schema, as used by the engine tests."""
    import aiosqlite

    db = await aiosqlite.connect(":memory:")
    db.row_factory = aiosqlite.Row
    await db.execute("PRAGMA foreign_keys = ON")
    await db.executescript(SCHEMA_PATH.read_text())
    await db.commit()
    return db


def run_with_db(scenario):
    """Run ``scenario(db)`` against a fresh in-memory database."""
    async def _runner():
        db = await open_memory_db()
        try:
            return await scenario(db)
        finally:
            await db.close()

    return asyncio.run(_runner())


@pytest.fixture
def with_db():
    return run_with_db
