"""
The single aiosqlite connection shared by every store.

Each inbound message runs in its own task, so stores are hit concurrently.
WAL lets reads proceed freely; writes queue on one semaphore, which also
makes every ``transaction()`` block atomic with respect to other tasks
(the warning ledger relies on that for its read-modify-write steps).
"""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncIterator

import aiosqlite

from elaina.util.logger import get_logger

logger = get_logger("database_connection")

PRAGMAS = (
    "PRAGMA journal_mode = WAL",
    "PRAGMA foreign_keys = ON",
    "PRAGMA synchronous = NORMAL",
    "PRAGMA temp_store = MEMORY",
    "PRAGMA busy_timeout = 5000",
)


class ConnectionManager:
    """Owns the connection; hands it out through ``read()`` and ``transaction()``."""

    def __init__(self) -> None:
        self._conn: aiosqlite.Connection | None = None
        self._writer = asyncio.Semaphore(1)
        self._path: Path | None = None

    @property
    def is_open(self) -> bool:
        return self._conn is not None

    @property
    def path(self) -> Path | None:
        return self._path

    @property
    def connection(self) -> aiosqlite.Connection:
        if self._conn is None:
            raise RuntimeError("database connection is not open; call open(path) during startup")
        return self._conn

    async def open(self, path: Path) -> None:
        """Connect to ``path`` (creating parent directories) and apply ``PRAGMAS``."""
        if self._conn is not None:
            logger.warning("[DB CONNECTION] Already open at %s; ignoring open(%s)", self._path, path)
            return

        path.parent.mkdir(parents=True, exist_ok=True)
        conn = await aiosqlite.connect(path)
        conn.row_factory = aiosqlite.Row
        for pragma in PRAGMAS:
            await conn.execute(pragma)
        await conn.commit()

        self._conn, self._path = conn, path
        logger.info("[DB CONNECTION] Opened %s", path)

    async def close(self) -> None:
        if self._conn is None:
            return
        conn, self._conn = self._conn, None
        try:
            await conn.execute("PRAGMA wal_checkpoint(TRUNCATE)")
            await conn.commit()
        except aiosqlite.Error:
            logger.exception("[DB CONNECTION] WAL checkpoint failed during close")
        finally:
            await conn.close()
            logger.info("[DB CONNECTION] Closed %s", self._path)

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[aiosqlite.Connection]:
        """Exclusive write block: commit on success, roll back on any exception (cancellation included)."""
        conn = self.connection
        async with self._writer:
            try:
                yield conn
            except BaseException:
                await conn.rollback()
                raise
            await conn.commit()

    @asynccontextmanager
    async def read(self) -> AsyncIterator[aiosqlite.Connection]:
        yield self.connection


db_connection = ConnectionManager()
