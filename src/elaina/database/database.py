"""
Database lifecycle: open the shared connection, create the schema, prune
old evaluation claims, close.
"""

from __future__ import annotations

import time
from pathlib import Path

from elaina.database.db_connection import ConnectionManager, db_connection
from elaina.database.db_schema import SchemaManager
from elaina.util.logger import get_logger

logger = get_logger("database")

# Evaluation claims only need to outlive redelivery of the same message.
EVALUATION_RETENTION_SECONDS = 7 * 24 * 3600


class Database:
    """
    Startup/shutdown coordinator around a :class:`ConnectionManager`.

    Lifecycle:
        1. ``await initialize()`` at program startup
        2. stores use ``connection.read()`` / ``connection.transaction()``
        3. ``await shutdown()`` at program end
    """

    def __init__(self, db_path: Path, connection: ConnectionManager = db_connection):
        self.db_path = db_path
        self.connection = connection
        self._initialized = False

    async def initialize(self) -> None:
        """Open the connection and create the schema. Safe to call twice."""
        if self._initialized:
            logger.debug("[DATABASE] Already initialized, skipping")
            return

        await self.connection.open(self.db_path)
        await SchemaManager.initialize_schema(self.connection.connection)
        self._initialized = True
        logger.info("[DATABASE] Database initialized at %s", self.db_path)

    async def prune_evaluations(self, now: int | None = None) -> int:
        """Delete evaluation claims older than the retention window.

        Returns:
            Number of rows removed.
        """
        cutoff = (now if now is not None else int(time.time())) - EVALUATION_RETENTION_SECONDS
        async with self.connection.transaction() as conn:
            cursor = await conn.execute(
                "DELETE FROM moderation_evaluations WHERE evaluated_at < ?",
                (cutoff,),
            )
            removed = cursor.rowcount or 0
        if removed:
            logger.info("[MAINTENANCE] Pruned %d old evaluation claims", removed)
        return removed

    async def shutdown(self) -> None:
        await self.connection.close()
        self._initialized = False
