"""
ModerationStore: the durable side of the moderation state machine.

Every public method runs in its own transaction, so each ledger change is
atomic with respect to concurrently running message tasks. Every ledger
mutation is logged together with its reason.
"""

from __future__ import annotations

from typing import List

from elaina.database.db_connection import ConnectionManager
from elaina.datatypes.moderation_datatypes import PeraturanState, WarnChange, WarnRecord
from elaina.repositories.moderation_repo import ModerationRepository
from elaina.util.logger import get_logger

logger = get_logger("moderation_store")


class ModerationStore:
    """Transactions around :class:`ModerationRepository`."""

    def __init__(self, connection: ConnectionManager) -> None:
        self._db = connection
        self._repo = ModerationRepository()

    async def get_rules(self, group_id: str) -> PeraturanState:
        async with self._db.read() as conn:
            return await self._repo.get_rules(conn, group_id)

    async def set_rules(self, group_id: str, enabled: bool | None = None, text: str | None = None) -> None:
        async with self._db.transaction() as conn:
            await self._repo.set_rules(conn, group_id, enabled, text)
        logger.info(
            "[MODERATION STORE] Group %s rules updated (enabled=%s, text=%s)",
            group_id,
            "unchanged" if enabled is None else enabled,
            "unchanged" if text is None else f"{len(text)} chars",
        )

    async def get_warn(self, group_id: str, user_id: str) -> int:
        async with self._db.read() as conn:
            return await self._repo.get_warn(conn, group_id, user_id)

    async def record_violation(self, group_id: str, user_id: str, reason: str, threshold: int) -> WarnChange:
        """Add one warning and report the count before and after it.

        Both counts are read inside the write transaction, so of several
        concurrent violations exactly one sees :attr:`WarnChange.breached`.
        """
        async with self._db.transaction() as conn:
            previous = await self._repo.get_warn(conn, group_id, user_id)
            count = await self._repo.add_warn(conn, group_id, user_id, reason, threshold)
        logger.info("[LEDGER] +1 warn for %s in %s: %d -> %d/%d (%s)", user_id, group_id, previous, count, threshold, reason)
        return WarnChange(previous=previous, count=count, threshold=threshold)

    async def add_warn(self, group_id: str, user_id: str, reason: str, threshold: int) -> int:
        return (await self.record_violation(group_id, user_id, reason, threshold)).count

    async def decrement_warn(self, group_id: str, user_id: str, reason: str) -> int:
        async with self._db.transaction() as conn:
            count = await self._repo.decrement_warn(conn, group_id, user_id, reason)
        logger.info("[LEDGER] -1 warn for %s in %s -> %d (%s)", user_id, group_id, count, reason)
        return count

    async def clear_warn(self, group_id: str, user_id: str, reason: str) -> int:
        async with self._db.transaction() as conn:
            previous = await self._repo.clear_warn(conn, group_id, user_id, reason)
        logger.info("[LEDGER] Reset warns for %s in %s from %d to 0 (%s)", user_id, group_id, previous, reason)
        return previous

    async def list_warns(self, group_id: str, limit: int = 5) -> List[WarnRecord]:
        async with self._db.read() as conn:
            return await self._repo.list_warns(conn, group_id, limit)

    async def claim_evaluation(self, message_id: str, group_id: str) -> bool:
        async with self._db.transaction() as conn:
            return await self._repo.claim_evaluation(conn, message_id, group_id)
