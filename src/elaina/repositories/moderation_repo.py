"""
Repository for per-group moderation state: rules, the warning ledger and
evaluation claims.

Counts are changed with single SQL statements (``MIN``/``MAX`` arithmetic in
the upsert) so a caller holding a write transaction never has to read, add
and write back in Python.
"""

from __future__ import annotations

import time
from typing import List

import aiosqlite

from elaina.datatypes.moderation_datatypes import PeraturanState, WarnRecord
from elaina.util.logger import get_logger

logger = get_logger("moderation_repo")


class ModerationRepository:
    """CRUD for peraturan_state, warn_records and moderation_evaluations."""

    # ------------------------------------------------------------------
    # Rules
    # ------------------------------------------------------------------

    async def get_rules(self, conn: aiosqlite.Connection, group_id: str) -> PeraturanState:
        async with conn.execute(
            "SELECT enabled, rules_text, updated_at FROM peraturan_state WHERE group_id = ?",
            (str(group_id),),
        ) as cursor:
            row = await cursor.fetchone()
        if row is None:
            return PeraturanState(group_id=str(group_id))
        return PeraturanState(
            group_id=str(group_id),
            enabled=bool(row[0]),
            rules_text=row[1] or "",
            updated_at=int(row[2] or 0),
        )

    async def set_rules(
        self,
        conn: aiosqlite.Connection,
        group_id: str,
        enabled: bool | None = None,
        text: str | None = None,
    ) -> None:
        """Upsert the group's moderation row.

        ``None`` leaves a column as it is (or at its default for a new row),
        so turning moderation off keeps the stored rules and a sync keeps the
        enabled flag.
        """
        await conn.execute(
            """
            INSERT INTO peraturan_state (group_id, enabled, rules_text, updated_at)
            VALUES (?, COALESCE(?, 0), COALESCE(?, ''), ?)
            ON CONFLICT(group_id) DO UPDATE SET
                enabled    = COALESCE(?, peraturan_state.enabled),
                rules_text = COALESCE(?, peraturan_state.rules_text)
            """,
            (
                str(group_id),
                None if enabled is None else int(enabled),
                text,
                int(time.time()),
                None if enabled is None else int(enabled),
                text,
            ),
        )

    # ------------------------------------------------------------------
    # Warning ledger
    # ------------------------------------------------------------------

    async def get_warn(self, conn: aiosqlite.Connection, group_id: str, user_id: str) -> int:
        async with conn.execute(
            "SELECT count FROM warn_records WHERE group_id = ? AND user_id = ?",
            (str(group_id), str(user_id)),
        ) as cursor:
            row = await cursor.fetchone()
        return int(row[0]) if row else 0

    async def add_warn(
        self,
        conn: aiosqlite.Connection,
        group_id: str,
        user_id: str,
        reason: str,
        threshold: int,
    ) -> int:
        """Increment the user's count by one, clamped at ``threshold``.

        Returns:
            The count after the increment.
        """
        now = int(time.time())
        await conn.execute(
            """
            INSERT INTO warn_records (group_id, user_id, count, last_reason, updated_at)
            VALUES (?, ?, MIN(1, ?), ?, ?)
            ON CONFLICT(group_id, user_id) DO UPDATE SET
                count       = MIN(warn_records.count + 1, ?),
                last_reason = excluded.last_reason,
                updated_at  = excluded.updated_at
            """,
            (str(group_id), str(user_id), threshold, reason, now, threshold),
        )
        return await self.get_warn(conn, group_id, user_id)

    async def decrement_warn(
        self,
        conn: aiosqlite.Connection,
        group_id: str,
        user_id: str,
        reason: str,
    ) -> int:
        """Decrement by one with a floor of 0; a record reaching 0 is deleted.

        Returns:
            The count after the decrement.
        """
        await conn.execute(
            """
            UPDATE warn_records
            SET count = MAX(count - 1, 0), last_reason = ?, updated_at = ?
            WHERE group_id = ? AND user_id = ?
            """,
            (reason, int(time.time()), str(group_id), str(user_id)),
        )
        await conn.execute(
            "DELETE FROM warn_records WHERE group_id = ? AND user_id = ? AND count = 0",
            (str(group_id), str(user_id)),
        )
        return await self.get_warn(conn, group_id, user_id)

    async def clear_warn(
        self,
        conn: aiosqlite.Connection,
        group_id: str,
        user_id: str,
        reason: str,
    ) -> int:
        """Reset the user's count to 0, keeping the row and its reason.

        Returns:
            The count before the reset.
        """
        previous = await self.get_warn(conn, group_id, user_id)
        await conn.execute(
            """
            UPDATE warn_records SET count = 0, last_reason = ?, updated_at = ?
            WHERE group_id = ? AND user_id = ?
            """,
            (reason, int(time.time()), str(group_id), str(user_id)),
        )
        return previous

    async def list_warns(
        self, conn: aiosqlite.Connection, group_id: str, limit: int = 5
    ) -> List[WarnRecord]:
        """Users with a non-zero count, highest first."""
        async with conn.execute(
            """
            SELECT user_id, count, last_reason, updated_at FROM warn_records
            WHERE group_id = ? AND count > 0
            ORDER BY count DESC, updated_at DESC
            LIMIT ?
            """,
            (str(group_id), limit),
        ) as cursor:
            rows = await cursor.fetchall()
        return [
            WarnRecord(
                group_id=str(group_id),
                user_id=str(row[0]),
                count=int(row[1]),
                last_reason=row[2] or "",
                updated_at=int(row[3] or 0),
            )
            for row in rows
        ]

    # ------------------------------------------------------------------
    # Evaluation claims
    # ------------------------------------------------------------------

    async def claim_evaluation(self, conn: aiosqlite.Connection, message_id: str, group_id: str) -> bool:
        """Record that ``message_id`` is being evaluated.

        Returns:
            True for the first claim of a message, False for every later one.
        """
        cursor = await conn.execute(
            "INSERT OR IGNORE INTO moderation_evaluations (message_id, group_id, evaluated_at) VALUES (?, ?, ?)",
            (str(message_id), str(group_id), int(time.time())),
        )
        return cursor.rowcount == 1
