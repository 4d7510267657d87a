"""
Repository for the chat_state table.
"""

from __future__ import annotations

import time

import aiosqlite

from elaina.datatypes.chat_state import DEFAULT_PERSONA, ChatState, Persona
from elaina.util.logger import get_logger

logger = get_logger("chat_state_repo")


class ChatStateRepository:
    """CRUD for the chat_state table.

    Setting one field never touches the other: both setters are upserts
    that only update their own column on conflict.
    """

    async def get(self, conn: aiosqlite.Connection, chat_id: str) -> ChatState:
        """Return the stored state, or defaults for a chat never configured."""
        async with conn.execute(
            "SELECT persona, pro_mode, updated_at FROM chat_state WHERE chat_id = ?",
            (str(chat_id),),
        ) as cursor:
            row = await cursor.fetchone()

        if row is None:
            return ChatState(chat_id=str(chat_id))

        persona = Persona.parse(row[0]) or DEFAULT_PERSONA
        return ChatState(
            chat_id=str(chat_id),
            persona=persona,
            pro_mode=bool(row[1]),
            updated_at=int(row[2] or 0),
        )

    async def set_persona(self, conn: aiosqlite.Connection, chat_id: str, persona: Persona) -> None:
        await conn.execute(
            """
            INSERT INTO chat_state (chat_id, persona, pro_mode, updated_at)
            VALUES (?, ?, 0, ?)
            ON CONFLICT(chat_id) DO UPDATE SET
                persona    = excluded.persona,
                updated_at = excluded.updated_at
            """,
            (str(chat_id), persona.value, int(time.time())),
        )

    async def set_pro_mode(self, conn: aiosqlite.Connection, chat_id: str, enabled: bool) -> None:
        await conn.execute(
            """
            INSERT INTO chat_state (chat_id, persona, pro_mode, updated_at)
            VALUES (?, ?, ?, ?)
            ON CONFLICT(chat_id) DO UPDATE SET
                pro_mode   = excluded.pro_mode,
                updated_at = excluded.updated_at
            """,
            (str(chat_id), DEFAULT_PERSONA.value, 1 if enabled else 0, int(time.time())),
        )
