"""
Repository for the chat_memory table, plus prompt assembly from stored turns.
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import List, Sequence

import aiosqlite

from elaina.util.logger import get_logger

logger = get_logger("memory_repo")

USER_ROLE = "user"
ASSISTANT_ROLE = "assistant"


@dataclass(slots=True)
class Turn:
    """One stored line of conversation."""
    role: str
    content: str
    created_at: int = 0


class MemoryRepository:
    """CRUD for the chat_memory table."""

    async def save_turn(self, conn: aiosqlite.Connection, chat_id: str, role: str, content: str) -> None:
        """Append one turn. Blank content is ignored."""
        if not content.strip():
            return
        await conn.execute(
            "INSERT INTO chat_memory (chat_id, role, content, created_at) VALUES (?, ?, ?, ?)",
            (str(chat_id), role, content, int(time.time())),
        )

    async def load(self, conn: aiosqlite.Connection, chat_id: str, turns: int) -> List[Turn]:
        """Return the last ``turns`` exchanges (``2 * turns`` rows), oldest first."""
        if turns <= 0:
            return []
        async with conn.execute(
            "SELECT role, content, created_at FROM chat_memory WHERE chat_id = ? ORDER BY id DESC LIMIT ?",
            (str(chat_id), turns * 2),
        ) as cursor:
            rows = await cursor.fetchall()
        return [Turn(role=row[0], content=row[1], created_at=int(row[2] or 0)) for row in reversed(rows)]

    async def trim(self, conn: aiosqlite.Connection, chat_id: str, keep_rows: int) -> None:
        """Delete everything but the newest ``keep_rows`` rows of a chat."""
        await conn.execute(
            """
            DELETE FROM chat_memory WHERE chat_id = ? AND id NOT IN (
                SELECT id FROM chat_memory WHERE chat_id = ? ORDER BY id DESC LIMIT ?
            )
            """,
            (str(chat_id), str(chat_id), max(keep_rows, 0)),
        )


def build_context(history: Sequence[Turn], question: str, char_budget: int, bot_name: str = "Elaina") -> str:
    """Fold prior turns and a new question into one prompt.

    Lines are added oldest first until the next one would push the context
    past ``char_budget``. Without history the question is returned as is.
    """
    if not history:
        return question

    parts = ["Previous conversation (summary):"]
    size = len(parts[0]) + 1
    for turn in history:
        speaker = bot_name if turn.role == ASSISTANT_ROLE else "User"
        line = f"{speaker}: {turn.content.strip()}"
        if size + len(line) + 1 > char_budget:
            break
        parts.append(line)
        size += len(line) + 1

    return "\n".join(parts) + "\n\nNew question:\n" + question
