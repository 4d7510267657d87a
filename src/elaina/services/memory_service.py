"""
ConversationMemory: short rolling history per chat for the fallback responder.
"""

from __future__ import annotations

from elaina.database.db_connection import ConnectionManager
from elaina.repositories.memory_repo import ASSISTANT_ROLE, USER_ROLE, MemoryRepository, build_context
from elaina.util.logger import get_logger

logger = get_logger("memory_service")


class ConversationMemory:
    """
    Stores user/assistant turns and folds them into prompts.

    Args:
        connection: Shared database connection.
        turns: Exchanges kept per chat (0 disables memory).
        char_budget: Upper bound on the history part of a prompt.
        bot_name: Speaker label for assistant turns.
    """

    def __init__(self, connection: ConnectionManager, *, turns: int = 8, char_budget: int = 4000, bot_name: str = "Elaina") -> None:
        self._db = connection
        self._repo = MemoryRepository()
        self.turns = turns
        self.char_budget = char_budget
        self.bot_name = bot_name

    @property
    def enabled(self) -> bool:
        return self.turns > 0

    async def context(self, chat_id: str, question: str) -> str:
        if not self.enabled:
            return question
        async with self._db.read() as conn:
            history = await self._repo.load(conn, chat_id, self.turns)
        return build_context(history, question, self.char_budget, self.bot_name)

    async def remember(self, chat_id: str, question: str, answer: str) -> None:
        """Save one exchange and drop rows beyond the configured window."""
        if not self.enabled:
            return
        async with self._db.transaction() as conn:
            await self._repo.save_turn(conn, chat_id, USER_ROLE, question)
            await self._repo.save_turn(conn, chat_id, ASSISTANT_ROLE, answer)
            await self._repo.trim(conn, chat_id, self.turns * 2)
        logger.debug("[MEMORY] Saved exchange for %s", chat_id)
