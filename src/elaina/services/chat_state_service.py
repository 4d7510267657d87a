"""
ChatStateService: persona and pro-mode persistence for chats.
"""

from __future__ import annotations

from elaina.database.db_connection import ConnectionManager
from elaina.datatypes.chat_state import ChatState, Persona
from elaina.repositories.chat_state_repo import ChatStateRepository
from elaina.util.logger import get_logger

logger = get_logger("chat_state_service")


class ChatStateService:
    """Transactions around :class:`ChatStateRepository`."""

    def __init__(self, connection: ConnectionManager) -> None:
        self._db = connection
        self._repo = ChatStateRepository()

    async def get(self, chat_id: str) -> ChatState:
        async with self._db.read() as conn:
            return await self._repo.get(conn, chat_id)

    async def set_persona(self, chat_id: str, persona: Persona) -> None:
        async with self._db.transaction() as conn:
            await self._repo.set_persona(conn, chat_id, persona)
        logger.info("[CHAT STATE] Persona for %s set to %s", chat_id, persona)

    async def set_pro_mode(self, chat_id: str, enabled: bool) -> None:
        async with self._db.transaction() as conn:
            await self._repo.set_pro_mode(conn, chat_id, enabled)
        logger.info("[CHAT STATE] Pro mode for %s set to %s", chat_id, enabled)
