"""
Per-chat persona and mode state.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class Persona(Enum):
    """Named system-prompt profiles the fallback responder can speak as."""

    ELAINA1 = "elaina1"
    ELAINA2 = "elaina2"

    def __str__(self) -> str:
        return self.value

    @classmethod
    def parse(cls, text: str) -> "Persona | None":
        """Accept ``elaina1``/``elaina2`` as well as the short forms ``1``/``2``."""
        value = text.strip().lower()
        if value in ("1", "2"):
            value = f"elaina{value}"
        try:
            return cls(value)
        except ValueError:
            return None


DEFAULT_PERSONA = Persona.ELAINA1


@dataclass(slots=True)
class ChatState:
    """Stored persona and pro-mode flag for one chat.

    Chats that were never configured read back as the defaults
    (``elaina1``, pro mode off) with ``updated_at`` of 0.
    """

    chat_id: str
    persona: Persona = DEFAULT_PERSONA
    pro_mode: bool = False
    updated_at: int = 0
