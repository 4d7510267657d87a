"""System prompt selection for the conversational responder."""

from __future__ import annotations

from typing import Mapping

from elaina.datatypes.chat_state import DEFAULT_PERSONA, Persona


def build_system_prompt(persona: Persona, pro_mode: bool, prompts: Mapping[str, str]) -> str:
    """
    Pick the system prompt for a chat.

    ``elaina1`` and ``elaina2`` each map to their own prompt. Pro mode
    stacks both: the base persona first, then the analytical one.
    """
    base = prompts.get(DEFAULT_PERSONA.value, "")
    pro = prompts.get(Persona.ELAINA2.value, "")
    if pro_mode:
        return f"{base}\n\n{pro}".strip()
    return prompts.get(persona.value, base)
