"""
Conversational responder for messages no feature claimed.

A reply that addresses the bot answers about the quoted message: when the
new text is empty or only says "reply this", the quoted text is the
question; otherwise the quoted text is appended as context.
"""

from __future__ import annotations

from typing import Mapping

import aiosqlite

from elaina.ai.llm_engine import LLMEngine
from elaina.ai.persona import build_system_prompt
from elaina.datatypes.envelope_datatypes import MessageEnvelope
from elaina.routing.handler import FallbackHandler
from elaina.routing.matcher import TriggerMatcher
from elaina.services.chat_state_service import ChatStateService
from elaina.services.memory_service import ConversationMemory
from elaina.transport.ports import ChatTransport
from elaina.util.errors import LLMError
from elaina.util.logger import get_logger

logger = get_logger("fallback")

FAILURE_TEXT = "Sorry, I can't think straight right now. Try again in a bit."


def compose_prompt(envelope: MessageEnvelope, matcher: TriggerMatcher) -> str:
    """The question to put to the model, or ``""`` when there is nothing to ask."""
    text = envelope.prompt_text(matcher.strip_trigger)
    quoted = envelope.quoted.text.strip() if envelope.quoted is not None else ""
    if not quoted:
        return text
    if not text or matcher.has_reply_cue(text):
        return quoted
    return f"{text}\n\nContext (replied message): {quoted}"


class FallbackResponder(FallbackHandler):
    """Answers with the chat's persona and recent conversation memory."""

    def __init__(
        self,
        transport: ChatTransport,
        llm: LLMEngine,
        chat_state: ChatStateService,
        memory: ConversationMemory,
        matcher: TriggerMatcher,
        *,
        prompts: Mapping[str, str],
    ) -> None:
        self.transport = transport
        self.llm = llm
        self.chat_state = chat_state
        self.memory = memory
        self.matcher = matcher
        self.prompts = prompts

    async def respond(self, envelope: MessageEnvelope) -> bool:
        question = compose_prompt(envelope, self.matcher)
        if not question:
            return False

        chat_id = envelope.chat_id.value
        state = await self.chat_state.get(chat_id)
        system = build_system_prompt(state.persona, state.pro_mode, self.prompts)
        user_prompt = await self.memory.context(chat_id, question)

        try:
            answer = await self.llm.ask_text(system, user_prompt)
        except LLMError as exc:
            logger.error("[FALLBACK] Model request failed for %s: %s", envelope.message_id, exc)
            await self.transport.send_text(envelope.chat_id, FAILURE_TEXT, reply_to=envelope.message_id)
            return True

        await self.transport.send_text(envelope.chat_id, answer, reply_to=envelope.message_id)

        try:
            await self.memory.remember(chat_id, question, answer)
        except aiosqlite.Error as exc:
            logger.warning("[FALLBACK] Could not save memory for %s: %s", chat_id, exc)
        return True
