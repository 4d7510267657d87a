"""
Voice notes.

Every audio message is transcribed. Only transcripts that call the bot by
name (including common mishearings) get an answer; the rest are claimed
without a reply so no other feature answers a voice note.
"""

from __future__ import annotations

import re
from typing import Iterable

from elaina.ai.llm_engine import LLMEngine
from elaina.datatypes.chat_datatypes import AttachmentKind
from elaina.datatypes.envelope_datatypes import MessageEnvelope
from elaina.datatypes.routing_datatypes import GatingDecision, HandlerCategory
from elaina.features.base import TransportHandler
from elaina.transport.ports import ChatTransport
from elaina.util.errors import LLMError, TransportError
from elaina.util.logger import get_logger

logger = get_logger("voice_note")

# Common speech-to-text renderings of a name
SPOKEN_VARIANTS = {
    "elaina": ("eleina", "elena", "elina"),
}

VOICE_SYSTEM_PROMPT = (
    "You are {bot}, a clever and friendly witch. The user spoke to you in a voice note; "
    "answer briefly and naturally in the language they used."
)


def spoken_name_pattern(names: Iterable[str]) -> re.Pattern[str]:
    """Whole-word, case-insensitive pattern for ``names`` and their known mishearings."""
    words: list[str] = []
    for name in names:
        name = (name or "").strip().lower()
        for word in (name, *SPOKEN_VARIANTS.get(name, ())):
            if word and word not in words:
                words.append(word)
    if not words:
        raise ValueError("at least one name is required")
    return re.compile(r"(?<!\w)(" + "|".join(map(re.escape, words)) + r")(?!\w)", re.IGNORECASE)


class VoiceNoteHandler(TransportHandler):

    name = "voice_note"
    category = HandlerCategory.VOICE

    def __init__(
        self,
        transport: ChatTransport,
        llm: LLMEngine,
        *,
        names: Iterable[str] = ("elaina",),
        bot_name: str = "Elaina",
        system_prompt: str = VOICE_SYSTEM_PROMPT,
    ) -> None:
        super().__init__(transport)
        self.llm = llm
        self.name_pattern = spoken_name_pattern(names)
        self.system_prompt = system_prompt.format(bot=bot_name)

    def addressed_text(self, transcript: str) -> str | None:
        """The transcript with the name removed, or None when the bot isn't addressed."""
        if not self.name_pattern.search(transcript):
            return None
        cleaned = self.name_pattern.sub("", transcript)
        return re.sub(r"\s+", " ", cleaned).strip(" ,.!?")

    async def try_handle(self, envelope: MessageEnvelope, gating: GatingDecision) -> bool:
        audio = envelope.first_attachment(AttachmentKind.AUDIO)
        if audio is None:
            return False

        try:
            data = await self.transport.download(audio)
        except TransportError as exc:
            logger.warning("[VOICE] Download failed for %s: %s", envelope.message_id, exc)
            await self.reply(envelope, "Sorry, failed to fetch the voice note.")
            return True

        try:
            transcript = (await self.llm.transcribe(data, audio.content_type or "audio/ogg")).strip()
        except LLMError as exc:
            logger.warning("[VOICE] Transcription failed for %s: %s", envelope.message_id, exc)
            return True

        if not transcript:
            return True
        question = self.addressed_text(transcript)
        if question is None:
            logger.debug("[VOICE] %s does not address the bot", envelope.message_id)
            return True

        try:
            answer = await self.llm.ask_text(self.system_prompt, question or transcript)
        except LLMError as exc:
            logger.error("[VOICE] Model request failed: %s", exc)
            await self.reply(envelope, "Sorry, I couldn't answer that right now.")
            return True

        await self.reply(envelope, answer)
        return True
