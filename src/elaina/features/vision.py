"""Image analysis: an image whose caption contains the trigger word."""

from __future__ import annotations

import asyncio

from elaina.ai.llm_engine import LLMEngine
from elaina.datatypes.chat_datatypes import AttachmentKind
from elaina.datatypes.envelope_datatypes import MessageEnvelope
from elaina.datatypes.routing_datatypes import GatingDecision, HandlerCategory
from elaina.features.base import TransportHandler
from elaina.routing.matcher import TriggerMatcher
from elaina.transport.ports import ChatTransport
from elaina.util.errors import LLMError, TransportError
from elaina.util.image_utils import prepare_for_vision
from elaina.util.logger import get_logger

logger = get_logger("vision")

VISION_SYSTEM_PROMPT = (
    "You are Elaina, a smart and warm visual analyst. Describe and interpret the image "
    "concisely, answer the user's question about it if there is one, and reply in the "
    "language the user writes in."
)
DEFAULT_VISION_PROMPT = "What is in this image?"


class VisionHandler(TransportHandler):

    name = "vision"
    category = HandlerCategory.ATTACHMENT

    def __init__(
        self,
        transport: ChatTransport,
        llm: LLMEngine,
        matcher: TriggerMatcher,
        *,
        system_prompt: str = VISION_SYSTEM_PROMPT,
    ) -> None:
        super().__init__(transport)
        self.llm = llm
        self.matcher = matcher
        self.system_prompt = system_prompt

    async def try_handle(self, envelope: MessageEnvelope, gating: GatingDecision) -> bool:
        image = envelope.first_attachment(AttachmentKind.IMAGE)
        if image is None or not envelope.has_trigger:
            return False

        prompt = envelope.prompt_text(self.matcher.strip_trigger) or DEFAULT_VISION_PROMPT
        try:
            data = await self.transport.download(image)
            jpeg, mime = await asyncio.to_thread(prepare_for_vision, data)
        except TransportError as exc:
            logger.warning("[VISION] Download failed for %s: %s", envelope.message_id, exc)
            await self.reply(envelope, "Sorry, I couldn't download that image.")
            return True
        except ValueError as exc:
            logger.warning("[VISION] Unreadable image in %s: %s", envelope.message_id, exc)
            await self.reply(envelope, "Sorry, I couldn't read that image.")
            return True

        try:
            answer = await self.llm.ask_vision(self.system_prompt, prompt, jpeg, mime)
        except LLMError as exc:
            logger.error("[VISION] Model request failed: %s", exc)
            await self.reply(envelope, "Sorry, I couldn't analyse the image right now.")
            return True

        await self.reply(envelope, answer)
        return True
