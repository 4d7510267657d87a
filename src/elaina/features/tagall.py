"""``!tagall`` / ``<trigger> tagall``: mention every member of the group."""

from __future__ import annotations

import re

from elaina.datatypes.envelope_datatypes import MessageEnvelope
from elaina.datatypes.routing_datatypes import GatingDecision, HandlerCategory
from elaina.features.base import TransportHandler
from elaina.transport.ports import ChatTransport
from elaina.util.errors import TransportError
from elaina.util.logger import get_logger

logger = get_logger("tagall")


class TagAllHandler(TransportHandler):

    name = "tagall"
    category = HandlerCategory.COMMAND

    def __init__(self, transport: ChatTransport, *, trigger_word: str = "elaina", prefix: str = "!") -> None:
        super().__init__(transport)
        self._pattern = re.compile(
            rf"^(?:{re.escape(prefix)}tagall|{re.escape(trigger_word)}\s+tagall)(?!\w)",
            re.IGNORECASE,
        )

    def matches(self, envelope: MessageEnvelope) -> bool:
        return bool(self._pattern.match(envelope.text))

    async def try_handle(self, envelope: MessageEnvelope, gating: GatingDecision) -> bool:
        if not self.matches(envelope):
            return False
        if not envelope.is_group:
            await self.reply(envelope, "This command only works in a group.")
            return True

        try:
            info = await self.transport.group_info(envelope.group_id)
        except TransportError as exc:
            logger.warning("[TAGALL] Could not list members of %s: %s", envelope.group_id, exc)
            await self.reply(envelope, "Could not fetch the member list.")
            return True

        if not info.members:
            await self.reply(envelope, "Could not fetch the member list.")
            return True

        body = "Tag-all:\n" + " ".join(self.transport.mention(member) for member in info.members)
        await self.reply(envelope, body, mentions=info.members)
        logger.info("[TAGALL] %s mentioned %d members in %s", envelope.sender_id, len(info.members), envelope.group_id)
        return True
