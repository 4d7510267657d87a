"""Shared plumbing for feature handlers."""

from __future__ import annotations

from typing import Sequence

from elaina.datatypes.chat_datatypes import UserID
from elaina.datatypes.envelope_datatypes import MessageEnvelope
from elaina.routing.handler import MessageHandler
from elaina.transport.ports import ChatTransport


class TransportHandler(MessageHandler):
    """A handler that answers through a :class:`ChatTransport`.

    Transport failures propagate; the dispatcher logs them and still counts
    the message as claimed.
    """

    def __init__(self, transport: ChatTransport) -> None:
        self.transport = transport

    async def reply(self, envelope: MessageEnvelope, text: str, *, mentions: Sequence[UserID] = ()) -> None:
        await self.transport.send_text(envelope.chat_id, text, reply_to=envelope.message_id, mentions=mentions)

    async def sender_is_admin(self, envelope: MessageEnvelope) -> bool:
        """Owners always; in groups, members the transport reports as admins."""
        if envelope.is_owner:
            return True
        if not envelope.is_group:
            return False
        return await self.transport.is_admin(envelope.group_id, envelope.sender_id)
