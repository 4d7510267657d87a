"""
The narrow interface the routing core and the moderation engine use to talk
to a chat platform. Every operation raises
:class:`~elaina.util.errors.TransportError` on failure.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Protocol, Sequence, runtime_checkable

from elaina.datatypes.chat_datatypes import ChatID, UserID
from elaina.datatypes.envelope_datatypes import AttachmentRef


@dataclass(slots=True)
class GroupInfo:
    """Descriptive metadata of a group.

    Attributes:
        group_id: The group.
        name: Display name.
        description: Free text the group admins maintain; used as rules text.
        members: Non-bot members.
        admin_ids: Members allowed to run moderation commands.
    """

    group_id: str
    name: str = ""
    description: str = ""
    members: list[UserID] = field(default_factory=list)
    admin_ids: set[UserID] = field(default_factory=set)


@runtime_checkable
class ChatTransport(Protocol):

    async def send_text(
        self,
        chat_id: ChatID,
        text: str,
        *,
        reply_to: str | None = None,
        mentions: Sequence[UserID] = (),
    ) -> None:
        """Send ``text``; ``mentions`` are users the message should ping."""
        ...

    async def download(self, ref: AttachmentRef) -> bytes:
        ...

    async def group_info(self, group_id: str) -> GroupInfo:
        ...

    async def remove_member(self, group_id: str, user_id: UserID, reason: str = "") -> None:
        ...

    async def delete_message(self, chat_id: ChatID, message_id: str) -> None:
        ...

    def mention(self, user_id: UserID) -> str:
        """Inline mention markup for ``user_id``."""
        ...

    async def is_admin(self, group_id: str, user_id: UserID) -> bool:
        ...
