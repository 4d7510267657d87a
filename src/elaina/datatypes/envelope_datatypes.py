"""
The normalised unit of work that flows through the dispatcher.

A :class:`MessageEnvelope` is built once per inbound message and is frozen:
handlers derive prompt strings from ``raw_text`` but can never rewrite it
for the handlers that run after them.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable, Tuple

from elaina.datatypes.chat_datatypes import AttachmentKind, ChatID, ChatKind, UserID


@dataclass(frozen=True, slots=True)
class CommandMatch:
    """Result of classifying a message body.

    ``is_command`` and ``has_trigger`` are computed independently; both may
    be true for the same text.
    """

    is_command: bool = False
    command: str = ""
    args: str = ""
    has_trigger: bool = False


@dataclass(frozen=True, slots=True)
class AttachmentRef:
    """Opaque handle to a media attachment the transport knows how to download."""

    url: str
    content_type: str = ""
    filename: str = ""
    size: int = 0
    kind: AttachmentKind = AttachmentKind.NONE


@dataclass(frozen=True, slots=True)
class QuotedMessage:
    """The message being replied to, reduced to what routing needs."""

    text: str = ""
    attachment_kind: AttachmentKind = AttachmentKind.NONE
    author_id: UserID | None = None

    @property
    def has_content(self) -> bool:
        return bool(self.text.strip()) or self.attachment_kind is not AttachmentKind.NONE


@dataclass(frozen=True, slots=True)
class MessageEnvelope:
    """Uniform view of one inbound message.

    Attributes:
        message_id: Transport identifier of the message.
        chat_id: Conversation the message was posted in (with its kind).
        sender_id: Author of the message.
        sender_name: Display name of the author, for logs and prompts.
        raw_text: Message body, or the caption of an image/video message.
        is_command: Body starts with the command prefix.
        command: Case-folded command name without the prefix.
        command_args: Everything after the command token.
        has_trigger: The trigger word appears anywhere in the body.
        attachment_kind: Kind of the first media attachment.
        attachments: Every downloadable attachment, in message order.
        quoted: The replied-to message, when this message is a reply.
        mentions: Human users mentioned in the message (bot accounts excluded).
        is_owner: The sender is one of the configured bot owners.
        is_from_bot: The sender is a bot account (including this one).
    """

    message_id: str
    chat_id: ChatID
    sender_id: UserID
    raw_text: str = ""
    sender_name: str = ""
    is_command: bool = False
    command: str = ""
    command_args: str = ""
    has_trigger: bool = False
    attachment_kind: AttachmentKind = AttachmentKind.NONE
    attachments: Tuple[AttachmentRef, ...] = field(default_factory=tuple)
    quoted: QuotedMessage | None = None
    mentions: Tuple[UserID, ...] = field(default_factory=tuple)
    is_owner: bool = False
    is_from_bot: bool = False

    @property
    def text(self) -> str:
        return self.raw_text.strip()

    @property
    def kind(self) -> ChatKind:
        return self.chat_id.kind

    @property
    def is_group(self) -> bool:
        return self.chat_id.is_group

    @property
    def group_id(self) -> str | None:
        return self.chat_id.group_id

    @property
    def is_reply(self) -> bool:
        return self.quoted is not None and self.quoted.has_content

    def prompt_text(self, strip: Callable[[str], str] | None = None) -> str:
        """Body with the command token removed and, through ``strip``, the trigger word.

        ``raw_text`` is left untouched; every handler derives its own prompt.
        """
        text = self.command_args if self.is_command else self.raw_text
        if strip is not None:
            text = strip(text)
        return text.strip()

    def first_attachment(self, kind: AttachmentKind) -> AttachmentRef | None:
        for attachment in self.attachments:
            if attachment.kind is kind:
                return attachment
        return None
