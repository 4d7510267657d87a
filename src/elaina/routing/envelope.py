"""
Build a :class:`MessageEnvelope` from a transport message.

The extractor only reads attributes that py-cord's ``discord.Message``
exposes (``id``, ``content``, ``attachments``, ``reference``, ``guild``,
``channel``, ``author``, ``mentions``, ``flags``), so tests can hand it a
``SimpleNamespace`` instead of a live message.
"""

from __future__ import annotations

from typing import Any, Iterable, Optional

from elaina.datatypes.chat_datatypes import AttachmentKind, ChatID, UserID
from elaina.datatypes.envelope_datatypes import AttachmentRef, MessageEnvelope, QuotedMessage
from elaina.routing.matcher import TriggerMatcher
from elaina.util.logger import get_logger

logger = get_logger("envelope")

_IMAGE_EXTENSIONS = (".png", ".jpg", ".jpeg", ".gif", ".webp", ".bmp", ".heif")
_VIDEO_EXTENSIONS = (".mp4", ".mov", ".webm", ".mkv", ".avi")
_AUDIO_EXTENSIONS = (".ogg", ".oga", ".mp3", ".m4a", ".wav", ".opus", ".flac")


def attachment_kind(attachment: Any, *, voice_message: bool = False) -> AttachmentKind:
    """
    Classify a Discord attachment.

    The content type decides first, then the file extension. Voice messages
    are audio regardless of what the CDN reports.
    """
    if voice_message:
        return AttachmentKind.AUDIO
    content_type = (getattr(attachment, "content_type", None) or "").lower()
    if content_type.startswith("image/"):
        return AttachmentKind.IMAGE
    if content_type.startswith("video/"):
        return AttachmentKind.VIDEO
    if content_type.startswith("audio/"):
        return AttachmentKind.AUDIO
    filename = (getattr(attachment, "filename", None) or "").lower()
    if filename.endswith(_IMAGE_EXTENSIONS):
        return AttachmentKind.IMAGE
    if filename.endswith(_VIDEO_EXTENSIONS):
        return AttachmentKind.VIDEO
    if filename.endswith(_AUDIO_EXTENSIONS):
        return AttachmentKind.AUDIO
    return AttachmentKind.NONE


def _is_voice_message(message: Any) -> bool:
    flags = getattr(message, "flags", None)
    return bool(getattr(flags, "voice", False))


def _attachment_refs(message: Any) -> tuple[AttachmentRef, ...]:
    voice = _is_voice_message(message)
    refs = []
    for attachment in getattr(message, "attachments", None) or ():
        refs.append(
            AttachmentRef(
                url=attachment.url,
                content_type=getattr(attachment, "content_type", None) or "",
                filename=getattr(attachment, "filename", None) or "",
                size=int(getattr(attachment, "size", 0) or 0),
                kind=attachment_kind(attachment, voice_message=voice),
            )
        )
    return tuple(refs)


def quoted_from_message(referenced: Any) -> QuotedMessage | None:
    """Reduce a resolved referenced message to a :class:`QuotedMessage`.

    Deleted or unresolved references (``None`` or ``DeletedReferencedMessage``,
    which has no ``content``) produce None.
    """
    if referenced is None or not hasattr(referenced, "content"):
        return None
    refs = _attachment_refs(referenced)
    author = getattr(referenced, "author", None)
    return QuotedMessage(
        text=referenced.content or "",
        attachment_kind=refs[0].kind if refs else AttachmentKind.NONE,
        author_id=UserID(author.id) if author is not None else None,
    )


def _chat_id(message: Any) -> ChatID:
    guild = getattr(message, "guild", None)
    if guild is None:
        return ChatID.direct(message.channel.id)
    return ChatID.group(message.channel.id, guild.id)


def extract_envelope(
    message: Any,
    matcher: TriggerMatcher,
    *,
    owner_ids: Iterable[str] = (),
    quoted: Optional[QuotedMessage] = None,
    bot_user_id: Optional[int] = None,
) -> MessageEnvelope:
    """
    Normalise one inbound message.

    Args:
        message: A ``discord.Message`` or an object with the same attributes.
        matcher: Trigger/command matcher for the configured trigger word.
        owner_ids: Bot owner user ids.
        quoted: Pre-resolved quoted message; when omitted, the message's
            ``reference.resolved`` is used.
        bot_user_id: The bot's own user id. Mentioning the bot counts as
            using the trigger word; the bot and other bot accounts are left
            out of ``mentions``.

    Returns:
        A frozen :class:`MessageEnvelope`.
    """
    raw_text = message.content or ""
    match = matcher.classify(raw_text)

    mentioned = list(getattr(message, "mentions", None) or ())
    has_trigger = match.has_trigger
    if bot_user_id is not None and any(user.id == bot_user_id for user in mentioned):
        has_trigger = True
    # Bot accounts are never the target of a mention-based command.
    mentions = tuple(
        UserID(user.id)
        for user in mentioned
        if user.id != bot_user_id and not getattr(user, "bot", False)
    )

    if quoted is None:
        reference = getattr(message, "reference", None)
        quoted = quoted_from_message(getattr(reference, "resolved", None)) if reference is not None else None

    attachments = _attachment_refs(message)
    author = message.author
    sender_id = UserID(author.id)
    owners = {str(owner) for owner in owner_ids}

    return MessageEnvelope(
        message_id=str(message.id),
        chat_id=_chat_id(message),
        sender_id=sender_id,
        sender_name=getattr(author, "display_name", None) or getattr(author, "name", "") or "",
        raw_text=raw_text,
        is_command=match.is_command,
        command=match.command,
        command_args=match.args,
        has_trigger=has_trigger,
        attachment_kind=attachments[0].kind if attachments else AttachmentKind.NONE,
        attachments=attachments,
        quoted=quoted,
        mentions=mentions,
        is_owner=str(sender_id) in owners,
        is_from_bot=bool(getattr(author, "bot", False)),
    )
