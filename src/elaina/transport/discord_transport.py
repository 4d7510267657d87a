"""
:class:`ChatTransport` on top of py-cord.

Discord guilds play the role of groups and their text channels the role of
chats. A guild's description doubles as its rules text; guilds without one
fall back to the text of their ``#rules``-style channels.
"""

from __future__ import annotations

from typing import Any, List, Sequence

import discord
import requests

from elaina.datatypes.chat_datatypes import ChatID, UserID
from elaina.datatypes.envelope_datatypes import AttachmentRef
from elaina.moderation.rules import collect_rules_text
from elaina.transport.ports import GroupInfo
from elaina.util.errors import TransportError
from elaina.util.http_utils import fetch_bytes
from elaina.util.logger import get_logger

logger = get_logger("discord_transport")

MAX_MESSAGE_LENGTH = 2000


def has_elevated_permissions(member: Any) -> bool:
    """Administrator, manage-guild or moderate-members permission."""
    if not isinstance(member, discord.Member):
        return False
    perms = member.guild_permissions
    return any(getattr(perms, attr, False) for attr in ("administrator", "manage_guild", "moderate_members"))


def split_message(text: str, limit: int = MAX_MESSAGE_LENGTH) -> List[str]:
    """Split ``text`` into chunks Discord accepts, preferring line breaks."""
    text = text or ""
    if len(text) <= limit:
        return [text]
    chunks = []
    while len(text) > limit:
        cut = text.rfind("\n", 0, limit)
        if cut <= 0:
            cut = text.rfind(" ", 0, limit)
        if cut <= 0:
            cut = limit
        chunks.append(text[:cut].rstrip())
        text = text[cut:].lstrip("\n ")
    if text:
        chunks.append(text)
    return chunks


class DiscordTransport:
    """
    Transport port backed by a connected ``discord.Bot``.

    Args:
        bot: The running py-cord client.
    """

    def __init__(self, bot: discord.Client) -> None:
        self.bot = bot

    async def _channel(self, chat_id: ChatID) -> Any:
        channel = self.bot.get_channel(chat_id.to_int())
        if channel is not None:
            return channel
        try:
            return await self.bot.fetch_channel(chat_id.to_int())
        except discord.HTTPException as exc:
            raise TransportError("fetch channel", f"{chat_id}: {exc}") from exc

    async def _guild(self, group_id: str) -> discord.Guild:
        guild = self.bot.get_guild(int(group_id))
        if guild is not None:
            return guild
        try:
            return await self.bot.fetch_guild(int(group_id))
        except discord.HTTPException as exc:
            raise TransportError("fetch guild", f"{group_id}: {exc}") from exc

    async def send_text(
        self,
        chat_id: ChatID,
        text: str,
        *,
        reply_to: str | None = None,
        mentions: Sequence[UserID] = (),
    ) -> None:
        channel = await self._channel(chat_id)
        allowed = discord.AllowedMentions(
            everyone=False,
            roles=False,
            users=[discord.Object(id=user.to_int()) for user in mentions],
            replied_user=False,
        )
        reference = channel.get_partial_message(int(reply_to)) if reply_to else None
        try:
            for index, chunk in enumerate(split_message(text)):
                await channel.send(
                    chunk,
                    reference=reference if index == 0 else None,
                    allowed_mentions=allowed,
                )
        except discord.HTTPException as exc:
            raise TransportError("send", f"{chat_id}: {exc}") from exc

    async def download(self, ref: AttachmentRef) -> bytes:
        try:
            return await fetch_bytes(ref.url)
        except requests.RequestException as exc:
            raise TransportError("download", f"{ref.filename or ref.url}: {exc}") from exc

    async def group_info(self, group_id: str) -> GroupInfo:
        guild = await self._guild(group_id)
        description = (guild.description or "").strip()
        if not description:
            description = await collect_rules_text(guild)
        members = [UserID(m.id) for m in guild.members if not m.bot]
        admin_ids = {UserID(m.id) for m in guild.members if has_elevated_permissions(m)}
        if guild.owner_id is not None:
            admin_ids.add(UserID(guild.owner_id))
        return GroupInfo(
            group_id=str(guild.id),
            name=guild.name,
            description=description,
            members=members,
            admin_ids=admin_ids,
        )

    async def remove_member(self, group_id: str, user_id: UserID, reason: str = "") -> None:
        guild = await self._guild(group_id)
        try:
            await guild.kick(discord.Object(id=user_id.to_int()), reason=reason or None)
        except discord.HTTPException as exc:
            raise TransportError("remove member", f"{user_id} from {group_id}: {exc}") from exc
        logger.info("[DISCORD] Removed %s from %s (%s)", user_id, group_id, reason)

    async def delete_message(self, chat_id: ChatID, message_id: str) -> None:
        channel = await self._channel(chat_id)
        try:
            await channel.get_partial_message(int(message_id)).delete()
        except discord.NotFound:
            logger.debug("[DISCORD] Message %s already gone", message_id)
        except discord.HTTPException as exc:
            raise TransportError("delete message", f"{message_id}: {exc}") from exc

    def mention(self, user_id: UserID) -> str:
        return f"<@{user_id}>"

    async def is_admin(self, group_id: str, user_id: UserID) -> bool:
        guild = await self._guild(group_id)
        if guild.owner_id is not None and user_id == guild.owner_id:
            return True
        member = guild.get_member(user_id.to_int())
        if member is None:
            try:
                member = await guild.fetch_member(user_id.to_int())
            except discord.NotFound:
                return False
            except discord.HTTPException as exc:
                raise TransportError("fetch member", f"{user_id}: {exc}") from exc
        return has_elevated_permissions(member)
