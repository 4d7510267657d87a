"""Message listener Cog for Elaina.

Turns every ``on_message`` event into a :class:`MessageEnvelope` and hands it
to the dispatcher in its own task, so a slow model call never holds up the
gateway event loop or other chats.
"""

from __future__ import annotations

import asyncio
from typing import Iterable

import discord
from discord.ext import commands

from elaina.datatypes.envelope_datatypes import QuotedMessage
from elaina.routing.dispatcher import Dispatcher
from elaina.routing.envelope import extract_envelope, quoted_from_message
from elaina.routing.matcher import TriggerMatcher
from elaina.util.logger import get_logger

logger = get_logger("message_listener_cog")


class MessageListenerCog(commands.Cog):
    """Cog feeding inbound messages into the dispatcher."""

    def __init__(
        self,
        discord_bot_instance,
        dispatcher: Dispatcher,
        matcher: TriggerMatcher,
        *,
        owner_ids: Iterable[str] = (),
    ) -> None:
        self.bot = discord_bot_instance
        self.dispatcher = dispatcher
        self.matcher = matcher
        self.owner_ids = tuple(str(owner) for owner in owner_ids)
        self._tasks: set[asyncio.Task] = set()
        logger.info("[MESSAGE LISTENER] Message listener cog loaded")

    @property
    def pending(self) -> int:
        return len(self._tasks)

    async def _resolve_quoted(self, message: discord.Message) -> QuotedMessage | None:
        """The replied-to message, fetched when the gateway did not include it."""
        reference = message.reference
        if reference is None:
            return None
        if reference.resolved is not None:
            return quoted_from_message(reference.resolved)
        if reference.message_id is None:
            return None
        try:
            referenced = await message.channel.fetch_message(reference.message_id)
        except discord.HTTPException as exc:
            logger.debug("[MESSAGE LISTENER] Could not fetch referenced message %s: %s", reference.message_id, exc)
            return None
        return quoted_from_message(referenced)

    async def _dispatch(self, message: discord.Message) -> None:
        try:
            quoted = await self._resolve_quoted(message)
            envelope = extract_envelope(
                message,
                self.matcher,
                owner_ids=self.owner_ids,
                quoted=quoted,
                bot_user_id=self.bot.user.id if self.bot.user else None,
            )
            result = await self.dispatcher.dispatch(envelope)
            logger.debug("[MESSAGE LISTENER] %s -> %s", message.id, result)
        except Exception:
            logger.exception("[MESSAGE LISTENER] Dispatch failed for message %s", message.id)

    @commands.Cog.listener(name="on_message")
    async def on_message(self, message: discord.Message) -> None:
        if message.author.bot:
            return
        task = asyncio.create_task(self._dispatch(message))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    @commands.Cog.listener(name="on_ready")
    async def on_ready(self) -> None:
        if self.bot.user:
            logger.info("[MESSAGE LISTENER] Logged in as %s (%s) in %d guilds", self.bot.user, self.bot.user.id, len(self.bot.guilds))

    def cog_unload(self) -> None:
        for task in list(self._tasks):
            task.cancel()


def setup(discord_bot_instance, dispatcher: Dispatcher, matcher: TriggerMatcher, *, owner_ids: Iterable[str] = ()) -> None:
    """Register the MessageListenerCog with the bot."""
    discord_bot_instance.add_cog(MessageListenerCog(discord_bot_instance, dispatcher, matcher, owner_ids=owner_ids))
