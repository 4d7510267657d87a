"""
Built-in commands: ``!help``, ``!whoami`` and ``!<trigger> persona|mode``.

Persona and pro mode are stored per chat. In a direct chat anyone may change
them; in a group only admins and bot owners may.
"""

from __future__ import annotations

from elaina.datatypes.chat_state import Persona
from elaina.datatypes.envelope_datatypes import MessageEnvelope
from elaina.datatypes.routing_datatypes import GatingDecision, HandlerCategory
from elaina.features.base import TransportHandler
from elaina.services.chat_state_service import ChatStateService
from elaina.transport.ports import ChatTransport
from elaina.util.logger import get_logger

logger = get_logger("core_commands")

HELP_TEXT = """**{bot}** here! Things I can do:
• Talk to me: mention "{trigger}" in a group, or just write to me in a DM
• `{p}{trigger} persona elaina1|elaina2` switch my persona
• `{p}{trigger} mode pro on|off` analytical "pro" mode
• `{p}whoami` what I know about you
• `{p}tagall` mention everyone in the group
• `{p}peraturan help` group moderation commands (admins)
• Send an image with "{trigger}" in the caption and I'll look at it
• Send a TikTok link and I'll fetch the video"""


class CoreCommandHandler(TransportHandler):
    """Help, identity and per-chat persona/mode commands."""

    name = "core_commands"
    category = HandlerCategory.COMMAND

    def __init__(
        self,
        transport: ChatTransport,
        chat_state: ChatStateService,
        *,
        bot_name: str = "Elaina",
        trigger_word: str = "elaina",
        prefix: str = "!",
    ) -> None:
        super().__init__(transport)
        self.chat_state = chat_state
        self.bot_name = bot_name
        self.trigger_word = trigger_word.lower()
        self.prefix = prefix

    @property
    def usage(self) -> str:
        p, t = self.prefix, self.trigger_word
        return f"Usage: {p}{t} persona elaina1|elaina2  or  {p}{t} mode pro on|off"

    async def try_handle(self, envelope: MessageEnvelope, gating: GatingDecision) -> bool:
        if not envelope.is_command:
            return False
        match envelope.command:
            case "help":
                await self.reply(
                    envelope,
                    HELP_TEXT.format(bot=self.bot_name, trigger=self.trigger_word, p=self.prefix),
                )
                return True
            case "whoami":
                await self._whoami(envelope)
                return True
            case command if command == self.trigger_word:
                await self._configure(envelope)
                return True
        return False

    async def _whoami(self, envelope: MessageEnvelope) -> None:
        state = await self.chat_state.get(envelope.chat_id.value)
        lines = [
            f"Name: {envelope.sender_name or '-'}",
            f"User ID: {envelope.sender_id}",
            f"Chat: {envelope.kind} ({envelope.chat_id})",
            f"Owner: {'yes' if envelope.is_owner else 'no'}",
            f"Persona here: {state.persona}, pro mode {'on' if state.pro_mode else 'off'}",
        ]
        await self.reply(envelope, "\n".join(lines))

    async def _configure(self, envelope: MessageEnvelope) -> None:
        args = envelope.command_args.lower().split()
        if not args or args[0] not in ("persona", "mode"):
            await self.reply(envelope, self.usage)
            return

        if envelope.is_group and not await self.sender_is_admin(envelope):
            await self.reply(envelope, "Only group admins or the bot owner can change my persona here.")
            return

        chat_id = envelope.chat_id.value
        if args[0] == "persona":
            persona = Persona.parse(args[1]) if len(args) > 1 else None
            if persona is None:
                await self.reply(envelope, self.usage)
                return
            await self.chat_state.set_persona(chat_id, persona)
            await self.reply(envelope, f"Persona set to **{persona}** for this chat.")
            return

        if len(args) == 3 and args[1] == "pro" and args[2] in ("on", "off"):
            enabled = args[2] == "on"
            await self.chat_state.set_pro_mode(chat_id, enabled)
            await self.reply(envelope, "Pro mode enabled ✨" if enabled else "Pro mode disabled.")
            return

        await self.reply(envelope, self.usage)
