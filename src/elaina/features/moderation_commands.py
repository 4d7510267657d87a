"""``!peraturan`` (alias ``!rules``): group moderation admin commands."""

from __future__ import annotations

from typing import Iterable

from elaina.datatypes.envelope_datatypes import MessageEnvelope
from elaina.datatypes.moderation_datatypes import ModerationCommand
from elaina.datatypes.routing_datatypes import GatingDecision, HandlerCategory
from elaina.moderation.moderation_engine import ModerationEngine
from elaina.routing.handler import MessageHandler


class ModerationCommandHandler(MessageHandler):
    """Parses the sub-command and hands it to the engine, which replies."""

    name = "moderation_commands"
    category = HandlerCategory.COMMAND

    def __init__(self, engine: ModerationEngine, names: Iterable[str] = ("peraturan", "rules")) -> None:
        self.engine = engine
        self.names = frozenset(n.lower() for n in names)

    async def try_handle(self, envelope: MessageEnvelope, gating: GatingDecision) -> bool:
        if not envelope.is_command or envelope.command not in self.names:
            return False
        await self.engine.run_command(envelope, ModerationCommand.parse(envelope.command_args))
        return True
