"""
The handler chain.

One :class:`Dispatcher` is built at startup with a fixed, ordered list of
handlers and is shared by every message task. ``dispatch()`` keeps no state
between calls, so any number of messages can be dispatched concurrently.

Flow for one message::

    envelope -> gate -> (moderation side channel, concurrently)
                     -> first handler whose category is permitted and that
                        claims the message
                     -> fallback responder when nothing claimed

A redeem request ("<bot name> ... kurangi warn") in a moderated group belongs
to the moderation engine alone; the chain is skipped so the user gets a
single reply.
"""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING, Mapping, Sequence

from elaina.datatypes.envelope_datatypes import MessageEnvelope
from elaina.datatypes.moderation_datatypes import ModerationOutcome
from elaina.datatypes.routing_datatypes import DispatchResult, GatingDecision
from elaina.routing.gating import GROUP_MODE_MANUAL, PatternSpec, compile_patterns, gate
from elaina.routing.handler import FallbackHandler, MessageHandler
from elaina.util.errors import TransportError
from elaina.util.logger import get_logger

if TYPE_CHECKING:
    from elaina.moderation.moderation_engine import ModerationEngine
    from elaina.transport.ports import ChatTransport

logger = get_logger("dispatcher")

APOLOGY_TEXT = "Sorry, something went wrong while handling that. Please try again in a moment."

DEFAULT_HANDLER_TIMEOUT = 60.0


class Dispatcher:
    """
    Ordered, first-claim-wins handler chain.

    Args:
        handlers: Handlers in the order they are offered each message.
        transport: Used for best-effort apologies when a handler fails.
        fallback: Conversational responder for unclaimed messages.
        moderation: Moderation engine run as a side channel, or None.
        priority_patterns: ``name -> regex`` content patterns for priority features.
        group_mode: ``manual`` or ``auto``; see :func:`elaina.routing.gating.gate`.
        handler_timeout: Seconds each handler (and the fallback) may run.
    """

    def __init__(
        self,
        handlers: Sequence[MessageHandler],
        transport: "ChatTransport",
        *,
        fallback: FallbackHandler | None = None,
        moderation: "ModerationEngine | None" = None,
        priority_patterns: Mapping[str, PatternSpec] | None = None,
        group_mode: str = GROUP_MODE_MANUAL,
        handler_timeout: float = DEFAULT_HANDLER_TIMEOUT,
    ) -> None:
        self._handlers: tuple[MessageHandler, ...] = tuple(handlers)
        self._transport = transport
        self._fallback = fallback
        self._moderation = moderation
        self._priority_patterns = compile_patterns(priority_patterns or {})
        self._group_mode = group_mode
        self._handler_timeout = handler_timeout
        logger.info(
            "[DISPATCH] Chain ready: %s (fallback=%s, moderation=%s)",
            ", ".join(h.name for h in self._handlers) or "<empty>",
            fallback is not None,
            moderation is not None,
        )

    @property
    def handlers(self) -> tuple[MessageHandler, ...]:
        return self._handlers

    def gate(self, envelope: MessageEnvelope) -> GatingDecision:
        return gate(envelope, priority_patterns=self._priority_patterns, group_mode=self._group_mode)

    async def dispatch(self, envelope: MessageEnvelope) -> DispatchResult:
        """Route one message and report what happened to it."""
        if envelope.is_from_bot:
            return DispatchResult.IGNORED

        gating = self.gate(envelope)

        moderation = self._moderation
        if moderation is not None and moderation.is_redeem_request(envelope):
            outcome = await moderation.evaluate(envelope)
            logger.debug("[DISPATCH] Redeem request %s -> %s", envelope.message_id, outcome)
            if outcome is not ModerationOutcome.SKIPPED:
                return DispatchResult.MODERATED
            # Moderation is off in this group: an ordinary message after all.
            return await self._run_chain(envelope, gating)

        if moderation is None:
            return await self._run_chain(envelope, gating)

        result, outcome = await asyncio.gather(
            self._run_chain(envelope, gating),
            moderation.evaluate(envelope),
        )
        logger.debug("[DISPATCH] %s -> %s, moderation %s", envelope.message_id, result, outcome)
        return result

    async def _run_chain(self, envelope: MessageEnvelope, gating: GatingDecision) -> DispatchResult:
        if gating.vetoed:
            logger.debug("[DISPATCH] %s vetoed (reply without trigger)", envelope.message_id)
            return DispatchResult.VETOED

        for handler in self._handlers:
            if not gating.permits(handler.category):
                continue
            if await self._call(handler.name, envelope, handler.try_handle(envelope, gating)):
                logger.debug("[DISPATCH] %s claimed by %s", envelope.message_id, handler.name)
                return DispatchResult.CLAIMED

        if self._fallback is not None and gating.allow_fallback_responder and self._has_prompt(envelope):
            if await self._call("fallback", envelope, self._fallback.respond(envelope)):
                return DispatchResult.FALLBACK

        return DispatchResult.UNHANDLED

    @staticmethod
    def _has_prompt(envelope: MessageEnvelope) -> bool:
        if envelope.text:
            return True
        return envelope.quoted is not None and bool(envelope.quoted.text.strip())

    async def _call(self, name: str, envelope: MessageEnvelope, call) -> bool:
        """Await one handler call under the timeout.

        A timeout or unexpected error counts as a claim: the user gets an
        apology instead of a second, unrelated reply from later handlers.
        """
        try:
            return bool(await asyncio.wait_for(call, timeout=self._handler_timeout))
        except asyncio.TimeoutError:
            logger.warning("[DISPATCH] %s timed out after %.0fs on %s", name, self._handler_timeout, envelope.message_id)
        except Exception:
            logger.exception("[DISPATCH] %s failed on %s", name, envelope.message_id)
        await self._apologise(envelope)
        return True

    async def _apologise(self, envelope: MessageEnvelope) -> None:
        try:
            await self._transport.send_text(envelope.chat_id, APOLOGY_TEXT, reply_to=envelope.message_id)
        except TransportError as exc:
            logger.warning("[DISPATCH] Could not send apology to %s: %s", envelope.chat_id, exc)
