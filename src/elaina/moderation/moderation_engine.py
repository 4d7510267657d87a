"""
Per-group moderation: rules storage, the warning ledger, escalation to
removal, and warning reduction ("redeem").

State machine for one user in one group (T = warn threshold)::

    count 0 --violation--> 1 --violation--> ... --violation--> T
                                                               |
                                       remove member, reset to 0, announce
    count n --redeem granted--> n - 1   (floor 0; the row is deleted at 0)

Every message of an active group is evaluated at most once: the engine first
claims the message id in the store and bails out if someone already did.
Judgment failures (timeouts, network errors, unparseable answers) abandon
the evaluation for that message without warning anyone.
"""

from __future__ import annotations

import asyncio
from typing import Iterable, Protocol, Sequence

import aiosqlite

from elaina.datatypes.chat_datatypes import UserID
from elaina.datatypes.envelope_datatypes import MessageEnvelope
from elaina.datatypes.moderation_datatypes import (
    ModerationCommand,
    ModerationJudgment,
    ModerationMode,
    ModerationOutcome,
)
from elaina.moderation.redeem import KeywordRedeemPredicate, RedeemPredicate
from elaina.moderation.rules import preview_lines, rule_lines, sanitize_rules
from elaina.services.moderation_store import ModerationStore
from elaina.transport.ports import ChatTransport
from elaina.util.errors import JudgmentError, TransportError
from elaina.util.logger import get_logger

logger = get_logger("moderation_engine")

DEFAULT_REASON = "Broke the group rules."
STATUS_RULE_LINES = 6
STATUS_TOP_WARNS = 5

MODERATION_HELP = (
    "Usage: !peraturan on|off|sync|status|rules|clear @user\n"
    "• on: enable moderation using the group description as rules\n"
    "• off: disable moderation (rules are kept)\n"
    "• sync: reload the rules from the group description\n"
    "• status: show whether moderation is on, the rules and the top warnings\n"
    "• rules: show the stored rules\n"
    "• clear @user: reset a user's warnings\n"
    "To reduce a warning, mention {bot} and ask to reduce your warn (\"kurangi warn\")."
)


class JudgmentCollaborator(Protocol):
    """Whatever decides whether a message breaks the rules."""

    @property
    def ready(self) -> bool:
        ...

    async def evaluate(
        self,
        *,
        mode: ModerationMode,
        rules: str,
        bot_name: str,
        message: str,
        user_id: str,
    ) -> ModerationJudgment:
        ...


class ModerationEngine:
    """
    Evaluates group messages and runs the ``!peraturan`` admin commands.

    Args:
        store: Durable rules/ledger/evaluation-claim store.
        judgment: The judgment collaborator.
        transport: Chat transport for notices, deletions and removals.
        bot_name: Name used in prompts and in the default redeem predicate.
        warn_threshold: Warnings that trigger removal.
        redeem_predicate: Decides whether a message asks for a warn reduction.
        evaluation_timeout: Seconds one judgment call may take.
        command_names: Commands whose messages are never evaluated themselves.
    """

    def __init__(
        self,
        store: ModerationStore,
        judgment: JudgmentCollaborator,
        transport: ChatTransport,
        *,
        bot_name: str = "Elaina",
        warn_threshold: int = 5,
        redeem_predicate: RedeemPredicate | None = None,
        evaluation_timeout: float = 40.0,
        command_names: Iterable[str] = ("peraturan", "rules"),
    ) -> None:
        if warn_threshold < 1:
            raise ValueError("warn_threshold must be at least 1")
        self.store = store
        self.judgment = judgment
        self.transport = transport
        self.bot_name = bot_name
        self.warn_threshold = warn_threshold
        self.redeem_predicate: RedeemPredicate = redeem_predicate or KeywordRedeemPredicate()
        self.evaluation_timeout = evaluation_timeout
        self.command_names = frozenset(name.lower() for name in command_names)

    # ------------------------------------------------------------------
    # Message evaluation
    # ------------------------------------------------------------------

    def _evaluable(self, envelope: MessageEnvelope) -> bool:
        if not envelope.is_group or envelope.is_from_bot or not envelope.text:
            return False
        return not (envelope.is_command and envelope.command in self.command_names)

    def is_redeem_request(self, envelope: MessageEnvelope) -> bool:
        return self._evaluable(envelope) and self.redeem_predicate(envelope.text, self.bot_name)

    async def evaluate(self, envelope: MessageEnvelope) -> ModerationOutcome:
        """Evaluate one message of a group. Never raises except on cancellation."""
        if not self._evaluable(envelope):
            return ModerationOutcome.SKIPPED

        group_id = envelope.group_id
        try:
            state = await self.store.get_rules(group_id)
            if not state.is_active or not self.judgment.ready:
                return ModerationOutcome.SKIPPED
            if not await self.store.claim_evaluation(envelope.message_id, group_id):
                logger.debug("[MODERATION] %s already evaluated, skipping", envelope.message_id)
                return ModerationOutcome.SKIPPED

            if self.redeem_predicate(envelope.text, self.bot_name):
                return await self._handle_redeem(envelope, state.rules_text)
            return await self._handle_warn(envelope, state.rules_text)
        except aiosqlite.Error:
            logger.exception("[MODERATION] Store failure while evaluating %s", envelope.message_id)
            return ModerationOutcome.ERROR

    async def _judge(self, envelope: MessageEnvelope, mode: ModerationMode, rules: str) -> ModerationJudgment | None:
        try:
            return await asyncio.wait_for(
                self.judgment.evaluate(
                    mode=mode,
                    rules=rules,
                    bot_name=self.bot_name,
                    message=envelope.text,
                    user_id=str(envelope.sender_id),
                ),
                timeout=self.evaluation_timeout,
            )
        except asyncio.TimeoutError:
            logger.warning("[MODERATION] %s judgment for %s timed out", mode, envelope.message_id)
        except JudgmentError as exc:
            logger.warning("[MODERATION] %s judgment for %s failed: %s", mode, envelope.message_id, exc)
        return None

    async def _handle_warn(self, envelope: MessageEnvelope, rules: str) -> ModerationOutcome:
        judgment = await self._judge(envelope, ModerationMode.WARN, rules)
        if judgment is None:
            return ModerationOutcome.ERROR
        if not judgment.violation:
            return ModerationOutcome.CLEAN

        group_id = envelope.group_id
        user = envelope.sender_id
        reason = judgment.reason or DEFAULT_REASON
        logger.info("[MODERATION] Violation by %s in %s: %s", user, group_id, reason)

        try:
            await self.transport.delete_message(envelope.chat_id, envelope.message_id)
        except TransportError as exc:
            logger.warning("[MODERATION] Could not delete %s: %s", envelope.message_id, exc)

        change = await self.store.record_violation(group_id, str(user), reason, self.warn_threshold)
        count = change.count
        mention = self.transport.mention(user)

        if count < self.warn_threshold:
            await self._notify(
                envelope,
                f"**Warning {count}/{self.warn_threshold} for {mention}**\nReason: {reason}",
                mentions=(user,),
            )
            return ModerationOutcome.WARNED

        if not change.breached:
            # Another violation already took the count to the limit and owns the removal.
            logger.info("[MODERATION] %s already at the limit in %s; removal handled elsewhere", user, group_id)
            return ModerationOutcome.AT_LIMIT

        try:
            await self.transport.remove_member(group_id, user, reason=f"Reached {self.warn_threshold} warnings: {reason}")
        except TransportError as exc:
            logger.error("[MODERATION] Failed to remove %s from %s: %s", user, group_id, exc)
            await self._notify(
                envelope,
                f"**Warning {count}/{self.warn_threshold} for {mention}**\nReason: {reason}\n"
                "The warning limit was reached, but I could not remove this member. An admin needs to step in.",
                mentions=(user,),
            )
            # Back below the limit: the next violation crosses it again and retries the removal.
            await self.store.decrement_warn(group_id, str(user), "removal failed")
            return ModerationOutcome.REMOVAL_FAILED

        await self.store.clear_warn(group_id, str(user), f"removed after {self.warn_threshold} warnings")
        await self._notify(
            envelope,
            f"**{mention} was removed for reaching the warning limit ({self.warn_threshold}).**\nLast reason: {reason}",
            mentions=(user,),
        )
        return ModerationOutcome.REMOVED

    async def _handle_redeem(self, envelope: MessageEnvelope, rules: str) -> ModerationOutcome:
        group_id = envelope.group_id
        user = envelope.sender_id
        mention = self.transport.mention(user)

        if await self.store.get_warn(group_id, str(user)) == 0:
            await self._notify(envelope, f"{mention}, you have no warnings, so there is nothing to reduce.", mentions=(user,))
            return ModerationOutcome.REDEEM_NOTHING

        judgment = await self._judge(envelope, ModerationMode.REDEEM, rules)
        if judgment is None:
            return ModerationOutcome.ERROR
        if not judgment.redeem_granted:
            explanation = judgment.reason or "the request does not meet the reduction requirements"
            await self._notify(envelope, f"{mention}, your warning was not reduced: {explanation}.", mentions=(user,))
            return ModerationOutcome.REDEEM_DENIED

        count = await self.store.decrement_warn(group_id, str(user), "redeem granted")
        if count == 0:
            text = f"**{mention}, your warnings are now at 0.** Keep it up."
        else:
            text = f"**{mention}, your warnings were reduced to {count}/{self.warn_threshold}.**"
        await self._notify(envelope, text, mentions=(user,))
        return ModerationOutcome.REDEEMED

    async def _notify(self, envelope: MessageEnvelope, text: str, *, mentions: Sequence[UserID] = (), reply: bool = False) -> None:
        try:
            await self.transport.send_text(
                envelope.chat_id,
                text,
                reply_to=envelope.message_id if reply else None,
                mentions=mentions,
            )
        except TransportError as exc:
            logger.warning("[MODERATION] Could not send notice to %s: %s", envelope.chat_id, exc)

    async def _reply(self, envelope: MessageEnvelope, text: str, *, mentions: Sequence[UserID] = ()) -> None:
        await self._notify(envelope, text, mentions=mentions, reply=True)

    # ------------------------------------------------------------------
    # Admin commands
    # ------------------------------------------------------------------

    async def _authorized(self, envelope: MessageEnvelope) -> bool:
        if envelope.is_owner:
            return True
        try:
            return await self.transport.is_admin(envelope.group_id, envelope.sender_id)
        except TransportError as exc:
            logger.warning("[MODERATION] Admin check for %s failed: %s", envelope.sender_id, exc)
            return False

    async def run_command(self, envelope: MessageEnvelope, command: ModerationCommand) -> None:
        """Execute one ``!peraturan`` sub-command and reply to the sender."""
        if not envelope.is_group:
            await self._reply(envelope, "Moderation commands only work inside a group.")
            return

        if command is ModerationCommand.HELP:
            await self._reply(envelope, MODERATION_HELP.format(bot=self.bot_name))
            return

        if command is ModerationCommand.UNKNOWN:
            token = envelope.command_args.split(maxsplit=1)[0]
            await self._reply(
                envelope, f"Unknown command `{token}`.\n" + MODERATION_HELP.format(bot=self.bot_name)
            )
            return

        if not await self._authorized(envelope):
            await self._reply(envelope, "Only group admins or the bot owner can use this command.")
            return

        logger.info("[MODERATION] %s ran '%s' in %s", envelope.sender_id, command, envelope.group_id)
        match command:
            case ModerationCommand.ON:
                await self.enable(envelope)
            case ModerationCommand.OFF:
                await self.disable(envelope)
            case ModerationCommand.SYNC:
                await self.sync(envelope)
            case ModerationCommand.STATUS:
                await self.status(envelope)
            case ModerationCommand.RULES:
                await self.show_rules(envelope)
            case ModerationCommand.CLEAR:
                await self.clear(envelope)

    async def _read_group_rules(self, envelope: MessageEnvelope) -> str | None:
        """Sanitised rules from the group description; replies and returns None on failure."""
        try:
            info = await self.transport.group_info(envelope.group_id)
        except TransportError as exc:
            logger.warning("[MODERATION] Could not read group info for %s: %s", envelope.group_id, exc)
            await self._reply(envelope, f"Could not read the group info: {exc.detail or exc}")
            return None
        rules = sanitize_rules(info.description)
        if not rules:
            await self._reply(
                envelope,
                "The group description is empty. Put the rules in the group description "
                "(or a #rules channel) first.",
            )
            return None
        return rules

    async def enable(self, envelope: MessageEnvelope) -> bool:
        rules = await self._read_group_rules(envelope)
        if rules is None:
            return False
        if not self.judgment.ready:
            await self._reply(envelope, "Moderation cannot be enabled: the judgment service has no API key configured.")
            return False
        await self.store.set_rules(envelope.group_id, enabled=True, text=rules)
        await self._reply(envelope, f"Moderation enabled. Stored {len(rule_lines(rules))} rule lines from the group description.")
        return True

    async def disable(self, envelope: MessageEnvelope) -> None:
        await self.store.set_rules(envelope.group_id, enabled=False)
        await self._reply(envelope, "Moderation disabled. The stored rules are kept.")

    async def sync(self, envelope: MessageEnvelope) -> bool:
        rules = await self._read_group_rules(envelope)
        if rules is None:
            return False
        await self.store.set_rules(envelope.group_id, text=rules)
        await self._reply(envelope, f"Rules synced: {len(rule_lines(rules))} lines stored.")
        return True

    async def status(self, envelope: MessageEnvelope) -> None:
        state = await self.store.get_rules(envelope.group_id)
        lines = [f"**Moderation:** {'ON' if state.enabled else 'OFF'}"]
        if not self.judgment.ready:
            lines.append("Judgment service: not configured (missing API key)")

        preview = preview_lines(state.rules_text, STATUS_RULE_LINES)
        if preview:
            lines.append("**Rules:**")
            lines.extend(preview)
        else:
            lines.append("No rules stored.")

        warns = await self.store.list_warns(envelope.group_id, STATUS_TOP_WARNS)
        if warns:
            lines.append("**Top warnings:**")
            for index, record in enumerate(warns, start=1):
                lines.append(f"{index}. {self.transport.mention(UserID(record.user_id))} - {record.count}/{self.warn_threshold}")
        await self._reply(envelope, "\n".join(lines))

    async def show_rules(self, envelope: MessageEnvelope) -> None:
        state = await self.store.get_rules(envelope.group_id)
        if not state.rules_text.strip():
            await self._reply(envelope, "No rules stored. Use `!peraturan sync` to load them from the group description.")
            return
        await self._reply(envelope, f"**Group rules:**\n{state.rules_text}")

    async def clear(self, envelope: MessageEnvelope) -> None:
        if not envelope.mentions:
            await self._reply(envelope, "Mention the user whose warnings should be reset.")
            return
        target = envelope.mentions[0]
        previous = await self.store.clear_warn(envelope.group_id, str(target), f"cleared by {envelope.sender_id}")
        await self._reply(envelope, f"Warnings for {self.transport.mention(target)} reset (was {previous}).")
