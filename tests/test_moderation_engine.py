import asyncio
from types import SimpleNamespace

import pytest
from conftest import CHANNEL_ID, GROUP_ID, make_envelope

from elaina.datatypes.moderation_datatypes import ModerationCommand, ModerationJudgment, ModerationMode, ModerationOutcome
from elaina.moderation.moderation_engine import ModerationEngine
from elaina.routing.envelope import extract_envelope
from elaina.routing.matcher import TriggerMatcher
from elaina.services.moderation_store import ModerationStore
from elaina.util.errors import JudgmentError

RULES = "1. Be kind\n2. No spam"


class StubJudgment:
    """Judgment collaborator returning scripted verdicts."""

    def __init__(self, verdict=None, *, ready=True, error=None, delay=0.0):
        self.verdict = verdict or ModerationJudgment()
        self._ready = ready
        self.error = error
        self.delay = delay
        self.calls = []

    @property
    def ready(self):
        return self._ready

    async def evaluate(self, *, mode, rules, bot_name, message, user_id):
        self.calls.append((mode, message, user_id))
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return self.verdict


VIOLATION = ModerationJudgment(violation=True, reason="Insulting another member")
GRANTED = ModerationJudgment(redeem_granted=True)
DENIED = ModerationJudgment(redeem_granted=False, reason="subhanallah must be said 5 times")


@pytest.fixture
def store(connection) -> ModerationStore:
    return ModerationStore(connection)


def _engine(store, transport, judgment, **kwargs) -> ModerationEngine:
    return ModerationEngine(store, judgment, transport, bot_name="Elaina", **kwargs)


async def _activate(store: ModerationStore) -> None:
    await store.set_rules(GROUP_ID, enabled=True, text=RULES)


@pytest.mark.asyncio
async def test_inactive_group_is_skipped(store, transport) -> None:
    judgment = StubJudgment(VIOLATION)
    engine = _engine(store, transport, judgment)

    assert await engine.evaluate(make_envelope("you idiot")) is ModerationOutcome.SKIPPED
    assert judgment.calls == []


@pytest.mark.asyncio
async def test_enabled_with_empty_rules_is_skipped(store, transport) -> None:
    await store.set_rules(GROUP_ID, enabled=True, text="")
    judgment = StubJudgment(VIOLATION)
    engine = _engine(store, transport, judgment)

    assert await engine.evaluate(make_envelope("you idiot")) is ModerationOutcome.SKIPPED
    assert judgment.calls == []


@pytest.mark.asyncio
async def test_direct_chats_and_commands_are_not_evaluated(store, transport) -> None:
    await _activate(store)
    judgment = StubJudgment(VIOLATION)
    engine = _engine(store, transport, judgment)

    assert await engine.evaluate(make_envelope("you idiot", group=False)) is ModerationOutcome.SKIPPED
    assert await engine.evaluate(make_envelope("!peraturan status")) is ModerationOutcome.SKIPPED
    assert judgment.calls == []


@pytest.mark.asyncio
async def test_clean_message(store, transport) -> None:
    await _activate(store)
    engine = _engine(store, transport, StubJudgment())

    assert await engine.evaluate(make_envelope("good morning")) is ModerationOutcome.CLEAN
    assert transport.sent == []
    assert await store.get_warn(GROUP_ID, "42") == 0


@pytest.mark.asyncio
async def test_violation_increments_and_announces(store, transport) -> None:
    await _activate(store)
    await store.add_warn(GROUP_ID, "42", "earlier", 5)
    await store.add_warn(GROUP_ID, "42", "earlier", 5)
    engine = _engine(store, transport, StubJudgment(VIOLATION))

    envelope = make_envelope("you idiot")
    outcome = await engine.evaluate(envelope)

    assert outcome is ModerationOutcome.WARNED
    assert await store.get_warn(GROUP_ID, "42") == 3
    assert transport.deleted == [("9001", envelope.message_id)]
    assert len(transport.sent) == 1
    notice = transport.sent[0]
    assert "3/5" in notice["text"]
    assert "<@42>" in notice["text"]
    assert "Insulting another member" in notice["text"]
    assert notice["mentions"] == ("42",)


@pytest.mark.asyncio
async def test_reaching_threshold_removes_and_resets(store, transport) -> None:
    await _activate(store)
    for _ in range(4):
        await store.add_warn(GROUP_ID, "42", "earlier", 5)
    engine = _engine(store, transport, StubJudgment(VIOLATION))

    outcome = await engine.evaluate(make_envelope("spam spam spam"))

    assert outcome is ModerationOutcome.REMOVED
    assert [(g, u) for g, u, _ in transport.removed] == [(GROUP_ID, "42")]
    assert await store.get_warn(GROUP_ID, "42") == 0
    assert len(transport.sent) == 1
    assert "removed" in transport.sent[0]["text"]
    assert "Warning" not in transport.sent[0]["text"]


@pytest.mark.asyncio
async def test_repeated_violations_remove_exactly_once(store, transport) -> None:
    await _activate(store)
    engine = _engine(store, transport, StubJudgment(VIOLATION), warn_threshold=3)

    outcomes = [await engine.evaluate(make_envelope(f"insult {i}")) for i in range(3)]

    assert outcomes == [ModerationOutcome.WARNED, ModerationOutcome.WARNED, ModerationOutcome.REMOVED]
    assert len(transport.removed) == 1
    assert await store.get_warn(GROUP_ID, "42") == 0


@pytest.mark.asyncio
async def test_concurrent_violations_at_the_limit_remove_once(store, transport) -> None:
    await _activate(store)
    await store.add_warn(GROUP_ID, "42", "earlier", 3)
    await store.add_warn(GROUP_ID, "42", "earlier", 3)

    async def slow_remove(group_id, user_id, reason=""):
        await asyncio.sleep(0.05)
        transport.removed.append((group_id, str(user_id), reason))

    transport.remove_member = slow_remove
    engine = _engine(store, transport, StubJudgment(VIOLATION, delay=0.01), warn_threshold=3)

    outcomes = await asyncio.gather(
        engine.evaluate(make_envelope("insult a")),
        engine.evaluate(make_envelope("insult b")),
    )

    assert sorted(outcomes, key=str) == [ModerationOutcome.AT_LIMIT, ModerationOutcome.REMOVED]
    assert [(g, u) for g, u, _ in transport.removed] == [(GROUP_ID, "42")]
    assert len([text for text in transport.texts if "was removed" in text]) == 1
    assert not any("could not remove" in text for text in transport.texts)
    assert await store.get_warn(GROUP_ID, "42") == 0


@pytest.mark.asyncio
async def test_removal_failure_tells_admins_and_retries_next_time(store, transport) -> None:
    await _activate(store)
    await store.add_warn(GROUP_ID, "42", "earlier", 2)
    transport.fail_remove = True
    engine = _engine(store, transport, StubJudgment(VIOLATION), warn_threshold=2)

    outcome = await engine.evaluate(make_envelope("bad"))

    assert outcome is ModerationOutcome.REMOVAL_FAILED
    assert "could not remove" in transport.sent[0]["text"]
    assert await store.get_warn(GROUP_ID, "42") == 1

    transport.fail_remove = False
    assert await engine.evaluate(make_envelope("bad again")) is ModerationOutcome.REMOVED
    assert [(g, u) for g, u, _ in transport.removed] == [(GROUP_ID, "42")]


@pytest.mark.asyncio
async def test_message_is_evaluated_at_most_once(store, transport) -> None:
    await _activate(store)
    judgment = StubJudgment(VIOLATION)
    engine = _engine(store, transport, judgment)

    envelope = make_envelope("you idiot", message_id="dup-1")
    first, second = await asyncio.gather(engine.evaluate(envelope), engine.evaluate(envelope))

    assert sorted([first, second], key=str) == sorted([ModerationOutcome.WARNED, ModerationOutcome.SKIPPED], key=str)
    assert len(judgment.calls) == 1
    assert await store.get_warn(GROUP_ID, "42") == 1


@pytest.mark.asyncio
async def test_judgment_error_is_silent(store, transport) -> None:
    await _activate(store)
    engine = _engine(store, transport, StubJudgment(error=JudgmentError("unparseable")))

    assert await engine.evaluate(make_envelope("hmm")) is ModerationOutcome.ERROR
    assert transport.sent == []
    assert transport.deleted == []
    assert await store.get_warn(GROUP_ID, "42") == 0


@pytest.mark.asyncio
async def test_judgment_timeout_is_silent(store, transport) -> None:
    await _activate(store)
    engine = _engine(store, transport, StubJudgment(VIOLATION, delay=1.0), evaluation_timeout=0.01)

    assert await engine.evaluate(make_envelope("hmm")) is ModerationOutcome.ERROR
    assert transport.sent == []


@pytest.mark.asyncio
async def test_judgment_not_ready_skips(store, transport) -> None:
    await _activate(store)
    engine = _engine(store, transport, StubJudgment(VIOLATION, ready=False))
    assert await engine.evaluate(make_envelope("you idiot")) is ModerationOutcome.SKIPPED


# ---------------------------------------------------------------------------
# Redeem
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_redeem_with_no_warnings(store, transport) -> None:
    await _activate(store)
    judgment = StubJudgment(GRANTED)
    engine = _engine(store, transport, judgment)

    envelope = make_envelope("Elaina tolong kurangi warn saya")
    assert engine.is_redeem_request(envelope)
    outcome = await engine.evaluate(envelope)

    assert outcome is ModerationOutcome.REDEEM_NOTHING
    assert judgment.calls == []
    assert "nothing to reduce" in transport.texts[0]


@pytest.mark.asyncio
async def test_redeem_granted_decrements(store, transport) -> None:
    await _activate(store)
    await store.add_warn(GROUP_ID, "42", "x", 5)
    await store.add_warn(GROUP_ID, "42", "x", 5)
    judgment = StubJudgment(GRANTED)
    engine = _engine(store, transport, judgment)

    outcome = await engine.evaluate(make_envelope("elaina kurangi warn subhanallah x5"))

    assert outcome is ModerationOutcome.REDEEMED
    assert judgment.calls[0][0] is ModerationMode.REDEEM
    assert await store.get_warn(GROUP_ID, "42") == 1
    assert "1/5" in transport.texts[0]


@pytest.mark.asyncio
async def test_redeem_to_zero(store, transport) -> None:
    await _activate(store)
    await store.add_warn(GROUP_ID, "42", "x", 5)
    engine = _engine(store, transport, StubJudgment(GRANTED))

    assert await engine.evaluate(make_envelope("elaina kurangi warn")) is ModerationOutcome.REDEEMED
    assert await store.get_warn(GROUP_ID, "42") == 0
    assert "now at 0" in transport.texts[0]


@pytest.mark.asyncio
async def test_redeem_denied_explains(store, transport) -> None:
    await _activate(store)
    await store.add_warn(GROUP_ID, "42", "x", 5)
    engine = _engine(store, transport, StubJudgment(DENIED))

    assert await engine.evaluate(make_envelope("elaina kurangi warn")) is ModerationOutcome.REDEEM_DENIED
    assert await store.get_warn(GROUP_ID, "42") == 1
    assert "subhanallah must be said 5 times" in transport.texts[0]


def test_redeem_requires_bot_name_and_keyword(transport) -> None:
    engine = _engine(None, transport, StubJudgment())
    assert not engine.is_redeem_request(make_envelope("kurangi warn please"))
    assert not engine.is_redeem_request(make_envelope("elaina how are you"))
    assert not engine.is_redeem_request(make_envelope("elaina kurangi warn", group=False))


def test_threshold_must_be_positive(transport) -> None:
    with pytest.raises(ValueError):
        _engine(None, transport, StubJudgment(), warn_threshold=0)


# ---------------------------------------------------------------------------
# Admin commands
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_enable_stores_group_description(store, transport) -> None:
    engine = _engine(store, transport, StubJudgment())

    await engine.run_command(make_envelope("!peraturan on", sender="1"), ModerationCommand.ON)

    state = await store.get_rules(GROUP_ID)
    assert state.enabled
    assert state.rules_text == "1. Be kind\n2. No spam\n3. No NSFW"
    assert "3 rule lines" in transport.texts[-1]


@pytest.mark.asyncio
async def test_enable_with_empty_description_fails(store, transport) -> None:
    transport.groups[GROUP_ID].description = "   \n  "
    engine = _engine(store, transport, StubJudgment())

    await engine.run_command(make_envelope("!peraturan on", sender="1"), ModerationCommand.ON)

    state = await store.get_rules(GROUP_ID)
    assert not state.enabled
    assert "empty" in transport.texts[-1]


@pytest.mark.asyncio
async def test_enable_without_judgment_key_fails(store, transport) -> None:
    engine = _engine(store, transport, StubJudgment(ready=False))

    await engine.run_command(make_envelope("!peraturan on", sender="1"), ModerationCommand.ON)

    assert not (await store.get_rules(GROUP_ID)).enabled
    assert "API key" in transport.texts[-1]


@pytest.mark.asyncio
async def test_disable_keeps_rules(store, transport) -> None:
    await _activate(store)
    engine = _engine(store, transport, StubJudgment())

    await engine.run_command(make_envelope("!peraturan off", sender="1"), ModerationCommand.OFF)

    state = await store.get_rules(GROUP_ID)
    assert not state.enabled
    assert state.rules_text == RULES


@pytest.mark.asyncio
async def test_sync_replaces_rules_and_keeps_switch(store, transport) -> None:
    await _activate(store)
    transport.groups[GROUP_ID].description = "  No ads  \n\nNo politics"
    engine = _engine(store, transport, StubJudgment())

    await engine.run_command(make_envelope("!peraturan sync", sender="1"), ModerationCommand.SYNC)

    state = await store.get_rules(GROUP_ID)
    assert state.enabled
    assert state.rules_text == "No ads\nNo politics"


@pytest.mark.asyncio
async def test_status_lists_rules_and_top_warnings(store, transport) -> None:
    await _activate(store)
    await store.add_warn(GROUP_ID, "43", "x", 5)
    await store.add_warn(GROUP_ID, "43", "x", 5)
    await store.add_warn(GROUP_ID, "44", "x", 5)
    engine = _engine(store, transport, StubJudgment())

    await engine.run_command(make_envelope("!peraturan status", sender="1"), ModerationCommand.STATUS)

    text = transport.texts[-1]
    assert "ON" in text
    assert "Be kind" in text
    assert text.index("<@43>") < text.index("<@44>")
    assert "2/5" in text


@pytest.mark.asyncio
async def test_clear_resets_mentioned_user(store, transport) -> None:
    await _activate(store)
    await store.add_warn(GROUP_ID, "43", "x", 5)
    await store.add_warn(GROUP_ID, "43", "x", 5)
    engine = _engine(store, transport, StubJudgment())

    await engine.run_command(make_envelope("!peraturan clear <@43>", sender="1", mentions=("43",)), ModerationCommand.CLEAR)

    assert await store.get_warn(GROUP_ID, "43") == 0
    assert "(was 2)" in transport.texts[-1]


@pytest.mark.asyncio
async def test_commands_require_admin(store, transport) -> None:
    engine = _engine(store, transport, StubJudgment())

    await engine.run_command(make_envelope("!peraturan on", sender="42"), ModerationCommand.ON)

    assert not (await store.get_rules(GROUP_ID)).enabled
    assert "Only group admins" in transport.texts[-1]


@pytest.mark.asyncio
async def test_owner_may_run_commands(store, transport) -> None:
    engine = _engine(store, transport, StubJudgment())

    await engine.run_command(make_envelope("!peraturan on", sender="42", is_owner=True), ModerationCommand.ON)

    assert (await store.get_rules(GROUP_ID)).enabled


@pytest.mark.asyncio
async def test_help_is_open_and_commands_reject_direct_chats(store, transport) -> None:
    engine = _engine(store, transport, StubJudgment())

    await engine.run_command(make_envelope("!peraturan", sender="42"), ModerationCommand.HELP)
    assert "Usage" in transport.texts[-1]

    await engine.run_command(make_envelope("!peraturan on", group=False, sender="1"), ModerationCommand.ON)
    assert "inside a group" in transport.texts[-1]


@pytest.mark.asyncio
async def test_clear_skips_the_bot_mentioned_first(store, transport) -> None:
    await _activate(store)
    await store.add_warn(GROUP_ID, "43", "x", 5)
    engine = _engine(store, transport, StubJudgment())
    message = SimpleNamespace(
        id=700,
        content="!peraturan clear <@777> <@43>",
        attachments=[],
        reference=None,
        guild=SimpleNamespace(id=int(GROUP_ID)),
        channel=SimpleNamespace(id=int(CHANNEL_ID)),
        author=SimpleNamespace(id=1, display_name="Admin", name="admin", bot=False),
        mentions=[SimpleNamespace(id=777, bot=True), SimpleNamespace(id=43, bot=False)],
        flags=SimpleNamespace(voice=False),
    )
    envelope = extract_envelope(message, TriggerMatcher("elaina"), bot_user_id=777)

    await engine.run_command(envelope, ModerationCommand.CLEAR)

    assert await store.get_warn(GROUP_ID, "43") == 0
    assert "(was 1)" in transport.texts[-1]


@pytest.mark.asyncio
async def test_unknown_subcommand_names_the_token_before_help(store, transport) -> None:
    engine = _engine(store, transport, StubJudgment())
    envelope = make_envelope("!peraturan xyz", sender="42")

    await engine.run_command(envelope, ModerationCommand.parse(envelope.command_args))

    reply = transport.texts[-1]
    assert reply.startswith("Unknown command `xyz`.")
    assert "Usage" in reply
    assert not (await store.get_rules(GROUP_ID)).enabled


def test_command_parsing_separates_help_from_unknown() -> None:
    assert ModerationCommand.parse("") is ModerationCommand.HELP
    assert ModerationCommand.parse("  HELP ") is ModerationCommand.HELP
    assert ModerationCommand.parse("Status now") is ModerationCommand.STATUS
    assert ModerationCommand.parse("xyz") is ModerationCommand.UNKNOWN
