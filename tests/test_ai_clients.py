from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import httpx
import openai
import pytest

from elaina.ai.judgment_client import JudgmentClient, build_moderation_prompt
from elaina.ai.key_ring import ApiKeyRing
from elaina.ai.llm_engine import LLMEngine
from elaina.ai.persona import build_system_prompt
from elaina.configuration.ai_settings import AISettings
from elaina.datatypes.chat_state import Persona
from elaina.datatypes.moderation_datatypes import ModerationMode
from elaina.util.errors import JudgmentError, JudgmentParseError, LLMError

PROMPTS = {"elaina1": "BASE", "elaina2": "PRO"}


def _response(content):
    return SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=content))])


def _api_error():
    return openai.APIConnectionError(request=httpx.Request("POST", "https://example.invalid"))


def _client(side_effect=None, content="ok"):
    client = MagicMock()
    client.chat.completions.create = AsyncMock(side_effect=side_effect, return_value=_response(content))
    return client


# ---------------------------------------------------------------------------
# Key ring
# ---------------------------------------------------------------------------


def test_key_ring_rotates_on_failure() -> None:
    ring = ApiKeyRing(["a", "b", "c"])
    assert ring.current() == "a"
    ring.mark_failed("a")
    assert ring.attempt_order() == ["b", "c", "a"]


def test_key_ring_ignores_stale_failures() -> None:
    ring = ApiKeyRing(["a", "b"])
    ring.mark_failed("a")
    ring.mark_failed("a")
    assert ring.current() == "b"


def test_empty_and_single_key_rings() -> None:
    empty = ApiKeyRing(["", "  "])
    assert not empty and len(empty) == 0
    assert empty.current() == ""

    single = ApiKeyRing(["only"])
    single.mark_failed("only")
    assert single.current() == "only"


# ---------------------------------------------------------------------------
# Persona
# ---------------------------------------------------------------------------


def test_system_prompt_per_persona_and_pro_mode() -> None:
    assert build_system_prompt(Persona.ELAINA1, False, PROMPTS) == "BASE"
    assert build_system_prompt(Persona.ELAINA2, False, PROMPTS) == "PRO"
    assert build_system_prompt(Persona.ELAINA2, True, PROMPTS) == "BASE\n\nPRO"


# ---------------------------------------------------------------------------
# LLM engine
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_llm_engine_fails_over_to_next_key() -> None:
    clients = {"k1": _client(side_effect=_api_error()), "k2": _client(content=" hello ")}
    engine = LLMEngine(AISettings({"api_keys": ["k1", "k2"]}), client_factory=clients.__getitem__)

    assert await engine.ask_text("sys", "hi") == "hello"
    assert engine.keys.current() == "k2"

    messages = clients["k2"].chat.completions.create.call_args.kwargs["messages"]
    assert messages == [{"role": "system", "content": "sys"}, {"role": "user", "content": "hi"}]


@pytest.mark.asyncio
async def test_llm_engine_raises_when_every_key_fails() -> None:
    clients = {"k1": _client(content=""), "k2": _client(side_effect=_api_error())}
    engine = LLMEngine(AISettings({"api_keys": ["k1", "k2"]}), client_factory=clients.__getitem__)

    with pytest.raises(LLMError):
        await engine.ask_text("", "hi")


@pytest.mark.asyncio
async def test_llm_engine_without_keys() -> None:
    engine = LLMEngine(AISettings({"api_keys": []}), client_factory=lambda key: _client())
    assert not engine.ready
    with pytest.raises(LLMError):
        await engine.ask_text("", "hi")


@pytest.mark.asyncio
async def test_vision_and_transcription_payloads() -> None:
    client = _client(content="a cat")
    engine = LLMEngine(AISettings({"api_keys": ["k"]}), client_factory=lambda key: client)

    assert await engine.ask_vision("sys", "what is it", b"\xff\xd8", "image/jpeg") == "a cat"
    content = client.chat.completions.create.call_args.kwargs["messages"][-1]["content"]
    assert content[0] == {"type": "text", "text": "what is it"}
    assert content[1]["image_url"]["url"].startswith("data:image/jpeg;base64,")

    await engine.transcribe(b"OggS", "audio/ogg; codecs=opus")
    content = client.chat.completions.create.call_args.kwargs["messages"][-1]["content"]
    assert content[1]["type"] == "input_audio"
    assert content[1]["input_audio"]["format"] == "ogg"


# ---------------------------------------------------------------------------
# Judgment client
# ---------------------------------------------------------------------------


def _judgment(client, api_key="key"):
    return JudgmentClient(api_key, base_url="https://example.invalid", model="m", system_prompt="judge", client=client)


def test_moderation_prompt_layout() -> None:
    prompt = build_moderation_prompt(mode=ModerationMode.WARN, rules=" No spam ", bot_name="Elaina", message="buy now", user_id="42")
    assert prompt == "Mode: WARN\nBot: Elaina\nUser: 42\nGroup rules:\nNo spam\nMessage:\nbuy now"


@pytest.mark.asyncio
async def test_judgment_client_parses_verdict() -> None:
    client = _client(content='{"violation": true, "reason": "spam"}')
    judgment = await _judgment(client).evaluate(mode=ModerationMode.WARN, rules="No spam", bot_name="Elaina", message="buy", user_id="1")

    assert judgment.violation and judgment.reason == "spam"
    kwargs = client.chat.completions.create.call_args.kwargs
    assert kwargs["response_format"] == {"type": "json_object"}
    assert kwargs["temperature"] == 0


@pytest.mark.asyncio
async def test_judgment_client_errors() -> None:
    failing = _judgment(_client(side_effect=_api_error()))
    with pytest.raises(JudgmentError):
        await failing.evaluate(mode=ModerationMode.WARN, rules="r", bot_name="b", message="m", user_id="u")

    garbage = _judgment(_client(content="I think it is fine"))
    with pytest.raises(JudgmentParseError):
        await garbage.evaluate(mode=ModerationMode.WARN, rules="r", bot_name="b", message="m", user_id="u")


@pytest.mark.asyncio
async def test_judgment_client_without_key_is_not_ready() -> None:
    client = JudgmentClient("", base_url="https://example.invalid", model="m", system_prompt="judge")
    assert not client.ready
    with pytest.raises(JudgmentError):
        await client.evaluate(mode=ModerationMode.REDEEM, rules="r", bot_name="b", message="m", user_id="u")
