import pytest

from elaina.repositories.memory_repo import ASSISTANT_ROLE, USER_ROLE, Turn, build_context
from elaina.services.memory_service import ConversationMemory


def test_build_context_without_history_returns_question() -> None:
    assert build_context([], "what time is it?", 1000) == "what time is it?"


def test_build_context_labels_speakers() -> None:
    history = [Turn(USER_ROLE, "hi"), Turn(ASSISTANT_ROLE, "hello!")]
    context = build_context(history, "how are you?", 1000, bot_name="Elaina")
    assert context == "Previous conversation (summary):\nUser: hi\nElaina: hello!\n\nNew question:\nhow are you?"


def test_build_context_respects_budget() -> None:
    history = [Turn(USER_ROLE, "a" * 50), Turn(ASSISTANT_ROLE, "b" * 50)]
    context = build_context(history, "q", 100)
    assert "a" * 50 in context
    assert "b" * 50 not in context


@pytest.mark.asyncio
async def test_memory_keeps_a_rolling_window(connection) -> None:
    memory = ConversationMemory(connection, turns=2, char_budget=4000)
    for i in range(4):
        await memory.remember("c1", f"question {i}", f"answer {i}")

    context = await memory.context("c1", "next")

    assert "question 0" not in context and "question 1" not in context
    assert context.index("question 2") < context.index("answer 2") < context.index("question 3")
    assert context.endswith("New question:\nnext")


@pytest.mark.asyncio
async def test_memory_is_per_chat(connection) -> None:
    memory = ConversationMemory(connection, turns=4)
    await memory.remember("c1", "secret", "ok")
    assert await memory.context("c2", "hello") == "hello"


@pytest.mark.asyncio
async def test_disabled_memory_stores_nothing(connection) -> None:
    memory = ConversationMemory(connection, turns=0)
    await memory.remember("c1", "q", "a")
    assert not memory.enabled
    assert await memory.context("c1", "hello") == "hello"
