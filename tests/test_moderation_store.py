import asyncio

import pytest

from elaina.services.moderation_store import ModerationStore

GROUP = "g1"


@pytest.fixture
def store(connection) -> ModerationStore:
    return ModerationStore(connection)


@pytest.mark.asyncio
async def test_rules_default_to_disabled(store) -> None:
    state = await store.get_rules(GROUP)
    assert not state.enabled
    assert state.rules_text == ""
    assert not state.is_active


@pytest.mark.asyncio
async def test_set_rules_partial_updates(store) -> None:
    await store.set_rules(GROUP, text="No spam")
    assert not (await store.get_rules(GROUP)).enabled

    await store.set_rules(GROUP, enabled=True)
    state = await store.get_rules(GROUP)
    assert state.enabled and state.rules_text == "No spam"
    assert state.is_active

    await store.set_rules(GROUP, enabled=False)
    state = await store.get_rules(GROUP)
    assert not state.enabled
    assert state.rules_text == "No spam"


@pytest.mark.asyncio
async def test_add_warn_clamps_at_threshold(store) -> None:
    counts = [await store.add_warn(GROUP, "u", "r", 3) for _ in range(5)]
    assert counts == [1, 2, 3, 3, 3]


@pytest.mark.asyncio
async def test_decrement_floors_at_zero_and_deletes_row(store) -> None:
    await store.add_warn(GROUP, "u", "r", 5)
    assert await store.decrement_warn(GROUP, "u", "redeem") == 0
    assert await store.decrement_warn(GROUP, "u", "redeem") == 0
    assert await store.list_warns(GROUP) == []


@pytest.mark.asyncio
async def test_clear_returns_previous_count(store) -> None:
    await store.add_warn(GROUP, "u", "r", 5)
    await store.add_warn(GROUP, "u", "r", 5)
    assert await store.clear_warn(GROUP, "u", "admin") == 2
    assert await store.get_warn(GROUP, "u") == 0
    assert await store.clear_warn(GROUP, "nobody", "admin") == 0


@pytest.mark.asyncio
async def test_ledger_is_per_group(store) -> None:
    await store.add_warn("a", "u", "r", 5)
    assert await store.get_warn("b", "u") == 0


@pytest.mark.asyncio
async def test_list_warns_orders_by_count(store) -> None:
    for user, times in (("low", 1), ("high", 3), ("mid", 2)):
        for _ in range(times):
            await store.add_warn(GROUP, user, "r", 5)
    await store.add_warn(GROUP, "cleared", "r", 5)
    await store.clear_warn(GROUP, "cleared", "admin")

    records = await store.list_warns(GROUP, limit=2)

    assert [(r.user_id, r.count) for r in records] == [("high", 3), ("mid", 2)]


@pytest.mark.asyncio
async def test_concurrent_adds_are_not_lost(store) -> None:
    results = await asyncio.gather(*(store.add_warn(GROUP, "u", "r", 100) for _ in range(25)))
    assert sorted(results) == list(range(1, 26))
    assert await store.get_warn(GROUP, "u") == 25


@pytest.mark.asyncio
async def test_only_one_concurrent_violation_breaches(store) -> None:
    await store.add_warn(GROUP, "u", "r", 3)
    await store.add_warn(GROUP, "u", "r", 3)

    changes = await asyncio.gather(*(store.record_violation(GROUP, "u", "r", 3) for _ in range(3)))

    assert [change.breached for change in changes].count(True) == 1
    assert all(change.count == 3 for change in changes)
    assert sorted(change.previous for change in changes) == [2, 3, 3]


@pytest.mark.asyncio
async def test_claim_evaluation_once(store) -> None:
    assert await store.claim_evaluation("m1", GROUP)
    assert not await store.claim_evaluation("m1", GROUP)
    assert await store.claim_evaluation("m2", GROUP)
