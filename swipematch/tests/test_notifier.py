from __future__ import annotations

import asyncio

import pytest

from swipematch.consensus.config import ConsensusConfig
from swipematch.consensus.models import Direction, MatchStatus, RestaurantSnapshot
from swipematch.consensus.notifier import MatchNotifier
from swipematch.consensus.service import SwipeService
from swipematch.membership import InMemoryMembershipDirectory
from swipematch.storage import MemoryStore

RIGHT = Direction.right
TACOS = RestaurantSnapshot(name="Taqueria El Sol", cuisines=["Mexican"])


def _service() -> SwipeService:
    directory = InMemoryMembershipDirectory({
        "pair": ["alice", "bob"],
        "other": ["alice", "bob"],
    })
    return SwipeService(MemoryStore(), directory, ConsensusConfig(read_timeout_seconds=2.0))


async def _next(subscription, timeout: float = 1.0):
    return await asyncio.wait_for(anext(subscription), timeout)


def test_subscription_starts_with_current_snapshot():
    async def run():
        service = _service()
        await service.submit_vote("alice", "pair", "r003", RIGHT, TACOS)
        await service.submit_vote("bob", "pair", "r003", RIGHT, TACOS)
        async with await service.subscribe_active_matches("pair") as subscription:
            return await _next(subscription)

    snapshot = asyncio.run(run())
    assert [m.item_id for m in snapshot] == ["r003"]


def test_new_match_pushes_full_snapshot():
    async def run():
        service = _service()
        subscription = await service.subscribe_active_matches("pair")
        initial = await _next(subscription)
        for item in ("r001", "r002"):
            await service.submit_vote("alice", "pair", item, RIGHT, TACOS)
            await service.submit_vote("bob", "pair", item, RIGHT, TACOS)
        latest = await _next(subscription)
        subscription.close()
        return initial, latest

    initial, latest = asyncio.run(run())
    assert initial == []
    # Only the newest snapshot is buffered, and it contains both matches
    assert [m.item_id for m in latest] == ["r002", "r001"]


def test_status_change_is_published():
    async def run():
        service = _service()
        await service.submit_vote("alice", "pair", "r004", RIGHT, TACOS)
        await service.submit_vote("bob", "pair", "r004", RIGHT, TACOS)
        subscription = await service.subscribe_active_matches("pair")
        before = await _next(subscription)
        await service.update_match_status("pair", "r004", MatchStatus.archived)
        after = await _next(subscription)
        subscription.close()
        return before, after

    before, after = asyncio.run(run())
    assert len(before) == 1
    assert after == []


def test_other_scopes_are_not_notified():
    async def run():
        service = _service()
        subscription = await service.subscribe_active_matches("other")
        await _next(subscription)
        await service.submit_vote("alice", "pair", "r005", RIGHT, TACOS)
        await service.submit_vote("bob", "pair", "r005", RIGHT, TACOS)
        with pytest.raises(asyncio.TimeoutError):
            await _next(subscription, timeout=0.1)
        subscription.close()

    asyncio.run(run())


def test_close_ends_iteration_and_unsubscribes():
    async def run():
        loads = []

        async def loader(scope_id):
            loads.append(scope_id)
            return []

        notifier = MatchNotifier(loader)
        subscription = await notifier.subscribe("pair")
        assert notifier.subscriber_count("pair") == 1
        subscription.close()
        received = [snapshot async for snapshot in subscription]
        await notifier.publish("pair")
        return notifier, loads, received

    notifier, loads, received = asyncio.run(run())
    assert notifier.subscriber_count("pair") == 0
    assert received == []
    # No subscribers left, so publish does not even load a snapshot
    assert loads == ["pair"]


class _GatedLoader:
    """Reads the current state immediately, then waits on the next gate (if any)."""

    def __init__(self, state):
        self.state = state
        self.gates: list[asyncio.Event] = []

    async def __call__(self, scope_id):
        snapshot = list(self.state)
        gate = self.gates.pop(0) if self.gates else None
        if gate is not None:
            await gate.wait()
        return snapshot


def test_slow_publish_cannot_overwrite_newer_snapshot():
    async def run():
        loader = _GatedLoader(["S1", "X"])
        notifier = MatchNotifier(loader)
        subscription = await notifier.subscribe("pair")

        slow = asyncio.Event()
        loader.gates.append(slow)
        first = asyncio.create_task(notifier.publish("pair"))
        await asyncio.sleep(0)
        loader.state.append("Y")
        second = asyncio.create_task(notifier.publish("pair"))
        await asyncio.sleep(0)
        slow.set()
        await asyncio.gather(first, second)

        latest = await _next(subscription)
        subscription.close()
        return latest

    assert asyncio.run(run()) == ["S1", "X", "Y"]


def test_initial_snapshot_cannot_overwrite_concurrent_publish():
    async def run():
        loader = _GatedLoader([])
        notifier = MatchNotifier(loader)

        slow = asyncio.Event()
        loader.gates.append(slow)
        subscribing = asyncio.create_task(notifier.subscribe("pair"))
        await asyncio.sleep(0)
        loader.state.append("M")
        publishing = asyncio.create_task(notifier.publish("pair"))
        await asyncio.sleep(0)
        slow.set()
        subscription = await subscribing
        await publishing

        latest = await _next(subscription)
        subscription.close()
        return latest

    assert asyncio.run(run()) == ["M"]
