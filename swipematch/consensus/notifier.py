from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable

from .models import MatchRecord

logger = logging.getLogger(__name__)

SnapshotLoader = Callable[[str], Awaitable[list[MatchRecord]]]

_CLOSED = object()


class MatchSubscription:
    """Async stream of full active-match snapshots for one scope.

    Only the newest snapshot is buffered: a slow consumer skips intermediate
    states and always sees the latest one next.
    """

    def __init__(self, notifier: MatchNotifier, scope_id: str) -> None:
        self.scope_id = scope_id
        self._notifier = notifier
        self._queue: asyncio.Queue = asyncio.Queue(maxsize=1)
        self._closed = False

    def push(self, snapshot: list[MatchRecord]) -> None:
        if self._closed:
            return
        if self._queue.full():
            self._queue.get_nowait()
        self._queue.put_nowait(snapshot)

    @property
    def closed(self) -> bool:
        return self._closed

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._notifier._remove(self)
        if self._queue.full():
            self._queue.get_nowait()
        self._queue.put_nowait(_CLOSED)

    def __aiter__(self) -> MatchSubscription:
        return self

    async def __anext__(self) -> list[MatchRecord]:
        item = await self._queue.get()
        if item is _CLOSED:
            raise StopAsyncIteration
        return item

    async def __aenter__(self) -> MatchSubscription:
        return self

    async def __aexit__(self, *exc_info) -> None:
        self.close()


class MatchNotifier:
    """Fan out active-match snapshots to subscribers of one scope at a time.

    Loading and pushing a snapshot is serialized per scope, so subscribers
    receive snapshots in the order the loads started and the last one they
    hold always reflects the newest write.
    """

    def __init__(self, loader: SnapshotLoader) -> None:
        self._loader = loader
        self._subscriptions: dict[str, list[MatchSubscription]] = {}
        self._locks: dict[str, asyncio.Lock] = {}

    def _lock(self, scope_id: str) -> asyncio.Lock:
        return self._locks.setdefault(scope_id, asyncio.Lock())

    async def subscribe(self, scope_id: str) -> MatchSubscription:
        subscription = MatchSubscription(self, scope_id)
        async with self._lock(scope_id):
            self._subscriptions.setdefault(scope_id, []).append(subscription)
            subscription.push(await self._loader(scope_id))
        logger.debug("Subscribed to matches of %s", scope_id)
        return subscription

    def subscriber_count(self, scope_id: str) -> int:
        return len(self._subscriptions.get(scope_id, []))

    async def publish(self, scope_id: str) -> None:
        if not self._subscriptions.get(scope_id):
            return
        async with self._lock(scope_id):
            subscriptions = list(self._subscriptions.get(scope_id, []))
            if not subscriptions:
                return
            snapshot = await self._loader(scope_id)
            for subscription in subscriptions:
                subscription.push(snapshot)
        logger.debug(
            "Published %d active matches of %s to %d subscribers",
            len(snapshot), scope_id, len(subscriptions),
        )

    def _remove(self, subscription: MatchSubscription) -> None:
        subscriptions = self._subscriptions.get(subscription.scope_id, [])
        if subscription in subscriptions:
            subscriptions.remove(subscription)
        if not subscriptions:
            self._subscriptions.pop(subscription.scope_id, None)
