from __future__ import annotations

import logging
import threading
from typing import Callable, Iterable, Protocol

from ..consensus.errors import ScopeNotFound

logger = logging.getLogger(__name__)

MembershipListener = Callable[[frozenset[str]], None]


class MembershipDirectory(Protocol):
    def get_members(self, scope_id: str) -> frozenset[str]:
        """Return the current member ids, raising ``ScopeNotFound`` for unknown groups."""
        ...

    def subscribe_membership(
        self, scope_id: str, on_change: MembershipListener,
    ) -> Callable[[], None]:
        """Call ``on_change`` with the new roster after each change; returns an unsubscribe."""
        ...

    def scope_ids(self) -> list[str]:
        """Ids of every group the directory currently knows."""
        ...


class InMemoryMembershipDirectory:
    def __init__(self, groups: dict[str, Iterable[str]] | None = None) -> None:
        self._groups: dict[str, frozenset[str]] = {}
        self._listeners: dict[str, list[MembershipListener]] = {}
        self._lock = threading.Lock()
        for scope_id, members in (groups or {}).items():
            self._groups[scope_id] = frozenset(members)

    def get_members(self, scope_id: str) -> frozenset[str]:
        with self._lock:
            members = self._groups.get(scope_id)
        if members is None:
            raise ScopeNotFound(scope_id)
        return members

    def scope_ids(self) -> list[str]:
        with self._lock:
            return sorted(self._groups)

    def subscribe_membership(
        self, scope_id: str, on_change: MembershipListener,
    ) -> Callable[[], None]:
        with self._lock:
            self._listeners.setdefault(scope_id, []).append(on_change)

        def unsubscribe() -> None:
            with self._lock:
                listeners = self._listeners.get(scope_id, [])
                if on_change in listeners:
                    listeners.remove(on_change)

        return unsubscribe

    # ── Mutations (normally performed by the group service) ─────────────

    def set_members(self, scope_id: str, members: Iterable[str]) -> None:
        with self._lock:
            self._groups[scope_id] = frozenset(members)
        self._notify(scope_id)

    def add_member(self, scope_id: str, member_id: str) -> None:
        with self._lock:
            current = self._groups.get(scope_id, frozenset())
            self._groups[scope_id] = current | {member_id}
        self._notify(scope_id)

    def remove_member(self, scope_id: str, member_id: str) -> None:
        with self._lock:
            current = self._groups.get(scope_id)
            if current is None:
                raise ScopeNotFound(scope_id)
            self._groups[scope_id] = current - {member_id}
        self._notify(scope_id)

    def delete_group(self, scope_id: str) -> None:
        with self._lock:
            self._groups.pop(scope_id, None)
            self._listeners.pop(scope_id, None)

    def _notify(self, scope_id: str) -> None:
        with self._lock:
            members = self._groups.get(scope_id, frozenset())
            listeners = list(self._listeners.get(scope_id, []))
        for listener in listeners:
            try:
                listener(members)
            except Exception:
                logger.warning("Membership listener for %s failed", scope_id, exc_info=True)


DEMO_GROUPS: dict[str, list[str]] = {
    "trio": ["alice", "bob", "carol"],
    "squad": ["alice", "bob", "carol", "dave", "erin"],
}


def seed_demo_groups() -> InMemoryMembershipDirectory:
    """Build a directory pre-seeded with the demo groups."""
    return InMemoryMembershipDirectory(DEMO_GROUPS)
