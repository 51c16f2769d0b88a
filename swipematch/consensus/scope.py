from __future__ import annotations

from dataclasses import dataclass

SOLO_PREFIX = "solo:"


@dataclass(frozen=True)
class Scope:
    scope_id: str
    is_solo: bool


def solo_scope_id(member_id: str) -> str:
    return f"{SOLO_PREFIX}{member_id}"


def is_solo_scope(scope_id: str) -> bool:
    return scope_id.startswith(SOLO_PREFIX)


def resolve_scope(member_id: str, active_group_id: str | None = None) -> Scope:
    """Map a vote to the scope its ledger entries live under.

    Without an active group the vote goes to the member's private solo scope,
    which no other member shares and which is never evaluated for consensus.
    A group id carrying the solo prefix is not a group: it resolves to the
    caller's own solo scope, never to another member's.
    """
    if active_group_id and not is_solo_scope(active_group_id):
        return Scope(scope_id=active_group_id, is_solo=False)
    return Scope(scope_id=solo_scope_id(member_id), is_solo=True)
