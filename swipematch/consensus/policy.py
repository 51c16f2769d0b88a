"""
Consensus threshold policy.

Small groups (2-3 members) must agree unanimously so a single dissenter can
block a pick. From four members on, a strict majority is enough. Groups of
0 or 1 members (including every solo scope) can never reach consensus.
"""
from __future__ import annotations

UNANIMOUS_MAX_MEMBERS = 3


def required_count(member_count: int) -> int | None:
    """Return the number of right votes needed, or ``None`` if consensus is impossible."""
    if member_count < 0:
        raise ValueError(f"member_count must be >= 0, got {member_count}")
    if member_count < 2:
        return None
    if member_count <= UNANIMOUS_MAX_MEMBERS:
        return member_count
    return member_count // 2 + 1


def is_consensus_reached(affirmative_count: int, member_count: int) -> bool:
    required = required_count(member_count)
    if required is None:
        return False
    return affirmative_count >= required


def is_unanimous(affirmative_count: int, member_count: int) -> bool:
    return member_count >= 2 and affirmative_count == member_count
