from __future__ import annotations


class SwipeMatchError(Exception):
    """Base class for consensus engine errors."""


class TransientIOError(SwipeMatchError):
    """Ledger, match store or membership directory was unreachable or timed out.

    Retryable. Never invalidates state that was already made durable.
    """


class ScopeNotFound(SwipeMatchError):
    """The group disappeared from the membership directory."""

    def __init__(self, scope_id: str) -> None:
        super().__init__(f"scope {scope_id!r} not found")
        self.scope_id = scope_id


class NotAMember(SwipeMatchError):
    """A member tried to vote in a group they do not belong to."""

    def __init__(self, member_id: str, scope_id: str) -> None:
        super().__init__(f"{member_id!r} is not a member of {scope_id!r}")
        self.member_id = member_id
        self.scope_id = scope_id


class MatchNotFound(SwipeMatchError):
    def __init__(self, scope_id: str, item_id: str) -> None:
        super().__init__(f"no match for item {item_id!r} in scope {scope_id!r}")
        self.scope_id = scope_id
        self.item_id = item_id
