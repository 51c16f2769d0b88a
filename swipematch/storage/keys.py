from __future__ import annotations

VOTES = "votes"
MATCHES = "matches"
DECKS = "decks"


def vote_key(scope_id: str, item_id: str, member_id: str) -> str:
    return f"vote:{scope_id}:{item_id}:{member_id}"


def match_key(scope_id: str, item_id: str) -> str:
    return f"match:{scope_id}:{item_id}"


def deck_key(scope_id: str, generation: int) -> str:
    return f"deck:{scope_id}:{generation}"
