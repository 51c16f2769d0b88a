from __future__ import annotations

from collections import Counter
from typing import Any


def compute_analytics(events: list[dict[str, Any]]) -> dict[str, Any]:
    votes = [e for e in events if e["type"] == "vote"]
    matches = [e for e in events if e["type"] == "match"]
    total_votes = len(votes)

    # Right-swipe rate, group votes vs. solo votes
    right = sum(1 for v in votes if v.get("direction") == "right")
    group_votes = sum(1 for v in votes if not v.get("solo"))

    # Busiest scopes by vote volume
    scope_counter: Counter[str] = Counter()
    for v in votes:
        if not v.get("solo"):
            scope_counter[v.get("scope_id", "unknown")] += 1
    top_scopes = [{"scope_id": s, "votes": c} for s, c in scope_counter.most_common(10)]

    # Item kinds swiped
    kind_counter: Counter[str] = Counter(v.get("item_kind", "unknown") for v in votes)

    created = [m for m in matches if m.get("created")]
    already_matched = len(matches) - len(created)
    unanimous = sum(1 for m in created if m.get("unanimous"))

    matches_per_scope: Counter[str] = Counter(m.get("scope_id", "unknown") for m in created)

    failures = sum(1 for e in events if e["type"] == "evaluation_failed")
    unlikes = sum(1 for e in events if e["type"] == "unlike")

    return {
        "total_votes": total_votes,
        "group_votes": group_votes,
        "solo_votes": total_votes - group_votes,
        "right_swipe_rate": round(right / total_votes * 100, 1) if total_votes else 0.0,
        "item_kinds": dict(kind_counter),
        "top_scopes": top_scopes,
        "matches": {
            "created": len(created),
            "unanimous": unanimous,
            "unanimous_rate": round(unanimous / len(created) * 100, 1) if created else 0.0,
            "already_matched": already_matched,
            "per_scope": dict(matches_per_scope),
        },
        "evaluation_failures": failures,
        "unlikes": unlikes,
    }
