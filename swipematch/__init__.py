"""
SwipeMatch group consensus service.

Responsibilities:
- Record each member's latest swipe per (scope, item).
- Decide when a group has agreed on an item (unanimous or majority).
- Materialize exactly one match per (group, item), even under concurrent votes.
- Serve shared candidate decks and live match snapshots over HTTP.
"""
