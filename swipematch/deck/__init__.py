"""
Shared candidate deck.

Responsibilities:
- Give every member of a group the same ordered list of candidates.
- Regenerate the deck only after every member has swiped through all of it.
- Load candidates from the bundled restaurant catalog (pandas).
"""
