"""
Group swipe consensus engine.

Responsibilities:
- Route each vote to its evaluation scope (a group or the member's solo scope).
- Keep the latest decision per (member, scope, item) in the vote ledger.
- Apply the threshold policy: unanimous for 2-3 members, strict majority above.
- Materialize at most one match per (scope, item) with an atomic create.
- Push full active-match snapshots to per-scope subscribers.
"""
