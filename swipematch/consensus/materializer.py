"""
Match materialization.

Turns durable ledger state plus a roster snapshot into at most one match per
(scope, item):

1. Read the current roster (point-in-time; a concurrent join/leave may race).
2. Stop if fewer than two members remain.
3. Derive the required count from the threshold policy.
4. Collect the affirmative voters from the ledger, adding the member whose
   right vote triggered this evaluation even if the ledger read lags behind
   that write.
5. If the threshold is met, create the match with an atomic create-if-absent.
   Losing a race returns the winner's record; it is not an error.

Evaluation never writes to the ledger, so a failure here cannot undo a vote
and the whole procedure can be re-run at any time (see ``reconcile_scope``).
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone

from ..membership import MembershipDirectory
from ..storage import DocumentStore
from ..storage.keys import MATCHES, match_key
from .blocking import run_blocking
from .config import DEFAULT_CONSENSUS_CONFIG, ConsensusConfig
from .errors import ScopeNotFound
from .ledger import VoteLedger
from .models import ItemSnapshot, MatchRecord
from .policy import is_consensus_reached, is_unanimous, required_count
from .scope import is_solo_scope

logger = logging.getLogger(__name__)

MATCHED = "matched"
ALREADY_MATCHED = "already_matched"
INSUFFICIENT_MEMBERS = "insufficient_members"
BELOW_THRESHOLD = "below_threshold"
SCOPE_NOT_FOUND = "scope_not_found"
SOLO_SCOPE = "solo_scope"


@dataclass(frozen=True)
class MatchOutcome:
    scope_id: str
    item_id: str
    reason: str
    match: MatchRecord | None = None
    created: bool = False
    member_count: int = 0
    required_count: int | None = None
    affirmative_count: int = 0


class MatchMaterializer:
    def __init__(
        self,
        store: DocumentStore,
        ledger: VoteLedger,
        directory: MembershipDirectory,
        config: ConsensusConfig = DEFAULT_CONSENSUS_CONFIG,
    ) -> None:
        self._store = store
        self._ledger = ledger
        self._directory = directory
        self._config = config

    async def evaluate(
        self,
        scope_id: str,
        item_id: str,
        item: ItemSnapshot,
        triggering_member_id: str | None = None,
    ) -> MatchOutcome:
        """Evaluate (scope, item) and create its match if the threshold is met.

        Raises ``TransientIOError`` when the roster or ledger cannot be read in
        time; the caller decides whether to swallow it.
        """
        if is_solo_scope(scope_id):
            return MatchOutcome(scope_id, item_id, SOLO_SCOPE)

        timeout = self._config.read_timeout_seconds

        try:
            members = await run_blocking(
                self._directory.get_members, scope_id, timeout=timeout,
            )
        except ScopeNotFound:
            logger.info("Scope %s vanished before evaluating %s", scope_id, item_id)
            return MatchOutcome(scope_id, item_id, SCOPE_NOT_FOUND)

        member_count = len(members)
        required = required_count(member_count)
        if required is None:
            return MatchOutcome(
                scope_id, item_id, INSUFFICIENT_MEMBERS, member_count=member_count,
            )

        voters = set(await run_blocking(
            self._ledger.affirmative_voters, scope_id, item_id, timeout=timeout,
        ))
        if triggering_member_id is not None:
            voters.add(triggering_member_id)

        stale = voters - members
        if stale:
            # Votes from members who left after voting (or a roster read that
            # predates their join). Accepted staleness, never fatal.
            logger.info(
                "Ignoring %d affirmative votes from non-members in %s/%s: %s",
                len(stale), scope_id, item_id, sorted(stale),
            )
        affirmative = voters & members

        logger.debug(
            "Tally %s/%s: %d/%d right, %d required",
            scope_id, item_id, len(affirmative), member_count, required,
        )
        if not is_consensus_reached(len(affirmative), member_count):
            return MatchOutcome(
                scope_id,
                item_id,
                BELOW_THRESHOLD,
                member_count=member_count,
                required_count=required,
                affirmative_count=len(affirmative),
            )

        candidate = MatchRecord(
            scope_id=scope_id,
            item_id=item_id,
            member_ids=sorted(members),
            member_count=member_count,
            required_count=required,
            affirmative_count=len(affirmative),
            affirmative_member_ids=sorted(affirmative),
            unanimous=is_unanimous(len(affirmative), member_count),
            created_at=datetime.now(timezone.utc),
            item=item,
        )
        result = await run_blocking(
            self._store.create_if_absent,
            MATCHES,
            match_key(scope_id, item_id),
            candidate.model_dump(mode="json"),
        )

        if result.created:
            logger.info(
                "Match created for %s/%s (%d/%d, unanimous=%s)",
                scope_id, item_id, candidate.affirmative_count,
                member_count, candidate.unanimous,
            )
            match = MatchRecord.model_validate(result.value)
            reason = MATCHED
        else:
            logger.info("Match for %s/%s already exists", scope_id, item_id)
            match = MatchRecord.model_validate(result.value) if result.value else None
            reason = ALREADY_MATCHED

        return MatchOutcome(
            scope_id,
            item_id,
            reason,
            match=match,
            created=result.created,
            member_count=member_count,
            required_count=required,
            affirmative_count=len(affirmative),
        )

    async def reconcile_scope(self, scope_id: str) -> list[MatchOutcome]:
        """Re-evaluate every item in the scope that has at least one right vote."""
        if is_solo_scope(scope_id):
            return []

        timeout = self._config.read_timeout_seconds
        item_ids = await run_blocking(
            self._ledger.items_with_affirmative_votes, scope_id, timeout=timeout,
        )
        outcomes: list[MatchOutcome] = []
        for item_id in sorted(item_ids):
            latest = await run_blocking(
                self._ledger.latest_affirmative_vote, scope_id, item_id, timeout=timeout,
            )
            if latest is None:
                continue
            outcome = await self.evaluate(scope_id, item_id, latest.item)
            outcomes.append(outcome)
            if outcome.reason == SCOPE_NOT_FOUND:
                break

        created = sum(1 for o in outcomes if o.created)
        logger.info(
            "Reconciled %s: %d items checked, %d matches created",
            scope_id, len(outcomes), created,
        )
        return outcomes
