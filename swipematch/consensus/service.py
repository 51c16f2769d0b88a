"""
Client-facing swipe operations.

``SwipeService`` wires the scope router, vote ledger, match materializer and
notifier together. Vote recording failures propagate to the caller; anything
that goes wrong afterwards while evaluating consensus is logged and isolated,
because the recorded vote alone is enough to re-derive the match later.
"""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable

from ..analytics.store import EventLog
from ..membership import MembershipDirectory
from ..storage import DocumentStore
from ..storage.keys import MATCHES, match_key
from .blocking import run_blocking
from .config import DEFAULT_CONSENSUS_CONFIG, ConsensusConfig
from .errors import MatchNotFound, NotAMember, ScopeNotFound, TransientIOError
from .ledger import VoteLedger
from .materializer import MatchMaterializer, MatchOutcome
from .models import Direction, ItemSnapshot, MatchRecord, MatchStatus, VoteRecord
from .notifier import MatchNotifier, MatchSubscription
from .scope import Scope, is_solo_scope, resolve_scope

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class VoteResult:
    vote: VoteRecord
    scope: Scope
    match: MatchRecord | None = None
    match_created: bool = False


class SwipeService:
    def __init__(
        self,
        store: DocumentStore,
        directory: MembershipDirectory,
        config: ConsensusConfig = DEFAULT_CONSENSUS_CONFIG,
        events: EventLog | None = None,
    ) -> None:
        self.store = store
        self.directory = directory
        self.config = config
        self.events = events if events is not None else EventLog()
        self.ledger = VoteLedger(store)
        self.materializer = MatchMaterializer(store, self.ledger, directory, config)
        self.notifier = MatchNotifier(self.list_active_matches)

    # ── Votes ───────────────────────────────────────────────────────────

    async def submit_vote(
        self,
        member_id: str,
        group_id: str | None,
        item_id: str,
        direction: Direction,
        item: ItemSnapshot,
    ) -> VoteResult:
        scope = resolve_scope(member_id, group_id)
        if not scope.is_solo:
            await self._check_membership(member_id, scope.scope_id)

        # Propagates TransientIOError: nothing below runs on a failed write
        vote = await run_blocking(
            self.ledger.record_vote, member_id, scope.scope_id, item_id, direction, item,
        )
        self.events.record_event("vote", {
            "member_id": member_id,
            "scope_id": scope.scope_id,
            "item_id": item_id,
            "item_kind": item.kind,
            "direction": direction.value,
            "solo": scope.is_solo,
        })

        if direction != Direction.right or scope.is_solo:
            return VoteResult(vote=vote, scope=scope)

        outcome = await self._evaluate_isolated(scope.scope_id, item_id, item, member_id)
        if outcome is None or outcome.match is None:
            return VoteResult(vote=vote, scope=scope)
        return VoteResult(
            vote=vote,
            scope=scope,
            match=outcome.match,
            match_created=outcome.created,
        )

    async def _check_membership(self, member_id: str, scope_id: str) -> None:
        """Reject votes from known non-members.

        An unreadable or vanished roster does not block the vote: the vote is
        recorded and consensus is simply not reached this time.
        """
        try:
            members = await run_blocking(
                self.directory.get_members,
                scope_id,
                timeout=self.config.read_timeout_seconds,
            )
        except ScopeNotFound:
            logger.info("Vote in unknown scope %s by %s; recording without consensus", scope_id, member_id)
            return
        except TransientIOError:
            logger.warning("Roster of %s unavailable; accepting vote by %s", scope_id, member_id)
            return
        if member_id not in members:
            raise NotAMember(member_id, scope_id)

    async def _evaluate_isolated(
        self,
        scope_id: str,
        item_id: str,
        item: ItemSnapshot,
        member_id: str | None,
    ) -> MatchOutcome | None:
        try:
            outcome = await self.materializer.evaluate(
                scope_id, item_id, item, triggering_member_id=member_id,
            )
        except Exception:
            logger.warning(
                "Consensus evaluation failed for %s/%s; vote kept, will retry later",
                scope_id, item_id, exc_info=True,
            )
            self.events.record_event("evaluation_failed", {
                "scope_id": scope_id,
                "item_id": item_id,
            })
            return None

        await self._after_evaluation(outcome)
        return outcome

    async def _after_evaluation(self, outcome: MatchOutcome) -> None:
        if outcome.match is None:
            return
        self.events.record_event("match", {
            "scope_id": outcome.scope_id,
            "item_id": outcome.item_id,
            "created": outcome.created,
            "unanimous": outcome.match.unanimous,
            "affirmative_count": outcome.affirmative_count,
            "member_count": outcome.member_count,
        })
        if outcome.created:
            await self._publish(outcome.scope_id)

    async def list_voted_item_ids(self, member_id: str, group_id: str | None = None) -> set[str]:
        """Items the member already swiped in the scope; empty if the ledger is slow."""
        scope = resolve_scope(member_id, group_id)
        try:
            return await run_blocking(
                self.ledger.voted_item_ids,
                member_id,
                scope.scope_id,
                timeout=self.config.read_timeout_seconds,
            )
        except TransientIOError:
            logger.warning("Voted items of %s in %s unavailable", member_id, scope.scope_id, exc_info=True)
            return set()

    async def list_liked_items(self, member_id: str) -> list[VoteRecord]:
        """The member's private right swipes with their snapshots, newest first."""
        scope = resolve_scope(member_id)
        return await run_blocking(
            self.ledger.liked_items,
            member_id,
            scope.scope_id,
            timeout=self.config.read_timeout_seconds,
        )

    async def remove_liked_item(self, member_id: str, item_id: str) -> bool:
        scope = resolve_scope(member_id)
        removed = await run_blocking(
            self.ledger.remove_like, member_id, scope.scope_id, item_id,
        )
        if removed:
            self.events.record_event("unlike", {
                "member_id": member_id,
                "scope_id": scope.scope_id,
                "item_id": item_id,
            })
        return removed

    # ── Matches ─────────────────────────────────────────────────────────

    async def list_matches(
        self,
        scope_id: str,
        status: MatchStatus | None = None,
        limit: int | None = None,
    ) -> list[MatchRecord]:
        """Matches of a scope, newest first."""
        if is_solo_scope(scope_id):
            return []

        def _matches_scope(doc: dict) -> bool:
            if doc["scope_id"] != scope_id:
                return False
            return status is None or doc["status"] == status.value

        docs = await run_blocking(self.store.query, MATCHES, _matches_scope)
        matches = [MatchRecord.model_validate(d) for d in docs]
        matches.sort(key=lambda m: m.created_at, reverse=True)
        return matches[: limit or self.config.match_list_limit]

    async def list_active_matches(self, scope_id: str) -> list[MatchRecord]:
        return await self.list_matches(scope_id, MatchStatus.active)

    async def get_match(self, scope_id: str, item_id: str) -> MatchRecord | None:
        doc = await run_blocking(self.store.get, MATCHES, match_key(scope_id, item_id))
        return MatchRecord.model_validate(doc) if doc is not None else None

    async def update_match_status(
        self, scope_id: str, item_id: str, status: MatchStatus,
    ) -> MatchRecord:
        """Move a match between active / resolved / archived.

        Identity and the creation-time snapshot are never touched.
        """
        doc = await run_blocking(
            self.store.update,
            MATCHES,
            match_key(scope_id, item_id),
            {
                "status": status.value,
                "status_updated_at": datetime.now(timezone.utc).isoformat(),
            },
        )
        if doc is None:
            raise MatchNotFound(scope_id, item_id)
        logger.info("Match %s/%s marked %s", scope_id, item_id, status.value)
        await self._publish(scope_id)
        return MatchRecord.model_validate(doc)

    async def delete_match(self, scope_id: str, item_id: str) -> bool:
        """Remove a match for good; the key is tombstoned so it is never re-created."""
        removed = await run_blocking(
            self.store.delete, MATCHES, match_key(scope_id, item_id), True,
        )
        if removed:
            await self._publish(scope_id)
        return removed

    # ── Subscriptions / reconciliation ──────────────────────────────────

    async def subscribe_active_matches(self, scope_id: str) -> MatchSubscription:
        return await self.notifier.subscribe(scope_id)

    async def _publish(self, scope_id: str) -> None:
        try:
            await self.notifier.publish(scope_id)
        except Exception:
            logger.warning("Publishing matches of %s failed", scope_id, exc_info=True)

    async def reconcile(self, scope_id: str) -> list[MatchOutcome]:
        """Re-derive matches for every item with right votes in the scope."""
        outcomes = await self.materializer.reconcile_scope(scope_id)
        for outcome in outcomes:
            await self._after_evaluation(outcome)
        return outcomes

    async def follow_membership(self, scope_id: str) -> Callable[[], None]:
        """Reconcile the scope whenever its roster changes.

        A member leaving lowers the threshold, so items that were one vote
        short may now qualify. Returns the directory's unsubscribe callable.
        """
        loop = asyncio.get_running_loop()

        def _on_change(members: frozenset[str]) -> None:
            logger.info("Roster of %s changed (%d members); reconciling", scope_id, len(members))
            asyncio.run_coroutine_threadsafe(self._reconcile_quietly(scope_id), loop)

        return self.directory.subscribe_membership(scope_id, _on_change)

    async def _reconcile_quietly(self, scope_id: str) -> None:
        try:
            await self.reconcile(scope_id)
        except Exception:
            logger.warning("Reconciliation of %s failed", scope_id, exc_info=True)
