from __future__ import annotations

import logging
from datetime import datetime, timezone

from ..storage import DocumentStore, StoreUnavailable
from ..storage.keys import VOTES, vote_key
from .errors import TransientIOError
from .models import Direction, ItemSnapshot, VoteRecord

logger = logging.getLogger(__name__)


class VoteLedger:
    """Latest decision per (member, scope, item); last write wins.

    Every method is synchronous and may block on the store. Async callers go
    through ``run_blocking``.
    """

    def __init__(self, store: DocumentStore) -> None:
        self._store = store

    def record_vote(
        self,
        member_id: str,
        scope_id: str,
        item_id: str,
        direction: Direction,
        item: ItemSnapshot,
    ) -> VoteRecord:
        """Upsert the member's vote. Raises ``TransientIOError`` if the write fails."""
        key = vote_key(scope_id, item_id, member_id)
        try:
            previous = self._store.get(VOTES, key)
            record = VoteRecord(
                member_id=member_id,
                scope_id=scope_id,
                item_id=item_id,
                direction=direction,
                timestamp=datetime.now(timezone.utc),
                item=item,
            )
            if previous is not None:
                prior = VoteRecord.model_validate(previous)
                # Repeating the same vote must leave the ledger untouched
                if prior.direction == record.direction and prior.item == record.item:
                    record = prior
            self._store.upsert(VOTES, key, record.model_dump(mode="json"))
        except StoreUnavailable as exc:
            logger.warning("Vote write failed for %s", key, exc_info=True)
            raise TransientIOError(f"could not record vote {key}") from exc

        logger.debug("Recorded %s vote %s", record.direction.value, key)
        return record

    def get_vote(self, member_id: str, scope_id: str, item_id: str) -> VoteRecord | None:
        doc = self._store.get(VOTES, vote_key(scope_id, item_id, member_id))
        return VoteRecord.model_validate(doc) if doc is not None else None

    def votes_for_item(self, scope_id: str, item_id: str) -> list[VoteRecord]:
        docs = self._store.query(
            VOTES,
            lambda d: d["scope_id"] == scope_id and d["item_id"] == item_id,
        )
        return [VoteRecord.model_validate(d) for d in docs]

    def affirmative_voters(self, scope_id: str, item_id: str) -> set[str]:
        """Members whose latest vote on the item is ``right``."""
        docs = self._store.query(
            VOTES,
            lambda d: (
                d["scope_id"] == scope_id
                and d["item_id"] == item_id
                and d["direction"] == Direction.right.value
            ),
        )
        return {d["member_id"] for d in docs}

    def voted_item_ids(self, member_id: str, scope_id: str) -> set[str]:
        docs = self._store.query(
            VOTES,
            lambda d: d["member_id"] == member_id and d["scope_id"] == scope_id,
        )
        return {d["item_id"] for d in docs}

    def items_with_affirmative_votes(self, scope_id: str) -> set[str]:
        docs = self._store.query(
            VOTES,
            lambda d: d["scope_id"] == scope_id and d["direction"] == Direction.right.value,
        )
        return {d["item_id"] for d in docs}

    def latest_affirmative_vote(self, scope_id: str, item_id: str) -> VoteRecord | None:
        votes = [
            v for v in self.votes_for_item(scope_id, item_id)
            if v.direction == Direction.right
        ]
        if not votes:
            return None
        return max(votes, key=lambda v: v.timestamp)

    def liked_items(self, member_id: str, scope_id: str) -> list[VoteRecord]:
        """The member's current right votes in a scope, newest first."""
        docs = self._store.query(
            VOTES,
            lambda d: (
                d["member_id"] == member_id
                and d["scope_id"] == scope_id
                and d["direction"] == Direction.right.value
            ),
        )
        votes = [VoteRecord.model_validate(d) for d in docs]
        votes.sort(key=lambda v: v.timestamp, reverse=True)
        return votes

    def remove_like(self, member_id: str, scope_id: str, item_id: str) -> bool:
        """Delete the member's right vote on the item.

        Returns ``False`` when there is no right vote to remove. The item counts
        as unswiped afterwards.
        """
        key = vote_key(scope_id, item_id, member_id)
        try:
            doc = self._store.get(VOTES, key)
            if doc is None or doc["direction"] != Direction.right.value:
                return False
            removed = self._store.delete(VOTES, key)
        except StoreUnavailable as exc:
            logger.warning("Removing like %s failed", key, exc_info=True)
            raise TransientIOError(f"could not remove like {key}") from exc
        logger.info("Removed like %s", key)
        return removed
