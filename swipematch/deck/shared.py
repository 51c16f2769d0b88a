from __future__ import annotations

import logging
from datetime import datetime, timezone

from ..consensus.blocking import run_blocking
from ..consensus.config import DEFAULT_CONSENSUS_CONFIG, ConsensusConfig
from ..consensus.errors import ScopeNotFound, TransientIOError
from ..consensus.ledger import VoteLedger
from ..consensus.scope import SOLO_PREFIX, is_solo_scope
from ..membership import MembershipDirectory
from ..storage import DocumentStore
from ..storage.keys import DECKS, deck_key
from .candidates import CandidateSource
from .config import DEFAULT_DECK_CONFIG, DeckConfig
from .models import Candidate, DeckFilters, SharedDeck

logger = logging.getLogger(__name__)


class SharedDeckService:
    """One ordered candidate list per scope, regenerated only on exhaustion.

    Each generation is stored under its own key and written with
    create-if-absent, so members who load or exhaust the deck at the same
    time all converge on a single deck per generation.
    """

    def __init__(
        self,
        store: DocumentStore,
        ledger: VoteLedger,
        directory: MembershipDirectory,
        source: CandidateSource,
        config: DeckConfig = DEFAULT_DECK_CONFIG,
        consensus_config: ConsensusConfig = DEFAULT_CONSENSUS_CONFIG,
    ) -> None:
        self._store = store
        self._ledger = ledger
        self._directory = directory
        self._source = source
        self._config = config
        self._timeout = consensus_config.read_timeout_seconds

    async def get_deck(self, scope_id: str) -> SharedDeck | None:
        docs = await run_blocking(
            self._store.query, DECKS, lambda d: d["scope_id"] == scope_id,
        )
        if not docs:
            return None
        latest = max(docs, key=lambda d: d["generation"])
        return SharedDeck.model_validate(latest)

    async def get_or_create_deck(
        self, scope_id: str, filters: DeckFilters | None = None,
    ) -> SharedDeck:
        current = await self.get_deck(scope_id)
        if current is None:
            return await self._create_generation(scope_id, 1, filters or DeckFilters())
        if await self.is_exhausted(current):
            logger.info(
                "Deck %s generation %d exhausted by every member; regenerating",
                scope_id, current.generation,
            )
            return await self._create_generation(
                scope_id, current.generation + 1, filters or current.filters,
            )
        return current

    async def regenerate(self, scope_id: str, filters: DeckFilters) -> SharedDeck:
        """Start a new generation right away, e.g. after the group changes its filters."""
        current = await self.get_deck(scope_id)
        generation = current.generation + 1 if current else 1
        return await self._create_generation(scope_id, generation, filters)

    async def _create_generation(
        self, scope_id: str, generation: int, filters: DeckFilters,
    ) -> SharedDeck:
        candidates = await run_blocking(
            self._source.get_candidates,
            scope_id,
            filters,
            self._config.deck_size,
            generation,
        )
        deck = SharedDeck(
            scope_id=scope_id,
            generation=generation,
            candidates=candidates,
            filters=filters,
            created_at=datetime.now(timezone.utc),
        )
        result = await run_blocking(
            self._store.create_if_absent,
            DECKS,
            deck_key(scope_id, generation),
            deck.model_dump(mode="json"),
        )
        if result.created:
            logger.info(
                "Created deck %s generation %d with %d candidates",
                scope_id, generation, len(candidates),
            )
        return SharedDeck.model_validate(result.value)

    async def _members(self, scope_id: str) -> frozenset[str]:
        if is_solo_scope(scope_id):
            return frozenset({scope_id[len(SOLO_PREFIX):]})
        return await run_blocking(
            self._directory.get_members, scope_id, timeout=self._timeout,
        )

    async def is_exhausted(self, deck: SharedDeck) -> bool:
        """True once every current member has voted on every deck item.

        Unknown rosters or slow ledger reads count as "not exhausted": members
        keep the current deck rather than racing into a new one.
        """
        if not deck.candidates:
            return True
        wanted = set(deck.item_ids)
        try:
            members = await self._members(deck.scope_id)
            if not members:
                return False
            for member_id in members:
                voted = await run_blocking(
                    self._ledger.voted_item_ids,
                    member_id,
                    deck.scope_id,
                    timeout=self._timeout,
                )
                if not wanted <= voted:
                    return False
        except (ScopeNotFound, TransientIOError):
            logger.warning("Cannot check exhaustion of deck %s", deck.scope_id, exc_info=True)
            return False
        return True

    async def remaining_for(self, deck: SharedDeck, member_id: str) -> list[Candidate]:
        """Deck items the member has not swiped yet, in deck order."""
        try:
            voted = await run_blocking(
                self._ledger.voted_item_ids,
                member_id,
                deck.scope_id,
                timeout=self._timeout,
            )
        except TransientIOError:
            logger.warning("Voted items of %s unavailable; showing full deck", member_id)
            voted = set()
        return [c for c in deck.candidates if c.item_id not in voted]
