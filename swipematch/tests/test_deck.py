from __future__ import annotations

import asyncio

from swipematch.consensus.config import ConsensusConfig
from swipematch.consensus.ledger import VoteLedger
from swipematch.consensus.models import Direction
from swipematch.consensus.scope import solo_scope_id
from swipematch.deck.candidates import CsvCandidateSource
from swipematch.deck.config import DEFAULT_DECK_CONFIG, DeckConfig
from swipematch.deck.models import DeckFilters
from swipematch.deck.shared import SharedDeckService
from swipematch.membership import InMemoryMembershipDirectory
from swipematch.storage import MemoryStore

SOURCE = CsvCandidateSource(DEFAULT_DECK_CONFIG.catalog_path)


def _decks(deck_size: int = 3) -> tuple[SharedDeckService, VoteLedger]:
    store = MemoryStore()
    ledger = VoteLedger(store)
    directory = InMemoryMembershipDirectory({"trio": ["alice", "bob", "carol"]})
    service = SharedDeckService(
        store,
        ledger,
        directory,
        SOURCE,
        DeckConfig(catalog_path=DEFAULT_DECK_CONFIG.catalog_path, deck_size=deck_size),
        ConsensusConfig(read_timeout_seconds=2.0),
    )
    return service, ledger


def _swipe_all(ledger: VoteLedger, deck, members):
    for member in members:
        for candidate in deck.candidates:
            ledger.record_vote(member, deck.scope_id, candidate.item_id, Direction.left, candidate.item)


# ── Candidate source ─────────────────────────────────────────────────────


def test_csv_source_respects_limit_and_filters():
    candidates = SOURCE.get_candidates("trio", DeckFilters(cuisine="italian"), limit=10)
    assert 0 < len(candidates) <= 10
    for c in candidates:
        assert "italian" in [x.lower() for x in c.item.cuisines]


def test_csv_source_price_and_rating_filters():
    filters = DeckFilters(max_price_level=1, min_rating=4.0)
    for c in SOURCE.get_candidates("trio", filters, limit=50):
        assert c.item.price_level == 1
        assert c.item.rating >= 4.0


def test_csv_source_falls_back_when_filters_match_nothing():
    candidates = SOURCE.get_candidates("trio", DeckFilters(cuisine="Martian"), limit=5)
    assert len(candidates) == 5


def test_csv_source_order_is_stable_per_generation():
    first = SOURCE.get_candidates("trio", DeckFilters(), limit=24, generation=1)
    again = SOURCE.get_candidates("trio", DeckFilters(), limit=24, generation=1)
    other = SOURCE.get_candidates("trio", DeckFilters(), limit=24, generation=2)
    assert [c.item_id for c in first] == [c.item_id for c in again]
    assert sorted(c.item_id for c in first) == sorted(c.item_id for c in other)


# ── Shared deck ──────────────────────────────────────────────────────────


def test_concurrent_first_loads_share_one_deck():
    service, _ = _decks()

    async def run():
        return await asyncio.gather(*(service.get_or_create_deck("trio") for _ in range(4)))

    decks = asyncio.run(run())
    assert {d.generation for d in decks} == {1}
    assert len({tuple(d.item_ids) for d in decks}) == 1


def test_deck_kept_until_every_member_is_done():
    service, ledger = _decks()

    async def run():
        deck = await service.get_or_create_deck("trio")
        _swipe_all(ledger, deck, ["alice", "bob"])
        partial = await service.get_or_create_deck("trio")
        _swipe_all(ledger, deck, ["carol"])
        fresh = await service.get_or_create_deck("trio")
        return deck, partial, fresh

    deck, partial, fresh = asyncio.run(run())
    assert partial.generation == 1
    assert partial.item_ids == deck.item_ids
    assert fresh.generation == 2


def test_remaining_for_member_skips_swiped_items():
    service, ledger = _decks()

    async def run():
        deck = await service.get_or_create_deck("trio")
        first = deck.candidates[0]
        ledger.record_vote("alice", "trio", first.item_id, Direction.right, first.item)
        return deck, await service.remaining_for(deck, "alice"), await service.remaining_for(deck, "bob")

    deck, alice_left, bob_left = asyncio.run(run())
    assert [c.item_id for c in alice_left] == deck.item_ids[1:]
    assert [c.item_id for c in bob_left] == deck.item_ids


def test_regenerate_applies_new_filters():
    service, _ = _decks()

    async def run():
        await service.get_or_create_deck("trio")
        return await service.regenerate("trio", DeckFilters(cuisine="Indian"))

    deck = asyncio.run(run())
    assert deck.generation == 2
    assert deck.filters.cuisine == "Indian"
    assert all("Indian" in c.item.cuisines for c in deck.candidates)


def test_solo_deck_regenerates_after_owner_is_done():
    service, ledger = _decks()
    scope_id = solo_scope_id("alice")

    async def run():
        deck = await service.get_or_create_deck(scope_id)
        _swipe_all(ledger, deck, ["alice"])
        return await service.get_or_create_deck(scope_id)

    assert asyncio.run(run()).generation == 2


def test_unknown_group_keeps_current_deck():
    service, _ = _decks()

    async def run():
        deck = await service.get_or_create_deck("ghost")
        return deck, await service.get_or_create_deck("ghost")

    first, second = asyncio.run(run())
    assert first.generation == second.generation == 1
