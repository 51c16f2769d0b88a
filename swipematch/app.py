from __future__ import annotations

import asyncio
import logging
import os
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import Depends, FastAPI, HTTPException, Query, Request, WebSocket, WebSocketDisconnect
from starlette.middleware.sessions import SessionMiddleware

from .analytics.aggregator import compute_analytics
from .auth.dependencies import (
    check_group_member,
    require_admin,
    require_group_member,
    require_user,
    session_user,
)
from .auth.users import UserDirectory, seed_demo_users
from .consensus.config import DEFAULT_CONSENSUS_CONFIG, ConsensusConfig
from .consensus.errors import MatchNotFound, NotAMember, TransientIOError
from .consensus.models import (
    LikedItemsResponse,
    LoginRequest,
    MatchListResponse,
    MatchRecord,
    MatchStatus,
    MatchStatusUpdate,
    VoteRequest,
    VoteResponse,
    VotedItemsResponse,
)
from .consensus.scope import resolve_scope, solo_scope_id
from .consensus.service import SwipeService
from .deck.candidates import CandidateSource, CsvCandidateSource
from .deck.config import DEFAULT_DECK_CONFIG, DeckConfig
from .deck.models import DeckFilters, DeckResponse
from .deck.shared import SharedDeckService
from .membership import MembershipDirectory, seed_demo_groups
from .storage import DocumentStore, JsonFileStore, MemoryStore

logger = logging.getLogger(__name__)


def _build_store(config: ConsensusConfig) -> DocumentStore:
    if config.store_backend == "json":
        return JsonFileStore(config.data_dir)
    if config.store_backend != "memory":
        logger.warning("Unknown store backend %r, using memory", config.store_backend)
    return MemoryStore()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Reconcile each known group whenever its roster changes, while the app runs."""
    service: SwipeService = app.state.swipe_service
    unsubscribes = [
        await service.follow_membership(scope_id)
        for scope_id in service.directory.scope_ids()
    ]
    logger.info("Following roster changes of %d groups", len(unsubscribes))
    try:
        yield
    finally:
        for unsubscribe in unsubscribes:
            unsubscribe()
        logger.info("Stopped following roster changes")


def create_app(
    store: DocumentStore | None = None,
    directory: MembershipDirectory | None = None,
    candidate_source: CandidateSource | None = None,
    users: UserDirectory | None = None,
    consensus_config: ConsensusConfig = DEFAULT_CONSENSUS_CONFIG,
    deck_config: DeckConfig = DEFAULT_DECK_CONFIG,
) -> FastAPI:
    """Build the API with its own store, directory and service instances."""
    app = FastAPI(
        title="SwipeMatch Group Consensus API", version="2.0.0", lifespan=lifespan,
    )
    app.add_middleware(
        SessionMiddleware,
        secret_key=os.environ.get("SESSION_SECRET", "swipematch-secret-change-in-production"),
    )

    store = store if store is not None else _build_store(consensus_config)
    directory = directory if directory is not None else seed_demo_groups()
    service = SwipeService(store, directory, consensus_config)
    decks = SharedDeckService(
        store,
        service.ledger,
        directory,
        candidate_source or CsvCandidateSource(deck_config.catalog_path),
        deck_config,
        consensus_config,
    )
    app.state.swipe_service = service
    app.state.deck_service = decks
    app.state.users = users if users is not None else seed_demo_users()

    # ── Public endpoints ─────────────────────────────────────────────────

    @app.get("/health")
    def health() -> dict[str, str]:
        return {"status": "ok"}

    # ── Auth endpoints ───────────────────────────────────────────────────

    @app.post("/auth/login")
    def login(body: LoginRequest, request: Request) -> dict:
        user = request.app.state.users.authenticate(body.username, body.password)
        if not user:
            raise HTTPException(status_code=401, detail="Invalid credentials")
        request.session["user"] = user
        return {"status": "ok", "user": user}

    @app.post("/auth/logout")
    def logout(request: Request) -> dict:
        request.session.clear()
        return {"status": "logged_out"}

    @app.get("/auth/me")
    def auth_me(user: dict = Depends(require_user)) -> dict:
        return user

    # ── Votes ────────────────────────────────────────────────────────────

    @app.post("/votes", response_model=VoteResponse)
    async def submit_vote(
        body: VoteRequest,
        user: dict = Depends(require_user),
    ) -> VoteResponse:
        try:
            result = await service.submit_vote(
                user["member_id"], body.group_id, body.item_id, body.direction, body.item,
            )
        except NotAMember:
            raise HTTPException(status_code=403, detail="Not a member of this group")
        except TransientIOError:
            # The vote may not be durable; the client must retry
            raise HTTPException(status_code=503, detail="Vote could not be recorded, retry")

        return VoteResponse(
            status="recorded",
            scope_id=result.scope.scope_id,
            match=result.match,
            match_created=result.match_created,
        )

    @app.get("/votes/items", response_model=VotedItemsResponse)
    async def voted_items(
        request: Request,
        group_id: str | None = Query(default=None, min_length=1),
        user: dict = Depends(require_user),
    ) -> VotedItemsResponse:
        if group_id:
            await check_group_member(request, group_id, user["member_id"])
        item_ids = await service.list_voted_item_ids(user["member_id"], group_id)
        return VotedItemsResponse(
            scope_id=resolve_scope(user["member_id"], group_id).scope_id,
            item_ids=sorted(item_ids),
        )

    @app.get("/votes/liked", response_model=LikedItemsResponse)
    async def liked_items(user: dict = Depends(require_user)) -> LikedItemsResponse:
        try:
            likes = await service.list_liked_items(user["member_id"])
        except TransientIOError:
            raise HTTPException(status_code=503, detail="Likes unavailable, retry")
        return LikedItemsResponse(scope_id=solo_scope_id(user["member_id"]), likes=likes)

    @app.delete("/votes/liked/{item_id}")
    async def remove_liked_item(item_id: str, user: dict = Depends(require_user)) -> dict:
        try:
            removed = await service.remove_liked_item(user["member_id"], item_id)
        except TransientIOError:
            raise HTTPException(status_code=503, detail="Like could not be removed, retry")
        if not removed:
            raise HTTPException(status_code=404, detail="Item is not liked")
        return {"status": "removed", "item_id": item_id}

    # ── Group matches ────────────────────────────────────────────────────

    @app.get("/groups/{group_id}/matches", response_model=MatchListResponse)
    async def list_matches(
        group_id: str,
        status: MatchStatus = MatchStatus.active,
        limit: int = Query(default=50, ge=1, le=200),
        user: dict = Depends(require_group_member),
    ) -> MatchListResponse:
        matches = await service.list_matches(group_id, status, limit)
        return MatchListResponse(scope_id=group_id, matches=matches)

    @app.patch("/groups/{group_id}/matches/{item_id}", response_model=MatchRecord)
    async def update_match(
        group_id: str,
        item_id: str,
        body: MatchStatusUpdate,
        user: dict = Depends(require_group_member),
    ) -> MatchRecord:
        try:
            return await service.update_match_status(group_id, item_id, body.status)
        except MatchNotFound:
            raise HTTPException(status_code=404, detail="Match not found")

    @app.websocket("/groups/{group_id}/matches/stream")
    async def match_stream(websocket: WebSocket, group_id: str) -> None:
        user = session_user(websocket)
        if not user:
            await websocket.close(code=4401)
            return
        try:
            await check_group_member(websocket, group_id, user["member_id"])
        except HTTPException as exc:
            await websocket.close(code=4000 + exc.status_code)
            return

        await websocket.accept()
        subscription = await service.subscribe_active_matches(group_id)
        logger.info("Match stream opened for %s by %s", group_id, user["member_id"])

        async def _pump() -> None:
            async for snapshot in subscription:
                await websocket.send_json({
                    "type": "matches",
                    "scope_id": group_id,
                    "matches": [m.model_dump(mode="json") for m in snapshot],
                })

        pump = asyncio.create_task(_pump())
        try:
            while True:
                # Clients do not send anything; this only waits for disconnect
                await websocket.receive_text()
        except WebSocketDisconnect:
            pass
        finally:
            subscription.close()
            pump.cancel()
            logger.info("Match stream closed for %s by %s", group_id, user["member_id"])

    # ── Shared deck ──────────────────────────────────────────────────────

    @app.get("/groups/{group_id}/deck", response_model=DeckResponse)
    async def group_deck(
        group_id: str,
        cuisine: str | None = Query(default=None, min_length=1),
        max_price_level: int | None = Query(default=None, ge=1, le=4),
        min_rating: float = Query(default=0.0, ge=0.0, le=5.0),
        user: dict = Depends(require_group_member),
    ) -> DeckResponse:
        filters = DeckFilters(
            cuisine=cuisine, max_price_level=max_price_level, min_rating=min_rating,
        )
        deck = await decks.get_or_create_deck(
            group_id, None if filters.is_empty() else filters,
        )
        remaining = await decks.remaining_for(deck, user["member_id"])
        return DeckResponse(deck=deck, remaining=remaining)

    @app.post("/groups/{group_id}/deck/regenerate", response_model=DeckResponse)
    async def regenerate_deck(
        group_id: str,
        filters: DeckFilters,
        user: dict = Depends(require_group_member),
    ) -> DeckResponse:
        deck = await decks.regenerate(group_id, filters)
        remaining = await decks.remaining_for(deck, user["member_id"])
        return DeckResponse(deck=deck, remaining=remaining)

    # ── Admin endpoints ──────────────────────────────────────────────────

    @app.get("/analytics")
    def analytics(user: dict = Depends(require_admin)) -> dict:
        return compute_analytics(service.events.get_events())

    @app.post("/admin/groups/{group_id}/reconcile")
    async def reconcile(group_id: str, user: dict = Depends(require_admin)) -> dict:
        try:
            outcomes = await service.reconcile(group_id)
        except TransientIOError:
            raise HTTPException(status_code=503, detail="Ledger unavailable, retry")
        return {
            "scope_id": group_id,
            "items_checked": len(outcomes),
            "matches_created": [o.item_id for o in outcomes if o.created],
            "outcomes": {o.item_id: o.reason for o in outcomes},
        }

    return app


app = create_app()
