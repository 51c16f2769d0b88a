from __future__ import annotations

import pytest
from fastapi.testclient import TestClient
from starlette.websockets import WebSocketDisconnect

from swipematch.app import create_app

PIZZA = {"kind": "restaurant", "name": "Trattoria Nonna", "cuisines": ["Italian"]}


def _login(c, member):
    c.post("/auth/login", json={"username": member, "password": f"{member}123"})


def test_stream_sends_snapshot_then_new_match():
    app = create_app()
    with TestClient(app) as c:
        _login(c, "alice")
        with c.websocket_connect("/groups/trio/matches/stream") as ws:
            first = ws.receive_json()
            assert first == {"type": "matches", "scope_id": "trio", "matches": []}

            for member in ("alice", "bob", "carol"):
                _login(c, member)
                c.post("/votes", json={
                    "group_id": "trio", "item_id": "r001", "direction": "right", "item": PIZZA,
                })

            update = ws.receive_json()
            assert [m["item_id"] for m in update["matches"]] == ["r001"]
            assert update["matches"][0]["unanimous"] is True


def test_stream_requires_login():
    app = create_app()
    with TestClient(app) as c:
        with pytest.raises(WebSocketDisconnect) as exc:
            with c.websocket_connect("/groups/trio/matches/stream") as ws:
                ws.receive_json()
        assert exc.value.code == 4401


def test_stream_requires_membership():
    app = create_app()
    with TestClient(app) as c:
        _login(c, "dave")
        with pytest.raises(WebSocketDisconnect) as exc:
            with c.websocket_connect("/groups/trio/matches/stream") as ws:
                ws.receive_json()
        assert exc.value.code == 4403
