from __future__ import annotations

from fastapi.testclient import TestClient

from swipematch.analytics.aggregator import compute_analytics
from swipematch.app import create_app

app = create_app()
client = TestClient(app)

PIZZA = {"kind": "restaurant", "name": "Trattoria Nonna", "cuisines": ["Italian"]}


def _login(c, member):
    c.post("/auth/login", json={"username": member, "password": f"{member}123"})


def _vote(c, member, item_id, direction="right", group_id="trio"):
    _login(c, member)
    c.post("/votes", json={
        "group_id": group_id, "item_id": item_id, "direction": direction, "item": PIZZA,
    })


def test_analytics_requires_admin():
    _login(client, "alice")
    assert client.get("/analytics").status_code == 403


def test_analytics_empty_initially():
    app.state.swipe_service.events.clear_events()
    _login(client, "admin")
    body = client.get("/analytics").json()
    assert body["total_votes"] == 0
    assert body["right_swipe_rate"] == 0.0
    assert body["matches"]["created"] == 0


def test_analytics_tracks_votes_and_matches():
    app.state.swipe_service.events.clear_events()
    for member in ("alice", "bob", "carol"):
        _vote(client, member, "an-1")
    _vote(client, "alice", "an-1")
    _vote(client, "bob", "an-2", direction="left")
    _vote(client, "bob", "an-3", group_id=None)
    _login(client, "admin")
    body = client.get("/analytics").json()
    assert body["total_votes"] == 6
    assert body["solo_votes"] == 1
    assert body["right_swipe_rate"] == 83.3
    assert body["item_kinds"] == {"restaurant": 6}
    assert body["top_scopes"][0] == {"scope_id": "trio", "votes": 5}
    assert body["matches"]["created"] == 1
    assert body["matches"]["unanimous_rate"] == 100.0
    assert body["matches"]["already_matched"] == 1
    assert body["matches"]["per_scope"] == {"trio": 1}


def test_compute_analytics_counts_evaluation_failures():
    events = [
        {"type": "vote", "direction": "right", "scope_id": "trio", "item_kind": "recipe"},
        {"type": "evaluation_failed", "scope_id": "trio", "item_id": "x"},
        {"type": "unlike", "scope_id": "solo:bob", "item_id": "y"},
    ]
    body = compute_analytics(events)
    assert body["evaluation_failures"] == 1
    assert body["unlikes"] == 1
    assert body["item_kinds"] == {"recipe": 1}
    assert body["matches"]["created"] == 0
