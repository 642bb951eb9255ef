"""
Shared pytest fixtures.

Provides an in-memory Mongo store (mongomock), sample records and a
factory for shots.
"""
import mongomock
import pytest
from fastapi.testclient import TestClient
from pymongo.errors import PyMongoError

from database import RecordStore, get_store
from main import app
from schemas import Match, MatchPlayers, Player, Shot


@pytest.fixture
def store() -> RecordStore:
    """Record store backed by a fresh in-memory Mongo client."""
    return RecordStore(name="badminton_test", client=mongomock.MongoClient())


@pytest.fixture
def client(store):
    """API client wired to the in-memory store."""
    app.dependency_overrides[get_store] = lambda: store
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def players():
    return [
        Player(id="1", name="Kento", affiliation="Tokyo BC"),
        Player(id="2", name="Lee", affiliation="Seoul BC"),
        Player(id="3", name="Viktor", affiliation="Odense BC"),
        Player(id="4", name="Anders", affiliation="Odense BC"),
    ]


@pytest.fixture
def singles_match():
    return Match(
        id="m1",
        date="2024-05-01",
        type="singles",
        players=MatchPlayers(player1="1", opponent1="2"),
        created_at=1714521600000,
    )


@pytest.fixture
def doubles_match():
    return Match(
        id="m2",
        date="2024-05-02",
        type="doubles",
        players=MatchPlayers(player1="1", player2="3", opponent1="2", opponent2="4"),
        created_at=1714608000000,
    )


@pytest.fixture
def make_shot():
    """Factory for shots; ids count up so insertion order is easy to read."""
    counter = {"n": 0}

    def _make(**overrides) -> Shot:
        counter["n"] += 1
        fields = {
            "id": f"s{counter['n']}",
            "match_id": "m1",
            "timestamp": 1714521600000 + counter["n"],
            "hit_player": "1",
            "receive_player": "2",
            "hit_area": "CM",
            "receive_area": "CM",
            "shot_type": "clear",
            "is_cross": False,
            "result": "continue",
        }
        fields.update(overrides)
        return Shot(**fields)

    return _make


@pytest.fixture
def failing_writes(monkeypatch):
    """
    Make record writes fail after a number of successful ones.

    Only update_one on entity collections is affected; the sequence counter
    and rollback writes still work.
    """
    def _arm(after: int):
        original = mongomock.Collection.update_one
        calls = {"n": 0}

        def update_one(self, *args, **kwargs):
            if self.name != "counters":
                if calls["n"] >= after:
                    raise PyMongoError("simulated write failure")
                calls["n"] += 1
            return original(self, *args, **kwargs)

        monkeypatch.setattr(mongomock.Collection, "update_one", update_one)

    return _arm
