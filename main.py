import logging
import os
import threading
import time
from typing import Any, Dict, Iterable, List

from bson import ObjectId
from fastapi import Body, Depends, FastAPI, HTTPException, Query, Request
from fastapi.encoders import jsonable_encoder
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from analytics import (
    build_leaderboard,
    compute_player_analytics,
    filter_match_shots,
    generate_error_heatmap,
)
from cascade import delete_last_shot, delete_match, delete_player
from database import COLLECTIONS, RecordStore, get_store
from errors import FormatError, StorageError, ValidationError
from schemas import (
    Match,
    MatchCreate,
    Player,
    PlayerCreate,
    Shot,
    ShotCreate,
    validate_match,
)

logger = logging.getLogger(__name__)

app = FastAPI(title="Badminton Shot Analytics API")

# Route handlers run in a threadpool; mutations go through one at a time.
write_lock = threading.Lock()

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# --------- Error mapping ---------

@app.exception_handler(FormatError)
async def format_error_handler(request: Request, exc: FormatError):
    return JSONResponse(status_code=400, content={"detail": str(exc), "errors": jsonable_encoder(exc.errors)})

@app.exception_handler(ValidationError)
async def validation_error_handler(request: Request, exc: ValidationError):
    return JSONResponse(status_code=422, content={"detail": str(exc)})

@app.exception_handler(StorageError)
async def storage_error_handler(request: Request, exc: StorageError):
    logger.error("Storage failure on %s %s: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=503, content={"detail": str(exc)})


# --------- Utility helpers ---------

def new_id() -> str:
    return str(ObjectId())

def now_millis() -> int:
    return int(time.time() * 1000)

def load_players(store: RecordStore) -> List[Player]:
    return [Player.model_validate(r) for r in store.get_all("players")]

def load_matches(store: RecordStore) -> List[Match]:
    return [Match.model_validate(r) for r in store.get_all("matches")]

def load_shots(store: RecordStore) -> List[Shot]:
    return [Shot.model_validate(r) for r in store.get_all("shots")]

def require(store: RecordStore, collection: str, record_id: str, label: str) -> Dict[str, Any]:
    record = store.get(collection, record_id)
    if record is None:
        raise HTTPException(status_code=404, detail=f"{label} not found")
    return record

def reject_existing(store: RecordStore, collection: str, record_id: str, label: str) -> None:
    """Records are immutable once registered; an id can only be used once."""
    if store.get(collection, record_id) is not None:
        raise HTTPException(status_code=409, detail=f"{label} {record_id} already exists")

def dropped_ids(before: Iterable[Any], after: Iterable[Any]) -> List[str]:
    kept = {record.id for record in after}
    return [record.id for record in before if record.id not in kept]


# --------- Health & Schema ---------

@app.get("/")
def read_root():
    return {"message": "Badminton Shot Analytics API is running"}

@app.get("/test")
def test_database(store: RecordStore = Depends(get_store)):
    """Test endpoint to check if database is available and accessible"""
    response = {
        "backend": "✅ Running",
        "database": "❌ Not Available",
        "database_url": "✅ Set" if os.getenv("DATABASE_URL") else "❌ Not Set",
        "database_name": store.name,
        "connection_status": "Not Connected",
        "collections": {},
    }
    try:
        response["collections"] = {name: len(store.get_all(name)) for name in COLLECTIONS}
        response["database"] = "✅ Connected & Working"
        response["connection_status"] = "Connected"
    except StorageError as e:
        response["database"] = f"❌ Error: {str(e)[:80]}"
    return response

@app.get("/schema")
def get_schema():
    """Expose record schemas for external tools/viewers."""
    return {
        "player": Player.model_json_schema(by_alias=True),
        "match": Match.model_json_schema(by_alias=True),
        "shot": Shot.model_json_schema(by_alias=True),
    }


# --------- Players ---------

@app.post("/api/players")
def create_player(player: PlayerCreate, store: RecordStore = Depends(get_store)):
    record = Player(id=player.id or new_id(), name=player.name, affiliation=player.affiliation)
    with write_lock:
        reject_existing(store, "players", record.id, "Player")
        store.put_all("players", [record])
    return {"id": record.id}

@app.get("/api/players")
def list_players(store: RecordStore = Depends(get_store)):
    return store.get_all("players")

@app.delete("/api/players/{player_id}")
def remove_player(player_id: str, store: RecordStore = Depends(get_store)):
    """Delete a player together with their matches and shots."""
    with write_lock:
        players, matches, shots = load_players(store), load_matches(store), load_shots(store)
        kept_players, kept_matches, kept_shots = delete_player(player_id, players, matches, shots)
        removals = {
            "players": dropped_ids(players, kept_players),
            "matches": dropped_ids(matches, kept_matches),
            "shots": dropped_ids(shots, kept_shots),
        }
        store.delete_ids(removals)
    return {name: len(ids) for name, ids in removals.items()}


# --------- Matches ---------

@app.post("/api/matches")
def create_match(match: MatchCreate, store: RecordStore = Depends(get_store)):
    record = Match(
        id=match.id or new_id(),
        date=match.date,
        type=match.type,
        players=match.players,
        created_at=now_millis(),
    )
    with write_lock:
        reject_existing(store, "matches", record.id, "Match")
        validate_match(record, load_players(store))
        store.put_all("matches", [record])
    return {"id": record.id}

@app.get("/api/matches")
def list_matches(store: RecordStore = Depends(get_store)):
    return store.get_all("matches")

@app.delete("/api/matches/{match_id}")
def remove_match(match_id: str, store: RecordStore = Depends(get_store)):
    """Delete a match and every shot recorded in it."""
    with write_lock:
        matches, shots = load_matches(store), load_shots(store)
        kept_matches, kept_shots = delete_match(match_id, matches, shots)
        removals = {
            "matches": dropped_ids(matches, kept_matches),
            "shots": dropped_ids(shots, kept_shots),
        }
        store.delete_ids(removals)
    return {name: len(ids) for name, ids in removals.items()}


# --------- Shots (Rallies) ---------

@app.post("/api/matches/{match_id}/shots")
def create_shot(match_id: str, shot: ShotCreate, store: RecordStore = Depends(get_store)):
    record = Shot(
        id=new_id(),
        match_id=match_id,
        timestamp=now_millis(),
        **shot.model_dump(),
    )
    with write_lock:
        match = Match.model_validate(require(store, "matches", match_id, "Match"))
        on_court = match.players.all_ids()
        for role, player_id in (("hitPlayer", record.hit_player), ("receivePlayer", record.receive_player)):
            if player_id not in on_court:
                raise ValidationError(f"{role} {player_id} is not playing in match {match_id}")
        store.put_all("shots", [record])
    return {"id": record.id}

@app.get("/api/matches/{match_id}/shots")
def list_match_shots(match_id: str, store: RecordStore = Depends(get_store)):
    require(store, "matches", match_id, "Match")
    return filter_match_shots(match_id, load_shots(store))

@app.delete("/api/matches/{match_id}/shots/last")
def undo_last_shot(match_id: str, store: RecordStore = Depends(get_store)):
    """Remove the most recently recorded shot of a match."""
    with write_lock:
        shots = load_shots(store)
        removed = dropped_ids(shots, delete_last_shot(shots, match_id=match_id))
        store.delete_ids({"shots": removed})
    return {"removed": removed[0] if removed else None}

@app.get("/api/shots")
def list_shots(store: RecordStore = Depends(get_store)):
    return store.get_all("shots")


# --------- Analytics ---------

@app.get("/api/analytics/leaderboard")
def leaderboard(limit: int = Query(10, ge=1), store: RecordStore = Depends(get_store)):
    """Top players by points scored."""
    return build_leaderboard(load_players(store), load_shots(store), limit=limit)

@app.get("/api/analytics/player/{player_id}")
def player_analytics(player_id: str, store: RecordStore = Depends(get_store)):
    player = require(store, "players", player_id, "Player")
    result = jsonable_encoder(compute_player_analytics(player_id, load_shots(store)))
    result["player"] = player.get("name")
    return result

@app.get("/api/analytics/player/{player_id}/heatmap")
def player_heatmap(player_id: str, store: RecordStore = Depends(get_store)):
    require(store, "players", player_id, "Player")
    return generate_error_heatmap(player_id, load_shots(store))


# --------- Backup ---------

@app.get("/api/backup")
def export_backup(store: RecordStore = Depends(get_store)):
    return store.export_all()

@app.post("/api/backup")
def import_backup(document: Dict[str, Any] = Body(...), store: RecordStore = Depends(get_store)):
    with write_lock:
        store.import_all(document)
    return {name: len(document.get(name, [])) for name in COLLECTIONS}


if __name__ == "__main__":
    import uvicorn
    logging.basicConfig(
        level=os.getenv("LOG_LEVEL", "INFO").upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    port = int(os.getenv("PORT", 8000))
    uvicorn.run(app, host="0.0.0.0", port=port)
