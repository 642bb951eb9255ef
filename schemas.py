"""
Database Schemas for Badminton Shot Analytics

Each record model corresponds to a MongoDB collection (players, matches, shots).
Records travel by their camelCase aliases (hitPlayer, matchId, ...) both in
the API and in backup documents; Python code uses the snake_case names.

Use these models for validation when creating documents.
"""

import datetime as dt
from typing import Any, Dict, Iterable, List, Literal, Optional, get_args

from pydantic import BaseModel, ConfigDict, Field

from errors import ValidationError

CourtZone = Literal["LR", "CR", "RR", "LM", "CM", "RM", "LF", "CF", "RF"]
ShotType = Literal[
    "short_serve", "long_serve", "clear", "smash", "drop", "long_return",
    "short_return", "drive", "lob", "push", "hairpin",
]
ShotResult = Literal["point", "miss", "winner", "error", "continue"]
MatchType = Literal["singles", "doubles"]

# Fixed enumeration order: rear row, mid row, front row; left to right.
COURT_ZONES = get_args(CourtZone)
SHOT_TYPES = get_args(ShotType)
REAR_ZONES = ("LR", "CR", "RR")
MID_ZONES = ("LM", "CM", "RM")
FRONT_ZONES = ("LF", "CF", "RF")


class Record(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    def to_document(self) -> Dict[str, Any]:
        """Serialise by alias, leaving absent optional fields out."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class Player(Record):
    """
    Players collection schema
    Collection name: "players"
    """
    id: str = Field(..., min_length=1, description="Unique player id")
    name: str = Field(..., description="Player full name")
    affiliation: str = Field(..., description="Club, school or team")


class MatchPlayers(Record):
    """Who played on each side. Second slots are only filled for doubles."""
    player1: str = Field(..., description="Player id")
    player2: Optional[str] = Field(None, description="Partner id (doubles only)")
    opponent1: str = Field(..., description="Opponent player id")
    opponent2: Optional[str] = Field(None, description="Opponent partner id (doubles only)")

    def own_side(self) -> List[str]:
        return [p for p in (self.player1, self.player2) if p is not None]

    def other_side(self) -> List[str]:
        return [p for p in (self.opponent1, self.opponent2) if p is not None]

    def all_ids(self) -> List[str]:
        return self.own_side() + self.other_side()


class Match(Record):
    """
    Matches collection schema
    Collection name: "matches"
    """
    id: str = Field(..., min_length=1, description="Unique match id")
    date: dt.date = Field(..., description="Match day (ISO date)")
    type: MatchType = Field(..., description="singles or doubles")
    players: MatchPlayers
    created_at: int = Field(..., alias="createdAt", description="Registration time (epoch millis)")

    def involves(self, player_id: str) -> bool:
        return player_id in self.players.all_ids()


class Shot(Record):
    """
    Shots collection schema
    Each document represents one recorded rally event.
    Collection name: "shots"
    """
    id: str = Field(..., min_length=1, description="Unique shot id")
    match_id: str = Field(..., alias="matchId", description="Match the shot belongs to")
    timestamp: int = Field(..., description="Recording time (epoch millis)")
    hit_player: str = Field(..., alias="hitPlayer", description="Player who hit the shuttle")
    receive_player: str = Field(..., alias="receivePlayer", description="Player who received it")
    hit_area: CourtZone = Field(..., alias="hitArea")
    receive_area: CourtZone = Field(..., alias="receiveArea")
    shot_type: ShotType = Field(..., alias="shotType")
    is_cross: bool = Field(..., alias="isCross", description="Hit diagonally across the court")
    result: ShotResult


class BackupDocument(BaseModel):
    """Whole-dataset export. Every section is required, even when empty."""
    players: List[Player]
    matches: List[Match]
    shots: List[Shot]


# --------- Creation payloads (server assigns ids and times) ---------

class PlayerCreate(Record):
    id: Optional[str] = None
    name: str = Field(..., min_length=1)
    affiliation: str = ""


class MatchCreate(Record):
    id: Optional[str] = None
    date: dt.date
    type: MatchType
    players: MatchPlayers


class ShotCreate(Record):
    hit_player: str = Field(..., alias="hitPlayer")
    receive_player: str = Field(..., alias="receivePlayer")
    hit_area: CourtZone = Field(..., alias="hitArea")
    receive_area: CourtZone = Field(..., alias="receiveArea")
    shot_type: ShotType = Field(..., alias="shotType")
    is_cross: bool = Field(False, alias="isCross")
    result: ShotResult


# --------- Derived values ---------

class PlayerStats(Record):
    total_shots: int = Field(..., alias="totalShots")
    cross_rate: float = Field(..., alias="crossRate")
    miss_rate: float = Field(..., alias="missRate")
    point_rate: float = Field(..., alias="pointRate")
    rear_rate: float = Field(..., alias="rearRate")
    mid_rate: float = Field(..., alias="midRate")
    front_rate: float = Field(..., alias="frontRate")


class HeatmapCell(Record):
    area: CourtZone
    error_count: int = Field(..., alias="errorCount")
    intensity: float = Field(..., ge=0, le=100, description="Errors relative to the worst zone (0-100)")


class PlayerAnalytics(Record):
    player_id: str = Field(..., alias="playerId")
    stats: PlayerStats
    shot_distribution: Dict[str, int] = Field(..., alias="shotDistribution")
    heatmap: List[HeatmapCell]
    rear_cross_rate: float = Field(..., alias="rearCrossRate")


class LeaderboardEntry(Record):
    player_id: str = Field(..., alias="playerId")
    name: Optional[str] = None
    total_shots: int = Field(..., alias="totalShots")
    points: int
    point_rate: float = Field(..., alias="pointRate")
    miss_rate: float = Field(..., alias="missRate")


# --------- Match registration rules ---------

def validate_match(match: Match, players: Iterable[Player]) -> None:
    """Raise ValidationError if the match cannot be registered as given.

    Doubles need both partners, singles must not have them, every id must
    belong to a known player and nobody may appear twice.
    """
    slots = match.players
    if match.type == "doubles":
        if slots.player2 is None or slots.opponent2 is None:
            raise ValidationError("doubles match requires player2 and opponent2")
    elif slots.player2 is not None or slots.opponent2 is not None:
        raise ValidationError("singles match must not have player2 or opponent2")

    known = {p.id for p in players}
    unknown = [pid for pid in slots.all_ids() if pid not in known]
    if unknown:
        raise ValidationError(f"unknown player id(s): {', '.join(unknown)}")

    ids = slots.all_ids()
    if len(set(ids)) != len(ids):
        raise ValidationError("a player cannot appear more than once in a match")
