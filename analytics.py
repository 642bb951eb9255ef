"""
Shot analytics: per-player rates, shot type counts and error heatmaps.

Every function here is pure. Callers pass in the shot collection they
loaded from the store and get plain values back.
"""

from collections import Counter
from typing import Dict, Iterable, List, Optional, Sequence

from schemas import (
    COURT_ZONES,
    FRONT_ZONES,
    MID_ZONES,
    REAR_ZONES,
    HeatmapCell,
    LeaderboardEntry,
    Player,
    PlayerAnalytics,
    PlayerStats,
    Shot,
)

# Rear-zone hits that land on the opposite side of the court.
REAR_CROSS_TARGETS = {
    "LR": ("RF", "RM"),
    "RR": ("LF", "LM"),
}


def _rate(count: int, total: int) -> float:
    """Percentage of count in total; 0.0 when there is nothing to divide by."""
    if total == 0:
        return 0.0
    return 100.0 * count / total


def player_shots(player_id: str, shots: Iterable[Shot]) -> List[Shot]:
    """Shots hit by the player, in their original order."""
    return [s for s in shots if s.hit_player == player_id]


def filter_match_shots(match_id: str, shots: Iterable[Shot]) -> List[Shot]:
    return [s for s in shots if s.match_id == match_id]


def compute_player_stats(player_id: str, shots: Sequence[Shot]) -> PlayerStats:
    own = player_shots(player_id, shots)
    total = len(own)
    return PlayerStats(
        total_shots=total,
        cross_rate=_rate(sum(1 for s in own if s.is_cross), total),
        miss_rate=_rate(sum(1 for s in own if s.result == "miss"), total),
        point_rate=_rate(sum(1 for s in own if s.result == "point"), total),
        rear_rate=_rate(sum(1 for s in own if s.hit_area in REAR_ZONES), total),
        mid_rate=_rate(sum(1 for s in own if s.hit_area in MID_ZONES), total),
        front_rate=_rate(sum(1 for s in own if s.hit_area in FRONT_ZONES), total),
    )


def compute_shot_type_distribution(player_id: str, shots: Sequence[Shot]) -> Dict[str, int]:
    """Count each shot type the player used. Unused types are left out."""
    return dict(Counter(s.shot_type for s in player_shots(player_id, shots)))


def generate_error_heatmap(player_id: str, shots: Sequence[Shot]) -> List[HeatmapCell]:
    """
    Error counts per hit zone, scaled so the worst zone has intensity 100.

    Always nine cells in COURT_ZONES order. A player without errors gets
    zero intensity everywhere.
    """
    errors = Counter(
        s.hit_area for s in player_shots(player_id, shots) if s.result == "error"
    )
    max_errors = max((errors[zone] for zone in COURT_ZONES), default=0)
    return [
        HeatmapCell(
            area=zone,
            error_count=errors[zone],
            intensity=_rate(errors[zone], max_errors),
        )
        for zone in COURT_ZONES
    ]


def is_rear_cross(shot: Shot) -> bool:
    """Geometric cross rule for rear shots; CR is never a cross."""
    return shot.receive_area in REAR_CROSS_TARGETS.get(shot.hit_area, ())


def compute_rear_cross_rate(player_id: str, shots: Sequence[Shot]) -> float:
    """
    Cross rate among the player's rear-court shots, using court geometry
    rather than the recorded isCross flag.
    """
    rear = [s for s in player_shots(player_id, shots) if s.hit_area in REAR_ZONES]
    return _rate(sum(1 for s in rear if is_rear_cross(s)), len(rear))


def compute_player_analytics(player_id: str, shots: Sequence[Shot]) -> PlayerAnalytics:
    return PlayerAnalytics(
        player_id=player_id,
        stats=compute_player_stats(player_id, shots),
        shot_distribution=compute_shot_type_distribution(player_id, shots),
        heatmap=generate_error_heatmap(player_id, shots),
        rear_cross_rate=compute_rear_cross_rate(player_id, shots),
    )


def build_leaderboard(
    players: Sequence[Player],
    shots: Sequence[Shot],
    limit: Optional[int] = 10,
) -> List[LeaderboardEntry]:
    """Top players by points scored; ties go to the lower miss rate, then name."""
    entries = []
    for player in players:
        stats = compute_player_stats(player.id, shots)
        points = sum(1 for s in player_shots(player.id, shots) if s.result == "point")
        entries.append(LeaderboardEntry(
            player_id=player.id,
            name=player.name,
            total_shots=stats.total_shots,
            points=points,
            point_rate=stats.point_rate,
            miss_rate=stats.miss_rate,
        ))
    entries.sort(key=lambda e: (-e.points, e.miss_rate, e.name or ""))
    if limit is not None:
        entries = entries[:max(limit, 0)]
    return entries
