"""
Referential cleanup when players, matches or shots are removed.

These functions never touch the database. They return the updated
collections and the caller persists them (see RecordStore.replace_collections).
Deleting something that does not exist returns the collections unchanged.
"""

from typing import List, Optional, Sequence, Tuple

from schemas import Match, Player, Shot


def delete_player(
    player_id: str,
    players: Sequence[Player],
    matches: Sequence[Match],
    shots: Sequence[Shot],
) -> Tuple[List[Player], List[Match], List[Shot]]:
    """Remove a player with every match they played and every shot they hit or received."""
    return (
        [p for p in players if p.id != player_id],
        [m for m in matches if not m.involves(player_id)],
        [s for s in shots if player_id not in (s.hit_player, s.receive_player)],
    )


def delete_match(
    match_id: str,
    matches: Sequence[Match],
    shots: Sequence[Shot],
) -> Tuple[List[Match], List[Shot]]:
    return (
        [m for m in matches if m.id != match_id],
        [s for s in shots if s.match_id != match_id],
    )


def delete_last_shot(shots: Sequence[Shot], match_id: Optional[str] = None) -> List[Shot]:
    """
    Undo the most recently appended shot.

    "Most recent" means last in the sequence, not the largest timestamp.
    With match_id only that match's shots are considered.
    """
    remaining = list(shots)
    for i in range(len(remaining) - 1, -1, -1):
        if match_id is None or remaining[i].match_id == match_id:
            del remaining[i]
            break
    return remaining
