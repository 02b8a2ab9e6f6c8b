"""
Leaderboard aggregation over a game's player sessions.

Ordering is total_score descending. Ties resolve deterministically:
finished sessions first, then earlier completed_at, earlier started_at,
and finally player_id. Ranks are positional (1..N), so two tied players
still get distinct ranks.
"""
from datetime import datetime, timezone
from typing import Iterable, List, Optional

from models.game import LeaderboardEntry, PlayerSession
from agents.lifecycle import as_utc

_FAR_FUTURE = datetime.max.replace(tzinfo=timezone.utc)


def _sort_key(session: PlayerSession):
    completed_at = as_utc(session.completed_at)
    return (
        -session.total_score,
        completed_at is None,
        completed_at or _FAR_FUTURE,
        as_utc(session.started_at) or _FAR_FUTURE,
        session.player_id,
    )


def build_leaderboard(
    sessions: Iterable[PlayerSession],
    include_unplayed: bool = True,
    limit: Optional[int] = None,
) -> List[LeaderboardEntry]:
    pool = [s for s in sessions if include_unplayed or s.rounds]
    ordered = sorted(pool, key=_sort_key)
    if limit is not None:
        ordered = ordered[:limit]
    return [
        LeaderboardEntry(
            rank=position,
            player_id=s.player_id,
            display_name=s.display_name,
            total_score=s.total_score,
            rounds_played=len(s.rounds),
            completed=s.completed_at is not None,
            completed_at=s.completed_at,
        )
        for position, s in enumerate(ordered, start=1)
    ]
