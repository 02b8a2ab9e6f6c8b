"""
Game lifecycle: derived display status and the open-window check.

Stored status only changes through operator actions and the generation
pipeline. EXPIRED is never stored: it is an ACTIVE game read after closes_at.
"""
from datetime import datetime, timezone
from typing import Optional

from models.game import Game, GameStatus, DisplayStatus


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    # Naive timestamps are UTC
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _now(now: Optional[datetime]) -> datetime:
    return as_utc(now) if now is not None else datetime.now(timezone.utc)


def get_game_status(game: Game, now: Optional[datetime] = None) -> DisplayStatus:
    if game.status != GameStatus.ACTIVE:
        return DisplayStatus(game.status.value)
    closes_at = as_utc(game.closes_at)
    if closes_at is not None and _now(now) >= closes_at:
        return DisplayStatus.EXPIRED
    return DisplayStatus.ACTIVE


def is_game_open(game: Game, now: Optional[datetime] = None) -> bool:
    """True only for an ACTIVE game with both window bounds set and opens_at <= now < closes_at."""
    if game.status != GameStatus.ACTIVE:
        return False
    opens_at, closes_at = as_utc(game.opens_at), as_utc(game.closes_at)
    if opens_at is None or closes_at is None:
        return False
    current = _now(now)
    return opens_at <= current < closes_at
