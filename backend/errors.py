"""
Typed failures raised by the Hi-Lo engine.

The router maps each one to an HTTP status; nothing below catches them
except where a degraded result is part of the contract (arbiter parsing).
"""
from typing import Any, Optional


class HiLoError(Exception):
    """Base class for every engine error."""


class ContentValidationError(HiLoError):
    """Generated content failed the structural gate. Message is the reason."""


class AnswerParseError(HiLoError):
    """Arbiter output could not be read as a judgment."""

    def __init__(self, message: str, raw: Optional[str] = None):
        self.raw = raw
        super().__init__(message)


class InvalidRoundError(HiLoError, ValueError):
    """Round number outside 1..4."""

    def __init__(self, round_number: Any):
        self.round_number = round_number
        super().__init__(f"Invalid round number: {round_number!r}. Must be 1-4.")


class LifecycleError(HiLoError):
    """Operation not allowed in the game's current lifecycle state."""

    def __init__(self, message: str, game_id: Optional[str] = None, status: Optional[str] = None):
        self.game_id = game_id
        self.status = status
        super().__init__(message)


class GameNotFoundError(HiLoError):
    def __init__(self, game_id: str):
        self.game_id = game_id
        super().__init__(f"Game {game_id} not found")


class RoundAlreadyRecordedError(HiLoError):
    """A round was submitted twice for one player; `recorded` is the stored result."""

    def __init__(self, game_id: str, player_id: str, round_number: int, recorded: Any = None):
        self.game_id = game_id
        self.player_id = player_id
        self.round_number = round_number
        self.recorded = recorded
        super().__init__(
            f"Round {round_number} already recorded for player {player_id} in game {game_id}"
        )


class RoundOutOfOrderError(HiLoError):
    """Player tried to play a round other than the next unplayed one."""

    def __init__(self, round_number: int, expected: int):
        self.round_number = round_number
        self.expected = expected
        super().__init__(f"Round {round_number} is not playable yet; next round is {expected}")
