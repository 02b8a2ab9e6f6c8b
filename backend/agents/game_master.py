"""
Game Master — round/direction state machine, scoring, and the submission boundary.

Responsibilities:
- Round → direction mapping (rounds 1-2 HIGH, 3-4 LOW)
- Scoring policy per round
- Operator lifecycle transitions (ready → active → completed)
- Answer submission: lifecycle check → judge → score → at-most-once record
- Halftime checkpoint after round 2

Scoring is pure deterministic Python. The only AI involvement is the judge's
arbiter, and it can only decide on-list/off-list and a rank.
"""
import logging
from datetime import datetime, timezone
from typing import Dict, List, Optional, Tuple

from config import settings
from errors import (
    ContentValidationError, GameNotFoundError, InvalidRoundError, LifecycleError,
    RoundAlreadyRecordedError, RoundOutOfOrderError,
)
from models.game import (
    CachedJudgment, Direction, Game, GameStatus, GameView, GenerationSource,
    HalftimeSummary, JudgeSource, LeaderboardEntry, PlayerSession, RoundResult,
    SessionView, SubmitAnswerResponse,
)
from services.firestore_service import TOTAL_ROUNDS, get_firestore_service
from agents.answer_judge import AnswerJudge
from agents.content_validator import parse_game_content
from agents.leaderboard import build_leaderboard
from agents.lifecycle import get_game_status, is_game_open, as_utc
from agents.normalizer import normalize_answer

logger = logging.getLogger(__name__)

# round → (direction, multiplier)
ROUND_CONFIG: Dict[int, Tuple[Direction, int]] = {
    1: (Direction.HIGH, 2),
    2: (Direction.HIGH, 3),
    3: (Direction.LOW, 2),
    4: (Direction.LOW, 3),
}

HALFTIME_AFTER_ROUND = 2


def _round_config(round_number) -> Tuple[Direction, int]:
    if isinstance(round_number, bool) or not isinstance(round_number, int):
        raise InvalidRoundError(round_number)
    if round_number not in ROUND_CONFIG:
        raise InvalidRoundError(round_number)
    return ROUND_CONFIG[round_number]


def get_round_direction(round_number: int) -> Direction:
    return _round_config(round_number)[0]


def calculate_round_score(round_number: int, rank: Optional[int], answer_count: Optional[int] = None) -> int:
    """
    HIGH rounds pay for common answers: (N + 1 - rank) * multiplier, floored at 0.
    LOW rounds pay for rare answers: min(rank, N) * multiplier.
    Off-list (rank None) scores 0 in either direction.
    """
    direction, multiplier = _round_config(round_number)
    if rank is None:
        return 0
    if isinstance(rank, bool) or not isinstance(rank, int) or rank < 1:
        raise ValueError(f"Invalid rank: {rank!r}. Must be a positive integer.")

    n = answer_count or settings.answer_count
    if direction == Direction.HIGH:
        return max(0, (n + 1 - rank) * multiplier)
    return min(rank, n) * multiplier


def calculate_total_score(rounds: List[RoundResult]) -> int:
    return sum(r.round_score for r in rounds)


def get_round_max_score(round_number: int, answer_count: Optional[int] = None) -> int:
    _, multiplier = _round_config(round_number)
    return (answer_count or settings.answer_count) * multiplier


def get_max_score(answer_count: Optional[int] = None) -> int:
    return sum(get_round_max_score(r, answer_count) for r in ROUND_CONFIG)


def next_round(session: Optional[PlayerSession]) -> Optional[int]:
    """Next round to play, or None once all rounds are recorded."""
    played = len(session.rounds) if session else 0
    return played + 1 if played < TOTAL_ROUNDS else None


def halftime_checkpoint(session: Optional[PlayerSession], game: Game) -> Optional[HalftimeSummary]:
    """Cumulative HIGH-round score plus the interstitial content, once round 2 is in."""
    if session is None or len(session.rounds) < HALFTIME_AFTER_ROUND:
        return None
    first_half = [r for r in session.rounds if r.round_number <= HALFTIME_AFTER_ROUND]
    answer_count = len(game.content.answers) if game.content else None
    return HalftimeSummary(
        score=calculate_total_score(first_half),
        max_score=sum(get_round_max_score(r, answer_count) for r in range(1, HALFTIME_AFTER_ROUND + 1)),
        scripture_verses=game.content.scripture_verses if game.content else "",
        fun_facts=list(game.content.fun_facts) if game.content else [],
    )


class GameMaster:
    """
    Deterministic game engine over a store (FirestoreService or anything with
    the same async methods) and an AnswerJudge.
    """

    def __init__(self, store=None, judge: Optional[AnswerJudge] = None, record_misses: Optional[bool] = None):
        self._store = store
        self._judge = judge
        self.record_misses = settings.record_misses if record_misses is None else record_misses

    @property
    def store(self):
        if self._store is None:
            self._store = get_firestore_service()
        return self._store

    @property
    def judge(self) -> AnswerJudge:
        if self._judge is None:
            self._judge = AnswerJudge()
        return self._judge

    # ── Games ─────────────────────────────────────────────────────────────────

    async def get_game(self, game_id: str) -> Game:
        game = await self.store.get_game(game_id)
        if game is None:
            raise GameNotFoundError(game_id)
        return game

    async def create_game(self, title: str = "", source: Optional[GenerationSource] = None) -> Game:
        game = await self.store.create_game(Game(title=title, source=source))
        logger.info("[%s] Game created (status=%s)", game.id, game.status.value)
        return game

    async def ingest_content(self, game_id: str, raw: str) -> Game:
        """
        Validate generator output and, only if it passes, store it and mark the
        game ready. A rejected payload leaves the game generating with the
        failure reason recorded so generation can be retried.
        """
        game = await self.get_game(game_id)
        if game.status != GameStatus.GENERATING:
            raise LifecycleError(
                f"Game {game_id} already has content", game_id=game_id, status=game.status.value
            )
        try:
            content = parse_game_content(raw)
        except ContentValidationError as exc:
            logger.warning("[%s] Generated content rejected: %s", game_id, exc)
            await self.store.set_generation_error(game_id, str(exc))
            raise
        await self.store.store_content(game_id, content)
        logger.info("[%s] Content stored (%d answers), game ready", game_id, len(content.answers))
        return await self.get_game(game_id)

    async def activate_game(
        self,
        game_id: str,
        closes_at: datetime,
        opens_at: Optional[datetime] = None,
        now: Optional[datetime] = None,
    ) -> Game:
        game = await self.get_game(game_id)
        if game.status != GameStatus.READY:
            raise LifecycleError(
                f"Only a ready game can be activated (status={game.status.value})",
                game_id=game_id, status=game.status.value,
            )
        opens_at = as_utc(opens_at) or as_utc(now) or datetime.now(timezone.utc)
        closes_at = as_utc(closes_at)
        if closes_at <= opens_at:
            raise ValueError("closes_at must be after opens_at")
        await self.store.set_status(game_id, GameStatus.ACTIVE, opens_at=opens_at, closes_at=closes_at)
        logger.info("[%s] Game active %s → %s", game_id, opens_at.isoformat(), closes_at.isoformat())
        return await self.get_game(game_id)

    async def close_game(self, game_id: str) -> Game:
        game = await self.get_game(game_id)
        if game.status != GameStatus.ACTIVE:
            raise LifecycleError(
                f"Only an active game can be closed (status={game.status.value})",
                game_id=game_id, status=game.status.value,
            )
        await self.store.set_status(game_id, GameStatus.COMPLETED)
        logger.info("[%s] Game completed", game_id)
        return await self.get_game(game_id)

    def game_view(self, game: Game, now: Optional[datetime] = None) -> GameView:
        content = game.content
        return GameView(
            game_id=game.id,
            title=game.title,
            status=game.status,
            display_status=get_game_status(game, now),
            is_open=is_game_open(game, now),
            opens_at=game.opens_at,
            closes_at=game.closes_at,
            core_question=content.core_question if content else None,
            scripture_verses=content.scripture_verses if content else None,
            historical_facts=list(content.historical_facts) if content else [],
            fun_facts=list(content.fun_facts) if content else [],
            answer_count=len(content.answers) if content else 0,
            generation_error=game.generation_error,
        )

    # ── Sessions & leaderboard ────────────────────────────────────────────────

    async def session_view(self, game_id: str, player_id: str) -> SessionView:
        game = await self.get_game(game_id)
        session = await self.store.get_session(game_id, player_id)
        if session is None:
            return SessionView(game_id=game_id, player_id=player_id)
        return SessionView(
            session_id=session.id,
            game_id=game_id,
            player_id=player_id,
            display_name=session.display_name,
            rounds=session.rounds,
            total_score=session.total_score,
            next_round=next_round(session),
            completed=session.completed_at is not None,
            halftime=halftime_checkpoint(session, game),
        )

    async def leaderboard(
        self, game_id: str, include_unplayed: bool = True, limit: Optional[int] = None
    ) -> List[LeaderboardEntry]:
        await self.get_game(game_id)
        sessions = await self.store.get_sessions(game_id)
        return build_leaderboard(sessions, include_unplayed=include_unplayed, limit=limit)

    # ── Submission ────────────────────────────────────────────────────────────

    async def submit_answer(
        self,
        game_id: str,
        player_id: str,
        round_number: int,
        answer: str,
        display_name: str = "",
        now: Optional[datetime] = None,
    ) -> SubmitAnswerResponse:
        """
        Judge and score one answer. A hit is recorded at most once per
        (game, player, round); a miss is recorded only when record_misses is on.
        Any failure before the write leaves stored state untouched.
        """
        direction = get_round_direction(round_number)
        game = await self.get_game(game_id)

        if not is_game_open(game, now):
            status = get_game_status(game, now)
            raise LifecycleError(
                f"Game {game_id} is not open (status={status.value})",
                game_id=game_id, status=status.value,
            )
        if game.content is None:
            raise LifecycleError(f"Game {game_id} has no content", game_id=game_id, status=game.status.value)

        session = await self.store.get_session(game_id, player_id)
        for existing in (session.rounds if session else []):
            if existing.round_number == round_number:
                raise RoundAlreadyRecordedError(game_id, player_id, round_number, recorded=existing)
        expected = next_round(session)
        if expected != round_number:
            raise RoundOutOfOrderError(round_number, expected or TOTAL_ROUNDS + 1)

        judgment = await self.judge.judge(answer, game.content, game.judged_answers)
        if judgment.source == JudgeSource.ARBITER:
            await self.store.add_judged_answer(
                game_id,
                CachedJudgment(
                    answer=normalize_answer(answer), rank=judgment.rank, matched_to=judgment.matched_to,
                ),
            )

        answer_count = len(game.content.answers)
        rank = judgment.rank if judgment.on_list else None
        score = calculate_round_score(round_number, rank, answer_count)
        result = RoundResult(
            round_number=round_number,
            direction=direction,
            submitted_answer=answer.strip(),
            judged_rank=rank,
            on_list=judgment.on_list,
            round_score=score,
            judged_by=judgment.source,
        )
        logger.info(
            "[%s] %s round %d (%s): %r → on_list=%s rank=%s score=%d",
            game_id, player_id, round_number, direction.value, answer, judgment.on_list, rank, score,
        )

        recorded = judgment.on_list or self.record_misses
        if recorded:
            session = await self.store.record_round(game_id, player_id, display_name, result)

        completed = session is not None and session.completed_at is not None
        return SubmitAnswerResponse(
            session_id=session.id if session else "",
            round_number=round_number,
            direction=direction,
            submitted_answer=result.submitted_answer,
            on_list=judgment.on_list,
            rank=rank,
            round_score=score,
            total_score=session.total_score if session else 0,
            recorded=recorded,
            completed=completed,
            halftime=halftime_checkpoint(session, game) if recorded and round_number == HALFTIME_AFTER_ROUND else None,
            all_answers=list(game.content.answers),
        )


game_master = GameMaster()


def get_game_master() -> GameMaster:
    """FastAPI dependency; overridden in tests."""
    return game_master
