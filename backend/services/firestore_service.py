import asyncio
import logging
import os
from typing import Optional, List, Dict, Any
from datetime import datetime

from models.game import (
    Game, GameStatus, GameContent, CachedJudgment, PlayerSession, RoundResult,
)
from errors import RoundAlreadyRecordedError, RoundOutOfOrderError
from config import settings

logger = logging.getLogger(__name__)

TOTAL_ROUNDS = 4


def append_round(
    session: Optional[PlayerSession],
    game_id: str,
    player_id: str,
    display_name: str,
    result: RoundResult,
) -> PlayerSession:
    """
    Return the session with `result` appended, creating it on the first round.
    Raises RoundAlreadyRecordedError for a round already stored and
    RoundOutOfOrderError for a round beyond the next unplayed one.
    Runs inside the store's transaction, so it must stay free of I/O.
    """
    if session is None:
        session = PlayerSession(game_id=game_id, player_id=player_id, display_name=display_name)
    else:
        session = session.model_copy(deep=True)

    for existing in session.rounds:
        if existing.round_number == result.round_number:
            raise RoundAlreadyRecordedError(game_id, player_id, result.round_number, recorded=existing)

    expected = len(session.rounds) + 1
    if result.round_number != expected:
        raise RoundOutOfOrderError(result.round_number, expected)

    session.rounds.append(result)
    session.total_score += result.round_score
    if display_name and not session.display_name:
        session.display_name = display_name
    if len(session.rounds) >= TOTAL_ROUNDS:
        session.completed_at = result.recorded_at
    return session


class FirestoreService:
    """
    Async-friendly Firestore wrapper using run_in_executor to avoid
    blocking the event loop.

    Layout:
      games/{game_id}                      — Game (content embedded once generated)
      games/{game_id}/sessions/{player_id} — PlayerSession, one per player
    """

    def __init__(self):
        if settings.firestore_emulator_host:
            os.environ["FIRESTORE_EMULATOR_HOST"] = settings.firestore_emulator_host
        # Lazy import so the service can be instantiated before GCP creds exist
        from google.cloud import firestore
        self._firestore = firestore
        self.db = firestore.Client(project=settings.google_cloud_project or None)

    def _run(self, fn):
        """Run a sync Firestore call in the default thread pool."""
        loop = asyncio.get_running_loop()
        return loop.run_in_executor(None, fn)

    # ── Collection helpers ────────────────────────────────────────────────────

    def _game_ref(self, game_id: str):
        return self.db.collection("games").document(game_id)

    def _sessions_ref(self, game_id: str):
        return self._game_ref(game_id).collection("sessions")

    # ── Games ─────────────────────────────────────────────────────────────────

    async def create_game(self, game: Game) -> Game:
        data = game.model_dump(mode="json")
        await self._run(lambda: self._game_ref(game.id).set(data))
        return game

    async def get_game(self, game_id: str) -> Optional[Game]:
        doc = await self._run(lambda: self._game_ref(game_id).get())
        if doc.exists:
            return Game(**doc.to_dict())
        return None

    async def update_game(self, game_id: str, updates: Dict[str, Any]):
        await self._run(lambda: self._game_ref(game_id).update(updates))

    async def store_content(self, game_id: str, content: GameContent):
        """Persist validated content and move the game generating -> ready."""
        await self.update_game(game_id, {
            "content": content.model_dump(mode="json"),
            "status": GameStatus.READY.value,
            "generation_error": None,
        })

    async def set_generation_error(self, game_id: str, reason: str):
        await self.update_game(game_id, {"generation_error": reason})

    async def set_status(
        self,
        game_id: str,
        status: GameStatus,
        opens_at: Optional[datetime] = None,
        closes_at: Optional[datetime] = None,
    ):
        updates: Dict[str, Any] = {"status": status.value}
        if opens_at is not None:
            updates["opens_at"] = opens_at.isoformat()
        if closes_at is not None:
            updates["closes_at"] = closes_at.isoformat()
        await self.update_game(game_id, updates)

    async def add_judged_answer(self, game_id: str, judged: CachedJudgment):
        """Cache an arbiter-accepted answer on the game (idempotent via ArrayUnion)."""
        entry = judged.model_dump(mode="json")
        await self.update_game(game_id, {"judged_answers": self._firestore.ArrayUnion([entry])})

    # ── Player sessions ───────────────────────────────────────────────────────

    async def get_session(self, game_id: str, player_id: str) -> Optional[PlayerSession]:
        doc = await self._run(lambda: self._sessions_ref(game_id).document(player_id).get())
        if doc.exists:
            return PlayerSession(**doc.to_dict())
        return None

    async def get_sessions(self, game_id: str) -> List[PlayerSession]:
        docs = await self._run(lambda: list(self._sessions_ref(game_id).stream()))
        return [PlayerSession(**d.to_dict()) for d in docs]

    async def record_round(
        self,
        game_id: str,
        player_id: str,
        display_name: str,
        result: RoundResult,
    ) -> PlayerSession:
        """
        At-most-once write of one round. The read-check-write runs in a
        Firestore transaction, so concurrent duplicates cannot both commit.
        """
        ref = self._sessions_ref(game_id).document(player_id)
        firestore = self._firestore

        @firestore.transactional
        def _apply(transaction) -> PlayerSession:
            snap = ref.get(transaction=transaction)
            current = PlayerSession(**snap.to_dict()) if snap.exists else None
            updated = append_round(current, game_id, player_id, display_name, result)
            transaction.set(ref, updated.model_dump(mode="json"))
            return updated

        session = await self._run(lambda: _apply(self.db.transaction()))
        logger.info(
            "[%s] Recorded round %d for %s (score %d, total %d)",
            game_id, result.round_number, player_id, result.round_score, session.total_score,
        )
        return session


_firestore_service: Optional["FirestoreService"] = None


def get_firestore_service() -> "FirestoreService":
    """Lazy singleton — initialised on first call, not at import time.
    This prevents credential errors from crashing the app before FastAPI boots.
    Use as a FastAPI dependency: Depends(get_firestore_service)
    """
    global _firestore_service
    if _firestore_service is None:
        _firestore_service = FirestoreService()
    return _firestore_service
