"""Shared fixtures: in-memory store, scripted arbiter, content builders."""
import json
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional, Tuple

import pytest

from models.game import (
    CachedJudgment, Game, GameContent, GameStatus, PlayerSession, RoundResult,
)
from services.firestore_service import append_round
from agents.answer_judge import AnswerJudge
from agents.content_validator import parse_game_content
from agents.game_master import GameMaster

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)

SEED_WORDS = ["Love", "Grace", "Hope", "Faith", "Joy", "Peace", "Kindness", "Mercy"]


def make_answers(count: int = 200) -> List[dict]:
    answers = [{"answer": w, "rank": i} for i, w in enumerate(SEED_WORDS, start=1)]
    answers += [{"answer": f"word{i}", "rank": i} for i in range(len(SEED_WORDS) + 1, count + 1)]
    return answers[:count]


def make_payload(**overrides) -> dict:
    payload = {
        "core_question": "What one word describes God's love?",
        "scripture_verses": "John 3:16 For God so loved the world...",
        "historical_facts": [
            {"fact": "Fishing was a major trade around Galilee.", "source": "1st century Palestine"},
            {"fact": "Romans built roads across the empire.", "source": "Roman customs"},
            {"fact": "Scrolls were copied by hand.", "source": "Ancient Near East"},
        ],
        "fun_facts": [
            {"fact": "Salt was sometimes used as pay."},
            {"fact": "Dinner guests reclined on couches."},
            {"fact": "Sandals were removed before entering a home."},
        ],
        "answers": make_answers(),
    }
    payload.update(overrides)
    return payload


def make_content(**overrides) -> GameContent:
    return parse_game_content(json.dumps(make_payload(**overrides)))


def make_active_game(
    game_id: str = "GAME0001",
    opens_at: Optional[datetime] = None,
    closes_at: Optional[datetime] = None,
) -> Game:
    return Game(
        id=game_id,
        title="Week 1",
        status=GameStatus.ACTIVE,
        content=make_content(),
        opens_at=opens_at or NOW - timedelta(hours=1),
        closes_at=closes_at or NOW + timedelta(days=7),
    )


class FakeStore:
    """In-memory stand-in for FirestoreService with the same async surface."""

    def __init__(self):
        self.games: Dict[str, Game] = {}
        self.sessions: Dict[Tuple[str, str], PlayerSession] = {}
        self.record_calls = 0

    def put_game(self, game: Game) -> Game:
        self.games[game.id] = game.model_copy(deep=True)
        return game

    async def create_game(self, game: Game) -> Game:
        return self.put_game(game)

    async def get_game(self, game_id: str) -> Optional[Game]:
        game = self.games.get(game_id)
        return game.model_copy(deep=True) if game else None

    async def store_content(self, game_id: str, content: GameContent):
        game = self.games[game_id]
        game.content = content
        game.status = GameStatus.READY
        game.generation_error = None

    async def set_generation_error(self, game_id: str, reason: str):
        self.games[game_id].generation_error = reason

    async def set_status(self, game_id, status, opens_at=None, closes_at=None):
        game = self.games[game_id]
        game.status = status
        if opens_at is not None:
            game.opens_at = opens_at
        if closes_at is not None:
            game.closes_at = closes_at

    async def add_judged_answer(self, game_id: str, judged: CachedJudgment):
        game = self.games[game_id]
        if judged not in game.judged_answers:
            game.judged_answers.append(judged)

    async def get_session(self, game_id: str, player_id: str) -> Optional[PlayerSession]:
        session = self.sessions.get((game_id, player_id))
        return session.model_copy(deep=True) if session else None

    async def get_sessions(self, game_id: str) -> List[PlayerSession]:
        return [s.model_copy(deep=True) for (gid, _), s in self.sessions.items() if gid == game_id]

    async def record_round(self, game_id, player_id, display_name, result: RoundResult) -> PlayerSession:
        self.record_calls += 1
        current = self.sessions.get((game_id, player_id))
        updated = append_round(current, game_id, player_id, display_name, result)
        self.sessions[(game_id, player_id)] = updated
        return updated.model_copy(deep=True)


class FakeArbiter:
    """Scripted arbiter. `reply` is returned verbatim; None simulates an outage."""

    def __init__(self, reply: Optional[str] = None):
        self.reply = reply
        self.prompts: List[str] = []

    async def judge(self, prompt: str) -> Optional[str]:
        self.prompts.append(prompt)
        return self.reply


@pytest.fixture
def store():
    return FakeStore()


@pytest.fixture
def arbiter():
    return FakeArbiter()


@pytest.fixture
def master(store, arbiter):
    return GameMaster(store=store, judge=AnswerJudge(arbiter, max_rank=500), record_misses=False)


@pytest.fixture
def active_game(store):
    return store.put_game(make_active_game())
