from pydantic import BaseModel, Field
from typing import Optional, List
from enum import Enum
from datetime import datetime, timezone
import uuid


def _utcnow() -> datetime:
    """Timezone-aware UTC datetime (replaces deprecated datetime.utcnow)."""
    return datetime.now(timezone.utc)


def _short_id() -> str:
    return str(uuid.uuid4())[:8].upper()


class GameStatus(str, Enum):
    GENERATING = "generating"  # content requested, not yet validated
    READY = "ready"            # content stored, waiting for an operator to open it
    ACTIVE = "active"          # playable inside [opens_at, closes_at)
    COMPLETED = "completed"    # closed by an operator


class DisplayStatus(str, Enum):
    """Stored status plus the derived EXPIRED state (active but past closes_at)."""
    GENERATING = "generating"
    READY = "ready"
    ACTIVE = "active"
    COMPLETED = "completed"
    EXPIRED = "expired"


class Direction(str, Enum):
    HIGH = "high"  # reward common answers
    LOW = "low"    # reward rare answers


class JudgeSource(str, Enum):
    EXACT = "exact"
    CACHE = "cache"
    ARBITER = "arbiter"
    NONE = "none"


# ── Generated content ─────────────────────────────────────────────────────────

class RankedAnswer(BaseModel):
    answer: str
    rank: int


class HistoricalFact(BaseModel):
    fact: str
    source: str = ""


class FunFact(BaseModel):
    fact: str


class GameContent(BaseModel):
    core_question: str
    scripture_verses: str = ""
    historical_facts: List[HistoricalFact] = Field(default_factory=list)
    fun_facts: List[FunFact] = Field(default_factory=list)
    answers: List[RankedAnswer] = Field(default_factory=list)


class GenerationSource(BaseModel):
    """Devotional material the generator builds a question from."""
    title: str = ""
    scripture_reference: str = ""
    scripture_text: str = ""
    reflection: str = ""
    discussion_question: str = ""


class CachedJudgment(BaseModel):
    """An arbiter-accepted free-text answer, reused so later players skip the AI call."""
    answer: str  # normalized
    rank: int
    matched_to: Optional[str] = None


class Game(BaseModel):
    id: str = Field(default_factory=_short_id)
    title: str = ""
    status: GameStatus = GameStatus.GENERATING
    content: Optional[GameContent] = None
    source: Optional[GenerationSource] = None
    opens_at: Optional[datetime] = None
    closes_at: Optional[datetime] = None
    generation_error: Optional[str] = None
    judged_answers: List[CachedJudgment] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=_utcnow)


# ── Judging & sessions ────────────────────────────────────────────────────────

class ArbiterJudgment(BaseModel):
    valid: bool = False
    rank: Optional[float] = None
    reason: str = ""
    matched_to: Optional[str] = None


class Judgment(BaseModel):
    on_list: bool
    rank: Optional[int] = None
    source: JudgeSource = JudgeSource.NONE
    reason: str = ""
    matched_to: Optional[str] = None


class RoundResult(BaseModel):
    round_number: int
    direction: Direction
    submitted_answer: str
    judged_rank: Optional[int] = None
    on_list: bool = False
    round_score: int = 0
    judged_by: JudgeSource = JudgeSource.NONE
    recorded_at: datetime = Field(default_factory=_utcnow)


class PlayerSession(BaseModel):
    id: str = Field(default_factory=_short_id)
    game_id: str
    player_id: str
    display_name: str = ""
    rounds: List[RoundResult] = Field(default_factory=list)
    total_score: int = 0
    started_at: datetime = Field(default_factory=_utcnow)
    completed_at: Optional[datetime] = None


class HalftimeSummary(BaseModel):
    score: int
    max_score: int
    scripture_verses: str = ""
    fun_facts: List[FunFact] = Field(default_factory=list)


# ── HTTP request/response models ──────────────────────────────────────────────

class CreateGameRequest(BaseModel):
    title: str = Field(default="", max_length=200)
    source: Optional[GenerationSource] = None
    # When False the game waits for POST /content instead of calling the generator
    generate: bool = True


class CreateGameResponse(BaseModel):
    game_id: str
    status: GameStatus


class IngestContentRequest(BaseModel):
    raw: str


class ActivateGameRequest(BaseModel):
    opens_at: Optional[datetime] = None  # defaults to now
    closes_at: datetime


class GameView(BaseModel):
    """Public game state. The ranked answer list is never exposed here."""
    game_id: str
    title: str
    status: GameStatus
    display_status: DisplayStatus
    is_open: bool
    opens_at: Optional[datetime] = None
    closes_at: Optional[datetime] = None
    core_question: Optional[str] = None
    scripture_verses: Optional[str] = None
    historical_facts: List[HistoricalFact] = Field(default_factory=list)
    fun_facts: List[FunFact] = Field(default_factory=list)
    answer_count: int = 0
    generation_error: Optional[str] = None


class SubmitAnswerRequest(BaseModel):
    round_number: int
    answer: str = Field(max_length=200)
    display_name: str = Field(default="", max_length=80)


class SubmitAnswerResponse(BaseModel):
    session_id: str
    round_number: int
    direction: Direction
    submitted_answer: str
    on_list: bool
    rank: Optional[int] = None
    round_score: int
    total_score: int
    recorded: bool
    completed: bool = False
    halftime: Optional[HalftimeSummary] = None
    # Full ranked list for the post-round reveal
    all_answers: List[RankedAnswer] = Field(default_factory=list)


class SessionView(BaseModel):
    session_id: Optional[str] = None
    game_id: str
    player_id: str
    display_name: str = ""
    rounds: List[RoundResult] = Field(default_factory=list)
    total_score: int = 0
    next_round: Optional[int] = 1
    completed: bool = False
    halftime: Optional[HalftimeSummary] = None


class LeaderboardEntry(BaseModel):
    rank: int
    player_id: str
    display_name: str = ""
    total_score: int
    rounds_played: int = 0
    completed: bool = False
    completed_at: Optional[datetime] = None

