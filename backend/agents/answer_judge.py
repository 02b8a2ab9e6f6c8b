"""
Answer Judge — decides whether a player's free-text answer is on the ranked list.

Resolution order, first hit wins:
  1. exact match against the seed list after normalization (no AI call)
  2. match against answers the arbiter already accepted for this game
  3. Gemini arbiter, for synonyms / word forms / plausible unlisted answers

The arbiter is a capability (anything with an async ``judge(prompt)`` returning
raw text or None), so tests and other deployments can swap it out. Arbiter
output that cannot be parsed, a rejection, or an unavailable arbiter are all
a miss; a rank is never invented.
"""
import asyncio
import json
import logging
import math
from typing import Any, List, Optional, Protocol

from config import settings
from errors import AnswerParseError
from models.game import (
    ArbiterJudgment, CachedJudgment, GameContent, Judgment, JudgeSource, RankedAnswer,
)
from agents.content_validator import strip_code_fence
from agents.normalizer import normalize_answer

logger = logging.getLogger(__name__)


class Arbiter(Protocol):
    async def judge(self, prompt: str) -> Optional[str]:
        ...


def find_exact_match(normalized: str, answers: List[RankedAnswer]) -> Optional[RankedAnswer]:
    if not normalized:
        return None
    for candidate in answers:
        if normalize_answer(candidate.answer) == normalized:
            return candidate
    return None


def _as_number(value: Any) -> Optional[float]:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    if isinstance(value, float) and not math.isfinite(value):
        return None
    return value


def load_judgment_json(text: str) -> dict:
    """Strict parse of arbiter output. Raises AnswerParseError."""
    body = strip_code_fence(text)
    try:
        data = json.loads(body)
    except (json.JSONDecodeError, ValueError, TypeError) as exc:
        raise AnswerParseError(f"Arbiter response is not JSON: {exc}", raw=text) from exc
    if not isinstance(data, dict):
        raise AnswerParseError("Arbiter response is not a JSON object", raw=text)
    return data


def parse_ai_judgment(text: str) -> ArbiterJudgment:
    """Lenient parse: never raises, unreadable output becomes an invalid judgment."""
    try:
        data = load_judgment_json(text)
    except AnswerParseError as exc:
        logger.warning("[judge] %s", exc)
        return ArbiterJudgment(valid=False, rank=None, reason="parse error")

    matched_to = data.get("matched_to")
    return ArbiterJudgment(
        valid=bool(data.get("valid")),
        rank=_as_number(data.get("rank")),
        reason=str(data.get("reason") or ""),
        matched_to=str(matched_to) if matched_to else None,
    )


def clamp_rank(rank: float, max_rank: int = 500) -> int:
    """Round half up to an integer and clamp into [1, max_rank]."""
    return max(1, min(max_rank, int(math.floor(rank + 0.5))))


def build_judge_prompt(
    core_question: str, answer: str, answers: List[RankedAnswer], max_rank: Optional[int] = None
) -> str:
    answer_count = len(answers)
    ceiling = max_rank or settings.max_judge_rank
    ranked = "\n".join(f"{a.rank}. {a.answer}" for a in answers)
    return f"""You are the game manager for a Hi-Lo youth ministry trivia game.

Question: "{core_question}"
Player's answer: "{answer}"

Existing ranked answers (1 = most popular, {answer_count} = least):
{ranked}

Rules:
1. Is "{answer}" a legitimate, appropriate answer to the question?
2. REJECT if ANY of these apply:
   - Profanity, slurs, crude humor
   - Sexual or suggestive content
   - Occult words or swearing
   - Violent words unless clearly biblical (e.g. "sacrifice")
   - Not actually answering the question
   - A youth pastor would be uncomfortable seeing it on screen
3. If it is a word form of an existing answer (plural, past tense, gerund), use that answer's rank and set matched_to.
4. If it is a synonym of an existing answer, assign a rank close to but not identical to that answer.
5. If it is a new valid answer, assign a rank based on where it would fall if 100,000 teens were surveyed.
6. Ranks can range from 1 to {ceiling} (beyond the seed list for very obscure answers).

Respond in JSON ONLY:
{{"valid": true/false, "rank": <number or null>, "matched_to": "<existing answer or null>", "reason": "<5 words max>"}}"""


# ── Gemini arbiter ────────────────────────────────────────────────────────────

class GeminiArbiter:
    """Arbiter backed by google-genai. Returns None when Gemini cannot be reached."""

    def __init__(self, model: Optional[str] = None, max_retries: Optional[int] = None):
        self.model = model or settings.judge_model
        self.max_retries = settings.judge_max_retries if max_retries is None else max_retries
        self._client = None
        self._unavailable = False

    def _get_client(self):
        if self._unavailable:
            return None
        if self._client is None:
            try:
                from google import genai
            except ImportError:
                self._unavailable = True
                logger.warning("[judge] google-genai not installed — arbiter disabled")
                return None
            if not settings.gemini_api_key:
                self._unavailable = True
                logger.warning("[judge] GEMINI_API_KEY not set — arbiter disabled")
                return None
            self._client = genai.Client(api_key=settings.gemini_api_key)
        return self._client

    async def judge(self, prompt: str) -> Optional[str]:
        client = self._get_client()
        if client is None:
            return None

        from google.genai import types
        attempts = self.max_retries + 1
        for attempt in range(attempts):
            try:
                response = await client.aio.models.generate_content(
                    model=self.model,
                    contents=prompt,
                    config=types.GenerateContentConfig(
                        temperature=0.2,
                        max_output_tokens=200,
                    ),
                )
                return response.text.strip() if response.text else None
            except Exception as exc:
                logger.warning("[judge] Gemini attempt %d/%d failed: %s", attempt + 1, attempts, exc)
                if attempt < attempts - 1:
                    await asyncio.sleep(0.5 * (attempt + 1))
        return None


# ── Judge ─────────────────────────────────────────────────────────────────────

class AnswerJudge:
    def __init__(self, arbiter: Optional[Arbiter] = None, max_rank: Optional[int] = None):
        self.arbiter = arbiter if arbiter is not None else GeminiArbiter()
        self.max_rank = max_rank or settings.max_judge_rank

    async def judge(
        self,
        answer: str,
        content: GameContent,
        cached: Optional[List[CachedJudgment]] = None,
    ) -> Judgment:
        normalized = normalize_answer(answer)
        if not normalized:
            return Judgment(on_list=False, reason="empty answer")

        exact = find_exact_match(normalized, content.answers)
        if exact is not None:
            logger.info("[judge] Fast path: %r -> rank %d", normalized, exact.rank)
            return Judgment(
                on_list=True, rank=exact.rank, source=JudgeSource.EXACT,
                reason="exact match", matched_to=exact.answer,
            )

        for entry in cached or []:
            if entry.answer == normalized:
                logger.info("[judge] Cache hit: %r -> rank %d", normalized, entry.rank)
                return Judgment(
                    on_list=True, rank=entry.rank, source=JudgeSource.CACHE,
                    reason="previously judged", matched_to=entry.matched_to,
                )

        prompt = build_judge_prompt(content.core_question, answer.strip(), content.answers, self.max_rank)
        raw = await self.arbiter.judge(prompt)
        if raw is None:
            return Judgment(on_list=False, reason="arbiter unavailable")

        verdict = parse_ai_judgment(raw)
        logger.info(
            "[judge] AI verdict for %r: valid=%s rank=%s reason=%r",
            normalized, verdict.valid, verdict.rank, verdict.reason,
        )
        if not verdict.valid or verdict.rank is None:
            return Judgment(on_list=False, reason=verdict.reason or "not on list")

        return Judgment(
            on_list=True,
            rank=clamp_rank(verdict.rank, self.max_rank),
            source=JudgeSource.ARBITER,
            reason=verdict.reason,
            matched_to=verdict.matched_to,
        )
