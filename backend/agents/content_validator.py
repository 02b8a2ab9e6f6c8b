"""
Content Validator — the only gate between generator output and playable game data.

Accepts the raw text a content generator produced (optionally wrapped in a
markdown code fence), parses it, and checks the structural rules a Hi-Lo game
depends on. The first failed rule raises ContentValidationError; nothing is
returned partially and nothing is persisted from here.
"""
import json
import logging
import re
from typing import Any, Dict, List, Optional

from config import settings
from errors import ContentValidationError
from models.game import GameContent, RankedAnswer, HistoricalFact, FunFact
from agents.normalizer import normalize_answer

logger = logging.getLogger(__name__)

REQUIRED_FACTS = 3

_FENCE = re.compile(r"^```[a-zA-Z]*\s*\n?([\s\S]*?)\n?```$")


def strip_code_fence(raw: str) -> str:
    """Remove a surrounding ```json ... ``` (or bare ```) wrapper if present."""
    text = (raw or "").strip()
    match = _FENCE.match(text)
    if match:
        return match.group(1).strip()
    return text


def _rank_value(rank: Any) -> Optional[int]:
    # bool is an int subclass; JSON true is never a rank
    if isinstance(rank, bool):
        return None
    if isinstance(rank, int):
        return rank
    if isinstance(rank, float) and rank.is_integer():
        return int(rank)
    return None


def validate_game_answers(answers: Any, expected_count: Optional[int] = None) -> None:
    """
    Check the seed answer list: exact count, ranks a permutation of 1..N,
    non-empty answers distinct after normalization.
    Raises ContentValidationError with the first problem found.
    """
    expected = expected_count or settings.answer_count

    if not isinstance(answers, list):
        raise ContentValidationError("answers must be a list")
    if len(answers) != expected:
        raise ContentValidationError(f"Expected {expected} answers, got {len(answers)}")

    seen_ranks = set()
    seen_answers = set()
    for i, entry in enumerate(answers):
        if isinstance(entry, RankedAnswer):
            entry = entry.model_dump()
        if not isinstance(entry, dict):
            raise ContentValidationError(f"Answer at index {i} is not an object")

        answer = entry.get("answer")
        if not isinstance(answer, str) or not answer.strip():
            raise ContentValidationError(f"Answer at index {i} is empty")

        rank = _rank_value(entry.get("rank"))
        if rank is None or rank < 1 or rank > expected:
            raise ContentValidationError(
                f"Invalid rank {entry.get('rank')!r} at index {i} (must be 1-{expected})"
            )
        if rank in seen_ranks:
            raise ContentValidationError(f"Duplicate rank: {rank}")
        seen_ranks.add(rank)

        key = normalize_answer(answer)
        if key in seen_answers:
            raise ContentValidationError(f"Answer {answer.strip()!r} is a duplicate")
        seen_answers.add(key)


def _check_facts(data: Dict[str, Any], field: str, needs_source: bool) -> None:
    facts = data.get(field)
    if not isinstance(facts, list) or len(facts) != REQUIRED_FACTS:
        raise ContentValidationError(f"{field} must have exactly {REQUIRED_FACTS} entries")
    for i, fact in enumerate(facts):
        if not isinstance(fact, dict) or not isinstance(fact.get("fact"), str) or not fact["fact"].strip():
            raise ContentValidationError(f"{field}[{i}] is missing its fact text")
        if needs_source and not isinstance(fact.get("source"), str):
            raise ContentValidationError(f"{field}[{i}] is missing its source")


def parse_game_content(raw: str, expected_count: Optional[int] = None) -> GameContent:
    """Parse and validate generator output into GameContent."""
    text = strip_code_fence(raw)
    try:
        data = json.loads(text)
    except (json.JSONDecodeError, ValueError) as exc:
        logger.warning("[content] Could not parse generator output: %s", exc)
        raise ContentValidationError("Failed to parse JSON from AI response") from exc

    if not isinstance(data, dict):
        raise ContentValidationError("Failed to parse content: expected a JSON object")

    core_question = data.get("core_question")
    if not isinstance(core_question, str) or not core_question.strip():
        raise ContentValidationError("Missing core_question")

    scripture = data.get("scripture_verses")
    if not isinstance(scripture, str) or not scripture.strip():
        raise ContentValidationError("Missing or invalid scripture_verses")

    if "answers" not in data or not isinstance(data["answers"], list):
        raise ContentValidationError("Missing answers array")

    _check_facts(data, "historical_facts", needs_source=True)
    _check_facts(data, "fun_facts", needs_source=False)

    validate_game_answers(data["answers"], expected_count)

    answers: List[RankedAnswer] = sorted(
        (
            RankedAnswer(answer=a["answer"].strip(), rank=_rank_value(a["rank"]))
            for a in data["answers"]
        ),
        key=lambda a: a.rank,
    )
    return GameContent(
        core_question=core_question.strip(),
        scripture_verses=scripture.strip(),
        historical_facts=[
            HistoricalFact(fact=f["fact"].strip(), source=f["source"].strip())
            for f in data["historical_facts"]
        ],
        fun_facts=[FunFact(fact=f["fact"].strip()) for f in data["fun_facts"]],
        answers=answers,
    )
