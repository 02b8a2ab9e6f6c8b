"""
Game Generator — asks Gemini for a Hi-Lo content package and hands the raw
text to the content gate.

The generator never writes content itself: everything goes through
GameMaster.ingest_content, so a rejected or missing payload leaves the game
in `generating` with `generation_error` set and the operator can retry.
Runs as a FastAPI background task after POST /api/games.
"""
import logging
from typing import Optional

from config import settings
from errors import ContentValidationError, LifecycleError
from models.game import Game, GenerationSource

logger = logging.getLogger(__name__)


def build_generation_prompt(source: GenerationSource, answer_count: int) -> str:
    context = "\n".join(
        line for line in (
            f"Title: {source.title}" if source.title else "",
            f"Scripture: {source.scripture_reference}" if source.scripture_reference else "",
            f'"{source.scripture_text}"' if source.scripture_text else "",
            f"Reflection: {source.reflection}" if source.reflection else "",
            f"Discussion Question: {source.discussion_question}" if source.discussion_question else "",
        ) if line
    )
    return f"""You are creating content for a trivia game called "Hi-Lo" for youth ministry students (grades 6-12).

## SOURCE DEVOTIONAL
{context}

## YOUR TASK
Generate a complete Hi-Lo game package:

1. scripture_verses: the most impactful 2-4 verses of the passage, with the reference.
2. historical_facts (exactly 3): accurate facts about the time period, culture or setting,
   each with a short source context (e.g. "1st century Palestine").
3. fun_facts (exactly 3): surprising, entertaining facts from the same era.
4. core_question: one question answerable in ONE WORD, grounded in the passage, framed to
   elicit positive, uplifting or neutral answers. Rank 1 must never be a negative word.
5. answers (exactly {answer_count}): single-word answers ranked from 1 (what most teenagers
   would say) to {answer_count} (what almost no one would think of), as if 100,000 teenagers
   were surveyed. No duplicates. No profanity, sexual, occult or violent words. Mix nouns,
   verbs, adjectives and adverbs. Every rank from 1 to {answer_count} used exactly once.

## OUTPUT FORMAT
Return ONLY a JSON object (no other text):
{{
  "scripture_verses": "...",
  "historical_facts": [{{"fact": "...", "source": "..."}}, ...],
  "fun_facts": [{{"fact": "..."}}, ...],
  "core_question": "What one word ...?",
  "answers": [{{"answer": "word1", "rank": 1}}, ...]
}}"""


# Lazy-init Gemini client (same pattern as the judge's arbiter)
_genai_client = None
_genai_unavailable = False


async def _call_gemini(prompt: str) -> Optional[str]:
    """Return raw text from a single Gemini generate_content call, or None on failure."""
    global _genai_client, _genai_unavailable

    if _genai_unavailable:
        return None

    if _genai_client is None:
        try:
            from google import genai
        except ImportError:
            _genai_unavailable = True
            logger.warning("[generator] google-genai not installed — generation disabled")
            return None

        if not settings.gemini_api_key:
            _genai_unavailable = True
            logger.warning("[generator] GEMINI_API_KEY not set — generation disabled")
            return None

        _genai_client = genai.Client(api_key=settings.gemini_api_key)

    try:
        from google.genai import types
        response = await _genai_client.aio.models.generate_content(
            model=settings.generator_model,
            contents=prompt,
            config=types.GenerateContentConfig(
                temperature=0.7,
                max_output_tokens=16000,
                response_mime_type="application/json",
            ),
        )
        return response.text.strip() if response.text else None
    except Exception as exc:
        logger.error("[generator] Gemini call failed: %s", exc)
        return None


class GameGenerator:
    def __init__(self, master, call_model=None):
        self.master = master
        self._call_model = call_model or _call_gemini

    async def generate(self, game_id: str) -> Optional[Game]:
        """
        Generate and ingest content for a game in `generating`.
        Returns the ready game, or None when generation failed (reason stored on the game).
        """
        game = await self.master.get_game(game_id)
        source = game.source or GenerationSource(title=game.title)
        prompt = build_generation_prompt(source, settings.answer_count)

        logger.info("[%s] Requesting game content from %s", game_id, settings.generator_model)
        raw = await self._call_model(prompt)
        if not raw:
            await self.master.store.set_generation_error(game_id, "Generator unavailable")
            return None

        try:
            return await self.master.ingest_content(game_id, raw)
        except ContentValidationError:
            # Reason already recorded on the game by ingest_content
            return None
        except LifecycleError as exc:
            logger.warning("[%s] Generation result discarded: %s", game_id, exc)
            return None
