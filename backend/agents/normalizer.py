"""Canonical form for answers, applied to both the seed list and player input."""
import re

_WHITESPACE = re.compile(r"\s+")


def normalize_answer(raw: str) -> str:
    """Trim, lowercase and collapse internal whitespace. Idempotent."""
    if not raw:
        return ""
    return _WHITESPACE.sub(" ", raw.strip().lower())
