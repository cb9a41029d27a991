"""Brand mention detection in free-text LLM answers.

Detection is pluggable through ``BrandMatcher``. ``SubstringMatcher`` keeps the
plain lower-cased substring semantics and is the default everywhere; the
stricter ``WordBoundaryMatcher`` refuses matches inside longer words
("Acme" in "Acmenet").
"""

from __future__ import annotations

import re
from typing import Protocol

from georise.analysis.types import MentionCheck

CONTEXT_RADIUS = 50

# (exclusive upper offset, bucket)
_POSITION_BUCKETS: tuple[tuple[int, int], ...] = ((100, 1), (300, 2), (600, 3))


class BrandMatcher(Protocol):
    def find(self, text: str, brand: str) -> int | None:
        """Return the character offset of the first match, or None."""
        ...


class SubstringMatcher:
    """Case-insensitive substring match."""

    def find(self, text: str, brand: str) -> int | None:
        if not brand:
            return None
        idx = text.lower().find(brand.lower())
        return idx if idx >= 0 else None


class WordBoundaryMatcher:
    """Case-insensitive match that must not start or end inside a word."""

    def find(self, text: str, brand: str) -> int | None:
        if not brand.strip():
            return None
        pattern = rf"(?<!\w){re.escape(brand)}(?!\w)"
        m = re.search(pattern, text, flags=re.IGNORECASE)
        return m.start() if m else None


DEFAULT_MATCHER: BrandMatcher = SubstringMatcher()


def position_bucket(offset: int) -> int:
    """Map the offset of the first mention to a 1-4 prominence bucket."""
    for limit, bucket in _POSITION_BUCKETS:
        if offset < limit:
            return bucket
    return 4


def extract_context(text: str, offset: int, brand: str) -> str:
    """Snippet of up to 50 chars on both sides of the match, clamped to the text."""
    start = max(0, offset - CONTEXT_RADIUS)
    end = min(len(text), offset + len(brand) + CONTEXT_RADIUS)
    return text[start:end]


def check_mention(
    text: str,
    brand: str,
    citations: list[str] | None = None,
    matcher: BrandMatcher | None = None,
) -> MentionCheck:
    """Check one answer for the brand.

    When the brand is absent, position and context are None and citations
    are dropped, so only mentioned results carry sources.
    """
    matcher = matcher or DEFAULT_MATCHER
    offset = matcher.find(text or "", brand)
    if offset is None:
        return MentionCheck(mentioned=False, full_response=text)

    return MentionCheck(
        mentioned=True,
        position=position_bucket(offset),
        context=extract_context(text, offset, brand),
        citations=list(citations or []),
        full_response=text,
    )
