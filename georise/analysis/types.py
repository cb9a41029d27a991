"""Core types and DTOs for the analysis engine."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum


class MentionType(str, Enum):
    """How a mention is backed by the answer."""

    CITATION = "citation"  # Mentioned and the answer carries source URLs
    NAME_ONLY = "name_only"  # Mentioned without sources


@dataclass
class MentionCheck:
    """Result of checking one answer for a brand mention."""

    mentioned: bool = False
    position: int | None = None  # 1-4 bucket, None when not mentioned
    context: str | None = None
    citations: list[str] = field(default_factory=list)
    full_response: str | None = None

    @property
    def mention_type(self) -> str | None:
        if not self.mentioned:
            return None
        return MentionType.CITATION.value if self.citations else MentionType.NAME_ONLY.value

    @property
    def url(self) -> str | None:
        return self.citations[0] if self.citations else None


@dataclass
class QueryOutcome:
    """One query of a run after checking (or after a caught failure)."""

    query: str
    index: int
    check: MentionCheck = field(default_factory=MentionCheck)
    error: str | None = None

    @property
    def mentioned(self) -> bool:
        return self.check.mentioned

    @property
    def position(self) -> int | None:
        return self.check.position

    @property
    def citations(self) -> list[str]:
        return self.check.citations


@dataclass
class RunStats:
    """Aggregates stored on a completed run."""

    mentions: int = 0
    total: int = 0
    mention_rate: float = 0.0  # percent, 0-100
    avg_position: float | None = None
    top_position_count: int = 0
    citation_count: int = 0
