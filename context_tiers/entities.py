"""Domain entities for context management.

The transcript itself is owned by an external store. These models describe what
the engine reads from it, and the only thing the engine writes back: a
``summary`` attached next to the original text.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Literal

from pydantic import BaseModel, Field


class TranscriptEntry(BaseModel):
    """One conversational turn."""

    id: str = Field(..., description="Stable identifier for this turn")
    role: Literal["user", "assistant", "event"]
    content: str = Field(..., description="Raw text, never modified by the engine")
    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC))

    summary: str | None = Field(
        None,
        description="Compressed text attached by the engine (empty when folded into a neighbour)",
    )
    summary_retention: float | None = Field(
        None,
        ge=0.0,
        le=1.0,
        description="Retention rate the summary was computed at (None if not final)",
    )

    @property
    def effective_text(self) -> str:
        """Text that counts against the budget: the summary if present, else the raw text."""
        return self.summary if self.summary is not None else self.content

    @property
    def is_compressed(self) -> bool:
        """Whether a final summary has been attached."""
        return self.summary is not None and self.summary_retention is not None


class ModelInfo(BaseModel):
    """What the model registry knows about a chat model."""

    id: str
    provider: str = "openai"
    context_length_tokens: int | None = Field(None, gt=0)


class ContextUsage(BaseModel):
    """Token usage of a transcript against a model's context window."""

    total_tokens: int = Field(..., ge=0)
    max_tokens: int = Field(..., gt=0)
    utilization_pct: float = Field(..., ge=0.0, le=100.0)

    @property
    def exceeds(self) -> bool:
        """Whether the transcript no longer fits."""
        return self.total_tokens > self.max_tokens


class ZoneName(str, Enum):
    """Retention tiers, most recent first."""

    recent = "recent"
    mid_term = "midTerm"
    archive = "archive"
    basic = "basic"


@dataclass
class Zone:
    """A retention tier and the transcript entries assigned to it.

    Entries are references to the transcript's own objects (chronological
    order), so summaries attached through a zone are visible in the transcript.
    """

    name: ZoneName
    token_ceiling: int
    retention_rate: float
    entries: list[TranscriptEntry] = field(default_factory=list)
    token_count: int = 0

    @property
    def compressible(self) -> bool:
        """Only MidTerm and Archive are ever compressed."""
        return self.name in (ZoneName.mid_term, ZoneName.archive) and self.retention_rate < 1.0
