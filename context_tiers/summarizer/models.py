"""Data models for zone compression."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from context_tiers.entities import ZoneName  # noqa: TC001

SummarizationStatus = Literal["success", "fallback", "error"]

TRUNCATION_BACKEND_ID = "truncation"


@dataclass(frozen=True)
class SummarizationRequest:
    """One chunk of zone text on its way to a backend. Built per dispatch call."""

    text: str
    retention_rate: float
    conversation_id: str
    zone: ZoneName
    chunk_index: int
    total_chunks: int
    entry_ids: tuple[str, ...] = field(default=())

    @property
    def target_length(self) -> int:
        """Target output length in characters."""
        return max(1, math.ceil(len(self.text) * self.retention_rate))


class SummarizationResult(BaseModel):
    """Outcome of compressing one chunk through the whole backend chain.

    Exactly one result exists per chunk, however many backends were tried.
    """

    model_config = ConfigDict(frozen=True)

    conversation_id: str
    zone: ZoneName
    chunk_index: int = Field(..., ge=0)
    total_chunks: int = Field(..., ge=1)
    retention_rate: float = Field(..., gt=0.0, le=1.0)
    entry_ids: tuple[str, ...] = ()

    input_text: str = Field(..., repr=False)
    output_text: str = Field(..., repr=False)
    input_tokens: int = Field(..., ge=0)
    output_tokens: int = Field(..., ge=0)
    duration: float = Field(..., ge=0.0, description="Wall time for the chunk, in seconds")
    attempts: int = Field(0, ge=0, description="Backend calls made for this chunk")

    backend_id: str
    status: SummarizationStatus
    fallback_reason: str | None = None
    error_message: str | None = None
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))

    @property
    def compression_ratio(self) -> float:
        """Output tokens as a fraction of input tokens."""
        if self.input_tokens == 0:
            return 0.0
        return self.output_tokens / self.input_tokens
