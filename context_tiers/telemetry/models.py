"""Telemetry data models: persisted debug log entries and derived session statistics."""

from __future__ import annotations

import uuid
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from pydantic import BaseModel, ConfigDict, Field

from context_tiers.summarizer.models import SummarizationStatus  # noqa: TC001

if TYPE_CHECKING:
    from collections.abc import Iterable

    from context_tiers.summarizer.models import SummarizationResult


def preview(text: str, limit: int) -> str:
    """Bounded excerpt of ``text``; an ellipsis marks a cut."""
    if len(text) <= limit:
        return text
    return text[:limit].rstrip() + "..."


class DebugLogEntry(BaseModel):
    """Persisted projection of one SummarizationResult."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC))
    conversation_id: str
    zone: str
    input_tokens: int = Field(..., ge=0)
    output_tokens: int = Field(..., ge=0)
    retention_rate: float
    backend_id: str
    status: SummarizationStatus
    duration: float = Field(..., ge=0.0, description="Seconds")
    chunk_index: int = 0
    total_chunks: int = 1
    attempts: int = 0
    fallback_reason: str | None = None
    error_message: str | None = None
    input_preview: str = ""
    output_preview: str = ""

    @classmethod
    def from_result(cls, result: SummarizationResult, preview_chars: int) -> DebugLogEntry:
        """Project a result, cutting the texts down to previews."""
        return cls(
            timestamp=result.created_at,
            conversation_id=result.conversation_id,
            zone=result.zone.value,
            input_tokens=result.input_tokens,
            output_tokens=result.output_tokens,
            retention_rate=result.retention_rate,
            backend_id=result.backend_id,
            status=result.status,
            duration=result.duration,
            chunk_index=result.chunk_index,
            total_chunks=result.total_chunks,
            attempts=result.attempts,
            fallback_reason=result.fallback_reason,
            error_message=result.error_message,
            input_preview=preview(result.input_text, preview_chars),
            output_preview=preview(result.output_text, preview_chars),
        )


class SessionStatistics(BaseModel):
    """Aggregates over one conversation's log entries. Derived, never stored."""

    conversation_id: str
    total_operations: int = 0
    success_count: int = 0
    fallback_count: int = 0
    error_count: int = 0
    total_input_tokens: int = 0
    total_output_tokens: int = 0
    average_duration: float = 0.0
    last_operation: datetime | None = None

    @property
    def success_rate(self) -> float:
        """Percentage of operations with status ``success``."""
        if not self.total_operations:
            return 0.0
        return self.success_count / self.total_operations * 100

    @property
    def fallback_rate(self) -> float:
        """Percentage of operations with status ``fallback``."""
        if not self.total_operations:
            return 0.0
        return self.fallback_count / self.total_operations * 100

    @property
    def compression_ratio(self) -> float:
        """Output tokens as a percentage of input tokens."""
        if not self.total_input_tokens:
            return 0.0
        return self.total_output_tokens / self.total_input_tokens * 100

    @classmethod
    def from_entries(
        cls,
        conversation_id: str,
        entries: Iterable[DebugLogEntry],
    ) -> SessionStatistics:
        """Compute statistics over the entries belonging to ``conversation_id``."""
        logs = [e for e in entries if e.conversation_id == conversation_id]
        if not logs:
            return cls(conversation_id=conversation_id)
        return cls(
            conversation_id=conversation_id,
            total_operations=len(logs),
            success_count=sum(1 for e in logs if e.status == "success"),
            fallback_count=sum(1 for e in logs if e.status == "fallback"),
            error_count=sum(1 for e in logs if e.status == "error"),
            total_input_tokens=sum(e.input_tokens for e in logs),
            total_output_tokens=sum(e.output_tokens for e in logs),
            average_duration=sum(e.duration for e in logs) / len(logs),
            last_operation=max(e.timestamp for e in logs),
        )
