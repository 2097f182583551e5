"""Read-only debug HTTP API over a TelemetryRecorder."""

from __future__ import annotations

import asyncio
import contextlib
import logging
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

from fastapi import FastAPI
from pydantic import BaseModel

from context_tiers.config import ContextSettings
from context_tiers.telemetry.insights import SessionInsights
from context_tiers.telemetry.models import DebugLogEntry, SessionStatistics

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from context_tiers.telemetry.recorder import TelemetryRecorder

logger = logging.getLogger(__name__)


# --- Pydantic Models ---


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    entries: int


class LogsResponse(BaseModel):
    """Buffered log entries, oldest first."""

    conversation_id: str | None
    logs: list[DebugLogEntry]


class StatsResponse(BaseModel):
    """Session statistics plus the derived rates (percentages)."""

    statistics: SessionStatistics
    success_rate: float
    fallback_rate: float
    compression_ratio: float


class InsightsResponse(BaseModel):
    """Diagnostics for one conversation."""

    conversation_id: str
    insights: list[str]


class ClearResponse(BaseModel):
    """Result of a clear request."""

    status: str
    conversation_id: str | None


# --- App Factory ---


def create_app(
    recorder: TelemetryRecorder,
    settings: ContextSettings | None = None,
) -> FastAPI:
    """Create the FastAPI application.

    Startup runs a purge sweep and starts the periodic cleanup loop; shutdown
    stops it.

    Args:
        recorder: The recorder to expose.
        settings: Context settings, used for the notes in insights.

    Returns:
        Configured FastAPI application.

    """
    insights_engine = SessionInsights(recorder, settings or ContextSettings())

    @asynccontextmanager
    async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
        """Manage the telemetry cleanup loop."""
        recorder.purge_expired()
        stop_event = asyncio.Event()
        cleanup_task = asyncio.create_task(recorder.run_cleanup_loop(stop_event=stop_event))
        logger.info(
            "Telemetry cleanup every %.0fs (retention %g days)",
            recorder.settings.cleanup_interval,
            recorder.settings.retention_days,
        )

        yield

        stop_event.set()
        cleanup_task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await cleanup_task

    app = FastAPI(
        title="context-tiers debug API",
        description="Compression telemetry, statistics and insights",
        version="1.0.0",
        lifespan=lifespan,
    )

    @app.get("/health", response_model=HealthResponse)
    async def health_check() -> HealthResponse:
        """Health check endpoint."""
        return HealthResponse(status="healthy", entries=len(recorder.get_logs()))

    @app.get("/logs", response_model=LogsResponse)
    async def get_logs(conversation_id: str | None = None) -> LogsResponse:
        """List buffered log entries, optionally for one conversation."""
        return LogsResponse(
            conversation_id=conversation_id,
            logs=list(recorder.get_logs(conversation_id)),
        )

    @app.get("/stats/{conversation_id}", response_model=StatsResponse)
    async def get_stats(conversation_id: str) -> StatsResponse:
        """Aggregate statistics for one conversation."""
        stats = recorder.get_stats(conversation_id)
        return StatsResponse(
            statistics=stats,
            success_rate=stats.success_rate,
            fallback_rate=stats.fallback_rate,
            compression_ratio=stats.compression_ratio,
        )

    @app.get("/insights/{conversation_id}", response_model=InsightsResponse)
    async def get_insights(conversation_id: str) -> InsightsResponse:
        """Diagnostics for one conversation."""
        return InsightsResponse(
            conversation_id=conversation_id,
            insights=insights_engine.insights(conversation_id),
        )

    @app.delete("/logs", response_model=ClearResponse)
    async def clear_logs(conversation_id: str | None = None) -> ClearResponse:
        """Clear log entries for one conversation, or all of them."""
        recorder.clear(conversation_id)
        return ClearResponse(status="cleared", conversation_id=conversation_id)

    return app
