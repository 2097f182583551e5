"""Session insights: readable diagnostics derived from telemetry statistics."""

from __future__ import annotations

from typing import TYPE_CHECKING

from context_tiers import constants
from context_tiers.config import ContextSettings

if TYPE_CHECKING:
    from context_tiers.telemetry.models import SessionStatistics
    from context_tiers.telemetry.recorder import TelemetryRecorder

NO_RUNS_MESSAGE = "No summarization runs yet"


def session_insights(
    stats: SessionStatistics,
    settings: ContextSettings | None = None,
) -> list[str]:
    """Apply threshold rules to ``stats``.

    Deterministic and side-effect free. Diagnostics come first, followed by
    notes on how the retention tiers are configured.

    Args:
        stats: Aggregated statistics for one conversation.
        settings: Used only for the explanatory notes.

    Returns:
        Human-readable statements; just ``NO_RUNS_MESSAGE`` when nothing ran.

    """
    if stats.total_operations == 0:
        return [NO_RUNS_MESSAGE]

    settings = settings or ContextSettings()
    insights: list[str] = []

    success_rate = stats.success_rate
    if success_rate < constants.INSIGHT_MIN_SUCCESS_RATE:
        insights.append(
            f"Low success rate ({success_rate:.1f}%). Check API keys and backend health.",
        )
    elif success_rate == 100:  # noqa: PLR2004
        insights.append("Perfect success rate (100%).")

    fallback_rate = stats.fallback_rate
    if fallback_rate > constants.INSIGHT_MAX_FALLBACK_RATE:
        insights.append(
            f"High fallback rate ({fallback_rate:.1f}%). Safety filters might be triggering.",
        )

    if stats.average_duration > constants.INSIGHT_SLOW_DURATION:
        insights.append(
            f"Average duration is high ({stats.average_duration:.1f}s). Reduce chunk sizes.",
        )
    elif stats.average_duration < constants.INSIGHT_FAST_DURATION:
        insights.append(f"Great performance: average duration {stats.average_duration:.1f}s.")

    ratio = stats.compression_ratio
    if ratio > constants.INSIGHT_MAX_COMPRESSION:
        insights.append(
            f"Compression is light ({ratio:.1f}% of input kept). "
            "Consider lowering the retention rates.",
        )
    elif ratio < constants.INSIGHT_MIN_COMPRESSION:
        insights.append(
            f"Compression is heavy ({ratio:.1f}% of input kept). Important details might be lost.",
        )

    if not insights:
        insights.append("Everything looks healthy.")

    levels = settings.compression_levels
    insights.extend(
        [
            "How summarization works:",
            "- Summarization runs only when the context limit is exceeded.",
            f"- Recent zone ({settings.recent_zone_tokens:,} tokens) stays uncompressed.",
            f"- Mid-term zone: {levels.mid_term:.0%} retention (medium compression).",
            f"- Archive zone: {levels.archive:.0%} retention (heavy compression).",
        ],
    )
    return insights


class SessionInsights:
    """Insights for conversations tracked by a TelemetryRecorder."""

    def __init__(self, recorder: TelemetryRecorder, settings: ContextSettings | None = None) -> None:
        self.recorder = recorder
        self.settings = settings or ContextSettings()

    def insights(self, conversation_id: str) -> list[str]:
        """Diagnostics for one conversation."""
        return session_insights(self.recorder.get_stats(conversation_id), self.settings)
