"""Compression telemetry: recorder, storage, statistics and insights."""

from context_tiers.telemetry.insights import SessionInsights, session_insights
from context_tiers.telemetry.models import DebugLogEntry, SessionStatistics
from context_tiers.telemetry.recorder import TelemetryRecorder
from context_tiers.telemetry.store import (
    InMemoryTelemetryStore,
    JsonFileTelemetryStore,
    TelemetryStore,
)

__all__ = [
    "DebugLogEntry",
    "InMemoryTelemetryStore",
    "JsonFileTelemetryStore",
    "SessionInsights",
    "SessionStatistics",
    "TelemetryRecorder",
    "TelemetryStore",
    "session_insights",
]
