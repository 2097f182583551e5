"""End-to-end context management: fit a transcript into a model's context window.

Two strategies are supported:

- ``trim``: keep the newest messages that fit, drop the rest.
- ``smart_summarize``: partition the transcript into retention zones, compress
  the Archive and MidTerm zones through the backend chain, then drop the oldest
  messages of the resulting view if it still does not fit.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from pydantic import BaseModel

from context_tiers.config import ContextSettings, RetryPolicy
from context_tiers.context.budget import count_entries, resolve_max_tokens, utilization
from context_tiers.context.tokenizer import TokenizerAdapter
from context_tiers.context.zones import partition
from context_tiers.entities import ContextUsage, ZoneName
from context_tiers.summarizer.backends import build_backend_chain
from context_tiers.summarizer.dispatcher import CompressionDispatcher

if TYPE_CHECKING:
    import asyncio
    from collections.abc import Sequence

    from context_tiers.config import EngineConfig
    from context_tiers.entities import ModelInfo, TranscriptEntry, Zone
    from context_tiers.summarizer.backends import SummarizationBackend
    from context_tiers.summarizer.models import SummarizationResult
    from context_tiers.telemetry.recorder import TelemetryRecorder

LOGGER = logging.getLogger(__name__)

# Oldest zones are compressed first
_COMPRESSION_ORDER = (ZoneName.archive, ZoneName.mid_term)


class ManagedMessage(BaseModel):
    """One message of the context sent to the model."""

    role: str
    content: str
    entry_id: str


@dataclass
class ManagedContext:
    """What ``ContextManager.manage`` produced."""

    messages: list[ManagedMessage]
    was_managed: bool
    usage_before: ContextUsage
    usage_after: ContextUsage
    zones: list[Zone] = field(default_factory=list)
    results: list[SummarizationResult] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)


def _view(
    transcript: Sequence[TranscriptEntry],
    counts: Sequence[int],
) -> list[tuple[ManagedMessage, int]]:
    """Chronological messages with their token counts.

    Entries folded into a neighbour's summary (empty summary) are left out.
    """
    view = []
    for entry, tokens in zip(transcript, counts, strict=True):
        text = entry.effective_text
        if not text:
            continue
        view.append((ManagedMessage(role=entry.role, content=text, entry_id=entry.id), tokens))
    return view


def _fit(view: list[tuple[ManagedMessage, int]], budget: int) -> list[tuple[ManagedMessage, int]]:
    """Drop the oldest messages until the rest fits in ``budget`` tokens."""
    total = sum(tokens for _, tokens in view)
    start = 0
    while start < len(view) and total > budget:
        total -= view[start][1]
        start += 1
    return view[start:]


class ContextManager:
    """Keeps a transcript inside a model's context window.

    Args:
        tokenizer: Token counter for the model.
        backends: Summarization backends in fallback order.
        recorder: Receives a log entry per compressed chunk.
        settings: Strategy, ceilings and retention rates.
        retry_policy: Retry behaviour for backend calls.
        warnings: Configuration problems found while building the backends.

    """

    def __init__(
        self,
        tokenizer: TokenizerAdapter | None = None,
        backends: Sequence[SummarizationBackend] = (),
        recorder: TelemetryRecorder | None = None,
        settings: ContextSettings | None = None,
        retry_policy: RetryPolicy | None = None,
        *,
        warnings: Sequence[str] = (),
    ) -> None:
        self.tokenizer = tokenizer or TokenizerAdapter()
        self.backends = list(backends)
        self.recorder = recorder
        self.settings = settings or ContextSettings()
        self.retry_policy = retry_policy or RetryPolicy()
        self.warnings = list(warnings)

    @classmethod
    def from_config(
        cls,
        config: EngineConfig,
        recorder: TelemetryRecorder | None = None,
        tokenizer: TokenizerAdapter | None = None,
    ) -> ContextManager:
        """Build the backend chain from configuration, keeping its warnings."""
        backends, warnings = build_backend_chain(config.backends)
        return cls(
            tokenizer,
            backends,
            recorder,
            config.context,
            config.retry,
            warnings=warnings,
        )

    async def manage(
        self,
        transcript: Sequence[TranscriptEntry],
        model: ModelInfo | None,
        conversation_id: str,
        *,
        system_prompt: str = "",
        cancel_event: asyncio.Event | None = None,
    ) -> ManagedContext:
        """Fit ``transcript`` plus ``system_prompt`` into the model's context.

        Compression attaches summaries to the transcript entries; raw text is
        never modified.

        Args:
            transcript: Entries in chronological order.
            model: Model registry record, if known.
            conversation_id: Recorded with every compression result.
            system_prompt: Reserved before the transcript is budgeted.
            cancel_event: Abandons in-flight compression when set.

        Returns:
            The messages to send and a report of what was done.

        """
        settings = self.settings
        reserved = await self.tokenizer.count(system_prompt, model, settings)
        counts = await count_entries(transcript, self.tokenizer, model, settings)
        max_tokens = resolve_max_tokens(model, settings)
        budget = max(0, max_tokens - reserved)
        usage_before = self._usage(sum(counts) + reserved, max_tokens)
        warnings = list(self.warnings)

        if usage_before.total_tokens <= max_tokens * settings.compress_threshold:
            messages = [message for message, _ in _view(transcript, counts)]
            return ManagedContext(messages, False, usage_before, usage_before, warnings=warnings)

        LOGGER.info(
            "Context over budget for %s: %d/%d tokens (%.1f%%), strategy=%s",
            conversation_id,
            usage_before.total_tokens,
            max_tokens,
            usage_before.utilization_pct,
            settings.strategy,
        )

        zones: list[Zone] = []
        results: list[SummarizationResult] = []
        if settings.strategy == "smart_summarize":
            zones = partition(transcript, max_tokens, token_counts=counts, settings=settings)
            if not self.backends and any(zone.compressible for zone in zones):
                warnings.append(
                    "No summarization backend is configured; older messages are truncated.",
                )
            dispatcher = CompressionDispatcher(
                self.backends,
                self.tokenizer,
                recorder=self.recorder,
                settings=settings,
                retry_policy=self.retry_policy,
                model=model,
            )
            by_name = {zone.name: zone for zone in zones}
            for name in _COMPRESSION_ORDER:
                if cancel_event is not None and cancel_event.is_set():
                    LOGGER.warning("Compression for %s cancelled", conversation_id)
                    break
                if name in by_name:
                    results.extend(
                        await dispatcher.compress(
                            by_name[name],
                            conversation_id,
                            cancel_event=cancel_event,
                        ),
                    )
            counts = await count_entries(transcript, self.tokenizer, model, settings)
            warnings.extend(_result_warnings(results))

        view = _view(transcript, counts)
        fitted = _fit(view, budget)
        if len(fitted) < len(view):
            LOGGER.info("Dropped %d oldest messages to fit the budget", len(view) - len(fitted))
        if view and not fitted:
            warnings.append("The newest message alone exceeds the context window.")

        usage_after = self._usage(sum(tokens for _, tokens in fitted) + reserved, max_tokens)
        LOGGER.info(
            "Managed context for %s: %d -> %d tokens, %d compression results",
            conversation_id,
            usage_before.total_tokens,
            usage_after.total_tokens,
            len(results),
        )
        return ManagedContext(
            messages=[message for message, _ in fitted],
            was_managed=True,
            usage_before=usage_before,
            usage_after=usage_after,
            zones=zones,
            results=results,
            warnings=warnings,
        )

    @staticmethod
    def _usage(total_tokens: int, max_tokens: int) -> ContextUsage:
        return ContextUsage(
            total_tokens=total_tokens,
            max_tokens=max_tokens,
            utilization_pct=utilization(total_tokens, max_tokens),
        )


def _result_warnings(results: Sequence[SummarizationResult]) -> list[str]:
    """Configuration problems are the only failures surfaced to the user."""
    if any(r.fallback_reason == "configuration_error" for r in results):
        return [
            "A summarization backend rejected its credentials; check API keys.",
        ]
    return []
