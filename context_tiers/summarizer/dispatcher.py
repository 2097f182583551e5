"""Compression dispatcher: compress a zone through the backend chain.

For every compressible zone the dispatcher:

1. Skips entries that already carry a summary at the zone's retention or lower.
2. Splits the remaining entries into chunks on message boundaries.
3. Sends each chunk through the backend chain, with a per-attempt timeout and
   retries with backoff for transient failures, moving to the next backend on
   degraded output, configuration or other errors.
4. Falls back to truncation when every backend failed, so each chunk always
   ends with usable text.

Exactly one SummarizationResult is produced per chunk. It is handed to the
telemetry recorder, off the event loop, before being returned. The dispatcher
never raises for backend or tokenizer failures.
"""

from __future__ import annotations

import asyncio
import functools
import logging
import math
import time
from collections import Counter
from typing import TYPE_CHECKING

from context_tiers import constants
from context_tiers.config import ContextSettings, RetryPolicy
from context_tiers.context.tokenizer import TokenizerAdapter
from context_tiers.errors import (
    ConfigurationError,
    DegradedOutputError,
    TransientBackendError,
)
from context_tiers.summarizer._utils import (
    needs_compression,
    split_into_chunks,
    truncate_to_target,
    validate_output,
)
from context_tiers.summarizer.models import (
    TRUNCATION_BACKEND_ID,
    SummarizationRequest,
    SummarizationResult,
    SummarizationStatus,
)
from context_tiers.summarizer.retry import AttemptCounter, call_with_retry
from context_tiers.transcript import attach_summary

if TYPE_CHECKING:
    from collections.abc import Sequence

    from context_tiers.entities import ModelInfo, TranscriptEntry, Zone
    from context_tiers.summarizer.backends import SummarizationBackend
    from context_tiers.telemetry.recorder import TelemetryRecorder

logger = logging.getLogger(__name__)


class CompressionDispatcher:
    """Compresses zones with an ordered chain of summarization backends.

    Args:
        backends: Backends in fallback order; may be empty (truncation only).
        tokenizer: Counts input and output tokens.
        recorder: Receives every result; optional.
        settings: Chunk sizes, concurrency and output thresholds.
        retry_policy: Attempts and backoff per backend.
        model: Model whose tokenizer is used for the counts.

    """

    def __init__(
        self,
        backends: Sequence[SummarizationBackend],
        tokenizer: TokenizerAdapter | None = None,
        *,
        recorder: TelemetryRecorder | None = None,
        settings: ContextSettings | None = None,
        retry_policy: RetryPolicy | None = None,
        model: ModelInfo | None = None,
    ) -> None:
        self.backends = list(backends)
        self.tokenizer = tokenizer or TokenizerAdapter()
        self.recorder = recorder
        self.settings = settings or ContextSettings()
        self.retry_policy = retry_policy or RetryPolicy()
        self.model = model

    async def compress(
        self,
        zone: Zone,
        conversation_id: str,
        *,
        cancel_event: asyncio.Event | None = None,
    ) -> list[SummarizationResult]:
        """Compress one zone and attach the summaries to its entries.

        Args:
            zone: The zone to compress. Recent and Basic zones are left alone.
            conversation_id: Recorded with every result.
            cancel_event: When set, unfinished chunks are abandoned and dropped.

        Returns:
            One result per finished chunk, in original chunk order.

        """
        if not zone.compressible:
            return []

        pending = [e for e in zone.entries if needs_compression(e, zone.retention_rate)]
        if not pending:
            logger.debug("%s zone already compressed, skipping", zone.name.value)
            return []

        chunks = split_into_chunks(
            pending,
            max_chars=self.settings.max_chunk_chars,
            max_entries=self.settings.max_chunk_entries,
        )
        logger.info(
            "Compressing %s zone: %d entries in %d chunks at %.0f%% retention",
            zone.name.value,
            len(pending),
            len(chunks),
            zone.retention_rate * 100,
        )

        requests = [
            SummarizationRequest(
                text=chunk.text,
                retention_rate=zone.retention_rate,
                conversation_id=conversation_id,
                zone=zone.name,
                chunk_index=index,
                total_chunks=len(chunks),
                entry_ids=chunk.entry_ids,
            )
            for index, chunk in enumerate(chunks)
        ]
        results = await self._dispatch(requests, cancel_event or asyncio.Event())

        self._attach(pending, requests, results)
        return results

    async def _dispatch(
        self,
        requests: list[SummarizationRequest],
        cancel_event: asyncio.Event,
    ) -> list[SummarizationResult]:
        """Run chunks with bounded concurrency; collect finished ones in order."""
        semaphore = asyncio.Semaphore(self.settings.max_concurrent_chunks)

        async def run(request: SummarizationRequest) -> SummarizationResult | None:
            async with semaphore:
                if cancel_event.is_set():
                    return None
                return await self.compress_chunk(request)

        tasks = [asyncio.create_task(run(request)) for request in requests]
        waiter = asyncio.create_task(cancel_event.wait())
        try:
            outstanding = set(tasks)
            while outstanding and not cancel_event.is_set():
                done, _ = await asyncio.wait(
                    outstanding | {waiter},
                    return_when=asyncio.FIRST_COMPLETED,
                )
                outstanding -= done
        finally:
            unfinished = [task for task in tasks if not task.done()]
            waiter.cancel()
            for task in unfinished:
                task.cancel()
            await asyncio.gather(waiter, *unfinished, return_exceptions=True)

        results = [t.result() for t in tasks if not t.cancelled()]
        finished = [result for result in results if result is not None]
        if cancel_event.is_set():
            logger.warning(
                "Compression cancelled: %d of %d chunks finished",
                len(finished),
                len(tasks),
            )
        return finished

    async def compress_chunk(self, request: SummarizationRequest) -> SummarizationResult:
        """Run one chunk through the backend chain, then truncation as a last resort."""
        start = time.perf_counter()
        input_tokens = await self._count(request.text)
        counter = AttemptCounter()
        failures: list[Exception] = []

        for backend in self.backends:
            try:
                raw = await call_with_retry(
                    functools.partial(backend.summarize, request),
                    self.retry_policy,
                    timeout=backend.timeout,
                    label=backend.backend_id,
                    counter=counter,
                )
                output = validate_output(raw, request.target_length, self.settings)
                output_tokens = await self._count(output)
                if output_tokens > input_tokens:
                    msg = f"Summary is longer than its input ({output_tokens} > {input_tokens} tokens)"
                    raise DegradedOutputError(msg, reason="expanded_output")
            except Exception as e:  # noqa: BLE001
                logger.warning(
                    "Chunk %d/%d of %s failed on %s: %s",
                    request.chunk_index + 1,
                    request.total_chunks,
                    request.zone.value,
                    backend.backend_id,
                    e,
                )
                failures.append(e)
                continue

            return await self._finish(
                request,
                start=start,
                output=output,
                input_tokens=input_tokens,
                output_tokens=output_tokens,
                attempts=counter.count,
                backend_id=backend.backend_id,
                status="fallback" if failures else "success",
                fallback_reason=_failure_reason(failures[0]) if failures else None,
            )

        return await self._truncate(request, start, input_tokens, counter.count, failures)

    async def _truncate(
        self,
        request: SummarizationRequest,
        start: float,
        input_tokens: int,
        attempts: int,
        failures: list[Exception],
    ) -> SummarizationResult:
        output = truncate_to_target(request.text, request.target_length)
        degraded_only = all(
            isinstance(e, DegradedOutputError | TransientBackendError) for e in failures
        )
        status: SummarizationStatus = "fallback" if degraded_only else "error"
        error_message = None
        if status == "error":
            error_message = "; ".join(str(e) for e in failures)
        return await self._finish(
            request,
            start=start,
            output=output,
            input_tokens=input_tokens,
            output_tokens=await self._count(output),
            attempts=attempts,
            backend_id=TRUNCATION_BACKEND_ID,
            status=status,
            fallback_reason=_failure_reason(failures[0]) if failures else "no_backends",
            error_message=error_message,
        )

    async def _finish(
        self,
        request: SummarizationRequest,
        *,
        start: float,
        output: str,
        input_tokens: int,
        output_tokens: int,
        attempts: int,
        backend_id: str,
        status: SummarizationStatus,
        fallback_reason: str | None = None,
        error_message: str | None = None,
    ) -> SummarizationResult:
        result = SummarizationResult(
            conversation_id=request.conversation_id,
            zone=request.zone,
            chunk_index=request.chunk_index,
            total_chunks=request.total_chunks,
            retention_rate=request.retention_rate,
            entry_ids=request.entry_ids,
            input_text=request.text,
            output_text=output,
            input_tokens=input_tokens,
            output_tokens=output_tokens,
            duration=time.perf_counter() - start,
            attempts=attempts,
            backend_id=backend_id,
            status=status,
            fallback_reason=fallback_reason,
            error_message=error_message,
        )
        if status != "success":
            logger.warning(
                "Chunk %d/%d of %s finished with %s via %s (%s)",
                request.chunk_index + 1,
                request.total_chunks,
                request.zone.value,
                status,
                backend_id,
                fallback_reason,
            )
        if self.recorder is not None:
            await asyncio.to_thread(self.recorder.record, result)
        return result

    async def _count(self, text: str) -> int:
        """Count tokens, estimating from characters when the tokenizer fails."""
        try:
            return await self.tokenizer.count(text, self.model, self.settings)
        except Exception as e:  # noqa: BLE001
            logger.warning("Token counting failed, estimating from characters: %s", e)
            return math.ceil(len(text) / constants.FALLBACK_CHARS_PER_TOKEN)

    @staticmethod
    def _attach(
        entries: Sequence[TranscriptEntry],
        requests: Sequence[SummarizationRequest],
        results: Sequence[SummarizationResult],
    ) -> None:
        """Attach chunk outputs: the chunk's first entry gets the text, the rest fold into it.

        An entry cut into several windows gets the windows' outputs joined. It stays
        provisional if any window errored or did not finish.
        """
        by_id = {entry.id: entry for entry in entries}
        expected = Counter(request.entry_ids[0] for request in requests)
        finished = Counter(result.entry_ids[0] for result in results)
        outputs: dict[str, list[str]] = {}
        retention: dict[str, float | None] = {}
        for result in results:
            final = result.retention_rate if result.status != "error" else None
            for position, entry_id in enumerate(result.entry_ids):
                parts = outputs.setdefault(entry_id, [])
                if position == 0:
                    parts.append(result.output_text)
                    if finished[entry_id] < expected[entry_id]:
                        final = None
                if entry_id not in retention or final is None:
                    retention[entry_id] = final

        for entry_id, parts in outputs.items():
            entry = by_id.get(entry_id)
            if entry is not None:
                attach_summary(entry, "\n".join(p for p in parts if p), retention[entry_id])


def _failure_reason(exc: Exception) -> str:
    if isinstance(exc, DegradedOutputError | TransientBackendError):
        return exc.reason
    if isinstance(exc, ConfigurationError):
        return "configuration_error"
    return "api_error"
