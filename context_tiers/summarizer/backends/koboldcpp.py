"""KoboldCpp generate-API backend for local models."""

from __future__ import annotations

import math
from typing import TYPE_CHECKING

from context_tiers import constants
from context_tiers.errors import SummarizationBackendError
from context_tiers.summarizer._prompts import KOBOLD_PROMPT, SYSTEM_PROMPT, format_zone_prompt
from context_tiers.summarizer.backends.base import SummarizationBackend, post_json

if TYPE_CHECKING:
    import httpx

    from context_tiers.summarizer.models import SummarizationRequest

_MAX_CONTEXT_LENGTH = 4096
_MIN_OUTPUT_TOKENS = 64
_MAX_OUTPUT_TOKENS = 1024


class KoboldCppBackend(SummarizationBackend):
    """Summarize with a KoboldCpp server (``/api/v1/generate``)."""

    kind = "koboldcpp"

    def __init__(
        self,
        base_url: str = constants.DEFAULT_KOBOLDCPP_URL,
        model: str = "local",
        *,
        timeout: float = constants.DEFAULT_BACKEND_TIMEOUT,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        super().__init__(model, timeout=timeout)
        self._base_url = base_url.rstrip("/")
        self._transport = transport

    async def summarize(self, request: SummarizationRequest) -> str:
        """Request a completion from KoboldCpp."""
        prompt = KOBOLD_PROMPT.format(
            system_prompt=SYSTEM_PROMPT,
            user_prompt=format_zone_prompt(
                request.text,
                retention_rate=request.retention_rate,
                target_length=request.target_length,
                zone=request.zone.value,
                chunk_index=request.chunk_index,
                total_chunks=request.total_chunks,
            ),
        )
        max_length = min(
            max(math.ceil(request.target_length / 3), _MIN_OUTPUT_TOKENS),
            _MAX_OUTPUT_TOKENS,
        )
        data = await post_json(
            f"{self._base_url}/api/v1/generate",
            {
                "prompt": prompt,
                "max_context_length": _MAX_CONTEXT_LENGTH,
                "max_length": max_length,
                "rep_pen": 1.1,
                "temperature": 0.3,
                "top_p": 0.9,
                "top_k": 40,
                "stop_sequence": ["[INST]"],
            },
            label="KoboldCpp",
            timeout=self.timeout,
            transport=self._transport,
        )
        try:
            return str(data["results"][0]["text"]).strip()
        except (KeyError, IndexError, TypeError) as e:
            msg = f"KoboldCpp returned an unexpected response: {data!r}"
            raise SummarizationBackendError(msg) from e
