"""OpenRouter chat-completions backend."""

from __future__ import annotations

import logging
import math
from typing import TYPE_CHECKING

from context_tiers import constants
from context_tiers.errors import DegradedOutputError, SummarizationBackendError
from context_tiers.summarizer._prompts import SYSTEM_PROMPT, format_zone_prompt
from context_tiers.summarizer.backends.base import SummarizationBackend, post_json

if TYPE_CHECKING:
    import httpx

    from context_tiers.summarizer.models import SummarizationRequest

logger = logging.getLogger(__name__)

_MAX_OUTPUT_TOKENS = 4000
_CHARS_PER_TOKEN = 3  # rough, only used to size max_tokens


class OpenRouterBackend(SummarizationBackend):
    """Summarize through OpenRouter's OpenAI-compatible API."""

    kind = "openrouter"

    def __init__(
        self,
        api_key: str,
        model: str = constants.DEFAULT_OPENROUTER_MODEL,
        *,
        base_url: str = constants.DEFAULT_OPENROUTER_BASE_URL,
        timeout: float = constants.DEFAULT_BACKEND_TIMEOUT,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        super().__init__(model, timeout=timeout)
        self._api_key = api_key
        self._base_url = base_url.rstrip("/")
        self._transport = transport

    async def summarize(self, request: SummarizationRequest) -> str:
        """Request a summary from OpenRouter."""
        max_tokens = min(
            math.ceil(request.target_length / _CHARS_PER_TOKEN) + 1,
            _MAX_OUTPUT_TOKENS,
        )
        payload = {
            "model": self.model,
            "messages": [
                {"role": "system", "content": SYSTEM_PROMPT},
                {
                    "role": "user",
                    "content": format_zone_prompt(
                        request.text,
                        retention_rate=request.retention_rate,
                        target_length=request.target_length,
                        zone=request.zone.value,
                        chunk_index=request.chunk_index,
                        total_chunks=request.total_chunks,
                    ),
                },
            ],
            "temperature": 0.3,
            "max_tokens": max_tokens,
            "top_p": 0.9,
        }
        logger.debug(
            "OpenRouter: %d chars -> ~%d chars with %s",
            len(request.text),
            request.target_length,
            self.model,
        )
        data = await post_json(
            f"{self._base_url}/chat/completions",
            payload,
            label="OpenRouter",
            timeout=self.timeout,
            headers={
                "Authorization": f"Bearer {self._api_key}",
                "X-Title": "context-tiers",
            },
            transport=self._transport,
        )

        if data.get("error"):
            error = data["error"]
            message = error.get("message") if isinstance(error, dict) else error
            msg = f"OpenRouter API error: {message}"
            raise SummarizationBackendError(msg)

        choices = data.get("choices") or []
        if not choices:
            msg = "OpenRouter returned no choices"
            raise SummarizationBackendError(msg)

        choice = choices[0]
        if choice.get("finish_reason") == "content_filter":
            msg = "OpenRouter response was blocked by a content filter"
            raise DegradedOutputError(msg, reason="safety_filtered")
        return ((choice.get("message") or {}).get("content") or "").strip()
