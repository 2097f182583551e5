"""OpenAI-compatible LLM backend (OpenAI, Ollama, llama.cpp, vLLM, ...) via pydantic-ai."""

from __future__ import annotations

import logging
import math
from typing import TYPE_CHECKING

from pydantic import BaseModel

from context_tiers import constants
from context_tiers.errors import SummarizationBackendError, TransientBackendError
from context_tiers.summarizer._prompts import SYSTEM_PROMPT, format_zone_prompt
from context_tiers.summarizer.backends.base import SummarizationBackend, raise_for_status_code

if TYPE_CHECKING:
    from context_tiers.summarizer.models import SummarizationRequest

logger = logging.getLogger(__name__)

_MIN_OUTPUT_TOKENS = 64
_MAX_OUTPUT_TOKENS = 4000


class SummaryOutput(BaseModel):
    """Structured output for summary generation."""

    summary: str


class LLMBackend(SummarizationBackend):
    """Summarize with any OpenAI-compatible chat endpoint."""

    kind = "llm"

    def __init__(
        self,
        model: str,
        *,
        base_url: str | None = None,
        api_key: str | None = None,
        timeout: float = constants.DEFAULT_BACKEND_TIMEOUT,
    ) -> None:
        super().__init__(model, timeout=timeout)
        self.base_url = base_url or constants.DEFAULT_LLM_BASE_URL
        # Local servers accept any key, but the OpenAI client insists on one
        self.api_key = api_key or "dummy"

    async def summarize(self, request: SummarizationRequest) -> str:
        """Run the summary agent for one chunk.

        Raises:
            ConfigurationError: The endpoint rejected the credentials.
            TransientBackendError: Timeouts, rate limits, 5xx and connection errors.
            SummarizationBackendError: Anything else the model call raised.

        """
        from pydantic_ai import Agent  # noqa: PLC0415
        from pydantic_ai.exceptions import ModelHTTPError  # noqa: PLC0415
        from pydantic_ai.models.openai import OpenAIChatModel  # noqa: PLC0415
        from pydantic_ai.providers.openai import OpenAIProvider  # noqa: PLC0415
        from pydantic_ai.settings import ModelSettings  # noqa: PLC0415

        max_tokens = min(
            max(math.ceil(request.target_length / 3), _MIN_OUTPUT_TOKENS),
            _MAX_OUTPUT_TOKENS,
        )
        provider = OpenAIProvider(api_key=self.api_key, base_url=self.base_url)
        model = OpenAIChatModel(
            model_name=self.model,
            provider=provider,
            settings=ModelSettings(
                temperature=0.3,
                max_tokens=max_tokens,
                timeout=self.timeout,
            ),
        )
        agent = Agent(
            model=model,
            system_prompt=SYSTEM_PROMPT,
            output_type=SummaryOutput,
            retries=2,
        )
        prompt = format_zone_prompt(
            request.text,
            retention_rate=request.retention_rate,
            target_length=request.target_length,
            zone=request.zone.value,
            chunk_index=request.chunk_index,
            total_chunks=request.total_chunks,
        )

        try:
            result = await agent.run(prompt)
        except ModelHTTPError as e:
            raise_for_status_code(e.status_code, str(e.body or e.message), "LLM")
        except Exception as e:
            reason = _transient_reason(e)
            if reason is not None:
                msg = f"LLM call failed ({reason}): {e}"
                raise TransientBackendError(msg, reason=reason) from e
            msg = f"Summarization failed: {e}"
            raise SummarizationBackendError(msg) from e
        return result.output.summary.strip()


def _transient_reason(exc: BaseException) -> str | None:
    """Classify network failures anywhere in the exception chain."""
    import openai  # noqa: PLC0415

    current: BaseException | None = exc
    while current is not None:
        if isinstance(current, openai.APITimeoutError | TimeoutError):
            return "timeout"
        if isinstance(current, openai.APIConnectionError):
            return "connection_error"
        current = current.__cause__
    return None
