"""Summarization backend interface and shared HTTP error mapping."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, NoReturn

import httpx

from context_tiers.errors import (
    ConfigurationError,
    SummarizationBackendError,
    TransientBackendError,
)

if TYPE_CHECKING:
    from context_tiers.summarizer.models import SummarizationRequest

logger = logging.getLogger(__name__)

_AUTH_ERROR_STATUS_CODES = {401, 403}
_RATE_LIMIT_STATUS_CODE = 429
_SERVER_ERROR_MIN = 500


class SummarizationBackend(ABC):
    """A service that turns a chunk of text into a shorter summary.

    Implementations only talk to their service. Output validation, retries,
    fallback and telemetry are the dispatcher's job.
    """

    kind: str = ""

    def __init__(self, model: str, *, timeout: float) -> None:
        self.model = model
        self.timeout = timeout

    @property
    def backend_id(self) -> str:
        """Identifier recorded in telemetry, e.g. ``openrouter/google/gemini-flash-1.5``."""
        return f"{self.kind}/{self.model}"

    @abstractmethod
    async def summarize(self, request: SummarizationRequest) -> str:
        """Return the raw summary text for ``request``.

        Raises:
            ConfigurationError: Authentication failed or the backend is misconfigured.
            TransientBackendError: Timeout, rate limit, 5xx or connection failure.
            DegradedOutputError: The service refused or filtered the output.
            SummarizationBackendError: Any other failure.

        """

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.backend_id!r})"


def raise_for_status_code(status_code: int, detail: str, label: str) -> NoReturn:
    """Map an HTTP error status to the error taxonomy and raise it."""
    msg = f"{label} returned HTTP {status_code}: {detail}"
    if status_code in _AUTH_ERROR_STATUS_CODES:
        raise ConfigurationError(msg)
    if status_code == _RATE_LIMIT_STATUS_CODE:
        raise TransientBackendError(msg, reason="rate_limited")
    if status_code >= _SERVER_ERROR_MIN:
        raise TransientBackendError(msg, reason="server_error")
    raise SummarizationBackendError(msg)


def error_detail(response: httpx.Response) -> str:
    """Best-effort error message from a JSON error body."""
    try:
        data = response.json()
    except ValueError:
        return response.text or response.reason_phrase
    if isinstance(data, dict):
        error = data.get("error")
        if isinstance(error, dict) and error.get("message"):
            return str(error["message"])
        if isinstance(error, str):
            return error
    return response.text or response.reason_phrase


async def post_json(
    url: str,
    payload: dict,
    *,
    label: str,
    timeout: float,
    headers: dict[str, str] | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> dict:
    """POST ``payload`` and return the decoded JSON body.

    Raises:
        TransientBackendError: Network failures, timeouts, 429 and 5xx.
        ConfigurationError: 401 and 403.
        SummarizationBackendError: Other 4xx or a body that is not a JSON object.

    """
    try:
        async with httpx.AsyncClient(timeout=timeout, transport=transport) as client:
            response = await client.post(url, json=payload, headers=headers)
    except httpx.TimeoutException as e:
        msg = f"{label} request timed out: {e}"
        raise TransientBackendError(msg, reason="timeout") from e
    except httpx.TransportError as e:
        msg = f"Could not reach {label}: {e}"
        raise TransientBackendError(msg, reason="connection_error") from e

    if response.status_code != 200:  # noqa: PLR2004
        logger.debug("%s error body: %s", label, response.text)
        raise_for_status_code(response.status_code, error_detail(response), label)

    try:
        data = response.json()
    except ValueError as e:
        msg = f"{label} returned invalid JSON"
        raise SummarizationBackendError(msg) from e
    if not isinstance(data, dict):
        msg = f"{label} returned an unexpected response: {data!r}"
        raise SummarizationBackendError(msg)
    return data
