"""Summarization backends and the factory that builds the fallback chain."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from context_tiers import constants
from context_tiers.errors import ConfigurationError
from context_tiers.summarizer.backends.base import SummarizationBackend
from context_tiers.summarizer.backends.koboldcpp import KoboldCppBackend
from context_tiers.summarizer.backends.llm import LLMBackend
from context_tiers.summarizer.backends.openrouter import OpenRouterBackend

if TYPE_CHECKING:
    from collections.abc import Sequence

    from context_tiers.config import BackendSettings

LOGGER = logging.getLogger(__name__)

__all__ = [
    "KoboldCppBackend",
    "LLMBackend",
    "OpenRouterBackend",
    "SummarizationBackend",
    "build_backend",
    "build_backend_chain",
]


def build_backend(settings: BackendSettings) -> SummarizationBackend:
    """Instantiate one backend from its settings.

    Raises:
        ConfigurationError: Missing API key or model.

    """
    if settings.kind == "openrouter":
        return OpenRouterBackend(
            api_key=settings.resolve_api_key(required=True),
            model=settings.model or constants.DEFAULT_OPENROUTER_MODEL,
            base_url=settings.base_url or constants.DEFAULT_OPENROUTER_BASE_URL,
            timeout=settings.timeout,
        )
    if settings.kind == "koboldcpp":
        return KoboldCppBackend(
            base_url=settings.base_url or constants.DEFAULT_KOBOLDCPP_URL,
            model=settings.model or "local",
            timeout=settings.timeout,
        )
    if not settings.model:
        msg = "The 'llm' summarization backend needs a model name."
        raise ConfigurationError(msg)
    return LLMBackend(
        model=settings.model,
        base_url=settings.base_url,
        api_key=settings.resolve_api_key(required=False),
        timeout=settings.timeout,
    )


def build_backend_chain(
    settings: Sequence[BackendSettings],
) -> tuple[list[SummarizationBackend], list[str]]:
    """Build the ordered backend chain, skipping misconfigured entries.

    Returns:
        The usable backends in configured order, and one warning per skipped entry.

    """
    chain: list[SummarizationBackend] = []
    warnings: list[str] = []
    for backend_settings in settings:
        try:
            chain.append(build_backend(backend_settings))
        except ConfigurationError as e:
            LOGGER.warning("Skipping %s backend: %s", backend_settings.kind, e)
            warnings.append(str(e))
    return chain, warnings
