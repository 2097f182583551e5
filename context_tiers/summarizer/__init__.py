"""Zone compression through a chain of summarization backends.

Example:
    from context_tiers.summarizer import CompressionDispatcher, build_backend_chain

    backends, warnings = build_backend_chain(config.backends)
    dispatcher = CompressionDispatcher(backends, recorder=recorder)

    results = await dispatcher.compress(zone, conversation_id="abc")
    for result in results:
        print(result.status, result.backend_id, f"{result.compression_ratio:.1%}")

"""

from context_tiers.summarizer.backends import SummarizationBackend, build_backend_chain
from context_tiers.summarizer.dispatcher import CompressionDispatcher
from context_tiers.summarizer.models import SummarizationRequest, SummarizationResult

__all__ = [
    "CompressionDispatcher",
    "SummarizationBackend",
    "SummarizationRequest",
    "SummarizationResult",
    "build_backend_chain",
]
