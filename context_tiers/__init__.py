"""Context-window management and tiered summarization for long conversations."""

__version__ = "0.1.0"
