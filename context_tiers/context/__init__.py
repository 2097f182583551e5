"""Token budgeting, zone partitioning and end-to-end context management."""

from context_tiers.context.budget import compute_usage
from context_tiers.context.manager import ContextManager, ManagedContext, ManagedMessage
from context_tiers.context.tokenizer import TokenizerAdapter
from context_tiers.context.zones import partition

__all__ = [
    "ContextManager",
    "ManagedContext",
    "ManagedMessage",
    "TokenizerAdapter",
    "compute_usage",
    "partition",
]
