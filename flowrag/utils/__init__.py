"""FlowRAG utilities"""

from flowrag.utils.observability import (
    EmbeddingEvent,
    LLMCallEvent,
    ObservabilityHooks,
    SearchEvent,
)

__all__ = [
    "EmbeddingEvent",
    "LLMCallEvent",
    "ObservabilityHooks",
    "SearchEvent",
]
