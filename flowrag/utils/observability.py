"""
Observability Hooks

Callbacks for model calls and searches: LLM extraction latency, embedding
batch latency, and per-search mode/result count/latency. Hooks are
optional; a hook that raises is logged and ignored so telemetry never
breaks indexing or search.
"""

import logging
import time
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Callable, Iterator, Optional

logger = logging.getLogger(__name__)


@dataclass
class LLMCallEvent:
    model: str
    duration: float  # seconds


@dataclass
class EmbeddingEvent:
    model: str
    texts_count: int
    duration: float


@dataclass
class SearchEvent:
    query: str
    mode: str
    results_count: int
    duration: float


@dataclass
class ObservabilityHooks:
    on_llm_call: Optional[Callable[[LLMCallEvent], None]] = None
    on_embedding: Optional[Callable[[EmbeddingEvent], None]] = None
    on_search: Optional[Callable[[SearchEvent], None]] = None


def emit(hook: Optional[Callable], event) -> None:
    """Invoke a hook if set, logging (not raising) hook failures"""
    if hook is None:
        return
    try:
        hook(event)
    except Exception as e:
        logger.debug(f"Observability hook failed: {e}")


class Timer:
    """Elapsed wall time in seconds, read after the timed block exits"""

    def __init__(self):
        self.start = time.perf_counter()
        self.elapsed = 0.0


@contextmanager
def timed() -> Iterator[Timer]:
    timer = Timer()
    try:
        yield timer
    finally:
        timer.elapsed = time.perf_counter() - timer.start
