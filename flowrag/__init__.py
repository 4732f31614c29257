"""
FlowRAG - Graph-Augmented Retrieval over Technical Documentation

A local-first Retrieval-Augmented Generation library with:
- Token-window chunking (tiktoken)
- LLM entity/relation extraction into a knowledge graph (Ollama)
- Vector search (nomic-embed-text, LanceDB)
- Naive, local, global and hybrid query modes
- Optional BGE cross-encoder reranking
- Incremental indexing with extraction caching
- Namespaced multi-tenant storage

Author: Kelvin Lomboy
License: MIT
Version: 1.0.0
"""

__version__ = "1.0.0"
__author__ = "Kelvin Lomboy"
__license__ = "MIT"

from flowrag.cancellation import CancelToken
from flowrag.config import IndexingOptions, QueryOptions, load_config, setup_logging
from flowrag.errors import (
    EntityNotFoundError,
    ExtractionParseError,
    FlowRAGError,
    OperationCancelledError,
    UnknownQueryModeError,
)
from flowrag.flowrag import FlowRAG, create_flowrag
from flowrag.indexing.pipeline import IndexingHooks
from flowrag.interfaces import Evaluator, StorageSet
from flowrag.namespace import with_namespace
from flowrag.presets import create_local_flowrag
from flowrag.retry import RetryOptions, retry_async, with_retry
from flowrag.schema import Schema, define_schema
from flowrag.storage.memory import create_memory_storage
from flowrag.types import (
    Entity,
    EvalDocument,
    EvalResult,
    FlowDirection,
    IndexStats,
    QueryMode,
    Relation,
    SearchResult,
)

__all__ = [
    "CancelToken",
    "Entity",
    "EntityNotFoundError",
    "EvalDocument",
    "EvalResult",
    "Evaluator",
    "ExtractionParseError",
    "FlowDirection",
    "FlowRAG",
    "FlowRAGError",
    "IndexStats",
    "IndexingHooks",
    "IndexingOptions",
    "OperationCancelledError",
    "QueryMode",
    "QueryOptions",
    "Relation",
    "RetryOptions",
    "Schema",
    "SearchResult",
    "StorageSet",
    "UnknownQueryModeError",
    "create_flowrag",
    "create_local_flowrag",
    "create_memory_storage",
    "define_schema",
    "load_config",
    "retry_async",
    "setup_logging",
    "with_namespace",
    "with_retry",
]
