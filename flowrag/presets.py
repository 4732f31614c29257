"""
Local preset - JSON KV + LanceDB + SQLite + Ollama, wired from config

Everything stays on the machine: stores under `storage.path`, models served
by a local Ollama. Missing config sections fall back to defaults.
"""

import logging
from pathlib import Path
from typing import Any, Dict, Optional, Sequence

from flowrag.config import IndexingOptions, QueryOptions, load_config
from flowrag.flowrag import FlowRAG
from flowrag.indexing.chunker import Tokenizer
from flowrag.indexing.embedder import OllamaEmbedder
from flowrag.indexing.extractor import OllamaExtractor
from flowrag.indexing.pipeline import IndexingHooks
from flowrag.interfaces import DocumentParser, Evaluator, StorageSet
from flowrag.retrieval.reranker import LocalReranker
from flowrag.retry import RetryOptions
from flowrag.schema import schema_from_config
from flowrag.storage.json_kv import JsonKVStorage
from flowrag.storage.lancedb_vector import LanceDBVectorStorage
from flowrag.storage.sqlite_graph import SQLiteGraphStorage
from flowrag.utils.observability import ObservabilityHooks

logger = logging.getLogger(__name__)

DEFAULT_STORAGE_PATH = "./.flowrag"


def create_local_storage(path: str, dimensions: int) -> StorageSet:
    """JSON KV, LanceDB vectors and SQLite graph under one directory"""
    root = Path(path).expanduser()
    return StorageSet(
        kv=JsonKVStorage(str(root / "kv")),
        vector=LanceDBVectorStorage(str(root / "vectors"), dimensions=dimensions),
        graph=SQLiteGraphStorage(str(root / "graph.db")),
    )


def create_local_flowrag(
    config: Optional[Dict[str, Any]] = None,
    parsers: Optional[Sequence[DocumentParser]] = None,
    hooks: Optional[IndexingHooks] = None,
    observability: Optional[ObservabilityHooks] = None,
    tokenizer: Optional[Tokenizer] = None,
    evaluator: Optional[Evaluator] = None,
) -> FlowRAG:
    """
    Build a fully local FlowRAG instance

    Args:
        config: Config dict (default: load_config())
        parsers: Extra document parsers
        hooks: Indexing hooks
        observability: Timing callbacks
        tokenizer: Chunking tokenizer override
        evaluator: Retrieval quality evaluator for evaluate()

    Returns:
        FlowRAG over local stores; close() it to release the database handles

    Raises:
        ValueError: If the config has no usable schema section
    """
    if config is None:
        config = load_config()

    schema = schema_from_config(config.get("schema", {}))
    retry = RetryOptions.from_dict(config.get("retry"))

    embedder_config = config.get("embedder", {})
    embedder = OllamaEmbedder(
        model=embedder_config.get("model", "nomic-embed-text"),
        dimensions=int(embedder_config.get("dimensions", 768)),
        host=embedder_config.get("host"),
        retry=retry,
    )

    extractor_config = config.get("extractor", {})
    extractor = OllamaExtractor(
        model=extractor_config.get("model", "llama3.1:8b"),
        temperature=float(extractor_config.get("temperature", 0.0)),
        max_tokens=int(extractor_config.get("max_tokens", 2048)),
        host=extractor_config.get("host"),
        retry=retry,
    )

    reranker = None
    reranker_config = config.get("reranker", {})
    if reranker_config.get("enabled", False):
        reranker = LocalReranker(
            model_name=reranker_config.get("model", "BAAI/bge-reranker-large"),
            device=reranker_config.get("device"),
        )

    storage_path = config.get("storage", {}).get("path", DEFAULT_STORAGE_PATH)
    storage = create_local_storage(storage_path, embedder.dimensions)
    logger.info(f"Local FlowRAG storage at {Path(storage_path).expanduser()}")

    return FlowRAG(
        schema=schema,
        storage=storage,
        embedder=embedder,
        extractor=extractor,
        reranker=reranker,
        evaluator=evaluator,
        parsers=parsers,
        hooks=hooks,
        observability=observability,
        indexing_options=IndexingOptions.from_dict(config.get("indexing")),
        query_options=QueryOptions.from_dict(config.get("querying")),
        namespace=config.get("namespace"),
        tokenizer=tokenizer,
    )
