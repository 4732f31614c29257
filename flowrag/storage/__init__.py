"""
FlowRAG Storage Backends

In-memory stores for tests and small corpora; JSON files, LanceDB and
SQLite for a persistent local setup.
"""

from flowrag.storage.json_kv import JsonKVStorage
from flowrag.storage.lancedb_vector import LanceDBVectorStorage
from flowrag.storage.memory import (
    MemoryGraphStorage,
    MemoryKVStorage,
    MemoryVectorStorage,
    create_memory_storage,
)
from flowrag.storage.sqlite_graph import SQLiteGraphStorage

__all__ = [
    "JsonKVStorage",
    "LanceDBVectorStorage",
    "MemoryGraphStorage",
    "MemoryKVStorage",
    "MemoryVectorStorage",
    "SQLiteGraphStorage",
    "create_memory_storage",
]
