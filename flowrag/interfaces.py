"""
Interfaces - Contracts for storage backends and model providers

The pipelines depend only on these protocols, never on a concrete backend.
Every method is a coroutine so network-backed implementations fit.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Protocol, Sequence, runtime_checkable

from flowrag.schema import Schema
from flowrag.types import (
    Entity,
    EvalDocument,
    EvalResult,
    ExtractionResult,
    Relation,
    RerankDocument,
    RerankResult,
    VectorRecord,
    VectorSearchResult,
)


@runtime_checkable
class KVStorage(Protocol):
    """Key-value storage for documents, chunks, hash markers and cache"""

    async def get(self, key: str) -> Optional[Any]: ...

    async def set(self, key: str, value: Any) -> None: ...

    async def delete(self, key: str) -> None: ...

    async def list(self, prefix: Optional[str] = None) -> List[str]: ...

    async def clear(self) -> None: ...


@runtime_checkable
class VectorStorage(Protocol):
    """Vector index; search scores are similarities (higher is better)"""

    async def upsert(self, records: Sequence[VectorRecord]) -> None: ...

    async def search(
        self, vector: Sequence[float], limit: int, filter: Optional[Dict[str, Any]] = None
    ) -> List[VectorSearchResult]: ...

    async def delete(self, ids: Sequence[str]) -> None: ...

    async def count(self) -> int: ...


@runtime_checkable
class GraphStorage(Protocol):
    """Entity/relation store. add_* replace the record with the same id."""

    async def add_entity(self, entity: Entity) -> None: ...

    async def add_relation(self, relation: Relation) -> None: ...

    async def get_entity(self, entity_id: str) -> Optional[Entity]: ...

    async def get_entities(self, filter: Optional[Dict[str, Any]] = None) -> List[Entity]: ...

    async def get_relations(self, entity_id: str, direction: str = "both") -> List[Relation]: ...

    async def traverse(
        self, start_id: str, depth: int, relation_types: Optional[Sequence[str]] = None
    ) -> List[Entity]: ...

    async def find_path(self, from_id: str, to_id: str, max_depth: int = 5) -> List[Relation]: ...

    async def delete_entity(self, entity_id: str) -> None: ...

    async def delete_relation(self, relation_id: str) -> None: ...


@dataclass
class StorageSet:
    """The three stores a FlowRAG instance works against"""
    kv: KVStorage
    vector: VectorStorage
    graph: GraphStorage


@runtime_checkable
class Embedder(Protocol):
    dimensions: int
    model_name: str

    async def embed(self, text: str) -> List[float]: ...

    async def embed_batch(self, texts: Sequence[str]) -> List[List[float]]: ...


@runtime_checkable
class LLMExtractor(Protocol):
    async def extract_entities(
        self, content: str, known_entities: Sequence[str], schema: Schema
    ) -> ExtractionResult: ...


@runtime_checkable
class Reranker(Protocol):
    async def rerank(
        self, query: str, documents: Sequence[RerankDocument], limit: Optional[int] = None
    ) -> List[RerankResult]: ...


@runtime_checkable
class Evaluator(Protocol):
    """Scores retrieved documents for a query, optionally against a reference answer"""

    async def evaluate(
        self, query: str, documents: Sequence[EvalDocument], reference: Optional[str] = None
    ) -> EvalResult: ...


@dataclass
class ParsedDocument:
    content: str
    metadata: Dict[str, Any] = field(default_factory=dict)


@runtime_checkable
class DocumentParser(Protocol):
    """Turns a non-text file into plain text for indexing"""
    supported_extensions: Sequence[str]

    async def parse(self, file_path: str) -> ParsedDocument: ...
