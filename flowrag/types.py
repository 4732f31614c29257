"""
Core Types - Data structures shared by the indexing and query pipelines

Documents are split into chunks; chunks are extracted into entities and
relations (graph) and embedded into vector records. All records convert
to and from plain dictionaries so any KV backend can persist them.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Union


@dataclass(frozen=True)
class EnumValue:
    """A field value constrained to one of a schema field's enum values"""
    value: str

    def __str__(self) -> str:
        return self.value


FieldValue = Union[str, EnumValue]


def fields_to_dict(fields: Dict[str, FieldValue]) -> Dict[str, Any]:
    """Serialize typed field values, tagging enum values"""
    out: Dict[str, Any] = {}
    for key, value in fields.items():
        if isinstance(value, EnumValue):
            out[key] = {"enum": value.value}
        else:
            out[key] = value
    return out


def fields_from_dict(data: Optional[Dict[str, Any]]) -> Dict[str, FieldValue]:
    """Inverse of fields_to_dict"""
    out: Dict[str, FieldValue] = {}
    for key, value in (data or {}).items():
        if isinstance(value, dict) and "enum" in value:
            out[key] = EnumValue(str(value["enum"]))
        else:
            out[key] = str(value)
    return out


class QueryMode(str, Enum):
    """Retrieval strategies supported by the query pipeline"""
    NAIVE = "naive"
    LOCAL = "local"
    GLOBAL = "global"
    HYBRID = "hybrid"


class FlowDirection(str, Enum):
    UPSTREAM = "upstream"
    DOWNSTREAM = "downstream"


@dataclass
class Document:
    """A scanned source document"""
    id: str
    content: str
    metadata: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "content": self.content, "metadata": dict(self.metadata)}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Document":
        return cls(id=data["id"], content=data["content"], metadata=dict(data.get("metadata") or {}))


@dataclass
class Chunk:
    """A token-bounded slice of a document"""
    id: str
    document_id: str
    content: str
    index: int
    start_token: int
    end_token: int

    @property
    def token_count(self) -> int:
        return self.end_token - self.start_token

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "documentId": self.document_id,
            "content": self.content,
            "index": self.index,
            "startToken": self.start_token,
            "endToken": self.end_token,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Chunk":
        return cls(
            id=data["id"],
            document_id=data["documentId"],
            content=data["content"],
            index=data["index"],
            start_token=data["startToken"],
            end_token=data["endToken"],
        )


@dataclass
class Entity:
    """
    Knowledge graph node.

    The id is the entity name, so the same name extracted from several
    chunks collapses into one record with a growing source_chunk_ids list.
    """
    id: str
    name: str
    type: str
    description: str = ""
    source_chunk_ids: List[str] = field(default_factory=list)
    fields: Dict[str, FieldValue] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "type": self.type,
            "description": self.description,
            "sourceChunkIds": list(self.source_chunk_ids),
            "fields": fields_to_dict(self.fields),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Entity":
        return cls(
            id=data["id"],
            name=data["name"],
            type=data["type"],
            description=data.get("description", ""),
            source_chunk_ids=list(data.get("sourceChunkIds") or []),
            fields=fields_from_dict(data.get("fields")),
        )


def relation_id(source_id: str, relation_type: str, target_id: str) -> str:
    return f"{source_id}-{relation_type}-{target_id}"


@dataclass
class Relation:
    """Knowledge graph edge; id derived from (source_id, type, target_id)"""
    id: str
    source_id: str
    target_id: str
    type: str
    description: str = ""
    keywords: List[str] = field(default_factory=list)
    source_chunk_ids: List[str] = field(default_factory=list)
    fields: Dict[str, FieldValue] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "sourceId": self.source_id,
            "targetId": self.target_id,
            "type": self.type,
            "description": self.description,
            "keywords": list(self.keywords),
            "sourceChunkIds": list(self.source_chunk_ids),
            "fields": fields_to_dict(self.fields),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Relation":
        return cls(
            id=data["id"],
            source_id=data["sourceId"],
            target_id=data["targetId"],
            type=data["type"],
            description=data.get("description", ""),
            keywords=list(data.get("keywords") or []),
            source_chunk_ids=list(data.get("sourceChunkIds") or []),
            fields=fields_from_dict(data.get("fields")),
        )


@dataclass
class VectorRecord:
    id: str
    vector: List[float]
    metadata: Dict[str, Any] = field(default_factory=dict)


@dataclass
class VectorSearchResult:
    """Raw vector store hit; score is a similarity (higher is better)"""
    id: str
    score: float
    metadata: Dict[str, Any] = field(default_factory=dict)


@dataclass
class ExtractedEntity:
    name: str
    type: str
    description: str = ""
    fields: Dict[str, Any] = field(default_factory=dict)


@dataclass
class ExtractedRelation:
    source: str
    target: str
    type: str
    description: str = ""
    keywords: List[str] = field(default_factory=list)
    fields: Dict[str, Any] = field(default_factory=dict)


@dataclass
class ExtractionResult:
    """LLM output for one chunk; cached by content digest"""
    entities: List[ExtractedEntity] = field(default_factory=list)
    relations: List[ExtractedRelation] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "entities": [
                {"name": e.name, "type": e.type, "description": e.description, "fields": dict(e.fields)}
                for e in self.entities
            ],
            "relations": [
                {
                    "source": r.source,
                    "target": r.target,
                    "type": r.type,
                    "description": r.description,
                    "keywords": list(r.keywords),
                    "fields": dict(r.fields),
                }
                for r in self.relations
            ],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ExtractionResult":
        entities = [
            ExtractedEntity(
                name=str(e["name"]),
                type=str(e.get("type") or "Other"),
                description=str(e.get("description") or ""),
                fields=dict(e.get("fields") or {}),
            )
            for e in data.get("entities") or []
            if isinstance(e, dict) and e.get("name")
        ]
        relations = [
            ExtractedRelation(
                source=str(r["source"]),
                target=str(r["target"]),
                type=str(r.get("type") or "Other"),
                description=str(r.get("description") or ""),
                keywords=[str(k) for k in r.get("keywords") or []],
                fields=dict(r.get("fields") or {}),
            )
            for r in data.get("relations") or []
            if isinstance(r, dict) and r.get("source") and r.get("target")
        ]
        return cls(entities=entities, relations=relations)


@dataclass
class ExtractionContext:
    """Passed to the post-extraction hook"""
    chunk_id: str
    document_id: str
    content: str


@dataclass
class Source:
    document_id: str
    chunk_index: int
    file_path: Optional[str] = None


@dataclass
class SearchResult:
    """A ranked chunk returned from search"""
    id: str
    content: str
    score: float
    source: str = "vector"  # "vector" or "graph"
    sources: List[Source] = field(default_factory=list)
    metadata: Dict[str, Any] = field(default_factory=dict)


@dataclass
class RerankDocument:
    id: str
    content: str
    score: float


@dataclass
class RerankResult:
    id: str
    score: float
    index: int


@dataclass
class EvalDocument:
    """A search result as handed to an evaluator"""
    content: str
    score: float


@dataclass
class EvalResult:
    """Named quality scores, e.g. {"relevance": 0.8}"""
    scores: Dict[str, float] = field(default_factory=dict)


@dataclass
class IndexStats:
    documents: int
    chunks: int
    entities: int
    relations: int
    vectors: int

    def to_dict(self) -> Dict[str, int]:
        return {
            "documents": self.documents,
            "chunks": self.chunks,
            "entities": self.entities,
            "relations": self.relations,
            "vectors": self.vectors,
        }
