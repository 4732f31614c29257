"""
Shared fixtures: offline fakes for the tokenizer, embedder and extractor
"""

import asyncio
import re
import zlib
from typing import Dict, List, Optional, Sequence, Tuple

import pytest

from flowrag.flowrag import FlowRAG
from flowrag.schema import define_schema
from flowrag.storage.memory import create_memory_storage
from flowrag.types import ExtractedEntity, ExtractedRelation, ExtractionResult


class CharTokenizer:
    """One token per character"""

    def encode(self, text: str) -> List[int]:
        return [ord(c) for c in text]

    def decode(self, tokens: Sequence[int]) -> str:
        return "".join(chr(t) for t in tokens)


class FakeEmbedder:
    """Deterministic bag-of-words vectors"""

    model_name = "fake-embedder"

    def __init__(self, dimensions: int = 1024):
        self.dimensions = dimensions
        self.calls = 0

    def _vector(self, text: str) -> List[float]:
        vector = [0.0] * self.dimensions
        for word in re.findall(r"[a-z0-9_]+", text.lower()):
            vector[zlib.crc32(word.encode("utf-8")) % self.dimensions] += 1.0
        return vector

    async def embed(self, text: str) -> List[float]:
        self.calls += 1
        return self._vector(text)

    async def embed_batch(self, texts: Sequence[str]) -> List[List[float]]:
        self.calls += 1
        return [self._vector(t) for t in texts]


class FakeExtractor:
    """
    Finds known entity names in the text and emits the relations whose
    endpoints both appear.
    """

    model_name = "fake-extractor"

    def __init__(
        self,
        entities: Optional[Dict[str, str]] = None,
        relations: Optional[List[Tuple[str, str, str]]] = None,
        keywords: Optional[Dict[str, List[str]]] = None,
        delay: float = 0.0,
    ):
        self.entities = entities or {}
        self.relations = relations or []
        self.keywords = keywords or {}
        self.delay = delay
        self.calls: List[str] = []
        self.known_snapshots: List[List[str]] = []

    async def extract_entities(self, content, known_entities, schema) -> ExtractionResult:
        self.calls.append(content)
        self.known_snapshots.append(list(known_entities))
        if self.delay:
            await asyncio.sleep(self.delay)
        found = [name for name in self.entities if name in content]
        return ExtractionResult(
            entities=[
                ExtractedEntity(name=name, type=self.entities[name], description=f"{name} component")
                for name in found
            ],
            relations=[
                ExtractedRelation(
                    source=source,
                    target=target,
                    type=rel_type,
                    description=f"{source} {rel_type} {target}",
                    keywords=self.keywords.get(rel_type, []),
                )
                for source, rel_type, target in self.relations
                if source in found and target in found
            ],
        )


@pytest.fixture
def tokenizer():
    return CharTokenizer()


@pytest.fixture
def embedder():
    return FakeEmbedder()


@pytest.fixture
def schema():
    return define_schema(
        entity_types=["SERVICE", "DATABASE", "TOPIC"],
        relation_types=["WRITES", "READS", "PRODUCES"],
    )


@pytest.fixture
def extractor():
    return FakeExtractor(
        entities={"ServiceA": "SERVICE", "DatabaseB": "DATABASE"},
        relations=[("ServiceA", "WRITES", "DatabaseB")],
        keywords={"WRITES": ["persistence"]},
    )


@pytest.fixture
def storage():
    return create_memory_storage()


@pytest.fixture
def rag(schema, storage, embedder, extractor, tokenizer):
    instance = FlowRAG(schema, storage, embedder, extractor, tokenizer=tokenizer)
    yield instance
    instance.close()
