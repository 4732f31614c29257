"""
In-memory storage - KV, vector and graph stores held in process memory

Useful for tests, notebooks and small corpora. Records are copied on the
way in and out, so callers never share mutable state with the store.
"""

import copy
from collections import deque
from typing import Any, Dict, List, Optional, Sequence

import numpy as np

from flowrag.interfaces import StorageSet
from flowrag.types import Entity, Relation, VectorRecord, VectorSearchResult


def matches_entity_filter(entity: Entity, filter: Optional[Dict[str, Any]]) -> bool:
    """Entity filter: {"type": str | [str], "fields": {name: value}}"""
    if not filter:
        return True
    wanted_type = filter.get("type")
    if wanted_type is not None:
        types = [wanted_type] if isinstance(wanted_type, str) else list(wanted_type)
        if entity.type not in types:
            return False
    for name, value in (filter.get("fields") or {}).items():
        if str(entity.fields.get(name)) != str(value):
            return False
    return True


class MemoryKVStorage:
    def __init__(self):
        self._data: Dict[str, Any] = {}

    async def get(self, key: str) -> Optional[Any]:
        value = self._data.get(key)
        return copy.deepcopy(value) if value is not None else None

    async def set(self, key: str, value: Any) -> None:
        self._data[key] = copy.deepcopy(value)

    async def delete(self, key: str) -> None:
        self._data.pop(key, None)

    async def list(self, prefix: Optional[str] = None) -> List[str]:
        return sorted(k for k in self._data if not prefix or k.startswith(prefix))

    async def clear(self) -> None:
        self._data.clear()


class MemoryVectorStorage:
    """Brute-force cosine similarity search"""

    def __init__(self):
        self._records: Dict[str, VectorRecord] = {}

    async def upsert(self, records: Sequence[VectorRecord]) -> None:
        for record in records:
            self._records[record.id] = copy.deepcopy(record)

    async def search(
        self, vector: Sequence[float], limit: int, filter: Optional[Dict[str, Any]] = None
    ) -> List[VectorSearchResult]:
        candidates = [
            r for r in self._records.values()
            if not filter or all(r.metadata.get(k) == v for k, v in filter.items())
        ]
        if not candidates or limit <= 0:
            return []

        query = np.asarray(vector, dtype=np.float64)
        matrix = np.asarray([r.vector for r in candidates], dtype=np.float64)
        norms = np.linalg.norm(matrix, axis=1) * np.linalg.norm(query)
        dots = matrix @ query
        scores = np.divide(dots, norms, out=np.zeros_like(dots), where=norms != 0)

        order = np.argsort(-scores, kind="stable")[:limit]
        return [
            VectorSearchResult(
                id=candidates[i].id,
                score=float(scores[i]),
                metadata=copy.deepcopy(candidates[i].metadata),
            )
            for i in order
        ]

    async def delete(self, ids: Sequence[str]) -> None:
        for record_id in ids:
            self._records.pop(record_id, None)

    async def count(self) -> int:
        return len(self._records)


class MemoryGraphStorage:
    def __init__(self):
        self._entities: Dict[str, Entity] = {}
        self._relations: Dict[str, Relation] = {}

    async def add_entity(self, entity: Entity) -> None:
        self._entities[entity.id] = copy.deepcopy(entity)

    async def add_relation(self, relation: Relation) -> None:
        self._relations[relation.id] = copy.deepcopy(relation)

    async def get_entity(self, entity_id: str) -> Optional[Entity]:
        entity = self._entities.get(entity_id)
        return copy.deepcopy(entity) if entity else None

    async def get_entities(self, filter: Optional[Dict[str, Any]] = None) -> List[Entity]:
        return [copy.deepcopy(e) for e in self._entities.values() if matches_entity_filter(e, filter)]

    def _outgoing(self, entity_id: str) -> List[Relation]:
        return [r for r in self._relations.values() if r.source_id == entity_id]

    async def get_relations(self, entity_id: str, direction: str = "both") -> List[Relation]:
        out = []
        for relation in self._relations.values():
            if direction in ("out", "both") and relation.source_id == entity_id:
                out.append(copy.deepcopy(relation))
            elif direction in ("in", "both") and relation.target_id == entity_id:
                out.append(copy.deepcopy(relation))
        return out

    async def traverse(
        self, start_id: str, depth: int, relation_types: Optional[Sequence[str]] = None
    ) -> List[Entity]:
        visited = set()
        result: List[Entity] = []

        def visit(entity_id: str, level: int) -> None:
            if entity_id in visited or level > depth:
                return
            visited.add(entity_id)
            entity = self._entities.get(entity_id)
            if entity is not None:
                result.append(copy.deepcopy(entity))
            for relation in self._outgoing(entity_id):
                if relation_types and relation.type not in relation_types:
                    continue
                visit(relation.target_id, level + 1)

        visit(start_id, 0)
        return result

    async def find_path(self, from_id: str, to_id: str, max_depth: int = 5) -> List[Relation]:
        if from_id == to_id:
            return []
        queue = deque([(from_id, [])])
        visited = {from_id}
        while queue:
            entity_id, path = queue.popleft()
            if len(path) >= max_depth:
                continue
            for relation in self._outgoing(entity_id):
                if relation.target_id in visited:
                    continue
                next_path = path + [relation]
                if relation.target_id == to_id:
                    return [copy.deepcopy(r) for r in next_path]
                visited.add(relation.target_id)
                queue.append((relation.target_id, next_path))
        return []

    async def delete_entity(self, entity_id: str) -> None:
        self._entities.pop(entity_id, None)
        for rid in [r.id for r in self._relations.values() if entity_id in (r.source_id, r.target_id)]:
            del self._relations[rid]

    async def delete_relation(self, relation_id: str) -> None:
        self._relations.pop(relation_id, None)


def create_memory_storage() -> StorageSet:
    """In-memory KV, vector and graph stores"""
    return StorageSet(kv=MemoryKVStorage(), vector=MemoryVectorStorage(), graph=MemoryGraphStorage())
