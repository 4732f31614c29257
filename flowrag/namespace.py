"""
Namespace - Multi-tenant isolation over a shared storage set

Every key and id going into the wrapped stores is prefixed with
"{namespace}:" and every one coming back out is stripped. Vector records
also carry an "__ns" metadata tag that is injected as a search filter,
so isolation holds on vector backends without prefix filtering.
"""

from dataclasses import replace
from typing import Any, Dict, List, Optional, Sequence

from flowrag.interfaces import GraphStorage, KVStorage, StorageSet, VectorStorage
from flowrag.types import Entity, Relation, VectorRecord, VectorSearchResult

NS_METADATA_KEY = "__ns"


class _Prefixer:
    def __init__(self, namespace: str):
        if not namespace:
            raise ValueError("Namespace must be a non-empty string")
        self.namespace = namespace
        self.prefix = f"{namespace}:"

    def add(self, value: str) -> str:
        return self.prefix + value

    def strip(self, value: str) -> str:
        return value[len(self.prefix):] if value.startswith(self.prefix) else value

    def owns(self, value: str) -> bool:
        return value.startswith(self.prefix)


class NamespacedKVStorage:
    def __init__(self, inner: KVStorage, namespace: str):
        self.inner = inner
        self._ns = _Prefixer(namespace)

    async def get(self, key: str) -> Optional[Any]:
        return await self.inner.get(self._ns.add(key))

    async def set(self, key: str, value: Any) -> None:
        await self.inner.set(self._ns.add(key), value)

    async def delete(self, key: str) -> None:
        await self.inner.delete(self._ns.add(key))

    async def list(self, prefix: Optional[str] = None) -> List[str]:
        keys = await self.inner.list(self._ns.add(prefix or ""))
        return [self._ns.strip(k) for k in keys]

    async def clear(self) -> None:
        # Only this namespace's keys; the shared store is left alone
        for key in await self.inner.list(self._ns.prefix):
            await self.inner.delete(key)


class NamespacedVectorStorage:
    def __init__(self, inner: VectorStorage, namespace: str):
        self.inner = inner
        self._ns = _Prefixer(namespace)

    async def upsert(self, records: Sequence[VectorRecord]) -> None:
        await self.inner.upsert([
            VectorRecord(
                id=self._ns.add(r.id),
                vector=r.vector,
                metadata={**r.metadata, NS_METADATA_KEY: self._ns.namespace},
            )
            for r in records
        ])

    async def search(
        self, vector: Sequence[float], limit: int, filter: Optional[Dict[str, Any]] = None
    ) -> List[VectorSearchResult]:
        scoped = {**(filter or {}), NS_METADATA_KEY: self._ns.namespace}
        results = await self.inner.search(vector, limit, scoped)
        return [
            VectorSearchResult(
                id=self._ns.strip(r.id),
                score=r.score,
                metadata={k: v for k, v in r.metadata.items() if k != NS_METADATA_KEY},
            )
            for r in results
            if self._ns.owns(r.id)
        ]

    async def delete(self, ids: Sequence[str]) -> None:
        await self.inner.delete([self._ns.add(i) for i in ids])

    async def count(self) -> int:
        return await self.inner.count()


class NamespacedGraphStorage:
    def __init__(self, inner: GraphStorage, namespace: str):
        self.inner = inner
        self._ns = _Prefixer(namespace)

    def _wrap_entity(self, entity: Entity) -> Entity:
        return replace(
            entity,
            id=self._ns.add(entity.id),
            source_chunk_ids=[self._ns.add(c) for c in entity.source_chunk_ids],
        )

    def _unwrap_entity(self, entity: Entity) -> Entity:
        return replace(
            entity,
            id=self._ns.strip(entity.id),
            source_chunk_ids=[self._ns.strip(c) for c in entity.source_chunk_ids],
        )

    def _wrap_relation(self, relation: Relation) -> Relation:
        return replace(
            relation,
            id=self._ns.add(relation.id),
            source_id=self._ns.add(relation.source_id),
            target_id=self._ns.add(relation.target_id),
            source_chunk_ids=[self._ns.add(c) for c in relation.source_chunk_ids],
        )

    def _unwrap_relation(self, relation: Relation) -> Relation:
        return replace(
            relation,
            id=self._ns.strip(relation.id),
            source_id=self._ns.strip(relation.source_id),
            target_id=self._ns.strip(relation.target_id),
            source_chunk_ids=[self._ns.strip(c) for c in relation.source_chunk_ids],
        )

    async def add_entity(self, entity: Entity) -> None:
        await self.inner.add_entity(self._wrap_entity(entity))

    async def add_relation(self, relation: Relation) -> None:
        await self.inner.add_relation(self._wrap_relation(relation))

    async def get_entity(self, entity_id: str) -> Optional[Entity]:
        entity = await self.inner.get_entity(self._ns.add(entity_id))
        return self._unwrap_entity(entity) if entity else None

    async def get_entities(self, filter: Optional[Dict[str, Any]] = None) -> List[Entity]:
        entities = await self.inner.get_entities(filter)
        return [self._unwrap_entity(e) for e in entities if self._ns.owns(e.id)]

    async def get_relations(self, entity_id: str, direction: str = "both") -> List[Relation]:
        relations = await self.inner.get_relations(self._ns.add(entity_id), direction)
        return [self._unwrap_relation(r) for r in relations]

    async def traverse(
        self, start_id: str, depth: int, relation_types: Optional[Sequence[str]] = None
    ) -> List[Entity]:
        entities = await self.inner.traverse(self._ns.add(start_id), depth, relation_types)
        return [self._unwrap_entity(e) for e in entities]

    async def find_path(self, from_id: str, to_id: str, max_depth: int = 5) -> List[Relation]:
        path = await self.inner.find_path(self._ns.add(from_id), self._ns.add(to_id), max_depth)
        return [self._unwrap_relation(r) for r in path]

    async def delete_entity(self, entity_id: str) -> None:
        await self.inner.delete_entity(self._ns.add(entity_id))

    async def delete_relation(self, relation_id: str) -> None:
        await self.inner.delete_relation(self._ns.add(relation_id))


def with_namespace(storage: StorageSet, namespace: str) -> StorageSet:
    """Wrap a storage set so everything it stores lives under `namespace`"""
    return StorageSet(
        kv=NamespacedKVStorage(storage.kv, namespace),
        vector=NamespacedVectorStorage(storage.vector, namespace),
        graph=NamespacedGraphStorage(storage.graph, namespace),
    )
