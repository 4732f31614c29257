"""
Query Pipeline - Multi-mode retrieval over vector + graph stores

Modes:
1. naive  - vector search only
2. local  - entities found in the query (and their graph neighbours)
            boost chunks that mention them
3. global - query enriched with relation keywords from the graph
4. hybrid - local and global run concurrently, merged and deduplicated

An optional cross-encoder reranker rescores the final candidates.
"""

import asyncio
import logging
import math
import re
from collections import Counter
from dataclasses import replace
from typing import List, Optional, Sequence, Union

from flowrag.cancellation import CancelToken, check_cancelled
from flowrag.config import QueryOptions
from flowrag.errors import UnknownQueryModeError
from flowrag.interfaces import Embedder, LLMExtractor, Reranker, StorageSet
from flowrag.retrieval.fusion import boost_entity_matches, get_fusion_stats, merge_results
from flowrag.schema import Schema
from flowrag.types import (
    Entity,
    ExtractedEntity,
    FlowDirection,
    QueryMode,
    Relation,
    RerankDocument,
    SearchResult,
    Source,
    VectorSearchResult,
)
from flowrag.utils.observability import (
    EmbeddingEvent,
    ObservabilityHooks,
    SearchEvent,
    emit,
    timed,
)

logger = logging.getLogger(__name__)

TRACE_DEPTH = 10
LOCAL_EXPANSION_DEPTH = 1

_WORD_RE = re.compile(r"[a-z0-9_]+")


def _terms(text: str) -> set:
    return set(_WORD_RE.findall(text.lower()))


def _to_result(hit: VectorSearchResult, source: str) -> SearchResult:
    metadata = dict(hit.metadata)
    sources = []
    if metadata.get("documentId"):
        sources.append(Source(
            document_id=metadata["documentId"],
            chunk_index=int(metadata.get("chunkIndex") or 0),
            file_path=metadata.get("filePath"),
        ))
    return SearchResult(
        id=hit.id,
        content=metadata.get("content") or "",
        score=hit.score,
        source=source,
        sources=sources,
        metadata=metadata,
    )


class QueryPipeline:
    """Search and graph exploration over an indexed corpus"""

    def __init__(
        self,
        storage: StorageSet,
        embedder: Embedder,
        extractor: LLMExtractor,
        schema: Schema,
        options: Optional[QueryOptions] = None,
        reranker: Optional[Reranker] = None,
        observability: Optional[ObservabilityHooks] = None,
    ):
        self.storage = storage
        self.embedder = embedder
        self.extractor = extractor
        self.schema = schema
        self.options = options or QueryOptions()
        self.reranker = reranker
        self.observability = observability or ObservabilityHooks()

    async def search(
        self,
        query: str,
        mode: Union[QueryMode, str, None] = None,
        limit: Optional[int] = None,
        cancel_token: Optional[CancelToken] = None,
    ) -> List[SearchResult]:
        """
        Search the corpus

        Args:
            query: Search query
            mode: naive, local, global or hybrid (default: options.default_mode)
            limit: Max results (default: options.max_results)
            cancel_token: Checked before retrieval and before reranking

        Returns:
            Results sorted by relevance, at most `limit`

        Raises:
            UnknownQueryModeError: If mode is not one of the four modes
        """
        resolved = self._resolve_mode(mode)
        limit = self.options.max_results if limit is None else limit
        check_cancelled(cancel_token)

        with timed() as timer:
            if resolved is QueryMode.NAIVE:
                results = await self._naive_search(query, limit)
            elif resolved is QueryMode.LOCAL:
                results = await self._local_search(query, limit)
            elif resolved is QueryMode.GLOBAL:
                results = await self._global_search(query, limit)
            else:
                results = await self._hybrid_search(query, limit)

            if self.reranker is not None and results:
                check_cancelled(cancel_token)
                results = await self._rerank(query, results, limit)

        logger.debug(f"{resolved.value} search returned {len(results)} results in {timer.elapsed:.3f}s")
        emit(
            self.observability.on_search,
            SearchEvent(query=query, mode=resolved.value, results_count=len(results), duration=timer.elapsed),
        )
        return results

    async def trace_data_flow(self, entity_id: str, direction: Union[FlowDirection, str]) -> List[Entity]:
        """
        Follow relations from an entity

        Args:
            entity_id: Start entity
            direction: "downstream" follows outgoing relations,
                "upstream" follows incoming ones

        Returns:
            Reachable entities within TRACE_DEPTH hops, start entity first;
            empty if the start entity does not exist
        """
        direction = FlowDirection(direction)
        start = await self.storage.graph.get_entity(entity_id)
        if start is None:
            return []

        if direction is FlowDirection.DOWNSTREAM:
            return await self.storage.graph.traverse(entity_id, TRACE_DEPTH)

        visited = {start.id}
        ordered = [start]
        await self._walk_upstream(start.id, 0, visited, ordered)
        return ordered

    async def find_path(self, from_id: str, to_id: str, max_depth: int = 5) -> List[Relation]:
        """Relations linking two entities, via the graph store's own pathfinding"""
        return await self.storage.graph.find_path(from_id, to_id, max_depth)

    def _resolve_mode(self, mode: Union[QueryMode, str, None]) -> QueryMode:
        if mode is None:
            return self.options.default_mode
        try:
            return QueryMode(mode)
        except ValueError:
            raise UnknownQueryModeError(f"Unknown query mode: {mode}") from None

    async def _walk_upstream(self, entity_id: str, depth: int, visited: set, ordered: List[Entity]) -> None:
        if depth >= TRACE_DEPTH:
            return
        for relation in await self.storage.graph.get_relations(entity_id, "in"):
            if relation.source_id in visited:
                continue
            visited.add(relation.source_id)
            entity = await self.storage.graph.get_entity(relation.source_id)
            if entity is None:
                continue
            ordered.append(entity)
            await self._walk_upstream(entity.id, depth + 1, visited, ordered)

    async def _vector_search(self, text: str, limit: int, source: str) -> List[SearchResult]:
        if limit <= 0:
            return []
        with timed() as timer:
            vector = await self.embedder.embed(text)
        emit(
            self.observability.on_embedding,
            EmbeddingEvent(model=getattr(self.embedder, "model_name", ""), texts_count=1, duration=timer.elapsed),
        )
        hits = await self.storage.vector.search(vector, limit)
        return [_to_result(hit, source) for hit in hits]

    async def _naive_search(self, query: str, limit: int) -> List[SearchResult]:
        return await self._vector_search(query, limit, source="vector")

    async def _local_search(self, query: str, limit: int) -> List[SearchResult]:
        if limit <= 0:
            return []
        entities = await self._extract_query_entities(query)
        names = [e.name for e in entities if e.name]

        neighbours = await asyncio.gather(*(
            self.storage.graph.traverse(name, LOCAL_EXPANSION_DEPTH) for name in names
        ))
        collected = set(names)
        for group in neighbours:
            collected.update(entity.name for entity in group)

        # Oversample so penalized results can be replaced by boosted ones
        candidates = await self._vector_search(query, limit * 2, source="graph")
        ranked = boost_entity_matches(
            candidates, collected, boost=self.options.local_boost, penalty=self.options.local_penalty
        )
        return ranked[:limit]

    async def _global_search(self, query: str, limit: int) -> List[SearchResult]:
        if limit <= 0:
            return []
        keywords = await self._global_keywords(query)
        enriched = f"{query} {' '.join(keywords)}" if keywords else query
        logger.debug(f"Global query enriched with {len(keywords)} keywords")
        return await self._vector_search(enriched, limit, source="vector")

    async def _hybrid_search(self, query: str, limit: int) -> List[SearchResult]:
        # round() drops float noise such as 10 * 0.3 == 3.0000000000000004
        local_limit = math.ceil(round(limit * self.options.graph_weight, 9))
        global_limit = math.ceil(round(limit * self.options.vector_weight, 9))

        local_results, global_results = await asyncio.gather(
            self._local_search(query, local_limit),
            self._global_search(query, global_limit),
        )
        logger.debug(f"Hybrid fusion: {get_fusion_stats(local_results, global_results)}")
        return merge_results(local_results, global_results, limit=limit)

    async def _extract_query_entities(self, query: str) -> List[ExtractedEntity]:
        # Best effort: a failed extraction degrades local search to naive ranking
        try:
            known = [entity.name for entity in await self.storage.graph.get_entities()]
            extraction = await self.extractor.extract_entities(query, known, self.schema)
        except Exception as e:
            logger.debug(f"Query entity extraction failed: {e}")
            return []
        return extraction.entities

    async def _global_keywords(self, query: str) -> List[str]:
        """Relation keywords ranked by overlap with the query, then corpus frequency"""
        vocabulary = set(self.schema.relation_types)
        query_terms = _terms(query)
        query_lower = query.lower()

        frequency: Counter = Counter()
        relevance: Counter = Counter()
        for entity in await self.storage.graph.get_entities():
            for relation in await self.storage.graph.get_relations(entity.id, "out"):
                if relation.type not in vocabulary:
                    continue
                context = " ".join([relation.source_id, relation.target_id, relation.description, *relation.keywords])
                overlap = len(query_terms & _terms(context))
                for keyword in relation.keywords:
                    keyword = keyword.strip().lower()
                    if not keyword or keyword in query_lower:
                        continue
                    frequency[keyword] += 1
                    relevance[keyword] += overlap

        ranked = sorted(frequency, key=lambda k: (-relevance[k], -frequency[k], k))
        if any(relevance.values()):
            ranked = [k for k in ranked if relevance[k] > 0]
        return ranked[:self.options.global_keyword_limit]

    async def _rerank(self, query: str, results: Sequence[SearchResult], limit: int) -> List[SearchResult]:
        documents = [RerankDocument(id=r.id, content=r.content, score=r.score) for r in results]
        reranked = await self.reranker.rerank(query, documents, limit)
        by_id = {r.id: r for r in results}
        return [replace(by_id[r.id], score=r.score) for r in reranked if r.id in by_id]
