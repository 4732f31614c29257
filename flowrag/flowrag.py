"""
FlowRAG - Index a corpus into vectors + knowledge graph and query it

    rag = create_flowrag(
        schema=define_schema(["SERVICE", "DATABASE"], ["USES", "PRODUCES"]),
        storage=create_memory_storage(),
        embedder=OllamaEmbedder(),
        extractor=OllamaExtractor(),
    )
    await rag.index("./docs")
    results = await rag.search("which services write to the orders table?")
"""

import asyncio
import csv
import io
import json
import logging
from typing import Callable, List, Optional, Sequence, Union

from flowrag.cancellation import CancelToken
from flowrag.config import IndexingOptions, QueryOptions
from flowrag.errors import FlowRAGError
from flowrag.indexing.chunker import Tokenizer
from flowrag.indexing.pipeline import IndexingHooks, IndexingPipeline
from flowrag.interfaces import DocumentParser, Embedder, Evaluator, LLMExtractor, Reranker, StorageSet
from flowrag.namespace import with_namespace
from flowrag.notifications.models import ProgressEvent
from flowrag.retrieval.pipeline import QueryPipeline
from flowrag.retrieval.resolve import resolve_entity
from flowrag.schema import Schema
from flowrag.types import (
    Entity,
    EvalDocument,
    EvalResult,
    FlowDirection,
    IndexStats,
    QueryMode,
    Relation,
    SearchResult,
    relation_id,
)
from flowrag.utils.observability import ObservabilityHooks

logger = logging.getLogger(__name__)

EXPORT_FORMATS = ("json", "csv", "dot")


class FlowRAG:
    """Indexing and querying over one storage set"""

    def __init__(
        self,
        schema: Schema,
        storage: StorageSet,
        embedder: Embedder,
        extractor: LLMExtractor,
        reranker: Optional[Reranker] = None,
        evaluator: Optional[Evaluator] = None,
        parsers: Optional[Sequence[DocumentParser]] = None,
        hooks: Optional[IndexingHooks] = None,
        observability: Optional[ObservabilityHooks] = None,
        indexing_options: Optional[IndexingOptions] = None,
        query_options: Optional[QueryOptions] = None,
        namespace: Optional[str] = None,
        tokenizer: Optional[Tokenizer] = None,
    ):
        """
        Args:
            schema: Entity/relation vocabulary
            storage: KV, vector and graph stores
            embedder: Embedding provider
            extractor: Entity/relation extraction provider
            reranker: Optional reranker applied to search results
            evaluator: Optional retrieval quality evaluator used by evaluate()
            parsers: Extra document parsers, matched by file extension
            hooks: Indexing hooks (post-extraction rewrite)
            observability: LLM/embedding/search timing callbacks
            indexing_options: Indexing tuning
            query_options: Query tuning
            namespace: Isolate this instance's data inside shared stores
            tokenizer: Chunking tokenizer (default: tiktoken cl100k_base)
        """
        self.schema = schema
        self.base_storage = storage
        self.storage = with_namespace(storage, namespace) if namespace else storage
        self.namespace = namespace
        self.evaluator = evaluator

        self.indexing = IndexingPipeline(
            self.storage,
            embedder,
            extractor,
            schema,
            options=indexing_options,
            hooks=hooks,
            parsers=parsers,
            tokenizer=tokenizer,
            observability=observability,
        )
        self.querying = QueryPipeline(
            self.storage,
            embedder,
            extractor,
            schema,
            options=query_options,
            reranker=reranker,
            observability=observability,
        )

    async def index(
        self,
        paths: Union[str, Sequence[str]],
        force: bool = False,
        on_progress: Optional[Callable[[ProgressEvent], None]] = None,
        include: Optional[Sequence[str]] = None,
        exclude: Optional[Sequence[str]] = None,
        cancel_token: Optional[CancelToken] = None,
    ) -> None:
        """Index files and/or directories (see IndexingPipeline.process)"""
        inputs = [paths] if isinstance(paths, str) else list(paths)
        await self.indexing.process(
            inputs,
            force=force,
            on_progress=on_progress,
            include=include,
            exclude=exclude,
            cancel_token=cancel_token,
        )

    async def delete_document(self, document_id: str) -> None:
        await self.indexing.delete_document(document_id)

    async def merge_entities(self, sources: Sequence[str], target: str) -> None:
        """
        Collapse several entities into one

        Entities whose name is in `sources` are replaced by a single entity
        named `target`. It keeps the type of the source already named
        `target` (else the first source), the longest description and the
        union of chunk ids. Relations are re-pointed at the merged entity;
        self-relations are dropped and duplicates collapsed.
        """
        graph = self.storage.graph
        source_entities = [e for e in await graph.get_entities() if e.name in sources]
        if not source_entities:
            return

        relations: List[Relation] = []
        for entity in source_entities:
            relations.extend(await graph.get_relations(entity.id, "both"))

        source_ids = {e.id for e in source_entities}
        type_entity = next((e for e in source_entities if e.name == target), source_entities[0])
        chunk_ids: List[str] = []
        for entity in source_entities:
            chunk_ids.extend(c for c in entity.source_chunk_ids if c not in chunk_ids)
        fields = {}
        for entity in source_entities:
            fields.update(entity.fields)

        merged = Entity(
            id=target,
            name=target,
            type=type_entity.type,
            description=max((e.description for e in source_entities), key=len),
            source_chunk_ids=chunk_ids,
            fields=fields,
        )

        for entity in source_entities:
            await graph.delete_entity(entity.id)
        await graph.add_entity(merged)

        seen = set()
        for relation in relations:
            source_id = target if relation.source_id in source_ids else relation.source_id
            target_id = target if relation.target_id in source_ids else relation.target_id
            if source_id == target_id:
                continue
            rid = relation_id(source_id, relation.type, target_id)
            if rid in seen:
                continue
            seen.add(rid)
            await graph.add_relation(Relation(
                id=rid,
                source_id=source_id,
                target_id=target_id,
                type=relation.type,
                description=relation.description,
                keywords=list(relation.keywords),
                source_chunk_ids=list(relation.source_chunk_ids),
                fields=dict(relation.fields),
            ))

        logger.debug(f"Merged {len(source_entities)} entities into '{target}'")

    async def search(
        self,
        query: str,
        mode: Union[QueryMode, str, None] = None,
        limit: Optional[int] = None,
        cancel_token: Optional[CancelToken] = None,
    ) -> List[SearchResult]:
        return await self.querying.search(query, mode=mode, limit=limit, cancel_token=cancel_token)

    async def evaluate(
        self,
        query: str,
        mode: Union[QueryMode, str, None] = None,
        limit: Optional[int] = None,
        reference: Optional[str] = None,
    ) -> EvalResult:
        """
        Search, then score the results with the configured evaluator

        Args:
            query: Search query
            mode: Query mode (default: query options default_mode)
            limit: Max results (default: query options max_results)
            reference: Expected answer, for evaluators that compare against one

        Raises:
            FlowRAGError: If no evaluator is configured
        """
        if self.evaluator is None:
            raise FlowRAGError("No evaluator configured")
        results = await self.search(query, mode=mode, limit=limit)
        return await self.evaluator.evaluate(
            query,
            [EvalDocument(content=r.content, score=r.score) for r in results],
            reference,
        )

    async def trace_data_flow(self, entity_id: str, direction: Union[FlowDirection, str]) -> List[Entity]:
        return await self.querying.trace_data_flow(entity_id, direction)

    async def find_path(self, from_id: str, to_id: str, max_depth: int = 5) -> List[Relation]:
        return await self.querying.find_path(from_id, to_id, max_depth)

    async def resolve_entity(self, name_or_id: str) -> Entity:
        """
        Raises:
            EntityNotFoundError: If nothing matches by id, name or substring
        """
        return await resolve_entity(self.storage.graph, name_or_id)

    async def _graph_snapshot(self):
        entities = await self.storage.graph.get_entities()
        relations: List[Relation] = []
        for entity in entities:
            relations.extend(await self.storage.graph.get_relations(entity.id, "out"))
        return entities, relations

    async def export(self, format: str) -> str:
        """
        Export the knowledge graph

        Args:
            format: "json" (entities + relations), "csv" (one row per
                relation) or "dot" (Graphviz digraph)

        Raises:
            ValueError: If the format is not supported
        """
        if format not in EXPORT_FORMATS:
            raise ValueError(f"Unsupported export format: {format} (expected one of {', '.join(EXPORT_FORMATS)})")

        entities, relations = await self._graph_snapshot()

        if format == "json":
            return json.dumps(
                {
                    "entities": [e.to_dict() for e in entities],
                    "relations": [r.to_dict() for r in relations],
                },
                indent=2,
                ensure_ascii=False,
            )

        if format == "csv":
            buffer = io.StringIO()
            writer = csv.writer(buffer, quoting=csv.QUOTE_ALL, lineterminator="\n")
            buffer.write("source,type,target,description\n")
            for r in relations:
                writer.writerow([r.source_id, r.type, r.target_id, r.description])
            return buffer.getvalue().rstrip("\n")

        by_id = {e.id: e for e in entities}
        lines = ["digraph FlowRAG {", "  rankdir=LR;"]
        for e in entities:
            lines.append(f'  "{_dot_escape(e.name)}" [label="{_dot_escape(e.name)}\\n({_dot_escape(e.type)})"];')
        for r in relations:
            source, target = by_id.get(r.source_id), by_id.get(r.target_id)
            if source and target:
                lines.append(
                    f'  "{_dot_escape(source.name)}" -> "{_dot_escape(target.name)}" [label="{_dot_escape(r.type)}"];'
                )
        lines.append("}")
        return "\n".join(lines)

    async def stats(self) -> IndexStats:
        documents, chunks, entities, vectors = await asyncio.gather(
            self.storage.kv.list("doc:"),
            self.storage.kv.list("chunk:"),
            self.storage.graph.get_entities(),
            self.storage.vector.count(),
        )
        relation_lists = await asyncio.gather(*(
            self.storage.graph.get_relations(e.id, "out") for e in entities
        ))
        return IndexStats(
            documents=len(documents),
            chunks=len(chunks),
            entities=len(entities),
            relations=sum(len(r) for r in relation_lists),
            vectors=vectors,
        )

    def close(self) -> None:
        """Release the tokenizer and close stores that hold open handles"""
        self.indexing.dispose()
        for store in (self.base_storage.kv, self.base_storage.vector, self.base_storage.graph):
            close = getattr(store, "close", None)
            if callable(close):
                close()

    def __enter__(self) -> "FlowRAG":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    async def __aenter__(self) -> "FlowRAG":
        return self

    async def __aexit__(self, *exc_info) -> None:
        self.close()


def _dot_escape(value: str) -> str:
    return value.replace("\\", "\\\\").replace('"', '\\"')


def create_flowrag(
    schema: Schema,
    storage: StorageSet,
    embedder: Embedder,
    extractor: LLMExtractor,
    **kwargs,
) -> FlowRAG:
    """Build a FlowRAG instance; keyword arguments as for FlowRAG()"""
    return FlowRAG(schema, storage, embedder, extractor, **kwargs)
