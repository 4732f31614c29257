"""
Indexing Pipeline - scan -> chunk -> extract -> embed -> store

Incremental indexing over the KV, vector and graph stores:
- Documents whose content hash is unchanged are skipped entirely
- Extractions are cached by chunk content digest, so identical text
  anywhere in the corpus is extracted once
- Documents run in batches of max_parallel_insert, chunks within a
  document in sub-batches of llm_max_async
- The document's hash marker is written last, so a failed document is
  picked up again on the next run

Known-entity snapshots passed to the extractor are read without locking;
chunks extracted concurrently may not see each other's entities. Set
IndexingOptions.serialize_extraction for deterministic snapshots.
"""

import asyncio
import hashlib
import logging
import os
from collections import Counter
from contextlib import asynccontextmanager
from dataclasses import dataclass, replace
from typing import Awaitable, Callable, Dict, List, Optional, Sequence, Set, Tuple, TypeVar

from flowrag.cancellation import CancelToken, check_cancelled
from flowrag.config import IndexingOptions
from flowrag.indexing.chunker import Chunker, Tokenizer
from flowrag.indexing.scanner import Scanner, path_for_document_id
from flowrag.interfaces import DocumentParser, Embedder, LLMExtractor, StorageSet
from flowrag.notifications.models import ProgressEvent, ProgressType
from flowrag.schema import Schema
from flowrag.types import (
    Chunk,
    Document,
    Entity,
    ExtractedEntity,
    ExtractedRelation,
    ExtractionContext,
    ExtractionResult,
    Relation,
    VectorRecord,
    relation_id,
)
from flowrag.utils.observability import (
    EmbeddingEvent,
    LLMCallEvent,
    ObservabilityHooks,
    emit,
    timed,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

DOC_HASH_PREFIX = "docHash:"
EXTRACTION_PREFIX = "extraction:"

ProgressCallback = Callable[[ProgressEvent], None]
EntitiesExtractedHook = Callable[[ExtractionResult, ExtractionContext], Awaitable[ExtractionResult]]


@dataclass
class IndexingHooks:
    """
    Pipeline extension points.

    on_entities_extracted may filter or rewrite an extraction before it is
    stored. A hook that removes an entity must also remove the relations
    that reference it; the pipeline does not re-validate.
    """
    on_entities_extracted: Optional[EntitiesExtractedHook] = None


def content_hash(text: str) -> str:
    return hashlib.sha256(text.encode('utf-8')).hexdigest()


def create_batches(items: Sequence[T], batch_size: int) -> List[List[T]]:
    return [list(items[i:i + batch_size]) for i in range(0, len(items), batch_size)]


def _merge_ids(existing: Sequence[str], new: Sequence[str]) -> List[str]:
    merged = list(existing)
    for item in new:
        if item not in merged:
            merged.append(item)
    return merged


def merge_gleaning(result: ExtractionResult, gleaned: ExtractionResult) -> ExtractionResult:
    """Add the entities and relations a gleaning pass found that result lacks"""
    names = {e.name for e in result.entities}
    triples = {(r.source, r.type, r.target) for r in result.relations}
    entities = list(result.entities)
    relations = list(result.relations)

    for entity in gleaned.entities:
        if entity.name not in names:
            names.add(entity.name)
            entities.append(entity)
    for relation in gleaned.relations:
        triple = (relation.source, relation.type, relation.target)
        if triple not in triples:
            triples.add(triple)
            relations.append(relation)

    return ExtractionResult(entities=entities, relations=relations)


def _model_name(provider: object) -> str:
    return getattr(provider, "model_name", None) or type(provider).__name__


class _Progress:
    """Running counters for one process() call"""

    def __init__(self, callback: Optional[ProgressCallback], documents_total: int = 0):
        self.callback = callback
        self.documents_total = documents_total
        self.documents_processed = 0
        self.chunks_total = 0
        self.chunks_processed = 0

    def emit(self, event_type: ProgressType, document_id: Optional[str] = None, chunk_id: Optional[str] = None):
        if self.callback is None:
            return
        self.callback(ProgressEvent(
            type=event_type,
            documents_total=self.documents_total,
            documents_processed=self.documents_processed,
            chunks_total=self.chunks_total,
            chunks_processed=self.chunks_processed,
            document_id=document_id,
            chunk_id=chunk_id,
        ))


class IndexingPipeline:
    """Incremental document indexer"""

    def __init__(
        self,
        storage: StorageSet,
        embedder: Embedder,
        extractor: LLMExtractor,
        schema: Schema,
        options: Optional[IndexingOptions] = None,
        hooks: Optional[IndexingHooks] = None,
        parsers: Optional[Sequence[DocumentParser]] = None,
        tokenizer: Optional[Tokenizer] = None,
        observability: Optional[ObservabilityHooks] = None,
    ):
        self.storage = storage
        self.embedder = embedder
        self.extractor = extractor
        self.schema = schema
        self.options = options or IndexingOptions()
        self.hooks = hooks or IndexingHooks()
        self.observability = observability or ObservabilityHooks()

        self.scanner = Scanner(parsers)
        self.chunker = Chunker(self.options.chunk_size, self.options.chunk_overlap, tokenizer=tokenizer)

        self._graph_locks: Dict[str, asyncio.Lock] = {}
        self._graph_lock_users: Counter = Counter()
        self._inflight: Dict[str, asyncio.Future] = {}
        self._extraction_lock = asyncio.Lock() if self.options.serialize_extraction else None

    async def process(
        self,
        input_paths: Sequence[str],
        force: bool = False,
        on_progress: Optional[ProgressCallback] = None,
        include: Optional[Sequence[str]] = None,
        exclude: Optional[Sequence[str]] = None,
        cancel_token: Optional[CancelToken] = None,
    ) -> None:
        """
        Index files and directories

        Args:
            input_paths: Files and/or directories to index
            force: Reprocess documents even when their content is unchanged
            on_progress: Callback receiving ProgressEvents
            include: Glob patterns selecting files inside directories
            exclude: Glob patterns dropping files inside directories
            cancel_token: Checked between batches and before each chunk

        Raises:
            OperationCancelledError: If cancel_token fires
            Any storage, extractor or embedder error, unchanged
        """
        check_cancelled(cancel_token)
        documents = await self.scanner.scan_files(input_paths, include, exclude)

        progress = _Progress(on_progress, documents_total=len(documents))
        progress.emit(ProgressType.SCAN)

        await self._remove_stale_documents(input_paths, documents, progress)
        pending = await self._select_changed(documents, force, progress)

        # Earlier versions are cleared before any batch starts, so pruning
        # never interleaves with another document's graph writes
        for document, _ in pending:
            await self.delete_document(document.id)

        for batch in create_batches(pending, self.options.max_parallel_insert):
            check_cancelled(cancel_token)
            await asyncio.gather(*(
                self._process_document(doc, digest, progress, cancel_token) for doc, digest in batch
            ))

        logger.debug(
            f"Indexed {progress.documents_processed}/{progress.documents_total} documents, "
            f"{progress.chunks_processed} chunks"
        )
        progress.emit(ProgressType.DONE)

    async def delete_document(self, document_id: str) -> None:
        """
        Remove a document and everything derived from it

        Vectors and chunks are deleted; graph entities and relations lose
        the document's chunk ids and are deleted once no chunk references
        them. The hash marker goes too, so the file is re-indexed if it
        comes back.
        """
        await self._remove_document_data(document_id)
        await self.storage.kv.delete(document_id)
        await self.storage.kv.delete(f"{DOC_HASH_PREFIX}{document_id}")
        logger.debug(f"Deleted document {document_id}")

    def dispose(self) -> None:
        self.chunker.dispose()

    @asynccontextmanager
    async def _graph_lock(self, key: str):
        # Entries live only while someone holds or waits on them, so
        # concurrent process() calls share locks without the map growing
        lock = self._graph_locks.get(key)
        if lock is None:
            lock = self._graph_locks[key] = asyncio.Lock()
        self._graph_lock_users[key] += 1
        try:
            async with lock:
                yield
        finally:
            self._graph_lock_users[key] -= 1
            if not self._graph_lock_users[key]:
                del self._graph_lock_users[key]
                del self._graph_locks[key]

    async def _remove_stale_documents(
        self, input_paths: Sequence[str], documents: Sequence[Document], progress: _Progress
    ) -> None:
        # A document is stale when it was indexed from under one of the
        # scanned roots but the scan no longer produced it.
        roots = [os.path.abspath(p) for p in input_paths]
        scanned = {doc.id for doc in documents}

        for key in await self.storage.kv.list(DOC_HASH_PREFIX):
            document_id = key[len(DOC_HASH_PREFIX):]
            if document_id in scanned:
                continue
            path = path_for_document_id(document_id)
            if path is None or not any(_is_under(path, root) for root in roots):
                continue
            await self.delete_document(document_id)
            progress.emit(ProgressType.DOCUMENT_DELETE, document_id=document_id)

    async def _select_changed(
        self, documents: Sequence[Document], force: bool, progress: _Progress
    ) -> List[Tuple[Document, str]]:
        pending = []
        for document in documents:
            digest = content_hash(document.content)
            if not force and await self.storage.kv.get(f"{DOC_HASH_PREFIX}{document.id}") == digest:
                progress.documents_processed += 1
                progress.emit(ProgressType.DOCUMENT_SKIP, document_id=document.id)
                continue
            pending.append((document, digest))
        return pending

    async def _process_document(
        self,
        document: Document,
        digest: str,
        progress: _Progress,
        cancel_token: Optional[CancelToken],
    ) -> None:
        kv = self.storage.kv
        progress.emit(ProgressType.DOCUMENT_START, document_id=document.id)

        await kv.set(document.id, document.to_dict())

        chunks = self.chunker.chunk_document(document)
        progress.chunks_total += len(chunks)

        for batch in create_batches(chunks, self.options.llm_max_async):
            check_cancelled(cancel_token)
            await asyncio.gather(*(
                self._process_chunk(document, chunk, progress, cancel_token) for chunk in batch
            ))

        # Last step: marks the document as fully indexed
        await kv.set(f"{DOC_HASH_PREFIX}{document.id}", digest)
        progress.documents_processed += 1
        progress.emit(ProgressType.DOCUMENT_DONE, document_id=document.id)

    async def _process_chunk(
        self,
        document: Document,
        chunk: Chunk,
        progress: _Progress,
        cancel_token: Optional[CancelToken],
    ) -> None:
        check_cancelled(cancel_token)
        await self.storage.kv.set(chunk.id, chunk.to_dict())

        embedding = await self._embed(chunk.content)
        record = VectorRecord(
            id=chunk.id,
            vector=embedding,
            metadata={
                "documentId": chunk.document_id,
                "content": chunk.content,
                "chunkIndex": chunk.index,
                "filePath": document.metadata.get("path"),
            },
        )

        if self._extraction_lock is None:
            await self._extract_and_store(chunk, record)
        else:
            async with self._extraction_lock:
                await self._extract_and_store(chunk, record)

        progress.chunks_processed += 1
        progress.emit(ProgressType.CHUNK_DONE, document_id=chunk.document_id, chunk_id=chunk.id)

    async def _extract_and_store(self, chunk: Chunk, record: VectorRecord) -> None:
        extraction = await self._extract(chunk.content)

        if self.hooks.on_entities_extracted is not None:
            extraction = await self.hooks.on_entities_extracted(
                extraction,
                ExtractionContext(chunk_id=chunk.id, document_id=chunk.document_id, content=chunk.content),
            )

        await asyncio.gather(
            self.storage.vector.upsert([record]),
            *(self._upsert_entity(entity, chunk.id) for entity in extraction.entities),
            *(self._upsert_relation(relation, chunk.id) for relation in extraction.relations),
        )

    async def _extract(self, content: str) -> ExtractionResult:
        key = f"{EXTRACTION_PREFIX}{content_hash(content)[:self.options.cache_key_length]}"

        # Identical text in flight elsewhere shares one extraction call
        task = self._inflight.get(key)
        if task is None:
            task = asyncio.ensure_future(self._lookup_or_extract(key, content))
            self._inflight[key] = task
            task.add_done_callback(lambda _: self._inflight.pop(key, None))
        return await task

    async def _lookup_or_extract(self, key: str, content: str) -> ExtractionResult:
        cached = await self.storage.kv.get(key)
        if cached is not None:
            return ExtractionResult.from_dict(cached)

        known = [entity.name for entity in await self.storage.graph.get_entities()]
        extraction = await self._call_extractor(content, known)

        for _ in range(self.options.extraction_gleanings):
            known = _merge_ids(known, [e.name for e in extraction.entities])
            extraction = merge_gleaning(extraction, await self._call_extractor(content, known))

        await self.storage.kv.set(key, extraction.to_dict())
        return extraction

    async def _call_extractor(self, content: str, known: Sequence[str]) -> ExtractionResult:
        with timed() as timer:
            extraction = await self.extractor.extract_entities(content, list(known), self.schema)
        emit(self.observability.on_llm_call, LLMCallEvent(model=_model_name(self.extractor), duration=timer.elapsed))
        return extraction

    async def _embed(self, content: str) -> List[float]:
        with timed() as timer:
            vector = await self.embedder.embed(content)
        emit(
            self.observability.on_embedding,
            EmbeddingEvent(model=_model_name(self.embedder), texts_count=1, duration=timer.elapsed),
        )
        return vector

    async def _upsert_entity(self, extracted: ExtractedEntity, chunk_id: str) -> None:
        name = extracted.name.strip()
        if not name:
            return
        async with self._graph_lock(name):
            existing = await self.storage.graph.get_entity(name)
            fields = dict(existing.fields) if existing else {}
            fields.update(self.schema.coerce_entity_fields(extracted.fields))
            await self.storage.graph.add_entity(Entity(
                id=name,
                name=name,
                type=self.schema.normalize_entity_type(extracted.type),
                description=extracted.description or (existing.description if existing else ""),
                source_chunk_ids=_merge_ids(existing.source_chunk_ids if existing else [], [chunk_id]),
                fields=fields,
            ))

    async def _upsert_relation(self, extracted: ExtractedRelation, chunk_id: str) -> None:
        source, target = extracted.source.strip(), extracted.target.strip()
        if not source or not target:
            return
        relation_type = self.schema.normalize_relation_type(extracted.type)
        rid = relation_id(source, relation_type, target)
        async with self._graph_lock(f"relation:{rid}"):
            existing = await self._find_relation(source, rid)
            fields = dict(existing.fields) if existing else {}
            fields.update(self.schema.coerce_relation_fields(extracted.fields))
            await self.storage.graph.add_relation(Relation(
                id=rid,
                source_id=source,
                target_id=target,
                type=relation_type,
                description=extracted.description,
                keywords=list(extracted.keywords),
                source_chunk_ids=_merge_ids(existing.source_chunk_ids if existing else [], [chunk_id]),
                fields=fields,
            ))

    async def _find_relation(self, source_id: str, rid: str) -> Optional[Relation]:
        for relation in await self.storage.graph.get_relations(source_id, "out"):
            if relation.id == rid:
                return relation
        return None

    async def _remove_document_data(self, document_id: str) -> None:
        chunk_ids = await self.storage.kv.list(f"chunk:{document_id}:")
        if not chunk_ids:
            return

        await self.storage.vector.delete(chunk_ids)
        await self._prune_graph(set(chunk_ids))
        for key in chunk_ids:
            await self.storage.kv.delete(key)

    async def _prune_graph(self, chunk_ids: Set[str]) -> None:
        graph = self.storage.graph
        entities = await graph.get_entities()

        for entity in entities:
            for relation in await graph.get_relations(entity.id, "out"):
                if chunk_ids.intersection(relation.source_chunk_ids):
                    await self._prune_relation(relation.source_id, relation.id, chunk_ids)

        for entity in entities:
            if chunk_ids.intersection(entity.source_chunk_ids):
                await self._prune_entity(entity.id, chunk_ids)

    async def _prune_relation(self, source_id: str, rid: str, chunk_ids: Set[str]) -> None:
        # Re-read under the lock; the snapshot may be stale by now
        async with self._graph_lock(f"relation:{rid}"):
            relation = await self._find_relation(source_id, rid)
            if relation is None or not chunk_ids.intersection(relation.source_chunk_ids):
                return
            remaining = [c for c in relation.source_chunk_ids if c not in chunk_ids]
            if remaining:
                await self.storage.graph.add_relation(replace(relation, source_chunk_ids=remaining))
            else:
                await self.storage.graph.delete_relation(rid)

    async def _prune_entity(self, entity_id: str, chunk_ids: Set[str]) -> None:
        async with self._graph_lock(entity_id):
            entity = await self.storage.graph.get_entity(entity_id)
            if entity is None or not chunk_ids.intersection(entity.source_chunk_ids):
                return
            remaining = [c for c in entity.source_chunk_ids if c not in chunk_ids]
            if remaining:
                await self.storage.graph.add_entity(replace(entity, source_chunk_ids=remaining))
            else:
                await self.storage.graph.delete_entity(entity_id)


def _is_under(path: str, root: str) -> bool:
    return path == root or path.startswith(root.rstrip(os.sep) + os.sep)
