"""
FlowRAG Indexing Module

Scans, chunks, extracts, embeds and stores documents.
"""

from flowrag.indexing.chunker import Chunker
from flowrag.indexing.embedder import OllamaEmbedder
from flowrag.indexing.extractor import OllamaExtractor
from flowrag.indexing.pipeline import IndexingHooks, IndexingPipeline
from flowrag.indexing.scanner import Scanner, document_id_for_path

__all__ = [
    "Chunker",
    "IndexingHooks",
    "IndexingPipeline",
    "OllamaEmbedder",
    "OllamaExtractor",
    "Scanner",
    "document_id_for_path",
]
