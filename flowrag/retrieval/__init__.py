"""
FlowRAG Retrieval Module

Naive, local, global and hybrid search with optional cross-encoder
reranking, plus entity resolution for graph lookups.
"""

from flowrag.retrieval.fusion import boost_entity_matches, get_fusion_stats, merge_results
from flowrag.retrieval.pipeline import QueryPipeline
from flowrag.retrieval.reranker import LocalReranker
from flowrag.retrieval.resolve import resolve_entity

__all__ = [
    "QueryPipeline",
    "LocalReranker",
    "boost_entity_matches",
    "get_fusion_stats",
    "merge_results",
    "resolve_entity",
]
