"""
Local Reranker - BGE-reranker-large cross-encoder

Uses BAAI/bge-reranker-large via sentence-transformers CrossEncoder,
running locally on CPU or GPU. The model is loaded on first use and
prediction runs in a worker thread to keep the event loop free.

Model: https://huggingface.co/BAAI/bge-reranker-large
"""

import asyncio
import logging
from typing import List, Optional, Sequence

from flowrag.types import RerankDocument, RerankResult

logger = logging.getLogger(__name__)


class LocalReranker:
    """Local reranking using a cross-encoder"""

    def __init__(self, model_name: str = "BAAI/bge-reranker-large", device: Optional[str] = None):
        """
        Initialize local reranker

        Args:
            model_name: HuggingFace model identifier
            device: Device to run on ('cpu', 'cuda', or None for auto-detect)
        """
        self.model_name = model_name
        self.device = device
        self.model = None
        self.model_loaded = False

    def load_model(self):
        """Lazy-load the CrossEncoder model"""
        if self.model_loaded:
            return

        from sentence_transformers import CrossEncoder

        logger.info(f"Loading reranker model: {self.model_name}...")
        self.model = CrossEncoder(self.model_name, device=self.device)
        self.model_loaded = True
        logger.info(f"Reranker model loaded on {self.model.device}")

    def _score(self, query: str, documents: Sequence[RerankDocument]) -> List[float]:
        self.load_model()
        pairs = [[query, doc.content] for doc in documents]
        return [float(s) for s in self.model.predict(pairs)]

    async def rerank(
        self,
        query: str,
        documents: Sequence[RerankDocument],
        limit: Optional[int] = None,
    ) -> List[RerankResult]:
        """
        Rerank documents against the query

        Args:
            query: Search query
            documents: Candidates to rescore
            limit: Number of top results to return (default: all)

        Returns:
            Results sorted by cross-encoder score, higher is better
        """
        if not documents:
            return []

        scores = await asyncio.to_thread(self._score, query, documents)

        ranked = sorted(
            (RerankResult(id=doc.id, score=score, index=i) for i, (doc, score) in enumerate(zip(documents, scores))),
            key=lambda r: r.score,
            reverse=True,
        )
        return ranked[:limit] if limit is not None else ranked
