"""
Embedder - Generate embeddings with a local Ollama model

Defaults to nomic-embed-text (768 dimensions). Calls go through
ollama.AsyncClient and are retried on transient transport errors.
"""

import logging
from typing import List, Optional, Sequence

import ollama

from flowrag.retry import RetryOptions, retry_async

logger = logging.getLogger(__name__)


class OllamaEmbedder:
    """Generate embeddings via Ollama"""

    def __init__(
        self,
        model: str = "nomic-embed-text",
        dimensions: int = 768,
        host: Optional[str] = None,
        retry: Optional[RetryOptions] = None,
        client: Optional[ollama.AsyncClient] = None,
    ):
        """
        Initialize embedder

        Args:
            model: Ollama embedding model
            dimensions: Expected vector size
            host: Ollama server URL (default: library default / OLLAMA_HOST)
            retry: Retry policy for transient failures
            client: Pre-built AsyncClient
        """
        self.model_name = model
        self.dimensions = dimensions
        self.retry = retry or RetryOptions()
        self.client = client or ollama.AsyncClient(host=host)

    async def _call(self, texts: List[str]) -> List[List[float]]:
        response = await retry_async(
            lambda: self.client.embed(model=self.model_name, input=texts),
            retries=self.retry.retries,
            backoff=self.retry.backoff,
            max_backoff=self.retry.max_backoff,
            retry_on=self.retry.retry_on,
        )
        embeddings = [list(e) for e in response['embeddings']]
        for embedding in embeddings:
            if len(embedding) != self.dimensions:
                logger.warning(f"Unexpected embedding dimensions: {len(embedding)} (expected {self.dimensions})")
        return embeddings

    async def embed(self, text: str) -> List[float]:
        return (await self._call([text]))[0]

    async def embed_batch(self, texts: Sequence[str]) -> List[List[float]]:
        if not texts:
            return []
        return await self._call(list(texts))
