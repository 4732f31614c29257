"""
Chunker - Token-window document chunking

Splits a document into overlapping windows of `chunk_size` tokens using
tiktoken's cl100k_base encoding:
- Window advances by chunk_size - overlap tokens
- Consecutive chunks share exactly `overlap` tokens
- The last chunk always ends at the final token
"""

import logging
from typing import List, Optional, Protocol, Sequence

from flowrag.types import Chunk, Document

logger = logging.getLogger(__name__)

DEFAULT_ENCODING = "cl100k_base"


class Tokenizer(Protocol):
    def encode(self, text: str) -> List[int]: ...

    def decode(self, tokens: Sequence[int]) -> str: ...


def chunk_id(document_id: str, index: int) -> str:
    return f"chunk:{document_id}:{index}"


class Chunker:
    """Sliding-window token chunker"""

    def __init__(
        self,
        chunk_size: int = 1200,
        overlap: int = 100,
        encoding_name: str = DEFAULT_ENCODING,
        tokenizer: Optional[Tokenizer] = None,
    ):
        """
        Initialize chunker

        Args:
            chunk_size: Tokens per chunk
            overlap: Tokens shared between consecutive chunks (< chunk_size)
            encoding_name: tiktoken encoding loaded on first use
            tokenizer: Pre-built tokenizer (anything with encode/decode);
                skips loading tiktoken
        """
        if chunk_size <= 0:
            raise ValueError(f"chunk_size must be positive, got {chunk_size}")
        if overlap < 0 or overlap >= chunk_size:
            raise ValueError(f"overlap must be in [0, chunk_size), got {overlap}")

        self.chunk_size = chunk_size
        self.overlap = overlap
        self.encoding_name = encoding_name
        self._tokenizer: Optional[Tokenizer] = tokenizer
        self._owns_tokenizer = tokenizer is None
        self._disposed = False

    @property
    def tokenizer(self) -> Tokenizer:
        if self._disposed:
            raise RuntimeError("Chunker has been disposed")
        if self._tokenizer is None:
            import tiktoken

            self._tokenizer = tiktoken.get_encoding(self.encoding_name)
            logger.debug(f"Loaded tokenizer {self.encoding_name}")
        return self._tokenizer

    def chunk_document(self, document: Document) -> List[Chunk]:
        """
        Chunk a document into token windows

        Args:
            document: Document to split

        Returns:
            Ordered chunks; empty list for empty content
        """
        if not document.content:
            return []

        tokens = self.tokenizer.encode(document.content)
        total = len(tokens)
        step = self.chunk_size - self.overlap

        chunks: List[Chunk] = []
        start = 0
        while start < total:
            end = min(start + self.chunk_size, total)
            text = self.tokenizer.decode(tokens[start:end])
            chunks.append(Chunk(
                id=chunk_id(document.id, len(chunks)),
                document_id=document.id,
                content=text.strip(),
                index=len(chunks),
                start_token=start,
                end_token=end,
            ))
            if end >= total:
                break
            start += step

        return chunks

    def dispose(self) -> None:
        """Release the tokenizer; the chunker cannot be used afterwards"""
        if self._owns_tokenizer:
            self._tokenizer = None
        self._disposed = True

    def __enter__(self) -> "Chunker":
        return self

    def __exit__(self, *exc_info) -> None:
        self.dispose()
