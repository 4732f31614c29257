"""
Extractor - Entity and relation extraction with a local Ollama LLM

Sends the standard extraction prompt with JSON output mode and parses the
reply. Transport failures are retried; a reply that is not valid JSON is
raised as ExtractionParseError straight away.
"""

import logging
from typing import Optional, Sequence

import ollama

from flowrag.prompt import build_extraction_prompt, parse_extraction_response
from flowrag.retry import RetryOptions, retry_async
from flowrag.schema import Schema
from flowrag.types import ExtractionResult

logger = logging.getLogger(__name__)


class OllamaExtractor:
    """Extract knowledge graph entities from text using Ollama"""

    def __init__(
        self,
        model: str = "llama3.1:8b",
        temperature: float = 0.0,
        max_tokens: int = 2048,
        host: Optional[str] = None,
        retry: Optional[RetryOptions] = None,
        client: Optional[ollama.AsyncClient] = None,
    ):
        """
        Initialize extractor

        Args:
            model: Ollama model to use
            temperature: Lower = more deterministic extractions
            max_tokens: Max tokens generated per extraction
            host: Ollama server URL
            retry: Retry policy for transient failures
            client: Pre-built AsyncClient
        """
        self.model_name = model
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.retry = retry or RetryOptions()
        self.client = client or ollama.AsyncClient(host=host)

    async def extract_entities(
        self, content: str, known_entities: Sequence[str], schema: Schema
    ) -> ExtractionResult:
        prompt = build_extraction_prompt(content, known_entities, schema)

        response = await retry_async(
            lambda: self.client.generate(
                model=self.model_name,
                prompt=prompt,
                format='json',
                options={
                    'temperature': self.temperature,
                    'num_predict': self.max_tokens,
                },
            ),
            retries=self.retry.retries,
            backoff=self.retry.backoff,
            max_backoff=self.retry.max_backoff,
            retry_on=self.retry.retry_on,
        )

        result = parse_extraction_response(response['response'])
        logger.debug(f"Extracted {len(result.entities)} entities, {len(result.relations)} relations")
        return result
