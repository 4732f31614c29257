"""
Configuration - Options, YAML config loading and logging setup

Config lives in `.flowrag.yml` (or the file named by FLOWRAG_CONFIG),
searched for in the working directory and up to five parents:

    schema:
      entity_types: [SERVICE, DATABASE]
      relation_types: [USES, PRODUCES]
    storage:
      path: ./.flowrag
    embedder:
      model: nomic-embed-text
    extractor:
      model: llama3.1:8b
    indexing:
      chunk_size: 1200
      llm_max_async: 4
    querying:
      default_mode: hybrid
    logging:
      level: INFO
"""

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from flowrag.types import QueryMode

logger = logging.getLogger(__name__)

CONFIG_FILENAME = ".flowrag.yml"
CONFIG_ENV_VAR = "FLOWRAG_CONFIG"

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


@dataclass
class IndexingOptions:
    """
    Indexing pipeline tuning.

    Attributes:
        chunk_size: Tokens per chunk
        chunk_overlap: Tokens shared by consecutive chunks
        max_parallel_insert: Documents processed concurrently per batch
        llm_max_async: Chunks processed concurrently per sub-batch
        serialize_extraction: Run extraction and graph writes one chunk at
            a time across the corpus, so each extraction sees the entities
            of every chunk extracted before it
        cache_key_length: Hex digits of the content digest used in
            extraction cache keys
        extraction_gleanings: Extra extraction passes per chunk; each pass
            sees the names found so far and adds what earlier passes missed
    """
    chunk_size: int = 1200
    chunk_overlap: int = 100
    max_parallel_insert: int = 2
    llm_max_async: int = 4
    serialize_extraction: bool = False
    cache_key_length: int = 16
    extraction_gleanings: int = 0

    def __post_init__(self):
        if self.max_parallel_insert < 1:
            raise ValueError("max_parallel_insert must be at least 1")
        if self.llm_max_async < 1:
            raise ValueError("llm_max_async must be at least 1")
        if self.extraction_gleanings < 0:
            raise ValueError("extraction_gleanings must not be negative")

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "IndexingOptions":
        data = data or {}
        defaults = cls()
        return cls(
            chunk_size=int(data.get("chunk_size", defaults.chunk_size)),
            chunk_overlap=int(data.get("chunk_overlap", defaults.chunk_overlap)),
            max_parallel_insert=int(data.get("max_parallel_insert", defaults.max_parallel_insert)),
            llm_max_async=int(data.get("llm_max_async", defaults.llm_max_async)),
            serialize_extraction=bool(data.get("serialize_extraction", defaults.serialize_extraction)),
            cache_key_length=int(data.get("cache_key_length", defaults.cache_key_length)),
            extraction_gleanings=int(data.get("extraction_gleanings", defaults.extraction_gleanings)),
        )


@dataclass
class QueryOptions:
    """
    Query pipeline tuning.

    Attributes:
        default_mode: Mode used when search() gets none
        max_results: Limit used when search() gets none
        vector_weight: Share of the hybrid limit given to global search
        graph_weight: Share of the hybrid limit given to local search
        local_boost: Score multiplier for local results mentioning a
            query entity
        local_penalty: Score multiplier for the other local results
        global_keyword_limit: Keywords appended to the query in global mode
    """
    default_mode: QueryMode = QueryMode.HYBRID
    max_results: int = 10
    vector_weight: float = 0.7
    graph_weight: float = 0.3
    local_boost: float = 1.5
    local_penalty: float = 0.5
    global_keyword_limit: int = 8

    def __post_init__(self):
        self.default_mode = QueryMode(self.default_mode)
        if self.vector_weight < 0 or self.graph_weight < 0:
            raise ValueError("Query weights must be non-negative")

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "QueryOptions":
        data = data or {}
        defaults = cls()
        return cls(
            default_mode=QueryMode(data.get("default_mode", defaults.default_mode.value)),
            max_results=int(data.get("max_results", defaults.max_results)),
            vector_weight=float(data.get("vector_weight", defaults.vector_weight)),
            graph_weight=float(data.get("graph_weight", defaults.graph_weight)),
            local_boost=float(data.get("local_boost", defaults.local_boost)),
            local_penalty=float(data.get("local_penalty", defaults.local_penalty)),
            global_keyword_limit=int(data.get("global_keyword_limit", defaults.global_keyword_limit)),
        )


def find_config_file(start: Optional[Path] = None) -> Optional[Path]:
    """Locate the config file via FLOWRAG_CONFIG or by walking up from `start`"""
    config_path = Path(os.getenv(CONFIG_ENV_VAR, CONFIG_FILENAME)).expanduser()
    if config_path.is_absolute():
        return config_path if config_path.exists() else None

    search_path = (start or Path.cwd()).resolve()
    for _ in range(6):  # cwd plus five parents
        candidate = search_path / config_path
        if candidate.exists():
            return candidate
        if search_path.parent == search_path:
            break
        search_path = search_path.parent
    return None


def load_config(path: Optional[str] = None) -> Dict[str, Any]:
    """
    Load configuration from YAML

    Args:
        path: Explicit config file; otherwise find_config_file() is used

    Returns:
        Config dictionary (empty when no file exists and no path was given)

    Raises:
        FileNotFoundError: If an explicit path does not exist
        ValueError: If the file does not contain a mapping
    """
    if path is not None:
        config_path = Path(path).expanduser()
        if not config_path.exists():
            raise FileNotFoundError(f"FlowRAG configuration not found: {config_path}")
    else:
        config_path = find_config_file()
        if config_path is None:
            logger.debug("No config file found, using defaults")
            return {}

    with open(config_path) as f:
        config = yaml.safe_load(f) or {}

    if not isinstance(config, dict):
        raise ValueError(f"Config file {config_path} must contain a mapping")

    logger.debug(f"Loaded config from {config_path}")
    return config


def setup_logging(config: Optional[Dict[str, Any]] = None) -> None:
    """Configure root logging from the `logging` config section"""
    logging_config = (config or {}).get("logging", {})
    level_name = str(logging_config.get("level", "INFO")).upper()
    level = getattr(logging, level_name, logging.INFO)

    kwargs: Dict[str, Any] = {"level": level, "format": LOG_FORMAT}
    if logging_config.get("file"):
        kwargs["filename"] = str(Path(logging_config["file"]).expanduser())

    logging.basicConfig(**kwargs)
