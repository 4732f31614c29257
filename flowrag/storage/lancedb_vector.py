"""
LanceDB Vector Storage - Chunk embeddings in a local LanceDB table

One row per chunk: id, vector and JSON-encoded metadata. Searches use
cosine distance, converted to a similarity score (1 - distance) so that
higher is better like every other vector store.
"""

import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

import lancedb
import pyarrow as pa

from flowrag.types import VectorRecord, VectorSearchResult

logger = logging.getLogger(__name__)


def _sanitize_sql_value(value: str) -> str:
    """Escape single quotes for LanceDB SQL WHERE clauses (' becomes '')"""
    if not isinstance(value, str):
        raise TypeError(f"Expected string, got {type(value).__name__}")
    return value.replace("'", "''")


def _metadata_clause(key: str, value: Any) -> str:
    # Matches the key/value pair as json.dumps writes it
    fragment = f"{json.dumps(key)}: {json.dumps(value)}"
    return f"metadata LIKE '%{_sanitize_sql_value(fragment)}%'"


class LanceDBVectorStorage:
    """LanceDB-backed vector store"""

    def __init__(self, path: str, dimensions: int = 768, table_name: str = "chunks"):
        """
        Args:
            path: LanceDB database directory
            dimensions: Embedding size (must match the embedder)
            table_name: Table holding the vectors
        """
        self.db_path = Path(path).expanduser()
        self.db_path.mkdir(parents=True, exist_ok=True)
        self.dimensions = dimensions
        self.table_name = table_name

        self.db = lancedb.connect(str(self.db_path))
        if self.table_name in self.db.table_names():
            self.table = self.db.open_table(self.table_name)
            logger.info(f"Opened existing table '{self.table_name}' ({self.table.count_rows()} vectors)")
        else:
            self.table = self.db.create_table(self.table_name, schema=self._create_schema())
            logger.info(f"Created table '{self.table_name}' at {self.db_path}")

    def _create_schema(self) -> pa.Schema:
        return pa.schema([
            pa.field("id", pa.string()),
            pa.field("vector", pa.list_(pa.float32(), self.dimensions)),
            pa.field("metadata", pa.string()),
        ])

    def _id_clause(self, ids: Sequence[str]) -> str:
        quoted = ", ".join(f"'{_sanitize_sql_value(i)}'" for i in ids)
        return f"id IN ({quoted})"

    async def upsert(self, records: Sequence[VectorRecord]) -> None:
        if not records:
            return
        for record in records:
            if len(record.vector) != self.dimensions:
                raise ValueError(
                    f"Vector for {record.id} has {len(record.vector)} dimensions, expected {self.dimensions}"
                )
        self.table.delete(self._id_clause([r.id for r in records]))
        self.table.add([
            {"id": r.id, "vector": list(r.vector), "metadata": json.dumps(r.metadata)}
            for r in records
        ])

    async def search(
        self, vector: Sequence[float], limit: int, filter: Optional[Dict[str, Any]] = None
    ) -> List[VectorSearchResult]:
        if limit <= 0:
            return []
        query = self.table.search(list(vector)).distance_type("cosine").limit(limit)
        if filter:
            query = query.where(" AND ".join(_metadata_clause(k, v) for k, v in filter.items()), prefilter=True)

        results = []
        for row in query.to_list():
            metadata = json.loads(row["metadata"] or "{}")
            # LIKE can over-match; confirm exact equality
            if filter and any(metadata.get(k) != v for k, v in filter.items()):
                continue
            results.append(VectorSearchResult(
                id=row["id"],
                score=1.0 - float(row["_distance"]),
                metadata=metadata,
            ))
        return results

    async def delete(self, ids: Sequence[str]) -> None:
        if ids:
            self.table.delete(self._id_clause(ids))

    async def count(self) -> int:
        return self.table.count_rows()
