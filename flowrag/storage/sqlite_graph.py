"""
SQLite Graph Storage - Entities and relations in a local SQLite file

List-valued columns (chunk ids, keywords) and custom fields are stored as
JSON text. Deleting an entity deletes every relation touching it.
"""

import json
import logging
import sqlite3
from collections import deque
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

from flowrag.storage.memory import matches_entity_filter
from flowrag.types import Entity, Relation, fields_to_dict

logger = logging.getLogger(__name__)

SCHEMA = """
CREATE TABLE IF NOT EXISTS entities (
    id TEXT PRIMARY KEY,
    name TEXT NOT NULL,
    type TEXT NOT NULL,
    description TEXT NOT NULL DEFAULT '',
    source_chunk_ids TEXT NOT NULL DEFAULT '[]',
    fields TEXT NOT NULL DEFAULT '{}'
);
CREATE TABLE IF NOT EXISTS relations (
    id TEXT PRIMARY KEY,
    source_id TEXT NOT NULL,
    target_id TEXT NOT NULL,
    type TEXT NOT NULL,
    description TEXT NOT NULL DEFAULT '',
    keywords TEXT NOT NULL DEFAULT '[]',
    source_chunk_ids TEXT NOT NULL DEFAULT '[]',
    fields TEXT NOT NULL DEFAULT '{}'
);
CREATE INDEX IF NOT EXISTS idx_relations_source ON relations(source_id);
CREATE INDEX IF NOT EXISTS idx_relations_target ON relations(target_id);
CREATE INDEX IF NOT EXISTS idx_entities_type ON entities(type);
"""


def _entity_from_row(row: sqlite3.Row) -> Entity:
    return Entity.from_dict({
        "id": row["id"],
        "name": row["name"],
        "type": row["type"],
        "description": row["description"],
        "sourceChunkIds": json.loads(row["source_chunk_ids"]),
        "fields": json.loads(row["fields"]),
    })


def _relation_from_row(row: sqlite3.Row) -> Relation:
    return Relation.from_dict({
        "id": row["id"],
        "sourceId": row["source_id"],
        "targetId": row["target_id"],
        "type": row["type"],
        "description": row["description"],
        "keywords": json.loads(row["keywords"]),
        "sourceChunkIds": json.loads(row["source_chunk_ids"]),
        "fields": json.loads(row["fields"]),
    })


class SQLiteGraphStorage:
    """SQLite-backed graph store"""

    def __init__(self, path: str):
        """
        Args:
            path: Database file, or ":memory:"
        """
        if path != ":memory:":
            Path(path).expanduser().parent.mkdir(parents=True, exist_ok=True)
            path = str(Path(path).expanduser())
        self.path = path
        self.conn = sqlite3.connect(path)
        self.conn.row_factory = sqlite3.Row
        self.conn.executescript(SCHEMA)
        logger.info(f"Opened graph database at {path}")

    def close(self) -> None:
        self.conn.close()

    async def add_entity(self, entity: Entity) -> None:
        with self.conn:
            self.conn.execute(
                "INSERT OR REPLACE INTO entities (id, name, type, description, source_chunk_ids, fields) "
                "VALUES (?, ?, ?, ?, ?, ?)",
                (
                    entity.id,
                    entity.name,
                    entity.type,
                    entity.description,
                    json.dumps(entity.source_chunk_ids),
                    json.dumps(fields_to_dict(entity.fields)),
                ),
            )

    async def add_relation(self, relation: Relation) -> None:
        with self.conn:
            self.conn.execute(
                "INSERT OR REPLACE INTO relations "
                "(id, source_id, target_id, type, description, keywords, source_chunk_ids, fields) "
                "VALUES (?, ?, ?, ?, ?, ?, ?, ?)",
                (
                    relation.id,
                    relation.source_id,
                    relation.target_id,
                    relation.type,
                    relation.description,
                    json.dumps(relation.keywords),
                    json.dumps(relation.source_chunk_ids),
                    json.dumps(fields_to_dict(relation.fields)),
                ),
            )

    async def get_entity(self, entity_id: str) -> Optional[Entity]:
        row = self.conn.execute("SELECT * FROM entities WHERE id = ?", (entity_id,)).fetchone()
        return _entity_from_row(row) if row else None

    async def get_entities(self, filter: Optional[Dict[str, Any]] = None) -> List[Entity]:
        rows = self.conn.execute("SELECT * FROM entities ORDER BY rowid").fetchall()
        entities = [_entity_from_row(row) for row in rows]
        return [e for e in entities if matches_entity_filter(e, filter)]

    def _relations_where(self, clause: str, params: tuple) -> List[Relation]:
        rows = self.conn.execute(f"SELECT * FROM relations WHERE {clause} ORDER BY rowid", params).fetchall()
        return [_relation_from_row(row) for row in rows]

    async def get_relations(self, entity_id: str, direction: str = "both") -> List[Relation]:
        if direction == "out":
            return self._relations_where("source_id = ?", (entity_id,))
        if direction == "in":
            return self._relations_where("target_id = ?", (entity_id,))
        return self._relations_where("source_id = ? OR target_id = ?", (entity_id, entity_id))

    async def traverse(
        self, start_id: str, depth: int, relation_types: Optional[Sequence[str]] = None
    ) -> List[Entity]:
        visited = set()
        result: List[Entity] = []

        async def visit(entity_id: str, level: int) -> None:
            if entity_id in visited or level > depth:
                return
            visited.add(entity_id)
            entity = await self.get_entity(entity_id)
            if entity is not None:
                result.append(entity)
            for relation in self._relations_where("source_id = ?", (entity_id,)):
                if relation_types and relation.type not in relation_types:
                    continue
                await visit(relation.target_id, level + 1)

        await visit(start_id, 0)
        return result

    async def find_path(self, from_id: str, to_id: str, max_depth: int = 5) -> List[Relation]:
        if from_id == to_id:
            return []
        queue = deque([(from_id, [])])
        visited = {from_id}
        while queue:
            entity_id, path = queue.popleft()
            if len(path) >= max_depth:
                continue
            for relation in self._relations_where("source_id = ?", (entity_id,)):
                if relation.target_id in visited:
                    continue
                next_path = path + [relation]
                if relation.target_id == to_id:
                    return next_path
                visited.add(relation.target_id)
                queue.append((relation.target_id, next_path))
        return []

    async def delete_entity(self, entity_id: str) -> None:
        with self.conn:
            self.conn.execute("DELETE FROM relations WHERE source_id = ? OR target_id = ?", (entity_id, entity_id))
            self.conn.execute("DELETE FROM entities WHERE id = ?", (entity_id,))

    async def delete_relation(self, relation_id: str) -> None:
        with self.conn:
            self.conn.execute("DELETE FROM relations WHERE id = ?", (relation_id,))
