"""
Unit tests for the SQLite graph store.
"""

import pytest

from flowrag.storage.sqlite_graph import SQLiteGraphStorage
from flowrag.types import EnumValue, Entity, Relation


@pytest.fixture
def graph(tmp_path):
    store = SQLiteGraphStorage(str(tmp_path / "graph.db"))
    yield store
    store.close()


def relation(source, type_, target, **kwargs):
    return Relation(id=f"{source}-{type_}-{target}", source_id=source, target_id=target, type=type_, **kwargs)


class TestSQLiteGraphStorage:
    """Tests for SQLiteGraphStorage"""

    @pytest.mark.asyncio
    async def test_entity_round_trip(self, graph):
        """Lists and typed fields survive storage"""
        original = Entity(
            id="ServiceA",
            name="ServiceA",
            type="SERVICE",
            description="Order service",
            source_chunk_ids=["chunk:d:0", "chunk:d:1"],
            fields={"tier": EnumValue("gold"), "owner": "payments"},
        )
        await graph.add_entity(original)
        assert await graph.get_entity("ServiceA") == original

    @pytest.mark.asyncio
    async def test_upsert_replaces(self, graph):
        """Adding an entity with an existing id overwrites it"""
        await graph.add_entity(Entity(id="A", name="A", type="SERVICE", description="old"))
        await graph.add_entity(Entity(id="A", name="A", type="SERVICE", description="new"))

        entities = await graph.get_entities()
        assert len(entities) == 1
        assert entities[0].description == "new"

    @pytest.mark.asyncio
    async def test_get_entities_filter(self, graph):
        """Type filters are applied"""
        await graph.add_entity(Entity(id="A", name="A", type="SERVICE"))
        await graph.add_entity(Entity(id="B", name="B", type="DATABASE"))
        assert [e.id for e in await graph.get_entities({"type": "DATABASE"})] == ["B"]

    @pytest.mark.asyncio
    async def test_relations_and_traversal(self, graph):
        """Directional lookups, traversal and shortest path"""
        for name in "ABC":
            await graph.add_entity(Entity(id=name, name=name, type="SERVICE"))
        await graph.add_relation(relation("A", "WRITES", "B", keywords=["orders"]))
        await graph.add_relation(relation("B", "WRITES", "C"))

        out = await graph.get_relations("A", "out")
        assert out[0].keywords == ["orders"]
        assert [r.source_id for r in await graph.get_relations("C", "in")] == ["B"]

        assert [e.id for e in await graph.traverse("A", 10)] == ["A", "B", "C"]
        assert [r.id for r in await graph.find_path("A", "C")] == ["A-WRITES-B", "B-WRITES-C"]
        assert await graph.find_path("C", "A") == []

    @pytest.mark.asyncio
    async def test_delete_entity_cascades(self, graph):
        """Relations touching a deleted entity are removed"""
        for name in "AB":
            await graph.add_entity(Entity(id=name, name=name, type="SERVICE"))
        await graph.add_relation(relation("A", "WRITES", "B"))

        await graph.delete_entity("B")

        assert await graph.get_relations("A", "both") == []

    @pytest.mark.asyncio
    async def test_delete_relation(self, graph):
        """delete_relation removes only that relation"""
        await graph.add_relation(relation("A", "WRITES", "B"))
        await graph.add_relation(relation("A", "READS", "B"))

        await graph.delete_relation("A-WRITES-B")

        assert [r.type for r in await graph.get_relations("A", "out")] == ["READS"]
