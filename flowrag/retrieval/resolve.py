"""Entity resolution: find a graph entity from a user-supplied name or id"""

from flowrag.errors import EntityNotFoundError
from flowrag.interfaces import GraphStorage
from flowrag.types import Entity


async def resolve_entity(graph: GraphStorage, query: str) -> Entity:
    """
    Resolve a name or id to an entity.

    Tries, in order: exact id, case-insensitive name, case-insensitive
    substring of the name.

    Raises:
        EntityNotFoundError: If nothing matches
    """
    entity = await graph.get_entity(query)
    if entity is not None:
        return entity

    lowered = query.lower()
    entities = await graph.get_entities()

    for candidate in entities:
        if candidate.name.lower() == lowered:
            return candidate

    for candidate in entities:
        if lowered in candidate.name.lower():
            return candidate

    raise EntityNotFoundError(query)
