"""
Extraction Prompt - Standard entity/relation extraction prompt and parser

Every LLM extractor shares the same prompt shape and the same JSON
contract for the response.
"""

import json
import re
from typing import Sequence

from flowrag.errors import ExtractionParseError
from flowrag.schema import Schema
from flowrag.types import ExtractionResult

_FENCE_RE = re.compile(r"^```(?:json)?\s*|\s*```$", re.IGNORECASE)


def _fields_json(fields) -> str:
    return json.dumps({name: definition.to_dict() for name, definition in fields.items()})


def build_extraction_prompt(content: str, known_entities: Sequence[str], schema: Schema) -> str:
    """
    Build the extraction prompt for one chunk.

    Args:
        content: Chunk text
        known_entities: Names already in the graph, for coreference
        schema: Type vocabulary and custom field definitions

    Returns:
        Prompt asking for a JSON object with "entities" and "relations"
    """
    entity_types = ", ".join(schema.entity_types)
    relation_types = ", ".join(schema.relation_types)

    known = f"\n\nKnown entities to reference: {', '.join(known_entities)}" if known_entities else ""
    entity_fields = f"\n\nEntity custom fields: {_fields_json(schema.entity_fields)}" if schema.entity_fields else ""
    relation_fields = (
        f"\n\nRelation custom fields: {_fields_json(schema.relation_fields)}" if schema.relation_fields else ""
    )
    fields_instruction = (
        '\nInclude a "fields" object in each entity/relation with the custom field values when applicable.'
        if entity_fields or relation_fields
        else ""
    )
    entity_fields_slot = ',\n      "fields": {}' if entity_fields else ""
    relation_fields_slot = ',\n      "fields": {}' if relation_fields else ""

    return f"""Extract entities and relations from the following content.

Entity types: {entity_types}
Relation types: {relation_types}{known}{entity_fields}{relation_fields}

Content:
{content}

Return a JSON object with this structure:
{{
  "entities": [
    {{
      "name": "entity name",
      "type": "entity type from the list above, or 'Other' if not matching",
      "description": "brief description of the entity"{entity_fields_slot}
    }}
  ],
  "relations": [
    {{
      "source": "source entity name",
      "target": "target entity name",
      "type": "relation type from the list above",
      "description": "description of the relationship",
      "keywords": ["keyword1", "keyword2"]{relation_fields_slot}
    }}
  ]
}}

Focus on technical entities and their relationships. Be precise and avoid duplicates.{fields_instruction}"""


def parse_extraction_response(text: str) -> ExtractionResult:
    """
    Parse an LLM response into an ExtractionResult.

    Markdown code fences around the JSON are tolerated. Entities without a
    name and relations without both endpoints are dropped.

    Raises:
        ExtractionParseError: If the response is not a JSON object
    """
    cleaned = _FENCE_RE.sub("", text.strip())
    try:
        data = json.loads(cleaned)
    except json.JSONDecodeError as e:
        raise ExtractionParseError(f"Extractor returned invalid JSON: {e}") from e
    if not isinstance(data, dict):
        raise ExtractionParseError(f"Extractor returned {type(data).__name__}, expected an object")
    return ExtractionResult.from_dict(data)
