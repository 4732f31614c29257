"""
Unit tests for the extraction prompt and response parser.
"""

import pytest

from flowrag.errors import ExtractionParseError
from flowrag.prompt import build_extraction_prompt, parse_extraction_response
from flowrag.schema import define_schema


class TestBuildExtractionPrompt:
    """Tests for build_extraction_prompt()"""

    def test_includes_types_and_content(self):
        """Type vocabularies and chunk text appear in the prompt"""
        schema = define_schema(["SERVICE", "DATABASE"], ["WRITES"])
        prompt = build_extraction_prompt("ServiceA writes to DatabaseB", [], schema)

        assert "Entity types: SERVICE, DATABASE" in prompt
        assert "Relation types: WRITES" in prompt
        assert "ServiceA writes to DatabaseB" in prompt
        assert "Known entities" not in prompt

    def test_known_entities_listed(self):
        """Known entity names are offered for coreference"""
        schema = define_schema(["SERVICE"], ["WRITES"])
        prompt = build_extraction_prompt("text", ["ServiceA", "DatabaseB"], schema)
        assert "Known entities to reference: ServiceA, DatabaseB" in prompt

    def test_custom_fields_described(self):
        """Custom field definitions are included with a fields instruction"""
        schema = define_schema(
            ["SERVICE"], ["WRITES"],
            entity_fields={"tier": {"type": "enum", "values": ["gold"]}},
        )
        prompt = build_extraction_prompt("text", [], schema)
        assert "Entity custom fields:" in prompt
        assert '"values": ["gold"]' in prompt
        assert 'Include a "fields" object' in prompt


class TestParseExtractionResponse:
    """Tests for parse_extraction_response()"""

    def test_plain_json(self):
        """A JSON object is parsed into entities and relations"""
        result = parse_extraction_response(
            '{"entities": [{"name": "A", "type": "SERVICE"}],'
            ' "relations": [{"source": "A", "target": "B", "type": "WRITES", "keywords": ["db"]}]}'
        )
        assert result.entities[0].name == "A"
        assert result.relations[0].keywords == ["db"]

    def test_code_fence_stripped(self):
        """Markdown fences around the JSON are tolerated"""
        result = parse_extraction_response('```json\n{"entities": [], "relations": []}\n```')
        assert result.entities == []

    def test_incomplete_items_dropped(self):
        """Entities without a name and relations missing an endpoint are dropped"""
        result = parse_extraction_response(
            '{"entities": [{"type": "SERVICE"}], "relations": [{"source": "A", "type": "WRITES"}]}'
        )
        assert result.entities == []
        assert result.relations == []

    def test_invalid_json(self):
        """Non-JSON responses raise ExtractionParseError"""
        with pytest.raises(ExtractionParseError):
            parse_extraction_response("I could not find any entities.")

    def test_non_object(self):
        """A JSON array is not an extraction"""
        with pytest.raises(ExtractionParseError):
            parse_extraction_response("[1, 2, 3]")
