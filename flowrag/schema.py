"""
Schema - Entity and relation type vocabularies

Types are suggestions to the extractor. An LLM is free to return a type
outside the vocabulary; such types are bucketed under "Other" instead of
being dropped. Custom fields declared here are coerced into typed values
(plain strings or EnumValue) before they reach graph storage.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

from flowrag.types import EnumValue, FieldValue

OTHER = "Other"

FIELD_TYPES = ("string", "enum")


@dataclass(frozen=True)
class FieldDefinition:
    """
    Custom field on documents, entities or relations.

    Attributes:
        type: "string" or "enum"
        values: Allowed values for enum fields
        default: Value used when the extractor returns nothing usable
        filterable: Whether storage backends should index the field
    """
    type: str = "string"
    values: Tuple[str, ...] = ()
    default: Optional[str] = None
    filterable: bool = False

    def __post_init__(self):
        if self.type not in FIELD_TYPES:
            raise ValueError(f"Unknown field type: {self.type} (expected one of {FIELD_TYPES})")
        if self.type == "enum" and not self.values:
            raise ValueError("Enum fields require at least one value")

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "FieldDefinition":
        return cls(
            type=data.get("type", "string"),
            values=tuple(data.get("values") or ()),
            default=data.get("default"),
            filterable=bool(data.get("filterable", False)),
        )

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {"type": self.type}
        if self.values:
            out["values"] = list(self.values)
        if self.default is not None:
            out["default"] = self.default
        if self.filterable:
            out["filterable"] = True
        return out

    def coerce(self, raw: Any) -> Optional[FieldValue]:
        """Turn a raw extractor value into a typed field value, or None"""
        if self.type == "enum":
            if raw is not None and str(raw) in self.values:
                return EnumValue(str(raw))
            if self.default is not None:
                return EnumValue(self.default)
            return None
        if raw is None or raw == "":
            return self.default
        return str(raw)


def _field_map(fields: Optional[Mapping[str, Any]]) -> Dict[str, FieldDefinition]:
    out: Dict[str, FieldDefinition] = {}
    for name, definition in (fields or {}).items():
        if isinstance(definition, FieldDefinition):
            out[name] = definition
        else:
            out[name] = FieldDefinition.from_dict(definition)
    return out


@dataclass(frozen=True)
class Schema:
    """Immutable type vocabulary; build with define_schema()"""
    entity_types: Tuple[str, ...]
    relation_types: Tuple[str, ...]
    document_fields: Dict[str, FieldDefinition] = field(default_factory=dict)
    entity_fields: Dict[str, FieldDefinition] = field(default_factory=dict)
    relation_fields: Dict[str, FieldDefinition] = field(default_factory=dict)

    def is_valid_entity_type(self, type_name: str) -> bool:
        return type_name in self.entity_types

    def is_valid_relation_type(self, type_name: str) -> bool:
        return type_name in self.relation_types

    def normalize_entity_type(self, type_name: str) -> str:
        return type_name if self.is_valid_entity_type(type_name) else OTHER

    def normalize_relation_type(self, type_name: str) -> str:
        return type_name if self.is_valid_relation_type(type_name) else OTHER

    def coerce_entity_fields(self, raw: Optional[Mapping[str, Any]]) -> Dict[str, FieldValue]:
        return _coerce(self.entity_fields, raw)

    def coerce_relation_fields(self, raw: Optional[Mapping[str, Any]]) -> Dict[str, FieldValue]:
        return _coerce(self.relation_fields, raw)

    def coerce_document_fields(self, raw: Optional[Mapping[str, Any]]) -> Dict[str, FieldValue]:
        return _coerce(self.document_fields, raw)


def _coerce(definitions: Dict[str, FieldDefinition], raw: Optional[Mapping[str, Any]]) -> Dict[str, FieldValue]:
    # Undeclared keys are dropped
    raw = raw or {}
    out: Dict[str, FieldValue] = {}
    for name, definition in definitions.items():
        value = definition.coerce(raw.get(name))
        if value is not None:
            out[name] = value
    return out


def define_schema(
    entity_types: Sequence[str],
    relation_types: Sequence[str],
    document_fields: Optional[Mapping[str, Any]] = None,
    entity_fields: Optional[Mapping[str, Any]] = None,
    relation_fields: Optional[Mapping[str, Any]] = None,
) -> Schema:
    """
    Define the schema used for extraction and normalization.

    Args:
        entity_types: Suggested entity types (at least one)
        relation_types: Suggested relation types (at least one)
        document_fields: Custom document fields, name -> definition
        entity_fields: Custom entity fields, name -> definition
        relation_fields: Custom relation fields, name -> definition

    Raises:
        ValueError: If a type list is empty or a field definition is invalid
    """
    entity_list: List[str] = [str(t) for t in entity_types]
    relation_list: List[str] = [str(t) for t in relation_types]
    if not entity_list:
        raise ValueError("Schema requires at least one entity type")
    if not relation_list:
        raise ValueError("Schema requires at least one relation type")

    return Schema(
        entity_types=tuple(entity_list),
        relation_types=tuple(relation_list),
        document_fields=_field_map(document_fields),
        entity_fields=_field_map(entity_fields),
        relation_fields=_field_map(relation_fields),
    )


def schema_from_config(config: Mapping[str, Any]) -> Schema:
    """Build a schema from the `schema` section of a config file"""
    return define_schema(
        entity_types=config.get("entity_types") or [],
        relation_types=config.get("relation_types") or [],
        document_fields=config.get("document_fields"),
        entity_fields=config.get("entity_fields"),
        relation_fields=config.get("relation_fields"),
    )
