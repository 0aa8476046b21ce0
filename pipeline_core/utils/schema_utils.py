"""
Structural message schemas.

A schema document (JSON-Schema-like dict, or the ``{"field": "type"}``
shorthand) is parsed into a small typed tree and compared structurally:
a producer is compatible with a consumer when every field the consumer
relies on exists in the producer with a compatible type.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, FrozenSet, List, Optional

SCALAR_KINDS = ("null", "boolean", "number", "integer", "string")
ANY = "any"
ARRAY = "array"
OBJECT = "object"

_KIND_ALIASES = {
    "bool": "boolean",
    "int": "integer",
    "float": "number",
    "str": "string",
    "list": ARRAY,
    "dict": OBJECT,
    "none": "null",
}


class SchemaError(ValueError):
    """Raised when a schema document cannot be parsed."""


@dataclass(frozen=True)
class SchemaNode:
    """One node of the schema tree."""
    kind: str
    items: Optional["SchemaNode"] = None
    properties: Dict[str, "SchemaNode"] = field(default_factory=dict)
    required: FrozenSet[str] = frozenset()

    def describe(self) -> str:
        if self.kind == ARRAY and self.items is not None:
            return f"array<{self.items.describe()}>"
        return self.kind


def _normalize_kind(value: Any, path: str) -> str:
    if not isinstance(value, str):
        raise SchemaError(f"{path or '<root>'}: type must be a string, got {value!r}")
    kind = _KIND_ALIASES.get(value.lower(), value.lower())
    if kind not in SCALAR_KINDS + (ARRAY, OBJECT, ANY):
        raise SchemaError(f"{path or '<root>'}: unknown type '{value}'")
    return kind


def parse_schema(document: Any, path: str = "") -> SchemaNode:
    """
    Parse a schema document into a SchemaNode tree.

    Accepted forms:
        {"type": "object", "properties": {...}, "required": [...]}
        {"type": "array", "items": {...}}
        {"type": "string"}
        "string"                     (bare type name)
        {"name": "string", ...}      (shorthand object: every field required)
    """
    if isinstance(document, str):
        return SchemaNode(kind=_normalize_kind(document, path))
    if not isinstance(document, dict):
        raise SchemaError(f"{path or '<root>'}: schema must be an object or a type name")

    if "type" not in document and "properties" not in document and "items" not in document:
        if not document:
            return SchemaNode(kind=ANY)
        # Shorthand: {"field": <schema>}
        properties = {
            name: parse_schema(sub, _join(path, name)) for name, sub in document.items()
        }
        return SchemaNode(kind=OBJECT, properties=properties, required=frozenset(properties))

    raw_kind = document.get("type")
    if raw_kind is None:
        kind = OBJECT if "properties" in document else ARRAY if "items" in document else ANY
    elif isinstance(raw_kind, list):
        # Nullable unions such as ["string", "null"] compare on their non-null member.
        members = [k for k in raw_kind if k != "null"]
        kind = _normalize_kind(members[0], path) if len(members) == 1 else ANY
    else:
        kind = _normalize_kind(raw_kind, path)

    if kind == ARRAY:
        items = document.get("items")
        return SchemaNode(kind=ARRAY, items=parse_schema(items, _join(path, "[]")) if items else None)

    if kind == OBJECT:
        raw_properties = document.get("properties") or {}
        if not isinstance(raw_properties, dict):
            raise SchemaError(f"{path or '<root>'}: properties must be an object")
        properties = {
            name: parse_schema(sub, _join(path, name)) for name, sub in raw_properties.items()
        }
        if "required" in document:
            required = frozenset(document.get("required") or [])
        else:
            required = frozenset(properties)
        return SchemaNode(kind=OBJECT, properties=properties, required=required)

    return SchemaNode(kind=kind)


def _join(path: str, name: str) -> str:
    return f"{path}.{name}" if path else name


def _kind_satisfies(producer: str, consumer: str) -> bool:
    if consumer == ANY or producer == ANY:
        return True
    if producer == consumer:
        return True
    return producer == "integer" and consumer == "number"


def compare_schemas(producer: SchemaNode, consumer: SchemaNode, path: str = "") -> List[str]:
    """
    Return the list of mismatches preventing ``producer`` from feeding ``consumer``.

    An empty list means compatible.
    """
    where = path or "<root>"
    if not _kind_satisfies(producer.kind, consumer.kind):
        return [f"{where}: expected {consumer.describe()}, got {producer.describe()}"]

    mismatches: List[str] = []
    if consumer.kind == ARRAY and producer.kind == ARRAY:
        if consumer.items is not None and producer.items is not None:
            mismatches.extend(compare_schemas(producer.items, consumer.items, _join(path, "[]")))
    elif consumer.kind == OBJECT and producer.kind == OBJECT:
        for name in sorted(consumer.required):
            if name not in producer.properties:
                mismatches.append(f"{_join(path, name)}: missing field")
                continue
            wanted = consumer.properties.get(name)
            if wanted is not None:
                mismatches.extend(compare_schemas(producer.properties[name], wanted, _join(path, name)))
    return mismatches


def check_compatibility(producer_doc: Any, consumer_doc: Any) -> List[str]:
    """Parse both documents and compare them; parse failures are reported as mismatches."""
    try:
        producer = parse_schema(producer_doc)
        consumer = parse_schema(consumer_doc)
    except SchemaError as e:
        return [str(e)]
    return compare_schemas(producer, consumer)
