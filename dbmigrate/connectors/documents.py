"""Schema helpers shared by document-store connectors."""

from datetime import date, datetime
from typing import Any, Dict, Iterable, List

from ..models.schema import ColumnDefinition, FieldType, TableSchema

# Number of documents sampled when synthesizing a collection schema
SCHEMA_SAMPLE_SIZE = 10


def infer_value_type(value: Any) -> str:
    """
    Infer the field type of a single document value.

    Store-specific values (Firestore timestamps, Mongo ObjectIds) are
    recognized by duck typing so this module stays driver independent.
    """
    if value is None:
        return "null"
    if isinstance(value, bool):
        return FieldType.BOOLEAN.value
    if isinstance(value, int):
        return FieldType.INTEGER.value
    if isinstance(value, float):
        return FieldType.INTEGER.value if value.is_integer() else FieldType.NUMBER.value
    if isinstance(value, str):
        return FieldType.STRING.value
    if isinstance(value, (datetime, date)):
        return FieldType.TIMESTAMP.value
    if isinstance(value, (bytes, bytearray)):
        return FieldType.BINARY.value
    if isinstance(value, (list, tuple)):
        return FieldType.ARRAY.value
    if isinstance(value, dict):
        return FieldType.OBJECT.value

    type_name = type(value).__name__
    if type_name in ("DatetimeWithNanoseconds", "Timestamp"):
        return FieldType.TIMESTAMP.value
    if type_name == "GeoPoint":
        return "geopoint"
    if type_name == "ObjectId":
        return "objectid"
    if hasattr(value, "path") and hasattr(value, "id"):
        return "reference"
    return "unknown"


def infer_document_types(document: Dict[str, Any]) -> Dict[str, str]:
    """Map each top-level field of a document to its inferred type."""
    return {key: infer_value_type(value) for key, value in document.items()}


def merge_sampled_schema(samples: Iterable[Dict[str, Any]]) -> TableSchema:
    """
    Build a schema from sampled documents.

    Each field's type is the union of the types it was seen with. A field
    seen with one type gets a plain string type; a field seen with several
    gets a sorted list. Fields missing from some samples, or seen as null,
    are nullable.
    """
    seen: Dict[str, set] = {}
    presence: Dict[str, int] = {}
    total = 0

    for document in samples:
        total += 1
        for key, type_name in infer_document_types(document).items():
            seen.setdefault(key, set()).add(type_name)
            presence[key] = presence.get(key, 0) + 1

    columns: Dict[str, ColumnDefinition] = {}
    for key, types in seen.items():
        nullable = "null" in types or presence[key] < total
        non_null = sorted(t for t in types if t != "null") or ["null"]
        column_type: Any = non_null[0] if len(non_null) == 1 else non_null
        columns[key] = ColumnDefinition(type=column_type, nullable=nullable)

    primary_keys: List[str] = ["_id"] if "_id" in columns else []
    return TableSchema(columns=columns, primary_keys=primary_keys)
