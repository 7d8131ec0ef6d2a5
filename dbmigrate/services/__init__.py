"""Service layer for the migration toolkit."""

from .transformer import (
    MISSING,
    RecordTransformer,
    apply_transform,
    convert_type,
    flatten_record,
    get_nested_value,
    set_nested_value,
    transform_record,
)
from .schema_inference import infer_document_schema, infer_table_schema

__all__ = [
    "MISSING",
    "RecordTransformer",
    "apply_transform",
    "convert_type",
    "flatten_record",
    "get_nested_value",
    "set_nested_value",
    "transform_record",
    "infer_document_schema",
    "infer_table_schema",
]
