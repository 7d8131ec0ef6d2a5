"""Schema inference for table creation and document sampling."""

from typing import Any, Dict, List, Optional
import logging

from ..connectors.documents import SCHEMA_SAMPLE_SIZE, merge_sampled_schema
from ..models.config import SchemaMapping
from ..models.schema import ColumnDefinition, FieldType, TableSchema

logger = logging.getLogger(__name__)


def target_column_name(target_field: str, flatten: bool, prefix: Optional[str] = None) -> str:
    """
    Column that a target field path ends up in.

    With flattening the whole path is joined with underscores (the same keys
    ``flatten_record`` produces); without it, a nested path lands inside its
    top-level column.
    """
    parts = target_field.split(".")
    if flatten:
        name = "_".join(parts)
        return f"{prefix}_{name}" if prefix else name
    return parts[0]


def infer_table_schema(
    mapping: SchemaMapping,
    key_columns: Optional[List[str]] = None
) -> TableSchema:
    """
    Infer a minimal table schema from a mapping's target fields.

    Each column is typed by its field mapping's target type. Columns are
    nullable unless the mapping supplies a non-null default. Nested target
    paths that are not flattened become JSON columns, and json/object typed
    targets stay one column even when flattening.

    Args:
        mapping: Schema mapping
        key_columns: Columns to use as the primary key. Ignored unless every
            one of them is a column of the inferred table.

    Returns:
        TableSchema suitable for create_table
    """
    options = mapping.options
    skip_fields = set(options.skip_fields)
    columns: Dict[str, ColumnDefinition] = {}

    for field_mapping in mapping.field_mappings:
        if field_mapping.source_field in skip_fields or field_mapping.target_field in skip_fields:
            continue

        name = target_column_name(field_mapping.target_field, options.flatten, options.prefix)
        nested = not options.flatten and "." in field_mapping.target_field

        if nested:
            columns[name] = ColumnDefinition(type=FieldType.JSON.value, nullable=True)
            continue

        default = field_mapping.default_value
        scalar_default = default if isinstance(default, (str, int, float, bool)) else None
        columns[name] = ColumnDefinition(
            type=field_mapping.target_type,
            nullable=default is None,
            default=scalar_default,
        )

    primary_keys = list(key_columns or [])
    if primary_keys and all(k in columns for k in primary_keys):
        for key in primary_keys:
            columns[key].nullable = False
    else:
        primary_keys = []

    logger.debug(f"Inferred {len(columns)} columns for {mapping.target_table}")
    return TableSchema(columns=columns, primary_keys=primary_keys)


def infer_document_schema(
    records: List[Dict[str, Any]],
    sample_size: int = SCHEMA_SAMPLE_SIZE
) -> TableSchema:
    """
    Infer a schema from sample records.

    Only the first ``sample_size`` records are examined, so the result is
    advisory: fields or types that first appear later are not reported.
    """
    return merge_sampled_schema(records[:sample_size])
