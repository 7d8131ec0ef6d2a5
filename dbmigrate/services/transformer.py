"""Record transformation: field mapping, type coercion and flattening."""

import copy
import json
import logging
from datetime import date, datetime, timezone
from typing import Any, Callable, Dict, Iterable, List, Optional

from dateutil import parser as date_parser

from ..exceptions import CoercionError
from ..models.config import SchemaMapping

logger = logging.getLogger(__name__)


class _Missing:
    """Marker for a path that does not exist in a record (distinct from None)."""

    def __repr__(self) -> str:
        return "MISSING"

    def __bool__(self) -> bool:
        return False


MISSING = _Missing()

STRING_TYPES = {"string", "text", "uuid"}
NUMBER_TYPES = {"number", "float", "decimal"}
INTEGER_TYPES = {"integer", "int", "bigint"}
DATETIME_TYPES = {"timestamp", "datetime"}
OBJECT_TYPES = {"json", "object"}

TRUE_STRINGS = {"true", "1", "yes", "y", "on", "t"}
FALSE_STRINGS = {"false", "0", "no", "n", "off", "f", ""}

WarningCallback = Callable[[str, Dict[str, Any]], None]


def get_nested_value(data: Any, path: str) -> Any:
    """
    Get a nested value using dot notation.

    Numeric parts index into lists (``items.0.sku``). Returns MISSING when
    any part of the path does not exist.
    """
    value = data
    for part in path.split("."):
        if isinstance(value, dict):
            if part not in value:
                return MISSING
            value = value[part]
        elif isinstance(value, list) and part.isdigit():
            idx = int(part)
            if idx >= len(value):
                return MISSING
            value = value[idx]
        else:
            return MISSING
    return value


def set_nested_value(data: Dict[str, Any], path: str, value: Any) -> None:
    """Set a nested value using dot notation, creating intermediate dicts."""
    parts = path.split(".")
    current = data

    for part in parts[:-1]:
        if not isinstance(current.get(part), dict):
            current[part] = {}
        current = current[part]

    current[parts[-1]] = value


def to_canonical_string(value: Any) -> str:
    """Canonical textual form used for any -> string coercion."""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, (dict, list)):
        return json.dumps(value, default=str)
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="replace")
    return str(value)


def _to_number(value: Any, integer: bool) -> Any:
    if isinstance(value, bool):
        return int(value) if integer else float(value)
    if isinstance(value, datetime):
        value = value.timestamp()
    if isinstance(value, str):
        text = value.strip()
        try:
            number: Any = int(text)
        except ValueError:
            number = float(text)
        value = number
    if not isinstance(value, (int, float)):
        raise TypeError(f"cannot convert {type(value).__name__} to a number")
    if integer:
        # Non-integral values are kept as floats rather than truncated
        if isinstance(value, float) and value.is_integer():
            return int(value)
    return value


def _to_boolean(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return value != 0
    if isinstance(value, str):
        text = value.strip().lower()
        if text in TRUE_STRINGS:
            return True
        if text in FALSE_STRINGS:
            return False
        raise ValueError(f"unrecognized boolean string {value!r}")
    return bool(value)


def _to_datetime(value: Any) -> datetime:
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    if isinstance(value, bool):
        raise TypeError("cannot convert boolean to a date/time")
    if isinstance(value, (int, float)):
        # Numbers are epoch seconds
        return datetime.fromtimestamp(value, tz=timezone.utc)
    if isinstance(value, str):
        return date_parser.parse(value)
    raise TypeError(f"cannot convert {type(value).__name__} to a date/time")


def convert_type(value: Any, source_type: str, target_type: str) -> Any:
    """
    Convert a value from one field type to another.

    None and MISSING pass through untouched, as does any value whose source
    and target types are equal.

    Raises:
        CoercionError: if the value cannot be represented as ``target_type``
    """
    if value is None or value is MISSING:
        return value

    source = (source_type or "").lower()
    target = (target_type or "").lower()
    if source == target:
        return value

    try:
        if target in STRING_TYPES:
            return to_canonical_string(value)
        if target in INTEGER_TYPES:
            return _to_number(value, integer=True)
        if target in NUMBER_TYPES:
            number = _to_number(value, integer=False)
            return float(number) if target == "float" else number
        if target == "boolean":
            return _to_boolean(value)
        if target == "date":
            return _to_datetime(value).date()
        if target in DATETIME_TYPES:
            return _to_datetime(value)
        if target == "json":
            return json.loads(value) if isinstance(value, str) else value
    except CoercionError:
        raise
    except (ValueError, TypeError, OverflowError, OSError) as e:
        raise CoercionError(value, source_type, target_type, str(e)) from e

    return value


def apply_transform(value: Any, transform_name: Optional[str]) -> Any:
    """Apply a named string transform. Unknown names are a no-op."""
    if not transform_name or value is None or value is MISSING:
        return value

    name = transform_name.strip()
    if name in ("toLowerCase", "lowercase"):
        return to_canonical_string(value).lower()
    if name in ("toUpperCase", "uppercase"):
        return to_canonical_string(value).upper()
    if name == "trim":
        return to_canonical_string(value).strip()
    return value


def flatten_record(
    data: Dict[str, Any],
    prefix: Optional[str] = None,
    leaf_paths: Optional[Iterable[str]] = None
) -> Dict[str, Any]:
    """
    Flatten nested dicts into underscore-joined top-level keys.

    Lists and date/time values are leaves and are never expanded. Dicts at
    one of ``leaf_paths`` (dotted paths into ``data``) are kept whole too.
    """
    leaves = set(leaf_paths or ())
    flattened: Dict[str, Any] = {}

    def walk(value: Any, key: str, path: str) -> None:
        if isinstance(value, dict) and path not in leaves:
            for child_key, child in value.items():
                walk(child, f"{key}_{child_key}", f"{path}.{child_key}")
        else:
            flattened[key] = value

    pre = f"{prefix}_" if prefix else ""
    for key, value in data.items():
        walk(value, f"{pre}{key}", key)

    return flattened


def transform_record(
    record: Dict[str, Any],
    mapping: SchemaMapping,
    on_warning: Optional[WarningCallback] = None
) -> Dict[str, Any]:
    """
    Transform one source record into one target record.

    Pure: the input record is never mutated and identical inputs always give
    identical outputs. Coercion failures are reported through ``on_warning``
    and the original value is kept.

    Args:
        record: Source record
        mapping: Schema mapping with ordered field mappings
        on_warning: Called with (message, meta) for each soft failure

    Returns:
        Transformed record
    """
    options = mapping.options
    skip_fields = set(options.skip_fields)
    transformed: Dict[str, Any] = {}

    for field_mapping in mapping.field_mappings:
        if field_mapping.source_field in skip_fields or field_mapping.target_field in skip_fields:
            continue

        value = get_nested_value(record, field_mapping.source_field)
        if value is MISSING:
            value = field_mapping.default_value
        value = copy.deepcopy(value)

        try:
            value = convert_type(value, field_mapping.source_type, field_mapping.target_type)
        except CoercionError as e:
            meta = {
                "field": field_mapping.source_field,
                "source_type": field_mapping.source_type,
                "target_type": field_mapping.target_type,
                "error": str(e),
            }
            logger.warning(f"{e} for field {field_mapping.source_field}, keeping original value")
            if on_warning:
                on_warning(str(e), meta)

        if field_mapping.transform:
            value = apply_transform(value, field_mapping.transform)

        set_nested_value(transformed, field_mapping.target_field, value)

    if options.flatten:
        leaf_paths = [
            fm.target_field for fm in mapping.field_mappings
            if fm.target_type.lower() in OBJECT_TYPES
        ]
        return flatten_record(transformed, options.prefix, leaf_paths)

    return transformed


class RecordTransformer:
    """
    Applies a schema mapping to records and collects soft-failure warnings.

    The per-record work is done by the pure ``transform_record`` function;
    this class only accumulates the warnings of one run so the pipeline can
    surface them as log entries.
    """

    def __init__(self):
        self._warnings: List[Dict[str, Any]] = []

    def _collect(self, message: str, meta: Dict[str, Any]) -> None:
        self._warnings.append({"message": message, **meta})

    def transform(self, record: Dict[str, Any], mapping: SchemaMapping) -> Dict[str, Any]:
        """Transform a single record."""
        return transform_record(record, mapping, on_warning=self._collect)

    def transform_batch(
        self,
        records: List[Dict[str, Any]],
        mapping: SchemaMapping
    ) -> List[Dict[str, Any]]:
        """Transform a batch of records, preserving order."""
        return [self.transform(record, mapping) for record in records]

    def preview(
        self,
        records: List[Dict[str, Any]],
        mapping: SchemaMapping,
        limit: Optional[int] = None
    ) -> List[Dict[str, Any]]:
        """Transform sample records and pair each with its source."""
        sample = records if limit is None else records[:limit]
        return [
            {"source": record, "transformed": self.transform(record, mapping)}
            for record in sample
        ]

    def drain_warnings(self) -> List[Dict[str, Any]]:
        """Return and clear the warnings collected so far."""
        warnings, self._warnings = self._warnings, []
        return warnings
