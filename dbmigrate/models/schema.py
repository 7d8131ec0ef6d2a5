"""Schema models for discovered collections and tables."""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Union
from enum import Enum


class FieldType(str, Enum):
    """Standard field types shared by all connectors."""
    STRING = "string"
    NUMBER = "number"
    INTEGER = "integer"
    FLOAT = "float"
    BOOLEAN = "boolean"
    DATE = "date"
    TIMESTAMP = "timestamp"
    JSON = "json"
    ARRAY = "array"
    OBJECT = "object"
    BINARY = "binary"
    TEXT = "text"
    UUID = "uuid"


@dataclass
class ColumnDefinition:
    """
    Definition of one column (or document field).

    For sampled document schemas ``type`` is a list when the field was seen
    with more than one inferred type.
    """
    type: Union[str, List[str]]
    nullable: bool = True
    default: Optional[Any] = None
    max_length: Optional[int] = None

    @property
    def types(self) -> List[str]:
        """All types observed for this column."""
        if isinstance(self.type, list):
            return list(self.type)
        return [self.type]

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary representation."""
        result: Dict[str, Any] = {
            "type": self.type,
            "nullable": self.nullable,
        }
        if self.default is not None:
            result["default"] = self.default
        if self.max_length is not None:
            result["max_length"] = self.max_length
        return result

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ColumnDefinition":
        """Create from dictionary representation."""
        return cls(
            type=data.get("type", FieldType.STRING.value),
            nullable=data.get("nullable", True),
            default=data.get("default"),
            max_length=data.get("max_length", data.get("maxLength")),
        )


@dataclass
class ForeignKey:
    """A foreign key relationship from one column to another table."""
    column: str
    foreign_table: str
    foreign_column: str
    constraint_name: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary representation."""
        return {
            "column": self.column,
            "foreign_table": self.foreign_table,
            "foreign_column": self.foreign_column,
            "constraint_name": self.constraint_name,
        }


@dataclass
class TableSchema:
    """Schema of a table, or the synthesized schema of a document collection."""
    columns: Dict[str, ColumnDefinition] = field(default_factory=dict)
    primary_keys: List[str] = field(default_factory=list)
    foreign_keys: List[ForeignKey] = field(default_factory=list)

    @property
    def column_names(self) -> List[str]:
        return list(self.columns.keys())

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary representation."""
        return {
            "columns": {k: v.to_dict() for k, v in self.columns.items()},
            "primary_keys": self.primary_keys,
            "foreign_keys": [fk.to_dict() for fk in self.foreign_keys],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TableSchema":
        """Create from dictionary representation."""
        columns = {}
        for name, column_data in data.get("columns", {}).items():
            if isinstance(column_data, dict):
                columns[name] = ColumnDefinition.from_dict(column_data)
            else:
                columns[name] = ColumnDefinition(type=column_data)

        foreign_keys = []
        for fk_data in data.get("foreign_keys", []):
            foreign_keys.append(ForeignKey(
                column=fk_data["column"],
                foreign_table=fk_data["foreign_table"],
                foreign_column=fk_data["foreign_column"],
                constraint_name=fk_data.get("constraint_name"),
            ))

        return cls(
            columns=columns,
            primary_keys=list(data.get("primary_keys", [])),
            foreign_keys=foreign_keys,
        )


@dataclass
class CollectionInfo:
    """A discovered collection or table."""
    name: str
    type: str  # "table" or "collection"
    schema: Optional[TableSchema] = None
    approx_count: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary representation."""
        return {
            "name": self.name,
            "type": self.type,
            "schema": self.schema.to_dict() if self.schema else None,
            "approx_count": self.approx_count,
        }
