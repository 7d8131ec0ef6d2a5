"""Data models for the migration toolkit."""

from .config import (
    DatabaseType,
    FirestoreConfig,
    PostgreSQLConfig,
    SupabaseConfig,
    MongoDBConfig,
    MemoryConfig,
    ConnectionConfig,
    FieldMapping,
    MappingOptions,
    SchemaMapping,
    MigrationSettings,
    MigrationConfig,
    validate_migration_config,
    validate_connection_config,
    validate_schema_mapping,
)
from .schema import (
    FieldType,
    ColumnDefinition,
    ForeignKey,
    TableSchema,
    CollectionInfo,
)
from .results import (
    ConnectionTestResult,
    RecordError,
    WriteResult,
    CreateTableResult,
)
from .status import (
    PipelineState,
    LogEntry,
    ErrorEntry,
    StatusSnapshot,
    PipelineStatus,
)

__all__ = [
    "DatabaseType",
    "FirestoreConfig",
    "PostgreSQLConfig",
    "SupabaseConfig",
    "MongoDBConfig",
    "MemoryConfig",
    "ConnectionConfig",
    "FieldMapping",
    "MappingOptions",
    "SchemaMapping",
    "MigrationSettings",
    "MigrationConfig",
    "validate_migration_config",
    "validate_connection_config",
    "validate_schema_mapping",
    "FieldType",
    "ColumnDefinition",
    "ForeignKey",
    "TableSchema",
    "CollectionInfo",
    "ConnectionTestResult",
    "RecordError",
    "WriteResult",
    "CreateTableResult",
    "PipelineState",
    "LogEntry",
    "ErrorEntry",
    "StatusSnapshot",
    "PipelineStatus",
]
