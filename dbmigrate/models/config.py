"""Migration and connection configuration models."""

import json
from enum import Enum
from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError, model_validator
from pydantic.alias_generators import to_camel

from ..exceptions import ConfigurationError


class DatabaseType(str, Enum):
    """Database types a connector can be created for."""
    FIREBASE_FIRESTORE = "firebase-firestore"
    POSTGRESQL = "postgresql"
    SUPABASE = "supabase"
    MONGODB = "mongodb"
    MEMORY = "memory"


class ConfigModel(BaseModel):
    """Base for config models: camelCase aliases, snake_case attributes, immutable."""
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
        extra="ignore",
    )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary representation (camelCase keys)."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


# Connection configs

class FirestoreConfig(ConfigModel):
    type: Literal["firebase-firestore"] = "firebase-firestore"
    project_id: str = Field(min_length=1)
    service_account: Optional[Dict[str, Any]] = None
    database_url: Optional[str] = Field(default=None, alias="databaseURL")


class PostgreSQLConfig(ConfigModel):
    type: Literal["postgresql"] = "postgresql"
    host: str = Field(min_length=1)
    port: int = Field(default=5432, gt=0)
    database: str = Field(min_length=1)
    user: str = Field(min_length=1)
    password: str
    ssl: bool = False
    db_schema: str = Field(default="public", alias="schema")


class SupabaseConfig(ConfigModel):
    """
    Supabase is PostgreSQL underneath. Either a full connection string or
    discrete host/credentials may be given; SSL is on by default.
    """
    type: Literal["supabase"] = "supabase"
    connection_string: Optional[str] = None
    host: Optional[str] = None
    port: int = Field(default=5432, gt=0)
    database: str = "postgres"
    user: Optional[str] = None
    password: Optional[str] = None
    ssl: bool = True
    db_schema: str = Field(default="public", alias="schema")

    @model_validator(mode="after")
    def _require_location(self) -> "SupabaseConfig":
        if not self.connection_string and not self.host:
            raise ValueError("either connectionString or host is required")
        return self


class MongoDBConfig(ConfigModel):
    type: Literal["mongodb"] = "mongodb"
    connection_string: str = Field(min_length=1)
    database: str = Field(min_length=1)
    options: Dict[str, Any] = Field(default_factory=dict)


class MemoryConfig(ConfigModel):
    """In-process store, used for previews, dry runs and tests."""
    type: Literal["memory"] = "memory"
    collections: Dict[str, List[Dict[str, Any]]] = Field(default_factory=dict)


ConnectionConfig = Annotated[
    Union[FirestoreConfig, PostgreSQLConfig, SupabaseConfig, MongoDBConfig, MemoryConfig],
    Field(discriminator="type"),
]

_connection_adapter: TypeAdapter = TypeAdapter(ConnectionConfig)


# Mapping configs

class FieldMapping(ConfigModel):
    """Mapping between a source field path and a target field path."""
    source_field: str = Field(min_length=1)
    target_field: str = Field(min_length=1)
    source_type: str = Field(min_length=1)
    target_type: str = Field(min_length=1)
    transform: Optional[str] = None
    default_value: Any = None


class MappingOptions(ConfigModel):
    flatten: bool = False
    prefix: Optional[str] = None
    skip_fields: List[str] = Field(default_factory=list)


class SchemaMapping(ConfigModel):
    """Mapping from one source collection to one target table."""
    source_collection: str = Field(min_length=1)
    target_table: str = Field(min_length=1)
    field_mappings: List[FieldMapping] = Field(min_length=1)
    options: MappingOptions = Field(default_factory=MappingOptions)


class MigrationSettings(ConfigModel):
    batch_size: int = Field(default=100, gt=0)
    upsert: bool = False
    dry_run: bool = False
    retries: int = Field(default=3, ge=0)
    create_table: bool = False
    conflict_columns: List[str] = Field(default_factory=list)


class MigrationConfig(ConfigModel):
    """Complete configuration for one migration run."""
    source: ConnectionConfig
    destination: ConnectionConfig
    mappings: List[SchemaMapping] = Field(min_length=1)
    settings: MigrationSettings = Field(default_factory=MigrationSettings)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "MigrationConfig":
        """Create from dictionary representation, validating every field."""
        return validate_migration_config(data)

    @classmethod
    def from_json_file(cls, file_path: str) -> "MigrationConfig":
        """Load and validate a migration config from a JSON file."""
        with open(file_path, 'r') as f:
            data = json.load(f)
        # Accept both a bare config and the {"config": {...}} request shape
        if isinstance(data, dict) and "config" in data and "source" not in data:
            data = data["config"]
        return cls.from_dict(data)


def format_validation_errors(error: ValidationError) -> List[Dict[str, Any]]:
    """Flatten a pydantic ValidationError into plain dicts, one per violation."""
    errors = []
    for item in error.errors():
        errors.append({
            "loc": ".".join(str(part) for part in item["loc"]) or "<root>",
            "msg": item["msg"],
            "type": item["type"],
        })
    return errors


def validate_migration_config(data: Any) -> MigrationConfig:
    """
    Validate a migration configuration.

    Args:
        data: Raw dictionary (camelCase or snake_case keys) or an existing config

    Returns:
        Validated MigrationConfig

    Raises:
        ConfigurationError: listing every violated field
    """
    if isinstance(data, MigrationConfig):
        return data
    try:
        return MigrationConfig.model_validate(data)
    except ValidationError as e:
        raise ConfigurationError(format_validation_errors(e)) from e


def validate_connection_config(data: Any) -> BaseModel:
    """Validate a single connection config against the discriminated union."""
    if isinstance(data, ConfigModel):
        return data
    try:
        return _connection_adapter.validate_python(data)
    except ValidationError as e:
        raise ConfigurationError(format_validation_errors(e)) from e


def validate_schema_mapping(data: Any) -> SchemaMapping:
    """Validate a single schema mapping."""
    if isinstance(data, SchemaMapping):
        return data
    try:
        return SchemaMapping.model_validate(data)
    except ValidationError as e:
        raise ConfigurationError(format_validation_errors(e)) from e
