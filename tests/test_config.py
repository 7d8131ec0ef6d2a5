"""Tests for migration and connection config validation."""

import json

import pytest

from dbmigrate.exceptions import ConfigurationError
from dbmigrate.models.config import (
    MemoryConfig,
    MigrationConfig,
    PostgreSQLConfig,
    SupabaseConfig,
    validate_connection_config,
    validate_migration_config,
    validate_schema_mapping,
)


class TestValidateMigrationConfig:
    """Tests for validate_migration_config."""

    def test_valid_config_with_camel_case_keys(self, migration_config):
        """camelCase input is accepted and mapped to snake_case attributes."""
        config = validate_migration_config(migration_config)

        assert isinstance(config, MigrationConfig)
        assert config.settings.batch_size == 2
        assert config.mappings[0].source_collection == "users"
        assert config.mappings[0].field_mappings[1].target_field == "full_name"
        assert isinstance(config.source, MemoryConfig)

    def test_settings_defaults(self, user_mapping):
        """Omitted settings get their defaults."""
        config = validate_migration_config({
            "source": {"type": "memory"},
            "destination": {"type": "memory"},
            "mappings": [user_mapping],
        })

        assert config.settings.batch_size == 100
        assert config.settings.retries == 3
        assert config.settings.upsert is False
        assert config.settings.dry_run is False
        assert config.settings.create_table is False

    def test_snake_case_keys_accepted(self):
        """snake_case input is accepted too."""
        config = validate_migration_config({
            "source": {"type": "memory"},
            "destination": {"type": "memory"},
            "mappings": [{
                "source_collection": "a",
                "target_table": "b",
                "field_mappings": [{
                    "source_field": "x", "target_field": "y",
                    "source_type": "string", "target_type": "string",
                }],
            }],
            "settings": {"batch_size": 5, "dry_run": True},
        })

        assert config.settings.batch_size == 5
        assert config.settings.dry_run is True

    def test_reports_every_violation(self):
        """All violated fields are listed, not just the first."""
        with pytest.raises(ConfigurationError) as exc_info:
            validate_migration_config({
                "source": {"type": "postgresql", "host": "db"},
                "destination": {"type": "memory"},
                "mappings": [],
                "settings": {"batchSize": 0, "retries": -1},
            })

        locations = {e["loc"] for e in exc_info.value.errors}
        assert len(exc_info.value.errors) >= 5
        assert "mappings" in locations
        assert "settings.batchSize" in locations
        assert "settings.retries" in locations
        assert any(loc.startswith("source.postgresql") for loc in locations)

    def test_unknown_connection_type_is_a_configuration_error(self, user_mapping):
        """An unknown discriminator fails validation."""
        with pytest.raises(ConfigurationError) as exc_info:
            validate_migration_config({
                "source": {"type": "oracle"},
                "destination": {"type": "memory"},
                "mappings": [user_mapping],
            })

        assert any(e["loc"].startswith("source") for e in exc_info.value.errors)

    def test_config_is_immutable(self, migration_config):
        """Validated configs cannot be modified."""
        config = validate_migration_config(migration_config)

        with pytest.raises(Exception):
            config.settings.batch_size = 10

    def test_existing_config_returned_unchanged(self, migration_config):
        """Passing an already validated config returns it as is."""
        config = validate_migration_config(migration_config)

        assert validate_migration_config(config) is config

    def test_from_json_file_accepts_request_shape(self, tmp_path, migration_config):
        """Config files may wrap the config in a "config" key."""
        path = tmp_path / "migration.json"
        path.write_text(json.dumps({"config": migration_config}))

        config = MigrationConfig.from_json_file(str(path))

        assert config.mappings[0].target_table == "people"

    def test_to_dict_uses_camel_case(self, migration_config):
        """Serialized configs use camelCase keys."""
        data = validate_migration_config(migration_config).to_dict()

        assert data["settings"]["batchSize"] == 2
        assert data["mappings"][0]["sourceCollection"] == "users"


class TestConnectionConfigs:
    """Tests for the connection config union."""

    def test_postgres_defaults(self):
        """PostgreSQL configs default port, ssl and schema."""
        config = validate_connection_config({
            "type": "postgresql", "host": "db", "database": "app",
            "user": "u", "password": "p",
        })

        assert isinstance(config, PostgreSQLConfig)
        assert config.port == 5432
        assert config.ssl is False
        assert config.db_schema == "public"

    def test_postgres_schema_alias(self):
        """The "schema" key populates db_schema."""
        config = validate_connection_config({
            "type": "postgresql", "host": "db", "database": "app",
            "user": "u", "password": "p", "schema": "sales",
        })

        assert config.db_schema == "sales"

    def test_supabase_requires_location(self):
        """Supabase needs either a connection string or a host."""
        with pytest.raises(ConfigurationError):
            validate_connection_config({"type": "supabase"})

    def test_supabase_connection_string(self):
        """Supabase accepts a connection string and defaults to SSL."""
        config = validate_connection_config({
            "type": "supabase",
            "connectionString": "postgresql://u:p@db.example.supabase.co:5432/postgres",
        })

        assert isinstance(config, SupabaseConfig)
        assert config.ssl is True

    def test_firestore_database_url_alias(self):
        """Firestore's databaseURL key is accepted."""
        config = validate_connection_config({
            "type": "firebase-firestore",
            "projectId": "demo",
            "databaseURL": "https://demo.firebaseio.com",
        })

        assert config.project_id == "demo"
        assert config.database_url == "https://demo.firebaseio.com"

    def test_mongodb_requires_database(self):
        """MongoDB configs need a database name."""
        with pytest.raises(ConfigurationError) as exc_info:
            validate_connection_config({"type": "mongodb", "connectionString": "mongodb://localhost"})

        assert any("database" in e["loc"] for e in exc_info.value.errors)


class TestValidateSchemaMapping:
    """Tests for validate_schema_mapping."""

    def test_valid_mapping(self, user_mapping):
        """A complete mapping validates."""
        mapping = validate_schema_mapping(user_mapping)

        assert mapping.target_table == "people"
        assert mapping.options.flatten is False
        assert mapping.options.skip_fields == []

    def test_empty_field_mappings_rejected(self):
        """A mapping needs at least one field mapping."""
        with pytest.raises(ConfigurationError) as exc_info:
            validate_schema_mapping({
                "sourceCollection": "a", "targetTable": "b", "fieldMappings": [],
            })

        assert exc_info.value.errors[0]["loc"] == "fieldMappings"

    def test_missing_field_types_reported_together(self):
        """Each missing field mapping attribute is reported."""
        with pytest.raises(ConfigurationError) as exc_info:
            validate_schema_mapping({
                "sourceCollection": "a",
                "targetTable": "b",
                "fieldMappings": [{"sourceField": "x", "targetField": "y"}],
            })

        locations = {e["loc"] for e in exc_info.value.errors}
        assert locations == {"fieldMappings.0.sourceType", "fieldMappings.0.targetType"}
