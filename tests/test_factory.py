"""Tests for the connector factory."""

import pytest

from dbmigrate.connectors import factory
from dbmigrate.connectors.factory import (
    available_types,
    create_connector,
    register_connector,
    unregister_connector,
)
from dbmigrate.connectors.memory import MemoryConnector
from dbmigrate.exceptions import ConfigurationError, UnsupportedDatabaseError
from dbmigrate.models.config import MemoryConfig

from stubs import ReadOnlyConnector


class ConfiguredReadOnlyConnector(ReadOnlyConnector):
    def __init__(self, config):
        super().__init__()
        self.config = config


class TestCreateConnector:
    """Tests for create_connector."""

    def test_unknown_type_fails_before_io(self, monkeypatch):
        """An unknown type is rejected without importing or constructing anything."""
        monkeypatch.setattr(factory, "_resolve", lambda key: pytest.fail("must not resolve"))

        with pytest.raises(UnsupportedDatabaseError) as exc_info:
            create_connector({"type": "cassandra", "host": "db"})

        assert exc_info.value.db_type == "cassandra"
        assert "cassandra" in str(exc_info.value)

    def test_missing_type(self):
        with pytest.raises(UnsupportedDatabaseError):
            create_connector({"host": "db"})

    def test_memory_from_dict(self, users):
        connector = create_connector({"type": "memory", "collections": {"users": users}})

        assert isinstance(connector, MemoryConnector)
        assert isinstance(connector.config, MemoryConfig)
        assert connector.count("users") == 5

    def test_memory_from_model(self):
        config = MemoryConfig()

        connector = create_connector(config)

        assert connector.config is config

    def test_invalid_builtin_config(self):
        with pytest.raises(ConfigurationError):
            create_connector({"type": "postgresql", "host": "db"})

    def test_available_types(self):
        assert {"firebase-firestore", "postgresql", "supabase", "mongodb", "memory"} <= set(available_types())


class TestRegisterConnector:
    """Tests for custom connector registration."""

    def test_register_custom_type(self):
        register_connector("readonly", ConfiguredReadOnlyConnector)
        try:
            connector = create_connector({"type": "readonly", "path": "/data"})

            assert isinstance(connector, ConfiguredReadOnlyConnector)
            assert connector.config == {"type": "readonly", "path": "/data"}
        finally:
            unregister_connector("readonly")

        with pytest.raises(UnsupportedDatabaseError):
            create_connector({"type": "readonly"})

    def test_unregister_restores_builtin(self):
        register_connector("memory", ConfiguredReadOnlyConnector)
        try:
            assert isinstance(create_connector({"type": "memory"}), ConfiguredReadOnlyConnector)
        finally:
            unregister_connector("memory")

        assert isinstance(create_connector({"type": "memory"}), MemoryConnector)
