"""Connector factory: maps a connection config's type to a connector."""

import importlib
from typing import Any, Dict, List, Type, Union
import logging

from ..exceptions import UnsupportedDatabaseError
from ..models.config import ConfigModel, DatabaseType, validate_connection_config
from .base import BaseConnector

logger = logging.getLogger(__name__)

# Built-in connectors are imported on first use so a missing database driver
# only matters when that database is actually requested.
_BUILTIN_CONNECTORS: Dict[str, str] = {
    DatabaseType.FIREBASE_FIRESTORE.value: "dbmigrate.connectors.firestore:FirestoreConnector",
    DatabaseType.POSTGRESQL.value: "dbmigrate.connectors.postgres:PostgreSQLConnector",
    DatabaseType.SUPABASE.value: "dbmigrate.connectors.postgres:SupabaseConnector",
    DatabaseType.MONGODB.value: "dbmigrate.connectors.mongo:MongoDBConnector",
    DatabaseType.MEMORY.value: "dbmigrate.connectors.memory:MemoryConnector",
}

_registry: Dict[str, Union[str, Type[BaseConnector]]] = dict(_BUILTIN_CONNECTORS)


def register_connector(db_type: Union[str, DatabaseType], connector_class: Type[BaseConnector]) -> None:
    """
    Register (or replace) the connector class used for a database type.

    The class is constructed with the validated connection config.
    """
    key = db_type.value if isinstance(db_type, DatabaseType) else str(db_type)
    _registry[key] = connector_class
    logger.debug(f"Registered connector {connector_class.__name__} for {key}")


def unregister_connector(db_type: Union[str, DatabaseType]) -> None:
    """Remove a registration, restoring the built-in connector if there is one."""
    key = db_type.value if isinstance(db_type, DatabaseType) else str(db_type)
    if key in _BUILTIN_CONNECTORS:
        _registry[key] = _BUILTIN_CONNECTORS[key]
    else:
        _registry.pop(key, None)


def available_types() -> List[str]:
    return sorted(_registry)


def _resolve(key: str) -> Type[BaseConnector]:
    target = _registry[key]
    if isinstance(target, str):
        module_name, class_name = target.split(":")
        module = importlib.import_module(module_name)
        target = getattr(module, class_name)
        _registry[key] = target
    return target


def _type_of(config: Any) -> Any:
    if isinstance(config, dict):
        return config.get("type")
    return getattr(config, "type", None)


def create_connector(config: Any) -> BaseConnector:
    """
    Create a connector for a connection config.

    No I/O happens here; connectors connect lazily on first use.

    Args:
        config: Validated connection config model, or a raw dict

    Returns:
        Connector instance

    Raises:
        UnsupportedDatabaseError: if no connector handles the config's type
        ConfigurationError: if a raw dict fails validation
    """
    db_type = _type_of(config)
    key = db_type.value if isinstance(db_type, DatabaseType) else db_type

    if not isinstance(key, str) or key not in _registry:
        logger.error(
            f"Unsupported database type: {db_type}. "
            f"Available types: {', '.join(available_types())}"
        )
        raise UnsupportedDatabaseError(db_type)

    connector_class = _resolve(key)

    if not isinstance(config, ConfigModel) and key in _BUILTIN_CONNECTORS:
        config = validate_connection_config(config)

    logger.info(f"Creating {key} connector")
    return connector_class(config)
