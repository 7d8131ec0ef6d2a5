"""Database connectors."""

from .base import BaseConnector, BatchReader
from .factory import create_connector, register_connector, unregister_connector, available_types
from .memory import MemoryConnector

__all__ = [
    "BaseConnector",
    "BatchReader",
    "MemoryConnector",
    "create_connector",
    "register_connector",
    "unregister_connector",
    "available_types",
]
