"""Shared fixtures for the dbmigrate test suite."""

from typing import Any, Dict, List

import pytest

from dbmigrate.connectors.memory import MemoryConnector


@pytest.fixture
def users() -> List[Dict[str, Any]]:
    return [
        {"id": 1, "name": "Ann", "age": "34", "profile": {"city": "Oslo"}, "active": "yes"},
        {"id": 2, "name": "Bob", "age": "27", "profile": {"city": "Lima"}, "active": "no"},
        {"id": 3, "name": "Cy", "age": "41", "profile": {"city": "Pune"}, "active": "true"},
        {"id": 4, "name": "Di", "age": "19", "profile": {}, "active": "false"},
        {"id": 5, "name": "Ed", "age": "52", "active": "1"},
    ]


@pytest.fixture
def user_mapping() -> Dict[str, Any]:
    return {
        "sourceCollection": "users",
        "targetTable": "people",
        "fieldMappings": [
            {"sourceField": "id", "targetField": "id", "sourceType": "integer", "targetType": "integer"},
            {"sourceField": "name", "targetField": "full_name", "sourceType": "string", "targetType": "string"},
            {"sourceField": "age", "targetField": "age", "sourceType": "string", "targetType": "integer"},
            {"sourceField": "profile.city", "targetField": "city", "sourceType": "string",
             "targetType": "string", "defaultValue": "unknown"},
        ],
    }


@pytest.fixture
def migration_config(user_mapping) -> Dict[str, Any]:
    return {
        "source": {"type": "memory"},
        "destination": {"type": "memory"},
        "mappings": [user_mapping],
        "settings": {"batchSize": 2},
    }


@pytest.fixture
def source(users) -> MemoryConnector:
    return MemoryConnector(collections={"users": users})


@pytest.fixture
def destination() -> MemoryConnector:
    return MemoryConnector()
