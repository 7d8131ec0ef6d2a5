"""Stub connectors and write-result helpers used across the test suite."""

from typing import Any, Callable, Dict, List, Optional

import pytest

from dbmigrate.connectors.base import BaseConnector
from dbmigrate.connectors.memory import MemoryConnector
from dbmigrate.models.results import RecordError, WriteResult
from dbmigrate.models.schema import CollectionInfo, TableSchema


class WriteForbiddenConnector(MemoryConnector):
    """Destination that fails the test if anything is written to it."""

    def write_batch(self, name, records, upsert=False, conflict_columns=None):
        pytest.fail("write_batch must not be called")

    def create_table(self, name, schema):
        pytest.fail("create_table must not be called")


class ScriptedWriteConnector(MemoryConnector):
    """
    Destination whose write results come from a script.

    Each call to write_batch pops the next handler and calls it with the
    records; when the script is exhausted, writes succeed.
    """

    def __init__(self, script: Optional[List[Callable[[List[Dict]], WriteResult]]] = None):
        super().__init__()
        self.script = list(script or [])
        self.calls: List[List[Dict[str, Any]]] = []

    def write_batch(self, name, records, upsert=False, conflict_columns=None):
        self.calls.append([dict(r) for r in records])
        if self.script:
            return self.script.pop(0)(records)
        return super().write_batch(name, records, upsert=upsert, conflict_columns=conflict_columns)


class FailingReadConnector(MemoryConnector):
    """Source whose reads fail after a number of successful pages."""

    def __init__(self, collections, fail_after_pages: int = 0):
        super().__init__(collections=collections)
        self.fail_after_pages = fail_after_pages
        self.pages = 0

    def fetch_page(self, name, offset, size):
        if self.pages >= self.fail_after_pages:
            raise RuntimeError("connection reset by peer")
        self.pages += 1
        return super().fetch_page(name, offset, size)


class CloseTrackingConnector(MemoryConnector):
    """Connector that counts close calls and can fail on close."""

    def __init__(self, collections=None, fail_on_close: bool = False):
        super().__init__(collections=collections or {})
        self.fail_on_close = fail_on_close
        self.close_calls = 0

    def _close(self):
        self.close_calls += 1
        if self.fail_on_close:
            raise RuntimeError("close failed")


class ReadOnlyConnector(BaseConnector):
    """Minimal connector that implements only the required operations."""

    display_name = "read-only store"

    def __init__(self, records=None):
        super().__init__()
        self.records = list(records or [])

    def ping(self):
        return ""

    def discover(self):
        return [CollectionInfo(name="items", type="collection")]

    def get_schema(self, name):
        return TableSchema()

    def fetch_page(self, name, offset, size):
        return self.records[offset:offset + size]


def fail_all(message: str = "insert failed", with_index: bool = True):
    """Write handler failing every record."""
    def handler(records):
        return WriteResult(
            success=False,
            count=0,
            errors=[
                RecordError(message=message, index=i if with_index else None)
                for i in range(len(records))
            ],
        )
    return handler


def fail_indexes(*indexes: int, message: str = "insert failed"):
    """Write handler failing only the given batch positions."""
    def handler(records):
        errors = [RecordError(message=message, index=i) for i in indexes if i < len(records)]
        return WriteResult(success=not errors, count=len(records) - len(errors), errors=errors)
    return handler


