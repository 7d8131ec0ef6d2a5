"""In-memory connector for previews, dry runs and tests."""

import copy
from typing import Any, Dict, List, Optional
import logging

from ..exceptions import DiscoveryError, ReadError, SchemaInspectionError
from ..models.config import MemoryConfig
from ..models.results import CreateTableResult
from ..models.schema import CollectionInfo, TableSchema
from .base import BaseConnector, Record
from .documents import SCHEMA_SAMPLE_SIZE, merge_sampled_schema

logger = logging.getLogger(__name__)


class MemoryConnector(BaseConnector):
    """
    Connector over a dict of named record lists held in process memory.

    Supports every connector operation. Tables created with primary keys
    reject duplicate inserts, which makes per-record write failures easy to
    reproduce. Stored records are copies; callers cannot mutate them through
    the lists they passed in.
    """

    db_type = "memory"
    display_name = "in-memory store"

    def __init__(
        self,
        config: Optional[MemoryConfig] = None,
        collections: Optional[Dict[str, List[Record]]] = None
    ):
        config = config or MemoryConfig()
        super().__init__(config)
        initial = collections if collections is not None else config.collections
        self.collections: Dict[str, List[Record]] = {
            name: [copy.deepcopy(r) for r in records]
            for name, records in initial.items()
        }
        self.schemas: Dict[str, TableSchema] = {}

    def _check_open(self) -> None:
        if self._closed:
            raise RuntimeError("connector is closed")

    def ping(self) -> str:
        self._check_open()
        return f"{len(self.collections)} collections"

    def discover(self) -> List[CollectionInfo]:
        try:
            self._check_open()
            return [
                CollectionInfo(
                    name=name,
                    type="collection",
                    schema=self.get_schema(name),
                    approx_count=len(records),
                )
                for name, records in sorted(self.collections.items())
            ]
        except Exception as e:
            raise DiscoveryError(f"Failed to discover collections: {e}") from e

    def get_schema(self, name: str) -> TableSchema:
        if name in self.schemas:
            return copy.deepcopy(self.schemas[name])
        if name not in self.collections:
            raise SchemaInspectionError(name, "collection does not exist")
        return merge_sampled_schema(self.collections[name][:SCHEMA_SAMPLE_SIZE])

    def count(self, name: str) -> Optional[int]:
        records = self.collections.get(name)
        return len(records) if records is not None else None

    def fetch_page(self, name: str, offset: int, size: int) -> List[Record]:
        self._check_open()
        if name not in self.collections:
            raise ReadError(name, "collection does not exist")
        return copy.deepcopy(self.collections[name][offset:offset + size])

    def _key_columns(self, name: str, conflict_columns: Optional[List[str]]) -> List[str]:
        if conflict_columns:
            return list(conflict_columns)
        schema = self.schemas.get(name)
        if schema and schema.primary_keys:
            return list(schema.primary_keys)
        return ["id"]

    def _find(self, records: List[Record], keys: List[str], record: Record) -> Optional[int]:
        if not all(k in record for k in keys):
            return None
        for position, existing in enumerate(records):
            if all(existing.get(k) == record[k] for k in keys):
                return position
        return None

    def write_record(
        self,
        name: str,
        record: Record,
        upsert: bool = False,
        conflict_columns: Optional[List[str]] = None
    ) -> None:
        self._check_open()
        if not isinstance(record, dict):
            raise TypeError(f"record must be a dict, got {type(record).__name__}")

        records = self.collections.setdefault(name, [])
        keys = self._key_columns(name, conflict_columns)
        position = self._find(records, keys, record)

        if upsert:
            if position is None:
                records.append(copy.deepcopy(record))
            else:
                records[position] = {**records[position], **copy.deepcopy(record)}
            return

        schema = self.schemas.get(name)
        if schema and schema.primary_keys and position is not None:
            key = ", ".join(f"{k}={record[k]!r}" for k in keys)
            raise ValueError(f"duplicate key value violates primary key of {name} ({key})")
        records.append(copy.deepcopy(record))

    def create_table(self, name: str, schema: TableSchema) -> CreateTableResult:
        self._check_open()
        if name in self.schemas:
            return CreateTableResult(success=True, message=f"Table {name} already exists")
        self.schemas[name] = copy.deepcopy(schema)
        self.collections.setdefault(name, [])
        logger.info(f"Created in-memory table {name} with {len(schema.columns)} columns")
        return CreateTableResult(success=True, message=f"Table {name} created successfully")
