"""MongoDB connector."""

from typing import Any, Dict, List, Optional
import logging

from bson import ObjectId
from pymongo import ASCENDING, MongoClient
from pymongo.errors import PyMongoError

from ..exceptions import DiscoveryError, SchemaInspectionError
from ..models.config import MongoDBConfig
from ..models.schema import CollectionInfo, TableSchema
from .base import BaseConnector, Record
from .documents import SCHEMA_SAMPLE_SIZE, merge_sampled_schema

logger = logging.getLogger(__name__)

SERVER_SELECTION_TIMEOUT_MS = 5000


def _convert_object_ids(value: Any) -> Any:
    """Replace ObjectIds with their hex strings, recursively."""
    if isinstance(value, ObjectId):
        return str(value)
    if isinstance(value, dict):
        return {k: _convert_object_ids(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_convert_object_ids(v) for v in value]
    return value


class MongoDBConnector(BaseConnector):
    """
    Connector for a MongoDB database.

    Documents are read in ``_id`` order and returned with ObjectIds
    converted to strings so they can be written to relational targets.
    """

    db_type = "mongodb"
    display_name = "MongoDB"

    def __init__(self, config: MongoDBConfig):
        super().__init__(config)
        self._client: Optional[MongoClient] = None

    @property
    def database(self) -> Any:
        if self._client is None:
            options = {"serverSelectionTimeoutMS": SERVER_SELECTION_TIMEOUT_MS}
            options.update(self.config.options)
            self._client = MongoClient(self.config.connection_string, **options)
            logger.info(f"Created MongoDB client for database {self.config.database}")
        return self._client[self.config.database]

    def ping(self) -> str:
        self.database.command("ping")
        collections = self.database.list_collection_names()
        return f"{len(collections)} collections in {self.config.database}"

    def discover(self) -> List[CollectionInfo]:
        try:
            names = sorted(
                name for name in self.database.list_collection_names()
                if not name.startswith("system.")
            )
            return [
                CollectionInfo(
                    name=name,
                    type="collection",
                    schema=self.get_schema(name),
                    approx_count=self.database[name].estimated_document_count(),
                )
                for name in names
            ]
        except PyMongoError as e:
            raise DiscoveryError(f"Failed to discover collections: {e}") from e

    def get_schema(self, name: str) -> TableSchema:
        try:
            samples = list(self.database[name].find().limit(SCHEMA_SAMPLE_SIZE))
        except PyMongoError as e:
            raise SchemaInspectionError(name, str(e)) from e
        return merge_sampled_schema(samples)

    def count(self, name: str) -> Optional[int]:
        return self.database[name].estimated_document_count()

    def fetch_page(self, name: str, offset: int, size: int) -> List[Record]:
        cursor = (
            self.database[name]
            .find()
            .sort("_id", ASCENDING)
            .skip(offset)
            .limit(size)
        )
        return [_convert_object_ids(doc) for doc in cursor]

    def write_record(
        self,
        name: str,
        record: Record,
        upsert: bool = False,
        conflict_columns: Optional[List[str]] = None
    ) -> None:
        collection = self.database[name]
        keys = list(conflict_columns or ["_id"])

        if upsert and all(k in record for k in keys):
            collection.replace_one({k: record[k] for k in keys}, record, upsert=True)
        else:
            # insert_one adds _id to the document it is given
            collection.insert_one(dict(record))

    def _close(self) -> None:
        if self._client is not None:
            client, self._client = self._client, None
            client.close()
