"""Firebase Firestore connector."""

import uuid
from typing import Any, Dict, List, Optional
import logging

import firebase_admin
from firebase_admin import credentials, firestore

from ..exceptions import BatchWriteError, DiscoveryError, SchemaInspectionError
from ..models.config import FirestoreConfig
from ..models.results import RecordError, WriteResult
from ..models.schema import CollectionInfo, TableSchema
from .base import BaseConnector, BatchReader, Record
from .documents import SCHEMA_SAMPLE_SIZE, merge_sampled_schema

logger = logging.getLogger(__name__)

# Firestore rejects batches with more writes than this
MAX_WRITES_PER_COMMIT = 500


def _to_plain(value: Any) -> Any:
    """Convert Firestore-specific values to plain Python values."""
    if isinstance(value, dict):
        return {k: _to_plain(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_to_plain(v) for v in value]
    type_name = type(value).__name__
    if type_name == "GeoPoint":
        return {"latitude": value.latitude, "longitude": value.longitude}
    if type_name in ("DocumentReference", "AsyncDocumentReference"):
        return value.path
    return value


def _document_to_record(snapshot: Any) -> Record:
    return {"_id": snapshot.id, **_to_plain(snapshot.to_dict() or {})}


class FirestoreConnector(BaseConnector):
    """
    Connector for a Firestore database.

    Writes are committed with Firestore batched writes, which are atomic:
    if a commit fails, every record in it fails together. Batches larger
    than MAX_WRITES_PER_COMMIT are split into several commits.
    """

    db_type = "firebase-firestore"
    display_name = "Firestore"

    def __init__(self, config: FirestoreConfig):
        super().__init__(config)
        self._app: Optional[firebase_admin.App] = None
        self._db: Any = None

    @property
    def db(self) -> Any:
        if self._db is None:
            if self.config.service_account:
                credential = credentials.Certificate(self.config.service_account)
            else:
                credential = credentials.ApplicationDefault()

            options: Dict[str, Any] = {"projectId": self.config.project_id}
            if self.config.database_url:
                options["databaseURL"] = self.config.database_url

            # Each connector gets its own named app so several can coexist
            self._app = firebase_admin.initialize_app(
                credential,
                options,
                name=f"dbmigrate-{uuid.uuid4().hex}",
            )
            self._db = firestore.client(self._app)
            logger.info(f"Initialized Firestore client for project {self.config.project_id}")
        return self._db

    def ping(self) -> str:
        collections = list(self.db.collections())
        return f"found {len(collections)} collections"

    def discover(self) -> List[CollectionInfo]:
        try:
            result = []
            for collection in self.db.collections():
                result.append(CollectionInfo(
                    name=collection.id,
                    type="collection",
                    schema=self.get_schema(collection.id),
                    approx_count=self.count(collection.id),
                ))
            return result
        except Exception as e:
            raise DiscoveryError(f"Failed to discover collections: {e}") from e

    def get_schema(self, name: str) -> TableSchema:
        try:
            snapshots = self.db.collection(name).limit(SCHEMA_SAMPLE_SIZE).stream()
            samples = [snapshot.to_dict() or {} for snapshot in snapshots]
        except Exception as e:
            raise SchemaInspectionError(name, str(e)) from e
        return merge_sampled_schema(samples)

    def count(self, name: str) -> Optional[int]:
        try:
            results = self.db.collection(name).count().get()
            return int(results[0][0].value)
        except Exception as e:
            logger.warning(f"Could not count documents in {name}: {e}")
            return None

    def fetch_page(self, name: str, offset: int, size: int) -> List[Record]:
        query = self.db.collection(name).limit(size)
        if offset:
            query = query.offset(offset)
        return [_document_to_record(snapshot) for snapshot in query.stream()]

    def read_batch(
        self,
        name: str,
        batch_size: int = 100,
        limit: Optional[int] = None,
        offset: int = 0
    ) -> BatchReader:
        """
        Read documents in batches using cursor pagination.

        Only the first page uses ``offset``; later pages start after the
        last document of the previous page.
        """
        cursor: Dict[str, Any] = {"last": None}

        def fetch(page_offset: int, size: int) -> List[Record]:
            query = self.db.collection(name).limit(size)
            if cursor["last"] is not None:
                query = query.start_after(cursor["last"])
            elif page_offset:
                query = query.offset(page_offset)

            snapshots = list(query.stream())
            if snapshots:
                cursor["last"] = snapshots[-1]
            return [_document_to_record(snapshot) for snapshot in snapshots]

        return BatchReader(name, fetch, batch_size=batch_size, limit=limit, offset=offset)

    def write_batch(
        self,
        name: str,
        records: List[Record],
        upsert: bool = False,
        conflict_columns: Optional[List[str]] = None
    ) -> WriteResult:
        """
        Write documents with atomic batched commits.

        A record's ``_id`` becomes its document id; records without one get
        a generated id. With ``upsert`` documents are merged into existing
        ones instead of replaced. ``conflict_columns`` is ignored.
        """
        collection = self.db.collection(name)
        written = 0
        errors: List[RecordError] = []

        for start in range(0, len(records), MAX_WRITES_PER_COMMIT):
            chunk = records[start:start + MAX_WRITES_PER_COMMIT]
            batch = self.db.batch()
            for record in chunk:
                data = dict(record)
                doc_id = data.pop("_id", None)
                doc_ref = collection.document(str(doc_id)) if doc_id else collection.document()
                batch.set(doc_ref, data, merge=upsert)

            try:
                batch.commit()
                written += len(chunk)
            except Exception as e:
                failure = BatchWriteError(name, f"commit of {len(chunk)} records failed: {e}")
                logger.error(str(failure))
                for offset, record in enumerate(chunk):
                    errors.append(RecordError.from_exception(failure, index=start + offset, record=record))

        return WriteResult(success=not errors, count=written, errors=errors)

    def _close(self) -> None:
        if self._app is not None:
            app, self._app = self._app, None
            self._db = None
            firebase_admin.delete_app(app)
