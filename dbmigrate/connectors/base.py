"""Base connector interface."""

from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, Iterator, List, Optional
import logging

from ..exceptions import ConnectorError, ReadError, UnsupportedOperationError
from ..models.results import ConnectionTestResult, CreateTableResult, RecordError, WriteResult
from ..models.schema import CollectionInfo, TableSchema

logger = logging.getLogger(__name__)

Record = Dict[str, Any]
PageFetcher = Callable[[int, int], List[Record]]


class BatchReader:
    """
    Pull-based, forward-only reader over one collection or table.

    Each call to ``next_batch()`` fetches at most one page from the
    underlying connector, so a consumer never holds more than one batch in
    memory. The reader stops on the first empty or short page and never
    returns more than ``limit`` records in total.
    """

    def __init__(
        self,
        name: str,
        fetch: PageFetcher,
        batch_size: int = 100,
        limit: Optional[int] = None,
        offset: int = 0
    ):
        """
        Initialize the reader.

        Args:
            name: Collection or table being read (used in error messages)
            fetch: Callable returning up to ``size`` records starting at ``offset``
            batch_size: Maximum records per batch
            limit: Upper bound on total records returned, or None for all
            offset: Starting offset
        """
        if batch_size <= 0:
            raise ValueError("batch_size must be positive")
        if limit is not None and limit < 0:
            raise ValueError("limit must not be negative")

        self.name = name
        self.batch_size = batch_size
        self.limit = limit
        self._fetch = fetch
        self._offset = offset
        self._returned = 0
        self._exhausted = False

    @property
    def records_read(self) -> int:
        return self._returned

    @property
    def exhausted(self) -> bool:
        return self._exhausted

    def next_batch(self) -> Optional[List[Record]]:
        """
        Fetch the next batch.

        Returns:
            A non-empty list of records, or None at end of stream
        """
        if self._exhausted:
            return None

        size = self.batch_size
        if self.limit is not None:
            remaining = self.limit - self._returned
            if remaining <= 0:
                self._exhausted = True
                return None
            size = min(size, remaining)

        try:
            batch = list(self._fetch(self._offset, size))
        except ConnectorError:
            self._exhausted = True
            raise
        except Exception as e:
            self._exhausted = True
            raise ReadError(self.name, str(e)) from e

        if len(batch) > size:
            batch = batch[:size]

        if not batch:
            self._exhausted = True
            return None

        self._offset += len(batch)
        self._returned += len(batch)

        if len(batch) < size:
            self._exhausted = True

        return batch

    def close(self) -> None:
        """Stop reading; later calls to ``next_batch()`` return None."""
        self._exhausted = True

    def __iter__(self) -> Iterator[List[Record]]:
        return self

    def __next__(self) -> List[Record]:
        batch = self.next_batch()
        if batch is None:
            raise StopIteration
        return batch


class BaseConnector(ABC):
    """
    Base class for all database connectors.

    Connectors abstract one concrete database so the migration pipeline is
    agnostic of where records come from and where they go. A connector
    instance is owned by a single migration run and must be closed by its
    owner on every exit path, which the context manager protocol makes easy:

        with create_connector(config) as connector:
            connector.discover()
    """

    db_type: str = ""
    # Name used in "Connected to ..." messages
    display_name: str = "database"

    def __init__(self, config: Any = None):
        """
        Initialize the connector.

        Args:
            config: Validated connection config for this database
        """
        self.config = config
        self._closed = False

    # Connection

    @abstractmethod
    def ping(self) -> str:
        """
        Check connectivity, opening the connection if needed.

        Returns:
            Short description of the server (version, collection count...)
        """
        pass

    def test_connection(self) -> ConnectionTestResult:
        """
        Test the connection. Never raises: failures are reported in the result.
        """
        try:
            details = self.ping()
        except Exception as e:
            logger.warning(f"Connection test for {self.display_name} failed: {e}")
            return ConnectionTestResult(
                success=False,
                message=f"Connection failed: {e}",
                error=str(e),
            )

        message = f"Successfully connected to {self.display_name}"
        if details:
            message = f"{message}: {details}"
        return ConnectionTestResult(success=True, message=message)

    # Discovery and schema

    @abstractmethod
    def discover(self) -> List[CollectionInfo]:
        """
        List the collections or tables available.

        Raises:
            DiscoveryError: if listing fails
        """
        pass

    @abstractmethod
    def get_schema(self, name: str) -> TableSchema:
        """
        Get the schema of a collection or table.

        Document stores synthesize it by sampling records; such schemas are
        advisory only.

        Raises:
            SchemaInspectionError: if inspection fails
        """
        pass

    def count(self, name: str) -> Optional[int]:
        """Record count for a collection, or None if it cannot be cheaply known."""
        return None

    # Reading

    @abstractmethod
    def fetch_page(self, name: str, offset: int, size: int) -> List[Record]:
        """
        Fetch up to ``size`` records starting at ``offset``.

        Args:
            name: Collection or table name
            offset: Number of records to skip
            size: Maximum number of records to return

        Returns:
            List of records (shorter than ``size`` at end of data)
        """
        pass

    def read_batch(
        self,
        name: str,
        batch_size: int = 100,
        limit: Optional[int] = None,
        offset: int = 0
    ) -> BatchReader:
        """
        Read records in batches.

        Args:
            name: Collection or table name
            batch_size: Size of each batch
            limit: Maximum total records, or None for all
            offset: Starting offset

        Returns:
            BatchReader yielding batches of records
        """
        return BatchReader(
            name,
            lambda page_offset, size: self.fetch_page(name, page_offset, size),
            batch_size=batch_size,
            limit=limit,
            offset=offset,
        )

    def preview(self, name: str, limit: int = 10) -> List[Record]:
        """Read up to ``limit`` records from the start of a collection."""
        if limit <= 0:
            return []
        reader = self.read_batch(name, batch_size=limit, limit=limit)
        return reader.next_batch() or []

    # Writing

    def write_record(
        self,
        name: str,
        record: Record,
        upsert: bool = False,
        conflict_columns: Optional[List[str]] = None
    ) -> None:
        """
        Write a single record. Raises on failure.

        Connectors either implement this and inherit ``write_batch``, or
        override ``write_batch`` directly.
        """
        raise NotImplementedError(f"{type(self).__name__} does not implement write_record")

    def write_batch(
        self,
        name: str,
        records: List[Record],
        upsert: bool = False,
        conflict_columns: Optional[List[str]] = None
    ) -> WriteResult:
        """
        Write a batch of records.

        Every record is attempted even when earlier ones fail; per-record
        failures are collected in the result rather than raised.

        Args:
            name: Collection or table name
            records: Records to write
            upsert: If True, update existing records matching conflict_columns
            conflict_columns: Columns identifying an existing record

        Returns:
            WriteResult with the number of records written and any errors
        """
        errors: List[RecordError] = []

        for index, record in enumerate(records):
            try:
                self.write_record(name, record, upsert=upsert, conflict_columns=conflict_columns)
            except Exception as e:
                errors.append(RecordError.from_exception(e, index=index, record=record))
                logger.error(f"Failed to write record {index} to {name}: {e}")

        return WriteResult.from_errors(len(records), errors)

    def create_table(self, name: str, schema: TableSchema) -> CreateTableResult:
        """
        Create a table if it does not exist.

        Raises:
            UnsupportedOperationError: if the connector cannot create tables
        """
        raise UnsupportedOperationError(
            f"create_table is not supported by the {self.display_name} connector"
        )

    @property
    def supports_create_table(self) -> bool:
        return type(self).create_table is not BaseConnector.create_table

    # Lifecycle

    def _close(self) -> None:
        """Release underlying connections. Called at most once."""
        pass

    @property
    def closed(self) -> bool:
        return self._closed

    def close(self) -> None:
        """Release underlying connections. Safe to call more than once."""
        if self._closed:
            return
        self._closed = True
        self._close()
        logger.debug(f"Closed {self.display_name} connector")

    def close_quietly(self) -> None:
        """Close, logging instead of raising any error."""
        try:
            self.close()
        except Exception as e:
            logger.warning(f"Error while closing {self.display_name} connector: {e}")

    def __enter__(self) -> "BaseConnector":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close_quietly()
