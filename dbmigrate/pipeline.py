"""Migration pipeline - streams records from a source to a destination."""

import logging
import threading
from typing import Any, Iterator, List, Optional

from .connectors.base import BaseConnector, Record
from .exceptions import MigrationCancelled, PipelineError
from .models.config import MigrationConfig, SchemaMapping, validate_migration_config
from .models.results import WriteResult
from .models.status import ErrorEntry, PipelineState, PipelineStatus, StatusSnapshot
from .services.schema_inference import infer_table_schema
from .services.transformer import RecordTransformer

logger = logging.getLogger(__name__)

LOG_LEVELS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warning": logging.WARNING,
    "error": logging.ERROR,
}


class CancellationToken:
    """Cooperative cancellation flag, checked by the pipeline between batches."""

    def __init__(self):
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()


class MigrationPipeline:
    """
    Drives one migration run: read -> transform -> write, batch by batch.

    ``run()`` returns an iterator of immutable StatusSnapshot values, one
    after every batch plus a terminal one. Batch boundaries are the only
    points where the run pauses, so they are where the consumer observes
    progress and where cancellation takes effect.

    Mappings are processed sequentially, in configuration order. Soft
    failures (coercion problems, per-record write errors) are recorded and
    the run continues; anything else fails the run, which is reported in a
    terminal snapshot before the exception propagates.

    The pipeline does not own its connectors and never closes them.
    """

    def __init__(
        self,
        source: BaseConnector,
        destination: BaseConnector,
        config: Any,
        cancel_token: Optional[CancellationToken] = None
    ):
        """
        Initialize the pipeline.

        Args:
            source: Connector records are read from
            destination: Connector records are written to
            config: MigrationConfig or raw dict (validated here, before any I/O)
            cancel_token: Token checked at every batch boundary

        Raises:
            ConfigurationError: if the configuration is invalid
        """
        self.config: MigrationConfig = validate_migration_config(config)
        self.source = source
        self.destination = destination
        self.cancel_token = cancel_token or CancellationToken()
        self.transformer = RecordTransformer()
        self.status = PipelineStatus()
        self._started = False
        self._start_lock = threading.Lock()

    @property
    def state(self) -> PipelineState:
        return self.status.state

    def run(self) -> Iterator[StatusSnapshot]:
        """
        Start the run.

        Returns:
            Iterator of status snapshots

        Raises:
            PipelineError: if this pipeline has already been run
        """
        with self._start_lock:
            if self._started:
                raise PipelineError("A migration pipeline can only be run once")
            self._started = True
        return self._run()

    def execute(self) -> StatusSnapshot:
        """Run to completion and return the terminal snapshot."""
        snapshot = None
        for snapshot in self.run():
            pass
        return snapshot

    def _log(self, level: str, message: str, **meta: Any) -> None:
        self.status.log(level, message, **meta)
        logger.log(LOG_LEVELS.get(level, logging.INFO), message)

    def _run(self) -> Iterator[StatusSnapshot]:
        status = self.status
        status.state = PipelineState.RUNNING
        mappings = self.config.mappings
        self._log(
            "info",
            f"Starting migration of {len(mappings)} mapping(s)"
            + (" (dry run)" if self.config.settings.dry_run else ""),
        )

        try:
            status.total_records = self._count_total_records(mappings)

            for mapping in mappings:
                yield from self._run_mapping(mapping)

            status.state = PipelineState.COMPLETED
            status.progress = 100.0
            status.current_mapping = None
            self._log(
                "info",
                f"Migration completed: {status.processed_records} records processed, "
                f"{len(status.errors)} error(s)",
            )

        except MigrationCancelled:
            status.state = PipelineState.CANCELLED
            self._log(
                "warning",
                f"Migration cancelled after {status.processed_records} records",
            )
            yield status.snapshot()
            raise

        except Exception as e:
            status.state = PipelineState.FAILED
            entry = ErrorEntry.from_exception(e, mapping=status.current_mapping)
            status.add_error(entry)
            self._log("error", f"Migration failed: {e}", error=entry.stack)
            yield status.snapshot()
            raise

        yield status.snapshot()

    def _count_total_records(self, mappings: List[SchemaMapping]) -> Optional[int]:
        """Sum source counts over all mappings, or None if any is unknown."""
        total = 0
        for mapping in mappings:
            try:
                count = self.source.count(mapping.source_collection)
            except Exception as e:
                logger.warning(f"Could not count records in {mapping.source_collection}: {e}")
                return None
            if count is None:
                return None
            total += count
        return total

    def _check_cancelled(self) -> None:
        if self.cancel_token.cancelled:
            raise MigrationCancelled("Migration cancelled")

    def _run_mapping(self, mapping: SchemaMapping) -> Iterator[StatusSnapshot]:
        settings = self.config.settings
        status = self.status
        label = f"{mapping.source_collection} -> {mapping.target_table}"

        self._check_cancelled()
        status.current_mapping = mapping.source_collection
        self._log("info", f"Starting migration: {label}", mapping=mapping.source_collection)

        if settings.create_table:
            self._create_table(mapping)

        reader = self.source.read_batch(mapping.source_collection, batch_size=settings.batch_size)
        mapping_processed = 0
        records_read = 0

        try:
            while True:
                self._check_cancelled()
                records = reader.next_batch()
                if records is None:
                    break

                transformed = self.transformer.transform_batch(records, mapping)
                self._flush_transform_warnings(mapping)

                if settings.dry_run:
                    written = len(transformed)
                else:
                    written = self._write_with_retries(mapping, transformed, records_read)

                records_read += len(records)
                mapping_processed += written
                status.advance(written)
                yield status.snapshot()
        finally:
            reader.close()

        self._log(
            "info",
            f"Completed migration: {label} ({mapping_processed} records)",
            mapping=mapping.source_collection,
            records=mapping_processed,
        )

    def _create_table(self, mapping: SchemaMapping) -> None:
        table = mapping.target_table
        settings = self.config.settings

        if not self.destination.supports_create_table:
            self._log("warning", f"Destination does not support table creation, skipping {table}")
            return
        if settings.dry_run:
            self._log("info", f"Dry run: skipping creation of table {table}")
            return

        key_columns = list(settings.conflict_columns) if settings.upsert else None
        schema = infer_table_schema(mapping, key_columns=key_columns)
        if settings.upsert and not schema.primary_keys:
            self._log(
                "warning",
                f"Table {table} is created without a primary key, so upserts into it "
                f"insert every record. Set conflictColumns to columns of {table} to update instead.",
                mapping=mapping.source_collection,
            )

        result = self.destination.create_table(table, schema)
        if result.success:
            self._log("info", result.message or f"Table {table} created")
        else:
            self._log("error", f"Failed to create table {table}: {result.message}")
            self.status.add_error(ErrorEntry(
                message=result.message or f"Failed to create table {table}",
                error_type="CreateTableError",
                mapping=mapping.source_collection,
            ))

    def _flush_transform_warnings(self, mapping: SchemaMapping) -> None:
        for warning in self.transformer.drain_warnings():
            meta = {k: v for k, v in warning.items() if k != "message"}
            self.status.log("warning", warning["message"], mapping=mapping.source_collection, **meta)

    def _failed_positions(self, result: WriteResult, attempted: int) -> List[int]:
        """Positions in the written batch that failed and can be retried."""
        if any(e.index is None for e in result.errors) or not result.errors:
            # Without per-record positions only a batch that wrote nothing
            # can be retried safely
            return list(range(attempted)) if result.count == 0 else []
        return sorted({e.index for e in result.errors if 0 <= e.index < attempted})

    def _write_with_retries(
        self,
        mapping: SchemaMapping,
        records: List[Record],
        batch_start: int
    ) -> int:
        """
        Write a transformed batch, retrying failed records.

        Records reported as failed are retried as a subset up to
        ``settings.retries`` times. Failures left after the last attempt are
        recorded as permanent errors.

        Returns:
            Number of records written
        """
        settings = self.config.settings
        conflict_columns = list(settings.conflict_columns) or None
        pending = list(range(len(records)))
        written = 0
        attempt = 0

        while True:
            batch = [records[i] for i in pending]
            result = self.destination.write_batch(
                mapping.target_table,
                batch,
                upsert=settings.upsert,
                conflict_columns=conflict_columns,
            )
            written += max(0, min(result.count, len(batch)))

            if not result.errors and result.count >= len(batch):
                return written

            failed = self._failed_positions(result, len(batch))
            if attempt >= settings.retries or not failed:
                self._record_write_errors(mapping, result, pending, batch_start)
                return written

            attempt += 1
            self._log(
                "warning",
                f"Retrying {len(failed)} failed record(s) for {mapping.target_table} "
                f"(attempt {attempt} of {settings.retries})",
                mapping=mapping.source_collection,
            )
            pending = [pending[i] for i in failed]

    def _record_write_errors(
        self,
        mapping: SchemaMapping,
        result: WriteResult,
        pending: List[int],
        batch_start: int
    ) -> None:
        status = self.status

        for error in result.errors:
            record_index = None
            if error.index is not None and 0 <= error.index < len(pending):
                record_index = batch_start + pending[error.index]
            status.add_error(ErrorEntry(
                message=error.message,
                error_type=error.error_type,
                mapping=mapping.source_collection,
                record_index=record_index,
            ))

        failed = len(result.errors)
        if not failed:
            missing = len(pending) - result.count
            status.add_error(ErrorEntry(
                message=f"Destination wrote {result.count} of {len(pending)} records",
                mapping=mapping.source_collection,
            ))
            failed = missing

        self._log(
            "warning",
            f"{failed} record(s) failed to write to {mapping.target_table}",
            mapping=mapping.source_collection,
        )
