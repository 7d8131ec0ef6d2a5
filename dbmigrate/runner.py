"""Job runner - drives pipelines in the background and feeds the job tracker."""

import logging
import os
import uuid
from concurrent.futures import Future, ThreadPoolExecutor, TimeoutError as FutureTimeoutError
from typing import Any, Callable, Dict, Optional

from .connectors.base import BaseConnector
from .connectors.factory import create_connector
from .exceptions import MigrationCancelled
from .jobs import JobStatus, JobTracker
from .models.config import MigrationConfig, validate_migration_config
from .pipeline import CancellationToken, MigrationPipeline

logger = logging.getLogger(__name__)

ConnectorFactory = Callable[[Any], BaseConnector]

DEFAULT_MAX_WORKERS = 4


def run_migration(
    job_id: str,
    config: Any,
    tracker: JobTracker,
    connector_factory: ConnectorFactory = create_connector,
    cancel_token: Optional[CancellationToken] = None
) -> Optional[str]:
    """
    Run one migration and forward its progress into the job tracker.

    Both connectors are always closed, whatever the outcome, and a failure
    to close never replaces the run's real outcome. Errors are recorded on
    the job rather than raised.

    Args:
        job_id: Job to report into
        config: MigrationConfig or raw dict
        tracker: Job tracker
        connector_factory: Builds a connector from a connection config
        cancel_token: Token checked by the pipeline between batches

    Returns:
        Final job status
    """
    source: Optional[BaseConnector] = None
    destination: Optional[BaseConnector] = None

    try:
        config = validate_migration_config(config)
        source = connector_factory(config.source)
        destination = connector_factory(config.destination)

        tracker.update_job(job_id, {"status": JobStatus.RUNNING})
        tracker.add_log(job_id, "info", "Migration started")
        logger.info(f"Job {job_id}: migration started")

        pipeline = MigrationPipeline(source, destination, config, cancel_token=cancel_token)
        for snapshot in pipeline.run():
            tracker.apply_snapshot(job_id, snapshot)

    except MigrationCancelled:
        logger.info(f"Job {job_id}: migration cancelled")
        tracker.update_job(job_id, {"status": JobStatus.CANCELLED})

    except Exception as e:
        logger.error(f"Job {job_id}: migration failed: {e}")
        job = tracker.get_job(job_id)
        # The pipeline already recorded its own failures through the snapshot
        if job is None or job.status != JobStatus.FAILED:
            tracker.add_error(job_id, e)
            tracker.add_log(job_id, "error", f"Migration failed: {e}")
        tracker.update_job(job_id, {"status": JobStatus.FAILED})

    finally:
        for connector in (source, destination):
            if connector is not None:
                connector.close_quietly()

    job = tracker.get_job(job_id)
    status = job.status if job else None
    logger.info(f"Job {job_id}: finished with status {status}")
    return status


class JobManager:
    """
    Starts migrations in a thread pool and tracks them.

    Each job gets its own pipeline, connectors and cancellation token; jobs
    share nothing but the tracker.
    """

    def __init__(
        self,
        tracker: Optional[JobTracker] = None,
        max_workers: Optional[int] = None,
        connector_factory: ConnectorFactory = create_connector
    ):
        if max_workers is None:
            max_workers = int(os.environ.get("DBMIGRATE_MAX_WORKERS", DEFAULT_MAX_WORKERS))
        self.tracker = tracker or JobTracker()
        self.connector_factory = connector_factory
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="dbmigrate")
        self._futures: Dict[str, Future] = {}
        self._tokens: Dict[str, CancellationToken] = {}

    def start(self, config: Any, job_id: Optional[str] = None) -> str:
        """
        Validate a config, create a job and start it in the background.

        Raises:
            ConfigurationError: if the config is invalid (no job is created)
        """
        config = validate_migration_config(config)
        job_id = job_id or str(uuid.uuid4())
        token = CancellationToken()

        self.tracker.create_job(job_id, {
            "status": JobStatus.PENDING,
            "config": config.to_dict(),
        })
        self._tokens[job_id] = token
        self._futures[job_id] = self._executor.submit(
            run_migration,
            job_id,
            config,
            self.tracker,
            self.connector_factory,
            token,
        )
        logger.info(f"Queued migration job {job_id}")
        return job_id

    def cancel(self, job_id: str) -> bool:
        """Request cancellation. Returns False if the job is unknown or finished."""
        token = self._tokens.get(job_id)
        job = self.tracker.get_job(job_id)
        if token is None or job is None or job.is_finished:
            return False
        token.cancel()
        self.tracker.add_log(job_id, "info", "Cancellation requested")
        return True

    def wait(self, job_id: str, timeout: Optional[float] = None) -> Optional[str]:
        """Wait for a job to finish and return its final status."""
        future = self._futures.get(job_id)
        if future is None:
            return None
        try:
            return future.result(timeout=timeout)
        except FutureTimeoutError:
            return None

    def forget(self, job_id: str) -> bool:
        """Delete a job from the tracker and drop its handles."""
        self._futures.pop(job_id, None)
        self._tokens.pop(job_id, None)
        return self.tracker.delete_job(job_id)

    def shutdown(self, wait: bool = True) -> None:
        """Cancel running jobs and stop the worker pool."""
        for token in self._tokens.values():
            token.cancel()
        self._executor.shutdown(wait=wait)
