"""In-memory job tracker exposing migration runs to pollers."""

import copy
import logging
import threading
import traceback
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional, Union

from .models.status import ErrorEntry, StatusSnapshot

logger = logging.getLogger(__name__)


class JobStatus:
    """Job status values. Pipeline states are used once a run starts."""
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"

    TERMINAL = (COMPLETED, FAILED, CANCELLED)


@dataclass
class Job:
    """The externally observable handle to one migration run."""
    id: str
    status: str = JobStatus.PENDING
    progress: float = 0.0
    processed_records: int = 0
    total_records: Optional[int] = None
    logs: List[Dict[str, Any]] = field(default_factory=list)
    errors: List[Dict[str, Any]] = field(default_factory=list)
    created_at: datetime = field(default_factory=datetime.utcnow)
    updated_at: datetime = field(default_factory=datetime.utcnow)
    config: Optional[Dict[str, Any]] = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    @property
    def is_finished(self) -> bool:
        return self.status in JobStatus.TERMINAL

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary representation."""
        return {
            "id": self.id,
            "status": self.status,
            "progress": self.progress,
            "processed_records": self.processed_records,
            "total_records": self.total_records,
            "logs": self.logs,
            "errors": self.errors,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
            "metadata": self.metadata,
        }


@dataclass
class _JobSlot:
    job: Job
    lock: threading.Lock = field(default_factory=threading.Lock)
    # Number of snapshot log/error entries already forwarded into the job
    forwarded_logs: int = 0
    forwarded_errors: int = 0


_JOB_FIELDS = {"status", "progress", "processed_records", "total_records", "config", "metadata"}


class JobTracker:
    """
    Registry of jobs for the lifetime of the process.

    Every mutation of a job holds that job's lock, so status updates and
    log/error appends issued from different threads never interleave.
    ``get_job`` returns a deep copy, so a poller never sees a job that is
    half updated.
    """

    def __init__(self):
        self._slots: Dict[str, _JobSlot] = {}
        self._registry_lock = threading.Lock()

    def _slot(self, job_id: str) -> Optional[_JobSlot]:
        with self._registry_lock:
            return self._slots.get(job_id)

    def create_job(self, job_id: str, initial_data: Optional[Dict[str, Any]] = None) -> Job:
        """
        Register a new job.

        An existing job with the same id is replaced.
        """
        job = Job(id=job_id)
        for key, value in (initial_data or {}).items():
            if key in _JOB_FIELDS:
                setattr(job, key, value)
            else:
                job.metadata[key] = value

        with self._registry_lock:
            if job_id in self._slots:
                logger.warning(f"Job {job_id} already exists and will be replaced")
            self._slots[job_id] = _JobSlot(job=job)

        logger.info(f"Created job {job_id}")
        return copy.deepcopy(job)

    def get_job(self, job_id: str) -> Optional[Job]:
        """Get a consistent copy of a job, or None if it does not exist."""
        slot = self._slot(job_id)
        if slot is None:
            return None
        with slot.lock:
            return copy.deepcopy(slot.job)

    def update_job(self, job_id: str, updates: Dict[str, Any]) -> None:
        """Merge fields into a job. No-op if the job does not exist."""
        slot = self._slot(job_id)
        if slot is None:
            return
        with slot.lock:
            job = slot.job
            for key, value in updates.items():
                if key in _JOB_FIELDS:
                    setattr(job, key, value)
                else:
                    job.metadata[key] = value
            job.updated_at = datetime.utcnow()

    def add_log(self, job_id: str, level: str, message: str, meta: Optional[Dict[str, Any]] = None) -> None:
        """Append a log entry to a job. No-op if the job does not exist."""
        slot = self._slot(job_id)
        if slot is None:
            return
        entry = {
            "timestamp": datetime.utcnow().isoformat(),
            "level": level,
            "message": message,
            **(meta or {}),
        }
        with slot.lock:
            slot.job.logs.append(entry)
            slot.job.updated_at = datetime.utcnow()

    def add_error(self, job_id: str, error: Union[BaseException, ErrorEntry, str]) -> None:
        """Append an error to a job. No-op if the job does not exist."""
        slot = self._slot(job_id)
        if slot is None:
            return

        if isinstance(error, ErrorEntry):
            entry = error.to_dict()
        elif isinstance(error, BaseException):
            entry = {
                "timestamp": datetime.utcnow().isoformat(),
                "message": str(error),
                "stack": "".join(
                    traceback.format_exception(type(error), error, error.__traceback__)
                ),
            }
        else:
            entry = {
                "timestamp": datetime.utcnow().isoformat(),
                "message": str(error),
                "stack": None,
            }

        with slot.lock:
            slot.job.errors.append(entry)
            slot.job.updated_at = datetime.utcnow()

    def apply_snapshot(self, job_id: str, snapshot: StatusSnapshot) -> None:
        """
        Forward one pipeline snapshot into a job.

        Status and counts are replaced; only log and error entries not
        forwarded by an earlier snapshot are appended. Applied atomically.
        """
        slot = self._slot(job_id)
        if slot is None:
            return

        with slot.lock:
            job = slot.job
            job.status = snapshot.state.value
            job.progress = snapshot.progress
            job.total_records = snapshot.total_records
            # processed_records never goes backwards within a run
            job.processed_records = max(job.processed_records, snapshot.processed_records)

            for entry in snapshot.logs[slot.forwarded_logs:]:
                job.logs.append(entry.to_dict())
            for entry in snapshot.errors[slot.forwarded_errors:]:
                job.errors.append(entry.to_dict())
            slot.forwarded_logs = len(snapshot.logs)
            slot.forwarded_errors = len(snapshot.errors)

            if snapshot.current_mapping is not None:
                job.metadata["current_mapping"] = snapshot.current_mapping
            job.updated_at = datetime.utcnow()

    def get_all_jobs(self) -> List[Job]:
        """Consistent copies of every job, oldest first."""
        with self._registry_lock:
            slots = list(self._slots.values())
        jobs = []
        for slot in slots:
            with slot.lock:
                jobs.append(copy.deepcopy(slot.job))
        return sorted(jobs, key=lambda j: j.created_at)

    def delete_job(self, job_id: str) -> bool:
        """Remove a job. Returns whether a job was removed."""
        with self._registry_lock:
            removed = self._slots.pop(job_id, None)
        if removed:
            logger.info(f"Deleted job {job_id}")
        return removed is not None
