"""Shared FastAPI dependencies."""

import threading
from typing import Optional

from ..connectors.factory import create_connector
from ..runner import ConnectorFactory, JobManager

_job_manager: Optional[JobManager] = None
_job_manager_lock = threading.Lock()


def get_job_manager() -> JobManager:
    """Process-wide job manager, created on first use."""
    global _job_manager
    with _job_manager_lock:
        if _job_manager is None:
            _job_manager = JobManager()
        return _job_manager


def get_connector_factory() -> ConnectorFactory:
    return create_connector


def shutdown_job_manager() -> None:
    global _job_manager
    with _job_manager_lock:
        manager, _job_manager = _job_manager, None
    if manager is not None:
        manager.shutdown(wait=False)
