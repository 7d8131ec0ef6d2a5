"""Pipeline status models."""

import traceback
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple


class PipelineState(str, Enum):
    """State of a migration pipeline run."""
    IDLE = "idle"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in (PipelineState.COMPLETED, PipelineState.FAILED, PipelineState.CANCELLED)


@dataclass(frozen=True)
class LogEntry:
    """A human-readable audit entry emitted by a pipeline run."""
    level: str  # info, warning, error
    message: str
    timestamp: datetime = field(default_factory=datetime.utcnow)
    meta: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary representation."""
        return {
            "timestamp": self.timestamp.isoformat(),
            "level": self.level,
            "message": self.message,
            **self.meta,
        }


@dataclass(frozen=True)
class ErrorEntry:
    """A structured error recorded by a pipeline run."""
    message: str
    timestamp: datetime = field(default_factory=datetime.utcnow)
    stack: Optional[str] = None
    error_type: Optional[str] = None
    mapping: Optional[str] = None
    record_index: Optional[int] = None

    @classmethod
    def from_exception(cls, exc: BaseException, mapping: Optional[str] = None) -> "ErrorEntry":
        return cls(
            message=str(exc),
            stack="".join(traceback.format_exception(type(exc), exc, exc.__traceback__)),
            error_type=type(exc).__name__,
            mapping=mapping,
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary representation."""
        return {
            "timestamp": self.timestamp.isoformat(),
            "message": self.message,
            "stack": self.stack,
            "error_type": self.error_type,
            "mapping": self.mapping,
            "record_index": self.record_index,
        }


@dataclass(frozen=True)
class StatusSnapshot:
    """Immutable view of a pipeline's status at one batch boundary."""
    version: int
    state: PipelineState
    progress: float
    total_records: Optional[int]
    processed_records: int
    errors: Tuple[ErrorEntry, ...] = ()
    logs: Tuple[LogEntry, ...] = ()
    current_mapping: Optional[str] = None

    @property
    def is_terminal(self) -> bool:
        return self.state.is_terminal

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary representation."""
        return {
            "version": self.version,
            "state": self.state.value,
            "progress": self.progress,
            "total_records": self.total_records,
            "processed_records": self.processed_records,
            "current_mapping": self.current_mapping,
            "errors": [e.to_dict() for e in self.errors],
            "logs": [entry.to_dict() for entry in self.logs],
        }


@dataclass
class PipelineStatus:
    """
    Mutable status owned by a single pipeline run.

    Observers never see this object directly; they receive a StatusSnapshot
    from ``snapshot()`` at each batch boundary.
    """
    state: PipelineState = PipelineState.IDLE
    progress: float = 0.0
    total_records: Optional[int] = None
    processed_records: int = 0
    errors: List[ErrorEntry] = field(default_factory=list)
    logs: List[LogEntry] = field(default_factory=list)
    current_mapping: Optional[str] = None
    version: int = 0

    def log(self, level: str, message: str, **meta: Any) -> LogEntry:
        entry = LogEntry(level=level, message=message, meta=meta)
        self.logs.append(entry)
        return entry

    def add_error(self, entry: ErrorEntry) -> None:
        self.errors.append(entry)

    def advance(self, count: int) -> None:
        """Add processed records and recompute progress."""
        if count > 0:
            self.processed_records += count
        self._recompute_progress()

    def _recompute_progress(self) -> None:
        if not self.total_records:
            self.progress = 0.0
            return
        percent = (self.processed_records / self.total_records) * 100
        self.progress = min(100.0, max(0.0, percent))

    def snapshot(self) -> StatusSnapshot:
        self.version += 1
        return StatusSnapshot(
            version=self.version,
            state=self.state,
            progress=self.progress,
            total_records=self.total_records,
            processed_records=self.processed_records,
            errors=tuple(self.errors),
            logs=tuple(self.logs),
            current_mapping=self.current_mapping,
        )
