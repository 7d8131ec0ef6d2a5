"""Result models returned by connector operations."""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional


@dataclass
class ConnectionTestResult:
    """Outcome of a connection test. Connectors report failures here rather than raising."""
    success: bool
    message: str = ""
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        result = {"success": self.success, "message": self.message}
        if self.error:
            result["error"] = self.error
        return result


@dataclass
class RecordError:
    """A per-record write failure."""
    message: str
    index: Optional[int] = None  # position in the batch passed to write_batch
    record: Optional[Dict[str, Any]] = None
    error_type: Optional[str] = None

    @classmethod
    def from_exception(
        cls,
        exc: BaseException,
        index: Optional[int] = None,
        record: Optional[Dict[str, Any]] = None
    ) -> "RecordError":
        return cls(
            message=str(exc),
            index=index,
            record=record,
            error_type=type(exc).__name__,
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary representation."""
        return {
            "message": self.message,
            "index": self.index,
            "error_type": self.error_type,
        }


@dataclass
class WriteResult:
    """Result of a batch write."""
    success: bool = True
    count: int = 0
    errors: List[RecordError] = field(default_factory=list)

    @classmethod
    def from_errors(cls, attempted: int, errors: List[RecordError]) -> "WriteResult":
        """Build a result for a batch where every record was attempted individually."""
        return cls(
            success=not errors,
            count=attempted - len(errors),
            errors=errors,
        )

    @property
    def failed_indexes(self) -> List[int]:
        """Batch positions of records known to have failed."""
        return [e.index for e in self.errors if e.index is not None]

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary representation."""
        return {
            "success": self.success,
            "count": self.count,
            "errors": [e.to_dict() for e in self.errors],
        }


@dataclass
class CreateTableResult:
    """Outcome of a table creation request."""
    success: bool
    message: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {"success": self.success, "message": self.message}
