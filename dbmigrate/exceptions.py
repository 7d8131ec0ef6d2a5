"""Exception hierarchy for the migration toolkit."""

from typing import Any, Dict, List, Optional


class MigrationError(Exception):
    """Base class for all errors raised by dbmigrate."""


class ConfigurationError(MigrationError):
    """
    A migration or connection configuration failed validation.

    Carries every violation found, not just the first one, so callers can
    report the complete list back to the user.
    """

    def __init__(self, errors: List[Dict[str, Any]], message: Optional[str] = None):
        self.errors = errors
        if message is None:
            details = "; ".join(
                f"{e.get('loc', '<root>')}: {e.get('msg', '')}" for e in errors
            )
            message = f"Invalid configuration ({len(errors)} error(s)): {details}"
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        return {"message": str(self), "errors": self.errors}


class UnsupportedDatabaseError(MigrationError):
    """No connector is registered for the requested database type."""

    def __init__(self, db_type: Any):
        self.db_type = db_type
        super().__init__(f"Unsupported database type: {db_type}")


class ConnectorError(MigrationError):
    """A connector operation failed against the underlying database."""


class DiscoveryError(ConnectorError):
    """Listing collections/tables failed."""


class SchemaInspectionError(ConnectorError):
    """Reading the schema of a collection/table failed."""

    def __init__(self, name: str, reason: str):
        self.name = name
        super().__init__(f"Failed to get schema for {name}: {reason}")


class ReadError(ConnectorError):
    """Reading a batch from a collection/table failed."""

    def __init__(self, name: str, reason: str):
        self.name = name
        super().__init__(f"Failed to read batch from {name}: {reason}")


class BatchWriteError(ConnectorError):
    """
    A batch write failed as a whole rather than record by record.

    Connectors report it as the error of every record the batch could not
    write.
    """

    def __init__(self, name: str, reason: str):
        self.name = name
        super().__init__(f"Failed to write batch to {name}: {reason}")


class UnsupportedOperationError(ConnectorError):
    """The connector does not implement an optional capability."""


class CoercionError(MigrationError):
    """A value could not be converted between field types."""

    def __init__(self, value: Any, source_type: str, target_type: str, reason: str = ""):
        self.value = value
        self.source_type = source_type
        self.target_type = target_type
        message = f"Type conversion failed: {source_type} -> {target_type}"
        if reason:
            message = f"{message} ({reason})"
        super().__init__(message)


class PipelineError(MigrationError):
    """The pipeline was used incorrectly (e.g. run twice)."""


class MigrationCancelled(MigrationError):
    """The run was cancelled cooperatively at a batch boundary."""
