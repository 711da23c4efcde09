"""Exception hierarchy for the assessment tracker."""

from typing import Optional


class TrackerError(Exception):
    """Base exception for all tracker errors."""

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        details: Optional[dict] = None,
    ):
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.details = details or {}

    def __str__(self) -> str:
        if self.error_code:
            return f"[{self.error_code}] {self.message}"
        return self.message


class CSVParseError(TrackerError):
    """CSV text could not be tokenised into rows."""

    def __init__(
        self,
        message: str,
        line_number: Optional[int] = None,
        **kwargs,
    ):
        super().__init__(message, error_code="CSV_PARSE", **kwargs)
        self.line_number = line_number
        self.details.update({"line_number": line_number})


class ValidationError(TrackerError):
    """An entity or mutation violates a store invariant."""

    def __init__(
        self,
        message: str,
        field: Optional[str] = None,
        entity_id: Optional[str] = None,
        **kwargs,
    ):
        super().__init__(message, error_code="VALIDATION", **kwargs)
        self.field = field
        self.entity_id = entity_id
        self.details.update({
            "field": field,
            "entity_id": entity_id,
        })


class InterchangeFormatError(TrackerError):
    """A JSON interchange document is malformed or missing its payload."""

    def __init__(self, message: str, **kwargs):
        super().__init__(message, error_code="INTERCHANGE_FORMAT", **kwargs)


class MigrationError(TrackerError):
    """A persisted snapshot could not be upgraded to the current schema."""

    def __init__(
        self,
        message: str,
        store: Optional[str] = None,
        from_version: Optional[int] = None,
        to_version: Optional[int] = None,
        **kwargs,
    ):
        super().__init__(message, error_code="MIGRATION", **kwargs)
        self.store = store
        self.from_version = from_version
        self.to_version = to_version
        self.details.update({
            "store": store,
            "from_version": from_version,
            "to_version": to_version,
        })


class SnapshotStorageError(TrackerError):
    """Reading or writing a snapshot envelope failed."""

    def __init__(
        self,
        message: str,
        store: Optional[str] = None,
        path: Optional[str] = None,
        **kwargs,
    ):
        super().__init__(message, error_code="SNAPSHOT_STORAGE", **kwargs)
        self.store = store
        self.path = path
        self.details.update({
            "store": store,
            "path": path,
        })


class ExternalServiceError(TrackerError):
    """A call to an external issue tracker failed."""

    def __init__(
        self,
        message: str,
        service: Optional[str] = None,
        status_code: Optional[int] = None,
        **kwargs,
    ):
        super().__init__(message, error_code="EXTERNAL_SERVICE", **kwargs)
        self.service = service
        self.status_code = status_code
        self.details.update({
            "service": service,
            "status_code": status_code,
        })
