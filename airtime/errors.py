from typing import Optional


class AirtimeError(Exception):
    """Base class for errors surfaced to API callers."""

    status_code = 500
    code = "internal_error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(AirtimeError):
    """A generation parameter violates a constraint."""

    status_code = 422
    code = "validation_error"


class InvalidRangeError(ValidationError):
    """Date or daily time bounds are inverted."""

    code = "invalid_range"


class InvalidDurationError(ValidationError):
    """Slot duration is not positive."""

    code = "invalid_duration"


class NotFoundError(AirtimeError):
    """A requested record does not exist."""

    status_code = 404
    code = "not_found"


class SourceNotFoundError(NotFoundError):
    """The requested rotation group does not exist."""

    code = "source_not_found"


class EmptySourceError(AirtimeError):
    """The queue or rotation group has nothing to schedule.

    Never reaches the caller as a failure: the generator turns it into a
    zero-entry success.
    """

    status_code = 200
    code = "empty_source"


class CatalogLookupError(AirtimeError):
    """The catalog could not describe a content item."""

    status_code = 502
    code = "catalog_lookup_failed"

    def __init__(self, content_id: str, message: str):
        super().__init__(message)
        self.content_id = content_id


class CursorInconsistencyError(AirtimeError):
    """The catalog reports fewer episodes than a cursor already consumed."""

    code = "cursor_inconsistent"

    def __init__(self, content_id: str, consumed: int, total: int):
        super().__init__(
            f"Cursor for {content_id} consumed {consumed} episode(s) "
            f"but the catalog only lists {total}"
        )
        self.content_id = content_id
        self.consumed = consumed
        self.total = total


class ConflictResolutionError(AirtimeError):
    """Persisting a generated batch failed; nothing was committed. Retryable."""

    status_code = 503
    code = "conflict_resolution_failed"
    retryable = True

    def __init__(self, message: str, cause: Optional[Exception] = None):
        super().__init__(message)
        self.cause = cause


class GenerationTimeoutError(AirtimeError):
    """The caller's deadline expired before persisting began."""

    status_code = 504
    code = "generation_timeout"
