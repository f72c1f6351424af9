"""Exception classes for the record store."""


class RecordStoreError(Exception):
    """Base exception for record store errors."""

    pass


class NotAvailableError(RecordStoreError):
    """Raised when no usable endpoint or handle is available."""

    def __init__(self, message: str = "Not available"):
        """Initialize with message."""
        super().__init__(message)


class NotFoundError(RecordStoreError):
    """Raised when a handle is unbound or a record does not exist."""

    def __init__(self, message: str = "Not found"):
        """Initialize with message."""
        super().__init__(message)


class DriverNotFoundError(NotFoundError):
    """Raised when a driver name is not registered."""

    def __init__(self, name: str):
        """Initialize with driver name."""
        self.name = name
        super().__init__(f"Driver not found: {name}")


class RecordNotFoundError(NotFoundError):
    """Raised when a record id is absent from a backend that tracks absence."""

    def __init__(self, record_id: str):
        """Initialize with record ID."""
        self.record_id = record_id
        super().__init__(f"Record not found: {record_id}")


class BackendError(RecordStoreError):
    """Raised for failures reported by a storage backend.

    The client library exception is chained as ``__cause__``. ``retryable``
    marks connection failures, timeouts and overload responses.
    """

    def __init__(self, message: str, backend: str = "", retryable: bool = False):
        """Initialize with message, backend name and retry hint."""
        self.backend = backend
        self.retryable = retryable
        prefix = f"{backend}: " if backend else ""
        super().__init__(f"{prefix}{message}")


class RecordValidationError(RecordStoreError, ValueError):
    """Raised when record or descriptor data is invalid."""

    def __init__(self, field: str, message: str):
        """Initialize with field and message."""
        self.field = field
        super().__init__(f"Validation error for {field}: {message}")


class ConfigError(RecordStoreError):
    """Raised for unreadable or invalid configuration."""

    pass
