"""Core models, errors and locking shared by every driver."""

from .errors import (
    BackendError,
    ConfigError,
    DriverNotFoundError,
    NotAvailableError,
    NotFoundError,
    RecordNotFoundError,
    RecordStoreError,
    RecordValidationError,
)
from .locking import ReadWriteLock
from .models import (
    DEFAULT_SEARCH_LIMIT,
    Database,
    Node,
    Record,
    SearchQuery,
    decode_document,
    decode_record,
    encode_record,
    matches_terms,
)

__all__ = [
    "DEFAULT_SEARCH_LIMIT",
    "BackendError",
    "ConfigError",
    "Database",
    "DriverNotFoundError",
    "Node",
    "NotAvailableError",
    "NotFoundError",
    "ReadWriteLock",
    "Record",
    "RecordNotFoundError",
    "RecordStoreError",
    "RecordValidationError",
    "SearchQuery",
    "decode_document",
    "decode_record",
    "encode_record",
    "matches_terms",
]
