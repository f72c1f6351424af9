"""Pluggable record storage over Elasticsearch and Redis.

A driver registry selects a backend by name; drivers open database handles
that share one contract (init, create, read, update, delete, search, close)
while mapping records onto their own storage primitives.
"""

__version__ = "0.1.0"

from recordstore.core import (
    BackendError,
    Database,
    DriverNotFoundError,
    Node,
    NotAvailableError,
    NotFoundError,
    Record,
    RecordNotFoundError,
    RecordStoreError,
    RecordValidationError,
    SearchQuery,
)
from recordstore.drivers import DB, Driver, DriverRegistry, build_registry
from recordstore.service import RecordService

__all__ = [
    "__version__",
    "DB",
    "BackendError",
    "Database",
    "Driver",
    "DriverNotFoundError",
    "DriverRegistry",
    "Node",
    "NotAvailableError",
    "NotFoundError",
    "Record",
    "RecordNotFoundError",
    "RecordService",
    "RecordStoreError",
    "RecordValidationError",
    "SearchQuery",
    "build_registry",
]
