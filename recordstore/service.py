"""Record service: one bound handle per database descriptor.

The service picks a driver from a registry, opens a handle the first time a
namespace+table is addressed, keeps it for later calls and closes them all
on shutdown.
"""

import logging
import threading

from recordstore.core.models import DEFAULT_SEARCH_LIMIT, Database, Node, Record

from .drivers.base import DB
from .drivers.registry import DriverRegistry

logger = logging.getLogger(__name__)


class RecordService:
    """Routes record operations to per-database handles."""

    def __init__(self, registry: DriverRegistry, driver_name: str, nodes: list[Node]):
        self.registry = registry
        self.driver_name = driver_name
        self.nodes = list(nodes)
        self._driver = registry.driver(driver_name)
        self._handles: dict[Database, DB] = {}
        self._lock = threading.Lock()

    def handle(self, database: Database) -> DB:
        """Get the bound handle for ``database``, opening it on first use.

        Opening happens outside the cache lock so a slow backend only delays
        callers of the same descriptor. When two callers race to open one
        descriptor, the first handle cached wins and the other is closed.
        """
        with self._lock:
            handle = self._handles.get(database)
        if handle is not None:
            return handle

        handle = self._driver.new_db(*self.nodes)
        try:
            handle.init(database)
        except Exception:
            handle.close()
            raise

        with self._lock:
            cached = self._handles.setdefault(database, handle)
        if cached is not handle:
            handle.close()
            return cached

        logger.info(f"Opened {self.driver_name} handle for {database}")
        return handle

    def create(self, database: Database, record: Record) -> Record:
        self.handle(database).create(record)
        return record

    def read(self, database: Database, record_id: str) -> Record | None:
        return self.handle(database).read(record_id)

    def update(self, database: Database, record: Record) -> Record:
        self.handle(database).update(record)
        return record

    def delete(self, database: Database, record_id: str) -> None:
        self.handle(database).delete(record_id)

    def search(
        self,
        database: Database,
        terms: dict[str, str] | None = None,
        limit: int = DEFAULT_SEARCH_LIMIT,
        offset: int = 0,
        reverse: bool = False,
    ) -> list[Record]:
        return self.handle(database).search(terms, limit, offset, reverse)

    def drivers(self) -> list[str]:
        """Names of the drivers available in the registry."""
        return self.registry.names()

    def close(self) -> None:
        """Close every open handle. Later calls open fresh ones."""
        with self._lock:
            handles = list(self._handles.items())
            self._handles.clear()

        for database, handle in handles:
            handle.close()
            logger.info(f"Closed {self.driver_name} handle for {database}")

    def __enter__(self) -> "RecordService":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()
