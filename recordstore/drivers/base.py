"""Base driver and database handle interfaces.

A ``Driver`` turns endpoint nodes into a ``DB`` handle. A handle starts
unbound, is bound to one namespace+table by ``init`` and is usable for
CRUD and search until ``close``.

``BaseDB`` owns everything the backends share: the handle lifecycle, the
reader/writer lock, the timestamp policy and search parameter
normalization. Backends implement the ``_bind``/``_release``/``_write``/
``_read``/``_delete``/``_search`` hooks, which always run with the lock held
and a bound database.
"""

import logging
import time
from abc import ABC, abstractmethod
from enum import Enum

from recordstore.core.errors import NotAvailableError, NotFoundError
from recordstore.core.locking import ReadWriteLock
from recordstore.core.models import DEFAULT_SEARCH_LIMIT, Database, Node, Record, SearchQuery

logger = logging.getLogger(__name__)


def unix_now() -> int:
    """Current wall-clock time in unix seconds."""
    return int(time.time())


class HandleState(str, Enum):
    """Lifecycle states of a database handle."""

    UNBOUND = "unbound"
    BOUND = "bound"
    CLOSED = "closed"


class DB(ABC):
    """Abstract database handle."""

    @abstractmethod
    def init(self, database: Database) -> None:
        """Bind the handle to a namespace+table."""
        pass

    @abstractmethod
    def close(self) -> None:
        """Release connections held by the handle."""
        pass

    @abstractmethod
    def create(self, record: Record) -> None:
        """Upsert a record, stamping its timestamps."""
        pass

    @abstractmethod
    def read(self, record_id: str) -> Record | None:
        """Read a record by id."""
        pass

    @abstractmethod
    def update(self, record: Record) -> None:
        """Upsert a record, stamping its timestamps."""
        pass

    @abstractmethod
    def delete(self, record_id: str) -> None:
        """Delete a record if present."""
        pass

    @abstractmethod
    def search(
        self,
        terms: dict[str, str] | None = None,
        limit: int = DEFAULT_SEARCH_LIMIT,
        offset: int = 0,
        reverse: bool = False,
    ) -> list[Record]:
        """Search records ordered by creation time."""
        pass


class Driver(ABC):
    """Abstract driver: builds handles for one kind of backend."""

    name: str = ""

    @abstractmethod
    def new_db(self, *nodes: Node) -> DB:
        """Open an unbound handle against the first of ``nodes``.

        Raises:
            NotAvailableError: If no nodes are supplied
            BackendError: If an eager liveness probe fails
        """
        pass

    @staticmethod
    def first_node(nodes: tuple[Node, ...]) -> Node:
        """Return the node a driver connects to."""
        if not nodes:
            raise NotAvailableError("No endpoint nodes supplied")
        return nodes[0]


class BaseDB(DB):
    """Handle lifecycle, locking and timestamp policy shared by backends."""

    backend_name = ""

    def __init__(self):
        self._lock = ReadWriteLock()
        self._state = HandleState.UNBOUND
        self._database: Database | None = None

    @property
    def state(self) -> HandleState:
        return self._state

    @property
    def database(self) -> Database | None:
        return self._database

    def init(self, database: Database) -> None:
        with self._lock.write():
            if self._state is HandleState.CLOSED:
                raise NotAvailableError("Database handle is closed")

            self._bind(database)
            self._database = database
            self._state = HandleState.BOUND
            logger.info(f"Bound {self.backend_name} handle to {database}")

    def close(self) -> None:
        with self._lock.write():
            if self._state is HandleState.CLOSED:
                return

            try:
                self._release()
            finally:
                self._state = HandleState.CLOSED
                self._database = None
            logger.info(f"Closed {self.backend_name} handle")

    def create(self, record: Record) -> None:
        with self._lock.read():
            database = self._bound()
            record.validate()
            self._stamp(record)
            self._write(database, record)
            logger.debug(f"Created {record.id} in {database}")

    def update(self, record: Record) -> None:
        with self._lock.read():
            database = self._bound()
            record.validate()
            self._stamp(record)
            self._write(database, record)
            logger.debug(f"Updated {record.id} in {database}")

    def read(self, record_id: str) -> Record | None:
        with self._lock.read():
            database = self._bound()
            return self._read(database, record_id)

    def delete(self, record_id: str) -> None:
        with self._lock.read():
            database = self._bound()
            self._delete(database, record_id)
            logger.debug(f"Deleted {record_id} from {database}")

    def search(
        self,
        terms: dict[str, str] | None = None,
        limit: int = DEFAULT_SEARCH_LIMIT,
        offset: int = 0,
        reverse: bool = False,
    ) -> list[Record]:
        query = SearchQuery(
            terms=dict(terms or {}), limit=limit, offset=offset, reverse=reverse
        ).normalized()

        with self._lock.read():
            database = self._bound()
            return self._search(database, query)

    def __enter__(self) -> "BaseDB":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} {self._state.value} {self._database or ''}>"

    def _bound(self) -> Database:
        if self._state is HandleState.CLOSED:
            raise NotAvailableError("Database handle is closed")
        if self._database is None:
            raise NotFoundError("Database handle is not initialized")
        return self._database

    @staticmethod
    def _stamp(record: Record) -> None:
        now = unix_now()
        if record.created == 0:
            record.created = now
        record.updated = max(now, record.updated)

    # Backend hooks

    @abstractmethod
    def _bind(self, database: Database) -> None:
        """Prepare backend resources for ``database``."""
        pass

    @abstractmethod
    def _release(self) -> None:
        """Release backend resources. Must tolerate never having bound."""
        pass

    @abstractmethod
    def _write(self, database: Database, record: Record) -> None:
        """Persist the stamped record."""
        pass

    @abstractmethod
    def _read(self, database: Database, record_id: str) -> Record | None:
        """Fetch a record."""
        pass

    @abstractmethod
    def _delete(self, database: Database, record_id: str) -> None:
        """Remove a record if present."""
        pass

    @abstractmethod
    def _search(self, database: Database, query: SearchQuery) -> list[Record]:
        """Run a normalized query."""
        pass
