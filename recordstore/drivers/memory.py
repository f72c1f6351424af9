"""In-memory driver for testing and lightweight scenarios."""

import threading

from recordstore.core.models import (
    Database,
    Node,
    Record,
    SearchQuery,
    decode_record,
    encode_record,
    matches_terms,
)

from .base import BaseDB, Driver


class MemoryStore:
    """Process-local table storage shared by the handles of one driver.

    Records are kept in their encoded wire form so reads go through the
    same codec as the network backends.
    """

    def __init__(self):
        self._tables: dict[tuple[str, str], dict[str, bytes]] = {}
        self._lock = threading.Lock()

    def ensure(self, database: Database) -> None:
        with self._lock:
            self._tables.setdefault((database.name, database.table), {})

    def put(self, database: Database, record_id: str, payload: bytes) -> None:
        with self._lock:
            self._tables.setdefault((database.name, database.table), {})[
                record_id
            ] = payload

    def get(self, database: Database, record_id: str) -> bytes | None:
        with self._lock:
            return self._tables.get((database.name, database.table), {}).get(
                record_id
            )

    def remove(self, database: Database, record_id: str) -> None:
        with self._lock:
            self._tables.get((database.name, database.table), {}).pop(
                record_id, None
            )

    def snapshot(self, database: Database) -> list[bytes]:
        with self._lock:
            return list(self._tables.get((database.name, database.table), {}).values())


class MemoryDB(BaseDB):
    """Handle over a MemoryStore. A missing id reads as ``None``."""

    backend_name = "memory"

    def __init__(self, store: MemoryStore):
        super().__init__()
        self.store = store

    def _bind(self, database: Database) -> None:
        self.store.ensure(database)

    def _release(self) -> None:
        pass

    def _write(self, database: Database, record: Record) -> None:
        self.store.put(database, record.id, encode_record(record))

    def _read(self, database: Database, record_id: str) -> Record | None:
        payload = self.store.get(database, record_id)
        if payload is None:
            return None
        return decode_record(payload, backend=self.backend_name)

    def _delete(self, database: Database, record_id: str) -> None:
        self.store.remove(database, record_id)

    def _search(self, database: Database, query: SearchQuery) -> list[Record]:
        records = [
            decode_record(payload, backend=self.backend_name)
            for payload in self.store.snapshot(database)
        ]
        if query.terms:
            records = [r for r in records if matches_terms(r.to_document(), query.terms)]

        records.sort(key=lambda r: (r.created, r.id), reverse=query.reverse)
        return records[query.offset : query.offset + query.limit]


class MemoryDriver(Driver):
    """Driver whose handles share one in-process store.

    Nodes are accepted for interface parity but not contacted.
    """

    name = "memory"

    def __init__(self, store: MemoryStore | None = None):
        self.store = store or MemoryStore()

    def new_db(self, *nodes: Node) -> MemoryDB:
        self.first_node(nodes)
        return MemoryDB(self.store)
