"""Redis driver.

Tables are spread over a fixed number of logical Redis databases: a table
always lands on ``fnv1a_32(table) % slot_count``, so every process agrees on
the slot, and tables that collide simply share it. Keys are prefixed with
``name:table:`` which keeps colliding tables apart; ``%`` and ``:`` inside
a name or table are percent-escaped.

Each record is stored as its JSON wire document at
``name:table:record:<id>``. A sorted set at ``name:table:created`` scores
every id by its ``created`` stamp and serves as the search index: searches
walk it in order, fetch payloads in batches and filter terms client-side.
"""

import logging
from collections.abc import Callable

import redis

from recordstore.config import RedisConfig
from recordstore.core.errors import BackendError
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

logger = logging.getLogger(__name__)

FNV32_OFFSET = 0x811C9DC5
FNV32_PRIME = 0x01000193


def fnv1a_32(value: str) -> int:
    """32-bit FNV-1a hash of the UTF-8 bytes of ``value``."""
    digest = FNV32_OFFSET
    for byte in value.encode("utf-8"):
        digest ^= byte
        digest = (digest * FNV32_PRIME) & 0xFFFFFFFF
    return digest


def table_slot(table: str, slot_count: int) -> int:
    """Logical database a table is stored in."""
    return fnv1a_32(table) % slot_count


def _key_part(value: str) -> str:
    return value.replace("%", "%25").replace(":", "%3A")


def record_key(database: Database, record_id: str) -> str:
    return f"{_key_part(database.name)}:{_key_part(database.table)}:record:{record_id}"


def index_key(database: Database) -> str:
    return f"{_key_part(database.name)}:{_key_part(database.table)}:created"


def _backend_error(error: redis.RedisError, action: str) -> BackendError:
    retryable = isinstance(error, (redis.ConnectionError, redis.TimeoutError))
    return BackendError(
        f"{action} failed: {error}", backend=RedisDriver.name, retryable=retryable
    )


class RedisDB(BaseDB):
    """Handle holding one client per table it has been bound to."""

    backend_name = "redis"

    def __init__(
        self,
        host: str,
        port: int,
        config: RedisConfig,
        client_class: Callable[..., redis.Redis] = redis.Redis,
    ):
        super().__init__()
        self.host = host
        self.port = port
        self.config = config
        self.client_class = client_class
        self.clients: dict[str, redis.Redis] = {}
        self._client: redis.Redis | None = None

    def _bind(self, database: Database) -> None:
        client = self.clients.get(database.table)
        if client is None:
            slot = table_slot(database.table, self.config.slot_count)
            client = self.client_class(
                host=self.host,
                port=self.port,
                db=slot,
                password=self.config.password,
                socket_timeout=self.config.socket_timeout,
                decode_responses=True,
            )
            logger.info(
                f"Opened Redis client for table {database.table} on db {slot}"
            )

        try:
            client.ping()
        except redis.RedisError as e:
            self.clients.pop(database.table, None)
            client.close()
            logger.error(f"Redis at {self.host}:{self.port} is unreachable: {e}")
            raise _backend_error(e, "ping") from e

        self.clients[database.table] = client
        self._client = client

    def _release(self) -> None:
        clients = list(self.clients.values())
        self.clients.clear()
        self._client = None

        for client in clients:
            try:
                client.close()
            except redis.RedisError as e:
                logger.warning(f"Error closing Redis client: {e}")

    @property
    def client(self) -> redis.Redis:
        """Get the client of the bound table, ensuring it exists."""
        if self._client is None:
            raise RuntimeError("Redis client not initialized")
        return self._client

    def _write(self, database: Database, record: Record) -> None:
        payload = encode_record(record).decode("utf-8")
        try:
            pipe = self.client.pipeline(transaction=True)
            pipe.set(record_key(database, record.id), payload)
            pipe.zadd(index_key(database), {record.id: record.created})
            pipe.execute()
        except redis.RedisError as e:
            logger.error(f"Failed to write {record.id} to {database}: {e}")
            raise _backend_error(e, f"write {record.id}") from e

    def _read(self, database: Database, record_id: str) -> Record | None:
        try:
            payload = self.client.get(record_key(database, record_id))
        except redis.RedisError as e:
            raise _backend_error(e, f"read {record_id}") from e

        if not payload:
            return None
        return decode_record(payload, backend=self.backend_name)

    def _delete(self, database: Database, record_id: str) -> None:
        try:
            pipe = self.client.pipeline(transaction=True)
            pipe.delete(record_key(database, record_id))
            pipe.zrem(index_key(database), record_id)
            pipe.execute()
        except redis.RedisError as e:
            raise _backend_error(e, f"delete {record_id}") from e

    def _search(self, database: Database, query: SearchQuery) -> list[Record]:
        try:
            return self._scan_index(database, query)
        except redis.RedisError as e:
            logger.error(f"Search on {database} failed: {e}")
            raise _backend_error(e, "search") from e

    def _scan_index(self, database: Database, query: SearchQuery) -> list[Record]:
        batch = self.config.scan_batch
        results: list[Record] = []

        # without terms every indexed id matches, so skip straight to the page
        position = 0 if query.terms else query.offset
        to_skip = query.offset if query.terms else 0

        while len(results) < query.limit:
            ids = self.client.zrange(
                index_key(database), position, position + batch - 1, desc=query.reverse
            )
            if not ids:
                break
            position += len(ids)

            payloads = self.client.mget([record_key(database, i) for i in ids])
            for payload in payloads:
                if payload is None:
                    continue
                record = decode_record(payload, backend=self.backend_name)
                if query.terms and not matches_terms(record.to_document(), query.terms):
                    continue
                if to_skip:
                    to_skip -= 1
                    continue
                results.append(record)
                if len(results) == query.limit:
                    break

        return results


class RedisDriver(Driver):
    """Driver for a Redis server.

    Connection liveness is checked when a handle is bound to a table.
    """

    name = "redis"

    def __init__(
        self,
        config: RedisConfig | None = None,
        client_class: Callable[..., redis.Redis] = redis.Redis,
    ):
        self.config = config or RedisConfig()
        self.client_class = client_class

    def new_db(self, *nodes: Node) -> RedisDB:
        node = self.first_node(nodes)
        return RedisDB(node.address, node.port, self.config, self.client_class)
