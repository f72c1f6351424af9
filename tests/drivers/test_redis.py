"""Tests for Redis-specific driver behavior."""

import functools
from unittest.mock import MagicMock

import fakeredis
import pytest
import redis

from recordstore.config import RedisConfig
from recordstore.core.errors import BackendError
from recordstore.core.models import Database, Node, Record
from recordstore.drivers.redis import (
    RedisDriver,
    fnv1a_32,
    index_key,
    record_key,
    table_slot,
)


class RecordingFactory:
    """Client factory that remembers the kwargs of every client built."""

    def __init__(self, server):
        self.calls = []
        self._factory = functools.partial(fakeredis.FakeRedis, server=server)

    def __call__(self, **kwargs):
        self.calls.append(kwargs)
        return self._factory(**kwargs)


@pytest.fixture
def factory(redis_server):
    return RecordingFactory(redis_server)


@pytest.fixture
def inspect_client(redis_server):
    """Build a raw client onto a logical database of the fake server."""

    def build(db):
        return fakeredis.FakeRedis(server=redis_server, db=db, decode_responses=True)

    return build


class TestSlotHashing:
    """Test the table to logical database mapping."""

    @pytest.mark.parametrize(
        "value,expected",
        [("", 0x811C9DC5), ("a", 0xE40C292C), ("foobar", 0xBF9CF968)],
    )
    def test_fnv1a_vectors(self, value, expected):
        assert fnv1a_32(value) == expected

    def test_slot_is_deterministic_and_bounded(self):
        slots = {table_slot(f"table{i}", 16) for i in range(200)}

        assert table_slot("posts", 16) == table_slot("posts", 16)
        assert slots <= set(range(16))
        assert len(slots) > 1

    def test_single_slot(self):
        assert table_slot("anything", 1) == 0


class TestInit:
    """Test client selection."""

    def test_client_uses_table_slot(self, factory, database):
        config = RedisConfig(password=None, slot_count=16, socket_timeout=2.5)
        handle = RedisDriver(config, client_class=factory).new_db(
            Node(address="cache", port=6379), Node(address="other", port=6380)
        )

        handle.init(database)

        assert factory.calls == [
            {
                "host": "cache",
                "port": 6379,
                "db": table_slot("posts", 16),
                "password": None,
                "socket_timeout": 2.5,
                "decode_responses": True,
            }
        ]

    def test_new_db_defers_connection(self, factory):
        RedisDriver(client_class=factory).new_db(Node(address="cache", port=6379))

        assert factory.calls == []

    def test_rebinding_reuses_table_client(self, factory, database):
        handle = RedisDriver(client_class=factory).new_db(Node(address="cache", port=6379))

        handle.init(database)
        handle.init(database)
        handle.init(Database(name="blog", table="comments"))

        assert len(factory.calls) == 2
        assert set(handle.clients) == {"posts", "comments"}

    def test_unreachable_server(self, database):
        client = MagicMock()
        client.ping.side_effect = redis.ConnectionError("refused")
        handle = RedisDriver(client_class=lambda **kwargs: client).new_db(
            Node(address="cache", port=6379)
        )

        with pytest.raises(BackendError) as exc_info:
            handle.init(database)

        assert exc_info.value.retryable is True
        assert handle.clients == {}
        client.close.assert_called_once()

    def test_close_closes_every_client(self, database):
        clients = []

        def build(**kwargs):
            client = MagicMock()
            clients.append(client)
            return client

        handle = RedisDriver(client_class=build).new_db(Node(address="cache", port=6379))
        handle.init(database)
        handle.init(Database(name="blog", table="comments"))

        handle.close()

        assert len(clients) == 2
        for client in clients:
            client.close.assert_called_once()
        assert handle.clients == {}


class TestStorageLayout:
    """Test how records map onto keys."""

    @pytest.fixture
    def handle(self, redis_driver, database, clock):
        handle = redis_driver.new_db(Node(address="cache", port=6379))
        handle.init(database)
        return handle

    def test_record_and_index_keys(self, handle, database, inspect_client, clock):
        handle.create(Record(id="1", data={"payload": "hello"}))
        raw = inspect_client(table_slot("posts", 16))

        assert record_key(database, "1") == "blog:posts:record:1"
        assert raw.exists("blog:posts:record:1") == 1
        assert raw.zscore(index_key(database), "1") == clock["now"]

    def test_delete_removes_index_entry(self, handle, database, inspect_client):
        handle.create(Record(id="1"))
        handle.delete("1")
        raw = inspect_client(table_slot("posts", 16))

        assert raw.zcard(index_key(database)) == 0

    def test_read_missing_returns_none(self, handle):
        assert handle.read("missing") is None

    def test_read_malformed_payload(self, handle, database, inspect_client):
        inspect_client(table_slot("posts", 16)).set(record_key(database, "bad"), "{oops")

        with pytest.raises(BackendError, match="Malformed"):
            handle.read("bad")

    def test_search_skips_stale_index_entries(self, handle, database, inspect_client):
        handle.create(Record(id="1"))
        handle.create(Record(id="2"))
        inspect_client(table_slot("posts", 16)).delete(record_key(database, "1"))

        assert [r.id for r in handle.search({})] == ["2"]

    def test_separator_in_names_is_escaped(self, database):
        assert record_key(Database(name="a:b", table="c"), "1") == "a%3Ab:c:record:1"
        assert record_key(Database(name="a", table="b:c"), "1") == "a:b%3Ac:record:1"
        assert index_key(Database(name="100%", table="x")) == "100%25:x:created"

    def test_colliding_tables_stay_apart(self, redis_server, clock):
        driver = RedisDriver(
            RedisConfig(slot_count=1),
            client_class=functools.partial(fakeredis.FakeRedis, server=redis_server),
        )
        posts = driver.new_db(Node(address="cache", port=6379))
        posts.init(Database(name="blog", table="posts"))
        drafts = driver.new_db(Node(address="cache", port=6379))
        drafts.init(Database(name="blog", table="drafts"))

        posts.create(Record(id="1", data={"state": "published"}))

        assert drafts.read("1") is None
        assert drafts.search({}) == []

    def test_term_search_spans_batches(self, handle):
        for i in range(10):
            handle.create(Record(id=f"r{i}", data={"tag": "x" if i % 3 == 0 else "y"}))

        results = handle.search({"tag": "x"}, limit=10)

        assert [r.id for r in results] == ["r0", "r3", "r6", "r9"]

    def test_command_errors_become_backend_errors(self, database):
        client = MagicMock()
        client.get.side_effect = redis.TimeoutError("timed out")
        handle = RedisDriver(client_class=lambda **kwargs: client).new_db(
            Node(address="cache", port=6379)
        )
        handle.init(database)

        with pytest.raises(BackendError) as exc_info:
            handle.read("1")

        assert exc_info.value.retryable is True
        assert isinstance(exc_info.value.__cause__, redis.TimeoutError)
