"""Shared fixtures for driver tests.

Provides in-process stand-ins for the remote stores: fakeredis for Redis
and a small dictionary-backed Elasticsearch client that understands the
requests the driver sends.
"""

import functools
import re
from typing import Any
from unittest.mock import patch

import fakeredis
import pytest
from elastic_transport import ApiResponseMeta, HttpHeaders, NodeConfig
from elasticsearch import NotFoundError as ElasticNotFoundError

from recordstore.config import ElasticsearchConfig, RedisConfig
from recordstore.core.models import Node
from recordstore.drivers.elasticsearch import ElasticsearchDriver
from recordstore.drivers.memory import MemoryDriver
from recordstore.drivers.redis import RedisDriver


def api_error(cls, status: int, message: str = "error"):
    """Build an elasticsearch ApiError subclass instance."""
    meta = ApiResponseMeta(
        status=status,
        http_version="1.1",
        headers=HttpHeaders(),
        duration=0.0,
        node=NodeConfig("http", "localhost", 9200),
    )
    return cls(message=message, meta=meta, body={"error": {"type": message}})


class _FakeIndices:
    def __init__(self, owner: "FakeElasticsearch"):
        self.owner = owner

    def exists(self, index: str) -> bool:
        return index in self.owner.indices_data

    def create(self, index: str, mappings: dict[str, Any] | None = None) -> dict:
        self.owner.indices_data.setdefault(index, {})
        self.owner.mappings[index] = mappings or {}
        return {"acknowledged": True, "index": index}

    def get_mapping(self, index: str) -> dict:
        return {index: {"mappings": self.owner.mappings.get(index, {})}}

    def put_mapping(self, index: str, properties: dict[str, Any]) -> dict:
        mapping = self.owner.mappings.setdefault(index, {})
        mapping.setdefault("properties", {}).update(properties)
        return {"acknowledged": True}


class _FakeCluster:
    def health(self) -> dict:
        return {"status": "green"}


def _keyword_values(value: Any) -> list[str]:
    """Terms a keyword field indexes for a JSON value."""
    if isinstance(value, list):
        return [term for item in value for term in _keyword_values(item)]
    if isinstance(value, bool):
        return ["true" if value else "false"]
    return [str(value)]


def _wildcard_pattern(value: str, case_insensitive: bool) -> re.Pattern:
    parts = []
    chars = iter(value)
    for char in chars:
        if char == "\\":
            parts.append(re.escape(next(chars, "\\")))
        elif char == "*":
            parts.append(".*")
        elif char == "?":
            parts.append(".")
        else:
            parts.append(re.escape(char))
    flags = re.DOTALL | (re.IGNORECASE if case_insensitive else 0)
    return re.compile("".join(parts), flags)


class FakeElasticsearch:
    """Dictionary-backed subset of the Elasticsearch client API.

    Search understands ``match_all`` and ``bool.must`` of ``wildcard``
    clauses evaluated against keyword terms, the way indexes created by
    the driver map payload fields.
    """

    def __init__(self, indices_data=None, mappings=None, **kwargs):
        self.kwargs = kwargs
        self.indices_data: dict[str, dict[str, dict[str, Any]]] = (
            {} if indices_data is None else indices_data
        )
        self.mappings: dict[str, Any] = {} if mappings is None else mappings
        self.indices = _FakeIndices(self)
        self.cluster = _FakeCluster()
        self.closed = False

    def close(self) -> None:
        self.closed = True

    def index(self, index: str, id: str, document: dict[str, Any], refresh=None) -> dict:
        self.indices_data.setdefault(index, {})[id] = dict(document)
        return {"_id": id, "result": "created"}

    def get(self, index: str, id: str) -> dict:
        try:
            source = self.indices_data[index][id]
        except KeyError:
            raise api_error(ElasticNotFoundError, 404, "not_found")
        return {"_id": id, "found": True, "_source": dict(source)}

    def delete(self, index: str, id: str, refresh=None) -> dict:
        if id not in self.indices_data.get(index, {}):
            raise api_error(ElasticNotFoundError, 404, "not_found")
        del self.indices_data[index][id]
        return {"_id": id, "result": "deleted"}

    def search(self, index: str, query: dict, sort: list, size: int, from_: int) -> dict:
        documents = list(self.indices_data.get(index, {}).values())
        documents = [d for d in documents if self._matches(d, query)]

        for clause in reversed(sort):
            (field, options), = clause.items()
            documents.sort(
                key=lambda d: d.get(field), reverse=options["order"] == "desc"
            )

        page = documents[from_ : from_ + size]
        return {"hits": {"hits": [{"_id": d["id"], "_source": dict(d)} for d in page]}}

    @staticmethod
    def _matches(document: dict[str, Any], query: dict) -> bool:
        if "match_all" in query:
            return True
        for clause in query["bool"]["must"]:
            (field, options), = clause["wildcard"].items()
            pattern = _wildcard_pattern(
                options["value"], options.get("case_insensitive", False)
            )
            value = document.get(field)
            if value is None:
                return False
            if not any(pattern.fullmatch(term) for term in _keyword_values(value)):
                return False
        return True


@pytest.fixture
def fake_es():
    """Patch the Elasticsearch client class with the in-memory fake.

    Every client created during the test sees the same cluster data.
    """
    instances: list[FakeElasticsearch] = []
    cluster_data: dict = {}
    cluster_mappings: dict = {}

    def factory(**kwargs):
        client = FakeElasticsearch(
            indices_data=cluster_data, mappings=cluster_mappings, **kwargs
        )
        instances.append(client)
        return client

    with patch("recordstore.drivers.elasticsearch.Elasticsearch", side_effect=factory):
        yield instances


@pytest.fixture
def redis_server():
    """A fresh fake Redis server."""
    return fakeredis.FakeServer()


@pytest.fixture
def redis_driver(redis_server):
    """Redis driver talking to the fake server."""
    return RedisDriver(
        RedisConfig(scan_batch=3),
        client_class=functools.partial(fakeredis.FakeRedis, server=redis_server),
    )


@pytest.fixture
def es_driver(fake_es):
    """Elasticsearch driver backed by the fake client."""
    return ElasticsearchDriver(ElasticsearchConfig())


@pytest.fixture
def memory_driver():
    """Memory driver with a fresh store."""
    return MemoryDriver()


@pytest.fixture
def node():
    """A placeholder endpoint."""
    return Node(address="localhost", port=1234)
