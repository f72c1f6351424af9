"""Elasticsearch driver.

Each namespace+table pair maps onto one index whose name comes from the
configured template (``"{name}-{table}"`` by default). Name and table are
encoded first: lowercase letters and digits pass through and every other
byte becomes ``_xx``, so distinct descriptors never share an index. Records
are indexed verbatim as their wire document under their id.

Indexes created here map payload scalars as ``keyword``. Search terms become
case-insensitive ``*term*`` wildcard clauses, one per field, combined in a
``bool.must``; an empty mapping is ``match_all``. Results are sorted on
``created`` with ``id`` as tie-breaker. An index that already exists must
map ``id`` as keyword and both stamps as long; missing envelope fields are
added, conflicting ones are reported.
"""

import logging
from typing import Any

from elasticsearch import (
    ApiError,
    BadRequestError,
    ConnectionError,
    ConnectionTimeout,
    Elasticsearch,
    TransportError,
)
from elasticsearch import NotFoundError as ElasticNotFoundError

from recordstore.config import ElasticsearchConfig
from recordstore.core.errors import BackendError, RecordNotFoundError
from recordstore.core.models import Database, Node, Record, SearchQuery, decode_document

from .base import BaseDB, Driver

logger = logging.getLogger(__name__)

# longer payload strings are stored but not searchable
KEYWORD_IGNORE_ABOVE = 8191

ENVELOPE_PROPERTIES: dict[str, Any] = {
    "id": {"type": "keyword"},
    "created": {"type": "long"},
    "updated": {"type": "long"},
}

INDEX_MAPPINGS: dict[str, Any] = {
    "dynamic_templates": [
        {
            "payload_strings": {
                "match_mapping_type": "string",
                "mapping": {"type": "keyword", "ignore_above": KEYWORD_IGNORE_ABOVE},
            }
        },
        {
            "payload_longs": {
                "match_mapping_type": "long",
                "mapping": {"type": "keyword"},
            }
        },
        {
            "payload_doubles": {
                "match_mapping_type": "double",
                "mapping": {"type": "keyword"},
            }
        },
        {
            "payload_booleans": {
                "match_mapping_type": "boolean",
                "mapping": {"type": "keyword"},
            }
        },
    ],
    "properties": ENVELOPE_PROPERTIES,
}

RETRYABLE_STATUS = frozenset({429, 502, 503, 504})

_INDEX_PART_CHARS = frozenset("abcdefghijklmnopqrstuvwxyz0123456789")
_WILDCARD_CHARS = frozenset("\\*?")


def encode_index_part(value: str) -> str:
    """Encode a descriptor name or table for use inside an index name."""
    encoded = []
    for char in value:
        if char in _INDEX_PART_CHARS:
            encoded.append(char)
        else:
            encoded.extend(f"_{byte:02x}" for byte in char.encode("utf-8"))
    return "".join(encoded)


def escape_wildcard_term(term: str) -> str:
    """Escape wildcard syntax so a term matches literally."""
    escaped = []
    for char in term:
        if char in _WILDCARD_CHARS:
            escaped.append("\\")
        escaped.append(char)
    return "".join(escaped)


def build_query(terms: dict[str, str]) -> dict[str, Any]:
    """Translate flat search terms into query DSL."""
    if not terms:
        return {"match_all": {}}

    clauses = [
        {
            "wildcard": {
                field: {
                    "value": f"*{escape_wildcard_term(str(term))}*",
                    "case_insensitive": True,
                }
            }
        }
        for field, term in sorted(terms.items())
    ]
    return {"bool": {"must": clauses}}

def _backend_error(error: Exception, action: str) -> BackendError:
    if isinstance(error, (ConnectionError, ConnectionTimeout)):
        retryable = True
    else:
        status = getattr(getattr(error, "meta", None), "status", None)
        retryable = status in RETRYABLE_STATUS

    return BackendError(
        f"{action} failed: {error}", backend=ElasticsearchDriver.name, retryable=retryable
    )


class ElasticsearchDB(BaseDB):
    """Handle bound to one Elasticsearch index."""

    backend_name = "elasticsearch"

    def __init__(self, client: Elasticsearch, config: ElasticsearchConfig):
        super().__init__()
        self.client = client
        self.config = config
        self._index = ""

    def index_name(self, database: Database) -> str:
        """Index a namespace+table pair lives in."""
        return self.config.index_template.format(
            name=encode_index_part(database.name),
            table=encode_index_part(database.table),
        ).lower()

    def _bind(self, database: Database) -> None:
        index = self.index_name(database)
        try:
            if self.client.indices.exists(index=index):
                self._check_mapping(index)
            else:
                self._create_index(index)
        except (ApiError, TransportError) as e:
            logger.error(f"Failed to prepare index {index}: {e}")
            raise _backend_error(e, f"prepare index {index}") from e
        self._index = index

    def _check_mapping(self, index: str) -> None:
        response = self.client.indices.get_mapping(index=index)

        missing = False
        for body in response.values():
            properties = body.get("mappings", {}).get("properties", {})
            for field, expected in ENVELOPE_PROPERTIES.items():
                if field not in properties:
                    missing = True
                    continue
                actual = properties[field].get("type")
                if actual != expected["type"]:
                    raise BackendError(
                        f"Index {index} maps {field} as {actual}, expected {expected['type']}",
                        backend=ElasticsearchDriver.name,
                    )

        if missing:
            self.client.indices.put_mapping(index=index, properties=ENVELOPE_PROPERTIES)
            logger.info(f"Added record fields to the mapping of {index}")

    def _create_index(self, index: str) -> None:
        try:
            self.client.indices.create(index=index, mappings=INDEX_MAPPINGS)
            logger.info(f"Created index {index}")
        except BadRequestError as e:
            # another process created it between the exists check and now
            if getattr(e, "error", "") != "resource_already_exists_exception":
                raise

    def _release(self) -> None:
        try:
            self.client.close()
        except (ApiError, TransportError) as e:
            raise _backend_error(e, "close") from e

    def _write(self, database: Database, record: Record) -> None:
        try:
            self.client.index(
                index=self._index,
                id=record.id,
                document=record.to_document(),
                refresh=self.config.refresh,
            )
        except (ApiError, TransportError) as e:
            logger.error(f"Failed to index {record.id} into {self._index}: {e}")
            raise _backend_error(e, f"index {record.id}") from e

    def _read(self, database: Database, record_id: str) -> Record | None:
        try:
            response = self.client.get(index=self._index, id=record_id)
        except ElasticNotFoundError as e:
            raise RecordNotFoundError(record_id) from e
        except (ApiError, TransportError) as e:
            raise _backend_error(e, f"get {record_id}") from e

        source = response.get("_source")
        if not source:
            return None
        return decode_document(source, backend=self.backend_name)

    def _delete(self, database: Database, record_id: str) -> None:
        try:
            self.client.delete(
                index=self._index, id=record_id, refresh=self.config.refresh
            )
        except ElasticNotFoundError:
            pass
        except (ApiError, TransportError) as e:
            raise _backend_error(e, f"delete {record_id}") from e

    def _search(self, database: Database, query: SearchQuery) -> list[Record]:
        order = "desc" if query.reverse else "asc"
        try:
            response = self.client.search(
                index=self._index,
                query=build_query(query.terms),
                sort=[{"created": {"order": order}}, {"id": {"order": order}}],
                size=query.limit,
                from_=query.offset,
            )
        except (ApiError, TransportError) as e:
            logger.error(f"Search on {self._index} failed: {e}")
            raise _backend_error(e, "search") from e

        return [
            decode_document(hit["_source"], backend=self.backend_name)
            for hit in response["hits"]["hits"]
        ]


class ElasticsearchDriver(Driver):
    """Driver for Elasticsearch clusters."""

    name = "elasticsearch"

    def __init__(self, config: ElasticsearchConfig | None = None):
        self.config = config or ElasticsearchConfig()

    def new_db(self, *nodes: Node) -> ElasticsearchDB:
        node = self.first_node(nodes)
        url = f"{self.config.scheme}://{node}"
        client = self._connect(url)

        try:
            client.cluster.health()
        except (ApiError, TransportError) as e:
            client.close()
            logger.error(f"Elasticsearch at {url} is unreachable: {e}")
            raise _backend_error(e, "health check") from e

        logger.info(f"Connected to Elasticsearch at {url}")
        return ElasticsearchDB(client, self.config)

    def _connect(self, url: str) -> Elasticsearch:
        basic_auth = None
        if self.config.username:
            basic_auth = (self.config.username, self.config.password or "")

        return Elasticsearch(
            hosts=[url],
            basic_auth=basic_auth,
            request_timeout=self.config.request_timeout,
        )
