"""Core data models exchanged with every storage backend.

This module defines the generic entities that the drivers translate onto
their native storage primitives:

- Record: a payload addressed by id within a namespace+table
- Database: the namespace/table descriptor a handle is bound to
- Node: one storage endpoint handed to a driver
- SearchQuery: flat term matching with offset/limit paging

Records travel as a flat JSON document (``id``, ``created``, ``updated`` and
the payload fields side by side) for every backend; ``encode_record`` and
``decode_record`` own that wire shape.
"""

from typing import Any

import msgspec

from .errors import BackendError, RecordValidationError

RESERVED_FIELDS = frozenset({"id", "created", "updated"})
DEFAULT_SEARCH_LIMIT = 10


class Record(msgspec.Struct, kw_only=True):
    """A generic record.

    ``created`` is stamped once on first write and kept afterwards;
    ``updated`` is refreshed on every write. Both are unix seconds and zero
    means "not yet written".
    """

    id: str
    data: dict[str, Any] = msgspec.field(default_factory=dict)
    created: int = 0
    updated: int = 0

    def __post_init__(self):
        self.validate()

    def validate(self) -> None:
        """Check the id and payload keys.

        Runs on construction and again before every write.

        Raises:
            RecordValidationError: If the id is empty or the payload shadows
                a reserved wire field.
        """
        if not self.id:
            raise RecordValidationError("id", "Record ID cannot be empty")

        shadowed = RESERVED_FIELDS.intersection(self.data)
        if shadowed:
            raise RecordValidationError(
                "data", f"Payload uses reserved field(s): {', '.join(sorted(shadowed))}"
            )

    def to_document(self) -> dict[str, Any]:
        """Flatten into the persisted wire document."""
        self.validate()
        document: dict[str, Any] = {
            "id": self.id,
            "created": self.created,
            "updated": self.updated,
        }
        document.update(self.data)
        return document

    @classmethod
    def from_document(cls, document: dict[str, Any]) -> "Record":
        """Rebuild a record from its wire document."""
        payload = dict(document)
        envelope = {
            "id": payload.pop("id", None),
            "created": payload.pop("created", 0),
            "updated": payload.pop("updated", 0),
            "data": payload,
        }
        return msgspec.convert(envelope, cls)


class Database(msgspec.Struct, frozen=True):
    """Namespace and table a handle is bound to."""

    name: str
    table: str

    def __post_init__(self):
        if not self.name:
            raise RecordValidationError("name", "Database name cannot be empty")
        if not self.table:
            raise RecordValidationError("table", "Database table cannot be empty")

    def __str__(self) -> str:
        return f"{self.name}/{self.table}"


class Node(msgspec.Struct, frozen=True):
    """A storage endpoint."""

    address: str
    port: int

    def __str__(self) -> str:
        if ":" in self.address:
            return f"[{self.address}]:{self.port}"
        return f"{self.address}:{self.port}"

    @classmethod
    def parse(cls, value: str) -> "Node":
        """Parse ``host:port`` (``[v6addr]:port`` for IPv6 literals)."""
        host, sep, port = value.strip().rpartition(":")
        if not sep or not host:
            raise RecordValidationError("node", f"Expected host:port, got {value!r}")

        host = host.strip("[]")
        try:
            port_number = int(port)
        except ValueError:
            raise RecordValidationError("node", f"Invalid port in {value!r}")

        if not 0 < port_number < 65536:
            raise RecordValidationError("node", f"Port out of range in {value!r}")

        return cls(address=host, port=port_number)


class SearchQuery(msgspec.Struct, kw_only=True):
    """Flat term search with paging.

    An empty ``terms`` mapping matches every record. Non-empty terms are
    combined with AND; each term is a case-insensitive substring match.
    """

    terms: dict[str, str] = msgspec.field(default_factory=dict)
    limit: int = DEFAULT_SEARCH_LIMIT
    offset: int = 0
    reverse: bool = False

    def normalized(self) -> "SearchQuery":
        """Apply the default page size and clamp negative offsets."""
        return SearchQuery(
            terms=dict(self.terms),
            limit=self.limit if self.limit > 0 else DEFAULT_SEARCH_LIMIT,
            offset=max(self.offset, 0),
            reverse=self.reverse,
        )


def matches_terms(document: dict[str, Any], terms: dict[str, str]) -> bool:
    """Check a wire document against conjunctive substring terms."""
    for field, term in terms.items():
        value = document.get(field)
        if value is None:
            return False
        if str(term).lower() not in str(value).lower():
            return False
    return True


def encode_record(record: Record) -> bytes:
    """Encode a record into its JSON wire form."""
    return msgspec.json.encode(record.to_document())


def decode_record(payload: bytes | str, backend: str = "") -> Record:
    """Decode a JSON wire document into a record.

    Raises:
        BackendError: If the stored payload is malformed.
    """
    try:
        document = msgspec.json.decode(payload)
    except msgspec.DecodeError as e:
        raise BackendError(f"Malformed stored record: {e}", backend=backend) from e

    return decode_document(document, backend=backend)


def decode_document(document: Any, backend: str = "") -> Record:
    """Convert an already-parsed wire document into a record.

    Raises:
        BackendError: If the document does not have the record shape.
    """
    if not isinstance(document, dict):
        raise BackendError(
            f"Malformed stored record: expected object, got {type(document).__name__}",
            backend=backend,
        )

    try:
        return Record.from_document(document)
    except (msgspec.ValidationError, RecordValidationError) as e:
        raise BackendError(f"Malformed stored record: {e}", backend=backend) from e
