"""Pluggable storage drivers.

Provides one handle contract over different datastores:

- **ElasticsearchDriver**: one index per namespace+table, query DSL search
- **RedisDriver**: hash-slotted logical databases, sorted-set search index
- **MemoryDriver**: in-process storage for testing

Drivers are looked up by name through a ``DriverRegistry``.
"""

from .base import DB, BaseDB, Driver, HandleState
from .elasticsearch import ElasticsearchDB, ElasticsearchDriver
from .memory import MemoryDB, MemoryDriver, MemoryStore
from .redis import RedisDB, RedisDriver, table_slot
from .registry import DriverRegistry, build_registry

__all__ = [
    "DB",
    "BaseDB",
    "Driver",
    "DriverRegistry",
    "ElasticsearchDB",
    "ElasticsearchDriver",
    "HandleState",
    "MemoryDB",
    "MemoryDriver",
    "MemoryStore",
    "RedisDB",
    "RedisDriver",
    "build_registry",
    "table_slot",
]
