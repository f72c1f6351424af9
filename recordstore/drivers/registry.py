"""Driver registry.

The registry is an explicit object built once at startup and handed to
whatever assembles the service. ``build_registry`` wires the bundled
drivers to their configuration sections.
"""

import logging
import threading
from collections.abc import Callable

from recordstore.config import StoreConfig
from recordstore.core.errors import DriverNotFoundError

from .base import Driver

logger = logging.getLogger(__name__)

DriverFactory = Callable[[], Driver]


class DriverRegistry:
    """Maps backend names to driver factories."""

    def __init__(self):
        self._factories: dict[str, DriverFactory] = {}
        self._lock = threading.Lock()

    def register(self, name: str, factory: DriverFactory) -> None:
        """Register a driver factory under a unique name.

        Raises:
            ValueError: If the name is empty or already registered
        """
        if not name:
            raise ValueError("Driver name cannot be empty")

        with self._lock:
            if name in self._factories:
                raise ValueError(f"Driver already registered: {name}")
            self._factories[name] = factory
        logger.debug(f"Registered driver {name}")

    def get(self, name: str) -> DriverFactory:
        """Look up a driver factory.

        Raises:
            DriverNotFoundError: If no driver is registered under ``name``
        """
        with self._lock:
            factory = self._factories.get(name)
        if factory is None:
            raise DriverNotFoundError(name)
        return factory

    def driver(self, name: str) -> Driver:
        """Build the driver registered under ``name``."""
        return self.get(name)()

    def names(self) -> list[str]:
        """Registered driver names, sorted."""
        with self._lock:
            return sorted(self._factories)

    def __contains__(self, name: object) -> bool:
        with self._lock:
            return name in self._factories

    def __len__(self) -> int:
        with self._lock:
            return len(self._factories)


def build_registry(config: StoreConfig | None = None) -> DriverRegistry:
    """Create a registry with the bundled drivers registered."""
    from .elasticsearch import ElasticsearchDriver
    from .memory import MemoryDriver
    from .redis import RedisDriver

    config = config or StoreConfig()
    registry = DriverRegistry()
    registry.register(
        ElasticsearchDriver.name, lambda: ElasticsearchDriver(config.elasticsearch)
    )
    registry.register(RedisDriver.name, lambda: RedisDriver(config.redis))

    # one store per registry so every handle it opens sees the same data
    memory_driver = MemoryDriver()
    registry.register(MemoryDriver.name, lambda: memory_driver)
    return registry
