"""Configuration management for drivers and the CLI.

Settings come from YAML files (user config, then project config) deep-merged
in order, followed by environment overrides, and are converted into typed
structs with msgspec.
"""

import os
import re
from pathlib import Path
from typing import Any

import msgspec
import yaml

from recordstore.core.errors import ConfigError, RecordValidationError
from recordstore.core.models import Node


class ElasticsearchConfig(msgspec.Struct, kw_only=True):
    """Settings for the Elasticsearch driver."""

    scheme: str = "http"
    index_template: str = "{name}-{table}"
    refresh: str = "wait_for"
    request_timeout: float = 10.0
    username: str | None = None
    password: str | None = None

    def __post_init__(self):
        if self.refresh not in ("true", "false", "wait_for"):
            raise ValueError(
                f"refresh must be one of true, false, wait_for; got {self.refresh!r}"
            )
        _check_index_template(self.index_template)


class RedisConfig(msgspec.Struct, kw_only=True):
    """Settings for the Redis driver.

    ``slot_count`` is the number of logical Redis databases tables are
    hashed onto.
    """

    password: str | None = None
    slot_count: int = 16
    scan_batch: int = 500
    socket_timeout: float = 5.0

    def __post_init__(self):
        if self.slot_count < 1:
            raise ValueError("slot_count must be at least 1")
        if self.scan_batch < 1:
            raise ValueError("scan_batch must be at least 1")


class StoreConfig(msgspec.Struct, kw_only=True):
    """Top-level configuration."""

    driver: str = "elasticsearch"
    nodes: list[str] = msgspec.field(default_factory=lambda: ["localhost:9200"])
    elasticsearch: ElasticsearchConfig = msgspec.field(
        default_factory=ElasticsearchConfig
    )
    redis: RedisConfig = msgspec.field(default_factory=RedisConfig)

    def endpoint_nodes(self) -> list[Node]:
        """Parse the configured ``host:port`` strings."""
        try:
            return [Node.parse(node) for node in self.nodes]
        except RecordValidationError as e:
            raise ConfigError(str(e)) from e


class Config:
    """Configuration loading helpers."""

    @staticmethod
    def from_file(path: Path) -> dict[str, Any]:
        """Load configuration from a YAML file."""
        try:
            with open(path) as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigError(f"Invalid YAML in config file: {e}")
        except OSError as e:
            raise ConfigError(f"Error reading config file: {e}")

        if not isinstance(data, dict):
            raise ConfigError(f"Config file {path} must contain a mapping")
        return data

    @staticmethod
    def get_config_paths() -> list[Path]:
        """Get the default configuration file paths to check."""
        paths = []

        xdg_config_home = Path(
            os.environ.get("XDG_CONFIG_HOME", Path.home() / ".config")
        )
        paths.append(xdg_config_home / "recordstore" / "config.yaml")

        paths.append(Path(".recordstore.yaml"))
        paths.append(Path("recordstore.yaml"))

        return paths

    @staticmethod
    def merge_configs(*configs: dict[str, Any]) -> dict[str, Any]:
        """Merge multiple configuration dictionaries."""
        result: dict[str, Any] = {}
        for config in configs:
            result = _deep_merge(result, config)
        return result

    @staticmethod
    def to_store_config(data: dict[str, Any]) -> StoreConfig:
        """Validate a merged mapping into a StoreConfig."""
        try:
            return msgspec.convert(data, StoreConfig)
        except msgspec.ValidationError as e:
            raise ConfigError(f"Invalid configuration: {e}") from e


def env_overrides() -> dict[str, Any]:
    """Collect overrides from RECORDSTORE_* environment variables."""
    overrides: dict[str, Any] = {}

    if driver := os.environ.get("RECORDSTORE_DRIVER"):
        overrides["driver"] = driver
    if nodes := os.environ.get("RECORDSTORE_NODES"):
        overrides["nodes"] = [n.strip() for n in nodes.split(",") if n.strip()]
    if redis_password := os.environ.get("RECORDSTORE_REDIS_PASSWORD"):
        overrides.setdefault("redis", {})["password"] = redis_password
    if es_username := os.environ.get("RECORDSTORE_ES_USERNAME"):
        overrides.setdefault("elasticsearch", {})["username"] = es_username
    if es_password := os.environ.get("RECORDSTORE_ES_PASSWORD"):
        overrides.setdefault("elasticsearch", {})["password"] = es_password

    return overrides


def load_config(path: Path | None = None) -> StoreConfig:
    """Load configuration from files and environment variables.

    When ``path`` is given only that file is read; otherwise every default
    location that exists is merged, last one winning.
    """
    config: dict[str, Any] = {}

    if path is not None:
        config = Config.from_file(path)
    else:
        for candidate in Config.get_config_paths():
            if candidate.exists():
                config = Config.merge_configs(config, Config.from_file(candidate))

    return Config.to_store_config(Config.merge_configs(config, env_overrides()))


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Deep merge two dictionaries."""
    result = base.copy()

    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value

    return result


def _check_index_template(template: str) -> None:
    """Require both placeholders, split by something encoded parts never hold."""
    if "{name}" not in template or "{table}" not in template:
        raise ValueError("index_template must contain {name} and {table}")

    first, second = sorted((template.index("{name}"), template.index("{table}")))
    separator = template[first:second].split("}", 1)[1]
    if re.fullmatch(r"[a-z0-9_]*", separator.lower()):
        raise ValueError(
            "index_template must separate {name} and {table} with a character "
            "other than letters, digits or underscore"
        )
