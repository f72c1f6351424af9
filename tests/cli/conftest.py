"""Pytest configuration and fixtures for CLI tests."""

from unittest.mock import patch

import pytest
from click.testing import CliRunner

from recordstore.drivers.registry import build_registry


@pytest.fixture
def registry():
    """Registry shared by every invocation in a test."""
    return build_registry()


@pytest.fixture
def cli_runner(registry, tmp_path, monkeypatch):
    """Click runner bound to the memory driver.

    Every invocation reuses the same registry so records written by one
    command are visible to the next. Default config locations point at an
    empty directory.
    """
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "xdg"))
    monkeypatch.chdir(tmp_path)

    class RecordStoreCliRunner(CliRunner):
        def invoke(self, args, **kwargs):  # type: ignore
            from recordstore.cli.main import cli

            with patch("recordstore.cli.main.build_registry", return_value=registry):
                return super().invoke(
                    cli, ["--driver", "memory", "--node", "localhost:1", *args], **kwargs
                )

    return RecordStoreCliRunner()


@pytest.fixture
def raw_runner(tmp_path, monkeypatch):
    """Plain runner without default driver arguments."""
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "xdg"))
    monkeypatch.chdir(tmp_path)
    return CliRunner()
