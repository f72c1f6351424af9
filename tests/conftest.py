"""Pytest configuration and fixtures."""

import os

import pytest

from recordstore.core.models import Database


@pytest.fixture(autouse=True)
def isolate_environment(monkeypatch):
    """Isolate environment variables for each test.

    This prevents test pollution where one test's environment
    changes affect other tests.
    """
    original_env = os.environ.copy()
    for name in list(os.environ):
        if name.startswith("RECORDSTORE_"):
            monkeypatch.delenv(name)

    yield

    os.environ.clear()
    os.environ.update(original_env)


@pytest.fixture
def clock(monkeypatch):
    """Deterministic, strictly increasing unix clock for write stamps."""
    state = {"now": 1_700_000_000}

    def tick() -> int:
        state["now"] += 1
        return state["now"]

    monkeypatch.setattr("recordstore.drivers.base.unix_now", tick)
    return state


@pytest.fixture
def database():
    """The descriptor most tests bind to."""
    return Database(name="blog", table="posts")
