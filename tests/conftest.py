"""Shared fixtures for learnprogress tests."""

from __future__ import annotations

from collections.abc import Iterator
import random
from zoneinfo import ZoneInfo

import pytest

from learnprogress import MemoryStore, ProgressionManager
from learnprogress.utils import dt_utils
from tests.helpers import make_state


@pytest.fixture(autouse=True)
def reset_default_timezone() -> Iterator[None]:
    """Run every test in UTC unless it sets a zone, and restore afterwards."""
    dt_utils.set_default_timezone(ZoneInfo("UTC"))
    yield
    dt_utils.set_default_timezone(ZoneInfo("UTC"))


@pytest.fixture
def state():
    """Return a fresh default state."""
    return make_state()


@pytest.fixture
def store() -> MemoryStore:
    """Return an empty in-memory store."""
    return MemoryStore()


@pytest.fixture
def manager(store: MemoryStore) -> ProgressionManager:
    """Return a manager over the empty store with a seeded random source."""
    return ProgressionManager(store, rng=random.Random(1234))
