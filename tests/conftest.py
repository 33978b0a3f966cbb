"""Shared pytest fixtures for StarBoard tests.

Provides in-process stub tiers and tmp_path-backed local stores so the sync
layer can be exercised without a network.
"""

import asyncio
import copy

import pytest

from starboard.document import default_document
from starboard.storage import LocalDurableStore, LocalFastCache, StorageTier
from starboard.sync import SyncOrchestrator


class StubTier(StorageTier):
    """Remote tier double that records calls."""

    def __init__(
        self,
        name: str,
        document: dict | None = None,
        fail: bool = False,
        accept_saves: bool = True,
        delay: float = 0.0,
    ):
        self._name = name
        self.document = copy.deepcopy(document)
        self.fail = fail
        self.accept_saves = accept_saves
        self.delay = delay
        self.load_calls = 0
        self.saved: list[dict] = []

    @property
    def name(self) -> str:
        return self._name

    async def load(self):
        self.load_calls += 1
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.fail:
            raise ConnectionError(f"{self._name} unreachable")
        return copy.deepcopy(self.document)

    async def save(self, document):
        if self.fail:
            raise ConnectionError(f"{self._name} unreachable")
        if not self.accept_saves:
            return False
        self.saved.append(copy.deepcopy(document))
        self.document = copy.deepcopy(document)
        return True


@pytest.fixture
def sample_document():
    """A valid document with one class and two students."""
    doc = default_document()
    doc["classes"]["Math"] = {
        "students": {
            "s1": {"name": "Ada", "stars": 12, "created": "2026-01-05T09:00:00+00:00"},
            "s2": {"name": "Grace", "stars": 3, "created": "2026-01-06T09:00:00+00:00"},
        },
        "created": "2026-01-01T08:00:00+00:00",
    }
    return doc


@pytest.fixture
def durable(tmp_path):
    return LocalDurableStore(tmp_path / "starboard.db")


@pytest.fixture
def cache(tmp_path):
    return LocalFastCache(tmp_path / "cache.json")


@pytest.fixture
def primary():
    return StubTier("primary", fail=True)


@pytest.fixture
def legacy():
    return StubTier("legacy", fail=True)


@pytest.fixture
def orchestrator(primary, legacy, durable, cache):
    """Orchestrator whose remote tiers are unreachable by default."""
    return SyncOrchestrator([primary, legacy], durable, cache, tier_timeout=1.0)
