"""Tests for the sync orchestrator tier cascade."""

import copy

import httpx
import pytest

from starboard.config import StarboardConfig
from starboard.document import default_document
from starboard.exporter import parse_import
from starboard.server import LegacyBlobStore, PrimaryRowStore, create_app
from starboard.storage import LocalDurableStore, LocalFastCache, RemoteTier
from starboard.sync import DataSource, SyncOrchestrator

from conftest import StubTier


def without_metadata(document):
    stripped = copy.deepcopy(document)
    stripped.pop("metadata", None)
    return stripped


class TestLoadProtocol:
    """Tests for the startup load cascade."""

    @pytest.mark.asyncio
    async def test_primary_wins(self, durable, cache, sample_document):
        other = default_document()
        other["classes"]["History"] = {"students": {}}
        primary = StubTier("primary", sample_document)
        legacy = StubTier("legacy", other)

        sync = SyncOrchestrator([primary, legacy], durable, cache)
        await sync.open()

        assert sync.get_data() == sample_document
        assert legacy.load_calls == 0
        assert sync.status.source == DataSource.PRIMARY
        await sync.close()

    @pytest.mark.asyncio
    async def test_remote_document_mirrored_locally(self, durable, cache, sample_document):
        primary = StubTier("primary", sample_document)
        sync = SyncOrchestrator([primary], durable, cache)

        await sync.open()

        assert cache.get() == sample_document
        assert await durable.load() == sample_document
        await sync.close()

    @pytest.mark.asyncio
    async def test_legacy_used_when_primary_fails(self, durable, cache, sample_document):
        primary = StubTier("primary", fail=True)
        legacy = StubTier("legacy", sample_document)
        sync = SyncOrchestrator([primary, legacy], durable, cache)

        await sync.open()

        assert sync.get_data() == sample_document
        assert sync.status.source == DataSource.LEGACY
        assert sync.status.message == "Synced with legacy"
        assert sync.status.failed_tiers == ("primary",)
        await sync.close()

    @pytest.mark.asyncio
    async def test_invalid_remote_document_skipped(self, durable, cache, sample_document):
        primary = StubTier("primary", {"classes": {}})
        legacy = StubTier("legacy", sample_document)
        sync = SyncOrchestrator([primary, legacy], durable, cache)

        await sync.open()

        assert sync.get_data() == sample_document
        await sync.close()

    @pytest.mark.asyncio
    async def test_durable_used_when_remotes_fail(self, orchestrator, durable, sample_document):
        await durable.save(sample_document)

        await orchestrator.open()

        assert orchestrator.get_data() == sample_document
        assert orchestrator.status.source == DataSource.DURABLE
        assert orchestrator.status.message == "Local data only"
        await orchestrator.close()

    @pytest.mark.asyncio
    async def test_default_bootstrap_when_nothing_stored(self, orchestrator, durable):
        await orchestrator.open()

        data = orchestrator.get_data()
        assert data["classes"] == {}
        assert data["teachers"]["teacher"] == "starboard"
        assert "settings" in data
        assert orchestrator.status.source == DataSource.DEFAULT
        assert await durable.load() == data
        await orchestrator.close()

    @pytest.mark.asyncio
    async def test_load_twice_is_idempotent(self, orchestrator):
        first = await orchestrator.load()
        second = await orchestrator.load()

        assert first == second
        await orchestrator.close()

    @pytest.mark.asyncio
    async def test_open_only_loads_once(self, durable, cache, sample_document):
        primary = StubTier("primary", sample_document)
        sync = SyncOrchestrator([primary], durable, cache)

        await sync.open()
        await sync.open()

        assert primary.load_calls == 1
        await sync.close()

    @pytest.mark.asyncio
    async def test_slow_tier_times_out(self, durable, cache, sample_document):
        slow = StubTier("primary", default_document(), delay=5.0)
        legacy = StubTier("legacy", sample_document)
        sync = SyncOrchestrator([slow, legacy], durable, cache, tier_timeout=0.05)

        await sync.open()

        assert sync.get_data() == sample_document
        await sync.close()

    @pytest.mark.asyncio
    async def test_context_manager(self, primary, legacy, durable, cache):
        async with SyncOrchestrator([primary, legacy], durable, cache) as sync:
            assert sync.is_loaded
        assert durable._conn is None


class TestReadAccessor:
    """Tests for the synchronous get_data accessor."""

    def test_falls_back_to_cache_before_load(self, orchestrator, cache, sample_document):
        cache.set(sample_document)

        assert orchestrator.get_data() == sample_document
        assert orchestrator.status.source == DataSource.CACHE

    def test_falls_back_to_default_with_corrupt_cache(self, orchestrator, cache):
        cache.store.set_item("starboard_data", "{corrupt")

        data = orchestrator.get_data()

        assert data["classes"] == {}
        assert orchestrator.status.source == DataSource.DEFAULT

    @pytest.mark.asyncio
    async def test_cache_fallback_mirrors_to_durable(self, orchestrator, cache, durable, sample_document):
        cache.set(sample_document)

        orchestrator.get_data()
        await orchestrator.close()

        assert await durable.load() == sample_document

    @pytest.mark.asyncio
    async def test_returns_copy(self, orchestrator):
        await orchestrator.open()

        data = orchestrator.get_data()
        data["classes"]["Injected"] = {"students": {}}

        assert "Injected" not in orchestrator.get_data()["classes"]
        await orchestrator.close()


class TestWriteProtocol:
    """Tests for save_data."""

    @pytest.mark.asyncio
    async def test_save_then_get(self, orchestrator, sample_document):
        await orchestrator.open()
        before = orchestrator.get_data()["metadata"]["backupCount"]

        assert await orchestrator.save_data(sample_document) is True

        data = orchestrator.get_data()
        assert without_metadata(data) == without_metadata(sample_document)
        assert data["metadata"]["backupCount"] == before + 1
        assert data["metadata"]["version"] == "2.0"
        await orchestrator.close()

    @pytest.mark.asyncio
    async def test_backup_count_increments_each_save(self, orchestrator):
        await orchestrator.open()

        for expected in (1, 2, 3):
            await orchestrator.save_data(orchestrator.get_data())
            assert orchestrator.get_data()["metadata"]["backupCount"] == expected
        await orchestrator.close()

    @pytest.mark.asyncio
    async def test_invalid_save_changes_nothing(self, durable, cache):
        primary = StubTier("primary", default_document())
        legacy = StubTier("legacy", default_document())
        sync = SyncOrchestrator([primary, legacy], durable, cache)
        await sync.open()
        before = sync.get_data()
        cached_before = cache.get()

        result = await sync.save_data({"classes": {}, "teachers": {}})

        assert result is False
        assert sync.get_data() == before
        assert cache.get() == cached_before
        assert await durable.load() == before
        assert primary.saved == []
        assert legacy.saved == []
        await sync.close()

    @pytest.mark.asyncio
    async def test_minimal_document_scenario(self, orchestrator):
        await orchestrator.open()

        result = await orchestrator.save_data(
            {"classes": {"Math": {"students": {}}}, "teachers": {}, "settings": {}}
        )

        assert result is True
        assert orchestrator.get_data()["classes"]["Math"]["students"] == {}
        await orchestrator.close()

    @pytest.mark.asyncio
    async def test_primary_success_skips_legacy_and_durable(self, tmp_path, sample_document):
        primary = StubTier("primary", default_document())
        legacy = StubTier("legacy", default_document())
        durable = LocalDurableStore(tmp_path / "d.db")
        cache = LocalFastCache(tmp_path / "c.json")
        sync = SyncOrchestrator([primary, legacy], durable, cache)
        await sync.open()
        durable_before = await durable.load()

        await sync.save_data(sample_document)

        assert len(primary.saved) == 1
        assert legacy.saved == []
        assert await durable.load() == durable_before
        assert sync.status.last_write_tier == "primary"
        assert without_metadata(cache.get()) == without_metadata(sample_document)
        await sync.close()

    @pytest.mark.asyncio
    async def test_legacy_used_when_primary_rejects(self, durable, cache, sample_document):
        primary = StubTier("primary", default_document(), accept_saves=False)
        legacy = StubTier("legacy", default_document())
        sync = SyncOrchestrator([primary, legacy], durable, cache)
        await sync.open()

        await sync.save_data(sample_document)

        assert len(legacy.saved) == 1
        assert sync.status.last_write_tier == "legacy"
        await sync.close()

    @pytest.mark.asyncio
    async def test_durable_fallback_when_all_remotes_fail(self, orchestrator, durable, cache, sample_document):
        await orchestrator.open()

        assert await orchestrator.save_data(sample_document) is True

        stored = await durable.load()
        assert without_metadata(stored) == without_metadata(sample_document)
        assert cache.get() == stored
        assert orchestrator.status.last_write_tier == "durable"
        await orchestrator.close()

    @pytest.mark.asyncio
    async def test_caller_mutation_does_not_leak(self, orchestrator, sample_document):
        await orchestrator.open()
        await orchestrator.save_data(sample_document)

        sample_document["classes"]["Math"]["students"]["s1"]["stars"] = 999

        assert orchestrator.get_data()["classes"]["Math"]["students"]["s1"]["stars"] == 12
        await orchestrator.close()

    @pytest.mark.asyncio
    async def test_save_after_adopting_null_metadata(self, durable, cache, sample_document):
        document = {"classes": {}, "teachers": {}, "settings": {}, "metadata": None}
        sync = SyncOrchestrator([StubTier("primary", document)], durable, cache)
        await sync.open()

        assert await sync.save_data(sample_document) is True
        assert sync.get_data()["metadata"]["backupCount"] == 1
        await sync.close()

    @pytest.mark.asyncio
    async def test_save_with_infinite_backup_count(self, orchestrator):
        await orchestrator.open()
        imported = parse_import(
            '{"classes": {}, "teachers": {}, "settings": {}, '
            '"metadata": {"backupCount": 1e400}}'
        )

        assert await orchestrator.save_data(imported) is True
        assert orchestrator.get_data()["metadata"]["backupCount"] == 1
        await orchestrator.close()

    @pytest.mark.asyncio
    async def test_stale_copy_does_not_lower_backup_count(self, orchestrator):
        await orchestrator.open()
        stale = orchestrator.get_data()
        await orchestrator.save_data(orchestrator.get_data())
        await orchestrator.save_data(orchestrator.get_data())

        await orchestrator.save_data(stale)

        assert orchestrator.get_data()["metadata"]["backupCount"] == 3
        await orchestrator.close()


class TestFromConfig:
    """Tests for building an orchestrator from configuration."""

    def test_builds_enabled_tiers(self, tmp_path):
        config = StarboardConfig()
        config.local.durable_db_path = str(tmp_path / "d.db")
        config.local.cache_path = str(tmp_path / "c.json")
        config.remote.legacy.enabled = False

        sync = SyncOrchestrator.from_config(config)

        assert [tier.name for tier in sync.remote_tiers] == ["primary"]
        assert sync.tier_timeout == config.sync.tier_timeout_seconds


class TestAgainstTierServer:
    """End-to-end tests with the tier server mounted in-process."""

    @pytest.mark.asyncio
    async def test_primary_seeds_and_accepts_writes(self, tmp_path, durable, cache):
        row_store = PrimaryRowStore(tmp_path / "primary.db")
        app = create_app(
            primary=row_store,
            legacy=LegacyBlobStore(tmp_path / "blobs"),
        )
        transport = httpx.ASGITransport(app=app)
        primary = RemoteTier("primary", "http://tiers/api/primary", transport=transport)
        legacy = RemoteTier("legacy", "http://tiers/api/legacy", transport=transport)
        sync = SyncOrchestrator([primary, legacy], durable, cache)

        await sync.open()
        assert sync.status.source == DataSource.PRIMARY
        assert sync.get_data()["teachers"] == {"teacher": "starboard"}

        data = sync.get_data()
        data["classes"]["Science"] = {"students": {}, "created": "2026-02-01T00:00:00+00:00"}
        assert await sync.save_data(data) is True

        assert "Science" in row_store.get()["classes"]
        assert sync.status.last_write_tier == "primary"
        await sync.close()
        row_store.close()
