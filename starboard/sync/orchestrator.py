"""Sync orchestrator: owns the authoritative Document and the tier cascade.

Load order: remote tiers in precedence order, then the durable store, then a
freshly built default Document. Save order: remote tiers until one accepts,
durable store if none did, and the fast cache always.
"""

import asyncio
import copy
import logging
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any

from ..config import StarboardConfig
from ..document import backup_count, default_document, stamp_metadata, validate_document
from ..storage import LocalDurableStore, LocalFastCache, RemoteTier, StorageTier

logger = logging.getLogger(__name__)


class DataSource(Enum):
    """Where the authoritative copy came from."""

    NONE = "none"
    PRIMARY = "primary"
    LEGACY = "legacy"
    DURABLE = "durable"
    REMOTE = "remote"  # any other remote tier
    CACHE = "cache"
    DEFAULT = "default"


def _source_for(tier: StorageTier) -> DataSource:
    try:
        return DataSource(tier.name)
    except ValueError:
        return DataSource.REMOTE


@dataclass
class SyncState:
    """Snapshot of the orchestrator's tier residency."""

    source: DataSource = DataSource.NONE
    last_write_tier: str | None = None
    last_saved: datetime | None = None
    failed_tiers: tuple[str, ...] = ()

    @property
    def remote(self) -> bool:
        return self.source in (DataSource.PRIMARY, DataSource.LEGACY, DataSource.REMOTE)

    @property
    def message(self) -> str:
        if self.remote:
            return f"Synced with {self.source.value}"
        if self.source == DataSource.NONE:
            return "Not loaded"
        return "Local data only"


class SyncOrchestrator:
    """Single owned context for reading and writing the StarBoard Document.

    Usage:
        async with SyncOrchestrator(remote_tiers, durable, cache) as sync:
            data = sync.get_data()
            data["classes"]["Math"] = {"students": {}}
            await sync.save_data(data)
    """

    def __init__(
        self,
        remote_tiers: list[StorageTier],
        durable: LocalDurableStore,
        cache: LocalFastCache,
        tier_timeout: float | None = 10.0,
    ):
        """Initialize the orchestrator.

        Args:
            remote_tiers: Remote tiers in precedence order (primary first).
            durable: Device-local durable store.
            cache: Synchronous local cache.
            tier_timeout: Upper bound in seconds for each remote tier call,
                or None for no bound.
        """
        self.remote_tiers = list(remote_tiers)
        self.durable = durable
        self.cache = cache
        self.tier_timeout = tier_timeout
        self._data: dict[str, Any] | None = None
        self._state = SyncState()
        self._opened = False
        self._background: set[asyncio.Task] = set()

    @classmethod
    def from_config(cls, config: StarboardConfig) -> "SyncOrchestrator":
        """Build an orchestrator with the tiers described by ``config``."""
        timeout = config.sync.tier_timeout_seconds
        remote_tiers = [
            RemoteTier(tier.name, tier.url, timeout=timeout)
            for tier in config.remote.tiers
            if tier.enabled and tier.url
        ]
        return cls(
            remote_tiers=remote_tiers,
            durable=LocalDurableStore(config.local.durable_db_path),
            cache=LocalFastCache(config.local.cache_path),
            tier_timeout=timeout,
        )

    # ==================== Lifecycle ====================

    async def open(self) -> None:
        """Run the startup load protocol. Only the first call loads."""
        if self._opened:
            return
        self._opened = True
        await self.load()

    async def close(self) -> None:
        """Wait for pending background mirrors and release tier resources."""
        if self._background:
            await asyncio.gather(*self._background, return_exceptions=True)
        for tier in self.remote_tiers:
            await tier.close()
        await self.durable.close()
        self._opened = False
        logger.info("Sync orchestrator closed")

    async def __aenter__(self) -> "SyncOrchestrator":
        await self.open()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    # ==================== Load ====================

    async def _bounded(self, tier: StorageTier, coro):
        """Await a tier call, converting any failure into None."""
        try:
            if self.tier_timeout is None:
                return await coro
            return await asyncio.wait_for(coro, timeout=self.tier_timeout)
        except asyncio.TimeoutError:
            logger.warning(f"{tier.name} tier timed out after {self.tier_timeout}s")
        except Exception as e:
            logger.warning(f"{tier.name} tier failed: {e}")
        return None

    async def _init_durable(self) -> None:
        try:
            await self.durable.init()
        except Exception as e:
            logger.error(f"Durable store unavailable: {e}")

    async def load(self) -> dict[str, Any]:
        """Resolve the authoritative Document from the tier cascade.

        Returns:
            A copy of the adopted Document.
        """
        failed: list[str] = []

        for tier in self.remote_tiers:
            document = await self._bounded(tier, tier.load())
            if document is not None and validate_document(document):
                self._adopt(document, _source_for(tier))
                await self._init_durable()
                await self._save_durable(self._data)
                self.cache.set(self._data)
                self._state.failed_tiers = tuple(failed)
                logger.info(f"Loaded document from {tier.name} tier")
                return self.get_data()
            failed.append(tier.name)

        await self._init_durable()
        existing = await self._load_durable()
        if existing is not None:
            self._adopt(existing, DataSource.DURABLE)
            logger.info("Loaded document from durable store")
        else:
            self._adopt(default_document(), DataSource.DEFAULT)
            await self._save_durable(self._data)
            logger.info("No stored document found, bootstrapped default document")

        self._state.failed_tiers = tuple(failed)
        return self.get_data()

    async def _load_durable(self) -> dict[str, Any] | None:
        try:
            return await self.durable.load()
        except Exception as e:
            logger.warning(f"Durable store read failed: {e}")
            return None

    async def _save_durable(self, document: dict[str, Any]) -> bool:
        try:
            return await self.durable.save(document)
        except Exception as e:
            logger.warning(f"Durable store write failed: {e}")
            return False

    def _adopt(self, document: dict[str, Any], source: DataSource) -> None:
        self._data = copy.deepcopy(document)
        self._state.source = source

    # ==================== Read ====================

    def get_data(self) -> dict[str, Any]:
        """Return a copy of the authoritative Document.

        Never performs network I/O. If nothing has been loaded yet, the local
        cache (or a default Document) is adopted and mirrored into the
        durable store in the background.
        """
        if self._data is None:
            cached = self.cache.get()
            if cached is not None:
                self._adopt(cached, DataSource.CACHE)
            else:
                self._adopt(default_document(), DataSource.DEFAULT)
            self._mirror_in_background(self._data)
        return copy.deepcopy(self._data)

    def _mirror_in_background(self, document: dict[str, Any]) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.debug("No running event loop, skipping durable mirror")
            return
        task = loop.create_task(self._save_durable(copy.deepcopy(document)))
        self._background.add(task)
        task.add_done_callback(self._background.discard)

    # ==================== Write ====================

    async def save_data(self, document: dict[str, Any]) -> bool:
        """Validate, stamp and persist a whole Document.

        Returns:
            False if the Document is structurally invalid (nothing is
            changed), True otherwise, even when every remote tier failed.
        """
        if not validate_document(document):
            logger.error("Invalid data structure, refusing to save")
            return False

        stamped = stamp_metadata(document, previous_count=backup_count(self._data))
        self._data = copy.deepcopy(stamped)

        written_to: str | None = None
        failed: list[str] = []
        for tier in self.remote_tiers:
            if await self._bounded(tier, tier.save(stamped)):
                written_to = tier.name
                break
            failed.append(tier.name)

        if written_to is None:
            await self._init_durable()
            if await self._save_durable(stamped):
                written_to = self.durable.name
            else:
                logger.error("Document could not be written to any durable tier")

        self.cache.set(stamped)

        self._state.last_write_tier = written_to
        self._state.last_saved = datetime.now()
        self._state.failed_tiers = tuple(failed)
        logger.info(
            f"Saved document (backupCount={stamped['metadata']['backupCount']}, "
            f"tier={written_to or 'cache'})"
        )
        return True

    # ==================== Status ====================

    @property
    def status(self) -> SyncState:
        return self._state

    @property
    def is_loaded(self) -> bool:
        return self._data is not None

    async def check_tiers(self) -> dict[str, bool]:
        """Probe each remote tier without touching the authoritative copy."""
        results = {}
        for tier in self.remote_tiers:
            probe = getattr(tier, "health_check", None)
            if probe is None:
                results[tier.name] = (await self._bounded(tier, tier.load())) is not None
            else:
                results[tier.name] = bool(await self._bounded(tier, probe()))
        return results
