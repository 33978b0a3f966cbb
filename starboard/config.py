"""Configuration loading for StarBoard."""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml


@dataclass
class RemoteTierConfig:
    """One remote storage tier (hosted database or legacy blob function)."""

    name: str
    url: str = ""
    enabled: bool = True


@dataclass
class RemoteConfig:
    primary: RemoteTierConfig = field(
        default_factory=lambda: RemoteTierConfig(
            name="primary", url="http://localhost:8080/api/primary"
        )
    )
    legacy: RemoteTierConfig = field(
        default_factory=lambda: RemoteTierConfig(
            name="legacy", url="http://localhost:8080/api/legacy"
        )
    )

    @property
    def tiers(self) -> list[RemoteTierConfig]:
        """Remote tiers in precedence order."""
        return [self.primary, self.legacy]


@dataclass
class LocalConfig:
    """Configuration for the on-device tiers."""

    durable_db_path: str = "~/.starboard/starboard.db"
    cache_path: str = "~/.starboard/cache.json"


@dataclass
class SyncConfig:
    """Configuration for the sync orchestrator and background sweep."""

    tier_timeout_seconds: float = 10.0
    integrity_sweep_enabled: bool = True
    integrity_interval_seconds: int = 300


@dataclass
class ServerConfig:
    """Configuration for the self-hosted tier server."""

    host: str = "0.0.0.0"
    port: int = 8080
    primary_db_path: str = "~/.starboard/server/primary.db"
    legacy_blob_dir: str = "~/.starboard/server/blobs"


@dataclass
class StarboardConfig:
    remote: RemoteConfig = field(default_factory=RemoteConfig)
    local: LocalConfig = field(default_factory=LocalConfig)
    sync: SyncConfig = field(default_factory=SyncConfig)
    server: ServerConfig = field(default_factory=ServerConfig)


def _get_env(key: str, default: Any = None) -> Any:
    """Get environment variable with STARBOARD_ prefix."""
    return os.environ.get(f"STARBOARD_{key}", default)


def _as_bool(value: str) -> bool:
    return value.lower() in ("true", "1", "yes")


def _apply_env_overrides(config: StarboardConfig) -> StarboardConfig:
    """Apply environment variable overrides to config."""
    # Remote tiers
    if url := _get_env("PRIMARY_URL"):
        config.remote.primary.url = url
    if enabled := _get_env("PRIMARY_ENABLED"):
        config.remote.primary.enabled = _as_bool(enabled)
    if url := _get_env("LEGACY_URL"):
        config.remote.legacy.url = url
    if enabled := _get_env("LEGACY_ENABLED"):
        config.remote.legacy.enabled = _as_bool(enabled)

    # Local tiers
    if db_path := _get_env("DURABLE_DB_PATH"):
        config.local.durable_db_path = db_path
    if cache_path := _get_env("CACHE_PATH"):
        config.local.cache_path = cache_path

    # Sync
    if timeout := _get_env("TIER_TIMEOUT"):
        config.sync.tier_timeout_seconds = float(timeout)
    if sweep := _get_env("INTEGRITY_SWEEP_ENABLED"):
        config.sync.integrity_sweep_enabled = _as_bool(sweep)
    if interval := _get_env("INTEGRITY_INTERVAL"):
        config.sync.integrity_interval_seconds = int(interval)

    # Server
    if host := _get_env("SERVER_HOST"):
        config.server.host = host
    if port := _get_env("SERVER_PORT"):
        config.server.port = int(port)
    if primary_db := _get_env("SERVER_PRIMARY_DB_PATH"):
        config.server.primary_db_path = primary_db
    if blob_dir := _get_env("SERVER_LEGACY_BLOB_DIR"):
        config.server.legacy_blob_dir = blob_dir

    return config


def _parse_remote_tier(data: dict, current: RemoteTierConfig) -> RemoteTierConfig:
    """Parse one remote tier section."""
    return RemoteTierConfig(
        name=current.name,
        url=data.get("url", current.url),
        enabled=data.get("enabled", current.enabled),
    )


def load_config(config_path: str | Path | None = None) -> StarboardConfig:
    """Load configuration from YAML file with environment variable overrides.

    Args:
        config_path: Path to YAML config file. If None, uses default config.

    Returns:
        Loaded StarboardConfig object.
    """
    config = StarboardConfig()

    if config_path:
        path = Path(config_path)
        if path.exists():
            with open(path) as f:
                data = yaml.safe_load(f) or {}

            # Parse remote tiers
            if "remote" in data:
                remote_data = data["remote"] or {}
                config.remote = RemoteConfig(
                    primary=_parse_remote_tier(
                        remote_data.get("primary") or {}, config.remote.primary
                    ),
                    legacy=_parse_remote_tier(
                        remote_data.get("legacy") or {}, config.remote.legacy
                    ),
                )

            # Parse local tiers
            if "local" in data:
                local_data = data["local"] or {}
                config.local = LocalConfig(
                    durable_db_path=local_data.get(
                        "durable_db_path", config.local.durable_db_path
                    ),
                    cache_path=local_data.get("cache_path", config.local.cache_path),
                )

            # Parse sync config
            if "sync" in data:
                sync_data = data["sync"] or {}
                config.sync = SyncConfig(
                    tier_timeout_seconds=sync_data.get(
                        "tier_timeout_seconds", config.sync.tier_timeout_seconds
                    ),
                    integrity_sweep_enabled=sync_data.get(
                        "integrity_sweep_enabled", config.sync.integrity_sweep_enabled
                    ),
                    integrity_interval_seconds=sync_data.get(
                        "integrity_interval_seconds",
                        config.sync.integrity_interval_seconds,
                    ),
                )

            # Parse server config
            if "server" in data:
                server_data = data["server"] or {}
                config.server = ServerConfig(
                    host=server_data.get("host", config.server.host),
                    port=server_data.get("port", config.server.port),
                    primary_db_path=server_data.get(
                        "primary_db_path", config.server.primary_db_path
                    ),
                    legacy_blob_dir=server_data.get(
                        "legacy_blob_dir", config.server.legacy_blob_dir
                    ),
                )

    return _apply_env_overrides(config)
