"""Storage tiers for the StarBoard document.

Provides:
- Remote tiers (hosted database and legacy blob endpoints) over HTTP
- A device-local durable sqlite store
- A synchronous local cache file
"""

from .base import StorageTier
from .cache import KeyValueFile, LocalFastCache
from .durable import LocalDurableStore
from .remote import RemoteTier

__all__ = [
    "StorageTier",
    "KeyValueFile",
    "LocalFastCache",
    "LocalDurableStore",
    "RemoteTier",
]
