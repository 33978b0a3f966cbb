"""Self-hostable HTTP endpoints for the StarBoard remote storage tiers."""

from .app import create_app
from .backends import LegacyBlobStore, PrimaryRowStore

__all__ = ["create_app", "LegacyBlobStore", "PrimaryRowStore"]
