"""Sync layer for the StarBoard document.

Owns the authoritative in-memory copy and keeps the storage tiers
eventually consistent with it.
"""

from .integrity import IntegritySweep, sweep_document
from .orchestrator import DataSource, SyncOrchestrator, SyncState

__all__ = [
    "DataSource",
    "IntegritySweep",
    "SyncOrchestrator",
    "SyncState",
    "sweep_document",
]
