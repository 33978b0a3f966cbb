"""StarBoard: classroom star leaderboard with a multi-tier sync layer."""

from .classroom import ClassroomError, ClassroomService
from .config import StarboardConfig, load_config
from .document import default_document, validate_document
from .sync import SyncOrchestrator

__version__ = "2.0.0"

__all__ = [
    "ClassroomError",
    "ClassroomService",
    "StarboardConfig",
    "SyncOrchestrator",
    "default_document",
    "load_config",
    "validate_document",
]
