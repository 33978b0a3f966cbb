"""Common capability interface for storage tiers."""

from abc import ABC, abstractmethod
from typing import Any


class StorageTier(ABC):
    """A storage backend that can load and save the whole Document."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Short tier name used in logs and status ("primary", "legacy", ...)."""
        pass

    @abstractmethod
    async def load(self) -> dict[str, Any] | None:
        """Load the Document.

        Returns:
            The Document, or None if the tier has nothing usable. Must not
            raise for transport or data errors.
        """
        pass

    @abstractmethod
    async def save(self, document: dict[str, Any]) -> bool:
        """Replace the stored Document.

        Args:
            document: Whole Document to store.

        Returns:
            True if the tier accepted the write.
        """
        pass

    async def close(self) -> None:
        """Release any held resources."""
        pass
