"""HTTP clients for the remote storage tiers.

Both the hosted-database tier and the legacy blob tier speak the same
contract: ``GET`` returns the Document as JSON, ``PUT`` replaces it.
"""

import logging
from typing import Any

import httpx

from ..document import validate_document
from .base import StorageTier

logger = logging.getLogger(__name__)


class RemoteTier(StorageTier):
    """Client for one remote Document endpoint.

    Every failure (connection error, timeout, non-2xx status, undecodable
    body, invalid Document) is logged and reported as "no data" or a failed
    write. Nothing is raised to the caller.
    """

    def __init__(
        self,
        name: str,
        url: str,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """Initialize the remote tier client.

        Args:
            name: Tier name ("primary", "legacy").
            url: Full URL of the Document resource.
            timeout: Transport timeout in seconds.
            transport: Optional httpx transport (used by tests and for
                in-process servers).
        """
        self._name = name
        self.url = url
        self.timeout = timeout
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    @property
    def name(self) -> str:
        return self._name

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=self.timeout,
                transport=self._transport,
            )
        return self._client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None

    async def load(self) -> dict[str, Any] | None:
        """Fetch and validate the Document.

        Returns:
            The Document, or None on any failure.
        """
        try:
            client = await self._get_client()
            response = await client.get(
                self.url, headers={"Cache-Control": "no-store"}
            )
        except httpx.HTTPError as e:
            logger.warning(f"{self.name} tier unreachable: {e}")
            return None

        if not response.is_success:
            logger.warning(f"{self.name} tier returned HTTP {response.status_code}")
            return None

        try:
            data = response.json()
        except ValueError as e:
            logger.warning(f"{self.name} tier returned malformed JSON: {e}")
            return None

        if not validate_document(data):
            logger.warning(f"{self.name} tier returned an invalid document")
            return None

        logger.debug(f"Loaded document from {self.name} tier")
        return data

    async def save(self, document: dict[str, Any]) -> bool:
        """Replace the remote Document.

        Returns:
            True only if the server answered with a 2xx status.
        """
        try:
            client = await self._get_client()
            response = await client.put(self.url, json=document)
        except httpx.HTTPError as e:
            logger.warning(f"Failed to save to {self.name} tier: {e}")
            return False

        if not response.is_success:
            logger.warning(
                f"{self.name} tier rejected save: HTTP {response.status_code}"
            )
            return False

        logger.debug(f"Saved document to {self.name} tier")
        return True

    async def health_check(self) -> bool:
        """Check whether the tier answers a GET with a success status."""
        try:
            client = await self._get_client()
            response = await client.get(
                self.url, headers={"Cache-Control": "no-store"}
            )
            return response.is_success
        except httpx.HTTPError as e:
            logger.debug(f"Health check for {self.name} failed: {e}")
            return False
