"""
IPFS Service for pinning certificate metadata.
Handles uploading JSON documents to Pinata and reading them back from the gateway.
"""

import json
from typing import Any, Dict, Optional

import httpx

from app.core.config import settings
from app.core.exceptions import ConfigurationError, UploadError
from app.core.logging import get_logger, log_ipfs_operation

logger = get_logger(__name__)


class IPFSService:
    """Service for IPFS operations."""

    def __init__(self, transport: Optional[httpx.AsyncBaseTransport] = None):
        """
        Initialize IPFS service.

        Args:
            transport: Optional httpx transport, used to stub the network in tests
        """
        self.transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            timeout=settings.IPFS_TIMEOUT_SECONDS, transport=self.transport
        )

    def _auth_headers(self) -> Dict[str, str]:
        """Build Pinata credentials, preferring the JWT."""
        if settings.PINATA_JWT:
            return {"Authorization": f"Bearer {settings.PINATA_JWT}"}

        if settings.PINATA_API_KEY and settings.PINATA_SECRET_API_KEY:
            return {
                "pinata_api_key": settings.PINATA_API_KEY,
                "pinata_secret_api_key": settings.PINATA_SECRET_API_KEY,
            }

        raise ConfigurationError(
            "IPFS service not configured",
            details="Set PINATA_JWT or PINATA_API_KEY and PINATA_SECRET_API_KEY",
        )

    async def pin_json(self, document: Dict[str, Any], name: str) -> str:
        """
        Pin a JSON document to IPFS.

        Args:
            document: JSON-serializable document
            name: Human readable pin name

        Returns:
            IPFS hash (CID)

        Raises:
            ConfigurationError: credentials are missing
            UploadError: the pinning service rejected the payload
        """
        headers = self._auth_headers()
        payload = {"pinataContent": document, "pinataMetadata": {"name": name}}

        logger.info(f"Uploading to IPFS: {settings.PINATA_PIN_JSON_URL}")

        try:
            async with self._client() as client:
                response = await client.post(
                    settings.PINATA_PIN_JSON_URL, json=payload, headers=headers
                )
        except httpx.HTTPError as e:
            logger.error(f"Error uploading to IPFS: {e}")
            raise UploadError(None, str(e))

        if not response.is_success:
            logger.error(
                f"Failed to upload to IPFS: {response.status_code} - {response.text}"
            )
            raise UploadError(response.status_code, response.text)

        try:
            ipfs_hash = response.json().get("IpfsHash")
        except (ValueError, AttributeError):
            logger.error(f"Unreadable IPFS response: {response.text}")
            raise UploadError(response.status_code, response.text)
        if not ipfs_hash:
            raise UploadError(response.status_code, "Missing IpfsHash in response")

        log_ipfs_operation(
            "pin",
            ipfs_hash=ipfs_hash,
            file_size=len(json.dumps(document).encode("utf-8")),
            name=name,
        )
        return ipfs_hash

    async def fetch_json(self, ipfs_hash: str) -> Optional[Dict[str, Any]]:
        """
        Fetch a JSON document from the gateway.

        Args:
            ipfs_hash: IPFS hash (CID)

        Returns:
            Parsed document or None if it cannot be retrieved
        """
        url = self.get_gateway_url(ipfs_hash)
        try:
            async with self._client() as client:
                response = await client.get(url)
            if response.status_code != 200:
                logger.warning(f"IPFS fetch returned {response.status_code} for {ipfs_hash}")
                return None
            document = response.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.warning(f"Could not fetch IPFS metadata {ipfs_hash}: {e}")
            return None

        log_ipfs_operation("fetch", ipfs_hash=ipfs_hash, file_size=len(response.content))
        return document if isinstance(document, dict) else None

    def get_gateway_url(self, ipfs_hash: str) -> str:
        """
        Get the gateway URL for a hash.

        Args:
            ipfs_hash: IPFS hash (CID)

        Returns:
            Full gateway URL
        """
        return f"{settings.IPFS_GATEWAY_URL}/{ipfs_hash}"


# Global IPFS service instance
ipfs_service = IPFSService()
