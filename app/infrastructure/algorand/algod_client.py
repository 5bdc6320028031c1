"""
Algod gateway.
Wraps the synchronous algosdk client and validates every response it returns.
"""

from typing import Any, Callable, Dict, Optional

from algosdk import transaction
from algosdk.error import AlgodHTTPError, AlgodResponseError
from algosdk.v2client import algod
from fastapi.concurrency import run_in_threadpool
from pydantic import ValidationError as SchemaError

from app.core.config import settings
from app.core.exceptions import (
    AssetNotFoundError,
    ExternalServiceError,
    LedgerUnavailableError,
    NetworkParamError,
)
from app.core.logging import get_logger
from app.infrastructure.algorand.schemas import (
    AccountInformation,
    AssetInformation,
    PendingTransactionInfo,
)

logger = get_logger(__name__)


def create_algod_client() -> algod.AlgodClient:
    """Create an algod client from settings."""
    headers: Optional[Dict[str, str]] = None
    if settings.ALGOD_API_KEY_HEADER:
        headers = {settings.ALGOD_API_KEY_HEADER: settings.ALGOD_TOKEN}

    logger.info(f"Connecting to algod: {settings.ALGOD_SERVER}")
    return algod.AlgodClient(settings.ALGOD_TOKEN, settings.ALGOD_SERVER, headers=headers)


class AlgodGateway:
    """Async access to an Algorand node."""

    def __init__(self, client: Optional[algod.AlgodClient] = None):
        """
        Initialize the gateway.

        Args:
            client: algosdk client; created from settings on first use when omitted
        """
        self._client = client

    @property
    def client(self) -> algod.AlgodClient:
        if self._client is None:
            self._client = create_algod_client()
        return self._client

    @client.setter
    def client(self, value: algod.AlgodClient) -> None:
        self._client = value

    async def _call(self, func: Callable[..., Any], *args: Any) -> Any:
        """Run a blocking SDK call, mapping connection failures."""
        try:
            return await run_in_threadpool(func, *args)
        except OSError as e:
            logger.error(f"Algod unreachable: {e}")
            raise LedgerUnavailableError(details=str(e))

    async def suggested_params(self) -> transaction.SuggestedParams:
        """
        Fetch current network parameters.

        Raises:
            NetworkParamError: parameters could not be fetched
        """
        try:
            return await run_in_threadpool(self.client.suggested_params)
        except Exception as e:
            logger.error(f"Failed to fetch suggested params: {e}")
            raise NetworkParamError(details=str(e))

    async def send_raw_transaction(self, signed_txn: str) -> str:
        """Send a base64 signed transaction and return its ID."""
        return await self._call(self.client.send_raw_transaction, signed_txn)

    async def wait_for_confirmation(
        self, tx_id: str, wait_rounds: int
    ) -> PendingTransactionInfo:
        """Wait for a transaction to confirm within a bounded number of rounds."""
        info = await self._call(
            transaction.wait_for_confirmation, self.client, tx_id, wait_rounds
        )
        return PendingTransactionInfo.model_validate(info)

    async def account_info(self, address: str) -> AccountInformation:
        """
        Get account holdings.

        Raises:
            LedgerUnavailableError: the node could not be reached
            ExternalServiceError: the node answered with an error
        """
        try:
            info = await self._call(self.client.account_info, address)
        except (AlgodHTTPError, AlgodResponseError) as e:
            logger.error(f"Account lookup for {address} failed: {e}")
            raise ExternalServiceError("Failed to fetch account from blockchain", details=str(e))

        try:
            return AccountInformation.model_validate(info)
        except SchemaError as e:
            raise ExternalServiceError(
                "Unexpected account response from ledger node", details=str(e)
            )

    async def asset_info(self, asset_id: int) -> AssetInformation:
        """
        Get asset parameters.

        Raises:
            AssetNotFoundError: the node does not know the asset
        """
        try:
            info = await self._call(self.client.asset_info, asset_id)
        except AlgodHTTPError as e:
            if e.code == 404:
                raise AssetNotFoundError(asset_id, details=str(e))
            raise ExternalServiceError("Failed to fetch asset from blockchain", details=str(e))

        try:
            return AssetInformation.model_validate(info)
        except SchemaError as e:
            raise ExternalServiceError(
                "Unexpected asset response from ledger node", details=str(e)
            )


# Global gateway instance
algod_gateway = AlgodGateway()
