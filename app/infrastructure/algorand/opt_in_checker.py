"""
Opt-in Checker.
Reports whether a wallet has a holding slot for an asset.
"""

from typing import Optional

from app.core.exceptions import ValidationError
from app.core.logging import get_logger
from app.infrastructure.algorand.addresses import ensure_valid_address
from app.infrastructure.algorand.algod_client import AlgodGateway, algod_gateway

logger = get_logger(__name__)


class OptInChecker:
    """Queries account holdings. Results are never cached."""

    def __init__(self, gateway: Optional[AlgodGateway] = None):
        self.gateway = gateway or algod_gateway

    async def is_opted_in(self, wallet_address: str, asset_id: int) -> bool:
        """
        Check whether a wallet holds a slot for an asset.

        Args:
            wallet_address: Algorand address
            asset_id: Asset ID

        Returns:
            True if the asset is among the account's holdings

        Raises:
            InvalidAddressError: malformed address, raised before any network call
            LedgerUnavailableError: the node could not be reached
        """
        wallet_address = ensure_valid_address(wallet_address)
        if not isinstance(asset_id, int) or asset_id <= 0:
            raise ValidationError("Invalid Asset ID", details={"assetId": asset_id})

        account = await self.gateway.account_info(wallet_address)
        opted_in = account.holds(asset_id)

        logger.info(
            f"Opt-in check for {wallet_address} on asset {asset_id}: {opted_in}"
        )
        return opted_in


# Global checker instance
opt_in_checker = OptInChecker()
