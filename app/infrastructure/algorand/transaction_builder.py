"""
Transaction Builder.
Builds unsigned asset transactions for certificates against fresh network parameters.
"""

from typing import Optional

from algosdk import encoding, transaction
from pydantic import BaseModel

from app.core.config import settings
from app.core.exceptions import ValidationError
from app.core.logging import get_logger
from app.infrastructure.algorand.addresses import ensure_valid_address
from app.infrastructure.algorand.algod_client import AlgodGateway, algod_gateway

logger = get_logger(__name__)

MAX_ASSET_NAME_BYTES = 32


class UnsignedTransaction(BaseModel):
    """An unsigned transaction and its transport encoding."""

    txn: transaction.Transaction
    tx_id: str
    encoded: str
    sender: str

    class Config:
        arbitrary_types_allowed = True


def truncate_asset_name(name: str) -> str:
    """Cut a name to the ledger's byte limit without splitting a character."""
    encoded = name.encode("utf-8")[:MAX_ASSET_NAME_BYTES]
    return encoded.decode("utf-8", errors="ignore")


def encode_unsigned(txn: transaction.Transaction) -> str:
    """Encode a transaction as base64 msgpack for a wallet."""
    return encoding.msgpack_encode(txn)


def _require_asset_id(asset_id: Optional[int]) -> int:
    if not isinstance(asset_id, int) or isinstance(asset_id, bool) or asset_id <= 0:
        raise ValidationError("Invalid Asset ID", details={"assetId": asset_id})
    return asset_id


class TransactionBuilder:
    """Builder for certificate asset transactions."""

    def __init__(self, gateway: Optional[AlgodGateway] = None):
        self.gateway = gateway or algod_gateway

    def _wrap(self, txn: transaction.Transaction) -> UnsignedTransaction:
        return UnsignedTransaction(
            txn=txn,
            tx_id=txn.get_txid(),
            encoded=encode_unsigned(txn),
            sender=txn.sender,
        )

    async def build_asset_creation(
        self, issuer_wallet: str, ipfs_hash: str, course_name: str
    ) -> UnsignedTransaction:
        """
        Build the creation transaction for a one-of-one certificate asset.

        Args:
            issuer_wallet: Issuer address, also manager and reserve
            ipfs_hash: Hash of the pinned metadata
            course_name: Course name used for the asset name

        Returns:
            UnsignedTransaction
        """
        issuer_wallet = ensure_valid_address(issuer_wallet, "issuer wallet")
        if not ipfs_hash:
            raise ValidationError("IPFS hash is required")

        params = await self.gateway.suggested_params()

        txn = transaction.AssetConfigTxn(
            sender=issuer_wallet,
            sp=params,
            total=1,
            decimals=0,
            default_frozen=False,
            unit_name=settings.CERTIFICATE_UNIT_NAME,
            asset_name=truncate_asset_name(f"{course_name.strip()} Certificate"),
            manager=issuer_wallet,
            reserve=issuer_wallet,
            freeze=None,
            clawback=None,
            url=f"{settings.IPFS_GATEWAY_URL}/{ipfs_hash}",
            strict_empty_address_check=False,
        )
        logger.info(f"Built asset creation for {issuer_wallet}, metadata {ipfs_hash}")
        return self._wrap(txn)

    async def build_asset_transfer(
        self, issuer_wallet: str, learner_wallet: str, asset_id: int
    ) -> UnsignedTransaction:
        """Build a transfer of one certificate unit from issuer to learner."""
        issuer_wallet = ensure_valid_address(issuer_wallet, "issuer wallet")
        learner_wallet = ensure_valid_address(learner_wallet, "learner wallet")
        asset_id = _require_asset_id(asset_id)

        params = await self.gateway.suggested_params()

        txn = transaction.AssetTransferTxn(
            sender=issuer_wallet,
            sp=params,
            receiver=learner_wallet,
            amt=1,
            index=asset_id,
        )
        logger.info(f"Built transfer of asset {asset_id} to {learner_wallet}")
        return self._wrap(txn)

    async def build_asset_opt_in(
        self, learner_wallet: str, asset_id: int
    ) -> UnsignedTransaction:
        """Build the zero-amount self transfer that opts a wallet into an asset."""
        learner_wallet = ensure_valid_address(learner_wallet, "learner wallet")
        asset_id = _require_asset_id(asset_id)

        params = await self.gateway.suggested_params()

        txn = transaction.AssetOptInTxn(sender=learner_wallet, sp=params, index=asset_id)
        logger.info(f"Built opt-in of {learner_wallet} to asset {asset_id}")
        return self._wrap(txn)


# Global builder instance
transaction_builder = TransactionBuilder()
