"""
Transaction Router for the Credzi backend.
Builds unsigned transactions for wallets and exposes the opt-in check.
"""

from typing import Optional

from fastapi import APIRouter, Query

from app.api.dto.certificate_dto import (
    AssetCreationTxnRequestDTO,
    AssetOptInTxnRequestDTO,
    AssetTransferTxnRequestDTO,
    OptInStatusResponseDTO,
    UnsignedTransactionDTO,
)
from app.api.services.certificate_service import parse_asset_id
from app.core.logging import get_logger
from app.infrastructure.algorand.opt_in_checker import opt_in_checker
from app.infrastructure.algorand.transaction_builder import (
    UnsignedTransaction,
    transaction_builder,
)

logger = get_logger(__name__)

# Create router
router = APIRouter()


def _to_dto(unsigned: UnsignedTransaction) -> UnsignedTransactionDTO:
    return UnsignedTransactionDTO(
        transaction=unsigned.encoded,
        transaction_id=unsigned.tx_id,
        signer=unsigned.sender,
    )


@router.get("/optInStatus", response_model=OptInStatusResponseDTO)
async def get_opt_in_status(
    wallet_address: Optional[str] = Query(None, alias="walletAddress"),
    asset_id: Optional[str] = Query(None, alias="assetId"),
) -> OptInStatusResponseDTO:
    """
    Check whether a wallet has opted into an asset.

    The answer reflects the ledger at the time of the call only.
    """
    parsed_asset_id = parse_asset_id(asset_id)
    opted_in = await opt_in_checker.is_opted_in(wallet_address, parsed_asset_id)
    return OptInStatusResponseDTO(
        wallet_address=wallet_address.strip(),
        asset_id=parsed_asset_id,
        opted_in=opted_in,
    )


@router.post("/transactions/asset-creation", response_model=UnsignedTransactionDTO)
async def build_asset_creation(request: AssetCreationTxnRequestDTO) -> UnsignedTransactionDTO:
    """Unsigned certificate asset creation for the issuer's wallet to sign."""
    unsigned = await transaction_builder.build_asset_creation(
        request.issuer_wallet, request.ipfs_hash, request.course_name
    )
    return _to_dto(unsigned)


@router.post("/transactions/asset-transfer", response_model=UnsignedTransactionDTO)
async def build_asset_transfer(request: AssetTransferTxnRequestDTO) -> UnsignedTransactionDTO:
    """Unsigned transfer of a certificate asset for the issuer's wallet to sign."""
    unsigned = await transaction_builder.build_asset_transfer(
        request.issuer_wallet, request.learner_wallet, request.asset_id
    )
    return _to_dto(unsigned)


@router.post("/transactions/asset-opt-in", response_model=UnsignedTransactionDTO)
async def build_asset_opt_in(request: AssetOptInTxnRequestDTO) -> UnsignedTransactionDTO:
    """Unsigned opt-in for the learner's wallet to sign."""
    unsigned = await transaction_builder.build_asset_opt_in(
        request.learner_wallet, request.asset_id
    )
    return _to_dto(unsigned)
