"""
Signing Router for the Credzi backend.
Lets a wallet application list, sign and reject pending signing requests.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query

from app.api.deps.wallet_session import WalletSessionContext, get_wallet_session
from app.api.dto.issuance_dto import (
    RejectRequestDTO,
    SignRequestDTO,
    SigningRequestDTO,
    SigningRequestListDTO,
)
from app.core.exceptions import ValidationError
from app.core.logging import get_logger
from app.infrastructure.algorand.addresses import ensure_valid_address
from app.infrastructure.wallet.signing_broker import SigningRequest, signing_broker

logger = get_logger(__name__)

# Create router
router = APIRouter()


def _to_dto(request: SigningRequest) -> SigningRequestDTO:
    return SigningRequestDTO(
        id=request.id,
        wallet_address=request.wallet_address,
        transactions=request.transactions,
        description=request.description,
        status=request.status.value,
        created_at=request.created_at,
    )


@router.get("/signing/requests", response_model=SigningRequestListDTO)
async def list_signing_requests(
    wallet_address: Optional[str] = Query(None, alias="walletAddress"),
) -> SigningRequestListDTO:
    """Pending signing requests for a wallet, oldest first."""
    if not wallet_address:
        raise ValidationError("Wallet address is required")
    wallet_address = ensure_valid_address(wallet_address)

    requests = signing_broker.list_pending(wallet_address)
    return SigningRequestListDTO(requests=[_to_dto(request) for request in requests])


@router.post("/signing/requests/{request_id}/sign", response_model=SigningRequestDTO)
async def sign_request(
    request_id: str,
    request: SignRequestDTO,
    session: WalletSessionContext = Depends(get_wallet_session),
) -> SigningRequestDTO:
    """Deliver the wallet's signed transactions for a request."""
    signing_request = signing_broker.submit_signatures(
        request_id, session.wallet_address, request.signed_transactions
    )
    return _to_dto(signing_request)


@router.post("/signing/requests/{request_id}/reject", response_model=SigningRequestDTO)
async def reject_request(
    request_id: str,
    request: RejectRequestDTO,
    session: WalletSessionContext = Depends(get_wallet_session),
) -> SigningRequestDTO:
    """Decline a signing request; the waiting issuance fails as cancelled by the user."""
    signing_request = signing_broker.reject(
        request_id, session.wallet_address, request.reason
    )
    return _to_dto(signing_request)
