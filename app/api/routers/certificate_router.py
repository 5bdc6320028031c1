"""
Certificate Router for the Credzi backend.
Handles pending transfers, manual override, verification and learner queries.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query

from app.api.deps.wallet_session import (
    WalletSessionContext,
    get_optional_wallet_session,
)
from app.api.dto.certificate_dto import (
    CertificateCountResponseDTO,
    CertificateDTO,
    LearnerCertificatesResponseDTO,
    PaginationDTO,
    PendingCertificatesResponseDTO,
    UpdateStatusRequestDTO,
    UpdateStatusResponseDTO,
    VerifyCertificateResponseDTO,
    VerifyNftResponseDTO,
)
from app.api.dto.user_dto import UserCertificatesResponseDTO, UserProfileDTO
from app.api.services.certificate_service import certificate_service
from app.core.logging import get_logger

logger = get_logger(__name__)

# Create router
router = APIRouter()


@router.get("/certificates/pending", response_model=PendingCertificatesResponseDTO)
async def get_pending_certificates(
    organization: Optional[str] = Query(None, description="Filter by organization name"),
    limit: int = Query(50, ge=1, le=200, description="Items per page"),
    offset: int = Query(0, ge=0, description="Items to skip"),
) -> PendingCertificatesResponseDTO:
    """
    Get certificates that have not been transferred to their learner.

    Args:
        organization: Optional organization name filter
        limit: Number of items to return (default: 50)
        offset: Number of items to skip (default: 0)

    Returns:
        PendingCertificatesResponseDTO, newest issued first
    """
    certificates, total = await certificate_service.list_pending(organization, limit, offset)

    return PendingCertificatesResponseDTO(
        certificates=[CertificateDTO.from_document(doc) for doc in certificates],
        pagination=PaginationDTO(
            total=total,
            limit=limit,
            offset=offset,
            has_more=offset + limit < total,
        ),
    )


@router.post("/certificates/update-status", response_model=UpdateStatusResponseDTO)
async def update_certificate_status(
    request: UpdateStatusRequestDTO,
    session: Optional[WalletSessionContext] = Depends(get_optional_wallet_session),
) -> UpdateStatusResponseDTO:
    """
    Set the transferred flag of a certificate without a ledger transaction.

    Use when a transfer happened outside the app or cannot be confirmed
    normally. The stored state can then differ from the ledger.
    """
    if session:
        session.require_issuer()

    certificate = await certificate_service.override_transfer_status(
        request.certificate_id,
        request.transferred_to_learner,
        acting_wallet=session.wallet_address if session else None,
    )
    return UpdateStatusResponseDTO(
        certificate=CertificateDTO.from_document(certificate),
        message="Certificate status updated successfully",
    )


@router.get("/certificates/verify", response_model=VerifyCertificateResponseDTO)
async def verify_certificate(
    hash: Optional[str] = Query(None, description="IPFS hash of the certificate metadata"),
) -> VerifyCertificateResponseDTO:
    """Verify a certificate by the hash of its metadata."""
    certificate = await certificate_service.verify_by_hash(hash)
    return VerifyCertificateResponseDTO(certificate=certificate)


@router.get("/verify/nft", response_model=VerifyNftResponseDTO)
async def verify_nft(
    asset_id: Optional[str] = Query(None, alias="assetId", description="Algorand asset ID"),
) -> VerifyNftResponseDTO:
    """Verify a certificate asset against the ledger."""
    details = await certificate_service.verify_nft(asset_id)
    return VerifyNftResponseDTO(nft_details=details)


@router.get("/certificates/learner", response_model=LearnerCertificatesResponseDTO)
async def get_learner_certificates(
    wallet_id: Optional[str] = Query(None, alias="walletId"),
) -> LearnerCertificatesResponseDTO:
    """Certificates transferred to a learner wallet, most recent first."""
    certificates = await certificate_service.learner_certificates(wallet_id)
    return LearnerCertificatesResponseDTO(
        certificates=[CertificateDTO.from_document(doc) for doc in certificates],
        count=len(certificates),
    )


@router.get("/certificates/count", response_model=CertificateCountResponseDTO)
async def get_learner_certificate_count(
    wallet_id: Optional[str] = Query(None, alias="walletId"),
) -> CertificateCountResponseDTO:
    count = await certificate_service.learner_certificate_count(wallet_id)
    return CertificateCountResponseDTO(count=count)


@router.get("/users/certificates", response_model=UserCertificatesResponseDTO)
async def get_user_certificates(
    wallet_id: Optional[str] = Query(None, alias="walletId"),
) -> UserCertificatesResponseDTO:
    """A user and the certificates linked to its account."""
    user, certificates = await certificate_service.user_certificates(wallet_id)
    return UserCertificatesResponseDTO(
        user=UserProfileDTO.from_document(user),
        certificates=[CertificateDTO.from_document(doc) for doc in certificates],
    )
