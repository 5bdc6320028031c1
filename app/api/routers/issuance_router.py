"""
Issuance Router for the Credzi backend.
Handles metadata upload, certificate minting, opt-in and transfer endpoints.
"""

from typing import Optional

from fastapi import APIRouter, Depends, status

from app.api.deps.wallet_session import (
    WalletSessionContext,
    get_issuer_session,
    get_optional_wallet_session,
)
from app.api.dto.certificate_dto import (
    CertificateDTO,
    IssueCertificateRequestDTO,
    IssueCertificateResponseDTO,
    OptInRequestDTO,
    OptInResponseDTO,
    TransferCertificateRequestDTO,
    TransferReadinessDTO,
    TransferResponseDTO,
    UploadMetadataRequestDTO,
    UploadMetadataResponseDTO,
)
from app.api.dto.issuance_dto import (
    IssuanceOutcomeDTO,
    IssuanceRequestDTO,
    IssuanceStatusDTO,
    TransferOutcomeDTO,
)
from app.api.services.issuance_orchestrator import issuance_orchestrator
from app.api.services.metadata_service import metadata_publisher
from app.core.exceptions import NotFoundError
from app.core.logging import get_logger

logger = get_logger(__name__)

# Create router
router = APIRouter()


@router.post("/uploadMetadata", response_model=UploadMetadataResponseDTO)
async def upload_metadata(request: UploadMetadataRequestDTO) -> UploadMetadataResponseDTO:
    """
    Build ARC-69 metadata for a certificate and pin it to IPFS.

    Args:
        request: Learner, course and organization plus optional skills, grade,
            score and validity

    Returns:
        UploadMetadataResponseDTO with the IPFS hash and the pinned document
    """
    logger.info(f"Uploading metadata for course: {request.course_name}")

    ipfs_hash, metadata = await metadata_publisher.publish(request)
    return UploadMetadataResponseDTO(
        message="Metadata uploaded successfully",
        ipfs_hash=ipfs_hash,
        metadata=metadata,
    )


@router.post(
    "/issueCertificate",
    response_model=IssueCertificateResponseDTO,
    status_code=status.HTTP_201_CREATED,
)
async def issue_certificate(
    request: IssueCertificateRequestDTO,
    session: Optional[WalletSessionContext] = Depends(get_optional_wallet_session),
) -> IssueCertificateResponseDTO:
    """
    Submit an asset creation signed in the issuer's wallet and record the certificate.

    This endpoint:
    1. Validates fields and both wallet addresses
    2. Rejects an active certificate for the same learner, course and issuer
    3. Submits the signed transaction and waits for confirmation
    4. Stores the certificate and links it to the learner
    5. Reports whether the learner has opted in

    When a wallet session is sent it must be the issuer's organization wallet.
    """
    if session:
        session.require_issuer()
        session.require_wallet(request.issuer_wallet)

    certificate, readiness = await issuance_orchestrator.complete_issuance(request)
    return IssueCertificateResponseDTO(
        message="Certificate issued successfully",
        certificate=CertificateDTO.from_document(certificate),
        transfer=TransferReadinessDTO(
            status=readiness.status,
            opted_in=readiness.opted_in,
            message=readiness.message,
        ),
    )


@router.post("/optInAsset", response_model=OptInResponseDTO)
async def opt_in_asset(
    request: OptInRequestDTO,
    session: Optional[WalletSessionContext] = Depends(get_optional_wallet_session),
) -> OptInResponseDTO:
    """Submit an opt-in transaction signed in the learner's wallet."""
    if session:
        session.require_wallet(request.learner_wallet, "learner wallet")

    result = await issuance_orchestrator.submit_opt_in(
        request.asset_id, request.signed_transaction, request.learner_wallet
    )
    return OptInResponseDTO(
        transaction_id=result.tx_id,
        confirmed_round=result.confirmed_round,
        message="Asset opt-in successful",
    )


@router.post("/transferCertificate", response_model=TransferResponseDTO)
async def transfer_certificate(
    request: TransferCertificateRequestDTO,
    session: Optional[WalletSessionContext] = Depends(get_optional_wallet_session),
) -> TransferResponseDTO:
    """Submit a transfer signed in the issuer's wallet and mark the certificate transferred."""
    if session:
        session.require_issuer()

    outcome = await issuance_orchestrator.complete_transfer(
        request.certificate_id, request.signed_transaction, request.learner_wallet
    )
    return TransferResponseDTO(
        certificate=CertificateDTO.from_document(outcome.certificate),
        transaction_id=outcome.transaction_id,
        confirmed_round=outcome.confirmed_round,
        message=outcome.message,
    )


@router.post(
    "/issuance",
    response_model=IssuanceOutcomeDTO,
    status_code=status.HTTP_201_CREATED,
)
async def run_issuance(
    request: IssuanceRequestDTO,
    session: WalletSessionContext = Depends(get_issuer_session),
) -> IssuanceOutcomeDTO:
    """
    Run the whole issuance on the server.

    Both signatures are requested from the issuer's wallet through signing
    requests; the call returns once the certificate is transferred or left
    pending.

    **Access**: organization or admin wallet session required
    """
    if not request.issuer_wallet:
        request.issuer_wallet = session.wallet_address
    session.require_wallet(request.issuer_wallet)

    logger.info(
        f"Issuance requested by {session.wallet_address} for course {request.course_name}"
    )
    outcome = await issuance_orchestrator.run(request, session.wallet_session())

    return IssuanceOutcomeDTO(
        attempt_id=outcome.attempt_id,
        state=outcome.state,
        message=outcome.message,
        certificate=(
            CertificateDTO.from_document(outcome.certificate)
            if outcome.certificate
            else None
        ),
        asset_id=outcome.asset_id,
        transaction_id=outcome.transaction_id,
        transfer_tx_id=outcome.transfer_tx_id,
        transfer_error=outcome.transfer_error,
    )


@router.get("/issuance/{attempt_id}", response_model=IssuanceStatusDTO)
async def get_issuance_status(attempt_id: str) -> IssuanceStatusDTO:
    """Report the last step an issuance attempt completed."""
    checkpoint = await issuance_orchestrator.checkpoints.get(attempt_id)
    if not checkpoint:
        raise NotFoundError("Issuance attempt not found")

    return IssuanceStatusDTO(**checkpoint.model_dump(exclude={"id"}))


@router.post("/issuance/{certificate_id}/transfer", response_model=TransferOutcomeDTO)
async def retry_transfer(
    certificate_id: str,
    session: WalletSessionContext = Depends(get_issuer_session),
) -> TransferOutcomeDTO:
    """
    Transfer a stored certificate from the pending transfers page.

    **Access**: organization or admin wallet session required
    """
    outcome = await issuance_orchestrator.transfer(
        certificate_id, session.wallet_session()
    )
    return TransferOutcomeDTO(
        success=True,
        certificate=CertificateDTO.from_document(outcome.certificate),
        transaction_id=outcome.transaction_id,
        message=outcome.message,
    )
