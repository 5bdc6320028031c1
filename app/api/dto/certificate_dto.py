from datetime import datetime
from typing import Any, Dict, List, Literal, Optional, Union

from pydantic import Field

from app.api.dto.base import CamelModel
from app.core.config import settings
from app.domain.models.certificate import CertificateModel


# Metadata DTOs
class UploadMetadataRequestDTO(CamelModel):
    """Request DTO for pinning certificate metadata."""

    learner_name: Optional[str] = Field(None, description="Learner display name")
    course_name: Optional[str] = Field(None, description="Course name")
    organization_name: Optional[str] = Field(None, description="Issuing organization")
    description: Optional[str] = Field(None, description="Human readable description")
    skills: Optional[List[str]] = Field(None, description="Skills certified")
    grade: Optional[str] = Field(None, description="Grade")
    score: Optional[Union[int, float]] = Field(None, description="Score")
    valid_until: Optional[datetime] = Field(None, description="End of validity")


class UploadMetadataResponseDTO(CamelModel):
    message: str = Field(..., description="Response message")
    ipfs_hash: str = Field(..., description="IPFS hash of the pinned document")
    metadata: Dict[str, Any] = Field(..., description="ARC-69 document as pinned")


# Certificate DTOs
class CertificateDTO(CamelModel):
    """Full certificate record."""

    id: str = Field(..., description="Certificate ID")
    learner_name: str
    learner_wallet: str
    course_name: str
    issuer_wallet: str
    organization_name: str
    asset_id: int
    ipfs_hash: str
    transaction_id: str
    transfer_tx_id: Optional[str] = None
    transferred_to_learner: bool = False
    transferred_at: Optional[datetime] = None
    status: str
    saga_state: Optional[str] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)
    issued_at: datetime
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    verification_url: str

    @classmethod
    def from_document(cls, document: Dict[str, Any]) -> "CertificateDTO":
        certificate = CertificateModel(**document)
        return cls(
            **certificate.model_dump(exclude={"status", "attempt_id"}),
            status=certificate.status.value,
            verification_url=verification_url(certificate.asset_id),
        )


def verification_url(asset_id: int) -> str:
    return f"{settings.PUBLIC_BASE_URL}/verify/{asset_id}"


class TransferReadinessDTO(CamelModel):
    """Advisory opt-in result reported after issuance."""

    status: Literal["ready", "pending", "unknown"] = Field(..., description="Transfer readiness")
    opted_in: Optional[bool] = Field(None, description="Opt-in check result, None when unknown")
    message: str = Field(..., description="What to do next")


class IssueCertificateRequestDTO(UploadMetadataRequestDTO):
    """Request DTO for recording a certificate minted by a client-signed transaction."""

    learner_wallet: Optional[str] = None
    issuer_wallet: Optional[str] = None
    ipfs_hash: Optional[str] = None
    signed_txn: Optional[str] = Field(None, description="Base64 signed asset creation")
    metadata: Optional[Dict[str, Any]] = Field(None, description="Pinned ARC-69 document")


class IssueCertificateResponseDTO(CamelModel):
    message: str
    certificate: CertificateDTO
    transfer: TransferReadinessDTO


class OptInRequestDTO(CamelModel):
    asset_id: Optional[int] = None
    signed_transaction: Optional[str] = None
    learner_wallet: Optional[str] = None


class OptInResponseDTO(CamelModel):
    success: bool = True
    transaction_id: str
    confirmed_round: int
    message: str


class TransferCertificateRequestDTO(CamelModel):
    certificate_id: Optional[str] = None
    signed_transaction: Optional[str] = None
    learner_wallet: Optional[str] = None


class TransferResponseDTO(CamelModel):
    success: bool = True
    certificate: CertificateDTO
    transaction_id: str
    confirmed_round: int
    message: str


# Pending transfers and override
class PaginationDTO(CamelModel):
    total: int
    limit: int
    offset: int
    has_more: bool


class PendingCertificatesResponseDTO(CamelModel):
    success: bool = True
    certificates: List[CertificateDTO]
    pagination: PaginationDTO


class UpdateStatusRequestDTO(CamelModel):
    certificate_id: Optional[str] = None
    transferred_to_learner: bool = False


class UpdateStatusResponseDTO(CamelModel):
    success: bool = True
    certificate: CertificateDTO
    message: str


# Verification
class PartyDTO(CamelModel):
    """Learner or issuer shown on a verified certificate."""

    name: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    organization_name: Optional[str] = None
    email: Optional[str] = None
    wallet_id: str
    registered: bool = False


class VerifiedCertificateDTO(CertificateDTO):
    learner: PartyDTO
    issuer: PartyDTO


class VerifyCertificateResponseDTO(CamelModel):
    success: bool = True
    certificate: VerifiedCertificateDTO


class NftDetailsDTO(CamelModel):
    """On-chain asset parameters and the metadata they point at."""

    asset_id: int
    asset_name: Optional[str] = None
    unit_name: Optional[str] = None
    total: int
    decimals: int
    default_frozen: bool
    asset_url: Optional[str] = None
    metadata_hash: Optional[str] = None
    creator: str
    manager: Optional[str] = None
    reserve: Optional[str] = None
    freeze: Optional[str] = None
    clawback: Optional[str] = None
    metadata: Optional[Dict[str, Any]] = None
    created_at_round: Optional[int] = None
    destroyed: bool = False
    ipfs_hash: Optional[str] = None
    is_nft: bool = Field(..., alias="isNFT")
    certificate: Optional[CertificateDTO] = None
    verified_at: datetime


class VerifyNftResponseDTO(CamelModel):
    success: bool = True
    nft_details: NftDetailsDTO
    source: str = "blockchain"


# Learner queries
class LearnerCertificatesResponseDTO(CamelModel):
    success: bool = True
    certificates: List[CertificateDTO]
    count: int


class CertificateCountResponseDTO(CamelModel):
    success: bool = True
    count: int


class OptInStatusResponseDTO(CamelModel):
    wallet_address: str
    asset_id: int
    opted_in: bool


# Unsigned transactions for client-side signing
class AssetCreationTxnRequestDTO(CamelModel):
    issuer_wallet: str
    ipfs_hash: str
    course_name: str


class AssetTransferTxnRequestDTO(CamelModel):
    issuer_wallet: str
    learner_wallet: str
    asset_id: int


class AssetOptInTxnRequestDTO(CamelModel):
    learner_wallet: str
    asset_id: int


class UnsignedTransactionDTO(CamelModel):
    transaction: str = Field(..., description="Base64 msgpack unsigned transaction")
    transaction_id: str
    signer: str = Field(..., description="Address that must sign")
