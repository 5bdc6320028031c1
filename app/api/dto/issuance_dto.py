from datetime import datetime
from typing import List, Optional

from pydantic import Field

from app.api.dto.base import CamelModel
from app.api.dto.certificate_dto import CertificateDTO, UploadMetadataRequestDTO
from app.domain.models.issuance import IssuanceState


class IssuanceRequestDTO(UploadMetadataRequestDTO):
    """Request DTO for running the whole issuance on the server."""

    learner_wallet: Optional[str] = Field(None, description="Learner Algorand address")
    issuer_wallet: Optional[str] = Field(None, description="Issuer Algorand address")


class IssuanceOutcomeDTO(CamelModel):
    attempt_id: str
    state: IssuanceState
    message: str
    certificate: Optional[CertificateDTO] = None
    asset_id: Optional[int] = None
    transaction_id: Optional[str] = None
    transfer_tx_id: Optional[str] = None
    transfer_error: Optional[str] = None


class IssuanceStatusDTO(CamelModel):
    attempt_id: str
    state: IssuanceState
    issuer_wallet: Optional[str] = None
    learner_wallet: Optional[str] = None
    course_name: Optional[str] = None
    ipfs_hash: Optional[str] = None
    asset_id: Optional[int] = None
    transaction_id: Optional[str] = None
    certificate_id: Optional[str] = None
    transfer_tx_id: Optional[str] = None
    error: Optional[str] = None
    updated_at: datetime


class TransferOutcomeDTO(CamelModel):
    success: bool
    certificate: CertificateDTO
    transaction_id: Optional[str] = None
    message: str


# Wallet signing requests
class SigningRequestDTO(CamelModel):
    id: str
    wallet_address: str
    transactions: List[str] = Field(..., description="Base64 msgpack unsigned transactions")
    description: str
    status: str
    created_at: datetime


class SigningRequestListDTO(CamelModel):
    requests: List[SigningRequestDTO]


class SignRequestDTO(CamelModel):
    signed_transactions: List[str] = Field(..., description="Base64 signed transactions, same order")


class RejectRequestDTO(CamelModel):
    reason: Optional[str] = None
