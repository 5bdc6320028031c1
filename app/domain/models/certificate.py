"""
MongoDB models for certificates.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional

from bson import ObjectId
from pydantic import BaseModel, Field, field_validator


class CertificateStatus(str, Enum):
    """Lifecycle status of a certificate record."""

    PENDING = "pending"
    ISSUED = "issued"
    TRANSFERRED = "transferred"
    REVOKED = "revoked"
    SUSPENDED = "suspended"


# A record in one of these states blocks re-issuing the same
# (learner wallet, course, issuer wallet) combination.
ACTIVE_STATUSES = (
    CertificateStatus.PENDING,
    CertificateStatus.ISSUED,
    CertificateStatus.TRANSFERRED,
)


class CertificateModel(BaseModel):
    """MongoDB model for an issued certificate."""

    # Learner
    learner_name: str = Field(..., description="Learner display name")
    learner_wallet: str = Field(..., description="Learner Algorand address")

    # Course and issuer
    course_name: str = Field(..., description="Course name")
    issuer_wallet: str = Field(..., description="Issuer Algorand address")
    organization_name: str = Field(..., description="Issuing organization name")

    # Ledger data
    asset_id: int = Field(..., description="Algorand ASA ID")
    ipfs_hash: str = Field(..., description="IPFS hash of the ARC-69 metadata")
    transaction_id: str = Field(..., description="Asset creation transaction ID")
    transfer_tx_id: Optional[str] = Field(None, description="Transfer transaction ID")
    transferred_to_learner: bool = Field(default=False, description="Asset held by learner")
    transferred_at: Optional[datetime] = Field(None, description="Transfer timestamp")

    status: CertificateStatus = Field(
        default=CertificateStatus.ISSUED, description="Lifecycle status"
    )
    saga_state: Optional[str] = Field(None, description="Last issuance saga state")
    attempt_id: Optional[str] = Field(None, description="Issuance attempt that created it")

    # ARC-69 document exactly as pinned to IPFS
    metadata: Dict[str, Any] = Field(default_factory=dict, description="ARC-69 metadata")

    issued_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="Issue timestamp",
    )
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="Creation timestamp",
    )
    updated_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="Last update timestamp",
    )

    # MongoDB specific fields
    id: Optional[str] = Field(None, alias="_id", description="MongoDB document ID")

    @field_validator("id", mode="before")
    @classmethod
    def convert_objectid_to_str(cls, v):
        """Convert MongoDB ObjectId to string."""
        if isinstance(v, ObjectId):
            return str(v)
        return v

    @field_validator("learner_name", "learner_wallet", "course_name", "issuer_wallet", "organization_name")
    @classmethod
    def strip_strings(cls, v: str) -> str:
        return v.strip()

    class Config:
        populate_by_name = True

    def to_document(self) -> Dict[str, Any]:
        """Dump the model for insertion, leaving _id to MongoDB."""
        document = self.model_dump(exclude={"id"})
        document["status"] = self.status.value
        return document
