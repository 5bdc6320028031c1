"""
Models for issuance saga checkpoints.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from bson import ObjectId
from pydantic import BaseModel, Field, field_validator


class IssuanceState(str, Enum):
    """States of a single issuance attempt."""

    STARTED = "started"
    METADATA_UPLOADED = "metadata_uploaded"
    ASSET_MINTED = "asset_minted"
    RECORD_PERSISTED = "record_persisted"
    OPTED_IN = "opted_in"
    TRANSFERRED = "transferred"
    PENDING_TRANSFER = "pending_transfer"
    FAILED = "failed"


class IssuanceCheckpoint(BaseModel):
    """Last durable step reached by an issuance attempt."""

    attempt_id: str = Field(..., description="Issuance attempt identifier")
    state: IssuanceState = Field(..., description="Last state reached")
    issuer_wallet: Optional[str] = None
    learner_wallet: Optional[str] = None
    course_name: Optional[str] = None
    ipfs_hash: Optional[str] = None
    asset_id: Optional[int] = None
    transaction_id: Optional[str] = None
    certificate_id: Optional[str] = None
    transfer_tx_id: Optional[str] = None
    error: Optional[str] = None
    updated_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="Last update timestamp",
    )

    id: Optional[str] = Field(None, alias="_id", description="MongoDB document ID")

    @field_validator("id", mode="before")
    @classmethod
    def convert_objectid_to_str(cls, v):
        """Convert MongoDB ObjectId to string."""
        if isinstance(v, ObjectId):
            return str(v)
        return v

    class Config:
        populate_by_name = True
