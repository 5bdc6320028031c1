"""
MongoDB models for users.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from bson import ObjectId
from pydantic import BaseModel, Field, field_validator


class UserRole(str, Enum):
    """Account role."""

    LEARNER = "learner"
    ORGANIZATION = "organization"
    ADMIN = "admin"


class OrganizationType(str, Enum):
    UNIVERSITY = "university"
    COLLEGE = "college"
    TRAINING_INSTITUTE = "training-institute"
    CERTIFICATION_BODY = "certification-body"
    COMPANY = "company"
    NON_PROFIT = "non-profit"
    GOVERNMENT = "government"
    OTHER = "other"


class OrganizationSize(str, Enum):
    XS = "1-10"
    S = "11-50"
    M = "51-200"
    L = "201-500"
    XL = "501-1000"
    XXL = "1000+"


# Roles allowed to issue, transfer and override certificates
ISSUER_ROLES = (UserRole.ORGANIZATION, UserRole.ADMIN)


class UserProfileFields(BaseModel):
    """Profile fields editable after signup."""

    first_name: Optional[str] = None
    last_name: Optional[str] = None
    phone: Optional[str] = None
    bio: Optional[str] = None

    # Learner-specific fields
    skills: Optional[List[str]] = None
    experience: Optional[str] = None
    education: Optional[str] = None
    location: Optional[str] = None
    github_profile: Optional[str] = None
    linkedin_profile: Optional[str] = None

    # Organization-specific fields
    organization_name: Optional[str] = None
    organization_type: Optional[OrganizationType] = None
    website: Optional[str] = None
    description: Optional[str] = None
    industry: Optional[str] = None
    size: Optional[OrganizationSize] = None
    address: Optional[str] = None
    established_year: Optional[str] = None
    certification_authority: Optional[bool] = None

    @field_validator("skills")
    @classmethod
    def strip_skills(cls, v):
        if v is None:
            return v
        return [skill.strip() for skill in v if skill and skill.strip()]

    def to_update(self) -> Dict[str, Any]:
        """Return only the fields that were provided, with enums as values."""
        update = {}
        for key, value in self.model_dump(exclude_unset=True).items():
            if isinstance(value, Enum):
                value = value.value
            elif isinstance(value, str):
                value = value.strip()
            update[key] = value
        return update


class UserModel(BaseModel):
    """MongoDB model for a user account."""

    first_name: str = Field(..., description="First name")
    last_name: str = Field(..., description="Last name")
    email: str = Field(..., description="Unique, lowercase email")
    role: UserRole = Field(default=UserRole.LEARNER, description="Account role")
    wallet_id: Optional[str] = Field(None, description="Connected Algorand address")

    phone: Optional[str] = None
    bio: Optional[str] = None
    skills: List[str] = Field(default_factory=list)
    experience: Optional[str] = None
    education: Optional[str] = None
    location: Optional[str] = None
    github_profile: Optional[str] = None
    linkedin_profile: Optional[str] = None
    organization_name: Optional[str] = None
    organization_type: Optional[OrganizationType] = None
    website: Optional[str] = None
    description: Optional[str] = None
    industry: Optional[str] = None
    size: Optional[OrganizationSize] = None
    address: Optional[str] = None
    established_year: Optional[str] = None
    certification_authority: bool = False

    # Back-references to certificates issued to this user's wallet
    certificates: List[str] = Field(default_factory=list)

    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="Creation timestamp",
    )
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

    @field_validator("certificates", mode="before")
    @classmethod
    def convert_certificate_ids(cls, v):
        if v is None:
            return []
        return [str(item) for item in v]

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v: str) -> str:
        return v.strip().lower()

    @field_validator("first_name", "last_name")
    @classmethod
    def strip_names(cls, v: str) -> str:
        return v.strip()

    @field_validator("wallet_id")
    @classmethod
    def strip_wallet(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        return v.strip() or None

    class Config:
        populate_by_name = True

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"

    def to_document(self) -> Dict[str, Any]:
        """Dump the model for insertion, leaving _id to MongoDB."""
        return self.model_dump(mode="json", exclude={"id", "created_at", "updated_at"}) | {
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }
