from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import Field

from app.api.dto.base import CamelModel
from app.api.dto.certificate_dto import CertificateDTO
from app.domain.models.user import (
    OrganizationSize,
    OrganizationType,
    UserModel,
    UserRole,
)


class SignupRequestDTO(CamelModel):
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    email: Optional[str] = None
    wallet_id: Optional[str] = None
    role: UserRole = UserRole.LEARNER
    organization_name: Optional[str] = None


class UserSummaryDTO(CamelModel):
    id: str
    first_name: str
    last_name: str
    email: str
    role: UserRole
    wallet_id: Optional[str] = None
    created_at: datetime


class SignupResponseDTO(CamelModel):
    message: str
    user: UserSummaryDTO


class WalletCheckRequestDTO(CamelModel):
    wallet_id: Optional[str] = None


class WalletCheckResponseDTO(CamelModel):
    exists: bool
    message: Optional[str] = None
    user: Optional["UserProfileDTO"] = None


class UpdateProfileRequestDTO(CamelModel):
    """Wallet ID plus any editable profile fields."""

    wallet_id: Optional[str] = None

    first_name: Optional[str] = None
    last_name: Optional[str] = None
    phone: Optional[str] = None
    bio: Optional[str] = None
    skills: Optional[List[str]] = None
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
    certification_authority: Optional[bool] = None

    def profile_fields(self) -> Dict[str, Any]:
        return self.model_dump(exclude={"wallet_id"}, exclude_unset=True)


class UserProfileDTO(CamelModel):
    """Full user profile."""

    id: str
    first_name: str
    last_name: str
    email: str
    role: UserRole
    wallet_id: Optional[str] = None
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
    certificates: List[str] = Field(default_factory=list)
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_document(cls, document: Dict[str, Any]) -> "UserProfileDTO":
        return cls(**UserModel(**document).model_dump())


WalletCheckResponseDTO.model_rebuild()


class UpdateProfileResponseDTO(CamelModel):
    success: bool = True
    message: str
    user: UserProfileDTO


class UserCertificatesResponseDTO(CamelModel):
    success: bool = True
    user: UserProfileDTO
    certificates: List[CertificateDTO]
