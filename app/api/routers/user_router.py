"""
User Router for the Credzi backend.
Handles signup, wallet lookup and profile updates.
"""

from fastapi import APIRouter, status

from app.api.dto.user_dto import (
    SignupRequestDTO,
    SignupResponseDTO,
    UpdateProfileRequestDTO,
    UpdateProfileResponseDTO,
    UserProfileDTO,
    UserSummaryDTO,
    WalletCheckRequestDTO,
    WalletCheckResponseDTO,
)
from app.api.services.user_service import user_service
from app.core.logging import get_logger

logger = get_logger(__name__)

# Create router
router = APIRouter()


@router.post("/signup", response_model=SignupResponseDTO, status_code=status.HTTP_201_CREATED)
async def signup(request: SignupRequestDTO) -> SignupResponseDTO:
    """
    Create a user account.

    Returns:
        SignupResponseDTO with the created user

    Errors:
        400 when first name, last name or email is missing
        409 when the email or wallet is already registered
    """
    user = await user_service.signup(request)
    return SignupResponseDTO(
        message="User created successfully",
        user=UserSummaryDTO(
            id=str(user["_id"]),
            first_name=user["first_name"],
            last_name=user["last_name"],
            email=user["email"],
            role=user["role"],
            wallet_id=user.get("wallet_id"),
            created_at=user["created_at"],
        ),
    )


@router.post("/wallet-check", response_model=WalletCheckResponseDTO)
async def wallet_check(request: WalletCheckRequestDTO) -> WalletCheckResponseDTO:
    """Check whether a wallet belongs to a registered user."""
    user = await user_service.find_by_wallet(request.wallet_id)
    if not user:
        return WalletCheckResponseDTO(exists=False, message="Wallet not found in database")

    return WalletCheckResponseDTO(exists=True, user=UserProfileDTO.from_document(user))


@router.put("/update-profile", response_model=UpdateProfileResponseDTO)
async def update_profile(request: UpdateProfileRequestDTO) -> UpdateProfileResponseDTO:
    """Update profile fields of the user owning a wallet."""
    user = await user_service.update_profile(request)
    return UpdateProfileResponseDTO(
        message="Profile updated successfully",
        user=UserProfileDTO.from_document(user),
    )
