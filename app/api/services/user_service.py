"""
User Service Layer.
Contains signup, wallet lookup and profile updates.
"""

from typing import Any, Dict, Optional

from app.api.dto.user_dto import SignupRequestDTO, UpdateProfileRequestDTO
from app.core.exceptions import UserNotFoundError, ValidationError
from app.core.logging import get_logger
from app.domain.models.user import UserModel, UserProfileFields
from app.domain.repositories.user_repository import user_repository

logger = get_logger(__name__)


class UserService:
    """Service class for user accounts."""

    def __init__(self):
        self.users = user_repository

    async def signup(self, request: SignupRequestDTO) -> Dict[str, Any]:
        """
        Create a user.

        Raises:
            ValidationError: name or email missing
            DuplicateUserError: email or wallet already registered
        """
        if not (request.first_name and request.last_name and request.email):
            raise ValidationError("First name, last name, and email are required")

        user = UserModel(
            first_name=request.first_name,
            last_name=request.last_name,
            email=request.email,
            role=request.role,
            wallet_id=request.wallet_id,
            organization_name=request.organization_name,
        )
        return await self.users.create_user(user)

    async def find_by_wallet(self, wallet_id: Optional[str]) -> Optional[Dict[str, Any]]:
        """
        Look up the user owning a wallet.

        Raises:
            ValidationError: wallet ID missing
        """
        if not wallet_id or not wallet_id.strip():
            raise ValidationError("Wallet ID is required")
        return await self.users.get_by_wallet(wallet_id)

    async def update_profile(self, request: UpdateProfileRequestDTO) -> Dict[str, Any]:
        """
        Update editable profile fields. Identity fields are not accepted.

        Raises:
            ValidationError: wallet ID missing
            UserNotFoundError: no user owns the wallet
        """
        if not request.wallet_id or not request.wallet_id.strip():
            raise ValidationError("Wallet ID is required")

        fields = UserProfileFields(**request.profile_fields()).to_update()
        if not fields:
            user = await self.users.get_by_wallet(request.wallet_id)
        else:
            user = await self.users.update_profile(request.wallet_id, fields)

        if not user:
            raise UserNotFoundError()
        return user


# Global service instance
user_service = UserService()
