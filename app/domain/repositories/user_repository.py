"""
User Repository for MongoDB operations.
Handles accounts, profiles and certificate back-references.
"""

from datetime import datetime, timezone
from typing import Any, Dict, Optional

from pymongo import ASCENDING, ReturnDocument
from pymongo.errors import DuplicateKeyError

from app.core.exceptions import DuplicateUserError
from app.core.logging import get_logger, log_user_operation
from app.domain.models.user import UserModel
from app.domain.repositories.base import MongoRepository, to_object_id

logger = get_logger(__name__)

EMAIL_TAKEN = "User with this email already exists"
WALLET_TAKEN = "User with this wallet already exists"


class UserRepository(MongoRepository):
    """Repository for user accounts."""

    collection_name = "users"

    async def _create_indexes(self):
        """Create database indexes for user lookups."""
        try:
            await self.collection.create_index(
                [("email", ASCENDING)], unique=True, name="email_unique"
            )
            # At most one account per wallet; accounts without a wallet are not indexed
            await self.collection.create_index(
                [("wallet_id", ASCENDING)],
                unique=True,
                name="wallet_id_unique",
                partialFilterExpression={"wallet_id": {"$type": "string"}},
            )
            logger.info("User indexes created successfully")

        except Exception as e:
            logger.error(f"Failed to create user indexes: {e}")

    async def create_user(self, user: UserModel) -> dict:
        """
        Create a new user.

        Args:
            user: User to create

        Returns:
            Created user document with _id

        Raises:
            DuplicateUserError: email or wallet already registered
        """
        await self.initialize()

        if await self.collection.find_one({"email": user.email}):
            raise DuplicateUserError(EMAIL_TAKEN)
        if user.wallet_id and await self.collection.find_one({"wallet_id": user.wallet_id}):
            raise DuplicateUserError(WALLET_TAKEN)

        document = user.to_document()
        if document.get("wallet_id") is None:
            document.pop("wallet_id", None)

        try:
            result = await self.collection.insert_one(document)
        except DuplicateKeyError as e:
            message = WALLET_TAKEN if "wallet_id" in str(e) else EMAIL_TAKEN
            raise DuplicateUserError(message)

        document["_id"] = result.inserted_id
        log_user_operation("signup", user_id=str(result.inserted_id), wallet_address=user.wallet_id)
        return document

    async def get_by_id(self, user_id: str) -> Optional[dict]:
        """Get user by ID."""
        object_id = to_object_id(user_id)
        if object_id is None:
            return None

        await self.initialize()
        return await self.collection.find_one({"_id": object_id})

    async def get_by_email(self, email: str) -> Optional[dict]:
        """Get user by email."""
        await self.initialize()
        return await self.collection.find_one({"email": email.strip().lower()})

    async def get_by_wallet(self, wallet_id: str) -> Optional[dict]:
        """Get user by connected wallet address."""
        await self.initialize()
        return await self.collection.find_one({"wallet_id": wallet_id.strip()})

    async def update_profile(
        self, wallet_id: str, fields: Dict[str, Any]
    ) -> Optional[dict]:
        """
        Update profile fields of the user owning a wallet.

        Args:
            wallet_id: Wallet address identifying the user
            fields: Profile fields to set

        Returns:
            Updated user document or None if not found
        """
        await self.initialize()

        update = dict(fields)
        update["updated_at"] = datetime.now(timezone.utc)

        updated = await self.collection.find_one_and_update(
            {"wallet_id": wallet_id.strip()},
            {"$set": update},
            return_document=ReturnDocument.AFTER,
        )
        if updated:
            log_user_operation(
                "update_profile",
                user_id=str(updated["_id"]),
                wallet_address=wallet_id,
                fields=sorted(fields.keys()),
            )
        return updated

    async def add_certificate(self, wallet_id: str, certificate_id: str) -> bool:
        """
        Append a certificate reference to the user owning a wallet.

        Args:
            wallet_id: Learner wallet address
            certificate_id: Certificate ID

        Returns:
            True if a user owns the wallet
        """
        object_id = to_object_id(certificate_id)
        if object_id is None:
            return False

        await self.initialize()
        result = await self.collection.update_one(
            {"wallet_id": wallet_id.strip()},
            {
                "$addToSet": {"certificates": object_id},
                "$set": {"updated_at": datetime.now(timezone.utc)},
            },
        )
        return result.matched_count > 0


# Global repository instance
user_repository = UserRepository()
