"""
Issuance checkpoint repository.
Stores the last durable step of each issuance attempt.
"""

from datetime import datetime, timezone
from typing import Optional

from pymongo import ASCENDING

from app.core.logging import get_logger
from app.domain.models.issuance import IssuanceCheckpoint
from app.domain.repositories.base import MongoRepository

logger = get_logger(__name__)


class IssuanceCheckpointRepository(MongoRepository):
    """Repository for issuance attempt checkpoints."""

    collection_name = "issuance_attempts"

    async def _create_indexes(self):
        try:
            await self.collection.create_index(
                [("attempt_id", ASCENDING)], unique=True, name="attempt_id_unique"
            )
        except Exception as e:
            logger.error(f"Failed to create issuance indexes: {e}")

    async def record(self, checkpoint: IssuanceCheckpoint) -> None:
        """
        Upsert the checkpoint of an attempt.

        Fields left as None keep the value stored by an earlier checkpoint.
        """
        await self.initialize()

        update = checkpoint.model_dump(exclude={"id", "attempt_id"}, exclude_none=True)
        update["state"] = checkpoint.state.value
        update["updated_at"] = datetime.now(timezone.utc)

        await self.collection.update_one(
            {"attempt_id": checkpoint.attempt_id},
            {"$set": update},
            upsert=True,
        )

    async def get(self, attempt_id: str) -> Optional[IssuanceCheckpoint]:
        """Get the checkpoint of an attempt."""
        await self.initialize()

        document = await self.collection.find_one({"attempt_id": attempt_id})
        if not document:
            return None
        return IssuanceCheckpoint(**document)


# Global repository instance
issuance_checkpoint_repository = IssuanceCheckpointRepository()
