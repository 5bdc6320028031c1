"""
Shared MongoDB connection handling for repositories.
"""

from typing import Optional

from bson import ObjectId
from motor.motor_asyncio import (
    AsyncIOMotorClient,
    AsyncIOMotorCollection,
    AsyncIOMotorDatabase,
)

from app.core.config import get_mongodb_database_name, get_mongodb_url
from app.core.logging import get_logger

logger = get_logger(__name__)


def to_object_id(value: str) -> Optional[ObjectId]:
    """Parse a document ID, returning None when it is not a valid ObjectId."""
    if isinstance(value, ObjectId):
        return value
    if not value or not ObjectId.is_valid(value):
        return None
    return ObjectId(value)


class MongoRepository:
    """Base repository that connects lazily and creates indexes once."""

    collection_name: str = ""

    def __init__(self):
        """Initialize the repository."""
        self.client: Optional[AsyncIOMotorClient] = None
        self.database: Optional[AsyncIOMotorDatabase] = None
        self.collection: Optional[AsyncIOMotorCollection] = None
        self._initialized = False

    async def initialize(self):
        """Initialize MongoDB connection and collection."""
        if self._initialized:
            return

        try:
            mongodb_url = get_mongodb_url()
            database_name = get_mongodb_database_name()

            self.client = AsyncIOMotorClient(mongodb_url)
            self.database = self.client[database_name]
            self.collection = self.database[self.collection_name]

            await self._create_indexes()

            self._initialized = True
            logger.info(
                f"{self.__class__.__name__} initialized with database: {database_name}"
            )

        except Exception as e:
            logger.error(f"Failed to initialize {self.__class__.__name__}: {e}")
            raise

    async def _create_indexes(self):
        """Create collection indexes. Subclasses override."""

    async def disconnect(self):
        """Disconnect from MongoDB."""
        if self.client:
            self.client.close()
            self.client = None
            self._initialized = False
            logger.info(f"{self.__class__.__name__} disconnected from MongoDB")
