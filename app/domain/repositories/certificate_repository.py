"""
Certificate Repository for MongoDB operations.
Persists certificate records and their transfer lifecycle.
"""

from datetime import datetime, timezone
from typing import List, Optional, Tuple

from pymongo import ASCENDING, DESCENDING, ReturnDocument
from pymongo.errors import DuplicateKeyError

from app.core.exceptions import DuplicateCertificateError
from app.core.logging import get_logger, log_certificate_operation
from app.domain.models.certificate import (
    ACTIVE_STATUSES,
    CertificateModel,
    CertificateStatus,
)
from app.domain.repositories.base import MongoRepository, to_object_id

logger = get_logger(__name__)


class CertificateRepository(MongoRepository):
    """Repository for certificate records."""

    collection_name = "certificates"

    async def _create_indexes(self):
        """Create database indexes for certificate lookups."""
        try:
            await self.collection.create_index(
                [("asset_id", ASCENDING)], unique=True, name="asset_id_unique"
            )
            # Not unique: duplicates are only rejected while a record is active
            await self.collection.create_index(
                [
                    ("learner_wallet", ASCENDING),
                    ("course_name", ASCENDING),
                    ("issuer_wallet", ASCENDING),
                ],
                name="learner_course_issuer_index",
            )
            await self.collection.create_index(
                [("ipfs_hash", ASCENDING)], name="ipfs_hash_index"
            )
            await self.collection.create_index(
                [("organization_name", ASCENDING), ("issued_at", DESCENDING)],
                name="organization_issued_at_index",
            )
            await self.collection.create_index(
                [("transferred_to_learner", ASCENDING), ("issued_at", DESCENDING)],
                name="pending_transfer_index",
            )
            logger.info("Certificate indexes created successfully")

        except Exception as e:
            logger.error(f"Failed to create certificate indexes: {e}")

    async def find_active_duplicate(
        self, learner_wallet: str, course_name: str, issuer_wallet: str
    ) -> Optional[dict]:
        """
        Find an active certificate for the same learner, course and issuer.

        Args:
            learner_wallet: Learner Algorand address
            course_name: Course name
            issuer_wallet: Issuer Algorand address

        Returns:
            Existing certificate document or None
        """
        await self.initialize()

        return await self.collection.find_one(
            {
                "learner_wallet": learner_wallet.strip(),
                "course_name": course_name.strip(),
                "issuer_wallet": issuer_wallet.strip(),
                "status": {"$in": [s.value for s in ACTIVE_STATUSES]},
            }
        )

    async def create_certificate(self, certificate: CertificateModel) -> dict:
        """
        Create a certificate record.

        The duplicate check and the insert are separate operations, so two
        concurrent requests for the same combination can both pass the check.

        Args:
            certificate: Certificate to persist

        Returns:
            Created certificate document with _id

        Raises:
            DuplicateCertificateError: active duplicate or reused asset ID
        """
        await self.initialize()

        existing = await self.find_active_duplicate(
            certificate.learner_wallet,
            certificate.course_name,
            certificate.issuer_wallet,
        )
        if existing:
            raise DuplicateCertificateError(
                details={
                    "certificateId": str(existing["_id"]),
                    "assetId": existing.get("asset_id"),
                }
            )

        document = certificate.to_document()
        try:
            result = await self.collection.insert_one(document)
        except DuplicateKeyError as e:
            logger.warning(f"Duplicate asset ID {certificate.asset_id}: {e}")
            raise DuplicateCertificateError(
                "Certificate with this asset ID already exists",
                details={"assetId": certificate.asset_id},
            )

        document["_id"] = result.inserted_id
        log_certificate_operation(
            "create",
            certificate_id=str(result.inserted_id),
            asset_id=certificate.asset_id,
            wallet_address=certificate.learner_wallet,
        )
        return document

    async def get_by_id(self, certificate_id: str) -> Optional[dict]:
        """
        Get certificate by ID.

        Args:
            certificate_id: Certificate ID (MongoDB ObjectId as string)

        Returns:
            Certificate document or None if not found
        """
        object_id = to_object_id(certificate_id)
        if object_id is None:
            return None

        await self.initialize()
        return await self.collection.find_one({"_id": object_id})

    async def get_by_ipfs_hash(self, ipfs_hash: str) -> Optional[dict]:
        """Get certificate by the content hash of its metadata."""
        await self.initialize()
        return await self.collection.find_one({"ipfs_hash": ipfs_hash.strip()})

    async def get_by_asset_id(self, asset_id: int) -> Optional[dict]:
        """Get certificate by its ledger asset ID."""
        await self.initialize()
        return await self.collection.find_one({"asset_id": asset_id})

    async def get_by_ids(self, certificate_ids: List[str]) -> List[dict]:
        """Get certificates for a list of IDs, newest first."""
        object_ids = [oid for oid in map(to_object_id, certificate_ids) if oid]
        if not object_ids:
            return []

        await self.initialize()
        cursor = self.collection.find({"_id": {"$in": object_ids}}).sort("issued_at", -1)
        return await cursor.to_list(length=len(object_ids))

    async def list_by_learner_wallet(
        self, learner_wallet: str, transferred_only: bool = True
    ) -> List[dict]:
        """
        List certificates held by a learner wallet.

        Args:
            learner_wallet: Learner Algorand address
            transferred_only: Only include certificates already transferred

        Returns:
            Certificate documents, most recent transfer first
        """
        await self.initialize()

        query = {"learner_wallet": learner_wallet.strip()}
        if transferred_only:
            query["transferred_to_learner"] = True

        cursor = self.collection.find(query).sort(
            [("transferred_at", -1), ("issued_at", -1)]
        )
        return await cursor.to_list(length=None)

    async def count_by_learner_wallet(
        self, learner_wallet: str, transferred_only: bool = True
    ) -> int:
        """Count certificates held by a learner wallet."""
        await self.initialize()

        query = {"learner_wallet": learner_wallet.strip()}
        if transferred_only:
            query["transferred_to_learner"] = True

        return await self.collection.count_documents(query)

    async def list_pending_transfers(
        self,
        organization_name: Optional[str] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> Tuple[List[dict], int]:
        """
        Get certificates that have not been transferred yet.

        Args:
            organization_name: Optional filter by issuing organization
            limit: Maximum number of documents to return
            offset: Number of documents to skip

        Returns:
            Tuple of (list of certificates, total count)
        """
        await self.initialize()

        query = {"transferred_to_learner": {"$ne": True}}
        if organization_name:
            query["organization_name"] = organization_name

        total_count = await self.collection.count_documents(query)

        cursor = (
            self.collection.find(query).sort("issued_at", -1).skip(offset).limit(limit)
        )
        certificates = await cursor.to_list(length=limit)

        logger.info(
            f"Retrieved {len(certificates)} pending certificates (offset={offset}, "
            f"limit={limit}, organization={organization_name}, total={total_count})"
        )
        return certificates, total_count

    async def mark_transferred(
        self,
        certificate_id: str,
        transfer_tx_id: str,
        learner_wallet: Optional[str] = None,
    ) -> Optional[dict]:
        """
        Record a confirmed transfer in a single document update.

        Args:
            certificate_id: Certificate ID
            transfer_tx_id: Confirmed transfer transaction ID
            learner_wallet: Receiving wallet, when it differs from the stored one

        Returns:
            Updated certificate document or None if not found
        """
        object_id = to_object_id(certificate_id)
        if object_id is None:
            return None

        await self.initialize()

        now = datetime.now(timezone.utc)
        update = {
            "transfer_tx_id": transfer_tx_id,
            "transferred_to_learner": True,
            "transferred_at": now,
            "status": CertificateStatus.TRANSFERRED.value,
            "updated_at": now,
        }
        if learner_wallet:
            update["learner_wallet"] = learner_wallet.strip()

        updated = await self.collection.find_one_and_update(
            {"_id": object_id},
            {"$set": update},
            return_document=ReturnDocument.AFTER,
        )
        if updated:
            log_certificate_operation(
                "transfer",
                certificate_id=certificate_id,
                asset_id=updated.get("asset_id"),
                wallet_address=updated.get("learner_wallet"),
                transfer_tx_id=transfer_tx_id,
            )
        return updated

    async def set_transfer_flag(
        self, certificate_id: str, transferred: bool
    ) -> Optional[dict]:
        """
        Force the transferred flag without a ledger transaction.

        Args:
            certificate_id: Certificate ID
            transferred: New value of the transferred flag

        Returns:
            Updated certificate document or None if not found
        """
        object_id = to_object_id(certificate_id)
        if object_id is None:
            return None

        await self.initialize()

        now = datetime.now(timezone.utc)
        status = CertificateStatus.TRANSFERRED if transferred else CertificateStatus.ISSUED
        return await self.collection.find_one_and_update(
            {"_id": object_id},
            {
                "$set": {
                    "transferred_to_learner": transferred,
                    "transferred_at": now if transferred else None,
                    "status": status.value,
                    "updated_at": now,
                }
            },
            return_document=ReturnDocument.AFTER,
        )

    async def update_saga_state(self, certificate_id: str, saga_state: str) -> bool:
        """Store the last issuance saga state on the record."""
        object_id = to_object_id(certificate_id)
        if object_id is None:
            return False

        await self.initialize()
        result = await self.collection.update_one(
            {"_id": object_id},
            {
                "$set": {
                    "saga_state": saga_state,
                    "updated_at": datetime.now(timezone.utc),
                }
            },
        )
        return result.matched_count > 0


# Global repository instance
certificate_repository = CertificateRepository()
