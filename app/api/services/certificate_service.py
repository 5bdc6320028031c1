"""
Certificate Service Layer.
Contains queries, verification and the manual transfer override.
"""

import re
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

from app.api.dto.certificate_dto import (
    CertificateDTO,
    NftDetailsDTO,
    PartyDTO,
    VerifiedCertificateDTO,
)
from app.core.exceptions import (
    CertificateNotFoundError,
    UserNotFoundError,
    ValidationError,
)
from app.core.logging import get_logger, log_certificate_operation
from app.domain.repositories.certificate_repository import certificate_repository
from app.domain.repositories.user_repository import user_repository
from app.infrastructure.algorand.addresses import ensure_valid_address
from app.infrastructure.algorand.algod_client import algod_gateway
from app.infrastructure.ipfs.ipfs_service import ipfs_service

logger = get_logger(__name__)

IPFS_HASH_PATTERN = re.compile(r"ipfs/([^/?]+)")


def extract_ipfs_hash(url: Optional[str]) -> Optional[str]:
    """Pull the content hash out of a gateway or ipfs:// URL."""
    if not url:
        return None
    if url.startswith("ipfs://"):
        return url[len("ipfs://"):].split("/")[0] or None
    match = IPFS_HASH_PATTERN.search(url)
    return match.group(1) if match else None


def require_wallet_id(wallet_id: Optional[str]) -> str:
    if not wallet_id or not wallet_id.strip():
        raise ValidationError("Wallet ID is required")
    return ensure_valid_address(wallet_id)


def parse_asset_id(raw: Optional[str]) -> int:
    """Parse a positive asset ID from a query parameter."""
    if raw is None or not str(raw).strip():
        raise ValidationError("Asset ID is required")
    try:
        asset_id = int(str(raw).strip())
    except ValueError:
        raise ValidationError("Invalid Asset ID")
    if asset_id <= 0:
        raise ValidationError("Invalid Asset ID")
    return asset_id


class CertificateService:
    """Service class for certificate queries."""

    def __init__(self):
        self.certificates = certificate_repository
        self.users = user_repository
        self.algod = algod_gateway
        self.ipfs = ipfs_service

    async def _party(
        self, wallet_id: str, fallback_name: str, organization: bool = False
    ) -> PartyDTO:
        """Describe a learner or issuer, preferring the registered user."""
        user = await self.users.get_by_wallet(wallet_id)
        if not user:
            return PartyDTO(
                name=fallback_name,
                organization_name=fallback_name if organization else None,
                wallet_id=wallet_id,
            )

        full_name = f"{user.get('first_name', '')} {user.get('last_name', '')}".strip()
        name = (user.get("organization_name") or full_name) if organization else full_name
        return PartyDTO(
            name=name or fallback_name,
            first_name=user.get("first_name"),
            last_name=user.get("last_name"),
            organization_name=user.get("organization_name"),
            email=user.get("email"),
            wallet_id=wallet_id,
            registered=True,
        )

    async def verify_by_hash(self, ipfs_hash: Optional[str]) -> VerifiedCertificateDTO:
        """
        Find a certificate by its metadata hash.

        Args:
            ipfs_hash: IPFS hash of the certificate metadata

        Returns:
            Certificate with learner and issuer details

        Raises:
            ValidationError: hash missing
            CertificateNotFoundError: no certificate has this hash
        """
        if not ipfs_hash or not ipfs_hash.strip():
            raise ValidationError("Certificate hash is required")

        certificate = await self.certificates.get_by_ipfs_hash(ipfs_hash)
        if not certificate:
            raise CertificateNotFoundError()

        learner = await self._party(
            certificate["learner_wallet"], certificate["learner_name"]
        )
        issuer = await self._party(
            certificate["issuer_wallet"], certificate["organization_name"], organization=True
        )
        return VerifiedCertificateDTO(
            **CertificateDTO.from_document(certificate).model_dump(),
            learner=learner,
            issuer=issuer,
        )

    async def list_pending(
        self, organization: Optional[str], limit: int, offset: int
    ) -> Tuple[List[Dict[str, Any]], int]:
        """Certificates not yet transferred, newest first, with the total count."""
        return await self.certificates.list_pending_transfers(
            organization_name=organization, limit=limit, offset=offset
        )

    async def override_transfer_status(
        self,
        certificate_id: Optional[str],
        transferred: bool,
        acting_wallet: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Force the transferred flag without a ledger transaction.

        This is an administrative escape hatch: afterwards the stored state may
        no longer match the ledger.

        Raises:
            ValidationError: certificate ID missing
            CertificateNotFoundError: unknown certificate
        """
        if not certificate_id or not certificate_id.strip():
            raise ValidationError("Certificate ID is required")

        updated = await self.certificates.set_transfer_flag(
            certificate_id.strip(), transferred
        )
        if not updated:
            raise CertificateNotFoundError()

        logger.warning(
            f"Transfer flag of certificate {certificate_id} set to {transferred} "
            f"without a ledger transaction by {acting_wallet or 'unknown wallet'}"
        )
        log_certificate_operation(
            "override",
            certificate_id=certificate_id,
            asset_id=updated.get("asset_id"),
            wallet_address=acting_wallet,
            transferred_to_learner=transferred,
        )
        return updated

    async def verify_nft(self, raw_asset_id: Optional[str]) -> NftDetailsDTO:
        """
        Read a certificate asset from the ledger.

        Raises:
            ValidationError: missing or malformed asset ID
            AssetNotFoundError: the ledger does not know the asset
            LedgerUnavailableError: the node could not be reached
        """
        asset_id = parse_asset_id(raw_asset_id)

        asset = await self.algod.asset_info(asset_id)
        params = asset.params

        ipfs_hash = extract_ipfs_hash(params.url)
        metadata = await self.ipfs.fetch_json(ipfs_hash) if ipfs_hash else None

        stored = await self.certificates.get_by_asset_id(asset_id)

        return NftDetailsDTO(
            asset_id=asset.index,
            asset_name=params.name,
            unit_name=params.unit_name,
            total=params.total,
            decimals=params.decimals,
            default_frozen=params.default_frozen,
            asset_url=params.url,
            metadata_hash=params.metadata_hash,
            creator=params.creator,
            manager=params.manager,
            reserve=params.reserve,
            freeze=params.freeze,
            clawback=params.clawback,
            metadata=metadata,
            created_at_round=asset.created_at_round,
            destroyed=asset.deleted,
            ipfs_hash=ipfs_hash,
            is_nft=params.total == 1 and params.decimals == 0,
            certificate=CertificateDTO.from_document(stored) if stored else None,
            verified_at=datetime.now(timezone.utc),
        )

    async def learner_certificates(self, wallet_id: Optional[str]) -> List[Dict[str, Any]]:
        """Certificates already transferred to a learner wallet."""
        wallet_id = require_wallet_id(wallet_id)
        return await self.certificates.list_by_learner_wallet(wallet_id)

    async def learner_certificate_count(self, wallet_id: Optional[str]) -> int:
        wallet_id = require_wallet_id(wallet_id)
        return await self.certificates.count_by_learner_wallet(wallet_id)

    async def user_certificates(
        self, wallet_id: Optional[str]
    ) -> Tuple[Dict[str, Any], List[Dict[str, Any]]]:
        """A user together with the certificates it references."""
        if not wallet_id or not wallet_id.strip():
            raise ValidationError("Wallet ID is required")

        user = await self.users.get_by_wallet(wallet_id)
        if not user:
            raise UserNotFoundError()

        certificate_ids = [str(cid) for cid in user.get("certificates", [])]
        certificates = await self.certificates.get_by_ids(certificate_ids)
        return user, certificates


# Global service instance
certificate_service = CertificateService()
