"""
Issuance Orchestrator.
Sequences metadata pinning, minting, persistence, opt-in check and transfer
for a certificate, checkpointing after every durable side effect.
"""

import uuid
from typing import Any, Dict, Optional, Tuple

from pydantic import BaseModel

from app.api.dto.certificate_dto import IssueCertificateRequestDTO
from app.api.dto.issuance_dto import IssuanceRequestDTO
from app.api.services.metadata_service import metadata_from_request, metadata_publisher
from app.core.exceptions import (
    CertificateNotFoundError,
    CredziException,
    DuplicateCertificateError,
    ValidationError,
)
from app.core.logging import (
    get_logger,
    log_error,
    log_saga_checkpoint,
    log_user_operation,
)
from app.domain.models.certificate import CertificateModel
from app.domain.models.issuance import IssuanceCheckpoint, IssuanceState
from app.domain.repositories.certificate_repository import certificate_repository
from app.domain.repositories.issuance_repository import issuance_checkpoint_repository
from app.domain.repositories.user_repository import user_repository
from app.infrastructure.algorand.addresses import ensure_valid_address
from app.infrastructure.algorand.opt_in_checker import opt_in_checker
from app.infrastructure.algorand.submitter import (
    SubmissionResult,
    TransactionKind,
    transaction_submitter,
)
from app.infrastructure.algorand.transaction_builder import transaction_builder
from app.infrastructure.wallet.signer_bridge import WalletSession, signer_bridge

logger = get_logger(__name__)

ISSUE_REQUIRED_MESSAGE = (
    "Learner name, learner wallet, course name, signed transaction, "
    "issuer wallet, and IPFS hash are required"
)
RUN_REQUIRED_MESSAGE = (
    "Learner name, learner wallet, course name, and issuer wallet are required"
)
DEFAULT_ORGANIZATION = "Default Organization"

TRANSFERRED_MESSAGE = "Certificate successfully transferred to learner"
PENDING_MESSAGE = (
    "Transfer pending: the learner's wallet needs to opt into asset {asset_id}. "
    "Share the Asset ID with the learner."
)
NOT_TRANSFERRED_MESSAGE = "Certificate created but not transferred: {reason}"
UNKNOWN_OPT_IN_MESSAGE = (
    "Could not check the learner's opt-in status; transfer from the pending "
    "transfers page once the learner has opted in"
)
READY_MESSAGE = "Learner wallet has opted in; the certificate can be transferred now"


class IssuanceOutcome(BaseModel):
    """Result of a server-side issuance run."""

    attempt_id: str
    state: IssuanceState
    message: str
    certificate: Optional[Dict[str, Any]] = None
    asset_id: Optional[int] = None
    transaction_id: Optional[str] = None
    transfer_tx_id: Optional[str] = None
    transfer_error: Optional[str] = None


class TransferReadiness(BaseModel):
    """Advisory opt-in result reported to the issuer."""

    status: str
    opted_in: Optional[bool]
    message: str


class TransferOutcome(BaseModel):
    """Result of a confirmed transfer."""

    certificate: Dict[str, Any]
    transaction_id: str
    confirmed_round: int
    message: str = TRANSFERRED_MESSAGE


def _require(*values: Optional[str]) -> bool:
    return all(value and str(value).strip() for value in values)


def _reason(error: Exception) -> str:
    return error.message if isinstance(error, CredziException) else str(error)


class IssuanceOrchestrator:
    """Runs the certificate issuance and transfer saga."""

    def __init__(self):
        self.publisher = metadata_publisher
        self.builder = transaction_builder
        self.signer = signer_bridge
        self.submitter = transaction_submitter
        self.opt_in_checker = opt_in_checker
        self.certificates = certificate_repository
        self.users = user_repository
        self.checkpoints = issuance_checkpoint_repository

    # Checkpoints and bookkeeping

    async def _checkpoint(
        self, attempt_id: Optional[str], state: IssuanceState, **data: Any
    ) -> None:
        """Log a state transition and persist it for status queries."""
        if not attempt_id:
            return

        log_saga_checkpoint(
            attempt_id,
            state.value,
            certificate_id=data.get("certificate_id"),
            asset_id=data.get("asset_id"),
            error=data.get("error"),
        )
        try:
            await self.checkpoints.record(
                IssuanceCheckpoint(attempt_id=attempt_id, state=state, **data)
            )
        except Exception as e:
            # The log line above is the fallback record
            log_error(e, {"attempt_id": attempt_id, "state": state.value})

        certificate_id = data.get("certificate_id")
        if certificate_id:
            try:
                await self.certificates.update_saga_state(certificate_id, state.value)
            except Exception as e:
                log_error(e, {"attempt_id": attempt_id, "certificate_id": certificate_id})

    async def _attach_to_learner(self, learner_wallet: str, certificate_id: str) -> None:
        """Append the certificate to the learner's list. Failures are logged only."""
        try:
            attached = await self.users.add_certificate(learner_wallet, certificate_id)
        except Exception as e:
            log_error(
                e,
                {
                    "operation": "attach_certificate",
                    "learner_wallet": learner_wallet,
                    "certificate_id": certificate_id,
                },
            )
            return

        if attached:
            log_user_operation(
                "attach_certificate",
                wallet_address=learner_wallet,
                certificate_id=certificate_id,
            )
        else:
            logger.info(f"No registered user for wallet {learner_wallet}")

    async def _resolve_organization_name(
        self, issuer_wallet: str, given: Optional[str]
    ) -> Optional[str]:
        """Use the given name, else the issuer's registered organization."""
        if given and given.strip():
            return given.strip()

        issuer = await self.users.get_by_wallet(issuer_wallet)
        if not issuer:
            return None
        return issuer.get("organization_name") or (
            f"{issuer.get('first_name', '')} {issuer.get('last_name', '')}".strip() or None
        )

    async def _reject_active_duplicate(
        self, learner_wallet: str, course_name: str, issuer_wallet: str
    ) -> None:
        existing = await self.certificates.find_active_duplicate(
            learner_wallet, course_name, issuer_wallet
        )
        if existing:
            raise DuplicateCertificateError(
                details={
                    "certificateId": str(existing["_id"]),
                    "assetId": existing.get("asset_id"),
                }
            )

    async def _persist(
        self,
        attempt_id: str,
        learner_name: str,
        learner_wallet: str,
        course_name: str,
        issuer_wallet: str,
        organization_name: str,
        ipfs_hash: str,
        metadata: Dict[str, Any],
        minted: SubmissionResult,
    ) -> Dict[str, Any]:
        """Store the record for a minted asset and attach it to the learner."""
        certificate = await self.certificates.create_certificate(
            CertificateModel(
                learner_name=learner_name,
                learner_wallet=learner_wallet,
                course_name=course_name,
                issuer_wallet=issuer_wallet,
                organization_name=organization_name,
                asset_id=minted.asset_id,
                ipfs_hash=ipfs_hash,
                transaction_id=minted.tx_id,
                metadata=metadata,
                saga_state=IssuanceState.RECORD_PERSISTED.value,
                attempt_id=attempt_id,
            )
        )
        certificate_id = str(certificate["_id"])
        await self._checkpoint(
            attempt_id, IssuanceState.RECORD_PERSISTED, certificate_id=certificate_id
        )
        await self._attach_to_learner(learner_wallet, certificate_id)
        return certificate

    async def _pinned_metadata(
        self,
        request: IssueCertificateRequestDTO,
        ipfs_hash: str,
        organization_name: str,
    ) -> Dict[str, Any]:
        """The document pinned under the hash, rebuilt from the request if the gateway fails."""
        pinned = await self.publisher.fetch(ipfs_hash)
        if pinned is not None:
            return pinned

        logger.warning(f"Pinned metadata {ipfs_hash} unavailable; rebuilding from request")
        return metadata_from_request(request, organization_name)

    async def _check_opt_in(self, learner_wallet: str, asset_id: int) -> Optional[bool]:
        """Advisory opt-in check; errors mean unknown, not opted out."""
        try:
            return await self.opt_in_checker.is_opted_in(learner_wallet, asset_id)
        except Exception as e:
            logger.warning(
                f"Opt-in status unknown for {learner_wallet} on asset {asset_id}: {_reason(e)}"
            )
            return None

    async def _transfer_asset(
        self,
        certificate: Dict[str, Any],
        session: Optional[WalletSession],
    ) -> TransferOutcome:
        """Build, sign, submit and record the transfer of a stored certificate."""
        certificate_id = str(certificate["_id"])
        asset_id = certificate["asset_id"]
        issuer_wallet = certificate["issuer_wallet"]
        learner_wallet = certificate["learner_wallet"]

        unsigned = await self.builder.build_asset_transfer(
            issuer_wallet, learner_wallet, asset_id
        )
        signed = await self.signer.sign(
            session,
            unsigned.txn,
            issuer_wallet,
            description=f"Transfer certificate asset {asset_id} to {learner_wallet}",
        )
        result = await self.submitter.submit(signed.signed_txn, TransactionKind.ASSET_TRANSFER)

        updated = await self.certificates.mark_transferred(certificate_id, result.tx_id)
        await self._checkpoint(
            certificate.get("attempt_id"),
            IssuanceState.TRANSFERRED,
            certificate_id=certificate_id,
            transfer_tx_id=result.tx_id,
        )
        return TransferOutcome(
            certificate=updated or certificate,
            transaction_id=result.tx_id,
            confirmed_round=result.confirmed_round,
        )

    # Server-side saga

    async def run(
        self, request: IssuanceRequestDTO, session: Optional[WalletSession]
    ) -> IssuanceOutcome:
        """
        Issue a certificate end to end with the issuer's wallet session.

        Steps run strictly in order. Once the asset is minted and the record
        persisted both survive any later failure; transfer problems are
        reported in the outcome instead of raised.

        Args:
            request: Certificate fields with learner and issuer wallets
            session: Issuer wallet session used for both signatures

        Returns:
            IssuanceOutcome with the final state

        Raises:
            CredziException: any failure up to and including persistence
        """
        attempt_id = uuid.uuid4().hex
        outcome = IssuanceOutcome(
            attempt_id=attempt_id, state=IssuanceState.STARTED, message=""
        )

        try:
            if not _require(
                request.learner_name,
                request.learner_wallet,
                request.course_name,
                request.issuer_wallet,
            ):
                raise ValidationError(RUN_REQUIRED_MESSAGE)

            learner_wallet = ensure_valid_address(request.learner_wallet, "learner wallet")
            issuer_wallet = ensure_valid_address(request.issuer_wallet, "issuer wallet")
            course_name = request.course_name.strip()
            learner_name = request.learner_name.strip()

            await self._checkpoint(
                attempt_id,
                IssuanceState.STARTED,
                issuer_wallet=issuer_wallet,
                learner_wallet=learner_wallet,
                course_name=course_name,
            )
            await self._reject_active_duplicate(learner_wallet, course_name, issuer_wallet)

            organization_name = await self._resolve_organization_name(
                issuer_wallet, request.organization_name
            )
            ipfs_hash, metadata = await self.publisher.publish(request, organization_name)
            organization_name = metadata["properties"]["organization_name"]
            await self._checkpoint(
                attempt_id, IssuanceState.METADATA_UPLOADED, ipfs_hash=ipfs_hash
            )

            unsigned = await self.builder.build_asset_creation(
                issuer_wallet, ipfs_hash, course_name
            )
            signed = await self.signer.sign(
                session,
                unsigned.txn,
                issuer_wallet,
                description=f"Create certificate asset for {course_name}",
            )
            minted = await self.submitter.submit(
                signed.signed_txn, TransactionKind.ASSET_CREATE
            )
            outcome.asset_id = minted.asset_id
            outcome.transaction_id = minted.tx_id
            await self._checkpoint(
                attempt_id,
                IssuanceState.ASSET_MINTED,
                asset_id=minted.asset_id,
                transaction_id=minted.tx_id,
            )

            certificate = await self._persist(
                attempt_id,
                learner_name=learner_name,
                learner_wallet=learner_wallet,
                course_name=course_name,
                issuer_wallet=issuer_wallet,
                organization_name=organization_name,
                ipfs_hash=ipfs_hash,
                metadata=metadata,
                minted=minted,
            )
        except CredziException as e:
            await self._checkpoint(attempt_id, IssuanceState.FAILED, error=e.message)
            raise

        outcome.certificate = certificate
        opted_in = await self._check_opt_in(learner_wallet, minted.asset_id)

        if not opted_in:
            outcome.state = IssuanceState.PENDING_TRANSFER
            outcome.message = PENDING_MESSAGE.format(asset_id=minted.asset_id)
            await self._checkpoint(
                attempt_id,
                IssuanceState.PENDING_TRANSFER,
                certificate_id=str(certificate["_id"]),
            )
            return outcome

        await self._checkpoint(
            attempt_id, IssuanceState.OPTED_IN, certificate_id=str(certificate["_id"])
        )

        try:
            transfer = await self._transfer_asset(certificate, session)
        except Exception as e:
            # Minted asset and stored record survive a failed transfer
            log_error(e, {"attempt_id": attempt_id, "asset_id": minted.asset_id})
            reason = _reason(e)
            outcome.state = IssuanceState.PENDING_TRANSFER
            outcome.transfer_error = reason
            outcome.message = NOT_TRANSFERRED_MESSAGE.format(reason=reason)
            await self._checkpoint(
                attempt_id,
                IssuanceState.PENDING_TRANSFER,
                certificate_id=str(certificate["_id"]),
                error=reason,
            )
            return outcome

        outcome.state = IssuanceState.TRANSFERRED
        outcome.certificate = transfer.certificate
        outcome.transfer_tx_id = transfer.transaction_id
        outcome.message = transfer.message
        return outcome

    async def transfer(
        self, certificate_id: str, session: Optional[WalletSession]
    ) -> TransferOutcome:
        """
        Re-run the transfer for a stored certificate.

        The opt-in check is advisory here: the transfer is attempted whatever
        it reports and the ledger rejects it when the learner has not opted in.

        Raises:
            CertificateNotFoundError: unknown certificate
            CredziException: build, signing or submission failure
        """
        certificate = await self.certificates.get_by_id(certificate_id)
        if not certificate:
            raise CertificateNotFoundError()

        if certificate.get("transferred_to_learner"):
            logger.warning(f"Certificate {certificate_id} is already marked as transferred")

        opted_in = await self._check_opt_in(
            certificate["learner_wallet"], certificate["asset_id"]
        )
        if opted_in is False:
            logger.warning(
                f"Learner {certificate['learner_wallet']} has not opted into "
                f"asset {certificate['asset_id']}; attempting transfer anyway"
            )

        return await self._transfer_asset(certificate, session)

    # Client-signed flow

    async def complete_issuance(
        self, request: IssueCertificateRequestDTO
    ) -> Tuple[Dict[str, Any], TransferReadiness]:
        """
        Submit a creation transaction signed by the issuer's wallet and store the record.

        Args:
            request: Certificate fields, IPFS hash and signed transaction

        Returns:
            Tuple of (certificate document, transfer readiness)

        Raises:
            ValidationError: missing field or malformed payload
            InvalidAddressError: malformed wallet
            DuplicateCertificateError: active certificate exists
            SubmissionError: the ledger rejected the transaction
        """
        if not _require(
            request.learner_name,
            request.learner_wallet,
            request.course_name,
            request.signed_txn,
            request.issuer_wallet,
            request.ipfs_hash,
        ):
            raise ValidationError(ISSUE_REQUIRED_MESSAGE)

        learner_wallet = ensure_valid_address(request.learner_wallet, "learner wallet")
        issuer_wallet = ensure_valid_address(request.issuer_wallet, "issuer wallet")
        course_name = request.course_name.strip()
        ipfs_hash = request.ipfs_hash.strip()

        await self._reject_active_duplicate(learner_wallet, course_name, issuer_wallet)

        organization_name = (
            await self._resolve_organization_name(issuer_wallet, request.organization_name)
            or DEFAULT_ORGANIZATION
        )
        metadata = request.metadata or await self._pinned_metadata(
            request, ipfs_hash, organization_name
        )

        attempt_id = uuid.uuid4().hex
        await self._checkpoint(
            attempt_id,
            IssuanceState.METADATA_UPLOADED,
            issuer_wallet=issuer_wallet,
            learner_wallet=learner_wallet,
            course_name=course_name,
            ipfs_hash=ipfs_hash,
        )

        try:
            minted = await self.submitter.submit(
                request.signed_txn.strip(), TransactionKind.ASSET_CREATE
            )
            await self._checkpoint(
                attempt_id,
                IssuanceState.ASSET_MINTED,
                asset_id=minted.asset_id,
                transaction_id=minted.tx_id,
            )
            certificate = await self._persist(
                attempt_id,
                learner_name=request.learner_name.strip(),
                learner_wallet=learner_wallet,
                course_name=course_name,
                issuer_wallet=issuer_wallet,
                organization_name=organization_name,
                ipfs_hash=ipfs_hash,
                metadata=metadata,
                minted=minted,
            )
        except CredziException as e:
            await self._checkpoint(attempt_id, IssuanceState.FAILED, error=e.message)
            raise

        opted_in = await self._check_opt_in(learner_wallet, minted.asset_id)
        if opted_in is None:
            readiness = TransferReadiness(
                status="unknown", opted_in=None, message=UNKNOWN_OPT_IN_MESSAGE
            )
        elif opted_in:
            readiness = TransferReadiness(status="ready", opted_in=True, message=READY_MESSAGE)
        else:
            readiness = TransferReadiness(
                status="pending",
                opted_in=False,
                message=PENDING_MESSAGE.format(asset_id=minted.asset_id),
            )

        state = IssuanceState.OPTED_IN if opted_in else IssuanceState.PENDING_TRANSFER
        await self._checkpoint(attempt_id, state, certificate_id=str(certificate["_id"]))
        return certificate, readiness

    async def complete_transfer(
        self,
        certificate_id: Optional[str],
        signed_transaction: Optional[str],
        learner_wallet: Optional[str],
    ) -> TransferOutcome:
        """
        Submit a transfer signed by the issuer's wallet and record it.

        There is no guard against transferring a certificate twice; the
        ledger rejects a second transfer of the single unit.

        Raises:
            ValidationError: missing field
            CertificateNotFoundError: unknown certificate
            SubmissionError: the ledger rejected the transaction
        """
        if not _require(certificate_id, signed_transaction, learner_wallet):
            raise ValidationError(
                "Missing required fields: certificateId, signedTransaction, learnerWallet"
            )
        learner_wallet = ensure_valid_address(learner_wallet, "learner wallet")

        certificate = await self.certificates.get_by_id(certificate_id)
        if not certificate:
            raise CertificateNotFoundError()

        if certificate.get("transferred_to_learner"):
            logger.warning(f"Certificate {certificate_id} is already marked as transferred")

        result = await self.submitter.submit(
            signed_transaction.strip(), TransactionKind.ASSET_TRANSFER
        )
        updated = await self.certificates.mark_transferred(
            certificate_id, result.tx_id, learner_wallet=learner_wallet
        )
        await self._checkpoint(
            certificate.get("attempt_id"),
            IssuanceState.TRANSFERRED,
            certificate_id=certificate_id,
            transfer_tx_id=result.tx_id,
        )
        return TransferOutcome(
            certificate=updated or certificate,
            transaction_id=result.tx_id,
            confirmed_round=result.confirmed_round,
        )

    async def submit_opt_in(
        self,
        asset_id: Optional[int],
        signed_transaction: Optional[str],
        learner_wallet: Optional[str],
    ) -> SubmissionResult:
        """
        Submit an opt-in signed by the learner's wallet.

        Raises:
            ValidationError: missing field
            SubmissionError: the ledger rejected the transaction
        """
        if not asset_id or not _require(signed_transaction, learner_wallet):
            raise ValidationError(
                "Missing required fields: assetId, signedTransaction, learnerWallet"
            )
        learner_wallet = ensure_valid_address(learner_wallet, "learner wallet")

        result = await self.submitter.submit(
            signed_transaction.strip(), TransactionKind.ASSET_OPT_IN
        )
        logger.info(f"Wallet {learner_wallet} opted into asset {asset_id}")
        return result


# Global orchestrator instance
issuance_orchestrator = IssuanceOrchestrator()
