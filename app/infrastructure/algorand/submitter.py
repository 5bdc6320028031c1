"""
Transaction Submitter.
Sends signed transactions, waits for confirmation and classifies node errors.
"""

import base64
import binascii
from enum import Enum
from typing import Dict, Optional, Tuple

from pydantic import BaseModel
from pydantic import ValidationError as SchemaError

from app.core.config import settings
from app.core.exceptions import (
    CredziException,
    SubmissionError,
    SubmissionFailure,
    ValidationError,
)
from app.core.logging import get_logger, log_ledger_transaction
from app.infrastructure.algorand.algod_client import AlgodGateway, algod_gateway

logger = get_logger(__name__)


class TransactionKind(str, Enum):
    ASSET_CREATE = "asset_create"
    ASSET_TRANSFER = "asset_transfer"
    ASSET_OPT_IN = "asset_opt_in"


# Checked in order against the lowercased node error; first match wins.
SUBMISSION_ERROR_RULES: Tuple[Tuple[SubmissionFailure, Tuple[str, ...]], ...] = (
    (SubmissionFailure.OVERSPEND, ("overspend",)),
    (SubmissionFailure.ALREADY_OPTED_IN, ("already opted in",)),
    (SubmissionFailure.NOT_OPTED_IN, ("not opted in", "must optin", "missing from")),
    (SubmissionFailure.ASSET_NOT_FOUND, ("asset not found", "does not exist")),
    (SubmissionFailure.INSUFFICIENT_ASSET_BALANCE, ("insufficient balance", "underflow")),
)

SUBMISSION_MESSAGES: Dict[TransactionKind, Dict[SubmissionFailure, str]] = {
    TransactionKind.ASSET_CREATE: {
        SubmissionFailure.OVERSPEND: "Insufficient funds in organization wallet to create certificate",
        SubmissionFailure.MISSING_ASSET_ID: "Failed to get asset ID from transaction",
    },
    TransactionKind.ASSET_TRANSFER: {
        SubmissionFailure.OVERSPEND: "Insufficient funds in organization wallet",
        SubmissionFailure.NOT_OPTED_IN: "Learner wallet has not opted into this asset",
        SubmissionFailure.INSUFFICIENT_ASSET_BALANCE: "Organization does not have the asset to transfer",
        SubmissionFailure.ASSET_NOT_FOUND: "Asset does not exist or invalid asset ID",
    },
    TransactionKind.ASSET_OPT_IN: {
        SubmissionFailure.OVERSPEND: "Insufficient funds in learner wallet for opt-in transaction",
        SubmissionFailure.ASSET_NOT_FOUND: "Asset does not exist or invalid asset ID",
        SubmissionFailure.ALREADY_OPTED_IN: "Learner wallet has already opted into this asset",
    },
}

GENERIC_MESSAGES: Dict[TransactionKind, str] = {
    TransactionKind.ASSET_CREATE: "Failed to create certificate on blockchain",
    TransactionKind.ASSET_TRANSFER: "Failed to submit transaction to blockchain",
    TransactionKind.ASSET_OPT_IN: "Failed to submit opt-in transaction",
}


class SubmissionResult(BaseModel):
    """Outcome of a confirmed transaction."""

    tx_id: str
    confirmed_round: int
    asset_id: Optional[int] = None


def classify_submission_error(error_text: str) -> SubmissionFailure:
    """Map raw node error text to a failure code."""
    lowered = error_text.lower()
    for failure, patterns in SUBMISSION_ERROR_RULES:
        if any(pattern in lowered for pattern in patterns):
            return failure
    return SubmissionFailure.REJECTED


def submission_error(kind: TransactionKind, error_text: str) -> SubmissionError:
    """Build the user-facing error for a failed submission."""
    failure = classify_submission_error(error_text)
    message = SUBMISSION_MESSAGES[kind].get(failure)
    if message is None:
        message = f"{GENERIC_MESSAGES[kind]}: {error_text}"
    return SubmissionError(failure, message, details=error_text)


def decode_signed_transaction(signed_txn: str) -> bytes:
    """Check that a signed transaction is non-empty base64."""
    if not signed_txn or not isinstance(signed_txn, str):
        raise ValidationError("Signed transaction is required")
    try:
        raw = base64.b64decode(signed_txn, validate=True)
    except (binascii.Error, ValueError):
        raise ValidationError("Signed transaction must be base64 encoded")
    if not raw:
        raise ValidationError("Signed transaction is empty")
    return raw


class TransactionSubmitter:
    """Submits signed transactions and waits for confirmation."""

    def __init__(self, gateway: Optional[AlgodGateway] = None):
        self.gateway = gateway or algod_gateway

    async def submit(self, signed_txn: str, kind: TransactionKind) -> SubmissionResult:
        """
        Submit a signed transaction and wait for it to confirm.

        Resubmitting an already confirmed transaction is rejected by the node,
        so callers must not retry blindly.

        Args:
            signed_txn: Base64 signed transaction
            kind: What the transaction does, used for error messages

        Returns:
            SubmissionResult with confirmed round and, for creations, the asset ID

        Raises:
            ValidationError: payload is not base64
            SubmissionError: the node rejected the transaction
        """
        decode_signed_transaction(signed_txn)

        try:
            tx_id = await self.gateway.send_raw_transaction(signed_txn)
            logger.info(f"Transaction sent: {tx_id} ({kind.value})")
            info = await self.gateway.wait_for_confirmation(
                tx_id, settings.CONFIRMATION_WAIT_ROUNDS
            )
        except CredziException:
            raise
        except SchemaError as e:
            raise SubmissionError(
                SubmissionFailure.REJECTED,
                "Unexpected confirmation response from ledger node",
                details=str(e),
            )
        except Exception as e:
            logger.error(f"Submission of {kind.value} transaction failed: {e}")
            raise submission_error(kind, str(e))

        if info.pool_error:
            raise submission_error(kind, info.pool_error)

        if kind == TransactionKind.ASSET_CREATE and not info.asset_index:
            raise SubmissionError(
                SubmissionFailure.MISSING_ASSET_ID,
                SUBMISSION_MESSAGES[kind][SubmissionFailure.MISSING_ASSET_ID],
                details={"transactionId": tx_id},
            )

        result = SubmissionResult(
            tx_id=tx_id,
            confirmed_round=info.confirmed_round,
            asset_id=info.asset_index,
        )
        log_ledger_transaction(
            tx_id,
            kind.value,
            confirmed_round=result.confirmed_round,
            asset_id=result.asset_id,
        )
        return result


# Global submitter instance
transaction_submitter = TransactionSubmitter()
