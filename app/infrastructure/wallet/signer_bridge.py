"""
External Signer Bridge.
Hands unsigned transactions to a wallet session and returns the signed blobs.
The service never holds private keys.
"""

from abc import ABC, abstractmethod
from typing import List, Optional

from algosdk import encoding, transaction
from pydantic import BaseModel

from app.core.exceptions import SignerMismatchError, WalletUnavailableError
from app.core.logging import get_logger

logger = get_logger(__name__)


class SignedTransaction(BaseModel):
    """A signed transaction ready for submission."""

    signed_txn: str
    tx_id: str


class WalletSession(ABC):
    """A connected wallet able to sign on behalf of one address."""

    @property
    @abstractmethod
    def address(self) -> str:
        """Address of the connected account."""

    @abstractmethod
    async def sign_transactions(
        self, transactions: List[str], description: str = ""
    ) -> Optional[List[Optional[str]]]:
        """
        Ask the wallet holder to sign base64 msgpack transactions.

        Returns:
            Base64 signed transactions in the same order

        Raises:
            UserRejectedError: the holder declined
        """


def _signed_tx_id(signed_txn: str) -> Optional[str]:
    """Compute the ID of the transaction inside a signed blob."""
    try:
        decoded = encoding.msgpack_decode(signed_txn)
    except Exception as e:
        logger.warning(f"Could not decode signed transaction: {e}")
        return None
    if not isinstance(decoded, transaction.SignedTransaction):
        return None
    return decoded.transaction.get_txid()


class ExternalSignerBridge:
    """Delegates signing to a wallet session. No retries."""

    async def sign(
        self,
        session: Optional[WalletSession],
        txn: transaction.Transaction,
        signer_address: str,
        description: str = "",
    ) -> SignedTransaction:
        """
        Obtain a signature for a transaction.

        Args:
            session: Connected wallet session
            txn: Unsigned transaction
            signer_address: Address that must sign
            description: Text shown to the wallet holder

        Returns:
            SignedTransaction with base64 blob and transaction ID

        Raises:
            WalletUnavailableError: no session
            UserRejectedError: the holder declined
            SignerMismatchError: wrong account or no signed payload returned
        """
        if session is None:
            raise WalletUnavailableError()

        if session.address != signer_address:
            raise SignerMismatchError(
                "Connected wallet does not match the required signer",
                details={"expected": signer_address, "connected": session.address},
            )

        tx_id = txn.get_txid()
        signed = await session.sign_transactions(
            [encoding.msgpack_encode(txn)], description
        )
        if not signed or not signed[0]:
            raise SignerMismatchError()

        if _signed_tx_id(signed[0]) != tx_id:
            raise SignerMismatchError(
                "Signed transaction does not match the requested transaction",
                details={"transactionId": tx_id},
            )

        logger.info(f"Wallet {signer_address} signed transaction {tx_id}")
        return SignedTransaction(signed_txn=signed[0], tx_id=tx_id)


# Global bridge instance
signer_bridge = ExternalSignerBridge()
