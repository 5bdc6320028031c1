"""
Signing request broker.
Parks unsigned transactions until the wallet application signs or rejects them.
"""

import asyncio
import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, Field

from app.core.config import settings
from app.core.exceptions import (
    NotFoundError,
    UserRejectedError,
    ValidationError,
    WalletUnavailableError,
)
from app.core.logging import get_logger
from app.infrastructure.wallet.signer_bridge import WalletSession

logger = get_logger(__name__)


class SigningRequestStatus(str, Enum):
    PENDING = "pending"
    SIGNED = "signed"
    REJECTED = "rejected"
    EXPIRED = "expired"


class SigningRequest(BaseModel):
    """Transactions waiting for one wallet's signature."""

    id: str
    wallet_address: str
    transactions: List[str]
    description: str
    future: asyncio.Future = Field(repr=False, exclude=True)
    status: SigningRequestStatus = SigningRequestStatus.PENDING
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    class Config:
        arbitrary_types_allowed = True


class SigningRequestBroker:
    """In-process rendezvous between the saga and the wallet application."""

    def __init__(self, timeout: Optional[float] = None):
        """
        Args:
            timeout: Seconds to wait for the wallet; None waits indefinitely
        """
        self.timeout = timeout
        self._requests: Dict[str, SigningRequest] = {}

    async def request_signatures(
        self, wallet_address: str, transactions: List[str], description: str = ""
    ) -> List[str]:
        """
        Park transactions and wait for the wallet to answer.

        Raises:
            UserRejectedError: the wallet rejected the request
            WalletUnavailableError: the request expired
        """
        future = asyncio.get_running_loop().create_future()
        request = SigningRequest(
            id=uuid.uuid4().hex,
            wallet_address=wallet_address,
            transactions=list(transactions),
            description=description,
            future=future,
        )
        self._requests[request.id] = request
        logger.info(
            f"Signing request {request.id} waiting for {wallet_address}: {description}"
        )

        try:
            if self.timeout is None:
                return await future
            return await asyncio.wait_for(future, self.timeout)
        except asyncio.TimeoutError:
            request.status = SigningRequestStatus.EXPIRED
            logger.warning(f"Signing request {request.id} expired")
            raise WalletUnavailableError(
                "Wallet did not respond to the signing request",
                details={"requestId": request.id},
            )
        finally:
            self._requests.pop(request.id, None)

    def list_pending(self, wallet_address: str) -> List[SigningRequest]:
        """Open requests for a wallet, oldest first."""
        return sorted(
            (
                request
                for request in self._requests.values()
                if request.wallet_address == wallet_address
                and request.status == SigningRequestStatus.PENDING
            ),
            key=lambda request: request.created_at,
        )

    def _get_pending(self, request_id: str) -> SigningRequest:
        request = self._requests.get(request_id)
        if request is None or request.status != SigningRequestStatus.PENDING:
            raise NotFoundError("Signing request not found", "SIGNING_REQUEST_NOT_FOUND")
        return request

    def submit_signatures(
        self, request_id: str, wallet_address: str, signed_transactions: List[str]
    ) -> SigningRequest:
        """Resolve a request with the wallet's signed transactions."""
        request = self._get_pending(request_id)
        if request.wallet_address != wallet_address:
            raise NotFoundError("Signing request not found", "SIGNING_REQUEST_NOT_FOUND")
        if len(signed_transactions) != len(request.transactions):
            raise ValidationError(
                "Number of signed transactions does not match the request",
                details={
                    "expected": len(request.transactions),
                    "received": len(signed_transactions),
                },
            )

        request.status = SigningRequestStatus.SIGNED
        request.future.set_result(list(signed_transactions))
        logger.info(f"Signing request {request_id} signed")
        return request

    def reject(
        self, request_id: str, wallet_address: str, reason: Optional[str] = None
    ) -> SigningRequest:
        """Resolve a request as declined by the wallet holder."""
        request = self._get_pending(request_id)
        if request.wallet_address != wallet_address:
            raise NotFoundError("Signing request not found", "SIGNING_REQUEST_NOT_FOUND")

        request.status = SigningRequestStatus.REJECTED
        request.future.set_exception(UserRejectedError(details=reason))
        logger.info(f"Signing request {request_id} rejected")
        return request


class BrokeredWalletSession(WalletSession):
    """Wallet session whose signatures arrive through the broker."""

    def __init__(self, address: str, broker: SigningRequestBroker):
        self._address = address
        self.broker = broker

    @property
    def address(self) -> str:
        return self._address

    async def sign_transactions(
        self, transactions: List[str], description: str = ""
    ) -> Optional[List[Optional[str]]]:
        return await self.broker.request_signatures(
            self._address, transactions, description
        )


# Global broker instance
signing_broker = SigningRequestBroker(timeout=settings.SIGNING_REQUEST_TIMEOUT_SECONDS)
