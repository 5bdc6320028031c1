"""
Wallet session dependencies for FastAPI.
Resolves the connected wallet from the X-Wallet-Address header and re-reads
its user record on every request.
"""

from typing import Any, Dict, Optional

from fastapi import Depends, Header
from pydantic import BaseModel

from app.core.exceptions import AuthorizationError
from app.core.logging import get_logger
from app.domain.models.user import ISSUER_ROLES
from app.domain.repositories.user_repository import user_repository
from app.infrastructure.algorand.addresses import ensure_valid_address
from app.infrastructure.wallet.signing_broker import (
    BrokeredWalletSession,
    signing_broker,
)

logger = get_logger(__name__)

WALLET_HEADER = "X-Wallet-Address"


class WalletSessionContext(BaseModel):
    """The wallet connected to a request and the user registered for it."""

    wallet_address: str
    user: Optional[Dict[str, Any]] = None

    @property
    def role(self) -> Optional[str]:
        return self.user.get("role") if self.user else None

    @property
    def is_issuer(self) -> bool:
        return self.role in {role.value for role in ISSUER_ROLES}

    def require_issuer(self) -> None:
        if not self.is_issuer:
            raise AuthorizationError(
                "Only organizations and admins can issue certificates",
                details={"walletAddress": self.wallet_address, "role": self.role},
            )

    def require_wallet(self, wallet_address: Optional[str], label: str = "issuer wallet") -> None:
        if wallet_address and wallet_address.strip() != self.wallet_address:
            raise AuthorizationError(
                f"Connected wallet does not match the {label}",
                details={"walletAddress": self.wallet_address},
            )

    def wallet_session(self) -> BrokeredWalletSession:
        """Signing session that routes requests to this wallet."""
        return BrokeredWalletSession(self.wallet_address, signing_broker)


class WalletSessionGuard:
    """Builds session contexts from request headers."""

    def __init__(self):
        self.users = user_repository

    async def resolve(self, wallet_address: Optional[str]) -> Optional[WalletSessionContext]:
        if not wallet_address or not wallet_address.strip():
            return None

        wallet_address = ensure_valid_address(wallet_address)
        user = await self.users.get_by_wallet(wallet_address)

        logger.debug(
            f"Wallet session {wallet_address}: "
            f"{'registered as ' + user.get('role', '') if user else 'unregistered'}"
        )
        return WalletSessionContext(wallet_address=wallet_address, user=user)


# Global guard instance
wallet_session_guard = WalletSessionGuard()


async def get_optional_wallet_session(
    x_wallet_address: Optional[str] = Header(None, alias=WALLET_HEADER),
) -> Optional[WalletSessionContext]:
    """
    Dependency resolving the wallet session when the header is present.

    Usage:
        @router.post("/endpoint")
        async def endpoint(session: Optional[WalletSessionContext] = Depends(get_optional_wallet_session)):
            ...
    """
    return await wallet_session_guard.resolve(x_wallet_address)


async def get_wallet_session(
    session: Optional[WalletSessionContext] = Depends(get_optional_wallet_session),
) -> WalletSessionContext:
    """Dependency requiring a connected wallet."""
    if session is None:
        raise AuthorizationError(
            "Wallet session required", details={"header": WALLET_HEADER}
        )
    return session


async def get_issuer_session(
    session: WalletSessionContext = Depends(get_wallet_session),
) -> WalletSessionContext:
    """Dependency requiring a connected organization or admin wallet."""
    session.require_issuer()
    return session
