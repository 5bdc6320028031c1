"""
Logging configuration for the Credzi backend.
Structured logs for issuance, ledger and IPFS operations.
"""

import logging
import sys
from typing import Any, Dict, Optional

import structlog
from structlog.stdlib import LoggerFactory

from app.core.config import is_production, settings

QUIET_LOGGERS = {
    "uvicorn": logging.INFO,
    "uvicorn.access": logging.INFO,
    "motor": logging.WARNING,
    "pymongo": logging.WARNING,
    "httpx": logging.WARNING,
}


def setup_logging() -> None:
    """
    Route structlog through stdlib logging.

    Renders JSON in production or when LOG_FORMAT is json, and colored
    console output otherwise.
    """
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            _renderer(),
        ],
        context_class=dict,
        logger_factory=LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    )
    for name, level in QUIET_LOGGERS.items():
        logging.getLogger(name).setLevel(level)


def _renderer():
    if is_production() or settings.LOG_FORMAT == "json":
        return structlog.processors.JSONRenderer()
    return structlog.dev.ConsoleRenderer(colors=True)


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Module logger, usually get_logger(__name__)."""
    return structlog.get_logger(name)


# Specialized logging functions for Credzi operations

def log_ipfs_operation(
    operation: str,
    ipfs_hash: Optional[str] = None,
    file_size: Optional[int] = None,
    **kwargs
) -> None:
    """
    Log IPFS operations.

    Args:
        operation: Operation type (pin, fetch)
        ipfs_hash: IPFS hash
        file_size: Payload size in bytes
        **kwargs: Additional context
    """
    logger = get_logger("ipfs.operation")
    logger.info(
        "IPFS operation",
        operation=operation,
        ipfs_hash=ipfs_hash,
        file_size=file_size,
        **kwargs
    )


def log_ledger_transaction(
    tx_id: str,
    kind: str,
    confirmed_round: Optional[int] = None,
    asset_id: Optional[int] = None,
    **kwargs
) -> None:
    """
    Log a confirmed Algorand transaction.

    Args:
        tx_id: Transaction ID
        kind: Transaction kind (asset_create, asset_transfer, asset_opt_in)
        confirmed_round: Round in which the transaction confirmed
        asset_id: Asset involved or created
        **kwargs: Additional transaction context
    """
    logger = get_logger("ledger.transaction")
    logger.info(
        "Ledger transaction",
        tx_id=tx_id,
        kind=kind,
        confirmed_round=confirmed_round,
        asset_id=asset_id,
        **kwargs
    )


def log_saga_checkpoint(
    attempt_id: str,
    state: str,
    certificate_id: Optional[str] = None,
    asset_id: Optional[int] = None,
    **kwargs
) -> None:
    """
    Log an issuance saga state transition.

    Args:
        attempt_id: Issuance attempt identifier
        state: State just reached
        certificate_id: Certificate record ID once persisted
        asset_id: Minted asset ID once confirmed
        **kwargs: Additional context
    """
    logger = get_logger("issuance.saga")
    logger.info(
        "Issuance checkpoint",
        attempt_id=attempt_id,
        state=state,
        certificate_id=certificate_id,
        asset_id=asset_id,
        **kwargs
    )


def log_certificate_operation(
    operation: str,
    certificate_id: Optional[str] = None,
    asset_id: Optional[int] = None,
    wallet_address: Optional[str] = None,
    **kwargs
) -> None:
    """
    Log certificate record operations.

    Args:
        operation: Operation type (create, transfer, override)
        certificate_id: Certificate record ID
        asset_id: Ledger asset ID
        wallet_address: Wallet address involved
        **kwargs: Additional context
    """
    logger = get_logger("certificate.operation")
    logger.info(
        "Certificate operation",
        operation=operation,
        certificate_id=certificate_id,
        asset_id=asset_id,
        wallet_address=wallet_address,
        **kwargs
    )


def log_user_operation(
    operation: str,
    user_id: Optional[str] = None,
    wallet_address: Optional[str] = None,
    **kwargs
) -> None:
    """
    Log user account operations.

    Args:
        operation: Operation type (signup, update_profile, attach_certificate)
        user_id: User ID
        wallet_address: Wallet address
        **kwargs: Additional context
    """
    logger = get_logger("user.operation")
    logger.info(
        "User operation",
        operation=operation,
        user_id=user_id,
        wallet_address=wallet_address,
        **kwargs
    )


def log_error(error: Exception, context: Optional[Dict[str, Any]] = None) -> None:
    """
    Log an error with context.

    Args:
        error: Exception instance
        context: Additional context information
    """
    logger = get_logger("error")
    logger.error(
        "An error occurred",
        error=str(error),
        error_type=type(error).__name__,
        context=context or {},
        exc_info=True
    )
