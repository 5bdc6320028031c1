"""
Custom exceptions for the Credzi backend.
Provides structured error handling for certificate issuance and transfer.
"""

from enum import Enum
from typing import Any, Dict, Optional

from fastapi import status


class CredziException(Exception):
    """Base exception for the Credzi backend."""

    def __init__(
        self,
        message: str,
        error_code: str = "CREDZI_ERROR",
        details: Optional[Any] = None,
    ):
        self.message = message
        self.error_code = error_code
        self.details = details
        super().__init__(self.message)


# Validation
class ValidationError(CredziException):
    """Raised when input validation fails."""

    def __init__(self, message: str = "Validation failed", details: Optional[Any] = None):
        super().__init__(message, "VALIDATION_ERROR", details)


class InvalidAddressError(CredziException):
    """Raised when a wallet address fails Algorand address validation."""

    def __init__(self, address: Optional[str], label: str = "wallet", details: Optional[Any] = None):
        self.address = address
        super().__init__(f"Invalid {label} address", "INVALID_ADDRESS", details)


# Not found
class NotFoundError(CredziException):
    """Raised when a requested record does not exist."""

    def __init__(self, message: str = "Not found", error_code: str = "NOT_FOUND", details: Optional[Any] = None):
        super().__init__(message, error_code, details)


class CertificateNotFoundError(NotFoundError):
    """Raised when a certificate is not found."""

    def __init__(self, details: Optional[Any] = None):
        super().__init__("Certificate not found", "CERTIFICATE_NOT_FOUND", details)


class UserNotFoundError(NotFoundError):
    """Raised when a user is not found."""

    def __init__(self, details: Optional[Any] = None):
        super().__init__("User not found", "USER_NOT_FOUND", details)


class AssetNotFoundError(NotFoundError):
    """Raised when an asset does not exist on the ledger."""

    def __init__(self, asset_id: int, details: Optional[Any] = None):
        self.asset_id = asset_id
        super().__init__("Asset does not exist on the blockchain", "ASSET_NOT_FOUND", details)


# Conflicts
class ConflictError(CredziException):
    """Raised when a write would violate a uniqueness rule."""

    def __init__(self, message: str = "Conflict", error_code: str = "CONFLICT", details: Optional[Any] = None):
        super().__init__(message, error_code, details)


class DuplicateCertificateError(ConflictError):
    """Raised when an active certificate already exists for learner, course and issuer."""

    def __init__(
        self,
        message: str = "Certificate already exists for this learner and course",
        details: Optional[Any] = None,
    ):
        super().__init__(message, "DUPLICATE_CERTIFICATE", details)


class DuplicateUserError(ConflictError):
    """Raised when a user with the same email or wallet already exists."""

    def __init__(self, message: str = "User with this email already exists", details: Optional[Any] = None):
        super().__init__(message, "DUPLICATE_USER", details)


# Authorization
class AuthorizationError(CredziException):
    """Raised when the wallet session may not perform an operation."""

    def __init__(self, message: str = "Access denied", details: Optional[Any] = None):
        super().__init__(message, "AUTHZ_ERROR", details)


# External services
class ExternalServiceError(CredziException):
    """Raised when IPFS or the Algorand node fails."""

    def __init__(
        self,
        message: str = "External service failed",
        error_code: str = "EXTERNAL_SERVICE_ERROR",
        details: Optional[Any] = None,
    ):
        super().__init__(message, error_code, details)


class ConfigurationError(ExternalServiceError):
    """Raised when credentials for an external service are missing."""

    def __init__(self, message: str = "Service credentials not configured", details: Optional[Any] = None):
        super().__init__(message, "CONFIGURATION_ERROR", details)


class UploadError(ExternalServiceError):
    """Raised when the pinning service rejects a metadata upload."""

    def __init__(self, status_code: Optional[int], body: str = ""):
        self.status_code = status_code
        self.body = body
        super().__init__(
            f"Failed to upload to IPFS: {status_code} {body}".strip(),
            "UPLOAD_ERROR",
            body or None,
        )


class NetworkParamError(ExternalServiceError):
    """Raised when suggested transaction parameters cannot be fetched."""

    def __init__(self, details: Optional[Any] = None):
        super().__init__("Failed to fetch network parameters", "NETWORK_PARAM_ERROR", details)


class LedgerUnavailableError(ExternalServiceError):
    """Raised when the Algorand node cannot be reached."""

    def __init__(self, details: Optional[Any] = None):
        super().__init__("Network error while connecting to blockchain", "LEDGER_UNAVAILABLE", details)


class SubmissionFailure(str, Enum):
    """Structured classification of ledger submission failures."""

    OVERSPEND = "overspend"
    ASSET_NOT_FOUND = "asset_not_found"
    NOT_OPTED_IN = "not_opted_in"
    ALREADY_OPTED_IN = "already_opted_in"
    INSUFFICIENT_ASSET_BALANCE = "insufficient_asset_balance"
    MISSING_ASSET_ID = "missing_asset_id"
    REJECTED = "rejected"


class SubmissionError(ExternalServiceError):
    """Raised when a signed transaction is rejected or never confirms."""

    def __init__(self, failure: SubmissionFailure, message: str, details: Optional[Any] = None):
        self.failure = failure
        super().__init__(message, "SUBMISSION_ERROR", details)


# Wallet signing
class WalletError(CredziException):
    """Base class for external signer failures."""


class UserRejectedError(WalletError):
    """Raised when the wallet holder declines to sign."""

    def __init__(self, details: Optional[Any] = None):
        super().__init__("Transaction was cancelled by user", "USER_REJECTED", details)


class WalletUnavailableError(WalletError):
    """Raised when there is no active wallet session."""

    def __init__(self, message: str = "Wallet not connected", details: Optional[Any] = None):
        super().__init__(message, "WALLET_UNAVAILABLE", details)


class SignerMismatchError(WalletError):
    """Raised when the wallet returns no signed payload for the expected signer."""

    def __init__(self, message: str = "No signed transaction returned from wallet", details: Optional[Any] = None):
        super().__init__(message, "SIGNER_MISMATCH", details)


class UnknownError(CredziException):
    """Catch-all preserving the underlying message."""

    def __init__(self, message: str = "Internal server error", details: Optional[Any] = None):
        super().__init__(message, "UNKNOWN_ERROR", details)


def error_body(exc: CredziException) -> Dict[str, Any]:
    """
    Build the JSON body returned for a CredziException.

    Args:
        exc: CredziException instance

    Returns:
        Dict with error message, code and optional details
    """
    body: Dict[str, Any] = {"error": exc.message, "errorCode": exc.error_code}
    if exc.details is not None:
        body["details"] = exc.details
    return body


def get_exception_status_code(exc: CredziException) -> int:
    """
    Get the appropriate HTTP status code for a CredziException.

    Args:
        exc: CredziException instance

    Returns:
        int: HTTP status code
    """
    status_mapping = {
        # Validation
        "VALIDATION_ERROR": status.HTTP_400_BAD_REQUEST,
        "INVALID_ADDRESS": status.HTTP_400_BAD_REQUEST,

        # Not found
        "NOT_FOUND": status.HTTP_404_NOT_FOUND,
        "CERTIFICATE_NOT_FOUND": status.HTTP_404_NOT_FOUND,
        "USER_NOT_FOUND": status.HTTP_404_NOT_FOUND,
        "ASSET_NOT_FOUND": status.HTTP_404_NOT_FOUND,
        "SIGNING_REQUEST_NOT_FOUND": status.HTTP_404_NOT_FOUND,

        # Conflicts
        "CONFLICT": status.HTTP_409_CONFLICT,
        "DUPLICATE_CERTIFICATE": status.HTTP_409_CONFLICT,
        "DUPLICATE_USER": status.HTTP_409_CONFLICT,

        # Authorization
        "AUTHZ_ERROR": status.HTTP_403_FORBIDDEN,

        # External services
        "EXTERNAL_SERVICE_ERROR": status.HTTP_500_INTERNAL_SERVER_ERROR,
        "CONFIGURATION_ERROR": status.HTTP_500_INTERNAL_SERVER_ERROR,
        "UPLOAD_ERROR": status.HTTP_500_INTERNAL_SERVER_ERROR,
        "NETWORK_PARAM_ERROR": status.HTTP_500_INTERNAL_SERVER_ERROR,
        "SUBMISSION_ERROR": status.HTTP_500_INTERNAL_SERVER_ERROR,
        "LEDGER_UNAVAILABLE": status.HTTP_503_SERVICE_UNAVAILABLE,

        # Wallet signing
        "USER_REJECTED": status.HTTP_500_INTERNAL_SERVER_ERROR,
        "WALLET_UNAVAILABLE": status.HTTP_500_INTERNAL_SERVER_ERROR,
        "SIGNER_MISMATCH": status.HTTP_500_INTERNAL_SERVER_ERROR,

        "UNKNOWN_ERROR": status.HTTP_500_INTERNAL_SERVER_ERROR,
    }

    return status_mapping.get(exc.error_code, status.HTTP_500_INTERNAL_SERVER_ERROR)
