"""
Algorand address validation.
"""

from typing import Optional

from algosdk import encoding

from app.core.exceptions import InvalidAddressError


def is_valid_address(address: Optional[str]) -> bool:
    """Check the 58-character checksummed address format without any network call."""
    return bool(address) and encoding.is_valid_address(address)


def ensure_valid_address(address: Optional[str], label: str = "wallet") -> str:
    """
    Validate an address and return it stripped.

    Raises:
        InvalidAddressError: address is empty or malformed
    """
    address = (address or "").strip()
    if not is_valid_address(address):
        raise InvalidAddressError(address, label)
    return address
