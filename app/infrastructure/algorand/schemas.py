"""
Validated shapes of algod responses.
Only the fields the service reads are declared.
"""

from typing import List, Optional

from pydantic import BaseModel, Field


class PendingTransactionInfo(BaseModel):
    """Response of /v2/transactions/pending/{txid}."""

    confirmed_round: int = Field(0, alias="confirmed-round")
    asset_index: Optional[int] = Field(None, alias="asset-index")
    pool_error: str = Field("", alias="pool-error")

    class Config:
        populate_by_name = True


class AssetHolding(BaseModel):
    asset_id: int = Field(..., alias="asset-id")
    amount: int = 0
    is_frozen: bool = Field(False, alias="is-frozen")

    class Config:
        populate_by_name = True


class AccountInformation(BaseModel):
    """Response of /v2/accounts/{address}."""

    address: str
    amount: int = 0
    assets: List[AssetHolding] = Field(default_factory=list)

    def holds(self, asset_id: int) -> bool:
        return any(holding.asset_id == asset_id for holding in self.assets)


class AssetParams(BaseModel):
    creator: str
    total: int
    decimals: int = 0
    default_frozen: bool = Field(False, alias="default-frozen")
    name: Optional[str] = None
    unit_name: Optional[str] = Field(None, alias="unit-name")
    url: Optional[str] = None
    metadata_hash: Optional[str] = Field(None, alias="metadata-hash")
    manager: Optional[str] = None
    reserve: Optional[str] = None
    freeze: Optional[str] = None
    clawback: Optional[str] = None

    class Config:
        populate_by_name = True


class AssetInformation(BaseModel):
    """Response of /v2/assets/{asset-id}."""

    index: int
    params: AssetParams
    created_at_round: Optional[int] = Field(None, alias="created-at-round")
    deleted: bool = False

    class Config:
        populate_by_name = True
