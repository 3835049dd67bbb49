"""
Marketplace request/response schemas.

Wire format is camelCase (tokenId, transactionHash, ...) to match the
web front end; Python attributes stay snake_case.
"""

from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


# ---------------------------------------------------------------------------
# Sync requests
# ---------------------------------------------------------------------------


class SyncCreationRequest(CamelModel):
    """
    Sent by the client after its mint+list transaction is mined.

    Required fields are optional here on purpose: presence is checked by the
    sync flow so that a missing field answers 400, not a validation 422.
    """

    token_id: Optional[int] = None
    transaction_hash: Optional[str] = None
    wallet_address: Optional[str] = None

    # Display metadata
    title: Optional[str] = None
    description: Optional[str] = None
    category: Optional[str] = None
    price: Optional[Decimal] = None
    username: Optional[str] = None
    image_url: Optional[str] = None
    images: Optional[list[str]] = None
    model_url: Optional[str] = None
    token_uri: Optional[str] = Field(None, alias="tokenURI")

    def display_metadata(self) -> dict:
        return self.model_dump(
            exclude={"token_id", "transaction_hash", "wallet_address"},
            exclude_none=True,
        )


class SyncPurchaseRequest(CamelModel):
    token_id: Optional[int] = None
    transaction_hash: Optional[str] = None
    buyer_address: Optional[str] = None
    price: Optional[Decimal] = None  # client claim, only compared against the event


# ---------------------------------------------------------------------------
# Responses
# ---------------------------------------------------------------------------


class SyncResponse(CamelModel):
    success: bool = True
    message: str
    already_synced: bool = False
    token_id: int
    seller: Optional[str] = None


class OnChainState(CamelModel):
    sold: bool
    owner: str


class SyncStatusResponse(CamelModel):
    success: bool = True
    updated: bool
    status: str
    owner: Optional[str] = None
    on_chain: OnChainState


class MarketItemOut(CamelModel):
    token_id: int
    title: str
    description: str = ""
    category: str = "Other"
    price: Decimal
    username: Optional[str] = None

    image_url: str = ""
    images: Optional[list[str]] = None
    model_url: str = ""
    token_uri: str = Field("", alias="tokenURI")

    seller: str
    owner: Optional[str] = None
    creator: Optional[str] = None
    status: str

    transaction_hash: Optional[str] = None
    block_number: Optional[int] = None

    created_at: datetime
    updated_at: datetime
    sold_at: Optional[datetime] = None


class MarketItemResponse(CamelModel):
    success: bool = True
    data: MarketItemOut


class MarketItemListResponse(CamelModel):
    success: bool = True
    data: list[MarketItemOut] = Field(default_factory=list)
    total: int = 0


class UserNftsResponse(CamelModel):
    success: bool = True
    nfts: list[MarketItemOut] = Field(default_factory=list)
    total: int = 0


class MarketplaceStats(CamelModel):
    total_items: int
    total_sold: int
    total_active: int
    total_value: Decimal
    listing_price: Decimal
    platform_fee: float  # percent


class StatsResponse(CamelModel):
    success: bool = True
    data: MarketplaceStats


class QuoteResponse(CamelModel):
    success: bool = True
    token_id: int
    price: Decimal
    seller: str
    sold: bool
    purchasable: bool
