"""
Marketplace API endpoints.

Sync endpoints are called by the client after its own wallet has mined a
transaction; read endpoints may self-heal the mirror from live chain state.
"""

from decimal import Decimal
from typing import Optional

from fastapi import APIRouter, Depends, Query

from app.api.deps import get_controller, get_store
from app.api.errors import http_errors
from app.core.config import settings
from app.services.cache import CacheService
from app.services.store import ReconciliationStore
from app.services.sync import SyncController
from app.schemas.marketplace import (
    MarketItemListResponse,
    MarketItemOut,
    MarketItemResponse,
    MarketplaceStats,
    OnChainState,
    QuoteResponse,
    StatsResponse,
    SyncCreationRequest,
    SyncPurchaseRequest,
    SyncResponse,
    SyncStatusResponse,
)

router = APIRouter(prefix="/marketplace", tags=["marketplace"])


@router.get("", response_model=MarketItemListResponse)
async def list_items(store: ReconciliationStore = Depends(get_store)):
    """Active listings, newest first."""

    async def build() -> dict:
        items = await store.list_active_items()
        response = MarketItemListResponse(
            data=[MarketItemOut.model_validate(i) for i in items],
            total=len(items),
        )
        return response.model_dump(mode="json", by_alias=True)

    with http_errors("List items"):
        return await CacheService.fetch("items", build)


@router.get("/stats", response_model=StatsResponse)
async def get_stats(store: ReconciliationStore = Depends(get_store)):
    async def build() -> dict:
        stats = await store.marketplace_stats()
        response = StatsResponse(
            data=MarketplaceStats(
                **stats,
                listing_price=Decimal(settings.LISTING_PRICE_ETH),
                platform_fee=settings.PLATFORM_FEE_BPS / 100,
            )
        )
        return response.model_dump(mode="json", by_alias=True)

    with http_errors("Marketplace stats"):
        return await CacheService.fetch("stats", build)


@router.post("/sync-creation", response_model=SyncResponse)
async def sync_creation(
    body: SyncCreationRequest,
    controller: SyncController = Depends(get_controller),
):
    """
    Mirror a freshly minted and listed token.

    Body: { tokenId, transactionHash, walletAddress, title, description,
            category, price, imageUrl, images, modelUrl, tokenUri, username }

    The receipt must contain a MarketItemCreated event for tokenId emitted
    by the marketplace contract. Replays answer 200 with alreadySynced=true.
    """
    with http_errors("Sync creation"):
        result = await controller.sync_creation(
            body.token_id,
            body.transaction_hash,
            body.wallet_address,
            body.display_metadata(),
        )

    return SyncResponse(
        message=result.message,
        already_synced=result.already_synced,
        token_id=result.token_id,
        seller=result.seller,
    )


@router.post("/sync-purchase", response_model=SyncResponse)
async def sync_purchase(
    body: SyncPurchaseRequest,
    controller: SyncController = Depends(get_controller),
):
    """
    Mirror a purchase: item becomes sold and a Transaction is recorded.

    Price, seller and buyer are taken from the MarketItemSold event; the
    client's price is ignored.
    """
    with http_errors("Sync purchase"):
        result = await controller.sync_purchase(
            body.token_id,
            body.transaction_hash,
            body.buyer_address,
            body.price,
        )

    return SyncResponse(
        message=result.message,
        already_synced=result.already_synced,
        token_id=result.token_id,
        seller=result.seller,
    )


@router.get("/sync-status/{token_id}", response_model=SyncStatusResponse)
async def sync_status(
    token_id: int,
    controller: SyncController = Depends(get_controller),
):
    """Compare chain and mirror for one token, healing the mirror if it lags."""
    with http_errors("Sync status"):
        report = await controller.sync_status(token_id)

    return SyncStatusResponse(
        updated=report.updated,
        status=report.status,
        owner=report.owner,
        on_chain=OnChainState(sold=report.on_chain_sold, owner=report.on_chain_owner),
    )


@router.get("/{token_id}/quote", response_model=QuoteResponse)
async def quote(
    token_id: int,
    expected_price: Optional[Decimal] = Query(None, alias="expectedPrice", ge=0),
    controller: SyncController = Depends(get_controller),
):
    """
    Re-check the live chain price right before the client signs a purchase.

    409 when the item is sold or its price differs from expectedPrice.
    """
    with http_errors("Quote"):
        chain_item = await controller.quote(token_id, expected_price)

    return QuoteResponse(
        token_id=chain_item.token_id,
        price=chain_item.price,
        seller=chain_item.seller,
        sold=chain_item.sold,
        purchasable=not chain_item.sold,
    )


@router.get("/{token_id}", response_model=MarketItemResponse)
async def get_item(
    token_id: int,
    controller: SyncController = Depends(get_controller),
):
    """One item; an active item that is sold on-chain is healed before responding."""
    with http_errors("Get item"):
        item = await controller.get_item(token_id)

    return MarketItemResponse(data=MarketItemOut.model_validate(item))
