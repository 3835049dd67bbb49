"""
User profile API endpoints.
"""

from fastapi import APIRouter, Depends, HTTPException
from web3 import Web3

from app.api.deps import get_controller, get_store
from app.api.errors import http_errors
from app.services.errors import MissingFieldsError
from app.services.store import ReconciliationStore
from app.services.sync import SyncController
from app.schemas.marketplace import MarketItemOut, UserNftsResponse
from app.schemas.user import (
    PurchaseOut,
    PurchasesResponse,
    RegisterUserRequest,
    UserOut,
    UserResponse,
    UserStats,
)

router = APIRouter(prefix="/users", tags=["users"])


@router.post("/register", response_model=UserResponse)
async def register_user(
    body: RegisterUserRequest,
    store: ReconciliationStore = Depends(get_store),
):
    """Create the user on first wallet connect; later calls refresh last_active."""
    with http_errors("Register user"):
        if not body.wallet_address:
            raise MissingFieldsError(["walletAddress"])
        if not Web3.is_address(body.wallet_address):
            raise HTTPException(status_code=400, detail="Invalid wallet address")

        user = await store.register_user(
            body.wallet_address.lower(),
            username=body.username,
            email=body.email,
        )

    return UserResponse(
        user=UserOut.model_validate(user),
        stats=UserStats.model_validate(user),
    )


@router.get("/{address}/purchases", response_model=PurchasesResponse)
async def user_purchases(
    address: str,
    controller: SyncController = Depends(get_controller),
):
    """Confirmed purchases plus owned items that never got a purchase sync."""
    if not Web3.is_address(address):
        raise HTTPException(status_code=400, detail=f"Invalid address: {address}")

    with http_errors("User purchases"):
        purchases = await controller.user_purchases(address)

    return PurchasesResponse(
        purchases=[PurchaseOut(**p) for p in purchases],
        total=len(purchases),
    )


@router.get("/{address}/nfts", response_model=UserNftsResponse)
async def user_nfts(
    address: str,
    controller: SyncController = Depends(get_controller),
):
    """Items the address owns or listed, after reconciling with on-chain ownership."""
    if not Web3.is_address(address):
        raise HTTPException(status_code=400, detail=f"Invalid address: {address}")

    with http_errors("User NFTs"):
        items = await controller.list_user_nfts(address)

    return UserNftsResponse(
        nfts=[MarketItemOut.model_validate(i) for i in items],
        total=len(items),
    )
