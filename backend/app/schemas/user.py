"""
User profile schemas.
"""

from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import Field

from app.schemas.marketplace import CamelModel


class RegisterUserRequest(CamelModel):
    wallet_address: Optional[str] = None
    username: Optional[str] = None
    email: Optional[str] = None


class UserStats(CamelModel):
    total_created: int = 0
    total_sold: int = 0
    total_purchased: int = 0
    total_earned: Decimal = Decimal(0)
    total_spent: Decimal = Decimal(0)


class UserOut(CamelModel):
    wallet_address: str
    username: Optional[str] = None
    display_name: Optional[str] = None
    email: Optional[str] = None
    is_creator: bool = False
    is_verified: bool = False
    created_at: datetime
    last_active: Optional[datetime] = None


class UserResponse(CamelModel):
    success: bool = True
    user: UserOut
    stats: UserStats


class PurchaseOut(CamelModel):
    transaction_hash: str
    token_id: int
    buyer: str
    seller: Optional[str] = None
    price: Decimal
    status: str
    confirmed_at: Optional[datetime] = None
    title: Optional[str] = None
    image_url: Optional[str] = None
    is_synthetic: bool = False


class PurchasesResponse(CamelModel):
    success: bool = True
    purchases: list[PurchaseOut] = Field(default_factory=list)
    total: int = 0
