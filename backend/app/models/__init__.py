from app.models.base import Base
from app.models.market_item import MarketItem
from app.models.transaction import Transaction
from app.models.user import User

__all__ = ["Base", "MarketItem", "Transaction", "User"]
