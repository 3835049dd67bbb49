from datetime import datetime
from decimal import Decimal

from sqlalchemy import JSON, BigInteger, DateTime, Index, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column

from app.models.base import Base


class Transaction(Base):
    """
    Append-only audit log of confirmed purchases.

    Price, buyer and seller come from the verified MarketItemSold event,
    never from the client request. One row per chain transaction hash.
    """

    __tablename__ = "transactions"

    id: Mapped[int] = mapped_column(primary_key=True)
    transaction_hash: Mapped[str] = mapped_column(String(66), unique=True, index=True)
    block_number: Mapped[int] = mapped_column(BigInteger)
    token_id: Mapped[int] = mapped_column(BigInteger, index=True)
    contract_address: Mapped[str] = mapped_column(String(42))

    type: Mapped[str] = mapped_column(String(20), default="purchase")
    price: Mapped[Decimal] = mapped_column(Numeric)
    currency: Mapped[str] = mapped_column(String(10), default="ETH")
    platform_fee: Mapped[Decimal] = mapped_column(Numeric, default=0)

    buyer: Mapped[str] = mapped_column(String(42), index=True)
    seller: Mapped[str] = mapped_column(String(42), index=True)

    gas_used: Mapped[str] = mapped_column(String(40))
    status: Mapped[str] = mapped_column(String(20), default="confirmed")

    # "metadata" is reserved on declarative classes
    item_metadata: Mapped[dict | None] = mapped_column("metadata", JSON, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    confirmed_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)

    __table_args__ = (
        Index("ix_transactions_buyer_created", "buyer", "created_at"),
        Index("ix_transactions_token_type", "token_id", "type"),
    )
