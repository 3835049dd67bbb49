from datetime import datetime
from decimal import Decimal

from sqlalchemy import JSON, BigInteger, DateTime, Index, Numeric, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from app.models.base import Base

STATUS_ACTIVE = "active"
STATUS_SOLD = "sold"
STATUS_CANCELED = "canceled"


class MarketItem(Base):
    """
    Off-chain mirror of one on-chain marketplace listing.

    One row per token_id. Created active by creation-sync, flipped to sold
    exactly once by purchase-sync or by a self-heal read. The seller column
    is the original lister and is never cleared after a sale.
    """

    __tablename__ = "market_items"

    id: Mapped[int] = mapped_column(primary_key=True)
    token_id: Mapped[int] = mapped_column(BigInteger, unique=True, index=True)

    # Display metadata
    title: Mapped[str] = mapped_column(String(200))
    description: Mapped[str] = mapped_column(Text, default="")
    category: Mapped[str] = mapped_column(String(50), default="Other", index=True)
    price: Mapped[Decimal] = mapped_column(Numeric)  # ETH, snapshot at listing time
    username: Mapped[str | None] = mapped_column(String(100))

    # Media
    image_url: Mapped[str] = mapped_column(String(500), default="")
    images: Mapped[list | None] = mapped_column(JSON, nullable=True)
    model_url: Mapped[str] = mapped_column(String(500), default="")
    token_uri: Mapped[str] = mapped_column(String(500), default="")

    # Ownership (all lowercase)
    seller: Mapped[str] = mapped_column(String(42), index=True)
    owner: Mapped[str | None] = mapped_column(String(42), index=True)
    creator: Mapped[str | None] = mapped_column(String(42))

    status: Mapped[str] = mapped_column(String(20), default=STATUS_ACTIVE)

    # Provenance of the creation event
    transaction_hash: Mapped[str | None] = mapped_column(String(66))
    block_number: Mapped[int | None] = mapped_column(BigInteger)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow
    )
    sold_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)

    __table_args__ = (
        Index("ix_market_items_status_created", "status", "created_at"),
        Index("ix_market_items_seller_status", "seller", "status"),
    )
