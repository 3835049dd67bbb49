"""
ReconciliationStore: the database mirror of marketplace state.

Each public method is its own unit of work (own session, own commit), so a
failing best-effort write can never roll back a primary one.

Idempotency rests on the database, not on read-then-write:
  - market_items.token_id is unique; a duplicate creation insert is a replay.
  - The active -> sold transition is a single conditional UPDATE gated on
    status != 'sold'; only the caller that changes the row gets True.
  - transactions.transaction_hash is unique.
"""

import logging
from datetime import datetime
from decimal import Decimal
from typing import Any, Optional

from sqlalchemy import func, or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.models.market_item import STATUS_ACTIVE, STATUS_SOLD, MarketItem
from app.models.transaction import Transaction
from app.models.user import STAT_FIELDS, User

logger = logging.getLogger(__name__)


class ReconciliationStore:
    """Mirror queries and conditional writes for items, transactions and users."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    # ------------------------------------------------------------------
    # Market items
    # ------------------------------------------------------------------

    async def get_item(self, token_id: int) -> Optional[MarketItem]:
        async with self._session_factory() as session:
            result = await session.execute(
                select(MarketItem).where(MarketItem.token_id == token_id)
            )
            return result.scalar_one_or_none()

    async def create_item(self, **fields: Any) -> bool:
        """
        Insert a new mirror row. Returns False when a row for the token
        already exists (concurrent or repeated creation sync).
        """
        async with self._session_factory() as session:
            session.add(MarketItem(**fields))
            try:
                await session.commit()
            except IntegrityError:
                await session.rollback()
                logger.info("Item %s already mirrored (insert lost race)", fields.get("token_id"))
                return False
        return True

    async def complete_sale(
        self,
        token_id: int,
        owner: str,
        transaction: dict[str, Any],
    ) -> bool:
        """
        Flip an item to sold and append its purchase record in one commit.

        Returns False (and writes nothing) if the item was already sold.
        """
        now = datetime.utcnow()
        async with self._session_factory() as session:
            result = await session.execute(
                update(MarketItem)
                .where(MarketItem.token_id == token_id, MarketItem.status != STATUS_SOLD)
                .values(owner=owner, status=STATUS_SOLD, sold_at=now, updated_at=now)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount != 1:
                await session.rollback()
                return False

            session.add(
                Transaction(
                    token_id=token_id,
                    status="confirmed",
                    confirmed_at=now,
                    **transaction,
                )
            )
            try:
                await session.commit()
            except IntegrityError:
                # Same tx hash already recorded: keep the state change, skip the row
                await session.rollback()
                logger.warning(
                    "Transaction %s already recorded, marking item %s sold without a new row",
                    transaction.get("transaction_hash"),
                    token_id,
                )
                return await self.heal_sold(token_id, owner)
        return True

    async def heal_sold(self, token_id: int, owner: str) -> bool:
        """Gated active -> sold correction from live chain state. True if the row changed."""
        now = datetime.utcnow()
        async with self._session_factory() as session:
            result = await session.execute(
                update(MarketItem)
                .where(MarketItem.token_id == token_id, MarketItem.status != STATUS_SOLD)
                .values(owner=owner, status=STATUS_SOLD, sold_at=now, updated_at=now)
                .execution_options(synchronize_session=False)
            )
            await session.commit()
            return result.rowcount == 1

    async def heal_owner(self, token_id: int, owner: str) -> bool:
        """
        Record that `owner` holds the token on-chain.

        Only touches rows that disagree (other owner, or still active);
        sold_at is kept if already set. Never moves a row back to active.
        """
        now = datetime.utcnow()
        async with self._session_factory() as session:
            result = await session.execute(
                update(MarketItem)
                .where(
                    MarketItem.token_id == token_id,
                    or_(
                        MarketItem.owner.is_(None),
                        MarketItem.owner != owner,
                        MarketItem.status == STATUS_ACTIVE,
                    ),
                )
                .values(
                    owner=owner,
                    status=STATUS_SOLD,
                    sold_at=func.coalesce(MarketItem.sold_at, now),
                    updated_at=now,
                )
                .execution_options(synchronize_session=False)
            )
            await session.commit()
            return result.rowcount == 1

    async def list_active_items(self) -> list[MarketItem]:
        async with self._session_factory() as session:
            result = await session.execute(
                select(MarketItem)
                .where(MarketItem.status == STATUS_ACTIVE)
                .order_by(MarketItem.created_at.desc(), MarketItem.id.desc())
            )
            return list(result.scalars())

    async def list_active_token_ids(self, limit: int) -> list[int]:
        """Oldest-updated active items first, for the background sweep."""
        async with self._session_factory() as session:
            result = await session.execute(
                select(MarketItem.token_id)
                .where(MarketItem.status == STATUS_ACTIVE)
                .order_by(MarketItem.updated_at.asc())
                .limit(limit)
            )
            return list(result.scalars())

    async def list_user_items(self, address: str) -> list[MarketItem]:
        """Items the address currently owns or originally listed."""
        async with self._session_factory() as session:
            result = await session.execute(
                select(MarketItem)
                .where(or_(MarketItem.owner == address, MarketItem.seller == address))
                .order_by(MarketItem.created_at.desc(), MarketItem.id.desc())
            )
            return list(result.scalars())

    async def list_owned_not_created(self, address: str) -> list[MarketItem]:
        """Items the address holds but did not mint, i.e. implicit purchases."""
        async with self._session_factory() as session:
            result = await session.execute(
                select(MarketItem).where(
                    MarketItem.owner == address,
                    or_(MarketItem.creator.is_(None), MarketItem.creator != address),
                )
            )
            return list(result.scalars())

    async def marketplace_stats(self) -> dict[str, Any]:
        async with self._session_factory() as session:
            counts = await session.execute(
                select(MarketItem.status, func.count(MarketItem.id)).group_by(MarketItem.status)
            )
            by_status = {status: count for status, count in counts.all()}

            total_value = await session.scalar(
                select(func.coalesce(func.sum(MarketItem.price), 0)).where(
                    MarketItem.status == STATUS_ACTIVE
                )
            )

        return {
            "total_items": sum(by_status.values()),
            "total_sold": by_status.get(STATUS_SOLD, 0),
            "total_active": by_status.get(STATUS_ACTIVE, 0),
            "total_value": Decimal(str(total_value or 0)),
        }

    # ------------------------------------------------------------------
    # Transactions
    # ------------------------------------------------------------------

    async def count_transactions(self, token_id: Optional[int] = None) -> int:
        async with self._session_factory() as session:
            stmt = select(func.count(Transaction.id))
            if token_id is not None:
                stmt = stmt.where(Transaction.token_id == token_id)
            return await session.scalar(stmt) or 0

    async def get_transaction(self, transaction_hash: str) -> Optional[Transaction]:
        async with self._session_factory() as session:
            result = await session.execute(
                select(Transaction).where(Transaction.transaction_hash == transaction_hash)
            )
            return result.scalar_one_or_none()

    async def list_purchases(self, buyer: str) -> list[Transaction]:
        async with self._session_factory() as session:
            result = await session.execute(
                select(Transaction)
                .where(
                    Transaction.buyer == buyer,
                    Transaction.type == "purchase",
                    Transaction.status == "confirmed",
                )
                .order_by(Transaction.confirmed_at.desc())
            )
            return list(result.scalars())

    # ------------------------------------------------------------------
    # Users
    # ------------------------------------------------------------------

    async def get_user(self, wallet_address: str) -> Optional[User]:
        async with self._session_factory() as session:
            result = await session.execute(
                select(User).where(User.wallet_address == wallet_address)
            )
            return result.scalar_one_or_none()

    async def _ensure_user(
        self,
        session: AsyncSession,
        wallet_address: str,
        **defaults: Any,
    ) -> None:
        exists = await session.scalar(
            select(User.id).where(User.wallet_address == wallet_address)
        )
        if exists is not None:
            return

        session.add(User(wallet_address=wallet_address, **defaults))
        try:
            await session.commit()
        except IntegrityError:
            # Created concurrently by another request
            await session.rollback()

    async def increment_user_stats(
        self,
        wallet_address: str,
        is_creator: bool = False,
        **deltas: Any,
    ) -> None:
        """Create the user on demand, then apply atomic `col = col + delta` increments."""
        unknown = set(deltas) - set(STAT_FIELDS)
        if unknown:
            raise ValueError(f"Invalid stat name(s): {', '.join(sorted(unknown))}")

        async with self._session_factory() as session:
            await self._ensure_user(session, wallet_address, is_creator=is_creator)

            values: dict[str, Any] = {
                name: getattr(User, name) + delta for name, delta in deltas.items()
            }
            if is_creator:
                values["is_creator"] = True
            values["last_active"] = datetime.utcnow()

            await session.execute(
                update(User)
                .where(User.wallet_address == wallet_address)
                .values(**values)
                .execution_options(synchronize_session=False)
            )
            await session.commit()

    async def register_user(
        self,
        wallet_address: str,
        username: Optional[str] = None,
        email: Optional[str] = None,
    ) -> User:
        """Upsert a user by wallet and refresh last_active."""
        async with self._session_factory() as session:
            await self._ensure_user(
                session,
                wallet_address,
                username=username,
                email=email.lower() if email else None,
            )

            values: dict[str, Any] = {"last_active": datetime.utcnow()}
            if username:
                values["username"] = username
            if email:
                values["email"] = email.lower()
            await session.execute(
                update(User)
                .where(User.wallet_address == wallet_address)
                .values(**values)
                .execution_options(synchronize_session=False)
            )
            await session.commit()

            result = await session.execute(
                select(User)
                .where(User.wallet_address == wallet_address)
                .execution_options(populate_existing=True)
            )
            return result.scalar_one()
