"""
SyncController: keeps the database mirror consistent with the marketplace contract.

Flows:
  sync_creation   verify MarketItemCreated  -> insert active item (idempotent)
  sync_purchase   verify MarketItemSold     -> active -> sold + Transaction (idempotent)
  sync_status     compare live chain state with the mirror and heal drift
  get_item        read path; heals an active item that is sold on-chain
  list_user_nfts  read path; heals ownership for tokens the user holds on-chain

All mirror mutations happen after verification succeeds. Price and
counterparties always come from the decoded event, never from the request.
User stat counters are best-effort and cannot fail a sync.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Any, Optional

from sqlalchemy.exc import SQLAlchemyError

from app.models.market_item import STATUS_ACTIVE, STATUS_SOLD, MarketItem
from app.services.cache import CacheService
from app.services.chain import CHAIN_ERRORS, ChainMarketItem, ChainReader, EventVerifier
from app.services.chain.abi import MARKET_ITEM_CREATED, MARKET_ITEM_SOLD
from app.services.errors import (
    ChainUnavailableError,
    ItemAlreadySoldError,
    ItemNotFoundError,
    MissingFieldsError,
    PriceChangedError,
)
from app.services.store import ReconciliationStore
from app.services.sync.effects import best_effort

logger = logging.getLogger(__name__)

BPS_DENOMINATOR = Decimal(10_000)


@dataclass
class SyncResult:
    message: str
    already_synced: bool
    token_id: int
    seller: Optional[str] = None


@dataclass
class StatusReport:
    updated: bool
    status: str
    owner: Optional[str]
    on_chain_sold: bool
    on_chain_owner: str


def _require(**fields: Any) -> None:
    missing = [name for name, value in fields.items() if value is None or value == ""]
    if missing:
        raise MissingFieldsError(missing)


class SyncController:
    """Orchestrates EventVerifier + ReconciliationStore."""

    def __init__(
        self,
        chain: ChainReader,
        store: ReconciliationStore,
        platform_fee_bps: int = 250,
    ):
        self.chain = chain
        self.store = store
        self.verifier = EventVerifier(chain)
        self.platform_fee_bps = platform_fee_bps

    def _ensure_chain(self) -> None:
        if not self.chain.is_ready:
            raise ChainUnavailableError()

    async def _mirror_changed(self) -> None:
        await best_effort("cache invalidation", CacheService.invalidate())

    # ------------------------------------------------------------------
    # Creation
    # ------------------------------------------------------------------

    async def sync_creation(
        self,
        token_id: Optional[int],
        transaction_hash: Optional[str],
        wallet_address: Optional[str],
        metadata: Optional[dict[str, Any]] = None,
    ) -> SyncResult:
        _require(tokenId=token_id, transactionHash=transaction_hash, walletAddress=wallet_address)
        self._ensure_chain()

        wallet = wallet_address.lower()
        logger.info("Sync creation: token %s from wallet %s", token_id, wallet)

        event = await self.verifier.verify_event(transaction_hash, MARKET_ITEM_CREATED, token_id)

        if await self.store.get_item(token_id) is not None:
            logger.info("Sync creation: token %s already synced", token_id)
            return SyncResult("Item already synced (Idempotent)", True, token_id, wallet)

        seller = event.seller or wallet
        if seller != wallet:
            logger.warning(
                "Sync creation: token %s claimed by %s but event seller is %s, using event",
                token_id,
                wallet,
                seller,
            )

        meta = metadata or {}
        created = await self.store.create_item(
            token_id=token_id,
            title=meta.get("title") or f"NFT #{token_id}",
            description=meta.get("description") or "",
            category=meta.get("category") or "Other",
            price=event.price if "price" in event.args else Decimal(str(meta.get("price") or 0)),
            image_url=meta.get("image_url") or "",
            images=meta.get("images") or [],
            model_url=meta.get("model_url") or "",
            token_uri=meta.get("token_uri") or "",
            username=meta.get("username") or "Creator",
            seller=seller,
            owner=seller,
            creator=seller,
            status=STATUS_ACTIVE,
            transaction_hash=event.transaction_hash,
            block_number=event.block_number,
        )
        if not created:
            return SyncResult("Item already synced (Idempotent)", True, token_id, seller)

        await best_effort(
            f"creator stats for {seller}",
            self.store.increment_user_stats(seller, is_creator=True, total_created=1),
        )
        await self._mirror_changed()

        logger.info("Sync creation: saved token %s for seller %s", token_id, seller)
        return SyncResult("NFT creation synced successfully", False, token_id, seller)

    # ------------------------------------------------------------------
    # Purchase
    # ------------------------------------------------------------------

    async def sync_purchase(
        self,
        token_id: Optional[int],
        transaction_hash: Optional[str],
        buyer_address: Optional[str],
        claimed_price: Optional[Decimal] = None,
    ) -> SyncResult:
        _require(tokenId=token_id, transactionHash=transaction_hash, buyerAddress=buyer_address)
        self._ensure_chain()

        logger.info("Sync purchase: token %s (tx %s)", token_id, transaction_hash)

        event = await self.verifier.verify_event(transaction_hash, MARKET_ITEM_SOLD, token_id)
        price = event.price
        buyer = event.buyer or buyer_address.lower()

        if claimed_price is not None and Decimal(str(claimed_price)) != price:
            logger.warning(
                "Sync purchase: token %s client price %s differs from event price %s, using event",
                token_id,
                claimed_price,
                price,
            )
        if buyer != buyer_address.lower():
            logger.warning(
                "Sync purchase: token %s client buyer %s differs from event buyer %s, using event",
                token_id,
                buyer_address.lower(),
                buyer,
            )

        item = await self.store.get_item(token_id)
        if item is None:
            raise ItemNotFoundError(token_id)

        if item.status == STATUS_SOLD:
            logger.info("Sync purchase: token %s already synced", token_id)
            return SyncResult("Purchase already synced (Idempotent)", True, token_id, item.seller)

        # Seller history: the mirror row keeps its original seller; the
        # Transaction takes the event seller, falling back to the mirror.
        seller = event.seller or item.seller
        platform_fee = price * self.platform_fee_bps / BPS_DENOMINATOR

        changed = await self.store.complete_sale(
            token_id,
            owner=buyer,
            transaction={
                "transaction_hash": event.transaction_hash,
                "block_number": event.block_number,
                "contract_address": self.chain.contract_address,
                "type": "purchase",
                "price": price,
                "currency": "ETH",
                "platform_fee": platform_fee,
                "buyer": buyer,
                "seller": seller,
                "gas_used": str(event.gas_used),
                "item_metadata": {
                    "token_uri": item.token_uri,
                    "title": item.title,
                    "category": item.category,
                    "image_url": item.image_url,
                },
            },
        )
        if not changed:
            logger.info("Sync purchase: token %s sold concurrently, nothing to do", token_id)
            return SyncResult("Purchase already synced (Idempotent)", True, token_id, item.seller)

        await best_effort(
            f"buyer stats for {buyer}",
            self.store.increment_user_stats(buyer, total_purchased=1, total_spent=price),
        )
        if seller:
            await best_effort(
                f"seller stats for {seller}",
                self.store.increment_user_stats(
                    seller, total_sold=1, total_earned=price - platform_fee
                ),
            )
        await self._mirror_changed()

        logger.info("Sync purchase: token %s sold to %s for %s ETH", token_id, buyer, price)
        return SyncResult(
            "Purchase synced successfully with on-chain verification", False, token_id, seller
        )

    # ------------------------------------------------------------------
    # Drift healing
    # ------------------------------------------------------------------

    async def sync_status(self, token_id: int) -> StatusReport:
        """Explicit heal: compare chain and mirror for one token and report both."""
        self._ensure_chain()

        try:
            chain_item = await self.chain.get_market_item(token_id)
        except CHAIN_ERRORS as e:
            logger.warning("Sync status: chain read for token %s failed: %s", token_id, e)
            chain_item = None
        if chain_item is None:
            raise ItemNotFoundError(token_id, "on chain")

        item = await self.store.get_item(token_id)
        if item is None:
            raise ItemNotFoundError(token_id)

        updated = False
        if chain_item.sold and item.status == STATUS_ACTIVE:
            logger.info("Healing: token %s is SOLD on-chain but ACTIVE in DB", token_id)
            updated = await self.store.heal_sold(token_id, chain_item.owner)
            if updated:
                await self._mirror_changed()
            item = await self.store.get_item(token_id)

        return StatusReport(
            updated=updated,
            status=item.status,
            owner=item.owner,
            on_chain_sold=chain_item.sold,
            on_chain_owner=chain_item.owner,
        )

    async def _heal_if_sold(self, item: MarketItem) -> MarketItem:
        """Read-path heal for one active item. Chain errors leave the item as is."""
        if item.status != STATUS_ACTIVE or not self.chain.is_ready:
            return item

        try:
            chain_item = await self.chain.get_market_item(item.token_id)
        except CHAIN_ERRORS as e:
            logger.warning("Auto-heal: chain check for token %s failed: %s", item.token_id, e)
            return item

        if chain_item is None or not chain_item.sold:
            return item

        logger.info("Auto-heal: token %s found SOLD on chain but ACTIVE in DB", item.token_id)
        if await self.store.heal_sold(item.token_id, chain_item.owner):
            await self._mirror_changed()
        return await self.store.get_item(item.token_id) or item

    async def get_item(self, token_id: int) -> MarketItem:
        item = await self.store.get_item(token_id)
        if item is None:
            raise ItemNotFoundError(token_id)
        return await self._heal_if_sold(item)

    async def heal_active_items(self, limit: int) -> int:
        """Run the read-path heal over up to `limit` active items. Returns how many changed."""
        healed = 0
        for token_id in await self.store.list_active_token_ids(limit):
            item = await self.store.get_item(token_id)
            if item is None:
                continue
            refreshed = await self._heal_if_sold(item)
            if refreshed.status != item.status:
                healed += 1
        return healed

    async def list_user_nfts(self, address: str) -> list[MarketItem]:
        """Items the user owns or listed, after reconciling on-chain ownership."""
        address = address.lower()

        if self.chain.is_ready:
            try:
                token_ids = await self.chain.get_user_tokens(address)
                if token_ids:
                    logger.info("Auto-sync: checking %d tokens for %s", len(token_ids), address)
                corrected = 0
                for token_id in token_ids:
                    if await self.store.heal_owner(token_id, address):
                        logger.info("Auto-sync: corrected ownership of token %s", token_id)
                        corrected += 1
                if corrected:
                    await self._mirror_changed()
            except (*CHAIN_ERRORS, SQLAlchemyError) as e:
                logger.warning("Auto-sync: failed to reconcile %s with chain: %s", address, e)

        return await self.store.list_user_items(address)

    # ------------------------------------------------------------------
    # Pre-purchase validation
    # ------------------------------------------------------------------

    async def quote(self, token_id: int, expected_price: Optional[Decimal] = None) -> ChainMarketItem:
        """Live price check before the client signs a purchase."""
        self._ensure_chain()

        try:
            chain_item = await self.chain.get_market_item(token_id)
        except CHAIN_ERRORS as e:
            logger.warning("Quote: chain read for token %s failed: %s", token_id, e)
            chain_item = None
        if chain_item is None:
            raise ItemNotFoundError(token_id, "on chain")

        if chain_item.sold:
            raise ItemAlreadySoldError(token_id)
        if expected_price is not None and Decimal(str(expected_price)) != chain_item.price:
            raise PriceChangedError(token_id, expected_price, chain_item.price)
        return chain_item

    # ------------------------------------------------------------------
    # Purchases history
    # ------------------------------------------------------------------

    async def user_purchases(self, address: str) -> list[dict[str, Any]]:
        """
        Confirmed purchase rows merged with synthetic entries for items the
        user holds but did not create and has no row for (missed syncs).
        """
        address = address.lower()
        transactions = await self.store.list_purchases(address)
        owned = await self.store.list_owned_not_created(address)

        purchases: list[dict[str, Any]] = [
            {
                "transaction_hash": tx.transaction_hash,
                "token_id": tx.token_id,
                "buyer": tx.buyer,
                "seller": tx.seller,
                "price": tx.price,
                "status": tx.status,
                "confirmed_at": tx.confirmed_at,
                "title": (tx.item_metadata or {}).get("title"),
                "image_url": (tx.item_metadata or {}).get("image_url"),
                "is_synthetic": False,
            }
            for tx in transactions
        ]

        recorded = {tx.token_id for tx in transactions}
        purchases.extend(
            {
                "transaction_hash": item.transaction_hash or "0x",
                "token_id": item.token_id,
                "buyer": address,
                "seller": item.seller,
                "price": item.price,
                "status": "confirmed",
                "confirmed_at": item.sold_at or item.updated_at,
                "title": item.title,
                "image_url": item.image_url,
                "is_synthetic": True,
            }
            for item in owned
            if item.token_id not in recorded
        )

        purchases.sort(key=lambda p: p["confirmed_at"] or datetime.min, reverse=True)
        return purchases
