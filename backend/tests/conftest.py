import os

# Must be set before any app module reads settings
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["CACHE_ENABLED"] = "false"
os.environ["RPC_URL"] = ""
os.environ["CONTRACT_ADDRESS"] = ""

from decimal import Decimal
from typing import Optional

import eth_abi
import pytest
import pytest_asyncio
from hexbytes import HexBytes
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from web3 import Web3

from app.models import Base
from app.services.chain import ChainMarketItem, ChainReader
from app.services.chain.abi import load_abi
from app.services.store import ReconciliationStore
from app.services.sync import SyncController

CONTRACT = Web3.to_checksum_address("0x5fbdb2315678afecb367f032d93f642f64180aa3")
OTHER_CONTRACT = Web3.to_checksum_address("0xe7f1725e7734ce288f8367e1bb143e90bb3f0512")

SELLER = Web3.to_checksum_address("0xf39fd6e51aad88f6f4ce6ab8827279cfffb92266")
BUYER = Web3.to_checksum_address("0x70997970c51812dc3a010c7d01b50e0d17dc79c8")
NEW_OWNER = Web3.to_checksum_address("0x3c44cdddb6a900fa2b585dd299e03d12fa4293bc")

CREATED_SIG = "MarketItemCreated(uint256,address,uint128,uint32,uint256)"
SOLD_SIG = "MarketItemSold(uint256,address,address,uint128)"
TRANSFER_SIG = "Transfer(address,address,uint256)"


def tx_hash(n: int) -> str:
    return "0x" + f"{n:064x}"


def to_wei(eth: str) -> int:
    return Web3.to_wei(Decimal(eth), "ether")


# ---------------------------------------------------------------------------
# Receipt / log builders
# ---------------------------------------------------------------------------


def _uint_topic(value: int) -> HexBytes:
    return HexBytes(eth_abi.encode(["uint256"], [value]))


def _address_topic(address: str) -> HexBytes:
    return HexBytes(eth_abi.encode(["address"], [address]))


def make_log(address: str, topics: list, data: bytes, index: int = 0) -> dict:
    return {
        "address": address,
        "topics": topics,
        "data": HexBytes(data),
        "logIndex": index,
        "transactionIndex": 0,
        "transactionHash": HexBytes(b"\x01" * 32),
        "blockHash": HexBytes(b"\x02" * 32),
        "blockNumber": 100,
        "removed": False,
    }


def created_log(token_id: int, seller: str = SELLER, price_wei: int = 0, address: str = CONTRACT):
    return make_log(
        address,
        [
            Web3.keccak(text=CREATED_SIG),
            _uint_topic(token_id),
            _address_topic(seller),
            _uint_topic(price_wei),
        ],
        eth_abi.encode(["uint32", "uint256"], [1, 1_700_000_000]),
    )


def sold_log(
    token_id: int,
    price_wei: int,
    seller: str = SELLER,
    buyer: str = BUYER,
    address: str = CONTRACT,
):
    return make_log(
        address,
        [
            Web3.keccak(text=SOLD_SIG),
            _uint_topic(token_id),
            _address_topic(seller),
            _address_topic(buyer),
        ],
        eth_abi.encode(["uint128"], [price_wei]),
    )


def transfer_log(token_id: int, sender: str, receiver: str, address: str = CONTRACT):
    return make_log(
        address,
        [
            Web3.keccak(text=TRANSFER_SIG),
            _address_topic(sender),
            _address_topic(receiver),
            _uint_topic(token_id),
        ],
        b"",
    )


def make_receipt(logs: list, status: int = 1) -> dict:
    return {
        "status": status,
        "logs": [dict(log, logIndex=i) for i, log in enumerate(logs)],
        "blockNumber": 100,
        "gasUsed": 210_000,
    }


# ---------------------------------------------------------------------------
# In-memory chain
# ---------------------------------------------------------------------------


class FakeChain(ChainReader):
    """ChainReader with real ABI decoding and in-memory RPC reads."""

    def __init__(self):
        super().__init__(
            rpc_url="http://127.0.0.1:8545",
            contract_address=CONTRACT,
            abi=load_abi(),
        )
        self.ready = True
        self.fail_reads = False
        self.receipts: dict[str, dict] = {}
        self.items: dict[int, ChainMarketItem] = {}
        self.user_tokens: dict[str, list[int]] = {}

    @property
    def is_ready(self) -> bool:
        return self.ready

    def _check(self):
        if self.fail_reads:
            raise ConnectionError("RPC node unreachable")

    async def get_receipt(self, transaction_hash: str) -> Optional[dict]:
        self._check()
        return self.receipts.get(transaction_hash.lower())

    async def get_market_item(self, token_id: int) -> Optional[ChainMarketItem]:
        self._check()
        return self.items.get(token_id)

    async def get_user_tokens(self, address: str) -> list[int]:
        self._check()
        return list(self.user_tokens.get(address.lower(), []))

    def add_receipt(self, transaction_hash: str, logs: list, status: int = 1):
        self.receipts[transaction_hash.lower()] = make_receipt(logs, status)

    def set_item(self, token_id: int, owner: str, sold: bool, price: str = "0.5", seller: str = SELLER):
        self.items[token_id] = ChainMarketItem(
            token_id=token_id,
            seller=seller.lower(),
            owner=owner.lower(),
            price=Decimal(price),
            sold=sold,
        )


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def chain() -> FakeChain:
    return FakeChain()


@pytest_asyncio.fixture
async def store(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'mirror.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield ReconciliationStore(
        async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    )

    await engine.dispose()


@pytest.fixture
def controller(chain, store) -> SyncController:
    return SyncController(chain, store, platform_fee_bps=250)


@pytest_asyncio.fixture
async def client(chain, store, controller):
    from httpx import ASGITransport, AsyncClient

    from app.api.deps import get_chain, get_controller, get_store
    from app.main import app

    app.dependency_overrides[get_chain] = lambda: chain
    app.dependency_overrides[get_store] = lambda: store
    app.dependency_overrides[get_controller] = lambda: controller

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


async def create_listed_item(controller: SyncController, chain: FakeChain, token_id: int, **meta):
    """Mirror an active item through the real creation flow."""
    h = tx_hash(token_id)
    chain.add_receipt(h, [created_log(token_id, price_wei=to_wei(meta.pop("price", "0.5")))])
    await controller.sync_creation(token_id, h, SELLER, {"title": f"Item {token_id}", **meta})
    return h
