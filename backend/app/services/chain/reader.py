"""
ChainReader: read-only access to the marketplace contract.

Wraps an AsyncWeb3 client bound to one contract address. Constructed
explicitly and handed to whoever needs it; the process entry point owns
connect()/close().
"""

import asyncio
import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Optional

import aiohttp
from eth_abi.exceptions import DecodingError
from web3 import AsyncHTTPProvider, AsyncWeb3, Web3
from web3.exceptions import (
    LogTopicError,
    MismatchedABI,
    TransactionNotFound,
    Web3Exception,
)
from web3.types import EventData

from app.core.config import Settings
from app.services.chain.abi import event_names, load_abi, output_field_names
from app.services.rate_limiting import RetryPolicy, get_rate_limiter

logger = logging.getLogger(__name__)

ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"

# Anything a chain read may raise that read paths are allowed to swallow
CHAIN_ERRORS = (
    Web3Exception,
    aiohttp.ClientError,
    asyncio.TimeoutError,
    ConnectionError,
    ValueError,
)

_DECODE_ERRORS = (MismatchedABI, LogTopicError, DecodingError)


@dataclass
class ChainMarketItem:
    """Live on-chain state of one listing (addresses lowercased, price in ETH)."""

    token_id: int
    seller: str
    owner: str
    price: Decimal
    sold: bool


class ChainReader:
    """Read-only marketplace contract client."""

    def __init__(
        self,
        rpc_url: str,
        contract_address: str,
        abi: list[dict],
        timeout: int = 15,
        max_retries: int = 2,
        rate_limit: int = 20,
    ):
        self.rpc_url = rpc_url
        self.abi = abi
        self._retry = RetryPolicy(max_retries=max_retries)
        self._event_names = event_names(abi)
        self._item_fields = output_field_names(abi, "getMarketItem")
        self._limiter = get_rate_limiter("rpc", rate_limit)
        self._connected = False

        self.w3: Optional[AsyncWeb3] = None
        self.contract = None
        self._contract_address = contract_address.lower() if contract_address else ""

        if rpc_url:
            self.w3 = AsyncWeb3(
                AsyncHTTPProvider(
                    rpc_url,
                    request_kwargs={"timeout": aiohttp.ClientTimeout(total=timeout)},
                )
            )
            if contract_address:
                self.contract = self.w3.eth.contract(
                    address=Web3.to_checksum_address(contract_address), abi=abi
                )

    @classmethod
    def from_settings(cls, settings: Settings) -> "ChainReader":
        return cls(
            rpc_url=settings.RPC_URL,
            contract_address=settings.CONTRACT_ADDRESS,
            abi=load_abi(settings.CONTRACT_ABI_PATH or None),
            timeout=settings.RPC_TIMEOUT_SEC,
            max_retries=settings.RPC_MAX_RETRIES,
            rate_limit=settings.RPC_RATE_LIMIT,
        )

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def connect(self) -> bool:
        """Probe the node. Never raises; a failed probe leaves the reader not ready."""
        if self.w3 is None or self.contract is None:
            logger.warning("ChainReader: RPC_URL or CONTRACT_ADDRESS not set, chain disabled")
            return False

        try:
            self._connected = await self.w3.is_connected()
        except CHAIN_ERRORS as e:
            logger.error("ChainReader: connection failed: %s", e)
            self._connected = False

        if self._connected:
            chain_id = await self.w3.eth.chain_id
            logger.info(
                "ChainReader connected (chain_id=%s, contract=%s)",
                chain_id,
                self._contract_address,
            )
        else:
            logger.warning("ChainReader: node at %s not reachable", self.rpc_url)
        return self._connected

    async def close(self) -> None:
        if self.w3 is not None:
            try:
                await self.w3.provider.disconnect()
            except Exception as e:
                logger.warning("ChainReader: disconnect failed: %s", e)
        self._connected = False

    @property
    def is_ready(self) -> bool:
        return self._connected and self.contract is not None

    @property
    def contract_address(self) -> str:
        """Lowercased contract address."""
        return self._contract_address

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def _call(self, fn, *args):
        async def attempt():
            async with self._limiter:
                return await fn(*args)

        return await self._retry.run(getattr(fn, "__name__", "rpc call"), attempt)

    async def get_receipt(self, transaction_hash: str) -> Optional[Any]:
        """Transaction receipt, or None if the node does not know the hash (yet)."""
        try:
            return await self._call(self.w3.eth.get_transaction_receipt, transaction_hash)
        except TransactionNotFound:
            return None

    async def get_market_item(self, token_id: int) -> Optional[ChainMarketItem]:
        """
        Live listing state. None when the contract returns an empty struct
        for an unknown token; reverts propagate as ContractLogicError.
        """
        raw = await self._call(self.contract.functions.getMarketItem(int(token_id)).call)
        fields = raw if isinstance(raw, dict) else dict(zip(self._item_fields, raw))

        seller = str(fields["seller"]).lower()
        if int(fields["tokenId"]) == 0 and seller == ZERO_ADDRESS:
            return None

        return ChainMarketItem(
            token_id=int(fields["tokenId"]),
            seller=seller,
            owner=str(fields["owner"]).lower(),
            price=Web3.from_wei(int(fields["price"]), "ether"),
            sold=bool(fields["sold"]),
        )

    async def get_user_tokens(self, address: str) -> list[int]:
        """Token ids the address currently holds according to the contract."""
        fn = self.contract.functions.getUserTokens(Web3.to_checksum_address(address))
        token_ids = await self._call(fn.call)
        return [int(t) for t in token_ids]

    # ------------------------------------------------------------------
    # Log decoding
    # ------------------------------------------------------------------

    def decode_log(self, log: Any) -> Optional[EventData]:
        """Decode a receipt log against the contract ABI; None if it matches no event."""
        if self.contract is None:
            return None
        for name in self._event_names:
            try:
                return getattr(self.contract.events, name)().process_log(log)
            except _DECODE_ERRORS:
                continue
        return None
