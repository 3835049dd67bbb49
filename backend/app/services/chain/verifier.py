"""
EventVerifier: proves that a transaction emitted a specific marketplace event.

Steps for verify_event(tx_hash, event_name, token_id):
  1. Reject malformed hashes locally (no RPC round-trip).
  2. Fetch the receipt; missing  -> TransactionNotFoundError (retryable),
     node unreachable           -> ChainUnavailableError (retryable).
  3. status == 0                  -> TransactionRevertedError.
  4. Keep only logs emitted by the marketplace contract address.
  5. Decode each remaining log; logs that match no ABI event are skipped.
  6. First decoded log with the expected name and tokenId wins; none -> EventNotFoundError.

The decoded arguments are the source of truth for price and counterparties.
Performs no writes.
"""

import logging
import re
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Optional

from web3 import Web3

from app.services.chain.reader import CHAIN_ERRORS, ZERO_ADDRESS, ChainReader
from app.services.errors import (
    ChainUnavailableError,
    EventNotFoundError,
    InvalidTransactionHashError,
    TransactionNotFoundError,
    TransactionRevertedError,
)

logger = logging.getLogger(__name__)

TX_HASH_RE = re.compile(r"^0x[0-9a-fA-F]{64}$")


@dataclass
class VerifiedEvent:
    """A decoded marketplace event backed by a successful receipt."""

    name: str
    token_id: int
    args: dict[str, Any]
    transaction_hash: str
    block_number: int
    gas_used: int

    @property
    def price(self) -> Decimal:
        """Event price converted from wei to ETH."""
        return Web3.from_wei(int(self.args["price"]), "ether")

    @property
    def seller(self) -> Optional[str]:
        return _lower_address(self.args.get("seller"))

    @property
    def buyer(self) -> Optional[str]:
        return _lower_address(self.args.get("buyer"))


def _lower_address(value: Any) -> Optional[str]:
    if not value:
        return None
    address = str(value).lower()
    return None if address == ZERO_ADDRESS else address


class EventVerifier:
    """Receipt + log verification against the marketplace contract."""

    def __init__(self, chain: ChainReader):
        self.chain = chain

    async def verify_event(
        self,
        transaction_hash: str,
        event_name: str,
        token_id: int,
    ) -> VerifiedEvent:
        if not TX_HASH_RE.match(transaction_hash or ""):
            raise InvalidTransactionHashError(transaction_hash)

        try:
            receipt = await self.chain.get_receipt(transaction_hash)
        except CHAIN_ERRORS as e:
            logger.error("Receipt fetch for %s failed: %s", transaction_hash, e)
            raise ChainUnavailableError() from e
        if receipt is None:
            raise TransactionNotFoundError(transaction_hash)

        if receipt["status"] == 0:
            raise TransactionRevertedError(transaction_hash)

        contract_address = self.chain.contract_address
        decoded = (
            self.chain.decode_log(log)
            for log in receipt["logs"]
            if str(log["address"]).lower() == contract_address
        )
        match = next(
            (
                event
                for event in decoded
                if event is not None
                and event["event"] == event_name
                and int(event["args"]["tokenId"]) == int(token_id)
            ),
            None,
        )

        if match is None:
            logger.warning(
                "No %s event for token %s in tx %s (%d logs)",
                event_name,
                token_id,
                transaction_hash,
                len(receipt["logs"]),
            )
            raise EventNotFoundError(event_name, token_id)

        return VerifiedEvent(
            name=event_name,
            token_id=int(token_id),
            args=dict(match["args"]),
            transaction_hash=transaction_hash.lower(),
            block_number=int(receipt["blockNumber"]),
            gas_used=int(receipt["gasUsed"]),
        )
