from app.services.chain.reader import CHAIN_ERRORS, ChainMarketItem, ChainReader
from app.services.chain.verifier import EventVerifier, VerifiedEvent

__all__ = [
    "CHAIN_ERRORS",
    "ChainMarketItem",
    "ChainReader",
    "EventVerifier",
    "VerifiedEvent",
]
