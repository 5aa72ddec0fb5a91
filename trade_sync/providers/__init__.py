"""External data providers for trade sync."""

from .alchemy import AlchemyClient
from .cryptocompare import CryptoCompareClient, chain_symbol

__all__ = [
    "AlchemyClient",
    "CryptoCompareClient",
    "chain_symbol",
]
