"""
Builders for provider payloads and transfers used across the trade sync tests.
"""

from decimal import Decimal
from typing import Any, Optional

from trade_sync.models import RawTransfer


WALLET = "0x" + "a" * 40
POOL = "0x" + "b" * 40
ROUTER = "0x" + "c" * 40
OTHER = "0x" + "d" * 40

WETH = "0xc02aaa39b223fe8d0a0e5c4f27ead9083c756cc2"
USDC = "0xa0b86991c6218b36c1d19d4a2e9eb0ce3606eb48"
PEPE = "0x6982508145454ce325ddbe47a25d4ec3d2311933"
LINK = "0x514910771af9ca656af840dff83e8264ecf986ca"

TOKENS = {
    "WETH": (WETH, 18),
    "USDC": (USDC, 6),
    "PEPE": (PEPE, 18),
    "LINK": (LINK, 18),
}

DEFAULT_TIMESTAMP = "2025-06-01T12:00:00.000Z"


def units(amount: str, decimals: int) -> int:
    """Human amount to smallest-unit integer."""
    return int(Decimal(amount).scaleb(decimals))


def make_payload(
    tx_hash: str,
    sender: str,
    recipient: str,
    asset: str,
    amount: str,
    *,
    category: Optional[str] = None,
    timestamp: Optional[str] = DEFAULT_TIMESTAMP,
    block: int = 22500000,
    log_index: Optional[int] = None,
    unique_id: Optional[str] = None,
) -> dict[str, Any]:
    """alchemy_getAssetTransfers record for a token (or ETH when asset == "ETH")."""
    if asset == "ETH":
        address, decimals = None, 18
        category = category or "external"
    else:
        address, decimals = TOKENS[asset]
        category = category or "erc20"

    payload: dict[str, Any] = {
        "blockNum": hex(block),
        "uniqueId": unique_id or f"{tx_hash}:{sender[-4:]}:{recipient[-4:]}:{asset}",
        "hash": tx_hash,
        "from": sender,
        "to": recipient,
        "value": float(amount),
        "asset": asset,
        "category": category,
        "rawContract": {
            "value": hex(units(amount, decimals)),
            "address": address,
            "decimal": hex(decimals),
        },
        "metadata": {"blockTimestamp": timestamp} if timestamp else {},
    }
    if log_index is not None:
        payload["logIndex"] = hex(log_index)
    return payload


def make_transfer(*args: Any, **kwargs: Any) -> RawTransfer:
    return RawTransfer.from_payload(make_payload(*args, **kwargs))


def swap_payloads(
    tx_hash: str,
    paid_asset: str,
    paid_amount: str,
    received_asset: str,
    received_amount: str,
    wallet: str = WALLET,
    counterparty: str = POOL,
    **kwargs: Any,
) -> list[dict[str, Any]]:
    """Outgoing plus incoming leg of a simple swap against one pool."""
    return [
        make_payload(tx_hash, wallet, counterparty, paid_asset, paid_amount, log_index=1, **kwargs),
        make_payload(tx_hash, counterparty, wallet, received_asset, received_amount, log_index=2, **kwargs),
    ]
