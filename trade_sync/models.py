"""
Trade Sync Data Models - Transfers, reconstructed trades and sync results.

Raw provider payloads are parsed into RawTransfer at the boundary.
Everything downstream (grouping, classification, valuation) works on
validated values only.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any, Optional

from .amounts import normalize_amount, parse_decimals, parse_formatted_amount, parse_raw_amount
from .exceptions import ConfigurationError, ParseError


ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"

# Counter tokens priced at 1 USD
STABLECOIN_SYMBOLS = frozenset({"USDC", "USDT", "DAI", "BUSD", "TUSD", "USDP", "FRAX", "LUSD"})

# Counter tokens priced at the chain's historical native USD price
NATIVE_SYMBOLS = frozenset({"ETH", "WETH"})


class Chain(Enum):
    """Supported EVM networks."""
    ETHEREUM = "ethereum"
    POLYGON = "polygon"
    ARBITRUM = "arbitrum"
    OPTIMISM = "optimism"
    BASE = "base"
    BSC = "bsc"
    AVALANCHE = "avalanche"


# Aliases accepted from callers and stored wallet rows
CHAIN_ALIASES: dict[str, Chain] = {
    "ethereum": Chain.ETHEREUM,
    "eth": Chain.ETHEREUM,
    "mainnet": Chain.ETHEREUM,
    "evm": Chain.ETHEREUM,
    "polygon": Chain.POLYGON,
    "matic": Chain.POLYGON,
    "arbitrum": Chain.ARBITRUM,
    "arbitrum-one": Chain.ARBITRUM,
    "optimism": Chain.OPTIMISM,
    "op": Chain.OPTIMISM,
    "base": Chain.BASE,
    "bsc": Chain.BSC,
    "binance": Chain.BSC,
    "avalanche": Chain.AVALANCHE,
    "avax": Chain.AVALANCHE,
}


def normalize_chain(chain: Any) -> Chain:
    """
    Map a free-form chain name to a Chain.

    Raises:
        ConfigurationError: If the name is empty or unrecognized
    """
    if isinstance(chain, Chain):
        return chain
    if not chain:
        raise ConfigurationError("Chain is required")

    normalized = str(chain).lower().strip()
    if normalized not in CHAIN_ALIASES:
        raise ConfigurationError(f"Unrecognized chain: {chain}")
    return CHAIN_ALIASES[normalized]


class TradeDirection(Enum):
    """Direction of a reconstructed swap from the wallet's point of view."""
    BUY = "BUY"
    SELL = "SELL"


class SyncStage(Enum):
    """Per-wallet cycle states."""
    IDLE = "idle"
    RESOLVING_RANGE = "resolving-range"
    FETCHING_TRANSFERS = "fetching-transfers"
    GROUPING = "grouping"
    CLASSIFYING = "parsing-trades"
    VALUATING = "valuating"
    PERSISTING = "saving-trades"
    CURSOR_ADVANCED = "cursor-advanced"
    FAILED = "failed"


def _parse_timestamp(value: Any) -> Optional[datetime]:
    if not value:
        return None
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    try:
        parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    except ValueError as e:
        raise ParseError(f"Invalid block timestamp: {value}") from e
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)


def _parse_optional_int(value: Any, name: str) -> Optional[int]:
    if value is None or value == "":
        return None
    if isinstance(value, bool):
        raise ParseError(f"Invalid {name}: {value!r}")
    if isinstance(value, int):
        return value
    text = str(value).strip()
    try:
        return int(text, 16) if text.lower().startswith("0x") else int(text)
    except ValueError as e:
        raise ParseError(f"Invalid {name}: {value!r}") from e


@dataclass(frozen=True)
class RawTransfer:
    """
    A single asset movement as reported by the transfer provider.

    Addresses are lowercased. token_address is None for native-asset
    movements (external/internal ETH transfers).
    """
    tx_hash: str
    from_address: str
    to_address: str
    asset_symbol: Optional[str]
    token_address: Optional[str]
    decimals: int
    raw_value: int
    category: str
    block_timestamp: Optional[datetime] = None
    block_number: Optional[int] = None
    log_index: Optional[int] = None
    unique_id: Optional[str] = None
    payload: dict[str, Any] = field(default_factory=dict, compare=False, hash=False, repr=False)

    @property
    def is_native(self) -> bool:
        """True for movements of the chain's base currency."""
        return self.category == "external" or not self.token_address

    @property
    def leg_address(self) -> str:
        """Token identity used for legs; native movements map to the null address."""
        if self.is_native:
            return ZERO_ADDRESS
        return self.token_address or ZERO_ADDRESS

    @property
    def normalized_amount(self) -> Decimal:
        return normalize_amount(self.raw_value, self.decimals)

    @property
    def dedupe_key(self) -> str:
        """Content-derived identity used when merging directional batches."""
        if self.unique_id:
            return self.unique_id
        return f"{self.tx_hash}-{self.from_address}-{self.to_address}"

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> "RawTransfer":
        """
        Parse a provider transfer record (alchemy_getAssetTransfers shape).

        Raises:
            ParseError: If the record is missing required fields or carries
                amounts/precision that cannot be interpreted.
        """
        if not isinstance(payload, dict):
            raise ParseError("Transfer payload is not an object", raw_data=repr(payload))

        tx_hash = payload.get("hash")
        if not tx_hash or not isinstance(tx_hash, str):
            raise ParseError("Transfer is missing tx hash", raw_data=repr(payload))

        from_address = payload.get("from")
        if not from_address or not isinstance(from_address, str):
            raise ParseError(f"Transfer {tx_hash} is missing sender", raw_data=repr(payload))
        to_address = payload.get("to") or ""
        if not isinstance(to_address, str):
            raise ParseError(f"Transfer {tx_hash} has invalid recipient", raw_data=repr(payload))

        raw_contract = payload.get("rawContract") or {}
        if not isinstance(raw_contract, dict):
            raise ParseError(f"Transfer {tx_hash} has invalid rawContract", raw_data=repr(payload))

        category = str(payload.get("category") or "").lower()
        contract_address = raw_contract.get("address")
        token_address = contract_address.lower() if isinstance(contract_address, str) and contract_address else None

        raw_decimals = raw_contract.get("decimal", raw_contract.get("decimals"))
        try:
            decimals = parse_decimals(raw_decimals)
        except ValueError as e:
            raise ParseError(f"Transfer {tx_hash} has invalid decimals", raw_data=repr(payload)) from e

        try:
            raw_value = parse_raw_amount(raw_contract.get("value"))
            if raw_value is None and (category == "external" or token_address is None):
                # Native movements sometimes only carry the formatted value
                raw_value = parse_formatted_amount(payload.get("value"), decimals)
        except ValueError as e:
            raise ParseError(f"Transfer {tx_hash} has invalid value", raw_data=repr(payload)) from e

        metadata = payload.get("metadata") or {}
        block_timestamp = _parse_timestamp(
            metadata.get("blockTimestamp") if isinstance(metadata, dict) else None
        )

        asset = payload.get("asset")

        return cls(
            tx_hash=tx_hash.lower(),
            from_address=from_address.lower(),
            to_address=to_address.lower(),
            asset_symbol=asset if isinstance(asset, str) and asset else None,
            token_address=token_address,
            decimals=decimals,
            raw_value=raw_value or 0,
            category=category,
            block_timestamp=block_timestamp,
            block_number=_parse_optional_int(payload.get("blockNum"), "block number"),
            log_index=_parse_optional_int(payload.get("logIndex"), "log index"),
            unique_id=payload.get("uniqueId") or None,
            payload=payload,
        )


@dataclass(frozen=True)
class TokenLeg:
    """One side of a reconstructed swap."""
    address: str
    symbol: Optional[str]
    decimals: int
    raw_amount: int
    normalized_amount: Decimal

    @classmethod
    def from_transfer(cls, transfer: RawTransfer) -> "TokenLeg":
        return cls(
            address=transfer.leg_address,
            symbol=transfer.asset_symbol,
            decimals=transfer.decimals,
            raw_amount=transfer.raw_value,
            normalized_amount=transfer.normalized_amount,
        )

    @property
    def is_native(self) -> bool:
        return self.address == ZERO_ADDRESS

    @property
    def is_stablecoin(self) -> bool:
        return (self.symbol or "").upper() in STABLECOIN_SYMBOLS

    def to_dict(self) -> dict[str, Any]:
        return {
            "address": self.address,
            "symbol": self.symbol,
            "decimals": self.decimals,
            "raw_amount": str(self.raw_amount),
            "normalized_amount": str(self.normalized_amount),
        }


@dataclass
class CanonicalTrade:
    """
    Normalized output record for one reconstructed swap.

    token_in is the leg the wallet gave up, token_out the leg it received.
    Unique per (wallet_address, chain, tx_hash).
    """
    wallet_address: str
    chain: Chain
    tx_hash: str
    direction: TradeDirection
    token_in: TokenLeg
    token_out: TokenLeg
    timestamp: datetime
    tx_index: Optional[int] = None
    price: Optional[Decimal] = None
    native_price_usd: Optional[Decimal] = None
    usd_price_per_token: Optional[Decimal] = None
    usd_value: Optional[Decimal] = None
    platform: str = "unknown"
    raw_payload: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        self.wallet_address = self.wallet_address.lower().strip()

    @property
    def display_leg(self) -> TokenLeg:
        """Sold token for SELL, acquired token for BUY."""
        return self.token_in if self.direction == TradeDirection.SELL else self.token_out

    @property
    def counter_leg(self) -> TokenLeg:
        """Leg used to price the display token."""
        return self.token_out if self.direction == TradeDirection.SELL else self.token_in

    @property
    def display_amount(self) -> Decimal:
        return self.display_leg.normalized_amount

    @property
    def counter_amount(self) -> Decimal:
        return self.counter_leg.normalized_amount

    @property
    def key(self) -> tuple[str, str, str]:
        return (self.wallet_address, self.chain.value, self.tx_hash)

    def to_dict(self) -> dict[str, Any]:
        def _num(value: Optional[Decimal]) -> Optional[str]:
            return str(value) if value is not None else None

        return {
            "wallet_address": self.wallet_address,
            "chain": self.chain.value,
            "tx_hash": self.tx_hash,
            "tx_index": self.tx_index,
            "direction": self.direction.value,
            "token_in": self.token_in.to_dict(),
            "token_out": self.token_out.to_dict(),
            "price": _num(self.price),
            "native_price_usd": _num(self.native_price_usd),
            "usd_price_per_token": _num(self.usd_price_per_token),
            "usd_value": _num(self.usd_value),
            "platform": self.platform,
            "timestamp": self.timestamp.isoformat(),
        }


@dataclass
class SyncResult:
    """Outcome of one wallet sync cycle."""
    wallet_address: str
    chain: Chain
    from_block: int
    to_block: int
    last_synced_cursor: str
    transfers_fetched: int = 0
    candidate_groups: int = 0
    trades_detected: int = 0
    trades_saved: int = 0
    groups_failed: int = 0
    persistence_failures: int = 0
    stage: SyncStage = SyncStage.CURSOR_ADVANCED
    started_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    finished_at: Optional[datetime] = None

    @property
    def duration_seconds(self) -> Optional[float]:
        if self.finished_at is None:
            return None
        return (self.finished_at - self.started_at).total_seconds()

    def summary(self) -> str:
        return (
            f"Fetched {self.transfers_fetched} transfers, "
            f"detected {self.trades_detected} swaps, "
            f"saved {self.trades_saved} trades"
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "wallet_address": self.wallet_address,
            "chain": self.chain.value,
            "from_block": self.from_block,
            "to_block": self.to_block,
            "last_synced_cursor": self.last_synced_cursor,
            "transfers_fetched": self.transfers_fetched,
            "candidate_groups": self.candidate_groups,
            "trades_detected": self.trades_detected,
            "trades_saved": self.trades_saved,
            "groups_failed": self.groups_failed,
            "persistence_failures": self.persistence_failures,
            "stage": self.stage.value,
            "started_at": self.started_at.isoformat(),
            "finished_at": self.finished_at.isoformat() if self.finished_at else None,
        }
