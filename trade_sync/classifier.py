"""
Swap Classifier - Turns one transaction's transfers into a canonical trade.

Pipeline per transaction group:
1. Drop transfers touching the null address (mints, burns, fee refunds)
2. Split into incoming / outgoing relative to the wallet
3. Proxy/bot settlement fallback when nothing came back to the wallet
4. Normalize amounts, drop dust (< 1% of the side's largest transfer)
5. Pick the primary leg per side
6. Decide direction with an ordered rule ladder
7. Assign display/counter legs and compute price

The result is best-effort. Multi-hop and multi-party transactions may
be misclassified; only the primary leg per side is priced.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal
from typing import Callable, Optional, Sequence

from .config import ClassifierConfig, get_config
from .exceptions import ClassificationError
from .models import (
    ZERO_ADDRESS,
    CanonicalTrade,
    Chain,
    RawTransfer,
    TokenLeg,
    TradeDirection,
)


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DirectionContext:
    """Inputs visible to direction rules."""
    incoming: TokenLeg
    outgoing: TokenLeg
    ratio_threshold: Decimal

    @property
    def incoming_amount(self) -> Decimal:
        return self.incoming.normalized_amount

    @property
    def outgoing_amount(self) -> Decimal:
        return self.outgoing.normalized_amount

    @property
    def incoming_ratio(self) -> Decimal:
        """Received per paid (0 when nothing was paid)."""
        if self.outgoing_amount > 0:
            return self.incoming_amount / self.outgoing_amount
        return Decimal(0)

    @property
    def outgoing_ratio(self) -> Decimal:
        """Paid per received (0 when nothing was received)."""
        if self.incoming_amount > 0:
            return self.outgoing_amount / self.incoming_amount
        return Decimal(0)


@dataclass(frozen=True)
class DirectionRule:
    """A single rung of the direction ladder."""
    name: str
    predicate: Callable[[DirectionContext], bool]
    verdict: TradeDirection

    def matches(self, context: DirectionContext) -> bool:
        return self.predicate(context)


DIRECTION_RULES: tuple[DirectionRule, ...] = (
    # Stablecoins always quote the other leg
    DirectionRule(
        "received_stablecoin",
        lambda c: c.incoming.is_stablecoin and not c.outgoing.is_stablecoin,
        TradeDirection.SELL,
    ),
    DirectionRule(
        "paid_stablecoin",
        lambda c: c.outgoing.is_stablecoin and not c.incoming.is_stablecoin,
        TradeDirection.BUY,
    ),
    DirectionRule(
        "received_far_more",
        lambda c: c.incoming_ratio > c.ratio_threshold,
        TradeDirection.BUY,
    ),
    DirectionRule(
        "paid_far_more",
        lambda c: c.outgoing_ratio > c.ratio_threshold,
        TradeDirection.SELL,
    ),
    DirectionRule(
        "paid_native",
        lambda c: c.outgoing.is_native and not c.incoming.is_native,
        TradeDirection.BUY,
    ),
    DirectionRule(
        "received_native",
        lambda c: c.incoming.is_native and not c.outgoing.is_native,
        TradeDirection.SELL,
    ),
    DirectionRule(
        "received_more",
        lambda c: c.incoming_amount > c.outgoing_amount,
        TradeDirection.BUY,
    ),
    DirectionRule(
        "paid_more",
        lambda c: c.outgoing_amount > c.incoming_amount,
        TradeDirection.SELL,
    ),
    # Exact tie; pinned by tests
    DirectionRule(
        "tie_default",
        lambda c: True,
        TradeDirection.BUY,
    ),
)


def determine_direction(
    context: DirectionContext,
    rules: Sequence[DirectionRule] = DIRECTION_RULES,
) -> tuple[TradeDirection, str]:
    """Evaluate rules in order; returns (direction, matching rule name)."""
    for rule in rules:
        if rule.matches(context):
            return rule.verdict, rule.name
    return TradeDirection.BUY, "tie_default"


def filter_zero_address(transfers: Sequence[RawTransfer]) -> list[RawTransfer]:
    return [
        t for t in transfers
        if t.from_address != ZERO_ADDRESS and t.to_address != ZERO_ADDRESS
    ]


def split_sides(
    wallet_address: str,
    transfers: Sequence[RawTransfer],
) -> tuple[list[RawTransfer], list[RawTransfer]]:
    """
    Classify transfers as (incoming, outgoing) for the wallet.

    When nothing was received but something was sent, transfers paid to
    the addresses the wallet sent to are treated as incoming. This
    recovers bot/proxy settlements, at the risk of picking up unrelated
    transfers that share a recipient.
    """
    wallet = wallet_address.lower()
    candidates = filter_zero_address(transfers)

    outgoing = [t for t in candidates if t.from_address == wallet]
    incoming = [t for t in candidates if t.to_address == wallet]

    if not incoming and outgoing:
        interacted = {
            t.to_address for t in outgoing
            if t.to_address and t.to_address not in (wallet, ZERO_ADDRESS)
        }
        incoming = [
            t for t in candidates
            if t.to_address in interacted and t.from_address != wallet
        ]

    return incoming, outgoing


def filter_dust(
    transfers: Sequence[RawTransfer],
    threshold_ratio: float,
) -> list[RawTransfer]:
    """Drop transfers smaller than threshold_ratio of the side's largest."""
    if not transfers:
        return []
    largest = max(t.normalized_amount for t in transfers)
    threshold = largest * Decimal(str(threshold_ratio))
    return [t for t in transfers if t.normalized_amount >= threshold]


def select_primary(transfers: Sequence[RawTransfer]) -> RawTransfer:
    """Single survivor, or the largest by normalized amount (first wins ties)."""
    if len(transfers) == 1:
        return transfers[0]
    return max(transfers, key=lambda t: t.normalized_amount)


class SwapClassifier:
    """
    Reconstructs a CanonicalTrade from one transaction's transfers.

    Returns None for groups that do not look like a swap; that is not an
    error. USD enrichment is done separately by USDValuation.
    """

    def __init__(
        self,
        config: Optional[ClassifierConfig] = None,
        rules: Sequence[DirectionRule] = DIRECTION_RULES,
    ) -> None:
        self.config = config or get_config().classifier
        self.rules = tuple(rules)

    def classify(
        self,
        wallet_address: str,
        tx_hash: str,
        transfers: Sequence[RawTransfer],
        timestamp: datetime,
        chain: Chain,
    ) -> Optional[CanonicalTrade]:
        """
        Reconstruct the swap in one transaction, or None if it is not one.

        Raises:
            ClassificationError: If the transfers belong to another transaction
        """
        foreign = [t for t in transfers if t.tx_hash != tx_hash.lower()]
        if foreign:
            raise ClassificationError(
                f"Transfer group for {tx_hash} contains {len(foreign)} transfers of other transactions",
                tx_hash,
                chain,
            )

        if timestamp.tzinfo is None:
            timestamp = timestamp.replace(tzinfo=timezone.utc)

        launch = self.config.launch_timestamp
        if launch is not None and timestamp < launch:
            logger.debug(f"Skipping trade {tx_hash} - before launch date ({timestamp.isoformat()})")
            return None

        incoming, outgoing = split_sides(wallet_address, transfers)
        if not incoming or not outgoing:
            return None

        ratio = self.config.dust_threshold_ratio
        incoming = filter_dust(incoming, ratio)
        outgoing = filter_dust(outgoing, ratio)
        if not incoming or not outgoing:
            return None

        received = select_primary(incoming)
        paid = select_primary(outgoing)

        token_out = TokenLeg.from_transfer(received)
        token_in = TokenLeg.from_transfer(paid)

        context = DirectionContext(
            incoming=token_out,
            outgoing=token_in,
            ratio_threshold=Decimal(str(self.config.direction_ratio_threshold)),
        )
        direction, rule_name = determine_direction(context, self.rules)

        trade = CanonicalTrade(
            wallet_address=wallet_address,
            chain=chain,
            tx_hash=tx_hash,
            direction=direction,
            token_in=token_in,
            token_out=token_out,
            timestamp=timestamp,
            tx_index=received.log_index,
        )

        display_amount = trade.display_amount
        counter_amount = trade.counter_amount
        if display_amount > 0 and counter_amount > 0:
            trade.price = counter_amount / display_amount

        trade.raw_payload = {
            "transfers": [t.payload for t in transfers],
            "tx_hash": tx_hash,
            "direction_rule": rule_name,
            "display_token_symbol": trade.display_leg.symbol,
            "display_token_address": trade.display_leg.address,
            "display_amount": str(display_amount),
            "counter_amount": str(counter_amount),
        }

        logger.debug(
            f"[{chain.value}] {tx_hash}: {direction.value} "
            f"{display_amount} {trade.display_leg.symbol} ({rule_name})"
        )
        return trade
