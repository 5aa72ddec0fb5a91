"""
Transfer grouping - merge directional batches, deduplicate, group by tx.
"""

from typing import Iterable

from .models import RawTransfer


def merge_transfers(*batches: Iterable[RawTransfer]) -> list[RawTransfer]:
    """
    Merge transfer batches and drop duplicates.

    Identity is the provider's unique id when present, else
    (tx_hash, from, to). Later duplicates replace earlier ones while the
    first-seen ordering is kept.
    """
    unique: dict[str, RawTransfer] = {}
    for batch in batches:
        for transfer in batch:
            unique[transfer.dedupe_key] = transfer
    return list(unique.values())


def group_by_transaction(transfers: Iterable[RawTransfer]) -> dict[str, list[RawTransfer]]:
    """Group transfers by transaction hash, in first-seen order."""
    groups: dict[str, list[RawTransfer]] = {}
    for transfer in transfers:
        groups.setdefault(transfer.tx_hash, []).append(transfer)
    return groups


def is_swap_candidate(wallet_address: str, transfers: Iterable[RawTransfer]) -> bool:
    """A group must both send from and pay into the wallet to be a swap."""
    wallet = wallet_address.lower()
    has_outgoing = False
    has_incoming = False
    for transfer in transfers:
        if transfer.from_address == wallet:
            has_outgoing = True
        if transfer.to_address == wallet:
            has_incoming = True
        if has_outgoing and has_incoming:
            return True
    return False


def select_swap_candidates(
    wallet_address: str,
    groups: dict[str, list[RawTransfer]],
) -> dict[str, list[RawTransfer]]:
    """Drop one-sided groups (plain transfers, airdrops, refunds)."""
    return {
        tx_hash: transfers
        for tx_hash, transfers in groups.items()
        if is_swap_candidate(wallet_address, transfers)
    }
