"""
Wallet Sync Engine - Incremental swap reconstruction per wallet cycle.

============================================================
CYCLE
============================================================
IDLE -> RESOLVING_RANGE -> FETCHING_TRANSFERS -> GROUPING ->
CLASSIFYING -> VALUATING -> PERSISTING -> CURSOR_ADVANCED

- Range or fetch errors: FAILED, cursor untouched, error re-raised
- Classification/valuation error: that group is skipped
- Persistence error: counted, remaining trades still saved
- The cursor advances to to_block once per successful cycle

============================================================
"""

import asyncio
import logging
import weakref
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Iterable, Mapping, Optional, Protocol, Union

from .blocks import BlockRange, BlockRangeResolver
from .classifier import SwapClassifier
from .config import SyncConfig, get_config
from .exceptions import ConfigurationError
from .fetcher import TransferFetcher, TransferSource
from .grouping import group_by_transaction, select_swap_candidates
from .models import CanonicalTrade, Chain, RawTransfer, SyncResult, SyncStage, normalize_chain
from .progress import NullProgressReporter, ProgressReporter
from .rate_limiter import FixedDelayRateLimiter
from .tracker import CursorStore, CursorTracker
from .valuation import USDValuation


logger = logging.getLogger(__name__)


class ChainClient(TransferSource, Protocol):
    """Transfer and chain-tip queries for one chain (AlchemyClient satisfies it)."""

    async def get_block_number(self) -> int:
        ...


class TradeSink(CursorStore, Protocol):
    """Trade upsert plus cursor persistence (TradeStore satisfies it)."""

    def upsert_trade(self, trade: CanonicalTrade) -> Any:
        ...


@dataclass
class BatchSyncResult:
    """Outcome of syncing several wallets."""
    results: list[SyncResult] = field(default_factory=list)
    failures: dict[str, str] = field(default_factory=dict)

    @property
    def success(self) -> bool:
        return not self.failures


def group_timestamp(transfers: list[RawTransfer]) -> datetime:
    """Block timestamp of the first transfer that has one, else now (UTC)."""
    for transfer in transfers:
        if transfer.block_timestamp is not None:
            return transfer.block_timestamp
    return datetime.now(timezone.utc)


class WalletSyncEngine:
    """
    Runs sync cycles for (wallet, chain) pairs.

    Usage:
        engine = WalletSyncEngine({Chain.ETHEREUM: alchemy}, store)
        result = await engine.run_cycle("0xabc...", Chain.ETHEREUM)
        print(result.summary())
    """

    def __init__(
        self,
        clients: Mapping[Chain, ChainClient],
        store: TradeSink,
        classifier: Optional[SwapClassifier] = None,
        valuation: Optional[USDValuation] = None,
        rate_limiter: Optional[FixedDelayRateLimiter] = None,
        progress: Optional[ProgressReporter] = None,
        config: Optional[SyncConfig] = None,
    ) -> None:
        self.config = config or get_config()
        self.clients = dict(clients)
        self.store = store
        self.tracker = CursorTracker(store)
        self.classifier = classifier or SwapClassifier(self.config.classifier)
        self.valuation = valuation or USDValuation(config=self.config)
        self.rate_limiter = rate_limiter or FixedDelayRateLimiter(self.config.inter_item_delay_seconds)
        self.progress: ProgressReporter = progress or NullProgressReporter()
        # Entries vanish once no cycle holds or waits on the lock
        self._locks: "weakref.WeakValueDictionary[tuple[str, str], asyncio.Lock]" = (
            weakref.WeakValueDictionary()
        )

    # =========================================================
    # HELPERS
    # =========================================================

    def _client_for(self, chain: Chain) -> ChainClient:
        client = self.clients.get(chain)
        if client is None:
            raise ConfigurationError(f"No transfer client configured for {chain.value}", chain)
        return client

    def _lock_for(self, wallet_address: str, chain: Chain) -> asyncio.Lock:
        key = (wallet_address, chain.value)
        lock = self._locks.get(key)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[key] = lock
        return lock

    def _set_stage(self, result: SyncResult, stage: SyncStage, message: Optional[str] = None) -> None:
        result.stage = stage
        try:
            self.progress.set_stage(stage.value, message)
        except Exception as e:
            logger.debug(f"Progress reporter failed: {e}")

    def _set_progress(self, current: int, total: int, message: Optional[str] = None) -> None:
        try:
            self.progress.set_progress(current, total, message)
        except Exception as e:
            logger.debug(f"Progress reporter failed: {e}")

    # =========================================================
    # CYCLE
    # =========================================================

    async def run_cycle(self, wallet_address: str, chain: Union[Chain, str]) -> SyncResult:
        """
        Run one sync cycle for a wallet.

        Raises:
            APIError: If the chain tip or transfer queries fail
            StorageError: If the cursor cannot be read or stored
        """
        chain = normalize_chain(chain)
        wallet = wallet_address.lower().strip()
        async with self._lock_for(wallet, chain):
            return await self._run_cycle(wallet, chain)

    async def _run_cycle(self, wallet: str, chain: Chain) -> SyncResult:
        prefix = f"[{chain.value}]"
        result = SyncResult(
            wallet_address=wallet,
            chain=chain,
            from_block=0,
            to_block=0,
            last_synced_cursor="",
            stage=SyncStage.IDLE,
        )

        try:
            client = self._client_for(chain)
            chain_config = self.config.get_chain_config(chain)

            self._set_stage(result, SyncStage.RESOLVING_RANGE, "Resolving block range...")
            previous = self.tracker.current(wallet, chain)
            resolver = BlockRangeResolver(client.get_block_number, self.config)
            block_range = await resolver.resolve(previous, chain)
            result.from_block = block_range.from_block
            result.to_block = block_range.to_block

            if block_range.is_empty:
                return self._finish(result, wallet, chain, block_range, previous)

            self._set_stage(result, SyncStage.FETCHING_TRANSFERS, f"Fetching transfers {block_range}...")
            fetcher = TransferFetcher(client, chain, chain_config.max_transfers_per_query)
            transfers = await fetcher.fetch(wallet, block_range)
        except Exception as e:
            self._set_stage(result, SyncStage.FAILED, str(e))
            logger.error(f"{prefix} Sync failed for {wallet}: {e}")
            raise

        result.transfers_fetched = len(transfers)

        self._set_stage(result, SyncStage.GROUPING, "Grouping transfers...")
        groups = group_by_transaction(transfers)
        candidates = select_swap_candidates(wallet, groups)
        result.candidate_groups = len(candidates)
        logger.info(f"{prefix} {len(candidates)} candidate swap transactions out of {len(groups)}")

        await self._process_groups(result, wallet, chain, candidates)

        try:
            return self._finish(result, wallet, chain, block_range, previous)
        except Exception as e:
            self._set_stage(result, SyncStage.FAILED, str(e))
            logger.error(f"{prefix} Failed to advance cursor for {wallet}: {e}")
            raise

    async def _process_groups(
        self,
        result: SyncResult,
        wallet: str,
        chain: Chain,
        candidates: dict[str, list[RawTransfer]],
    ) -> None:
        """Classify, value and persist each candidate group in turn."""
        prefix = f"[{chain.value}]"
        total = len(candidates)
        self.rate_limiter.reset()

        for index, (tx_hash, transfers) in enumerate(candidates.items(), start=1):
            await self.rate_limiter.wait()
            self._set_progress(index, total, f"Processing transaction {index}/{total}")

            try:
                self._set_stage(result, SyncStage.CLASSIFYING)
                trade = self.classifier.classify(
                    wallet, tx_hash, transfers, group_timestamp(transfers), chain
                )
                if trade is None:
                    continue

                result.trades_detected += 1

                self._set_stage(result, SyncStage.VALUATING)
                await self.valuation.enrich(trade)
            except Exception as e:
                result.groups_failed += 1
                logger.error(f"{prefix} Error processing transaction {tx_hash}: {e}")
                continue

            self._set_stage(result, SyncStage.PERSISTING)
            try:
                self.store.upsert_trade(trade)
                result.trades_saved += 1
            except Exception as e:
                result.persistence_failures += 1
                logger.error(f"{prefix} Error saving trade {tx_hash}: {e}")

    def _finish(
        self,
        result: SyncResult,
        wallet: str,
        chain: Chain,
        block_range: BlockRange,
        previous: Optional[str],
    ) -> SyncResult:
        result.last_synced_cursor = self.tracker.advance(wallet, chain, block_range.to_block, previous)
        result.finished_at = datetime.now(timezone.utc)
        self._set_stage(result, SyncStage.CURSOR_ADVANCED, result.summary())
        logger.info(f"[{chain.value}] {wallet}: {result.summary()}")
        return result

    async def sync_wallets(
        self,
        wallets: Iterable[tuple[str, Union[Chain, str]]],
    ) -> BatchSyncResult:
        """Sync wallets one after another. A failed wallet does not stop the rest."""
        batch = BatchSyncResult()
        for wallet_address, chain in wallets:
            label = f"{wallet_address}@{chain.value if isinstance(chain, Chain) else chain}"
            try:
                batch.results.append(await self.run_cycle(wallet_address, chain))
            except Exception as e:
                batch.failures[label] = str(e)
                logger.error(f"Wallet sync failed for {label}: {e}")
        return batch
