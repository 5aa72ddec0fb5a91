"""
Trade Sync - CLI.

============================================================
RESPONSIBILITY
============================================================
Command-line interface for one sync cycle per wallet.

- Provides argparse-based CLI
- Wires Alchemy, CryptoCompare and the SQL store into the engine
- Prints a per-wallet summary
- Exit code 1 if any wallet cycle failed

============================================================
USAGE
============================================================
python -m trade_sync.cli --wallet 0xabc... --chain ethereum
python -m trade_sync.cli --wallet 0xabc... --wallet 0xdef... --delay 0.5
python -m trade_sync.cli --wallet 0xabc... --database-url sqlite:///trades.db
python -m trade_sync.cli --wallet 0xabc... --reset              # wipe and resync

============================================================
"""

import argparse
import asyncio
import logging
import sys
from dataclasses import replace
from typing import List, Optional

from .config import SyncConfig, get_config
from .engine import WalletSyncEngine
from .exceptions import ConfigurationError
from .models import Chain, normalize_chain
from .progress import SyncStatusTracker
from .providers import AlchemyClient, CryptoCompareClient
from .storage import TradeStore
from .valuation import USDValuation


# ============================================================
# CLI ARGUMENT PARSER
# ============================================================

def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser."""
    parser = argparse.ArgumentParser(
        prog="trade-sync",
        description="Reconstruct wallet swaps from on-chain transfers and store them",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s --wallet 0xabc...                       # Sync one wallet on Ethereum
  %(prog)s --wallet 0xabc... --chain base          # Sync on Base
  %(prog)s --wallet 0xabc... --wallet 0xdef...     # Several wallets, one after another
        """
    )

    # --------------------------------------------------------
    # Sync Options
    # --------------------------------------------------------
    sync_group = parser.add_argument_group("Sync Options")

    sync_group.add_argument(
        "--wallet", "-w",
        dest="wallets",
        action="append",
        required=True,
        metavar="ADDRESS",
        help="Wallet address to sync (repeatable)",
    )

    sync_group.add_argument(
        "--chain", "-c",
        type=str,
        default="ethereum",
        help="Chain name or alias (default: ethereum)",
    )

    sync_group.add_argument(
        "--delay",
        type=float,
        default=None,
        metavar="SECONDS",
        help="Delay between transactions (default: 0.3)",
    )

    sync_group.add_argument(
        "--reset",
        action="store_true",
        help="Reset the wallet's cursor and delete its stored trades before syncing",
    )

    sync_group.add_argument(
        "--keep-trades",
        action="store_true",
        help="With --reset, keep stored trades and only reset the cursor",
    )

    # --------------------------------------------------------
    # Storage Options
    # --------------------------------------------------------
    storage_group = parser.add_argument_group("Storage Options")

    storage_group.add_argument(
        "--database-url",
        type=str,
        default=None,
        metavar="URL",
        help="SQLAlchemy database URL (default: TRADE_SYNC_DATABASE_URL or sqlite:///storage/trade_sync.db)",
    )

    # --------------------------------------------------------
    # Logging Options
    # --------------------------------------------------------
    logging_group = parser.add_argument_group("Logging Options")

    logging_group.add_argument(
        "--log-level",
        type=str,
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        default="INFO",
        help="Logging level (default: INFO)",
    )

    parser.add_argument(
        "--version", "-v",
        action="version",
        version="%(prog)s 1.0.0",
    )

    return parser


# ============================================================
# CLI VALIDATION
# ============================================================

def validate_args(args: argparse.Namespace) -> List[str]:
    """Validate CLI arguments; returns a list of errors."""
    errors = []

    try:
        chain = normalize_chain(args.chain)
    except ConfigurationError as e:
        errors.append(e.message)
    else:
        enabled = get_config().get_enabled_chains()
        if chain not in enabled:
            supported = ", ".join(c.value for c in enabled)
            errors.append(f"Chain not configured: {chain.value} (configured: {supported})")

    for wallet in args.wallets:
        if not wallet.lower().startswith("0x") or len(wallet) != 42:
            errors.append(f"Invalid wallet address: {wallet}")

    if args.delay is not None and args.delay < 0:
        errors.append("--delay must not be negative")

    if args.keep_trades and not args.reset:
        errors.append("--keep-trades requires --reset")

    return errors


def build_config(args: argparse.Namespace) -> SyncConfig:
    """Default configuration overridden by CLI arguments."""
    config = get_config()
    overrides = {}
    if args.delay is not None:
        overrides["inter_item_delay_seconds"] = args.delay
    if args.database_url:
        overrides["database_url"] = args.database_url
    return replace(config, **overrides) if overrides else config


# ============================================================
# MAIN ENTRY POINT
# ============================================================

async def async_main(args: argparse.Namespace) -> int:
    """Run one cycle per wallet; returns the exit code."""
    config = build_config(args)
    chain: Chain = normalize_chain(args.chain)

    try:
        alchemy = AlchemyClient(chain, config)
    except ConfigurationError as e:
        logging.error(f"Configuration error: {e.message}")
        return 1

    prices = CryptoCompareClient(config)
    store = TradeStore.from_url(config.database_url)
    status = SyncStatusTracker()
    engine = WalletSyncEngine(
        clients={chain: alchemy},
        store=store,
        valuation=USDValuation(prices.get_historical_native_price, config),
        progress=status,
        config=config,
    )

    try:
        if args.reset:
            for wallet in args.wallets:
                deleted = store.reset_wallet(wallet, chain, purge_trades=not args.keep_trades)
                print(f"{wallet} [{chain.value}] reset (deleted {deleted} trades)")
        status.init_sync()
        batch = await engine.sync_wallets((wallet, chain) for wallet in args.wallets)
        if batch.success:
            status.set_done()
        else:
            status.set_error(f"{len(batch.failures)} wallet(s) failed")
    except KeyboardInterrupt:
        logging.info("Interrupted by user")
        return 130
    finally:
        await alchemy.close()
        await prices.close()
        store.close()

    for result in batch.results:
        print(f"{result.wallet_address} [{result.chain.value}] {result.summary()} "
              f"(cursor {result.last_synced_cursor})")
    for label, error in batch.failures.items():
        print(f"{label} FAILED: {error}", file=sys.stderr)

    return 0 if batch.success else 1


def main(argv: Optional[List[str]] = None) -> int:
    """
    Main CLI entry point.

    Args:
        argv: Command line arguments (default: sys.argv[1:])

    Returns:
        Exit code
    """
    parser = create_parser()
    args = parser.parse_args(argv)

    errors = validate_args(args)
    if errors:
        for error in errors:
            print(f"Error: {error}", file=sys.stderr)
        return 1

    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    return asyncio.run(async_main(args))


# ============================================================
# MODULE EXECUTION
# ============================================================

if __name__ == "__main__":
    sys.exit(main())
