"""
Shared fixtures for trade sync tests.
"""

from unittest.mock import AsyncMock, MagicMock

import pytest

from trade_sync.config import ClassifierConfig, SyncConfig
from trade_sync.storage import TradeStore


@pytest.fixture
def sync_config():
    """Configuration with test credentials and no inter-item delay."""
    return SyncConfig(
        alchemy_api_key="test-alchemy-key",
        cryptocompare_api_key=None,
        inter_item_delay_seconds=0,
        database_url="sqlite://",
    )


@pytest.fixture
def classifier_config():
    return ClassifierConfig()


@pytest.fixture
def store():
    """Trade store backed by an in-memory SQLite database."""
    trade_store = TradeStore.from_url("sqlite://")
    yield trade_store
    trade_store.close()


@pytest.fixture
def chain_client():
    """Transfer source and tip query with no activity."""
    client = MagicMock()
    client.get_block_number = AsyncMock(return_value=22500100)
    client.get_asset_transfers = AsyncMock(return_value=[])
    return client
