"""
Pytest configuration and fixtures for auto-burner tests.
"""
import pytest
from unittest.mock import AsyncMock, MagicMock
from solders.keypair import Keypair
from solders.pubkey import Pubkey

from autoburner.claimer import ClaimConfig
from autoburner.config import BurnerConfig
from autoburner.price_guard import PriceGuardConfig
from autoburner.state import CycleState
from autoburner.trader import TradeConfig


@pytest.fixture
def mock_keypair():
    """Create a keypair for testing."""
    return Keypair()


@pytest.fixture
def token_mint():
    """A token mint address."""
    return "DezXAZ8z7PnrnRJjz3wXBoRgixCa6xjnB7YaB1pPB263"


@pytest.fixture
def sol_mint():
    """SOL mint address."""
    return "So11111111111111111111111111111111111111112"


@pytest.fixture
def mock_solana_client(mock_keypair):
    """Create a mock SolanaClient bound to a real keypair."""
    client = AsyncMock()
    client.wallet = mock_keypair
    client.pubkey = mock_keypair.pubkey()
    client.sign_versioned = MagicMock(side_effect=lambda raw: f"signed:{len(raw)}")
    return client


@pytest.fixture
def mock_pumpportal_client():
    """Create a mock PumpPortalClient (no API key)."""
    client = AsyncMock()
    client.api_key = None
    return client


@pytest.fixture
def mock_jupiter_client():
    """Create a mock JupiterClient for testing."""
    return AsyncMock()


@pytest.fixture
def cycle_state():
    """Fresh cycle state."""
    return CycleState()


@pytest.fixture
def burner_config(mock_keypair, token_mint):
    """BurnerConfig with defaults and one RPC URL."""
    return BurnerConfig(
        rpc_urls=["https://rpc.example"],
        wallet=mock_keypair,
        mint=Pubkey.from_string(token_mint),
        claim=ClaimConfig(),
        trade=TradeConfig(),
        guard=PriceGuardConfig(),
        claim_cooldown_cycles=3,
        min_buy_lamports=500_000,
        interval_seconds=0,
    )
