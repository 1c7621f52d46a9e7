"""
Pytest configuration and fixtures for Solana Wallet Gateway tests.
"""
import json
from typing import Callable, Dict, List

import httpx
import pytest
from unittest.mock import AsyncMock
from solders.keypair import Keypair

from wallet_gateway.config import Settings


@pytest.fixture
def sol_mint():
    """SOL mint address."""
    return "So11111111111111111111111111111111111111112"


@pytest.fixture
def usdc_mint():
    """USDC mint address."""
    return "EPjFWdd5AufqSSqeM2qN1xzybapC8G4wEGGkZwyTDt1v"


@pytest.fixture
def usdt_mint():
    """USDT mint address."""
    return "Es9vMFrzaCERmJfrF4H2FYD4KCoNkY11McCe8BenEns"


@pytest.fixture
def fixercoin_mint():
    """FIXERCOIN (Pump.fun) mint address."""
    return "H4qKn8FMFha8jJuj8xMryMqRhH3h7GjLuxw7TVixpump"


@pytest.fixture
def bonk_mint():
    """BONK mint address."""
    return "DezXAZ8z7PnrnRJjz3wXBoRgixCa6xjnB7YaB1pPB263"


@pytest.fixture
def wallet_address():
    """A random valid wallet address."""
    return str(Keypair().pubkey())


@pytest.fixture
def settings():
    """Settings with two fake RPC endpoints and no file logging."""
    return Settings(
        rpc_endpoints=["https://rpc-primary.test", "https://rpc-secondary.test"],
        jupiter_quote_urls=["https://jup-a.test/quote", "https://jup-b.test/quote"],
        jupiter_swap_urls=["https://jup-a.test/swap"],
        dexscreener_base_urls=["https://dex.test/latest/dex"],
        log_file=None,
    )


@pytest.fixture
def mock_http():
    """
    Build an httpx.AsyncClient served by a handler.

    The returned factory also records every request on ``factory.requests``.
    """
    requests: List[httpx.Request] = []

    def factory(handler: Callable[[httpx.Request], httpx.Response]) -> httpx.AsyncClient:
        def recording_handler(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            return handler(request)
        return httpx.AsyncClient(transport=httpx.MockTransport(recording_handler))

    factory.requests = requests
    return factory


def json_body(request: httpx.Request) -> Dict:
    """Decode the JSON body of a recorded request."""
    return json.loads(request.content)


@pytest.fixture
def mock_jupiter_client():
    """Create a mock JupiterClient for testing."""
    return AsyncMock()


@pytest.fixture
def mock_meteora_client():
    """Create a mock MeteoraClient for testing."""
    return AsyncMock()


@pytest.fixture
def mock_pumpfun_client():
    """Create a mock PumpFunClient for testing."""
    return AsyncMock()
