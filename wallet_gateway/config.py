"""
Gateway configuration: well-known mints, upstream URLs and Settings loading.

Precedence: environment (.env loaded first) > config.json > defaults.
"""
import json
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

import dotenv

logger = logging.getLogger(__name__)

ROOT_DIR = Path(__file__).parent.parent

# Token mint addresses
SOL_MINT = "So11111111111111111111111111111111111111112"
USDC_MINT = "EPjFWdd5AufqSSqeM2qN1xzybapC8G4wEGGkZwyTDt1v"
USDT_MINT = "Es9vMFrzaCERmJfrF4H2FYD4KCoNkY11McCe8BenEns"
FIXERCOIN_MINT = "H4qKn8FMFha8jJuj8xMryMqRhH3h7GjLuxw7TVixpump"
LOCKER_MINT = "EN1nYrW6375zMPUkpkGyGSEXW8WmAqYu4yhf6xnGpump"
FXM_MINT = "7Fnx57ztmhdpL1uAGmUY1ziwPG2UDKmG6poB4ibjpump"

TOKEN_PROGRAM_ID = "TokenkegQfeZyiNwAJbNbGKPFXCWuBvf9Ss623VQ5DA"

# Public endpoints, tried after any custom RPC URLs - ordered by preference
PUBLIC_RPC_ENDPOINTS = [
    "https://api.mainnet-beta.solana.com",
    "https://solana.publicnode.com",
    "https://rpc.ankr.com/solana",
    "https://api.mainnet-beta.solflare.network",
]

JUPITER_QUOTE_URLS = [
    "https://quote-api.jup.ag/v6/quote",
    "https://lite-api.jup.ag/swap/v1/quote",
]
JUPITER_SWAP_URLS = [
    "https://quote-api.jup.ag/v6/swap",
    "https://lite-api.jup.ag/swap/v1/swap",
]
JUPITER_PRICE_URL = "https://lite-api.jup.ag/price/v2"
METEORA_BASE_URL = "https://api.meteora.ag/swap/v3"
PUMPFUN_QUOTE_URL = "https://api.pumpfun.com/api/v1/quote"
PUMPPORTAL_TRADE_URL = "https://pumpportal.fun/api/trade"
PUMPFUN_CURVE_URL = "https://pump.fun/api/curve"
DEXSCREENER_BASE_URLS = [
    "https://api.dexscreener.com/latest/dex",
    "https://api.dexscreener.io/latest/dex",
]

DEFAULT_BRIDGE_TOKENS = [USDC_MINT, SOL_MINT, USDT_MINT]
DEFAULT_PUMP_MINTS = [FIXERCOIN_MINT, LOCKER_MINT]


@dataclass
class Settings:
    """Runtime configuration for the gateway."""
    rpc_endpoints: List[str] = field(default_factory=lambda: list(PUBLIC_RPC_ENDPOINTS))
    jupiter_quote_urls: List[str] = field(default_factory=lambda: list(JUPITER_QUOTE_URLS))
    jupiter_swap_urls: List[str] = field(default_factory=lambda: list(JUPITER_SWAP_URLS))
    jupiter_price_url: str = JUPITER_PRICE_URL
    jupiter_api_key: Optional[str] = None
    meteora_base_url: str = METEORA_BASE_URL
    pumpfun_quote_url: str = PUMPFUN_QUOTE_URL
    pumpfun_trade_url: str = PUMPPORTAL_TRADE_URL
    pumpfun_curve_url: str = PUMPFUN_CURVE_URL
    dexscreener_base_urls: List[str] = field(default_factory=lambda: list(DEXSCREENER_BASE_URLS))
    bridge_tokens: List[str] = field(default_factory=lambda: list(DEFAULT_BRIDGE_TOKENS))
    pump_mints: List[str] = field(default_factory=lambda: list(DEFAULT_PUMP_MINTS))
    gateway_api_key: Optional[str] = None
    rpc_timeout: float = 10.0
    quote_timeout: float = 20.0
    price_timeout: float = 8.0
    pumpfun_timeout: float = 15.0
    kv_data_dir: Optional[str] = None
    host: str = "0.0.0.0"
    port: int = 8080
    log_level: str = "INFO"
    log_file: Optional[str] = "wallet_gateway.log"


def _clean(value: Optional[str]) -> Optional[str]:
    """Return a stripped value, or None for unset/blank variables."""
    if value is None:
        return None
    value = value.strip()
    return value or None


def _env_float(env: Mapping[str, str], name: str, default: float) -> float:
    raw = _clean(env.get(name))
    if raw is None:
        return default
    try:
        value = float(raw)
    except ValueError:
        raise ValueError(f"{name} must be a number, got {raw!r}")
    if value <= 0:
        raise ValueError(f"{name} must be positive, got {raw!r}")
    return value


def _env_int(env: Mapping[str, str], name: str, default: int) -> int:
    raw = _clean(env.get(name))
    if raw is None:
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}")


def _env_list(env: Mapping[str, str], name: str) -> Optional[List[str]]:
    raw = _clean(env.get(name))
    if raw is None:
        return None
    return [item.strip() for item in raw.split(",") if item.strip()]


def _dedupe(items: List[str]) -> List[str]:
    seen = set()
    return [x for x in items if not (x in seen or seen.add(x))]


def build_rpc_endpoints(
    env: Mapping[str, str],
    public_endpoints: Optional[List[str]] = None
) -> List[str]:
    """
    Build the ordered RPC endpoint list.

    Custom endpoints come first (SOLANA_RPC_URL, Helius, Alchemy, Moralis),
    then the public fallbacks. Blank values are skipped and duplicates removed.
    """
    endpoints: List[str] = []

    solana_rpc_url = _clean(env.get("SOLANA_RPC_URL"))
    if solana_rpc_url:
        endpoints.append(solana_rpc_url)

    helius_api_key = _clean(env.get("HELIUS_API_KEY"))
    if helius_api_key:
        endpoints.append(f"https://mainnet.helius-rpc.com/?api-key={helius_api_key}")
    helius_rpc_url = _clean(env.get("HELIUS_RPC_URL"))
    if helius_rpc_url:
        endpoints.append(helius_rpc_url)

    for name in ("ALCHEMY_RPC_URL", "MORALIS_RPC_URL"):
        value = _clean(env.get(name))
        if value:
            endpoints.append(value)

    endpoints.extend(public_endpoints if public_endpoints is not None else PUBLIC_RPC_ENDPOINTS)
    return _dedupe(endpoints)


def load_config_file(config_path: Optional[Path] = None) -> Dict[str, Any]:
    """Load optional overrides from config.json."""
    config_path = config_path or ROOT_DIR / "config.json"
    if not config_path.exists():
        logger.debug(f"config.json not found at {config_path}, using defaults")
        return {}
    with open(config_path, "r") as f:
        return json.load(f)


def load_settings(
    env: Optional[Mapping[str, str]] = None,
    config_path: Optional[Path] = None
) -> Settings:
    """
    Load Settings from .env, config.json and the environment.

    Args:
        env: Explicit environment mapping (skips .env loading when given)
        config_path: Path to config.json (defaults to the repository root)

    Returns:
        Settings instance
    """
    if env is None:
        env_path = ROOT_DIR / ".env"
        if env_path.exists():
            dotenv.load_dotenv(env_path)
        env = os.environ

    config = load_config_file(config_path)
    timeouts = config.get("timeouts", {})
    defaults = Settings()

    public_endpoints = config.get("public_rpc_endpoints", PUBLIC_RPC_ENDPOINTS)
    kv_data_dir = _clean(env.get("KV_DATA_DIR"))
    log_file = env.get("LOG_FILE")

    return Settings(
        rpc_endpoints=build_rpc_endpoints(env, public_endpoints),
        jupiter_quote_urls=config.get("jupiter_quote_urls", defaults.jupiter_quote_urls),
        jupiter_swap_urls=config.get("jupiter_swap_urls", defaults.jupiter_swap_urls),
        jupiter_api_key=_clean(env.get("JUPITER_API_KEY")),
        bridge_tokens=(
            _env_list(env, "BRIDGE_TOKENS")
            or config.get("bridge_tokens")
            or defaults.bridge_tokens
        ),
        pump_mints=config.get("pump_mints", defaults.pump_mints),
        gateway_api_key=_clean(env.get("GATEWAY_API_KEY")),
        rpc_timeout=_env_float(env, "RPC_TIMEOUT_SECONDS", timeouts.get("rpc", defaults.rpc_timeout)),
        quote_timeout=_env_float(env, "QUOTE_TIMEOUT_SECONDS", timeouts.get("quote", defaults.quote_timeout)),
        price_timeout=_env_float(env, "PRICE_TIMEOUT_SECONDS", timeouts.get("price", defaults.price_timeout)),
        pumpfun_timeout=_env_float(env, "PUMPFUN_TIMEOUT_SECONDS", timeouts.get("pumpfun", defaults.pumpfun_timeout)),
        kv_data_dir=kv_data_dir,
        host=_clean(env.get("HOST")) or defaults.host,
        port=_env_int(env, "PORT", defaults.port),
        log_level=(_clean(env.get("LOG_LEVEL")) or defaults.log_level).upper(),
        # LOG_FILE="" disables file logging; unset keeps the default file
        log_file=defaults.log_file if log_file is None else _clean(log_file),
    )
