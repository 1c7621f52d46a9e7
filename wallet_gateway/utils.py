"""
Utility functions for the wallet gateway.
"""
import secrets
import time
from typing import Any, Optional

LAMPORTS_PER_SOL = 1_000_000_000


def endpoint_label(url: str, max_length: int = 50) -> str:
    """
    Short, log-safe label for an upstream URL.

    Query strings are dropped because providers such as Helius carry the API
    key there.
    """
    return url.split("?", 1)[0][:max_length]


def short_mint(mint: str) -> str:
    return f"{mint[:8]}..." if len(mint) > 8 else mint


def now_ms() -> int:
    return int(time.time() * 1000)


def new_id(prefix: str) -> str:
    """Generate an id like ``order-1700000000000-k3j9x2``."""
    alphabet = "abcdefghijklmnopqrstuvwxyz0123456789"
    suffix = "".join(secrets.choice(alphabet) for _ in range(6))
    return f"{prefix}-{now_ms()}-{suffix}"


def lamports_to_sol(lamports: int) -> float:
    return lamports / LAMPORTS_PER_SOL


def is_nonzero_amount(value: Any) -> bool:
    """True for amounts like ``"1500"`` or ``1500``; False for None, "", "0", 0."""
    if value is None or value == "":
        return False
    try:
        return float(value) > 0
    except (TypeError, ValueError):
        return False


def first_present(*values: Optional[Any]) -> Optional[Any]:
    """Return the first value that is not None or an empty string."""
    for value in values:
        if value is not None and value != "":
            return value
    return None
