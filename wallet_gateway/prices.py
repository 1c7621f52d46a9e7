"""
Token price aggregation: DexScreener, then Jupiter, then a static fallback table.
"""
import logging
import math
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from .config import FIXERCOIN_MINT, FXM_MINT, LOCKER_MINT, SOL_MINT, USDC_MINT, USDT_MINT
from .dexscreener_client import MINT_TO_PAIR_ADDRESS, DexScreenerClient, orient_pair
from .errors import AllCandidatesFailedError, BadRequestError, NotFoundError, UpstreamInvalidResponseError
from .fallback import Candidate, run_fallback
from .jupiter_client import JupiterClient
from .utils import short_mint

logger = logging.getLogger(__name__)

TOKEN_MINTS = {
    "SOL": SOL_MINT,
    "USDC": USDC_MINT,
    "USDT": USDT_MINT,
    "FIXERCOIN": FIXERCOIN_MINT,
    "LOCKER": LOCKER_MINT,
    "FXM": FXM_MINT,
}

STABLECOINS = {"USDC", "USDT"}

# Last-resort USD prices when every live source fails
FALLBACK_USD = {
    "SOL": 149.38,
    "USDC": 1.0,
    "USDT": 1.0,
    "FIXERCOIN": 0.00008139,
    "LOCKER": 0.00001112,
    "FXM": 0.000003567,
}

PKR_PER_USD = 280
MARKUP = 1.0425
SUPPORTED_CURRENCIES = ("PKR",)


@dataclass
class PriceQuote:
    token: Optional[str]
    mint: str
    price_usd: float
    source: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "token": self.token,
            "mint": self.mint,
            "priceUsd": self.price_usd,
            "source": self.source,
        }


def _positive_price(value: Any) -> float:
    try:
        price = float(value)
    except (TypeError, ValueError):
        raise UpstreamInvalidResponseError(f"Invalid price value: {value!r}")
    if not math.isfinite(price) or price <= 0:
        raise UpstreamInvalidResponseError(f"Invalid price value: {value!r}")
    return price


def resolve_token(token_or_mint: str):
    """
    Map a symbol (optionally suffixed, e.g. ``USDC:1``) or a mint to (symbol, mint).

    Unknown mints resolve to (None, mint).
    """
    value = (token_or_mint or "").strip()
    if not value:
        raise BadRequestError("Missing mint or token parameter")
    symbol = value.split(":")[0].upper()
    if symbol in TOKEN_MINTS:
        return symbol, TOKEN_MINTS[symbol]
    for known_symbol, mint in TOKEN_MINTS.items():
        if mint == value:
            return known_symbol, mint
    return None, value


class PriceService:
    """Resolves USD prices through an ordered list of price sources."""

    def __init__(
        self,
        dexscreener: DexScreenerClient,
        jupiter: JupiterClient,
        fallback_usd: Optional[Dict[str, float]] = None,
        pair_addresses: Optional[Dict[str, str]] = None,
        timeout: Optional[float] = None
    ):
        self.dexscreener = dexscreener
        self.jupiter = jupiter
        self.fallback_usd = FALLBACK_USD if fallback_usd is None else fallback_usd
        self.pair_addresses = MINT_TO_PAIR_ADDRESS if pair_addresses is None else pair_addresses
        self.timeout = timeout

    async def _from_pair(self, mint: str) -> float:
        pair = await self.dexscreener.get_pair(self.pair_addresses[mint])
        if not pair:
            raise UpstreamInvalidResponseError("Pair lookup returned no pairs")
        return _positive_price(orient_pair(pair, mint).get("priceUsd"))

    async def _from_tokens(self, mint: str) -> float:
        data = await self.dexscreener.get_tokens([mint])
        pairs = [
            orient_pair(pair, mint) for pair in data["pairs"]
            if mint in ((pair.get("baseToken") or {}).get("address"), (pair.get("quoteToken") or {}).get("address"))
        ]
        if not pairs:
            raise UpstreamInvalidResponseError("No DexScreener pairs for mint")
        # Deepest pool wins
        best = max(pairs, key=lambda p: (p.get("liquidity") or {}).get("usd") or 0)
        return _positive_price(best.get("priceUsd"))

    async def _from_jupiter(self, mint: str) -> float:
        data = await self.jupiter.get_price([mint])
        entry = data.get(mint) or {}
        return _positive_price(entry.get("price"))

    def _candidates(self, mint: str) -> List[Candidate]:
        candidates = []
        if mint in self.pair_addresses:
            candidates.append(Candidate("dexscreener-pair", lambda: self._from_pair(mint)))
        candidates.append(Candidate("dexscreener", lambda: self._from_tokens(mint)))
        candidates.append(Candidate("jupiter", lambda: self._from_jupiter(mint)))
        return candidates

    async def get_token_price(self, token_or_mint: str) -> PriceQuote:
        """
        Get the USD price of a token symbol or mint.

        Stablecoins are pinned to 1.0. Otherwise DexScreener (pair address, then
        token lookup) and Jupiter are tried in order, then the fallback table.

        Raises:
            BadRequestError: Empty token
            NotFoundError: No source and no fallback price for the token
        """
        symbol, mint = resolve_token(token_or_mint)
        if symbol in STABLECOINS:
            return PriceQuote(token=symbol, mint=mint, price_usd=1.0, source="stablecoin")

        try:
            outcome = await run_fallback(self._candidates(mint), timeout=self.timeout, label="price")
        except AllCandidatesFailedError as e:
            if symbol in self.fallback_usd:
                logger.info(f"Using fallback price for {symbol}: ${self.fallback_usd[symbol]}")
                return PriceQuote(token=symbol, mint=mint, price_usd=self.fallback_usd[symbol], source="fallback")
            raise NotFoundError(
                f"Price not available for {short_mint(mint)}",
                details=[a.to_dict() for a in e.attempts]
            ) from e

        logger.debug(f"Price for {symbol or short_mint(mint)}: ${outcome.value} via {outcome.provider}")
        return PriceQuote(token=symbol, mint=mint, price_usd=outcome.value, source=outcome.provider)

    async def get_sol_price(self) -> PriceQuote:
        return await self.get_token_price("SOL")

    async def get_exchange_rate(self, token: str = "FIXERCOIN", currency: str = "PKR") -> Dict[str, Any]:
        """
        Fiat rate for a token: USD price x PKR_PER_USD x MARKUP.

        Unknown symbols fall back to the FIXERCOIN rate.
        """
        currency = (currency or "PKR").upper()
        if currency not in SUPPORTED_CURRENCIES:
            raise BadRequestError(f"Unsupported currency: {currency}")

        symbol = (token or "FIXERCOIN").split(":")[0].upper()
        if symbol not in TOKEN_MINTS:
            symbol = "FIXERCOIN"

        quote = await self.get_token_price(symbol)
        rate = quote.price_usd * PKR_PER_USD * MARKUP
        logger.info(
            f"[ExchangeRate] {symbol}: ${quote.price_usd:.6f} USD -> {rate:.2f} {currency} "
            f"(with {(MARKUP - 1) * 100:.2f}% markup)"
        )
        return {
            "token": symbol,
            "currency": currency,
            "priceUsd": quote.price_usd,
            "priceInPKR": rate,
            "rate": rate,
            "pkrPerUsd": PKR_PER_USD,
            "markup": MARKUP,
            "source": quote.source,
        }
