"""
DexScreener API client: token pairs, search and pair lookup with mirror fallback.
"""
import asyncio
import logging
from typing import Any, Dict, List, Optional

import httpx

from .config import FIXERCOIN_MINT, FXM_MINT, LOCKER_MINT
from .errors import BadRequestError, UpstreamError, UpstreamInvalidResponseError
from .fallback import Candidate, fetch_json, run_fallback
from .utils import endpoint_label

logger = logging.getLogger(__name__)

MAX_TOKENS_PER_BATCH = 30

# Pump.fun tokens are often missing from /tokens; their pool addresses are stable
MINT_TO_PAIR_ADDRESS = {
    FIXERCOIN_MINT: "5CgLEWq9VJUEQ8my8UaxEovuSWArGoXCvaftpbX4RQMy",
    LOCKER_MINT: "7X7KkV94Y9jFhkXEMhgVcMHMRzALiGj5xKmM6TT3cUvK",
    FXM_MINT: "BczJ8jo8Xghx2E6G3QKZiHQ6P5xYa5xP4oWc1F5HPXLX",
}

MINT_TO_SEARCH_SYMBOL = {
    FIXERCOIN_MINT: "FIXERCOIN",
    LOCKER_MINT: "LOCKER",
    FXM_MINT: "FXM",
}


def orient_pair(pair: Dict[str, Any], mint: str) -> Dict[str, Any]:
    """Return the pair with ``mint`` as baseToken, inverting prices if it was the quote side."""
    base = (pair.get("baseToken") or {}).get("address")
    quote = (pair.get("quoteToken") or {}).get("address")
    if quote != mint or base == mint:
        return pair

    def invert(value: Any) -> str:
        try:
            number = float(value)
        except (TypeError, ValueError):
            return "0"
        return str(1 / number) if number > 0 else "0"

    return {
        **pair,
        "baseToken": pair.get("quoteToken"),
        "quoteToken": pair.get("baseToken"),
        "priceUsd": invert(pair.get("priceUsd")),
        "priceNative": invert(pair.get("priceNative")),
    }


def _pair_mints(pair: Dict[str, Any]) -> List[str]:
    return [
        address for address in (
            (pair.get("baseToken") or {}).get("address"),
            (pair.get("quoteToken") or {}).get("address"),
        ) if address
    ]


class DexScreenerClient:
    """Client for the DexScreener public API."""

    def __init__(
        self,
        base_urls: List[str],
        timeout: float = 8.0,
        http_client: Optional[httpx.AsyncClient] = None
    ):
        """
        Args:
            base_urls: API roots in priority order (``.../latest/dex``)
            timeout: Per-request timeout in seconds
            http_client: Shared httpx client (created and owned here if None)
        """
        self.base_urls = [url.rstrip("/") for url in base_urls]
        self.timeout = timeout
        self._owns_client = http_client is None
        self.client = http_client or httpx.AsyncClient(
            timeout=timeout,
            headers={"Accept": "application/json", "User-Agent": "Mozilla/5.0 (compatible; SolanaWallet/1.0)"}
        )

    async def _get(self, path: str, params: Optional[Dict[str, str]] = None) -> Dict[str, Any]:
        """GET ``path`` from the first mirror that answers with a JSON object."""
        candidates = [
            Candidate(
                endpoint_label(base),
                lambda base=base: fetch_json(self.client, "GET", f"{base}{path}", params=params)
            )
            for base in self.base_urls
        ]
        outcome = await run_fallback(
            candidates,
            validate=lambda data: isinstance(data, dict),
            timeout=self.timeout,
            label="dexscreener"
        )
        return outcome.value

    async def _get_batch(self, batch: List[str]) -> Dict[str, Any]:
        return await self._get(f"/tokens/{','.join(batch)}")

    async def get_pair(self, pair_address: str, chain: str = "solana") -> Optional[Dict[str, Any]]:
        data = await self._get(f"/pairs/{chain}/{pair_address}")
        pairs = data.get("pairs") or ([data["pair"]] if data.get("pair") else [])
        return pairs[0] if pairs else None

    async def search(self, query: str) -> Dict[str, Any]:
        if not query or not query.strip():
            raise BadRequestError("Missing 'q' parameter for search query")
        data = await self._get("/search/", params={"q": query.strip()})
        if not isinstance(data.get("pairs"), list):
            raise UpstreamInvalidResponseError("DexScreener search returned no pairs list")
        return data

    async def _lookup_missing(self, mint: str) -> Optional[Dict[str, Any]]:
        """Pair-address lookup, then symbol search, for a mint /tokens did not return."""
        pair_address = MINT_TO_PAIR_ADDRESS.get(mint)
        if pair_address:
            try:
                pair = await self.get_pair(pair_address)
                if pair:
                    return orient_pair(pair, mint)
                logger.warning(f"[DexScreener] Pair lookup returned no pairs for {mint}")
            except UpstreamError as e:
                logger.warning(f"[DexScreener] Pair address lookup failed for {mint}: {e.message}")

        symbol = MINT_TO_SEARCH_SYMBOL.get(mint)
        if not symbol:
            return None
        try:
            data = await self.search(symbol)
        except UpstreamError as e:
            logger.warning(f"[DexScreener] Search fallback failed for {mint}: {e.message}")
            return None

        pairs = data["pairs"]
        for pair in pairs:
            if mint in _pair_mints(pair) and pair.get("chainId") == "solana":
                return orient_pair(pair, mint)
        logger.warning(f"[DexScreener] Search returned no matching results for {mint}")
        return None

    async def get_tokens(self, mints: List[str]) -> Dict[str, Any]:
        """
        Get Solana pairs for a list of token mints.

        Mints are de-duplicated and requested in batches of MAX_TOKENS_PER_BATCH
        concurrently. Mints missing from the batch answers go through the
        pair-address / search fallback.

        Returns:
            {"schemaVersion": str, "pairs": [...]} with pairs unique by pairAddress

        Raises:
            BadRequestError: No mints given
            AllCandidatesFailedError: Every batch failed on every mirror
        """
        unique_mints = list(dict.fromkeys(m.strip() for m in mints if m and m.strip()))
        if not unique_mints:
            raise BadRequestError("No valid token mints provided.")

        batches = [
            unique_mints[i:i + MAX_TOKENS_PER_BATCH]
            for i in range(0, len(unique_mints), MAX_TOKENS_PER_BATCH)
        ]
        results = await asyncio.gather(*(self._get_batch(b) for b in batches), return_exceptions=True)

        failures = [r for r in results if isinstance(r, BaseException)]
        if len(failures) == len(results):
            raise failures[0]
        for failure in failures:
            logger.warning(f"[DexScreener] Batch failed: {failure}")

        schema_version = "1.0.0"
        pairs: List[Dict[str, Any]] = []
        for data in results:
            if isinstance(data, BaseException):
                continue
            schema_version = data.get("schemaVersion", schema_version)
            if not isinstance(data.get("pairs"), list):
                logger.warning("[DexScreener] Invalid response format from batch")
                continue
            pairs.extend(data["pairs"])

        found = {mint for pair in pairs for mint in _pair_mints(pair)}
        missing = [mint for mint in unique_mints if mint not in found]
        if missing:
            logger.info(f"[DexScreener] {len(missing)} mints not found via batch, trying pair/search fallback")
            for mint in missing:
                pair = await self._lookup_missing(mint)
                if pair:
                    pairs.append(pair)

        seen = set()
        solana_pairs = []
        for pair in pairs:
            if pair.get("chainId", "solana") != "solana":
                continue
            key = pair.get("pairAddress")
            if key and key in seen:
                continue
            seen.add(key)
            solana_pairs.append(pair)

        return {"schemaVersion": schema_version, "pairs": solana_pairs}

    async def close(self):
        if self._owns_client:
            await self.client.aclose()
