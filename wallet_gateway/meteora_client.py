"""
Meteora swap API client.
"""
import asyncio
import logging
from typing import Any, Dict, Optional

import httpx

from .errors import UpstreamInvalidResponseError
from .fallback import fetch_json
from .utils import endpoint_label, first_present, is_nonzero_amount, short_mint

logger = logging.getLogger(__name__)


def normalize_out_amount(quote: Dict[str, Any]) -> Optional[str]:
    """Meteora reports output as estimatedOut, outAmount or minReceived depending on route."""
    for key in ("estimatedOut", "outAmount", "minReceived"):
        if is_nonzero_amount(quote.get(key)):
            return str(quote[key])
    return None


class MeteoraClient:
    """Client for the Meteora swap API (quote + swap build)."""

    def __init__(
        self,
        base_url: str,
        timeout: float = 20.0,
        http_client: Optional[httpx.AsyncClient] = None,
        max_retries: int = 1,
        backoff_base_seconds: float = 1.0
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.max_retries = max_retries
        self.backoff_base_seconds = backoff_base_seconds
        self._owns_client = http_client is None
        self.client = http_client or httpx.AsyncClient(timeout=timeout)

    async def get_quote(self, input_mint: str, output_mint: str, amount: int) -> Optional[Dict[str, Any]]:
        """
        Get a Meteora quote.

        400/404 means the pair is unsupported and returns None at once;
        429, 5xx, transport errors and empty quotes are retried up to max_retries.

        Returns:
            Quote dict with a normalized ``outAmount``, or None
        """
        url = f"{self.base_url}/quote"
        params = {"inputMint": input_mint, "outputMint": output_mint, "amount": str(amount)}
        label = endpoint_label(url)

        for attempt in range(1, self.max_retries + 2):
            can_retry = attempt <= self.max_retries
            try:
                response = await self.client.get(url, params=params, timeout=self.timeout)
            except httpx.HTTPError as e:
                logger.warning(f"Meteora transient error (attempt {attempt}): {e}")
                if can_retry:
                    await asyncio.sleep(self.backoff_base_seconds * attempt / 2)
                    continue
                return None

            status = response.status_code
            if status in (400, 404):
                logger.debug(f"Meteora has no route for {short_mint(input_mint)} -> {short_mint(output_mint)} ({status})")
                return None
            if status == 429 or status >= 500:
                logger.warning(f"Meteora API error {status} from {label} (attempt {attempt})")
                if can_retry:
                    await asyncio.sleep(self.backoff_base_seconds * attempt)
                    continue
                return None
            if status >= 300:
                logger.warning(f"Meteora quote failed: {status} - {response.text[:200]}")
                return None

            try:
                data = response.json()
            except ValueError:
                data = None

            out_amount = normalize_out_amount(data) if isinstance(data, dict) else None
            if out_amount is None:
                logger.debug(f"Meteora returned empty quote (attempt {attempt})")
                if can_retry:
                    await asyncio.sleep(self.backoff_base_seconds * attempt)
                    continue
                return None

            logger.debug(f"Meteora quote success: {short_mint(input_mint)} -> {short_mint(output_mint)}: {out_amount}")
            return {**data, "outAmount": out_amount}

        return None

    async def build_swap(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        """
        Build an unsigned Meteora swap transaction.

        Raises:
            UpstreamHTTPError / UpstreamTimeoutError: Upstream failure
            UpstreamInvalidResponseError: Response without a transaction
        """
        data = await fetch_json(self.client, "POST", f"{self.base_url}/swap", json=payload, timeout=self.timeout)
        if not isinstance(data, dict):
            raise UpstreamInvalidResponseError("Invalid response from Meteora swap API")
        transaction = first_present(data.get("swapTransaction"), data.get("transaction"))
        if transaction is None:
            raise UpstreamInvalidResponseError("Missing transaction in Meteora swap response")
        return data

    async def close(self):
        if self._owns_client:
            await self.client.aclose()
