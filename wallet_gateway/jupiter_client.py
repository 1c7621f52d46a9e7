"""
Jupiter Aggregator API client for quotes, swap transactions and prices.
"""
import asyncio
import logging
from typing import Any, Dict, List, Optional, Tuple

import httpx

from .errors import (
    BadRequestError,
    GatewayError,
    UpstreamHTTPError,
    UpstreamInvalidResponseError,
)
from .fallback import Candidate, fetch_json, run_fallback
from .utils import endpoint_label, is_nonzero_amount, short_mint

logger = logging.getLogger(__name__)


class JupiterClient:
    """Client for Jupiter Aggregator API with ordered endpoint fallback."""

    def __init__(
        self,
        quote_urls: List[str],
        swap_urls: List[str],
        price_url: str,
        api_key: Optional[str] = None,
        timeout: float = 20.0,
        http_client: Optional[httpx.AsyncClient] = None,
        max_retries: int = 1,
        backoff_base_seconds: float = 1.0,
        backoff_max_seconds: float = 30.0
    ):
        """
        Initialize Jupiter API client.

        Args:
            quote_urls: Quote endpoints in priority order
            swap_urls: Swap-build endpoints in priority order
            price_url: Price API endpoint
            api_key: Jupiter API key, sent as x-api-key when set
            timeout: Request timeout in seconds
            http_client: Shared httpx client (created and owned here if None)
            max_retries: Retries of the same URL on 429/5xx
            backoff_base_seconds: Retry wait is backoff_base_seconds * attempt
            backoff_max_seconds: Upper bound on any retry wait, Retry-After included
        """
        self.quote_urls = list(quote_urls)
        self.swap_urls = list(swap_urls)
        self.price_url = price_url
        self.api_key = api_key
        self.timeout = timeout
        self.max_retries = max_retries
        self.backoff_base_seconds = backoff_base_seconds
        self.backoff_max_seconds = backoff_max_seconds

        headers = {"Accept": "application/json"}
        if api_key:
            # Jupiter API expects API key in x-api-key header, not Authorization
            headers["x-api-key"] = api_key

        self._owns_client = http_client is None
        self.client = http_client or httpx.AsyncClient(timeout=timeout)
        self.headers = headers

    def _retry_wait(self, response: httpx.Response, attempt: int) -> float:
        wait_time = self.backoff_base_seconds * attempt
        retry_after = response.headers.get("Retry-After")
        if retry_after:
            try:
                wait_time = float(retry_after)
            except ValueError:
                pass
        return min(max(wait_time, 0.0), self.backoff_max_seconds)

    async def _try_get_quote_from_url(
        self,
        url: str,
        params: Dict[str, Any]
    ) -> Tuple[Optional[Dict[str, Any]], Optional[str]]:
        """
        Try to get a quote from one URL.

        Returns:
            (quote, error_type) where error_type is:
            - None: success
            - 'no_route': 400/404, pair not supported here
            - 'empty': 2xx with missing or zero outAmount
            - '429' / 'http': status error after retries
            - 'network': connection error or timeout (not retried here)
        """
        label = endpoint_label(url)

        for attempt in range(1, self.max_retries + 2):
            try:
                response = await self.client.get(url, params=params, headers=self.headers, timeout=self.timeout)
            except httpx.HTTPError as e:
                logger.debug(f"Connection error for {label}: {e}. Will try next endpoint if available.")
                return None, 'network'

            status = response.status_code
            if status in (400, 404):
                # No route for this pair on this endpoint
                logger.debug(
                    f"Route not found for {short_mint(params['inputMint'])} -> "
                    f"{short_mint(params['outputMint'])} ({status}) at {label}"
                )
                return None, 'no_route'

            if status == 429 or status >= 500:
                if attempt <= self.max_retries:
                    wait_time = self._retry_wait(response, attempt)
                    logger.warning(
                        f"Jupiter API error {status} from {label}, "
                        f"retrying in {wait_time:.1f}s (attempt {attempt}/{self.max_retries})"
                    )
                    await asyncio.sleep(wait_time)
                    continue
                logger.error(f"Jupiter API error {status} from {label} after {self.max_retries} retries")
                return None, '429' if status == 429 else 'http'

            if status >= 300:
                logger.warning(f"Jupiter quote failed from {label}: {status} - {response.text[:200]}")
                return None, 'http'

            try:
                data = response.json()
            except ValueError:
                logger.warning(f"Jupiter returned invalid JSON from {label}")
                return None, 'empty'

            if not isinstance(data, dict) or not is_nonzero_amount(data.get("outAmount")):
                logger.debug(f"Jupiter returned empty quote from {label}")
                return None, 'empty'

            logger.debug(
                f"Quote from {label}: {short_mint(params['inputMint'])} -> "
                f"{short_mint(params['outputMint'])} in={params['amount']} out={data['outAmount']}"
            )
            return data, None

        return None, 'http'

    async def get_quote(
        self,
        input_mint: str,
        output_mint: str,
        amount: int,
        slippage_bps: int = 50
    ) -> Optional[Dict[str, Any]]:
        """
        Get a quote for swapping tokens, trying each quote URL in order.

        Args:
            input_mint: Input token mint address
            output_mint: Output token mint address
            amount: Amount in smallest unit (lamports for SOL)
            slippage_bps: Slippage in basis points (1 bps = 0.01%)

        Returns:
            Raw Jupiter quote dict, or None if all endpoints failed
        """
        params = {
            "inputMint": input_mint,
            "outputMint": output_mint,
            "amount": str(amount),
            "slippageBps": slippage_bps,
            "onlyDirectRoutes": "false",
            "asLegacyTransaction": "false",
        }

        for url in self.quote_urls:
            quote, error_type = await self._try_get_quote_from_url(url, params)
            if quote is not None:
                return quote

        if not self.quote_urls:
            logger.error("No Jupiter quote endpoints configured")
        else:
            logger.warning(
                f"All Jupiter quote endpoints exhausted for {short_mint(input_mint)} -> {short_mint(output_mint)}. "
                f"Tried: {len(self.quote_urls)} endpoints."
            )
        return None

    async def _post_swap(self, url: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        data = await fetch_json(
            self.client, "POST", url,
            json=payload,
            headers={**self.headers, "Content-Type": "application/json"},
            timeout=self.timeout
        )
        if not isinstance(data, dict):
            raise UpstreamInvalidResponseError("Invalid response from swap API")
        if data.get("error"):
            raise BadRequestError("Swap transaction error", details=data["error"])
        if not data.get("swapTransaction"):
            raise UpstreamInvalidResponseError("Missing swapTransaction in response")
        return data

    async def build_swap(
        self,
        quote_response: Dict[str, Any],
        user_public_key: str,
        wrap_and_unwrap_sol: bool = True,
        swap_mode: Optional[str] = None
    ) -> Dict[str, Any]:
        """
        Build an unsigned swap transaction from a quote.

        Args:
            quote_response: Quote as returned by get_quote
            user_public_key: Wallet address that will sign the transaction
            wrap_and_unwrap_sol: Auto wrap/unwrap SOL
            swap_mode: Optional ExactIn / ExactOut

        Returns:
            Jupiter swap response (swapTransaction, lastValidBlockHeight, ...)

        Raises:
            GatewayError: Jupiter rejected the request (400/404), status passed through
            BadRequestError: Jupiter answered with an ``error`` body
            AllCandidatesFailedError: Every swap endpoint failed
        """
        payload: Dict[str, Any] = {
            "quoteResponse": quote_response,
            "userPublicKey": user_public_key,
            "wrapAndUnwrapSol": wrap_and_unwrap_sol,
        }
        if swap_mode:
            payload["swapMode"] = swap_mode

        candidates = [
            Candidate(endpoint_label(url), lambda url=url: self._post_swap(url, payload))
            for url in self.swap_urls
        ]

        def is_client_error(error: Exception) -> bool:
            if isinstance(error, BadRequestError):
                return True
            return isinstance(error, UpstreamHTTPError) and error.is_client_error

        try:
            outcome = await run_fallback(
                candidates,
                timeout=self.timeout,
                label="jupiter swap",
                abort_on=is_client_error
            )
        except UpstreamHTTPError as e:
            raise GatewayError(
                "Failed to build swap transaction",
                details=e.details,
                status_code=e.status
            ) from e

        logger.info(
            f"Swap transaction built via {outcome.provider} "
            f"({len(outcome.value['swapTransaction'])} bytes base64)"
        )
        return outcome.value

    async def get_price(self, ids: List[str]) -> Dict[str, Any]:
        """
        Get USD prices for a list of mints.

        Returns:
            The ``data`` map of the price API (mint -> {id, price, ...})
        """
        data = await fetch_json(
            self.client, "GET", self.price_url,
            params={"ids": ",".join(ids)},
            headers=self.headers,
            timeout=self.timeout
        )
        if not isinstance(data, dict) or not isinstance(data.get("data"), dict):
            raise UpstreamInvalidResponseError("Jupiter price response has no data")
        return data["data"]

    async def close(self):
        if self._owns_client:
            await self.client.aclose()
