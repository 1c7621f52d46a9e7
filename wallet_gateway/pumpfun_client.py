"""
Pump.fun client: bonding-curve quotes, curve state and PumpPortal trade transactions.
"""
import asyncio
import logging
from typing import Any, Dict, Iterable, Optional

import httpx

from .errors import BadRequestError, GatewayError, UpstreamHTTPError, UpstreamTimeoutError
from .fallback import fetch_json
from .utils import is_nonzero_amount, short_mint

logger = logging.getLogger(__name__)

TRADE_OPERATIONS = ("buy", "sell")


def is_pump_mint(mint: str, pump_mints: Iterable[str]) -> bool:
    return mint in set(pump_mints)


class PumpFunClient:
    """Client for Pump.fun quote/curve APIs and the PumpPortal trade API."""

    def __init__(
        self,
        quote_url: str,
        trade_url: str,
        curve_url: str,
        timeout: float = 15.0,
        http_client: Optional[httpx.AsyncClient] = None,
        retry_delay_seconds: float = 1.0
    ):
        self.quote_url = quote_url
        self.trade_url = trade_url
        self.curve_url = curve_url.rstrip("/")
        self.timeout = timeout
        self.retry_delay_seconds = retry_delay_seconds
        self._owns_client = http_client is None
        self.client = http_client or httpx.AsyncClient(timeout=timeout)

    async def _quote_request(self, params: Dict[str, str]) -> httpx.Response:
        return await self.client.get(self.quote_url, params=params, timeout=self.timeout)

    async def get_quote(self, input_mint: str, output_mint: str, amount: int) -> Optional[Dict[str, Any]]:
        """
        Get a Pump.fun quote.

        Returns:
            Quote dict with non-zero ``outAmount``, or None when Pump.fun has no
            route (400/404, zero output, or a failed single retry on 429/5xx)
        """
        params = {"input_mint": input_mint, "output_mint": output_mint, "amount": str(amount)}

        try:
            response = await self._quote_request(params)
            if response.status_code == 429 or response.status_code >= 500:
                logger.warning(f"PumpFun API error {response.status_code}, retrying...")
                await asyncio.sleep(self.retry_delay_seconds)
                response = await self._quote_request(params)
        except httpx.HTTPError as e:
            logger.warning(f"PumpFun quote error: {e}")
            return None

        if response.status_code in (400, 404):
            logger.debug(f"PumpFun has no route for {short_mint(input_mint)} -> {short_mint(output_mint)}")
            return None
        if not response.is_success:
            logger.warning(f"PumpFun quote failed with {response.status_code}")
            return None

        try:
            data = response.json()
        except ValueError:
            logger.warning("PumpFun returned invalid JSON")
            return None

        if not isinstance(data, dict) or not is_nonzero_amount(data.get("outAmount")):
            logger.debug("PumpFun returned empty quote")
            return None

        logger.debug(f"PumpFun quote success: {data['outAmount']}")
        return data

    async def trade(
        self,
        operation: str,
        mint: str,
        amount: Any,
        wallet: str,
        slippage_bps: int = 350,
        priority_fee_lamports: int = 10000
    ) -> Dict[str, Any]:
        """
        Request an unsigned buy/sell transaction from PumpPortal.

        Args:
            operation: 'buy' or 'sell'
            mint: Pump.fun token mint
            amount: Trade amount (sent as a string)
            wallet: Buyer or seller wallet address
            slippage_bps: Slippage in basis points
            priority_fee_lamports: Priority fee in lamports

        Returns:
            PumpPortal response body

        Raises:
            BadRequestError: Unknown operation
            GatewayError: PumpPortal answered non-2xx (status passed through)
            UpstreamTimeoutError: PumpPortal did not answer within the timeout
        """
        operation = operation.lower()
        if operation not in TRADE_OPERATIONS:
            raise BadRequestError(f"Invalid operation: {operation}", details="Expected 'buy' or 'sell'")

        payload = {
            "mint": mint,
            "amount": str(amount),
            ("buyer" if operation == "buy" else "seller"): wallet,
            "slippageBps": slippage_bps,
            "priorityFeeLamports": priority_fee_lamports,
            "txVersion": "V0",
            "operation": operation,
        }

        try:
            data = await fetch_json(self.client, "POST", self.trade_url, json=payload, timeout=self.timeout)
        except UpstreamTimeoutError as e:
            raise UpstreamTimeoutError(
                f"Failed to request {operation.upper()} transaction",
                details="Request timeout - Pump.fun API took too long to respond"
            ) from e
        except UpstreamHTTPError as e:
            raise GatewayError("Pump.fun API error", details=e.body, status_code=e.status) from e

        logger.info(f"PumpPortal {operation} transaction built for {short_mint(mint)}")
        return data

    async def get_curve(self, mint: str) -> Dict[str, Any]:
        """Fetch bonding-curve state for a Pump.fun mint."""
        return await fetch_json(self.client, "GET", f"{self.curve_url}/{mint}", timeout=self.timeout)

    async def close(self):
        if self._owns_client:
            await self.client.aclose()
