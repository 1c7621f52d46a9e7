"""
Swap quote aggregation.

Quote chain for a pair A -> B:
1. Pump.fun only, when either mint is a configured pump mint
2. Jupiter direct
3. Meteora direct
4. Pump.fun direct
5. Bridged A -> X -> B through each bridge token X (Jupiter, then Meteora per leg)

Bridged routes are only tried once every direct strategy has failed.
"""
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple

from .balances import validate_address
from .errors import AllCandidatesFailedError, BadRequestError, NoRouteError, UpstreamInvalidResponseError
from .fallback import Attempt, Candidate, FallbackResult, run_fallback
from .jupiter_client import JupiterClient
from .meteora_client import MeteoraClient
from .pumpfun_client import PumpFunClient, is_pump_mint
from .utils import short_mint

logger = logging.getLogger(__name__)

MAX_SLIPPAGE_BPS = 10000

NO_ROUTE_SUGGESTIONS = [
    "Verify token pair has liquidity on supported exchanges",
    "Try swapping through an intermediate token (e.g., SOL)",
    "Check that both tokens are supported on Jupiter/Meteora",
    "Increase slippage tolerance if using low liquidity pair",
]


@dataclass
class QuoteRequest:
    input_mint: str
    output_mint: str
    amount: int
    slippage_bps: int = 50

    @classmethod
    def from_params(
        cls,
        input_mint: Optional[str],
        output_mint: Optional[str],
        amount: Any,
        slippage_bps: Any = None
    ) -> "QuoteRequest":
        """Build a request from raw query/body values, raising BadRequestError on bad input."""
        if not input_mint or not output_mint or amount in (None, ""):
            raise BadRequestError("Missing required params: inputMint, outputMint, amount")
        if not isinstance(input_mint, str) or not isinstance(output_mint, str):
            raise BadRequestError("Invalid mint", details="inputMint and outputMint must be strings")
        try:
            parsed_amount = int(str(amount).strip())
        except ValueError:
            raise BadRequestError("Invalid amount", details="Amount must be an integer in base units")
        try:
            parsed_slippage = 50 if slippage_bps in (None, "") else int(str(slippage_bps).strip())
        except ValueError:
            raise BadRequestError(f"Invalid slippageBps (must be 0-{MAX_SLIPPAGE_BPS})")

        request = cls(
            input_mint=input_mint.strip(),
            output_mint=output_mint.strip(),
            amount=parsed_amount,
            slippage_bps=parsed_slippage
        )
        request.validate()
        return request

    def validate(self):
        if not self.input_mint or not self.output_mint:
            raise BadRequestError("Missing required params: inputMint, outputMint, amount")
        if self.input_mint == self.output_mint:
            raise BadRequestError("inputMint and outputMint must differ")
        if self.amount <= 0:
            raise BadRequestError("Amount must be greater than 0")
        if not 0 <= self.slippage_bps <= MAX_SLIPPAGE_BPS:
            raise BadRequestError(f"Invalid slippageBps (must be 0-{MAX_SLIPPAGE_BPS})")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "inputMint": self.input_mint,
            "outputMint": self.output_mint,
            "amount": str(self.amount),
            "slippageBps": self.slippage_bps,
        }


QuoteFn = Callable[[], Awaitable[Optional[Dict[str, Any]]]]


def _quote_candidate(name: str, fetch: QuoteFn) -> Candidate:
    """Wrap a provider call returning ``quote | None`` so that None counts as a failure."""
    async def call() -> Dict[str, Any]:
        quote = await fetch()
        if not quote:
            raise UpstreamInvalidResponseError("No liquidity or route found")
        return quote
    return Candidate(name, call)


class SwapRouter:
    """Runs the quote chain across Jupiter, Meteora, Pump.fun and bridged routes."""

    def __init__(
        self,
        jupiter: JupiterClient,
        meteora: MeteoraClient,
        pumpfun: PumpFunClient,
        bridge_tokens: List[str],
        pump_mints: List[str],
        timeout: Optional[float] = None
    ):
        self.jupiter = jupiter
        self.meteora = meteora
        self.pumpfun = pumpfun
        self.bridge_tokens = list(bridge_tokens)
        self.pump_mints = list(pump_mints)
        self.timeout = timeout

    def _jupiter(self, input_mint: str, output_mint: str, amount: int, slippage_bps: int) -> Candidate:
        return _quote_candidate(
            "jupiter",
            lambda: self.jupiter.get_quote(input_mint, output_mint, amount, slippage_bps)
        )

    def _meteora(self, input_mint: str, output_mint: str, amount: int) -> Candidate:
        return _quote_candidate("meteora", lambda: self.meteora.get_quote(input_mint, output_mint, amount))

    def _pumpfun(self, input_mint: str, output_mint: str, amount: int) -> Candidate:
        return _quote_candidate("pumpfun", lambda: self.pumpfun.get_quote(input_mint, output_mint, amount))

    async def _leg(self, input_mint: str, output_mint: str, amount: int, slippage_bps: int) -> FallbackResult:
        return await run_fallback(
            [
                self._jupiter(input_mint, output_mint, amount, slippage_bps),
                self._meteora(input_mint, output_mint, amount),
            ],
            timeout=self.timeout,
            label="bridge leg"
        )

    async def _bridged_quote(
        self,
        request: QuoteRequest
    ) -> Optional[Tuple[str, FallbackResult, FallbackResult]]:
        """
        Find the first bridge token with two valid legs.

        Returns:
            (bridge_mint, leg1, leg2) or None
        """
        for bridge in self.bridge_tokens:
            if bridge in (request.input_mint, request.output_mint):
                continue
            logger.info(
                f"[Swap] Trying bridged route via {short_mint(bridge)}: "
                f"{short_mint(request.input_mint)} -> {short_mint(bridge)} -> {short_mint(request.output_mint)}"
            )

            try:
                leg1 = await self._leg(request.input_mint, bridge, request.amount, request.slippage_bps)
            except AllCandidatesFailedError:
                logger.debug(f"[Swap] No first leg via {short_mint(bridge)}")
                continue

            try:
                bridge_amount = int(str(leg1.value["outAmount"]))
            except (KeyError, ValueError):
                logger.warning(f"[Swap] First leg via {short_mint(bridge)} has unusable outAmount")
                continue
            if bridge_amount <= 0:
                continue

            try:
                leg2 = await self._leg(bridge, request.output_mint, bridge_amount, request.slippage_bps)
            except AllCandidatesFailedError:
                logger.debug(f"[Swap] No second leg via {short_mint(bridge)}")
                continue

            logger.info(
                f"[Swap] Bridged route successful via {short_mint(bridge)}: "
                f"{bridge_amount} -> {leg2.value['outAmount']}"
            )
            return bridge, leg1, leg2

        logger.warning(
            f"[Swap] No bridged routes available for {short_mint(request.input_mint)} -> {short_mint(request.output_mint)}"
        )
        return None

    async def get_quote(self, request: QuoteRequest) -> Dict[str, Any]:
        """
        Get the best available quote for a pair.

        Returns:
            {quote, source, inputMint, outputMint, amount, slippageBps, attempts}
            plus bridgeToken/leg1/leg2 for bridged routes

        Raises:
            BadRequestError: Invalid request
            NoRouteError: No direct or bridged route; carries every attempt
        """
        request.validate()
        base = request.to_dict()
        a, b, amount = request.input_mint, request.output_mint, request.amount

        if is_pump_mint(a, self.pump_mints) or is_pump_mint(b, self.pump_mints):
            logger.info(f"[Swap Quote] Pumpfun-only path for {short_mint(a)} -> {short_mint(b)}")
            try:
                outcome = await run_fallback([self._pumpfun(a, b, amount)], timeout=self.timeout, label="pumpfun quote")
            except AllCandidatesFailedError as e:
                raise NoRouteError(
                    "No pumpfun route found for this pair",
                    attempts=[attempt.to_dict() for attempt in e.attempts],
                    extra=base
                ) from e
            return {"quote": outcome.value, "source": "pumpfun", **base,
                    "attempts": [attempt.to_dict() for attempt in outcome.attempts]}

        logger.info(f"[Swap Quote] Requesting: {short_mint(a)} -> {short_mint(b)} (amount: {amount})")
        try:
            outcome = await run_fallback(
                [
                    self._jupiter(a, b, amount, request.slippage_bps),
                    self._meteora(a, b, amount),
                    self._pumpfun(a, b, amount),
                ],
                timeout=self.timeout,
                label="swap quote"
            )
            logger.info(f"[Swap Quote] {outcome.provider} route: {outcome.value.get('outAmount')} output")
            return {"quote": outcome.value, "source": outcome.provider, **base,
                    "attempts": [attempt.to_dict() for attempt in outcome.attempts]}
        except AllCandidatesFailedError as e:
            attempts: List[Attempt] = list(e.attempts)

        logger.info("[Swap Quote] Direct routes failed, trying bridged routes...")
        bridged = await self._bridged_quote(request)
        if bridged:
            bridge, leg1, leg2 = bridged
            attempts.append(Attempt(provider="bridged", status="success", reason=f"via {bridge}"))
            return {
                "quote": leg2.value,
                "source": "bridged",
                "bridgeToken": bridge,
                "leg1": leg1.value,
                "leg2": leg2.value,
                "legSources": [leg1.provider, leg2.provider],
                **base,
                "attempts": [attempt.to_dict() for attempt in attempts],
            }

        attempts.append(Attempt(provider="bridged", status="failed", reason="No bridge routes available"))
        logger.warning(f"[Swap Quote] No routes found for {short_mint(a)} -> {short_mint(b)}")
        raise NoRouteError(
            "No swap route found - no liquidity available for this pair",
            attempts=[attempt.to_dict() for attempt in attempts],
            extra={**base, "suggestions": NO_ROUTE_SUGGESTIONS}
        )

    async def execute(
        self,
        quote_response: Optional[Dict[str, Any]],
        user_public_key: Optional[str],
        swap_mode: Optional[str] = None,
        wrap_and_unwrap_sol: bool = True
    ) -> Dict[str, Any]:
        """
        Build an unsigned swap transaction for a previously fetched quote.

        Accepts either a raw provider quote or a full /api/swap/quote response.

        Raises:
            BadRequestError: Missing quote or key, malformed key, or a bridged quote
        """
        if not quote_response or not isinstance(quote_response, dict):
            raise BadRequestError(
                "Missing required field: quoteResponse",
                details="quoteResponse should be the result from /api/swap/quote"
            )
        if not user_public_key:
            raise BadRequestError(
                "Missing required field: userPublicKey",
                details="userPublicKey should be a valid Solana address"
            )
        try:
            validate_address(user_public_key)
        except BadRequestError:
            raise BadRequestError(
                "Invalid userPublicKey format",
                details="Public key must be a valid Solana address"
            )

        if isinstance(quote_response.get("quote"), dict) and "source" in quote_response:
            if quote_response["source"] == "bridged":
                raise BadRequestError(
                    "Bridged quotes cannot be executed as a single swap",
                    details="Execute leg1 and leg2 as separate swaps"
                )
            quote_response = quote_response["quote"]

        logger.info(f"[Swap Execute] Building transaction for wallet: {user_public_key[:10]}...")
        return await self.jupiter.build_swap(
            quote_response,
            user_public_key,
            wrap_and_unwrap_sol=wrap_and_unwrap_sol,
            swap_mode=swap_mode
        )
