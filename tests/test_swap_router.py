"""
Tests for swap_router.py
"""
import pytest
from unittest.mock import AsyncMock

from wallet_gateway.errors import BadRequestError, NoRouteError
from wallet_gateway.swap_router import NO_ROUTE_SUGGESTIONS, QuoteRequest, SwapRouter


def quote(input_mint, output_mint, out_amount):
    return {"inputMint": input_mint, "outputMint": output_mint, "outAmount": str(out_amount)}


class TestQuoteRequest:
    """Tests for QuoteRequest parsing."""

    def test_from_params(self, sol_mint, usdc_mint):
        """Test raw string params are parsed."""
        request = QuoteRequest.from_params(sol_mint, usdc_mint, " 1000 ", "100")

        assert request.amount == 1000
        assert request.slippage_bps == 100
        assert request.to_dict()["amount"] == "1000"

    def test_default_slippage(self, sol_mint, usdc_mint):
        """Test slippage defaults to 50 bps."""
        assert QuoteRequest.from_params(sol_mint, usdc_mint, "1").slippage_bps == 50

    @pytest.mark.parametrize("amount", ["abc", "1.5", "0", "-5"])
    def test_invalid_amount(self, sol_mint, usdc_mint, amount):
        """Test non-integer and non-positive amounts are rejected."""
        with pytest.raises(BadRequestError):
            QuoteRequest.from_params(sol_mint, usdc_mint, amount)

    def test_missing_params(self, sol_mint):
        """Test missing mints are rejected."""
        with pytest.raises(BadRequestError, match="Missing required params"):
            QuoteRequest.from_params(sol_mint, None, "1")

    def test_non_string_mint(self, usdc_mint):
        """Test a numeric mint from a JSON body is a bad request."""
        with pytest.raises(BadRequestError, match="Invalid mint"):
            QuoteRequest.from_params(5, usdc_mint, "1")

    def test_same_mint(self, sol_mint):
        """Test identical mints are rejected."""
        with pytest.raises(BadRequestError):
            QuoteRequest.from_params(sol_mint, sol_mint, "1")

    @pytest.mark.parametrize("slippage", ["-1", "10001", "abc"])
    def test_invalid_slippage(self, sol_mint, usdc_mint, slippage):
        """Test out-of-range slippage is rejected."""
        with pytest.raises(BadRequestError, match="slippageBps"):
            QuoteRequest.from_params(sol_mint, usdc_mint, "1", slippage)


class TestSwapRouter:
    """Tests for SwapRouter class."""

    @pytest.fixture
    def router(self, mock_jupiter_client, mock_meteora_client, mock_pumpfun_client, usdc_mint, sol_mint, fixercoin_mint):
        mock_jupiter_client.get_quote.return_value = None
        mock_meteora_client.get_quote.return_value = None
        mock_pumpfun_client.get_quote.return_value = None
        return SwapRouter(
            mock_jupiter_client,
            mock_meteora_client,
            mock_pumpfun_client,
            bridge_tokens=[usdc_mint, sol_mint],
            pump_mints=[fixercoin_mint]
        )

    @pytest.mark.asyncio
    async def test_jupiter_direct(self, router, mock_jupiter_client, mock_meteora_client, sol_mint, usdc_mint):
        """Test a Jupiter quote is returned without asking other providers."""
        mock_jupiter_client.get_quote.return_value = quote(sol_mint, usdc_mint, 150)

        result = await router.get_quote(QuoteRequest(sol_mint, usdc_mint, 1000))

        assert result["source"] == "jupiter"
        assert result["quote"]["outAmount"] == "150"
        assert result["amount"] == "1000"
        mock_meteora_client.get_quote.assert_not_called()

    @pytest.mark.asyncio
    async def test_meteora_after_jupiter(self, router, mock_meteora_client, mock_pumpfun_client, sol_mint, usdc_mint):
        """Test Meteora answers when Jupiter has no route."""
        mock_meteora_client.get_quote.return_value = quote(sol_mint, usdc_mint, 149)

        result = await router.get_quote(QuoteRequest(sol_mint, usdc_mint, 1000))

        assert result["source"] == "meteora"
        assert [a["provider"] for a in result["attempts"]] == ["jupiter", "meteora"]
        mock_pumpfun_client.get_quote.assert_not_called()

    @pytest.mark.asyncio
    async def test_pumpfun_last_direct(self, router, mock_pumpfun_client, sol_mint, bonk_mint):
        """Test Pump.fun is the last direct provider."""
        mock_pumpfun_client.get_quote.return_value = quote(sol_mint, bonk_mint, 7)

        result = await router.get_quote(QuoteRequest(sol_mint, bonk_mint, 1000))

        assert result["source"] == "pumpfun"

    @pytest.mark.asyncio
    async def test_pump_mint_uses_pumpfun_only(self, router, mock_jupiter_client, mock_pumpfun_client, sol_mint, fixercoin_mint):
        """Test pump mints skip Jupiter and Meteora."""
        mock_pumpfun_client.get_quote.return_value = quote(sol_mint, fixercoin_mint, 5000)

        result = await router.get_quote(QuoteRequest(sol_mint, fixercoin_mint, 1000))

        assert result["source"] == "pumpfun"
        mock_jupiter_client.get_quote.assert_not_called()

    @pytest.mark.asyncio
    async def test_pump_mint_no_route(self, router, mock_jupiter_client, sol_mint, fixercoin_mint):
        """Test a failed Pump.fun-only path does not fall back to other providers."""
        with pytest.raises(NoRouteError) as exc_info:
            await router.get_quote(QuoteRequest(fixercoin_mint, sol_mint, 1000))

        assert exc_info.value.message == "No pumpfun route found for this pair"
        assert exc_info.value.status_code == 404
        mock_jupiter_client.get_quote.assert_not_called()

    @pytest.mark.asyncio
    async def test_bridged_via_usdc(self, router, mock_jupiter_client, mock_meteora_client, bonk_mint, usdc_mint, usdt_mint):
        """Test a bridged route through USDC feeds leg1's output into leg2."""
        def jupiter_quote(input_mint, output_mint, amount, slippage_bps):
            if (input_mint, output_mint) == (bonk_mint, usdc_mint):
                return quote(bonk_mint, usdc_mint, 2500)
            return None

        def meteora_quote(input_mint, output_mint, amount):
            if (input_mint, output_mint) == (usdc_mint, usdt_mint):
                return quote(usdc_mint, usdt_mint, amount - 1)
            return None

        mock_jupiter_client.get_quote.side_effect = jupiter_quote
        mock_meteora_client.get_quote.side_effect = meteora_quote

        result = await router.get_quote(QuoteRequest(bonk_mint, usdt_mint, 1_000_000))

        assert result["source"] == "bridged"
        assert result["bridgeToken"] == usdc_mint
        assert result["leg1"]["outAmount"] == "2500"
        assert result["leg2"]["outAmount"] == "2499"
        assert result["quote"] == result["leg2"]
        assert result["legSources"] == ["jupiter", "meteora"]
        mock_meteora_client.get_quote.assert_any_call(usdc_mint, usdt_mint, 2500)
        assert result["attempts"][-1]["provider"] == "bridged"

    @pytest.mark.asyncio
    async def test_bridge_skips_endpoint_tokens(self, router, mock_jupiter_client, sol_mint, usdc_mint, bonk_mint):
        """Test a bridge token equal to either side of the pair is skipped."""
        await_calls = []

        def jupiter_quote(input_mint, output_mint, amount, slippage_bps):
            await_calls.append((input_mint, output_mint))
            return None

        mock_jupiter_client.get_quote.side_effect = jupiter_quote

        with pytest.raises(NoRouteError):
            await router.get_quote(QuoteRequest(bonk_mint, usdc_mint, 1000))

        assert (bonk_mint, usdc_mint) in await_calls
        assert (usdc_mint, usdc_mint) not in await_calls
        assert (bonk_mint, sol_mint) in await_calls

    @pytest.mark.asyncio
    async def test_no_route(self, router, sol_mint, bonk_mint):
        """Test exhaustion reports every attempt and suggestions."""
        with pytest.raises(NoRouteError) as exc_info:
            await router.get_quote(QuoteRequest(sol_mint, bonk_mint, 1000))

        payload = exc_info.value.to_dict()
        assert payload["error"] == "No swap route found - no liquidity available for this pair"
        assert payload["suggestions"] == NO_ROUTE_SUGGESTIONS
        assert [a["provider"] for a in payload["attempts"]] == ["jupiter", "meteora", "pumpfun", "bridged"]
        assert payload["inputMint"] == sol_mint

    @pytest.mark.asyncio
    async def test_execute_builds_jupiter_swap(self, router, mock_jupiter_client, sol_mint, usdc_mint, wallet_address):
        """Test execute unwraps a full quote response and builds the swap."""
        raw_quote = quote(sol_mint, usdc_mint, 150)
        mock_jupiter_client.build_swap.return_value = {"swapTransaction": "AQID"}

        result = await router.execute({"quote": raw_quote, "source": "jupiter"}, wallet_address)

        assert result == {"swapTransaction": "AQID"}
        mock_jupiter_client.build_swap.assert_awaited_once_with(
            raw_quote, wallet_address, wrap_and_unwrap_sol=True, swap_mode=None
        )

    @pytest.mark.asyncio
    async def test_execute_rejects_bridged(self, router, wallet_address):
        """Test bridged quotes cannot be executed as one swap."""
        with pytest.raises(BadRequestError, match="Bridged"):
            await router.execute({"quote": {"outAmount": "1"}, "source": "bridged"}, wallet_address)

    @pytest.mark.asyncio
    @pytest.mark.parametrize("quote_response,public_key,message", [
        (None, "x", "quoteResponse"),
        ({"outAmount": "1"}, None, "userPublicKey"),
        ({"outAmount": "1"}, "not-a-key", "Invalid userPublicKey"),
    ])
    async def test_execute_validation(self, router, quote_response, public_key, message):
        """Test execute validates its inputs."""
        with pytest.raises(BadRequestError, match=message):
            await router.execute(quote_response, public_key)
