"""
Tests for balances.py
"""
import pytest
from unittest.mock import AsyncMock

from wallet_gateway.balances import (
    ALWAYS_SHOWN_MINTS,
    BalanceService,
    classify_transaction,
    parse_token_account,
    validate_address,
)
from wallet_gateway.config import SOL_MINT, USDC_MINT
from wallet_gateway.errors import AllCandidatesFailedError, BadRequestError
from wallet_gateway.rpc_client import BalanceResult, RpcResult

ENDPOINT = "https://rpc-primary.test"


def token_account(mint, amount, decimals=6, pubkey="TokenAcct1111"):
    return {
        "pubkey": pubkey,
        "account": {"data": {"parsed": {"info": {
            "mint": mint,
            "tokenAmount": {"amount": str(amount), "decimals": decimals},
        }}}},
    }


def token_balance(mint, owner, ui_amount):
    return {"mint": mint, "owner": owner, "uiTokenAmount": {"uiAmount": ui_amount}}


class TestValidateAddress:
    """Tests for validate_address."""

    def test_valid(self, wallet_address):
        """Test a valid address is returned stripped."""
        assert validate_address(f" {wallet_address} ") == wallet_address

    @pytest.mark.parametrize("value", [None, "", "not-base58!", "abc"])
    def test_invalid(self, value):
        """Test missing and malformed addresses are rejected."""
        with pytest.raises(BadRequestError):
            validate_address(value)


class TestParseTokenAccount:
    """Tests for parse_token_account."""

    def test_known_token(self):
        """Test known mints carry their metadata and a decimal balance."""
        entry = parse_token_account(token_account(USDC_MINT, 2_500_000))

        assert entry["symbol"] == "USDC"
        assert entry["balance"] == 2.5
        assert entry["rawAmount"] == "2500000"
        assert entry["address"] == "TokenAcct1111"

    def test_unknown_token(self, bonk_mint):
        """Test unknown mints are labelled UNKNOWN with the account's decimals."""
        entry = parse_token_account(token_account(bonk_mint, 100, decimals=2))

        assert entry["symbol"] == "UNKNOWN"
        assert entry["decimals"] == 2
        assert entry["balance"] == 1.0


class TestClassifyTransaction:
    """Tests for classify_transaction."""

    def test_token_receive(self, wallet_address):
        """Test an increased token balance is a receive."""
        tx = {"meta": {
            "preTokenBalances": [token_balance(USDC_MINT, wallet_address, 1.0)],
            "postTokenBalances": [token_balance(USDC_MINT, wallet_address, 3.5)],
        }}

        assert classify_transaction(tx, wallet_address, USDC_MINT) == {"type": "Receive", "amount": 2.5, "mint": USDC_MINT}

    def test_sol_send(self, wallet_address):
        """Test a decreased lamport balance is a send."""
        tx = {
            "meta": {"preBalances": [0, 2_000_000_000], "postBalances": [0, 1_500_000_000]},
            "transaction": {"message": {"accountKeys": [{"pubkey": "Other"}, {"pubkey": wallet_address}]}},
        }

        assert classify_transaction(tx, wallet_address, SOL_MINT) == {"type": "Send", "amount": 0.5, "mint": SOL_MINT}

    def test_no_mint_falls_back_to_sol(self, wallet_address):
        """Test without a mint the SOL delta is used when no token moved."""
        tx = {
            "meta": {"preBalances": [1_000_000_000], "postBalances": [3_000_000_000]},
            "transaction": {"message": {"accountKeys": [wallet_address]}},
        }

        assert classify_transaction(tx, wallet_address) == {"type": "Receive", "amount": 2.0, "mint": SOL_MINT}

    def test_unrelated_token(self, wallet_address, bonk_mint):
        """Test transactions that do not move the requested token are skipped."""
        tx = {"meta": {"preTokenBalances": [token_balance(bonk_mint, wallet_address, 1)], "postTokenBalances": []}}

        assert classify_transaction(tx, wallet_address, USDC_MINT) is None

    def test_missing_meta(self, wallet_address):
        """Test transactions without meta are skipped."""
        assert classify_transaction({"meta": None}, wallet_address) is None
        assert classify_transaction(None, wallet_address) is None


class TestBalanceService:
    """Tests for BalanceService class."""

    @pytest.fixture
    def rpc(self):
        return AsyncMock()

    @pytest.fixture
    def service(self, rpc):
        return BalanceService(rpc)

    @pytest.mark.asyncio
    async def test_sol_balance(self, service, rpc, wallet_address):
        """Test the SOL balance response shape."""
        rpc.get_balance.return_value = BalanceResult(lamports=1_250_000_000, endpoint=ENDPOINT)

        result = await service.get_sol_balance(wallet_address)

        assert result == {
            "publicKey": wallet_address,
            "balance": 1.25,
            "balanceLamports": 1_250_000_000,
            "source": ENDPOINT,
        }

    @pytest.mark.asyncio
    async def test_sol_balance_invalid_address(self, service, rpc):
        """Test invalid addresses never reach the RPC."""
        with pytest.raises(BadRequestError):
            await service.get_sol_balance("bad")

        rpc.get_balance.assert_not_called()

    @pytest.mark.asyncio
    async def test_token_accounts(self, service, rpc, wallet_address):
        """Test token accounts are parsed and counted."""
        rpc.get_token_accounts.return_value = RpcResult(
            result={"value": [token_account(USDC_MINT, 1_000_000), {"account": {}}]},
            endpoint=ENDPOINT
        )

        result = await service.get_token_accounts(wallet_address)

        assert result["count"] == 1
        assert result["tokens"][0]["symbol"] == "USDC"

    @pytest.mark.asyncio
    async def test_all_balances(self, service, rpc, wallet_address):
        """Test SOL comes first and always-shown tokens are padded in."""
        rpc.get_token_accounts.return_value = RpcResult(result={"value": [token_account(USDC_MINT, 5_000_000)]}, endpoint=ENDPOINT)
        rpc.get_balance.return_value = BalanceResult(lamports=2_000_000_000, endpoint=ENDPOINT)

        result = await service.get_all_balances(wallet_address)

        mints = [t["mint"] for t in result["tokens"]]
        assert mints[0] == SOL_MINT
        assert result["tokens"][0]["balance"] == 2.0
        assert USDC_MINT in mints
        for mint in ALWAYS_SHOWN_MINTS:
            assert mint in mints
        assert result["totalTokens"] == len(mints)
        assert result["solBalance"] == 2.0

    @pytest.mark.asyncio
    async def test_all_balances_partial_failure(self, service, rpc, wallet_address):
        """Test a failed token branch still returns the SOL balance."""
        rpc.get_token_accounts.side_effect = AllCandidatesFailedError("All rpc candidates failed")
        rpc.get_balance.return_value = BalanceResult(lamports=1_000_000_000, endpoint=ENDPOINT)

        result = await service.get_all_balances(wallet_address)

        assert result["solBalance"] == 1.0
        assert result["source"] == ENDPOINT

    @pytest.mark.asyncio
    async def test_all_balances_total_failure(self, service, rpc, wallet_address):
        """Test failure of both branches raises."""
        rpc.get_token_accounts.side_effect = AllCandidatesFailedError("All rpc candidates failed")
        rpc.get_balance.side_effect = AllCandidatesFailedError("All rpc balance candidates failed")

        with pytest.raises(AllCandidatesFailedError):
            await service.get_all_balances(wallet_address)

    @pytest.mark.asyncio
    async def test_transactions(self, service, rpc, wallet_address):
        """Test signatures are loaded and classified; failed loads are skipped."""
        rpc.get_signatures.return_value = [
            {"signature": "sig1", "blockTime": 100, "err": None},
            {"signature": "sig2", "blockTime": 99, "err": None},
        ]

        def load(signature):
            if signature == "sig2":
                raise AllCandidatesFailedError("All rpc getTransaction candidates failed")
            return {
                "meta": {"preBalances": [2_000_000_000], "postBalances": [1_000_000_000]},
                "transaction": {"message": {"accountKeys": [wallet_address]}},
            }

        rpc.get_parsed_transaction.side_effect = load

        result = await service.get_transactions(wallet_address, mint=SOL_MINT, limit=500)

        assert result["count"] == 1
        assert result["transactions"][0] == {
            "signature": "sig1",
            "blockTime": 100,
            "status": "confirmed",
            "type": "Send",
            "amount": 1.0,
            "mint": SOL_MINT,
        }
        rpc.get_signatures.assert_awaited_once_with(wallet_address, 50)
