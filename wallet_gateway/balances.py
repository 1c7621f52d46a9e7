"""
Wallet balances, token accounts and transaction history.
"""
import asyncio
import logging
from typing import Any, Dict, List, Optional

from solders.pubkey import Pubkey

from .config import FIXERCOIN_MINT, FXM_MINT, LOCKER_MINT, SOL_MINT, USDC_MINT, USDT_MINT
from .errors import AllCandidatesFailedError, BadRequestError
from .rpc_client import SolanaRpcClient
from .utils import lamports_to_sol, now_ms, short_mint

logger = logging.getLogger(__name__)

KNOWN_TOKENS: Dict[str, Dict[str, Any]] = {
    SOL_MINT: {"mint": SOL_MINT, "symbol": "SOL", "name": "Solana", "decimals": 9},
    USDC_MINT: {"mint": USDC_MINT, "symbol": "USDC", "name": "USD Coin", "decimals": 6},
    USDT_MINT: {"mint": USDT_MINT, "symbol": "USDT", "name": "USDT TETHER", "decimals": 6},
    FIXERCOIN_MINT: {"mint": FIXERCOIN_MINT, "symbol": "FIXERCOIN", "name": "FIXERCOIN", "decimals": 6},
    LOCKER_MINT: {"mint": LOCKER_MINT, "symbol": "LOCKER", "name": "LOCKER", "decimals": 6},
    FXM_MINT: {"mint": FXM_MINT, "symbol": "FXM", "name": "Fixorium", "decimals": 6},
}

# Listed for every wallet, with zero balance when the wallet holds none
ALWAYS_SHOWN_MINTS = [FXM_MINT, FIXERCOIN_MINT, LOCKER_MINT]

MAX_TRANSACTIONS = 50
TRANSACTION_FETCH_CONCURRENCY = 5


def validate_address(value: Optional[str]) -> str:
    """
    Check that a string is a valid base58 Solana address.

    Raises:
        BadRequestError: Missing or malformed address
    """
    if not value or not isinstance(value, str):
        raise BadRequestError("Missing 'publicKey' or 'wallet' parameter")
    value = value.strip()
    try:
        Pubkey.from_string(value)
    except Exception:
        raise BadRequestError("Invalid Solana address format", details=value)
    return value


def parse_token_account(account: Dict[str, Any]) -> Dict[str, Any]:
    """Turn a jsonParsed token account into a token balance entry."""
    info = account["account"]["data"]["parsed"]["info"]
    mint = info["mint"]
    token_amount = info["tokenAmount"]
    decimals = int(token_amount["decimals"])
    raw_amount = str(token_amount["amount"])
    balance = int(raw_amount) / (10 ** decimals)

    metadata = KNOWN_TOKENS.get(mint) or {
        "mint": mint,
        "symbol": "UNKNOWN",
        "name": "Unknown Token",
        "decimals": decimals,
    }
    return {
        **metadata,
        "balance": balance,
        "uiAmount": balance,
        "rawAmount": raw_amount,
        "address": account.get("pubkey"),
    }


def _balance_entry(balances: List[Dict[str, Any]], mint: Optional[str], owner: str) -> Optional[Dict[str, Any]]:
    for entry in balances:
        if mint and entry.get("mint") != mint:
            continue
        if entry.get("owner") and entry["owner"] != owner:
            continue
        return entry
    return None


def _ui_amount(entry: Optional[Dict[str, Any]]) -> float:
    if not entry:
        return 0.0
    return float((entry.get("uiTokenAmount") or {}).get("uiAmount") or 0)


def _sol_delta(tx: Dict[str, Any], owner: str) -> Optional[float]:
    """Lamport change of ``owner`` in SOL, or None if the wallet is not an account of the tx."""
    meta = tx["meta"]
    keys = ((tx.get("transaction") or {}).get("message") or {}).get("accountKeys") or []
    for index, key in enumerate(keys):
        pubkey = key.get("pubkey") if isinstance(key, dict) else key
        if pubkey == owner:
            pre = meta.get("preBalances") or []
            post = meta.get("postBalances") or []
            if index < len(pre) and index < len(post):
                return lamports_to_sol(post[index] - pre[index])
    return None


def classify_transaction(tx: Optional[Dict[str, Any]], owner: str, mint: Optional[str] = None) -> Optional[Dict[str, Any]]:
    """
    Work out direction and amount of a parsed transaction for a wallet.

    SOL uses the wallet's lamport delta; tokens use pre/post token balances.
    Without a mint, the first token movement of the wallet is reported, or
    the SOL delta when no token balance changed.

    Returns:
        {type: Receive|Send|Unknown, amount, mint} or None when the
        transaction does not touch the requested asset
    """
    if not tx or not tx.get("meta"):
        return None
    meta = tx["meta"]

    pre = post = None
    if mint != SOL_MINT:
        pre = _balance_entry(meta.get("preTokenBalances") or [], mint, owner)
        post = _balance_entry(meta.get("postTokenBalances") or [], mint, owner)
        if not pre and not post and mint is not None:
            return None

    if pre or post:
        diff = _ui_amount(post) - _ui_amount(pre)
        mint = (post or pre).get("mint", mint)
    else:
        # SOL requested, or no token movement for this wallet
        diff = _sol_delta(tx, owner)
        if diff is None:
            return None
        mint = SOL_MINT

    kind = "Receive" if diff > 0 else "Send" if diff < 0 else "Unknown"
    return {"type": kind, "amount": abs(diff), "mint": mint}


class BalanceService:
    """Balance and history lookups on top of the multi-endpoint RPC client."""

    def __init__(self, rpc: SolanaRpcClient):
        self.rpc = rpc

    async def get_sol_balance(self, pubkey: str) -> Dict[str, Any]:
        """
        SOL balance of a wallet.

        The response shape is the same whichever endpoint answered; only
        ``source`` differs.
        """
        pubkey = validate_address(pubkey)
        result = await self.rpc.get_balance(pubkey)
        return {
            "publicKey": pubkey,
            "balance": lamports_to_sol(result.lamports),
            "balanceLamports": result.lamports,
            "source": result.endpoint,
        }

    async def get_token_accounts(self, pubkey: str) -> Dict[str, Any]:
        """SPL token balances with known-token metadata."""
        pubkey = validate_address(pubkey)
        outcome = await self.rpc.get_token_accounts(pubkey)
        tokens = self._parse_accounts(outcome.result["value"])
        return {
            "publicKey": pubkey,
            "tokens": tokens,
            "count": len(tokens),
            "source": outcome.endpoint,
        }

    def _parse_accounts(self, accounts: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        tokens = []
        for account in accounts:
            try:
                tokens.append(parse_token_account(account))
            except (KeyError, TypeError, ValueError) as e:
                logger.warning(f"[AllBalances] Error processing token account: {e}")
        return tokens

    async def get_all_balances(self, pubkey: str) -> Dict[str, Any]:
        """
        SOL plus every SPL token balance of a wallet.

        Token accounts and the SOL balance are fetched concurrently. A failed
        branch degrades to an empty list / zero balance; if both fail the
        error of the token-account branch is raised.

        Returns:
            {publicKey, tokens, totalTokens, solBalance, source, timestamp}
        """
        pubkey = validate_address(pubkey)
        token_result, sol_result = await asyncio.gather(
            self.rpc.get_token_accounts(pubkey),
            self.rpc.get_balance(pubkey),
            return_exceptions=True
        )

        tokens_failed = isinstance(token_result, BaseException)
        sol_failed = isinstance(sol_result, BaseException)
        if tokens_failed and sol_failed:
            if isinstance(token_result, AllCandidatesFailedError):
                raise token_result
            raise AllCandidatesFailedError(
                "Failed to fetch balances",
                details=str(token_result),
                status_code=502
            ) from token_result

        tokens: List[Dict[str, Any]] = []
        sources = []
        if tokens_failed:
            logger.warning(f"[AllBalances] Token accounts unavailable: {token_result}")
        else:
            tokens = self._parse_accounts(token_result.result["value"])
            sources.append(token_result.endpoint)

        sol_balance = 0.0
        if sol_failed:
            logger.warning(f"[AllBalances] SOL balance unavailable: {sol_result}")
        else:
            sol_balance = lamports_to_sol(sol_result.lamports)
            sources.append(sol_result.endpoint)

        sol_entry = {**KNOWN_TOKENS[SOL_MINT], "balance": sol_balance, "uiAmount": sol_balance}
        tokens = [t for t in tokens if t["mint"] != SOL_MINT]
        tokens.insert(0, sol_entry)

        held = {t["mint"] for t in tokens}
        for mint in ALWAYS_SHOWN_MINTS:
            if mint not in held:
                tokens.append({**KNOWN_TOKENS[mint], "balance": 0, "uiAmount": 0})

        logger.info(f"[AllBalances] Found {len(tokens)} tokens for {short_mint(pubkey)} (SOL: {sol_balance} SOL)")
        return {
            "publicKey": pubkey,
            "tokens": tokens,
            "totalTokens": len(tokens),
            "solBalance": sol_balance,
            "source": sources[0] if sources else None,
            "timestamp": now_ms(),
        }

    async def get_transactions(
        self,
        pubkey: str,
        mint: Optional[str] = None,
        limit: int = 20
    ) -> Dict[str, Any]:
        """
        Recent transactions of a wallet that moved SOL or a token.

        Transactions that fail to load are skipped.
        """
        pubkey = validate_address(pubkey)
        if mint:
            mint = validate_address(mint)
        limit = max(1, min(int(limit), MAX_TRANSACTIONS))

        signatures = await self.rpc.get_signatures(pubkey, limit)
        semaphore = asyncio.Semaphore(TRANSACTION_FETCH_CONCURRENCY)

        async def load(entry: Dict[str, Any]) -> Optional[Dict[str, Any]]:
            signature = entry.get("signature")
            if not signature:
                return None
            async with semaphore:
                try:
                    tx = await self.rpc.get_parsed_transaction(signature)
                except AllCandidatesFailedError as e:
                    logger.warning(f"Failed to fetch tx {signature[:16]}...: {e.message}")
                    return None
            movement = classify_transaction(tx, pubkey, mint)
            if movement is None:
                return None
            return {
                "signature": signature,
                "blockTime": entry.get("blockTime"),
                "status": "failed" if entry.get("err") else "confirmed",
                **movement,
            }

        loaded = await asyncio.gather(*(load(entry) for entry in signatures[:limit]))
        transactions = [tx for tx in loaded if tx is not None]
        return {
            "success": True,
            "publicKey": pubkey,
            "transactions": transactions,
            "count": len(transactions),
        }
