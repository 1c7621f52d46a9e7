"""
Signed transaction relay (send / simulate) with endpoint failover.
"""
import base64
import binascii
import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Union

import base58
from solana.rpc.async_api import AsyncClient
from solana.rpc.commitment import Processed
from solana.rpc.types import TxOpts
from solders.transaction import Transaction, VersionedTransaction

from .errors import AllCandidatesFailedError, BadRequestError, UpstreamInvalidResponseError
from .fallback import Candidate, run_fallback
from .utils import endpoint_label

logger = logging.getLogger(__name__)

MIN_TRANSACTION_BYTES = 16

# Substring of the RPC error -> message shown to the wallet user
FRIENDLY_SEND_ERRORS = [
    ("insufficient", "Insufficient SOL for transaction fees"),
    ("already been processed", "Transaction already processed"),
    ("already processed", "Transaction already processed"),
    ("blockhash not found", "Blockhash expired, please try again"),
    ("custom program error", "Program execution error - transaction would fail"),
]


@dataclass
class SendResult:
    signature: str
    endpoint: str


def parse_transaction(raw: bytes) -> Optional[Union[VersionedTransaction, Transaction]]:
    """Parse wire bytes as a VersionedTransaction, falling back to a legacy Transaction."""
    if len(raw) < MIN_TRANSACTION_BYTES:
        return None
    try:
        return VersionedTransaction.from_bytes(raw)
    except Exception:
        pass
    try:
        return Transaction.from_bytes(raw)
    except Exception:
        return None


def decode_transaction(encoded: str) -> bytes:
    """
    Decode a serialized transaction given as base64 or base58.

    Args:
        encoded: Encoded signed (or unsigned, for simulation) transaction

    Returns:
        Raw transaction bytes

    Raises:
        BadRequestError: Empty input, or neither encoding yields a parseable transaction
    """
    if not isinstance(encoded, str) or not encoded.strip():
        raise BadRequestError("Transaction data is empty")
    encoded = encoded.strip()

    decoders = [
        lambda s: base64.b64decode(s, validate=True),
        base58.b58decode,
    ]
    for decode in decoders:
        try:
            raw = decode(encoded)
        except (binascii.Error, ValueError):
            continue
        if parse_transaction(raw) is not None:
            return raw

    raise BadRequestError(
        "Invalid transaction encoding",
        details="Expected a base64 or base58 serialized Solana transaction"
    )


def friendly_send_error(message: str) -> Optional[str]:
    lowered = (message or "").lower()
    for needle, friendly in FRIENDLY_SEND_ERRORS:
        if needle in lowered:
            return friendly
    return None


class TransactionRelay:
    """Relays client-signed transactions to Solana RPC nodes in priority order."""

    def __init__(
        self,
        endpoints: List[str],
        timeout: float = 10.0,
        client_factory: Callable[..., AsyncClient] = AsyncClient
    ):
        self.endpoints = list(endpoints)
        self.timeout = timeout
        self._client_factory = client_factory
        self._clients: Dict[str, AsyncClient] = {}

    def _client(self, endpoint: str) -> AsyncClient:
        if endpoint not in self._clients:
            self._clients[endpoint] = self._client_factory(endpoint, timeout=self.timeout)
        return self._clients[endpoint]

    async def _send_to(self, endpoint: str, raw: bytes, skip_preflight: bool) -> str:
        opts = TxOpts(skip_preflight=skip_preflight, preflight_commitment=Processed)
        result = await self._client(endpoint).send_raw_transaction(raw, opts=opts)
        if not result.value:
            raise UpstreamInvalidResponseError("sendTransaction returned no signature")
        return str(result.value)

    async def send(self, encoded: str, skip_preflight: bool = False) -> SendResult:
        """
        Submit a signed transaction.

        Args:
            encoded: base64 or base58 signed transaction
            skip_preflight: Skip the node's preflight simulation

        Returns:
            SendResult with the signature and the endpoint that accepted it

        Raises:
            BadRequestError: Undecodable transaction, or a known rejection reason
            AllCandidatesFailedError: Every endpoint failed for another reason
        """
        raw = decode_transaction(encoded)
        logger.info(f"Sending transaction ({len(raw)} bytes) to {len(self.endpoints)} endpoint(s)")

        candidates = [
            Candidate(endpoint_label(endpoint), lambda endpoint=endpoint: self._send_to(endpoint, raw, skip_preflight))
            for endpoint in self.endpoints
        ]
        try:
            outcome = await run_fallback(candidates, timeout=self.timeout, label="solana send")
        except AllCandidatesFailedError as e:
            friendly = friendly_send_error(str(e.details))
            if friendly:
                raise BadRequestError(friendly, details=e.details) from e
            raise AllCandidatesFailedError(
                "Failed to send transaction",
                attempts=e.attempts,
                details=e.details,
                status_code=e.status_code
            ) from e

        logger.info(f"Transaction sent: {outcome.value} via {outcome.provider}")
        return SendResult(signature=outcome.value, endpoint=outcome.provider)

    async def _simulate_on(self, endpoint: str, transaction: Any) -> Dict[str, Any]:
        result = await self._client(endpoint).simulate_transaction(transaction, commitment=Processed)
        value = result.value
        logs = list(value.logs or [])
        return {
            "err": str(value.err) if value.err is not None else None,
            "logs": logs,
            "units_consumed": value.units_consumed or 0,
            "insufficient_lamports": any("insufficient lamports" in log for log in logs),
        }

    async def simulate(self, encoded: str) -> Dict[str, Any]:
        """
        Simulate a transaction without submitting it.

        Returns:
            Dict with err (None on success), logs, units_consumed,
            insufficient_lamports and endpoint
        """
        raw = decode_transaction(encoded)
        transaction = parse_transaction(raw)

        candidates = [
            Candidate(endpoint_label(endpoint), lambda endpoint=endpoint: self._simulate_on(endpoint, transaction))
            for endpoint in self.endpoints
        ]
        outcome = await run_fallback(candidates, timeout=self.timeout, label="solana simulate")
        simulation = dict(outcome.value)
        simulation["endpoint"] = outcome.provider
        if simulation["err"]:
            logger.warning(f"Simulation error: {simulation['err']}")
        return simulation

    async def close(self):
        for client in self._clients.values():
            await client.close()
        self._clients.clear()
