"""
Multi-endpoint Solana JSON-RPC client.

Each public method runs the request against the configured endpoints in
order (see fallback.run_fallback). A 2xx answer carrying a JSON-RPC ``error``
member counts as a failure, same as a non-2xx status.
"""
import itertools
import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional

import httpx

from .config import TOKEN_PROGRAM_ID
from .errors import BadRequestError, UpstreamError, UpstreamInvalidResponseError
from .fallback import Candidate, FallbackResult, fetch_json, run_fallback
from .utils import endpoint_label

logger = logging.getLogger(__name__)


@dataclass
class RpcResult:
    """JSON-RPC ``result`` plus the label of the endpoint that produced it."""
    result: Any
    endpoint: str


@dataclass
class BalanceResult:
    lamports: int
    endpoint: str


def parse_lamports(result: Any) -> int:
    """
    Extract lamports from a getBalance result (bare number or ``{"value": n}``).

    Raises:
        UpstreamInvalidResponseError: Missing, negative or non-numeric value
    """
    value = result.get("value") if isinstance(result, dict) else result
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise UpstreamInvalidResponseError(f"Invalid lamports value: {value!r}")
    if value < 0 or value != int(value):
        raise UpstreamInvalidResponseError(f"Invalid lamports value: {value!r}")
    return int(value)


class SolanaRpcClient:
    """JSON-RPC client that fails over across an ordered endpoint list."""

    def __init__(
        self,
        endpoints: List[str],
        timeout: float = 10.0,
        http_client: Optional[httpx.AsyncClient] = None
    ):
        """
        Initialize the RPC client.

        Args:
            endpoints: RPC URLs in priority order
            timeout: Per-endpoint timeout in seconds
            http_client: Shared httpx client (created and owned here if None)
        """
        self.endpoints = list(endpoints)
        self.timeout = timeout
        self._owns_client = http_client is None
        self.client = http_client or httpx.AsyncClient(
            timeout=timeout,
            headers={"Content-Type": "application/json"}
        )
        self._ids = itertools.count(1)

    def _payload(self, method: str, params: Optional[List[Any]] = None, request_id: Any = None) -> Dict[str, Any]:
        return {
            "jsonrpc": "2.0",
            "id": request_id if request_id is not None else next(self._ids),
            "method": method,
            "params": params or [],
        }

    async def _post_rpc(self, endpoint: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        """POST one JSON-RPC request and reject bodies carrying an ``error`` member."""
        data = await fetch_json(self.client, "POST", endpoint, json=payload)
        if not isinstance(data, dict):
            raise UpstreamInvalidResponseError("RPC response is not a JSON object")

        error = data.get("error")
        if error:
            message = error.get("message") if isinstance(error, dict) else str(error)
            raise UpstreamInvalidResponseError(f"RPC error: {message}", details=error)
        if "result" not in data:
            raise UpstreamInvalidResponseError("RPC response has no result")
        return data

    def _candidates(self, payload: Dict[str, Any]) -> List[Candidate]:
        return [
            Candidate(endpoint_label(endpoint), lambda endpoint=endpoint: self._post_rpc(endpoint, payload))
            for endpoint in self.endpoints
        ]

    async def call(
        self,
        method: str,
        params: Optional[List[Any]] = None,
        *,
        request_id: Any = None,
        validate: Optional[Callable[[Any], bool]] = None
    ) -> RpcResult:
        """
        Call a JSON-RPC method, trying endpoints in order.

        Args:
            method: RPC method name
            params: Positional params list
            request_id: JSON-RPC id (auto-incremented when None)
            validate: Predicate applied to the ``result`` member

        Returns:
            RpcResult with the result and the answering endpoint's label

        Raises:
            AllCandidatesFailedError: If every endpoint failed
        """
        payload = self._payload(method, params, request_id)
        check = (lambda data: validate(data["result"])) if validate else None

        outcome: FallbackResult = await run_fallback(
            self._candidates(payload),
            validate=check,
            timeout=self.timeout,
            label=f"rpc {method}"
        )
        return RpcResult(result=outcome.value["result"], endpoint=outcome.provider)

    async def proxy(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        """
        Forward a client JSON-RPC body unchanged and return the first clean response.

        Raises:
            BadRequestError: Body has no string ``method``
            AllCandidatesFailedError: If every endpoint failed
        """
        if not isinstance(payload, dict) or not isinstance(payload.get("method"), str) or not payload["method"]:
            raise BadRequestError("Missing required field: method")

        body = {
            "jsonrpc": payload.get("jsonrpc", "2.0"),
            "id": payload.get("id", 1),
            "method": payload["method"],
            "params": payload.get("params", []),
        }
        outcome = await run_fallback(
            self._candidates(body),
            timeout=self.timeout,
            label=f"rpc proxy {body['method']}"
        )
        logger.debug(f"RPC proxy {body['method']} answered by {outcome.provider}")
        return outcome.value

    async def _balance_from_endpoint(self, endpoint: str, pubkey: str) -> int:
        """getBalance, then getAccountInfo on the same endpoint."""
        try:
            data = await self._post_rpc(endpoint, self._payload("getBalance", [pubkey]))
            return parse_lamports(data["result"])
        except UpstreamError as e:
            logger.debug(f"getBalance failed on {endpoint_label(endpoint)}: {e.message}; trying getAccountInfo")

        data = await self._post_rpc(
            endpoint,
            self._payload("getAccountInfo", [pubkey, {"encoding": "base64"}])
        )
        result = data["result"]
        value = result.get("value") if isinstance(result, dict) else None
        if value is None:
            # Account does not exist yet
            return 0
        return parse_lamports(value.get("lamports"))

    async def get_balance(self, pubkey: str) -> BalanceResult:
        """
        Get the SOL balance of an address in lamports.

        Raises:
            AllCandidatesFailedError: If every endpoint failed both methods
        """
        candidates = [
            Candidate(endpoint_label(endpoint), lambda endpoint=endpoint: self._balance_from_endpoint(endpoint, pubkey))
            for endpoint in self.endpoints
        ]
        # Two requests per endpoint
        outcome = await run_fallback(candidates, timeout=self.timeout * 2, label="rpc balance")
        return BalanceResult(lamports=outcome.value, endpoint=outcome.provider)

    async def get_token_accounts(self, owner: str, program_id: str = TOKEN_PROGRAM_ID) -> RpcResult:
        """getTokenAccountsByOwner (jsonParsed); result must carry a ``value`` list."""
        return await self.call(
            "getTokenAccountsByOwner",
            [owner, {"programId": program_id}, {"encoding": "jsonParsed"}],
            validate=lambda r: isinstance(r, dict) and isinstance(r.get("value"), list)
        )

    async def get_signatures(self, address: str, limit: int = 20) -> List[Dict[str, Any]]:
        outcome = await self.call(
            "getSignaturesForAddress",
            [address, {"limit": limit}],
            validate=lambda r: isinstance(r, list)
        )
        return outcome.result

    async def get_parsed_transaction(self, signature: str) -> Optional[Dict[str, Any]]:
        outcome = await self.call(
            "getTransaction",
            [signature, {"encoding": "jsonParsed", "maxSupportedTransactionVersion": 0}]
        )
        return outcome.result

    async def close(self):
        if self._owns_client:
            await self.client.aclose()
