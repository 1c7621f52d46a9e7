"""
Ordered fallback executor.

Every upstream call site in the gateway (RPC endpoints, quote providers,
price sources) goes through run_fallback: candidates are tried strictly in
order, each once, each under its own timeout, and the first valid result
wins. Failures are recorded, never raised, until the list is exhausted.
"""
import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Optional

import httpx

from .errors import (
    AllCandidatesFailedError,
    UpstreamError,
    UpstreamHTTPError,
    UpstreamInvalidResponseError,
    UpstreamTimeoutError,
)
from .utils import endpoint_label

logger = logging.getLogger(__name__)


@dataclass
class Attempt:
    """Outcome of one candidate in a fallback chain."""
    provider: str
    status: str  # 'success' or 'failed'
    reason: Optional[str] = None
    elapsed_ms: float = 0.0
    error_type: Optional[str] = None  # 'timeout', 'http', 'invalid', 'error'

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "provider": self.provider,
            "status": self.status,
            "elapsedMs": round(self.elapsed_ms, 1),
        }
        if self.reason:
            data["reason"] = self.reason
        if self.error_type:
            data["errorType"] = self.error_type
        return data


@dataclass
class Candidate:
    """A named zero-argument coroutine function to try."""
    name: str
    call: Callable[[], Awaitable[Any]]


@dataclass
class FallbackResult:
    value: Any
    provider: str
    attempts: List[Attempt] = field(default_factory=list)


async def run_fallback(
    candidates: Iterable[Candidate],
    *,
    validate: Optional[Callable[[Any], bool]] = None,
    timeout: Optional[float] = None,
    label: str = "upstream",
    abort_on: Optional[Callable[[Exception], bool]] = None
) -> FallbackResult:
    """
    Try candidates in order and return the first valid result.

    Args:
        candidates: Candidates in priority order
        validate: Predicate a result must satisfy; failing results count as failures
        timeout: Per-attempt timeout in seconds (None = no extra timeout)
        label: Name used in logs and in the exhaustion error message
        abort_on: Predicate marking candidate errors that must propagate at once
            instead of moving on (e.g. a client error no other endpoint will fix)

    Returns:
        FallbackResult with the winning value, its provider name and all attempts

    Raises:
        AllCandidatesFailedError: If no candidate produced a valid result
        Exception: Whatever error abort_on matched
    """
    attempts: List[Attempt] = []

    for candidate in candidates:
        start = time.monotonic()
        error_type: Optional[str] = None
        reason: Optional[str] = None
        value: Any = None

        try:
            if timeout is not None:
                value = await asyncio.wait_for(candidate.call(), timeout)
            else:
                value = await candidate.call()
        except asyncio.TimeoutError:
            error_type, reason = "timeout", f"Timed out after {timeout}s"
        except Exception as e:
            if abort_on is not None and abort_on(e):
                logger.warning(f"[{label}] {candidate.name} failed with a non-retryable error: {e}")
                raise
            if isinstance(e, UpstreamError):
                error_type, reason = e.error_type, e.message
            else:
                error_type, reason = "error", f"{type(e).__name__}: {e}"

        if error_type is None and validate is not None:
            try:
                is_valid = validate(value)
            except Exception as e:
                is_valid = False
                logger.debug(f"[{label}] validator raised for {candidate.name}: {e}")
            if not is_valid:
                error_type, reason = "invalid", "Invalid or empty response"

        elapsed_ms = (time.monotonic() - start) * 1000

        if error_type is not None:
            logger.warning(f"[{label}] {candidate.name} failed ({error_type}): {reason}")
            attempts.append(Attempt(
                provider=candidate.name,
                status="failed",
                reason=reason,
                elapsed_ms=elapsed_ms,
                error_type=error_type
            ))
            continue

        attempts.append(Attempt(provider=candidate.name, status="success", elapsed_ms=elapsed_ms))
        if len(attempts) > 1:
            logger.info(f"[{label}] {candidate.name} succeeded after {len(attempts) - 1} failed attempt(s)")
        return FallbackResult(value=value, provider=candidate.name, attempts=attempts)

    if not attempts:
        logger.error(f"[{label}] No candidates to try")
    else:
        logger.error(f"[{label}] All {len(attempts)} candidates failed")
    raise AllCandidatesFailedError.from_attempts(attempts, f"All {label} candidates failed")


async def fetch_json(
    client: httpx.AsyncClient,
    method: str,
    url: str,
    *,
    timeout: Optional[float] = None,
    **kwargs
) -> Any:
    """
    Perform one HTTP request and decode its JSON body.

    Raises:
        UpstreamTimeoutError: Request exceeded its timeout
        UpstreamHTTPError: Non-2xx status
        UpstreamInvalidResponseError: Body is not JSON
        UpstreamError: Any other transport failure
    """
    label = endpoint_label(url)
    if timeout is not None:
        kwargs["timeout"] = timeout

    try:
        response = await client.request(method, url, **kwargs)
    except httpx.TimeoutException as e:
        raise UpstreamTimeoutError(f"Request to {label} timed out") from e
    except httpx.HTTPError as e:
        raise UpstreamError(f"Request to {label} failed: {e}") from e

    if not 200 <= response.status_code < 300:
        raise UpstreamHTTPError(
            f"{label} returned HTTP {response.status_code}",
            status=response.status_code,
            body=response.text
        )

    try:
        return response.json()
    except ValueError as e:
        raise UpstreamInvalidResponseError(f"{label} returned invalid JSON") from e
