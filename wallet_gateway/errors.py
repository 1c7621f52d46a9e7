"""
Error types for the wallet gateway.

Every error raised on purpose inside the gateway derives from GatewayError and
carries the HTTP status it should be rendered with.
"""
from typing import Any, Dict, List, Optional


class GatewayError(Exception):
    """Base class for errors rendered as JSON error payloads."""

    status_code = 500

    def __init__(
        self,
        message: str,
        details: Any = None,
        status_code: Optional[int] = None
    ):
        super().__init__(message)
        self.message = message
        self.details = details
        if status_code is not None:
            self.status_code = status_code

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"error": self.message}
        if self.details is not None:
            payload["details"] = self.details
        return payload


class BadRequestError(GatewayError):
    status_code = 400


class UnauthorizedError(GatewayError):
    status_code = 401


class NotFoundError(GatewayError):
    status_code = 404


class NoRouteError(GatewayError):
    """No direct or bridged quote could be found for a token pair."""

    status_code = 404

    def __init__(
        self,
        message: str,
        attempts: Optional[List[Dict[str, Any]]] = None,
        extra: Optional[Dict[str, Any]] = None
    ):
        super().__init__(message)
        self.attempts = attempts or []
        self.extra = extra or {}

    def to_dict(self) -> Dict[str, Any]:
        payload = super().to_dict()
        payload.update(self.extra)
        payload["attempts"] = self.attempts
        return payload


class UpstreamError(GatewayError):
    """A single upstream candidate failed."""

    status_code = 502
    error_type = "error"


class UpstreamTimeoutError(UpstreamError):
    status_code = 504
    error_type = "timeout"


class UpstreamHTTPError(UpstreamError):
    """Upstream answered with a non-2xx status."""

    error_type = "http"

    def __init__(self, message: str, status: int, body: str = ""):
        super().__init__(message, details=body[:200] if body else None)
        self.status = status
        self.body = body

    @property
    def is_client_error(self) -> bool:
        return self.status in (400, 404)

    @property
    def is_retryable(self) -> bool:
        return self.status == 429 or self.status >= 500


class UpstreamInvalidResponseError(UpstreamError):
    """Upstream answered 2xx but the body is unusable (bad JSON, RPC error, empty result)."""

    error_type = "invalid"


class AllCandidatesFailedError(UpstreamError):
    """Every candidate in a fallback chain failed."""

    error_type = "exhausted"

    def __init__(
        self,
        message: str,
        attempts: Optional[List[Any]] = None,
        details: Any = None,
        status_code: Optional[int] = None
    ):
        super().__init__(message, details=details, status_code=status_code)
        self.attempts = list(attempts or [])

    @classmethod
    def from_attempts(cls, attempts: List[Any], message: str) -> "AllCandidatesFailedError":
        """
        Build the exhaustion error for a list of Attempt records.

        Status is 504 when every attempt timed out, 502 otherwise. The details
        field keeps the last failure reason for clients that only read it.
        """
        timed_out = bool(attempts) and all(
            getattr(a, "error_type", None) == "timeout" for a in attempts
        )
        details = attempts[-1].reason if attempts else "No candidates configured"
        return cls(
            message,
            attempts=attempts,
            details=details,
            status_code=504 if timed_out else 502
        )

    def to_dict(self) -> Dict[str, Any]:
        payload = super().to_dict()
        payload["endpointsAttempted"] = len(self.attempts)
        payload["attempts"] = [
            a.to_dict() if hasattr(a, "to_dict") else a for a in self.attempts
        ]
        return payload
