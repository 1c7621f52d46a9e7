"""
API key guard for routes that accept signed transactions.
"""
import hmac
import logging
from typing import Optional

from fastapi import Request

from .errors import UnauthorizedError

logger = logging.getLogger(__name__)


def extract_api_key(request: Request) -> Optional[str]:
    """Key from ``Authorization: Bearer <key>`` or ``x-api-key: <key>``."""
    authorization = request.headers.get("authorization", "")
    if authorization.lower().startswith("bearer "):
        token = authorization[7:].strip()
        if token:
            return token
    return request.headers.get("x-api-key") or None


async def require_api_key(request: Request):
    """
    FastAPI dependency: enforce GATEWAY_API_KEY when it is configured.

    Raises:
        UnauthorizedError: Key missing or wrong
    """
    expected = request.app.state.settings.gateway_api_key
    if not expected:
        return

    provided = extract_api_key(request)
    if not provided or not hmac.compare_digest(provided.encode(), expected.encode()):
        logger.warning(f"Rejected request to {request.url.path}: missing or invalid API key")
        raise UnauthorizedError("Unauthorized", details="Missing or invalid API key")
