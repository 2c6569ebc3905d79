import hmac
import logging

from fastapi import Depends, Request

from .errors import AuthError
from .helpers import api_key_from_headers
from .state import RelayState

logger = logging.getLogger(__name__)


def get_state(request: Request) -> RelayState:
    return request.app.state.relay


def require_api_key(request: Request, state: RelayState = Depends(get_state)) -> None:
    """Print client auth: X-API-Key, Authorization or X-Android-Key, optional Bearer prefix."""
    expected = state.settings.api_key
    if not expected:
        logger.warning("API key not configured, allowing all requests")
        return

    token = api_key_from_headers(request.headers)
    if not token:
        raise AuthError("Please provide an API key in the headers", code="API_KEY_MISSING")
    if not hmac.compare_digest(token.encode("utf-8"), expected.encode("utf-8")):
        client = request.client.host if request.client else "unknown"
        logger.warning("Invalid API key attempt from %s", client)
        raise AuthError("The provided API key is invalid", code="INVALID_API_KEY", status_code=403)


def require_admin_token(request: Request, state: RelayState = Depends(get_state)) -> None:
    expected = state.settings.admin_token
    given = request.headers.get("x-admin-token", "")
    if not expected or not hmac.compare_digest(given.encode("utf-8"), expected.encode("utf-8")):
        raise AuthError("Unauthorized")
