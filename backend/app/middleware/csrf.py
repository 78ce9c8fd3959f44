"""Anti-forgery (CSRF) middleware using signed double-submit tokens.

GET /auth/csrf-token hands out a token both in the response body and in a
cookie. Every state-changing request must echo the token in the
X-CSRF-Token header; a cross-site form can send the cookie but cannot read
it to build the header. Tokens are HMAC-signed so a cookie planted by a
sibling subdomain is rejected as well.

Contract: either reject with 403 or pass the request through unchanged.
"""

import hashlib
import hmac
import logging
import secrets

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.responses import JSONResponse
from starlette.types import ASGIApp

logger = logging.getLogger(__name__)

CSRF_COOKIE_NAME = "csrfToken"
CSRF_HEADER_NAME = "X-CSRF-Token"

SAFE_METHODS = frozenset({"GET", "HEAD", "OPTIONS"})

# Unauthenticated probes that never change state
EXEMPT_PATHS = ["/health"]


def _signature(nonce: str, secret_key: str) -> str:
    return hmac.new(secret_key.encode(), nonce.encode(), hashlib.sha256).hexdigest()


def generate_csrf_token(secret_key: str) -> str:
    """Create a token of the form '<nonce>.<hmac>'."""
    nonce = secrets.token_urlsafe(32)
    return f"{nonce}.{_signature(nonce, secret_key)}"


def is_valid_csrf_token(token: str, secret_key: str) -> bool:
    nonce, sep, signature = token.partition(".")
    if not sep or not nonce or not signature:
        return False
    return hmac.compare_digest(signature, _signature(nonce, secret_key))


class CSRFMiddleware(BaseHTTPMiddleware):
    """Reject unsafe requests whose header token doesn't match the cookie."""

    def __init__(
        self,
        app: ASGIApp,
        secret_key: str,
        exempt_paths: list[str] | None = None,
    ) -> None:
        super().__init__(app)
        self.secret_key = secret_key
        self.exempt_paths = exempt_paths if exempt_paths is not None else EXEMPT_PATHS

    def _is_exempt(self, path: str) -> bool:
        return any(path == p or path.startswith(p + "/") for p in self.exempt_paths)

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        if request.method in SAFE_METHODS or self._is_exempt(request.url.path):
            return await call_next(request)

        header_token = request.headers.get(CSRF_HEADER_NAME)
        cookie_token = request.cookies.get(CSRF_COOKIE_NAME)

        if (
            not header_token
            or not cookie_token
            or not hmac.compare_digest(header_token, cookie_token)
            or not is_valid_csrf_token(header_token, self.secret_key)
        ):
            logger.warning(f"CSRF check failed: {request.method} {request.url.path}")
            return JSONResponse(status_code=403, content={"detail": "Invalid CSRF token"})

        return await call_next(request)
