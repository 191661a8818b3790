"""
Identity middleware for deployments behind a mutual-auth terminator.

The payment middleware needs the caller's verified identity key. This
middleware trusts the X-BSV-Auth-Identity-Key header set by an upstream
proxy that has already performed BRC-103 mutual authentication, and places
the key on the request context. It must never be exposed directly to
clients, since it does not verify signatures itself.
"""
import logging
import re
from typing import Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from paywall.core.config import settings
from paywall.payment.errors import unauthorized
from paywall.payment.middleware import set_request_context
from paywall.payment.models import RequestContext

logger = logging.getLogger(__name__)

X_BSV_AUTH_IDENTITY_KEY_HEADER = "x-bsv-auth-identity-key"

# 33-byte compressed secp256k1 public key
IDENTITY_KEY_PATTERN = re.compile(r"^0[23][0-9a-fA-F]{64}$")


def is_valid_identity_key(value: str) -> bool:
    """Check that a value is a hex-encoded compressed public key."""
    return bool(IDENTITY_KEY_PATTERN.match(value))


class IdentityKeyAuthMiddleware(BaseHTTPMiddleware):
    """Sets request.state.context from the trusted identity header."""

    async def dispatch(
        self,
        request: Request,
        call_next: Callable[[Request], Response]
    ) -> Response:
        if request.url.path in settings.PUBLIC_PATHS:
            return await call_next(request)

        identity_key = request.headers.get(X_BSV_AUTH_IDENTITY_KEY_HEADER)
        if not identity_key:
            return unauthorized("Mutual authentication is required for this request.").to_response()

        if not is_valid_identity_key(identity_key):
            logger.warning(f"Rejected malformed identity key header: {identity_key[:16]!r}")
            return unauthorized("The X-BSV-Auth-Identity-Key header is not a valid public key.").to_response()

        set_request_context(request, RequestContext(identity_key=identity_key.lower()))
        return await call_next(request)
