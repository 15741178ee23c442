"""Shared-secret credential checks used by source adapters."""

import hmac

from starlette.requests import Request

from webhook_gateway.context import get_secret
from webhook_gateway.errors import AuthenticationError


def _matches(token: str, secret: str) -> bool:
    return hmac.compare_digest(token.encode("utf-8"), secret.encode("utf-8"))


def verify_bearer_token(request: Request) -> None:
    """
    Check the request's Authorization header against the gateway secret.

    Expects "Authorization: Bearer <secret>". Does nothing when no secret is
    set for the current request.

    Raises:
        AuthenticationError: if the header is missing or the token is wrong
    """
    secret = get_secret()
    if not secret:
        return

    header = request.headers.get("Authorization")
    if not header:
        raise AuthenticationError("Authorization header not found")

    scheme, _, token = header.partition(" ")
    if scheme.lower() != "bearer" or not _matches(token.strip(), secret):
        raise AuthenticationError("invalid Bearer token")


def verify_header_token(request: Request, header_name: str) -> None:
    """
    Check a plain token header (e.g. "cf-webhook-auth") against the gateway secret.

    Raises:
        AuthenticationError: if the header is missing or the token is wrong
    """
    secret = get_secret()
    if not secret:
        return

    token = request.headers.get(header_name)
    if not token:
        raise AuthenticationError(f"{header_name} header not found")
    if not _matches(token, secret):
        raise AuthenticationError("invalid authentication token")
