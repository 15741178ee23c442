"""Request-scoped gateway secret.

The gateway handling a request stores its configured secret here before
calling into its source, so that source adapters can validate inbound
credentials without the secret being part of their interface. Every ASGI
request runs in its own task, and therefore in its own copy of the context.
"""

from contextlib import contextmanager
from contextvars import ContextVar, Token
from typing import Iterator

_secret: ContextVar[str] = ContextVar("webhook_gateway_secret", default="")


def set_secret(secret: str) -> Token:
    """Store the gateway secret in the current context, returning a reset token."""
    return _secret.set(secret or "")


def reset_secret(token: Token) -> None:
    _secret.reset(token)


def get_secret() -> str:
    """
    Return the gateway secret for the current request.

    An empty string means no secret is configured, and callers should skip
    any authentication check.
    """
    return _secret.get()


@contextmanager
def secret_context(secret: str) -> Iterator[None]:
    """Set the gateway secret for the duration of the block."""
    token = set_secret(secret)
    try:
        yield
    finally:
        reset_secret(token)
