"""Error types raised across the gateway.

Startup errors (ConfigurationError, UnknownTypeError, AdapterInitError) abort
service initialization. Request errors (AuthenticationError, ParseError,
DeliveryError) are local to a single request and are reported to the webhook
sender as an HTTP 400.
"""

from typing import Optional


class GatewayError(Exception):
    """Base class for all gateway errors."""


class ConfigurationError(GatewayError):
    """Missing or contradictory service, gateway or adapter configuration."""


class UnknownTypeError(ConfigurationError):
    """A source or destination type name has no registered factory."""

    def __init__(self, type_name: str, kind: str = "adapter"):
        self.type_name = type_name
        self.kind = kind
        super().__init__(f"unknown {kind} type '{type_name}'")


class AdapterInitError(GatewayError):
    """A source or destination failed its own initialization."""

    def __init__(self, stage: str, cause: Optional[BaseException] = None):
        self.stage = stage
        self.cause = cause
        message = f"failed initializing {stage}"
        if cause is not None:
            message += f": {cause}"
        super().__init__(message)


class AuthenticationError(GatewayError):
    """An inbound request carried a missing or incorrect credential."""


class ParseError(GatewayError):
    """An inbound request payload could not be turned into messages."""


class DeliveryError(GatewayError):
    """A destination failed to push messages to its remote endpoint."""
