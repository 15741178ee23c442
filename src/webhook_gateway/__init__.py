"""Webhook Gateway - forwards alerting webhooks to messaging backends.

Built-in adapters live in webhook_gateway.sources and
webhook_gateway.destinations, and register themselves when those packages
are imported.
"""

from webhook_gateway.context import get_secret, secret_context, set_secret
from webhook_gateway.errors import (
    AdapterInitError,
    AuthenticationError,
    ConfigurationError,
    DeliveryError,
    GatewayError,
    ParseError,
    UnknownTypeError,
)
from webhook_gateway.gateway import Destination, Gateway, Message, Source
from webhook_gateway.registry import Registry, register_destination, register_source
from webhook_gateway.service import RequestHandler, Service

__all__ = [
    "AdapterInitError",
    "AuthenticationError",
    "ConfigurationError",
    "DeliveryError",
    "Destination",
    "Gateway",
    "GatewayError",
    "Message",
    "ParseError",
    "Registry",
    "RequestHandler",
    "Service",
    "Source",
    "UnknownTypeError",
    "get_secret",
    "register_destination",
    "register_source",
    "secret_context",
    "set_secret",
]
