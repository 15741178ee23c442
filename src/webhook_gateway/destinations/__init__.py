"""Built-in message destinations. Importing this package registers them."""

from webhook_gateway.destinations.slack import SlackDestination
from webhook_gateway.destinations.webhook import WebhookDestination
from webhook_gateway.destinations.xmpp import XMPPDestination

__all__ = [
    "SlackDestination",
    "WebhookDestination",
    "XMPPDestination",
]
