"""Built-in message sources. Importing this package registers them."""

from webhook_gateway.sources.alertmanager import AlertmanagerSource
from webhook_gateway.sources.cloudflare import CloudflareSource
from webhook_gateway.sources.grafana import GrafanaSource

__all__ = [
    "AlertmanagerSource",
    "CloudflareSource",
    "GrafanaSource",
]
