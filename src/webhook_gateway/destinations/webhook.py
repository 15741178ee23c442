"""Webhook Destination - Posts messages to an incoming-webhook URL.

Works with any chat backend that accepts a JSON body with the message text
in a single field, e.g. Discord ("content"), Slack or Mattermost incoming
webhooks ("text").
"""

import asyncio
import logging
from typing import Any, Dict, List, Optional

import requests
from pydantic import BaseModel, ConfigDict, Field, HttpUrl

from webhook_gateway.concurrency import run_blocking
from webhook_gateway.config import parse_adapter_config
from webhook_gateway.errors import ConfigurationError, DeliveryError
from webhook_gateway.gateway import Destination, Message
from webhook_gateway.registry import register_destination

log = logging.getLogger(__name__)


class WebhookConfig(BaseModel):
    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    url: HttpUrl
    field: str = Field(default="content", min_length=1)
    headers: Dict[str, str] = Field(default_factory=dict)
    bearer_token: Optional[str] = Field(default=None, alias="bearer-token")
    timeout: float = Field(default=30.0, gt=0)


class WebhookDestination(Destination):
    """
    Incoming-webhook destination.

    Each message is sent as a separate POST of {field: content}. Pushes are
    serialized, since they share one HTTP session.

    Args:
        url: Webhook URL to post messages to
        field: JSON field carrying the message text. Default: "content"
        headers: Extra HTTP headers sent with every request
        bearer_token: Optional token sent as "Authorization: Bearer <token>"
        timeout: Request timeout in seconds. Default: 30
    """

    def __init__(
        self,
        url: Optional[str] = None,
        field: str = "content",
        headers: Optional[Dict[str, str]] = None,
        bearer_token: Optional[str] = None,
        timeout: float = 30.0,
    ):
        self.url = url
        self.field = field
        self.headers = dict(headers or {})
        self.bearer_token = bearer_token
        self.timeout = timeout

        self.session: Optional[requests.Session] = None
        self._lock = asyncio.Lock()

    def configure(self, data: Dict[str, Any]) -> None:
        conf = parse_adapter_config(WebhookConfig, data, "destination", "webhook")
        self.url = str(conf.url)
        self.field = conf.field
        self.headers = conf.headers
        self.bearer_token = conf.bearer_token
        self.timeout = conf.timeout

    async def init(self) -> None:
        if not self.url:
            raise ConfigurationError("no webhook url given in configuration")

        self.session = requests.Session()
        self.session.headers.update({"Content-Type": "application/json", **self.headers})
        if self.bearer_token:
            self.session.headers["Authorization"] = f"Bearer {self.bearer_token}"

        log.info(f"[WebhookDestination] Initialized for {self.url}")

    async def push_messages(self, messages: List[Message]) -> None:
        async with self._lock:
            if self.session is None:
                raise DeliveryError("webhook destination is not initialized")
            for message in messages:
                await run_blocking(self._post, message)

    def _post(self, message: Message) -> None:
        try:
            response = self.session.post(
                self.url,
                json={self.field: message.content},
                timeout=self.timeout,
            )
            response.raise_for_status()
        except requests.exceptions.RequestException as e:
            log.error(f"[WebhookDestination] Send failed: {e}")
            raise DeliveryError(f"failed posting message to webhook: {e}") from e

        log.debug(f"[WebhookDestination] Sent message: {message.content[:50]}")

    async def close(self) -> None:
        async with self._lock:
            if self.session is not None:
                self.session.close()
                self.session = None


register_destination("webhook", WebhookDestination)
