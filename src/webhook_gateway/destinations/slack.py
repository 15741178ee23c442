import asyncio
import logging
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from webhook_gateway.concurrency import run_blocking
from webhook_gateway.config import parse_adapter_config
from webhook_gateway.errors import ConfigurationError, DeliveryError
from webhook_gateway.gateway import Destination, Message
from webhook_gateway.registry import register_destination

log = logging.getLogger(__name__)

try:
    from slack_sdk import WebClient
    from slack_sdk.errors import SlackApiError
    _SLACK_AVAILABLE = True
except ImportError:
    WebClient = None
    SlackApiError = None
    _SLACK_AVAILABLE = False


_PERMISSION_ERRORS = frozenset({
    "missing_scope", "not_authed", "invalid_auth", "token_revoked",
    "account_inactive", "no_permission", "not_in_channel", "channel_not_found",
})


class SlackConfig(BaseModel):
    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    token: str = Field(min_length=1)
    channels: List[str] = Field(min_length=1)
    verify_token: bool = Field(default=False, alias="verify-token")


class SlackDestination(Destination):
    """
    Slack destination using the Slack Web API.

    Every message is posted to every configured channel with chat.postMessage.
    The bot must be a member of each channel.

    Args:
        token: Slack Bot User OAuth Token (xoxb-...)
        channels: Channel IDs (or names like "#alerts") to post to
        verify_token: Whether to call Slack auth.test in init().
            Default: False (avoids network calls during startup)

    Usage:
        destination = SlackDestination(
            token=os.getenv("SLACK_BOT_TOKEN"),
            channels=["#alerts"],
        )
        await destination.init()
        await destination.push_messages([Message(content="Disk is full")])
    """

    def __init__(
        self,
        token: Optional[str] = None,
        channels: Optional[List[str]] = None,
        verify_token: bool = False,
    ):
        self.token = token
        self.channels: List[str] = list(channels or [])
        self.verify_token = verify_token

        self.client = None
        self._lock = asyncio.Lock()

    def configure(self, data: Dict[str, Any]) -> None:
        conf = parse_adapter_config(SlackConfig, data, "destination", "slack")
        self.token = conf.token
        self.channels = conf.channels
        self.verify_token = conf.verify_token

    async def init(self) -> None:
        if not _SLACK_AVAILABLE:
            raise ImportError(
                "slack-sdk library is required for SlackDestination. "
                "Install with: pip install webhook-gateway[slack]"
            )
        if not self.token:
            raise ConfigurationError("no Slack token given in configuration")
        if not self.channels:
            raise ConfigurationError("no Slack channels given in configuration")

        self.client = WebClient(token=self.token)

        if self.verify_token:
            try:
                result = await run_blocking(self.client.auth_test)
            except SlackApiError as e:
                raise ConfigurationError(f"Slack token verification failed: {self._error_code(e)}") from e
            log.info(f"[SlackDestination] Authenticated as {result.get('user', 'unknown')}")

        log.info(f"[SlackDestination] Initialized for {len(self.channels)} channel(s)")

    @staticmethod
    def _error_code(e) -> str:
        return e.response.get("error", "unknown_error")

    def _post(self, channel: str, text: str) -> None:
        try:
            self.client.chat_postMessage(channel=channel, text=text)
        except SlackApiError as e:
            error_code = self._error_code(e)
            msg = f"[SlackDestination] Failed to send message to {channel}: {error_code}"
            if error_code in _PERMISSION_ERRORS:
                needed = e.response.get("needed")
                if needed:
                    msg += f" (scope needed: {needed})"
                log.warning(msg)
            else:
                log.error(msg)
            raise DeliveryError(f"failed posting message to Slack channel {channel}: {error_code}") from e

        log.debug(f"[SlackDestination] Sent message to {channel}: {text[:50]}")

    async def push_messages(self, messages: List[Message]) -> None:
        async with self._lock:
            if self.client is None:
                raise DeliveryError("Slack destination is not initialized")
            for message in messages:
                for channel in self.channels:
                    await run_blocking(self._post, channel, message.content)


register_destination("slack", SlackDestination)
