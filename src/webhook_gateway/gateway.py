import logging
from abc import ABC, abstractmethod
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple

from pydantic import BaseModel
from starlette.requests import Request
from starlette.responses import PlainTextResponse, Response

from webhook_gateway.context import secret_context
from webhook_gateway.errors import AdapterInitError, ConfigurationError, GatewayError

log = logging.getLogger(__name__)

Endpoint = Callable[[Request], Awaitable[Response]]


class Message(BaseModel):
    """A notification, as parsed by a Source and handed to a Destination."""

    content: str


class Source(ABC):
    """
    Abstract base class for message sources.

    A source turns an incoming webhook request into zero or more Messages.
    Sources are responsible for checking inbound credentials against the
    gateway secret, which is available through webhook_gateway.context.get_secret().
    """

    @abstractmethod
    async def parse_http(self, request: Request) -> List[Message]:
        """
        Parse messages from an incoming HTTP request.

        Args:
            request: The inbound webhook request

        Returns:
            List of parsed messages

        Raises:
            AuthenticationError: if the request credentials don't match the gateway secret
            ParseError: if the request payload is malformed
        """
        pass

    @abstractmethod
    async def init(self) -> None:
        """
        Prepare the source for handling requests.

        Called once at startup, before any request handler is registered.
        """
        pass

    def configure(self, data: Dict[str, Any]) -> None:
        """
        Apply adapter-specific configuration.

        Sources that take no settings reject any non-empty configuration.

        Args:
            data: The configuration sub-tree named after the source type
        """
        if data:
            raise ConfigurationError(
                f"{type(self).__name__} takes no configuration, got keys: {sorted(data)}"
            )

    async def close(self) -> None:
        """Release any resources held by the source."""
        pass


class Destination(ABC):
    """
    Abstract base class for message destinations.

    A destination pushes Messages to a (usually remote) messaging endpoint.
    Destinations may be called concurrently, and serialize access to any
    shared connection state themselves.
    """

    @abstractmethod
    async def push_messages(self, messages: List[Message]) -> None:
        """
        Deliver messages to the remote endpoint.

        Args:
            messages: Messages to deliver, in order

        Raises:
            DeliveryError: if any message could not be delivered
        """
        pass

    @abstractmethod
    async def init(self) -> None:
        """
        Connect to the remote endpoint, if necessary.

        Called once at startup, before any request handler is registered.
        """
        pass

    def configure(self, data: Dict[str, Any]) -> None:
        """
        Apply adapter-specific configuration.

        Args:
            data: The configuration sub-tree named after the destination type
        """
        if data:
            raise ConfigurationError(
                f"{type(self).__name__} takes no configuration, got keys: {sorted(data)}"
            )

    async def close(self) -> None:
        """Close any connections held by the destination."""
        pass


class Gateway:
    """
    A Source-to-Destination mapping served on a single HTTP path.

    Most of the work is done by the attached source and destination; the
    gateway binds them to a path and makes its secret available to the source
    while a request is handled.

    Args:
        path: HTTP path, optionally prefixed with a method (e.g. "POST /alerts").
            Defaults to "/" + secret when empty.
        secret: Shared secret that inbound requests are checked against
        source: Source used for parsing incoming requests
        destination: Destination that parsed messages are pushed to

    Usage:
        gateway = Gateway(
            secret="1234",
            source=GrafanaSource(),
            destination=WebhookDestination(),
        )
        await gateway.init()
        pattern, endpoint = gateway.handle_http()
    """

    def __init__(
        self,
        path: Optional[str] = None,
        secret: Optional[str] = None,
        source: Optional[Source] = None,
        destination: Optional[Destination] = None,
    ):
        self.path = path or ""
        self.secret = secret or ""
        self.source = source
        self.destination = destination

    def resolve_path(self) -> str:
        """
        Return the HTTP pattern for this gateway, deriving it from the secret if unset.

        Raises:
            ConfigurationError: if path and secret are both empty
        """
        if not self.path and not self.secret:
            raise ConfigurationError("no path or secret found in gateway configuration")
        elif not self.path:
            log.info("[Gateway] No path defined in gateway configuration, using gateway secret for path")
            self.path = "/" + self.secret
        return self.path

    async def init(self) -> None:
        """
        Validate the gateway and initialize its source and destination, in that order.

        Raises:
            ConfigurationError: if path and secret are both empty, or an adapter is missing
            AdapterInitError: if the source or destination fails to initialize
        """
        self.resolve_path()

        if self.source is None:
            raise ConfigurationError("no source configuration found")
        try:
            await self.source.init()
        except Exception as e:
            raise AdapterInitError("source", e) from e

        if self.destination is None:
            raise ConfigurationError("no destination configuration found")
        try:
            await self.destination.init()
        except Exception as e:
            raise AdapterInitError("destination", e) from e

    def handle_http(self) -> Tuple[str, Endpoint]:
        """Return the HTTP pattern and request handler for this gateway."""
        return self.path, self.handle_request

    async def handle_request(self, request: Request) -> Response:
        """
        Parse messages from the request and push them to the destination.

        Responds with 400 if parsing fails, if no messages were parsed, or if
        pushing fails. No retries are attempted; the webhook sender owns its
        own retry policy.
        """
        with secret_context(self.secret):
            try:
                messages = await self.source.parse_http(request)
            except GatewayError as e:
                return self._reject(f"failed processing incoming request: {e}")
            except Exception as e:
                log.exception(f"[Gateway] Unexpected source error on {self.path}")
                return self._reject(f"failed processing incoming request: {e}")

            if not messages:
                return self._reject("failed processing incoming request: no messages found in request")

            try:
                await self.destination.push_messages(messages)
            except GatewayError as e:
                return self._reject(f"failed pushing notification messages: {e}")
            except Exception as e:
                log.exception(f"[Gateway] Unexpected destination error on {self.path}")
                return self._reject(f"failed pushing notification messages: {e}")

        log.debug(f"[Gateway] Pushed {len(messages)} message(s) from {self.path}")
        return Response(status_code=200)

    def _reject(self, detail: str) -> Response:
        log.debug(f"[Gateway] {self.path}: {detail}")
        return PlainTextResponse(detail, status_code=400)

    async def close(self) -> None:
        if self.source is not None:
            await self.source.close()
        if self.destination is not None:
            await self.destination.close()
