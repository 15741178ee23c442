import logging
from abc import ABC, abstractmethod
from typing import List, Optional, Tuple

from starlette.requests import Request
from starlette.responses import Response

from webhook_gateway.errors import ConfigurationError
from webhook_gateway.gateway import Endpoint, Gateway

log = logging.getLogger(__name__)

HEALTH_PATTERN = "GET /_health"


def split_pattern(pattern: str) -> Tuple[Optional[str], str]:
    """
    Split a handler pattern into an optional HTTP method and a path.

    "POST /alerts" -> ("POST", "/alerts"), "/alerts" -> (None, "/alerts")
    """
    pattern = pattern.strip()
    method, sep, path = pattern.partition(" ")
    if not sep:
        return None, pattern
    return method.upper(), path.strip()


def patterns_conflict(a: str, b: str) -> bool:
    """Two patterns conflict if they share a path and could match the same method."""
    method_a, path_a = split_pattern(a)
    method_b, path_b = split_pattern(b)
    if path_a != path_b:
        return False
    return method_a is None or method_b is None or method_a == method_b


class RequestHandler(ABC):
    """
    Abstract base class for the transport that serves gateway handlers.

    Handlers are registered before init(); init() starts serving and returns
    once the transport is accepting requests.
    """

    @abstractmethod
    def handle(self, pattern: str, endpoint: Endpoint) -> None:
        """
        Register a request handler.

        Args:
            pattern: Path, optionally prefixed with an HTTP method ("POST /alerts")
            endpoint: Coroutine function taking a Request and returning a Response
        """
        pass

    @abstractmethod
    async def init(self) -> None:
        """Start serving, returning once the transport accepts requests."""
        pass

    async def wait(self) -> None:
        """Wait until the transport stops serving."""
        pass

    async def shutdown(self) -> None:
        """Stop accepting requests and wait for in-flight requests to finish."""
        pass


class Service:
    """
    A collection of Gateways served through a single RequestHandler.

    Args:
        handler: Transport that gateway handlers are registered with
        gateways: Gateways to serve, in configuration order

    Usage:
        service = Service(handler=HTTPServer(port=8080))
        service.add_gateway(gateway)
        await service.init()
        await service.wait()
        await service.shutdown()
    """

    def __init__(
        self,
        handler: Optional[RequestHandler] = None,
        gateways: Optional[List[Gateway]] = None,
    ):
        self.handler = handler
        self.gateways: List[Gateway] = list(gateways or [])

    def add_gateway(self, gateway: Gateway) -> None:
        self.gateways.append(gateway)

    async def init(self) -> None:
        """
        Initialize every gateway and register its handler, then start the transport.

        Gateways are initialized in order. A gateway's path is checked against
        those already registered before its adapters are initialized, and its
        handler is only registered once it has initialized. The transport starts last, so no
        request is accepted before every gateway is ready.

        Raises:
            ConfigurationError: if there is no handler or gateway, or two gateways share a path
            AdapterInitError: if a gateway's source or destination fails to initialize
        """
        if self.handler is None:
            raise ConfigurationError("no request handler configuration found")
        elif not self.gateways:
            raise ConfigurationError("no gateway configuration found")

        try:
            self.handler.handle(*self.handle_health())
        except ConfigurationError as e:
            raise ConfigurationError(f"failed setting up request handler for health-checks: {e}") from e

        registered = [HEALTH_PATTERN]
        for index, gateway in enumerate(self.gateways):
            try:
                pattern = gateway.resolve_path()
                for existing in registered:
                    if patterns_conflict(pattern, existing):
                        raise ConfigurationError(
                            f"gateway path '{pattern}' conflicts with already registered path '{existing}'"
                        )

                await gateway.init()
            except Exception as e:
                log.error(f"[Service] Failed initializing gateway #{index}: {e}")
                raise

            pattern, endpoint = gateway.handle_http()
            self.handler.handle(pattern, endpoint)
            registered.append(pattern)
            log.info(f"[Service] Registered gateway on {pattern}")

        await self.handler.init()

    async def wait(self) -> None:
        if self.handler is not None:
            await self.handler.wait()

    async def shutdown(self) -> None:
        """Stop the transport, letting in-flight requests finish, then close all gateways."""
        if self.handler is not None:
            await self.handler.shutdown()

        for gateway in self.gateways:
            try:
                await gateway.close()
            except Exception as e:
                log.error(f"[Service] Failed closing gateway on {gateway.path}: {e}")

    def handle_health(self) -> Tuple[str, Endpoint]:
        async def health_check(request: Request) -> Response:
            return Response(status_code=200)

        return HEALTH_PATTERN, health_check
