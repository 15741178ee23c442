import asyncio
import logging
import socket
from typing import List, Optional

import uvicorn
from fastapi import FastAPI

from webhook_gateway.errors import ConfigurationError, GatewayError
from webhook_gateway.gateway import Endpoint
from webhook_gateway.service import RequestHandler, patterns_conflict, split_pattern

log = logging.getLogger(__name__)


class HTTPServer(RequestHandler):
    """
    Plain HTTP transport for gateway handlers, served by uvicorn.

    Args:
        host: Host to bind to. Default: "0.0.0.0"
        port: Port to listen on. Default: 8080
        shutdown_timeout: Seconds to wait for in-flight requests on shutdown.
            Default: None (wait indefinitely)
        log_level: Log level passed to uvicorn. Default: "info"
    """

    def __init__(
        self,
        host: str = "0.0.0.0",
        port: int = 8080,
        shutdown_timeout: Optional[float] = None,
        log_level: str = "info",
    ):
        if port < 0 or port > 65535:
            raise ValueError(f"port must be between 0 and 65535, got {port}")

        self.host = host
        self.port = port
        self.shutdown_timeout = shutdown_timeout
        self.log_level = log_level

        self.app = FastAPI(
            title="Webhook Gateway",
            description="Forwards alerting webhooks to messaging backends",
            version="1.0.0",
            docs_url=None,
            redoc_url=None,
            openapi_url=None,
        )

        self.patterns: List[str] = []
        self._server: Optional[uvicorn.Server] = None
        self._task: Optional[asyncio.Task] = None

    def handle(self, pattern: str, endpoint: Endpoint) -> None:
        """Register an endpoint for "[METHOD] /path". Conflicting patterns are rejected."""
        method, path = split_pattern(pattern)
        if not path.startswith("/"):
            raise ConfigurationError(f"invalid path '{path}' in pattern '{pattern}'")

        for existing in self.patterns:
            if patterns_conflict(pattern, existing):
                raise ConfigurationError(f"pattern '{pattern}' conflicts with '{existing}'")

        self.app.add_route(
            path,
            endpoint,
            methods=[method] if method else None,
            include_in_schema=False,
        )
        self.patterns.append(pattern)
        log.debug(f"[HTTPServer] Registered handler for {pattern}")

    def _listen(self) -> socket.socket:
        family = socket.AF_INET6 if ":" in self.host else socket.AF_INET
        try:
            return socket.create_server((self.host, self.port), family=family)
        except OSError as e:
            raise ConfigurationError(f"failed listening on {self.host}:{self.port}: {e}") from e

    @property
    def bound_port(self) -> Optional[int]:
        """Actual listening port, useful when configured with port 0."""
        if self._server is None or not self._server.servers:
            return None
        return self._server.servers[0].sockets[0].getsockname()[1]

    async def init(self) -> None:
        """
        Bind the listening socket and start serving in the background.

        Returns once uvicorn has started accepting connections.
        """
        sock = self._listen()
        config = uvicorn.Config(
            self.app,
            log_config=None,
            log_level=self.log_level,
            lifespan="off",
            timeout_graceful_shutdown=self.shutdown_timeout,
        )
        self._server = uvicorn.Server(config)
        self._task = asyncio.create_task(self._server.serve(sockets=[sock]))

        while not self._server.started:
            if self._task.done():
                sock.close()
                self._task.result()
                raise GatewayError("HTTP server exited during startup")
            await asyncio.sleep(0.01)

        log.info(f"[HTTPServer] Listening on {self.host}:{self.bound_port}")

    async def wait(self) -> None:
        if self._task is not None:
            await self._task

    async def shutdown(self) -> None:
        if self._server is None or self._task is None:
            return

        log.info("[HTTPServer] Shutting down, waiting for in-flight requests")
        self._server.should_exit = True
        await self._task
