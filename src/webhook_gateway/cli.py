#!/usr/bin/env python3
"""
Webhook Gateway command-line entry point.

Usage:
    webhook-gateway
    webhook-gateway --config /etc/webhook-gateway/config.toml
    webhook-gateway --config config.yaml --log-level debug
    python -m webhook_gateway --config config.toml
"""

import argparse
import asyncio
import logging
import signal
import sys

from webhook_gateway import destinations, sources  # noqa: F401  (registers built-in adapters)
from webhook_gateway.config import build_service, load_config
from webhook_gateway.errors import GatewayError

log = logging.getLogger("webhook_gateway")

LOG_LEVELS = ("debug", "info", "warning", "error")


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="webhook-gateway",
        description="Forward alerting webhooks to messaging backends.",
    )
    parser.add_argument(
        "--config",
        default="config.toml",
        help="Path to main configuration file, in TOML or YAML format (default: config.toml)",
    )
    parser.add_argument(
        "--log-level",
        default="info",
        choices=LOG_LEVELS,
        help="The minimum log level to process logs under (default: info)",
    )
    return parser.parse_args(argv)


def setup_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper()),
        format="%(asctime)s  %(levelname)-8s  %(name)s  %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


async def run(args: argparse.Namespace) -> None:
    """Build the service from configuration and serve until signalled to stop."""
    service = build_service(load_config(args.config), log_level=args.log_level)

    loop = asyncio.get_running_loop()
    stop = asyncio.Event()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, stop.set)

    try:
        await service.init()
        log.info("Waiting for incoming messages...")

        stopped = asyncio.create_task(stop.wait())
        serving = asyncio.create_task(service.wait())
        done, _ = await asyncio.wait({stopped, serving}, return_when=asyncio.FIRST_COMPLETED)
        stopped.cancel()
        if serving in done:
            serving.result()
    finally:
        await service.shutdown()
        log.info("Shut down")


def main(argv=None) -> int:
    args = parse_args(argv)
    setup_logging(args.log_level)

    try:
        asyncio.run(run(args))
    except GatewayError as e:
        log.error(f"Failed to initialize service: {e}")
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
