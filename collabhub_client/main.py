"""
Client entry point.

Loads configuration, configures logging, connects and logs every inbound
event. Configured rooms are rejoined on every (re)connect.
"""

from __future__ import annotations

import argparse
import asyncio
import sys

import structlog
import websockets

from collabhub.core.logging import configure_logging

from .config import ClientConfig, load_config
from .connection import AuthenticationError, RealtimeClient, ReconnectExhausted

log = structlog.get_logger()


def build_client(config: ClientConfig, token: str, connect=websockets.connect) -> RealtimeClient:
    client = RealtimeClient(config.server.url, token, reconnect=config.reconnect, connect=connect)

    async def rejoin() -> None:
        for project_id in config.rooms:
            await client.join_room(project_id)
        log.info("client.rooms_joined", rooms=config.rooms)

    def log_event(event: dict) -> None:
        log.info("client.event", event_type=event.get("type"), event=event)

    client.on_connect(rejoin)
    client.on_reconnect(rejoin)
    client.on("*", log_event)
    return client


async def _run(client: RealtimeClient) -> int:
    try:
        await client.run()
    except AuthenticationError as exc:
        log.error("client.exit", reason="authentication_failed", error=str(exc))
        return 2
    except ReconnectExhausted as exc:
        log.error("client.exit", reason="reconnect_exhausted", attempts=exc.attempts)
        return 1
    return 0


def run() -> None:
    """CLI entry point for the realtime client."""
    parser = argparse.ArgumentParser(description="CollabHub realtime client")
    parser.add_argument(
        "-c", "--config",
        default="client.yaml",
        help="Path to configuration file (default: client.yaml)",
    )
    args = parser.parse_args()

    try:
        config = load_config(args.config)
    except FileNotFoundError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        sys.exit(1)
    except Exception as exc:
        print(f"Configuration error: {exc}", file=sys.stderr)
        sys.exit(1)

    token = config.server.token
    if not token:
        print(f"Error: environment variable {config.server.token_env} is not set", file=sys.stderr)
        sys.exit(1)

    configure_logging(config.logging.level, config.logging.format)
    log.info("client.config_loaded", config_path=args.config, rooms=len(config.rooms))

    client = build_client(config, token)
    try:
        sys.exit(asyncio.run(_run(client)))
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    run()
