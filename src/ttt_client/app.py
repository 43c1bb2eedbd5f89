"""
Client factory and logging setup.

This module creates a configured GameClient talking to the game server
through the Nakama transport.
"""

import sys

from loguru import logger

from .client import GameClient
from .config import ClientConfig
from .transport import NakamaTransport


def configure_logging(level="INFO", sink=None):
    """
    Replace loguru's default handler with a single one at the given level.

    Args:
        level: Minimum level name, e.g. "DEBUG" or "INFO"
        sink: Where to write records; defaults to stderr so that log lines
            don't interleave with the console UI on stdout
    """
    logger.remove()  # Remove default handler
    logger.add(
        sink if sink is not None else sys.stderr,
        format="{time} | {level} | {message}",
        level=level,
        colorize=sink is None,
    )


def create_client(config=None, notify=None, transport=None):
    """
    Create and configure a game client.

    Args:
        config: ClientConfig; read from the environment when omitted
        notify: Notification sink; notifications are dropped when omitted
        transport: Transport to use; a NakamaTransport for the configured
            server when omitted

    Returns:
        GameClient instance
    """
    if config is None:
        config = ClientConfig.from_env()

    configure_logging(config.log_level)
    logger.info("Starting tic-tac-toe client")

    if transport is None:
        host, port = config.address()
        transport = NakamaTransport(
            host,
            port,
            server_key=config.server_key,
            use_ssl=config.use_ssl,
        )

    return GameClient(transport, config, notify or (lambda notification: None))
