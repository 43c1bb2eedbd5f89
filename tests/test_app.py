"""
Tests for the client factory and logging setup.
"""

import io

from loguru import logger

from ttt_client.app import configure_logging, create_client
from ttt_client.client import GameClient
from ttt_client.config import ClientConfig
from ttt_client.transport import NakamaTransport


def test_create_client():
    """Test that the factory builds a client for the configured server."""
    config = ClientConfig(username="alice", device_id="dev-1", server_url="game.example.com:7351")
    client = create_client(config)
    assert isinstance(client, GameClient)
    assert isinstance(client.transport, NakamaTransport)
    assert client.transport.http_url == "http://game.example.com:7351"
    assert client.config is config


def test_create_client_with_transport(transport, recorder):
    config = ClientConfig(username="alice", device_id="dev-1")
    client = create_client(config, recorder, transport)
    assert client.transport is transport
    assert client.notify is recorder


def test_create_client_reads_environment(monkeypatch):
    monkeypatch.setenv('TTT_SERVER_URL', "env.example.com:9000")
    client = create_client()
    assert client.transport.http_url == "http://env.example.com:9000"


def test_configure_logging_level():
    stream = io.StringIO()
    configure_logging("WARNING", stream)
    logger.info("hidden")
    logger.warning("shown")
    output = stream.getvalue()
    assert "hidden" not in output
    assert "WARNING | shown" in output
