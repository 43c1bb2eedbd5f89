"""
Unit tests for ClientConfig.
"""

import pytest

from ttt_client.config import ClientConfig, DEFAULT_PORT
from ttt_client.errors import ConfigError
from ttt_client.session_state import GameMode


class TestClientConfig:
    """Test cases for ClientConfig."""

    def setup_method(self):
        self.config = ClientConfig(username="alice", device_id="dev-1")

    def test_defaults(self):
        config = ClientConfig()
        assert config.server_url == f"127.0.0.1:{DEFAULT_PORT}"
        assert config.mode == GameMode.CLASSIC
        assert config.server_key == "defaultkey"
        assert config.leaderboard_interval == 10.0
        assert config.leaderboard_size == 10

    def test_from_env(self):
        config = ClientConfig.from_env({
            'TTT_USERNAME': "bob",
            'TTT_DEVICE_ID': "dev-2",
            'TTT_SERVER_URL': "game.example.com:8000",
            'TTT_GAME_MODE': "timed",
            'TTT_USE_SSL': "yes",
            'TTT_LEADERBOARD_INTERVAL': "2.5",
            'TTT_LEADERBOARD_SIZE': "3",
            'TTT_LOG_LEVEL': "debug",
        })
        assert config.username == "bob"
        assert config.device_id == "dev-2"
        assert config.address() == ("game.example.com", 8000)
        assert config.mode == GameMode.TIMED
        assert config.use_ssl
        assert config.leaderboard_interval == 2.5
        assert config.leaderboard_size == 3
        assert config.log_level == "DEBUG"

    def test_from_env_empty(self):
        assert ClientConfig.from_env({}) == ClientConfig()

    def test_from_env_invalid_number(self):
        with pytest.raises(ConfigError):
            ClientConfig.from_env({'TTT_LEADERBOARD_SIZE': "many"})

    def test_update_skips_none(self):
        config = self.config.update(username=None, game_mode="timed")
        assert config.username == "alice"
        assert config.game_mode == "timed"

    def test_update_unknown_setting(self):
        with pytest.raises(ConfigError):
            self.config.update(colour="blue")

    @pytest.mark.parametrize("url,expected", [
        ("localhost", ("localhost", DEFAULT_PORT)),
        ("localhost:9000", ("localhost", 9000)),
        ("http://localhost:9000/", ("localhost", 9000)),
        ("wss://game.example.com", ("game.example.com", DEFAULT_PORT)),
    ])
    def test_address(self, url, expected):
        assert self.config.update(server_url=url).address() == expected

    def test_address_invalid_port(self):
        with pytest.raises(ConfigError):
            self.config.update(server_url="localhost:abc").address()

    def test_validate_accepts_complete_config(self):
        self.config.validate()

    def test_validate_lists_missing_fields(self):
        config = ClientConfig(username=" ", device_id="")
        with pytest.raises(ConfigError) as exc_info:
            config.validate()
        assert str(exc_info.value) == "Please enter username, device ID"

    def test_validate_rejects_unknown_mode(self):
        with pytest.raises(ConfigError):
            self.config.update(game_mode="blitz").validate()

    def test_mode_rejects_unknown_mode(self):
        with pytest.raises(ConfigError):
            self.config.update(game_mode="blitz").mode

    @pytest.mark.parametrize("overrides", [
        {'leaderboard_interval': 0},
        {'leaderboard_size': 0},
    ])
    def test_validate_rejects_bad_leaderboard_settings(self, overrides):
        with pytest.raises(ConfigError):
            self.config.update(**overrides).validate()
