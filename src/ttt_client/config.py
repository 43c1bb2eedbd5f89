"""Client configuration.

Values come from TTT_* environment variables and can be overridden, e.g.
from command line arguments, with ClientConfig.update().

"""
import os
from dataclasses import dataclass, fields, replace
from typing import Tuple

from .errors import ConfigError
from .session_state import GameMode

DEFAULT_PORT = 7350

_TRUE_VALUES = {'1', 'true', 'yes', 'on'}


@dataclass(frozen=True)
class ClientConfig(object):
    """Settings needed to reach the server and find a match.

    Attributes
    ----------
    username : str
        Display name to register with
    device_id : str
        Identifier of this device, used for authentication
    server_url : str
        'host' or 'host:port' of the game server
    game_mode : str
        'classic' or 'timed'; only players of the same mode are paired
    server_key : str
        Server key used for HTTP basic auth during authentication
    use_ssl : bool
        Use https/wss
    leaderboard_interval : float
        Seconds between leaderboard refreshes
    leaderboard_size : int
        Number of top players to show
    log_level : str
        Minimum level of log records to emit

    """
    username: str = ""
    device_id: str = ""
    server_url: str = f"127.0.0.1:{DEFAULT_PORT}"
    game_mode: str = GameMode.CLASSIC.value
    server_key: str = "defaultkey"
    use_ssl: bool = False
    leaderboard_interval: float = 10.0
    leaderboard_size: int = 10
    log_level: str = "INFO"

    @classmethod
    def from_env(cls, environ=None) -> 'ClientConfig':
        """Builds a configuration from TTT_* environment variables."""
        env = os.environ if environ is None else environ
        defaults = cls()
        try:
            return cls(
                username=env.get('TTT_USERNAME', defaults.username),
                device_id=env.get('TTT_DEVICE_ID', defaults.device_id),
                server_url=env.get('TTT_SERVER_URL', defaults.server_url),
                game_mode=env.get('TTT_GAME_MODE', defaults.game_mode),
                server_key=env.get('TTT_SERVER_KEY', defaults.server_key),
                use_ssl=env.get('TTT_USE_SSL', str(defaults.use_ssl)).strip().lower() in _TRUE_VALUES,
                leaderboard_interval=float(env.get('TTT_LEADERBOARD_INTERVAL', defaults.leaderboard_interval)),
                leaderboard_size=int(env.get('TTT_LEADERBOARD_SIZE', defaults.leaderboard_size)),
                log_level=env.get('TTT_LOG_LEVEL', defaults.log_level).upper(),
            )
        except ValueError as e:
            raise ConfigError(f"Invalid environment configuration: {e}")

    def update(self, **overrides) -> 'ClientConfig':
        """Returns a copy with the given settings replaced; None values are skipped."""
        known = {f.name for f in fields(self)}
        unknown = set(overrides) - known
        if unknown:
            raise ConfigError(f"Unknown settings: {sorted(unknown)}")
        return replace(self, **{k: v for k, v in overrides.items() if v is not None})

    @property
    def mode(self) -> GameMode:
        try:
            return GameMode(self.game_mode)
        except ValueError:
            raise ConfigError(f"Invalid game mode '{self.game_mode}'. Must be one of: "
                              f"{[m.value for m in GameMode]}")

    def address(self) -> Tuple[str, int]:
        """Splits server_url into (host, port)."""
        server = self.server_url.strip()
        for prefix in ('http://', 'https://', 'ws://', 'wss://'):
            if server.startswith(prefix):
                server = server[len(prefix):]
        server = server.rstrip('/')
        host, _, port = server.partition(':')
        if not host:
            raise ConfigError("Server address is required")
        if not port:
            return host, DEFAULT_PORT
        try:
            return host, int(port)
        except ValueError:
            raise ConfigError(f"Invalid server port '{port}'")

    def validate(self):
        """Raises ConfigError if a required setting is missing or invalid."""
        missing = [name for name, value in (
            ('username', self.username),
            ('server address', self.server_url),
            ('device ID', self.device_id),
        ) if not value or not value.strip()]
        if missing:
            raise ConfigError(f"Please enter {', '.join(missing)}")
        if self.game_mode not in {m.value for m in GameMode}:
            raise ConfigError(f"Invalid game mode '{self.game_mode}'")
        self.address()
        if self.leaderboard_interval <= 0:
            raise ConfigError("leaderboard_interval must be positive")
        if self.leaderboard_size < 1:
            raise ConfigError("leaderboard_size must be at least 1")
