"""Matchmaking protocol.

Finding a game is a linear sequence, and each step must succeed before the
next one starts:

1. check the local inputs (name, server, device)
2. authenticate the device
3. open the realtime socket
4. join the matchmaking pool for the selected mode, in pairs
5. when the server reports a match, join it

The coordinator never retries.  A failed step is reported to the UI and the
player reconnects manually.

"""
from typing import Callable, Optional

from loguru import logger

from .config import ClientConfig
from .errors import ConfigError, MatchmakingError, TransportError
from .messages import Event, MatchmakingStarted, MatchJoined
from .notifications import Announcement, ErrorNotification, Sink, StatusChanged
from .session_state import GameMode, MAX_PLAYERS
from .transport import Credential, Transport


def matchmaking_query(mode: GameMode) -> str:
    """Query that restricts the pool to players of the same mode."""
    return f"properties.mode:{mode.value}"


class MatchmakingCoordinator(object):
    """Drives the transport through the matchmaking steps.

    Parameters
    ----------
    transport : Transport
        Connection to the server; the coordinator installs its
        on_match_found callback
    dispatch : callable
        Applies lifecycle events to the session
    notify : callable
        Notification sink

    """

    def __init__(self, transport: Transport, dispatch: Callable[[Event], None], notify: Sink):
        self.transport = transport
        self.dispatch = dispatch
        self.notify = notify
        self.credential: Optional[Credential] = None
        self.game_mode: Optional[GameMode] = None
        self.ticket: Optional[str] = None
        transport.on_match_found = self.on_match_found

    def start(self, config: ClientConfig) -> Credential:
        """Runs steps 1 to 4.

        Step 5 happens later, when the transport calls on_match_found.

        Raises
        ------
        ConfigError
            If a required input is missing
        MatchmakingError
            If authentication, connecting or registering fails

        """
        try:
            config.validate()
        except ConfigError as e:
            self._report(str(e), connection_lost=True)
            raise

        username = config.username.strip()
        self.game_mode = config.mode
        self.notify(StatusChanged('connecting', 'Connecting...'))
        self.notify(Announcement(f"Selected {self.game_mode.value} mode"))

        self.credential = self._step(
            'authenticate',
            lambda: self.transport.authenticate(config.device_id.strip(), True, username),
            connection_lost=True,
        )
        self.notify(Announcement(f"Authenticated as: {username} ({self.credential.user_id})"))

        self._step('connect', lambda: self.transport.open_socket(self.credential), connection_lost=True)
        self.notify(StatusChanged('connected', 'Connected'))
        self.notify(Announcement("Socket connected! Looking for match..."))

        self.find_match()
        return self.credential

    def find_match(self) -> str:
        """Registers for matchmaking on the already open connection.

        Also used to look for a new game after a match has ended.

        """
        if self.credential is None or self.game_mode is None:
            error = MatchmakingError('register', "Not connected")
            self._report(str(error))
            raise error

        self.dispatch(MatchmakingStarted(local_id=self.credential.user_id, game_mode=self.game_mode))
        self.notify(StatusChanged('matching', 'Finding match...'))

        mode = self.game_mode.value
        self.ticket = self._step(
            'register',
            lambda: self.transport.register_matchmaking(
                matchmaking_query(self.game_mode), MAX_PLAYERS, MAX_PLAYERS, {'mode': mode}),
        )
        self.notify(Announcement(f"Looking for {mode} mode opponents ({MAX_PLAYERS} players needed)..."))
        return self.ticket

    def on_match_found(self, match_id: str, token: Optional[str] = None):
        """Joins the match the server paired us into.

        Runs on a transport thread, so failures are reported rather than
        raised.

        """
        self.notify(Announcement("Match found! Joining match..."))
        try:
            joined = self.transport.join_match(match_id, token)
        except TransportError as e:
            self._report(str(MatchmakingError('join', str(e))))
            return

        self.dispatch(MatchJoined(joined))
        self.notify(Announcement(f"Joined match: {joined}"))
        self.notify(StatusChanged('in_match', 'In Match'))

    def _step(self, step: str, action, connection_lost: bool = False):
        try:
            return action()
        except MatchmakingError as e:
            self._report(str(e), connection_lost)
            raise
        except TransportError as e:
            error = MatchmakingError(step, str(e))
            self._report(str(error), connection_lost)
            raise error from e

    def _report(self, message: str, connection_lost: bool = False):
        logger.error(message)
        if connection_lost:
            self.notify(StatusChanged('disconnected', 'Connection Failed'))
        self.notify(ErrorNotification(message))
