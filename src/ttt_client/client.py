"""The game client: owns the session and connects the pieces.

Inbound messages flow transport -> decoder -> session machine -> sink.
Cell selections flow gate -> transport.  The matchmaking coordinator drives
the transport and feeds lifecycle events to the same session machine.

"""
import threading
from typing import List, Optional

from loguru import logger

from .config import ClientConfig
from .errors import ConfigError, DecodeError, MatchmakingError
from .intent_gate import IntentGate
from .leaderboard import LeaderboardPoller
from .matchmaking import MatchmakingCoordinator
from .messages import Event, SessionReset, decode_message
from .notifications import Announcement, ErrorNotification, Notification, Sink, StatusChanged
from .session_machine import SessionMachine
from .session_state import Phase, Session
from .transport import Transport


class GameClient(object):
    """A client for one player.

    Events may arrive on the socket thread while the UI thread submits
    moves, so applying an event (swapping the session and delivering its
    notifications) happens under a lock.  The session itself is an
    immutable value.

    Parameters
    ----------
    transport : Transport
        Connection to the server
    config : ClientConfig
        Player, server and leaderboard settings
    notify : callable
        Notification sink
    machine : SessionMachine, optional
        Reducer to apply events with. Defaults to a new SessionMachine.

    """

    def __init__(self, transport: Transport, config: ClientConfig, notify: Sink,
                 machine: Optional[SessionMachine] = None):
        self.transport = transport
        self.config = config
        self.notify = notify
        self.machine = machine or SessionMachine()
        self._session = Session()
        self._lock = threading.RLock()
        self._receiving = False

        self.gate = IntentGate(transport, notify)
        self.coordinator = MatchmakingCoordinator(transport, self.dispatch, notify)
        self.poller = LeaderboardPoller(
            transport.query_top_players, notify,
            interval=config.leaderboard_interval, size=config.leaderboard_size,
        )
        transport.on_message = self.handle_message
        transport.on_disconnect = self.handle_disconnect

    @property
    def session(self) -> Session:
        with self._lock:
            return self._session

    @property
    def receiving(self) -> bool:
        return self._receiving

    def dispatch(self, event: Event) -> List[Notification]:
        """Applies one event and delivers the resulting notifications."""
        with self._lock:
            self._session, notes = self.machine.apply(self._session, event)
            for note in notes:
                self.notify(note)
        return notes

    def handle_message(self, opcode: int, payload: bytes, match_id: Optional[str] = None):
        """Transport callback for inbound match messages."""
        if not self._receiving:
            logger.debug(f"Not receiving, dropping message with opcode {opcode}")
            return
        try:
            event = decode_message(opcode, payload, match_id)
        except DecodeError as e:
            logger.warning(f"Dropping message: {e}")
            return
        self.dispatch(event)

    def connect(self) -> bool:
        """Connects and starts looking for a match.

        Returns False if any step failed; the failure has already been
        reported to the sink.

        """
        if self.session.phase != Phase.IDLE:
            self.dispatch(SessionReset('reconnect'))

        self._receiving = True
        try:
            self.coordinator.start(self.config)
        except (ConfigError, MatchmakingError):
            self._receiving = False
            self.transport.disconnect()
            self.dispatch(SessionReset('matchmaking failed'))
            return False

        self.poller.start()
        return True

    def submit_move(self, row: int, col: int) -> bool:
        return self.gate.submit_move(self.session, row, col)

    def new_game(self) -> bool:
        """Looks for another match once the current one has ended.

        With no session at all (after a failed attempt or a lost connection)
        this connects again from scratch, so the player always has a way back
        into matchmaking.

        """
        session = self.session
        if session.phase == Phase.IDLE:
            return self.connect()
        if not session.new_game_available:
            self.notify(ErrorNotification("A new game can only be started when the current one is over"))
            return False

        self.dispatch(SessionReset('new game'))
        try:
            self.coordinator.find_match()
        except MatchmakingError:
            self.dispatch(SessionReset('matchmaking failed'))
            return False
        return True

    def handle_disconnect(self):
        """Transport callback for a connection lost on the server side."""
        self._receiving = False
        self.dispatch(SessionReset('disconnected'))
        self.notify(StatusChanged('disconnected', 'Disconnected'))
        self.notify(ErrorNotification("Disconnected from server"))

    def disconnect(self):
        """Closes the connection and forgets the match."""
        self._receiving = False
        self.transport.disconnect()
        self.dispatch(SessionReset('disconnect'))
        self.notify(StatusChanged('disconnected', 'Disconnected'))
        self.notify(Announcement("Disconnected from server"))

    def close(self):
        """Disconnects and stops the leaderboard poller."""
        self.disconnect()
        self.poller.stop()
