"""
Shared fixtures: an in-memory transport and a notification recorder.
"""

import pytest

from ttt_client.messages import MatchmakingStarted, MatchJoined, PlayerJoined
from ttt_client.session_machine import SessionMachine
from ttt_client.session_state import GameMode, Session
from ttt_client.transport import Credential, Transport


class FakeTransport(Transport):
    """Transport that records calls instead of talking to a server.

    Put an exception into `failures` under a method name to make that
    method raise it.
    """

    def __init__(self, user_id="local", username="alice"):
        super().__init__()
        self.credential = Credential(token="token", user_id=user_id, username=username)
        self.failures = {}
        self.calls = []
        self.sent_moves = []
        self.top_players = []
        self.connected = False

    def _call(self, name, *args):
        self.calls.append((name,) + args)
        if name in self.failures:
            raise self.failures[name]

    def authenticate(self, device_id, create, username):
        self._call('authenticate', device_id, create, username)
        return self.credential

    def open_socket(self, credential):
        self._call('open_socket', credential)
        self.connected = True

    def register_matchmaking(self, query, min_count, max_count, properties):
        self._call('register_matchmaking', query, min_count, max_count, properties)
        return "ticket-1"

    def join_match(self, match_id, token=None):
        self._call('join_match', match_id, token)
        return match_id

    def send_move(self, match_id, opcode, payload):
        self._call('send_move', match_id, opcode, payload)
        self.sent_moves.append((match_id, opcode, payload))

    def query_top_players(self, n):
        self._call('query_top_players', n)
        return self.top_players[:n]

    def disconnect(self):
        self._call('disconnect')
        self.connected = False

    def called(self, name):
        return [call for call in self.calls if call[0] == name]


class Recorder(object):
    """Notification sink that keeps everything it receives."""

    def __init__(self):
        self.notifications = []

    def __call__(self, notification):
        self.notifications.append(notification)

    def of_type(self, cls):
        return [n for n in self.notifications if isinstance(n, cls)]

    def clear(self):
        self.notifications = []


@pytest.fixture
def transport():
    return FakeTransport()


@pytest.fixture
def recorder():
    return Recorder()


def play_until_started(machine=None, local_id="A", opponent_id="B", match_id="match-1",
                       mode=GameMode.CLASSIC):
    """Returns a session in which both players have joined and `local_id` moves first."""
    machine = machine or SessionMachine()
    session = Session()
    for event in (
        MatchmakingStarted(local_id=local_id, game_mode=mode),
        MatchJoined(match_id),
        PlayerJoined(user_id=local_id, symbol="X", total_players=1, match_id=match_id),
        PlayerJoined(user_id=opponent_id, symbol="O", total_players=2,
                     current_turn=local_id, match_id=match_id),
    ):
        session, _ = machine.apply(session, event)
    return session
