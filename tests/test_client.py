"""
Tests for the GameClient wiring: transport callbacks, reducer, gate and
matchmaking working together against an in-memory transport.
"""

import json

import pytest

from ttt_client.client import GameClient
from ttt_client.config import ClientConfig
from ttt_client.errors import AuthError, MatchmakingError
from ttt_client.messages import (
    OP_PLAYER_JOINED, OP_BOARD_UPDATE, OP_GAME_DRAW, OP_TIMER_UPDATE, MatchmakingStarted,
)
from ttt_client.notifications import (
    ErrorNotification, MatchStarted, MoveSent, StatusChanged, SessionCleared,
)
from ttt_client.session_state import Phase, GameMode


def payload(**fields):
    return json.dumps(fields).encode('utf-8')


class TestGameClient:
    """Test cases for GameClient."""

    @pytest.fixture(autouse=True)
    def setup(self, transport, recorder):
        self.transport = transport
        self.recorder = recorder
        self.config = ClientConfig(username="alice", device_id="dev-1",
                                   server_url="localhost", game_mode="classic",
                                   leaderboard_interval=60)
        self.client = GameClient(transport, self.config, recorder)
        yield
        self.client.close()

    def start_match(self):
        assert self.client.connect()
        self.transport.on_match_found("m1", None)
        self.transport.on_message(OP_PLAYER_JOINED, payload(
            user_id="local", symbol="X", total_players=1), "m1")
        self.transport.on_message(OP_PLAYER_JOINED, payload(
            user_id="other", symbol="O", total_players=2, current_turn="local"), "m1")

    def test_installs_transport_callbacks(self):
        assert self.transport.on_message == self.client.handle_message
        assert self.transport.on_disconnect == self.client.handle_disconnect

    def test_connect_starts_matchmaking_and_leaderboard(self):
        assert self.client.connect()
        session = self.client.session
        assert session.phase == Phase.MATCHMAKING
        assert session.local_id == "local"
        assert session.game_mode == GameMode.CLASSIC
        assert self.client.poller.running

    def test_full_match_flow(self):
        self.start_match()
        session = self.client.session
        assert session.phase == Phase.IN_MATCH
        assert session.match_id == "m1"
        assert session.is_local_turn
        assert len(self.recorder.of_type(MatchStarted)) == 1

        assert self.client.submit_move(1, 1)
        assert self.transport.sent_moves[0][0] == "m1"
        assert MoveSent(1, 1, "X") in self.recorder.notifications

        board = ["", "", "", "", "X", "", "", "", ""]
        self.transport.on_message(OP_BOARD_UPDATE, payload(board_state=board, current_turn="other"), "m1")
        assert self.client.session.board == tuple(board)
        assert not self.client.submit_move(0, 0)

    def test_messages_before_connect_are_dropped(self):
        self.client.handle_message(OP_BOARD_UPDATE, payload(board_state=["X"] * 9))
        assert self.client.session.phase == Phase.IDLE
        assert self.recorder.notifications == []

    def test_malformed_message_is_dropped(self):
        self.start_match()
        before = self.client.session
        self.client.handle_message(OP_BOARD_UPDATE, b"{broken", "m1")
        self.client.handle_message(OP_TIMER_UPDATE, payload(), "m1")
        assert self.client.session == before

    def test_connect_failure_resets(self):
        self.transport.failures['authenticate'] = AuthError("refused")
        assert not self.client.connect()
        assert self.client.session.phase == Phase.IDLE
        assert not self.client.receiving
        assert self.transport.called('disconnect')
        assert not self.client.poller.running

    def test_connect_with_missing_username(self):
        client = GameClient(self.transport, self.config.update(username=""), self.recorder)
        assert not client.connect()
        assert self.transport.called('authenticate') == []
        assert ErrorNotification("Please enter username") in self.recorder.notifications

    def test_new_game_requires_ended_match(self):
        self.start_match()
        assert not self.client.new_game()
        assert self.client.session.phase == Phase.IN_MATCH
        assert len(self.transport.called('register_matchmaking')) == 1

    def test_new_game_after_match_ended(self):
        self.start_match()
        self.transport.on_message(OP_GAME_DRAW, payload(message="Draw"), "m1")
        assert self.client.session.phase == Phase.ENDED

        assert self.client.new_game()
        session = self.client.session
        assert session.phase == Phase.MATCHMAKING
        assert session.match_id is None
        assert session.local_id == "local"
        assert len(self.transport.called('register_matchmaking')) == 2
        assert SessionCleared("new game") in self.recorder.notifications

    def test_new_game_registration_failure_allows_retry(self):
        self.start_match()
        self.transport.on_message(OP_GAME_DRAW, payload(message="Draw"), "m1")
        self.transport.failures['register_matchmaking'] = MatchmakingError('register', "pool closed")

        assert not self.client.new_game()
        assert self.client.session.phase == Phase.IDLE

        del self.transport.failures['register_matchmaking']
        assert self.client.new_game()
        assert self.client.session.phase == Phase.MATCHMAKING
        assert len(self.transport.called('authenticate')) == 2

    def test_new_game_after_disconnect_reconnects(self):
        self.start_match()
        self.transport.on_disconnect()
        assert self.client.new_game()
        assert self.client.receiving
        assert self.client.session.phase == Phase.MATCHMAKING

    def test_join_reply_after_match_broadcasts(self):
        assert self.client.connect()
        join_match = self.transport.join_match

        def join_after_broadcasts(match_id, token=None):
            # The server broadcasts the join before the reply reaches us
            self.transport.on_message(OP_PLAYER_JOINED, payload(
                user_id="local", symbol="O", total_players=2, current_turn="other"), match_id)
            self.transport.on_message(OP_BOARD_UPDATE, payload(current_turn="local"), match_id)
            return join_match(match_id, token)

        self.transport.join_match = join_after_broadcasts
        self.transport.on_match_found("m1", "match-token")

        session = self.client.session
        assert session.phase == Phase.IN_MATCH
        assert session.match_id == "m1"
        assert self.client.submit_move(0, 0)
        assert self.transport.sent_moves[0][0] == "m1"

    def test_server_disconnect_resets_session(self):
        self.start_match()
        self.transport.on_disconnect()

        assert self.client.session.phase == Phase.IDLE
        assert StatusChanged('disconnected', 'Disconnected') in self.recorder.notifications
        self.transport.on_message(OP_BOARD_UPDATE, payload(board_state=["X"] * 9), "m1")
        assert self.client.session.phase == Phase.IDLE

    def test_reconnect_after_match_resets_first(self):
        self.start_match()
        assert self.client.connect()
        assert self.client.session.phase == Phase.MATCHMAKING
        assert self.client.session.match_id is None
        assert SessionCleared("reconnect") in self.recorder.notifications

    def test_dispatch_returns_notifications(self):
        notes = self.client.dispatch(MatchmakingStarted(local_id="local"))
        assert notes == []
        assert self.client.session.phase == Phase.MATCHMAKING

    def test_close_stops_everything(self):
        self.client.connect()
        self.client.close()
        assert not self.client.poller.running
        assert not self.transport.connected
        assert self.client.session.phase == Phase.IDLE
