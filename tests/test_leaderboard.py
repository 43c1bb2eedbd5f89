"""
Unit tests for the leaderboard poller.
"""

import threading

import pytest

from ttt_client.errors import QueryError
from ttt_client.leaderboard import LeaderboardPoller, rank_entries
from ttt_client.notifications import LeaderboardEntry, LeaderboardUnavailable, LeaderboardUpdated


PLAYERS = [
    {'identifier': "u1", 'display_name': "alice", 'score': 30},
    {'identifier': "u2", 'display_name': "", 'score': 20},
]


def test_rank_entries():
    entries = rank_entries(PLAYERS)
    assert entries == [
        LeaderboardEntry(rank=1, identifier="u1", display_name="alice", score=30),
        LeaderboardEntry(rank=2, identifier="u2", display_name="u2", score=20),
    ]


class TestLeaderboardPoller:
    """Test cases for LeaderboardPoller."""

    def setup_method(self):
        self.notes = []
        self.sizes = []

    def query(self, n):
        self.sizes.append(n)
        return PLAYERS

    def test_poll_once_publishes_entries(self):
        poller = LeaderboardPoller(self.query, self.notes.append, size=5)
        assert poller.poll_once()
        assert self.sizes == [5]
        assert self.notes == [LeaderboardUpdated(tuple(rank_entries(PLAYERS)))]

    def test_empty_leaderboard(self):
        poller = LeaderboardPoller(lambda n: [], self.notes.append)
        assert poller.poll_once()
        assert self.notes == [LeaderboardUpdated(())]

    def test_query_failure_publishes_unavailable(self):
        def failing(n):
            raise QueryError("HTTP 500: boom")

        poller = LeaderboardPoller(failing, self.notes.append)
        assert not poller.poll_once()
        assert self.notes == [LeaderboardUnavailable("HTTP 500: boom")]

    def test_malformed_record_publishes_unavailable(self):
        poller = LeaderboardPoller(lambda n: [{'score': 1}], self.notes.append)
        assert not poller.poll_once()
        assert isinstance(self.notes[0], LeaderboardUnavailable)

    @pytest.mark.parametrize("kwargs", [{'interval': 0}, {'interval': -1}, {'size': 0}])
    def test_invalid_arguments(self, kwargs):
        with pytest.raises(ValueError):
            LeaderboardPoller(self.query, self.notes.append, **kwargs)

    def test_start_polls_immediately_and_stop(self):
        polled = threading.Event()

        def notify(note):
            self.notes.append(note)
            polled.set()

        poller = LeaderboardPoller(self.query, notify, interval=60)
        poller.start()
        try:
            assert polled.wait(5)
            assert poller.running
        finally:
            poller.stop(timeout=5)
        assert not poller.running
        assert self.sizes == [10]

    def test_start_twice_runs_one_thread(self):
        poller = LeaderboardPoller(self.query, self.notes.append, interval=60)
        poller.start()
        thread = poller._thread
        poller.start()
        try:
            assert poller._thread is thread
        finally:
            poller.stop(timeout=5)

    def test_keeps_polling_every_interval(self):
        calls = threading.Semaphore(0)

        def query(n):
            calls.release()
            return []

        poller = LeaderboardPoller(query, self.notes.append, interval=0.01)
        poller.start()
        try:
            for _ in range(3):
                assert calls.acquire(timeout=5)
        finally:
            poller.stop(timeout=5)
