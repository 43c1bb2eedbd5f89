"""Periodic leaderboard refresh.

The poller runs on its own thread and knows nothing about matches.  It keeps
going across match transitions, session resets and disconnections until it
is stopped explicitly.

"""
import threading
from typing import Any, Callable, Dict, List, Optional

from loguru import logger

from .errors import QueryError
from .notifications import LeaderboardEntry, LeaderboardUnavailable, LeaderboardUpdated, Sink

Query = Callable[[int], List[Dict[str, Any]]]


def rank_entries(players: List[Dict[str, Any]]) -> List[LeaderboardEntry]:
    """Numbers the players from 1, in the order the server returned them."""
    return [
        LeaderboardEntry(
            rank=i + 1,
            identifier=player['identifier'],
            display_name=player.get('display_name') or player['identifier'],
            score=player['score'],
        )
        for i, player in enumerate(players)
    ]


class LeaderboardPoller(object):
    """Queries the top players every `interval` seconds.

    Parameters
    ----------
    query : callable
        Takes the number of players to fetch and returns
        [{identifier, display_name, score}], raising QueryError on failure
    notify : callable
        Notification sink
    interval : float, optional
        Seconds between queries. Defaults to 10.
    size : int, optional
        Number of players to fetch. Defaults to 10.

    """

    def __init__(self, query: Query, notify: Sink, interval: float = 10.0, size: int = 10):
        if interval <= 0:
            raise ValueError("interval must be positive")
        if size < 1:
            raise ValueError("size must be at least 1")
        self.query = query
        self.notify = notify
        self.interval = interval
        self.size = size
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def poll_once(self) -> bool:
        """Runs one query and publishes the result.

        On failure the UI is told there is no data, so it never keeps showing
        a stale ranking.

        """
        try:
            players = self.query(self.size)
            entries = rank_entries(players)
        except (QueryError, KeyError, TypeError) as e:
            logger.warning(f"Leaderboard query failed: {e}")
            self.notify(LeaderboardUnavailable(str(e)))
            return False

        self.notify(LeaderboardUpdated(tuple(entries)))
        return True

    def start(self):
        """Polls immediately, then once per interval, until stop() is called."""
        if self.running:
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._run, name="leaderboard-poller", daemon=True)
        self._thread.start()

    def stop(self, timeout: Optional[float] = None):
        self._stop.set()
        if self._thread is not None and self._thread is not threading.current_thread():
            self._thread.join(timeout)
        self._thread = None

    def _run(self):
        while not self._stop.is_set():
            self.poll_once()
            self._stop.wait(self.interval)
