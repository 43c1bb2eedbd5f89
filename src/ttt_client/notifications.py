"""Notifications delivered to the UI sink.

The core never renders anything itself.  It hands these values to a sink,
which is any callable accepting a Notification, and the sink decides how
to present them.

"""
from dataclasses import dataclass
from typing import Callable, Optional, Tuple

from .session_state import Outcome


class Notification(object):
    """Base class for values sent to the notification sink."""


Sink = Callable[[Notification], None]


@dataclass(frozen=True)
class StatusChanged(Notification):
    """Connection status: 'connecting', 'matching', 'in_match' or 'disconnected'."""
    status: str
    text: str


@dataclass(frozen=True)
class Announcement(Notification):
    """A human-readable message from the server or the client."""
    text: str


@dataclass(frozen=True)
class ShowTimer(Notification):
    visible: bool


@dataclass(frozen=True)
class HideTimer(Notification):
    pass


@dataclass(frozen=True)
class TimerChanged(Notification):
    time_remaining: int
    low: bool


@dataclass(frozen=True)
class SymbolAssigned(Notification):
    symbol: str


@dataclass(frozen=True)
class RosterChanged(Notification):
    roster: Tuple[str, ...]
    player_count: int


@dataclass(frozen=True)
class MatchStarted(Notification):
    pass


@dataclass(frozen=True)
class TurnChanged(Notification):
    turn_owner: Optional[str]
    is_local_turn: bool


@dataclass(frozen=True)
class BoardChanged(Notification):
    board: Tuple[str, ...]
    selectable: Tuple[int, ...]


@dataclass(frozen=True)
class MatchOver(Notification):
    outcome: Outcome
    message: str
    winner_id: Optional[str] = None
    local_won: bool = False


@dataclass(frozen=True)
class DisableBoard(Notification):
    pass


@dataclass(frozen=True)
class AllowNewGame(Notification):
    pass


@dataclass(frozen=True)
class ShowMatchControls(Notification):
    match_id: str


@dataclass(frozen=True)
class SessionCleared(Notification):
    reason: str


@dataclass(frozen=True)
class ErrorNotification(Notification):
    message: str


@dataclass(frozen=True)
class Diagnostic(Notification):
    """Information for debugging, such as messages with unknown opcodes."""
    text: str


@dataclass(frozen=True)
class MoveRejected(Notification):
    reason: str


@dataclass(frozen=True)
class MoveSent(Notification):
    row: int
    col: int
    symbol: Optional[str] = None


@dataclass(frozen=True)
class LeaderboardEntry(object):
    rank: int
    identifier: str
    display_name: str
    score: int


@dataclass(frozen=True)
class LeaderboardUpdated(Notification):
    entries: Tuple[LeaderboardEntry, ...]


@dataclass(frozen=True)
class LeaderboardUnavailable(Notification):
    reason: str = ""
