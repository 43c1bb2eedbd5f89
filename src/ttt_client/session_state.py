"""Contains the data structures that mirror one match on the client side.

The transitions between sessions are implemented in session_machine.py.

"""
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Dict, Optional, Tuple


BOARD_SIZE = 9
BOARD_WIDTH = 3
MAX_PLAYERS = 2
EMPTY_CELL = ""
SYMBOLS = ("X", "O")

# Remaining time at or below which the timer is shown as running low (seconds)
LOW_TIME_THRESHOLD = 10

# Per-turn limit used by the reference server in timed mode (seconds)
DEFAULT_TURN_TIME_LIMIT = 30

EMPTY_BOARD: Tuple[str, ...] = (EMPTY_CELL,) * BOARD_SIZE


class Phase(Enum):
    """Coarse lifecycle stage of a session."""
    IDLE = "idle"
    MATCHMAKING = "matchmaking"
    IN_MATCH = "in_match"
    ENDED = "ended"


class GameMode(Enum):
    """Game modes offered by the server."""
    CLASSIC = "classic"
    TIMED = "timed"


class Outcome(Enum):
    """How a match ended."""
    WIN = "win"
    DRAW = "draw"
    TIMEOUT = "timeout"


def cell_index(row: int, col: int) -> int:
    """Converts a (row, col) pair into an index into the board tuple."""
    return row * BOARD_WIDTH + col


@dataclass(frozen=True)
class Session(object):
    """The client's mirror of one match.

    Sessions are immutable values; the session machine produces a new one
    for every applied event.

    Attributes
    ----------
    local_id : str or None
        Identifier of the local player, known once authenticated
    match_id : str or None
        Identifier of the joined match; set once
    local_symbol : str or None
        'X' or 'O', assigned by the local player's join event; set once
    turn_owner : str or None
        Identifier of the player whose turn it is, None when unknown
    board : Tuple[str, ...]
        Exactly nine cells, each '' or a symbol
    roster : Tuple[str, ...]
        Identifiers of the participants, in order of arrival (at most two)
    player_count : int
        Number of players the server reports in the match
    phase : Phase
        Lifecycle stage
    game_mode : GameMode or None
        Declared by the server once per match
    time_remaining : int or None
        Seconds left in the current turn; only meaningful in timed mode
    usernames : Dict[str, str]
        Display names learnt from join events
    outcome : Outcome or None
        How the match ended, once it has
    result_message : str or None
        The server's description of the result
    winner_id : str or None
        Identifier of the winner, when there is one

    """
    local_id: Optional[str] = None
    match_id: Optional[str] = None
    local_symbol: Optional[str] = None
    turn_owner: Optional[str] = None
    board: Tuple[str, ...] = EMPTY_BOARD
    roster: Tuple[str, ...] = ()
    player_count: int = 0
    phase: Phase = Phase.IDLE
    game_mode: Optional[GameMode] = None
    time_remaining: Optional[int] = None
    usernames: Dict[str, str] = field(default_factory=dict)
    outcome: Optional[Outcome] = None
    result_message: Optional[str] = None
    winner_id: Optional[str] = None

    def __post_init__(self):
        if len(self.board) != BOARD_SIZE:
            raise ValueError(f"board must have exactly {BOARD_SIZE} cells, got {len(self.board)}")
        if len(self.roster) > MAX_PLAYERS:
            raise ValueError(f"roster cannot hold more than {MAX_PLAYERS} players")
        if self.turn_owner is not None and self.turn_owner not in self.roster:
            raise ValueError(f"turn owner '{self.turn_owner}' is not in the roster")

    @property
    def is_local_turn(self) -> bool:
        return self.local_id is not None and self.turn_owner == self.local_id

    @property
    def is_timed(self) -> bool:
        return self.game_mode == GameMode.TIMED

    @property
    def timer_visible(self) -> bool:
        """The countdown is only shown for a timed match that has not ended."""
        return self.is_timed and self.phase in (Phase.MATCHMAKING, Phase.IN_MATCH)

    @property
    def new_game_available(self) -> bool:
        """A new game may be requested only once the current one has ended."""
        return self.phase == Phase.ENDED

    @property
    def selectable_cells(self) -> Tuple[int, ...]:
        """Indices of the cells the local player could click right now."""
        if self.phase != Phase.IN_MATCH or not self.is_local_turn:
            return ()
        return tuple(i for i, cell in enumerate(self.board) if cell == EMPTY_CELL)

    def cell(self, row: int, col: int) -> str:
        return self.board[cell_index(row, col)]

    def display_name(self, player_id: Optional[str]) -> str:
        if player_id is None:
            return "-"
        return self.usernames.get(player_id, player_id)

    def evolve(self, **changes) -> 'Session':
        """Returns a copy of the session with the given fields replaced."""
        return replace(self, **changes)
