"""Session state machine.

SessionMachine.apply() is a pure reducer: given the current Session and one
event it returns the next Session together with the notifications the UI
should receive.  It never touches the transport or the UI directly.

"""
from typing import List, Optional, Tuple

from loguru import logger

from .messages import (
    Event, Welcome, PlayerJoined, PlayerLeft, BoardUpdate, MatchEnded,
    PlayerError, TimerTick, UnknownEvent, MatchmakingStarted, MatchJoined,
    SessionReset, WIRE_EVENTS,
)
from .notifications import (
    Notification, Announcement, ShowTimer, HideTimer, TimerChanged,
    SymbolAssigned, RosterChanged, MatchStarted, TurnChanged, BoardChanged,
    MatchOver, DisableBoard, AllowNewGame, ShowMatchControls, SessionCleared,
    ErrorNotification, Diagnostic,
)
from .session_state import (
    Session, Phase, GameMode, EMPTY_CELL, MAX_PLAYERS, LOW_TIME_THRESHOLD,
)


# Wire events that are ignored once the match has ended
_STATE_EVENTS = (Welcome, PlayerJoined, BoardUpdate, MatchEnded, TimerTick)


def clamp_time(value: int) -> int:
    """Remaining time is never negative."""
    return max(0, value)


class SessionMachine(object):
    """Applies decoded events to sessions.

    Every event class has exactly one handler.  A missing handler is a bug,
    so apply() raises TypeError rather than falling through silently.

    """

    def __init__(self):
        self._handlers = {
            Welcome: self._on_welcome,
            PlayerJoined: self._on_player_joined,
            PlayerLeft: self._on_player_left,
            BoardUpdate: self._on_board_update,
            MatchEnded: self._on_match_ended,
            PlayerError: self._on_player_error,
            TimerTick: self._on_timer_tick,
            UnknownEvent: self._on_unknown,
            MatchmakingStarted: self._on_matchmaking_started,
            MatchJoined: self._on_match_joined,
            SessionReset: self._on_session_reset,
        }

    def handled_event_types(self) -> Tuple[type, ...]:
        return tuple(self._handlers)

    def apply(self, session: Session, event: Event) -> Tuple[Session, List[Notification]]:
        """Applies one event to a session.

        Parameters
        ----------
        session : Session
            The current session
        event : Event
            A decoded wire event or a local lifecycle event

        Returns
        -------
        Tuple[Session, List[Notification]]
            The next session (the same object when the event was ignored) and
            the notifications to deliver, in order

        Raises
        ------
        TypeError
            If there is no handler for the type of the event

        """
        handler = self._handlers.get(type(event))
        if handler is None:
            raise TypeError(f"No handler for event type {type(event).__name__}")

        if isinstance(event, WIRE_EVENTS):
            violation = self._protocol_violation(session, event)
            if violation:
                logger.warning(f"Ignoring {type(event).__name__}: {violation}")
                return session, []

        new_session, notes = handler(session, event)
        if isinstance(event, WIRE_EVENTS):
            new_session = self._roster_step(session, new_session, notes)
        derived = self._derived_notifications(
            session, new_session, always_board=isinstance(event, BoardUpdate))
        return new_session, derived + notes

    def _protocol_violation(self, session: Session, event: Event) -> Optional[str]:
        """Returns why a wire event must not be applied, or None."""
        if session.phase == Phase.IDLE:
            return "no matchmaking in progress"
        event_match = getattr(event, 'match_id', None)
        if event_match is not None and session.match_id is not None and event_match != session.match_id:
            return f"event is for match '{event_match}', current match is '{session.match_id}'"
        if session.phase == Phase.ENDED and isinstance(event, _STATE_EVENTS):
            return "match has already ended"
        return None

    def _derived_notifications(self, old: Session, new: Session, always_board: bool = False) -> List[Notification]:
        notes = []
        if new.turn_owner != old.turn_owner:
            notes.append(TurnChanged(new.turn_owner, new.is_local_turn))
        if always_board or new.board != old.board or new.selectable_cells != old.selectable_cells:
            notes.append(BoardChanged(new.board, new.selectable_cells))
        return notes

    # Shared steps

    def _admit(self, session: Session, player_id: str) -> Session:
        """Adds a player to the roster unless already there or full."""
        if player_id in session.roster:
            return session
        if len(session.roster) >= MAX_PLAYERS:
            logger.warning(f"Roster is full, not admitting player '{player_id}'")
            return session
        return session.evolve(roster=session.roster + (player_id,))

    def _set_turn(self, session: Session, owner: Optional[str]) -> Session:
        if owner is None or owner == session.turn_owner:
            return session
        session = self._admit(session, owner)
        if owner not in session.roster:
            logger.warning(f"Rejecting turn owner '{owner}': not a participant of this match")
            return session
        return session.evolve(turn_owner=owner)

    def _set_board(self, session: Session, board: Optional[Tuple[str, ...]]) -> Session:
        if board is None:
            return session
        cleared = [i for i, (before, after) in enumerate(zip(session.board, board))
                   if before != EMPTY_CELL and after == EMPTY_CELL]
        if cleared:
            logger.warning(f"Server snapshot cleared occupied cells {cleared}")
        return session.evolve(board=tuple(board))

    def _set_mode(self, session: Session, mode: Optional[GameMode], notes: List[Notification]) -> Session:
        if mode is None or mode == session.game_mode:
            return session
        notes.append(ShowTimer(mode == GameMode.TIMED))
        return session.evolve(game_mode=mode)

    def _set_time(self, session: Session, value: Optional[int], notes: List[Notification]) -> Session:
        if value is None or not session.is_timed:
            return session
        remaining = clamp_time(value)
        notes.append(TimerChanged(remaining, remaining <= LOW_TIME_THRESHOLD))
        return session.evolve(time_remaining=remaining)

    def _roster_step(self, old: Session, new: Session, notes: List[Notification]) -> Session:
        """Reports roster changes and moves into the match when the second player arrives.

        Runs after every wire event, since players can be admitted by a join
        or by being named as the turn owner.

        """
        if new.roster != old.roster:
            notes.append(RosterChanged(new.roster, new.player_count))
        return self._check_started(new, notes)

    def _check_started(self, session: Session, notes: List[Notification]) -> Session:
        """Moves into the match exactly when the second player arrives."""
        if session.phase == Phase.MATCHMAKING and len(session.roster) == MAX_PLAYERS:
            logger.info(f"Match '{session.match_id}' started with players {list(session.roster)}")
            notes.append(MatchStarted())
            return session.evolve(phase=Phase.IN_MATCH)
        return session

    # Wire event handlers

    def _on_welcome(self, session: Session, event: Welcome):
        notes = []
        if event.message:
            notes.append(Announcement(event.message))
        if event.game_mode is not None:
            # Always tell the UI, even when the mode was seeded at matchmaking
            notes.append(ShowTimer(event.game_mode == GameMode.TIMED))
            session = session.evolve(game_mode=event.game_mode)
        if event.player_count is not None:
            session = session.evolve(player_count=event.player_count)
        return session, notes

    def _on_player_joined(self, session: Session, event: PlayerJoined):
        notes = []
        name = event.username or event.user_id
        notes.append(Announcement(f"{name} joined the game!"))

        if event.username:
            session = session.evolve(usernames={**session.usernames, event.user_id: event.username})

        session = self._admit(session, event.user_id)

        if event.user_id == session.local_id and event.symbol:
            if session.local_symbol is None:
                session = session.evolve(local_symbol=event.symbol)
                notes.append(SymbolAssigned(event.symbol))
            elif session.local_symbol != event.symbol:
                logger.warning(
                    f"Rejecting symbol reassignment from '{session.local_symbol}' to '{event.symbol}'")
            else:
                logger.debug("Ignoring repeated symbol assignment")

        if event.total_players is not None:
            session = session.evolve(player_count=event.total_players)
        session = self._set_mode(session, event.game_mode, notes)
        session = self._set_turn(session, event.current_turn)
        session = self._set_board(session, event.board)
        session = self._set_time(session, event.time_remaining, notes)
        return session, notes

    def _on_player_left(self, session: Session, event: PlayerLeft):
        notes = [Announcement(event.message or f"{session.display_name(event.user_id)} left the match")]
        if event.user_id not in session.roster:
            logger.debug(f"Player '{event.user_id}' left but was not in the roster")
            return session, notes

        roster = tuple(p for p in session.roster if p != event.user_id)
        turn_owner = session.turn_owner if session.turn_owner != event.user_id else None
        # The server decides when the match is over; leaving never ends it here
        session = session.evolve(roster=roster, turn_owner=turn_owner,
                                 player_count=max(0, session.player_count - 1))
        return session, notes

    def _on_board_update(self, session: Session, event: BoardUpdate):
        notes = []
        session = self._set_board(session, event.board)
        session = self._set_mode(session, event.game_mode, notes)
        session = self._set_turn(session, event.current_turn)
        session = self._set_time(session, event.time_remaining, notes)
        return session, notes

    def _on_match_ended(self, session: Session, event: MatchEnded):
        session = self._set_board(session, event.board)
        session = session.evolve(
            phase=Phase.ENDED,
            outcome=event.outcome,
            result_message=event.message,
            winner_id=event.winner_id,
        )
        local_won = event.winner_id is not None and event.winner_id == session.local_id
        logger.info(f"Match '{session.match_id}' ended ({event.outcome.value}): {event.message}")
        notes = [
            MatchOver(event.outcome, event.message, event.winner_id, local_won),
            HideTimer(),
            DisableBoard(),
            AllowNewGame(),
        ]
        return session, notes

    def _on_player_error(self, session: Session, event: PlayerError):
        return session, [ErrorNotification(event.error)]

    def _on_timer_tick(self, session: Session, event: TimerTick):
        notes = []
        session = self._set_turn(session, event.current_turn)
        if not session.is_timed:
            logger.debug("Ignoring timer update outside timed mode")
            return session, notes
        session = self._set_time(session, event.time_remaining, notes)
        return session, notes

    def _on_unknown(self, session: Session, event: UnknownEvent):
        logger.info(f"Unknown message with opcode {event.opcode}: {event.payload!r}")
        return session, [Diagnostic(f"Unknown message (opcode {event.opcode}): {event.payload!r}")]

    # Lifecycle event handlers

    def _on_matchmaking_started(self, session: Session, event: MatchmakingStarted):
        if session.phase != Phase.IDLE:
            logger.warning(f"Cannot start matchmaking while {session.phase.value}")
            return session, []
        return Session(local_id=event.local_id, game_mode=event.game_mode, phase=Phase.MATCHMAKING), []

    def _on_match_joined(self, session: Session, event: MatchJoined):
        # The join reply can arrive after the server has already sent the
        # join broadcasts, so the match may have started by now
        if session.phase not in (Phase.MATCHMAKING, Phase.IN_MATCH):
            logger.warning(f"Ignoring join of match '{event.match_id}' while {session.phase.value}")
            return session, []
        if session.match_id is not None:
            logger.warning(f"Already in match '{session.match_id}', ignoring join of '{event.match_id}'")
            return session, []
        return session.evolve(match_id=event.match_id), [ShowMatchControls(event.match_id)]

    def _on_session_reset(self, session: Session, event: SessionReset):
        logger.debug(f"Resetting session ({event.reason})")
        return Session(), [HideTimer(), SessionCleared(event.reason)]
