"""Validates local cell selections before forwarding them to the server.

The gate only checks what the client can know for certain (phase, turn,
bounds and occupancy of the last known board).  The server remains the
authority on whether a move is legal.

"""
from typing import Optional

from loguru import logger

from .errors import SendError
from .messages import OP_MOVE, encode_move
from .notifications import MoveRejected, MoveSent, Sink
from .session_state import Session, Phase, BOARD_WIDTH, EMPTY_CELL, cell_index


class IntentGate(object):
    """Turns cell selections into outbound move messages.

    The gate never changes the local board.  The next BoardUpdate from the
    server is the only confirmation that a move happened, so a second
    selection made before that update is checked against the same board and
    may be accepted again.  A UI that wants to prevent double submission has
    to lock its input until the next update arrives.

    Parameters
    ----------
    transport : Transport
        Used to send the move
    notify : callable
        Notification sink

    """

    def __init__(self, transport, notify: Sink):
        self.transport = transport
        self.notify = notify

    def check(self, session: Session, row: int, col: int) -> Optional[str]:
        """Returns the reason a move would be rejected, or None if it is allowed."""
        if session.phase == Phase.ENDED:
            return "match is over"
        if session.phase != Phase.IN_MATCH or session.match_id is None:
            return "game is not in progress"
        if not session.is_local_turn:
            return "not your turn"
        if not (0 <= row < BOARD_WIDTH and 0 <= col < BOARD_WIDTH):
            return "cell out of bounds"
        if session.board[cell_index(row, col)] != EMPTY_CELL:
            return "cell already occupied"
        return None

    def submit_move(self, session: Session, row: int, col: int) -> bool:
        """Forwards a move if the session allows it.

        Parameters
        ----------
        session : Session
            The last known session
        row : int
            Row of the selected cell, 0 to 2
        col : int
            Column of the selected cell, 0 to 2

        Returns
        -------
        bool
            True if the move was handed to the transport

        """
        reason = self.check(session, row, col)
        if reason is not None:
            logger.debug(f"Rejected move ({row}, {col}): {reason}")
            self.notify(MoveRejected(reason))
            return False

        try:
            self.transport.send_move(session.match_id, OP_MOVE, encode_move(row, col))
        except SendError as e:
            logger.error(f"Failed to send move ({row}, {col}): {e}")
            self.notify(MoveRejected(f"failed to send move: {e}"))
            return False

        logger.info(f"Move sent: {session.local_symbol} to ({row}, {col})")
        self.notify(MoveSent(row, col, session.local_symbol))
        return True
