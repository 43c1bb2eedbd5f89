"""Typed session events and the decoder for inbound match messages.

The server tags each match message with an integer opcode and a JSON
payload.  decode_message() turns that pair into one of the event classes
below.  Opcodes we do not know become UnknownEvent so that callers can log
them and carry on; payloads that are not valid JSON objects, or that carry
fields of the wrong type, raise DecodeError.

The local lifecycle events (MatchmakingStarted, MatchJoined, SessionReset)
never travel over the wire.  They are applied by the same session machine
so that every phase change goes through one place.

"""
import json
import math
from dataclasses import dataclass
from typing import Any, Dict, Optional, Tuple, Union

from loguru import logger

from .errors import DecodeError
from .session_state import BOARD_SIZE, BOARD_WIDTH, GameMode, Outcome


# Inbound opcodes, as broadcast by the match handler on the server
OP_WELCOME = 1
OP_PLAYER_JOINED = 2
OP_PLAYER_LEFT = 3
OP_BOARD_UPDATE = 4
OP_GAME_WON = 5
OP_PLAYER_ERROR = 6
OP_GAME_DRAW = 7
OP_TIMEOUT_WIN = 8
OP_TIMER_UPDATE = 9

# Outbound opcode for a move
OP_MOVE = 1

Payload = Union[bytes, bytearray, str]


class Event(object):
    """Base class for everything the session machine can apply."""


@dataclass(frozen=True)
class Welcome(Event):
    message: str = ""
    game_mode: Optional[GameMode] = None
    player_count: Optional[int] = None
    turn_time_limit: Optional[int] = None
    match_id: Optional[str] = None


@dataclass(frozen=True)
class PlayerJoined(Event):
    user_id: str
    username: Optional[str] = None
    symbol: Optional[str] = None
    total_players: Optional[int] = None
    current_turn: Optional[str] = None
    board: Optional[Tuple[str, ...]] = None
    game_mode: Optional[GameMode] = None
    time_remaining: Optional[int] = None
    message: str = ""
    match_id: Optional[str] = None


@dataclass(frozen=True)
class PlayerLeft(Event):
    user_id: str
    message: str = ""
    match_id: Optional[str] = None


@dataclass(frozen=True)
class BoardUpdate(Event):
    board: Optional[Tuple[str, ...]] = None
    current_turn: Optional[str] = None
    game_mode: Optional[GameMode] = None
    time_remaining: Optional[int] = None
    match_id: Optional[str] = None


@dataclass(frozen=True)
class MatchEnded(Event):
    """Win, draw and timeout only differ by their outcome label."""
    outcome: Outcome
    message: str = ""
    board: Optional[Tuple[str, ...]] = None
    winner_id: Optional[str] = None
    game_mode: Optional[GameMode] = None
    match_id: Optional[str] = None


@dataclass(frozen=True)
class PlayerError(Event):
    error: str
    match_id: Optional[str] = None


@dataclass(frozen=True)
class TimerTick(Event):
    time_remaining: int
    current_turn: Optional[str] = None
    match_id: Optional[str] = None


@dataclass(frozen=True)
class UnknownEvent(Event):
    opcode: int
    payload: bytes = b""
    match_id: Optional[str] = None


@dataclass(frozen=True)
class MatchmakingStarted(Event):
    local_id: str
    game_mode: Optional[GameMode] = None


@dataclass(frozen=True)
class MatchJoined(Event):
    match_id: str


@dataclass(frozen=True)
class SessionReset(Event):
    reason: str = "reset"


WIRE_EVENTS = (
    Welcome, PlayerJoined, PlayerLeft, BoardUpdate, MatchEnded,
    PlayerError, TimerTick, UnknownEvent,
)
LIFECYCLE_EVENTS = (MatchmakingStarted, MatchJoined, SessionReset)


def _as_bytes(payload: Payload) -> bytes:
    if isinstance(payload, str):
        return payload.encode('utf-8')
    return bytes(payload)


def _parse_object(opcode: int, payload: Payload) -> Dict[str, Any]:
    try:
        data = json.loads(_as_bytes(payload).decode('utf-8'))
    except (UnicodeDecodeError, ValueError) as e:
        raise DecodeError(f"payload is not valid JSON ({e})", opcode)
    if not isinstance(data, dict):
        raise DecodeError("payload is not a JSON object", opcode)
    return data


def _optional_str(data: Dict[str, Any], key: str, opcode: int) -> Optional[str]:
    value = data.get(key)
    if value is None:
        return None
    if not isinstance(value, str):
        raise DecodeError(f"'{key}' must be a string", opcode)
    return value


def _required_str(data: Dict[str, Any], key: str, opcode: int) -> str:
    value = _optional_str(data, key, opcode)
    if not value:
        raise DecodeError(f"'{key}' is required", opcode)
    return value


def _optional_int(data: Dict[str, Any], key: str, opcode: int) -> Optional[int]:
    value = data.get(key)
    if value is None:
        return None
    # bool is a subclass of int, but never a valid count or time
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise DecodeError(f"'{key}' must be a number", opcode)
    # json accepts Infinity and NaN
    if isinstance(value, float) and not math.isfinite(value):
        raise DecodeError(f"'{key}' must be a finite number", opcode)
    return int(value)


def _optional_board(data: Dict[str, Any], opcode: int) -> Optional[Tuple[str, ...]]:
    value = data.get('board_state')
    if value is None:
        return None
    if not isinstance(value, list) or len(value) != BOARD_SIZE:
        raise DecodeError(f"'board_state' must be a list of {BOARD_SIZE} cells", opcode)
    if not all(isinstance(cell, str) for cell in value):
        raise DecodeError("'board_state' cells must be strings", opcode)
    return tuple(value)


def _optional_mode(data: Dict[str, Any], opcode: int) -> Optional[GameMode]:
    value = _optional_str(data, 'game_mode', opcode)
    if value is None:
        return None
    try:
        return GameMode(value)
    except ValueError:
        raise DecodeError(f"unknown game mode '{value}'", opcode)


def _decode_welcome(data, opcode, match_id):
    return Welcome(
        message=_optional_str(data, 'message', opcode) or "",
        game_mode=_optional_mode(data, opcode),
        player_count=_optional_int(data, 'player_count', opcode),
        turn_time_limit=_optional_int(data, 'turn_time_limit', opcode),
        match_id=match_id,
    )


def _decode_player_joined(data, opcode, match_id):
    return PlayerJoined(
        user_id=_required_str(data, 'user_id', opcode),
        username=_optional_str(data, 'username', opcode),
        symbol=_optional_str(data, 'symbol', opcode) or None,
        total_players=_optional_int(data, 'total_players', opcode),
        current_turn=_optional_str(data, 'current_turn', opcode) or None,
        board=_optional_board(data, opcode),
        game_mode=_optional_mode(data, opcode),
        time_remaining=_optional_int(data, 'time_remaining', opcode),
        message=_optional_str(data, 'message', opcode) or "",
        match_id=match_id,
    )


def _decode_player_left(data, opcode, match_id):
    return PlayerLeft(
        user_id=_required_str(data, 'user_id', opcode),
        message=_optional_str(data, 'message', opcode) or "",
        match_id=match_id,
    )


def _decode_board_update(data, opcode, match_id):
    return BoardUpdate(
        board=_optional_board(data, opcode),
        current_turn=_optional_str(data, 'current_turn', opcode) or None,
        game_mode=_optional_mode(data, opcode),
        time_remaining=_optional_int(data, 'time_remaining', opcode),
        match_id=match_id,
    )


def _match_ended_decoder(outcome: Outcome):
    def decode(data, opcode, match_id):
        return MatchEnded(
            outcome=outcome,
            message=_optional_str(data, 'message', opcode) or "",
            board=_optional_board(data, opcode),
            winner_id=_optional_str(data, 'winner_id', opcode) or None,
            game_mode=_optional_mode(data, opcode),
            match_id=match_id,
        )
    return decode


def _decode_player_error(data, opcode, match_id):
    return PlayerError(error=_required_str(data, 'error', opcode), match_id=match_id)


def _decode_timer_tick(data, opcode, match_id):
    time_remaining = _optional_int(data, 'time_remaining', opcode)
    if time_remaining is None:
        raise DecodeError("'time_remaining' is required", opcode)
    return TimerTick(
        time_remaining=time_remaining,
        current_turn=_optional_str(data, 'current_turn', opcode) or None,
        match_id=match_id,
    )


_DECODERS = {
    OP_WELCOME: _decode_welcome,
    OP_PLAYER_JOINED: _decode_player_joined,
    OP_PLAYER_LEFT: _decode_player_left,
    OP_BOARD_UPDATE: _decode_board_update,
    OP_GAME_WON: _match_ended_decoder(Outcome.WIN),
    OP_PLAYER_ERROR: _decode_player_error,
    OP_GAME_DRAW: _match_ended_decoder(Outcome.DRAW),
    OP_TIMEOUT_WIN: _match_ended_decoder(Outcome.TIMEOUT),
    OP_TIMER_UPDATE: _decode_timer_tick,
}


def decode_message(opcode: int, payload: Payload, match_id: Optional[str] = None) -> Event:
    """Decodes one inbound match message.

    Parameters
    ----------
    opcode : int
        Positive integer tag of the message
    payload : bytes or str
        The raw message body
    match_id : str, optional
        The match the transport received the message for, if known

    Returns
    -------
    Event
        One of the nine typed events, or UnknownEvent for an opcode we don't
        recognise

    Raises
    ------
    DecodeError
        If the opcode isn't a positive integer, or if the payload of a known
        opcode isn't a JSON object with correctly typed fields

    """
    if isinstance(opcode, bool) or not isinstance(opcode, int) or opcode <= 0:
        raise DecodeError(f"opcode must be a positive integer, got {opcode!r}")

    decoder = _DECODERS.get(opcode)
    if decoder is None:
        logger.debug(f"Unrecognised opcode {opcode}, passing through as unknown")
        return UnknownEvent(opcode=opcode, payload=_as_bytes(payload), match_id=match_id)

    return decoder(_parse_object(opcode, payload), opcode, match_id)


def encode_move(row: int, col: int) -> bytes:
    """Encodes the body of an outbound move message."""
    if not (0 <= row < BOARD_WIDTH and 0 <= col < BOARD_WIDTH):
        raise ValueError(f"cell ({row}, {col}) is outside the board")
    return json.dumps({'row': row, 'col': col}).encode('utf-8')
