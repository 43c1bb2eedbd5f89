"""Transport adapters.

Transport is the capability the rest of the client relies on: authenticate,
open the realtime socket, register for matchmaking, join a match, send
moves, query the leaderboard, and report inbound messages, matches found and
disconnections through callback attributes.

NakamaTransport implements it against the game server: device
authentication and RPCs over HTTP (requests), everything else over a JSON
websocket (websocket-client) running in a daemon thread.

"""
import base64
import binascii
import functools
import itertools
import json
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional
from urllib.parse import urlencode

import jwt
import requests
import websocket
from loguru import logger

from .errors import AuthError, ConnectError, JoinError, MatchmakingError, QueryError, SendError

LEADERBOARD_RPC = "GetTopPlayers"


@dataclass(frozen=True)
class Credential(object):
    """Session credential returned by authentication.

    Attributes
    ----------
    token : str
        Session token to present to the socket and RPC endpoints
    user_id : str
        Stable identifier of the authenticated player
    username : str or None
        Display name the server knows the player by
    expires_at : int or None
        Expiry of the token as a unix timestamp
    refresh_token : str or None
        Token for refreshing the session, if the server issued one

    """
    token: str
    user_id: str
    username: Optional[str] = None
    expires_at: Optional[int] = None
    refresh_token: Optional[str] = None


def credential_from_token(token: str, refresh_token: Optional[str] = None) -> Credential:
    """Reads the player's identity out of a session token.

    The signature is not checked: the token is opaque to us and only the
    server can verify it.

    """
    try:
        claims = jwt.decode(token, options={'verify_signature': False})
    except jwt.InvalidTokenError as e:
        raise AuthError(f"Invalid session token: {e}")

    user_id = claims.get('uid')
    if not user_id:
        raise AuthError("Session token carries no user id")
    return Credential(
        token=token,
        user_id=user_id,
        username=claims.get('usn'),
        expires_at=claims.get('exp'),
        refresh_token=refresh_token,
    )


class Transport(ABC):
    """Capabilities the client needs from the connection to the server.

    Callbacks are plain attributes that the owner assigns:

    - on_message(opcode, payload, match_id) for every inbound match message
    - on_match_found(match_id, token) when matchmaking pairs us
    - on_disconnect() when the connection is lost

    """

    def __init__(self):
        self.on_message: Optional[Callable[[int, bytes, Optional[str]], None]] = None
        self.on_match_found: Optional[Callable[[str, Optional[str]], None]] = None
        self.on_disconnect: Optional[Callable[[], None]] = None

    @abstractmethod
    def authenticate(self, device_id: str, create: bool, username: str) -> Credential:
        """Raises AuthError on failure."""

    @abstractmethod
    def open_socket(self, credential: Credential):
        """Raises ConnectError on failure."""

    @abstractmethod
    def register_matchmaking(self, query: str, min_count: int, max_count: int,
                             properties: Dict[str, str]) -> str:
        """Returns a ticket.  Raises MatchmakingError on failure."""

    @abstractmethod
    def join_match(self, match_id: str, token: Optional[str] = None) -> str:
        """Returns the joined match id.  Raises JoinError on failure."""

    @abstractmethod
    def send_move(self, match_id: str, opcode: int, payload: bytes):
        """Raises SendError on failure."""

    @abstractmethod
    def query_top_players(self, n: int) -> List[Dict[str, Any]]:
        """Returns [{identifier, display_name, score}].  Raises QueryError on failure."""

    @abstractmethod
    def disconnect(self):
        pass


class NakamaTransport(Transport):
    """Transport for the game server's HTTP and realtime APIs.

    Parameters
    ----------
    host : str
        Server host name
    port : int, optional
        Server port. Defaults to 7350.
    server_key : str, optional
        Key identifying the client to the server. Defaults to 'defaultkey'.
    use_ssl : bool, optional
        Use https/wss instead of http/ws. Defaults to False.
    timeout : float, optional
        Seconds to wait for HTTP responses, the socket to open, and socket
        request replies. Defaults to 10.

    """

    def __init__(self, host: str, port: int = 7350, server_key: str = "defaultkey",
                 use_ssl: bool = False, timeout: float = 10.0):
        super().__init__()
        self.http_url = f"{'https' if use_ssl else 'http'}://{host}:{port}"
        self.ws_url = f"{'wss' if use_ssl else 'ws'}://{host}:{port}/ws"
        self.server_key = server_key
        self.timeout = timeout
        self.credential: Optional[Credential] = None
        self.ws: Optional[websocket.WebSocketApp] = None
        self._connected = False
        self._closing = False
        self._close_reason: Optional[str] = None
        self._settled = threading.Event()
        self._pending: Dict[str, Dict[str, Any]] = {}
        self._pending_lock = threading.Lock()
        self._cids = itertools.count(1)

    @property
    def connected(self) -> bool:
        return self._connected

    @staticmethod
    def _error_message(response) -> str:
        try:
            message = response.json().get('message', '')
        except ValueError:
            message = response.text
        return f"HTTP {response.status_code}: {message or 'Unknown error'}"

    # HTTP API

    def authenticate(self, device_id: str, create: bool, username: str) -> Credential:
        url = f"{self.http_url}/v2/account/authenticate/device"
        params = {'create': 'true' if create else 'false', 'username': username}

        try:
            response = requests.post(url, params=params, json={'id': device_id},
                                     auth=(self.server_key, ''), timeout=self.timeout)
        except requests.exceptions.RequestException as e:
            raise AuthError(f"Connection error: {e}")

        if response.status_code != 200:
            raise AuthError(self._error_message(response))

        try:
            result = response.json()
            token = result['token']
        except (ValueError, KeyError, TypeError):
            raise AuthError("Invalid authentication response from server")

        self.credential = credential_from_token(token, result.get('refresh_token'))
        logger.info(f"Authenticated as {self.credential.username} ({self.credential.user_id})")
        return self.credential

    def query_top_players(self, n: int) -> List[Dict[str, Any]]:
        if self.credential is None:
            raise QueryError("Not authenticated")

        url = f"{self.http_url}/v2/rpc/{LEADERBOARD_RPC}"
        headers = {
            'Authorization': f'Bearer {self.credential.token}',
            'Content-Type': 'application/json',
        }
        # RPC bodies are JSON strings wrapping the actual JSON payload
        body = json.dumps(json.dumps({'n': n}))

        try:
            response = requests.post(url, data=body, headers=headers, timeout=self.timeout)
        except requests.exceptions.RequestException as e:
            raise QueryError(f"Connection error: {e}")

        if response.status_code != 200:
            raise QueryError(self._error_message(response))

        try:
            payload = response.json().get('payload')
            players = json.loads(payload) if isinstance(payload, str) else payload
        except (ValueError, AttributeError):
            raise QueryError("Invalid leaderboard response from server")

        if players is None:
            return []
        if not isinstance(players, list):
            raise QueryError("Leaderboard payload is not a list")

        try:
            return [
                {
                    'identifier': p.get('owner_id', ''),
                    'display_name': p.get('username') or p.get('owner_id', ''),
                    'score': int(p.get('score', 0)),
                }
                for p in players
            ]
        except (AttributeError, TypeError, ValueError):
            raise QueryError("Malformed leaderboard record")

    # Realtime socket

    def open_socket(self, credential: Credential):
        query = urlencode({'lang': 'en', 'status': 'true', 'token': credential.token})
        self._settled.clear()
        self._closing = False
        self._close_reason = None

        self.ws = websocket.WebSocketApp(
            f"{self.ws_url}?{query}",
            on_open=self._on_open,
            on_message=self._on_message,
            on_error=self._on_error,
            on_close=self._on_close,
        )
        thread = threading.Thread(target=self.ws.run_forever, daemon=True)
        thread.start()

        if not self._settled.wait(self.timeout) or not self._connected:
            reason = self._close_reason or "Timed out opening socket"
            self._closing = True
            self.ws.close()
            raise ConnectError(reason)
        return self.ws

    def disconnect(self):
        self._closing = True
        if self.ws is not None:
            self.ws.close()
            self.ws = None
        self._connected = False

    def register_matchmaking(self, query: str, min_count: int, max_count: int,
                             properties: Dict[str, str]) -> str:
        response = self._request(
            {'matchmaker_add': {
                'min_count': min_count,
                'max_count': max_count,
                'query': query,
                'string_properties': properties,
            }},
            functools.partial(MatchmakingError, 'register'),
        )
        ticket = response.get('matchmaker_ticket', {}).get('ticket', '')
        logger.info(f"Added to matchmaking pool (ticket {ticket})")
        return ticket

    def join_match(self, match_id: str, token: Optional[str] = None) -> str:
        # Matched games are joined by token, others by id
        join = {'token': token} if token else {'match_id': match_id}
        response = self._request({'match_join': join}, JoinError)
        joined = response.get('match', {}).get('match_id') or match_id
        logger.info(f"Joined match {joined}")
        return joined

    def send_move(self, match_id: str, opcode: int, payload: bytes):
        if not self._connected or self.ws is None:
            raise SendError("Socket is not connected")
        envelope = {'match_data_send': {
            'match_id': match_id,
            'op_code': str(opcode),
            'data': base64.b64encode(payload).decode('ascii'),
        }}
        try:
            self.ws.send(json.dumps(envelope))
        except (websocket.WebSocketException, OSError) as e:
            raise SendError(str(e))

    def _request(self, body: Dict[str, Any], error_class) -> Dict[str, Any]:
        """Sends an envelope that expects a reply and waits for it."""
        if not self._connected or self.ws is None:
            raise error_class("Socket is not connected")

        cid = str(next(self._cids))
        waiter = {'event': threading.Event(), 'response': None}
        with self._pending_lock:
            self._pending[cid] = waiter

        try:
            self.ws.send(json.dumps({'cid': cid, **body}))
        except (websocket.WebSocketException, OSError) as e:
            with self._pending_lock:
                self._pending.pop(cid, None)
            raise error_class(str(e))

        if not waiter['event'].wait(self.timeout):
            with self._pending_lock:
                self._pending.pop(cid, None)
            raise error_class("Timed out waiting for server response")

        response = waiter['response']
        if response is None:
            raise error_class("Socket closed before the server responded")
        if 'error' in response:
            raise error_class(response['error'].get('message', 'Unknown error'))
        return response

    def _on_open(self, ws):
        logger.info("Socket connected")
        self._connected = True
        self._settled.set()

    def _on_error(self, ws, error):
        logger.error(f"Socket error: {error}")
        self._close_reason = str(error)

    def _on_close(self, ws, close_status_code, close_msg):
        was_connected = self._connected
        self._connected = False
        self._settled.set()

        # Wake up anyone still waiting for a reply
        with self._pending_lock:
            waiters = list(self._pending.values())
            self._pending.clear()
        for waiter in waiters:
            waiter['event'].set()

        if was_connected and not self._closing:
            logger.warning(f"Socket closed by server ({close_status_code}: {close_msg})")
            if self.on_disconnect:
                self.on_disconnect()

    def _on_message(self, ws, message):
        try:
            envelope = json.loads(message)
        except ValueError:
            logger.error(f"Invalid JSON from socket: {message!r}")
            return

        cid = envelope.get('cid')
        if cid is not None:
            with self._pending_lock:
                waiter = self._pending.pop(cid, None)
            if waiter is not None:
                waiter['response'] = envelope
                waiter['event'].set()
                return

        if 'match_data' in envelope:
            self._handle_match_data(envelope['match_data'])
        elif 'matchmaker_matched' in envelope:
            self._handle_matched(envelope['matchmaker_matched'])
        elif 'error' in envelope:
            logger.error(f"Server error: {envelope['error'].get('message', 'Unknown error')}")
        else:
            logger.debug(f"Ignoring socket message with keys {list(envelope)}")

    def _handle_match_data(self, data: Dict[str, Any]):
        try:
            opcode = int(data.get('op_code', 0))
            payload = base64.b64decode(data.get('data') or '', validate=True)
        except (TypeError, ValueError, binascii.Error) as e:
            logger.error(f"Malformed match data: {e}")
            return
        if self.on_message:
            self.on_message(opcode, payload, data.get('match_id'))

    def _handle_matched(self, matched: Dict[str, Any]):
        match_id = matched.get('match_id')
        token = matched.get('token')
        logger.info(f"Matchmaker matched us (match {match_id})")
        if self.on_match_found:
            # Joining waits for a socket reply, which the reader thread delivers
            threading.Thread(target=self.on_match_found, args=(match_id, token), daemon=True).start()
