"""Exception types raised by the tic-tac-toe client.

Failures at the transport boundary derive from TransportError.  None of these
are meant to terminate the process: callers turn them into status
notifications or log lines.

"""
from typing import Optional


class ClientError(Exception):
    """Base class for all client errors."""


class ConfigError(ClientError):
    """Raised when a required local input (name, server, device) is missing."""


class TransportError(ClientError):
    """Base class for failures reported by the transport adapter."""


class AuthError(TransportError):
    """Device authentication was refused or failed."""


class ConnectError(TransportError):
    """The realtime socket could not be opened."""


class JoinError(TransportError):
    """The server refused to let us join a matched game."""


class SendError(TransportError):
    """A message could not be written to the socket."""


class QueryError(TransportError):
    """A remote query (leaderboard RPC) failed."""


class MatchmakingError(ClientError):
    """Exception raised when a step of the matchmaking protocol fails.

    Attributes
    ----------
    step : str
        Name of the step that failed, e.g. 'authenticate' or 'join'
    reason : str
        The underlying failure message

    """

    def __init__(self, step: str, reason: str):
        """Initialize the exception.

        Parameters
        ----------
        step : str
            Name of the step that failed
        reason : str
            The underlying failure message

        """
        self.step = step
        self.reason = reason
        super().__init__(f"Matchmaking failed during {step}: {reason}")


class DecodeError(ClientError):
    """Exception raised when an inbound match message cannot be decoded.

    Attributes
    ----------
    opcode : int or None
        The opcode of the offending message, when it was usable
    reason : str
        Why decoding failed

    """

    def __init__(self, reason: str, opcode: Optional[int] = None):
        self.opcode = opcode
        self.reason = reason
        if opcode is None:
            message = f"Cannot decode message: {reason}"
        else:
            message = f"Cannot decode message with opcode {opcode}: {reason}"
        super().__init__(message)
