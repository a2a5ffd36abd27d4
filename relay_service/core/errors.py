"""Error taxonomy for the relay.

Only `StreamFailure` and `TransportError` cross the router boundary; the
rest are raised by collaborators (transport, display surface, auth flow)
and handled where they occur.
"""
import re
from typing import Optional


class RelayError(Exception):
    """Base class for all relay errors."""


class AuthError(RelayError):
    """Sign-in failed or was rejected."""


class SessionAuthExpired(RelayError):
    """The remote agent rejected the session token (HTTP 401)."""

    def __init__(self, message: str = "401 Unauthorized - Authentication required"):
        super().__init__(message)


class TransportError(RelayError):
    """A non-streaming request to the remote agent failed."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class AgentUnavailable(RelayError, ConnectionError):
    """The remote agent could not be reached when opening a session."""


class DisplayUpdateUnsupported(RelayError):
    """The display surface cannot edit a message in place."""


class StreamFailure(RelayError):
    """Consuming the agent's event stream failed part way through."""

    def __init__(self, cause: BaseException):
        super().__init__(str(cause) or cause.__class__.__name__)
        self.cause = cause

    @property
    def is_auth(self) -> bool:
        return is_auth_rejection(self.cause)


_AUTH_TEXT = re.compile(r"\b401\b|\bUnauthorized\b")


def is_auth_rejection(exc: BaseException) -> bool:
    """True when an error signals that the token was rejected."""
    if isinstance(exc, SessionAuthExpired):
        return True
    if isinstance(exc, TransportError):
        return exc.status_code == 401
    if isinstance(exc, StreamFailure):
        return exc.is_auth
    if isinstance(exc, RelayError):
        return False
    # untyped errors from lower layers only carry the signal in their text
    return _AUTH_TEXT.search(str(exc)) is not None
