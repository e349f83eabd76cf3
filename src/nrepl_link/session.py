"""Session negotiation.

Before any other traffic the client sends ``{"op": "clone"}`` and waits for
the peer to answer with ``{"new-session": <token>}``. Frames that arrive in
the meantime are ignored. The connection moves through an explicit state
machine and the client selects frame handling by the current state.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any

from .protocol.requests import CloneRequest
from .protocol.responses import decode_session

logger = logging.getLogger(__name__)


class ConnectionState(str, Enum):
    """Connection state machine."""

    DISCONNECTED = "disconnected"
    NEGOTIATING = "negotiating"
    ACTIVE = "active"
    CLOSED = "closed"


@dataclass(frozen=True)
class Session:
    """The session token issued by the peer. One per connection."""

    token: str


class SessionNegotiator:
    """Performs the clone handshake."""

    def handshake_request(self) -> CloneRequest:
        """The request that asks the peer for a new session."""
        return CloneRequest()

    def offer(self, data: dict[str, Any]) -> Session | None:
        """Inspect a pre-session frame.

        Returns:
            The new Session if the frame is the handshake reply, else None
        """
        reply = decode_session(data)
        if reply is None:
            logger.debug(f"Ignoring frame received before session: {data}")
            return None
        return Session(token=reply.new_session)
