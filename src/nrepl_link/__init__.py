"""nrepl-link - correlating client for an nREPL WebSocket relay.

Submits code for remote evaluation and service queries (autocompletion) over
one shared connection, and routes every response frame back to the caller
that asked for it:
- evaluations: notifications addressed to the originating segment
- service requests: the callback supplied with the request
"""

from .client import ReplClient, create_client, generate_id
from .config import ClientConfig
from .errors import DuplicateRequestError, NReplLinkError, ProtocolError
from .notifications import (
    ConnectionLost,
    ConsoleOutput,
    EvaluationDone,
    EvaluationError,
    EvaluationSubmitted,
    Notification,
    NotificationHub,
    ValueReady,
)
from .registry import CorrelationRegistry
from .session import ConnectionState, Session
from .transport import (
    BaseTransport,
    MockTransport,
    Transport,
    TransportState,
    WebSocketTransport,
    create_mock_transport,
    create_websocket_transport,
)

__all__ = [
    # Client
    "ReplClient",
    "create_client",
    "generate_id",
    "ClientConfig",
    "ConnectionState",
    "Session",
    "CorrelationRegistry",
    # Notifications
    "Notification",
    "NotificationHub",
    "EvaluationSubmitted",
    "ValueReady",
    "ConsoleOutput",
    "EvaluationDone",
    "EvaluationError",
    "ConnectionLost",
    # Transports
    "Transport",
    "BaseTransport",
    "TransportState",
    "WebSocketTransport",
    "MockTransport",
    "create_websocket_transport",
    "create_mock_transport",
    # Errors
    "NReplLinkError",
    "DuplicateRequestError",
    "ProtocolError",
]
