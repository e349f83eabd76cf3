"""nREPL client.

ReplClient owns one connection: its transport, session, correlation registry,
dispatcher and notification hub. Requests are fire-and-forget; results come
back later as notifications (evaluations) or callbacks (service requests).

Usage:
    transport = create_websocket_transport("ws://localhost:8990/repl")
    async with ReplClient(transport) as client:
        client.notifications.subscribe(ValueReady, on_value)
        await client.wait_ready()
        await client.evaluate("(+ 1 2)", segment_id="seg1")
"""

from __future__ import annotations

import asyncio
import json
import logging
import uuid
from collections.abc import Callable
from typing import Any

from .config import ClientConfig
from .dispatcher import ResponseDispatcher
from .errors import ProtocolError
from .notifications import ConnectionLost, EvaluationSubmitted, NotificationHub
from .protocol.requests import CompleteRequest, EvalRequest, Request, ServiceRequest
from .protocol.responses import parse_frame
from .registry import CorrelationRegistry, ServiceCallback
from .session import ConnectionState, Session, SessionNegotiator
from .transport import Transport, WebSocketTransport

logger = logging.getLogger(__name__)

IdFactory = Callable[[], str]


def generate_id() -> str:
    """Default identifier source."""
    return str(uuid.uuid4())


class ReplClient:
    """Session-oriented client for an nREPL relay.

    Callers must not issue requests before the session is established
    (``on_ready`` fired or ``wait_ready()`` returned True).
    """

    def __init__(
        self,
        transport: Transport | None = None,
        config: ClientConfig | None = None,
        id_factory: IdFactory = generate_id,
        notifications: NotificationHub | None = None,
    ):
        self.config = config or ClientConfig()
        self.transport: Transport = transport or WebSocketTransport(self.config)
        self.notifications = notifications or NotificationHub()
        self.registry = CorrelationRegistry()
        self.dispatcher = ResponseDispatcher(
            self.registry,
            self.notifications,
            initial_namespace=self.config.initial_namespace,
        )
        self._id_factory = id_factory
        self._negotiator = SessionNegotiator()
        self._state = ConnectionState.DISCONNECTED
        self._session: Session | None = None
        self._on_ready: Callable[[], None] | None = None
        self._on_failure: Callable[[], None] | None = None
        self._ready = asyncio.Event()
        self._closed = asyncio.Event()

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def session(self) -> Session | None:
        """The established session, if any."""
        return self._session

    @property
    def session_id(self) -> str | None:
        return self._session.token if self._session else None

    @property
    def current_namespace(self) -> str:
        """Namespace reported by the most recent evaluation value."""
        return self.dispatcher.current_namespace

    # =========================================================================
    # Connection
    # =========================================================================

    async def connect(
        self,
        on_ready: Callable[[], None] | None = None,
        on_failure: Callable[[], None] | None = None,
    ) -> None:
        """Open the connection and start session negotiation.

        ``on_ready`` is called once the peer has issued a session.
        ``on_failure`` is called once if the connection closes, before or
        after negotiation. Connection failures are reported through
        ``on_failure`` and the ConnectionLost notification, not raised.
        """
        if self._state != ConnectionState.DISCONNECTED:
            return

        self._on_ready = on_ready
        self._on_failure = on_failure
        self._state = ConnectionState.NEGOTIATING

        try:
            await self.transport.connect(self._handle_frame, self._handle_close)
            await self._send(self._negotiator.handshake_request())
        except ConnectionError as e:
            logger.error(f"Connection failed: {e}")
            self._handle_close()

    async def disconnect(self) -> None:
        """Close the connection."""
        await self.transport.disconnect()

    async def wait_ready(self, timeout: float | None = None) -> bool:
        """Wait until the session is established or the connection closes.

        Returns:
            True if the session is active, False if the connection closed
            or the timeout expired first
        """
        ready = asyncio.ensure_future(self._ready.wait())
        closed = asyncio.ensure_future(self._closed.wait())
        try:
            await asyncio.wait(
                {ready, closed}, timeout=timeout, return_when=asyncio.FIRST_COMPLETED
            )
        finally:
            ready.cancel()
            closed.cancel()
        return self._state == ConnectionState.ACTIVE

    def _handle_frame(self, raw: str | bytes) -> None:
        if self._state == ConnectionState.ACTIVE:
            self.dispatcher.on_frame(raw)
        elif self._state == ConnectionState.NEGOTIATING:
            self._negotiate(raw)
        else:
            logger.debug(f"Ignoring frame in state {self._state.value}")

    def _negotiate(self, raw: str | bytes) -> None:
        try:
            data = parse_frame(raw)
        except ProtocolError as e:
            logger.debug(f"Ignoring frame received before session: {e}")
            return

        session = self._negotiator.offer(data)
        if session is None:
            return

        self._session = session
        self._state = ConnectionState.ACTIVE
        self._ready.set()
        logger.info(f"Session established: {session.token}")
        if self._on_ready is not None:
            self._on_ready()

    def _handle_close(self) -> None:
        if self._state == ConnectionState.CLOSED:
            return

        self._state = ConnectionState.CLOSED
        self._closed.set()
        logger.info("Connection closed")
        self.notifications.publish(ConnectionLost())
        if self._on_failure is not None:
            self._on_failure()

    # =========================================================================
    # Requests
    # =========================================================================

    async def evaluate(self, code: str, segment_id: str) -> None:
        """Submit code for evaluation on behalf of a segment.

        Results arrive as ValueReady, ConsoleOutput, EvaluationError and
        finally EvaluationDone notifications addressed to ``segment_id``.
        EvaluationSubmitted is published once the request is on the wire.

        Raises:
            ConnectionError: If the transport is closed; nothing is registered
        """
        request_id = self._id_factory()
        request = EvalRequest(code=code, id=request_id, session=self.session_id)
        self.registry.register_evaluation(request_id, segment_id)
        try:
            await self._send(request)
        except Exception:
            self.registry.remove_evaluation(request_id)
            raise
        self.notifications.publish(
            EvaluationSubmitted(request_id=request_id, segment_id=segment_id, code=code)
        )

    async def query_service(self, fields: dict[str, Any], callback: ServiceCallback) -> None:
        """Send a service request.

        ``callback`` runs with each payload frame answering the request; it
        is not called for the terminal ``done`` frame.
        """
        request_id = self._id_factory()
        request = ServiceRequest.from_fields(fields, request_id, self.session_id)
        self.registry.register_service(request_id, callback)
        try:
            await self._send(request)
        except Exception:
            self.registry.remove_service(request_id)
            raise

    async def get_completions(
        self,
        symbol: str,
        ns: str,
        context: str | None,
        callback: Callable[[Any], None],
    ) -> None:
        """Ask for completions of ``symbol`` in namespace ``ns``.

        ``callback`` receives the ``value`` of each payload frame, normally a
        list of candidate names.
        """
        request = CompleteRequest(symbol=symbol, ns=ns, context=context)

        def on_payload(frame: dict[str, Any]) -> None:
            callback(frame.get("value"))

        await self.query_service(request.to_dict(), on_payload)

    async def completions(
        self,
        symbol: str,
        ns: str,
        context: str | None = None,
        timeout: float | None = None,
    ) -> Any:
        """Await the first completion payload for ``symbol``.

        Raises:
            ConnectionError: If the connection closes before the reply
            TimeoutError: If no reply arrives within ``timeout`` seconds
        """
        future: asyncio.Future[Any] = asyncio.get_running_loop().create_future()

        def on_value(value: Any) -> None:
            if not future.done():
                future.set_result(value)

        def on_lost(_: ConnectionLost) -> None:
            if not future.done():
                future.set_exception(ConnectionError("Connection lost"))

        unsubscribe = self.notifications.subscribe(ConnectionLost, on_lost)
        try:
            await self.get_completions(symbol, ns, context, on_value)
            return await asyncio.wait_for(future, timeout=timeout)
        finally:
            unsubscribe()

    async def send_message(self, message: dict[str, Any]) -> None:
        """Send a raw message, bypassing correlation. For debugging."""
        await self.transport.send(json.dumps(message))

    async def _send(self, request: Request) -> None:
        frame = request.to_json()
        logger.debug(f"Sending: {frame}")
        await self.transport.send(frame)

    async def __aenter__(self) -> ReplClient:
        await self.connect()
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.disconnect()


def create_client(
    url: str | None = None,
    config: ClientConfig | None = None,
    id_factory: IdFactory = generate_id,
) -> ReplClient:
    """Create a client for a relay URL.

    Args:
        url: Relay URL (default: derived from ``config``)
        config: Connection settings

    Returns:
        ReplClient with a WebSocketTransport
    """
    if url is not None:
        config = ClientConfig.from_url(url)
    config = config or ClientConfig()
    return ReplClient(WebSocketTransport(config), config=config, id_factory=id_factory)
