"""Client-side transport abstraction.

A transport is a duplex, ordered channel of text frames. The client hands it
two callbacks on connect:
- on_frame: called with every inbound frame, one at a time, in order
- on_close: called exactly once when the channel goes away, whether the peer
  closed it, the connection failed, or the client disconnected

Implementations:
- WebSocketTransport: the relay endpoint over ``websockets``
- MockTransport: in-memory, for tests; records sent frames and lets the test
  feed inbound frames synchronously
"""

from __future__ import annotations

import asyncio
import contextlib
import json
import logging
from abc import ABC, abstractmethod
from collections.abc import AsyncIterator, Callable
from enum import Enum
from typing import Any, Protocol, runtime_checkable

import websockets
from websockets.exceptions import ConnectionClosed

from .config import ClientConfig

logger = logging.getLogger(__name__)

FrameHandler = Callable[[str | bytes], None]
CloseHandler = Callable[[], None]


class TransportState(str, Enum):
    """Channel state machine."""

    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    CLOSED = "closed"


@runtime_checkable
class Transport(Protocol):
    """Protocol for client transports."""

    @property
    def state(self) -> TransportState:
        """Current channel state."""
        ...

    @property
    def is_connected(self) -> bool:
        """Check if the channel is open."""
        ...

    async def connect(self, on_frame: FrameHandler, on_close: CloseHandler) -> None:
        """Open the channel and start delivering frames.

        Raises:
            ConnectionError: If the channel cannot be opened
        """
        ...

    async def disconnect(self) -> None:
        """Close the channel."""
        ...

    async def send(self, frame: str) -> None:
        """Write one text frame.

        Raises:
            ConnectionError: If the channel is not open
        """
        ...


class BaseTransport(ABC):
    """Base class for transports with common functionality.

    Provides:
    - State management
    - Background reader task delivering frames in order
    - Exactly-once close notification
    """

    def __init__(self) -> None:
        self._state = TransportState.DISCONNECTED
        self._on_frame: FrameHandler | None = None
        self._on_close: CloseHandler | None = None
        self._close_notified = False
        self._reader_task: asyncio.Task[None] | None = None

    @property
    def state(self) -> TransportState:
        return self._state

    @property
    def is_connected(self) -> bool:
        return self._state == TransportState.CONNECTED

    async def connect(self, on_frame: FrameHandler, on_close: CloseHandler) -> None:
        if self._state == TransportState.CONNECTED:
            return

        self._on_frame = on_frame
        self._on_close = on_close
        self._state = TransportState.CONNECTING
        try:
            await self._do_connect()
        except Exception as e:
            self._state = TransportState.CLOSED
            raise ConnectionError(f"Failed to connect: {e}") from e

        self._state = TransportState.CONNECTED
        self._reader_task = asyncio.create_task(self._read_loop())
        logger.info(f"{self.__class__.__name__} connected")

    async def disconnect(self) -> None:
        if self._state in (TransportState.DISCONNECTED, TransportState.CLOSED):
            return

        self._state = TransportState.CLOSED

        if self._reader_task:
            self._reader_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._reader_task
            self._reader_task = None

        await self._do_disconnect()
        self._notify_closed()
        logger.info(f"{self.__class__.__name__} disconnected")

    async def send(self, frame: str) -> None:
        if not self.is_connected:
            raise ConnectionError("Transport not connected")
        await self._do_send(frame)

    def _deliver(self, frame: str | bytes) -> None:
        if self._on_frame is None:
            return
        try:
            self._on_frame(frame)
        except Exception:
            logger.exception("Error handling inbound frame")

    def _notify_closed(self) -> None:
        if self._close_notified:
            return
        self._close_notified = True
        self._state = TransportState.CLOSED
        if self._on_close is not None:
            self._on_close()

    async def _read_loop(self) -> None:
        """Background task delivering inbound frames."""
        try:
            async for frame in self._receive_frames():
                self._deliver(frame)
        except asyncio.CancelledError:
            pass
        except Exception as e:
            logger.error(f"Read loop error: {e}")
        finally:
            self._notify_closed()

    @abstractmethod
    async def _do_connect(self) -> None:
        """Implementation-specific connection logic."""
        ...

    @abstractmethod
    async def _do_disconnect(self) -> None:
        """Implementation-specific disconnection logic."""
        ...

    @abstractmethod
    async def _do_send(self, frame: str) -> None:
        """Implementation-specific send logic."""
        ...

    @abstractmethod
    def _receive_frames(self) -> AsyncIterator[str | bytes]:
        """Implementation-specific receive logic. Must be an async generator."""
        ...


class WebSocketTransport(BaseTransport):
    """Transport over a WebSocket connection to the nREPL relay.

    Wire format: one JSON object per text message, both directions.
    """

    def __init__(self, config: ClientConfig | None = None):
        super().__init__()
        self.config = config or ClientConfig()
        self._ws: Any = None  # websockets ClientConnection

    async def _do_connect(self) -> None:
        self._ws = await websockets.connect(
            self.config.url,
            open_timeout=self.config.open_timeout,
            ping_interval=self.config.ping_interval,
            ping_timeout=self.config.ping_timeout,
        )
        logger.info(f"WebSocket connected to {self.config.url}")

    async def _do_disconnect(self) -> None:
        if self._ws:
            await self._ws.close()
            self._ws = None

    async def _do_send(self, frame: str) -> None:
        if not self._ws:
            raise ConnectionError("WebSocket not connected")
        try:
            await self._ws.send(frame)
        except ConnectionClosed as e:
            raise ConnectionError(f"WebSocket closed: {e}") from e

    async def _receive_frames(self) -> AsyncIterator[str | bytes]:
        if not self._ws:
            raise ConnectionError("WebSocket not connected")

        try:
            async for message in self._ws:
                yield message
        except ConnectionClosed as e:
            logger.info(f"WebSocket closed: {e}")


class MockTransport(BaseTransport):
    """Mock transport for testing.

    Records every frame sent and lets the test push inbound frames, which
    are delivered synchronously. No actual I/O.

    Usage:
        transport = MockTransport()
        client = ReplClient(transport)
        await client.connect()
        transport.feed({"new-session": "S1"})

        assert transport.sent[0] == {"op": "clone"}
    """

    def __init__(self, fail_connect: bool = False) -> None:
        super().__init__()
        self.fail_connect = fail_connect
        self._sent: list[str] = []
        self._closed = asyncio.Event()

    @property
    def sent_raw(self) -> list[str]:
        """Raw text frames sent through this transport."""
        return self._sent.copy()

    @property
    def sent(self) -> list[dict[str, Any]]:
        """Sent frames, parsed."""
        return [json.loads(frame) for frame in self._sent]

    def feed(self, frame: dict[str, Any] | str) -> None:
        """Deliver an inbound frame as if the peer had sent it."""
        if not self.is_connected:
            raise ConnectionError("Transport not connected")
        self._deliver(frame if isinstance(frame, str) else json.dumps(frame))

    def drop(self) -> None:
        """Simulate the peer closing the connection."""
        self._closed.set()
        self._notify_closed()

    def clear(self) -> None:
        """Forget recorded frames."""
        self._sent.clear()

    async def _do_connect(self) -> None:
        if self.fail_connect:
            raise OSError("Connection refused")

    async def _do_disconnect(self) -> None:
        self._closed.set()

    async def _do_send(self, frame: str) -> None:
        self._sent.append(frame)

    async def _receive_frames(self) -> AsyncIterator[str | bytes]:
        # Inbound frames arrive through feed(); just wait for the close
        await self._closed.wait()
        return
        yield  # Make this a generator


def create_websocket_transport(
    url: str | None = None,
    config: ClientConfig | None = None,
) -> WebSocketTransport:
    """Create a WebSocket transport.

    Args:
        url: Relay URL (ws:// or wss://); overrides ``config`` host/port/path
        config: Connection settings

    Returns:
        WebSocketTransport for the relay endpoint
    """
    if url is not None:
        config = ClientConfig.from_url(url)
    return WebSocketTransport(config)


def create_mock_transport() -> MockTransport:
    """Create a mock transport for testing."""
    return MockTransport()
