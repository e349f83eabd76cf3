"""Response dispatcher.

Routes each inbound frame to the request that caused it. The registry table
an id is found in decides the delivery channel:
- evaluation: the frame is classified and published as a notification
  addressed to the originating segment
- service: the raw frame is handed to the stored callback

Frames are dispatched one at a time, in the order the transport delivers
them. Nothing on this path raises; anomalies are logged and dropped.
"""

from __future__ import annotations

import logging
from typing import Any

from .config import DEFAULT_NAMESPACE
from .errors import ProtocolError
from .notifications import (
    ConsoleOutput,
    EvaluationDone,
    EvaluationError,
    NotificationHub,
    ValueReady,
)
from .protocol.responses import (
    DoneFrame,
    ErrorFrame,
    OutputFrame,
    RootExceptionFrame,
    ValueFrame,
    decode_evaluation,
    is_done,
    parse_frame,
    value_conflicts,
)
from .registry import CorrelationRegistry, ServiceCallback

logger = logging.getLogger(__name__)


class ResponseDispatcher:
    """Classifies response frames and routes them to their callers."""

    def __init__(
        self,
        registry: CorrelationRegistry,
        notifications: NotificationHub,
        initial_namespace: str = DEFAULT_NAMESPACE,
    ):
        self.registry = registry
        self.notifications = notifications
        # Namespace of the most recent value frame
        self.current_namespace = initial_namespace

    def on_frame(self, raw: str | bytes) -> None:
        """Handle one raw text frame."""
        try:
            data = parse_frame(raw)
        except ProtocolError as e:
            logger.warning(f"Dropping frame: {e}")
            return
        self.dispatch(data)

    def dispatch(self, data: dict[str, Any]) -> None:
        """Route a parsed frame."""
        request_id = data.get("id")
        if not isinstance(request_id, str):
            logger.warning(f"Unknown response: {data}")
            return

        segment_id = self.registry.lookup_evaluation(request_id)
        if segment_id is not None:
            self._dispatch_evaluation(request_id, segment_id, data)
            return

        callback = self.registry.lookup_service(request_id)
        if callback is not None:
            self._dispatch_service(request_id, callback, data)
            return

        logger.warning(f"Unknown response: {data}")

    def _dispatch_evaluation(self, request_id: str, segment_id: str, data: dict[str, Any]) -> None:
        frame = decode_evaluation(data)

        if isinstance(frame, ValueFrame):
            conflicts = value_conflicts(data)
            if conflicts:
                logger.warning(
                    f"Value frame for {request_id} also carries {conflicts}; "
                    "treating it as a value"
                )
            self.current_namespace = frame.ns
            self.notifications.publish(
                ValueReady(namespace=frame.ns, value=frame.value, segment_id=segment_id)
            )
            if is_done(data):
                self._finish_evaluation(request_id, segment_id)
        elif isinstance(frame, OutputFrame):
            self.notifications.publish(ConsoleOutput(text=frame.out, segment_id=segment_id))
        elif isinstance(frame, DoneFrame):
            self._finish_evaluation(request_id, segment_id)
        elif isinstance(frame, ErrorFrame):
            self.notifications.publish(EvaluationError(error=frame.err, segment_id=segment_id))
        elif isinstance(frame, RootExceptionFrame):
            logger.info(f"Root-ex message: {data}")
        else:
            logger.debug(f"Unclassified frame for evaluation {request_id}: {data}")

    def _finish_evaluation(self, request_id: str, segment_id: str) -> None:
        self.registry.remove_evaluation(request_id)
        self.notifications.publish(EvaluationDone(segment_id=segment_id))

    def _dispatch_service(
        self, request_id: str, callback: ServiceCallback, data: dict[str, Any]
    ) -> None:
        if is_done(data):
            self.registry.remove_service(request_id)
            return

        try:
            callback(data)
        except Exception:
            logger.exception(f"Error in service callback for {request_id}")
