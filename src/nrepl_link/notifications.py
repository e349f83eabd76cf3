"""Notification hub - typed pub/sub for evaluation results.

Results of evaluations are delivered to the application through this hub,
keyed by the segment that started the evaluation. Each notification kind is
a pydantic model; subscribers register for one kind or for all of them.

Usage:
    hub = NotificationHub()
    unsubscribe = hub.subscribe(ValueReady, lambda n: print(n.value))
    hub.publish(ValueReady(namespace="user", value="42", segment_id="seg1"))

Delivery is synchronous and happens at most once per subscriber per
published notification. A failing subscriber is logged and does not prevent
delivery to the others.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Any, TypeVar

from pydantic import BaseModel

logger = logging.getLogger(__name__)


class Notification(BaseModel):
    """Base class for all notifications."""

    kind: str = "notification"


class EvaluationSubmitted(Notification):
    """An evaluation request was sent."""

    kind: str = "evaluator.submitted"
    request_id: str
    segment_id: str
    code: str


class ValueReady(Notification):
    """An evaluated form produced a value."""

    kind: str = "evaluator.value"
    namespace: str
    value: Any = None
    segment_id: str


class ConsoleOutput(Notification):
    """The evaluation wrote to the console."""

    kind: str = "evaluator.console"
    text: str
    segment_id: str


class EvaluationDone(Notification):
    """The evaluation finished. No further notifications for this request."""

    kind: str = "evaluator.done"
    segment_id: str


class EvaluationError(Notification):
    """The peer reported an error for the evaluation."""

    kind: str = "evaluator.error"
    error: str
    segment_id: str


class ConnectionLost(Notification):
    """The connection closed. Published once per client."""

    kind: str = "app.connection-lost"


N = TypeVar("N", bound=Notification)

NotificationCallback = Callable[[Any], None]


class NotificationHub:
    """Per-client subscriber registry."""

    def __init__(self) -> None:
        self._subscriptions: dict[type[Notification], list[NotificationCallback]] = {}
        self._wildcard: list[NotificationCallback] = []

    def subscribe(self, kind: type[N], callback: Callable[[N], None]) -> Callable[[], None]:
        """Subscribe to one notification kind.

        Args:
            kind: Notification class to receive
            callback: Called with each published instance of ``kind``

        Returns:
            Unsubscribe function
        """
        subscribers = self._subscriptions.setdefault(kind, [])
        subscribers.append(callback)

        def unsubscribe() -> None:
            if callback in subscribers:
                subscribers.remove(callback)

        return unsubscribe

    def subscribe_all(self, callback: Callable[[Notification], None]) -> Callable[[], None]:
        """Subscribe to every notification kind."""
        self._wildcard.append(callback)

        def unsubscribe() -> None:
            if callback in self._wildcard:
                self._wildcard.remove(callback)

        return unsubscribe

    def publish(self, notification: Notification) -> None:
        """Deliver a notification to its subscribers."""
        # Copy so subscribers may unsubscribe while being notified
        specific = list(self._subscriptions.get(type(notification), []))
        wildcard = list(self._wildcard)

        for callback in specific + wildcard:
            try:
                callback(notification)
            except Exception:
                logger.exception(f"Error in subscriber for {notification.kind}")

    def clear(self) -> None:
        """Drop all subscriptions."""
        self._subscriptions = {}
        self._wildcard = []
