"""Correlation registry for outstanding requests.

Two independent tables keyed by request id:
- evaluations: id → segment id of the worksheet segment that asked
- pending services: id → callback to run on each payload frame

An id lives in at most one table. Entries leave the registry only when the
dispatcher sees a terminal status for them; a request that never gets one
stays registered for the life of the connection.
"""

from __future__ import annotations

from collections.abc import Callable, KeysView
from typing import Any

from .errors import DuplicateRequestError


ServiceCallback = Callable[[dict[str, Any]], None]


class CorrelationRegistry:
    """Tracks outstanding evaluation and service requests."""

    def __init__(self) -> None:
        self._evaluations: dict[str, str] = {}
        self._pending_services: dict[str, ServiceCallback] = {}

    def register_evaluation(self, request_id: str, segment_id: str) -> None:
        self._ensure_unused(request_id)
        self._evaluations[request_id] = segment_id

    def register_service(self, request_id: str, callback: ServiceCallback) -> None:
        self._ensure_unused(request_id)
        self._pending_services[request_id] = callback

    def lookup_evaluation(self, request_id: str) -> str | None:
        return self._evaluations.get(request_id)

    def lookup_service(self, request_id: str) -> ServiceCallback | None:
        return self._pending_services.get(request_id)

    def remove_evaluation(self, request_id: str) -> None:
        self._evaluations.pop(request_id, None)

    def remove_service(self, request_id: str) -> None:
        self._pending_services.pop(request_id, None)

    @property
    def evaluation_ids(self) -> KeysView[str]:
        """Ids of evaluations still awaiting a terminal status."""
        return self._evaluations.keys()

    @property
    def service_ids(self) -> KeysView[str]:
        """Ids of service requests still awaiting a terminal status."""
        return self._pending_services.keys()

    def _ensure_unused(self, request_id: str) -> None:
        if request_id in self:
            raise DuplicateRequestError(request_id)

    def __contains__(self, request_id: object) -> bool:
        return request_id in self._evaluations or request_id in self._pending_services

    def __len__(self) -> int:
        return len(self._evaluations) + len(self._pending_services)
