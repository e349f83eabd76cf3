"""Exception types for the nREPL client."""

from __future__ import annotations


class NReplLinkError(Exception):
    """Base class for client errors."""


class DuplicateRequestError(NReplLinkError):
    """Raised when a request id is registered twice."""

    def __init__(self, request_id: str):
        super().__init__(f"Request id already registered: {request_id}")
        self.request_id = request_id


class ProtocolError(NReplLinkError):
    """Raised when an inbound frame cannot be decoded."""
