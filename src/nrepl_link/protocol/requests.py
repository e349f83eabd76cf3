"""Outbound request frames.

Every request is a flat JSON object with an ``op`` naming the operation.
All requests except the handshake carry an ``id`` for correlation with
response frames and the ``session`` token obtained from the handshake.

Example:
    {"op": "eval", "code": "(+ 1 2)", "id": "5d0c...", "session": "a1b2..."}
"""

from __future__ import annotations

from enum import Enum
from typing import Any, ClassVar

from pydantic import BaseModel, ConfigDict, Field


class Op(str, Enum):
    """Operations issued by the client."""

    CLONE = "clone"
    EVAL = "eval"
    COMPLETE = "complete"


class Request(BaseModel):
    """Base request frame."""

    # Declared fields left off the frame while they are None. Any other
    # field, including caller-supplied extras, is sent as given.
    optional_fields: ClassVar[tuple[str, ...]] = ("id", "session")

    op: str
    id: str | None = None
    session: str | None = None

    def to_json(self) -> str:
        """Serialize for the wire, omitting unset optional fields."""
        return self.model_dump_json(exclude=self._absent_fields())

    def to_dict(self) -> dict[str, Any]:
        return self.model_dump(exclude=self._absent_fields())

    def _absent_fields(self) -> set[str]:
        return {name for name in self.optional_fields if getattr(self, name) is None}


class CloneRequest(Request):
    """Handshake asking the peer for a new session."""

    op: str = Op.CLONE.value


class EvalRequest(Request):
    """Evaluate source code in the session."""

    op: str = Op.EVAL.value
    code: str


class ServiceRequest(Request):
    """Any non-evaluation request.

    Operation-specific fields are passed through untouched.
    """

    model_config = ConfigDict(extra="allow")

    @classmethod
    def from_fields(
        cls,
        fields: dict[str, Any],
        request_id: str,
        session: str | None,
    ) -> ServiceRequest:
        """Merge ``id`` and ``session`` into caller-supplied fields."""
        return cls.model_validate({**fields, "id": request_id, "session": session})


class CompleteRequest(ServiceRequest):
    """Ask for completions of a symbol prefix in a namespace.

    ``context`` is accepted for callers that track it but is never put on
    the wire; the relay's ``complete`` op takes only ``symbol`` and ``ns``.
    """

    op: str = Op.COMPLETE.value
    symbol: str
    ns: str
    context: str | None = Field(default=None, exclude=True)
