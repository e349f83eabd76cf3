"""Inbound response frames.

Response frames carry no explicit type tag. A frame is a JSON object of
optional fields, and what it means depends on which fields are present.
Decoding tries a fixed, ordered list of candidate shapes and the first shape
that validates wins.

Shapes for frames answering an evaluation, in precedence order:
- ValueFrame:         {"id", "ns", "value"}
- OutputFrame:        {"id", "out"}
- DoneFrame:          {"id", "status": [..., "done", ...]}
- ErrorFrame:         {"id", "err"}
- RootExceptionFrame: {"id", "root-ex"}

The handshake reply is a SessionFrame: {"new-session"}.
"""

from __future__ import annotations

import json
from collections.abc import Sequence
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from ..errors import ProtocolError

DONE = "done"

# Fields a value frame must never carry alongside "ns"
VALUE_EXCLUSIVE_FIELDS = ("out", "status", "err")


class Frame(BaseModel):
    """Common base for decoded frames. Unknown fields are kept."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    id: str


class SessionFrame(BaseModel):
    """Handshake reply carrying the new session token."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    new_session: str = Field(alias="new-session")


class ValueFrame(Frame):
    """Result of an evaluated form and the namespace it ran in."""

    ns: str
    value: Any = None


class OutputFrame(Frame):
    """Text written to stdout/stderr during evaluation."""

    out: str


class DoneFrame(Frame):
    """Terminal status. No further frames follow for this id."""

    status: list[str]

    @field_validator("status")
    @classmethod
    def _require_done(cls, status: list[str]) -> list[str]:
        if DONE not in status:
            raise ValueError("status does not contain 'done'")
        return status


class ErrorFrame(Frame):
    """Error text reported by the peer."""

    err: str


class RootExceptionFrame(Frame):
    """Diagnostic root cause of a failed evaluation."""

    root_ex: Any = Field(alias="root-ex")


EvaluationFrame = ValueFrame | OutputFrame | DoneFrame | ErrorFrame | RootExceptionFrame

EVALUATION_SHAPES: tuple[type[Frame], ...] = (
    ValueFrame,
    OutputFrame,
    DoneFrame,
    ErrorFrame,
    RootExceptionFrame,
)


def parse_frame(raw: str | bytes) -> dict[str, Any]:
    """Parse a raw text frame into a JSON object.

    Raises:
        ProtocolError: If the frame is not valid JSON or not an object
    """
    try:
        data = json.loads(raw)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise ProtocolError(f"Invalid JSON frame: {e}") from e
    if not isinstance(data, dict):
        raise ProtocolError(f"Expected a JSON object, got {type(data).__name__}")
    return data


def decode(data: dict[str, Any], shapes: Sequence[type[BaseModel]]) -> BaseModel | None:
    """Return the first shape in ``shapes`` that ``data`` validates as."""
    for shape in shapes:
        try:
            return shape.model_validate(data)
        except ValidationError:
            continue
    return None


def decode_evaluation(data: dict[str, Any]) -> EvaluationFrame | None:
    """Classify a frame answering an evaluation request."""
    return decode(data, EVALUATION_SHAPES)  # type: ignore[return-value]


def decode_session(data: dict[str, Any]) -> SessionFrame | None:
    """Return the handshake reply, or None for any other frame."""
    return decode(data, (SessionFrame,))  # type: ignore[return-value]


def is_done(data: dict[str, Any]) -> bool:
    """Check whether a frame carries the terminal status."""
    return decode(data, (DoneFrame,)) is not None


def value_conflicts(data: dict[str, Any]) -> list[str]:
    """Fields present next to ``ns`` that a value frame must not carry."""
    return [key for key in VALUE_EXCLUSIVE_FIELDS if data.get(key) is not None]
