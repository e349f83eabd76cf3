"""Wire protocol layer.

Defines the JSON frames exchanged with the nREPL relay.

Key concepts:
- Requests: client → peer frames with an ``op`` and a correlation ``id``
- Responses: peer → client frames correlated by the same ``id``
- Classification: response frames are untagged and decoded by field presence

A single request can produce several response frames (value, output, ...)
before its terminal ``done`` status.
"""

from .requests import CloneRequest, CompleteRequest, EvalRequest, Op, Request, ServiceRequest
from .responses import (
    DoneFrame,
    ErrorFrame,
    EvaluationFrame,
    OutputFrame,
    RootExceptionFrame,
    SessionFrame,
    ValueFrame,
    decode_evaluation,
    decode_session,
    is_done,
    parse_frame,
    value_conflicts,
)

__all__ = [
    "Op",
    "Request",
    "CloneRequest",
    "EvalRequest",
    "ServiceRequest",
    "CompleteRequest",
    "SessionFrame",
    "ValueFrame",
    "OutputFrame",
    "DoneFrame",
    "ErrorFrame",
    "RootExceptionFrame",
    "EvaluationFrame",
    "parse_frame",
    "decode_evaluation",
    "decode_session",
    "is_done",
    "value_conflicts",
]
