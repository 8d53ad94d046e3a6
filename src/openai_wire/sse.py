"""Server-Sent Events (SSE) record decoding."""

from __future__ import annotations

import json
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Generic, TypeVar

from openai_wire.errors import DecodeError
from openai_wire.framing import ASCII_WHITESPACE
from openai_wire.types import ErrorPayload

T = TypeVar("T")

DATA_PREFIX = b"data:"
DONE_SENTINEL = b"[DONE]"
COMMENT_PREFIX = b":"


class EventKind(Enum):
    """Outcomes of decoding one event record."""

    PAYLOAD = "payload"
    END = "end"
    ERROR = "error"


@dataclass(frozen=True)
class DecodedEvent(Generic[T]):
    """A single decoded event record."""

    kind: EventKind
    payload: T | None = None
    error: ErrorPayload | None = None


END = DecodedEvent(EventKind.END)


def decode_event(
    frame: bytes,
    parse: Callable[[Any], T] | None = None,
) -> DecodedEvent[T] | None:
    """Interpret one trimmed event record.

    Checked in order, and the first match wins:
    - ``:`` lines are comments/keep-alives (returns None)
    - The ``data:`` prefix is stripped; ``[DONE]`` ends the stream
    - The rest is parsed as JSON. An ``{"error": {...}}`` object is an in-band
      error and never reaches ``parse``, whether it came bare or after ``data:``
    - Otherwise ``parse`` builds the payload

    Raises DecodeError when the record is not JSON or ``parse`` rejects it.
    """
    if frame.startswith(COMMENT_PREFIX):
        return None

    body = frame
    if body.startswith(DATA_PREFIX):
        body = body[len(DATA_PREFIX):].lstrip(ASCII_WHITESPACE)

    if body == DONE_SENTINEL:
        return END

    value = load_json(body, frame=frame)
    error = ErrorPayload.match(value)
    if error is not None:
        return DecodedEvent(EventKind.ERROR, error=error)
    return DecodedEvent(EventKind.PAYLOAD, payload=apply_parser(value, parse, frame=frame))


def load_json(body: bytes, *, frame: bytes) -> Any:
    """Parse a JSON document, reporting failures as DecodeError."""
    try:
        return json.loads(body)
    except ValueError as e:
        raise DecodeError(f"record is not valid JSON: {e}", frame=frame, cause=e) from e


def apply_parser(value: Any, parse: Callable[[Any], T] | None, *, frame: bytes) -> T:
    """Convert parsed JSON into the payload type, reporting schema mismatches as DecodeError."""
    if parse is None:
        return value
    try:
        return parse(value)
    except (KeyError, TypeError, ValueError, AttributeError, OverflowError, OSError) as e:
        raise DecodeError(
            f"record does not match the expected payload: {e!r}",
            frame=frame,
            cause=e,
        ) from e
