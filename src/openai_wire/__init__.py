"""Incremental stream decoding for an OpenAI-style inference API."""

from openai_wire.buffer import ChunkBuffer, ChunkFeed
from openai_wire.client import Client, ResponseBody
from openai_wire.errors import (
    DecodeError,
    ProtocolError,
    ProviderError,
    SDKError,
    TransportError,
)
from openai_wire.framing import EVENT_DELIMITER, LINE_DELIMITER, FrameSplitter
from openai_wire.reader import BufferedByteReader, JsonLinesStream
from openai_wire.sse import DecodedEvent, EventKind, decode_event
from openai_wire.stream import (
    ChatCompletionStream,
    CompletionStream,
    EventStream,
    FineTuneEventStream,
    iter_chat_content,
    iter_choices,
    iter_text,
)
from openai_wire.types import (
    ChatChunkChoice,
    ChatCompletionChunk,
    ChatDelta,
    Completion,
    CompletionChoice,
    ErrorPayload,
    FineTuneEvent,
    ImageData,
    Usage,
)

__all__ = [
    "BufferedByteReader",
    "ChatChunkChoice",
    "ChatCompletionChunk",
    "ChatCompletionStream",
    "ChatDelta",
    "ChunkBuffer",
    "ChunkFeed",
    "Client",
    "Completion",
    "CompletionChoice",
    "CompletionStream",
    "DecodeError",
    "DecodedEvent",
    "EVENT_DELIMITER",
    "ErrorPayload",
    "EventKind",
    "EventStream",
    "FineTuneEvent",
    "FineTuneEventStream",
    "FrameSplitter",
    "ImageData",
    "JsonLinesStream",
    "LINE_DELIMITER",
    "ProtocolError",
    "ProviderError",
    "ResponseBody",
    "SDKError",
    "TransportError",
    "Usage",
    "decode_event",
    "iter_chat_content",
    "iter_choices",
    "iter_text",
]
