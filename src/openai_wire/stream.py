"""Typed async iterators over streamed response bodies."""

from __future__ import annotations

import logging
from typing import Any, AsyncIterable, AsyncIterator, Callable, Generic, TypeVar

from openai_wire.buffer import ChunkBuffer, ChunkFeed
from openai_wire.errors import DecodeError, ProtocolError
from openai_wire.framing import EVENT_DELIMITER, FrameSplitter
from openai_wire.sse import DecodedEvent, EventKind, decode_event
from openai_wire.types import (
    ChatChunkChoice,
    ChatCompletionChunk,
    Completion,
    CompletionChoice,
    FineTuneEvent,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")


class EventStream(Generic[T]):
    """Async iterator of payloads decoded from a server-sent event body.

    Each ``__anext__`` reads only as many chunks as it takes to complete the
    next record, so the consumer sets the pace. Iteration ends at ``[DONE]``
    or when the source runs out. A ``ProtocolError`` (error object sent by the
    server), a ``DecodeError``, or any exception raised by the source ends the
    stream as well; later iterations stop without touching the source.
    """

    def __init__(
        self,
        source: AsyncIterable[bytes],
        parse: Callable[[Any], T] | None = None,
    ):
        self._buffer = ChunkBuffer()
        self._feed = ChunkFeed(source, self._buffer)
        self._frames = FrameSplitter(self._buffer, self._feed.pull, EVENT_DELIMITER)
        self._parse = parse
        self._finished = False

    @property
    def finished(self) -> bool:
        return self._finished

    def __aiter__(self) -> EventStream[T]:
        return self

    async def __anext__(self) -> T:
        if self._finished:
            raise StopAsyncIteration

        try:
            event = await self._next_event()
        except DecodeError as e:
            logger.debug("Undecodable event record: %s", e)
            await self._finish()
            raise
        except Exception as e:
            logger.debug("Event source failed: %r", e)
            await self._finish()
            raise
        except BaseException:
            # Cancelled while awaiting a chunk.
            self._finished = True
            raise

        if event is None:
            self._finished = True
            raise StopAsyncIteration

        if event.kind is EventKind.END:
            logger.debug("Event stream reached the [DONE] sentinel")
            await self._finish()
            raise StopAsyncIteration

        if event.kind is EventKind.ERROR:
            assert event.error is not None
            logger.debug("Event stream carried an error object: %s", event.error.message)
            await self._finish()
            raise ProtocolError(event.error)

        return event.payload  # type: ignore[return-value]

    async def _next_event(self) -> DecodedEvent[T] | None:
        while True:
            frame = await self._frames.next_frame()
            if frame is None:
                return None
            event = decode_event(frame, self._parse)
            if event is not None:
                return event

    async def _finish(self) -> None:
        self._finished = True
        await self._feed.aclose()

    async def aclose(self) -> None:
        """Stop the stream and release the underlying source."""
        await self._finish()

    async def __aenter__(self) -> EventStream[T]:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()


CompletionStream = EventStream[Completion]
ChatCompletionStream = EventStream[ChatCompletionChunk]
FineTuneEventStream = EventStream[FineTuneEvent]


async def iter_choices(stream: AsyncIterable[Completion]) -> AsyncIterator[CompletionChoice]:
    """First choice of every completion record; records without choices are skipped."""
    async for completion in stream:
        choice = completion.first()
        if choice is not None:
            yield choice


async def iter_text(stream: AsyncIterable[Completion]) -> AsyncIterator[str]:
    """Text of the first choice of every completion record."""
    async for choice in iter_choices(stream):
        yield choice.text


async def iter_chat_content(stream: AsyncIterable[ChatCompletionChunk]) -> AsyncIterator[str]:
    """Content deltas of the first choice; role-only and final chunks are skipped."""
    async for chunk in stream:
        choice: ChatChunkChoice | None = chunk.first()
        if choice is not None and choice.delta.content:
            yield choice.delta.content
