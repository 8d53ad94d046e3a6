"""Buffered byte reader over a chunked response body."""

from __future__ import annotations

import inspect
import logging
from typing import Any, AsyncIterable, Callable, Generic, Protocol, TypeVar

from openai_wire.buffer import ChunkBuffer, ChunkFeed
from openai_wire.errors import DecodeError
from openai_wire.framing import LINE_DELIMITER, FrameSplitter
from openai_wire.sse import apply_parser, load_json

logger = logging.getLogger(__name__)

T = TypeVar("T")


class Writer(Protocol):
    def write(self, data: bytes | memoryview, /) -> Any: ...


class BufferedByteReader:
    """Pull-based fill/consume reader for raw response bytes.

    ``fill`` exposes what is buffered (reading one chunk only when nothing
    is), ``consume`` drops bytes from the front. At end of data ``fill``
    returns an empty view instead of raising. Errors from the source
    propagate unchanged.
    """

    def __init__(self, source: AsyncIterable[bytes]):
        self._buffer = ChunkBuffer()
        self._feed = ChunkFeed(source, self._buffer)
        self._filled = 0
        self._fill_mark = 0

    @property
    def buffered(self) -> int:
        return len(self._buffer)

    async def fill(self) -> memoryview:
        while self._buffer.is_empty():
            if not await self._feed.pull():
                break
        view = self._buffer.view()
        self._filled = len(view)
        self._fill_mark = self._buffer.removed
        return view

    def consume(self, n: int) -> None:
        if self._fill_mark != self._buffer.removed:
            # lines() took bytes from the shared buffer after the last fill.
            self._filled = 0
        if n < 0 or n > self._filled:
            raise ValueError(f"cannot consume {n} bytes; last fill returned {self._filled}")
        self._buffer.discard(n)
        self._filled -= n
        self._fill_mark = self._buffer.removed

    async def fill_more(self) -> bool:
        """Read one more chunk even if bytes are already buffered."""
        return await self._feed.pull()

    def find(self, delimiter: bytes, start: int = 0) -> int | None:
        return self._buffer.find(delimiter, start)

    async def read(self, n: int = -1) -> bytes:
        """Read up to ``n`` bytes, or everything until end of data if ``n`` is negative."""
        if n < 0:
            while await self._feed.pull():
                pass
            return self._take(len(self._buffer))
        while self._buffer.is_empty():
            if not await self._feed.pull():
                break
        return self._take(min(n, len(self._buffer)))

    async def readline(self) -> bytes:
        """Read through the next ``\\n``; at end of data, whatever is left."""
        scanned = 0
        while True:
            end = self._buffer.find(LINE_DELIMITER, scanned)
            if end is not None:
                return self._take(end + len(LINE_DELIMITER))
            scanned = len(self._buffer)
            if not await self._feed.pull():
                return self._take(len(self._buffer))

    def lines(self, delimiter: bytes = LINE_DELIMITER) -> FrameSplitter:
        """Trimmed non-blank lines, sharing this reader's buffer and source.

        Reads through the splitter and through this reader may be mixed; each
        notices bytes the other removed.
        """
        return FrameSplitter(self._buffer, self._feed.pull, delimiter)

    async def copy_to(self, writer: Writer) -> int:
        """Write every remaining byte to ``writer``; ``write`` may be sync or async."""
        total = 0
        while True:
            view = await self.fill()
            if not view:
                return total
            result = writer.write(view)
            if inspect.isawaitable(result):
                await result
            total += len(view)
            self.consume(len(view))

    def _take(self, n: int) -> bytes:
        self._filled = 0
        return self._buffer.take_prefix(n)

    def __aiter__(self) -> BufferedByteReader:
        return self

    async def __anext__(self) -> bytes:
        view = await self.fill()
        if not view:
            raise StopAsyncIteration
        return self._take(len(view))

    async def aclose(self) -> None:
        await self._feed.aclose()

    async def __aenter__(self) -> BufferedByteReader:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()


class JsonLinesStream(Generic[T]):
    """Async iterator of newline-delimited JSON records read through a BufferedByteReader.

    Every complete line already buffered is decoded before more input is
    read; a partial trailing line waits for the rest of its bytes. Blank
    lines are skipped.
    """

    def __init__(
        self,
        reader: BufferedByteReader,
        parse: Callable[[Any], T] | None = None,
    ):
        self._reader = reader
        self._lines = reader.lines()
        self._parse = parse
        self._finished = False

    @classmethod
    def from_source(
        cls,
        source: AsyncIterable[bytes],
        parse: Callable[[Any], T] | None = None,
    ) -> JsonLinesStream[T]:
        return cls(BufferedByteReader(source), parse)

    def __aiter__(self) -> JsonLinesStream[T]:
        return self

    async def __anext__(self) -> T:
        if self._finished:
            raise StopAsyncIteration

        try:
            line = await self._lines.next_frame()
        except Exception:
            await self.aclose()
            raise
        except BaseException:
            self._finished = True
            raise

        if line is None:
            self._finished = True
            raise StopAsyncIteration

        try:
            return apply_parser(load_json(line, frame=line), self._parse, frame=line)
        except DecodeError as e:
            logger.debug("Undecodable JSON line: %s", e)
            await self.aclose()
            raise

    async def aclose(self) -> None:
        self._finished = True
        await self._reader.aclose()

    async def __aenter__(self) -> JsonLinesStream[T]:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()
