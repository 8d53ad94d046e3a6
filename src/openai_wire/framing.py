"""Delimiter-based frame extraction over a ChunkBuffer."""

from __future__ import annotations

from typing import Awaitable, Callable

from openai_wire.buffer import ChunkBuffer

EVENT_DELIMITER = b"\n\n"
LINE_DELIMITER = b"\n"

# WHATWG "ASCII whitespace": vertical tab is not included.
ASCII_WHITESPACE = b" \t\n\r\x0c"

Pull = Callable[[], Awaitable[bool]]


class FrameSplitter:
    """Turns arbitrarily sized chunks into complete, delimiter-terminated frames.

    Frames already in the buffer are always drained before ``pull`` is awaited,
    so one chunk may yield many frames and a frame may span many chunks. Each
    frame is returned without its delimiter and trimmed of ASCII whitespace;
    frames that are nothing but whitespace are skipped.

    Only bytes appended since the last failed search (plus a delimiter-sized
    lookback) are scanned, keeping long fragmented frames linear.
    """

    def __init__(
        self,
        buffer: ChunkBuffer,
        pull: Pull,
        delimiter: bytes = EVENT_DELIMITER,
    ):
        if not delimiter:
            raise ValueError("delimiter must not be empty")
        self._buffer = buffer
        self._pull = pull
        self._delimiter = delimiter
        self._scanned = 0
        self._scan_mark = 0
        self._exhausted = False

    @property
    def delimiter(self) -> bytes:
        return self._delimiter

    @property
    def exhausted(self) -> bool:
        return self._exhausted

    def __aiter__(self) -> FrameSplitter:
        return self

    async def __anext__(self) -> bytes:
        frame = await self.next_frame()
        if frame is None:
            raise StopAsyncIteration
        return frame

    async def next_frame(self) -> bytes | None:
        """Return the next non-empty frame, or None once the source is drained.

        At end of data a non-empty unterminated remainder is returned once as
        the final frame.
        """
        while True:
            end = self._locate()
            if end is not None:
                frame = self._buffer.take_prefix(end)
                self._buffer.discard(len(self._delimiter))
                self._scanned = 0
            elif self._exhausted:
                return None
            elif await self._pull():
                continue
            else:
                self._exhausted = True
                frame = self._buffer.take_prefix(len(self._buffer))

            frame = frame.strip(ASCII_WHITESPACE)
            if frame:
                return frame

    def _locate(self) -> int | None:
        if self._scan_mark != self._buffer.removed:
            # Another reader of the buffer removed bytes since the last scan.
            self._scanned = 0
        start = max(self._scanned - len(self._delimiter) + 1, 0)
        end = self._buffer.find(self._delimiter, start)
        if end is None:
            self._scanned = len(self._buffer)
            self._scan_mark = self._buffer.removed
        return end
