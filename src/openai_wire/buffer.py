"""Byte queue that accumulates response chunks without copying the unread tail."""

from __future__ import annotations

from collections import deque
from typing import AsyncIterable, AsyncIterator, Iterator


class ChunkBuffer:
    """Ordered queue of byte chunks read as one logical byte string.

    Chunks are kept as they arrived. The head chunk carries a consumed-prefix
    offset, so removing bytes from the front pops or re-slices the head and
    never copies what remains.
    """

    def __init__(self) -> None:
        self._chunks: deque[bytes] = deque()
        self._head = 0
        self._size = 0
        self._removed = 0

    def __len__(self) -> int:
        return self._size

    def __bool__(self) -> bool:
        return self._size > 0

    def is_empty(self) -> bool:
        return self._size == 0

    @property
    def removed(self) -> int:
        """Total bytes ever removed from the front; grows monotonically."""
        return self._removed

    @property
    def chunk_count(self) -> int:
        return len(self._chunks)

    def append(self, chunk: bytes | bytearray | memoryview) -> None:
        """Add a chunk at the logical tail. Empty chunks are ignored."""
        if not chunk:
            return
        if not isinstance(chunk, bytes):
            chunk = bytes(chunk)
        self._chunks.append(chunk)
        self._size += len(chunk)

    def take_prefix(self, n: int) -> bytes:
        """Remove and return the first ``n`` bytes."""
        parts = self._drop(n, keep=True)
        if len(parts) == 1:
            return parts[0]
        return b"".join(parts)

    def discard(self, n: int) -> None:
        """Remove the first ``n`` bytes without assembling them."""
        self._drop(n, keep=False)

    def find(self, delimiter: bytes, start: int = 0) -> int | None:
        """Return the logical offset of the first ``delimiter`` at or after ``start``.

        Only chunks overlapping ``[start, len)`` are visited, found by walking
        back from the tail, so a caller that advances ``start`` past bytes it
        already searched pays for new bytes only. Matches that straddle chunk
        boundaries are found through a ``len(delimiter) - 1`` byte carry.
        """
        width = len(delimiter)
        if not width:
            raise ValueError("delimiter must not be empty")
        start = max(start, 0)
        if start + width > self._size:
            return None

        # (logical offset, chunk, first unconsumed index), tail first
        segments: list[tuple[int, bytes, int]] = []
        offset = self._size
        last = len(self._chunks) - 1
        for depth, chunk in enumerate(reversed(self._chunks)):
            begin = self._head if depth == last else 0
            offset -= len(chunk) - begin
            segments.append((offset, chunk, begin))
            if offset <= start:
                break
        segments.reverse()

        lookback = width - 1
        carry = b""
        carry_offset = 0
        for offset, chunk, begin in segments:
            if carry:
                joined = carry + chunk[begin:begin + lookback]
                hit = joined.find(delimiter)
                while -1 < hit < len(carry):
                    if carry_offset + hit >= start:
                        return carry_offset + hit
                    hit = joined.find(delimiter, hit + 1)

            hit = chunk.find(delimiter, begin + max(start - offset, 0))
            if hit != -1:
                return offset + hit - begin

            if lookback:
                tail = chunk[max(begin, len(chunk) - lookback):]
                carry = (carry + tail)[-lookback:]
                carry_offset = offset + len(chunk) - begin - len(carry)
        return None

    def view(self) -> memoryview:
        """Contiguous read-only view of every buffered byte.

        Chunks are joined into one only when more than one is stored; a single
        chunk is exposed in place.
        """
        if len(self._chunks) > 1:
            joined = b"".join(self._segments())
            self._chunks = deque((joined,))
            self._head = 0
        if not self._chunks:
            return memoryview(b"")
        return memoryview(self._chunks[0])[self._head:]

    def _segments(self) -> Iterator[bytes]:
        for index, chunk in enumerate(self._chunks):
            if index == 0 and self._head:
                yield chunk[self._head:]
            else:
                yield chunk

    def _drop(self, n: int, *, keep: bool) -> list[bytes]:
        if n < 0 or n > self._size:
            raise ValueError(f"cannot remove {n} bytes from a buffer holding {self._size}")

        parts: list[bytes] = []
        remaining = n
        while remaining:
            chunk = self._chunks[0]
            available = len(chunk) - self._head
            if remaining >= available:
                if keep:
                    parts.append(chunk[self._head:] if self._head else chunk)
                self._chunks.popleft()
                self._head = 0
                remaining -= available
            else:
                if keep:
                    parts.append(chunk[self._head:self._head + remaining])
                self._head += remaining
                remaining = 0

        self._size -= n
        self._removed += n
        return parts


class ChunkFeed:
    """Moves chunks from an async byte source into a ChunkBuffer, one per pull."""

    def __init__(self, source: AsyncIterable[bytes], buffer: ChunkBuffer):
        self._iterator: AsyncIterator[bytes] = source.__aiter__()
        self._buffer = buffer
        self._closed = False
        self.pulls = 0
        self.bytes_received = 0

    @property
    def closed(self) -> bool:
        return self._closed

    async def pull(self) -> bool:
        """Append the next chunk; False once the source is exhausted or closed.

        Source errors propagate unchanged.
        """
        if self._closed:
            return False
        self.pulls += 1
        try:
            chunk = await self._iterator.__anext__()
        except StopAsyncIteration:
            self._closed = True
            return False
        self.bytes_received += len(chunk)
        self._buffer.append(chunk)
        return True

    async def aclose(self) -> None:
        """Stop reading and close the source if it supports closing."""
        if self._closed:
            return
        self._closed = True
        closer = getattr(self._iterator, "aclose", None)
        if closer is not None:
            await closer()
