"""Tests for BufferedByteReader and JsonLinesStream."""

import asyncio
import io
import json

import pytest

from openai_wire.errors import DecodeError
from openai_wire.reader import BufferedByteReader, JsonLinesStream
from openai_wire.types import FineTuneEvent


class RecordingSource:
    """Chunk source that counts polls and can fail or stall once drained."""

    def __init__(
        self,
        chunks: list[bytes],
        *,
        error: Exception | None = None,
        stall: bool = False,
    ):
        self._chunks = list(chunks)
        self._error = error
        self._stall = stall
        self.polls = 0
        self.closed = False

    def __aiter__(self):
        return self

    async def __anext__(self) -> bytes:
        self.polls += 1
        if self._chunks:
            return self._chunks.pop(0)
        if self._error is not None:
            raise self._error
        if self._stall:
            await asyncio.Event().wait()
        raise StopAsyncIteration

    async def aclose(self) -> None:
        self.closed = True


class TestFillConsume:
    async def test_fill_pulls_one_chunk_when_empty(self):
        source = RecordingSource([b"abc", b"def"])
        reader = BufferedByteReader(source)

        view = await reader.fill()

        assert bytes(view) == b"abc"
        assert source.polls == 1

    async def test_fill_returns_buffered_without_pulling(self):
        source = RecordingSource([b"abc", b"def"])
        reader = BufferedByteReader(source)
        await reader.fill()
        reader.consume(1)

        view = await reader.fill()

        assert bytes(view) == b"bc"
        assert source.polls == 1

    async def test_consume_then_fill_next_chunk(self):
        source = RecordingSource([b"abc", b"def"])
        reader = BufferedByteReader(source)
        view = await reader.fill()
        reader.consume(len(view))

        assert bytes(await reader.fill()) == b"def"
        assert source.polls == 2

    async def test_eof_returns_empty_view(self):
        reader = BufferedByteReader(RecordingSource([b"ab"]))
        reader.consume(len(await reader.fill()))

        assert bytes(await reader.fill()) == b""
        assert bytes(await reader.fill()) == b""

    async def test_empty_chunk_is_not_eof(self):
        reader = BufferedByteReader(RecordingSource([b"", b"ab"]))
        assert bytes(await reader.fill()) == b"ab"

    async def test_consume_more_than_filled_raises(self):
        reader = BufferedByteReader(RecordingSource([b"abc"]))
        await reader.fill()
        with pytest.raises(ValueError):
            reader.consume(4)

    async def test_consume_without_fill_raises(self):
        reader = BufferedByteReader(RecordingSource([b"abc"]))
        with pytest.raises(ValueError):
            reader.consume(1)

    async def test_fill_more_grows_buffer(self):
        source = RecordingSource([b"abc", b"def"])
        reader = BufferedByteReader(source)
        await reader.fill()

        assert await reader.fill_more() is True
        assert bytes(await reader.fill()) == b"abcdef"
        assert await reader.fill_more() is False
        assert reader.buffered == 6

    async def test_find(self):
        reader = BufferedByteReader(RecordingSource([b"ab\n", b"cd"]))
        await reader.fill()
        await reader.fill_more()
        assert reader.find(b"\n") == 2
        assert reader.find(b"x") is None

    async def test_transport_error_propagates(self):
        error = ConnectionAbortedError("aborted")
        reader = BufferedByteReader(RecordingSource([], error=error))
        with pytest.raises(ConnectionAbortedError) as exc_info:
            await reader.fill()
        assert exc_info.value is error


class TestReads:
    async def test_read_all(self):
        reader = BufferedByteReader(RecordingSource([b"ab", b"cd", b"ef"]))
        assert await reader.read() == b"abcdef"
        assert await reader.read() == b""

    async def test_read_n(self):
        reader = BufferedByteReader(RecordingSource([b"abcdef"]))
        assert await reader.read(4) == b"abcd"
        assert await reader.read(4) == b"ef"
        assert await reader.read(4) == b""

    async def test_readline(self):
        reader = BufferedByteReader(RecordingSource([b"one\ntw", b"o\nthr", b"ee"]))
        assert await reader.readline() == b"one\n"
        assert await reader.readline() == b"two\n"
        assert await reader.readline() == b"three"
        assert await reader.readline() == b""

    async def test_iteration_yields_chunks(self):
        reader = BufferedByteReader(RecordingSource([b"ab", b"cd"]))
        assert [chunk async for chunk in reader] == [b"ab", b"cd"]

    async def test_copy_to_sync_writer(self):
        reader = BufferedByteReader(RecordingSource([b"\x89PNG", b"\r\n", b"\x1a\n"]))
        out = io.BytesIO()

        written = await reader.copy_to(out)

        assert written == 8
        assert out.getvalue() == b"\x89PNG\r\n\x1a\n"

    async def test_copy_to_async_writer(self):
        class AsyncWriter:
            def __init__(self):
                self.data = bytearray()

            async def write(self, data):
                self.data += data

        writer = AsyncWriter()
        reader = BufferedByteReader(RecordingSource([b"RIFF", b"WAVE"]))

        assert await reader.copy_to(writer) == 8
        assert bytes(writer.data) == b"RIFFWAVE"

    async def test_context_manager_closes_source(self):
        source = RecordingSource([b"ab"])
        async with BufferedByteReader(source) as reader:
            await reader.fill()
        assert source.closed


class QueueSource:
    """Chunk source fed by the test; ``None`` ends the data."""

    def __init__(self):
        self.queue: asyncio.Queue[bytes | None] = asyncio.Queue()

    def __aiter__(self):
        return self

    async def __anext__(self) -> bytes:
        chunk = await self.queue.get()
        if chunk is None:
            raise StopAsyncIteration
        return chunk


class TestSharedBuffer:
    async def test_consume_after_lines_took_bytes_raises(self):
        reader = BufferedByteReader(RecordingSource([b"a\nbcdef"]))
        lines = reader.lines()
        assert len(await reader.fill()) == 7

        assert await lines.next_frame() == b"a"

        with pytest.raises(ValueError):
            reader.consume(1)
        assert bytes(await reader.fill()) == b"bcdef"
        reader.consume(5)
        assert reader.buffered == 0

    async def test_lines_rescan_after_reader_consumed(self):
        source = QueueSource()
        reader = BufferedByteReader(source)
        lines = reader.lines()
        source.queue.put_nowait(b"abcdef")

        with pytest.raises(asyncio.TimeoutError):
            await asyncio.wait_for(lines.next_frame(), timeout=0.05)

        reader.consume(len(await reader.fill()))
        source.queue.put_nowait(b"x\ny\n")
        source.queue.put_nowait(None)

        assert await lines.next_frame() == b"x"
        assert await lines.next_frame() == b"y"
        assert await lines.next_frame() is None

    async def test_readline_and_lines_interleaved(self):
        reader = BufferedByteReader(RecordingSource([b"head", b"er\nrow1\nrow2\n"]))
        lines = reader.lines()

        assert await reader.readline() == b"header\n"
        assert [line async for line in lines] == [b"row1", b"row2"]


def _lines(count: int) -> bytes:
    return b"".join(json.dumps({"prompt": f"p{i}", "completion": f"c{i}"}).encode() + b"\n" for i in range(count))


class TestJsonLinesStream:
    async def test_complete_lines_decoded_then_waits_for_more(self):
        data = _lines(5) + b'{"prompt": "p5", "compl'
        middle = len(data) // 2
        source = RecordingSource([data[:middle], data[middle:]], stall=True)
        stream = JsonLinesStream(BufferedByteReader(source))

        records = [await stream.__anext__() for _ in range(5)]

        assert [r["prompt"] for r in records] == ["p0", "p1", "p2", "p3", "p4"]
        assert source.polls == 2

        with pytest.raises(asyncio.TimeoutError):
            await asyncio.wait_for(stream.__anext__(), timeout=0.05)
        assert source.polls == 3

    async def test_final_line_without_newline(self):
        source = RecordingSource([b'{"a": 1}\n{"a": 2}'])
        stream = JsonLinesStream.from_source(source)
        assert [r async for r in stream] == [{"a": 1}, {"a": 2}]

    async def test_blank_lines_skipped(self):
        source = RecordingSource([b'\n{"a": 1}\n\n  \r\n{"a": 2}\n'])
        assert [r async for r in JsonLinesStream.from_source(source)] == [{"a": 1}, {"a": 2}]

    async def test_lines_split_in_small_chunks(self):
        data = _lines(30)
        chunks = [data[i:i + 5] for i in range(0, len(data), 5)]
        records = [r async for r in JsonLinesStream.from_source(RecordingSource(chunks))]
        assert [r["completion"] for r in records] == [f"c{i}" for i in range(30)]

    async def test_parser_applied(self):
        data = b'{"created_at": 1680000000, "level": "info", "message": "Uploaded"}\n'
        stream = JsonLinesStream.from_source(RecordingSource([data]), FineTuneEvent.from_dict)
        events = [e async for e in stream]
        assert events[0].message == "Uploaded"

    async def test_bad_line_raises_and_ends(self):
        source = RecordingSource([b'{"a": 1}\nnot json\n{"a": 2}\n'])
        stream = JsonLinesStream.from_source(source)

        assert await stream.__anext__() == {"a": 1}
        with pytest.raises(DecodeError) as exc_info:
            await stream.__anext__()
        assert exc_info.value.frame == b"not json"
        assert source.closed
        assert [r async for r in stream] == []

    async def test_transport_error_ends_stream(self):
        error = ConnectionResetError("reset")
        stream = JsonLinesStream.from_source(RecordingSource([b'{"a": 1}\n{"a"'], error=error))

        assert await stream.__anext__() == {"a": 1}
        with pytest.raises(ConnectionResetError):
            await stream.__anext__()
        assert [r async for r in stream] == []

    async def test_raw_and_line_views_are_independent_instances(self):
        data = _lines(3)
        raw = BufferedByteReader(RecordingSource([data]))
        decoded = JsonLinesStream.from_source(RecordingSource([data]))

        assert await raw.read() == data
        assert len([r async for r in decoded]) == 3
