"""Tests for StreamPump."""

import io

import pytest

from pysh.pump import BUFFER_SIZE, StreamPump, pump


class TrickleReader(io.RawIOBase):
    """Returns at most ``step`` bytes per read to simulate partial reads."""

    def __init__(self, data: bytes, step: int) -> None:
        self._data = data
        self._pos = 0
        self._step = step
        self.reads = 0

    def readable(self) -> bool:
        return True

    def read(self, size: int = -1) -> bytes:
        self.reads += 1
        chunk = self._data[self._pos : self._pos + min(size, self._step)]
        self._pos += len(chunk)
        return chunk


class RecordingSink(io.BytesIO):
    """BytesIO that remembers each write and whether it was flushed."""

    def __init__(self) -> None:
        super().__init__()
        self.writes: list[bytes] = []
        self.flushed = False

    def write(self, data) -> int:
        self.writes.append(bytes(data))
        return super().write(data)

    def flush(self) -> None:
        self.flushed = True
        super().flush()


class BrokenSink(io.BytesIO):
    def write(self, data) -> int:
        raise BrokenPipeError("gone")


def test_buffer_size():
    """Test the chunk size."""
    assert BUFFER_SIZE == 8096


@pytest.mark.parametrize("count", [0, 1, 3])
def test_copies_to_every_destination(count):
    """Test N bytes reach each of K destinations intact and in order."""
    data = bytes(range(256)) * 200
    sinks = [io.BytesIO() for _ in range(count)]

    copied = pump(io.BytesIO(data), sinks)

    assert copied == len(data)
    for sink in sinks:
        assert sink.getvalue() == data


def test_empty_source():
    """Test an empty source produces empty, flushed destinations."""
    sink = RecordingSink()
    assert pump(io.BytesIO(b""), [sink]) == 0
    assert sink.getvalue() == b""
    assert sink.flushed


def test_partial_reads_forwarded_immediately():
    """Test each short read is written out as its own chunk."""
    source = TrickleReader(b"abcdefghij", step=3)
    sink = RecordingSink()

    pump(source, [sink])

    assert sink.writes == [b"abc", b"def", b"ghi", b"j"]


def test_chunks_bounded_by_buffer_size():
    """Test no write exceeds the configured buffer size."""
    sink = RecordingSink()
    pump(io.BytesIO(b"x" * 100), [sink], buffer_size=16)

    assert max(len(chunk) for chunk in sink.writes) <= 16
    assert b"".join(sink.writes) == b"x" * 100


def test_owned_closed_caller_flushed():
    """Test owned destinations are closed and caller destinations only flushed."""
    owned = RecordingSink()
    caller = RecordingSink()

    pump(io.BytesIO(b"foo"), [owned, caller], owned=[owned])

    assert owned.closed
    assert not caller.closed
    assert caller.flushed
    assert caller.getvalue() == b"foo"


def test_failing_destination_dropped():
    """Test a broken destination does not stop delivery to the others."""
    good = io.BytesIO()
    data = b"y" * 50_000

    copied = pump(io.BytesIO(data), [BrokenSink(), good], buffer_size=1024)

    assert copied == len(data)
    assert good.getvalue() == data


def test_failing_source_still_cleans_up():
    """Test a source error ends the pump and still closes owned sinks."""

    class BrokenSource(io.RawIOBase):
        def readable(self) -> bool:
            return True

        def read(self, size: int = -1) -> bytes:
            raise OSError("read failed")

    owned = io.BytesIO()
    assert pump(BrokenSource(), [owned], owned=[owned]) == 0
    assert owned.closed


class TestStreamPumpThread:
    """Tests for running a pump on its own thread."""

    def test_start_join(self):
        """Test a started pump finishes and reports bytes copied."""
        sink = io.BytesIO()
        stream_pump = StreamPump(io.BytesIO(b"hello"), [sink], name="test")

        stream_pump.start()
        stream_pump.join(timeout=5.0)

        assert not stream_pump.is_running
        assert stream_pump.bytes_copied == 5
        assert sink.getvalue() == b"hello"

    def test_daemon_thread_name(self):
        """Test the pump thread is a named daemon."""
        stream_pump = StreamPump(io.BytesIO(b""), [], name="abc").start()
        stream_pump.join(timeout=5.0)

        assert stream_pump._thread.daemon is True
        assert stream_pump._thread.name == "pump-abc"

    def test_start_idempotent(self):
        """Test starting twice keeps the same thread."""
        stream_pump = StreamPump(io.BytesIO(b"x"), [io.BytesIO()])
        stream_pump.start()
        first = stream_pump._thread
        stream_pump.start()

        assert stream_pump._thread is first
        stream_pump.join(timeout=5.0)
