"""
Tests for the streamed-result ingestion buffer.
"""

from scancore.core.ingestion_buffer import IngestionBuffer
from scancore.core.models import FileKind
from tests.support.scan_test_utils import FakeClock, make_file


def test_flush_happens_when_interval_is_reached_exactly():
    clock = FakeClock(start=0.0)
    buffer = IngestionBuffer(500, clock)

    assert buffer.add([make_file("/d/a.pdf")]) == []
    clock.advance(0.25)
    assert buffer.tick() == []
    assert buffer.pending_count() == 1

    clock.advance(0.25)
    flushed = buffer.tick()

    assert [f.name for f in flushed] == ["a.pdf"]
    assert buffer.pending_count() == 0


def test_flush_interval_restarts_after_each_flush():
    clock = FakeClock(start=0.0)
    buffer = IngestionBuffer(500, clock)
    clock.advance(0.5)
    assert buffer.add([make_file("/d/a.pdf")]) != []

    buffer.add([make_file("/d/b.pdf")])
    clock.advance(0.25)
    assert buffer.tick() == []


def test_code_files_are_never_staged():
    clock = FakeClock(start=0.0)
    buffer = IngestionBuffer(500, clock)

    buffer.add([make_file("/d/a.py", kind=FileKind.CODE), make_file("/d/b.pdf")])

    assert buffer.pending_count() == 1
    assert buffer.discard() == 1
    assert buffer.flush() == []
