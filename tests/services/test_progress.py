import io

from releasemirror.services.progress import ProgressReader, no_progress, no_progress_factory


def test_progress_reader_reports_cumulative_bytes():
    events = []
    reader = ProgressReader(io.BytesIO(b"abcdefghij"), 10, lambda sent, total: events.append((sent, total)))

    assert reader.read(4) == b"abcd"
    assert reader.read(4) == b"efgh"
    assert reader.read(4) == b"ij"
    assert reader.read(4) == b""

    assert events == [(4, 10), (8, 10), (10, 10)]


def test_progress_reader_seek_rewinds_counter():
    events = []
    reader = ProgressReader(io.BytesIO(b"abcdef"), 6, lambda sent, total: events.append(sent))
    reader.read()

    assert reader.seek(0) == 0
    assert reader.transferred == 0
    reader.read(2)
    assert events == [6, 2]
    assert reader.tell() == 2


def test_progress_reader_without_callback():
    reader = ProgressReader(io.BytesIO(b"abc"), 3)
    assert reader.read() == b"abc"
    assert reader.transferred == 3


def test_no_progress_factory_returns_noop():
    callback = no_progress_factory("upload", "a.bin")
    assert callback is no_progress
    assert callback(1, 2) is None
