"""
Tests for the watchdog-backed event source and an end-to-end run of the
engine on top of it (polling observer, short interval).
"""

import threading
import time

import pytest
from watchdog.events import FileModifiedEvent, FileMovedEvent

from logwatcher.errors import SourceError, SubscriptionError
from logwatcher.sinks import BufferSink
from logwatcher.source import ChangeKind, EventSource, Notification
from logwatcher.watcher import LogWatcher

from .conftest import append

POLL = 0.1


@pytest.fixture
def source():
    src = EventSource(POLL, use_polling=True)
    yield src
    src.close()


def collect(src, predicate, timeout=10.0):
    """Consume notifications until one matches `predicate`; return all seen."""
    seen = []
    matched = threading.Event()

    def consume():
        for item in src.notifications():
            seen.append(item)
            if predicate(item):
                matched.set()
                return

    consumer = threading.Thread(target=consume, daemon=True)
    consumer.start()
    matched.wait(timeout)
    src.close()
    consumer.join(timeout=5)
    return seen


def test_watch_missing_directory(source, tmp_path):
    with pytest.raises(SubscriptionError) as excinfo:
        source.watch(str(tmp_path / "nope" / "app.log"))
    assert excinfo.value.operation == "watch"


def test_unwatch_unknown_path(source, tmp_path):
    with pytest.raises(SubscriptionError) as excinfo:
        source.unwatch(str(tmp_path / "app.log"))
    assert excinfo.value.operation == "unwatch"


def test_watch_is_idempotent(source, tmp_path):
    path = str(tmp_path / "app.log")
    source.watch(path)
    source.watch(path)
    assert source.watched_paths() == [path]

    source.unwatch(path)
    assert source.watched_paths() == []
    with pytest.raises(SubscriptionError):
        source.unwatch(path)


def test_siblings_share_a_directory_watch(source, tmp_path):
    a, b = str(tmp_path / "a.log"), str(tmp_path / "b.log")
    source.watch(a)
    source.watch(b)
    source.unwatch(a)
    assert source.watched_paths() == [b]


def test_publish_filters_unsubscribed_paths(source, tmp_path):
    watched = str(tmp_path / "app.log")
    source.watch(watched)

    source.publish(FileModifiedEvent(str(tmp_path / "other.log")))
    source.publish(FileModifiedEvent(watched))
    source.publish(FileMovedEvent(str(tmp_path / "tmp.log"), watched))
    source.close()

    assert list(source.notifications()) == [
        Notification(ChangeKind.DATA_MODIFIED, (watched,)),
        Notification(ChangeKind.MOVED, (watched,)),
    ]


def test_close_ends_stream(source):
    source.close()
    assert list(source.notifications()) == []


def test_observer_death_is_reported(source, tmp_path):
    source.start()
    source._observer.stop()
    source._observer.join(timeout=5)

    items = list(source.notifications())
    assert len(items) == 1
    assert isinstance(items[0], SourceError)


def test_modification_is_reported(source, tmp_path):
    path = tmp_path / "app.log"
    sibling = tmp_path / "sibling.log"
    path.write_bytes(b"")
    sibling.write_bytes(b"")
    source.start()
    source.watch(str(path))

    append(sibling, "noise\n")
    append(path, "hello\n")

    seen = collect(source, lambda n: n.kind is ChangeKind.DATA_MODIFIED)
    assert seen[-1] == Notification(ChangeKind.DATA_MODIFIED, (str(path),))
    assert all(item.paths == (str(path),) for item in seen)


def run_in_thread(watcher):
    result = {}
    thread = threading.Thread(
        target=lambda: result.setdefault("error", watcher.start(POLL)), daemon=True
    )
    thread.start()
    assert watcher.wait_until_running(timeout=5)
    return thread, result


def test_end_to_end_two_lines(tmp_path):
    path = tmp_path / "test_log.txt"
    path.write_bytes(b"")
    sink = BufferSink()
    watcher = LogWatcher(use_polling=True)
    watcher.register(path, sink)
    thread, result = run_in_thread(watcher)
    try:
        append(path, "test 1\n")
        assert sink.wait_for(1, timeout=10)
        time.sleep(POLL * 5)
        append(path, "test 2\n")
        assert sink.wait_for(2, timeout=10)
        time.sleep(POLL * 5)
        assert sink.lines == ["test 1", "test 2"]
    finally:
        watcher.stop()
        thread.join(timeout=10)
    assert result["error"] is None


def test_end_to_end_tail_from_end(tmp_path):
    path = tmp_path / "prefilled.log"
    path.write_bytes(b"0\n1\n2\n3\n")
    sink = BufferSink()
    watcher = LogWatcher(use_polling=True)
    watcher.register(path, sink)
    thread, _ = run_in_thread(watcher)
    try:
        append(path, "4\n")
        assert sink.wait_for(1, timeout=10)
        time.sleep(POLL * 5)
        assert sink.lines == ["4"]
    finally:
        watcher.stop()
        thread.join(timeout=10)


def test_end_to_end_unregister(tmp_path):
    path = tmp_path / "app.log"
    path.write_bytes(b"")
    sink = BufferSink()
    watcher = LogWatcher(use_polling=True)
    watcher.register(path, sink, {"skip_to_last_line": False})
    thread, _ = run_in_thread(watcher)
    try:
        append(path, "kept\n")
        assert sink.wait_for(1, timeout=10)
        watcher.unregister(path)
        append(path, "dropped\n")
        time.sleep(POLL * 10)
        assert sink.lines == ["kept"]
    finally:
        watcher.stop()
        thread.join(timeout=10)
