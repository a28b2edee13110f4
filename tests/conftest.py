import queue
import threading

import pytest

from logwatcher.errors import SubscriptionError
from logwatcher.source import ChangeKind, Notification
from logwatcher.watcher import LogWatcher


class FakeEventSource:
    """In-memory event source: tests push notifications with emit()."""

    def __init__(self, poll_interval, fail_watch=(), fail_unwatch=()):
        self.poll_interval = poll_interval
        self.fail_watch = fail_watch
        self.fail_unwatch = fail_unwatch
        self.watched = set()
        self.started = False
        self.closed = False
        self._queue = queue.Queue()

    def start(self):
        self.started = True

    def watch(self, path):
        if path in self.fail_watch:
            raise SubscriptionError(path, "watch", "refused")
        self.watched.add(path)

    def unwatch(self, path):
        if path in self.fail_unwatch or path not in self.watched:
            raise SubscriptionError(path, "unwatch", "refused")
        self.watched.discard(path)

    def emit(self, *paths, kind=ChangeKind.DATA_MODIFIED):
        self._queue.put(Notification(kind, tuple(str(p) for p in paths)))

    def fail(self, error):
        self._queue.put(error)

    def notifications(self):
        while True:
            item = self._queue.get()
            if item is None:
                return
            yield item

    def close(self):
        if not self.closed:
            self.closed = True
            self._queue.put(None)


class FakeSourceFactory:
    def __init__(self):
        self.sources = []
        self.fail_watch = set()
        self.fail_unwatch = set()

    def __call__(self, poll_interval):
        source = FakeEventSource(poll_interval, self.fail_watch, self.fail_unwatch)
        self.sources.append(source)
        return source

    @property
    def source(self):
        return self.sources[-1]


class RunningWatcher:
    """A LogWatcher whose start() loop runs in a background thread."""

    def __init__(self, watcher, factory):
        self.watcher = watcher
        self.factory = factory
        self.result = {}
        self.thread = threading.Thread(target=self._run, daemon=True)

    def _run(self):
        self.result["error"] = self.watcher.start(0.05)

    def start(self):
        self.thread.start()
        assert self.watcher.wait_until_running(timeout=5)
        return self

    @property
    def source(self):
        return self.factory.source

    def stop(self):
        self.watcher.stop()
        self.thread.join(timeout=5)


@pytest.fixture
def source_factory():
    return FakeSourceFactory()


@pytest.fixture
def watcher(source_factory):
    return LogWatcher(max_workers=4, source_factory=source_factory)


@pytest.fixture
def running(watcher, source_factory):
    runner = RunningWatcher(watcher, source_factory)
    yield runner
    runner.stop()


@pytest.fixture
def log_file(tmp_path):
    path = tmp_path / "app.log"
    path.write_bytes(b"")
    return path


def append(path, data):
    with open(path, "ab") as f:
        f.write(data if isinstance(data, bytes) else data.encode())
        f.flush()
