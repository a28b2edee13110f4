"""
LogWatcher engine.

The engine owns three pieces of shared state: the watch registry, the position
store and the event source. ``start()`` drains the source's notifications on
the calling thread and fans out one unit of work per modified path onto a
bounded thread pool. Each unit of work:

1. looks up the path's entry, which carries its sink and position,
2. resolves the initial offset once,
3. reads every complete line past the stored offset, advancing the offset by
   the line's byte size before handing the line to the sink.

At most one unit of work per path is pending or running at a time. A
notification for a path that is already being dispatched only marks it for
another pass, which the running worker performs before it lets go of the
path. This keeps deliveries for a path in file order without any worker
waiting on another, and bounds queued work to one item per path.

Locks are held for map and counter updates only, never across file I/O or a
sink call, so sinks may register, unregister or rename paths themselves.
"""

import concurrent.futures
import functools
import logging
import threading
from typing import Dict, List, Optional

from logwatcher.errors import DispatchError, SourceError, SubscriptionError
from logwatcher.positions import PositionStore
from logwatcher.reader import follow_lines
from logwatcher.registry import WatchEntry, WatchRegistry
from logwatcher.sinks import as_sink
from logwatcher.source import ChangeKind, EventSource, Notification
from logwatcher.utils import canonical_path

DEFAULT_MAX_WORKERS = 8
REGISTER_OPTIONS = {"skip_to_last_line": True}


class LogWatcher:
    """
    Tails registered files and delivers each new complete line to a sink.

    Attributes:
        registry (WatchRegistry): Registered paths and their sinks.
        positions (PositionStore): Byte offsets per path.
        max_workers (int): Size of the dispatch thread pool.
        logger (logging.Logger): Logger for engine events.
    """

    def __init__(
        self,
        max_workers: Optional[int] = None,
        use_polling: bool = False,
        logger: Optional[logging.Logger] = None,
        source_factory=None,
    ):
        """
        Args:
            max_workers: Upper bound on concurrent dispatches.
            use_polling: Use watchdog's polling observer.
            logger: Logger to use, defaults to the "logwatcher" logger.
            source_factory: Callable taking the poll interval and returning an
                event source. Defaults to EventSource.
        """
        self.registry = WatchRegistry()
        self.positions = PositionStore()
        self.max_workers = max_workers or DEFAULT_MAX_WORKERS
        self.logger = logger or logging.getLogger("logwatcher")
        self._source_factory = source_factory or functools.partial(
            EventSource, use_polling=use_polling
        )
        self._source = None
        self._source_lock = threading.Lock()
        self._stop_pending = False
        self._running = threading.Event()
        self._dispatch_lock = threading.Lock()
        self._active = set()
        self._rerun = set()

    @classmethod
    def from_config(cls, config: dict, logger=None) -> "LogWatcher":
        """Build a LogWatcher from the ``[watcher]`` section of a loaded config."""
        settings = config.get("watcher", {})
        return cls(
            max_workers=settings.get("max_workers"),
            use_polling=settings.get("use_polling", False),
            logger=logger,
        )

    # Registration

    def register(self, path, sink, options: Optional[dict] = None) -> WatchEntry:
        """
        Start tailing `path`, delivering its new lines to `sink`.

        Registering a path again replaces its sink; the offset is kept.

        Args:
            path: File to tail. "~" and relative paths are resolved.
            sink: Object with ``deliver(line, error)`` or a plain callable.
            options: ``{"skip_to_last_line": bool}``. Defaults to True, which
                begins at the file's last complete line at the first dispatch;
                False delivers the whole file from its beginning.

        Returns:
            WatchEntry: The stored entry.

        Raises:
            ValueError: Unknown option.
            SubscriptionError: The running event source rejected the path. The
                entry stays registered.
        """
        opts = dict(REGISTER_OPTIONS)
        if options:
            unknown = set(options) - set(REGISTER_OPTIONS)
            if unknown:
                raise ValueError(f"Unknown register option(s): {', '.join(sorted(unknown))}")
            opts.update(options)

        path = canonical_path(path)
        sink = as_sink(sink)
        entry = self.registry.add(
            path, sink, bool(opts["skip_to_last_line"]), self.positions.entry(path)
        )
        self.logger.info(f"Registered {path} (skip_to_last_line={entry.skip_to_last_line})")
        with self._source_lock:
            if self._source is not None:
                self._source.watch(path)
        return entry

    def unregister(self, path):
        """
        Stop tailing `path`. Unknown paths are ignored.

        A dispatch already running for the path finishes with the sink it
        started with.

        Raises:
            SubscriptionError: Unsubscribing from the event source failed.
        """
        path = canonical_path(path)
        entry = self.registry.remove(path)
        if entry is None:
            self.logger.debug(f"Unregister ignored, {path} is not registered")
            return
        self.positions.discard(path)
        self.logger.info(f"Unregistered {path}")
        with self._source_lock:
            if self._source is not None:
                self._source.unwatch(path)

    def rename(self, old_path, new_path):
        """
        Move the registration of `old_path` to `new_path`.

        The sink and the accumulated offset carry over. If `old_path` is not
        registered nothing happens.

        Raises:
            SubscriptionError: Unwatching `old_path` or watching `new_path`
                failed. The registration has been moved regardless; delivery
                for `new_path` resumes once it is subscribed.
        """
        old_path = canonical_path(old_path)
        new_path = canonical_path(new_path)
        entry = self.registry.move(old_path, new_path)
        if entry is None:
            self.logger.debug(f"Rename ignored, {old_path} is not registered")
            return
        self.positions.move(old_path, new_path)
        self.logger.info(f"Renamed {old_path} -> {new_path}")

        failure = None
        with self._source_lock:
            if self._source is None:
                return
            try:
                self._source.unwatch(old_path)
            except SubscriptionError as e:
                self.logger.warning(str(e))
                failure = e
            try:
                self._source.watch(new_path)
            except SubscriptionError as e:
                self.logger.warning(str(e))
                failure = failure or e
        if failure is not None:
            raise failure

    def paths(self) -> List[str]:
        return self.registry.paths()

    # Monitoring loop

    @property
    def is_running(self) -> bool:
        return self._running.is_set()

    def wait_until_running(self, timeout: Optional[float] = None) -> bool:
        return self._running.wait(timeout)

    def start(self, poll_interval: float = 1.0) -> Optional[SourceError]:
        """
        Run the monitoring loop on the calling thread.

        Args:
            poll_interval: Event source polling granularity in seconds.

        Returns:
            SourceError: The failure that ended the loop, or None if stop()
            was called. A stop() issued while nothing was running makes the
            next start() return None right away.

        Raises:
            RuntimeError: The loop is already running.
            SubscriptionError: A registered path could not be subscribed.
        """
        with self._source_lock:
            if self._source is not None:
                raise RuntimeError("LogWatcher is already running")
            source = self._source_factory(poll_interval)
            source.start()
            try:
                for path in self.registry.paths():
                    source.watch(path)
            except SubscriptionError:
                source.close()
                raise
            self._source = source
            stop_now, self._stop_pending = self._stop_pending, False

        executor = concurrent.futures.ThreadPoolExecutor(
            max_workers=self.max_workers, thread_name_prefix="logwatcher"
        )
        self._running.set()
        self.logger.info(
            f"Monitoring {len(self.registry)} file(s), poll interval {poll_interval}s"
        )
        if stop_now:
            self.logger.info("Stop was requested before start")
            source.close()
        try:
            for item in source.notifications():
                if isinstance(item, SourceError):
                    self.logger.error(f"Event source failed: {item}")
                    return item
                self.process(item, executor)
            self.logger.info("Monitoring stopped")
            return None
        finally:
            self._running.clear()
            with self._source_lock:
                self._source = None
            source.close()
            executor.shutdown(wait=True)

    def stop(self):
        """
        Ask a running start() loop to return.

        Called while nothing is running, the request is kept for the next
        start().
        """
        with self._source_lock:
            source = self._source
            if source is None:
                self._stop_pending = True
                self.logger.debug("Not running, the next start() returns at once")
                return
        self.logger.info("Stopping monitoring")
        source.close()

    def process(self, notification: Notification, executor):
        """Schedule a dispatch for each path of a data-modification notification."""
        if notification.kind is not ChangeKind.DATA_MODIFIED:
            self.logger.debug(f"Ignoring {notification.kind.value} event for {notification.paths}")
            return
        for path in notification.paths:
            if self._claim(path):
                executor.submit(self._drain, path)

    def pending(self) -> List[str]:
        """Paths with a dispatch queued or running."""
        with self._dispatch_lock:
            return sorted(self._active)

    # Dispatch

    def _claim(self, path) -> bool:
        """Mark `path` active. If it already is, ask its worker for another pass."""
        with self._dispatch_lock:
            if path in self._active:
                self._rerun.add(path)
                return False
            self._active.add(path)
            return True

    def _release(self, path) -> bool:
        """Let go of `path` unless another pass was requested; True means go again."""
        with self._dispatch_lock:
            if path in self._rerun:
                self._rerun.discard(path)
                return True
            self._active.discard(path)
            return False

    def _drain(self, path) -> int:
        delivered = 0
        while True:
            try:
                delivered += self._read_and_deliver(path)
            except Exception:
                self.logger.exception(f"Unexpected error dispatching {path}")
            if not self._release(path):
                return delivered

    def dispatch(self, path: str) -> int:
        """
        Read and deliver every complete line appended to `path`.

        Unregistered paths are ignored. An open, seek or read failure is
        delivered to the sink once and ends this pass; the next notification
        retries. If another thread is dispatching `path` right now, that
        thread makes one more pass instead and this call returns at once.

        Returns:
            int: Number of lines delivered by this call.
        """
        if not self._claim(path):
            return 0
        return self._drain(path)

    def _read_and_deliver(self, path) -> int:
        entry = self.registry.get(path)
        if entry is None:
            return 0
        sink, position = entry.sink, entry.position

        delivered = 0
        try:
            offset = position.resolve(path, entry.skip_to_last_line)
            for line in follow_lines(path, offset):
                position.advance(line.size)
                self._deliver(sink, position, path, line.text, None)
                delivered += 1
        except DispatchError as e:
            self.logger.warning(f"Dispatch failed: {e}")
            self._deliver(sink, position, path, "", e)
        return delivered

    def _deliver(self, sink, position, path, line, error):
        position.record(error)
        try:
            sink.deliver(line, error)
        except Exception:
            self.logger.exception(f"Sink for {path} raised")

    def status(self) -> Dict[str, dict]:
        """Offset and delivery counters for every registered path."""
        result = {}
        for entry in self.registry.entries():
            position = entry.position
            with position.lock:
                result[entry.path] = {
                    "offset": position.offset,
                    "lines": position.lines,
                    "errors": position.errors,
                }
        return result
