"""
Filesystem event source built on watchdog.

Files are subscribed individually but observed through their parent directory:
watchdog schedules one (non-recursive) watch per directory and the source only
reports events for paths that were subscribed with watch().
"""

import enum
import logging
import os
import queue
import threading
from dataclasses import dataclass
from typing import Dict, Iterator, Tuple, Union

from watchdog.events import (EVENT_TYPE_CREATED, EVENT_TYPE_DELETED,
                             EVENT_TYPE_MODIFIED, EVENT_TYPE_MOVED,
                             FileSystemEventHandler)
from watchdog.observers import Observer
from watchdog.observers.polling import PollingObserver

from logwatcher.errors import SourceError, SubscriptionError


class ChangeKind(enum.Enum):
    DATA_MODIFIED = "data_modified"
    CREATED = "created"
    DELETED = "deleted"
    MOVED = "moved"
    OTHER = "other"


_EVENT_KINDS = {
    EVENT_TYPE_MODIFIED: ChangeKind.DATA_MODIFIED,
    EVENT_TYPE_CREATED: ChangeKind.CREATED,
    EVENT_TYPE_DELETED: ChangeKind.DELETED,
    EVENT_TYPE_MOVED: ChangeKind.MOVED,
}

_CLOSED = object()


@dataclass(frozen=True)
class Notification:
    """A change affecting one or more subscribed paths."""

    kind: ChangeKind
    paths: Tuple[str, ...]


class _SubscriptionHandler(FileSystemEventHandler):
    def __init__(self, source):
        super().__init__()
        self._source = source

    def on_any_event(self, event):
        if event.is_directory:
            return
        self._source.publish(event)


class EventSource:
    """
    Change notifications for a set of individually subscribed files.

    Attributes:
        poll_interval (float): Observer timeout in seconds. For the polling
            observer this is the interval between directory snapshots.
        use_polling (bool): Use watchdog's PollingObserver instead of the
            platform's native observer.
    """

    def __init__(self, poll_interval: float = 1.0, use_polling: bool = False):
        self.poll_interval = poll_interval
        self.use_polling = use_polling
        observer_class = PollingObserver if use_polling else Observer
        self._observer = observer_class(timeout=poll_interval)
        self._handler = _SubscriptionHandler(self)
        self._queue = queue.Queue()
        self._lock = threading.Lock()
        self._paths: Dict[str, str] = {}  # file -> parent directory
        self._watches = {}  # directory -> ObservedWatch
        self._started = False
        self._closed = threading.Event()

    def start(self):
        self._observer.start()
        self._started = True
        logging.debug(
            f"Event source started ({type(self._observer).__name__}, "
            f"poll interval {self.poll_interval}s)"
        )

    def watch(self, path: str):
        """
        Subscribe to changes of `path`. Subscribing twice is a no-op.

        Raises:
            SubscriptionError: The parent directory is missing or cannot be watched.
        """
        directory = os.path.dirname(path)
        with self._lock:
            if path in self._paths:
                return
            if directory not in self._watches:
                if not os.path.isdir(directory):
                    raise SubscriptionError(path, "watch", f"directory does not exist: {directory}")
                try:
                    self._watches[directory] = self._observer.schedule(
                        self._handler, directory, recursive=False
                    )
                except OSError as e:
                    raise SubscriptionError(path, "watch", e) from e
            self._paths[path] = directory
        logging.debug(f"Watching {path}")

    def unwatch(self, path: str):
        """
        Cancel the subscription for `path`.

        Raises:
            SubscriptionError: `path` is not subscribed or unscheduling failed.
        """
        with self._lock:
            directory = self._paths.pop(path, None)
            if directory is None:
                raise SubscriptionError(path, "unwatch", "path is not being watched")
            if directory in self._paths.values():
                return
            watch = self._watches.pop(directory)
            try:
                self._observer.unschedule(watch)
            except (KeyError, OSError) as e:
                raise SubscriptionError(path, "unwatch", e) from e
        logging.debug(f"Stopped watching {path}")

    def watched_paths(self):
        with self._lock:
            return sorted(self._paths)

    def publish(self, event):
        """Queue a watchdog event if it concerns a subscribed path."""
        candidates = [os.fsdecode(event.src_path)]
        dest_path = getattr(event, "dest_path", "")
        if dest_path:
            candidates.append(os.fsdecode(dest_path))
        with self._lock:
            paths = tuple(p for p in candidates if p in self._paths)
        if paths:
            kind = _EVENT_KINDS.get(event.event_type, ChangeKind.OTHER)
            self._queue.put(Notification(kind, paths))

    def notifications(self) -> Iterator[Union[Notification, SourceError]]:
        """
        Yield notifications until the source is closed.

        If the observer thread dies while the source is open, a single
        SourceError is yielded and the stream ends.
        """
        while True:
            try:
                item = self._queue.get(timeout=self.poll_interval)
            except queue.Empty:
                if self._closed.is_set():
                    return
                if self._started and not self._observer.is_alive():
                    yield SourceError("filesystem observer stopped unexpectedly")
                    return
                continue
            if item is _CLOSED:
                return
            yield item

    def close(self):
        if self._closed.is_set():
            return
        self._closed.set()
        self._queue.put(_CLOSED)
        if self._started:
            self._observer.stop()
            self._observer.join(timeout=5.0)
        logging.debug("Event source closed")
