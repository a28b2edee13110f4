"""Watch registry: canonical path to delivery sink and read position."""

import threading
from typing import Dict, List, Optional

from logwatcher.positions import Position


class WatchEntry:
    """
    A registered path.

    Attributes:
        path (str): Canonical path the entry is currently keyed by.
        sink: Delivery target.
        skip_to_last_line (bool): Start tailing at the last complete line instead
            of the beginning of the file.
        position (Position): Offset and counters, shared with the PositionStore.
    """

    def __init__(self, path: str, sink, skip_to_last_line: bool = True, position=None):
        self.path = path
        self.sink = sink
        self.skip_to_last_line = skip_to_last_line
        self.position = position if position is not None else Position()

    def __repr__(self):
        return (
            f"WatchEntry(path={self.path!r}, sink={self.sink!r}, "
            f"skip_to_last_line={self.skip_to_last_line})"
        )


class WatchRegistry:
    """Thread-safe registry holding at most one WatchEntry per path."""

    def __init__(self):
        self._entries: Dict[str, WatchEntry] = {}
        self._lock = threading.Lock()

    def add(self, path: str, sink, skip_to_last_line: bool = True, position=None) -> WatchEntry:
        """Insert an entry, silently replacing any previous one for `path`."""
        entry = WatchEntry(path, sink, skip_to_last_line, position)
        with self._lock:
            self._entries[path] = entry
        return entry

    def remove(self, path: str) -> Optional[WatchEntry]:
        with self._lock:
            return self._entries.pop(path, None)

    def move(self, old_path: str, new_path: str) -> Optional[WatchEntry]:
        """Re-key the entry for `old_path` under `new_path`, keeping the object."""
        with self._lock:
            entry = self._entries.pop(old_path, None)
            if entry is None:
                return None
            entry.path = new_path
            self._entries[new_path] = entry
            return entry

    def get(self, path: str) -> Optional[WatchEntry]:
        with self._lock:
            return self._entries.get(path)

    def entries(self) -> List[WatchEntry]:
        with self._lock:
            return list(self._entries.values())

    def paths(self) -> List[str]:
        with self._lock:
            return list(self._entries)

    def __contains__(self, path):
        with self._lock:
            return path in self._entries

    def __len__(self):
        with self._lock:
            return len(self._entries)
