"""
Position store and last-line locator.

Offsets are byte counts into the watched file. A path's offset starts out
uninitialized (None) and is resolved exactly once, on the first dispatch that
touches the path: either to 0 (full history) or to the start of the last
complete line in the file at that moment.
"""

import logging
import threading
from typing import BinaryIO, Dict, Optional

from logwatcher.errors import DispatchError, ErrorKind


def find_last_line(stream: BinaryIO) -> int:
    """
    Return the offset at which the last complete line of `stream` begins.

    The stream is read from its current position, which should be 0. Scanning
    stops at EOF or at a trailing line without a terminator.
    """
    last_line_start = 0
    current_position = 0
    for line in iter(stream.readline, b""):
        if not line.endswith(b"\n"):
            break
        last_line_start = current_position
        current_position += len(line)
    return last_line_start


def last_line_offset(path: str) -> int:
    """Open `path` and locate the start of its last complete line."""
    try:
        f = open(path, "rb")
    except OSError as e:
        raise DispatchError(ErrorKind.OPEN_FAILED, path, e) from e
    with f:
        try:
            return find_last_line(f)
        except OSError as e:
            raise DispatchError(ErrorKind.READ_FAILED, path, e) from e


class Position:
    """
    Read position of a single path.

    Attributes:
        offset: None while uninitialized, otherwise a byte count.
        lines: Lines delivered from this position.
        errors: Dispatch errors delivered for this position.
        lock: Guards the attributes above. Never held across file I/O.
    """

    def __init__(self):
        self.offset: Optional[int] = None
        self.lines = 0
        self.errors = 0
        self.lock = threading.Lock()

    @property
    def initialized(self) -> bool:
        return self.offset is not None

    def resolve(self, path: str, skip_to_last_line: bool = True) -> int:
        """Initialize the offset from `path` unless that already happened."""
        with self.lock:
            if self.offset is not None:
                return self.offset
        offset = last_line_offset(path) if skip_to_last_line else 0
        with self.lock:
            if self.offset is None:
                self.offset = offset
                logging.debug(f"Initial offset for {path}: {offset}")
            return self.offset

    def advance(self, nbytes: int) -> int:
        if nbytes < 0:
            raise ValueError(f"Offsets never move backwards (got {nbytes})")
        with self.lock:
            if self.offset is None:
                raise RuntimeError("Cannot advance an uninitialized position")
            self.offset += nbytes
            return self.offset

    def record(self, error=None):
        """Count one delivery, a line or an error."""
        with self.lock:
            if error is not None:
                self.errors += 1
            else:
                self.lines += 1

    def __repr__(self):
        return f"Position(offset={self.offset!r}, lines={self.lines}, errors={self.errors})"


class PositionStore:
    """Thread-safe mapping of canonical path to Position, populated lazily."""

    def __init__(self):
        self._positions: Dict[str, Position] = {}
        self._lock = threading.Lock()

    def entry(self, path: str) -> Position:
        with self._lock:
            position = self._positions.get(path)
            if position is None:
                position = Position()
                self._positions[path] = position
            return position

    def offset(self, path: str) -> Optional[int]:
        with self._lock:
            position = self._positions.get(path)
        return position.offset if position is not None else None

    def resolve_initial_offset(self, path: str, skip_to_last_line: bool = True) -> int:
        """
        Resolve the offset tailing of `path` begins at.

        Already initialized paths return their stored offset unchanged. Otherwise
        the offset becomes the start of the file's last complete line, or 0 when
        `skip_to_last_line` is False.

        Raises:
            DispatchError: The file could not be opened or read; the position
                stays uninitialized.
        """
        return self.entry(path).resolve(path, skip_to_last_line)

    def advance(self, path: str, nbytes: int) -> int:
        return self.entry(path).advance(nbytes)

    def move(self, old_path: str, new_path: str) -> Optional[Position]:
        """Re-key the position of `old_path` under `new_path`, if there is one."""
        with self._lock:
            position = self._positions.pop(old_path, None)
            if position is not None:
                self._positions[new_path] = position
            return position

    def discard(self, path: str) -> Optional[Position]:
        with self._lock:
            return self._positions.pop(path, None)

    def snapshot(self) -> Dict[str, Optional[int]]:
        with self._lock:
            return {path: pos.offset for path, pos in self._positions.items()}

    def __contains__(self, path):
        with self._lock:
            return path in self._positions

    def __len__(self):
        with self._lock:
            return len(self._positions)
