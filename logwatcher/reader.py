"""
Line reader: reads complete lines from a file starting at a byte offset.

Only lines terminated by "\n" are returned. A trailing fragment without a
terminator is left in place and picked up again once the writer finishes it.
"""

import logging
from dataclasses import dataclass
from typing import Iterator, Optional

from logwatcher.errors import DispatchError, ErrorKind


@dataclass(frozen=True)
class ReadLine:
    """A delivered line and the number of bytes it occupied on disk."""

    text: str
    size: int


def strip_terminator(raw: bytes) -> str:
    """Drop the trailing "\\n" and a preceding "\\r", then decode."""
    if raw.endswith(b"\n"):
        raw = raw[:-1]
        if raw.endswith(b"\r"):
            raw = raw[:-1]
    return raw.decode("utf-8", errors="replace")


def follow_lines(path: str, offset: int) -> Iterator[ReadLine]:
    """
    Yield every complete line of `path` from `offset` onwards.

    The file is opened once and kept open while the caller consumes lines.

    Args:
        path: Canonical path of the file.
        offset: Byte offset to start reading at.

    Yields:
        ReadLine for each newline-terminated line.

    Raises:
        DispatchError: Opening, seeking or reading failed.
    """
    try:
        f = open(path, "rb")
    except OSError as e:
        raise DispatchError(ErrorKind.OPEN_FAILED, path, e) from e

    with f:
        try:
            f.seek(offset)
        except (OSError, ValueError) as e:
            raise DispatchError(ErrorKind.SEEK_FAILED, path, e) from e

        while True:
            try:
                raw = f.readline()
            except OSError as e:
                raise DispatchError(ErrorKind.READ_FAILED, path, e) from e
            if not raw:
                return
            if not raw.endswith(b"\n"):
                logging.debug(f"Incomplete line in {path} at offset {offset} ({len(raw)} bytes)")
                return
            offset += len(raw)
            yield ReadLine(strip_terminator(raw), len(raw))


def read_line(path: str, offset: int) -> Optional[ReadLine]:
    """Read one complete line at `offset`, or None if there is none yet."""
    lines = follow_lines(path, offset)
    try:
        return next(lines, None)
    finally:
        lines.close()
