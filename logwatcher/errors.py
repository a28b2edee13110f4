"""
Exception types for LogWatcher.

Three failure classes exist:

- SubscriptionError: watching or unwatching a path failed. Raised to the caller
  of register/unregister/rename/start; the running loop is unaffected.
- DispatchError: opening, seeking or reading a watched file failed while
  handling a notification. Delivered to the path's sink, never raised.
- SourceError: the notification stream itself failed. Ends LogWatcher.start().
"""

import enum


class LogWatcherError(Exception):
    """Base class for all LogWatcher errors."""

    pass


class ErrorKind(enum.Enum):
    OPEN_FAILED = "open-failed"
    SEEK_FAILED = "seek-failed"
    READ_FAILED = "read-failed"


class DispatchError(LogWatcherError):
    """
    Per-path I/O failure raised by the line reader and delivered to a sink.

    Attributes:
        kind (ErrorKind): Which step failed.
        path (str): Canonical path of the file.
        cause (Exception): The underlying OS error, if any.
    """

    def __init__(self, kind, path, cause=None):
        self.kind = kind
        self.path = path
        self.cause = cause
        super().__init__(str(self))

    def __str__(self):
        if self.cause is not None:
            return f"{self.kind.value}: {self.path} ({self.cause})"
        return f"{self.kind.value}: {self.path}"

    def __repr__(self):
        return f"DispatchError(kind={self.kind.value!r}, path={self.path!r})"


class SubscriptionError(LogWatcherError):
    """
    Watch or unwatch failed at the event source boundary.

    Attributes:
        path (str): Canonical path being (un)subscribed.
        operation (str): "watch" or "unwatch".
        cause: The underlying exception or a short reason string.
    """

    def __init__(self, path, operation, cause=None):
        self.path = path
        self.operation = operation
        self.cause = cause
        message = f"failed to {operation} {path}"
        if cause is not None:
            message = f"{message}: {cause}"
        super().__init__(message)


class SourceError(LogWatcherError):
    """The filesystem notification stream failed; fatal for the engine loop."""

    def __init__(self, message, cause=None):
        self.cause = cause
        super().__init__(message)
