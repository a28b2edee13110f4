"""
LogWatcher: tail many log files at once and hand each new line to a callback.

Provides both a CLI and a library API:

    watcher = LogWatcher()
    watcher.register("~/app.log", lambda line, error: print(line))
    watcher.start(poll_interval=1.0)
"""

from logwatcher.errors import (DispatchError, ErrorKind, LogWatcherError,
                               SourceError, SubscriptionError)
from logwatcher.sinks import BufferSink, CallbackSink, ConsoleSink, LoggerSink
from logwatcher.watcher import LogWatcher

__version__ = "0.2.0"

__all__ = [
    "LogWatcher",
    "LogWatcherError",
    "DispatchError",
    "ErrorKind",
    "SubscriptionError",
    "SourceError",
    "BufferSink",
    "CallbackSink",
    "ConsoleSink",
    "LoggerSink",
]
