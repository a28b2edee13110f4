"""
Delivery sinks.

A sink is anything with a ``deliver(line, error)`` method. For every dispatch
the engine calls it with either a line (``error`` is None) or an empty line and
a DispatchError. Plain callables with the same signature are wrapped in a
CallbackSink on registration.
"""

import logging
import threading
import time
from typing import Callable, List, Optional, Protocol

from rich.console import Console
from rich.markup import escape

from logwatcher.errors import DispatchError


class Sink(Protocol):
    def deliver(self, line: str, error: Optional[DispatchError]) -> None:
        ...


class CallbackSink:
    """Adapts a function ``func(line, error)`` to the Sink interface."""

    def __init__(self, func: Callable[[str, Optional[DispatchError]], None]):
        self.func = func

    def deliver(self, line, error):
        self.func(line, error)

    def __repr__(self):
        return f"CallbackSink({getattr(self.func, '__name__', self.func)!r})"


def as_sink(obj):
    """
    Return `obj` as a sink.

    Raises:
        TypeError: `obj` is neither a sink nor callable.
    """
    if callable(getattr(obj, "deliver", None)):
        return obj
    if callable(obj):
        return CallbackSink(obj)
    raise TypeError(f"Expected a sink or a callable, got {type(obj).__name__}")


class BufferSink:
    """
    Collects delivered lines and errors in memory.

    Attributes:
        lines (list): Delivered lines, in delivery order.
        errors (list): Delivered DispatchErrors, in delivery order.
    """

    def __init__(self):
        self.lines: List[str] = []
        self.errors: List[DispatchError] = []
        self._cond = threading.Condition()

    def deliver(self, line, error):
        with self._cond:
            if error is not None:
                self.errors.append(error)
            else:
                self.lines.append(line)
            self._cond.notify_all()

    def wait_for(self, count: int, timeout: Optional[float] = None) -> bool:
        """Block until at least `count` lines arrived. Returns False on timeout."""
        deadline = None if timeout is None else time.monotonic() + timeout
        with self._cond:
            while len(self.lines) < count:
                remaining = None if deadline is None else deadline - time.monotonic()
                if remaining is not None and remaining <= 0:
                    return False
                self._cond.wait(remaining)
            return True

    def clear(self):
        with self._cond:
            self.lines.clear()
            self.errors.clear()


class ConsoleSink:
    """Prints lines to the terminal, prefixed with the file's name."""

    def __init__(self, name, console=None, error_console=None):
        self.name = name
        self.console = console or Console(highlight=False)
        self.error_console = error_console or Console(stderr=True, highlight=False)

    def deliver(self, line, error):
        if error is not None:
            self.error_console.print(f"[red]\\[{escape(self.name)}] {escape(str(error))}[/red]")
        else:
            self.console.print(f"[cyan]\\[{escape(self.name)}][/cyan] {escape(line)}")


class LoggerSink:
    """Forwards lines to a logger at INFO and errors at ERROR."""

    def __init__(self, logger: logging.Logger, name: str):
        self.logger = logger
        self.name = name

    def deliver(self, line, error):
        if error is not None:
            self.logger.error(f"[{self.name}] {error}")
        else:
            self.logger.info(f"[{self.name}] {line}")
