import io
import logging
import threading

import pytest
from rich.console import Console

from logwatcher.errors import DispatchError, ErrorKind
from logwatcher.sinks import (BufferSink, CallbackSink, ConsoleSink,
                              LoggerSink, as_sink)


def test_as_sink_wraps_callables():
    calls = []
    sink = as_sink(lambda line, error: calls.append(line))
    assert isinstance(sink, CallbackSink)
    sink.deliver("x", None)
    assert calls == ["x"]


def test_as_sink_passes_sinks_through():
    buffer = BufferSink()
    assert as_sink(buffer) is buffer


def test_as_sink_rejects_other_objects():
    with pytest.raises(TypeError):
        as_sink("not a sink")


def test_buffer_sink_separates_errors():
    sink = BufferSink()
    error = DispatchError(ErrorKind.OPEN_FAILED, "/x.log")
    sink.deliver("a", None)
    sink.deliver("", error)
    assert sink.lines == ["a"]
    assert sink.errors == [error]

    sink.clear()
    assert sink.lines == [] and sink.errors == []


def test_buffer_sink_wait_for():
    sink = BufferSink()
    assert sink.wait_for(1, timeout=0.1) is False

    timer = threading.Timer(0.1, sink.deliver, args=("late", None))
    timer.start()
    assert sink.wait_for(1, timeout=5) is True
    timer.join()


def test_console_sink_prints_lines_and_errors():
    out, err = io.StringIO(), io.StringIO()
    sink = ConsoleSink(
        "app.log",
        console=Console(file=out, width=200),
        error_console=Console(file=err, width=200),
    )
    sink.deliver("hello [world]", None)
    sink.deliver("", DispatchError(ErrorKind.SEEK_FAILED, "/app.log"))

    assert "[app.log] hello [world]" in out.getvalue()
    assert "seek-failed: /app.log" in err.getvalue()


def test_logger_sink(caplog):
    sink = LoggerSink(logging.getLogger("test.lines"), "app")
    with caplog.at_level(logging.INFO, logger="test.lines"):
        sink.deliver("a line", None)
        sink.deliver("", DispatchError(ErrorKind.OPEN_FAILED, "/app.log"))

    assert ("test.lines", logging.INFO, "[app] a line") in caplog.record_tuples
    assert ("test.lines", logging.ERROR, "[app] open-failed: /app.log") in caplog.record_tuples
