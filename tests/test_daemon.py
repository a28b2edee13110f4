import logging

from logwatcher import daemon
from logwatcher.sinks import BufferSink
from logwatcher.watcher import LogWatcher


def test_get_log_dir_is_relative_to_config(tmp_path):
    config_path = tmp_path / "conf" / "config.toml"
    log_dir = daemon.get_log_dir({"logging": {"log_dir": "out"}}, str(config_path))
    assert log_dir == str(tmp_path / "conf" / "out")


def test_register_watch_files(tmp_path):
    watcher = LogWatcher()
    names = []

    def sink_factory(name):
        names.append(name)
        return BufferSink()

    watch_files = [
        {"path": str(tmp_path / "a.log"), "name": "alpha"},
        {"path": str(tmp_path / "b.log"), "skip_to_last_line": False},
    ]
    daemon.register_watch_files(watcher, watch_files, sink_factory)

    assert names == ["alpha", "b.log"]
    assert watcher.registry.get(str(tmp_path / "a.log")).skip_to_last_line is True
    assert watcher.registry.get(str(tmp_path / "b.log")).skip_to_last_line is False


def test_log_daemon_status(tmp_path, caplog):
    path = tmp_path / "a.log"
    path.write_bytes(b"one\n")
    watcher = LogWatcher()
    watcher.register(path, BufferSink(), {"skip_to_last_line": False})
    watcher.dispatch(str(path))

    status_logger = logging.getLogger("test.status")
    with caplog.at_level(logging.INFO, logger="test.status"):
        daemon.log_daemon_status(status_logger, watcher)

    assert "Daemon Status:" in caplog.text
    assert "Watched Files: 1" in caplog.text
    assert f"File '{path}': offset=4, lines=1, errors=0" in caplog.text
