import os
import signal
import sys
import time

import daemon
import psutil
from daemon.pidfile import PIDLockFile

from logwatcher import logger
from logwatcher.errors import SubscriptionError
from logwatcher.sinks import LoggerSink
from logwatcher.utils import spawn_periodic_worker
from logwatcher.watcher import LogWatcher

STATUS_INTERVAL = 300


def get_log_dir(config, config_path=None):
    """Resolve the configured log directory relative to the config file."""
    config_dir = os.path.dirname(os.path.abspath(config_path or "./config.toml"))
    return os.path.join(config_dir, config.get("logging", {}).get("log_dir", "logs"))


def register_watch_files(watcher, watch_files, sink_factory, skip_to_last_line=True):
    """
    Register every watch file entry with `watcher`.

    Args:
        watcher (LogWatcher): Engine to register with.
        watch_files (list): Entries with ``path`` and optional ``name`` and
            ``skip_to_last_line``.
        sink_factory (callable): Called with the entry's name, returns a sink.
        skip_to_last_line (bool): Default for entries that do not set it.
    """
    for item in watch_files:
        name = item.get("name") or os.path.basename(item["path"])
        options = {"skip_to_last_line": item.get("skip_to_last_line", skip_to_last_line)}
        watcher.register(item["path"], sink_factory(name), options)


def log_daemon_status(root_logger, watcher):
    """
    Log process information (psutil) and the state of every watched file.
    """
    try:
        proc = psutil.Process(os.getpid())
        status_info = {
            "PID": proc.pid,
            "CPU %": proc.cpu_percent(interval=0.1),
            "Memory %": f"{proc.memory_percent():.2f}",
            "Memory RSS": proc.memory_info().rss,
            "Threads": proc.num_threads(),
            "Started At": time.strftime(
                "%Y-%m-%d %H:%M:%S", time.localtime(proc.create_time())
            ),
            "Watched Files": len(watcher.paths()),
        }
        root_logger.info(
            "Daemon Status:\n" + "\n".join(f"{k}: {v}" for k, v in status_info.items())
        )
        for path, state in watcher.status().items():
            root_logger.info(
                f"File '{path}': offset={state['offset']}, "
                f"lines={state['lines']}, errors={state['errors']}"
            )
    except psutil.Error as e:
        root_logger.error(f"Error logging daemon status: {e}")


def run_daemon(watch_files, pid_file, config, config_path=None):
    """
    Tail `watch_files` in a background daemon until SIGTERM or a source failure.

    Delivered lines go to ``lines.log`` and engine messages to ``daemon.log``,
    both in the configured log directory.
    """
    log_dir = os.path.abspath(get_log_dir(config, config_path))
    level = config.get("logging", {}).get("level", "INFO")
    watcher_settings = config.get("watcher", {})

    root_logger = logger.setup_logger("LogWatcherDaemon", log_dir, "daemon.log", level=level, console=False)
    lines_logger = logger.setup_logger("LogWatcherLines", log_dir, "lines.log", level="INFO", console=False)
    root_logger.info(f"Log directory: {log_dir}")

    watcher = LogWatcher.from_config(config, logger=root_logger)
    # Paths are canonicalised here, before the daemon changes directory to "/".
    register_watch_files(
        watcher,
        watch_files,
        lambda name: LoggerSink(lines_logger, name),
        watcher_settings.get("skip_to_last_line", True),
    )

    def handle_sigterm(signum, frame):
        root_logger.info("Received SIGTERM, stopping.")
        watcher.stop()

    context = daemon.DaemonContext(
        pidfile=PIDLockFile(os.path.abspath(pid_file)),
        signal_map={signal.SIGTERM: handle_sigterm},
        files_preserve=[
            handler.stream.fileno()
            for log in (root_logger, lines_logger)
            for handler in log.handlers
            if hasattr(handler, "stream") and hasattr(handler.stream, "fileno")
        ],
    )

    with context:
        root_logger.info(f"Daemon started, watching {len(watcher.paths())} file(s)")
        status_worker = spawn_periodic_worker(
            log_daemon_status, STATUS_INTERVAL, root_logger, watcher, name="LW_StatusLogger"
        )
        try:
            error = watcher.start(watcher_settings.get("poll_interval", 1.0))
        except SubscriptionError as e:
            root_logger.error(f"Fatal error in daemon: {e}", exc_info=True)
            sys.exit(1)
        finally:
            status_worker.stop()
        if error is not None:
            root_logger.error(f"Daemon exiting after source failure: {error}")
            sys.exit(1)
        root_logger.info("Daemon stopped.")
