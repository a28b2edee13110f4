import os
import signal
import threading
import time

import click
import psutil
from rich.console import Console
from rich.table import Table

from logwatcher import config
from logwatcher import daemon as daemon_module
from logwatcher import logger
from logwatcher.errors import SubscriptionError
from logwatcher.sinks import ConsoleSink
from logwatcher.watcher import LogWatcher

DEFAULT_PID_FILENAME = "logwatcher.pid"


@click.group()
@click.option("--config", "-c", "config_path", default=None, help="Path to configuration TOML file.")
@click.option("--debug", is_flag=True, help="Enable debug logging.")
@click.pass_context
def main(ctx, config_path, debug):
    """
    LogWatcher CLI: follow appended lines of many log files.
    """
    try:
        cfg = config.load_config(config_path)
    except (OSError, ValueError) as e:
        click.echo(f"Error loading configuration: {e}")
        ctx.abort()
    if debug:
        cfg["logging"]["level"] = "DEBUG"
    ctx.obj = {"config": cfg, "config_path": config_path, "debug": debug}


def get_pid_file(log_dir):
    return os.path.join(log_dir, DEFAULT_PID_FILENAME)


def read_pid(pid_file):
    with open(pid_file, "r") as f:
        return int(f.read().strip())


def run_foreground(watcher, poll_interval):
    """Run the engine in a worker thread until Ctrl-C or a source failure."""
    outcome = {}

    def target():
        try:
            outcome["error"] = watcher.start(poll_interval)
        except SubscriptionError as e:
            outcome["error"] = e

    thread = threading.Thread(target=target, name="LogWatcher", daemon=True)
    thread.start()
    try:
        while thread.is_alive():
            thread.join(0.5)
    except KeyboardInterrupt:
        watcher.stop()
        thread.join(timeout=5.0)
    error = outcome.get("error")
    if error is not None:
        raise click.ClickException(str(error))


@main.command()
@click.pass_context
def show_config(ctx):
    """
    Show the loaded configuration.
    """
    click.echo(ctx.obj.get("config"))


@main.command()
@click.argument("paths", nargs=-1, required=True)
@click.option("--from-start", is_flag=True, help="Deliver existing lines instead of starting at the last one.")
@click.option("--poll-interval", type=float, default=None, help="Event polling interval in seconds.")
@click.option("--polling", is_flag=True, help="Use the polling observer.")
@click.pass_context
def tail(ctx, paths, from_start, poll_interval, polling):
    """
    Follow PATHS and print every new line.
    """
    cfg = ctx.obj.get("config")
    settings = cfg.get("watcher", {})

    watcher = LogWatcher(
        max_workers=settings.get("max_workers"),
        use_polling=polling or settings.get("use_polling", False),
        logger=logger.setup_logger("logwatcher", level=cfg["logging"]["level"]),
    )
    skip = settings.get("skip_to_last_line", True) and not from_start
    for path in paths:
        watcher.register(path, ConsoleSink(os.path.basename(path)), {"skip_to_last_line": skip})

    run_foreground(watcher, poll_interval or settings.get("poll_interval", 1.0))


@main.command()
@click.option("--foreground", is_flag=True, help="Run in foreground (not as daemon).")
@click.pass_context
def start(ctx, foreground):
    """
    Start following the configured watch files.
    """
    cfg = ctx.obj.get("config")
    config_path = ctx.obj.get("config_path")
    log_dir = daemon_module.get_log_dir(cfg, config_path)
    pid_file = get_pid_file(log_dir)
    watch_files_path = cfg.get("watch_files", {}).get("configs_dir", "watch_files.yaml")
    try:
        watch_files = config.load_watch_files_configs(watch_files_path).get("watch_files", [])
    except (OSError, ValueError) as e:
        click.echo(f"Error loading watch files configuration: {e}")
        return
    if not watch_files:
        click.echo("No watch files configured.")
        return

    if foreground:
        click.echo("Running in foreground...")
        settings = cfg.get("watcher", {})
        watcher = LogWatcher.from_config(
            cfg, logger=logger.setup_logger("logwatcher", level=cfg["logging"]["level"])
        )
        daemon_module.register_watch_files(
            watcher, watch_files, ConsoleSink, settings.get("skip_to_last_line", True)
        )
        run_foreground(watcher, settings.get("poll_interval", 1.0))
    else:
        os.makedirs(log_dir, exist_ok=True)
        click.echo("Starting daemon...")
        daemon_module.run_daemon(watch_files, pid_file, cfg, config_path)


@main.command()
@click.pass_context
def stop(ctx):
    """
    Stop the LogWatcher daemon.
    """
    cfg = ctx.obj.get("config")
    pid_file = get_pid_file(daemon_module.get_log_dir(cfg, ctx.obj.get("config_path")))
    if not os.path.exists(pid_file):
        click.echo("Daemon is not running (pid file not found).")
        return
    pid = read_pid(pid_file)
    try:
        os.kill(pid, signal.SIGTERM)
        click.echo(f"Sent SIGTERM to daemon (pid {pid}).")
    except OSError as e:
        click.echo(f"Error stopping daemon: {e}")


@main.command()
@click.pass_context
def status(ctx):
    """
    Check the status of the LogWatcher daemon.
    Displays process info (memory, CPU, threads, start time) and the watch files.
    """
    cfg = ctx.obj.get("config")
    pid_file = get_pid_file(daemon_module.get_log_dir(cfg, ctx.obj.get("config_path")))

    if not os.path.exists(pid_file):
        click.echo("Daemon is not running (pid file not found).")
        return

    pid = read_pid(pid_file)
    try:
        proc = psutil.Process(pid)
    except psutil.NoSuchProcess:
        click.echo("Daemon process not found.")
        return

    status_table = Table(title="LogWatcher Daemon Status")
    status_table.add_column("Property", style="cyan")
    status_table.add_column("Value", style="magenta")
    status_table.add_row("PID", str(proc.pid))
    status_table.add_row("CPU %", f"{proc.cpu_percent(interval=0.1)}")
    status_table.add_row("Memory %", f"{proc.memory_percent():.2f}")
    status_table.add_row("Memory RSS", str(proc.memory_info().rss))
    status_table.add_row("Threads", str(proc.num_threads()))
    status_table.add_row("Start Time", time.strftime("%Y-%m-%d %H:%M:%S", time.localtime(proc.create_time())))

    watch_files_path = cfg.get("watch_files", {}).get("configs_dir", "watch_files.yaml")
    try:
        watch_files = config.load_watch_files_configs(watch_files_path).get("watch_files", [])
        status_table.add_row("Watch Files Count", str(len(watch_files)))
        status_table.add_row("Watch Files", ", ".join(item["path"] for item in watch_files))
    except (OSError, ValueError) as e:
        status_table.add_row("Watch Files", f"Error loading: {e}")

    Console().print(status_table)


if __name__ == "__main__":
    main()
