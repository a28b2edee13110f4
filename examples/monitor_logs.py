import sys

from logwatcher import LogWatcher


def print_line(line, error):
    if error is None:
        print(f"New log line: {line}")
    else:
        print(error, file=sys.stderr)


watcher = LogWatcher()
watcher.register("~/.pm2/logs/r1-out.log", print_line)

# Runs until the event source fails; Ctrl-C to quit.
error = watcher.start(poll_interval=1.0)
if error is not None:
    print(f"Watcher stopped: {error}", file=sys.stderr)
    sys.exit(1)
