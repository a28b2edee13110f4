"""
Helpers shared by the engine, the CLI and the daemon.

- canonical_path: the key every registry and position lookup uses.
- PeriodicWorker: runs a function every N seconds until stopped.
"""

import logging
import os
import threading


def canonical_path(path):
    """
    Return the absolute, home-expanded form of `path`.

    Args:
        path (str or os.PathLike): Path as given by the caller.

    Returns:
        str: Canonical path.
    """
    return os.path.abspath(os.path.expanduser(os.fspath(path)))


class PeriodicWorker(threading.Thread):
    """
    A thread that runs a worker function periodically every `interval` seconds.
    """

    def __init__(self, worker_fn, interval, *args, name=None, **kwargs):
        """
        Initialize the periodic worker thread.

        Args:
            worker_fn (callable): The function to run periodically.
            interval (float): Time in seconds between each call.
            *args: Positional arguments passed to worker_fn.
            name (str, optional): Thread name.
            **kwargs: Keyword arguments passed to worker_fn.
        """
        super().__init__(name=name, daemon=True)
        self.worker_fn = worker_fn
        self.interval = interval
        self.args = args
        self.kwargs = kwargs
        self.stop_event = threading.Event()

    def run(self):
        logging.debug("PeriodicWorker %s started with interval: %s seconds", self.name, self.interval)
        while not self.stop_event.is_set():
            try:
                self.worker_fn(*self.args, **self.kwargs)
            except Exception as e:
                logging.exception("Exception in periodic worker function: %s", e)
            if self.stop_event.wait(self.interval):
                break
        logging.debug("PeriodicWorker %s stopped.", self.name)

    def stop(self):
        self.stop_event.set()


def spawn_periodic_worker(worker_fn, interval, *args, **kwargs):
    """
    Start a PeriodicWorker running `worker_fn` every `interval` seconds.

    Returns:
        PeriodicWorker: The running thread.
    """
    worker = PeriodicWorker(worker_fn, interval, *args, **kwargs)
    worker.start()
    return worker
