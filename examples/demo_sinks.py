import logging
import threading
import time

from logwatcher import BufferSink, LoggerSink, LogWatcher

logging.basicConfig(level=logging.INFO, format="%(asctime)s [%(levelname)s] %(message)s")

# Collect one file in memory and forward another to the logging module.
buffer = BufferSink()
watcher = LogWatcher(use_polling=True)
watcher.register("demo-a.log", buffer, {"skip_to_last_line": False})
watcher.register("demo-b.log", LoggerSink(logging.getLogger("demo"), "demo-b"))

for name in ("demo-a.log", "demo-b.log"):
    open(name, "a").close()

thread = threading.Thread(target=watcher.start, args=(0.2,), daemon=True)
thread.start()
watcher.wait_until_running(timeout=5)

for i in range(5):
    with open("demo-a.log", "a") as f:
        f.write(f"a line {i}\n")
    with open("demo-b.log", "a") as f:
        f.write(f"b line {i}\n")
    time.sleep(0.5)

buffer.wait_for(5, timeout=5)
print("Buffered:", buffer.lines)
print("Status:", watcher.status())

watcher.stop()
thread.join()
