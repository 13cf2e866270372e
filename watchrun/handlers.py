import os
import logging
import queue
import threading
from pathlib import Path
from typing import List, Optional

from watchdog.events import FileSystemEvent, FileSystemEventHandler

from .events import WatchError, WatchEvent


class DebouncedWriteHandler(FileSystemEventHandler):
    """Coalesces bursts of ``modified`` events into single WatchEvents.

    Each raw event restarts a timer of ``delay`` seconds; when it fires, the
    paths collected since the previous emission are put on ``events`` as one
    WatchEvent. Created, deleted and moved events are ignored.
    """

    def __init__(
        self,
        events: "queue.Queue",
        delay: float,
        target: Optional[Path] = None,
    ) -> None:
        super().__init__()
        self.events = events
        self.delay = delay
        self.target = target
        self._lock = threading.Lock()
        self._timer: Optional[threading.Timer] = None
        self._pending: List[Path] = []
        self._closed = False

    def dispatch(self, event: FileSystemEvent) -> None:
        try:
            super().dispatch(event)
        except Exception as e:
            # Reported to the dispatch loop, which logs and keeps watching
            self.events.put(WatchError(f"{type(e).__name__}: {e}"))

    def on_modified(self, event: FileSystemEvent) -> None:
        if event.is_directory:
            return

        path = Path(os.fsdecode(event.src_path))
        if self.target is not None and path != self.target:
            return

        with self._lock:
            if self._closed:
                return
            if path not in self._pending:
                self._pending.append(path)
            if self._timer is not None:
                self._timer.cancel()
            self._timer = threading.Timer(self.delay, self._flush)
            self._timer.daemon = True
            self._timer.start()
        logging.debug(f"Write detected: {path}")

    def _flush(self) -> None:
        with self._lock:
            paths = tuple(self._pending)
            self._pending = []
            self._timer = None
        # A timer cancelled too late finds nothing left to emit
        if paths:
            self.events.put(WatchEvent(paths))

    def close(self) -> None:
        with self._lock:
            self._closed = True
            if self._timer is not None:
                self._timer.cancel()
                self._timer = None
            self._pending = []
