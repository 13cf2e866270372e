import logging
import queue
import threading
from pathlib import Path
from typing import Iterator

from watchdog.observers import Observer
from watchdog.observers.polling import PollingObserver

from .errors import WatcherError
from .events import WatchItem
from .handlers import DebouncedWriteHandler

_RECEIVE_TIMEOUT = 0.5
_STOP = object()


class WatchSession:
    """The single live watch over one path.

    Construction schedules and starts the observer, so any failure to set up
    OS notifications surfaces here as WatcherError. Iterating blocks and
    yields WatchEvent or WatchError items in the order they were emitted,
    until ``stop()`` is called.
    """

    def __init__(self, path: Path, delay: float, use_polling: bool = False) -> None:
        path = Path(path).expanduser()
        if not path.exists():
            raise WatcherError(f"Path does not exist: {path}")
        path = path.resolve()

        self.path = path
        self.delay = delay
        self.use_polling = use_polling
        self._queue: "queue.Queue" = queue.Queue()
        self._stopped = threading.Event()

        # Files are watched through their parent so every observer backend works
        if path.is_dir():
            watch_dir, recursive, target = path, True, None
        else:
            watch_dir, recursive, target = path.parent, False, path

        self.handler = DebouncedWriteHandler(self._queue, delay, target=target)
        self.observer = PollingObserver() if use_polling else Observer()
        try:
            self.observer.schedule(self.handler, str(watch_dir), recursive=recursive)
            self.observer.start()
        except OSError as e:
            self.handler.close()
            raise WatcherError(f"Unable to watch {path}: {e}") from e

        logging.info(f"Watching: {path}")
        logging.info(f"Observer: {'Polling' if use_polling else 'Native'}")

    def __iter__(self) -> Iterator[WatchItem]:
        while True:
            try:
                item = self._queue.get(timeout=_RECEIVE_TIMEOUT)
            except queue.Empty:
                if self._stopped.is_set():
                    return
                if not self.observer.is_alive():
                    raise WatcherError(f"Observer for {self.path} stopped unexpectedly")
                continue
            if item is _STOP:
                return
            yield item

    def stop(self) -> None:
        if self._stopped.is_set():
            return
        self._stopped.set()
        self.handler.close()
        self._queue.put(_STOP)
        self.observer.stop()
        if self.observer.is_alive():
            self.observer.join()

    def __enter__(self) -> "WatchSession":
        return self

    def __exit__(self, *exc_info) -> None:
        self.stop()
