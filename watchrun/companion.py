import enum
import logging
import os
import selectors
import subprocess
import threading
from typing import Optional

import typer

from .commands import CommandSpec
from .errors import SpawnError
from .utils import decode_output, stream_decoder

DEFAULT_POLL_INTERVAL = 0.1
TERMINATE_TIMEOUT = 2.0
_READ_SIZE = 65536
STDERR_TAIL_BYTES = 64 * 1024


class SupervisorState(str, enum.Enum):
    PENDING = "pending"
    SPAWNED = "spawned"
    POLLING = "polling"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    STOPPED = "stopped"


class CompanionSupervisor:
    """Runs the --also-run command next to the watch loop.

    The child is spawned by ``start()`` in the caller's thread so that a
    spawn failure is reported like any other setup failure. After that the
    child handle belongs to the supervisor thread alone: it polls for exit,
    drains both pipes without blocking, and reports a failing exit once.
    A failing companion never stops the watch loop.
    """

    def __init__(
        self,
        spec: CommandSpec,
        show_output: bool = False,
        debug: bool = False,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        stderr_limit: int = STDERR_TAIL_BYTES,
    ) -> None:
        self.spec = spec
        self.show_output = show_output
        self.debug = debug
        self.poll_interval = poll_interval
        self.stderr_limit = stderr_limit
        self.state = SupervisorState.PENDING
        self.exit_code: Optional[int] = None
        # Only the most recent stderr bytes are kept for the failure report
        self._stderr = bytearray()
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    def start(self) -> None:
        if self._thread is not None:
            raise RuntimeError("Companion supervisor already started")

        if self.debug:
            logging.debug(f"DEBUG also run command={self.spec!r}")

        try:
            proc = subprocess.Popen(
                self.spec.argv,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
            )
        except OSError as e:
            raise SpawnError(self.spec.argv, e) from e

        self.state = SupervisorState.SPAWNED
        logging.debug(f"Companion started (pid {proc.pid}): {self.spec}")
        self._thread = threading.Thread(
            target=self._supervise,
            args=(proc,),
            name="companion-supervisor",
            daemon=True,
        )
        self._thread.start()

    def stop(self, timeout: float = TERMINATE_TIMEOUT * 2) -> None:
        """Ask the supervisor to terminate the companion and wait for it."""
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout)

    def join(self, timeout: Optional[float] = None) -> None:
        if self._thread is not None:
            self._thread.join(timeout)

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    @property
    def stderr(self) -> bytes:
        return bytes(self._stderr)

    def _supervise(self, proc: subprocess.Popen) -> None:
        self.state = SupervisorState.POLLING
        decoder = stream_decoder()
        selector = selectors.DefaultSelector()
        selector.register(proc.stdout, selectors.EVENT_READ, "stdout")
        selector.register(proc.stderr, selectors.EVENT_READ, "stderr")
        try:
            while not self._stop.is_set():
                self._drain(selector, decoder)
                try:
                    code = proc.poll()
                except OSError as e:
                    logging.error(f"Error attempting to wait for process: {e}")
                    self.state = SupervisorState.FAILED
                    return

                if code is None:
                    self._stop.wait(self.poll_interval)
                    continue

                # Exited: collect whatever is still buffered in the pipes
                self._drain(selector, decoder)
                self._flush(decoder)
                self._finish(code)
                return

            self._terminate(proc)
            self.state = SupervisorState.STOPPED
        finally:
            selector.close()
            for stream in (proc.stdout, proc.stderr):
                if stream is not None:
                    stream.close()

    def _drain(self, selector: selectors.BaseSelector, decoder) -> None:
        # Read until no registered pipe has data ready; never blocks
        while selector.get_map():
            ready = selector.select(timeout=0)
            if not ready:
                break
            for key, _ in ready:
                data = os.read(key.fd, _READ_SIZE)
                if not data:
                    selector.unregister(key.fileobj)
                elif key.data == "stdout":
                    if self.show_output:
                        text = decoder.decode(data)
                        if text:
                            typer.echo(text, nl=False)
                else:
                    self._stderr += data
                    if len(self._stderr) > self.stderr_limit:
                        del self._stderr[: -self.stderr_limit]

    def _flush(self, decoder) -> None:
        if self.show_output:
            tail = decoder.decode(b"", final=True)
            if tail:
                typer.echo(tail, nl=False)

    def _finish(self, returncode: int) -> None:
        self.exit_code = returncode if returncode >= 0 else None
        if returncode == 0:
            self.state = SupervisorState.SUCCEEDED
            logging.debug(f"Companion exited cleanly: {self.spec}")
            return

        code = "signal" if self.exit_code is None else self.exit_code
        logging.error(
            f"Process exited with an error({code}): {decode_output(self.stderr)}"
        )
        self.state = SupervisorState.FAILED

    def _terminate(self, proc: subprocess.Popen) -> None:
        if proc.poll() is not None:
            return
        logging.debug(f"Terminating companion (pid {proc.pid})")
        proc.terminate()
        try:
            proc.wait(timeout=TERMINATE_TIMEOUT)
        except subprocess.TimeoutExpired:
            proc.kill()
            proc.wait()
