import logging
import subprocess
from dataclasses import dataclass
from typing import Optional

from .commands import CommandSpec
from .errors import SpawnError


@dataclass(frozen=True)
class ProcessOutcome:
    """Exit status and captured streams of one finished process.

    ``exit_code`` is None when the process was terminated by a signal.
    """

    exit_code: Optional[int]
    stdout: bytes = b""
    stderr: bytes = b""

    @classmethod
    def from_returncode(
        cls, returncode: int, stdout: bytes, stderr: bytes
    ) -> "ProcessOutcome":
        # subprocess reports death by signal N as -N
        exit_code = returncode if returncode >= 0 else None
        return cls(exit_code, stdout or b"", stderr or b"")

    @property
    def success(self) -> bool:
        return self.exit_code == 0

    def describe_exit(self) -> str:
        return "signal" if self.exit_code is None else str(self.exit_code)


def run_command(spec: CommandSpec) -> ProcessOutcome:
    """Run ``spec`` to completion, capturing stdout and stderr.

    Blocks the caller for the full runtime of the process. Raises SpawnError
    if the program cannot be started.
    """
    logging.debug(f"Running: {spec}")
    try:
        completed = subprocess.run(
            spec.argv,
            stdin=subprocess.DEVNULL,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            check=False,
        )
    except OSError as e:
        raise SpawnError(spec.argv, e) from e

    outcome = ProcessOutcome.from_returncode(
        completed.returncode, completed.stdout, completed.stderr
    )
    logging.debug(f"Command exited ({outcome.describe_exit()}): {spec}")
    return outcome
