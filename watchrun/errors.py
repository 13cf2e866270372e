from typing import Sequence


class WatchrunError(Exception):
    """Base class for failures that end the program."""


class SpawnError(WatchrunError):
    def __init__(self, argv: Sequence[str], cause: OSError) -> None:
        self.argv = list(argv)
        self.cause = cause
        super().__init__(f"Unable to spawn command {self.argv!r}: {cause}")


class WatcherError(WatchrunError):
    """The filesystem observer could not be created or stopped unexpectedly."""
