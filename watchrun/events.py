from dataclasses import dataclass
from pathlib import Path
from typing import Tuple, Union


@dataclass(frozen=True)
class WatchEvent:
    """One debounced write notification; ``paths`` lists every file touched in the burst."""

    paths: Tuple[Path, ...]


@dataclass(frozen=True)
class WatchError:
    message: str

    def __str__(self) -> str:
        return self.message


WatchItem = Union[WatchEvent, WatchError]
