import math
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from .commands import CommandSpec

DEFAULT_DELAY = 1.0


@dataclass(frozen=True)
class WatchConfig:
    """Fully resolved settings, built once by the CLI before watching starts."""

    watch_path: Path
    primary_command: CommandSpec
    command_text: str
    delay: float = DEFAULT_DELAY
    show_output: bool = False
    debug: bool = False
    companion_command: Optional[CommandSpec] = None
    use_polling: bool = False

    def __post_init__(self) -> None:
        if not math.isfinite(self.delay) or self.delay <= 0:
            raise ValueError(
                f"delay must be a finite positive number, got {self.delay}"
            )
