"""watchrun: re-run a command every time a file or directory is written.

Exports:
- app, main: Typer CLI entrypoints (from watchrun.cli)
- watch, Dispatcher: the dispatch loop (from watchrun.dispatch)
- WatchSession: debounced watchdog observer (from watchrun.watcher)
- CompanionSupervisor: --also-run process supervision (from watchrun.companion)
- run_command, ProcessOutcome: synchronous command runner (from watchrun.runner)
- CommandSpec, resolve_command, substitute_template: command resolution (from watchrun.commands)
"""

from .cli import app, main  # noqa: F401
from .commands import CommandSpec, resolve_command, substitute_template  # noqa: F401
from .companion import CompanionSupervisor  # noqa: F401
from .config import WatchConfig  # noqa: F401
from .dispatch import Dispatcher, watch  # noqa: F401
from .errors import SpawnError, WatcherError, WatchrunError  # noqa: F401
from .runner import ProcessOutcome, run_command  # noqa: F401
from .watcher import WatchSession  # noqa: F401

__all__ = [
    "app",
    "main",
    "CommandSpec",
    "resolve_command",
    "substitute_template",
    "CompanionSupervisor",
    "WatchConfig",
    "Dispatcher",
    "watch",
    "SpawnError",
    "WatcherError",
    "WatchrunError",
    "ProcessOutcome",
    "run_command",
    "WatchSession",
]
