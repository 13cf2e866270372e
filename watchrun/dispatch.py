import logging
from typing import Callable, Iterable, Optional

import typer

from .commands import CommandSpec
from .companion import CompanionSupervisor
from .config import WatchConfig
from .events import WatchError, WatchEvent, WatchItem
from .runner import ProcessOutcome, run_command
from .utils import decode_output
from .watcher import WatchSession

EXIT_OK = 0
EXIT_COMMAND_FAILED = 1

Runner = Callable[[CommandSpec], ProcessOutcome]


class Dispatcher:
    """Runs the primary command once per WatchEvent, strictly in order.

    The first failing run ends the loop with EXIT_COMMAND_FAILED.
    """

    def __init__(
        self,
        config: WatchConfig,
        session: Iterable[WatchItem],
        runner: Runner = run_command,
    ) -> None:
        self.config = config
        self.session = session
        self.runner = runner
        self.runs = 0

    def run(self) -> int:
        for item in self.session:
            if isinstance(item, WatchError):
                logging.error(f"watch error: {item}")
                continue
            if not isinstance(item, WatchEvent):
                continue
            if not self.handle_event(item):
                return EXIT_COMMAND_FAILED
        return EXIT_OK

    def handle_event(self, event: WatchEvent) -> bool:
        changed = ", ".join(str(p) for p in event.paths)
        logging.debug(f"Change detected: {changed}")

        outcome = self.runner(self.config.primary_command)
        self.runs += 1
        if not outcome.success:
            logging.error(
                f'Error occurred when running command "{self.config.command_text}"\n'
                f"Error({outcome.describe_exit()}): {decode_output(outcome.stderr)}"
            )
            return False

        if self.config.show_output:
            typer.echo(decode_output(outcome.stdout), nl=False)
        return True


def watch(config: WatchConfig, runner: Runner = run_command) -> int:
    """Start the companion (if any), watch ``config.watch_path`` and dispatch.

    Setup failures (SpawnError, WatcherError) propagate to the caller before
    any event is received. Returns the process exit status.
    """
    supervisor: Optional[CompanionSupervisor] = None
    session: Optional[WatchSession] = None

    if config.debug:
        logging.debug(f"DEBUG command={config.primary_command!r}")

    try:
        if config.companion_command is not None:
            supervisor = CompanionSupervisor(
                config.companion_command,
                show_output=config.show_output,
                debug=config.debug,
            )
            supervisor.start()

        session = WatchSession(
            config.watch_path, config.delay, use_polling=config.use_polling
        )
        return Dispatcher(config, session, runner=runner).run()
    except KeyboardInterrupt:
        logging.info("Stopping watcher...")
        return EXIT_OK
    finally:
        try:
            if session is not None:
                session.stop()
        finally:
            if supervisor is not None:
                supervisor.stop()
