import sys
import math
import logging
from pathlib import Path
from typing import Optional

import typer

from .commands import resolve_command, substitute_template
from .config import DEFAULT_DELAY, WatchConfig
from .dispatch import EXIT_COMMAND_FAILED, watch
from .errors import WatchrunError
from .utils import prefers_polling


app = typer.Typer(add_completion=False, no_args_is_help=True)


@app.command()
def main(
    filename: str = typer.Argument(..., help="File to watch"),
    command: str = typer.Argument(
        ..., help="Command that will be run each time the file changes"
    ),
    delay: float = typer.Option(
        DEFAULT_DELAY,
        "-d",
        "--delay",
        help="The delay between checks of whether the file has changed",
        envvar="WATCHRUN_DELAY",
    ),
    show_output: bool = typer.Option(
        False,
        "-s",
        "--show-output",
        help="Show the output of the main command and --also-run command",
        envvar="WATCHRUN_SHOW_OUTPUT",
    ),
    also_run: Optional[str] = typer.Option(
        None,
        "-a",
        "--also-run",
        help="Command that will be run for the entire duration of the program",
        envvar="WATCHRUN_ALSO_RUN",
    ),
    debug: bool = typer.Option(
        False,
        "--debug",
        help="Include debug information to view how a command is interpreted",
    ),
    use_polling: Optional[bool] = typer.Option(
        None,
        "--poll/--no-poll",
        help="Force polling observer (auto if under /mnt)",
        envvar="WATCHRUN_POLL",
    ),
    loglevel: str = typer.Option(
        "INFO",
        "--loglevel",
        help="Logging level: DEBUG, INFO, WARNING, ERROR",
        envvar="WATCHRUN_LOGLEVEL",
    ),
):
    """Watch FILENAME and run COMMAND every time it is written.

    In COMMAND and --also-run, {} is replaced by FILENAME; {{ and }} produce
    literal braces. The first failing run of COMMAND stops the watcher.
    """
    level = logging.DEBUG if debug else getattr(logging, loglevel.upper(), logging.INFO)
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s %(message)s",
        stream=sys.stdout,
    )

    if not math.isfinite(delay) or delay <= 0:
        raise typer.BadParameter(
            "must be a finite number greater than 0", param_hint="'--delay'"
        )

    command_text = substitute_template(command, filename)
    try:
        primary = resolve_command(command, filename)
    except ValueError as e:
        raise typer.BadParameter(str(e), param_hint="'COMMAND'")

    companion = None
    if also_run is not None:
        try:
            companion = resolve_command(also_run, filename)
        except ValueError as e:
            raise typer.BadParameter(str(e), param_hint="'--also-run'")

    watch_path = Path(filename)
    if use_polling is None:
        use_polling = prefers_polling(watch_path.expanduser().absolute())

    config = WatchConfig(
        watch_path=watch_path,
        primary_command=primary,
        command_text=command_text,
        delay=delay,
        show_output=show_output,
        debug=debug,
        companion_command=companion,
        use_polling=use_polling,
    )

    try:
        code = watch(config)
    except WatchrunError as e:
        logging.error(f"error: {e}")
        raise typer.Exit(code=EXIT_COMMAND_FAILED)

    raise typer.Exit(code=code)


if __name__ == "__main__":
    app()
