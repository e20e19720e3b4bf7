"""Typer application and CLI entry point for svcconfig.

This module wires together the top-level Typer application and registers
the built-in commands (``convert``, ``normalize``, ``descriptor``,
``inspect``, ``config``).

The :func:`main` function is the console-script entry point declared in
``pyproject.toml``. It installs signal handlers and invokes the Typer app.
Unhandled exceptions are written to a crash log under the data directory.

See Also:
    :mod:`svcconfig.config`: Settings resolution.
    :mod:`svcconfig.output`: Output formatting initialised in :func:`main_callback`.
"""

from __future__ import annotations

import logging
import signal
import sys
import traceback
from datetime import datetime
from typing import Any, Optional

import typer

from svcconfig import __version__
from svcconfig.commands.config import config_app
from svcconfig.commands.convert import convert_command
from svcconfig.commands.inspect import inspect_app
from svcconfig.commands.normalize import descriptor_command, normalize_command
from svcconfig.exit_codes import EXIT_GENERIC_FAILURE


app = typer.Typer(
    name="svcconfig",
    help="Build normalized service configurations from OpenAPI documents and YAML configs.",
    no_args_is_help=True,
    add_completion=True,
    rich_markup_mode="rich",
)


def _version_callback(value: bool) -> None:
    """Print version and exit when --version is passed."""
    if value:
        typer.echo(f"svcconfig {__version__}")
        raise typer.Exit()


@app.callback()
def main_callback(
    version: bool = typer.Option(
        False,
        "--version",
        callback=_version_callback,
        is_eager=True,
        help="Show version and exit.",
    ),
    json_output: bool = typer.Option(
        False, "--json", help="JSON table output."
    ),
    plain_output: bool = typer.Option(
        False, "--plain", help="Plain text table output."
    ),
    no_color: bool = typer.Option(
        False, "--no-color", help="Disable color output."
    ),
    quiet: bool = typer.Option(
        False, "--quiet", "-q", help="Suppress warnings and status messages."
    ),
    verbose: bool = typer.Option(
        False, "--verbose", "-v", help="Enable debug output."
    ),
    output_file: Optional[str] = typer.Option(
        None, "-o", "--output", help="Write the emitted document to this path."
    ),
) -> None:
    """Root callback executed before every sub-command.

    Initialises the global :class:`~svcconfig.output.OutputManager` and the
    logging level from CLI flags.

    Args:
        version: If ``True``, print the version string and exit.
        json_output: Print tables as JSON.
        plain_output: Print tables as tab-separated text.
        no_color: Disable all colour and Rich markup.
        quiet: Suppress warnings diags and status messages.
        verbose: Enable debug messages and debug logging.
        output_file: Redirect the emitted document to a file path.
    """
    from svcconfig.output import OutputFormat, OutputManager, set_output

    fmt = OutputFormat.AUTO
    if json_output:
        fmt = OutputFormat.JSON
    elif plain_output:
        fmt = OutputFormat.PLAIN

    set_output(
        OutputManager(
            format=fmt,
            no_color=no_color,
            quiet=quiet,
            verbose=verbose,
            output_file=output_file,
        )
    )
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
        force=True,
    )


app.command("convert")(convert_command)
app.command("normalize")(normalize_command)
app.command("descriptor")(descriptor_command)
app.add_typer(inspect_app, name="inspect", help="Inspect what an import synthesizes.")
app.add_typer(config_app, name="config", help="User settings management.")


def _setup_signal_handlers() -> None:
    """Install a SIGINT handler so Ctrl-C exits cleanly."""

    def _handler(signum: int, frame: Any) -> None:  # noqa: ANN401
        sys.stderr.write("\nCancelled.\n")
        sys.exit(130)

    signal.signal(signal.SIGINT, _handler)


def _write_crash_log(exc: Exception) -> str:
    """Write a crash traceback to disk and return the log file path."""
    from svcconfig.config import get_data_dir

    logs_dir = get_data_dir() / "logs"
    logs_dir.mkdir(parents=True, exist_ok=True)
    timestamp = datetime.now().strftime("%Y%m%d-%H%M%S")
    log_path = logs_dir / f"crash-{timestamp}.log"
    log_path.write_text(
        "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))
    )
    return str(log_path)


def main() -> None:
    """CLI entry point invoked by the ``svcconfig`` console script.

    Unhandled :class:`~svcconfig.exceptions.SvcConfigError` instances
    cause a clean exit with the error's ``exit_code``. All other exceptions
    produce a crash log and a generic failure exit.

    Raises:
        SystemExit: Always raised (either by Typer or explicitly).
    """
    _setup_signal_handlers()
    try:
        app()
    except SystemExit:
        raise
    except KeyboardInterrupt:
        sys.stderr.write("\nCancelled.\n")
        sys.exit(130)
    except Exception as exc:
        from svcconfig.exceptions import SvcConfigError
        from svcconfig.output import error

        if isinstance(exc, SvcConfigError):
            error(str(exc))
            sys.exit(exc.exit_code)
        else:
            log_path = _write_crash_log(exc)
            error(f"Unexpected error. Debug log: {log_path}")
            sys.exit(EXIT_GENERIC_FAILURE)
