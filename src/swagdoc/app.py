"""Typer application and CLI entry point for swagdoc.

Registers the built-in commands (``init`` with its ``generate`` alias, and
the ``inspect`` group) on the root application. :func:`main` is the
console-script entry point declared in ``pyproject.toml``: it maps
:class:`~swagdoc.exceptions.SwagdocError` to its exit code after printing
the warnings the run collected, and writes a crash log under the data
directory for anything unexpected.
"""

from __future__ import annotations

import logging
import signal
import sys
import traceback
from datetime import datetime
from typing import Any

import typer
from rich.console import Console
from rich.logging import RichHandler

from swagdoc import __version__
from swagdoc.exit_codes import EXIT_GENERIC_FAILURE


app = typer.Typer(
    name="swagdoc",
    help="Generate OpenAPI 3.0/3.1 documents from annotated Go source comments.",
    no_args_is_help=True,
    add_completion=False,
    rich_markup_mode="rich",
)


def _version_callback(value: bool) -> None:
    """Print version and exit when --version is passed."""
    if value:
        typer.echo(f"swagdoc {__version__}")
        raise typer.Exit()


def configure_logging(verbose: bool, no_color: bool) -> None:
    """Send library logging to stderr through Rich: WARNING, or DEBUG with ``--verbose``."""
    handler = RichHandler(
        console=Console(stderr=True, no_color=no_color),
        show_path=False,
        markup=False,
    )
    root = logging.getLogger()
    for existing in list(root.handlers):
        if isinstance(existing, RichHandler):
            root.removeHandler(existing)
    root.addHandler(handler)
    root.setLevel(logging.DEBUG if verbose else logging.WARNING)


@app.callback()
def main_callback(
    ctx: typer.Context,
    version: bool = typer.Option(
        False,
        "--version",
        callback=_version_callback,
        is_eager=True,
        help="Show version and exit.",
    ),
    json_output: bool = typer.Option(
        False, "--json", help="JSON output format."
    ),
    plain_output: bool = typer.Option(
        False, "--plain", help="Plain text output."
    ),
    no_color: bool = typer.Option(
        False, "--no-color", help="Disable color output."
    ),
    quiet: bool = typer.Option(
        False, "--quiet", "-q", help="Suppress non-essential output."
    ),
    verbose: bool = typer.Option(
        False, "--verbose", "-v", help="Enable debug output."
    ),
) -> None:
    """Root callback executed before every sub-command.

    Installs the global :class:`~swagdoc.output.OutputManager`, configures
    logging, and records shared flags in ``ctx.obj``.
    """
    from swagdoc.exceptions import InvalidUsageError
    from swagdoc.output import OutputFormat, OutputManager, set_output

    if json_output and plain_output:
        set_output(OutputManager(no_color=no_color))
        raise typer.Exit(code=handle_error(InvalidUsageError("--json and --plain cannot be combined")))

    fmt = OutputFormat.AUTO
    if json_output:
        fmt = OutputFormat.JSON
    elif plain_output:
        fmt = OutputFormat.PLAIN

    set_output(OutputManager(format=fmt, no_color=no_color, quiet=quiet, verbose=verbose))
    configure_logging(verbose, no_color)

    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    ctx.obj["quiet"] = quiet


def _setup_signal_handlers() -> None:
    """Install a SIGINT handler so Ctrl-C exits cleanly."""

    def _handler(signum: int, frame: Any) -> None:  # noqa: ANN401
        sys.stderr.write("\nCancelled.\n")
        sys.exit(130)

    signal.signal(signal.SIGINT, _handler)


def _write_crash_log(exc: Exception) -> str:
    """Write the current traceback to ``<data_dir>/logs`` and return its path."""
    from swagdoc.config import get_data_dir

    logs_dir = get_data_dir() / "logs"
    logs_dir.mkdir(parents=True, exist_ok=True)
    timestamp = datetime.now().strftime("%Y%m%d-%H%M%S")
    log_path = logs_dir / f"crash-{timestamp}.log"
    log_path.write_text(traceback.format_exc())
    return str(log_path)


def register_commands() -> None:
    """Attach the built-in commands to :data:`app`. Safe to call twice."""
    if getattr(app, "_swagdoc_registered", False):
        return
    from swagdoc.commands.init import init_command
    from swagdoc.commands.inspect import inspect_app

    app.command("init")(init_command)
    app.command("generate", help="Alias of 'init'.")(init_command)
    app.add_typer(inspect_app, name="inspect", help="Inspect the generated document without writing it.")
    app._swagdoc_registered = True  # type: ignore[attr-defined]


def handle_error(exc: Exception) -> int:
    """Report *exc* and return the exit code for it."""
    from swagdoc.exceptions import SwagdocError
    from swagdoc.output import error, print_diagnostics

    if isinstance(exc, SwagdocError):
        print_diagnostics(exc.warnings)
        error(str(exc))
        return exc.exit_code
    log_path = _write_crash_log(exc)
    error(f"Unexpected error. Debug log: {log_path}")
    return EXIT_GENERIC_FAILURE


def main() -> None:
    """CLI entry point invoked by the ``swagdoc`` console script.

    Raises:
        SystemExit: Always raised (either by Typer or explicitly).
    """
    _setup_signal_handlers()
    try:
        register_commands()
        app(standalone_mode=True)
    except SystemExit:
        raise
    except KeyboardInterrupt:
        sys.stderr.write("\nCancelled.\n")
        sys.exit(130)
    except Exception as exc:
        sys.exit(handle_error(exc))
