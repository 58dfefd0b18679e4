"""The ``strapiq`` command line.

Global flags are handled by :func:`main_callback`: they pick the output
format, and ``--verbose`` routes the library's ``logging`` records to
stderr so request URLs and cache hits become visible.  The ``--config``
path is left in ``ctx.obj`` for :func:`strapiq.commands.get_client`.

:func:`main` is the console-script entry point.  A
:class:`~strapiq.exceptions.StrapiError` escaping a command is printed as
one line and turned into the error's exit code.
"""

from __future__ import annotations

import logging
import signal
import sys
from pathlib import Path
from typing import Any, Optional

import typer

from strapiq import __version__
from strapiq.commands.cache import cache_app
from strapiq.commands.config import config_app
from strapiq.commands.query import find_command, query_command, url_command
from strapiq.exceptions import StrapiError
from strapiq.exit_codes import EXIT_GENERIC_FAILURE, EXIT_INTERRUPTED
from strapiq.output import OutputFormat, OutputManager, error, use_output

logger = logging.getLogger(__name__)

app = typer.Typer(
    name="strapiq",
    help="Query Strapi collections from the command line.",
    add_completion=False,
    no_args_is_help=True,
    rich_markup_mode="rich",
)
app.command("query")(query_command)
app.command("find")(find_command)
app.command("url")(url_command)
app.add_typer(cache_app, name="cache", help="Inspect and invalidate cached responses.")
app.add_typer(config_app, name="config", help="Inspect the effective configuration.")

_LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def _print_version(requested: bool) -> None:
    if requested:
        typer.echo(f"strapiq {__version__}")
        raise typer.Exit()


def _output_format(json_output: bool, plain_output: bool) -> OutputFormat:
    if json_output:
        return OutputFormat.JSON
    if plain_output:
        return OutputFormat.PLAIN
    return OutputFormat.AUTO


@app.callback()
def main_callback(
    ctx: typer.Context,
    version: bool = typer.Option(
        False, "--version", callback=_print_version, is_eager=True, help="Show version and exit."
    ),
    config_path: Optional[Path] = typer.Option(
        None, "--config", "-c", help="JSON config file (default ./strapiq.json)."
    ),
    json_output: bool = typer.Option(False, "--json", help="Print results as JSON."),
    plain_output: bool = typer.Option(False, "--plain", help="Print results as TSV."),
    no_color: bool = typer.Option(False, "--no-color", help="Disable colour."),
    quiet: bool = typer.Option(False, "--quiet", "-q", help="Only print results and errors."),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log requests and cache use."),
) -> None:
    """Query Strapi collections from the command line."""
    use_output(
        OutputManager(
            format=_output_format(json_output, plain_output),
            no_color=no_color,
            quiet=quiet,
            verbose=verbose,
        )
    )
    if verbose:
        logging.basicConfig(level=logging.DEBUG, stream=sys.stderr, format=_LOG_FORMAT)

    obj = ctx.ensure_object(dict)
    obj["config_path"] = config_path
    obj["verbose"] = verbose


def _interrupted(signum: int, frame: Any) -> None:
    sys.stderr.write("\nInterrupted.\n")
    sys.exit(EXIT_INTERRUPTED)


def _install_interrupt_handler() -> None:
    signal.signal(signal.SIGINT, _interrupted)


def main() -> None:
    """Console-script entry point."""
    _install_interrupt_handler()
    try:
        app()
    except StrapiError as exc:
        error(str(exc))
        sys.exit(exc.exit_code)
    except Exception as exc:
        logger.debug("Unhandled error", exc_info=True)
        error(f"Unexpected error: {exc}")
        sys.exit(EXIT_GENERIC_FAILURE)
