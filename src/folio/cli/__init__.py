# ABOUTME: CLI package for folio, built on Click.
# ABOUTME: Defines the root command group, logging setup and subcommand registration.

import logging

import click
from rich.logging import RichHandler

from folio.cli.commands import build_cmd, completion_cmd, inspect_cmd, new_cmd
from folio.cli.options import verbose_option

_LEVELS = {0: logging.WARNING, 1: logging.INFO}


def configure_logging(verbosity: int) -> None:
    """Route log records through rich; -v shows progress, -vv per-page detail."""
    logging.basicConfig(
        level=_LEVELS.get(verbosity, logging.DEBUG),
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(show_path=False, rich_tracebacks=True)],
        force=True,
    )


@click.group()
@click.version_option(package_name="folio")
@verbose_option
def cli(verbose: int) -> None:
    """folio - build fixed-layout EPUB comics and picture books from page images."""
    configure_logging(verbose)


cli.add_command(new_cmd.new)
cli.add_command(build_cmd.build)
cli.add_command(inspect_cmd.inspect)
cli.add_command(completion_cmd.completion)
