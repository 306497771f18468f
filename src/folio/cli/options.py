# ABOUTME: Shared Click options for folio CLI commands.
# ABOUTME: Provides reusable decorators for common flags like --workers and -v.

import click

from folio.core.resolver import DEFAULT_WORKERS

verbose_option = click.option(
    "-v",
    "--verbose",
    count=True,
    help="Show progress (-v) or per-page detail (-vv).",
)

workers_option = click.option(
    "--workers",
    type=click.IntRange(min=1),
    default=DEFAULT_WORKERS,
    show_default=True,
    help="Number of threads used to read image headers.",
)
