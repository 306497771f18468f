# ABOUTME: The `folio build` command for producing the EPUB archive.
# ABOUTME: Locates the project file, runs the build pipeline and reports the result.

from pathlib import Path

import click
from rich.console import Console

from folio.cli.options import workers_option
from folio.core.pipeline import build_book
from folio.core.project import find_project
from folio.errors import FolioError

console = Console()


@click.command()
@click.option(
    "-o",
    "--output",
    type=click.Path(path_type=Path),
    default=None,
    help="Output file or directory (default: next to the project file).",
)
@workers_option
def build(output: Path | None, workers: int) -> None:
    """Build an EPUB from the nearest project file."""
    try:
        project_file = find_project()
        result = build_book(project_file, output, workers=workers)
    except FolioError as exc:
        console.print(f"[red]Error:[/red] {exc}")
        raise SystemExit(1) from exc

    pages = len(result.package.spine)
    console.print(f"[green]Built[/green] {result.path} ({pages} page(s), verified)")
