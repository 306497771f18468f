# ABOUTME: The `folio inspect` command for checking a built EPUB.
# ABOUTME: Shows what a reading system sees in a single EPUB file.

from pathlib import Path

import click
from rich.console import Console
from rich.table import Table

from folio.formats.epub import EpubReadError, read_epub_summary

console = Console()


@click.command()
@click.argument("path", type=click.Path(exists=True, path_type=Path))
def inspect(path: Path) -> None:
    """Show metadata and structure read back from an EPUB file."""
    try:
        summary = read_epub_summary(path)
    except EpubReadError as exc:
        console.print(f"[red]Error:[/red] {exc}")
        raise SystemExit(1) from exc

    table = Table(title=str(path.name), show_header=False, pad_edge=False)
    table.add_column("Field", style="bold")
    table.add_column("Value")

    table.add_row("Title", summary.title)
    table.add_row("Creators", summary.creator or "[dim]unknown[/dim]")
    table.add_row("Language", summary.language or "[dim]unknown[/dim]")
    table.add_row("Identifier", summary.identifier or "[dim]none[/dim]")
    table.add_row("Pages", str(summary.spine_length))
    table.add_row("Cover", "yes" if summary.has_cover else "no")

    console.print(table)
