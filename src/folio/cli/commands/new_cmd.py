# ABOUTME: The `folio new` command for starting a project.
# ABOUTME: Writes folio.yaml in the current directory from a list of page files.

from pathlib import Path

import click
from rich.console import Console

from folio.core.project import PROJECT_FILE, scaffold_book, write_description

console = Console()


@click.command()
@click.argument("files", nargs=-1, type=click.Path(path_type=Path))
@click.option("-t", "--title", default=None, help="Main title of the book.")
@click.option("-a", "--author", default=None, help="Author of the book.")
@click.option(
    "-i", "--identifier", metavar="URN", default=None, help="Identifier of the book."
)
@click.option("--force", is_flag=True, default=False, help=f"Overwrite an existing {PROJECT_FILE}.")
def new(
    files: tuple[Path, ...],
    title: str | None,
    author: str | None,
    identifier: str | None,
    force: bool,
) -> None:
    """Create a project file; the first FILE becomes the cover page."""
    cwd = Path.cwd()
    book = scaffold_book(files, title=title, author=author, identifier=identifier, directory=cwd)
    try:
        path = write_description(book, cwd / PROJECT_FILE, force=force)
    except OSError as exc:
        console.print(f"[red]Error:[/red] {exc}")
        raise SystemExit(1) from exc

    console.print(
        f"[green]Created {path.name}[/green] for [bold]{book.metadata.title}[/bold] "
        f"({len(book.pages)} page(s))"
    )
