# ABOUTME: Project file handling: locating, loading and scaffolding folio.yaml.
# ABOUTME: YAML is read with safe_load and written in the same shorthand users type.

import logging
import os
from collections.abc import Sequence
from pathlib import Path
from typing import Any

import yaml

from folio.errors import FolioError
from folio.model.ids import new_identifier
from folio.model.normalizer import DescriptionError, describe_book
from folio.model.types import (
    Book,
    BookMetadata,
    Chapter,
    Creator,
    Orientation,
    Page,
    Rendition,
    Title,
)

logger = logging.getLogger(__name__)

PROJECT_FILE = "folio.yaml"
COVER_CHAPTER_NAME = "表紙"
AUTHOR_ROLE = "aut"
DEFAULT_LANGUAGE = "ja"


class ProjectNotFoundError(FolioError):
    """Raised when no project file exists in a directory or any of its parents."""


def find_project(start: Path | None = None) -> Path:
    """Walk from start (default: the working directory) up to the filesystem root.

    Returns:
        Path to the first folio.yaml found.

    Raises:
        ProjectNotFoundError: If no directory on the way contains one.
    """
    origin = (start or Path.cwd()).resolve()
    for directory in (origin, *origin.parents):
        candidate = directory / PROJECT_FILE
        if candidate.is_file():
            logger.debug("found project file %s", candidate)
            return candidate
    raise ProjectNotFoundError(
        f"could not find `{PROJECT_FILE}` in `{origin}` or any parent directory"
    )


def load_description(path: Path) -> Any:
    """Parse a project file into its raw, un-normalized structure.

    Raises:
        DescriptionError: If the file cannot be read or is not valid YAML.
    """
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise DescriptionError("", f"cannot read {path}: {exc}") from exc

    try:
        return yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise DescriptionError("", f"{path.name} is not valid YAML: {exc}") from exc


def default_language() -> str:
    """Language subtag from LANG (``ja_JP.UTF-8`` gives ``ja``)."""
    lang = os.environ.get("LANG", "")
    subtag = lang.split("_")[0].split(".")[0]
    if not subtag or subtag in ("C", "POSIX"):
        return DEFAULT_LANGUAGE
    return subtag


def create_chapters(files: Sequence[Path], title: str) -> tuple[Chapter, ...]:
    """Lay out pages for a new project.

    The first file becomes a cover chapter of its own. The remaining files
    form one chapter named after the book. With no files at all a single
    empty chapter is left for the user to fill in.
    """
    pages = [Page(src=Path(f)) for f in files]
    if not pages:
        return (Chapter(pages=(), name=title),)

    chapters = [Chapter(pages=(pages[0],), name=COVER_CHAPTER_NAME, cover=True)]
    if len(pages) > 1:
        chapters.append(Chapter(pages=tuple(pages[1:]), name=title))
    return tuple(chapters)


def scaffold_book(
    files: Sequence[Path],
    title: str | None = None,
    author: str | None = None,
    identifier: str | None = None,
    directory: Path | None = None,
) -> Book:
    """Build the starting description for ``folio new``."""
    name = title or (directory or Path.cwd()).resolve().name
    creators = (Creator(name=author, role=AUTHOR_ROLE),) if author else ()
    metadata = BookMetadata(
        titles=(Title(name=name),),
        language=default_language(),
        identifier=identifier or new_identifier(),
        creators=creators,
    )
    return Book(
        metadata=metadata,
        chapters=create_chapters(files, name),
        rendition=Rendition(orientation=Orientation.PORTRAIT),
    )


def write_description(book: Book, path: Path, *, force: bool = False) -> Path:
    """Write a book description as YAML.

    Raises:
        FileExistsError: If path exists and force is not set.
    """
    if path.exists() and not force:
        raise FileExistsError(f"{path} already exists (use --force to overwrite)")

    text = yaml.safe_dump(describe_book(book), allow_unicode=True, sort_keys=False)
    path.write_text(text, encoding="utf-8")
    logger.info("wrote %s", path)
    return path
