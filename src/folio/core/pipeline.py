# ABOUTME: Build pipeline: project file in, verified EPUB archive out.
# ABOUTME: Runs normalize, resolve, build, plan and write; reads the archive back before promoting it.

import logging
import os
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path

from folio.core.archive import write_archive
from folio.core.package import Package, build_package, check_book
from folio.core.project import load_description
from folio.core.resolver import DEFAULT_WORKERS, resolve_chapters
from folio.errors import FolioError
from folio.formats.epub import EpubReadError, plan_archive, read_epub_summary
from folio.formats.images import ImageProbe, PillowImageProbe
from folio.model.ids import sanitize_filename
from folio.model.normalizer import normalize_description
from folio.model.types import Book

logger = logging.getLogger(__name__)

EPUB_SUFFIX = ".epub"
SOURCE_DATE_EPOCH = "SOURCE_DATE_EPOCH"


class VerificationError(FolioError):
    """Raised when a written archive does not read back as what was built."""


@dataclass
class FieldVerification:
    """Result of verifying a single field after the archive was written."""

    field: str
    expected: str | None
    actual: str | None
    passed: bool


@dataclass
class BuildResult:
    """Result of a build with its verification details."""

    path: Path
    package: Package
    verified_fields: list[FieldVerification] = field(default_factory=list)

    @property
    def verified(self) -> bool:
        return all(v.passed for v in self.verified_fields)


def build_timestamp(inputs: list[Path]) -> datetime:
    """The modification time recorded in the package, in UTC, to the second.

    ``SOURCE_DATE_EPOCH`` wins when set to a usable integer. Otherwise the newest
    mtime among the inputs is used, so unchanged inputs rebuild to the same
    bytes.
    """
    epoch = os.environ.get(SOURCE_DATE_EPOCH)
    if epoch:
        try:
            return datetime.fromtimestamp(int(epoch), tz=timezone.utc)
        except (ValueError, OverflowError, OSError):
            logger.warning("ignoring unusable %s=%r", SOURCE_DATE_EPOCH, epoch)

    mtimes = [p.stat().st_mtime for p in inputs if p.exists()]
    seconds = int(max(mtimes)) if mtimes else 0
    return datetime.fromtimestamp(seconds, tz=timezone.utc)


def output_path(book: Book, project_dir: Path, output: Path | None = None) -> Path:
    """Where the archive goes.

    With no output, ``<title>.epub`` beside the project file. An output that
    is a directory, or has no ``.epub`` suffix, is treated as a directory.
    """
    filename = f"{sanitize_filename(book.metadata.title)}{EPUB_SUFFIX}"
    if output is None:
        return project_dir / filename
    if output.is_dir() or output.suffix.lower() != EPUB_SUFFIX:
        return output / filename
    return output


def _same(expected: str, actual: str | None) -> bool:
    """Compare a declared value with what ebooklib reads back.

    ebooklib strips surrounding whitespace from metadata text.
    """
    return actual is not None and expected.strip() == actual


def _verify_build(archive: Path, package: Package) -> list[FieldVerification]:
    """Read back the archive and compare it against the package."""
    read_back = read_epub_summary(archive)
    metadata = package.book.metadata
    # Reading systems report the first dc:title.
    first_title = metadata.titles[0].name
    verifications = [
        FieldVerification(
            field="title",
            expected=first_title,
            actual=read_back.title,
            passed=_same(first_title, read_back.title),
        ),
        FieldVerification(
            field="language",
            expected=metadata.language,
            actual=read_back.language,
            passed=read_back.language is not None
            and _same(metadata.language.lower(), read_back.language.lower()),
        ),
        FieldVerification(
            field="identifier",
            expected=metadata.identifier,
            actual=read_back.identifier,
            passed=_same(metadata.identifier, read_back.identifier),
        ),
        FieldVerification(
            field="spine",
            expected=str(len(package.spine)),
            actual=str(read_back.spine_length),
            passed=len(package.spine) == read_back.spine_length,
        ),
    ]

    if metadata.creators:
        expected = ", ".join(c.name.strip() for c in metadata.creators)
        verifications.append(FieldVerification(
            field="creators",
            expected=expected,
            actual=read_back.creator,
            passed=expected == read_back.creator,
        ))

    return verifications


def package_book(
    book: Book,
    root: Path,
    modified: datetime,
    *,
    probe: ImageProbe | None = None,
    workers: int = DEFAULT_WORKERS,
) -> Package:
    """Turn a normalized book into a validated package, probing its images."""
    check_book(book)
    chapters = resolve_chapters(
        book.chapters,
        root,
        probe or PillowImageProbe(),
        orientation=book.rendition.orientation,
        workers=workers,
    )
    return build_package(book, chapters, modified)


def build_book(
    project_file: Path,
    output: Path | None = None,
    *,
    probe: ImageProbe | None = None,
    workers: int = DEFAULT_WORKERS,
    verify: bool = True,
) -> BuildResult:
    """Build the EPUB described by a project file.

    The description is never modified. Nothing is written unless the whole
    package validates; the archive is verified while still a temporary file
    and only then moved into place, so a failed build leaves dest untouched.

    Args:
        project_file: Path to folio.yaml.
        output: Output file or directory (default: beside the project file).
        probe: Image probe to use (default: Pillow).
        workers: Size of the image probing pool.
        verify: Read the archive back and compare it with the package.

    Returns:
        BuildResult with the written path and verification details.

    Raises:
        FolioError: Any description, resolution, validation, write or
            verification failure.
    """
    root = project_file.parent
    book = normalize_description(load_description(project_file))
    logger.info("building %s", book.metadata.title)

    modified = build_timestamp([project_file, *(root / page.src for page in book.pages)])
    package = package_book(book, root, modified, probe=probe, workers=workers)

    dest = output_path(book, root, output)
    result = BuildResult(path=dest, package=package)

    def check(archive: Path) -> None:
        try:
            result.verified_fields = _verify_build(archive, package)
        except EpubReadError as exc:
            raise VerificationError(f"{dest} cannot be read back: {exc}") from exc
        if not result.verified:
            failed = [v.field for v in result.verified_fields if not v.passed]
            raise VerificationError(f"Verification failed for: {', '.join(failed)}")

    write_archive(plan_archive(package), dest, modified, check=check if verify else None)
    return result
