# ABOUTME: Resolves declared pages into probed, ID-tagged resources.
# ABOUTME: Probes images in parallel, keeps declaration order, and picks the cover page.

import logging
from collections.abc import Sequence
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from pathlib import Path

from folio.errors import FolioError, PackageValidationError
from folio.formats.images import SUPPORTED_MEDIA_TYPES, ImageInfo, ImageProbe, ImageProbeError
from folio.model.ids import IdAllocator
from folio.model.types import Chapter, Orientation, Page, PageSpread

logger = logging.getLogger(__name__)

DEFAULT_WORKERS = 4

COVER_IMAGE_ID = "cover"
COVER_PAGE_ID = "p-cover"


class ResolutionError(FolioError):
    """Raised when a page image is missing, unreadable, or of an unsupported type.

    Attributes:
        path: The offending page path as declared in the description.
    """

    def __init__(self, path: Path, message: str) -> None:
        self.path = path
        super().__init__(message)


@dataclass(frozen=True)
class Resource:
    """A page image plus everything derived from it.

    ``image_id`` and ``page_id`` are the manifest IDs of the image itself and
    of its generated wrapper document.
    """

    page: Page
    source: Path
    info: ImageInfo
    image_id: str
    page_id: str
    cover: bool = False
    spread: PageSpread | None = None


@dataclass(frozen=True)
class ResolvedChapter:
    name: str | None
    resources: tuple[Resource, ...]


def find_cover(chapters: Sequence[Chapter]) -> tuple[int, int] | None:
    """Locate the cover as (chapter index, page index).

    An explicit flag on a page, or on a chapter (meaning its first page),
    always wins. Without any flag the first page of the first chapter is the
    cover. Returns None only when the book has no pages at all.

    Raises:
        PackageValidationError: If more than one cover flag is declared.
    """
    flagged: list[tuple[int, int]] = []
    for c_index, chapter in enumerate(chapters):
        if chapter.cover and chapter.pages:
            flagged.append((c_index, 0))
        for p_index, page in enumerate(chapter.pages):
            if page.cover:
                flagged.append((c_index, p_index))

    if len(flagged) > 1:
        where = ", ".join(f"chapter[{c}].page[{p}]" for c, p in flagged)
        raise PackageValidationError(f"only one cover may be declared, found {len(flagged)}: {where}")
    if flagged:
        return flagged[0]

    for c_index, chapter in enumerate(chapters):
        if chapter.pages:
            return c_index, 0
    return None


def _probe_page(probe: ImageProbe, root: Path, page: Page) -> ImageInfo:
    source = root / page.src
    try:
        info = probe.probe(source)
    except ImageProbeError as exc:
        raise ResolutionError(page.src, f"{page.src}: {exc}") from exc

    if info.media_type not in SUPPORTED_MEDIA_TYPES:
        supported = ", ".join(SUPPORTED_MEDIA_TYPES)
        raise ResolutionError(
            page.src,
            f"{page.src}: unsupported image type {info.media_type} (expected one of {supported})",
        )
    return info


def _check_orientation(page: Page, info: ImageInfo, orientation: Orientation) -> None:
    if orientation is Orientation.LANDSCAPE and info.is_portrait:
        logger.warning("`%s` is a portrait page", page.src)
    elif orientation is Orientation.PORTRAIT and info.is_landscape:
        logger.warning("`%s` is a landscape page", page.src)


def resolve_chapters(
    chapters: Sequence[Chapter],
    root: Path,
    probe: ImageProbe,
    *,
    orientation: Orientation = Orientation.AUTO,
    workers: int = DEFAULT_WORKERS,
) -> tuple[ResolvedChapter, ...]:
    """Probe every page and assign manifest IDs in declaration order.

    Image headers are read concurrently; ``Executor.map`` yields results in
    submission order, so the first failing page in declaration order is the
    one reported.

    Args:
        chapters: Normalized chapters.
        root: Directory page paths are relative to.
        probe: Image introspection capability.
        orientation: Book orientation, used only for mismatch warnings.
        workers: Size of the probing thread pool.

    Raises:
        ResolutionError: If any page image cannot be probed or is unsupported.
        PackageValidationError: If more than one cover is declared.
    """
    cover = find_cover(chapters)
    pages = [page for chapter in chapters for page in chapter.pages]

    with ThreadPoolExecutor(max_workers=max(1, workers)) as pool:
        infos = list(pool.map(lambda page: _probe_page(probe, root, page), pages))

    ids = IdAllocator()
    probed = iter(infos)
    resolved: list[ResolvedChapter] = []
    for c_index, chapter in enumerate(chapters):
        logger.info("resolving chapter %s", chapter.name or "(untitled)")
        resources: list[Resource] = []
        for p_index, page in enumerate(chapter.pages):
            info = next(probed)
            logger.debug("resolved %s as %s %dx%d", page.src, info.media_type, info.width, info.height)
            _check_orientation(page, info, orientation)

            is_cover = cover == (c_index, p_index)
            if is_cover:
                image_id = ids.reserve(COVER_IMAGE_ID)
                page_id = ids.reserve(COVER_PAGE_ID)
            else:
                image_id = ids.next("i")
                page_id = ids.next("p")

            spread = page.spread
            if spread is None and is_cover:
                spread = PageSpread.CENTER

            resources.append(
                Resource(
                    page=page,
                    source=root / page.src,
                    info=info,
                    image_id=image_id,
                    page_id=page_id,
                    cover=is_cover,
                    spread=spread,
                )
            )
        resolved.append(ResolvedChapter(name=chapter.name, resources=tuple(resources)))

    return tuple(resolved)
