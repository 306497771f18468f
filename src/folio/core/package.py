# ABOUTME: Document model builder: assembles the validated package graph for a book.
# ABOUTME: Owns the manifest arena and the ID-only spine and navigation views into it.

import logging
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from pathlib import Path

from folio.core.resolver import ResolvedChapter, Resource
from folio.errors import PackageValidationError
from folio.formats.images import extension_for
from folio.model.ids import IdAllocator
from folio.model.types import Book, Layout

logger = logging.getLogger(__name__)

XHTML_MEDIA_TYPE = "application/xhtml+xml"
CSS_MEDIA_TYPE = "text/css"

NAV_ID = "toc"
NAV_HREF = "navigation-documents.xhtml"
DEFAULT_STYLE_ID = "s-default"
DEFAULT_STYLE_HREF = "style/default.css"

# Full-bleed page: no margins, the SVG wrapper fills the viewport.
DEFAULT_CSS = """\
@charset "UTF-8";

html,
body {
  margin: 0;
  padding: 0;
  width: 100%;
  height: 100%;
}

div.main {
  margin: 0;
  padding: 0;
  width: 100%;
  height: 100%;
  text-align: center;
}

svg {
  margin: 0;
  padding: 0;
  display: block;
}
"""


class DuplicateIdError(RuntimeError):
    """Raised when two manifest items share an ID.

    ID allocation guarantees uniqueness, so this indicates a builder defect
    rather than bad input.
    """


class ItemKind(str, Enum):
    NAV = "nav"
    STYLE = "style"
    IMAGE = "image"
    PAGE = "page"


@dataclass(frozen=True)
class ManifestItem:
    """One file of the package, keyed by ``id`` in the manifest arena.

    ``href`` is relative to the package document. Exactly one of ``source``
    (a file to copy), ``content`` (inline bytes) or ``resource`` (a page to
    render) is set, except for the navigation document which is rendered
    from the package itself.
    """

    id: str
    href: str
    media_type: str
    kind: ItemKind
    properties: str | None = None
    source: Path | None = None
    content: bytes | None = None
    resource: Resource | None = None


@dataclass(frozen=True)
class ItemRef:
    idref: str
    linear: bool = True
    properties: str | None = None


@dataclass(frozen=True)
class NavPoint:
    label: str
    idref: str


@dataclass(frozen=True)
class Package:
    """The complete, validated package graph for one build.

    ``manifest`` is the single arena of items; ``spine``, ``toc`` and
    ``styles`` only hold IDs into it.
    """

    book: Book
    chapters: tuple[ResolvedChapter, ...]
    manifest: dict[str, ManifestItem]
    spine: tuple[ItemRef, ...]
    toc: tuple[NavPoint, ...]
    styles: tuple[str, ...]
    modified: datetime
    cover_image_id: str = ""
    cover_page_id: str = ""

    @property
    def title(self) -> str:
        return self.book.metadata.title

    @property
    def pre_paginated(self) -> bool:
        return self.book.rendition.layout is Layout.PRE_PAGINATED

    def item(self, item_id: str) -> ManifestItem:
        return self.manifest[item_id]

    def items(self, kind: ItemKind) -> list[ManifestItem]:
        return [item for item in self.manifest.values() if item.kind is kind]


def check_book(book: Book) -> None:
    """Structural checks that need no file access.

    Raises:
        PackageValidationError: If the book has no chapters or a chapter has
            no pages.
    """
    if not book.chapters:
        raise PackageValidationError(
            "book has no pages: `chapter` must contain at least one chapter with pages"
        )
    for index, chapter in enumerate(book.chapters):
        if not chapter.pages:
            label = f" ({chapter.name})" if chapter.name else ""
            raise PackageValidationError(f"chapter[{index}]{label} has no pages")


class _ManifestBuilder:
    """Insertion-ordered manifest arena that refuses duplicate IDs."""

    def __init__(self) -> None:
        self.items: dict[str, ManifestItem] = {}

    def add(self, item: ManifestItem) -> str:
        if item.id in self.items:
            msg = f"duplicate manifest id {item.id!r}"
            raise DuplicateIdError(msg)
        self.items[item.id] = item
        return item.id


def _build_styles(book: Book, manifest: _ManifestBuilder) -> list[str]:
    """Add stylesheets to the manifest and return the IDs pages should link."""
    if not book.rendition.styles:
        logger.info("building default style")
        manifest.add(
            ManifestItem(
                id=DEFAULT_STYLE_ID,
                href=DEFAULT_STYLE_HREF,
                media_type=CSS_MEDIA_TYPE,
                kind=ItemKind.STYLE,
                content=DEFAULT_CSS.encode("utf-8"),
            )
        )
        return [DEFAULT_STYLE_ID]

    logger.info("building style")
    ids = IdAllocator()
    linked = []
    for style in book.rendition.styles:
        style_id = manifest.add(
            ManifestItem(
                id=ids.next("s"),
                href=f"style/{style.href}",
                media_type=CSS_MEDIA_TYPE,
                kind=ItemKind.STYLE,
                content=style.src.encode("utf-8"),
            )
        )
        if style.link:
            linked.append(style_id)
    return linked


def _build_resource(resource: Resource, manifest: _ManifestBuilder) -> ItemRef:
    manifest.add(
        ManifestItem(
            id=resource.image_id,
            href=f"image/{resource.image_id}{extension_for(resource.info.media_type)}",
            media_type=resource.info.media_type,
            kind=ItemKind.IMAGE,
            properties="cover-image" if resource.cover else None,
            source=resource.source,
        )
    )
    manifest.add(
        ManifestItem(
            id=resource.page_id,
            href=f"xhtml/{resource.page_id}.xhtml",
            media_type=XHTML_MEDIA_TYPE,
            kind=ItemKind.PAGE,
            properties="svg",
            resource=resource,
        )
    )
    properties = f"rendition:page-spread-{resource.spread.value}" if resource.spread else None
    return ItemRef(idref=resource.page_id, properties=properties)


def build_package(
    book: Book, chapters: Sequence[ResolvedChapter], modified: datetime
) -> Package:
    """Combine a normalized book and its resolved chapters into a Package.

    The manifest lists the navigation document, the stylesheets, then each
    page's image followed by its wrapper document. The spine is the wrapper
    documents in declaration order. Each named chapter contributes one
    navigation entry pointing at its first page.

    Args:
        book: Normalized book description.
        chapters: Output of resolve_chapters for the same book.
        modified: Timestamp recorded as ``dcterms:modified``.

    Raises:
        PackageValidationError: If the result violates a structural rule.
    """
    check_book(book)

    manifest = _ManifestBuilder()
    manifest.add(
        ManifestItem(
            id=NAV_ID,
            href=NAV_HREF,
            media_type=XHTML_MEDIA_TYPE,
            kind=ItemKind.NAV,
            properties="nav",
        )
    )
    styles = _build_styles(book, manifest)

    spine: list[ItemRef] = []
    toc: list[NavPoint] = []
    cover_image_id = ""
    cover_page_id = ""
    for chapter in chapters:
        logger.info("building chapter %s", chapter.name or "(untitled)")
        for index, resource in enumerate(chapter.resources):
            spine.append(_build_resource(resource, manifest))
            if index == 0 and chapter.name:
                toc.append(NavPoint(label=chapter.name, idref=resource.page_id))
            if resource.cover:
                cover_image_id = resource.image_id
                cover_page_id = resource.page_id

    if not toc and spine:
        # A nav document needs at least one entry.
        toc.append(NavPoint(label=book.metadata.title, idref=spine[0].idref))

    package = Package(
        book=book,
        chapters=tuple(chapters),
        manifest=manifest.items,
        spine=tuple(spine),
        toc=tuple(toc),
        styles=tuple(styles),
        modified=modified,
        cover_image_id=cover_image_id,
        cover_page_id=cover_page_id,
    )
    validate_package(package)
    return package


def validate_package(package: Package) -> None:
    """Check the referential invariants of a package.

    Every spine, navigation, style and cover reference must resolve in the
    manifest, exactly one image must carry ``cover-image``, and no two
    items may share an href.

    Raises:
        PackageValidationError: Listing the first violated rule.
    """
    manifest = package.manifest

    if not package.spine:
        raise PackageValidationError("book has no pages: the spine is empty")

    if NAV_ID not in manifest or manifest[NAV_ID].kind is not ItemKind.NAV:
        raise PackageValidationError("navigation document is missing from the manifest")

    dangling = [ref.idref for ref in package.spine if ref.idref not in manifest]
    dangling += [point.idref for point in package.toc if point.idref not in manifest]
    dangling += [style_id for style_id in package.styles if style_id not in manifest]
    if dangling:
        raise PackageValidationError(f"unresolved manifest references: {', '.join(dangling)}")

    not_pages = [ref.idref for ref in package.spine if manifest[ref.idref].kind is not ItemKind.PAGE]
    if not_pages:
        raise PackageValidationError(f"spine entries are not page documents: {', '.join(not_pages)}")

    covers = [
        item.id
        for item in manifest.values()
        if item.properties and "cover-image" in item.properties.split()
    ]
    if len(covers) != 1:
        raise PackageValidationError(f"expected exactly one cover image, found {len(covers)}")
    if covers[0] != package.cover_image_id or package.cover_page_id not in manifest:
        raise PackageValidationError("cover image and cover page do not resolve")

    seen: dict[str, str] = {}
    for item in manifest.values():
        if item.href in seen:
            raise PackageValidationError(
                f"items {seen[item.href]!r} and {item.id!r} share the path {item.href}"
            )
        seen[item.href] = item.id
