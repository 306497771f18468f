# ABOUTME: EPUB 3 rendering of a package graph, plus read-back of built archives via ebooklib.
# ABOUTME: Produces the ordered archive entry plan; mimetype first and stored.

import logging
from dataclasses import dataclass, field
from pathlib import Path

import ebooklib
from ebooklib import epub
from lxml import etree

from folio.core.archive import ArchiveEntry
from folio.core.package import ItemKind, ManifestItem, Package
from folio.errors import FolioError
from folio.model.types import BookMetadata, Creator

logger = logging.getLogger(__name__)

MIMETYPE_PATH = "mimetype"
MIMETYPE = b"application/epub+zip"
CONTAINER_PATH = "META-INF/container.xml"
CONTENT_DIR = "item"
PACKAGE_PATH = f"{CONTENT_DIR}/standard.opf"
PACKAGE_MEDIA_TYPE = "application/oebps-package+xml"
EBPAJ_GUIDE_VERSION = "1.1.3"

CONTAINER_NS = "urn:oasis:names:tc:opendocument:xmlns:container"
OPF_NS = "http://www.idpf.org/2007/opf"
DC_NS = "http://purl.org/dc/elements/1.1/"
XHTML_NS = "http://www.w3.org/1999/xhtml"
EPUB_NS = "http://www.idpf.org/2007/ops"
SVG_NS = "http://www.w3.org/2000/svg"
XLINK_NS = "http://www.w3.org/1999/xlink"
XML_LANG = "{http://www.w3.org/XML/1998/namespace}lang"

NAV_TITLE = "Navigation"


class EpubReadError(FolioError):
    """Raised when an EPUB file cannot be read or parsed."""


def _sub(parent: etree._Element, tag: str, text: str | None = None, **attrib: str) -> etree._Element:
    element = etree.SubElement(parent, tag, attrib)
    if text is not None:
        element.text = text
    return element


def _to_bytes(root: etree._Element, doctype: str | None = None) -> bytes:
    return etree.tostring(
        etree.ElementTree(root),
        xml_declaration=True,
        encoding="utf-8",
        pretty_print=True,
        doctype=doctype,
    )


def _xhtml_root(language: str, title: str) -> tuple[etree._Element, etree._Element]:
    """Create an XHTML document root and its head, ready for content."""
    html = etree.Element(f"{{{XHTML_NS}}}html", nsmap={None: XHTML_NS, "epub": EPUB_NS})
    html.set(XML_LANG, language)
    head = _sub(html, f"{{{XHTML_NS}}}head")
    _sub(head, f"{{{XHTML_NS}}}meta", charset="UTF-8")
    _sub(head, f"{{{XHTML_NS}}}title", title)
    return html, head


def render_container() -> bytes:
    """The OCF container descriptor pointing at the package document."""
    container = etree.Element(f"{{{CONTAINER_NS}}}container", nsmap={None: CONTAINER_NS})
    container.set("version", "1.0")
    rootfiles = _sub(container, f"{{{CONTAINER_NS}}}rootfiles")
    _sub(
        rootfiles,
        f"{{{CONTAINER_NS}}}rootfile",
        **{"full-path": PACKAGE_PATH, "media-type": PACKAGE_MEDIA_TYPE},
    )
    return _to_bytes(container)


def _refine(metadata: etree._Element, refines: str, prop: str, value: str, **attrib: str) -> None:
    _sub(metadata, f"{{{OPF_NS}}}meta", value, refines=f"#{refines}", property=prop, **attrib)


def _write_people(
    metadata: etree._Element, element: str, prefix: str, people: tuple[Creator, ...]
) -> None:
    for seq, person in enumerate(people, start=1):
        ref = f"{prefix}{seq}"
        _sub(metadata, f"{{{DC_NS}}}{element}", person.name, id=ref)
        if person.role is not None:
            _refine(metadata, ref, "role", person.role, scheme="marc:relators")
        if person.alternate_script is not None:
            _refine(metadata, ref, "alternate-script", person.alternate_script)
        if person.file_as is not None:
            _refine(metadata, ref, "file-as", person.file_as)
        _refine(metadata, ref, "display-seq", str(seq))


def _write_metadata(package: Package, root: etree._Element) -> None:
    meta: BookMetadata = package.book.metadata
    rendition = package.book.rendition
    metadata = _sub(root, f"{{{OPF_NS}}}metadata")

    for seq, title in enumerate(meta.titles, start=1):
        ref = f"title{seq}"
        _sub(metadata, f"{{{DC_NS}}}title", title.name, id=ref)
        _refine(metadata, ref, "title-type", title.type.value)
        if title.alternate_script is not None:
            _refine(metadata, ref, "alternate-script", title.alternate_script)
        if title.file_as is not None:
            _refine(metadata, ref, "file-as", title.file_as)
        _refine(metadata, ref, "display-seq", str(seq))

    _write_people(metadata, "creator", "creator", meta.creators)
    _write_people(metadata, "contributor", "contributor", meta.contributors)

    for seq, collection in enumerate(meta.collections, start=1):
        ref = f"collection{seq}"
        _sub(metadata, f"{{{OPF_NS}}}meta", collection.name, property="belongs-to-collection", id=ref)
        _refine(metadata, ref, "collection-type", collection.type.value)
        if collection.position is not None:
            _refine(metadata, ref, "group-position", str(collection.position))

    _sub(metadata, f"{{{DC_NS}}}language", meta.language)
    _sub(metadata, f"{{{DC_NS}}}identifier", meta.identifier, id="unique-id")
    _sub(
        metadata,
        f"{{{OPF_NS}}}meta",
        package.modified.strftime("%Y-%m-%dT%H:%M:%SZ"),
        property="dcterms:modified",
    )
    _sub(metadata, f"{{{OPF_NS}}}meta", rendition.layout.value, property="rendition:layout")
    _sub(metadata, f"{{{OPF_NS}}}meta", rendition.orientation.value, property="rendition:orientation")
    _sub(metadata, f"{{{OPF_NS}}}meta", rendition.spread.value, property="rendition:spread")
    _sub(metadata, f"{{{OPF_NS}}}meta", EBPAJ_GUIDE_VERSION, property="ebpaj:guide-version")
    # EPUB 2 style cover pointer, still read by many reading systems.
    _sub(metadata, f"{{{OPF_NS}}}meta", name="cover", content=package.cover_image_id)


def render_package_document(package: Package) -> bytes:
    """The OPF package document: metadata, manifest and spine."""
    root = etree.Element(f"{{{OPF_NS}}}package", nsmap={None: OPF_NS, "dc": DC_NS})
    root.set("version", "3.0")
    root.set(XML_LANG, package.book.metadata.language)
    root.set("unique-identifier", "unique-id")
    root.set("prefix", "ebpaj: http://www.ebpaj.jp/")

    _write_metadata(package, root)

    manifest = _sub(root, f"{{{OPF_NS}}}manifest")
    for item in package.manifest.values():
        attrib = {"media-type": item.media_type, "id": item.id, "href": item.href}
        if item.properties:
            attrib["properties"] = item.properties
        _sub(manifest, f"{{{OPF_NS}}}item", **attrib)

    spine = _sub(
        root,
        f"{{{OPF_NS}}}spine",
        **{"page-progression-direction": package.book.rendition.direction.value},
    )
    for ref in package.spine:
        attrib = {"linear": "yes" if ref.linear else "no", "idref": ref.idref}
        if ref.properties:
            attrib["properties"] = ref.properties
        _sub(spine, f"{{{OPF_NS}}}itemref", **attrib)

    return _to_bytes(root)


def render_navigation(package: Package) -> bytes:
    """The navigation document: table of contents plus landmarks."""
    html, _ = _xhtml_root(package.book.metadata.language, NAV_TITLE)
    body = _sub(html, f"{{{XHTML_NS}}}body")

    nav = _sub(body, f"{{{XHTML_NS}}}nav", id="toc")
    nav.set(f"{{{EPUB_NS}}}type", "toc")
    _sub(nav, f"{{{XHTML_NS}}}h1", NAV_TITLE)
    ol = _sub(nav, f"{{{XHTML_NS}}}ol")
    for point in package.toc:
        li = _sub(ol, f"{{{XHTML_NS}}}li")
        _sub(li, f"{{{XHTML_NS}}}a", point.label, href=package.item(point.idref).href)

    landmarks = _sub(body, f"{{{XHTML_NS}}}nav", id="landmarks", hidden="hidden")
    landmarks.set(f"{{{EPUB_NS}}}type", "landmarks")
    ol = _sub(landmarks, f"{{{XHTML_NS}}}ol")
    body_ref = next(
        (ref.idref for ref in package.spine if ref.idref != package.cover_page_id),
        package.spine[0].idref,
    )
    for kind, label, idref in (
        ("cover", "Cover", package.cover_page_id),
        ("bodymatter", "Start of Content", body_ref),
    ):
        li = _sub(ol, f"{{{XHTML_NS}}}li")
        link = _sub(li, f"{{{XHTML_NS}}}a", label, href=package.item(idref).href)
        link.set(f"{{{EPUB_NS}}}type", kind)

    return _to_bytes(html, doctype="<!DOCTYPE html>")


def render_page(package: Package, item: ManifestItem) -> bytes:
    """A wrapper document displaying one page image full-bleed via SVG."""
    resource = item.resource
    if resource is None:
        msg = f"manifest item {item.id!r} is not a page"
        raise ValueError(msg)
    width, height = resource.info.width, resource.info.height
    image = package.item(resource.image_id)

    html, head = _xhtml_root(package.book.metadata.language, package.title)
    for style_id in package.styles:
        style = package.item(style_id)
        _sub(
            head,
            f"{{{XHTML_NS}}}link",
            rel="stylesheet",
            type=style.media_type,
            href=f"../{style.href}",
        )
    if package.pre_paginated:
        _sub(head, f"{{{XHTML_NS}}}meta", name="viewport", content=f"width={width}, height={height}")

    body = _sub(html, f"{{{XHTML_NS}}}body")
    if resource.cover:
        body.set(f"{{{EPUB_NS}}}type", "cover")
    div = _sub(body, f"{{{XHTML_NS}}}div", **{"class": "main"})

    svg = etree.SubElement(div, f"{{{SVG_NS}}}svg", nsmap={None: SVG_NS, "xlink": XLINK_NS})
    svg.set("version", "1.1")
    svg.set("width", "100%")
    svg.set("height", "100%")
    svg.set("viewBox", f"0 0 {width} {height}")
    img = _sub(svg, f"{{{SVG_NS}}}image", width=str(width), height=str(height))
    img.set(f"{{{XLINK_NS}}}href", f"../{image.href}")

    return _to_bytes(html, doctype="<!DOCTYPE html>")


def plan_archive(package: Package) -> list[ArchiveEntry]:
    """Turn a package into the ordered list of archive entries.

    Order: mimetype (stored, uncompressed), container descriptor, package
    document, then every manifest item in manifest order, which starts with
    the navigation document. Page images are referenced by source path and
    copied when the archive is written.
    """
    logger.info("planning archive for %s", package.title)
    entries = [
        ArchiveEntry(MIMETYPE_PATH, data=MIMETYPE, compress=False),
        ArchiveEntry(CONTAINER_PATH, data=render_container()),
        ArchiveEntry(PACKAGE_PATH, data=render_package_document(package)),
    ]
    for item in package.manifest.values():
        path = f"{CONTENT_DIR}/{item.href}"
        if item.kind is ItemKind.NAV:
            entries.append(ArchiveEntry(path, data=render_navigation(package)))
        elif item.kind is ItemKind.PAGE:
            entries.append(ArchiveEntry(path, data=render_page(package, item)))
        elif item.source is not None:
            entries.append(ArchiveEntry(path, source=item.source))
        else:
            entries.append(ArchiveEntry(path, data=item.content or b""))
    return entries


# Read-back of built archives.


@dataclass
class EpubSummary:
    """What a reading system sees in a built EPUB."""

    title: str
    creators: list[str] = field(default_factory=list)
    language: str | None = None
    identifier: str | None = None
    spine_length: int = 0
    has_cover: bool = False
    source_path: Path | None = None

    @property
    def creator(self) -> str:
        return ", ".join(self.creators) if self.creators else ""


def _get_metadata_value(book: epub.EpubBook, namespace: str, name: str) -> str | None:
    """Extract a single metadata value from an EpubBook, or None if missing."""
    values = book.get_metadata(namespace, name)
    if not values:
        return None
    # Metadata entries are tuples of (value, attributes)
    value = values[0][0]
    return str(value).strip() if value else None


def _get_creators(book: epub.EpubBook) -> list[str]:
    creators = book.get_metadata("DC", "creator")
    if not creators:
        return []
    return [str(entry[0]).strip() for entry in creators if entry[0]]


def _has_cover_image(book: epub.EpubBook) -> bool:
    """Whether the EPUB declares a cover image."""
    meta_entries = book.get_metadata("OPF", "cover")
    if meta_entries:
        cover_id = meta_entries[0][1].get("content")
        if cover_id and book.get_item_with_id(cover_id) is not None:
            return True
    # Fallback: an image whose id mentions the cover
    for item in book.get_items():
        if item.get_type() in (ebooklib.ITEM_IMAGE, ebooklib.ITEM_COVER):
            if "cover" in (item.get_id() or "").lower():
                return True
    return False


def read_epub_summary(path: Path) -> EpubSummary:
    """Read back the parts of an EPUB a build is expected to produce.

    Raises:
        EpubReadError: If the file does not exist or cannot be parsed.
    """
    if not path.exists():
        raise EpubReadError(f"File not found: {path}")

    try:
        book = epub.read_epub(str(path), options={"ignore_ncx": True})
    except Exception as exc:
        raise EpubReadError(f"Failed to read EPUB: {path}: {exc}") from exc

    return EpubSummary(
        title=_get_metadata_value(book, "DC", "title") or path.stem,
        creators=_get_creators(book),
        language=_get_metadata_value(book, "DC", "language"),
        identifier=_get_metadata_value(book, "DC", "identifier"),
        spine_length=len(book.spine),
        has_cover=_has_cover_image(book),
        source_path=path,
    )
