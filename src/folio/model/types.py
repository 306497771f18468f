# ABOUTME: Canonical data structures for a book description after normalization.
# ABOUTME: Book, metadata entries, rendition settings, chapters, and pages.

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path


class TitleType(str, Enum):
    MAIN = "main"
    SUBTITLE = "subtitle"
    SHORT = "short"
    COLLECTION = "collection"
    EDITION = "edition"
    EXPANDED = "expanded"


class CollectionType(str, Enum):
    SERIES = "series"
    SET = "set"


class Direction(str, Enum):
    RTL = "rtl"
    LTR = "ltr"


class Layout(str, Enum):
    REFLOWABLE = "reflowable"
    PRE_PAGINATED = "pre-paginated"


class Orientation(str, Enum):
    LANDSCAPE = "landscape"
    PORTRAIT = "portrait"
    AUTO = "auto"


class Spread(str, Enum):
    NONE = "none"
    LANDSCAPE = "landscape"
    BOTH = "both"
    AUTO = "auto"


class PageSpread(str, Enum):
    """Placement of a single page within a two-page spread."""

    LEFT = "left"
    RIGHT = "right"
    CENTER = "center"


@dataclass(frozen=True)
class Title:
    name: str
    type: TitleType = TitleType.MAIN
    alternate_script: str | None = None
    file_as: str | None = None


@dataclass(frozen=True)
class Creator:
    """A creator or contributor. ``role`` is a MARC relator code such as ``aut``."""

    name: str
    role: str | None = None
    alternate_script: str | None = None
    file_as: str | None = None


@dataclass(frozen=True)
class Collection:
    name: str
    type: CollectionType = CollectionType.SERIES
    position: int | None = None


@dataclass(frozen=True)
class BookMetadata:
    """Fully-typed book metadata.

    Every multi-valued field is an ordered tuple of structured entries, no
    matter which shorthand the description used. Order is significant: the
    first ``main`` title is the primary title and the first creator is the
    primary author.
    """

    titles: tuple[Title, ...]
    language: str
    identifier: str
    creators: tuple[Creator, ...] = ()
    contributors: tuple[Creator, ...] = ()
    collections: tuple[Collection, ...] = ()

    @property
    def title(self) -> str:
        """The primary title: first ``main`` title, else the first title."""
        for title in self.titles:
            if title.type is TitleType.MAIN:
                return title.name
        return self.titles[0].name if self.titles else ""

    @property
    def author(self) -> str | None:
        """Name of the primary author, if any creator is declared."""
        return self.creators[0].name if self.creators else None

    @property
    def series(self) -> tuple[Collection, ...]:
        return tuple(c for c in self.collections if c.type is CollectionType.SERIES)

    @property
    def sets(self) -> tuple[Collection, ...]:
        return tuple(c for c in self.collections if c.type is CollectionType.SET)


@dataclass(frozen=True)
class Style:
    """A stylesheet packaged with the book.

    ``src`` holds the CSS text, ``href`` is the file name inside the style
    folder, and ``link`` controls whether generated pages reference it.
    """

    href: str
    src: str
    link: bool = False


@dataclass(frozen=True)
class Rendition:
    direction: Direction = Direction.RTL
    layout: Layout = Layout.PRE_PAGINATED
    orientation: Orientation = Orientation.AUTO
    spread: Spread = Spread.AUTO
    styles: tuple[Style, ...] = ()


@dataclass(frozen=True)
class Page:
    src: Path
    cover: bool = False
    spread: PageSpread | None = None


@dataclass(frozen=True)
class Chapter:
    pages: tuple[Page, ...]
    name: str | None = None
    cover: bool = False


@dataclass(frozen=True)
class Book:
    """A complete, normalized book description."""

    metadata: BookMetadata
    chapters: tuple[Chapter, ...]
    rendition: Rendition = field(default_factory=Rendition)

    @property
    def pages(self) -> tuple[Page, ...]:
        """All pages in declaration order."""
        return tuple(page for chapter in self.chapters for page in chapter.pages)
