# ABOUTME: Normalization of loosely-shaped book descriptions into canonical dataclasses.
# ABOUTME: Accepts string / mapping / list shorthands and reports errors by field path.

import logging
import posixpath
from collections.abc import Callable, Mapping
from enum import Enum
from pathlib import Path
from typing import Any, TypeVar

from folio.errors import FolioError
from folio.model.ids import new_identifier
from folio.model.types import (
    Book,
    BookMetadata,
    Chapter,
    Collection,
    CollectionType,
    Creator,
    Direction,
    Layout,
    Orientation,
    Page,
    PageSpread,
    Rendition,
    Spread,
    Style,
    Title,
    TitleType,
)

logger = logging.getLogger(__name__)

E = TypeVar("E", bound=Enum)
T = TypeVar("T")

_BOOK_KEYS = ("metadata", "rendition", "chapter")
_METADATA_KEYS = ("title", "creator", "contributor", "collection", "language", "identifier")
_TITLE_KEYS = ("name", "type", "alternateScript", "fileAs")
_CREATOR_KEYS = ("name", "role", "alternateScript", "fileAs")
_COLLECTION_KEYS = ("name", "type", "position")
_RENDITION_KEYS = ("direction", "layout", "orientation", "spread", "style")
_STYLE_KEYS = ("href", "src", "link")
_CHAPTER_KEYS = ("name", "page", "cover")
_PAGE_KEYS = ("src", "cover", "spread")


class DescriptionError(FolioError):
    """Raised when a book description does not match the expected schema.

    Attributes:
        field: Dotted path of the offending field, e.g. ``chapter[1].page[0]``.
    """

    def __init__(self, field: str, message: str) -> None:
        self.field = field
        super().__init__(f"{field}: {message}" if field else message)


def _join(path: str, key: str) -> str:
    return f"{path}.{key}" if path else key


def _check_mapping(value: Any, path: str, allowed: tuple[str, ...]) -> Mapping[str, Any]:
    """Ensure value is a mapping whose keys are all in allowed."""
    if not isinstance(value, Mapping):
        raise DescriptionError(path, f"expected a mapping, got {type(value).__name__}")
    for key in value:
        if key not in allowed:
            expected = ", ".join(f"`{k}`" for k in allowed)
            raise DescriptionError(_join(path, str(key)), f"unknown field, expected one of {expected}")
    return value


def _string(value: Any, path: str) -> str:
    """Require a non-empty string."""
    if not isinstance(value, str):
        raise DescriptionError(path, f"expected a string, got {type(value).__name__}")
    if not value.strip():
        raise DescriptionError(path, "must not be empty")
    return value


def _optional_string(mapping: Mapping[str, Any], key: str, path: str) -> str | None:
    value = mapping.get(key)
    if value is None:
        return None
    return _string(value, _join(path, key))


def _boolean(mapping: Mapping[str, Any], key: str, path: str) -> bool:
    value = mapping.get(key, False)
    if not isinstance(value, bool):
        raise DescriptionError(_join(path, key), f"expected true or false, got {value!r}")
    return value


def _enum(
    enum_type: type[E], mapping: Mapping[str, Any], key: str, path: str, default: E | None
) -> E | None:
    value = mapping.get(key)
    if value is None:
        return default
    if isinstance(value, enum_type):
        return value
    try:
        return enum_type(value)
    except ValueError:
        variants = ", ".join(f"`{member.value}`" for member in enum_type)
        raise DescriptionError(
            _join(path, key), f"unknown variant {value!r}, expected one of {variants}"
        ) from None


def _entries(value: Any, path: str, parse: Callable[[Any, str], T]) -> tuple[T, ...]:
    """Normalize a scalar-or-list field element-wise, preserving order."""
    if value is None:
        return ()
    if isinstance(value, (list, tuple)):
        return tuple(parse(item, f"{path}[{index}]") for index, item in enumerate(value))
    return (parse(value, path),)


def normalize_title(value: Any, path: str = "title") -> Title:
    if isinstance(value, Title):
        value = describe_title(value)
    if isinstance(value, str):
        return Title(name=_string(value, path))
    mapping = _check_mapping(value, path, _TITLE_KEYS)
    if "name" not in mapping:
        raise DescriptionError(_join(path, "name"), "missing field")
    return Title(
        name=_string(mapping["name"], _join(path, "name")),
        type=_enum(TitleType, mapping, "type", path, TitleType.MAIN),
        alternate_script=_optional_string(mapping, "alternateScript", path),
        file_as=_optional_string(mapping, "fileAs", path),
    )


def normalize_creator(value: Any, path: str = "creator") -> Creator:
    if isinstance(value, Creator):
        value = describe_creator(value)
    if isinstance(value, str):
        return Creator(name=_string(value, path))
    mapping = _check_mapping(value, path, _CREATOR_KEYS)
    if "name" not in mapping:
        raise DescriptionError(_join(path, "name"), "missing field")
    return Creator(
        name=_string(mapping["name"], _join(path, "name")),
        role=_optional_string(mapping, "role", path),
        alternate_script=_optional_string(mapping, "alternateScript", path),
        file_as=_optional_string(mapping, "fileAs", path),
    )


def normalize_collection(value: Any, path: str = "collection") -> Collection:
    if isinstance(value, Collection):
        value = describe_collection(value)
    if isinstance(value, str):
        return Collection(name=_string(value, path))
    mapping = _check_mapping(value, path, _COLLECTION_KEYS)
    if "name" not in mapping:
        raise DescriptionError(_join(path, "name"), "missing field")

    position = mapping.get("position")
    if position is not None:
        # bool is an int subclass; `position: true` is a typo, not 1.
        if isinstance(position, bool) or not isinstance(position, int):
            raise DescriptionError(
                _join(path, "position"), f"expected an integer, got {position!r}"
            )
        if position < 0:
            raise DescriptionError(_join(path, "position"), "must not be negative")

    return Collection(
        name=_string(mapping["name"], _join(path, "name")),
        type=_enum(CollectionType, mapping, "type", path, CollectionType.SERIES),
        position=position,
    )


def normalize_metadata(raw: Any, path: str = "metadata") -> BookMetadata:
    """Expand a raw metadata mapping into canonical BookMetadata.

    Title, creator, contributor and collection accept a bare string, a
    mapping, or a list of either. A missing or empty identifier is replaced
    with a random ``urn:uuid:`` identifier; a declared one is kept verbatim.

    Raises:
        DescriptionError: If a field is malformed or a required field is
            missing or empty.
    """
    if isinstance(raw, BookMetadata):
        raw = describe_metadata(raw)
    mapping = _check_mapping(raw, path, _METADATA_KEYS)

    titles = _entries(mapping.get("title"), _join(path, "title"), normalize_title)
    if not titles:
        raise DescriptionError(_join(path, "title"), "at least one title is required")

    language = mapping.get("language")
    if language is None:
        raise DescriptionError(_join(path, "language"), "missing field")
    language = _string(language, _join(path, "language"))

    identifier = mapping.get("identifier")
    if identifier is None or (isinstance(identifier, str) and not identifier.strip()):
        identifier = new_identifier()
        logger.warning("no identifier declared, generated %s", identifier)
    else:
        identifier = _string(identifier, _join(path, "identifier"))

    return BookMetadata(
        titles=titles,
        language=language,
        identifier=identifier,
        creators=_entries(mapping.get("creator"), _join(path, "creator"), normalize_creator),
        contributors=_entries(
            mapping.get("contributor"), _join(path, "contributor"), normalize_creator
        ),
        collections=_entries(
            mapping.get("collection"), _join(path, "collection"), normalize_collection
        ),
    )


def _style_href(value: Any, path: str) -> str:
    """Require a plain relative file name inside the archive's style folder."""
    href = _string(value, path)
    if (
        "\\" in href
        or posixpath.isabs(href)
        or posixpath.normpath(href) != href
        or ".." in href.split("/")
    ):
        raise DescriptionError(path, f"{href!r} must be a relative path without `..` or `\\`")
    return href


def normalize_style(value: Any, path: str = "style") -> Style:
    if isinstance(value, Style):
        value = describe_style(value)
    mapping = _check_mapping(value, path, _STYLE_KEYS)
    for key in ("href", "src"):
        if key not in mapping:
            raise DescriptionError(_join(path, key), "missing field")
    return Style(
        href=_style_href(mapping["href"], _join(path, "href")),
        src=_string(mapping["src"], _join(path, "src")),
        link=_boolean(mapping, "link", path),
    )


def normalize_rendition(raw: Any, path: str = "rendition") -> Rendition:
    """Resolve rendition settings, applying the default for every absent field."""
    if raw is None:
        return Rendition()
    if isinstance(raw, Rendition):
        raw = describe_rendition(raw)
    mapping = _check_mapping(raw, path, _RENDITION_KEYS)
    return Rendition(
        direction=_enum(Direction, mapping, "direction", path, Direction.RTL),
        layout=_enum(Layout, mapping, "layout", path, Layout.PRE_PAGINATED),
        orientation=_enum(Orientation, mapping, "orientation", path, Orientation.AUTO),
        spread=_enum(Spread, mapping, "spread", path, Spread.AUTO),
        styles=_entries(mapping.get("style"), _join(path, "style"), normalize_style),
    )


def normalize_page(value: Any, path: str = "page") -> Page:
    if isinstance(value, Page):
        value = describe_page(value)
    if isinstance(value, (str, Path)):
        return Page(src=Path(_string(str(value), path)))
    mapping = _check_mapping(value, path, _PAGE_KEYS)
    if "src" not in mapping:
        raise DescriptionError(_join(path, "src"), "missing field")
    return Page(
        src=Path(_string(mapping["src"], _join(path, "src"))),
        cover=_boolean(mapping, "cover", path),
        spread=_enum(PageSpread, mapping, "spread", path, None),
    )


def normalize_chapter(value: Any, path: str = "chapter") -> Chapter:
    if isinstance(value, Chapter):
        value = describe_chapter(value)
    mapping = _check_mapping(value, path, _CHAPTER_KEYS)
    if "page" not in mapping:
        raise DescriptionError(_join(path, "page"), "missing field")
    return Chapter(
        pages=_entries(mapping["page"], _join(path, "page"), normalize_page),
        name=_optional_string(mapping, "name", path),
        cover=_boolean(mapping, "cover", path),
    )


def normalize_chapters(raw: Any, path: str = "chapter") -> tuple[Chapter, ...]:
    """Normalize one chapter or a list of chapters.

    An empty list is accepted here; a book without pages is rejected when
    the package is built.
    """
    return _entries(raw, path, normalize_chapter)


def normalize_description(raw: Any) -> Book:
    """Normalize a complete raw description (as loaded from YAML) into a Book.

    Raises:
        DescriptionError: On unknown top-level fields, a missing ``metadata``
            or ``chapter`` section, or any nested schema violation.
    """
    if isinstance(raw, Book):
        raw = describe_book(raw)
    mapping = _check_mapping(raw, "", _BOOK_KEYS)
    for key in ("metadata", "chapter"):
        if key not in mapping:
            raise DescriptionError(key, "missing field")

    return Book(
        metadata=normalize_metadata(mapping["metadata"]),
        chapters=normalize_chapters(mapping["chapter"]),
        rendition=normalize_rendition(mapping.get("rendition")),
    )


# Inverse direction: canonical dataclasses back to the most compact raw form.


def _collapse(entries: list[Any]) -> Any:
    """A single entry is written bare, several as a list."""
    return entries[0] if len(entries) == 1 else entries


def describe_title(title: Title) -> str | dict[str, Any]:
    if title.type is TitleType.MAIN and title.alternate_script is None and title.file_as is None:
        return title.name
    raw: dict[str, Any] = {"name": title.name}
    if title.type is not TitleType.MAIN:
        raw["type"] = title.type.value
    if title.alternate_script is not None:
        raw["alternateScript"] = title.alternate_script
    if title.file_as is not None:
        raw["fileAs"] = title.file_as
    return raw


def describe_creator(creator: Creator) -> str | dict[str, Any]:
    if creator.role is None and creator.alternate_script is None and creator.file_as is None:
        return creator.name
    raw: dict[str, Any] = {"name": creator.name}
    if creator.role is not None:
        raw["role"] = creator.role
    if creator.alternate_script is not None:
        raw["alternateScript"] = creator.alternate_script
    if creator.file_as is not None:
        raw["fileAs"] = creator.file_as
    return raw


def describe_collection(collection: Collection) -> str | dict[str, Any]:
    if collection.type is CollectionType.SERIES and collection.position is None:
        return collection.name
    raw: dict[str, Any] = {"name": collection.name, "type": collection.type.value}
    if collection.position is not None:
        raw["position"] = collection.position
    return raw


def describe_metadata(metadata: BookMetadata) -> dict[str, Any]:
    raw: dict[str, Any] = {"title": _collapse([describe_title(t) for t in metadata.titles])}
    if metadata.creators:
        raw["creator"] = _collapse([describe_creator(c) for c in metadata.creators])
    if metadata.contributors:
        raw["contributor"] = _collapse([describe_creator(c) for c in metadata.contributors])
    if metadata.collections:
        raw["collection"] = _collapse([describe_collection(c) for c in metadata.collections])
    raw["language"] = metadata.language
    raw["identifier"] = metadata.identifier
    return raw


def describe_style(style: Style) -> dict[str, Any]:
    raw: dict[str, Any] = {}
    if style.link:
        raw["link"] = True
    raw["href"] = style.href
    raw["src"] = style.src
    return raw


def describe_rendition(rendition: Rendition) -> dict[str, Any]:
    defaults = Rendition()
    raw: dict[str, Any] = {}
    for key in ("direction", "layout", "orientation", "spread"):
        value = getattr(rendition, key)
        if value is not getattr(defaults, key):
            raw[key] = value.value
    if rendition.styles:
        raw["style"] = _collapse([describe_style(s) for s in rendition.styles])
    return raw


def describe_page(page: Page) -> str | dict[str, Any]:
    if not page.cover and page.spread is None:
        return page.src.as_posix()
    raw: dict[str, Any] = {"src": page.src.as_posix()}
    if page.cover:
        raw["cover"] = True
    if page.spread is not None:
        raw["spread"] = page.spread.value
    return raw


def describe_chapter(chapter: Chapter) -> dict[str, Any]:
    raw: dict[str, Any] = {}
    if chapter.name is not None:
        raw["name"] = chapter.name
    raw["page"] = _collapse([describe_page(p) for p in chapter.pages]) if chapter.pages else []
    if chapter.cover:
        raw["cover"] = True
    return raw


def describe_book(book: Book) -> dict[str, Any]:
    """Render a Book as the compact raw mapping that normalizes back to it."""
    return {
        "metadata": describe_metadata(book.metadata),
        "rendition": describe_rendition(book.rendition),
        "chapter": _collapse([describe_chapter(c) for c in book.chapters])
        if book.chapters
        else [],
    }
