# ABOUTME: Book description model: canonical dataclasses and the normalizer.
# ABOUTME: Exports the types every later build stage consumes.

from folio.model.normalizer import DescriptionError, describe_book, normalize_description
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

__all__ = [
    "Book",
    "BookMetadata",
    "Chapter",
    "Collection",
    "CollectionType",
    "Creator",
    "DescriptionError",
    "Direction",
    "Layout",
    "Orientation",
    "Page",
    "PageSpread",
    "Rendition",
    "Spread",
    "Style",
    "Title",
    "TitleType",
    "describe_book",
    "normalize_description",
]
