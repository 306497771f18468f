# ABOUTME: Image probing capability used to size page wrappers.
# ABOUTME: ImageProbe protocol plus a Pillow implementation that reads only headers.

from dataclasses import dataclass
from pathlib import Path
from typing import Protocol, runtime_checkable

from PIL import Image, UnidentifiedImageError

from folio.errors import FolioError

# Raster formats every EPUB 3 reading system must support.
SUPPORTED_MEDIA_TYPES = {
    "image/jpeg": ".jpg",
    "image/png": ".png",
    "image/gif": ".gif",
}

# Pillow formats whose first frame is a plain baseline image of another type.
# Camera multi-picture files (MPO) open as MPO but are valid JPEGs.
_MEDIA_TYPE_OVERRIDES = {
    "MPO": "image/jpeg",
}


class ImageProbeError(FolioError):
    """Raised when an image file cannot be opened or identified."""


@dataclass(frozen=True)
class ImageInfo:
    """What the build needs to know about a page image."""

    media_type: str
    width: int
    height: int

    @property
    def is_portrait(self) -> bool:
        return self.height > self.width

    @property
    def is_landscape(self) -> bool:
        return self.width > self.height


@runtime_checkable
class ImageProbe(Protocol):
    """Protocol for image introspection.

    Implementations return the MIME type and pixel size of an image file,
    or raise ImageProbeError with a descriptive message.
    """

    def probe(self, path: Path) -> ImageInfo: ...


class PillowImageProbe:
    """ImageProbe backed by Pillow.

    ``Image.open`` is lazy, so only the file header is read; pixel data is
    never decoded.
    """

    def probe(self, path: Path) -> ImageInfo:
        try:
            with Image.open(path) as img:
                fmt = img.format or ""
                media_type = _MEDIA_TYPE_OVERRIDES.get(fmt) or Image.MIME.get(fmt)
                width, height = img.size
        except FileNotFoundError as exc:
            raise ImageProbeError(f"File not found: {path}") from exc
        except UnidentifiedImageError as exc:
            raise ImageProbeError(f"Not a recognized image: {path}") from exc
        except OSError as exc:
            raise ImageProbeError(f"Failed to read image: {path}: {exc}") from exc

        if media_type is None:
            raise ImageProbeError(f"Unknown image format {fmt!r}: {path}")
        return ImageInfo(media_type=media_type, width=width, height=height)


def extension_for(media_type: str) -> str:
    """File extension used inside the archive for a supported media type."""
    return SUPPORTED_MEDIA_TYPES[media_type]
