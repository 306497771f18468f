# ABOUTME: Shared pytest fixtures for folio tests.
# ABOUTME: Provides Pillow-generated page images and sample project directories.

from collections.abc import Callable
from pathlib import Path

import pytest
import yaml
from PIL import Image

from folio.formats.images import ImageInfo

# Fixed epoch so archives built in tests are reproducible.
TEST_EPOCH = "1700000000"

SAMPLE_DESCRIPTION = {
    "metadata": {
        "title": "Sample",
        "creator": {"name": "Jane Doe", "role": "aut"},
        "language": "en",
        "identifier": "urn:uuid:00000000-0000-4000-8000-000000000000",
    },
    "chapter": [{"name": "Chapter 1", "page": ["a.png", "b.jpg"]}],
}


@pytest.fixture
def make_image() -> Callable[..., Path]:
    """Factory writing a solid-color image of the given size and format."""

    def _make(path: Path, size: tuple[int, int] = (600, 800), fmt: str = "PNG") -> Path:
        path.parent.mkdir(parents=True, exist_ok=True)
        mode = "P" if fmt == "GIF" else "RGB"
        Image.new(mode, size).save(path, fmt)
        return path

    return _make


@pytest.fixture
def source_date_epoch(monkeypatch: pytest.MonkeyPatch) -> str:
    """Pin the build timestamp."""
    monkeypatch.setenv("SOURCE_DATE_EPOCH", TEST_EPOCH)
    return TEST_EPOCH


@pytest.fixture
def write_project(make_image: Callable[..., Path]) -> Callable[..., Path]:
    """Factory writing folio.yaml plus every page image it references.

    Page file names ending in .jpg are written as JPEG, .gif as GIF, anything
    else as PNG.
    """

    def _write(directory: Path, description: dict, size: tuple[int, int] = (600, 800)) -> Path:
        directory.mkdir(parents=True, exist_ok=True)
        chapters = description.get("chapter", [])
        if isinstance(chapters, dict):
            chapters = [chapters]
        for chapter in chapters:
            pages = chapter.get("page", [])
            if not isinstance(pages, list):
                pages = [pages]
            for page in pages:
                src = page["src"] if isinstance(page, dict) else page
                suffix = Path(src).suffix.lower()
                fmt = {".jpg": "JPEG", ".jpeg": "JPEG", ".gif": "GIF"}.get(suffix, "PNG")
                make_image(directory / src, size, fmt)

        project_file = directory / "folio.yaml"
        project_file.write_text(
            yaml.safe_dump(description, allow_unicode=True, sort_keys=False), encoding="utf-8"
        )
        return project_file

    return _write


@pytest.fixture
def sample_project(tmp_path: Path, write_project: Callable[..., Path]) -> Path:
    """A project titled Sample with one chapter of two pages (a.png, b.jpg)."""
    return write_project(tmp_path / "sample", SAMPLE_DESCRIPTION)


@pytest.fixture
def corrupt_epub(tmp_path: Path) -> Path:
    """Create a corrupt file that is not a valid EPUB."""
    filepath = tmp_path / "corrupt.epub"
    filepath.write_text("this is not a valid epub file")
    return filepath


class FakeProbe:
    """ImageProbe returning fixed answers without touching the filesystem."""

    def __init__(self, info: ImageInfo | None = None, by_name: dict[str, ImageInfo] | None = None):
        self.info = info or ImageInfo(media_type="image/png", width=600, height=800)
        self.by_name = by_name or {}
        self.calls: list[Path] = []

    def probe(self, path: Path) -> ImageInfo:
        self.calls.append(path)
        return self.by_name.get(path.name, self.info)


@pytest.fixture
def fake_probe() -> FakeProbe:
    return FakeProbe()


@pytest.fixture
def fake_probe_cls() -> type[FakeProbe]:
    """The FakeProbe class, for tests that need per-file answers."""
    return FakeProbe
