# ABOUTME: Integration tests for the full build pipeline.
# ABOUTME: Builds real archives from generated images and inspects them with zipfile and ebooklib.

import zipfile
from collections.abc import Callable
from pathlib import Path

import pytest
from lxml import etree

from folio.core.archive import ArchiveWriteError
from folio.core.pipeline import VerificationError, build_book
from folio.core.resolver import ResolutionError
from folio.errors import PackageValidationError
from folio.formats.epub import EpubSummary, read_epub_summary
from folio.model.normalizer import DescriptionError

OPF = {"opf": "http://www.idpf.org/2007/opf", "dc": "http://purl.org/dc/elements/1.1/"}


def _description(**metadata) -> dict:
    meta = {"title": "Sample", "language": "en", "identifier": "urn:uuid:1"}
    meta.update(metadata)
    return {"metadata": meta, "chapter": [{"name": "Chapter 1", "page": ["a.png", "b.jpg"]}]}


@pytest.mark.usefixtures("source_date_epoch")
class TestBuildBook:
    """Builds from a project file to a verified archive."""

    def test_sample_book(self, sample_project: Path) -> None:
        """Two pages build into a verified archive named after the title."""
        result = build_book(sample_project)

        assert result.path == sample_project.parent / "Sample.epub"
        assert result.verified
        with zipfile.ZipFile(result.path) as zf:
            names = zf.namelist()
            assert names[0] == "mimetype"
            assert zf.infolist()[0].compress_type == zipfile.ZIP_STORED
            assert "item/image/cover.png" in names
            assert "item/image/i-0001.jpg" in names
            assert "item/xhtml/p-cover.xhtml" in names
            assert "item/xhtml/p-0001.xhtml" in names
            assert len([n for n in names if n.startswith("item/image/")]) == 2
            assert len([n for n in names if n.startswith("item/xhtml/")]) == 2
            assert zf.testzip() is None
        assert result.package.item("cover").source == sample_project.parent / "a.png"

    def test_sample_book_reads_back(self, sample_project: Path) -> None:
        """ebooklib sees the title, creator, language, identifier, pages and cover."""
        summary = read_epub_summary(build_book(sample_project).path)
        assert summary.title == "Sample"
        assert summary.creators == ["Jane Doe"]
        assert summary.language == "en"
        assert summary.identifier == "urn:uuid:00000000-0000-4000-8000-000000000000"
        assert summary.spine_length == 2
        assert summary.has_cover

    def test_page_wrappers_sized_from_images(
        self, tmp_path: Path, write_project: Callable[..., Path]
    ) -> None:
        """Wrapper documents use the probed image size."""
        project = write_project(tmp_path / "big", _description(), size=(1200, 1700))
        result = build_book(project)
        with zipfile.ZipFile(result.path) as zf:
            page = etree.fromstring(zf.read("item/xhtml/p-0001.xhtml"))
        svg = page.find(".//{http://www.w3.org/2000/svg}svg")
        assert svg.get("viewBox") == "0 0 1200 1700"

    def test_rebuild_is_byte_identical(self, sample_project: Path) -> None:
        """Building twice from unchanged inputs gives identical archives."""
        first = build_book(sample_project).path.read_bytes()
        second = build_book(sample_project).path.read_bytes()
        assert first == second

    def test_description_not_modified(self, sample_project: Path) -> None:
        """The project file is read, never written."""
        before = sample_project.read_bytes()
        build_book(sample_project)
        assert sample_project.read_bytes() == before

    def test_output_directory(self, sample_project: Path, tmp_path: Path) -> None:
        """An output directory receives <title>.epub."""
        result = build_book(sample_project, tmp_path / "dist")
        assert result.path == tmp_path / "dist" / "Sample.epub"
        assert result.path.exists()

    def test_generated_identifier(self, tmp_path: Path, write_project: Callable[..., Path]) -> None:
        """A missing identifier is generated and survives the read-back check."""
        description = _description()
        del description["metadata"]["identifier"]
        result = build_book(write_project(tmp_path / "noid", description))
        assert read_epub_summary(result.path).identifier.startswith("urn:uuid:")

    def test_modified_from_source_date_epoch(self, sample_project: Path) -> None:
        """dcterms:modified comes from SOURCE_DATE_EPOCH."""
        result = build_book(sample_project)
        with zipfile.ZipFile(result.path) as zf:
            opf = etree.fromstring(zf.read("item/standard.opf"))
        modified = opf.xpath("//opf:meta[@property='dcterms:modified']/text()", namespaces=OPF)
        assert modified == ["2023-11-14T22:13:20Z"]

    def test_nested_page_paths(self, tmp_path: Path, write_project: Callable[..., Path]) -> None:
        """Pages in subdirectories are found relative to the project file."""
        description = _description()
        description["chapter"] = {"page": ["pages/001.png", "pages/002.gif"]}
        result = build_book(write_project(tmp_path / "nested", description))
        with zipfile.ZipFile(result.path) as zf:
            assert "item/image/i-0001.gif" in zf.namelist()

    def test_many_pages_keep_order(self, tmp_path: Path, write_project: Callable[..., Path]) -> None:
        """Spine order follows declaration order regardless of probing concurrency."""
        pages = [f"{n:03d}.png" for n in range(25)]
        description = _description()
        description["chapter"] = {"name": "All", "page": pages}
        result = build_book(write_project(tmp_path / "many", description), workers=8)
        with zipfile.ZipFile(result.path) as zf:
            opf = etree.fromstring(zf.read("item/standard.opf"))
        idrefs = opf.xpath("//opf:spine/opf:itemref/@idref", namespaces=OPF)
        assert idrefs == ["p-cover"] + [f"p-{n:04d}" for n in range(1, 25)]


@pytest.mark.usefixtures("source_date_epoch")
class TestBuildFailures:
    """Failures abort before anything is written."""

    def test_empty_chapter_list(self, tmp_path: Path, write_project: Callable[..., Path]) -> None:
        """A book with no chapters fails and writes no archive."""
        description = _description()
        description["chapter"] = []
        project = write_project(tmp_path / "empty", description)
        with pytest.raises(PackageValidationError, match="book has no pages"):
            build_book(project)
        assert not list(project.parent.glob("*.epub"))

    def test_missing_image(self, tmp_path: Path, write_project: Callable[..., Path]) -> None:
        """A missing page image names the page and writes nothing."""
        project = write_project(tmp_path / "missing", _description())
        (project.parent / "b.jpg").unlink()
        with pytest.raises(ResolutionError, match="b.jpg"):
            build_book(project)
        assert not list(project.parent.glob("*.epub"))

    def test_unsupported_image(
        self, tmp_path: Path, write_project: Callable[..., Path], make_image: Callable[..., Path]
    ) -> None:
        """Formats outside JPEG, PNG and GIF are rejected."""
        description = _description()
        description["chapter"] = {"page": ["a.png", "b.bmp"]}
        project = write_project(tmp_path / "bmp", description)
        make_image(project.parent / "b.bmp", (10, 10), "BMP")
        with pytest.raises(ResolutionError, match="unsupported image type image/bmp"):
            build_book(project)

    def test_two_covers(self, tmp_path: Path, write_project: Callable[..., Path]) -> None:
        """Two cover flags are rejected."""
        description = _description()
        description["chapter"] = [
            {"page": "a.png", "cover": True},
            {"page": {"src": "b.jpg", "cover": True}},
        ]
        with pytest.raises(PackageValidationError, match="only one cover"):
            build_book(write_project(tmp_path / "covers", description))

    def test_bad_description(self, tmp_path: Path, write_project: Callable[..., Path]) -> None:
        """Schema errors name the field."""
        description = _description()
        description["rendition"] = {"layout": "scroll"}
        with pytest.raises(DescriptionError, match="^rendition.layout: unknown variant"):
            build_book(write_project(tmp_path / "bad", description))

    def test_existing_archive_kept_on_failure(
        self, sample_project: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        """A failed rewrite leaves the previous archive intact."""
        first = build_book(sample_project).path
        before = first.read_bytes()

        def fail(*args, **kwargs):
            raise OSError("No space left on device")

        monkeypatch.setattr("folio.core.archive._write_entries", fail)
        with pytest.raises(ArchiveWriteError):
            build_book(sample_project)
        assert first.read_bytes() == before
        assert sorted(p.name for p in first.parent.glob(".*.tmp")) == []

    def test_failed_verification_keeps_previous_archive(
        self, sample_project: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        """An archive that reads back wrong never replaces the destination."""
        first = build_book(sample_project).path
        before = first.read_bytes()

        def misread(path: Path) -> EpubSummary:
            return EpubSummary(title="Other", language="en", spine_length=2)

        monkeypatch.setattr("folio.core.pipeline.read_epub_summary", misread)
        with pytest.raises(VerificationError, match="title"):
            build_book(sample_project)
        assert first.read_bytes() == before
        assert sorted(p.name for p in first.parent.glob(".*.tmp")) == []

    def test_failed_verification_writes_nothing(
        self, tmp_path: Path, write_project: Callable[..., Path], monkeypatch: pytest.MonkeyPatch
    ) -> None:
        """A first build that fails verification leaves no archive behind."""
        project = write_project(tmp_path / "fresh", _description())

        def misread(path: Path) -> EpubSummary:
            return EpubSummary(title="Sample", language="en", identifier="urn:other", spine_length=2)

        monkeypatch.setattr("folio.core.pipeline.read_epub_summary", misread)
        with pytest.raises(VerificationError, match="identifier"):
            build_book(project)
        assert list(project.parent.glob("*.epub")) == []


@pytest.mark.usefixtures("source_date_epoch")
class TestPaddedMetadata:
    """Surrounding whitespace in declared values survives the read-back check."""

    def test_padded_title(self, tmp_path: Path, write_project: Callable[..., Path]) -> None:
        """A padded title builds and reads back trimmed."""
        result = build_book(write_project(tmp_path / "title", _description(title=" Sample ")))
        assert result.verified
        assert read_epub_summary(result.path).title == "Sample"

    def test_padded_identifier_kept(self, tmp_path: Path, write_project: Callable[..., Path]) -> None:
        """A padded identifier is written as declared and still verifies."""
        result = build_book(write_project(tmp_path / "ident", _description(identifier="urn:uuid:1 ")))
        assert result.verified
        with zipfile.ZipFile(result.path) as zf:
            opf = etree.fromstring(zf.read("item/standard.opf"))
        assert opf.xpath("//dc:identifier/text()", namespaces=OPF) == ["urn:uuid:1 "]

    def test_padded_creator(self, tmp_path: Path, write_project: Callable[..., Path]) -> None:
        """Padded creator names verify against the trimmed read-back."""
        result = build_book(write_project(tmp_path / "creator", _description(creator=["  Jane Doe", "Bo "])))
        assert result.verified
        assert read_epub_summary(result.path).creators == ["Jane Doe", "Bo"]
