"""Tests for the shared filter predicate."""

from datetime import datetime, timezone
from pathlib import Path

import pytest

from this_tool.core.filters import matches, normalize_filter, type_filter_for
from this_tool.models.schemas import ClipboardEntry, ClipKind

NOW = datetime(2024, 1, 1, 12, 0, 0, tzinfo=timezone.utc)


def entry(kind, content, sidecar=None):
    return ClipboardEntry(timestamp=NOW, content=content, kind=kind, sidecar_path=sidecar)


@pytest.fixture
def text_entry():
    return entry(ClipKind.TEXT, "hello image world", "/data/text_1.txt")


@pytest.fixture
def image_entry():
    return entry(ClipKind.IMAGE, "Image (1024 bytes)", "/data/image_123.png")


@pytest.fixture
def file_entry():
    return entry(ClipKind.FILE, "/Users/test/report.pdf\n/Users/test/notes.txt")


class TestTypeKeywords:
    """Type keywords select by kind or extension regardless of content."""

    def test_image_matches_kind_not_content(self, text_entry, image_entry):
        assert matches(image_entry, "image")
        assert not matches(text_entry, "image")

    def test_img_alias(self, image_entry, text_entry):
        assert matches(image_entry, "img")
        assert not matches(text_entry, "IMG")

    @pytest.mark.parametrize("keyword", ["text", "txt"])
    def test_text_keywords(self, keyword, text_entry, image_entry, file_entry):
        assert matches(text_entry, keyword)
        assert not matches(image_entry, keyword)
        assert not matches(file_entry, keyword)

    def test_file_keyword(self, file_entry, text_entry):
        assert matches(file_entry, "file")
        assert not matches(text_entry, "file")

    def test_png_matches_sidecar_extension(self, image_entry, text_entry):
        assert matches(image_entry, "png")
        assert not matches(text_entry, "png")

    def test_pdf_matches_listed_file_path(self, file_entry, image_entry):
        assert matches(file_entry, "pdf")
        assert not matches(image_entry, "pdf")

    def test_png_matches_path_case_insensitively(self):
        assert matches("/Users/test/Desktop/SHOT.PNG", "png")
        assert not matches("/Users/test/Desktop/shot.jpg", "png")

    def test_image_path_extensions(self):
        for name in ("a.png", "b.jpg", "c.JPEG", "d.gif"):
            assert matches(f"/tmp/{name}", "image")
        assert not matches("/tmp/e.pdf", "image")

    def test_jpeg_paths(self):
        assert matches("/tmp/photo.jpeg", "jpg")
        assert matches("/tmp/photo.jpg", "jpeg")

    def test_text_path(self):
        assert matches("/tmp/notes.txt", "text")
        assert not matches("/tmp/text-notes.md", "text")

    def test_file_keyword_matches_any_path(self):
        assert matches("/tmp/archive.zip", "file")

    def test_path_objects_are_accepted(self):
        assert matches(Path("/tmp/photo.PNG"), "png")

    def test_first_keyword_in_table_order_wins(self):
        # "image" outranks "pdf" even though it comes later in the filter
        assert type_filter_for("pdf image").kind is ClipKind.IMAGE
        assert matches("/tmp/a.png", "pdf image")
        assert not matches("/tmp/a.pdf", "pdf image")

    def test_keyword_anywhere_in_filter(self, image_entry, text_entry):
        assert type_filter_for("images").kind is ClipKind.IMAGE
        assert type_filter_for("profile").kind is ClipKind.FILE
        assert type_filter_for("screenshot.png").extensions == (".png",)
        assert type_filter_for("quarterly report") is None
        assert matches(image_entry, "images")
        assert not matches(text_entry, "images")


class TestFreeText:
    """Anything else is a case-insensitive substring match."""

    def test_content_substring(self):
        candidate = entry(ClipKind.TEXT, "Another text entry with keywords")
        assert matches(candidate, "keywords")
        assert matches(candidate, "WITH Keywords")
        assert not matches(candidate, "missing")

    def test_sidecar_path_fragment(self):
        candidate = entry(ClipKind.IMAGE, "Image (10 bytes)", "/data/image_1700000000.png")
        assert matches(candidate, "1700000000")

    def test_path_substring(self):
        assert matches("/Users/test/Documents/Quarterly-Report.docx", "quarterly")
        assert not matches("/Users/test/Documents/other.docx", "quarterly")


class TestEmptyFilter:
    @pytest.mark.parametrize("value", ["", "   ", None, []])
    def test_empty_filter_matches_everything(self, value, text_entry, image_entry, file_entry):
        for candidate in (text_entry, image_entry, file_entry, "/tmp/x.bin"):
            assert matches(candidate, normalize_filter(value))


def test_normalize_filter_joins_tokens():
    assert normalize_filter(["My", "  Report "]) == "my report"
    assert normalize_filter("  PNG ") == "png"
