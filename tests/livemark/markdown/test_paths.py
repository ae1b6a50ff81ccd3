"""Tests for image path resolution."""

import pytest

from livemark.markdown import resolve_image_src
from livemark.markdown.paths import image_sources, is_absolute
from livemark.markdown.parser import parse


class TestResolveImageSrc:
    @pytest.mark.parametrize(
        "src",
        ["http://x.com/a.png", "https://x.com/a.png", "file:///tmp/a.png", "data:image/png;base64,AAAA"],
    )
    def test_urls_unchanged(self, src):
        assert resolve_image_src(src, "/docs/readme.md") == src

    @pytest.mark.parametrize("src", ["/abs/a.png", "C:\\img\\a.png", "c:/img/a.png", "\\\\server\\share\\a.png"])
    def test_absolute_unchanged(self, src):
        assert is_absolute(src)
        assert resolve_image_src(src, "/docs/readme.md") == src

    def test_relative_posix(self):
        assert resolve_image_src("img/a.png", "/docs/readme.md") == "/docs/img/a.png"

    def test_relative_base(self):
        assert resolve_image_src("a.png", "notes/readme.md") == "notes/a.png"

    def test_relative_windows(self):
        assert resolve_image_src("img/a.png", "C:\\docs\\readme.md") == "C:\\docs\\img\\a.png"

    def test_no_markdown_path(self):
        assert resolve_image_src("img/a.png", None) == "img/a.png"


class TestImageSources:
    def test_document_order(self):
        doc = parse("![a](1.png)\n\n> ![b](2.png)\n\ntext ![c](3.png)\n")
        assert image_sources(doc) == ["1.png", "2.png", "3.png"]
