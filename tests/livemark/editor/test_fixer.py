"""Tests for the syntax fixer and delimiter pairing."""

from livemark.editor.fixer import run_fixer, strip_broken
from livemark.editor.markers import collect_marker_runs, pair_marker_runs
from livemark.editor.transaction import Transaction
from livemark.markdown.flat import FlatText
from livemark.markdown.models import Document, ParagraphBlock
from livemark.markdown.parser import parse


def annotated(markdown: str) -> FlatText:
    return FlatText.from_content(parse(markdown).blocks[0].content)


def delete_char(flat: FlatText, pos: int) -> FlatText:
    """Remove one character without re-running the detector."""
    return flat.replace(pos, pos + 1, FlatText.plain(""))


class TestPairing:
    def test_runs_and_pairs(self):
        runs = collect_marker_runs(annotated("**a** and *b*"))
        assert [(r.start, r.end, r.text) for r in runs] == [(0, 2, "**"), (3, 5, "**"), (10, 11, "*"), (12, 13, "*")]
        paired = pair_marker_runs(runs)
        assert len(paired.pairs) == 2
        assert paired.unpaired == []

    def test_standalone_markers(self):
        paired = pair_marker_runs(collect_marker_runs(annotated("# \\*x")))
        assert sorted(r.syntax_type for r in paired.standalone) == ["escape", "heading"]
        assert paired.pairs == []


class TestStripBroken:
    def test_partial_closer_strips_region(self):
        flat = delete_char(annotated("**bold**"), 7)
        assert flat.text == "**bold*"
        stripped = strip_broken(flat)
        assert stripped[0] == (0, 7, "strong")
        assert all(marks == () for marks in flat.marks)

    def test_only_broken_syntax_stripped(self):
        flat = delete_char(annotated("==**bold**=="), 9)
        assert flat.text == "==**bold*=="
        strip_broken(flat)
        assert {a.type for a in flat.marks[5]} == {"highlight"}
        highlight_markers = [i for i, marks in enumerate(flat.marks) if any(a.is_marker for a in marks)]
        assert highlight_markers == [0, 1, 9, 10]

    def test_intact_pairs_untouched(self):
        flat = annotated("**a** and *b*")
        before = list(flat.marks)
        assert strip_broken(flat) == []
        assert flat.marks == before

    def test_escape_never_stripped(self):
        flat = annotated("\\*x")
        assert strip_broken(flat) == []

    def test_mismatched_delimiter_text(self):
        flat = annotated("**a**")
        # Swap the closer text for a different delimiter, keeping its annotations
        flat = FlatText("**a__", flat.marks, {})
        stripped = strip_broken(flat)
        assert {syntax for _, _, syntax in stripped} == {"strong"}
        assert all(marks == () for marks in flat.marks)


class TestRunFixer:
    def test_changed_only_when_stripping(self):
        broken = delete_char(annotated("**bold**"), 7)
        doc = Document(blocks=[ParagraphBlock(content=broken.to_content())])
        assert run_fixer(Transaction(doc)).changed
        assert not run_fixer(Transaction(doc)).changed
        assert FlatText.from_content(doc.blocks[0].content).text == "**bold*"

    def test_clean_document(self):
        doc = parse("**a** ==b==\n")
        assert not run_fixer(Transaction(doc)).changed
