"""Tests for heading level synchronization."""

from livemark.editor.heading_sync import heading_prefix_count, run_heading_sync
from livemark.editor.session import LiveEditor
from livemark.editor.transaction import Transaction
from livemark.markdown.flat import FlatText
from livemark.markdown.models import HeadingBlock, ParagraphBlock
from livemark.markdown.parser import parse


def has_heading_markers(block) -> bool:
    return any(a.syntax_type == "heading" for span in block.content for a in span.annotations)


class TestPrefixCount:
    def test_counts_marked_hashes(self):
        block = parse("### Title\n").blocks[0]
        assert heading_prefix_count(FlatText.from_content(block.content)) == 3

    def test_unmarked_hashes_not_counted(self):
        assert heading_prefix_count(FlatText.plain("## x")) == 0


class TestHeadingSync:
    def test_removing_prefix_demotes(self):
        editor = LiveEditor("# Title")
        editor.delete(0, 2)
        block = editor.doc.blocks[0]
        assert isinstance(block, ParagraphBlock)
        assert not has_heading_markers(block)
        assert editor.get_markdown() == "Title\n"

    def test_adding_hash_raises_level(self):
        editor = LiveEditor("# Title")
        editor.insert_text(0, "#")
        block = editor.doc.blocks[0]
        assert isinstance(block, HeadingBlock)
        assert block.level == 2
        assert editor.get_markdown() == "## Title\n"

    def test_removing_hash_lowers_level(self):
        editor = LiveEditor("### Title")
        editor.delete(0, 1)
        assert editor.doc.blocks[0].level == 2

    def test_more_than_six_demotes(self):
        editor = LiveEditor("###### Title")
        editor.insert_text(0, "#")
        block = editor.doc.blocks[0]
        assert isinstance(block, ParagraphBlock)
        assert not has_heading_markers(block)
        assert editor.get_markdown() == "####### Title\n"
        assert editor.doc.blocks == parse(editor.get_markdown()).blocks

    def test_back_to_six_after_demotion_stays_paragraph(self):
        editor = LiveEditor("###### Title")
        editor.insert_text(0, "#")
        editor.delete(0, 1)
        assert isinstance(editor.doc.blocks[0], ParagraphBlock)
        assert editor.get_markdown() == "###### Title\n"

    def test_settled_document_unchanged(self):
        doc = parse("# A\n\n## B\n")
        assert not run_heading_sync(Transaction(doc)).changed

    def test_nested_heading_demoted(self):
        editor = LiveEditor("> # Quote")
        editor.delete(0, 2)
        quote = editor.doc.blocks[0]
        assert isinstance(quote.blocks[0], ParagraphBlock)
