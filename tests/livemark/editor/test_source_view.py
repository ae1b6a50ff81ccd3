"""Tests for the source-view transformer.

Flatten turns rich blocks into tagged literal paragraphs; fold rebuilds them.
fold(flatten(doc)) must give back the same document, and a group that no longer
matches its pattern must stay as literal text.
"""

import pytest

from livemark.editor.session import LiveEditor
from livemark.editor.source_view import (
    flatten_code,
    flatten_document,
    fold_code,
    fold_document,
    needs_flatten,
)
from livemark.exceptions import FoldError
from livemark.markdown.models import (
    BlockquoteBlock,
    CodeBlock,
    Document,
    ImageBlock,
    InlineImage,
    ListBlock,
    MathBlock,
    ParagraphBlock,
    TextRun,
    ThematicBreak,
)
from livemark.markdown.parser import parse

# === HELPER FUNCTIONS ===


def line_texts(blocks) -> list[str]:
    return ["".join(span.text for span in block.content) for block in blocks]


# === 1. FLATTEN ===


class TestFlatten:
    def test_code_block_lines(self):
        lines = flatten_code(CodeBlock(language="py", content="a = 1\nb = 2"), "cb0")
        assert line_texts(lines) == ["```py", "a = 1", "b = 2", "```"]
        assert [(p.line_index, p.line_total) for p in lines] == [(0, 4), (1, 4), (2, 4), (3, 4)]
        assert all(p.source_group_id == "cb0" and p.language == "py" and p.source_kind == "code" for p in lines)

    def test_empty_code_block(self):
        lines = flatten_code(CodeBlock(language="py"), "cb0")
        assert line_texts(lines) == ["```py", "```"]
        assert [(p.line_index, p.line_total) for p in lines] == [(0, 2), (1, 2)]

    def test_fence_outgrows_backtick_runs(self):
        lines = flatten_code(CodeBlock(content="```\nx ```` y"), "cb0")
        assert line_texts(lines) == ["`````", "```", "x ```` y", "`````"]

    def test_math_block(self):
        doc = flatten_document(Document(blocks=[MathBlock(content="x^2")]))
        assert line_texts(doc.blocks) == ["$$", "x^2", "$$"]
        assert doc.blocks[0].source_kind == "math"

    def test_image_and_rule(self):
        doc = flatten_document(Document(blocks=[ImageBlock(src="a.png", alt="A", title="T"), ThematicBreak()]))
        assert line_texts(doc.blocks) == ['![A](a.png "T")', "---"]
        assert doc.blocks[0].image_attrs.src == "a.png"
        assert doc.blocks[1].hr_source

    def test_group_ids_unique(self):
        doc = flatten_document(parse("```\na\n```\n\n```\nb\n```\n"))
        assert {p.source_group_id for p in doc.blocks} == {"cb0", "cb1"}

    def test_group_ids_skip_taken(self):
        existing = ParagraphBlock(content=[TextRun(text="```")], source_group_id="cb0", line_index=0, line_total=1)
        doc = flatten_document(Document(blocks=[existing, CodeBlock(content="x")]))
        assert doc.blocks[1].source_group_id == "cb1"

    def test_nested_blocks_flattened(self):
        doc = flatten_document(parse("> ```\n> a\n> ```\n\n- ---\n"))
        quote = doc.blocks[0]
        assert isinstance(quote, BlockquoteBlock)
        assert line_texts(quote.blocks) == ["```", "a", "```"]
        assert not needs_flatten(doc)

    def test_inline_images_become_literal(self):
        doc = Document(blocks=[ParagraphBlock(content=[TextRun(text="see "), InlineImage(src="x.png", alt="a")])])
        flat = flatten_document(doc)
        assert line_texts(flat.blocks) == ["see ![a](x.png)"]

    def test_original_untouched(self):
        doc = Document(blocks=[CodeBlock(content="x")])
        flatten_document(doc)
        assert doc.blocks == [CodeBlock(content="x")]


# === 2. FOLD ===


class TestFold:
    @pytest.mark.parametrize(
        "blocks",
        [
            [CodeBlock(language="python", content="def f():\n    return 1")],
            [CodeBlock(content="")],
            [CodeBlock(content="trailing\n")],
            [CodeBlock(content="```inner```")],
            [CodeBlock(content="```")],
            [CodeBlock(language="md", content="````\n```")],
            [MathBlock(content="a\n\nb")],
            [ImageBlock(src="a b.png", alt="x")],
            [ThematicBreak()],
            [BlockquoteBlock(blocks=[CodeBlock(content="q")]), ParagraphBlock(content=[TextRun(text="after")])],
        ],
    )
    def test_fold_inverts_flatten(self, blocks):
        doc = Document(blocks=blocks)
        assert fold_document(flatten_document(doc)) == doc

    def test_edited_code_line(self):
        doc = flatten_document(Document(blocks=[CodeBlock(language="py", content="a")]))
        doc.blocks[1].content = [TextRun(text="b = 2")]
        assert fold_document(doc).blocks == [CodeBlock(language="py", content="b = 2")]

    def test_deleted_closing_fence_kept_literal(self):
        doc = flatten_document(Document(blocks=[CodeBlock(content="a")]))
        doc.blocks[2].content = []
        folded = fold_document(doc)
        assert line_texts(folded.blocks) == ["```", "a", ""]
        assert all(p.source_group_id == "cb0" for p in folded.blocks)

    def test_fold_code_raises_on_mismatch(self):
        with pytest.raises(FoldError):
            fold_code([ParagraphBlock(content=[TextRun(text="no fence")], source_group_id="cb0")])

    def test_broken_image_kept(self):
        doc = flatten_document(Document(blocks=[ImageBlock(src="a.png")]))
        doc.blocks[0].content = [TextRun(text="![a.png")]
        assert isinstance(fold_document(doc).blocks[0], ParagraphBlock)

    def test_edited_rule_still_folds(self):
        doc = flatten_document(Document(blocks=[ThematicBreak()]))
        doc.blocks[0].content = [TextRun(text="* * *")]
        assert fold_document(doc).blocks == [ThematicBreak()]


# === 3. EDITOR MODE SWITCH ===


class TestEditorSourceView:
    def test_round_trip_through_source_view(self):
        markdown = "# T\n\n```py\nx = 1\n```\n\n![a](b.png)\n\n---\n\n$$\ny\n$$\n"
        editor = LiveEditor(markdown)
        editor.source_view = True
        assert all(isinstance(b, ParagraphBlock) for b in editor.doc.blocks[1:])
        assert editor.get_markdown() == markdown
        editor.source_view = False
        assert editor.get_markdown() == markdown
        assert isinstance(editor.doc.blocks[1], CodeBlock)

    def test_source_lines_carry_no_annotations(self):
        editor = LiveEditor("```\n**x**\n```\n")
        editor.source_view = True
        line = editor.doc.blocks[1]
        assert all(not span.annotations for span in line.content)

    def test_edit_in_source_view_then_fold(self):
        editor = LiveEditor("```\na\n```\n")
        editor.source_view = True
        editor.insert_text(5, "bc")
        editor.source_view = False
        assert editor.doc.blocks == [CodeBlock(content="abc")]

    def test_split_source_line_stays_in_group(self):
        editor = LiveEditor("```\nab\n```\n")
        editor.source_view = True
        editor.split_block(5)
        lines = editor.doc.blocks
        assert line_texts(lines) == ["```", "a", "b", "```"]
        assert [(p.line_index, p.line_total) for p in lines] == [(0, 4), (1, 4), (2, 4), (3, 4)]
        editor.source_view = False
        assert editor.doc.blocks == [CodeBlock(content="a\nb")]

    def test_replace_blocks_flattened_in_source_view(self):
        editor = LiveEditor("text")
        editor.source_view = True
        editor.replace_blocks([CodeBlock(content="x"), ListBlock()])
        assert not needs_flatten(editor.doc)
        assert line_texts(editor.doc.blocks[:3]) == ["```", "x", "```"]

    def test_load_in_source_view(self):
        editor = LiveEditor("")
        editor.source_view = True
        editor.set_markdown("![a](b.png)\n")
        assert isinstance(editor.doc.blocks[0], ParagraphBlock)
        assert editor.doc.blocks[0].image_attrs is not None

    def test_code_holding_a_fence_survives_source_view(self):
        editor = LiveEditor("````\n```\n````\n")
        assert editor.doc.blocks[0] == CodeBlock(content="```")
        editor.source_view = True
        assert line_texts(editor.doc.blocks[:3]) == ["````", "```", "````"]
        assert parse(editor.get_markdown()).blocks[0] == CodeBlock(content="```")
        editor.source_view = False
        assert editor.doc.blocks[0] == CodeBlock(content="```")
        assert editor.get_markdown() == "````\n```\n````\n"

    def test_empty_code_block_same_in_both_modes(self):
        editor = LiveEditor("```py\n```\n")
        rendered = editor.get_markdown()
        assert rendered == "```py\n```\n"
        editor.source_view = True
        assert editor.get_markdown() == rendered
        editor.source_view = False
        assert editor.doc.blocks[0] == CodeBlock(language="py")
        assert editor.get_markdown() == rendered
