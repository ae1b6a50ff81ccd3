"""Source-view transformer: flatten rich blocks to literal lines and fold them back.

Flatten turns every code block, math block, image block and horizontal rule
into paragraphs holding their literal Markdown, tagged so fold can find them
again. Fold rebuilds each tagged group with a strict pattern and leaves the
paragraphs untouched when it does not match, so no user text is ever lost.
Both directions produce a complete new block list that replaces the old one
in a single substitution.
"""

import re
from itertools import count

from loguru import logger

from livemark.editor.patterns import IMAGE_PATTERN
from livemark.editor.transaction import Transaction
from livemark.exceptions import FoldError
from livemark.markdown.flat import iter_textblocks
from livemark.markdown.models import (
    Block,
    BlockquoteBlock,
    CodeBlock,
    ContainerBlock,
    Document,
    HardBreak,
    ImageAttrs,
    ImageBlock,
    Inline,
    InlineImage,
    ListBlock,
    MathBlock,
    ParagraphBlock,
    TextRun,
    ThematicBreak,
    iter_block_lists,
)
from livemark.markdown.serializer import code_fence, image_markdown

CODE_FENCE_PATTERN = re.compile(r"(`{3,})([^\n]*)\n(?:(.*)\n)?\1", re.DOTALL)
MATH_FENCE_PATTERN = re.compile(r"\$\$\n(?:(.*)\n)?\$\$", re.DOTALL)
HR_PATTERN = re.compile(r"([-*_])(?:[ \t]*\1){2,}")

HR_SOURCE_TEXT = "---"

# Blocks that only exist in rendered mode
FLATTENABLE = (CodeBlock, MathBlock, ImageBlock, ThematicBreak)


def _line(text: str, **attrs) -> ParagraphBlock:
    return ParagraphBlock(content=[TextRun(text=text)] if text else [], **attrs)


def literal_text(content: list[Inline]) -> str:
    """Literal Markdown text of inline spans."""
    parts = []
    for span in content:
        if isinstance(span, TextRun):
            parts.append(span.text)
        elif isinstance(span, HardBreak):
            parts.append("\n")
        elif isinstance(span, InlineImage):
            parts.append(image_markdown(span.src, span.alt, span.title))
    return "".join(parts)


# === FLATTEN ===


class _GroupIds:
    """Deterministic group ids (cb0, cb1, ...) that skip ids already in the document."""

    def __init__(self, taken: set[str]):
        self._taken = taken
        self._counter = count()

    def next(self) -> str:
        while True:
            group_id = f"cb{next(self._counter)}"
            if group_id not in self._taken:
                self._taken.add(group_id)
                return group_id


def _fenced_lines(opening: str, content: str, closing: str) -> list[str]:
    return f"{opening}\n{content}\n{closing}".split("\n")


def flatten_code(block: CodeBlock, group_id: str) -> list[ParagraphBlock]:
    fence = code_fence(block.content)
    if block.content:
        lines = _fenced_lines(f"{fence}{block.language}", block.content, fence)
    else:
        lines = [f"{fence}{block.language}", fence]
    return [
        _line(
            text,
            source_group_id=group_id,
            line_index=i,
            line_total=len(lines),
            language=block.language,
            source_kind="code",
        )
        for i, text in enumerate(lines)
    ]


def flatten_math(block: MathBlock, group_id: str) -> list[ParagraphBlock]:
    lines = _fenced_lines("$$", block.content, "$$")
    return [
        _line(text, source_group_id=group_id, line_index=i, line_total=len(lines), source_kind="math")
        for i, text in enumerate(lines)
    ]


def flatten_image(block: ImageBlock) -> ParagraphBlock:
    return _line(
        image_markdown(block.src, block.alt, block.title),
        image_attrs=ImageAttrs(src=block.src, alt=block.alt, title=block.title),
    )


def _flatten_inline_images(content: list[Inline]) -> list[Inline]:
    if not any(isinstance(span, InlineImage) for span in content):
        return content
    return [
        TextRun(text=image_markdown(span.src, span.alt, span.title)) if isinstance(span, InlineImage) else span
        for span in content
    ]


def _flatten_list(blocks: list[Block], ids: _GroupIds) -> list[Block]:
    result: list[Block] = []
    for block in blocks:
        if isinstance(block, CodeBlock):
            result.extend(flatten_code(block, ids.next()))
        elif isinstance(block, MathBlock):
            result.extend(flatten_math(block, ids.next()))
        elif isinstance(block, ImageBlock):
            result.append(flatten_image(block))
        elif isinstance(block, ThematicBreak):
            result.append(_line(HR_SOURCE_TEXT, hr_source=True))
        else:
            _flatten_children(block, ids)
            result.append(block)
    return result


def _flatten_children(block: Block, ids: _GroupIds) -> None:
    if isinstance(block, (BlockquoteBlock, ContainerBlock)):
        block.blocks = _flatten_list(block.blocks, ids)
    elif isinstance(block, ListBlock):
        for item in block.items:
            item.blocks = _flatten_list(item.blocks, ids)


def _taken_group_ids(doc: Document) -> set[str]:
    return {
        block.source_group_id
        for blocks in iter_block_lists(doc.blocks)
        for block in blocks
        if isinstance(block, ParagraphBlock) and block.source_group_id
    }


def flatten_document(doc: Document) -> Document:
    """Return a copy of `doc` with every rich block flattened to literal paragraphs."""
    result = doc.model_copy(deep=True)
    ids = _GroupIds(_taken_group_ids(result))
    result.blocks = _flatten_list(result.blocks, ids)
    for ref in list(iter_textblocks(result)):
        ref.node.content = _flatten_inline_images(ref.node.content)
    return result


def needs_flatten(doc: Document) -> bool:
    """Whether rendered-only nodes are present (e.g. after a programmatic replacement)."""
    for blocks in iter_block_lists(doc.blocks):
        if any(isinstance(block, FLATTENABLE) for block in blocks):
            return True
    return any(isinstance(span, InlineImage) for ref in iter_textblocks(doc) for span in ref.node.content)


# === FOLD ===


def fold_code(lines: list[ParagraphBlock]) -> CodeBlock:
    text = "\n".join(literal_text(p.content) for p in lines)
    m = CODE_FENCE_PATTERN.fullmatch(text)
    if not m:
        raise FoldError("code", text)
    return CodeBlock(language=m.group(2).strip(), content=m.group(3) or "")


def fold_math(lines: list[ParagraphBlock]) -> MathBlock:
    text = "\n".join(literal_text(p.content) for p in lines)
    m = MATH_FENCE_PATTERN.fullmatch(text)
    if not m:
        raise FoldError("math", text)
    return MathBlock(content=m.group(1) or "")


def fold_image(paragraph: ParagraphBlock) -> ImageBlock:
    text = literal_text(paragraph.content).strip()
    m = IMAGE_PATTERN.fullmatch(text)
    if not m:
        raise FoldError("image", text)
    return ImageBlock(src=m.group(2), alt=m.group(1), title=m.group(3) or "")


def fold_hr(paragraph: ParagraphBlock) -> ThematicBreak:
    text = literal_text(paragraph.content).strip()
    if not HR_PATTERN.fullmatch(text):
        raise FoldError("hr", text)
    return ThematicBreak()


def _fold_group(group: list[ParagraphBlock]) -> list[Block]:
    kind = group[0].source_kind or "code"
    try:
        return [fold_math(group) if kind == "math" else fold_code(group)]
    except FoldError as e:
        logger.warning(f"Keeping {len(group)} source line(s) of group {group[0].source_group_id}: {e}")
        return list(group)


def _fold_single(paragraph: ParagraphBlock) -> Block:
    try:
        if paragraph.image_attrs is not None:
            return fold_image(paragraph)
        return fold_hr(paragraph)
    except FoldError as e:
        logger.warning(f"Keeping paragraph as literal text: {e}")
        return paragraph


def _fold_list(blocks: list[Block]) -> list[Block]:
    result: list[Block] = []
    i = 0
    while i < len(blocks):
        block = blocks[i]
        if isinstance(block, ParagraphBlock) and block.source_group_id:
            j = i + 1
            while (
                j < len(blocks)
                and isinstance(blocks[j], ParagraphBlock)
                and blocks[j].source_group_id == block.source_group_id
            ):
                j += 1
            result.extend(_fold_group(blocks[i:j]))
            i = j
            continue
        if isinstance(block, ParagraphBlock) and (block.image_attrs is not None or block.hr_source):
            result.append(_fold_single(block))
        else:
            _fold_children(block)
            result.append(block)
        i += 1
    return result


def _fold_children(block: Block) -> None:
    if isinstance(block, (BlockquoteBlock, ContainerBlock)):
        block.blocks = _fold_list(block.blocks)
    elif isinstance(block, ListBlock):
        for item in block.items:
            item.blocks = _fold_list(item.blocks)


def fold_document(doc: Document) -> Document:
    """Return a copy of `doc` with tagged paragraph groups rebuilt into rich blocks.

    Groups that no longer match their pattern stay as literal paragraphs, tags kept.
    """
    result = doc.model_copy(deep=True)
    result.blocks = _fold_list(result.blocks)
    return result


# === TRANSACTION ===


def apply_source_view(tr: Transaction, enabled: bool) -> Transaction:
    """Flatten or fold the transaction's document with one bulk block replacement."""
    replacement = flatten_document(tr.doc) if enabled else fold_document(tr.doc)
    if replacement.blocks == tr.doc.blocks:
        return tr
    tr.doc.blocks[:] = replacement.blocks
    tr.replace_all()
    logger.debug(f"Source view {'flattened' if enabled else 'folded'} document ({len(tr.doc.blocks)} blocks)")
    return tr
