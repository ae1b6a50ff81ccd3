"""Data models for the live document tree.

Text blocks hold inline spans whose text is always the literal Markdown source,
syntax punctuation included. Meaning is attached through annotations: semantic
annotations (strong, link, ...) and marker annotations that tag the literal
delimiter characters so they can be hidden or shown without being removed.
"""

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

SYNTAX_MARKER = "syntax_marker"

# Canonical order of annotations on a run (markers first, then catalog order)
ANNOTATION_ORDER = (
    SYNTAX_MARKER,
    "strong",
    "emphasis",
    "code_inline",
    "strikethrough",
    "highlight",
    "link",
    "math_inline",
    "footnote_ref",
)


# === ANNOTATIONS ===


class Annotation(BaseModel):
    """A semantic or marker annotation on a text run."""

    model_config = ConfigDict(frozen=True)

    type: str
    # Marker only: which syntax the punctuation belongs to ("strong", "heading", "escape", ...)
    syntax_type: str | None = None
    role: Literal["open", "close"] | None = None
    # Semantic attributes
    href: str | None = None
    title: str | None = None
    content: str | None = None  # inline math source
    ref: str | None = None  # footnote id

    @property
    def is_marker(self) -> bool:
        return self.type == SYNTAX_MARKER

    @classmethod
    def marker(cls, syntax_type: str, role: Literal["open", "close"] | None = None) -> "Annotation":
        return cls(type=SYNTAX_MARKER, syntax_type=syntax_type, role=role)


def sort_annotations(annotations) -> tuple[Annotation, ...]:
    """Deduplicate and order annotations canonically."""

    def key(a: Annotation) -> tuple[int, str]:
        idx = ANNOTATION_ORDER.index(a.type) if a.type in ANNOTATION_ORDER else len(ANNOTATION_ORDER)
        return idx, a.model_dump_json()

    return tuple(sorted(set(annotations), key=key))


# === INLINE SPANS ===


class TextRun(BaseModel):
    type: Literal["text"] = "text"
    text: str
    annotations: list[Annotation] = Field(default_factory=list)


class HardBreak(BaseModel):
    type: Literal["hard_break"] = "hard_break"


class InlineImage(BaseModel):
    type: Literal["image"] = "image"
    src: str
    alt: str = ""
    title: str = ""


Inline = TextRun | HardBreak | InlineImage


# === BLOCK TYPES ===


class ImageAttrs(BaseModel):
    """Image attributes remembered by a flattened image paragraph."""

    src: str
    alt: str = ""
    title: str = ""


class ParagraphBlock(BaseModel):
    type: Literal["paragraph"] = "paragraph"
    content: list[Inline] = Field(default_factory=list)
    # Source view only: one line of a flattened code or math block
    source_group_id: str | None = None
    line_index: int | None = None
    line_total: int | None = None
    language: str | None = None
    source_kind: Literal["code", "math"] | None = None
    # Source view only: flattened image / horizontal rule
    image_attrs: ImageAttrs | None = None
    hr_source: bool = False

    @property
    def is_source_line(self) -> bool:
        return self.source_group_id is not None


class HeadingBlock(BaseModel):
    type: Literal["heading"] = "heading"
    level: int = Field(default=1, ge=1, le=6)
    content: list[Inline] = Field(default_factory=list)


class CodeBlock(BaseModel):
    type: Literal["code"] = "code"
    language: str = ""
    content: str = ""


class MathBlock(BaseModel):
    type: Literal["math"] = "math"
    content: str = ""  # LaTeX


class HtmlBlock(BaseModel):
    type: Literal["html"] = "html"
    content: str


class FrontMatterBlock(BaseModel):
    type: Literal["front_matter"] = "front_matter"
    content: str  # YAML, kept verbatim


class ThematicBreak(BaseModel):
    type: Literal["hr"] = "hr"


class ImageBlock(BaseModel):
    type: Literal["image"] = "image"
    src: str
    alt: str = ""
    title: str = ""


class TableCell(BaseModel):
    content: list[Inline] = Field(default_factory=list)
    align: Literal["left", "center", "right"] | None = None


class TableRow(BaseModel):
    cells: list[TableCell]


class TableBlock(BaseModel):
    type: Literal["table"] = "table"
    rows: list[TableRow]  # first row is the header


class ListItem(BaseModel):
    blocks: list["Block"] = Field(default_factory=list)
    checked: bool | None = None  # None: plain item, bool: task item


class ListBlock(BaseModel):
    type: Literal["list"] = "list"
    ordered: bool = False
    start: int = 1
    bullet: str = "-"
    delimiter: str = "."
    tight: bool = True
    items: list[ListItem] = Field(default_factory=list)


class BlockquoteBlock(BaseModel):
    type: Literal["blockquote"] = "blockquote"
    blocks: list["Block"] = Field(default_factory=list)


class ContainerBlock(BaseModel):
    type: Literal["container"] = "container"
    kind: str = "note"
    title: str = ""
    blocks: list["Block"] = Field(default_factory=list)


Block = (
    ParagraphBlock
    | HeadingBlock
    | CodeBlock
    | MathBlock
    | HtmlBlock
    | FrontMatterBlock
    | ThematicBreak
    | ImageBlock
    | TableBlock
    | ListBlock
    | BlockquoteBlock
    | ContainerBlock
)

# Blocks whose content is a list of inline spans
Textblock = ParagraphBlock | HeadingBlock | TableCell

# Update forward references
ListItem.model_rebuild()
ListBlock.model_rebuild()
BlockquoteBlock.model_rebuild()
ContainerBlock.model_rebuild()


# === DOCUMENT ===


class Document(BaseModel):
    """The one authoritative tree for an open file."""

    blocks: list[Block] = Field(default_factory=list)


def child_block_lists(block: Block) -> list[list[Block]]:
    """Nested block lists owned by a container block, in document order."""
    if isinstance(block, (BlockquoteBlock, ContainerBlock)):
        return [block.blocks]
    if isinstance(block, ListBlock):
        return [item.blocks for item in block.items]
    return []


def iter_block_lists(blocks: list[Block]):
    """Yield `blocks` and every nested block list below it, depth first."""
    yield blocks
    for block in blocks:
        for nested in child_block_lists(block):
            yield from iter_block_lists(nested)
