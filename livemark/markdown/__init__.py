"""Markdown parsing, the document model and serialization back to Markdown."""

from livemark.markdown.models import (
    Annotation,
    Block,
    BlockquoteBlock,
    CodeBlock,
    ContainerBlock,
    Document,
    FrontMatterBlock,
    HardBreak,
    HeadingBlock,
    HtmlBlock,
    ImageBlock,
    InlineImage,
    ListBlock,
    ListItem,
    MathBlock,
    ParagraphBlock,
    TableBlock,
    TableCell,
    TableRow,
    TextRun,
    ThematicBreak,
)
from livemark.markdown.parser import parse, parse_markdown
from livemark.markdown.paths import resolve_image_src
from livemark.markdown.serializer import normalize, serialize

__all__ = [
    # Parser
    "parse",
    "parse_markdown",
    # Serializer
    "serialize",
    "normalize",
    # Paths
    "resolve_image_src",
    # Models
    "Document",
    "Block",
    "Annotation",
    "TextRun",
    "HardBreak",
    "InlineImage",
    "HeadingBlock",
    "ParagraphBlock",
    "ListBlock",
    "ListItem",
    "BlockquoteBlock",
    "CodeBlock",
    "MathBlock",
    "TableBlock",
    "TableRow",
    "TableCell",
    "ImageBlock",
    "ThematicBreak",
    "HtmlBlock",
    "FrontMatterBlock",
    "ContainerBlock",
]
