"""Document tree back to Markdown text.

Text blocks already hold their literal Markdown, so serialization is mostly
layout: block separation, list and quote prefixes, fences and table rows.
"""

import re

from livemark.markdown.models import (
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
    Inline,
    InlineImage,
    ListBlock,
    ListItem,
    MathBlock,
    ParagraphBlock,
    TableBlock,
    TextRun,
    ThematicBreak,
)

_BACKTICK_RUN = re.compile(r"`{3,}")
_UNESCAPED_PIPE = re.compile(r"(?<!\\)\|")
_BLANK_RUN = re.compile(r"\n{3,}")

_ALIGN_SEPARATOR = {None: "---", "left": ":---", "center": ":---:", "right": "---:"}


def image_markdown(src: str, alt: str = "", title: str = "") -> str:
    """Literal image syntax: `![alt](src "title")`."""
    if title:
        return f'![{alt}]({src} "{title}")'
    return f"![{alt}]({src})"


def inline_markdown(content: list[Inline]) -> str:
    parts = []
    for span in content:
        if isinstance(span, TextRun):
            parts.append(span.text)
        elif isinstance(span, HardBreak):
            parts.append("  \n")
        elif isinstance(span, InlineImage):
            parts.append(image_markdown(span.src, span.alt, span.title))
    return "".join(parts)


def _indent(text: str, first: str, rest: str) -> str:
    lines = text.split("\n")
    out = [first + lines[0]]
    out.extend(rest + line if line else "" for line in lines[1:])
    return "\n".join(out)


def code_fence(content: str) -> str:
    """Backtick fence one longer than the longest backtick run in `content` (at least three)."""
    longest = max((len(run) for run in _BACKTICK_RUN.findall(content)), default=2)
    return "`" * max(3, longest + 1)


def _serialize_code(block: CodeBlock) -> str:
    fence = code_fence(block.content)
    if not block.content:
        return f"{fence}{block.language}\n{fence}"
    return f"{fence}{block.language}\n{block.content}\n{fence}"


def _serialize_table(block: TableBlock) -> str:
    if not block.rows:
        return ""

    def row_text(cells) -> str:
        return "| " + " | ".join(_UNESCAPED_PIPE.sub(r"\\|", inline_markdown(c.content)) for c in cells) + " |"

    header, *body = block.rows
    separator = "| " + " | ".join(_ALIGN_SEPARATOR[c.align] for c in header.cells) + " |"
    return "\n".join([row_text(header.cells), separator, *(row_text(r.cells) for r in body)])


def _serialize_item(block: ListBlock, item: ListItem, number: int) -> str:
    marker = f"{number}{block.delimiter}" if block.ordered else block.bullet
    task = "" if item.checked is None else ("[x] " if item.checked else "[ ] ")
    separator = "\n" if block.tight else "\n\n"
    body = serialize_blocks(item.blocks, separator=separator)
    return _indent(task + body, f"{marker} ", " " * (len(marker) + 1))


def _serialize_list(block: ListBlock) -> str:
    separator = "\n" if block.tight else "\n\n"
    return separator.join(_serialize_item(block, item, block.start + i) for i, item in enumerate(block.items))


def serialize_block(block: Block) -> str:
    """Serialize one block (without trailing newline)."""
    if isinstance(block, ParagraphBlock):
        return inline_markdown(block.content)
    if isinstance(block, HeadingBlock):
        text = inline_markdown(block.content)
        return text if text.startswith("#") else f"{'#' * block.level} {text}"
    if isinstance(block, CodeBlock):
        return _serialize_code(block)
    if isinstance(block, MathBlock):
        return f"$$\n{block.content}\n$$"
    if isinstance(block, ThematicBreak):
        return "---"
    if isinstance(block, ImageBlock):
        return image_markdown(block.src, block.alt, block.title)
    if isinstance(block, HtmlBlock):
        return block.content
    if isinstance(block, FrontMatterBlock):
        return f"---\n{block.content}\n---"
    if isinstance(block, TableBlock):
        return _serialize_table(block)
    if isinstance(block, ListBlock):
        return _serialize_list(block)
    if isinstance(block, BlockquoteBlock):
        inner = serialize_blocks(block.blocks)
        return "\n".join(f"> {line}" if line else ">" for line in inner.split("\n"))
    if isinstance(block, ContainerBlock):
        opening = f":::{block.kind} {block.title}".rstrip()
        inner = serialize_blocks(block.blocks)
        return f"{opening}\n{inner}\n:::" if inner else f"{opening}\n:::"
    raise TypeError(f"Cannot serialize {type(block).__name__}")


def serialize_blocks(blocks: list[Block], separator: str = "\n\n") -> str:
    """Serialize sibling blocks; lines of one flattened source group stay on consecutive lines."""
    parts: list[str] = []
    previous: Block | None = None
    for block in blocks:
        text = serialize_block(block)
        if previous is not None:
            same_group = (
                isinstance(block, ParagraphBlock)
                and isinstance(previous, ParagraphBlock)
                and block.source_group_id is not None
                and block.source_group_id == previous.source_group_id
            )
            parts.append("\n" if same_group else separator)
        parts.append(text)
        previous = block
    return "".join(parts)


def serialize(doc: Document) -> str:
    """Serialize a document to Markdown ending with a single newline."""
    text = serialize_blocks(doc.blocks).rstrip("\n")
    return f"{text}\n" if text else ""


def normalize(markdown: str) -> str:
    """Canonical form for round-trip comparison.

    Line endings become `\\n`, whitespace-only lines become empty, runs of blank
    lines collapse to one and the text ends with exactly one newline.
    """
    text = markdown.replace("\r\n", "\n").replace("\r", "\n")
    text = "\n".join("" if not line.strip() else line for line in text.split("\n"))
    text = _BLANK_RUN.sub("\n\n", text).strip("\n")
    return f"{text}\n" if text else ""
