"""Markdown parsing using markdown-it-py.

Configures markdown-it with the plugins we need:
- CommonMark base
- GFM tables and strikethrough
- Dollar math ($inline$ and $$display$$)
- Custom containers (:::note Title)
- YAML front matter

The tree is then walked into our document model. Text blocks keep their literal
source (inline syntax included); annotations are attached by running the syntax
detector over the result.
"""

import re

from markdown_it import MarkdownIt
from markdown_it.tree import SyntaxTreeNode
from mdit_py_plugins.container import container_plugin
from mdit_py_plugins.dollarmath import dollarmath_plugin
from mdit_py_plugins.front_matter import front_matter_plugin

from livemark.markdown.models import (
    Block,
    BlockquoteBlock,
    CodeBlock,
    ContainerBlock,
    Document,
    FrontMatterBlock,
    HeadingBlock,
    HtmlBlock,
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

CONTAINER_NAME = "container"

TASK_PREFIX_PATTERN = re.compile(r"\[([ xX])\] ")

_ALIGN_PATTERN = re.compile(r"text-align:\s*(left|center|right)")


def create_parser() -> MarkdownIt:
    """Create configured markdown-it parser."""
    md = MarkdownIt("commonmark")
    md.enable("table")
    md.enable("strikethrough")
    dollarmath_plugin(md)
    container_plugin(md, CONTAINER_NAME, validate=lambda params, *args: bool(params.strip()))
    front_matter_plugin(md)
    return md


# Singleton parser instance
_parser: MarkdownIt | None = None


def get_parser() -> MarkdownIt:
    """Get or create the singleton parser instance."""
    global _parser
    if _parser is None:
        _parser = create_parser()
    return _parser


def parse_markdown(text: str) -> SyntaxTreeNode:
    """Parse markdown text into AST.

    Args:
        text: Markdown text to parse

    Returns:
        Root SyntaxTreeNode of the AST
    """
    parser = get_parser()
    tokens = parser.parse(text)
    return SyntaxTreeNode(tokens)


def _text(text: str) -> list:
    return [TextRun(text=text)] if text else []


def _inline_source(node: SyntaxTreeNode) -> str:
    """Literal source of a block's inline child."""
    inline = node.children[0] if node.children else None
    return inline.content if inline is not None else ""


class DocumentBuilder:
    """Builds a Document from the markdown-it AST."""

    def __init__(self, source: str):
        self.lines = source.split("\n")

    def build(self, ast: SyntaxTreeNode) -> Document:
        blocks: list[Block] = []
        covered_until = 0
        for child in ast.children:
            if child.map:
                blocks.extend(self._uncovered(covered_until, child.map[0]))
                covered_until = max(covered_until, child.map[1])
            blocks.extend(self._transform_node(child))
        blocks.extend(self._uncovered(covered_until, len(self.lines)))
        return Document(blocks=blocks)

    def _uncovered(self, start: int, end: int) -> list[ParagraphBlock]:
        """Lines no token covers (link reference definitions) as literal paragraphs."""
        paragraphs = []
        chunk: list[str] = []
        for line in self.lines[start:end] + [""]:
            if line.strip():
                chunk.append(line)
            elif chunk:
                paragraphs.append(ParagraphBlock(content=_text("\n".join(chunk))))
                chunk = []
        return paragraphs

    def _transform_children(self, node: SyntaxTreeNode) -> list[Block]:
        blocks: list[Block] = []
        for child in node.children:
            blocks.extend(self._transform_node(child))
        return blocks

    def _transform_node(self, node: SyntaxTreeNode) -> list[Block]:
        handlers = {
            "heading": self._transform_heading,
            "paragraph": self._transform_paragraph,
            "fence": self._transform_code,
            "code_block": self._transform_code,
            "bullet_list": self._transform_list,
            "ordered_list": self._transform_list,
            "blockquote": self._transform_blockquote,
            "table": self._transform_table,
            "hr": self._transform_hr,
            "math_block": self._transform_math,
            "math_block_label": self._transform_math,
            "html_block": self._transform_html,
            "front_matter": self._transform_front_matter,
            f"container_{CONTAINER_NAME}": self._transform_container,
        }

        handler = handlers.get(node.type)
        if handler:
            return handler(node)

        # Anything else is kept as literal text
        if node.content:
            return [ParagraphBlock(content=_text(node.content.rstrip("\n")))]
        return []

    def _transform_heading(self, node: SyntaxTreeNode) -> list[HeadingBlock]:
        """Transform heading node. Setext headings are normalized to ATX."""
        level = int(node.tag[1])
        text = f"{'#' * level} {_inline_source(node)}".rstrip()
        return [HeadingBlock(level=level, content=_text(text))]

    def _transform_paragraph(self, node: SyntaxTreeNode) -> list[ParagraphBlock]:
        return [ParagraphBlock(content=_text(_inline_source(node)))]

    def _transform_code(self, node: SyntaxTreeNode) -> list[CodeBlock]:
        """Transform fenced or indented code block."""
        language = node.info.strip() if node.info else ""
        content = node.content or ""
        if content.endswith("\n"):
            content = content[:-1]
        return [CodeBlock(language=language, content=content)]

    def _transform_math(self, node: SyntaxTreeNode) -> list[MathBlock]:
        """Transform math block ($$...$$)."""
        return [MathBlock(content=(node.content or "").strip("\n"))]

    def _transform_list(self, node: SyntaxTreeNode) -> list[ListBlock]:
        """Transform list (bullet or ordered) node, recognising task items."""
        ordered = node.type == "ordered_list"
        start = int(node.attrs.get("start", 1)) if ordered else 1
        items = []
        tight = True

        for list_item in node.children:
            blocks = self._transform_children(list_item)
            tight = tight and all(child.hidden for child in list_item.children if child.type == "paragraph")

            checked = None
            first = blocks[0] if blocks else None
            if not ordered and isinstance(first, ParagraphBlock) and first.content:
                text = first.content[0].text
                m = TASK_PREFIX_PATTERN.match(text)
                if m:
                    checked = m.group(1) != " "
                    first.content = _text(text[m.end() :])
            items.append(ListItem(blocks=blocks, checked=checked))

        markup = node.markup or ("." if ordered else "-")
        return [
            ListBlock(
                ordered=ordered,
                start=start,
                bullet=markup if not ordered else "-",
                delimiter=markup if ordered else ".",
                tight=tight,
                items=items,
            )
        ]

    def _transform_blockquote(self, node: SyntaxTreeNode) -> list[BlockquoteBlock]:
        return [BlockquoteBlock(blocks=self._transform_children(node))]

    def _transform_container(self, node: SyntaxTreeNode) -> list[ContainerBlock]:
        """Transform `:::kind title` container."""
        kind, _, title = (node.info or "").strip().partition(" ")
        return [ContainerBlock(kind=kind, title=title.strip(), blocks=self._transform_children(node))]

    def _transform_table(self, node: SyntaxTreeNode) -> list[TableBlock]:
        """Transform table node; the header row comes first."""
        rows = []
        for section in node.children:
            for tr in section.children:
                cells = []
                for cell in tr.children:
                    m = _ALIGN_PATTERN.search(str(cell.attrs.get("style", "")))
                    cells.append(
                        TableCell(
                            content=_text(_inline_source(cell)),
                            align=m.group(1) if m else None,
                        )
                    )
                rows.append(TableRow(cells=cells))
        return [TableBlock(rows=rows)]

    def _transform_hr(self, node: SyntaxTreeNode) -> list[ThematicBreak]:
        return [ThematicBreak()]

    def _transform_html(self, node: SyntaxTreeNode) -> list[HtmlBlock]:
        return [HtmlBlock(content=(node.content or "").rstrip("\n"))]

    def _transform_front_matter(self, node: SyntaxTreeNode) -> list[FrontMatterBlock]:
        return [FrontMatterBlock(content=node.content or "")]


def parse(markdown: str) -> Document:
    """Parse Markdown into a document with annotations attached.

    Never raises: unknown constructs degrade to literal paragraphs.
    """
    from livemark.editor.detector import run_detector
    from livemark.editor.transaction import Transaction

    source = markdown.replace("\r\n", "\n").replace("\r", "\n")
    doc = DocumentBuilder(source).build(parse_markdown(source))
    run_detector(Transaction(doc, origin="load"))
    return doc
