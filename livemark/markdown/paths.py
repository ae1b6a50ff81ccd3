"""Image path resolution against an explicitly passed Markdown file path."""

import re
from pathlib import Path, PurePosixPath, PureWindowsPath

from livemark.markdown.flat import iter_textblocks
from livemark.markdown.models import Document, ImageBlock, InlineImage, ParagraphBlock, iter_block_lists

_SKIPPED_PREFIXES = ("http://", "https://", "file://", "data:")
_ABSOLUTE_PATTERN = re.compile(r"^(?:[a-z]:[\\/]|\\\\|/)", re.IGNORECASE)


def is_absolute(src: str) -> bool:
    """POSIX, drive-letter and UNC paths are absolute."""
    return bool(_ABSOLUTE_PATTERN.match(src))


def resolve_image_src(src: str, markdown_path: str | Path | None) -> str:
    """Resolve a relative image path against the directory of `markdown_path`.

    URLs, data URIs and absolute paths are returned unchanged, as is every path
    when no Markdown file path is known.
    """
    if markdown_path is None or not src or src.startswith(_SKIPPED_PREFIXES) or is_absolute(src):
        return src
    base = str(markdown_path)
    pure = PureWindowsPath if is_absolute(base) and not base.startswith("/") else PurePosixPath
    return str(pure(base).parent / src)


def image_sources(doc: Document) -> list[str]:
    """Image sources in document order: image blocks, flattened images and inline images."""
    sources = []
    for blocks in iter_block_lists(doc.blocks):
        for block in blocks:
            if isinstance(block, ImageBlock):
                sources.append(block.src)
            elif isinstance(block, ParagraphBlock) and block.image_attrs is not None:
                sources.append(block.image_attrs.src)
    for ref in iter_textblocks(doc):
        sources.extend(span.src for span in ref.node.content if isinstance(span, InlineImage))
    return sources
