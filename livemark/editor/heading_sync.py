"""Heading synchronizer: a heading's level follows the `#` characters typed in front of it."""

from loguru import logger

from livemark.editor.transaction import Transaction
from livemark.markdown.flat import FlatText, iter_textblocks, strip_annotations
from livemark.markdown.models import HeadingBlock, ParagraphBlock

MAX_HEADING_LEVEL = 6


def _is_heading_marker(annotation) -> bool:
    return annotation.is_marker and annotation.syntax_type == "heading"


def heading_prefix_count(flat: FlatText) -> int:
    """Count the leading `#` characters inside the leading heading-marker run."""
    count = 0
    for char, marks in zip(flat.text, flat.marks):
        if not any(_is_heading_marker(a) for a in marks):
            break
        if char != "#":
            break
        count += 1
    return count


def run_heading_sync(tr: Transaction) -> Transaction:
    """Update heading levels and demote headings that lost their prefix.

    The marker text is never rewritten. A count of zero or above six is not a
    heading in Markdown, so the block becomes a paragraph.
    """
    for ref in list(iter_textblocks(tr.doc)):
        node = ref.node
        if not isinstance(node, HeadingBlock) or ref.container is None:
            continue

        count = heading_prefix_count(FlatText.from_content(node.content))
        if count == 0 or count > MAX_HEADING_LEVEL:
            ref.container[ref.index] = ParagraphBlock(content=strip_annotations(node.content, _is_heading_marker))
            tr.mark_changed()
            logger.debug(f"Demoted heading at {ref.start} to paragraph")
        elif count != node.level:
            logger.debug(f"Heading at {ref.start}: level {node.level} -> {count}")
            node.level = count
            tr.mark_changed()
    return tr
