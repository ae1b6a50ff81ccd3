"""Syntax detector: derive annotations from the literal text of every text block.

The detector is the only component that assigns annotations. After each edit
batch it rescans all text blocks, resolves nested syntax into a flat list of
regions, and rewrites a block's annotations only when they differ from what
the text implies. Unchanged blocks are never touched, so running it twice
produces no second change and the post-commit loop settles.

Outside source view it also promotes completed image syntax to image nodes.
"""

from dataclasses import dataclass

from loguru import logger

from livemark.editor.patterns import (
    HEADING_PREFIX_PATTERN,
    IMAGE_PATTERN,
    SEMANTIC_TYPES,
    find_escapes,
    find_matches,
    mask_escapes,
)
from livemark.editor.transaction import Transaction
from livemark.markdown.flat import PLACEHOLDER, FlatText, TextblockRef, iter_textblocks
from livemark.markdown.models import (
    SYNTAX_MARKER,
    Annotation,
    HeadingBlock,
    ImageBlock,
    InlineImage,
    ParagraphBlock,
    sort_annotations,
)

# Annotation types owned (removed and reapplied) by the detector
TRACKED_TYPES = frozenset((SYNTAX_MARKER, *SEMANTIC_TYPES))


@dataclass(frozen=True)
class SyntaxRegion:
    """A span of a text block with the annotations its literal text implies."""

    start: int
    end: int
    annotations: tuple[Annotation, ...]
    is_marker: bool
    is_escape: bool = False

    @property
    def mark_types(self) -> tuple[str, ...]:
        return tuple(a.type for a in self.annotations if not a.is_marker)

    @property
    def syntax_type(self) -> str | None:
        return next((a.syntax_type for a in self.annotations if a.is_marker), None)


def _semantic_annotations(match) -> tuple[Annotation, ...]:
    attrs = match.attrs
    return tuple(
        Annotation(
            type=mark,
            href=attrs.get("href") if mark == "link" else None,
            title=attrs.get("title") if mark == "link" else None,
            content=attrs.get("content") if mark == "math_inline" else None,
            ref=attrs.get("ref") if mark == "footnote_ref" else None,
        )
        for mark in match.syntax.marks
    )


class _Resolver:
    """Resolves one text block's literal text into regions."""

    def __init__(self, text: str):
        self.text = text
        self.escapes = find_escapes(text)
        self.masked = mask_escapes(text, self.escapes)

    def resolve(self, start: int, end: int, inherited: tuple[Annotation, ...]) -> list[SyntaxRegion]:
        regions: list[SyntaxRegion] = []
        pos = start
        for m in find_matches(self.masked[start:end], self.text[start:end]):
            m_start, m_end = start + m.start, start + m.end
            content_start, content_end = start + m.content_start, start + m.content_end
            regions.extend(self.plain(pos, m_start, inherited))

            annotations = inherited + _semantic_annotations(m)
            syntax_type = m.syntax.type
            regions.append(
                SyntaxRegion(m_start, content_start, annotations + (Annotation.marker(syntax_type, "open"),), True)
            )
            if m.syntax.literal:
                regions.append(SyntaxRegion(content_start, content_end, annotations, False))
            else:
                regions.extend(self.resolve(content_start, content_end, annotations))
            regions.append(
                SyntaxRegion(content_end, m_end, annotations + (Annotation.marker(syntax_type, "close"),), True)
            )
            pos = m_end
        regions.extend(self.plain(pos, end, inherited))
        return regions

    def plain(self, start: int, end: int, inherited: tuple[Annotation, ...]) -> list[SyntaxRegion]:
        """Plain text regions, split around escape pairs."""
        regions: list[SyntaxRegion] = []
        pos = start
        for esc in self.escapes:
            if esc < start or esc + 2 > end:
                continue
            if esc > pos:
                regions.append(SyntaxRegion(pos, esc, inherited, False))
            regions.append(SyntaxRegion(esc, esc + 1, inherited + (Annotation.marker("escape"),), True, True))
            regions.append(SyntaxRegion(esc + 1, esc + 2, inherited, False))
            pos = esc + 2
        if end > pos:
            regions.append(SyntaxRegion(pos, end, inherited, False))
        return regions


def detect_regions(text: str, *, heading: bool = False) -> list[SyntaxRegion]:
    """Resolve a text block's literal text into an ordered list of regions covering all of it.

    Args:
        text: The block's flat text.
        heading: Treat a leading `#` run as the heading prefix marker.

    Returns:
        Regions in order; prefix/suffix delimiters are marker regions, escapes
        produce a marker on the backslash only. Malformed syntax is plain text.
    """
    resolver = _Resolver(text)
    start = 0
    regions: list[SyntaxRegion] = []
    if heading:
        prefix = HEADING_PREFIX_PATTERN.match(text)
        if prefix:
            start = prefix.end()
            regions.append(SyntaxRegion(0, start, (Annotation.marker("heading", "open"),), True))
    regions.extend(resolver.resolve(start, len(text), ()))
    return regions


def _desired_marks(flat: FlatText, regions: list[SyntaxRegion]) -> list[tuple[Annotation, ...]]:
    """Per-position annotations: untracked ones kept, tracked ones taken from the regions."""
    marks = [tuple(a for a in m if a.type not in TRACKED_TYPES) for m in flat.marks]
    for region in regions:
        for pos in range(region.start, region.end):
            if flat.is_atom(pos):
                continue
            marks[pos] = sort_annotations(marks[pos] + region.annotations)
    return marks


def apply_regions(ref: TextblockRef, regions: list[SyntaxRegion]) -> bool:
    """Rewrite the block's annotations to match `regions`. Returns False when already correct."""
    flat = FlatText.from_content(ref.node.content)
    desired = _desired_marks(flat, regions)
    if flat.marks == desired:
        return False
    flat.marks = desired
    ref.node.content = flat.to_content()
    return True


def _is_literal_line(ref: TextblockRef) -> bool:
    return isinstance(ref.node, ParagraphBlock) and ref.node.is_source_line


def _annotate(ref: TextblockRef) -> bool:
    flat = FlatText.from_content(ref.node.content)
    if _is_literal_line(ref):
        # Flattened code/math lines are literal text
        regions: list[SyntaxRegion] = []
    else:
        regions = detect_regions(flat.text, heading=isinstance(ref.node, HeadingBlock))
    return apply_regions(ref, regions)


@dataclass
class _ImageCandidate:
    ref: TextblockRef
    start: int
    end: int
    image: InlineImage
    standalone: bool


def _find_images(ref: TextblockRef) -> list[_ImageCandidate]:
    flat = FlatText.from_content(ref.node.content)
    masked = mask_escapes(flat.text, find_escapes(flat.text))
    found = []
    for m in IMAGE_PATTERN.finditer(masked):
        alt, src, title = (flat.text[slice(*m.span(g))] if m.group(g) is not None else "" for g in (1, 2, 3))
        standalone = (
            isinstance(ref.node, ParagraphBlock)
            and ref.container is not None
            and flat.text.strip() == m.group(0)
            and not flat.atoms
        )
        found.append(_ImageCandidate(ref, m.start(), m.end(), InlineImage(src=src, alt=alt, title=title), standalone))
    return found


def promote_images(tr: Transaction, refs: list[TextblockRef]) -> int:
    """Replace completed image syntax with image nodes, back to front by position."""
    candidates = [c for ref in refs if not _is_literal_line(ref) for c in _find_images(ref)]
    candidates.sort(key=lambda c: c.ref.start + c.start, reverse=True)

    for c in candidates:
        if c.standalone:
            node = c.ref.node
            image = ImageBlock(src=c.image.src, alt=c.image.alt, title=c.image.title)
            if c.ref.container is tr.doc.blocks and c.ref.index == len(tr.doc.blocks) - 1:
                # The document keeps a text block after a trailing image
                c.ref.container[c.ref.index :] = [image, ParagraphBlock()]
                tr.step(c.ref.start, c.ref.size, 0)
            else:
                c.ref.container[c.ref.index] = image
                # The paragraph and its separator leave the position space
                tr.step(c.ref.start, c.ref.size + 1, 0)
            logger.debug(f"Promoted paragraph to image block: {node.content!r}")
            continue
        flat = FlatText.from_content(c.ref.node.content)
        atom = FlatText(PLACEHOLDER, [()], {0: c.image})
        c.ref.node.content = flat.replace(c.start, c.end, atom).to_content()
        tr.step(c.ref.start + c.start, c.end - c.start, 1)
    return len(candidates)


def run_detector(tr: Transaction, *, source_view: bool = False) -> Transaction:
    """Rescan every text block, fixing annotations and promoting images.

    Never raises for user text: anything that does not match stays plain.
    """
    refs = list(iter_textblocks(tr.doc))
    changed = sum(1 for ref in refs if _annotate(ref))
    if changed:
        tr.mark_changed()
        logger.debug(f"Detector re-annotated {changed} text block(s)")

    if not source_view:
        promoted = promote_images(tr, refs)
        if promoted:
            tr.mark_changed()
            logger.debug(f"Detector promoted {promoted} image(s)")
    return tr
