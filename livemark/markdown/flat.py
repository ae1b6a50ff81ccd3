"""Flat, index-addressed view of text blocks.

Every pass works on the same representation: a text block's inline spans
flattened into one string plus a parallel list holding the annotations of each
position. Atomic inlines (images, hard breaks) occupy a single placeholder
position. Runs are rebuilt from the flat form by merging neighbours that carry
identical annotations.

Text blocks are also laid out on one global coordinate line: text block k
starts at the sum of (size + 1) over the text blocks before it.
"""

from collections.abc import Iterator
from dataclasses import dataclass, field

from livemark.exceptions import InvalidPositionError
from livemark.markdown.models import (
    Annotation,
    BlockquoteBlock,
    ContainerBlock,
    Document,
    HardBreak,
    HeadingBlock,
    Inline,
    InlineImage,
    ListBlock,
    ParagraphBlock,
    TableBlock,
    Textblock,
    TextRun,
    sort_annotations,
)

PLACEHOLDER = "\ufffc"


@dataclass
class FlatText:
    text: str
    marks: list[tuple[Annotation, ...]]
    atoms: dict[int, HardBreak | InlineImage] = field(default_factory=dict)

    @classmethod
    def from_content(cls, content: list[Inline]) -> "FlatText":
        parts: list[str] = []
        marks: list[tuple[Annotation, ...]] = []
        atoms: dict[int, HardBreak | InlineImage] = {}
        pos = 0
        for span in content:
            if isinstance(span, TextRun):
                parts.append(span.text)
                ordered = sort_annotations(span.annotations)
                marks.extend([ordered] * len(span.text))
                pos += len(span.text)
            else:
                parts.append(PLACEHOLDER)
                marks.append(())
                atoms[pos] = span
                pos += 1
        return cls("".join(parts), marks, atoms)

    @classmethod
    def plain(cls, text: str) -> "FlatText":
        return cls(text, [()] * len(text))

    def __len__(self) -> int:
        return len(self.text)

    def to_content(self) -> list[Inline]:
        """Rebuild inline spans, merging neighbouring characters with equal annotations."""
        content: list[Inline] = []
        run_start = 0
        for i in range(len(self.text) + 1):
            boundary = i == len(self.text) or i in self.atoms or (i > run_start and self.marks[i] != self.marks[run_start])
            if not boundary:
                continue
            if i > run_start:
                content.append(TextRun(text=self.text[run_start:i], annotations=list(self.marks[run_start])))
            if i < len(self.text) and i in self.atoms:
                content.append(self.atoms[i])
                run_start = i + 1
            else:
                run_start = i
        return content

    def slice(self, start: int, end: int) -> "FlatText":
        atoms = {p - start: a for p, a in self.atoms.items() if start <= p < end}
        return FlatText(self.text[start:end], self.marks[start:end], atoms)

    def concat(self, other: "FlatText") -> "FlatText":
        shift = len(self.text)
        atoms = dict(self.atoms)
        atoms.update({p + shift: a for p, a in other.atoms.items()})
        return FlatText(self.text + other.text, self.marks + other.marks, atoms)

    def replace(self, start: int, end: int, other: "FlatText") -> "FlatText":
        return self.slice(0, start).concat(other).concat(self.slice(end, len(self.text)))

    def is_atom(self, pos: int) -> bool:
        return pos in self.atoms


def content_size(content: list[Inline]) -> int:
    return sum(len(span.text) if isinstance(span, TextRun) else 1 for span in content)


def strip_annotations(content: list[Inline], predicate) -> list[Inline]:
    """Drop annotations matching `predicate` from every run."""
    flat = FlatText.from_content(content)
    flat.marks = [tuple(a for a in marks if not predicate(a)) for marks in flat.marks]
    return flat.to_content()


# === TEXT BLOCK WALK ===


@dataclass
class TextblockRef:
    """A text block located in the document.

    `container`/`index` address the block in its parent block list; table cells
    have no container (they cannot be replaced by a different block type).
    """

    node: Textblock
    container: list | None
    index: int
    start: int
    size: int

    @property
    def end(self) -> int:
        return self.start + self.size


def iter_textblocks(doc: Document) -> Iterator[TextblockRef]:
    """Yield every text block in document order with its global start position."""
    pos = 0

    def walk(blocks: list) -> Iterator[TextblockRef]:
        nonlocal pos
        for index, block in enumerate(blocks):
            if isinstance(block, (ParagraphBlock, HeadingBlock)):
                ref = TextblockRef(block, blocks, index, pos, content_size(block.content))
                yield ref
                pos = ref.end + 1
            elif isinstance(block, TableBlock):
                for row in block.rows:
                    for cell in row.cells:
                        ref = TextblockRef(cell, None, -1, pos, content_size(cell.content))
                        yield ref
                        pos = ref.end + 1
            elif isinstance(block, ListBlock):
                for item in block.items:
                    yield from walk(item.blocks)
            elif isinstance(block, (BlockquoteBlock, ContainerBlock)):
                yield from walk(block.blocks)

    yield from walk(doc.blocks)


def document_size(doc: Document) -> int:
    last = None
    for ref in iter_textblocks(doc):
        last = ref
    return last.end if last else 0


def resolve(doc: Document, pos: int) -> tuple[TextblockRef, int]:
    """Find the text block containing global position `pos` and the offset inside it."""
    for ref in iter_textblocks(doc):
        if ref.start <= pos <= ref.end:
            return ref, pos - ref.start
    raise InvalidPositionError(pos, document_size(doc))
