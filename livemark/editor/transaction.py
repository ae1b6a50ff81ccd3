"""Edit batches over the document tree.

A transaction groups the mutations of one edit batch, remembers where text was
inserted or removed (so positions such as the cursor can be mapped through it),
and carries an origin tag. Post-commit passes append to the same kind of
record; the tag tells them apart from user input.
"""

from dataclasses import dataclass, field
from typing import Literal

from livemark.markdown.flat import document_size
from livemark.markdown.models import Document

Origin = Literal["input", "detector", "fixer", "heading_sync", "source_view", "load", "api"]


@dataclass(frozen=True)
class Step:
    """`old_len` positions at `start` were replaced by `new_len` positions."""

    start: int
    old_len: int
    new_len: int

    def map(self, pos: int, assoc: int = 1) -> int:
        end = self.start + self.old_len
        if pos < self.start:
            return pos
        if pos > end:
            return pos + self.new_len - self.old_len
        if self.old_len == 0:
            # Pure insertion at pos: assoc decides which side the position sticks to
            return pos + self.new_len if assoc > 0 else pos
        if pos == self.start:
            return pos
        if pos == end:
            return pos + self.new_len - self.old_len
        return self.start + self.new_len if assoc > 0 else self.start


@dataclass
class Transaction:
    doc: Document
    origin: Origin = "api"
    steps: list[Step] = field(default_factory=list)
    changed: bool = False
    # Set by bulk replacements that invalidate every position
    replaced_all: bool = False

    def step(self, start: int, old_len: int, new_len: int) -> None:
        self.steps.append(Step(start, old_len, new_len))
        self.changed = True

    def mark_changed(self) -> None:
        self.changed = True

    def replace_all(self) -> None:
        """Record a whole-document replacement."""
        self.replaced_all = True
        self.changed = True

    def map(self, pos: int, assoc: int = 1) -> int:
        """Map a position from before the transaction to after it."""
        if self.replaced_all:
            return max(0, min(pos, document_size(self.doc)))
        for s in self.steps:
            pos = s.map(pos, assoc)
        return max(0, min(pos, document_size(self.doc)))
