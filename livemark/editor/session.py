"""LiveEditor: the editing surface the shell talks to.

Every public mutation is one edit batch: the primary change is applied to the
document, the post-commit passes run until the document settles, and the
cursor is mapped through everything that happened. Callers only ever observe
settled states.
"""

import uuid
from pathlib import Path

from loguru import logger

from livemark.config import EditorSettings, get_settings
from livemark.editor.decorations import Decoration, InstantRender
from livemark.editor.input_rules import apply_input_rules
from livemark.editor.pipeline import PostCommitResult, run_post_commit
from livemark.editor.source_view import apply_source_view
from livemark.editor.transaction import Origin, Transaction
from livemark.exceptions import EditError, InvalidPositionError
from livemark.markdown.flat import PLACEHOLDER, FlatText, TextblockRef, document_size, iter_textblocks, resolve
from livemark.markdown.models import (
    Block,
    BlockquoteBlock,
    ContainerBlock,
    Document,
    HardBreak,
    HeadingBlock,
    ListBlock,
    ParagraphBlock,
    TableBlock,
)
from livemark.markdown.parser import parse
from livemark.markdown.paths import image_sources, resolve_image_src
from livemark.markdown.serializer import serialize


class LiveEditor:
    """One open document with its cursor, mode flag and instant-render state."""

    def __init__(self, markdown: str = "", *, settings: EditorSettings | None = None):
        self.settings = settings or get_settings()
        self.id = uuid.uuid4().hex[:8]
        self.doc = Document()
        self.version = 0
        self.cursor = 0
        self._source_view = False
        self._render = InstantRender(enabled=self.settings.instant_render)

        self.set_markdown(markdown)
        if self.settings.source_view:
            self.source_view = True

    # === STATE ===

    @property
    def size(self) -> int:
        return document_size(self.doc)

    @property
    def source_view(self) -> bool:
        return self._source_view

    @source_view.setter
    def source_view(self, enabled: bool) -> None:
        if enabled == self._source_view:
            return
        self._source_view = enabled
        tr = apply_source_view(Transaction(self.doc, origin="source_view"), enabled)
        self._commit(tr)
        logger.info(f"Source view {'on' if enabled else 'off'} ({len(self.doc.blocks)} blocks)")

    @property
    def instant_render(self) -> bool:
        return self._render.enabled

    @instant_render.setter
    def instant_render(self, enabled: bool) -> None:
        self._render.enabled = enabled

    def text(self) -> list[str]:
        """Flat text of every text block, in document order."""
        return [FlatText.from_content(ref.node.content).text for ref in iter_textblocks(self.doc)]

    # === EDIT BATCHES ===

    def _commit(self, tr: Transaction) -> PostCommitResult:
        with logger.contextualize(editor=self.id):
            post = run_post_commit(
                self.doc,
                source_view=self._source_view,
                max_rounds=self.settings.max_post_commit_rounds,
            )
        if tr.changed or post.changed:
            self.version += 1
        self.cursor = post.map(self.cursor)
        return post

    def _check(self, pos: int) -> None:
        size = self.size
        if not 0 <= pos <= size:
            raise InvalidPositionError(pos, size)

    def insert_text(self, pos: int, text: str, *, origin: Origin = "input") -> None:
        """Insert literal text at `pos`; newlines split the block. Input rules run on typed text."""
        self._check(pos)
        lines = text.split("\n")
        for i, line in enumerate(lines):
            if i:
                self.split_block(pos)
                pos = self.cursor
            if line:
                self._insert_line(pos, line, origin)
                pos = self.cursor

    def _insert_line(self, pos: int, text: str, origin: Origin) -> None:
        tr = Transaction(self.doc, origin=origin)
        ref, offset = resolve(self.doc, pos)
        flat = FlatText.from_content(ref.node.content)
        ref.node.content = flat.replace(offset, offset, FlatText.plain(text)).to_content()
        tr.step(pos, 0, len(text))
        self.cursor = pos + len(text)

        if origin == "input":
            ref, offset = resolve(self.doc, self.cursor)
            applied = len(tr.steps)
            if apply_input_rules(tr, ref, offset, source_view=self._source_view):
                for step in tr.steps[applied:]:
                    self.cursor = step.map(self.cursor)
        self._commit(tr)

    def delete(self, start: int, end: int) -> None:
        """Delete the positions in [start, end); text blocks in one parent list merge.

        Blocks without text positions (code, math, images, rules, html, front
        matter) between the two ends are never removed by a text delete; such a
        range raises `EditError` and the document is left as it was.
        """
        if start > end:
            start, end = end, start
        self._check(start)
        self._check(end)
        if start == end:
            return

        tr = Transaction(self.doc, origin="input")
        first, first_offset = resolve(self.doc, start)
        last, last_offset = resolve(self.doc, end)
        first_flat = FlatText.from_content(first.node.content)

        if first.node is last.node:
            first.node.content = first_flat.replace(first_offset, last_offset, FlatText.plain("")).to_content()
        else:
            if first.container is None or first.container is not last.container:
                raise EditError(f"Cannot delete across block boundaries from {start} to {end}")
            if _holds_untexted_block(first.container[first.index + 1 : last.index]):
                raise EditError(f"Cannot merge text blocks across a non-text block from {start} to {end}")
            last_flat = FlatText.from_content(last.node.content)
            merged = first_flat.slice(0, first_offset).concat(last_flat.slice(last_offset, len(last_flat)))
            first.node.content = merged.to_content()
            del first.container[first.index + 1 : last.index + 1]

        tr.step(start, end - start, 0)
        self.cursor = start
        self._commit(tr)

    def split_block(self, pos: int) -> None:
        """Split the text block at `pos` (Enter). `:::kind title` becomes a container first."""
        self._check(pos)
        tr = Transaction(self.doc, origin="input")
        ref, offset = resolve(self.doc, pos)
        if ref.container is None:
            raise EditError(f"Cannot split a table cell at {pos}")

        if apply_input_rules(tr, ref, offset, trigger="enter", source_view=self._source_view):
            self.cursor = ref.start
            self._commit(tr)
            return

        flat = FlatText.from_content(ref.node.content)
        ref.node.content = flat.slice(0, offset).to_content()
        right = flat.slice(offset, len(flat)).to_content()
        ref.container.insert(ref.index + 1, self._continuation(ref, right))
        if isinstance(ref.node, ParagraphBlock) and ref.node.is_source_line:
            _renumber_group(ref.container, ref.node.source_group_id)

        tr.step(pos, 0, 1)
        self.cursor = pos + 1
        self._commit(tr)

    @staticmethod
    def _continuation(ref: TextblockRef, content: list) -> ParagraphBlock:
        node = ref.node
        if isinstance(node, ParagraphBlock) and node.is_source_line:
            return ParagraphBlock(
                content=content,
                source_group_id=node.source_group_id,
                language=node.language,
                source_kind=node.source_kind,
            )
        return ParagraphBlock(content=content)

    def insert_hard_break(self, pos: int) -> None:
        self._check(pos)
        tr = Transaction(self.doc, origin="input")
        ref, offset = resolve(self.doc, pos)
        flat = FlatText.from_content(ref.node.content)
        ref.node.content = flat.replace(offset, offset, FlatText(PLACEHOLDER, [()], {0: HardBreak()})).to_content()
        tr.step(pos, 0, 1)
        self.cursor = pos + 1
        self._commit(tr)

    def set_cursor(self, pos: int) -> list[Decoration]:
        """Move the cursor (no document change) and return the new decorations."""
        self._check(pos)
        self.cursor = pos
        return self.decorations()

    # === WHOLE DOCUMENT ===

    def set_markdown(self, markdown: str) -> None:
        """Replace the document with parsed Markdown (file open / reload)."""
        tr = Transaction(self.doc, origin="load")
        # An empty document still has one paragraph to type into
        self.doc.blocks[:] = parse(markdown).blocks or [ParagraphBlock()]
        tr.replace_all()
        if self._source_view:
            apply_source_view(tr, True)
        self.cursor = tr.map(self.cursor)
        self._commit(tr)

    def get_markdown(self) -> str:
        return serialize(self.doc)

    def replace_blocks(self, blocks: list[Block]) -> None:
        """Programmatic content replacement; in source view new rich blocks get flattened."""
        tr = Transaction(self.doc, origin="api")
        self.doc.blocks[:] = blocks or [ParagraphBlock()]
        tr.replace_all()
        self.cursor = tr.map(self.cursor)
        self._commit(tr)

    # === READ-ONLY PROJECTIONS ===

    def decorations(self, cursor: int | None = None) -> list[Decoration]:
        return self._render.decorations(
            self.doc,
            self.version,
            self.cursor if cursor is None else cursor,
            source_view=self._source_view,
        )

    def image_sources(self, markdown_path: str | Path | None = None) -> list[str]:
        """Image sources, relative ones resolved against the Markdown file's directory."""
        return [resolve_image_src(src, markdown_path) for src in image_sources(self.doc)]


def _renumber_group(blocks: list[Block], group_id: str | None) -> None:
    members = [b for b in blocks if isinstance(b, ParagraphBlock) and b.source_group_id == group_id]
    for i, member in enumerate(members):
        member.line_index = i
        member.line_total = len(members)


def _holds_untexted_block(blocks: list[Block]) -> bool:
    """True when any block in the subtree has no text positions of its own."""
    for block in blocks:
        if isinstance(block, (ParagraphBlock, HeadingBlock, TableBlock)):
            continue
        if isinstance(block, ListBlock):
            if any(_holds_untexted_block(item.blocks) for item in block.items):
                return True
        elif isinstance(block, (BlockquoteBlock, ContainerBlock)):
            if _holds_untexted_block(block.blocks):
                return True
        else:
            return True
    return False
