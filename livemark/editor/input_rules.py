"""Block-level input rules.

After typed text, the text before the cursor in the current paragraph is
matched against each rule; the first match rewrites the block structure. Like
the inline catalog, rules look only at literal text. Heading rules keep the
typed `#` characters (the detector marks them); other rules consume their
trigger text and wrap or replace the paragraph.
"""

import re
from collections.abc import Callable
from dataclasses import dataclass
from typing import Literal

from loguru import logger

from livemark.editor.transaction import Transaction
from livemark.markdown.flat import FlatText, TextblockRef
from livemark.markdown.models import (
    Block,
    BlockquoteBlock,
    CodeBlock,
    ContainerBlock,
    Document,
    HeadingBlock,
    ListBlock,
    ListItem,
    MathBlock,
    ParagraphBlock,
    ThematicBreak,
    iter_block_lists,
)


@dataclass
class RuleContext:
    tr: Transaction
    ref: TextblockRef
    flat: FlatText
    offset: int

    @property
    def node(self):
        return self.ref.node

    def rest(self, start: int) -> list:
        """Content after the consumed trigger text."""
        return self.flat.slice(start, len(self.flat)).to_content()

    def replace(self, blocks: list[Block]) -> None:
        self.ref.container[self.ref.index : self.ref.index + 1] = blocks

    def consume(self, length: int) -> None:
        """Record the removal of `length` trigger characters at the block start."""
        if length:
            self.tr.step(self.ref.start, length, 0)
        else:
            self.tr.mark_changed()


@dataclass(frozen=True)
class InputRule:
    name: str
    pattern: re.Pattern
    handler: Callable[[RuleContext, re.Match], bool]
    trigger: Literal["text", "enter"] = "text"
    # Creates nodes that source view keeps flattened
    rendered_only: bool = False


def _heading(ctx: RuleContext, m: re.Match) -> bool:
    ctx.replace([HeadingBlock(level=len(m.group(1)), content=ctx.node.content)])
    ctx.consume(0)
    return True


def _blockquote(ctx: RuleContext, m: re.Match) -> bool:
    ctx.replace([BlockquoteBlock(blocks=[ParagraphBlock(content=ctx.rest(m.end()))])])
    ctx.consume(m.end())
    return True


def _code_block(ctx: RuleContext, m: re.Match) -> bool:
    ctx.replace([CodeBlock(language=m.group(1)), ParagraphBlock(content=ctx.rest(m.end()))])
    ctx.consume(m.end())
    return True


def _horizontal_rule(ctx: RuleContext, m: re.Match) -> bool:
    ctx.replace([ThematicBreak(), ParagraphBlock(content=ctx.rest(m.end()))])
    ctx.consume(m.end())
    return True


def _bullet_list(ctx: RuleContext, m: re.Match) -> bool:
    item = ListItem(blocks=[ParagraphBlock(content=ctx.rest(m.end()))])
    ctx.replace([ListBlock(bullet=m.group(0)[0], items=[item])])
    ctx.consume(m.end())
    return True


def _ordered_list(ctx: RuleContext, m: re.Match) -> bool:
    item = ListItem(blocks=[ParagraphBlock(content=ctx.rest(m.end()))])
    ctx.replace([ListBlock(ordered=True, start=int(m.group(1)), items=[item])])
    ctx.consume(m.end())
    return True


def _find_list_item(doc: Document, container: list) -> tuple[ListBlock, ListItem] | None:
    for blocks in iter_block_lists(doc.blocks):
        for block in blocks:
            if isinstance(block, ListBlock):
                for item in block.items:
                    if item.blocks is container:
                        return block, item
    return None


def _task_item(ctx: RuleContext, m: re.Match) -> bool:
    found = _find_list_item(ctx.tr.doc, ctx.ref.container)
    if found is None or ctx.ref.index != 0:
        return False
    list_block, item = found
    if list_block.ordered or item.checked is not None:
        return False
    item.checked = m.group(1).lower() == "x"
    ctx.node.content = ctx.rest(m.end())
    ctx.consume(m.end())
    return True


def _math_block(ctx: RuleContext, m: re.Match) -> bool:
    content = m.group(1) if m.re.groups else ""
    ctx.replace([MathBlock(content=content), ParagraphBlock(content=ctx.rest(m.end()))])
    ctx.consume(m.end())
    return True


def _container(ctx: RuleContext, m: re.Match) -> bool:
    ctx.replace([ContainerBlock(kind=m.group(1), title=(m.group(2) or "").strip(), blocks=[ParagraphBlock()])])
    ctx.tr.step(ctx.ref.start, ctx.ref.size, 0)
    return True


INPUT_RULES: tuple[InputRule, ...] = (
    InputRule("heading", re.compile(r"^(#{1,6})\s$"), _heading),
    InputRule("blockquote", re.compile(r"^>\s$"), _blockquote),
    InputRule("code_block", re.compile(r"^```(\w*) $"), _code_block, rendered_only=True),
    InputRule("horizontal_rule", re.compile(r"^([-*_])\1{2,}\s$"), _horizontal_rule, rendered_only=True),
    InputRule("bullet_list", re.compile(r"^[-*+]\s$"), _bullet_list),
    InputRule("ordered_list", re.compile(r"^(\d+)\.\s$"), _ordered_list),
    InputRule("task_item", re.compile(r"^\[([ xX]?)\]\s$"), _task_item),
    InputRule("math_block", re.compile(r"^\$\$\s$"), _math_block, rendered_only=True),
    InputRule("math_block_inline", re.compile(r"^\$\$(.+)\$\$$"), _math_block, rendered_only=True),
    InputRule("container", re.compile(r"^:::(\w+)(?:\s+(.*))?$"), _container, trigger="enter"),
)


def apply_input_rules(
    tr: Transaction,
    ref: TextblockRef,
    offset: int,
    *,
    trigger: Literal["text", "enter"] = "text",
    source_view: bool = False,
) -> str | None:
    """Apply the first matching rule to the text before `offset`. Returns the rule name."""
    node = ref.node
    if ref.container is None or not isinstance(node, ParagraphBlock) or node.is_source_line:
        return None

    flat = FlatText.from_content(node.content)
    before = flat.text[:offset]
    ctx = RuleContext(tr, ref, flat, offset)
    for rule in INPUT_RULES:
        if rule.trigger != trigger or (rule.rendered_only and source_view):
            continue
        m = rule.pattern.match(before)
        if m and rule.handler(ctx, m):
            logger.debug(f"Input rule {rule.name} fired at {ref.start}")
            return rule.name
    return None
