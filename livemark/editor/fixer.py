"""Syntax fixer: strip annotation regions whose delimiter lost its partner.

When an edit deletes only part of a delimiter pair, the surviving marker and
the semantic span it bounded are stale. The fixer pairs marker runs by exact
literal text and demotes the region around every unpaired run to plain text.
"""

from loguru import logger

from livemark.editor.markers import MarkerRun, collect_marker_runs, pair_marker_runs
from livemark.editor.patterns import semantic_types_for
from livemark.editor.transaction import Transaction
from livemark.markdown.flat import FlatText, iter_textblocks
from livemark.markdown.models import Annotation


def _belongs_to(annotation: Annotation, syntax_type: str, semantic: tuple[str, ...]) -> bool:
    if annotation.is_marker:
        return annotation.syntax_type == syntax_type
    return annotation.type in semantic


def enclosing_region(flat: FlatText, run: MarkerRun) -> tuple[int, int]:
    """The contiguous span around `run` carrying its semantic type or its markers.

    One linear scan outward over the flat per-position list.
    """
    semantic = semantic_types_for(run.syntax_type)
    primary = semantic[:1]

    def carries(pos: int) -> bool:
        return any(_belongs_to(a, run.syntax_type, primary) for a in flat.marks[pos])

    start, end = run.start, run.end
    while start > 0 and carries(start - 1):
        start -= 1
    while end < len(flat) and carries(end):
        end += 1
    return start, end


def strip_broken(flat: FlatText) -> list[tuple[int, int, str]]:
    """Demote every region around an unpaired marker run. Returns the stripped spans."""
    paired = pair_marker_runs(collect_marker_runs(flat))
    stripped = []
    for run in paired.unpaired:
        start, end = enclosing_region(flat, run)
        semantic = semantic_types_for(run.syntax_type)
        for pos in range(start, end):
            flat.marks[pos] = tuple(a for a in flat.marks[pos] if not _belongs_to(a, run.syntax_type, semantic))
        stripped.append((start, end, run.syntax_type))
    return stripped


def run_fixer(tr: Transaction) -> Transaction:
    """Strip broken annotation regions from every text block."""
    for ref in list(iter_textblocks(tr.doc)):
        flat = FlatText.from_content(ref.node.content)
        stripped = strip_broken(flat)
        if not stripped:
            continue
        ref.node.content = flat.to_content()
        tr.mark_changed()
        for start, end, syntax_type in stripped:
            logger.debug(f"Fixer stripped unpaired {syntax_type} at {ref.start + start}-{ref.start + end}")
    return tr
