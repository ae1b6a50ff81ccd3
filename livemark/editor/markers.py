"""Marker runs and delimiter pairing, shared by the fixer and the decoration engine."""

from collections import defaultdict
from dataclasses import dataclass

from livemark.editor.patterns import delimiters_pair
from livemark.markdown.flat import FlatText
from livemark.markdown.models import Annotation

# Markers that stand alone and are never paired
UNPAIRED_SYNTAX = frozenset({"escape", "heading"})


@dataclass(frozen=True)
class MarkerRun:
    """A maximal run of positions carrying one identical marker annotation."""

    start: int
    end: int
    text: str
    marker: Annotation

    @property
    def syntax_type(self) -> str:
        return self.marker.syntax_type or ""


@dataclass
class PairedMarkers:
    pairs: list[tuple[MarkerRun, MarkerRun]]
    unpaired: list[MarkerRun]
    standalone: list[MarkerRun]


def collect_marker_runs(flat: FlatText) -> list[MarkerRun]:
    """Collect marker runs in order of their start position.

    The role is part of the annotation, so a closer directly followed by an
    opener of the same syntax (`**a****b**`) yields two runs.
    """
    runs: list[MarkerRun] = []
    open_runs: dict[Annotation, int] = {}

    for pos in range(len(flat) + 1):
        here = {a for a in flat.marks[pos] if a.is_marker} if pos < len(flat) else set()
        for marker in [m for m in open_runs if m not in here]:
            start = open_runs.pop(marker)
            runs.append(MarkerRun(start, pos, flat.text[start:pos], marker))
        for marker in here:
            open_runs.setdefault(marker, pos)

    runs.sort(key=lambda r: (r.start, r.end))
    return runs


def pair_marker_runs(runs: list[MarkerRun]) -> PairedMarkers:
    """Pair opener and closer runs per syntax type with a stack, in document order."""
    result = PairedMarkers(pairs=[], unpaired=[], standalone=[])
    by_syntax: dict[str, list[MarkerRun]] = defaultdict(list)
    for run in runs:
        if run.syntax_type in UNPAIRED_SYNTAX:
            result.standalone.append(run)
        else:
            by_syntax[run.syntax_type].append(run)

    for syntax_type, group in by_syntax.items():
        stack: list[MarkerRun] = []
        for run in group:
            top = stack[-1] if stack else None
            if run.marker.role == "open":
                stack.append(run)
            elif top is not None and delimiters_pair(syntax_type, top.text, run.text):
                result.pairs.append((stack.pop(), run))
            elif run.marker.role is None:
                stack.append(run)
            else:
                result.unpaired.append(run)
        result.unpaired.extend(stack)

    result.pairs.sort(key=lambda p: p[0].start)
    result.unpaired.sort(key=lambda r: r.start)
    return result
