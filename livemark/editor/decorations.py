"""Decoration engine: which literal marker spans are visible for a given cursor.

Read-only. Marker runs are grouped into syntax regions (an opener through its
closer, an escape pair, a whole heading); every marker of a region containing
the cursor renders as visible text, all others collapse. Marker regions are
cached per document version so pure cursor moves only re-run the containment
test.
"""

from dataclasses import dataclass

from livemark.editor.markers import collect_marker_runs, pair_marker_runs
from livemark.markdown.flat import FlatText, iter_textblocks
from livemark.markdown.models import Document


@dataclass(frozen=True)
class Decoration:
    """A marker span in global positions and whether it renders."""

    start: int
    end: int
    visible: bool
    syntax_type: str


@dataclass(frozen=True)
class MarkerRegion:
    """A syntax region (inclusive ends for the cursor test) and the marker spans it reveals."""

    start: int
    end: int
    syntax_type: str
    markers: tuple[tuple[int, int], ...]

    def contains(self, cursor: int) -> bool:
        return self.start <= cursor <= self.end


def marker_regions(doc: Document) -> list[MarkerRegion]:
    """Collect the marker regions of every text block, in global positions."""
    regions: list[MarkerRegion] = []
    for ref in iter_textblocks(doc):
        flat = FlatText.from_content(ref.node.content)
        paired = pair_marker_runs(collect_marker_runs(flat))
        base = ref.start

        for opener, closer in paired.pairs:
            regions.append(
                MarkerRegion(
                    base + opener.start,
                    base + closer.end,
                    opener.syntax_type,
                    ((base + opener.start, base + opener.end), (base + closer.start, base + closer.end)),
                )
            )
        for run in paired.standalone:
            span = ((base + run.start, base + run.end),)
            if run.syntax_type == "escape":
                # Backslash plus the escaped character
                regions.append(MarkerRegion(base + run.start, base + run.start + 2, "escape", span))
            else:
                regions.append(MarkerRegion(ref.start, ref.end, run.syntax_type, span))
        for run in paired.unpaired:
            regions.append(
                MarkerRegion(base + run.start, base + run.end, run.syntax_type, ((base + run.start, base + run.end),))
            )

    regions.sort(key=lambda r: r.start)
    return regions


def compute_decorations(regions: list[MarkerRegion], cursor: int | None, *, show_all: bool = False) -> list[Decoration]:
    """Project marker regions to decorations for `cursor` (None: nothing revealed)."""
    decorations = []
    for region in regions:
        visible = show_all or (cursor is not None and region.contains(cursor))
        for start, end in region.markers:
            decorations.append(Decoration(start, end, visible, region.syntax_type))
    decorations.sort(key=lambda d: d.start)
    return decorations


class InstantRender:
    """Instant-render state: enabled flag, cached marker regions and the last cursor."""

    def __init__(self, enabled: bool = True):
        self.enabled = enabled
        self.cursor: int | None = None
        self._version: int | None = None
        self._regions: list[MarkerRegion] = []

    def regions(self, doc: Document, version: int) -> list[MarkerRegion]:
        if version != self._version:
            self._regions = marker_regions(doc)
            self._version = version
        return self._regions

    def decorations(self, doc: Document, version: int, cursor: int | None = None, *, source_view: bool = False):
        if cursor is not None:
            self.cursor = cursor
        show_all = source_view or not self.enabled
        return compute_decorations(self.regions(doc, version), self.cursor, show_all=show_all)
