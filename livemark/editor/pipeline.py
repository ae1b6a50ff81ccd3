"""Post-commit passes run after every edit batch.

Order: detector, fixer, heading sync, then (in source view) a defensive flatten
of any rendered-only node that slipped in. Each pass records its own
transaction tagged with its origin. Every pass is idempotent, so rounds repeat
until one changes nothing; the configured bound only guards against a pass
that keeps rewriting.
"""

from collections.abc import Callable
from dataclasses import dataclass, field

from loguru import logger

from livemark.editor.detector import run_detector
from livemark.editor.fixer import run_fixer
from livemark.editor.heading_sync import run_heading_sync
from livemark.editor.source_view import apply_source_view, needs_flatten
from livemark.editor.transaction import Transaction
from livemark.markdown.models import Document


@dataclass
class PostCommitResult:
    transactions: list[Transaction] = field(default_factory=list)
    rounds: int = 0
    converged: bool = True

    @property
    def changed(self) -> bool:
        return any(tr.changed for tr in self.transactions)

    def map(self, pos: int, assoc: int = 1) -> int:
        for tr in self.transactions:
            pos = tr.map(pos, assoc)
        return pos


def _passes(source_view: bool) -> list[tuple[str, Callable[[Transaction], Transaction]]]:
    passes = [
        ("detector", lambda tr: run_detector(tr, source_view=source_view)),
        ("fixer", run_fixer),
        ("heading_sync", run_heading_sync),
    ]
    if source_view:
        passes.append(("source_view", _defensive_flatten))
    return passes


def _defensive_flatten(tr: Transaction) -> Transaction:
    if needs_flatten(tr.doc):
        logger.debug("Unflattened nodes in source view, flattening")
        apply_source_view(tr, True)
    return tr


def run_post_commit(doc: Document, *, source_view: bool = False, max_rounds: int = 4) -> PostCommitResult:
    """Run the post-commit passes on `doc` in place until nothing changes."""
    result = PostCommitResult()
    for round_number in range(1, max_rounds + 1):
        result.rounds = round_number
        round_changed = False
        for origin, run in _passes(source_view):
            tr = run(Transaction(doc, origin=origin))
            if tr.changed:
                result.transactions.append(tr)
                round_changed = True
        if not round_changed:
            return result

    result.converged = False
    logger.warning(f"Post-commit passes still changing the document after {max_rounds} rounds")
    return result
