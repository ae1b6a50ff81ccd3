"""Live editing core: syntax detection, repair, heading sync, source view and decorations."""

from livemark.editor.decorations import Decoration, InstantRender
from livemark.editor.detector import SyntaxRegion, detect_regions
from livemark.editor.pipeline import run_post_commit
from livemark.editor.session import LiveEditor
from livemark.editor.source_view import flatten_document, fold_document
from livemark.editor.transaction import Transaction

__all__ = [
    "LiveEditor",
    "Transaction",
    "run_post_commit",
    # Detection
    "SyntaxRegion",
    "detect_regions",
    # Source view
    "flatten_document",
    "fold_document",
    # Rendering
    "Decoration",
    "InstantRender",
]
