"""Live Markdown editing core."""

from livemark.config import EditorSettings, get_settings
from livemark.editor import LiveEditor
from livemark.logging_config import configure_logging
from livemark.markdown import Document, normalize, parse, serialize

__all__ = [
    "LiveEditor",
    "Document",
    "parse",
    "serialize",
    "normalize",
    "EditorSettings",
    "get_settings",
    "configure_logging",
]
