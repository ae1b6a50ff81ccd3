from typing import Any


class LivemarkError(Exception):
    """Base exception for all livemark errors."""

    def __init__(self, message: str):
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        return {"detail": str(self)}


class InvalidPositionError(LivemarkError):
    """Raised when an edit addresses a position outside the document's text blocks."""

    def __init__(self, position: int, size: int, *, message: str | None = None):
        super().__init__(message or f"Position {position} is outside the document (size {size})")
        self.position = position
        self.size = size

    def to_dict(self) -> dict[str, Any]:
        return {"detail": str(self), "position": self.position, "size": self.size}


class EditError(LivemarkError):
    """Raised when an edit cannot be expressed on the document structure."""


class FoldError(LivemarkError):
    """Raised when a flattened source-view group cannot be rebuilt into its block.

    Always handled inside the source-view transformer, which keeps the literal
    paragraphs instead.
    """

    def __init__(self, kind: str, text: str):
        super().__init__(f"Cannot fold {kind} from {text!r}")
        self.kind = kind
        self.text = text
