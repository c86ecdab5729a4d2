"""Exceptions raised by the anchored file patcher."""

from __future__ import annotations

from pathlib import Path


class PatchError(Exception):
    """Base class for directive failures.

    ``path`` is filled in once the failing content is tied to a file; the
    pure text functions raise without it.
    """

    def __init__(self, message: str, path: str | Path | None = None) -> None:
        self.path = Path(path) if path is not None else None
        super().__init__(message)

    def with_path(self, path: str | Path) -> "PatchError":
        """Attach *path* to the error and return it for re-raising."""
        self.path = Path(path)
        return self

    def __str__(self) -> str:
        message = super().__str__()
        if self.path is not None:
            return f"{self.path}: {message}"
        return message


class AnchorNotFoundError(PatchError):
    """Raised when an insert anchor does not occur in the content."""

    def __init__(self, anchor: str, path: str | Path | None = None) -> None:
        self.anchor = anchor
        super().__init__(f"anchor not found: {anchor!r}", path)


class AmbiguousAnchorError(PatchError):
    """Raised when a directive requires a unique anchor and it repeats."""

    def __init__(self, anchor: str, occurrences: int, path: str | Path | None = None) -> None:
        self.anchor = anchor
        self.occurrences = occurrences
        super().__init__(
            f"anchor occurs {occurrences} times, expected exactly one: {anchor!r}", path
        )
