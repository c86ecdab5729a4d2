"""File lifecycle for anchored patching.

A :class:`FileState` is read once, mutated in memory by directives applied in
declared order, and written back once.  Content is decoded from raw bytes and
encoded back the same way, so line endings survive untouched.  Writes go to a
sibling temporary file that is renamed over the target.
"""

from __future__ import annotations

import difflib
import os
import shutil
import tempfile
from collections.abc import Iterable
from pathlib import Path

from .errors import PatchError
from .models import AppendText, InsertAfter, InsertBefore, RegexReplace

ENCODING = "utf-8"

_ContentDirective = InsertBefore | InsertAfter | RegexReplace | AppendText


class FileState:
    """The full text of one file, identified by its path."""

    def __init__(self, path: str | Path, content: str) -> None:
        self.path = Path(path)
        self.original = content
        self.content = content

    def __repr__(self) -> str:
        return f"FileState(path={str(self.path)!r}, changed={self.changed})"

    @classmethod
    def read(cls, path: str | Path) -> "FileState":
        """Load *path* from disk.

        Raises:
            FileNotFoundError: If the file does not exist.
        """
        file_path = Path(path)
        return cls(file_path, file_path.read_bytes().decode(ENCODING))

    @property
    def changed(self) -> bool:
        return self.content != self.original

    # -- Mutation ----------------------------------------------------------

    def apply(self, directive: _ContentDirective) -> bool:
        """Apply one content directive; return ``True`` if the text changed.

        On failure the in-memory content is left as it was and the error is
        re-raised with this file's path attached.
        """
        try:
            updated = directive.apply(self.content)
        except PatchError as exc:
            raise exc.with_path(self.path)
        changed = updated != self.content
        self.content = updated
        return changed

    def apply_all(self, directives: Iterable[_ContentDirective]) -> int:
        """Apply *directives* in order as a single all-or-nothing batch.

        Returns:
            How many directives changed the content.

        Raises:
            PatchError: From the first failing directive.  None of the batch
                is kept in that case.
        """
        snapshot = self.content
        applied = 0
        try:
            for directive in directives:
                if self.apply(directive):
                    applied += 1
        except PatchError:
            self.content = snapshot
            raise
        return applied

    def reset(self) -> None:
        """Discard in-memory edits."""
        self.content = self.original

    # -- Output ------------------------------------------------------------

    def diff(self, context: int = 3, against: str | None = None) -> str:
        """Unified diff between a baseline and the current content.

        The baseline is the content as read unless *against* is given.
        """
        name = str(self.path)
        baseline = self.original if against is None else against
        lines = difflib.unified_diff(
            baseline.splitlines(keepends=True),
            self.content.splitlines(keepends=True),
            fromfile=f"a/{name}",
            tofile=f"b/{name}",
            n=context,
        )
        return "".join(lines)

    def write(self) -> bool:
        """Write the content back if it changed.  Returns ``True`` on write."""
        if not self.changed:
            return False
        _atomic_write(self.path, self.content)
        self.original = self.content
        return True


# ---------------------------------------------------------------------------
# File primitives
# ---------------------------------------------------------------------------

def create_file(path: str | Path, contents: str, overwrite: bool = False) -> None:
    """Write *contents* to *path*, creating parent directories.

    Raises:
        FileExistsError: If *path* exists and *overwrite* is false.  Nothing
            is written in that case.
    """
    file_path = Path(path)
    data = contents.encode(ENCODING)
    file_path.parent.mkdir(parents=True, exist_ok=True)
    if overwrite:
        _atomic_write(file_path, contents)
        return
    # Exclusive mode refuses an existing file at open time.
    with open(file_path, "xb") as handle:
        try:
            handle.write(data)
        except BaseException:
            handle.close()
            file_path.unlink(missing_ok=True)
            raise


def remove_file(path: str | Path, missing_ok: bool = True) -> bool:
    """Delete *path*.  Returns ``False`` when there was nothing to delete."""
    file_path = Path(path)
    if not file_path.exists() and missing_ok:
        return False
    file_path.unlink()
    return True


def _atomic_write(path: Path, content: str) -> None:
    """Replace *path* with *content* via a renamed temporary file."""
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=path.parent)
    try:
        with os.fdopen(fd, "wb") as handle:
            handle.write(content.encode(ENCODING))
        if path.exists():
            shutil.copymode(path, tmp_name)
        os.replace(tmp_name, path)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise
