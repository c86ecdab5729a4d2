"""Anchored file patcher.

Pure text transforms (insert before/after a literal anchor, regex replace,
append) plus the two I/O primitives that create and remove whole files.

Quick usage::

    from anchorforge.patcher import FileState, InsertAfter

    state = FileState.read("config/routes.rb")
    state.apply(InsertAfter(anchor="routes.draw do\\n", payload="  root to: 'home#index'\\n"))
    state.write()
"""

from anchorforge.patcher.errors import AmbiguousAnchorError, AnchorNotFoundError, PatchError
from anchorforge.patcher.filestate import FileState, create_file, remove_file
from anchorforge.patcher.models import (
    AppendText,
    ContentDirective,
    CreateFile,
    InsertAfter,
    InsertBefore,
    PatchDirective,
    RegexFlag,
    RegexReplace,
    RemoveFile,
)
from anchorforge.patcher.text import (
    append_text,
    find_anchor,
    insert_after,
    insert_before,
    regex_replace,
)

__all__ = [
    "AmbiguousAnchorError",
    "AnchorNotFoundError",
    "AppendText",
    "ContentDirective",
    "CreateFile",
    "FileState",
    "InsertAfter",
    "InsertBefore",
    "PatchDirective",
    "PatchError",
    "RegexFlag",
    "RegexReplace",
    "RemoveFile",
    "append_text",
    "create_file",
    "find_anchor",
    "insert_after",
    "insert_before",
    "regex_replace",
    "remove_file",
]
