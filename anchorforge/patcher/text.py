"""Pure text transforms behind every anchored directive.

Each function takes the full content of a file and returns the new content.
Nothing here touches the filesystem; ``anchorforge.patcher.filestate`` owns
reading and writing.  Anchors are literal substrings and only the first
occurrence is used unless ``require_unique`` is set.
"""

from __future__ import annotations

import re

from .errors import AmbiguousAnchorError, AnchorNotFoundError


def find_anchor(content: str, anchor: str, *, require_unique: bool = False) -> int:
    """Return the index where *anchor* first begins in *content*.

    Raises:
        ValueError: If *anchor* is empty.
        AnchorNotFoundError: If *anchor* does not occur.
        AmbiguousAnchorError: If *require_unique* is set and *anchor* occurs
            more than once.
    """
    if not anchor:
        raise ValueError("anchor must be a non-empty string")

    index = content.find(anchor)
    if index < 0:
        raise AnchorNotFoundError(anchor)

    if require_unique:
        occurrences = content.count(anchor)
        if occurrences > 1:
            raise AmbiguousAnchorError(anchor, occurrences)

    return index


def insert_before(
    content: str,
    anchor: str,
    payload: str,
    *,
    require_unique: bool = False,
    skip_if_present: bool = False,
) -> str:
    """Splice *payload* immediately before the first occurrence of *anchor*.

    Examples::

        insert_before("config.secret_key = nil", "config.secret_key", "# ")
        -> "# config.secret_key = nil"
    """
    if skip_if_present and payload and payload in content:
        return content
    index = find_anchor(content, anchor, require_unique=require_unique)
    return content[:index] + payload + content[index:]


def insert_after(
    content: str,
    anchor: str,
    payload: str,
    *,
    require_unique: bool = False,
    skip_if_present: bool = False,
) -> str:
    """Splice *payload* right after the matched anchor text.

    The insertion point is the end of the anchor itself, not the end of the
    line containing it.
    """
    if skip_if_present and payload and payload in content:
        return content
    index = find_anchor(content, anchor, require_unique=require_unique) + len(anchor)
    return content[:index] + payload + content[index:]


def regex_replace(
    content: str,
    pattern: str | re.Pattern[str],
    replacement: str,
    *,
    count: int = 1,
    flags: int = 0,
) -> str:
    """Replace the first match of *pattern* (or *count* matches, 0 = all).

    A pattern that does not match returns *content* unchanged.  Replacement
    strings use :func:`re.sub` syntax, so ``\\1`` and ``\\g<name>`` refer to
    groups.
    """
    if count < 0:
        raise ValueError(f"count must be >= 0, got {count}")
    compiled = re.compile(pattern, flags) if isinstance(pattern, str) else pattern
    return compiled.sub(replacement, content, count=count)


def append_text(content: str, payload: str, *, unless_present: str | None = None) -> str:
    """Append *payload* to the end of *content*.

    When *unless_present* is given and already matches (multiline mode, so
    ``^`` and ``$`` work per line) the content is returned as is.  A missing
    trailing newline is added before the payload so it starts on its own line.
    """
    if unless_present and re.search(unless_present, content, re.MULTILINE):
        return content
    if content and not content.endswith("\n"):
        content += "\n"
    return content + payload
