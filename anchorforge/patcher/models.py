"""Pydantic models for patch directives.

A directive is one declarative instruction to mutate a file.  Content
directives (``insert_before``, ``insert_after``, ``regex_replace``,
``append_text``) transform text in memory through :meth:`apply`; file
directives (``create_file``, ``remove_file``) are executed by
:mod:`anchorforge.patcher.filestate` because they perform I/O.

Every directive carries an ``op`` discriminator so lists of them can be
validated straight from YAML or JSON.
"""

from __future__ import annotations

import re
from enum import Enum
from typing import Annotated, Literal, Union

from pydantic import BaseModel, Field, field_validator

from . import text


# ---------------------------------------------------------------------------
# Enumerations
# ---------------------------------------------------------------------------

class RegexFlag(str, Enum):
    """Regex flags a recipe may request by name."""
    MULTILINE = "multiline"
    IGNORECASE = "ignorecase"
    DOTALL = "dotall"


_FLAG_VALUES: dict[RegexFlag, int] = {
    RegexFlag.MULTILINE: re.MULTILINE,
    RegexFlag.IGNORECASE: re.IGNORECASE,
    RegexFlag.DOTALL: re.DOTALL,
}


# ---------------------------------------------------------------------------
# Content directives
# ---------------------------------------------------------------------------

class _AnchoredDirective(BaseModel):
    anchor: str = Field(..., min_length=1, description="Literal text locating the insertion point")
    payload: str = Field(..., description="Text spliced in next to the anchor")
    require_unique: bool = Field(
        default=False, description="Fail when the anchor occurs more than once"
    )
    skip_if_present: bool = Field(
        default=False, description="Leave content untouched when the payload is already there"
    )


class InsertBefore(_AnchoredDirective):
    """Insert ``payload`` right before the first occurrence of ``anchor``."""
    op: Literal["insert_before"] = "insert_before"

    @property
    def verb(self) -> str:
        return "insert"

    def apply(self, content: str) -> str:
        return text.insert_before(
            content,
            self.anchor,
            self.payload,
            require_unique=self.require_unique,
            skip_if_present=self.skip_if_present,
        )


class InsertAfter(_AnchoredDirective):
    """Insert ``payload`` right after the first occurrence of ``anchor``."""
    op: Literal["insert_after"] = "insert_after"

    @property
    def verb(self) -> str:
        return "insert"

    def apply(self, content: str) -> str:
        return text.insert_after(
            content,
            self.anchor,
            self.payload,
            require_unique=self.require_unique,
            skip_if_present=self.skip_if_present,
        )


class RegexReplace(BaseModel):
    """Replace the first match of ``pattern`` (``count=0`` replaces all).

    A pattern that does not match is a silent no-op.
    """
    op: Literal["regex_replace"] = "regex_replace"
    pattern: str = Field(..., min_length=1)
    replacement: str
    count: int = Field(default=1, ge=0, description="Matches to replace, 0 for every match")
    flags: list[RegexFlag] = Field(default_factory=list)

    @field_validator("pattern")
    @classmethod
    def _pattern_compiles(cls, value: str) -> str:
        try:
            re.compile(value)
        except re.error as exc:
            raise ValueError(f"invalid regular expression {value!r}: {exc}") from exc
        return value

    @property
    def verb(self) -> str:
        return "gsub"

    def compiled_flags(self) -> int:
        result = 0
        for flag in self.flags:
            result |= _FLAG_VALUES[flag]
        return result

    def apply(self, content: str) -> str:
        return text.regex_replace(
            content,
            self.pattern,
            self.replacement,
            count=self.count,
            flags=self.compiled_flags(),
        )


class AppendText(BaseModel):
    """Append ``payload`` to the file unless ``unless_present`` already matches."""
    op: Literal["append_text"] = "append_text"
    payload: str
    unless_present: str | None = Field(
        default=None, description="Multiline regex; when it matches, nothing is appended"
    )

    @property
    def verb(self) -> str:
        return "append"

    def apply(self, content: str) -> str:
        return text.append_text(content, self.payload, unless_present=self.unless_present)


# ---------------------------------------------------------------------------
# File directives
# ---------------------------------------------------------------------------

class CreateFile(BaseModel):
    """Write ``contents`` to ``path``, refusing to clobber unless ``overwrite``."""
    op: Literal["create_file"] = "create_file"
    path: str = Field(..., min_length=1)
    contents: str = ""
    overwrite: bool = False

    @property
    def verb(self) -> str:
        return "create"


class RemoveFile(BaseModel):
    """Delete ``path``; a missing file is fine when ``missing_ok``."""
    op: Literal["remove_file"] = "remove_file"
    path: str = Field(..., min_length=1)
    missing_ok: bool = True

    @property
    def verb(self) -> str:
        return "remove"


ContentDirective = Annotated[
    Union[InsertBefore, InsertAfter, RegexReplace, AppendText],
    Field(discriminator="op"),
]

PatchDirective = Annotated[
    Union[InsertBefore, InsertAfter, RegexReplace, AppendText, CreateFile, RemoveFile],
    Field(discriminator="op"),
]
