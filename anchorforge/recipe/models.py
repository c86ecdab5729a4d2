"""Pydantic v2 models for recipes.

A recipe names every file it touches and every command it runs as data.
Steps are discriminated by ``kind`` and executed strictly in list order by
:class:`anchorforge.runner.RecipeRunner`.
"""

from __future__ import annotations

from enum import Enum
from typing import Annotated, Any, Literal, Optional, Union

from pydantic import BaseModel, Field, model_validator

from anchorforge.patcher.models import ContentDirective


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------

class RecipeError(Exception):
    """Raised for an invalid recipe or a fatal step failure."""

    def __init__(self, message: str, step_index: int | None = None) -> None:
        self.step_index = step_index
        if step_index is not None:
            message = f"step {step_index + 1}: {message}"
        super().__init__(message)


# ---------------------------------------------------------------------------
# Enumerations
# ---------------------------------------------------------------------------

class FileSelect(str, Enum):
    """Which glob matches a patch step targets."""
    LATEST = "latest"
    FIRST = "first"
    ALL = "all"


class StepStatus(str, Enum):
    """Outcome of one executed step."""
    APPLIED = "applied"
    UNCHANGED = "unchanged"
    SKIPPED = "skipped"
    FAILED = "failed"


# ---------------------------------------------------------------------------
# Steps
# ---------------------------------------------------------------------------

class _BaseStep(BaseModel):
    name: str = Field(default="", description="Label shown in output and run state")
    optional: bool = Field(
        default=False, description="A failure is reported and the run continues"
    )
    render: bool = Field(
        default=True,
        description=(
            "Render paths, contents, commands and directive fields (anchor, payload,"
            " replacement, pattern, unless_present) as Jinja2 against recipe variables"
        ),
    )


class PatchStep(_BaseStep):
    """Apply content directives to one file (or the files a glob selects)."""
    kind: Literal["patch"] = "patch"
    file: Optional[str] = Field(default=None, description="Path relative to the project root")
    glob: Optional[str] = Field(default=None, description="Glob relative to the project root")
    select: FileSelect = Field(
        default=FileSelect.LATEST, description="Which glob match(es) to patch"
    )
    directives: list[ContentDirective] = Field(..., min_length=1)

    @model_validator(mode="after")
    def _one_target(self) -> "PatchStep":
        if (self.file is None) == (self.glob is None):
            raise ValueError("patch step needs exactly one of 'file' or 'glob'")
        return self

    def label(self) -> str:
        return self.name or self.file or f"{self.glob} ({self.select.value})"


class CreateStep(_BaseStep):
    """Create a file from inline contents or a template file."""
    kind: Literal["create"] = "create"
    path: str = Field(..., min_length=1)
    contents: Optional[str] = None
    template: Optional[str] = Field(
        default=None, description="Template path relative to the template directory"
    )
    overwrite: bool = False

    @model_validator(mode="after")
    def _one_source(self) -> "CreateStep":
        if self.contents is not None and self.template is not None:
            raise ValueError("create step takes 'contents' or 'template', not both")
        return self

    def label(self) -> str:
        return self.name or self.path


class RemoveStep(_BaseStep):
    """Delete a file."""
    kind: Literal["remove"] = "remove"
    path: str = Field(..., min_length=1)
    missing_ok: bool = True

    def label(self) -> str:
        return self.name or self.path


class CommandStep(_BaseStep):
    """Run an external command (a generator, a bundler, a shell snippet)."""
    kind: Literal["command"] = "command"
    run: Union[str, list[str]] = Field(..., description="Shell string or argv list")
    cwd: Optional[str] = Field(default=None, description="Directory relative to the project root")
    env: dict[str, str] = Field(default_factory=dict)
    timeout: Optional[int] = Field(default=None, ge=1)

    @model_validator(mode="after")
    def _not_empty(self) -> "CommandStep":
        if not self.run or (isinstance(self.run, str) and not self.run.strip()):
            raise ValueError("command step needs a non-empty 'run'")
        return self

    def label(self) -> str:
        if self.name:
            return self.name
        return self.run if isinstance(self.run, str) else " ".join(self.run)


class CommitStep(_BaseStep):
    """Initialise git in the project root, stage everything and commit."""
    kind: Literal["commit"] = "commit"
    message: Optional[str] = Field(default=None, description="Defaults to the configured message")

    def label(self) -> str:
        return self.name or "commit"


Step = Annotated[
    Union[PatchStep, CreateStep, RemoveStep, CommandStep, CommitStep],
    Field(discriminator="kind"),
]


class Recipe(BaseModel):
    """An ordered list of steps plus the variables they are rendered with."""

    name: str = Field(default="recipe")
    description: str = Field(default="")
    variables: dict[str, Any] = Field(default_factory=dict)
    steps: list[Step] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Results
# ---------------------------------------------------------------------------

class StepResult(BaseModel):
    """What happened when one step ran."""

    index: int
    kind: str
    label: str
    status: StepStatus
    message: str = ""
    targets: list[str] = Field(default_factory=list)
    duration: float = 0.0
    optional: bool = False

    @property
    def ok(self) -> bool:
        return self.status != StepStatus.FAILED
