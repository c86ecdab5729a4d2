"""anchorforge configuration.

Centralised, typed configuration for a recipe run.  All settings use
Pydantic v2 models so they can be validated at construction time and
serialised to/from JSON or environment variables without boiler-plate.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field

_TRUTHY = {"1", "true", "yes", "on"}


def _env_flag(name: str) -> bool | None:
    """Read a boolean environment variable; ``None`` when unset or empty."""
    raw = os.environ.get(name)
    if not raw:
        return None
    return raw.strip().lower() in _TRUTHY


class GitConfig(BaseModel):
    """How the finished project is committed."""

    enabled: bool = Field(default=True, description="Run git init/add/commit at commit steps")
    commit_message: str = Field(default="Initial commit")
    timeout: int = Field(default=60, ge=1, description="Per git command timeout in seconds")


class ForgeConfig(BaseModel):
    """Global anchorforge configuration.

    Instances are created once by the CLI entry point (or by tests) and passed
    to the :class:`~anchorforge.runner.RecipeRunner`.  Every target path a
    recipe touches is resolved against ``project_root``.
    """

    project_root: Path = Field(default=Path("."))
    project_name: str = Field(default="")
    template_dir: Path | None = Field(
        default=None, description="Directory searched for ``create`` step templates"
    )
    state_dir: str = Field(default=".anchorforge")
    dry_run: bool = Field(default=False)
    command_timeout: int = Field(default=600, ge=1, description="Per command timeout in seconds")
    git: GitConfig = Field(default_factory=GitConfig)
    variables: dict[str, Any] = Field(
        default_factory=dict, description="Extra template variables, override the recipe's"
    )

    # ------------------------------------------------------------------
    # Derived values (read-only properties)
    # ------------------------------------------------------------------

    @property
    def state_path(self) -> Path:
        """Root of the ``.anchorforge/`` metadata directory inside the project."""
        return self.project_root / self.state_dir

    @property
    def run_state_path(self) -> Path:
        """Path to the persisted run state JSON file."""
        return self.state_path / "run-state.json"

    @property
    def resolved_project_name(self) -> str:
        """``project_name`` or, when empty, the project directory's name."""
        return self.project_name or self.project_root.resolve().name

    # ------------------------------------------------------------------
    # Serialisation helpers
    # ------------------------------------------------------------------

    def save(self, path: Path | None = None) -> Path:
        """Persist the configuration to a JSON file.

        Args:
            path: Destination file. Defaults to ``<state_path>/config.json``.

        Returns:
            The path where the file was written.
        """
        target = path or (self.state_path / "config.json")
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(self.model_dump_json(indent=2), encoding="utf-8")
        return target

    @classmethod
    def load(cls, path: Path) -> "ForgeConfig":
        """Load a previously-saved configuration from JSON."""
        raw = Path(path).read_text(encoding="utf-8")
        return cls.model_validate_json(raw)

    @classmethod
    def from_env(cls) -> "ForgeConfig":
        """Build a ``ForgeConfig`` from environment variables.

        Recognised variables (all optional):
            ANCHORFORGE_ROOT, ANCHORFORGE_PROJECT_NAME, ANCHORFORGE_TEMPLATE_DIR,
            ANCHORFORGE_DRY_RUN, ANCHORFORGE_SKIP_GIT, ANCHORFORGE_COMMAND_TIMEOUT,
            ANCHORFORGE_COMMIT_MESSAGE, and the bare SKIP_GIT honoured by
            older template scripts.
        """
        git_kwargs: dict[str, Any] = {}
        skip_git = _env_flag("ANCHORFORGE_SKIP_GIT")
        if skip_git is None:
            skip_git = _env_flag("SKIP_GIT")
        if skip_git is not None:
            git_kwargs["enabled"] = not skip_git
        if os.environ.get("ANCHORFORGE_COMMIT_MESSAGE"):
            git_kwargs["commit_message"] = os.environ["ANCHORFORGE_COMMIT_MESSAGE"]

        kwargs: dict[str, Any] = {
            "project_root": Path(os.environ.get("ANCHORFORGE_ROOT", ".")),
            "project_name": os.environ.get("ANCHORFORGE_PROJECT_NAME", ""),
            "git": GitConfig(**git_kwargs),
        }
        if os.environ.get("ANCHORFORGE_TEMPLATE_DIR"):
            kwargs["template_dir"] = Path(os.environ["ANCHORFORGE_TEMPLATE_DIR"])
        if os.environ.get("ANCHORFORGE_COMMAND_TIMEOUT"):
            kwargs["command_timeout"] = int(os.environ["ANCHORFORGE_COMMAND_TIMEOUT"])
        dry_run = _env_flag("ANCHORFORGE_DRY_RUN")
        if dry_run is not None:
            kwargs["dry_run"] = dry_run

        return cls(**kwargs)

    def ensure_directories(self) -> None:
        """Create the directories that must exist before a run starts."""
        self.state_path.mkdir(parents=True, exist_ok=True)
