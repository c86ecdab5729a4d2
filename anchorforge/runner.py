"""anchorforge recipe runner.

Executes a recipe's steps strictly in declared order against one project
root:

patch   -- read a file, apply content directives in memory, write it once.
create  -- write a new file from inline contents or a template.
remove  -- delete a file.
command -- run an external generator or tool.
commit  -- git init/add/commit, reported as an outcome rather than raised.

A failing step that is not ``optional`` stops the run.  Run state is
persisted to ``.anchorforge/run-state.json`` after every step.

Usage::

    anchorforge bootstrap.yaml --root ./my-app
    python -m anchorforge.runner bootstrap.yaml --root ./my-app --dry-run
"""

from __future__ import annotations

import asyncio
import re
import sys
import time
import traceback
from datetime import datetime, timezone
from pathlib import Path, PurePosixPath
from typing import Any

from jinja2 import TemplateError

from anchorforge.config import ForgeConfig
from anchorforge.git import GitStatus, commit_project
from anchorforge.patcher import FileState, PatchError, create_file, remove_file
from anchorforge.recipe import (
    CommandStep,
    CommitStep,
    CreateStep,
    FileSelect,
    PatchStep,
    Recipe,
    RecipeError,
    RemoveStep,
    StepResult,
    StepStatus,
    load_recipe,
)
from anchorforge.templates import TemplateRenderer
from anchorforge.utils import (
    console,
    format_duration,
    print_action,
    print_diff,
    print_error,
    print_header,
    print_success,
    print_summary_table,
    print_warning,
    run_command,
    save_json,
)

# Directive fields rendered through Jinja2 before a patch is applied.
_RENDERED_FIELDS = ("anchor", "payload", "replacement", "pattern", "unless_present")

# Failures a step reports instead of crashing the run.
_STEP_ERRORS = (PatchError, RecipeError, TemplateError, OSError, ValueError, re.error)


class RecipeRunner:
    """Runs one recipe against one project root.

    Attributes:
        config: Run configuration (root, dry run, git, timeouts).
        recipe: The validated recipe.
        results: One ``StepResult`` per executed step, in order.
        state: Mutable dictionary persisted as the run state file.
    """

    def __init__(self, config: ForgeConfig, recipe: Recipe) -> None:
        self.config = config
        self.recipe = recipe
        self.root = Path(config.project_root)
        self.renderer = TemplateRenderer(config.template_dir)
        self.results: list[StepResult] = []
        # Dry-run view of the tree: path -> staged contents, or None once removed.
        self._overlay: dict[Path, str | None] = {}
        self.state: dict[str, Any] = {
            "recipe": recipe.name,
            "project_root": str(self.root),
            "dry_run": config.dry_run,
            "started_at": datetime.now(timezone.utc).isoformat(),
            "steps": [],
            "success": False,
        }

    # ------------------------------------------------------------------
    # Context & paths
    # ------------------------------------------------------------------

    @property
    def context(self) -> dict[str, Any]:
        """Variables available to every rendered string."""
        return {
            "project_name": self.config.resolved_project_name,
            **self.recipe.variables,
            **self.config.variables,
        }

    def _render(self, value: str, render: bool) -> str:
        if not render:
            return value
        return self.renderer.render_string(value, self.context)

    def _resolve(self, relative: str) -> Path:
        """Resolve *relative* against the project root, refusing to leave it."""
        root = self.root.resolve()
        target = (root / relative).resolve()
        if not target.is_relative_to(root):
            raise RecipeError(f"path escapes the project root: {relative}")
        return target

    def _display(self, path: Path) -> str:
        try:
            return str(path.relative_to(self.root.resolve()))
        except ValueError:
            return str(path)

    # ------------------------------------------------------------------
    # Dry-run overlay
    # ------------------------------------------------------------------

    def _exists(self, path: Path) -> bool:
        if path in self._overlay:
            return self._overlay[path] is not None
        return path.exists()

    def _read(self, path: Path) -> FileState:
        if path not in self._overlay:
            return FileState.read(path)
        content = self._overlay[path]
        if content is None:
            raise FileNotFoundError(f"{self._display(path)} does not exist")
        return FileState(path, content)

    def _stage(self, path: Path, content: str | None) -> None:
        # Re-inserting keeps the most recently touched path last.
        self._overlay.pop(path, None)
        self._overlay[path] = content

    def _baseline(self, path: Path) -> str:
        """On-disk contents of *path*, or an empty string if it is absent."""
        if path.is_file():
            return FileState.read(path).original
        return ""

    # ------------------------------------------------------------------
    # Targets
    # ------------------------------------------------------------------

    def _select_targets(self, step: PatchStep) -> list[Path]:
        if step.file is not None:
            return [self._resolve(self._render(step.file, step.render))]

        pattern = self._render(step.glob or "", step.render)
        pure = PurePosixPath(pattern)
        if pure.is_absolute() or Path(pattern).is_absolute() or ".." in pure.parts:
            raise RecipeError(f"glob must stay inside the project root: {pattern!r}")

        root = self.root.resolve()
        found: set[Path] = set()
        for match in root.glob(pattern):
            if not match.is_file():
                continue
            resolved = match.resolve()
            if not resolved.is_relative_to(root):
                raise RecipeError(f"glob match escapes the project root: {match}")
            if self._overlay.get(resolved, "") is None:
                continue
            found.add(resolved)

        staged = [p for p, content in self._overlay.items() if content is not None]
        for path in staged:
            relative = PurePosixPath(path.relative_to(root).as_posix())
            if len(relative.parts) == len(pure.parts) and relative.match(pattern):
                found.add(path)

        matches = sorted(found)
        if not matches:
            raise RecipeError(f"no files match {pattern!r}")
        if step.select == FileSelect.LATEST:

            def recency(path: Path) -> tuple[int, float, str]:
                # Staged files are newer than anything on disk.
                if path in self._overlay:
                    return (1, float(staged.index(path)), path.name)
                return (0, path.stat().st_mtime, path.name)

            return [max(matches, key=recency)]
        if step.select == FileSelect.FIRST:
            return [matches[0]]
        return matches

    # ------------------------------------------------------------------
    # Step handlers
    # ------------------------------------------------------------------

    def _run_patch(self, step: PatchStep) -> tuple[StepStatus, str, list[str]]:
        directives = [
            directive.model_copy(
                update={
                    name: self._render(getattr(directive, name), step.render)
                    for name in _RENDERED_FIELDS
                    if getattr(directive, name, None) is not None
                }
            )
            for directive in step.directives
        ]

        # Every target is patched in memory before anything is written, so a
        # failure on any file leaves all of them untouched.
        states: list[FileState] = []
        for target in self._select_targets(step):
            state = self._read(target)
            state.apply_all(directives)
            states.append(state)

        changed: list[str] = []
        for state in states:
            shown = self._display(state.path)
            if not state.changed:
                print_action("identical", shown)
                continue
            verbs = sorted({d.verb for d in directives})
            for verb in verbs:
                print_action(verb, shown, dry_run=self.config.dry_run)
            if self.config.dry_run:
                print_diff(state.diff(against=self._baseline(state.path)))
                self._stage(state.path, state.content)
            else:
                state.write()
            changed.append(shown)

        targets = [self._display(s.path) for s in states]
        if changed:
            return StepStatus.APPLIED, f"patched {len(changed)} file(s)", targets
        return StepStatus.UNCHANGED, "content already up to date", targets

    def _run_create(self, step: CreateStep) -> tuple[StepStatus, str, list[str]]:
        target = self._resolve(self._render(step.path, step.render))
        shown = self._display(target)
        if step.template is not None:
            contents = self.renderer.render(step.template, self.context)
        else:
            contents = self._render(step.contents or "", step.render)

        if self.config.dry_run:
            if self._exists(target) and not step.overwrite:
                raise FileExistsError(f"{shown} already exists")
            self._stage(target, contents)
            print_action("create", shown, dry_run=True)
            return StepStatus.APPLIED, "would create", [shown]

        create_file(target, contents, overwrite=step.overwrite)
        print_action("create", shown)
        return StepStatus.APPLIED, "created", [shown]

    def _run_remove(self, step: RemoveStep) -> tuple[StepStatus, str, list[str]]:
        target = self._resolve(self._render(step.path, step.render))
        shown = self._display(target)
        if not self._exists(target):
            if not step.missing_ok:
                raise FileNotFoundError(f"{shown} does not exist")
            print_action("skip", f"{shown} (missing)")
            return StepStatus.UNCHANGED, "already absent", [shown]

        if self.config.dry_run:
            self._stage(target, None)
        else:
            remove_file(target, missing_ok=step.missing_ok)
        print_action("remove", shown, dry_run=self.config.dry_run)
        return StepStatus.APPLIED, "removed", [shown]

    async def _run_command(self, step: CommandStep) -> tuple[StepStatus, str, list[str]]:
        if isinstance(step.run, str):
            cmd: str | list[str] = self._render(step.run, step.render)
        else:
            cmd = [self._render(arg, step.render) for arg in step.run]
        cwd = self._resolve(self._render(step.cwd, step.render)) if step.cwd else self.root
        label = cmd if isinstance(cmd, str) else " ".join(cmd)

        print_action("run", label, dry_run=self.config.dry_run)
        if self.config.dry_run:
            return StepStatus.SKIPPED, "dry run", []

        returncode, stdout, stderr = await run_command(
            cmd,
            cwd=cwd,
            timeout=step.timeout or self.config.command_timeout,
            env=step.env or None,
        )
        if returncode != 0:
            detail = (stderr or stdout).splitlines()[-5:]
            raise RecipeError(f"command exited with {returncode}: {label}\n" + "\n".join(detail))
        return StepStatus.APPLIED, f"exit 0: {label}", []

    async def _run_commit(self, step: CommitStep) -> tuple[StepStatus, str, list[str]]:
        if not self.config.git.enabled:
            print_action("skip", "git (disabled)")
            return StepStatus.SKIPPED, "git disabled", []
        if self.config.dry_run:
            print_action("git", "commit", dry_run=True)
            return StepStatus.SKIPPED, "dry run", []

        message = self._render(step.message or self.config.git.commit_message, step.render)
        outcome = await commit_project(self.root, message, timeout=self.config.git.timeout)
        if outcome.status == GitStatus.FAILED:
            print_action("error", "git commit")
            return StepStatus.FAILED, outcome.message, []
        print_action("git", outcome.message)
        return StepStatus.APPLIED, outcome.message, []

    # ------------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------------

    async def run_step(self, index: int, step: Any) -> StepResult:
        """Execute one step and describe the outcome.

        Expected failures (missing anchors, existing files, bad templates,
        failing commands) become a ``failed`` result.  Anything else
        propagates.
        """
        started = time.monotonic()
        targets: list[str] = []
        try:
            if isinstance(step, PatchStep):
                status, message, targets = self._run_patch(step)
            elif isinstance(step, CreateStep):
                status, message, targets = self._run_create(step)
            elif isinstance(step, RemoveStep):
                status, message, targets = self._run_remove(step)
            elif isinstance(step, CommandStep):
                status, message, targets = await self._run_command(step)
            elif isinstance(step, CommitStep):
                status, message, targets = await self._run_commit(step)
            else:
                raise RecipeError(f"unsupported step kind: {getattr(step, 'kind', step)!r}")
        except _STEP_ERRORS as exc:
            status, message = StepStatus.FAILED, str(exc)
            print_action("error", step.label())

        return StepResult(
            index=index,
            kind=step.kind,
            label=step.label(),
            status=status,
            message=message,
            targets=targets,
            duration=time.monotonic() - started,
            optional=step.optional or isinstance(step, CommitStep),
        )

    async def _save_state(self) -> None:
        """Persist the current run state, unless this is a dry run."""
        if self.config.dry_run:
            return
        self.state["updated_at"] = datetime.now(timezone.utc).isoformat()
        self.state["steps"] = [r.model_dump(mode="json") for r in self.results]
        await save_json(self.state, self.config.run_state_path)

    async def run(self) -> dict[str, Any]:
        """Execute every step in order.

        Returns:
            The final run state; ``state["success"]`` is ``False`` when a
            required step failed.
        """
        print_header(f"Recipe: {self.recipe.name}")
        if not self.root.is_dir():
            raise RecipeError(f"project root is not a directory: {self.root}")
        if not self.config.dry_run:
            self.config.ensure_directories()

        run_start = time.monotonic()
        all_success = True

        for index, step in enumerate(self.recipe.steps):
            try:
                result = await self.run_step(index, step)
            except Exception as exc:
                all_success = False
                tb = traceback.format_exc()
                self.state["error"] = tb
                print_error(f"Step {index + 1} ({step.label()}) crashed: {exc}")
                console.print(f"[dim]{tb}[/dim]")
                await self._save_state()
                break

            self.results.append(result)
            await self._save_state()

            if result.status != StepStatus.FAILED:
                continue
            if result.optional:
                print_warning(f"  optional step {index + 1} failed: {result.message}")
                continue

            all_success = False
            self.state["error"] = str(RecipeError(result.message, step_index=index))
            print_error(f"Step {index + 1} ({result.label}) FAILED: {result.message}")
            # Later steps assume earlier ones succeeded.
            break

        total_elapsed = time.monotonic() - run_start
        self.state["success"] = all_success
        self.state["total_duration"] = format_duration(total_elapsed)
        self.state["finished_at"] = datetime.now(timezone.utc).isoformat()
        await self._save_state()

        self._print_summary(total_elapsed)
        return self.state

    def _print_summary(self, elapsed: float) -> None:
        counts = {status: 0 for status in StepStatus}
        for result in self.results:
            counts[result.status] += 1
        summary = {
            "Recipe": self.recipe.name,
            "Project root": str(self.root),
            "Steps run": f"{len(self.results)} / {len(self.recipe.steps)}",
            **{status.value.capitalize(): str(count) for status, count in counts.items()},
            "Duration": format_duration(elapsed),
        }
        if self.config.dry_run:
            summary["Mode"] = "dry run (no files written)"
        print_summary_table(summary, title="Recipe Summary")


# ---------------------------------------------------------------------------
# CLI entry point
# ---------------------------------------------------------------------------


def _parse_vars(pairs: list[str]) -> dict[str, str]:
    variables: dict[str, str] = {}
    for pair in pairs:
        key, sep, value = pair.partition("=")
        if not sep or not key.strip():
            raise ValueError(f"expected KEY=VALUE, got {pair!r}")
        variables[key.strip()] = value
    return variables


def main(argv: list[str] | None = None) -> None:
    """CLI entry point for ``anchorforge`` and ``python -m anchorforge.runner``."""
    import argparse

    parser = argparse.ArgumentParser(
        prog="anchorforge",
        description="anchorforge -- apply a scaffolding recipe to a project tree",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=(
            "Examples:\n"
            "  anchorforge bootstrap.yaml --root ./my-app\n"
            "  anchorforge bootstrap.yaml --root ./my-app --dry-run\n"
            "  anchorforge bootstrap.yaml --var app_name=Demo --skip-git\n"
        ),
    )
    parser.add_argument("recipe", help="Path to the recipe (YAML or JSON)")
    parser.add_argument(
        "--root", "-r",
        default=None,
        help="Project root the recipe is applied to (default: current directory)",
    )
    parser.add_argument("--project-name", default=None, help="Override the project name")
    parser.add_argument(
        "--template-dir", "-t",
        default=None,
        help="Directory holding templates for 'create' steps",
    )
    parser.add_argument(
        "--var",
        action="append",
        default=[],
        metavar="KEY=VALUE",
        help="Template variable, overrides the recipe's (repeatable)",
    )
    parser.add_argument(
        "--dry-run", "-n",
        action="store_true",
        help="Show what would change without writing, running or committing",
    )
    parser.add_argument("--skip-git", action="store_true", help="Skip commit steps")
    parser.add_argument(
        "--timeout",
        type=int,
        default=None,
        help="Per command timeout in seconds",
    )

    args = parser.parse_args(argv)

    try:
        variables = _parse_vars(args.var)
    except ValueError as exc:
        console.print(f"[bold red]Error:[/bold red] {exc}")
        sys.exit(1)

    config = ForgeConfig.from_env()
    if args.root:
        config.project_root = Path(args.root)
    if args.project_name:
        config.project_name = args.project_name
    if args.template_dir:
        config.template_dir = Path(args.template_dir)
    if args.dry_run:
        config.dry_run = True
    if args.skip_git:
        config.git.enabled = False
    if args.timeout:
        config.command_timeout = args.timeout
    config.variables.update(variables)

    try:
        recipe = load_recipe(args.recipe)
        runner = RecipeRunner(config, recipe)
        result = asyncio.run(runner.run())
    except RecipeError as exc:
        console.print(f"[bold red]Error:[/bold red] {exc}")
        sys.exit(1)

    if result.get("success"):
        print_success("Recipe applied successfully!")
    else:
        print_error("Recipe failed.")
        sys.exit(1)


if __name__ == "__main__":
    main()
