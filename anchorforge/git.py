"""Commit a scaffolded project to git.

The public entry point, :func:`commit_project`, never raises for git
failures.  It returns a :class:`GitOutcome` that callers branch on, because a
missing ``user.email`` or an empty tree should not throw away an otherwise
finished scaffolding run.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from enum import Enum
from pathlib import Path


class GitStatus(str, Enum):
    COMMITTED = "committed"
    SKIPPED = "skipped"
    FAILED = "failed"


@dataclass(frozen=True)
class GitOutcome:
    """Result of a commit attempt."""

    status: GitStatus
    message: str = ""
    commit: str = ""

    @property
    def ok(self) -> bool:
        return self.status != GitStatus.FAILED

    @classmethod
    def skipped(cls, reason: str) -> "GitOutcome":
        return cls(GitStatus.SKIPPED, reason)

    @classmethod
    def failed(cls, reason: str) -> "GitOutcome":
        return cls(GitStatus.FAILED, reason)


class GitError(Exception):
    """Raised by :func:`_run_git` when a git command fails."""

    def __init__(self, message: str, command: str = "", stderr: str = ""):
        self.command = command
        self.stderr = stderr
        super().__init__(message)


async def _run_git(
    *args: str,
    cwd: str | Path | None = None,
    timeout: float = 60.0,
) -> tuple[str, str]:
    """Run a git command asynchronously and return (stdout, stderr).

    Raises GitError if git is missing, times out, or exits non-zero.
    """
    cmd = ["git"] + list(args)
    cmd_str = " ".join(cmd)

    try:
        process = await asyncio.create_subprocess_exec(
            *cmd,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            cwd=str(cwd) if cwd else None,
        )
    except FileNotFoundError as exc:
        raise GitError("git executable not found", command=cmd_str) from exc

    try:
        stdout_bytes, stderr_bytes = await asyncio.wait_for(
            process.communicate(), timeout=timeout
        )
    except asyncio.TimeoutError:
        process.kill()
        await process.wait()
        raise GitError(
            f"Git command timed out after {timeout}s: {cmd_str}",
            command=cmd_str,
        )

    stdout = stdout_bytes.decode("utf-8", errors="replace").strip()
    stderr = stderr_bytes.decode("utf-8", errors="replace").strip()

    if process.returncode != 0:
        detail = stderr or stdout
        raise GitError(
            f"Git command failed (exit {process.returncode}): {cmd_str}\n{detail}",
            command=cmd_str,
            stderr=detail,
        )

    return stdout, stderr


async def commit_project(
    repo_path: str | Path,
    message: str = "Initial commit",
    *,
    timeout: float = 60.0,
) -> GitOutcome:
    """Initialise (if needed), stage everything and commit *repo_path*.

    Returns:
        ``GitOutcome`` with status ``committed`` and the new commit hash, or
        ``failed`` with git's error message.
    """
    repo = Path(repo_path)
    try:
        if not (repo / ".git").exists():
            await _run_git("init", cwd=repo, timeout=timeout)
        await _run_git("add", ".", cwd=repo, timeout=timeout)
        await _run_git("commit", "-m", message, cwd=repo, timeout=timeout)
        sha, _ = await _run_git("rev-parse", "--short", "HEAD", cwd=repo, timeout=timeout)
    except GitError as exc:
        return GitOutcome.failed(exc.stderr or str(exc))
    return GitOutcome(GitStatus.COMMITTED, f"committed {sha}", commit=sha)
