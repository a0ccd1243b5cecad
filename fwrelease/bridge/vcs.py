"""Git bridge — the only place the pipeline shells out to ``git``.

Each method maps to one git query. Failures that mean "there is no usable
repository" raise ``RepositoryStateError``; queries whose empty answer is
meaningful (no tags, no previous release) return empty values instead.
"""

from __future__ import annotations

import logging
import subprocess
from pathlib import Path

from fwrelease.errors import RepositoryStateError

logger = logging.getLogger(__name__)

DETACHED_BRANCH = "detached"


class GitCommandError(RepositoryStateError):
    """A git invocation exited non-zero."""

    def __init__(self, args: list[str], returncode: int, stderr: str) -> None:
        super().__init__(
            f"git {' '.join(args)} failed (exit {returncode}): {stderr.strip()}"
        )
        self.command = args
        self.returncode = returncode


class GitRepository:
    """Read-only view of a git work tree.

    Parameters
    ----------
    path:
        Directory inside the work tree. Defaults to the current directory.
    git_executable:
        Name or path of the git binary.
    """

    def __init__(self, path: Path | str = ".", *, git_executable: str = "git") -> None:
        self.path = Path(path)
        self._git = git_executable

    def _run(self, *args: str) -> str:
        try:
            result = subprocess.run(
                [self._git, *args],
                cwd=self.path,
                capture_output=True,
                text=True,
                check=False,
            )
        except (OSError, subprocess.SubprocessError) as exc:
            raise RepositoryStateError(
                f"Unable to run git: {exc}",
                suggestion="Install git and run from inside the repository.",
            ) from exc
        if result.returncode != 0:
            raise GitCommandError(list(args), result.returncode, result.stderr)
        return result.stdout.strip()

    def _lines(self, *args: str) -> list[str]:
        output = self._run(*args)
        return [line for line in output.splitlines() if line.strip()]

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------

    def ensure_valid(self) -> None:
        """Raise ``RepositoryStateError`` unless this is a repo with commits."""
        try:
            self._run("rev-parse", "--git-dir")
        except GitCommandError as exc:
            raise RepositoryStateError(
                "Not in a git repository",
                suggestion="Run from inside the firmware repository checkout.",
            ) from exc
        try:
            self._run("rev-parse", "--verify", "HEAD")
        except GitCommandError as exc:
            raise RepositoryStateError("No commits found in repository") from exc
        logger.debug("Git repository validation passed (%s)", self.path)

    # ------------------------------------------------------------------
    # HEAD state
    # ------------------------------------------------------------------

    def head_commit(self) -> str:
        return self._run("rev-parse", "HEAD")

    def current_branch(self) -> str:
        """Branch name, or ``detached`` when HEAD is not on a branch."""
        try:
            branch = self._run("branch", "--show-current")
        except GitCommandError:
            branch = ""
        return branch or DETACHED_BRANCH

    # ------------------------------------------------------------------
    # Tags
    # ------------------------------------------------------------------

    def tags_at(self, ref: str = "HEAD") -> list[str]:
        """Tags pointing exactly at ``ref``."""
        return self._lines("tag", "--points-at", ref)

    def merged_tags(self, ref: str = "HEAD") -> list[str]:
        """Tags whose commit is reachable from ``ref`` (``ref`` included)."""
        return self._lines("tag", "--merged", ref)

    def count_commits(self, since: str, until: str = "HEAD") -> int:
        """Commits reachable from ``until`` but not from ``since``."""
        return int(self._run("rev-list", "--count", f"{since}..{until}"))

    def has_parent(self, ref: str = "HEAD") -> bool:
        try:
            self._run("rev-parse", "--verify", "--quiet", f"{ref}^")
        except GitCommandError:
            return False
        return True

    # ------------------------------------------------------------------
    # History
    # ------------------------------------------------------------------

    def log_field(
        self,
        fmt: str,
        revision_range: str | None = None,
        *,
        max_count: int | None = None,
    ) -> list[str]:
        """One ``git log --format`` field per commit, newest first."""
        args = ["log", f"--format={fmt}"]
        if max_count is not None:
            args.append(f"--max-count={max_count}")
        args.append(revision_range or "HEAD")
        return self._lines(*args)
