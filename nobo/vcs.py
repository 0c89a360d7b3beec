"""Git access for the NoBo build cache.

A thin wrapper around the git command line. Every failure (git missing, not
a repository, unknown revision, timeout) surfaces as VCSError so callers
have a single exception to handle.

Key classes:
- GitRepository: Query the current revision and diff a subtree.
- VCSError: Raised when a git command cannot produce an answer.
"""

from __future__ import annotations

import logging
import subprocess
from pathlib import Path

from .executable_utils import find_executable

logger = logging.getLogger(__name__)


class VCSError(Exception):
    """Raised when a version-control query fails."""


class GitRepository:
    """Version-control view of a directory, backed by the git CLI.

    Attributes:
        work_dir: Directory the commands run in. Diffs are restricted to it.
        timeout: Seconds allowed for each git invocation.
        git_bin: Path to the git executable, or None if git is unavailable.
    """

    def __init__(
        self, work_dir: Path, timeout: float = 30, git_bin: str | None = None
    ):
        self.work_dir = work_dir
        self.timeout = timeout
        self.git_bin = git_bin or find_executable("git")

    def is_repository(self) -> bool:
        """Return True when work_dir is inside a git work tree."""
        if not self.work_dir.is_dir():
            return False
        try:
            output = self._run("rev-parse", "--is-inside-work-tree")
        except VCSError as exc:
            logger.debug("%s is not a git work tree: %s", self.work_dir, exc)
            return False
        return output.strip() == "true"

    def current_revision(self) -> str:
        """Return the full hash of the checked out commit.

        Raises:
            VCSError: If HEAD cannot be resolved (e.g. no commits yet).
        """
        revision = self._run("rev-parse", "HEAD").strip()
        if not revision:
            raise VCSError("git rev-parse HEAD returned nothing")
        return revision

    def changed_files(self, old_revision: str, new_revision: str) -> list[str]:
        """List files under work_dir that differ between two revisions.

        Paths are relative to work_dir, in the order git reports them.

        Raises:
            VCSError: If either revision is unknown or git fails.
        """
        output = self._run(
            "diff",
            "--name-only",
            "--relative",
            old_revision,
            new_revision,
            "--",
            ".",
        )
        return [line for line in output.splitlines() if line.strip()]

    def _run(self, *args: str) -> str:
        if not self.git_bin:
            raise VCSError("git executable not found")
        command = [self.git_bin, "-c", "core.quotepath=off", *args]
        try:
            completed = subprocess.run(
                command,
                cwd=self.work_dir,
                check=True,
                capture_output=True,
                text=True,
                timeout=self.timeout,
            )
        except subprocess.CalledProcessError as exc:
            stderr = (exc.stderr or "").strip()
            raise VCSError(f"git {' '.join(args)} failed: {stderr}") from exc
        except subprocess.TimeoutExpired as exc:
            raise VCSError(
                f"git {' '.join(args)} timed out after {self.timeout}s"
            ) from exc
        except OSError as exc:
            raise VCSError(f"could not run git: {exc}") from exc
        return completed.stdout
