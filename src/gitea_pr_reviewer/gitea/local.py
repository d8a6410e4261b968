"""
Local Git Client

Computes diffs between two revisions of the checked-out repository.
Used for `synchronized` events, where only the newly pushed commits are reviewed.
"""

import logging
import subprocess
from pathlib import Path
from typing import Union


logger = logging.getLogger(__name__)


class GitDiffError(Exception):
    """Local git diff failed"""


class LocalGitClient:
    """Thin wrapper around the `git` executable."""

    def __init__(self, repo_path: Union[str, Path] = ".", git_executable: str = "git"):
        self.repo_path = Path(repo_path)
        self.git_executable = git_executable

    def diff(self, base: str, head: str) -> str:
        """
        Get the diff between two commits.

        Args:
            base: Previous head commit
            head: New head commit

        Returns:
            Unified diff text of ``base...head``

        Raises:
            GitDiffError: If git is missing or the command fails
        """
        if not base or not head:
            raise GitDiffError("Both base and head revisions are required")

        args = [self.git_executable, "diff", f"{base}...{head}"]
        logger.info(f"Running {' '.join(args)} in {self.repo_path}")

        try:
            result = subprocess.run(
                args,
                cwd=self.repo_path,
                check=True,
                capture_output=True,
                text=True,
            )
        except FileNotFoundError as e:
            raise GitDiffError(f"git executable not found: {e}")
        except subprocess.CalledProcessError as e:
            raise GitDiffError(f"git diff failed: {e.stderr.strip() if e.stderr else 'Unknown error'}")

        return result.stdout
