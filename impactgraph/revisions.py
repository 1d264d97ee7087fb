"""File content at a given revision, read from a local git working copy."""

from __future__ import annotations

import logging
import subprocess
from pathlib import Path
from typing import Optional

from .paths import to_forward_slashes

logger = logging.getLogger(__name__)


class RevisionSource:
    """Base class for anything that can materialize a file at a revision."""

    def get_file_content(self, file_path: str, revision: str) -> Optional[str]:
        """Return the file text at *revision*, or ``None`` when unavailable."""
        raise NotImplementedError


class GitRevisionSource(RevisionSource):
    """Reads blobs with ``git show <rev>:<path>``."""

    def __init__(self, repo_path: Path, timeout: float = 15.0):
        self.repo_path = Path(repo_path)
        self.timeout = timeout

    def _git(self, *args: str) -> subprocess.CompletedProcess:
        return subprocess.run(
            ["git", "-C", str(self.repo_path), *args],
            capture_output=True,
            text=True,
            timeout=self.timeout,
        )

    def get_file_content(self, file_path: str, revision: str) -> Optional[str]:
        if not revision:
            return None
        spec = f"{revision}:{to_forward_slashes(file_path)}"
        try:
            result = self._git("show", spec)
        except (OSError, subprocess.SubprocessError) as exc:
            logger.warning("git show %s failed in %s: %s", spec, self.repo_path, exc)
            return None
        if result.returncode != 0:
            # added or deleted files have no blob on one side
            logger.debug("No content for %s: %s", spec, result.stderr.strip())
            return None
        return result.stdout

    def pull_latest(self) -> bool:
        """Fast-forward the working copy so the usage scan sees current code."""
        try:
            result = self._git("pull", "--ff-only")
        except (OSError, subprocess.SubprocessError) as exc:
            logger.warning("git pull failed in %s: %s", self.repo_path, exc)
            return False
        if result.returncode != 0:
            logger.warning("git pull failed in %s: %s", self.repo_path, result.stderr.strip())
            return False
        return True
