"""Git operations for local runs: remote discovery and temporary branches."""

from __future__ import annotations

import logging
import re
import subprocess
import uuid
from pathlib import Path

logger = logging.getLogger(__name__)

GITHUB_HTTPS = "https://github.com/"
GITHUB_SSH = "git@github.com:"


class GitOps:
    """Runs git in a working copy to publish the commit CodeBuild should build.

    CodeBuild fetches the source from GitHub, so a local run pushes ``HEAD``
    to a throwaway branch, builds that branch, then deletes it.
    """

    def __init__(self, repo_path: Path, remote: str = "origin"):
        self.repo_path = repo_path
        self.remote = remote

    def _run(self, *args: str, check: bool = True) -> subprocess.CompletedProcess:
        """Execute a git command in the repo directory."""
        result = subprocess.run(
            ["git", *args],
            cwd=self.repo_path,
            capture_output=True,
            text=True,
            check=False,
        )
        if check and result.returncode != 0:
            raise GitError(f"git {' '.join(args)} failed: {result.stderr.strip()}")
        return result

    def github_info(self) -> tuple[str, str]:
        """Return ``(owner, repo)`` of the remote's GitHub push URL.

        Parsed from ``git remote -v`` rather than by passing the remote name to
        a shell, so only a remote that actually exists is ever pushed to.
        """
        pattern = re.compile(rf"^{re.escape(self.remote)}\s.*\(push\)$")
        lines = self._run("remote", "-v").stdout.splitlines()
        matches = [line.strip() for line in lines if pattern.match(line.strip())]
        if not matches:
            raise GitError(f"No remote found named {self.remote}")
        url = matches[0].split()[1]
        return parse_github_url(url)

    @staticmethod
    def temporary_branch_name() -> str:
        return str(uuid.uuid4())

    def push_branch(self, branch_name: str) -> None:
        """Push ``HEAD`` to ``branch_name`` on the remote."""
        self._run("push", self.remote, f"HEAD:{branch_name}")
        logger.info(f"Pushed HEAD to {self.remote}/{branch_name}")

    def delete_branch(self, branch_name: str) -> None:
        """Delete ``branch_name`` on the remote."""
        self._run("push", self.remote, f":{branch_name}")
        logger.info(f"Deleted {self.remote}/{branch_name}")


def parse_github_url(url: str) -> tuple[str, str]:
    """Split a GitHub HTTPS or SSH remote URL into ``(owner, repo)``."""
    for prefix in (GITHUB_HTTPS, GITHUB_SSH):
        if url.startswith(prefix):
            path = url[len(prefix):]
            if path.endswith(".git"):
                path = path[:-4]
            owner, _, repo = path.partition("/")
            return owner, repo
    raise GitError(f"Unsupported format: {url}")


class GitError(Exception):
    """Raised when a git operation fails."""
    pass
