"""Thin wrapper around the ``git`` executable.

One subprocess per call, run from the store root. The client does not take
the process lock itself; callers hold it around any sequence of mutating
commands.
"""

from __future__ import annotations

import logging
import shutil
import subprocess
from pathlib import Path

from folio.errors import BackendCommandFailed

logger = logging.getLogger(__name__)

GIT = "git"


def is_installed() -> bool:
    """Whether the git executable is on PATH."""
    return shutil.which(GIT) is not None


class GitClient:
    """Runs git commands against one working directory."""

    def __init__(self, root: Path, *, remote: str = "origin", timeout: float | None = None) -> None:
        self.root = root
        self.remote = remote
        self.timeout = timeout

    def run(self, *args: str) -> str:
        """Run ``git <args>`` and return its trimmed combined output.

        Raises BackendCommandFailed on a non-zero exit, a missing executable
        or an expired timeout.
        """
        cmd = [GIT, *args]
        logger.debug("Running: %s (cwd=%s)", " ".join(cmd), self.root)
        try:
            result = subprocess.run(
                cmd,
                cwd=self.root,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                text=True,
                timeout=self.timeout,
            )
        except FileNotFoundError as e:
            raise BackendCommandFailed(cmd, f"{GIT} executable not found") from e
        except subprocess.TimeoutExpired as e:
            raise BackendCommandFailed(cmd, f"timed out after {self.timeout}s") from e

        output = result.stdout or ""
        if result.returncode != 0:
            logger.debug("git %s failed (rc=%d): %s", args[0], result.returncode, output.strip())
            raise BackendCommandFailed(cmd, output, result.returncode)
        return output.strip()

    # ── Repository state ──────────────────────────────────────

    def is_repo(self) -> bool:
        return (self.root / ".git").exists()

    def init(self) -> None:
        self.run("init")
        logger.info("Initialized git repository in %s", self.root)

    def status(self) -> str:
        """Porcelain status summary."""
        return self.run("status", "--porcelain")

    def current_branch(self) -> str:
        # symbolic-ref works on an unborn branch, unlike rev-parse
        return self.run("symbolic-ref", "--short", "HEAD")

    def remotes(self) -> list[str]:
        return self.run("remote").split()

    def has_remote(self) -> bool:
        return bool(self.remotes())

    # ── Mutations ─────────────────────────────────────────────

    def add(self, *paths: str) -> None:
        if paths:
            self.run("add", "--", *paths)

    def rm(self, *paths: str) -> None:
        """Remove files from the working tree and the index."""
        if paths:
            self.run("rm", "-f", "--ignore-unmatch", "--", *paths)

    def commit(self, message: str) -> None:
        self.run("commit", "-m", message)

    def sync(self) -> None:
        """Pull with rebase, then push.

        The pull is retried once without an explicit remote/branch so that
        repositories with non-default upstream tracking still work.
        """
        remotes = self.remotes()
        remote = self.remote if self.remote in remotes else (remotes[0] if remotes else self.remote)
        branch = self.current_branch()

        try:
            self.run("pull", "--rebase", remote, branch)
        except BackendCommandFailed as e:
            logger.warning("pull from %s/%s failed, retrying with upstream defaults: %s", remote, branch, e)
            self.run("pull", "--rebase")

        self.run("push", remote, branch)
        logger.info("Synchronized %s with %s/%s", self.root, remote, branch)
