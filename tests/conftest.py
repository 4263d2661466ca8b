"""Shared fixtures: isolate every test from the user's git and folio config."""

from __future__ import annotations

import shutil
import subprocess
from pathlib import Path

import pytest

requires_git = pytest.mark.skipif(shutil.which("git") is None, reason="git not installed")


@pytest.fixture(autouse=True)
def isolated_env(tmp_path: Path, monkeypatch):
    home = tmp_path / "home"
    home.mkdir()
    monkeypatch.setenv("HOME", str(home))
    monkeypatch.setenv("GIT_CONFIG_NOSYSTEM", "1")
    monkeypatch.setenv("GIT_AUTHOR_NAME", "Folio Test")
    monkeypatch.setenv("GIT_AUTHOR_EMAIL", "folio@example.com")
    monkeypatch.setenv("GIT_COMMITTER_NAME", "Folio Test")
    monkeypatch.setenv("GIT_COMMITTER_EMAIL", "folio@example.com")
    for key in [
        "FOLIO_ROOT",
        "FOLIO_AUTO_INIT",
        "FOLIO_MUST_EXIST",
        "FOLIO_VERSIONING",
        "FOLIO_EPHEMERAL",
        "FOLIO_STRICT",
        "FOLIO_LOCK_TIMEOUT",
        "FOLIO_LOG_LEVEL",
    ]:
        monkeypatch.delenv(key, raising=False)


def git(root: Path, *args: str) -> str:
    """Run git in ``root`` for assertions."""
    result = subprocess.run(
        ["git", *args], cwd=root, capture_output=True, text=True, check=True
    )
    return result.stdout.strip()


def commit_subjects(root: Path) -> list[str]:
    return git(root, "log", "--format=%s").splitlines()
