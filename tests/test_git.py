"""Tests for the git subprocess wrapper."""

from __future__ import annotations

import subprocess
from pathlib import Path
from unittest.mock import patch

import pytest

from conftest import requires_git
from folio.errors import BackendCommandFailed
from folio.store.git import GitClient


def _completed(returncode: int = 0, stdout: str = "") -> subprocess.CompletedProcess:
    return subprocess.CompletedProcess(args=["git"], returncode=returncode, stdout=stdout)


class TestRun:
    def test_returns_trimmed_output(self, tmp_path: Path):
        with patch("folio.store.git.subprocess.run", return_value=_completed(0, "  main\n")) as run:
            assert GitClient(tmp_path).run("symbolic-ref", "--short", "HEAD") == "main"
        args, kwargs = run.call_args
        assert args[0] == ["git", "symbolic-ref", "--short", "HEAD"]
        assert kwargs["cwd"] == tmp_path

    def test_nonzero_exit(self, tmp_path: Path):
        with patch("folio.store.git.subprocess.run", return_value=_completed(128, "fatal: bad\n")):
            with pytest.raises(BackendCommandFailed) as excinfo:
                GitClient(tmp_path).run("status")
        err = excinfo.value
        assert err.command == ["git", "status"]
        assert err.returncode == 128
        assert "fatal: bad" in err.output
        assert "rc=128" in str(err)

    def test_missing_executable(self, tmp_path: Path):
        with patch("folio.store.git.subprocess.run", side_effect=FileNotFoundError("git")):
            with pytest.raises(BackendCommandFailed, match="not found"):
                GitClient(tmp_path).run("status")

    def test_timeout(self, tmp_path: Path):
        with patch(
            "folio.store.git.subprocess.run",
            side_effect=subprocess.TimeoutExpired(cmd=["git"], timeout=1),
        ):
            with pytest.raises(BackendCommandFailed, match="timed out"):
                GitClient(tmp_path, timeout=1).run("status")

    def test_add_and_rm_skip_empty(self, tmp_path: Path):
        with patch("folio.store.git.subprocess.run") as run:
            client = GitClient(tmp_path)
            client.add()
            client.rm()
        run.assert_not_called()


class TestSync:
    def _client(self, tmp_path: Path, remotes: str, fail_first_pull: bool = False):
        calls: list[tuple[str, ...]] = []
        pulls = iter([fail_first_pull, False])

        def fake_run(*args: str) -> str:
            calls.append(args)
            if args[0] == "remote":
                return remotes
            if args[0] == "symbolic-ref":
                return "main"
            if args[0] == "pull" and next(pulls):
                raise BackendCommandFailed(["git", *args], "conflict", 1)
            return ""

        client = GitClient(tmp_path)
        client.run = fake_run  # type: ignore[method-assign]
        return client, calls

    def test_pull_then_push(self, tmp_path: Path):
        client, calls = self._client(tmp_path, "origin")
        client.sync()
        assert ("pull", "--rebase", "origin", "main") in calls
        assert calls[-1] == ("push", "origin", "main")

    def test_retries_plain_pull(self, tmp_path: Path):
        client, calls = self._client(tmp_path, "origin", fail_first_pull=True)
        client.sync()
        pulls = [c for c in calls if c[0] == "pull"]
        assert pulls == [("pull", "--rebase", "origin", "main"), ("pull", "--rebase")]
        assert calls[-1] == ("push", "origin", "main")

    def test_falls_back_to_first_remote(self, tmp_path: Path):
        client, calls = self._client(tmp_path, "upstream\nmirror")
        client.sync()
        assert calls[-1] == ("push", "upstream", "main")


@requires_git
class TestRealRepository:
    def test_init_commit_status(self, tmp_path: Path):
        repo = tmp_path / "repo"
        repo.mkdir()
        client = GitClient(repo)
        assert not client.is_repo()
        client.init()
        assert client.is_repo()
        assert client.current_branch()
        assert not client.has_remote()

        (repo / "a.md").write_text("x", encoding="utf-8")
        assert "a.md" in client.status()
        client.add("a.md")
        client.commit("first")
        assert client.status() == ""

    def test_failure_carries_output(self, tmp_path: Path):
        repo = tmp_path / "repo"
        repo.mkdir()
        client = GitClient(repo)
        client.init()
        with pytest.raises(BackendCommandFailed) as excinfo:
            client.commit("nothing staged")
        assert excinfo.value.returncode != 0
