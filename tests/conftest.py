"""Shared test fixtures."""

import os
import shutil
import subprocess
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest


NOW = datetime(2024, 6, 15, 12, 0, tzinfo=timezone.utc)


class FakeReader:
    """GitMetadataReader returning canned metadata keyed by repository name."""

    def __init__(self, repos: dict[str, dict] | None = None):
        self.repos = repos or {}
        self.calls: list[tuple[str, Path]] = []

    def _field(self, path: Path, name: str, default):
        self.calls.append((name, path))
        value = self.repos.get(path.name, {}).get(name, default)
        if isinstance(value, Exception):
            raise value
        return value

    def current_branch(self, path):
        return self._field(path, "branch", "main")

    def last_commit_time(self, path):
        return self._field(path, "last_commit_time", NOW - timedelta(days=1))

    def is_dirty(self, path):
        return self._field(path, "is_dirty", False)

    def remotes(self, path):
        return self._field(path, "remotes", {})


class FakeRunner:
    """Records commands instead of running them."""

    def __init__(self, returncode: int = 0, stderr: str = ""):
        self.returncode = returncode
        self.stderr = stderr
        self.calls: list[list[str]] = []

    def __call__(self, cmd, **kwargs):
        self.calls.append(list(cmd))
        return subprocess.CompletedProcess(cmd, self.returncode, stdout="", stderr=self.stderr)


def make_repo(path: Path) -> Path:
    """Create a directory that looks like a repository root."""
    (path / ".git").mkdir(parents=True)
    return path


@pytest.fixture
def fake_reader():
    return FakeReader()


@pytest.fixture
def fake_runner():
    return FakeRunner()


@pytest.fixture
def repo_tree(tmp_path):
    """A tree with four repositories at different depths plus a vendored .git.

    tree/
      alpha/            repo
        vendor/lib/     repo nested inside alpha, must not be reported
      group/
        beta/           repo
        deeper/gamma/   repo
      plain/            no repo
      delta/            repo
    """
    root = tmp_path / "tree"
    make_repo(root / "alpha")
    make_repo(root / "alpha" / "vendor" / "lib")
    make_repo(root / "group" / "beta")
    make_repo(root / "group" / "deeper" / "gamma")
    (root / "plain" / "src").mkdir(parents=True)
    (root / "plain" / "README").write_text("not a repo")
    make_repo(root / "delta")
    return root


requires_git = pytest.mark.skipif(shutil.which("git") is None, reason="git not installed")

GIT_ENV = {
    "GIT_AUTHOR_NAME": "Test",
    "GIT_AUTHOR_EMAIL": "test@example.com",
    "GIT_COMMITTER_NAME": "Test",
    "GIT_COMMITTER_EMAIL": "test@example.com",
    "GIT_CONFIG_NOSYSTEM": "1",
}


def git(path: Path, *args: str, env: dict | None = None) -> str:
    full_env = {**os.environ, **GIT_ENV, **(env or {})}
    result = subprocess.run(
        ["git", "-C", str(path), *args],
        capture_output=True,
        text=True,
        check=True,
        env=full_env,
    )
    return result.stdout


@pytest.fixture
def git_repo(tmp_path, monkeypatch):
    """A real repository with one commit dated 2024-06-10."""
    monkeypatch.setenv("HOME", str(tmp_path))
    path = tmp_path / "real"
    path.mkdir()
    git(path, "init", "-q", "-b", "main")
    (path / "file.txt").write_text("hello\n")
    git(path, "add", "file.txt")
    date = "2024-06-10T08:00:00+00:00"
    git(path, "commit", "-q", "-m", "first", env={"GIT_COMMITTER_DATE": date, "GIT_AUTHOR_DATE": date})
    return path
