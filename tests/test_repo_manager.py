"""Tests for clone and upload operations."""

import subprocess
from pathlib import Path

import pytest

from pplaces.crawler.models import DETACHED_HEAD
from pplaces.crawler.repo_manager import (
    RepoManager,
    UploadTarget,
    default_destination,
    normalize_url,
)
from pplaces.errors import (
    AlreadyExists,
    ConfigError,
    CorruptRepository,
    ExternalOperationFailed,
    NotARepository,
    PplacesError,
)

from conftest import FakeReader, FakeRunner, make_repo


class FakeHosting:
    platform = "github"

    def __init__(self, url="https://github.com/me/proj.git"):
        self.url = url
        self.requests = []

    def ensure_repository(self, full_name, private=True, description=None):
        self.requests.append((full_name, private, description))
        return self.url


def test_clone_refuses_existing_repository(tmp_path, fake_runner, fake_reader):
    dest = make_repo(tmp_path / "repo")
    manager = RepoManager(reader=fake_reader, runner=fake_runner)

    with pytest.raises(AlreadyExists) as excinfo:
        manager.clone("https://example.com/repo.git", dest)

    assert excinfo.value.path == dest
    assert fake_runner.calls == []


def test_clone_runs_git_clone(tmp_path, fake_runner, fake_reader):
    manager = RepoManager(reader=fake_reader, runner=fake_runner, depth=1)

    cloned = manager.clone("https://example.com/repo.git", tmp_path / "repo")

    assert cloned.local_path == tmp_path / "repo"
    assert fake_runner.calls == [[
        "git", "clone", "--depth", "1",
        "https://example.com/repo.git", str(tmp_path / "repo"),
    ]]


def test_clone_default_destination(tmp_path, fake_runner, fake_reader, monkeypatch):
    monkeypatch.chdir(tmp_path)
    manager = RepoManager(reader=fake_reader, runner=fake_runner)

    cloned = manager.clone("git@example.com:team/tool.git")

    assert cloned.local_path == tmp_path / "tool"
    assert fake_runner.calls[0][-1] == str(tmp_path / "tool")


def test_clone_failure_surfaces_exit_status(tmp_path, fake_reader):
    runner = FakeRunner(returncode=128, stderr="fatal: repository not found\n")
    manager = RepoManager(reader=fake_reader, runner=runner)

    with pytest.raises(ExternalOperationFailed) as excinfo:
        manager.clone("https://example.com/missing.git", tmp_path / "missing")

    assert excinfo.value.returncode == 128
    assert excinfo.value.exit_code == 128
    assert "repository not found" in excinfo.value.stderr
    assert len(runner.calls) == 1


@pytest.mark.parametrize("returncode, exit_code", [(128, 128), (-9, 137), (None, 1), (0, 1)])
def test_external_failure_exit_code(returncode, exit_code):
    assert ExternalOperationFailed("git failed", returncode=returncode).exit_code == exit_code


def test_clone_search_root_finds_existing_clone(tmp_path, fake_runner):
    make_repo(tmp_path / "work" / "tool")
    reader = FakeReader({"tool": {"remotes": {"origin": "git@example.com:team/tool.git"}}})
    manager = RepoManager(reader=reader, runner=fake_runner)

    with pytest.raises(AlreadyExists) as excinfo:
        manager.clone(
            "https://example.com/team/tool",
            tmp_path / "elsewhere",
            search_root=tmp_path / "work",
        )

    assert excinfo.value.path == tmp_path / "work" / "tool"
    assert fake_runner.calls == []


def test_upload_refuses_non_repository(tmp_path, fake_runner, fake_reader):
    hosting = FakeHosting()
    manager = RepoManager(reader=fake_reader, runner=fake_runner, hosting=[hosting])

    with pytest.raises(NotARepository):
        manager.upload(tmp_path / "not-a-repo", "github:me/proj")

    assert fake_runner.calls == []
    assert hosting.requests == []


def test_upload_adds_origin_when_missing(tmp_path, fake_runner):
    repo = make_repo(tmp_path / "proj")
    hosting = FakeHosting()
    manager = RepoManager(reader=FakeReader(), runner=fake_runner, hosting=[hosting])

    uploaded = manager.upload(repo, "github:me/proj", private=False)

    assert hosting.requests == [("me/proj", False, None)]
    assert uploaded.added_origin
    assert uploaded.branch == "main"
    assert fake_runner.calls == [
        ["git", "-C", str(repo), "remote", "add", "origin", hosting.url],
        ["git", "-C", str(repo), "push", "--set-upstream", "origin", "main"],
    ]


def test_upload_to_url_keeps_existing_origin(tmp_path, fake_runner):
    repo = make_repo(tmp_path / "proj")
    reader = FakeReader({"proj": {"remotes": {"origin": "https://example.com/old.git"}}})
    manager = RepoManager(reader=reader, runner=fake_runner)

    uploaded = manager.upload(repo, "git@example.com:me/new.git")

    assert not uploaded.added_origin
    assert fake_runner.calls == [
        ["git", "-C", str(repo), "push", "git@example.com:me/new.git", "main"],
    ]


def test_upload_push_failure(tmp_path):
    repo = make_repo(tmp_path / "proj")
    runner = FakeRunner(returncode=1, stderr="rejected")
    reader = FakeReader({"proj": {"remotes": {"origin": "https://example.com/p.git"}}})
    manager = RepoManager(reader=reader, runner=runner)

    with pytest.raises(ExternalOperationFailed) as excinfo:
        manager.upload(repo, "https://example.com/p.git")

    assert excinfo.value.returncode == 1
    assert len(runner.calls) == 1


def test_upload_without_hosting_credentials(tmp_path, fake_runner, fake_reader):
    repo = make_repo(tmp_path / "proj")
    manager = RepoManager(reader=fake_reader, runner=fake_runner)

    with pytest.raises(ConfigError):
        manager.upload(repo, "gitlab:group/proj")
    assert fake_runner.calls == []


def test_upload_refuses_unreadable_repository(tmp_path, fake_runner):
    repo = make_repo(tmp_path / "proj")
    reader = FakeReader({"proj": {"branch": CorruptRepository("bad HEAD")}})
    hosting = FakeHosting()
    manager = RepoManager(reader=reader, runner=fake_runner, hosting=[hosting])

    with pytest.raises(CorruptRepository, match="bad HEAD"):
        manager.upload(repo, "github:me/proj")

    assert fake_runner.calls == []
    assert hosting.requests == []


def test_upload_failed_push_removes_added_origin(tmp_path):
    repo = make_repo(tmp_path / "proj")
    calls = []

    def runner(cmd, **kw):
        calls.append(list(cmd))
        returncode = 1 if "push" in cmd else 0
        return subprocess.CompletedProcess(cmd, returncode, stdout="", stderr="rejected")

    manager = RepoManager(reader=FakeReader(), runner=runner)

    with pytest.raises(ExternalOperationFailed):
        manager.upload(repo, "https://example.com/p.git")

    assert calls == [
        ["git", "-C", str(repo), "remote", "add", "origin", "https://example.com/p.git"],
        ["git", "-C", str(repo), "push", "--set-upstream", "origin", "main"],
        ["git", "-C", str(repo), "remote", "remove", "origin"],
    ]


def test_upload_detached_head(tmp_path, fake_runner):
    repo = make_repo(tmp_path / "proj")
    manager = RepoManager(reader=FakeReader({"proj": {"branch": DETACHED_HEAD}}), runner=fake_runner)

    with pytest.raises(PplacesError, match="detached"):
        manager.upload(repo, "https://example.com/p.git")
    assert fake_runner.calls == []


def test_upload_rejects_unknown_target(tmp_path, fake_runner, fake_reader):
    repo = make_repo(tmp_path / "proj")
    manager = RepoManager(reader=fake_reader, runner=fake_runner)

    with pytest.raises(ValueError):
        manager.upload(repo, "bitbucket:me/proj")


@pytest.mark.parametrize("url", [
    "https://github.com/me/proj.git",
    "https://github.com/me/proj/",
    "git@github.com:me/proj.git",
    "ssh://git@github.com/me/proj",
    "https://token@GitHub.com/me/proj",
])
def test_normalize_url(url):
    assert normalize_url(url) == "github.com/me/proj"


def test_default_destination():
    assert default_destination("https://example.com/a/b.git") == Path("b")
    assert default_destination("git@example.com:a/c") == Path("c")
    with pytest.raises(ValueError):
        default_destination("https://example.com/.git")


def test_upload_target_parse():
    assert UploadTarget.parse("github:me/proj") == UploadTarget("github", "me/proj")
    assert UploadTarget.parse("gitlab:group/sub/proj") == UploadTarget("gitlab", "group/sub/proj")
    assert UploadTarget.parse("https://example.com/p.git") == UploadTarget(None, "https://example.com/p.git")
    with pytest.raises(ValueError):
        UploadTarget.parse("github:proj")
