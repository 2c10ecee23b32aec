"""Repository classification and metadata extraction."""

import logging
import os
import stat
import subprocess
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, Protocol

from ..errors import CorruptRepository, ExternalOperationFailed
from .models import DETACHED_HEAD, RepoRecord

logger = logging.getLogger(__name__)

GIT_DIR = ".git"


def is_repository_root(path: Path | str) -> bool:
    """Check whether ``path`` directly contains a real ``.git`` directory.

    A ``.git`` that is a symbolic link or a plain file does not count.
    """
    try:
        st = os.lstat(os.path.join(path, GIT_DIR))
    except OSError:
        return False
    return stat.S_ISDIR(st.st_mode)


class GitMetadataReader(Protocol):
    """Reads repository metadata. Each method raises CorruptRepository on failure."""

    def current_branch(self, path: Path) -> str: ...

    def last_commit_time(self, path: Path) -> datetime | None: ...

    def is_dirty(self, path: Path) -> bool: ...

    def remotes(self, path: Path) -> dict[str, str]: ...


class GitCommandReader:
    """GitMetadataReader backed by the ``git`` executable."""

    def __init__(
        self,
        git: str = "git",
        runner: Callable[..., subprocess.CompletedProcess] = subprocess.run,
        timeout: int = 30,
    ):
        self.git = git
        self.runner = runner
        self.timeout = timeout

    def _run(
        self,
        path: Path,
        args: list[str],
        ok_codes: tuple[int, ...] = (0,),
    ) -> subprocess.CompletedProcess:
        """Run git against ``path``; raise CorruptRepository on unexpected status.

        The git directory is pinned so a broken ``.git`` never falls back to a
        repository further up the tree. Output that is not valid UTF-8 (a
        latin-1 remote URL, say) is decoded with replacement characters.
        """
        cmd = [
            self.git,
            "--git-dir", str(path / GIT_DIR),
            "--work-tree", str(path),
            *args,
        ]
        try:
            result = self.runner(
                cmd,
                capture_output=True,
                encoding="utf-8",
                errors="replace",
                timeout=self.timeout,
            )
        except FileNotFoundError as e:
            raise ExternalOperationFailed(f"git executable not found: {self.git}") from e
        except subprocess.TimeoutExpired as e:
            raise CorruptRepository(f"git {' '.join(args)} timed out in {path}") from e

        if result.returncode not in ok_codes:
            stderr = (result.stderr or "").strip() or (result.stdout or "").strip()
            raise CorruptRepository(f"git {' '.join(args)} failed in {path}: {stderr}")
        return result

    def current_branch(self, path: Path) -> str:
        result = self._run(path, ["symbolic-ref", "--short", "-q", "HEAD"], ok_codes=(0, 1))
        branch = result.stdout.strip()
        if result.returncode == 1 or not branch:
            return DETACHED_HEAD
        return branch

    def last_commit_time(self, path: Path) -> datetime | None:
        # An unborn HEAD verifies with status 1 and no output
        head = self._run(path, ["rev-parse", "--verify", "-q", "HEAD"], ok_codes=(0, 1))
        if head.returncode == 1:
            return None

        result = self._run(path, ["log", "-1", "--format=%ct", "HEAD"])
        raw = result.stdout.strip()
        try:
            return datetime.fromtimestamp(int(raw), tz=timezone.utc)
        except ValueError as e:
            raise CorruptRepository(f"Unexpected commit timestamp in {path}: {raw!r}") from e

    def is_dirty(self, path: Path) -> bool:
        """Anything in ``git status --porcelain``, untracked files included."""
        result = self._run(path, ["--no-optional-locks", "status", "--porcelain"])
        return bool(result.stdout.strip())

    def remotes(self, path: Path) -> dict[str, str]:
        result = self._run(
            path,
            ["config", "--get-regexp", r"^remote\..*\.url$"],
            ok_codes=(0, 1),
        )
        found: dict[str, str] = {}
        for line in result.stdout.splitlines():
            key, _, url = line.strip().partition(" ")
            if not key.startswith("remote.") or not key.endswith(".url"):
                continue
            name = key[len("remote."):-len(".url")]
            found.setdefault(name, url.strip())
        return found


def inspect(path: Path | str, reader: GitMetadataReader | None = None) -> RepoRecord | None:
    """Build a RepoRecord for ``path``, or None if it is not a repository root.

    Fields are read independently. A field that cannot be read keeps its
    default and the failure is kept in ``record.errors``.
    """
    path = Path(path).expanduser().resolve()
    if not is_repository_root(path):
        return None

    reader = reader or GitCommandReader()
    record = RepoRecord(path=path)

    fields = [
        ("branch", reader.current_branch),
        ("last_commit_time", reader.last_commit_time),
        ("is_dirty", reader.is_dirty),
        ("remotes", reader.remotes),
    ]
    for attr, read in fields:
        try:
            setattr(record, attr, read(path))
        except CorruptRepository as e:
            logger.warning("Could not read %s of %s: %s", attr, path, e)
            record.errors.append(str(e))

    record.remote_url = record.remotes.get("origin")
    return record
