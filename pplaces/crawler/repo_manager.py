"""Repository cloning and uploading."""

import logging
import re
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Protocol, Sequence

from ..errors import (
    AlreadyExists,
    ConfigError,
    CorruptRepository,
    ExternalOperationFailed,
    NotARepository,
    PplacesError,
)
from .inspector import GitMetadataReader, GitCommandReader, inspect
from .models import ClonedRepo, FilterCriteria, UploadedRepo
from .scanner import aggregate

logger = logging.getLogger(__name__)

URL_PREFIXES = ("https://", "http://", "ssh://", "git://", "file://")
SCP_URL = re.compile(r"^[\w.-]+@[\w.-]+:")
HOSTING_TARGET = re.compile(r"^(?P<platform>github|gitlab):(?P<path>[^/\s]+(?:/[^/\s]+)+)$")


class HostingClient(Protocol):
    """A hosting service able to provide a push URL for a repository."""

    platform: str

    def ensure_repository(
        self,
        full_name: str,
        private: bool = True,
        description: str | None = None,
    ) -> str: ...


def is_git_url(value: str) -> bool:
    """Check if ``value`` looks like something ``git clone`` accepts as a URL."""
    return value.startswith(URL_PREFIXES) or bool(SCP_URL.match(value))


def normalize_url(url: str) -> str:
    """Reduce a git URL to ``host/path`` for comparing remotes.

    ``https://github.com/a/b.git``, ``git@github.com:a/b`` and
    ``ssh://git@github.com/a/b/`` all normalize to ``github.com/a/b``.
    """
    value = url.strip()
    for prefix in URL_PREFIXES:
        if value.startswith(prefix):
            value = value[len(prefix):]
            break
    else:
        if SCP_URL.match(value):
            value = value.replace(":", "/", 1)

    host, sep, rest = value.partition("/")
    host = host.rsplit("@", 1)[-1]
    value = f"{host}{sep}{rest}".rstrip("/")
    if value.endswith(".git"):
        value = value[:-len(".git")]
    return value.lower()


def default_destination(url: str) -> Path:
    """Directory name ``git clone`` would pick for ``url``."""
    tail = url.rstrip("/").replace(":", "/").rsplit("/", 1)[-1]
    if tail.endswith(".git"):
        tail = tail[:-len(".git")]
    if not tail:
        raise ValueError(f"Cannot derive a directory name from {url!r}")
    return Path(tail)


@dataclass
class UploadTarget:
    """Where ``upload`` sends a repository."""
    platform: str | None  # github | gitlab | None for a plain URL
    location: str

    @classmethod
    def parse(cls, value: str) -> "UploadTarget":
        match = HOSTING_TARGET.match(value)
        if match:
            return cls(platform=match["platform"], location=match["path"])
        if is_git_url(value):
            return cls(platform=None, location=value)
        raise ValueError(
            f"Unsupported upload target {value!r}: use github:<owner>/<name>, "
            "gitlab:<namespace>/<name> or a git URL"
        )


class RepoManager:
    """Clones and uploads repositories after checking local state."""

    def __init__(
        self,
        reader: GitMetadataReader | None = None,
        runner: Callable[..., subprocess.CompletedProcess] = subprocess.run,
        timeout: int = 300,
        depth: int = 0,
        hosting: Sequence[HostingClient] = (),
    ):
        self.reader = reader or GitCommandReader()
        self.runner = runner
        self.timeout = timeout
        self.depth = depth
        self.hosting = {client.platform: client for client in hosting}

    def _git(self, args: list[str], what: str) -> subprocess.CompletedProcess:
        """Run a git command once; raise ExternalOperationFailed on failure."""
        cmd = ["git", *args]
        logger.info("Running %s", " ".join(cmd))
        try:
            result = self.runner(
                cmd,
                capture_output=True,
                encoding="utf-8",
                errors="replace",
                timeout=self.timeout,
            )
        except FileNotFoundError as e:
            raise ExternalOperationFailed("git executable not found") from e
        except subprocess.TimeoutExpired as e:
            raise ExternalOperationFailed(f"{what} timed out after {self.timeout}s") from e

        if result.returncode != 0:
            raise ExternalOperationFailed(
                f"{what} failed with exit status {result.returncode}",
                returncode=result.returncode,
                stderr=result.stderr or "",
            )
        return result

    def find_clone(self, url: str, search_root: Path | str) -> Path | None:
        """Return a repository under ``search_root`` with a remote matching ``url``."""
        wanted = normalize_url(url)
        result = aggregate(search_root, FilterCriteria(), reader=self.reader)
        for record in result:
            if any(normalize_url(u) == wanted for u in record.remotes.values()):
                return record.path
        return None

    def clone(
        self,
        url: str,
        destination: Path | str | None = None,
        *,
        extra_args: Sequence[str] = (),
        search_root: Path | str | None = None,
    ) -> ClonedRepo:
        """Clone ``url`` unless the destination already holds a repository."""
        local_path = Path(destination) if destination else default_destination(url)
        local_path = local_path.expanduser().absolute()

        existing = inspect(local_path, self.reader)
        if existing is not None:
            raise AlreadyExists(local_path)

        if search_root is not None:
            found = self.find_clone(url, search_root)
            if found is not None:
                raise AlreadyExists(found, f"{url} is already cloned at {found}")

        cmd = ["clone"]
        if self.depth > 0:
            cmd.extend(["--depth", str(self.depth)])
        cmd.extend(extra_args)
        cmd.extend([url, str(local_path)])

        result = self._git(cmd, f"git clone of {url}")
        return ClonedRepo(url=url, local_path=local_path, output=result.stderr or "")

    def _push_url(self, target: UploadTarget, private: bool, description: str | None) -> str:
        if target.platform is None:
            return target.location

        client = self.hosting.get(target.platform)
        if client is None:
            raise ConfigError(
                f"No {target.platform} credentials configured; set a token in the "
                f"config file or the {target.platform.upper()}_TOKEN environment variable"
            )
        return client.ensure_repository(target.location, private=private, description=description)

    def upload(
        self,
        path: Path | str,
        target: str,
        *,
        private: bool = True,
        description: str | None = None,
    ) -> UploadedRepo:
        """Push the current branch of the repository at ``path`` to ``target``."""
        record = inspect(path, self.reader)
        if record is None:
            raise NotARepository(Path(path).expanduser().absolute())
        if record.is_corrupt:
            raise CorruptRepository(
                f"Cannot upload {record.path}, git metadata could not be read: "
                + "; ".join(record.errors)
            )
        if record.is_detached:
            raise PplacesError(f"HEAD is detached in {record.path}; check out a branch to upload")
        upload_target = UploadTarget.parse(target)

        push_url = self._push_url(upload_target, private, description)
        repo_arg = ["-C", str(record.path)]

        added_origin = False
        if record.remote_url is None:
            self._git([*repo_arg, "remote", "add", "origin", push_url], "git remote add")
            added_origin = True
            try:
                result = self._git(
                    [*repo_arg, "push", "--set-upstream", "origin", record.branch],
                    f"git push to {push_url}",
                )
            except ExternalOperationFailed:
                # Leave the repository as it was so a retry sets the upstream
                self._git([*repo_arg, "remote", "remove", "origin"], "git remote remove")
                raise
        else:
            result = self._git([*repo_arg, "push", push_url, record.branch], f"git push to {push_url}")

        return UploadedRepo(
            local_path=record.path,
            push_url=push_url,
            branch=record.branch,
            added_origin=added_origin,
            output=result.stderr or "",
        )
