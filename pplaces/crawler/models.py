"""Shared data models for repository discovery and lifecycle operations."""

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Iterator

DETACHED_HEAD = "(detached)"
UNKNOWN_BRANCH = "(unknown)"

SORT_KEYS = ("path", "recent")


@dataclass
class RepoRecord:
    """Metadata for one repository root."""
    path: Path
    last_commit_time: datetime | None = None
    is_dirty: bool = False
    remote_url: str | None = None
    branch: str = UNKNOWN_BRANCH
    remotes: dict[str, str] = field(default_factory=dict)
    errors: list[str] = field(default_factory=list)

    @property
    def name(self) -> str:
        return self.path.name

    @property
    def is_corrupt(self) -> bool:
        return bool(self.errors)

    @property
    def is_detached(self) -> bool:
        return self.branch == DETACHED_HEAD

    def age(self, now: datetime | None = None) -> timedelta | None:
        """Time elapsed since the last commit, or None without commits."""
        if self.last_commit_time is None:
            return None
        now = now or datetime.now(timezone.utc)
        return now - self.last_commit_time

    def to_dict(self) -> dict:
        """Convert the record to a JSON-friendly dictionary."""
        return {
            "path": str(self.path),
            "name": self.name,
            "branch": self.branch,
            "last_commit_time": (
                self.last_commit_time.isoformat() if self.last_commit_time else None
            ),
            "is_dirty": self.is_dirty,
            "remote_url": self.remote_url,
            "remotes": dict(self.remotes),
            "errors": list(self.errors),
        }


@dataclass
class ScanWarning:
    """A recoverable problem met while scanning."""
    path: Path
    kind: str  # permission_denied | unreadable | corrupt_repository
    message: str

    def to_dict(self) -> dict:
        return {"path": str(self.path), "kind": self.kind, "message": self.message}


@dataclass
class ScanResult:
    """Ordered, filtered repositories found by one scan."""
    root: Path
    records: list[RepoRecord] = field(default_factory=list)
    warnings: list[ScanWarning] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.records)

    def __iter__(self) -> Iterator[RepoRecord]:
        return iter(self.records)

    def paths(self) -> list[Path]:
        return [r.path for r in self.records]

    def to_dict(self) -> dict:
        return {
            "root": str(self.root),
            "repositories": [r.to_dict() for r in self.records],
            "warnings": [w.to_dict() for w in self.warnings],
        }


@dataclass
class FilterCriteria:
    """Options controlling which records are reported and how."""
    days_to_show: int | None = None
    full: bool = False
    sort: str = "path"

    def __post_init__(self):
        if self.days_to_show is not None and self.days_to_show < 0:
            raise ValueError(f"days_to_show must be non-negative, got {self.days_to_show}")
        if self.sort not in SORT_KEYS:
            raise ValueError(f"Unknown sort key: {self.sort}")


@dataclass
class ClonedRepo:
    """Information about a cloned repository."""
    url: str
    local_path: Path
    output: str = ""


@dataclass
class UploadedRepo:
    """Information about an uploaded repository."""
    local_path: Path
    push_url: str
    branch: str
    added_origin: bool = False
    output: str = ""
