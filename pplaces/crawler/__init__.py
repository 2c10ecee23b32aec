"""Repository discovery, inspection and lifecycle operations."""

from .models import FilterCriteria, RepoRecord, ScanResult, ScanWarning
from .inspector import GitCommandReader, GitMetadataReader, inspect, is_repository_root
from .walker import walk
from .scanner import aggregate
from .repo_manager import RepoManager

__all__ = [
    "FilterCriteria",
    "RepoRecord",
    "ScanResult",
    "ScanWarning",
    "GitCommandReader",
    "GitMetadataReader",
    "inspect",
    "is_repository_root",
    "walk",
    "aggregate",
    "RepoManager",
]
