"""Scan aggregation: walk, inspect, filter and sort."""

import logging
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timedelta, timezone
from pathlib import Path

from .inspector import GitMetadataReader, GitCommandReader, inspect
from .models import FilterCriteria, RepoRecord, ScanResult, ScanWarning
from .walker import resolve_root, walk

logger = logging.getLogger(__name__)


def filter_records(
    records: list[RepoRecord],
    days_to_show: int | None,
    now: datetime | None = None,
) -> list[RepoRecord]:
    """Keep records committed within ``days_to_show`` days of ``now``.

    Records without a commit have no age and never pass a day filter.
    """
    if days_to_show is None:
        return list(records)

    now = now or datetime.now(timezone.utc)
    window = timedelta(days=days_to_show)
    return [
        r for r in records
        if r.last_commit_time is not None and now - r.last_commit_time <= window
    ]


def sort_records(records: list[RepoRecord], sort: str = "path") -> list[RepoRecord]:
    """Order records deterministically.

    ``path`` compares path components, so ``a/b`` sorts before ``a-b``.
    ``recent`` puts the newest commit first and repositories without commits
    last, breaking ties by path.
    """
    by_path = sorted(records, key=lambda r: r.path.parts)
    if sort == "path":
        return by_path
    if sort == "recent":
        return sorted(
            by_path,
            key=lambda r: (
                r.last_commit_time is None,
                -r.last_commit_time.timestamp() if r.last_commit_time else 0.0,
            ),
        )
    raise ValueError(f"Unknown sort key: {sort}")


def aggregate(
    root: Path | str,
    criteria: FilterCriteria | None = None,
    *,
    reader: GitMetadataReader | None = None,
    workers: int = 1,
    exclude_patterns: list[str] | None = None,
    skip_hidden: bool = False,
    now: datetime | None = None,
) -> ScanResult:
    """Discover repositories under ``root`` and build a filtered, sorted report."""
    criteria = criteria or FilterCriteria()
    reader = reader or GitCommandReader()
    result = ScanResult(root=resolve_root(root))

    candidates = list(walk(
        result.root,
        exclude_patterns=exclude_patterns,
        skip_hidden=skip_hidden,
        on_warning=result.warnings.append,
    ))
    logger.info("Found %d candidate repositories under %s", len(candidates), result.root)

    if workers > 1 and len(candidates) > 1:
        with ThreadPoolExecutor(max_workers=workers) as executor:
            inspected = list(executor.map(lambda p: inspect(p, reader), candidates))
    else:
        inspected = [inspect(p, reader) for p in candidates]

    records: list[RepoRecord] = []
    for record in inspected:
        if record is None:
            continue
        records.append(record)
        for error in record.errors:
            result.warnings.append(ScanWarning(
                path=record.path,
                kind="corrupt_repository",
                message=error,
            ))

    records = filter_records(records, criteria.days_to_show, now=now)
    result.records = sort_records(records, criteria.sort)
    return result
