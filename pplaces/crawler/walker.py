"""Filesystem traversal that stops at repository roots."""

import logging
import os
import re
from pathlib import Path
from typing import Callable, Iterator

from ..errors import PathNotFound
from .inspector import GIT_DIR, is_repository_root
from .models import ScanWarning

logger = logging.getLogger(__name__)

WarningCallback = Callable[[ScanWarning], None]


def resolve_root(root: Path | str) -> Path:
    """Return the absolute scan root, raising PathNotFound if unusable."""
    path = Path(root).expanduser().resolve()
    if not path.exists():
        raise PathNotFound(f"Path does not exist: {path}")
    if not path.is_dir():
        raise PathNotFound(f"Not a directory: {path}")
    return path


def walk(
    root: Path | str,
    *,
    exclude_patterns: list[str] | None = None,
    skip_hidden: bool = False,
    on_warning: WarningCallback | None = None,
) -> Iterator[Path]:
    """Yield every repository root beneath ``root``, depth first.

    Children are visited in name order. A repository root is yielded and never
    descended into. Symbolic links are not followed, and each directory is
    entered at most once (by device and inode). Unreadable directories are
    reported through ``on_warning`` and skipped.
    """
    start = resolve_root(root)
    compiled = [re.compile(p) for p in (exclude_patterns or [])]
    visited: set[tuple[int, int]] = set()

    def warn(path: Path, kind: str, exc: OSError) -> None:
        logger.warning("Skipping %s: %s", path, exc)
        if on_warning is not None:
            on_warning(ScanWarning(path=path, kind=kind, message=str(exc)))

    stack = [start]
    while stack:
        current = stack.pop()

        try:
            st = current.stat()
        except PermissionError as e:
            warn(current, "permission_denied", e)
            continue
        except OSError as e:
            warn(current, "unreadable", e)
            continue

        key = (st.st_dev, st.st_ino)
        if key in visited:
            continue
        visited.add(key)

        if is_repository_root(current):
            yield current
            continue

        try:
            with os.scandir(current) as it:
                entries = sorted(it, key=lambda e: e.name)
        except PermissionError as e:
            warn(current, "permission_denied", e)
            continue
        except OSError as e:
            warn(current, "unreadable", e)
            continue

        children: list[Path] = []
        for entry in entries:
            if entry.name == GIT_DIR:
                continue
            if skip_hidden and entry.name.startswith("."):
                continue
            if any(p.search(entry.name) for p in compiled):
                continue
            try:
                if not entry.is_dir(follow_symlinks=False):
                    continue
            except OSError:
                continue
            children.append(Path(entry.path))

        # Reversed so the stack pops children in name order
        stack.extend(reversed(children))
