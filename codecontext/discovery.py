"""Source file enumeration with include / exclude glob patterns.

Patterns are matched against root-relative posix paths.  ``**/`` prefixes
also match at the root, and ``{a,b}`` alternatives are expanded, so the
patterns read the same way as the usual ``fast-glob`` style configuration.
"""

from __future__ import annotations

import logging
import os
import re
from fnmatch import fnmatchcase
from functools import lru_cache
from pathlib import Path
from typing import Iterable, Iterator, List, Optional, Sequence, Tuple

logger = logging.getLogger(__name__)

_BRACE_RE = re.compile(r"\{([^{}]*)\}")


@lru_cache(maxsize=256)
def expand_braces(pattern: str) -> Tuple[str, ...]:
    """Expand ``{a,b}`` alternatives: ``*.{ts,js}`` -> ``*.ts``, ``*.js``."""
    match = _BRACE_RE.search(pattern)
    if match is None:
        return (pattern,)
    head, tail = pattern[: match.start()], pattern[match.end():]
    expanded: List[str] = []
    for option in match.group(1).split(","):
        expanded.extend(expand_braces(head + option + tail))
    return tuple(expanded)


def glob_match(rel_path: str, pattern: str) -> bool:
    for variant in expand_braces(pattern):
        if fnmatchcase(rel_path, variant):
            return True
        stripped = variant
        while stripped.startswith("**/"):
            stripped = stripped[3:]
            if fnmatchcase(rel_path, stripped):
                return True
    return False


def matches_any(rel_path: str, patterns: Iterable[str]) -> bool:
    return any(glob_match(rel_path, p) for p in patterns)


def _dir_excluded(rel_dir: str, exclude: Sequence[str]) -> bool:
    # "node_modules/" matches "**/node_modules/**" because ** may be empty
    return matches_any(rel_dir + "/", exclude)


def iter_source_files(
    root: Path,
    include: Sequence[str],
    exclude: Optional[Sequence[str]] = None,
) -> Iterator[Path]:
    """Yield files under *root* matching *include* and not *exclude*, sorted."""
    exclude = list(exclude or [])
    root = Path(root)
    if not root.is_dir():
        logger.debug("Not a directory, nothing to scan: %s", root)
        return

    for dirpath, dirnames, filenames in os.walk(root, onerror=_log_walk_error):
        rel_dir = Path(dirpath).relative_to(root).as_posix()
        if rel_dir == ".":
            rel_dir = ""
        dirnames[:] = sorted(
            d for d in dirnames
            if not _dir_excluded(f"{rel_dir}/{d}" if rel_dir else d, exclude)
        )
        for filename in sorted(filenames):
            rel = f"{rel_dir}/{filename}" if rel_dir else filename
            if exclude and matches_any(rel, exclude):
                continue
            if matches_any(rel, include):
                yield Path(dirpath) / filename


def list_source_files(
    root: Path,
    include: Sequence[str],
    exclude: Optional[Sequence[str]] = None,
) -> List[Path]:
    return list(iter_source_files(root, include, exclude))


def relative_posix(path: Path, root: Path) -> str:
    """Root-relative posix path, or the absolute path when outside *root*."""
    try:
        return Path(path).resolve().relative_to(Path(root).resolve()).as_posix()
    except ValueError:
        return Path(path).as_posix()


def read_text(path: Path) -> Optional[str]:
    """Read a UTF-8 text file; return None when it is missing or unreadable."""
    try:
        return Path(path).read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        logger.debug("Skipping unreadable file %s: %s", path, exc)
        return None


def _log_walk_error(exc: OSError) -> None:
    logger.warning("Cannot scan %s: %s", getattr(exc, "filename", "?"), exc)
