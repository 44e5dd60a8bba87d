"""Declaration Locator: source discovery and parallel per-file processing.

Walks the configured search directories with :func:`os.walk`, pruning
excluded directory names in place so that excluded subtrees are never
opened. Names are compared exactly, per path segment. Directories Go
tooling ignores (hidden, ``_``-prefixed, ``testdata``) are always pruned,
as are paths matched by the search root's ``.gitignore`` (via
:mod:`pathspec`).

The general-info entry file is located before scanning and always
belongs to the file set, even when it lives outside the search
directories.

:func:`process_in_parallel` runs one worker per file on a thread pool and
returns results in file order, so nothing downstream depends on which
worker finished first.
"""

from __future__ import annotations

import concurrent.futures
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Optional, Sequence, TypeVar

import pathspec

from swagdoc.exceptions import ConfigurationError
from swagdoc.models import GenerateConfig

logger = logging.getLogger(__name__)

T = TypeVar("T")

_ALWAYS_SKIP = {"testdata"}


@dataclass(frozen=True)
class SourceFile:
    """A Go file selected for scanning.

    Attributes:
        path: Filesystem path used for reading.
        display: Normalized POSIX path recorded in source locations and
            used for merge ordering.
    """

    path: Path
    display: str


@dataclass
class SourceSet:
    """The result of discovery: files in merge order plus the entry file."""

    files: list[SourceFile]
    general_info: SourceFile
    pruned: list[str] = field(default_factory=list)


def _display_path(path: str) -> str:
    return Path(os.path.normpath(path)).as_posix()


def _load_gitignore(root: Path) -> pathspec.PathSpec | None:
    """Load ``.gitignore`` from *root* if present."""
    gitignore = root / ".gitignore"
    if not gitignore.is_file():
        return None
    lines = gitignore.read_text(encoding="utf-8", errors="replace").splitlines()
    return pathspec.PathSpec.from_lines("gitignore", lines)


def normalize_exclude(entry: str) -> str:
    """``./vendor/`` and ``vendor`` both name the ``vendor`` directory.

    Raises:
        ConfigurationError: If the entry still contains a path separator,
            i.e. it is not a plain directory name.
    """
    name = entry.strip()
    while name.startswith("./"):
        name = name[2:]
    name = name.rstrip("/")
    if not name or "/" in name or "\\" in name or name in (".", ".."):
        raise ConfigurationError(
            f"Invalid exclude entry '{entry}': expected a directory name, not a path"
        )
    return name


def _is_always_skipped(name: str) -> bool:
    return name.startswith((".", "_")) or name in _ALWAYS_SKIP


def _walk_search_dir(
    root: Path,
    excluded: set[str],
    matched: set[str],
    pruned: list[str],
    respect_gitignore: bool,
) -> list[SourceFile]:
    gitignore_spec = _load_gitignore(root) if respect_gitignore else None
    files: list[SourceFile] = []

    for dirpath, dirnames, filenames in os.walk(str(root)):
        rel_dir = os.path.relpath(dirpath, str(root))
        kept: list[str] = []
        for name in sorted(dirnames):
            rel = os.path.join(rel_dir, name) if rel_dir != "." else name
            if name in excluded:
                matched.add(name)
                pruned.append(_display_path(os.path.join(dirpath, name)))
                continue
            if _is_always_skipped(name):
                continue
            if gitignore_spec and gitignore_spec.match_file(rel + "/"):
                continue
            kept.append(name)
        dirnames[:] = kept

        for fname in filenames:
            if not fname.endswith(".go") or fname.endswith("_test.go"):
                continue
            rel_path = os.path.join(rel_dir, fname) if rel_dir != "." else fname
            if gitignore_spec and gitignore_spec.match_file(rel_path):
                continue
            full = os.path.join(dirpath, fname)
            files.append(SourceFile(path=Path(full), display=_display_path(full)))
    return files


def find_general_info(config: GenerateConfig, candidates: Sequence[SourceFile] = ()) -> SourceFile:
    """Locate the general-info entry file.

    The configured path is tried relative to each search directory, then
    as given. A bare file name that is still not found is matched against
    *candidates* by base name, shallowest path first.

    Raises:
        ConfigurationError: If no file matches.
    """
    target = config.general_info
    for search_dir in config.search_dirs:
        joined = Path(search_dir) / target
        if joined.is_file():
            return SourceFile(path=joined, display=_display_path(str(joined)))
    direct = Path(target)
    if direct.is_file():
        return SourceFile(path=direct, display=_display_path(target))
    if "/" not in target:
        matches = [c for c in candidates if c.path.name == target]
        if matches:
            return min(matches, key=lambda c: (c.display.count("/"), c.display))
    raise ConfigurationError(
        f"General info file '{target}' not found in {', '.join(config.search_dirs)}"
    )


def discover_sources(config: GenerateConfig) -> SourceSet:
    """Collect the Go files to scan, in merge order.

    Args:
        config: Search directories, exclude names, gitignore policy and
            the general-info file name.

    Returns:
        The files sorted by display path, with the entry file included.

    Raises:
        ConfigurationError: If a search directory does not exist, an
            exclude entry is not a plain name or matches no directory, or
            the general-info file cannot be found.
    """
    excluded = {normalize_exclude(entry) for entry in config.exclude_dirs}
    matched: set[str] = set()
    pruned: list[str] = []
    by_display: dict[str, SourceFile] = {}

    for search_dir in config.search_dirs:
        root = Path(search_dir)
        if not root.is_dir():
            raise ConfigurationError(f"Search directory '{search_dir}' does not exist")
        for source in _walk_search_dir(root, excluded, matched, pruned, config.respect_gitignore):
            by_display.setdefault(source.display, source)

    unmatched = sorted(excluded - matched)
    if unmatched:
        raise ConfigurationError(
            f"Exclude entr{'y' if len(unmatched) == 1 else 'ies'} "
            f"{', '.join(repr(n) for n in unmatched)} match no directory under "
            f"{', '.join(config.search_dirs)}"
        )

    files = sorted(by_display.values(), key=lambda s: s.display)
    entry = find_general_info(config, files)
    if entry.display not in by_display:
        files = sorted([*files, entry], key=lambda s: s.display)

    for path in pruned:
        logger.debug("pruned excluded directory %s", path)
    logger.debug("discovered %d Go files, entry file %s", len(files), entry.display)
    return SourceSet(files=files, general_info=entry, pruned=pruned)


def process_in_parallel(
    items: Sequence[SourceFile],
    worker: Callable[[SourceFile], T],
    workers: int = 1,
) -> list[T]:
    """Apply *worker* to every item on a thread pool.

    Results come back in the order of *items*. If several workers raise,
    the exception of the earliest item is re-raised once all have
    finished, so the reported failure does not depend on scheduling.
    """
    if workers <= 1 or len(items) <= 1:
        return [worker(item) for item in items]

    results: dict[int, T] = {}
    failures: dict[int, BaseException] = {}
    logger.debug("processing %d files on %d workers", len(items), workers)
    with concurrent.futures.ThreadPoolExecutor(max_workers=workers) as executor:
        futures = {executor.submit(worker, item): index for index, item in enumerate(items)}
        for future in concurrent.futures.as_completed(futures):
            index = futures[future]
            exc: Optional[BaseException] = future.exception()
            if exc is not None:
                failures[index] = exc
            else:
                results[index] = future.result()

    if failures:
        raise failures[min(failures)]
    return [results[index] for index in range(len(items))]
