from __future__ import annotations

import os
from pathlib import Path
from typing import Iterable, Optional

import pathspec

from dtsnarrow.logger import logger
from dtsnarrow.models import SourceUnit


def build_spec(patterns: Iterable[str]) -> pathspec.PathSpec:
    return pathspec.PathSpec.from_lines("gitwildmatch", list(patterns))


def find_source_files(
    root: Path,
    entrypoints: Iterable[str],
    exclude: Optional[Iterable[str]] = None,
) -> list[str]:
    """Return sorted root-relative POSIX paths of files selected by *entrypoints*.

    The directory walk is iterative and prunes excluded directories before
    descending into them.
    """
    root = root.resolve()
    include_spec = build_spec(entrypoints)
    exclude_spec = build_spec(exclude or [])

    found: list[str] = []
    stack: list[tuple[Path, str]] = [(root, "")]
    while stack:
        abs_dir, rel_dir = stack.pop()
        try:
            with os.scandir(abs_dir) as it:
                entries = list(it)
        except OSError as exc:
            logger.warning("Unable to read directory", path=str(abs_dir), exc=exc)
            continue

        for entry in entries:
            rel_path = f"{rel_dir}/{entry.name}" if rel_dir else entry.name
            try:
                is_dir = entry.is_dir(follow_symlinks=False)
                is_file = entry.is_file()
            except OSError:
                continue
            if is_dir:
                if exclude_spec.match_file(rel_path + "/"):
                    continue
                stack.append((Path(entry.path), rel_path))
            elif is_file:
                if exclude_spec.match_file(rel_path):
                    continue
                if include_spec.match_file(rel_path):
                    found.append(rel_path)

    found.sort()
    return found


def collect_sources(
    root: Path,
    entrypoints: Iterable[str],
    exclude: Optional[Iterable[str]] = None,
) -> list[SourceUnit]:
    """Read every selected file under *root* into a `SourceUnit`."""
    root = root.resolve()
    sources: list[SourceUnit] = []
    for rel_path in find_source_files(root, entrypoints, exclude):
        text = (root / rel_path).read_text(encoding="utf-8")
        sources.append(SourceUnit(text=text, file_path=rel_path))
    logger.debug("Collected source files", root=str(root), count=len(sources))
    return sources
