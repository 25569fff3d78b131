"""Source tree discovery for rulekit using glob patterns."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path

from rulekit.globs import matches_any
from rulekit.types import RulekitConfig

logger: logging.Logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True, order=True)
class SourceFile:
    """A file selected for checking.

    ``relative`` is the POSIX path relative to the project root; it is what
    scope patterns are matched against and what reports show. Ordering is by
    ``relative`` first.
    """

    relative: str
    path: Path


def project_root(*, config: RulekitConfig) -> Path:
    """Directory that relative paths are computed from.

    This is the directory holding the config file, or the current working
    directory when running on defaults.
    """
    if config.config_path is not None:
        return config.config_path.resolve().parent
    return Path.cwd().resolve()


def _relative_to(*, path: Path, base: Path) -> str:
    try:
        rel_path: Path = path.relative_to(base)
    except ValueError:
        rel_path = path
    return rel_path.as_posix()


def _collect_python_files(*, path: Path) -> list[Path]:
    """Recursively collect all .py files under a path."""
    files: list[Path] = []
    if path.is_file():
        if path.suffix == ".py":
            files.append(path)
    elif path.is_dir():
        for child in sorted(path.iterdir()):
            files.extend(_collect_python_files(path=child))
    return files


def _scan_root(*, root: Path) -> Path:
    # Files outside the project are reported relative to their own argument.
    return root.parent if root.is_file() else root


def scan_files(
    *,
    paths: tuple[Path, ...],
    config: RulekitConfig,
    root: Path | None = None,
) -> list[SourceFile]:
    """
    Find Python files matching include/exclude patterns.

    Args:
        paths: Root paths to scan (files or directories).
        config: rulekit configuration with include/exclude patterns.
        root: Project root for relative paths. Defaults to
            ``project_root(config=config)``.

    Returns:
        Source files in lexicographic order of their relative path.
    """
    project: Path = root.resolve() if root is not None else project_root(config=config)
    selected: dict[Path, SourceFile] = {}

    for input_path in paths:
        resolved_root: Path = input_path.resolve()
        fallback: Path = _scan_root(root=resolved_root)

        for file_path in _collect_python_files(path=resolved_root):
            if file_path in selected:
                continue
            base: Path = project if file_path.is_relative_to(project) else fallback
            rel: str = _relative_to(path=file_path, base=base)

            # Exclusions take priority
            if matches_any(path=rel, patterns=config.exclude):
                logger.debug("Excluded %s", rel)
                continue

            if matches_any(path=rel, patterns=config.include):
                selected[file_path] = SourceFile(relative=rel, path=file_path)

    return sorted(selected.values())
