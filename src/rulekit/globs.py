"""Glob matching over POSIX relative paths with ``**`` support."""
from __future__ import annotations

from collections.abc import Iterable
from fnmatch import fnmatchcase


def matches_any(*, path: str, patterns: Iterable[str]) -> bool:
    """Check if a relative POSIX path matches any of the glob patterns."""
    return any(glob_match(path=path, pattern=pattern) for pattern in patterns)


def glob_match(*, path: str, pattern: str) -> bool:
    """Match a path against a glob pattern with ** support."""
    path = path.replace("\\", "/")
    if "**" in pattern:
        return _match_doublestar(path=path, pattern=pattern)
    return fnmatchcase(path, pattern)


def _match_doublestar(*, path: str, pattern: str) -> bool:
    """Match path against pattern containing **."""
    parts: list[str] = path.split("/")

    if pattern in ("**", "**/*"):
        return True

    # Pattern like "**/name/**" - check if name is a directory component
    if pattern.startswith("**/") and pattern.endswith("/**"):
        middle: str = pattern[3:-3]
        return any(fnmatchcase(part, middle) for part in parts[:-1])

    # Pattern like "**/name" - check if any suffix matches
    if pattern.startswith("**/"):
        suffix: str = pattern[3:]
        return any(
            fnmatchcase("/".join(parts[i:]), suffix) for i in range(len(parts))
        )

    # Pattern like "prefix/**/tail" - prefix must match, then tail at any depth
    if "/**/" in pattern:
        prefix: str
        tail: str
        prefix, tail = pattern.split("/**/", 1)
        prefix_depth: int = prefix.count("/") + 1
        if len(parts) <= prefix_depth:
            return False
        if not fnmatchcase("/".join(parts[:prefix_depth]), prefix):
            return False
        remainder_parts: list[str] = parts[prefix_depth:]
        return any(
            fnmatchcase("/".join(remainder_parts[i:]), tail)
            for i in range(len(remainder_parts))
        )

    # Pattern like "prefix/**" - anything under prefix
    if pattern.endswith("/**"):
        prefix = pattern[:-3]
        prefix_depth = prefix.count("/") + 1
        if len(parts) < prefix_depth:
            return False
        return fnmatchcase("/".join(parts[:prefix_depth]), prefix)

    return fnmatchcase(path, pattern)


def pattern_covers(*, outer: str, inner: str) -> bool:
    """Return True if every path matching ``inner`` also matches ``outer``.

    Conservative: a False answer means coverage could not be shown, not
    that some path escapes ``outer``.
    """
    if outer == inner or outer in ("**", "**/*"):
        return True
    # The inner pattern read as a literal path: "tests/**" covers
    # "tests/**/*.py", "tests/*" covers "tests/*.py".
    if "**" in inner and not outer.endswith("/**") and not outer.startswith("**/"):
        return False
    # "?" and "[...]" in outer would match a wildcard of inner as one character.
    if _has_single_char_wildcard(outer) and _has_wildcard(inner):
        return False
    return glob_match(path=inner, pattern=outer)


def _has_wildcard(pattern: str) -> bool:
    return any(ch in pattern for ch in "*?[")


def _has_single_char_wildcard(pattern: str) -> bool:
    return "?" in pattern or "[" in pattern
