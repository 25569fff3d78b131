"""AST parsing collaborator for rulekit rules."""
from __future__ import annotations

import ast
from dataclasses import dataclass
from pathlib import Path

from rulekit.scanner import SourceFile


@dataclass(frozen=True, slots=True)
class SyntaxErrorInfo:
    """Syntax error details. Line/column are 1-based."""

    line: int
    column: int
    message: str
    source_line: str | None


@dataclass(frozen=True, slots=True)
class ParsedFile:
    """Parsed representation of a source file handed to rule checks."""

    path: Path
    relative: str
    tree: ast.Module | None
    source: str
    source_lines: tuple[str, ...]
    syntax_error: SyntaxErrorInfo | None

    def line_at(self, line: int) -> str | None:
        """Return the 1-based source line, or None when out of range."""
        if 1 <= line <= len(self.source_lines):
            return self.source_lines[line - 1]
        return None


def _unreadable(*, source_file: SourceFile, message: str) -> ParsedFile:
    return ParsedFile(
        path=source_file.path,
        relative=source_file.relative,
        tree=None,
        source="",
        source_lines=(),
        syntax_error=SyntaxErrorInfo(
            line=1,
            column=1,
            message=message,
            source_line=None,
        ),
    )


def parse_file(source_file: SourceFile) -> ParsedFile:
    """Parse a Python file, returning its AST or the syntax error."""
    try:
        source: str = source_file.path.read_text(encoding="utf-8")
    except UnicodeDecodeError as e:
        return _unreadable(source_file=source_file, message=f"Encoding error: {e}")
    except OSError as e:
        return _unreadable(source_file=source_file, message=f"Cannot read file: {e}")

    source_lines: tuple[str, ...] = tuple(source.splitlines())

    try:
        tree: ast.Module = ast.parse(source, filename=str(source_file.path))
    except SyntaxError as e:
        line: int = e.lineno if e.lineno is not None else 1
        column: int = max(1, e.offset if e.offset is not None else 1)

        source_line: str | None = None
        if 1 <= line <= len(source_lines):
            source_line = source_lines[line - 1]

        return ParsedFile(
            path=source_file.path,
            relative=source_file.relative,
            tree=None,
            source=source,
            source_lines=source_lines,
            syntax_error=SyntaxErrorInfo(
                line=line,
                column=column,
                message=e.msg or "Syntax error",
                source_line=source_line,
            ),
        )

    return ParsedFile(
        path=source_file.path,
        relative=source_file.relative,
        tree=tree,
        source=source,
        source_lines=source_lines,
        syntax_error=None,
    )
