"""Output formatters for rulekit run results."""
from __future__ import annotations

import json
from typing import Protocol

import click

from rulekit.constants import ColorMode, OutputFormat, Severity
from rulekit.diagnostics import RunResult
from rulekit.types import RulekitConfig

_SEVERITY_COLORS: dict[Severity, str] = {
    Severity.ERROR: "red",
    Severity.WARN: "yellow",
}


class Formatter(Protocol):
    def format(
        self,
        *,
        result: RunResult,
        config: RulekitConfig,
        warnings: tuple[str, ...] = (),
    ) -> str: ...


class TextFormatter:
    def format(
        self,
        *,
        result: RunResult,
        config: RulekitConfig,
        warnings: tuple[str, ...] = (),
    ) -> str:
        lines: list[str] = []
        color: bool = config.color == ColorMode.ALWAYS

        for finding in result:
            severity_str: str = finding.severity.value.upper()
            if color:
                severity_str = click.style(
                    severity_str, fg=_SEVERITY_COLORS.get(finding.severity), bold=True,
                )
            line: str = (
                f"{finding.file}:{finding.location.line}:{finding.location.column}: "
                f"{severity_str} [{finding.label}] {finding.message}"
            )
            lines.append(line)

            if config.show_source and finding.source_line is not None:
                lines.append(f"    {finding.source_line}")
                caret_pos: int = max(0, finding.location.column - 1)
                lines.append(f"    {' ' * caret_pos}^")
                lines.append("")

        lines.extend(f"Warning: {w}" for w in warnings)
        return "\n".join(lines)


class JsonFormatter:
    def format(
        self,
        *,
        result: RunResult,
        config: RulekitConfig,
        warnings: tuple[str, ...] = (),
    ) -> str:
        items: list[dict[str, object]] = []

        for finding in result:
            item: dict[str, object] = {
                "file": finding.file,
                "line": finding.location.line,
                "column": finding.location.column,
                "end_line": finding.location.end_line,
                "end_column": finding.location.end_column,
                "rule": finding.rule,
                "code": finding.code or None,
                "severity": finding.severity.value,
                "message": finding.message,
            }
            if config.show_source:
                item["source_line"] = finding.source_line
            items.append(item)

        payload: dict[str, object] = {
            "findings": items,
            "warnings": list(warnings),
            "summary": {
                "files_checked": result.files_checked,
                "errors": result.error_count,
                "warnings": result.warning_count,
            },
        }
        return json.dumps(payload, indent=2)


def get_formatter(*, output_format: OutputFormat) -> Formatter:
    if output_format == OutputFormat.JSON:
        return JsonFormatter()
    return TextFormatter()


def format_summary(*, result: RunResult) -> str:
    error_count: int = result.error_count
    warning_count: int = result.warning_count

    parts: list[str] = []
    if error_count > 0:
        parts.append(f"{error_count} error{'s' if error_count != 1 else ''}")
    if warning_count > 0:
        parts.append(f"{warning_count} warning{'s' if warning_count != 1 else ''}")

    if not parts:
        return "No issues found."

    return f"Found {', '.join(parts)}."
