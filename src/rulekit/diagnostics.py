"""Finding and run result data model for rulekit."""
from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass, field

from rulekit.constants import Severity


@dataclass(frozen=True, slots=True)
class SourceLocation:
    """Source code location. All values are 1-based."""

    line: int
    column: int
    end_line: int | None = None
    end_column: int | None = None


@dataclass(frozen=True, slots=True)
class Finding:
    """A single issue reported against a file.

    Rules may leave ``rule`` and ``severity`` at their defaults; the
    orchestrator stamps the rule identity, the configured severity and the
    rule's pipeline position before the finding reaches a RunResult.

    ``code`` is empty for findings a rule reports and holds one of rulekit's
    reserved codes (SYN001, RUN001, ...) for findings rulekit reports itself.
    """

    file: str
    location: SourceLocation
    message: str
    rule: str = ""
    severity: Severity = Severity.ERROR
    source_line: str | None = None
    rule_index: int = -1
    code: str = ""

    @property
    def label(self) -> str:
        """Display tag: the rule identity, the reserved code, or both."""
        if self.code and self.rule:
            return f"{self.code}:{self.rule}"
        return self.code or self.rule


@dataclass(frozen=True, slots=True)
class RunResult:
    """Findings of one orchestrator run, grouped by file then by rule order."""

    findings: tuple[Finding, ...] = ()
    files_checked: int = 0
    duration_s: float = field(default=0.0, compare=False)

    @property
    def has_errors(self) -> bool:
        """Return True if any finding has ERROR severity."""
        return any(f.severity == Severity.ERROR for f in self.findings)

    @property
    def error_count(self) -> int:
        """Count of ERROR severity findings."""
        return sum(1 for f in self.findings if f.severity == Severity.ERROR)

    @property
    def warning_count(self) -> int:
        """Count of WARN severity findings."""
        return sum(1 for f in self.findings if f.severity == Severity.WARN)

    @property
    def exit_code(self) -> int:
        return 1 if self.has_errors else 0

    def by_file(self) -> dict[str, list[Finding]]:
        """Group findings by file, preserving run order."""
        grouped: dict[str, list[Finding]] = {}
        for finding in self.findings:
            grouped.setdefault(finding.file, []).append(finding)
        return grouped

    def for_rule(self, identity: str) -> list[Finding]:
        return [f for f in self.findings if f.rule == identity]

    def __len__(self) -> int:
        return len(self.findings)

    def __iter__(self) -> Iterator[Finding]:
        return iter(self.findings)
