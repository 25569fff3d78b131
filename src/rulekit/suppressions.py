"""Inline suppression pragmas for rule findings."""
from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Final

from rulekit.constants import RESERVED_CODES, SUPPRESSION_REASON_CODE, Severity
from rulekit.diagnostics import Finding, SourceLocation
from rulekit.parser import ParsedFile
from rulekit.types import SuppressionPolicy

_PRAGMA: Final[re.Pattern[str]] = re.compile(
    r"#\s*rulekit:\s*(?P<kind>ignore|ignore-file)\[(?P<rules>[^\]]+)\]"
    r"(?:\s+because:\s*(?P<reason>.+))?$"
)


@dataclass(frozen=True, slots=True)
class Suppression:
    line: int
    rules: frozenset[str]
    reason: str | None
    file_level: bool


def parse_suppressions(*, source_lines: tuple[str, ...]) -> list[Suppression]:
    found: list[Suppression] = []
    for idx, text in enumerate(source_lines):
        match: re.Match[str] | None = _PRAGMA.search(text)
        if match is None:
            continue
        reason: str | None = (match.group("reason") or "").strip() or None
        found.append(Suppression(
            line=idx + 1,
            rules=frozenset(r.strip() for r in match.group("rules").split(",") if r.strip()),
            reason=reason,
            file_level=match.group("kind") == "ignore-file",
        ))
    return found


def apply_suppressions(
    *,
    findings: list[Finding],
    parsed: ParsedFile,
    policy: SuppressionPolicy,
) -> list[Finding]:
    """Drop findings silenced by pragmas in the file.

    Findings with rulekit's own codes are always kept. When the policy
    requires reasons, pragmas without one are reported as SUP001 findings
    ahead of the kept findings.
    """
    pragmas: list[Suppression] = parse_suppressions(source_lines=parsed.source_lines)
    if not pragmas:
        return findings

    violations: list[Finding] = []
    if policy.require_reason:
        violations = [
            Finding(
                file=parsed.relative,
                location=SourceLocation(line=p.line, column=1),
                message="Suppression pragma requires a reason (use 'because: ...')",
                code=SUPPRESSION_REASON_CODE,
                severity=Severity.ERROR,
                source_line=parsed.line_at(p.line),
            )
            for p in pragmas
            if p.reason is None
        ]

    file_rules: frozenset[str] = frozenset().union(
        *(p.rules for p in pragmas if p.file_level)
    )
    line_rules: dict[int, frozenset[str]] = {}
    for p in pragmas:
        if not p.file_level:
            line_rules[p.line] = line_rules.get(p.line, frozenset()) | p.rules

    kept: list[Finding] = []
    for finding in findings:
        if finding.code not in RESERVED_CODES and (
            finding.rule in file_rules
            or finding.rule in line_rules.get(finding.location.line, frozenset())
        ):
            continue
        kept.append(finding)

    return violations + kept
