"""Orchestrator: one evaluation pass of a pipeline over a source tree."""
from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable, Sequence
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import replace
from typing import Any

from rulekit.constants import (
    DEFAULT_TIMEOUT_S,
    RULE_CRASHED_CODE,
    RULE_TIMED_OUT_CODE,
    SYNTAX_ERROR_CODE,
    Severity,
)
from rulekit.diagnostics import Finding, RunResult, SourceLocation
from rulekit.parser import ParsedFile, SyntaxErrorInfo, parse_file
from rulekit.pipeline import Pipeline, PipelineRule
from rulekit.rules.registry import RuleRegistry
from rulekit.scanner import SourceFile
from rulekit.scope import ScopeFilter
from rulekit.suppressions import apply_suppressions
from rulekit.types import SuppressionPolicy

logger: logging.Logger = logging.getLogger(__name__)

ParseFunction = Callable[[SourceFile], ParsedFile]


class RuleTimeoutError(Exception):
    """A rule check ran past its time bound."""


def call_with_timeout(func: Callable[[], Any], *, timeout_s: float | None) -> Any:
    """Run ``func`` and return its result, giving up after ``timeout_s``.

    The call runs on a fresh daemon thread so an abandoned check cannot keep
    the process alive; a thread that timed out is never reused. That costs
    one thread start per (file, rule) call, so ``timeout_s=None`` runs
    ``func`` inline on the calling thread instead. Exceptions raised by
    ``func``, including SystemExit, are re-raised here.
    """
    if timeout_s is None:
        return func()

    outcome: dict[str, Any] = {}

    def target() -> None:
        try:
            outcome["value"] = func()
        except BaseException as e:  # re-raised in the calling thread
            outcome["error"] = e

    worker: threading.Thread = threading.Thread(
        target=target, name="rulekit-check", daemon=True,
    )
    worker.start()
    worker.join(timeout_s)
    if worker.is_alive():
        raise RuleTimeoutError(f"exceeded {timeout_s:g}s")
    if "error" in outcome:
        raise outcome["error"]
    return outcome.get("value")


def _syntax_error_to_finding(*, parsed: ParsedFile) -> Finding:
    err: SyntaxErrorInfo | None = parsed.syntax_error
    if err is None:
        raise ValueError("parsed file must have a syntax_error")
    return Finding(
        file=parsed.relative,
        location=SourceLocation(line=err.line, column=err.column),
        message=err.message,
        severity=Severity.ERROR,
        source_line=err.source_line,
        code=SYNTAX_ERROR_CODE,
    )


def _rule_failure(
    *,
    item: PipelineRule,
    parsed: ParsedFile,
    code: str,
    message: str,
) -> Finding:
    return Finding(
        file=parsed.relative,
        location=SourceLocation(line=1, column=1),
        message=message,
        rule=item.identity,
        severity=Severity.ERROR,
        rule_index=item.index,
        code=code,
    )


class Orchestrator:
    """Drives one evaluation pass.

    The registry is sealed on construction; the orchestrator only reads it.
    A rule that raises or runs past ``timeout_s`` is reported as a RUN001 or
    RUN002 finding for that file and the pass carries on with the next rule.
    """

    def __init__(
        self,
        *,
        registry: RuleRegistry,
        scope: ScopeFilter,
        parse: ParseFunction = parse_file,
        timeout_s: float | None = DEFAULT_TIMEOUT_S,
        jobs: int = 1,
        suppressions: SuppressionPolicy | None = None,
    ) -> None:
        if jobs < 1:
            raise ValueError(f"jobs must be at least 1, got {jobs}")
        registry.seal()
        self._registry: RuleRegistry = registry
        self._scope: ScopeFilter = scope
        self._parse: ParseFunction = parse
        self._timeout_s: float | None = timeout_s
        self._jobs: int = jobs
        self._suppressions: SuppressionPolicy = suppressions or SuppressionPolicy()

    @property
    def registry(self) -> RuleRegistry:
        return self._registry

    def run(self, *, pipeline: Pipeline, files: Sequence[SourceFile]) -> RunResult:
        """Evaluate every active pipeline rule against every file."""
        start: float = time.perf_counter()
        ordered: list[SourceFile] = sorted(set(files))

        per_file: dict[SourceFile, list[Finding]] = {}
        if self._jobs > 1 and len(ordered) > 1:
            with ThreadPoolExecutor(max_workers=self._jobs) as executor:
                futures = {
                    executor.submit(self.evaluate_file, pipeline=pipeline, source_file=f): f
                    for f in ordered
                }
                for future in as_completed(futures):
                    per_file[futures[future]] = future.result()
        else:
            for source_file in ordered:
                per_file[source_file] = self.evaluate_file(
                    pipeline=pipeline, source_file=source_file,
                )

        # Reassemble in (file, rule index) order regardless of completion order.
        findings: list[Finding] = []
        for source_file in ordered:
            findings.extend(
                sorted(per_file[source_file], key=lambda f: f.rule_index)
            )

        elapsed: float = time.perf_counter() - start
        logger.info("Completed in %.2fs", elapsed)
        return RunResult(
            findings=tuple(findings),
            files_checked=len(ordered),
            duration_s=elapsed,
        )

    def evaluate_file(
        self,
        *,
        pipeline: Pipeline,
        source_file: SourceFile,
    ) -> list[Finding]:
        """Run the pipeline over one file."""
        logger.debug("Checking %s", source_file.relative)
        parsed: ParsedFile = self._parse(source_file)
        if parsed.syntax_error is not None:
            return [_syntax_error_to_finding(parsed=parsed)]

        findings: list[Finding] = []
        for item in pipeline.rules:
            if not self._scope.is_active(item.identity, parsed.relative):
                continue
            rule_findings: list[Finding] = self._invoke(item=item, parsed=parsed)
            logger.debug(
                "%s: %s produced %d diagnostics",
                parsed.relative,
                item.identity,
                len(rule_findings),
            )
            findings.extend(rule_findings)

        return apply_suppressions(
            findings=findings,
            parsed=parsed,
            policy=self._suppressions,
        )

    def _invoke(self, *, item: PipelineRule, parsed: ParsedFile) -> list[Finding]:
        check = item.rule.descriptor.check
        config = item.rule.config
        try:
            raw: Any = call_with_timeout(
                lambda: check(parsed, config),
                timeout_s=self._timeout_s,
            )
            findings: list[Finding] = self._stamp(item=item, parsed=parsed, raw=raw)
        except RuleTimeoutError as e:
            logger.warning("Rule %s timed out on %s", item.identity, parsed.relative)
            return [_rule_failure(
                item=item,
                parsed=parsed,
                code=RULE_TIMED_OUT_CODE,
                message=f"Rule '{item.identity}' timed out: {e}",
            )]
        except (Exception, SystemExit) as e:
            logger.warning("Rule %s crashed on %s: %s", item.identity, parsed.relative, e)
            logger.debug("Traceback for %s", item.identity, exc_info=e)
            return [_rule_failure(
                item=item,
                parsed=parsed,
                code=RULE_CRASHED_CODE,
                message=f"Rule '{item.identity}' crashed: {type(e).__name__}: {e}",
            )]
        return findings

    def _stamp(
        self,
        *,
        item: PipelineRule,
        parsed: ParsedFile,
        raw: Any,
    ) -> list[Finding]:
        if raw is None:
            return []
        if isinstance(raw, (str, bytes)) or not isinstance(raw, Sequence):
            raise TypeError(
                f"check returned {type(raw).__name__}, expected a sequence of Finding"
            )
        stamped: list[Finding] = []
        for finding in raw:
            if not isinstance(finding, Finding):
                raise TypeError(
                    f"check returned {type(finding).__name__}, expected Finding"
                )
            stamped.append(replace(
                finding,
                file=parsed.relative,
                rule=item.identity,
                severity=item.rule.severity,
                rule_index=item.index,
                code="",
                source_line=(
                    finding.source_line
                    if finding.source_line is not None
                    else parsed.line_at(finding.location.line)
                ),
            ))
        return stamped
