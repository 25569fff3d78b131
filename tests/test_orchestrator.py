"""Tests for the orchestrator: ordering, scoping and failure isolation."""
from __future__ import annotations

import threading
from collections.abc import Mapping
from pathlib import Path
from typing import Any

import pytest

from rulekit.constants import (
    RULE_CRASHED_CODE,
    RULE_TIMED_OUT_CODE,
    SYNTAX_ERROR_CODE,
    Severity,
)
from rulekit.diagnostics import Finding, RunResult
from rulekit.orchestrator import Orchestrator, RuleTimeoutError, call_with_timeout
from rulekit.parser import ParsedFile
from rulekit.pipeline import Pipeline, build_pipeline
from rulekit.rules.base import RuleDescriptor
from rulekit.rules.registry import RuleRegistry
from rulekit.scanner import SourceFile, scan_files
from rulekit.scope import ScopeExclusion, ScopeFilter
from rulekit.types import RegistryFrozenError, RulekitConfig, SuppressionPolicy
from tests.helpers_rules import (
    check_crash,
    check_exit,
    check_no_print,
    check_slow,
    make_rule,
)


def _setup(
    *descriptors: RuleDescriptor,
    exclusions: tuple[ScopeExclusion, ...] = (),
    **orchestrator_kwargs: Any,
) -> tuple[Orchestrator, Pipeline]:
    registry: RuleRegistry = RuleRegistry()
    for descriptor in descriptors:
        registry.register(descriptor)
    scope: ScopeFilter = ScopeFilter(registry, exclusions)
    pipeline: Pipeline = build_pipeline(registry, scope=scope)
    orchestrator_kwargs.setdefault("timeout_s", None)
    orchestrator: Orchestrator = Orchestrator(
        registry=registry, scope=scope, **orchestrator_kwargs,
    )
    return orchestrator, pipeline


def _files(root: Path) -> list[SourceFile]:
    return scan_files(paths=(root,), config=RulekitConfig(), root=root)


class TestRunOrdering:
    def test_grouped_by_file_then_rule_order(self, write_tree) -> None:
        root: Path = write_tree({
            "b.py": "print(1)\n",
            "a.py": "x = 1\nprint(x)\n",
        })
        orchestrator, pipeline = _setup(
            make_rule("style-print", check=check_no_print, group="style"),
            make_rule("first", group="structural"),
        )
        result: RunResult = orchestrator.run(pipeline=pipeline, files=_files(root))

        assert [(f.file, f.rule) for f in result] == [
            ("a.py", "first"),
            ("a.py", "style-print"),
            ("b.py", "first"),
            ("b.py", "style-print"),
        ]
        assert result.files_checked == 2
        assert [f.rule_index for f in result] == [0, 1, 0, 1]

    def test_findings_are_stamped(self, write_tree) -> None:
        root: Path = write_tree({"a.py": "print(1)\n"})
        orchestrator, pipeline = _setup(
            make_rule("style-print", check=check_no_print, severity=Severity.WARN),
        )
        result: RunResult = orchestrator.run(pipeline=pipeline, files=_files(root))

        finding: Finding = result.findings[0]
        assert finding.rule == "style-print"
        assert finding.severity == Severity.WARN
        assert finding.source_line == "print(1)"
        assert finding.code == ""
        assert result.exit_code == 0

    def test_rule_receives_effective_config(self, write_tree) -> None:
        root: Path = write_tree({"a.py": "x = 1\n"})
        orchestrator, pipeline = _setup(
            make_rule("first", options={"message": "configured"}),
        )
        result: RunResult = orchestrator.run(pipeline=pipeline, files=_files(root))
        assert result.findings[0].message == "configured"

    def test_scope_exclusion_skips_rule(self, write_tree) -> None:
        root: Path = write_tree({
            "src/Foo.py": "x = 1\n",
            "tests/Foo.py": "x = 1\n",
        })
        orchestrator, pipeline = _setup(
            make_rule("A", group="structural"),
            make_rule("B", group="style"),
            exclusions=(ScopeExclusion(rule_identity="B", excluded_paths=("tests/*",)),),
        )
        result: RunResult = orchestrator.run(pipeline=pipeline, files=_files(root))
        assert [(f.file, f.rule) for f in result] == [
            ("src/Foo.py", "A"),
            ("src/Foo.py", "B"),
            ("tests/Foo.py", "A"),
        ]

    def test_registry_sealed_by_orchestrator(self) -> None:
        orchestrator, _ = _setup(make_rule("a"))
        assert orchestrator.registry.sealed is True
        with pytest.raises(RegistryFrozenError):
            orchestrator.registry.register(make_rule("b"))

    def test_invalid_jobs(self) -> None:
        with pytest.raises(ValueError, match="jobs"):
            _setup(make_rule("a"), jobs=0)


class TestFailureIsolation:
    def test_crash_does_not_hide_other_rules(self, write_tree) -> None:
        root: Path = write_tree({"src/X.py": "print('x')\n"})
        orchestrator, pipeline = _setup(
            make_rule("A", check=check_crash, group="structural"),
            make_rule("B", check=check_no_print, group="style"),
        )
        result: RunResult = orchestrator.run(pipeline=pipeline, files=_files(root))

        assert len(result) == 2
        crashed: Finding = result.findings[0]
        assert crashed.code == RULE_CRASHED_CODE
        assert crashed.rule == "A"
        assert crashed.file == "src/X.py"
        assert "RuntimeError: boom" in crashed.message
        assert crashed.severity == Severity.ERROR
        assert result.findings[1].rule == "B"
        assert result.exit_code == 1

    @pytest.mark.parametrize("timeout_s", [None, 5.0])
    def test_system_exit_does_not_abort_run(self, write_tree, timeout_s) -> None:
        root: Path = write_tree({"src/X.py": "print('x')\n"})
        orchestrator, pipeline = _setup(
            make_rule("A", check=check_exit, group="structural"),
            make_rule("B", check=check_no_print, group="style"),
            timeout_s=timeout_s,
        )
        result: RunResult = orchestrator.run(pipeline=pipeline, files=_files(root))

        assert [(f.rule, f.code) for f in result] == [("A", RULE_CRASHED_CODE), ("B", "")]
        assert "SystemExit: 0" in result.findings[0].message
        assert result.exit_code == 1

    def test_crash_on_every_file_is_reported_per_file(self, write_tree) -> None:
        root: Path = write_tree({"a.py": "", "b.py": ""})
        orchestrator, pipeline = _setup(make_rule("A", check=check_crash))
        result: RunResult = orchestrator.run(pipeline=pipeline, files=_files(root))
        assert [(f.file, f.code) for f in result] == [
            ("a.py", RULE_CRASHED_CODE),
            ("b.py", RULE_CRASHED_CODE),
        ]

    def test_bad_return_value_is_a_crash(self, write_tree) -> None:
        def check_bad(parsed: ParsedFile, config: Mapping[str, Any]) -> Any:
            return ["not a finding"]

        root: Path = write_tree({"a.py": ""})
        orchestrator, pipeline = _setup(make_rule("bad", check=check_bad))
        result: RunResult = orchestrator.run(pipeline=pipeline, files=_files(root))
        assert result.findings[0].code == RULE_CRASHED_CODE
        assert "TypeError" in result.findings[0].message

    def test_none_return_means_no_findings(self, write_tree) -> None:
        def check_none(parsed: ParsedFile, config: Mapping[str, Any]) -> Any:
            return None

        root: Path = write_tree({"a.py": ""})
        orchestrator, pipeline = _setup(make_rule("quiet", check=check_none))
        result: RunResult = orchestrator.run(pipeline=pipeline, files=_files(root))
        assert len(result) == 0

    def test_timeout_becomes_finding(self, write_tree) -> None:
        root: Path = write_tree({"a.py": "print(1)\n"})
        orchestrator, pipeline = _setup(
            make_rule("slow", check=check_slow, group="structural", options={"sleep": 2.0}),
            make_rule("B", check=check_no_print, group="style"),
            timeout_s=0.2,
        )
        result: RunResult = orchestrator.run(pipeline=pipeline, files=_files(root))

        assert [(f.rule, f.code) for f in result] == [
            ("slow", RULE_TIMED_OUT_CODE),
            ("B", ""),
        ]

    def test_syntax_error_skips_rules(self, write_tree) -> None:
        root: Path = write_tree({"bad.py": "def broken(\n", "good.py": "print(1)\n"})
        orchestrator, pipeline = _setup(make_rule("B", check=check_no_print))
        result: RunResult = orchestrator.run(pipeline=pipeline, files=_files(root))

        assert [(f.file, f.code or f.rule) for f in result] == [
            ("bad.py", SYNTAX_ERROR_CODE),
            ("good.py", "B"),
        ]


class TestDeterminism:
    def test_rerun_is_identical(self, write_tree) -> None:
        root: Path = write_tree({
            "a.py": "print(1)\nprint(2)\n",
            "pkg/b.py": "print(3)\n",
            "pkg/c.py": "def broken(\n",
        })
        orchestrator, pipeline = _setup(
            make_rule("print", check=check_no_print),
            make_rule("crash", check=check_crash, group="structural"),
        )
        files: list[SourceFile] = _files(root)
        first: RunResult = orchestrator.run(pipeline=pipeline, files=files)
        second: RunResult = orchestrator.run(pipeline=pipeline, files=files)
        assert first == second

    def test_parallel_matches_sequential(self, write_tree) -> None:
        root: Path = write_tree({
            f"mod_{i:02d}.py": "x = 1\n" + "print(x)\n" * (i % 3) for i in range(12)
        })
        descriptors: tuple[RuleDescriptor, ...] = (
            make_rule("print", check=check_no_print),
            make_rule("first", group="structural"),
        )
        sequential, pipeline = _setup(*descriptors, jobs=1)
        parallel, parallel_pipeline = _setup(*descriptors, jobs=4)

        expected: RunResult = sequential.run(pipeline=pipeline, files=_files(root))
        actual: RunResult = parallel.run(
            pipeline=parallel_pipeline, files=list(reversed(_files(root))),
        )
        assert actual == expected
        assert actual.files_checked == 12

    def test_files_sorted_lexicographically(self) -> None:
        files: list[SourceFile] = [
            SourceFile(relative="z.py", path=Path("/tmp/z.py")),
            SourceFile(relative="a.py", path=Path("/tmp/a.py")),
        ]

        def fake_parse(source_file: SourceFile) -> ParsedFile:
            return ParsedFile(
                path=source_file.path,
                relative=source_file.relative,
                tree=None,
                source="",
                source_lines=(),
                syntax_error=None,
            )

        orchestrator, pipeline = _setup(make_rule("first"), parse=fake_parse)
        result: RunResult = orchestrator.run(pipeline=pipeline, files=files)
        assert [f.file for f in result] == ["a.py", "z.py"]


class TestSuppressions:
    def test_line_pragma_suppresses_rule(self, write_tree) -> None:
        root: Path = write_tree({
            "a.py": "print(1)  # rulekit: ignore[print] because: demo\nprint(2)\n",
        })
        orchestrator, pipeline = _setup(make_rule("print", check=check_no_print))
        result: RunResult = orchestrator.run(pipeline=pipeline, files=_files(root))
        assert [f.location.line for f in result] == [2]

    def test_crash_findings_cannot_be_suppressed(self, write_tree) -> None:
        root: Path = write_tree({"a.py": "# rulekit: ignore-file[crash]\n"})
        orchestrator, pipeline = _setup(make_rule("crash", check=check_crash))
        result: RunResult = orchestrator.run(pipeline=pipeline, files=_files(root))
        assert [f.code for f in result] == [RULE_CRASHED_CODE]

    def test_reason_policy_reported(self, write_tree) -> None:
        root: Path = write_tree({"a.py": "print(1)  # rulekit: ignore[print]\n"})
        orchestrator, pipeline = _setup(
            make_rule("print", check=check_no_print),
            suppressions=SuppressionPolicy(require_reason=True),
        )
        result: RunResult = orchestrator.run(pipeline=pipeline, files=_files(root))
        assert [f.code for f in result] == ["SUP001"]


class TestCallWithTimeout:
    def test_returns_value(self) -> None:
        assert call_with_timeout(lambda: 42, timeout_s=1.0) == 42

    def test_no_timeout_runs_inline(self) -> None:
        assert call_with_timeout(lambda: "inline", timeout_s=None) == "inline"

    def test_thread_only_when_bounded(self) -> None:
        def thread_name() -> str:
            return threading.current_thread().name

        assert call_with_timeout(thread_name, timeout_s=None) == threading.current_thread().name
        assert call_with_timeout(thread_name, timeout_s=1.0) == "rulekit-check"

    def test_reraises_system_exit(self) -> None:
        with pytest.raises(SystemExit):
            call_with_timeout(lambda: check_exit(None, {}), timeout_s=1.0)  # type: ignore[arg-type]

    def test_reraises_errors(self) -> None:
        def fail() -> None:
            raise KeyError("missing")

        with pytest.raises(KeyError):
            call_with_timeout(fail, timeout_s=1.0)

    def test_raises_on_timeout(self) -> None:
        with pytest.raises(RuleTimeoutError):
            call_with_timeout(
                lambda: check_slow(None, {"sleep": 1.0}),  # type: ignore[arg-type]
                timeout_s=0.05,
            )
