"""Lint wiring for rulekit: config -> registry -> pipeline -> orchestrator."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path

from rulekit.config import apply_settings
from rulekit.constants import OutputFormat
from rulekit.diagnostics import RunResult
from rulekit.formatters import Formatter, format_summary, get_formatter
from rulekit.orchestrator import Orchestrator
from rulekit.pipeline import GroupOrder, Pipeline, build_pipeline
from rulekit.rules.plugins import RulePackItem, load_entry_point_rules, load_rule_modules
from rulekit.rules.registry import RuleRegistry, registry_from_entries
from rulekit.scanner import SourceFile, scan_files
from rulekit.scope import ScopeExclusion, ScopeFilter, exclusions_from_mapping
from rulekit.types import RulekitConfig

logger: logging.Logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class LintSession:
    """Everything set up before the first file is checked."""

    registry: RuleRegistry
    scope: ScopeFilter
    pipeline: Pipeline


@dataclass(frozen=True, slots=True)
class LintResult:
    run: RunResult
    warnings: tuple[str, ...]

    @property
    def files_checked(self) -> int:
        return self.run.files_checked

    @property
    def exit_code(self) -> int:
        return self.run.exit_code


def load_rules(*, config: RulekitConfig) -> list[RulePackItem]:
    """Rules from configured plugin modules, then from installed entry points."""
    rules: list[RulePackItem] = load_rule_modules(config.plugins)
    if config.entry_points:
        rules.extend(load_entry_point_rules())
    return rules


def build_session(
    *,
    config: RulekitConfig,
    rules: list[RulePackItem] | None = None,
) -> LintSession:
    """
    Build the registry, scope filter and pipeline for one invocation.

    Args:
        config: rulekit configuration.
        rules: Declarative rule list. Defaults to the configured rule packs.

    Raises:
        ConfigError: A plugin cannot be loaded or a setting is invalid.
        DuplicateIdentityError: Two rules share an identity.
        CyclicPrecedenceError: The group ordering has a cycle.
    """
    if rules is None:
        rules = load_rules(config=config)

    registry: RuleRegistry
    declared: dict[str, tuple[str, ...]]
    registry, declared = registry_from_entries(rules)
    exclusions: list[ScopeExclusion] = exclusions_from_mapping(declared)
    exclusions.extend(apply_settings(registry, config))

    scope: ScopeFilter = ScopeFilter(registry, exclusions)
    pipeline: Pipeline = build_pipeline(
        registry,
        group_order=GroupOrder(config.groups, config.precedence),
        scope=scope,
    )
    logger.info("Loaded %d rules, %d enabled", len(registry), len(pipeline))
    return LintSession(registry=registry, scope=scope, pipeline=pipeline)


def lint_paths(
    *,
    paths: tuple[Path, ...],
    config: RulekitConfig,
    rules: list[RulePackItem] | None = None,
) -> LintResult:
    session: LintSession = build_session(config=config, rules=rules)

    files: list[SourceFile] = scan_files(paths=paths, config=config)
    logger.info("Found %d files", len(files))

    orchestrator: Orchestrator = Orchestrator(
        registry=session.registry,
        scope=session.scope,
        timeout_s=config.timeout_s,
        jobs=config.jobs,
        suppressions=config.suppressions,
    )
    run: RunResult = orchestrator.run(pipeline=session.pipeline, files=files)
    return LintResult(run=run, warnings=session.pipeline.warnings)


def format_results(*, result: LintResult, config: RulekitConfig) -> str:
    formatter: Formatter = get_formatter(output_format=config.output_format)
    output: str = formatter.format(
        result=result.run, config=config, warnings=result.warnings,
    )
    if config.output_format == OutputFormat.JSON:
        return output

    summary: str = format_summary(result=result.run)
    suffix: str = "s" if result.files_checked != 1 else ""
    file_count: str = f"Checked {result.files_checked} file{suffix}."

    parts: list[str] = []
    if output:
        parts.append(output)
    parts.append(summary)
    parts.append(file_count)

    return "\n".join(parts)
