"""Rule listings for the rulekit rules command."""
from __future__ import annotations

from rulekit.pipeline import Pipeline, PipelineRule
from rulekit.rules.registry import ConfiguredRule, RuleRegistry
from rulekit.scope import ScopeFilter


def _scope_text(*, configured: ConfiguredRule, scope: ScopeFilter) -> str:
    applies: str = (
        "all" if configured.descriptor.applies_to_all
        else ", ".join(configured.descriptor.applies_to)
    )
    excluded: tuple[str, ...] = scope.exclusions_for(configured.identity)
    if excluded:
        return f"{applies} (except {', '.join(excluded)})"
    return applies


def format_rule_table(
    *,
    registry: RuleRegistry,
    pipeline: Pipeline,
    scope: ScopeFilter,
) -> str:
    """Format all rules in evaluation order; disabled rules are listed last."""
    lines: list[str] = [
        f"{'#':>3} {'RULE':<28} {'GROUP':<18} {'SEVERITY':<9} SCOPE",
        "-" * 76,
    ]
    for item in pipeline.rules:
        lines.append(
            f"{item.index + 1:>3} {item.identity:<28} {item.group:<18} "
            f"{item.rule.severity.value:<9} "
            f"{_scope_text(configured=item.rule, scope=scope)}"
        )
    for configured in registry.entries():
        if configured.enabled:
            continue
        lines.append(
            f"{'-':>3} {configured.identity:<28} {configured.descriptor.group:<18} "
            f"{configured.severity.value:<9} "
            f"{_scope_text(configured=configured, scope=scope)}"
        )
    if len(lines) == 2:
        lines.append("(no rules registered)")
    return "\n".join(lines)


def format_rule_detail(
    *,
    configured: ConfiguredRule,
    pipeline: Pipeline,
    scope: ScopeFilter,
) -> str:
    """Format a single rule's declaration and effective settings."""
    position: PipelineRule | None = next(
        (r for r in pipeline.rules if r.identity == configured.identity), None,
    )
    order: str = (
        f"{position.index + 1} of {len(pipeline)}" if position is not None
        else "not evaluated (off)"
    )
    descriptor = configured.descriptor
    lines: list[str] = [
        f"{descriptor.identity}",
        f"Group: {descriptor.group} | Severity: {configured.severity.value}"
        f" (default {descriptor.default_severity.value}) | Order: {order}",
        "",
    ]
    if descriptor.description:
        lines.extend(f"  {line}" for line in descriptor.description.splitlines())
        lines.append("")

    lines.append(f"  Scope: {_scope_text(configured=configured, scope=scope)}")
    if configured.config:
        lines.append("  Options:")
        for key in sorted(configured.config):
            lines.append(f"    {key} = {configured.config[key]!r}")
    if scope.is_dead(descriptor.identity):
        lines.append("  Warning: excluded from its entire scope")

    lines.extend([
        "",
        f"  Suppress: # rulekit: ignore[{descriptor.identity}] because: <reason>",
    ])
    return "\n".join(lines)
