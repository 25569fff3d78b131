"""Per-rule file scoping: inclusion patterns and layered exclusions."""
from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass

from rulekit.globs import matches_any, pattern_covers
from rulekit.rules.base import RuleDescriptor
from rulekit.rules.registry import RuleRegistry
from rulekit.types import UnknownRuleError


@dataclass(frozen=True, slots=True)
class ScopeExclusion:
    """Paths a single rule must not evaluate."""

    rule_identity: str
    excluded_paths: tuple[str, ...]


def exclusions_from_mapping(
    mapping: Mapping[str, Iterable[str]],
) -> list[ScopeExclusion]:
    return [
        ScopeExclusion(rule_identity=identity, excluded_paths=tuple(paths))
        for identity, paths in mapping.items()
    ]


class ScopeFilter:
    """Decides whether a rule evaluates a given file.

    Resolution order for ``is_active``: a path matching any exclusion of the
    rule is inactive; otherwise it is active if it matches the rule's
    ``applies_to``; otherwise inactive. Exclusions always win, whatever the
    order they were declared in.
    """

    def __init__(
        self,
        registry: RuleRegistry,
        exclusions: Iterable[ScopeExclusion] = (),
    ) -> None:
        self._registry: RuleRegistry = registry
        self._excluded: dict[str, tuple[str, ...]] = {}
        for exclusion in exclusions:
            self.add(exclusion)

    def add(self, exclusion: ScopeExclusion) -> None:
        if exclusion.rule_identity not in self._registry:
            raise UnknownRuleError(exclusion.rule_identity)
        existing: tuple[str, ...] = self._excluded.get(exclusion.rule_identity, ())
        self._excluded[exclusion.rule_identity] = existing + tuple(
            p for p in exclusion.excluded_paths if p not in existing
        )

    def exclusions_for(self, rule_identity: str) -> tuple[str, ...]:
        return self._excluded.get(rule_identity, ())

    def is_active(self, rule_identity: str, file_path: str) -> bool:
        descriptor: RuleDescriptor | None = self._registry.get(rule_identity)
        if descriptor is None:
            raise UnknownRuleError(rule_identity)

        if matches_any(path=file_path, patterns=self.exclusions_for(rule_identity)):
            return False
        return matches_any(path=file_path, patterns=descriptor.applies_to)

    def is_dead(self, rule_identity: str) -> bool:
        """True if the rule's exclusions cover its whole scope."""
        descriptor: RuleDescriptor | None = self._registry.get(rule_identity)
        if descriptor is None:
            raise UnknownRuleError(rule_identity)
        excluded: tuple[str, ...] = self.exclusions_for(rule_identity)
        if not excluded:
            return False
        return all(
            any(pattern_covers(outer=ex, inner=inc) for ex in excluded)
            for inc in descriptor.applies_to
        )

    def dead_rules(self) -> tuple[str, ...]:
        """Identities of rules that can never run, in registration order."""
        return tuple(d.identity for d in self._registry.all() if self.is_dead(d.identity))
