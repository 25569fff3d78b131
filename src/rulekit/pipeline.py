"""Composite pipeline: fixes the order rules are evaluated in.

Rules are stable-sorted by the rank of their precedence group, ties broken
by registration order. Group ranks come from declared ``(before, after)``
pairs, which are checked for cycles before anything is sorted.
"""
from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass

from rulekit.constants import DEFAULT_GROUP_ORDER
from rulekit.rules.base import RuleDescriptor
from rulekit.rules.registry import ConfiguredRule, RuleRegistry
from rulekit.scope import ScopeFilter
from rulekit.types import CyclicPrecedenceError

logger: logging.Logger = logging.getLogger(__name__)

PrecedenceFunction = Callable[[RuleDescriptor], str]


def group_of(descriptor: RuleDescriptor) -> str:
    return descriptor.group


class GroupOrder:
    """Declared ordering constraints between precedence groups."""

    def __init__(
        self,
        sequence: Iterable[str] = (),
        pairs: Iterable[tuple[str, str]] = (),
    ) -> None:
        self._declared: list[str] = []
        self._edges: dict[str, list[str]] = {}
        previous: str | None = None
        for group in sequence:
            self._see(group)
            if previous is not None:
                self._add_edge(previous, group)
            previous = group
        for before, after in pairs:
            self._see(before)
            self._see(after)
            self._add_edge(before, after)

    @classmethod
    def default(cls) -> GroupOrder:
        return cls(DEFAULT_GROUP_ORDER)

    @property
    def groups(self) -> tuple[str, ...]:
        return tuple(self._declared)

    def _see(self, group: str) -> None:
        if group not in self._edges:
            self._edges[group] = []
            self._declared.append(group)

    def _add_edge(self, before: str, after: str) -> None:
        if after not in self._edges[before]:
            self._edges[before].append(after)

    def check(self) -> None:
        """Raise CyclicPrecedenceError if the declared pairs contain a cycle."""
        # 0 = unvisited, 1 = on stack, 2 = done
        state: dict[str, int] = dict.fromkeys(self._declared, 0)
        stack: list[str] = []

        def visit(group: str) -> None:
            state[group] = 1
            stack.append(group)
            for nxt in self._edges[group]:
                if state[nxt] == 1:
                    start: int = stack.index(nxt)
                    raise CyclicPrecedenceError((*stack[start:], nxt))
                if state[nxt] == 0:
                    visit(nxt)
            stack.pop()
            state[group] = 2

        for group in self._declared:
            if state[group] == 0:
                visit(group)

    def rank(self, extra: Iterable[str] = ()) -> dict[str, int]:
        """Total order over declared groups plus any extra ones.

        Topological order with ties broken by declaration order; groups that
        were never declared come last, in the order they are first seen.
        """
        self.check()
        position: dict[str, int] = {g: i for i, g in enumerate(self._declared)}
        indegree: dict[str, int] = dict.fromkeys(self._declared, 0)
        for targets in self._edges.values():
            for target in targets:
                indegree[target] += 1

        ready: list[str] = [g for g in self._declared if indegree[g] == 0]
        ordered: list[str] = []
        while ready:
            ready.sort(key=position.__getitem__)
            group: str = ready.pop(0)
            ordered.append(group)
            for target in self._edges[group]:
                indegree[target] -= 1
                if indegree[target] == 0:
                    ready.append(target)

        for group in extra:
            if group not in position and group not in ordered:
                ordered.append(group)
        return {g: i for i, g in enumerate(ordered)}


@dataclass(frozen=True, slots=True)
class PipelineRule:
    """A configured rule at a fixed position in the evaluation order."""

    index: int
    group: str
    rule: ConfiguredRule

    @property
    def identity(self) -> str:
        return self.rule.identity


@dataclass(frozen=True, slots=True)
class Pipeline:
    """Immutable evaluation order plus configuration warnings."""

    rules: tuple[PipelineRule, ...]
    warnings: tuple[str, ...] = ()

    @property
    def identities(self) -> tuple[str, ...]:
        return tuple(r.identity for r in self.rules)

    def __len__(self) -> int:
        return len(self.rules)


def build_pipeline(
    registry: RuleRegistry,
    *,
    precedence_of: PrecedenceFunction | None = None,
    group_order: GroupOrder | None = None,
    scope: ScopeFilter | None = None,
) -> Pipeline:
    """
    Order the registry's enabled rules into an evaluation sequence.

    Args:
        registry: Rules to order; rules with severity OFF are left out.
        precedence_of: Maps a descriptor to its group. Defaults to the
            descriptor's own ``group``.
        group_order: Declared group ordering. Defaults to
            structural -> unused-detection -> style.
        scope: When given, rules whose exclusions cover their entire scope
            are reported as warnings. They stay in the pipeline.

    Raises:
        CyclicPrecedenceError: The declared group ordering has a cycle.
    """
    precedence: PrecedenceFunction = precedence_of or group_of
    order: GroupOrder = group_order if group_order is not None else GroupOrder.default()
    order.check()

    enabled: list[ConfiguredRule] = [c for c in registry.entries() if c.enabled]
    groups: list[str] = [precedence(c.descriptor) for c in enabled]
    ranks: dict[str, int] = order.rank(extra=groups)

    ordered: list[tuple[str, ConfiguredRule]] = sorted(
        zip(groups, enabled),
        key=lambda pair: ranks[pair[0]],
    )
    rules: tuple[PipelineRule, ...] = tuple(
        PipelineRule(index=i, group=group, rule=configured)
        for i, (group, configured) in enumerate(ordered)
    )

    warnings: list[str] = []
    if scope is not None:
        for item in rules:
            if scope.is_dead(item.identity):
                message: str = (
                    f"Rule '{item.identity}' is excluded from its entire scope "
                    f"and will never run"
                )
                logger.warning("%s", message)
                warnings.append(message)

    logger.debug("Pipeline order: %s", ", ".join(r.identity for r in rules))
    return Pipeline(rules=rules, warnings=tuple(warnings))
