"""Rule registry for rulekit."""
from __future__ import annotations

import logging
from collections.abc import Iterable, Iterator, Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any

from rulekit.constants import Severity
from rulekit.rules.base import RuleDescriptor
from rulekit.types import DuplicateIdentityError, RegistryFrozenError, UnknownRuleError

logger: logging.Logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class ConfiguredRule:
    """A registered descriptor with its effective configuration and severity."""

    descriptor: RuleDescriptor
    config: Mapping[str, Any]
    severity: Severity

    @property
    def identity(self) -> str:
        return self.descriptor.identity

    @property
    def enabled(self) -> bool:
        return self.severity != Severity.OFF


@dataclass(frozen=True, slots=True)
class RuleEntry:
    """One item of a declarative rule list: descriptor, settings, opt-outs."""

    descriptor: RuleDescriptor
    config: Mapping[str, Any] | None = None
    severity: Severity | None = None
    exclude: tuple[str, ...] = field(default=())


def _configure(
    *,
    descriptor: RuleDescriptor,
    base: Mapping[str, Any],
    config: Mapping[str, Any] | None,
    severity: Severity | None,
    current: Severity,
) -> ConfiguredRule:
    merged: dict[str, Any] = dict(base)
    if config:
        merged.update(config)
    return ConfiguredRule(
        descriptor=descriptor,
        config=MappingProxyType(merged),
        severity=severity if severity is not None else current,
    )


class RuleRegistry:
    """Ordered mapping from rule identity to configured rule.

    Lifecycle is build -> seal -> run -> discard: once sealed (the
    orchestrator seals the registry it is given) no rule can be added or
    reconfigured, so concurrent readers need no locking.
    """

    def __init__(self) -> None:
        self._rules: dict[str, ConfiguredRule] = {}
        self._sealed: bool = False

    def register(
        self,
        descriptor: RuleDescriptor,
        *,
        config: Mapping[str, Any] | None = None,
        severity: Severity | None = None,
    ) -> ConfiguredRule:
        """Register a descriptor, optionally overriding its defaults.

        Raises:
            RegistryFrozenError: The registry has been sealed.
            DuplicateIdentityError: The identity is already registered.
        """
        if self._sealed:
            raise RegistryFrozenError(descriptor.identity)
        if descriptor.identity in self._rules:
            raise DuplicateIdentityError(descriptor.identity)

        configured: ConfiguredRule = _configure(
            descriptor=descriptor,
            base=descriptor.default_config,
            config=config,
            severity=severity,
            current=descriptor.default_severity,
        )
        self._rules[descriptor.identity] = configured
        logger.debug(
            "Registered rule %s (group=%s, severity=%s)",
            descriptor.identity,
            descriptor.group,
            configured.severity.value,
        )
        return configured

    def configure(
        self,
        identity: str,
        *,
        config: Mapping[str, Any] | None = None,
        severity: Severity | None = None,
    ) -> ConfiguredRule:
        """Overlay settings on an already registered rule."""
        if self._sealed:
            raise RegistryFrozenError(identity)
        existing: ConfiguredRule | None = self._rules.get(identity)
        if existing is None:
            raise UnknownRuleError(identity)

        configured: ConfiguredRule = _configure(
            descriptor=existing.descriptor,
            base=existing.config,
            config=config,
            severity=severity,
            current=existing.severity,
        )
        self._rules[identity] = configured
        return configured

    def get(self, identity: str) -> RuleDescriptor | None:
        configured: ConfiguredRule | None = self._rules.get(identity)
        return configured.descriptor if configured is not None else None

    def configured(self, identity: str) -> ConfiguredRule | None:
        return self._rules.get(identity)

    def all(self) -> tuple[RuleDescriptor, ...]:
        """Return descriptors in registration order."""
        return tuple(c.descriptor for c in self._rules.values())

    def entries(self) -> tuple[ConfiguredRule, ...]:
        """Return configured rules in registration order."""
        return tuple(self._rules.values())

    def seal(self) -> None:
        self._sealed = True

    @property
    def sealed(self) -> bool:
        return self._sealed

    def __len__(self) -> int:
        return len(self._rules)

    def __contains__(self, identity: object) -> bool:
        return identity in self._rules

    def __iter__(self) -> Iterator[RuleDescriptor]:
        return iter(self.all())


def registry_from_entries(
    entries: Iterable[RuleEntry | RuleDescriptor],
) -> tuple[RuleRegistry, dict[str, tuple[str, ...]]]:
    """Build a registry from an ordered declarative rule list.

    Returns the registry and the per-rule excluded path patterns declared
    alongside the entries. Fails on the first duplicate identity.
    """
    registry: RuleRegistry = RuleRegistry()
    exclusions: dict[str, tuple[str, ...]] = {}
    for item in entries:
        entry: RuleEntry = item if isinstance(item, RuleEntry) else RuleEntry(descriptor=item)
        registry.register(entry.descriptor, config=entry.config, severity=entry.severity)
        if entry.exclude:
            exclusions[entry.descriptor.identity] = tuple(entry.exclude)
    return registry, exclusions
