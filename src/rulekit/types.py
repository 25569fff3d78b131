"""Common types, configuration dataclasses and errors for rulekit."""
from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import Any

from rulekit.constants import (
    DEFAULT_EXCLUDES,
    DEFAULT_GROUP_ORDER,
    DEFAULT_TIMEOUT_S,
    ColorMode,
    OutputFormat,
    Severity,
)


@dataclass(frozen=True, slots=True)
class RuleSettings:
    """User settings for one rule, keyed by rule identity in the config."""

    severity: Severity | None = None
    options: MappingProxyType[str, Any] = field(
        default_factory=lambda: MappingProxyType({})
    )
    exclude: tuple[str, ...] = ()


@dataclass(frozen=True, slots=True)
class SuppressionPolicy:
    """Configuration for inline suppression pragmas."""

    require_reason: bool = False


@dataclass(frozen=True, slots=True)
class RulekitConfig:
    """Complete rulekit configuration."""

    config_path: Path | None = None
    include: tuple[str, ...] = ("**/*.py",)
    exclude: tuple[str, ...] = DEFAULT_EXCLUDES
    plugins: tuple[str, ...] = ()
    entry_points: bool = True
    groups: tuple[str, ...] = DEFAULT_GROUP_ORDER
    precedence: tuple[tuple[str, str], ...] = ()
    output_format: OutputFormat = OutputFormat.TEXT
    show_source: bool = True
    color: ColorMode = ColorMode.AUTO
    jobs: int = 1
    timeout_s: float | None = DEFAULT_TIMEOUT_S
    rules: MappingProxyType[str, RuleSettings] = field(
        default_factory=lambda: MappingProxyType({})
    )
    suppressions: SuppressionPolicy = field(default_factory=SuppressionPolicy)

    def settings_for(self, identity: str) -> RuleSettings | None:
        """Return the user settings for a rule, if any were given."""
        return self.rules.get(identity)


class ConfigError(Exception):
    """Error during configuration loading or validation."""

    def __init__(self, message: str, *, path: Path | None = None) -> None:
        self.path: Path | None = path
        super().__init__(message)


class RulekitError(Exception):
    """Base class for setup-time errors that abort before any file is checked."""


class DuplicateIdentityError(RulekitError):
    """A rule identity was registered twice."""

    def __init__(self, identity: str) -> None:
        self.identity: str = identity
        super().__init__(f"Rule '{identity}' is already registered")


class RegistryFrozenError(RulekitError):
    """The registry was modified after being sealed."""

    def __init__(self, identity: str) -> None:
        self.identity: str = identity
        super().__init__(
            f"Cannot modify rule '{identity}': registry is sealed"
        )


class UnknownRuleError(RulekitError, KeyError):
    """A rule identity was referenced but never registered."""

    def __init__(self, identity: str) -> None:
        self.identity: str = identity
        super().__init__(f"Unknown rule '{identity}'")

    def __str__(self) -> str:
        return f"Unknown rule '{self.identity}'"


class CyclicPrecedenceError(RulekitError):
    """Declared precedence group ordering contains a cycle."""

    def __init__(self, cycle: tuple[str, ...]) -> None:
        self.cycle: tuple[str, ...] = cycle
        super().__init__(
            "Precedence groups form a cycle: " + " -> ".join(cycle)
        )
