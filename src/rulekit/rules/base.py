"""Rule descriptors: the immutable declaration of one pluggable check."""
from __future__ import annotations

from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import TYPE_CHECKING, Any, Protocol

from rulekit.constants import ALL_FILES, DEFAULT_GROUP, Severity

if TYPE_CHECKING:
    from rulekit.diagnostics import Finding
    from rulekit.parser import ParsedFile


class CheckFunction(Protocol):
    """Structural interface for a rule's check."""

    def __call__(
        self,
        parsed: ParsedFile,
        config: Mapping[str, Any],
    ) -> Sequence[Finding]: ...


@dataclass(frozen=True, slots=True)
class RuleDescriptor:
    """Identity, defaults and scope of one pluggable check."""

    identity: str
    check: CheckFunction = field(compare=False)
    group: str = DEFAULT_GROUP
    default_severity: Severity = Severity.ERROR
    default_config: Mapping[str, Any] = field(
        default_factory=lambda: MappingProxyType({})
    )
    applies_to: tuple[str, ...] = ALL_FILES
    description: str = ""

    def __post_init__(self) -> None:
        if not self.identity or not self.identity.strip():
            raise ValueError("Rule identity must be a non-empty string")
        if not self.applies_to:
            raise ValueError(
                f"Rule '{self.identity}' must apply to at least one path pattern"
            )
        if not isinstance(self.default_config, MappingProxyType):
            object.__setattr__(
                self, "default_config", MappingProxyType(dict(self.default_config))
            )

    @property
    def applies_to_all(self) -> bool:
        return self.applies_to == ALL_FILES


class RuleBuilder:
    """Chained builder producing an immutable RuleDescriptor.

    >>> descriptor = (
    ...     RuleBuilder("no-print")
    ...     .group("style")
    ...     .severity(Severity.WARN)
    ...     .applies_to("src/**")
    ...     .check(check_no_print)
    ...     .build()
    ... )
    """

    def __init__(self, identity: str) -> None:
        self._identity: str = identity
        self._check: CheckFunction | None = None
        self._group: str = DEFAULT_GROUP
        self._severity: Severity = Severity.ERROR
        self._options: dict[str, Any] = {}
        self._applies_to: tuple[str, ...] = ALL_FILES
        self._description: str = ""

    def group(self, name: str) -> RuleBuilder:
        self._group = name
        return self

    def severity(self, severity: Severity) -> RuleBuilder:
        self._severity = severity
        return self

    def applies_to(self, *patterns: str) -> RuleBuilder:
        self._applies_to = tuple(patterns)
        return self

    def options(self, **options: Any) -> RuleBuilder:
        self._options.update(options)
        return self

    def describe(self, text: str) -> RuleBuilder:
        self._description = text
        return self

    def check(self, func: CheckFunction) -> RuleBuilder:
        self._check = func
        return self

    def build(self) -> RuleDescriptor:
        if self._check is None:
            raise ValueError(f"Rule '{self._identity}' has no check function")
        return RuleDescriptor(
            identity=self._identity,
            check=self._check,
            group=self._group,
            default_severity=self._severity,
            default_config=MappingProxyType(dict(self._options)),
            applies_to=self._applies_to,
            description=self._description,
        )


def rule(
    identity: str,
    *,
    group: str = DEFAULT_GROUP,
    severity: Severity = Severity.ERROR,
    applies_to: tuple[str, ...] = ALL_FILES,
    options: Mapping[str, Any] | None = None,
    description: str | None = None,
) -> Callable[[CheckFunction], RuleDescriptor]:
    """Decorator turning a check function into a RuleDescriptor.

    The function's docstring is used as the description unless one is given.
    """

    def decorator(func: CheckFunction) -> RuleDescriptor:
        doc: str = (getattr(func, "__doc__", None) or "").strip()
        return (
            RuleBuilder(identity)
            .group(group)
            .severity(severity)
            .applies_to(*applies_to)
            .options(**dict(options or {}))
            .describe(description if description is not None else doc)
            .check(func)
            .build()
        )

    return decorator
