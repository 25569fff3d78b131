"""Configuration loading and validation for rulekit."""
from __future__ import annotations

import tomllib
from collections.abc import Mapping
from pathlib import Path
from types import MappingProxyType
from typing import Any, Final

from rulekit.constants import (
    DEFAULT_EXCLUDES,
    DEFAULT_GROUP_ORDER,
    DEFAULT_TIMEOUT_S,
    ColorMode,
    OutputFormat,
    Severity,
)
from rulekit.rules.registry import RuleRegistry
from rulekit.scope import ScopeExclusion
from rulekit.types import (
    ConfigError,
    RuleSettings,
    RulekitConfig,
    SuppressionPolicy,
    UnknownRuleError,
)

# Keys of a per-rule table that are not passed through as rule options.
_RULE_RESERVED_KEYS: Final[frozenset[str]] = frozenset({"severity", "exclude"})


class ConfigLoader:
    """Loads and validates rulekit configuration."""

    @staticmethod
    def find_config_file(start_path: Path | None = None) -> Path | None:
        """
        Find pyproject.toml by walking up from start_path.

        Args:
            start_path: Directory to start searching from. Defaults to cwd.

        Returns:
            Path to pyproject.toml if found, None otherwise.
        """
        if start_path is None:
            start_path = Path.cwd()

        start_path = start_path.resolve()

        for directory in [start_path, *start_path.parents]:
            config_path: Path = directory / "pyproject.toml"
            if config_path.is_file():
                return config_path

        return None

    @staticmethod
    def load(path: Path | None = None) -> RulekitConfig:
        """
        Load configuration from pyproject.toml.

        Args:
            path: Explicit path to pyproject.toml. If None, searches upward.

        Returns:
            Validated RulekitConfig instance.

        Raises:
            ConfigError: If configuration is invalid.
        """
        if path is None:
            path = ConfigLoader.find_config_file()

        if path is None:
            return RulekitConfig()

        try:
            with open(path, "rb") as f:
                data: dict[str, Any] = tomllib.load(f)
        except tomllib.TOMLDecodeError as e:
            raise ConfigError(f"Invalid TOML: {e}", path=path) from e
        except OSError as e:
            raise ConfigError(f"Cannot read config file: {e}", path=path) from e

        tool_config: dict[str, Any] = data.get("tool", {}).get("rulekit", {})

        return ConfigLoader._parse_config(tool_config, config_path=path)

    @staticmethod
    def _parse_config(
        data: dict[str, Any],
        *,
        config_path: Path | None = None,
    ) -> RulekitConfig:
        """Parse and validate configuration dictionary."""
        errors: list[str] = []

        include: tuple[str, ...] = _string_list(
            data, "include", default=("**/*.py",), errors=errors,
        )
        exclude: tuple[str, ...] = _string_list(
            data, "exclude", default=DEFAULT_EXCLUDES, errors=errors,
        )
        plugins: tuple[str, ...] = _string_list(
            data, "plugins", default=(), errors=errors,
        )
        groups: tuple[str, ...] = _string_list(
            data, "groups", default=DEFAULT_GROUP_ORDER, errors=errors,
        )

        entry_points: bool = data.get("entry_points", True)
        if not isinstance(entry_points, bool):
            errors.append("entry_points must be a boolean")
            entry_points = True

        precedence: list[tuple[str, str]] = []
        raw_precedence: Any = data.get("precedence", [])
        if not isinstance(raw_precedence, list):
            errors.append("precedence must be a list of [before, after] pairs")
        else:
            for pair in raw_precedence:
                if (
                    isinstance(pair, list)
                    and len(pair) == 2
                    and all(isinstance(g, str) for g in pair)
                ):
                    precedence.append((pair[0], pair[1]))
                else:
                    errors.append(
                        f"precedence entries must be [before, after] pairs, got {pair!r}"
                    )

        # Parse output_format
        output_format: OutputFormat = OutputFormat.TEXT
        if "output_format" in data:
            try:
                output_format = OutputFormat(data["output_format"])
            except ValueError:
                valid: list[str] = [f.value for f in OutputFormat]
                errors.append(f"output_format must be one of {valid}")

        show_source: bool = data.get("show_source", True)
        if not isinstance(show_source, bool):
            errors.append("show_source must be a boolean")
            show_source = True

        color: ColorMode = ColorMode.AUTO
        if "color" in data:
            try:
                color = ColorMode(data["color"])
            except ValueError:
                valid = [c.value for c in ColorMode]
                errors.append(f"color must be one of {valid}")

        jobs: Any = data.get("jobs", 1)
        if isinstance(jobs, bool) or not isinstance(jobs, int) or jobs < 1:
            errors.append("jobs must be a positive integer")
            jobs = 1

        timeout_s: float | None = DEFAULT_TIMEOUT_S
        if "timeout" in data:
            raw_timeout: Any = data["timeout"]
            if isinstance(raw_timeout, bool) or not isinstance(raw_timeout, (int, float)):
                errors.append("timeout must be a number of seconds (0 disables)")
            elif raw_timeout < 0:
                errors.append("timeout must not be negative")
            else:
                timeout_s = float(raw_timeout) if raw_timeout > 0 else None

        rules: dict[str, RuleSettings] = ConfigLoader._parse_rules(
            data.get("rules", {}), errors,
        )
        suppressions: SuppressionPolicy = ConfigLoader._parse_suppressions(
            data.get("suppressions", {}), errors,
        )

        if errors:
            error_msg: str = "Configuration errors:\n" + "\n".join(
                f"  - {e}" for e in errors
            )
            raise ConfigError(error_msg, path=config_path)

        return RulekitConfig(
            config_path=config_path,
            include=include,
            exclude=exclude,
            plugins=plugins,
            entry_points=entry_points,
            groups=groups,
            precedence=tuple(precedence),
            output_format=output_format,
            show_source=show_source,
            color=color,
            jobs=jobs,
            timeout_s=timeout_s,
            rules=MappingProxyType(rules),
            suppressions=suppressions,
        )

    @staticmethod
    def _parse_rules(data: Any, errors: list[str]) -> dict[str, RuleSettings]:
        """Parse per-rule settings: a severity string or a table."""
        if not isinstance(data, dict):
            errors.append("rules must be a table")
            return {}

        valid: list[str] = [s.value for s in Severity]
        rules: dict[str, RuleSettings] = {}
        for identity, value in data.items():
            if isinstance(value, str):
                try:
                    rules[identity] = RuleSettings(severity=Severity(value.lower()))
                except ValueError:
                    errors.append(f"rules.{identity} must be one of {valid}")
                continue

            if not isinstance(value, dict):
                errors.append(f"rules.{identity} must be a severity string or a table")
                continue

            severity: Severity | None = None
            if "severity" in value:
                raw_severity: Any = value["severity"]
                try:
                    severity = Severity(str(raw_severity).lower())
                except ValueError:
                    errors.append(f"rules.{identity}.severity must be one of {valid}")

            exclude: tuple[str, ...] = _string_list(
                value, "exclude", default=(), errors=errors, label=f"rules.{identity}.exclude",
            )
            options: dict[str, Any] = {
                k: v for k, v in value.items() if k not in _RULE_RESERVED_KEYS
            }
            rules[identity] = RuleSettings(
                severity=severity,
                options=MappingProxyType(options),
                exclude=exclude,
            )

        return rules

    @staticmethod
    def _parse_suppressions(data: Any, errors: list[str]) -> SuppressionPolicy:
        if not isinstance(data, dict):
            errors.append("suppressions must be a table")
            return SuppressionPolicy()

        require_reason: bool = data.get("require_reason", False)
        if not isinstance(require_reason, bool):
            errors.append("suppressions.require_reason must be a boolean")
            require_reason = False

        return SuppressionPolicy(require_reason=require_reason)


def _string_list(
    data: Mapping[str, Any],
    key: str,
    *,
    default: tuple[str, ...],
    errors: list[str],
    label: str | None = None,
) -> tuple[str, ...]:
    raw: Any = data.get(key, default)
    if isinstance(raw, tuple):
        return raw
    if isinstance(raw, list) and all(isinstance(item, str) for item in raw):
        return tuple(raw)
    errors.append(f"{label or key} must be a list of strings")
    return default


def load_config(path: Path | None = None) -> RulekitConfig:
    """
    Convenience function to load configuration.

    Args:
        path: Optional explicit path to pyproject.toml.

    Returns:
        Validated configuration.
    """
    return ConfigLoader.load(path)


def apply_settings(
    registry: RuleRegistry,
    config: RulekitConfig,
) -> list[ScopeExclusion]:
    """Overlay per-rule settings on a registry.

    Returns the scope exclusions declared in the settings.

    Raises:
        ConfigError: A setting names a rule that is not registered.
    """
    exclusions: list[ScopeExclusion] = []
    unknown: list[str] = []
    for identity, settings in config.rules.items():
        try:
            registry.configure(
                identity,
                config=settings.options,
                severity=settings.severity,
            )
        except UnknownRuleError:
            unknown.append(identity)
            continue
        if settings.exclude:
            exclusions.append(
                ScopeExclusion(rule_identity=identity, excluded_paths=settings.exclude)
            )

    if unknown:
        raise ConfigError(
            f"Settings given for unknown rules: {sorted(unknown)}",
            path=config.config_path,
        )
    return exclusions
