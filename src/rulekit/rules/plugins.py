"""Rule pack loading.

A rule pack is any importable module exposing ``RULES``: an ordered
sequence of RuleDescriptor or RuleEntry objects. Packs are named in the
``plugins`` setting or advertised through the ``rulekit.rules`` entry point
group, whose entry points resolve to such a module or directly to a sequence.
"""
from __future__ import annotations

import importlib
import logging
from collections.abc import Sequence
from importlib.metadata import entry_points
from types import ModuleType
from typing import Any

from rulekit.constants import ENTRY_POINT_GROUP
from rulekit.rules.base import RuleDescriptor
from rulekit.rules.registry import RuleEntry
from rulekit.types import ConfigError

logger: logging.Logger = logging.getLogger(__name__)

RulePackItem = RuleDescriptor | RuleEntry


def _validate_pack(*, name: str, rules: Any) -> list[RulePackItem]:
    if isinstance(rules, (str, bytes)) or not isinstance(rules, Sequence):
        raise ConfigError(f"Rule pack '{name}': RULES must be a list of rules")
    items: list[RulePackItem] = []
    for item in rules:
        if not isinstance(item, (RuleDescriptor, RuleEntry)):
            raise ConfigError(
                f"Rule pack '{name}': unexpected {type(item).__name__} in RULES"
            )
        items.append(item)
    return items


def load_rule_module(name: str) -> list[RulePackItem]:
    """Import one rule pack module and return its rules in declared order."""
    try:
        module: ModuleType = importlib.import_module(name)
    except Exception as e:
        raise ConfigError(
            f"Cannot import rule pack '{name}': {type(e).__name__}: {e}"
        ) from e

    if not hasattr(module, "RULES"):
        raise ConfigError(f"Rule pack '{name}' does not define RULES")
    items: list[RulePackItem] = _validate_pack(name=name, rules=module.RULES)
    logger.debug("Loaded %d rules from %s", len(items), name)
    return items


def load_rule_modules(names: Sequence[str]) -> list[RulePackItem]:
    rules: list[RulePackItem] = []
    for name in names:
        rules.extend(load_rule_module(name))
    return rules


def load_entry_point_rules(group: str = ENTRY_POINT_GROUP) -> list[RulePackItem]:
    """Collect rules from installed packs, ordered by entry point name.

    A pack that fails to load is logged and skipped.
    """
    rules: list[RulePackItem] = []
    for ep in sorted(entry_points(group=group), key=lambda e: e.name):
        try:
            loaded: Any = ep.load()
            raw: Any = loaded.RULES if isinstance(loaded, ModuleType) else loaded
            rules.extend(_validate_pack(name=ep.name, rules=raw))
        except Exception:
            logger.exception("Failed to load rule pack from entry point %s", ep.name)
    return rules
