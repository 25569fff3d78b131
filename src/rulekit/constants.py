"""Constants and enums for rulekit configuration."""
from __future__ import annotations

from enum import Enum
from typing import Final

__version__: Final[str] = "0.1.0"


class Severity(Enum):
    """Rule severity levels."""

    ERROR = "error"
    WARN = "warn"
    OFF = "off"


class OutputFormat(Enum):
    """Output format options."""

    TEXT = "text"
    JSON = "json"


class ColorMode(Enum):
    """Color output modes."""

    AUTO = "auto"
    ALWAYS = "always"
    NEVER = "never"


SYNTAX_ERROR_CODE: Final[str] = "SYN001"
RULE_CRASHED_CODE: Final[str] = "RUN001"
RULE_TIMED_OUT_CODE: Final[str] = "RUN002"
SUPPRESSION_REASON_CODE: Final[str] = "SUP001"

# Findings with these codes come from rulekit itself and cannot be suppressed.
RESERVED_CODES: Final[frozenset[str]] = frozenset({
    SYNTAX_ERROR_CODE,
    RULE_CRASHED_CODE,
    RULE_TIMED_OUT_CODE,
    SUPPRESSION_REASON_CODE,
})

ALL_FILES: Final[tuple[str, ...]] = ("**",)

DEFAULT_GROUP: Final[str] = "style"
DEFAULT_GROUP_ORDER: Final[tuple[str, ...]] = (
    "structural",
    "unused-detection",
    "style",
)

DEFAULT_TIMEOUT_S: Final[float] = 30.0

ENTRY_POINT_GROUP: Final[str] = "rulekit.rules"

DEFAULT_EXCLUDES: Final[tuple[str, ...]] = (
    "**/__pycache__/**",
    "**/.*/**",
    "**/.git/**",
    "**/.venv/**",
    "**/venv/**",
    "**/env/**",
    "build/**",
    "dist/**",
    "*.egg-info/**",
)
