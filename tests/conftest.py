"""Pytest fixtures for rulekit tests."""
from __future__ import annotations

from collections.abc import Mapping
from pathlib import Path

import pytest


@pytest.fixture
def write_tree(tmp_path: Path):
    """Write a mapping of relative path -> source under tmp_path."""

    def _write(files: Mapping[str, str]) -> Path:
        for rel, content in files.items():
            target: Path = tmp_path / rel
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_text(content, encoding="utf-8")
        return tmp_path

    return _write


@pytest.fixture
def rule_pack(
    tmp_path_factory: pytest.TempPathFactory, monkeypatch: pytest.MonkeyPatch,
) -> str:
    """An importable rule pack module exposing RULES, kept outside tmp_path."""
    pack_dir: Path = tmp_path_factory.mktemp("packs")
    (pack_dir / "sample_rules.py").write_text(
        '''
from rulekit.diagnostics import Finding, SourceLocation
from rulekit.rules.base import rule
from rulekit.rules.registry import RuleEntry
from rulekit.constants import Severity


@rule("no-todo", group="style", severity=Severity.WARN)
def no_todo(parsed, config):
    """Flag TODO markers."""
    marker = config.get("marker", "TODO")
    return [
        Finding(
            file=parsed.relative,
            location=SourceLocation(line=i + 1, column=line.index(marker) + 1),
            message=f"{marker} left in code",
        )
        for i, line in enumerate(parsed.source_lines)
        if marker in line
    ]


@rule("module-docstring", group="structural")
def module_docstring(parsed, config):
    """Require a module docstring."""
    import ast
    if parsed.tree is None or ast.get_docstring(parsed.tree):
        return []
    return [Finding(
        file=parsed.relative,
        location=SourceLocation(line=1, column=1),
        message="missing module docstring",
    )]


RULES = [
    RuleEntry(descriptor=no_todo, exclude=("vendor/**",)),
    module_docstring,
]
''',
        encoding="utf-8",
    )
    monkeypatch.syspath_prepend(str(pack_dir))
    return "sample_rules"


@pytest.fixture
def pack_pyproject(tmp_path: Path, rule_pack: str) -> Path:
    """A pyproject.toml that loads the sample rule pack."""
    config_path: Path = tmp_path / "pyproject.toml"
    config_path.write_text(
        f"""
[tool.rulekit]
plugins = ["{rule_pack}"]
entry_points = false
timeout = 0
"""
    )
    return config_path


@pytest.fixture
def temp_pyproject(tmp_path: Path) -> Path:
    """Create a temporary pyproject.toml file."""
    config_path: Path = tmp_path / "pyproject.toml"
    config_path.write_text(
        """
[tool.rulekit]
include = ["src/**/*.py"]
exclude = ["**/test_*.py"]
plugins = ["my_rules"]
entry_points = false
groups = ["structural", "style"]
precedence = [["security", "structural"]]
output_format = "text"
show_source = false
color = "never"
jobs = 4
timeout = 5

[tool.rulekit.rules]
no-print = "warn"

[tool.rulekit.rules.max-args]
severity = "off"
exclude = ["tests/**"]
max = 3

[tool.rulekit.suppressions]
require_reason = true
"""
    )
    return config_path


@pytest.fixture
def empty_pyproject(tmp_path: Path) -> Path:
    """Create a pyproject.toml without [tool.rulekit] section."""
    config_path: Path = tmp_path / "pyproject.toml"
    config_path.write_text(
        """
[project]
name = "test-project"
version = "0.1.0"
"""
    )
    return config_path


@pytest.fixture
def invalid_toml(tmp_path: Path) -> Path:
    """Create an invalid TOML file."""
    config_path: Path = tmp_path / "pyproject.toml"
    config_path.write_text("invalid [ toml content")
    return config_path


@pytest.fixture
def invalid_config(tmp_path: Path) -> Path:
    """Create a pyproject.toml with invalid rulekit config."""
    config_path: Path = tmp_path / "pyproject.toml"
    config_path.write_text(
        """
[tool.rulekit]
output_format = "invalid_format"
color = "maybe"
jobs = 0
precedence = [["only-one"]]

[tool.rulekit.rules]
no-print = "super_error"
"""
    )
    return config_path
