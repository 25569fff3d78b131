"""Command-line interface for rulekit using Click."""
from __future__ import annotations

import json
import logging
import sys
from dataclasses import replace
from pathlib import Path
from typing import Any, Final

import click

from rulekit.config import load_config
from rulekit.constants import ColorMode, OutputFormat, __version__
from rulekit.explain import format_rule_detail, format_rule_table
from rulekit.rules.registry import ConfiguredRule
from rulekit.runner import LintResult, LintSession, build_session, format_results, lint_paths
from rulekit.types import ConfigError, RulekitConfig, RulekitError

# Exit code for errors raised while setting up a run (before any file is checked).
SETUP_ERROR_EXIT: Final[int] = 2


def format_config_text(*, config: RulekitConfig) -> str:
    """Format configuration as human-readable text."""
    timeout: str = f"{config.timeout_s:g}s" if config.timeout_s is not None else "none"
    lines: list[str] = [
        "rulekit Configuration",
        "=" * 40,
        "",
        f"Config file: {config.config_path or '(defaults)'}",
        "",
        "File Discovery:",
        f"  Include: {', '.join(config.include)}",
        f"  Exclude: {', '.join(config.exclude[:5])}{'...' if len(config.exclude) > 5 else ''}",
        "",
        "Rule Packs:",
        f"  Plugins: {', '.join(config.plugins) or '(none)'}",
        f"  Entry points: {config.entry_points}",
        "",
        "Ordering:",
        f"  Groups: {' -> '.join(config.groups)}",
    ]
    for before, after in config.precedence:
        lines.append(f"  Precedence: {before} -> {after}")
    lines.extend([
        "",
        "Execution:",
        f"  Jobs: {config.jobs}",
        f"  Timeout: {timeout}",
        "",
        "Output:",
        f"  Format: {config.output_format.value}",
        f"  Color: {config.color.value}",
        f"  Show source: {config.show_source}",
        "",
        "Rule Settings:",
    ])

    if not config.rules:
        lines.append("  (none)")
    for identity, settings in sorted(config.rules.items()):
        severity: str = settings.severity.value.upper() if settings.severity else "DEFAULT"
        extra: str = ""
        if settings.exclude:
            extra += f" exclude={list(settings.exclude)}"
        if settings.options:
            extra += f" options={dict(settings.options)}"
        lines.append(f"  {identity}: {severity}{extra}")

    lines.extend([
        "",
        "Suppressions:",
        f"  Require reason: {config.suppressions.require_reason}",
    ])

    return "\n".join(lines)


def format_config_json(*, config: RulekitConfig) -> str:
    """Format configuration as JSON."""
    data: dict[str, Any] = {
        "config_path": str(config.config_path) if config.config_path else None,
        "include": list(config.include),
        "exclude": list(config.exclude),
        "plugins": list(config.plugins),
        "entry_points": config.entry_points,
        "groups": list(config.groups),
        "precedence": [list(pair) for pair in config.precedence],
        "output_format": config.output_format.value,
        "show_source": config.show_source,
        "color": config.color.value,
        "jobs": config.jobs,
        "timeout": config.timeout_s,
        "rules": {
            identity: {
                "severity": settings.severity.value if settings.severity else None,
                "exclude": list(settings.exclude),
                "options": dict(settings.options),
            }
            for identity, settings in config.rules.items()
        },
        "suppressions": {
            "require_reason": config.suppressions.require_reason,
        },
    }
    return json.dumps(data, indent=2, default=str)


class ConfigType(click.ParamType):
    """Custom Click parameter type for config path."""

    name: str = "path"

    def convert(
        self,
        value: str | Path | None,
        param: click.Parameter | None,
        ctx: click.Context | None,
    ) -> Path | None:
        if value is None:
            return None
        return Path(value)


CONFIG_TYPE: Final[ConfigType] = ConfigType()


def _fail_setup(ctx: click.Context, error: Exception) -> None:
    click.echo(f"Error: {error}", err=True)
    path: Path | None = getattr(error, "path", None)
    if path:
        click.echo(f"  in: {path}", err=True)
    ctx.exit(SETUP_ERROR_EXIT)


@click.group()
@click.version_option(version=__version__, prog_name="rulekit")
@click.option(
    "--config",
    "config_path",
    type=CONFIG_TYPE,
    default=None,
    help="Path to pyproject.toml (default: search upward from current directory)",
)
@click.option("--verbose", is_flag=True, help="Show progress and timing")
@click.option("--debug", is_flag=True, help="Show detailed trace")
@click.pass_context
def cli(
    ctx: click.Context,
    *,
    config_path: Path | None,
    verbose: bool,
    debug: bool,
) -> None:
    """rulekit - declare, order and scope pluggable lint rules over a source tree."""
    level: int = (
        logging.DEBUG if debug else logging.INFO if verbose else logging.WARNING
    )
    logging.basicConfig(
        level=level,
        format="%(name)s: %(message)s",
        stream=sys.stderr,
    )
    logging.getLogger("rulekit").setLevel(level)

    ctx.ensure_object(dict)
    try:
        cfg: RulekitConfig = load_config(path=config_path)
        ctx.obj["config"] = cfg
    except ConfigError as e:
        _fail_setup(ctx, e)


@cli.command()
@click.option("--validate", is_flag=True, help="Only validate configuration, don't print")
@click.option("--json", "as_json", is_flag=True, help="Output configuration as JSON")
@click.pass_context
def config(ctx: click.Context, *, validate: bool, as_json: bool) -> None:
    """Show or validate configuration."""
    cfg: RulekitConfig = ctx.obj["config"]

    if validate:
        try:
            build_session(config=cfg)
        except (ConfigError, RulekitError) as e:
            _fail_setup(ctx, e)
            return
        click.echo(f"Configuration valid: {cfg.config_path or '(defaults)'}")
        return

    if as_json:
        click.echo(format_config_json(config=cfg))
    else:
        click.echo(format_config_text(config=cfg))


@cli.command()
@click.argument("paths", nargs=-1, type=click.Path(exists=True, path_type=Path))
@click.option(
    "--format",
    "output_format",
    type=click.Choice(["text", "json"]),
    default=None,
    help="Output format (overrides config)",
)
@click.option(
    "--color",
    type=click.Choice(["auto", "always", "never"]),
    default=None,
    help="Color output mode (overrides config)",
)
@click.option("--show-source/--no-show-source", default=None, help="Show source code snippets")
@click.option("--jobs", type=click.IntRange(min=1), default=None, help="Files checked in parallel")
@click.option(
    "--timeout",
    type=click.FloatRange(min=0),
    default=None,
    help="Seconds allowed per rule invocation, 0 disables (overrides config)",
)
@click.pass_context
def lint(
    ctx: click.Context,
    paths: tuple[Path, ...],
    *,
    output_format: str | None,
    color: str | None,
    show_source: bool | None,
    jobs: int | None,
    timeout: float | None,
) -> None:
    """Run the configured rules over Python files."""
    cfg: RulekitConfig = ctx.obj["config"]

    # Apply CLI overrides
    overrides: dict[str, Any] = {}
    if output_format is not None:
        overrides["output_format"] = OutputFormat(output_format)
    if color is not None:
        overrides["color"] = ColorMode(color)
    if show_source is not None:
        overrides["show_source"] = show_source
    if jobs is not None:
        overrides["jobs"] = jobs
    if timeout is not None:
        overrides["timeout_s"] = timeout if timeout > 0 else None

    if overrides:
        cfg = replace(cfg, **overrides)
    if cfg.color == ColorMode.AUTO:
        cfg = replace(
            cfg, color=ColorMode.ALWAYS if sys.stdout.isatty() else ColorMode.NEVER,
        )

    if not paths:
        paths = (Path("."),)

    try:
        result: LintResult = lint_paths(paths=paths, config=cfg)
    except (ConfigError, RulekitError) as e:
        _fail_setup(ctx, e)
        return

    output: str = format_results(result=result, config=cfg)
    if output:
        click.echo(output, color=cfg.color == ColorMode.ALWAYS)
    ctx.exit(result.exit_code)


@cli.command()
@click.argument("identity", required=False, default=None)
@click.pass_context
def rules(ctx: click.Context, identity: str | None) -> None:
    """Show the rule evaluation order, or one rule's details."""
    cfg: RulekitConfig = ctx.obj["config"]

    try:
        session: LintSession = build_session(config=cfg)
    except (ConfigError, RulekitError) as e:
        _fail_setup(ctx, e)
        return

    if identity is None:
        click.echo(format_rule_table(
            registry=session.registry,
            pipeline=session.pipeline,
            scope=session.scope,
        ))
        for warning in session.pipeline.warnings:
            click.echo(f"Warning: {warning}")
        return

    configured: ConfiguredRule | None = session.registry.configured(identity)
    if configured is None:
        click.echo(f"Error: Unknown rule '{identity}'.", err=True)
        ctx.exit(1)
        return

    click.echo(format_rule_detail(
        configured=configured,
        pipeline=session.pipeline,
        scope=session.scope,
    ))


def main() -> None:
    """Main entry point for rulekit CLI."""
    cli()


if __name__ == "__main__":
    main()
