"""Typer CLI entrypoint for fest_gates."""

from __future__ import annotations

import json
import logging
from pathlib import Path

import typer
import yaml

from fest_gates.config import AppSettings, load_settings
from fest_gates.errors import GateError
from fest_gates.generate.generator import TaskGenerator
from fest_gates.generate.models import GenerateOptions
from fest_gates.generate.pipeline import apply_gates, resolve_scope, validate_festival
from fest_gates.generate.renderer import DefaultGateRenderer
from fest_gates.logging_utils import configure_logging
from fest_gates.policy.merger import ConfigMerger
from fest_gates.policy.models import MergedPolicy
from fest_gates.policy.registry import PolicyRegistry
from fest_gates.sequences.discover import find_festival_root

TEMPLATE_DIRS: tuple[str, ...] = ("gates", ".festival/templates")

app = typer.Typer(
    add_completion=False,
    help="fest_gates command line interface.",
    no_args_is_help=True,
)

CONFIG_FILE_OPTION = typer.Option(
    None,
    "--config-file",
    help="Optional settings YAML path.",
    exists=False,
    file_okay=True,
    dir_okay=False,
    readable=True,
)
FESTIVAL_OPTION = typer.Option(
    None,
    "--festival",
    help="Festival directory (default: nearest festival above the current directory).",
    file_okay=False,
    dir_okay=True,
)


def _load_and_optionally_configure_logger(
    config_file: Path | None,
    configure: bool,
) -> tuple[AppSettings, logging.Logger]:
    settings = load_settings(config_file=config_file)
    if configure:
        logger = configure_logging(settings.paths.logs_root / "fest_gates.log")
    else:
        logger = logging.getLogger("fest_gates")
    return settings, logger


def _fail(exc: GateError) -> typer.Exit:
    typer.echo(f"error: {exc}", err=True)
    return typer.Exit(code=1)


def _resolve_festival(festival: Path | None) -> Path:
    if festival is not None:
        return festival.resolve()
    return find_festival_root(Path.cwd())


def _build_registry(settings: AppSettings, festival_path: Path | None, logger: logging.Logger) -> PolicyRegistry:
    return PolicyRegistry(
        festivals_root=settings.paths.festivals_root,
        config_root=settings.paths.config_root,
        festival_path=festival_path,
        logger=logger,
    )


def _echo_policy(policy: MergedPolicy) -> None:
    typer.echo(f"level: {policy.level}")
    typer.echo(f"fest_yaml_enabled: {policy.fest_yaml_enabled}")
    typer.echo("sources:")
    for source in policy.sources:
        typer.echo(f"  - {source.describe()}")
    typer.echo("gates:")
    for gate in policy.gates:
        state = "active"
        if gate.removed:
            removed_by = gate.removed_by.describe() if gate.removed_by is not None else "unknown"
            state = f"removed by {removed_by}"
        elif not gate.enabled:
            state = "disabled"
        origin = gate.source.describe() if gate.source is not None else "unknown"
        typer.echo(f"  - {gate.id} [{state}] template={gate.template or '-'} from {origin}")
    typer.echo(f"exclude_patterns: {', '.join(policy.exclude_patterns) or '-'}")
    for issue in policy.issues:
        typer.echo(f"issue: {issue.path}: {issue.message}")


@app.command("show-config")
def show_config(config_file: Path | None = CONFIG_FILE_OPTION) -> None:
    """Print the effective configuration after env overrides."""

    settings, _ = _load_and_optionally_configure_logger(config_file, configure=False)
    rendered = yaml.safe_dump(settings.as_dict(), sort_keys=False)
    typer.echo(rendered)


@app.command("list")
def list_policies(
    festival: Path | None = FESTIVAL_OPTION,
    as_json: bool = typer.Option(False, "--json", help="Emit JSON instead of text."),
    config_file: Path | None = CONFIG_FILE_OPTION,
) -> None:
    """List named gate policies from every registry source."""

    settings, logger = _load_and_optionally_configure_logger(config_file, configure=False)
    festival_path = festival.resolve() if festival is not None else None
    try:
        registry = _build_registry(settings, festival_path, logger)
    except GateError as exc:
        raise _fail(exc) from exc

    infos = registry.list_info()
    if as_json:
        typer.echo(json.dumps([info.as_dict() for info in infos], indent=2))
        return
    for info in infos:
        description = f"  {info.description}" if info.description else ""
        typer.echo(f"{info.name} ({info.source}){description}")


@app.command("show")
def show_policy(
    festival: Path | None = FESTIVAL_OPTION,
    phase: str | None = typer.Option(None, "--phase", help="Phase directory name."),
    sequence: str | None = typer.Option(None, "--sequence", help="Sequence directory (phase/sequence or name)."),
    policy: str | None = typer.Option(None, "--policy", help="Named policy to use as the base."),
    as_json: bool = typer.Option(False, "--json", help="Emit JSON instead of text."),
    config_file: Path | None = CONFIG_FILE_OPTION,
) -> None:
    """Show the effective gate policy with the provenance of every entry."""

    settings, logger = _load_and_optionally_configure_logger(config_file, configure=False)
    try:
        festival_path = _resolve_festival(festival)
        registry = _build_registry(settings, festival_path, logger)
        merger = ConfigMerger.from_settings(
            settings.gates, registry, festivals_root=settings.paths.festivals_root, logger=logger
        )
        scope = resolve_scope(festival_path, phase=phase, sequence=sequence)
        if scope.sequence_path is not None and scope.phase_path is not None:
            merged = merger.load_for_sequence(
                scope.festival_path, scope.phase_path, scope.sequence_path, policy_name=policy
            )
        elif scope.phase_path is not None:
            merged = merger.load_for_phase(scope.festival_path, scope.phase_path, policy_name=policy)
        else:
            merged = merger.load_for_festival(scope.festival_path, policy_name=policy)
    except GateError as exc:
        raise _fail(exc) from exc

    if as_json:
        typer.echo(json.dumps(merged.as_dict(), indent=2, default=str))
        return
    _echo_policy(merged)


@app.command("apply")
def apply_cmd(
    policy: str | None = typer.Argument(None, help="Optional named policy to apply instead of the festival config."),
    festival: Path | None = FESTIVAL_OPTION,
    phase: str | None = typer.Option(None, "--phase", help="Limit to one phase directory."),
    sequence: str | None = typer.Option(None, "--sequence", help="Limit to one sequence (phase/sequence or name)."),
    approve: bool = typer.Option(False, "--approve", help="Write files; without it the run is a preview."),
    force: bool = typer.Option(False, "--force", help="Overwrite gate files that were edited."),
    as_json: bool = typer.Option(False, "--json", help="Emit JSON instead of text."),
    config_file: Path | None = CONFIG_FILE_OPTION,
) -> None:
    """Generate quality gate task files in implementation sequences."""

    settings, logger = _load_and_optionally_configure_logger(config_file, configure=approve)
    options = GenerateOptions(
        dry_run=not approve,
        force=force or settings.generate.force,
    )
    try:
        festival_path = _resolve_festival(festival)
        registry = _build_registry(settings, festival_path, logger)
        merger = ConfigMerger.from_settings(
            settings.gates, registry, festivals_root=settings.paths.festivals_root, logger=logger
        )
        renderer = DefaultGateRenderer([festival_path / name for name in TEMPLATE_DIRS], logger=logger)
        generator = TaskGenerator(renderer, logger=logger)
        report = apply_gates(
            festival_path,
            merger=merger,
            generator=generator,
            phase=phase,
            sequence=sequence,
            policy_name=policy,
            options=options,
            non_implementation_markers=settings.gates.non_implementation_markers,
            logger=logger,
        )
    except GateError as exc:
        raise _fail(exc) from exc

    if as_json:
        typer.echo(json.dumps(report.as_dict(), indent=2))
        return

    if report.dry_run:
        typer.echo("preview: no files written (use --approve to apply)")
    for result in report.results:
        reason = f" ({result.reason})" if result.reason else ""
        typer.echo(f"{result.type}: {result.path}{reason}")
    for warning in report.warnings:
        typer.echo(f"warning: {warning}")
    summary = report.summary
    typer.echo(f"total_sequences: {summary.total_sequences}")
    typer.echo(f"sequences_updated: {summary.sequences_updated}")
    typer.echo(f"files_created: {summary.files_created}")
    typer.echo(f"files_skipped: {summary.files_skipped}")
    typer.echo(f"files_existing: {summary.files_existing}")


@app.command("validate")
def validate_cmd(
    festival: Path | None = FESTIVAL_OPTION,
    policy: str | None = typer.Option(None, "--policy", help="Named policy to validate against."),
    as_json: bool = typer.Option(False, "--json", help="Emit JSON instead of text."),
    config_file: Path | None = CONFIG_FILE_OPTION,
) -> None:
    """Check every gate configuration file of a festival and report problems."""

    settings, logger = _load_and_optionally_configure_logger(config_file, configure=False)
    try:
        festival_path = _resolve_festival(festival)
        registry = _build_registry(settings, festival_path, logger)
        merger = ConfigMerger.from_settings(
            settings.gates, registry, festivals_root=settings.paths.festivals_root, logger=logger
        )
        issues = validate_festival(festival_path, merger=merger, policy_name=policy, logger=logger)
    except GateError as exc:
        raise _fail(exc) from exc

    if as_json:
        typer.echo(json.dumps({"ok": not issues, "issues": [issue.as_dict() for issue in issues]}, indent=2))
    else:
        for issue in issues:
            typer.echo(f"{issue.level}: {issue.path}: {issue.message}")
        typer.echo(f"issues: {len(issues)}")
    if issues:
        raise typer.Exit(code=1)


if __name__ == "__main__":
    app()
