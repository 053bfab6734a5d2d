"""Festival-wide gate application and configuration validation."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable

from fest_gates.cancel import CancelToken, check_cancelled
from fest_gates.config import DEFAULT_NON_IMPLEMENTATION_MARKERS
from fest_gates.errors import CancelledError, GateError, NotFoundError
from fest_gates.generate.generator import TaskGenerator
from fest_gates.generate.models import GenerateOptions, GenerateResult, GenerateSummary
from fest_gates.policy.merger import ConfigMerger
from fest_gates.policy.models import ConfigIssue, MergedPolicy
from fest_gates.policy.patterns import is_excluded
from fest_gates.sequences.discover import (
    SequenceInfo,
    discover_sequences,
    list_phase_dirs,
    list_sequence_dirs,
    sequence_info_for,
)

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class ApplyScope:
    """Target node of an apply run: a whole festival, one phase or one sequence."""

    festival_path: Path
    phase_path: Path | None = None
    sequence_path: Path | None = None


@dataclass(slots=True)
class ApplyReport:
    """Everything an apply run produced."""

    scope: ApplyScope
    policy: MergedPolicy
    dry_run: bool
    results: list[GenerateResult] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    summary: GenerateSummary = field(default_factory=GenerateSummary)

    def as_dict(self) -> dict[str, object]:
        return {
            "ok": True,
            "action": "gates_apply",
            "dry_run": self.dry_run,
            "changes": [result.as_dict() for result in self.results],
            "summary": self.summary.as_dict(),
            "warnings": list(self.warnings),
        }


def resolve_scope(festival_path: Path, phase: str | Path | None = None, sequence: str | Path | None = None) -> ApplyScope:
    """Resolve phase and sequence arguments against the festival directory.

    ``sequence`` may be ``"<phase>/<sequence>"`` relative to the festival, a
    bare sequence name when ``phase`` is given, or an absolute path.
    """

    festival_dir = Path(festival_path).resolve()
    if not festival_dir.is_dir():
        raise NotFoundError("festival directory not found", op="resolve_scope", path=festival_dir)

    phase_dir: Path | None = None
    if phase is not None:
        phase_dir = festival_dir / phase
        if not phase_dir.is_dir():
            raise NotFoundError("phase not found", op="resolve_scope", phase=phase, festival=festival_dir)

    if sequence is None:
        return ApplyScope(festival_path=festival_dir, phase_path=phase_dir)

    sequence_candidate = Path(sequence)
    if sequence_candidate.is_absolute():
        sequence_dir = sequence_candidate
    elif phase_dir is not None and len(sequence_candidate.parts) == 1:
        sequence_dir = phase_dir / sequence_candidate
    else:
        sequence_dir = festival_dir / sequence_candidate
    if not sequence_dir.is_dir():
        raise NotFoundError("sequence not found", op="resolve_scope", sequence=sequence, festival=festival_dir)
    return ApplyScope(festival_path=festival_dir, phase_path=sequence_dir.parent, sequence_path=sequence_dir)


def _load_scope_policy(
    scope: ApplyScope,
    merger: ConfigMerger,
    policy_name: str | None,
    cancel: CancelToken | None,
) -> MergedPolicy:
    if scope.sequence_path is not None and scope.phase_path is not None:
        return merger.load_for_sequence(
            scope.festival_path, scope.phase_path, scope.sequence_path, policy_name=policy_name, cancel=cancel
        )
    if scope.phase_path is not None:
        return merger.load_for_phase(scope.festival_path, scope.phase_path, policy_name=policy_name, cancel=cancel)
    return merger.load_for_festival(scope.festival_path, policy_name=policy_name, cancel=cancel)


def _candidate_sequences(
    scope: ApplyScope,
    policy: MergedPolicy,
    markers: list[str],
    cancel: CancelToken | None,
    logger: logging.Logger,
) -> tuple[list[SequenceInfo], list[str]]:
    if scope.sequence_path is not None:
        info = sequence_info_for(scope.sequence_path, logger=logger)
        if not info.phase_type:
            return [], [f"Sequence {info.name}: phase type of {info.phase_name} could not be determined"]
        return [info], []

    phase_paths = [scope.phase_path] if scope.phase_path is not None else None
    discovered = discover_sequences(
        scope.festival_path,
        policy.exclude_patterns,
        non_implementation_markers=markers,
        phase_paths=phase_paths,
        cancel=cancel,
        logger=logger,
    )
    return discovered.sequences, list(discovered.warnings)


def run_apply(
    scope: ApplyScope,
    *,
    merger: ConfigMerger,
    generator: TaskGenerator,
    policy_name: str | None = None,
    options: GenerateOptions | None = None,
    non_implementation_markers: Iterable[str] = DEFAULT_NON_IMPLEMENTATION_MARKERS,
    cancel: CancelToken | None = None,
    logger: logging.Logger | None = None,
) -> ApplyReport:
    """Apply the effective gate policy to every eligible sequence in scope.

    The scope-level policy drives discovery; each sequence is then resolved
    on its own so phase and sequence overrides (including their exclude
    patterns) take effect. Failures inside one sequence become warnings.
    Root resolution and unknown named policies are fatal.
    """

    effective_logger = logger or LOGGER
    run_options = options or GenerateOptions()
    check_cancelled(cancel, "run_apply")

    scope_policy = _load_scope_policy(scope, merger, policy_name, cancel)
    report = ApplyReport(scope=scope, policy=scope_policy, dry_run=run_options.dry_run)
    report.warnings.extend(f"Invalid config {issue.path}: {issue.message}" for issue in scope_policy.issues)

    if policy_name is None and not scope_policy.fest_yaml_enabled:
        report.warnings.append("Quality gates are disabled in fest.yaml")
        return report

    sequences, discovery_warnings = _candidate_sequences(
        scope, scope_policy, list(non_implementation_markers), cancel, effective_logger
    )
    report.warnings.extend(discovery_warnings)
    if not sequences:
        report.warnings.append("No implementation sequences found")
        return report

    any_active = False
    any_empty = False
    for sequence in sequences:
        check_cancelled(cancel, "run_apply")
        try:
            if scope.sequence_path is not None:
                sequence_policy = scope_policy
            else:
                sequence_policy = merger.load_for_sequence(
                    scope.festival_path,
                    sequence.phase_path,
                    sequence.path,
                    policy_name=policy_name,
                    cancel=cancel,
                )
                report.warnings.extend(
                    f"Invalid config {issue.path}: {issue.message}"
                    for issue in sequence_policy.issues
                    if issue not in scope_policy.issues
                )
            if scope.sequence_path is None and is_excluded(sequence.name, sequence_policy.exclude_patterns):
                effective_logger.info("apply.sequence_excluded sequence=%s", sequence.path)
                continue
            active_gates = sequence_policy.active_gates()
            if not active_gates:
                effective_logger.info("apply.sequence_no_gates sequence=%s", sequence.path)
                any_empty = True
                continue

            any_active = True
            report.summary.total_sequences += 1
            results, warnings = generator.generate_for_sequence(
                sequence.path,
                active_gates,
                run_options,
                cancel=cancel,
            )
        except CancelledError:
            raise
        except GateError as exc:
            effective_logger.warning("apply.sequence_failed sequence=%s error=%s", sequence.path, exc)
            report.warnings.append(f"Sequence {sequence.name}: {exc}")
            continue

        report.summary.record_sequence(results)
        report.results.extend(results)
        report.warnings.extend(warnings)

    if any_empty and not any_active:
        report.warnings.append("No active quality gates configured")

    effective_logger.info(
        "apply.summary festival=%s dry_run=%s sequences=%s updated=%s created=%s skipped=%s existing=%s warnings=%s",
        scope.festival_path,
        run_options.dry_run,
        report.summary.total_sequences,
        report.summary.sequences_updated,
        report.summary.files_created,
        report.summary.files_skipped,
        report.summary.files_existing,
        len(report.warnings),
    )
    return report


def validate_festival(
    festival_path: Path,
    *,
    merger: ConfigMerger,
    policy_name: str | None = None,
    cancel: CancelToken | None = None,
    logger: logging.Logger | None = None,
) -> list[ConfigIssue]:
    """Resolve every phase and sequence of a festival and collect configuration issues.

    Issues from the named-policy registry are included. Each issue is
    reported once even when several resolutions hit the same file.
    """

    effective_logger = logger or LOGGER
    check_cancelled(cancel, "validate_festival")
    festival_dir = Path(festival_path)

    collected: list[ConfigIssue] = []
    seen: set[tuple[str, str]] = set()

    def _collect(issues: Iterable[ConfigIssue]) -> None:
        for issue in issues:
            key = (str(issue.path), issue.message)
            if key in seen:
                continue
            seen.add(key)
            collected.append(issue)

    if merger.registry is not None:
        _collect(merger.registry.issues)
    _collect(merger.load_for_festival(festival_dir, policy_name=policy_name, cancel=cancel).issues)
    for phase_path in list_phase_dirs(festival_dir):
        check_cancelled(cancel, "validate_festival")
        _collect(merger.load_for_phase(festival_dir, phase_path, policy_name=policy_name, cancel=cancel).issues)
        for sequence_path in list_sequence_dirs(phase_path):
            _collect(
                merger.load_for_sequence(
                    festival_dir, phase_path, sequence_path, policy_name=policy_name, cancel=cancel
                ).issues
            )

    effective_logger.info("validate.summary festival=%s issues=%s", festival_dir, len(collected))
    return collected


def apply_gates(
    festival_path: Path,
    *,
    merger: ConfigMerger,
    generator: TaskGenerator,
    phase: str | Path | None = None,
    sequence: str | Path | None = None,
    policy_name: str | None = None,
    options: GenerateOptions | None = None,
    non_implementation_markers: Iterable[str] = DEFAULT_NON_IMPLEMENTATION_MARKERS,
    cancel: CancelToken | None = None,
    logger: logging.Logger | None = None,
) -> ApplyReport:
    """Resolve the target scope under ``festival_path`` and run :func:`run_apply`."""

    check_cancelled(cancel, "apply_gates")
    scope = resolve_scope(festival_path, phase=phase, sequence=sequence)
    return run_apply(
        scope,
        merger=merger,
        generator=generator,
        policy_name=policy_name,
        options=options,
        non_implementation_markers=non_implementation_markers,
        cancel=cancel,
        logger=logger,
    )
