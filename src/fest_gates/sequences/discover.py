"""Discover gate-eligible sequences in a festival tree."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable

from fest_gates.cancel import CancelToken, check_cancelled
from fest_gates.config import DEFAULT_NON_IMPLEMENTATION_MARKERS
from fest_gates.errors import GateIOError, NotFoundError
from fest_gates.policy.patterns import is_excluded
from fest_gates.sequences.phase_type import IMPLEMENTATION_PHASE_TYPE, detect_phase_type

LOGGER = logging.getLogger(__name__)

PHASE_DIR_PATTERN = re.compile(r"^\d{3}_")
SEQUENCE_DIR_PATTERN = re.compile(r"^\d{2}_")
FESTIVAL_ROOT_MARKERS: tuple[str, ...] = ("FESTIVAL_OVERVIEW.md", "fest.yaml", "FESTIVAL_GOAL.md")


@dataclass(frozen=True, slots=True)
class SequenceInfo:
    """A sequence selected for gate application."""

    path: Path
    phase_path: Path
    name: str
    phase_type: str
    phase_name: str = ""


@dataclass(frozen=True, slots=True)
class DiscoveryResult:
    """Discovered sequences plus non-fatal warnings and skip bookkeeping."""

    sequences: list[SequenceInfo]
    warnings: list[str] = field(default_factory=list)
    skipped_phases: list[str] = field(default_factory=list)
    excluded_sequences: list[str] = field(default_factory=list)


def is_phase_dir(name: str) -> bool:
    return bool(PHASE_DIR_PATTERN.match(name))


def is_sequence_dir(name: str) -> bool:
    return bool(SEQUENCE_DIR_PATTERN.match(name))


def is_non_implementation_phase(phase_name: str, markers: Iterable[str] = DEFAULT_NON_IMPLEMENTATION_MARKERS) -> bool:
    """Return whether a phase name contains any non-implementation marker (case-insensitive)."""

    lowered = phase_name.lower()
    return any(marker.lower() in lowered for marker in markers if marker)


def _list_dirs(parent: Path, predicate) -> list[Path]:
    try:
        entries = sorted(parent.iterdir())
    except OSError as exc:
        raise GateIOError("failed to list directory", op="discover", path=parent, error=exc) from exc
    return [entry for entry in entries if entry.is_dir() and predicate(entry.name)]


def list_phase_dirs(festival_root: Path) -> list[Path]:
    """Return phase directories (``NNN_*``) sorted by name."""

    return _list_dirs(festival_root, is_phase_dir)


def list_sequence_dirs(phase_path: Path) -> list[Path]:
    """Return sequence directories (``NN_*``) sorted by name."""

    return _list_dirs(phase_path, is_sequence_dir)


def sequence_info_for(sequence_path: Path, logger: logging.Logger | None = None) -> SequenceInfo:
    """Describe one explicitly targeted sequence, detecting its phase type."""

    phase_path = sequence_path.parent
    return SequenceInfo(
        path=sequence_path,
        phase_path=phase_path,
        name=sequence_path.name,
        phase_type=detect_phase_type(phase_path, logger=logger),
        phase_name=phase_path.name,
    )


def discover_sequences(
    festival_root: Path,
    exclude_patterns: Iterable[str],
    *,
    non_implementation_markers: Iterable[str] = DEFAULT_NON_IMPLEMENTATION_MARKERS,
    phase_paths: Iterable[Path] | None = None,
    cancel: CancelToken | None = None,
    logger: logging.Logger | None = None,
) -> DiscoveryResult:
    """Enumerate implementation sequences that gates should be applied to.

    Non-implementation phases are skipped by name, sequences matching an
    exclude pattern are dropped, and a phase whose type cannot be resolved is
    reported as a warning without stopping discovery of the other phases.
    ``phase_paths`` restricts discovery to the given phases.
    """

    effective_logger = logger or LOGGER
    check_cancelled(cancel, "discover_sequences")
    if not festival_root.is_dir():
        raise NotFoundError("festival directory not found", op="discover_sequences", path=festival_root)

    patterns = list(exclude_patterns)
    markers = list(non_implementation_markers)
    phases = list_phase_dirs(festival_root) if phase_paths is None else [Path(path) for path in phase_paths]

    sequences: list[SequenceInfo] = []
    warnings: list[str] = []
    skipped_phases: list[str] = []
    excluded_sequences: list[str] = []

    for phase_path in phases:
        check_cancelled(cancel, "discover_sequences")
        phase_name = phase_path.name
        if is_non_implementation_phase(phase_name, markers):
            effective_logger.info("discover.phase_skipped phase=%s reason=non_implementation", phase_name)
            skipped_phases.append(phase_name)
            continue

        phase_type = detect_phase_type(phase_path, logger=effective_logger)
        if not phase_type:
            message = f"Phase {phase_name}: phase type could not be determined; set fest_phase_type in PHASE_GOAL.md"
            effective_logger.warning("discover.phase_type_unresolved phase=%s", phase_name)
            warnings.append(message)
            skipped_phases.append(phase_name)
            continue
        if phase_type != IMPLEMENTATION_PHASE_TYPE:
            effective_logger.info("discover.phase_skipped phase=%s phase_type=%s", phase_name, phase_type)
            skipped_phases.append(phase_name)
            continue

        try:
            sequence_dirs = list_sequence_dirs(phase_path)
        except GateIOError as exc:
            effective_logger.warning("discover.phase_unreadable phase=%s error=%s", phase_name, exc)
            warnings.append(f"Phase {phase_name}: {exc}")
            continue

        for sequence_path in sequence_dirs:
            if is_excluded(sequence_path.name, patterns):
                excluded_sequences.append(sequence_path.name)
                continue
            sequences.append(
                SequenceInfo(
                    path=sequence_path,
                    phase_path=phase_path,
                    name=sequence_path.name,
                    phase_type=phase_type,
                    phase_name=phase_name,
                )
            )

    effective_logger.info(
        "discover.summary festival=%s sequences=%s skipped_phases=%s excluded_sequences=%s",
        festival_root,
        len(sequences),
        len(skipped_phases),
        len(excluded_sequences),
    )
    return DiscoveryResult(
        sequences=sequences,
        warnings=warnings,
        skipped_phases=skipped_phases,
        excluded_sequences=excluded_sequences,
    )


def find_festival_root(start: Path) -> Path:
    """Walk upward from ``start`` to the nearest directory holding a festival marker file."""

    current = start.resolve()
    for candidate in (current, *current.parents):
        if any((candidate / marker).is_file() for marker in FESTIVAL_ROOT_MARKERS):
            return candidate
    raise NotFoundError("festival root not found", op="find_festival_root", start_path=start)
