"""Realize a resolved gate list as task files inside one sequence."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable

from fest_gates.cancel import CancelToken, check_cancelled
from fest_gates.errors import GateIOError, NotFoundError
from fest_gates.generate.markers import read_markers
from fest_gates.generate.models import (
    REASON_MODIFIED,
    REASON_OVERWRITTEN,
    REASON_UP_TO_DATE,
    GenerateOptions,
    GenerateResult,
)
from fest_gates.generate.renderer import DefaultGateRenderer, GateRenderer
from fest_gates.policy.models import GateTask, is_safe_gate_id
from fest_gates.utils.paths import write_text_atomically

LOGGER = logging.getLogger(__name__)

TASK_FILE_SUFFIX = ".md"
SEQUENCE_GOAL_FILE = "SEQUENCE_GOAL.md"
TASK_NUMBER_PATTERN = re.compile(r"^(\d{2})_")
TASK_FILE_PATTERN = re.compile(r"^(\d{2})_(.+)\.md$")


def parse_task_number(file_name: str) -> int:
    """Return the two-digit task number prefix of a file name, or 0."""

    match = TASK_NUMBER_PATTERN.match(file_name)
    return int(match.group(1)) if match else 0


def format_task_file_name(number: int, gate_id: str) -> str:
    return f"{number:02d}_{gate_id}{TASK_FILE_SUFFIX}"


@dataclass(frozen=True, slots=True)
class SequenceLayout:
    """Existing task files of a sequence split into regular tasks and gate files."""

    max_task_number: int
    gate_files: dict[str, Path]


def scan_sequence(sequence_path: Path, gate_ids: Iterable[str]) -> SequenceLayout:
    """Classify the markdown task files of a sequence.

    A file belongs to gate ``g`` when its frontmatter carries
    ``fest_gate_id: g`` or its name is ``NN_g.md``. Any other managed file is
    a gate file of some other policy and does not count as a regular task.
    """

    wanted = set(gate_ids)
    try:
        entries = sorted(sequence_path.iterdir())
    except OSError as exc:
        raise GateIOError("failed to read sequence directory", op="scan_sequence", path=sequence_path, error=exc) from exc

    max_number = 0
    gate_files: dict[str, Path] = {}
    for entry in entries:
        if not entry.is_file() or entry.suffix != TASK_FILE_SUFFIX or entry.name == SEQUENCE_GOAL_FILE:
            continue

        markers = read_markers(entry)
        if markers is not None and markers.fest_gate_id in wanted:
            gate_files.setdefault(markers.fest_gate_id, entry)
            continue
        name_match = TASK_FILE_PATTERN.match(entry.name)
        if name_match and name_match.group(2) in wanted:
            gate_files.setdefault(name_match.group(2), entry)
            continue
        if markers is not None and markers.fest_managed:
            continue
        max_number = max(max_number, parse_task_number(entry.name))

    return SequenceLayout(max_task_number=max_number, gate_files=gate_files)


def _read_exact(path: Path) -> str:
    with path.open("r", encoding="utf-8", newline="") as handle:
        return handle.read()


class TaskGenerator:
    """Create, skip or overwrite gate task files for one sequence at a time."""

    def __init__(self, renderer: GateRenderer | None = None, *, logger: logging.Logger | None = None) -> None:
        self.renderer = renderer or DefaultGateRenderer()
        self._logger = logger or LOGGER

    def generate_for_sequence(
        self,
        sequence_path: Path,
        gates: Iterable[GateTask],
        options: GenerateOptions | None = None,
        *,
        cancel: CancelToken | None = None,
    ) -> tuple[list[GenerateResult], list[str]]:
        """Generate gate task files for the active gates, in list order.

        Gate files are numbered after the highest regular task number. Dry runs
        return exactly the results a real run would produce without touching
        the filesystem. Read and write failures become warnings and the
        remaining gates are still processed.
        """

        op = "TaskGenerator.generate_for_sequence"
        check_cancelled(cancel, op)
        run_options = options or GenerateOptions()
        sequence_dir = Path(sequence_path)
        if not sequence_dir.is_dir():
            raise NotFoundError("sequence directory not found", op=op, path=sequence_dir)

        results: list[GenerateResult] = []
        warnings: list[str] = []
        active: list[GateTask] = []
        for gate in gates:
            if not gate.active:
                continue
            if not is_safe_gate_id(gate.id):
                self._logger.warning("generate.gate_id_rejected sequence=%s gate_id=%r", sequence_dir, gate.id)
                warnings.append(f"Gate {gate.id!r} skipped: ID is not usable as a file name")
                continue
            active.append(gate)
        layout = scan_sequence(sequence_dir, [gate.id for gate in active])

        for index, gate in enumerate(active):
            existing = layout.gate_files.get(gate.id)
            if existing is not None:
                target = existing
                number = parse_task_number(existing.name) or layout.max_task_number + index + 1
            else:
                number = layout.max_task_number + index + 1
                target = sequence_dir / format_task_file_name(number, gate.id)

            content = self.renderer.render(gate, task_number=number, sequence_path=sequence_dir)
            result, warning = self._realize(target, gate, content, run_options)
            if warning is not None:
                warnings.append(warning)
            if result is not None:
                results.append(result)

        self._logger.debug(
            "generate.sequence sequence=%s gates=%s results=%s warnings=%s dry_run=%s",
            sequence_dir,
            len(active),
            len(results),
            len(warnings),
            run_options.dry_run,
        )
        return results, warnings

    def _realize(
        self,
        target: Path,
        gate: GateTask,
        content: str,
        options: GenerateOptions,
    ) -> tuple[GenerateResult | None, str | None]:
        if not target.exists():
            warning = self._write(target, content, options)
            if warning is not None:
                return None, warning
            return GenerateResult(type="create", path=target, task_id=gate.id, template=gate.template), None

        try:
            current = _read_exact(target)
        except (OSError, UnicodeDecodeError) as exc:
            self._logger.warning("generate.read_failed path=%s error=%s", target, exc)
            return None, f"Failed to read {target}: {exc}"

        if current == content:
            return (
                GenerateResult(
                    type="exists",
                    path=target,
                    reason=REASON_UP_TO_DATE,
                    task_id=gate.id,
                    template=gate.template,
                ),
                None,
            )
        if not options.force:
            return (
                GenerateResult(
                    type="skip",
                    path=target,
                    reason=REASON_MODIFIED,
                    task_id=gate.id,
                    template=gate.template,
                ),
                None,
            )

        warning = self._write(target, content, options)
        if warning is not None:
            return None, warning
        return (
            GenerateResult(
                type="create",
                path=target,
                reason=REASON_OVERWRITTEN,
                task_id=gate.id,
                template=gate.template,
            ),
            None,
        )

    def _write(self, target: Path, content: str, options: GenerateOptions) -> str | None:
        if options.dry_run:
            return None
        try:
            write_text_atomically(content, target)
        except OSError as exc:
            self._logger.warning("generate.write_failed path=%s error=%s", target, exc)
            return f"Failed to write {target}: {exc}"
        return None
