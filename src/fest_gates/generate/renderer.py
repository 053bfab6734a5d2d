"""Gate task body rendering.

The generator only decides which gate goes where; the body comes from a
``GateRenderer``. ``DefaultGateRenderer`` reads ``<template>.md`` from the
configured template directories and falls back to a generic checklist.
Output must be deterministic so regeneration can detect hand edits.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterable, Protocol

from fest_gates.generate.markers import add_markers
from fest_gates.policy.models import GateTask

LOGGER = logging.getLogger(__name__)

GATES_TEMPLATE_PREFIX = "gates/"


class GateRenderer(Protocol):
    def render(self, gate: GateTask, *, task_number: int, sequence_path: Path) -> str:
        ...


def default_gate_body(gate: GateTask) -> str:
    """Generic checklist body used when no template file is found."""

    name = gate.display_name
    return f"""# Task: {name}

## Objective

{name}

## Requirements

- [ ] Complete this quality gate task
- [ ] Verify all requirements are met
- [ ] Document any findings

## Definition of Done

- [ ] Task completed successfully
- [ ] All checks pass
- [ ] Ready to proceed

## Notes

[Add notes here]
"""


class DefaultGateRenderer:
    """Render gate bodies from template files, adding managed-file markers."""

    def __init__(self, template_dirs: Iterable[Path] = (), *, logger: logging.Logger | None = None) -> None:
        self.template_dirs = [Path(directory) for directory in template_dirs]
        self._logger = logger or LOGGER

    def _template_candidates(self, template: str) -> list[Path]:
        name = template[len(GATES_TEMPLATE_PREFIX):] if template.startswith(GATES_TEMPLATE_PREFIX) else template
        candidates: list[Path] = []
        for directory in self.template_dirs:
            candidates.append(directory / f"{name}.md")
            candidates.append(directory / "gates" / f"{name}.md")
        return candidates

    def load_template(self, gate: GateTask) -> str | None:
        if not gate.template:
            return None
        for candidate in self._template_candidates(gate.template):
            if not candidate.is_file():
                continue
            try:
                return candidate.read_text(encoding="utf-8")
            except OSError as exc:
                self._logger.warning("render.template_unreadable path=%s error=%s", candidate, exc)
        return None

    def render(self, gate: GateTask, *, task_number: int, sequence_path: Path) -> str:
        body = self.load_template(gate)
        if body is None:
            body = default_gate_body(gate)
        return add_markers(body, gate.id)
