"""Shared fixtures that build festival trees on disk."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import pytest
import yaml


class FestivalBuilder:
    """Writes a festival directory layout under a temporary root."""

    def __init__(self, root: Path) -> None:
        self.root = root
        self.root.mkdir(parents=True, exist_ok=True)
        (self.root / "FESTIVAL_OVERVIEW.md").write_text("# Festival\n", encoding="utf-8")

    def fest_yaml(self, payload: dict[str, Any]) -> Path:
        return self._dump(self.root / "fest.yaml", payload)

    def phase(self, name: str, *, phase_type: str | None = None) -> Path:
        path = self.root / name
        path.mkdir(parents=True, exist_ok=True)
        if phase_type is not None:
            (path / "PHASE_GOAL.md").write_text(
                f"---\nfest_phase_type: {phase_type}\n---\n# Phase goal\n",
                encoding="utf-8",
            )
        return path

    def sequence(self, phase_name: str, name: str, *, tasks: tuple[str, ...] = ()) -> Path:
        path = self.root / phase_name / name
        path.mkdir(parents=True, exist_ok=True)
        (path / "SEQUENCE_GOAL.md").write_text("# Sequence goal\n", encoding="utf-8")
        for task in tasks:
            (path / task).write_text(f"# {task}\n", encoding="utf-8")
        return path

    def override(self, directory: Path, payload: dict[str, Any]) -> Path:
        return self._dump(directory / ".fest.gates.yml", payload)

    def festival_override(self, payload: dict[str, Any]) -> Path:
        return self._dump(self.root / ".festival" / "gates.yml", payload)

    @staticmethod
    def _dump(path: Path, payload: dict[str, Any]) -> Path:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(yaml.safe_dump(payload, sort_keys=False), encoding="utf-8")
        return path


def gate(gate_id: str, template: str = "", **extra: Any) -> dict[str, Any]:
    return {"id": gate_id, "template": template or gate_id.upper(), **extra}


@pytest.fixture
def festival(tmp_path: Path) -> FestivalBuilder:
    return FestivalBuilder(tmp_path / "festivals" / "active" / "demo-festival")


@pytest.fixture
def gate_entry():
    return gate
