"""Typed models for gate policies and their merged, per-node resolution."""

from __future__ import annotations

import re
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Literal

PolicyLevel = Literal["builtin", "named-policy", "global", "festival", "phase", "sequence"]
RegistrySource = Literal["builtin", "global", "user", "festival"]

GATE_ID_PATTERN = re.compile(r"^[A-Za-z0-9_-]+$")


def is_safe_gate_id(gate_id: str) -> bool:
    """Gate IDs become file names, so only letters, digits, underscores and hyphens are allowed."""

    return GATE_ID_PATTERN.fullmatch(gate_id) is not None


@dataclass(frozen=True, slots=True)
class PolicySource:
    """Where a gate entry or exclude pattern originated."""

    level: PolicyLevel
    path: Path | None = None
    name: str = ""

    def describe(self) -> str:
        location = str(self.path) if self.path is not None else "built-in"
        label = f"{self.level}:{self.name}" if self.name else self.level
        return f"{label} ({location})"


@dataclass(frozen=True, slots=True)
class GateTask:
    """One quality gate task with its provenance.

    ``removed`` is a tombstone: removed gates stay in the merged list so their
    origin can still be inspected. ``source`` is never rewritten by a removal,
    the removing level is kept in ``removed_by`` instead.
    """

    id: str
    template: str = ""
    name: str = ""
    enabled: bool = True
    removed: bool = False
    source: PolicySource | None = None
    removed_by: PolicySource | None = None
    customizations: dict[str, Any] = field(default_factory=dict)

    @property
    def active(self) -> bool:
        return self.enabled and not self.removed

    @property
    def display_name(self) -> str:
        if self.name:
            return self.name
        return self.id.replace("_", " ").title()

    def with_source(self, source: PolicySource) -> "GateTask":
        return replace(self, source=source)

    def tombstoned(self, removed_by: PolicySource) -> "GateTask":
        return replace(self, removed=True, removed_by=removed_by)

    def as_dict(self) -> dict[str, object]:
        """Return a JSON-friendly mapping including provenance."""

        return {
            "id": self.id,
            "template": self.template,
            "name": self.name,
            "enabled": self.enabled,
            "removed": self.removed,
            "source": _source_dict(self.source),
            "removed_by": _source_dict(self.removed_by),
        }


@dataclass(frozen=True, slots=True)
class ConfigIssue:
    """A configuration document that could not be read, parsed or validated."""

    level: str
    path: Path
    message: str

    def as_dict(self) -> dict[str, str]:
        return {"level": self.level, "path": str(self.path), "message": self.message}


@dataclass(slots=True)
class MergedPolicy:
    """Effective gate policy for one festival, phase or sequence."""

    gates: list[GateTask] = field(default_factory=list)
    sources: list[PolicySource] = field(default_factory=list)
    level: PolicyLevel = "builtin"
    fest_yaml_enabled: bool = True
    exclude_patterns: list[str] = field(default_factory=list)
    issues: list[ConfigIssue] = field(default_factory=list)

    def active_gates(self) -> list[GateTask]:
        """Return enabled, non-removed gates in list order."""

        return [gate for gate in self.gates if gate.active]

    def removed_gates(self) -> list[GateTask]:
        return [gate for gate in self.gates if gate.removed]

    def gate(self, gate_id: str) -> GateTask | None:
        for gate in self.gates:
            if gate.id == gate_id:
                return gate
        return None

    def gate_ids(self) -> list[str]:
        return [gate.id for gate in self.gates]

    def as_dict(self) -> dict[str, object]:
        return {
            "level": self.level,
            "fest_yaml_enabled": self.fest_yaml_enabled,
            "gates": [gate.as_dict() for gate in self.gates],
            "active_gates": [gate.id for gate in self.active_gates()],
            "exclude_patterns": list(self.exclude_patterns),
            "sources": [_source_dict(source) for source in self.sources],
            "issues": [issue.as_dict() for issue in self.issues],
        }


@dataclass(frozen=True, slots=True)
class NamedPolicy:
    """Complete, self-contained gate configuration selectable by name."""

    name: str
    description: str
    source: PolicySource
    exclude_patterns: list[str] = field(default_factory=list)
    tasks: list[GateTask] = field(default_factory=list)


@dataclass(frozen=True, slots=True)
class PolicyInfo:
    """Listing metadata for a registered named policy."""

    name: str
    source: RegistrySource
    description: str = ""
    path: Path | None = None

    def as_dict(self) -> dict[str, str | None]:
        return {
            "name": self.name,
            "source": self.source,
            "description": self.description,
            "path": str(self.path) if self.path is not None else None,
        }


def _source_dict(source: PolicySource | None) -> dict[str, str | None] | None:
    if source is None:
        return None
    return {
        "level": source.level,
        "path": str(source.path) if source.path is not None else None,
        "name": source.name,
    }
