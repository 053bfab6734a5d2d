"""Phase-type detection from PHASE_GOAL.md frontmatter or the phase directory name."""

from __future__ import annotations

import logging
from pathlib import Path

from fest_gates.errors import GateError
from fest_gates.policy.documents import load_phase_goal_frontmatter

LOGGER = logging.getLogger(__name__)

PHASE_GOAL_FILE = "PHASE_GOAL.md"
IMPLEMENTATION_PHASE_TYPE = "implementation"

_PHASE_TYPE_ALIASES: dict[str, str] = {
    "planning": "planning",
    "plan": "planning",
    "implementation": "implementation",
    "implement": "implementation",
    "build": "implementation",
    "research": "research",
    "discovery": "research",
    "review": "review",
    "qa": "review",
    "deployment": "non_coding_action",
    "deploy": "non_coding_action",
    "action": "non_coding_action",
    "non_coding_action": "non_coding_action",
}

# Checked in order; the first matching row wins.
_NAME_HINTS: tuple[tuple[tuple[str, ...], str], ...] = (
    (("planning", "plan"), "planning"),
    (("research", "discovery"), "research"),
    (("design",), "research"),
    (("review", "qa", "uat"), "review"),
    (
        ("deployment", "deploy", "release", "action", "operation", "config", "publish", "migrat"),
        "non_coding_action",
    ),
    (("implementation", "implement", "develop", "build", "foundation", "critical"), IMPLEMENTATION_PHASE_TYPE),
)


def normalize_phase_type(value: str) -> str:
    """Map declared phase-type spellings to the canonical names."""

    lowered = value.strip().lower()
    return _PHASE_TYPE_ALIASES.get(lowered, lowered)


def infer_phase_type_from_name(phase_name: str) -> str:
    """Infer a phase type from its directory name, or ``""`` when nothing matches."""

    lowered = phase_name.lower()
    for hints, phase_type in _NAME_HINTS:
        if any(hint in lowered for hint in hints):
            return phase_type
    return ""


def read_declared_phase_type(phase_path: Path, logger: logging.Logger | None = None) -> str:
    """Return ``fest_phase_type`` from the phase goal frontmatter, or ``""``."""

    effective_logger = logger or LOGGER
    goal_path = phase_path / PHASE_GOAL_FILE
    try:
        frontmatter = load_phase_goal_frontmatter(goal_path)
    except GateError as exc:
        effective_logger.warning("phase_type.goal_unreadable path=%s error=%s", goal_path, exc)
        return ""
    if frontmatter is None or not frontmatter.fest_phase_type.strip():
        return ""
    return normalize_phase_type(frontmatter.fest_phase_type)


def detect_phase_type(phase_path: Path, logger: logging.Logger | None = None) -> str:
    """Resolve a phase type: explicit declaration first, then the directory name."""

    declared = read_declared_phase_type(phase_path, logger=logger)
    if declared:
        return declared
    return infer_phase_type_from_name(phase_path.name)
