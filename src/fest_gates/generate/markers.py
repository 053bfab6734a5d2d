"""Managed-file markers kept in the YAML frontmatter of generated gate tasks."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml

from fest_gates.errors import GateError
from fest_gates.policy.documents import FRONTMATTER_DELIMITER, split_frontmatter

MARKER_VERSION = "1.0"
MARKER_KEYS: tuple[str, ...] = ("fest_managed", "fest_gate_id", "fest_version")


@dataclass(frozen=True, slots=True)
class FileMarkers:
    """Marker fields identifying a file written by the generator."""

    fest_managed: bool = False
    fest_gate_id: str = ""
    fest_version: str = ""


def parse_markers(text: str) -> FileMarkers | None:
    """Extract markers from document text; ``None`` when there is no usable frontmatter."""

    try:
        header, _ = split_frontmatter(text)
    except GateError:
        return None
    if not header:
        return None
    return FileMarkers(
        fest_managed=bool(header.get("fest_managed", False)),
        fest_gate_id=str(header.get("fest_gate_id") or ""),
        fest_version=str(header.get("fest_version") or ""),
    )


def read_markers(path: Path) -> FileMarkers | None:
    """Read markers from a file on disk; unreadable files have no markers."""

    try:
        text = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError):
        return None
    return parse_markers(text)


def _render_frontmatter(header: dict[str, Any], body: str) -> str:
    rendered = yaml.safe_dump(header, sort_keys=False, default_flow_style=False)
    return f"{FRONTMATTER_DELIMITER}\n{rendered}{FRONTMATTER_DELIMITER}\n{body}"


def add_markers(content: str, gate_id: str) -> str:
    """Return content with managed markers merged into (or prepended as) frontmatter."""

    markers = {"fest_managed": True, "fest_gate_id": gate_id, "fest_version": MARKER_VERSION}
    try:
        header, body = split_frontmatter(content)
    except GateError:
        header, body = None, content
    if header is None:
        return _render_frontmatter(markers, "\n" + content)
    merged = {key: value for key, value in header.items() if key not in MARKER_KEYS}
    merged.update(markers)
    return _render_frontmatter(merged, body)
