"""Gate task file generation and festival-wide apply orchestration."""

from fest_gates.generate.generator import TaskGenerator, format_task_file_name, parse_task_number, scan_sequence
from fest_gates.generate.markers import FileMarkers, add_markers, parse_markers, read_markers
from fest_gates.generate.models import GenerateOptions, GenerateResult, GenerateSummary
from fest_gates.generate.pipeline import (
    ApplyReport,
    ApplyScope,
    apply_gates,
    resolve_scope,
    run_apply,
    validate_festival,
)
from fest_gates.generate.renderer import DefaultGateRenderer, GateRenderer, default_gate_body

__all__ = [
    "TaskGenerator",
    "format_task_file_name",
    "parse_task_number",
    "scan_sequence",
    "FileMarkers",
    "add_markers",
    "parse_markers",
    "read_markers",
    "GenerateOptions",
    "GenerateResult",
    "GenerateSummary",
    "ApplyReport",
    "ApplyScope",
    "apply_gates",
    "resolve_scope",
    "run_apply",
    "validate_festival",
    "DefaultGateRenderer",
    "GateRenderer",
    "default_gate_body",
]
