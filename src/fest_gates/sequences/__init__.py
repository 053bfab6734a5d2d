"""Festival tree walking: phase-type detection and sequence discovery."""

from fest_gates.sequences.discover import (
    DiscoveryResult,
    SequenceInfo,
    discover_sequences,
    find_festival_root,
    is_non_implementation_phase,
    is_phase_dir,
    is_sequence_dir,
    list_phase_dirs,
    list_sequence_dirs,
    sequence_info_for,
)
from fest_gates.sequences.phase_type import (
    IMPLEMENTATION_PHASE_TYPE,
    detect_phase_type,
    infer_phase_type_from_name,
    normalize_phase_type,
)

__all__ = [
    "DiscoveryResult",
    "SequenceInfo",
    "discover_sequences",
    "find_festival_root",
    "is_non_implementation_phase",
    "is_phase_dir",
    "is_sequence_dir",
    "list_phase_dirs",
    "list_sequence_dirs",
    "sequence_info_for",
    "IMPLEMENTATION_PHASE_TYPE",
    "detect_phase_type",
    "infer_phase_type_from_name",
    "normalize_phase_type",
]
