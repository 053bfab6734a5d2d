"""Gate policy model, named policy registry and hierarchical merge."""

from fest_gates.policy.builtin import (
    BUILTIN_POLICIES,
    DEFAULT_EXCLUDE_PATTERNS,
    DEFAULT_POLICY_NAME,
    default_policy,
    lightweight_policy,
    strict_policy,
)
from fest_gates.policy.merger import ConfigMerger, add_or_replace_gate, apply_override, tombstone_gate
from fest_gates.policy.models import (
    ConfigIssue,
    GateTask,
    MergedPolicy,
    NamedPolicy,
    PolicyInfo,
    PolicyLevel,
    PolicySource,
)
from fest_gates.policy.patterns import is_excluded, matches_pattern, merge_patterns, validate_exclude_pattern
from fest_gates.policy.registry import PolicyRegistry

__all__ = [
    "BUILTIN_POLICIES",
    "DEFAULT_EXCLUDE_PATTERNS",
    "DEFAULT_POLICY_NAME",
    "default_policy",
    "strict_policy",
    "lightweight_policy",
    "ConfigMerger",
    "apply_override",
    "add_or_replace_gate",
    "tombstone_gate",
    "ConfigIssue",
    "GateTask",
    "MergedPolicy",
    "NamedPolicy",
    "PolicyInfo",
    "PolicyLevel",
    "PolicySource",
    "is_excluded",
    "matches_pattern",
    "merge_patterns",
    "validate_exclude_pattern",
    "PolicyRegistry",
]
