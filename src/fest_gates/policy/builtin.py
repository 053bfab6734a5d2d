"""Built-in named policies shipped with the engine."""

from __future__ import annotations

from typing import Callable

from fest_gates.policy.models import GateTask, NamedPolicy, PolicySource

DEFAULT_POLICY_NAME = "default"

DEFAULT_EXCLUDE_PATTERNS: tuple[str, ...] = (
    "*_planning",
    "*_research",
    "*_requirements",
    "*_docs",
    "*_design",
    "*_scope",
    "*_validation",
    "*_signoff",
    "*_review",
    "*_analysis",
    "*_assessment",
    "*_discovery",
)


def _builtin_source(name: str) -> PolicySource:
    return PolicySource(level="builtin", path=None, name=name)


def _task(gate_id: str, template: str, name: str, source: PolicySource) -> GateTask:
    return GateTask(id=gate_id, template=template, name=name, enabled=True, source=source)


def default_policy() -> NamedPolicy:
    """Standard gates: testing, code review, iteration."""

    source = _builtin_source(DEFAULT_POLICY_NAME)
    return NamedPolicy(
        name=DEFAULT_POLICY_NAME,
        description="Standard quality gates: testing, code review, iteration",
        source=source,
        exclude_patterns=list(DEFAULT_EXCLUDE_PATTERNS),
        tasks=[
            _task("testing_and_verify", "QUALITY_GATE_TESTING", "Testing and Verification", source),
            _task("code_review", "QUALITY_GATE_REVIEW", "Code Review", source),
            _task("review_results_iterate", "QUALITY_GATE_ITERATE", "Review Results and Iterate", source),
        ],
    )


def strict_policy() -> NamedPolicy:
    """Default gates plus a security audit and a performance check."""

    source = _builtin_source("strict")
    return NamedPolicy(
        name="strict",
        description="Strict code review with security audit and performance check",
        source=source,
        exclude_patterns=list(DEFAULT_EXCLUDE_PATTERNS),
        tasks=[
            _task("testing_and_verify", "QUALITY_GATE_TESTING", "Testing and Verification", source),
            _task("code_review", "QUALITY_GATE_REVIEW", "Code Review", source),
            _task("security_audit", "SECURITY_AUDIT", "Security Audit", source),
            _task("performance_check", "PERFORMANCE_CHECK", "Performance Check", source),
            _task("review_results_iterate", "QUALITY_GATE_ITERATE", "Review Results and Iterate", source),
        ],
    )


def lightweight_policy() -> NamedPolicy:
    """Minimal gates for research and exploration work."""

    source = _builtin_source("lightweight")
    return NamedPolicy(
        name="lightweight",
        description="Minimal gates for research and exploration phases",
        source=source,
        exclude_patterns=list(DEFAULT_EXCLUDE_PATTERNS),
        tasks=[
            _task("code_review", "QUALITY_GATE_REVIEW", "Code Review", source),
        ],
    )


BUILTIN_POLICIES: dict[str, Callable[[], NamedPolicy]] = {
    DEFAULT_POLICY_NAME: default_policy,
    "strict": strict_policy,
    "lightweight": lightweight_policy,
}
