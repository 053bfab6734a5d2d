"""Hierarchical merge of gate policy across festival, phase and sequence levels."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path

from fest_gates.cancel import CancelToken, check_cancelled
from fest_gates.config import GatesConfig
from fest_gates.errors import GateError, NotFoundError, ValidationError
from fest_gates.policy.builtin import BUILTIN_POLICIES, DEFAULT_POLICY_NAME
from fest_gates.policy.documents import (
    FestivalConfigDocument,
    OverrideDocument,
    load_festival_config,
    load_override,
)
from fest_gates.policy.models import ConfigIssue, GateTask, MergedPolicy, NamedPolicy, PolicyLevel, PolicySource
from fest_gates.policy.patterns import merge_patterns
from fest_gates.policy.registry import GLOBAL_POLICY_DIR, PolicyRegistry

LOGGER = logging.getLogger(__name__)

DEFAULT_OVERRIDE_FILE_NAME = ".fest.gates.yml"
DEFAULT_FESTIVAL_CONFIG_FILE = "fest.yaml"
DEFAULT_FESTIVAL_OVERRIDE_FILE = ".festival/gates.yml"
GLOBAL_DEFAULT_POLICY_FILE = "default.yml"


@dataclass(frozen=True, slots=True)
class _OverrideLevel:
    level: PolicyLevel
    path: Path


def add_or_replace_gate(gates: list[GateTask], gate: GateTask) -> list[GateTask]:
    """Replace the entry with the same ID in place, or append at the end."""

    for index, existing in enumerate(gates):
        if existing.id == gate.id:
            updated = list(gates)
            updated[index] = gate
            return updated
    return [*gates, gate]


def tombstone_gate(gates: list[GateTask], gate_id: str, removed_by: PolicySource) -> list[GateTask]:
    """Mark every entry with the ID as removed; unknown IDs leave the list unchanged."""

    return [gate.tombstoned(removed_by) if gate.id == gate_id else gate for gate in gates]


def apply_override(merged: MergedPolicy, document: OverrideDocument, source: PolicySource) -> MergedPolicy:
    """Apply one level's override document to the accumulated policy.

    ``inherit: false`` drops the parent gates before ``append`` runs, so a
    ``remove`` naming a dropped ID has nothing to mark. Exclude patterns are
    always unioned, whatever ``inherit`` says.
    """

    gates = list(merged.gates) if document.inherit else []
    for entry in document.append:
        gates = add_or_replace_gate(gates, entry.to_gate(source))
    for gate_id in document.remove:
        gates = tombstone_gate(gates, gate_id, source)

    merged.gates = gates
    merged.exclude_patterns = merge_patterns(merged.exclude_patterns, document.exclude_patterns)
    merged.sources.append(source)
    merged.level = source.level
    return merged


def _require_directory(path: Path, kind: str, op: str) -> Path:
    if not path.is_dir():
        raise NotFoundError(f"{kind} directory not found", op=op, path=path)
    return path


class ConfigMerger:
    """Resolve the effective gate policy for a festival, phase or sequence.

    The merger holds no per-call state; one instance (and its registry) can
    serve any number of loads within a process.

    ``default_policy`` names the base used when fest.yaml lists no gates.
    With ``festivals_root`` set, ``<festivals_root>/.festival/gates/policies/default.yml``
    is applied as the ``global`` override level ahead of ``.festival/gates.yml``.
    """

    def __init__(
        self,
        registry: PolicyRegistry | None = None,
        *,
        festivals_root: Path | None = None,
        default_policy: str = DEFAULT_POLICY_NAME,
        override_file_name: str = DEFAULT_OVERRIDE_FILE_NAME,
        festival_config_file: str = DEFAULT_FESTIVAL_CONFIG_FILE,
        festival_override_file: str = DEFAULT_FESTIVAL_OVERRIDE_FILE,
        logger: logging.Logger | None = None,
    ) -> None:
        self.registry = registry
        self.festivals_root = Path(festivals_root) if festivals_root is not None else None
        self.default_policy = default_policy
        self.override_file_name = override_file_name
        self.festival_config_file = festival_config_file
        self.festival_override_file = festival_override_file
        self._logger = logger or LOGGER

    @classmethod
    def from_settings(
        cls,
        gates: GatesConfig,
        registry: PolicyRegistry | None = None,
        *,
        festivals_root: Path | None = None,
        logger: logging.Logger | None = None,
    ) -> "ConfigMerger":
        return cls(
            registry,
            festivals_root=festivals_root,
            default_policy=gates.default_policy,
            override_file_name=gates.override_file_name,
            festival_config_file=gates.festival_config_file,
            festival_override_file=gates.festival_override_file,
            logger=logger,
        )

    def load_for_festival(
        self,
        festival_path: Path,
        *,
        policy_name: str | None = None,
        strict: bool = False,
        cancel: CancelToken | None = None,
    ) -> MergedPolicy:
        """Resolve the festival-level policy."""

        op = "ConfigMerger.load_for_festival"
        check_cancelled(cancel, op)
        festival_dir = _require_directory(Path(festival_path), "festival", op)
        return self._resolve(festival_dir, [], policy_name=policy_name, strict=strict, cancel=cancel, op=op)

    def load_for_phase(
        self,
        festival_path: Path,
        phase_path: Path,
        *,
        policy_name: str | None = None,
        strict: bool = False,
        cancel: CancelToken | None = None,
    ) -> MergedPolicy:
        """Resolve the policy for one phase (festival, then phase override)."""

        op = "ConfigMerger.load_for_phase"
        check_cancelled(cancel, op)
        festival_dir = _require_directory(Path(festival_path), "festival", op)
        phase_dir = _require_directory(festival_dir / phase_path, "phase", op)
        levels = [_OverrideLevel("phase", phase_dir / self.override_file_name)]
        return self._resolve(festival_dir, levels, policy_name=policy_name, strict=strict, cancel=cancel, op=op)

    def load_for_sequence(
        self,
        festival_path: Path,
        phase_path: Path,
        sequence_path: Path,
        *,
        policy_name: str | None = None,
        strict: bool = False,
        cancel: CancelToken | None = None,
    ) -> MergedPolicy:
        """Resolve the policy for one sequence (festival, phase, then sequence override).

        Relative phase paths resolve under the festival and relative sequence
        paths under the phase.
        """

        op = "ConfigMerger.load_for_sequence"
        check_cancelled(cancel, op)
        festival_dir = _require_directory(Path(festival_path), "festival", op)
        phase_dir = _require_directory(festival_dir / phase_path, "phase", op)
        sequence_dir = _require_directory(phase_dir / sequence_path, "sequence", op)
        levels = [
            _OverrideLevel("phase", phase_dir / self.override_file_name),
            _OverrideLevel("sequence", sequence_dir / self.override_file_name),
        ]
        return self._resolve(festival_dir, levels, policy_name=policy_name, strict=strict, cancel=cancel, op=op)

    def _resolve(
        self,
        festival_dir: Path,
        levels: list[_OverrideLevel],
        *,
        policy_name: str | None,
        strict: bool,
        cancel: CancelToken | None,
        op: str,
    ) -> MergedPolicy:
        merged = self._base_policy(festival_dir, policy_name, op)

        descent = list(levels)
        if policy_name is None:
            descent.insert(0, _OverrideLevel("festival", festival_dir / self.festival_override_file))
            if self.festivals_root is not None:
                global_file = self.festivals_root / GLOBAL_POLICY_DIR / GLOBAL_DEFAULT_POLICY_FILE
                descent.insert(0, _OverrideLevel("global", global_file))

        for level in descent:
            check_cancelled(cancel, op)
            document = self._read_override(level, merged)
            if document is None:
                continue
            source = PolicySource(level=level.level, path=level.path, name=level.path.parent.name)
            apply_override(merged, document, source)
            self._logger.debug(
                "merge.override_applied level=%s path=%s inherit=%s append=%s remove=%s",
                level.level,
                level.path,
                document.inherit,
                len(document.append),
                len(document.remove),
            )

        if strict and merged.issues:
            raise ValidationError(
                "invalid gate configuration",
                op=op,
                issues=merged.issues,
                festival=festival_dir,
            )
        return merged

    def _base_policy(self, festival_dir: Path, policy_name: str | None, op: str) -> MergedPolicy:
        """Build the starting policy from a named policy, fest.yaml, or the built-in default."""

        issues: list[ConfigIssue] = []
        festival_config = self._read_festival_config(festival_dir, issues)
        fest_yaml_enabled = True
        if festival_config is not None and festival_config.quality_gates is not None:
            fest_yaml_enabled = festival_config.quality_gates.enabled

        if policy_name is not None:
            if self.registry is None:
                raise NotFoundError("named policy requested without a policy registry", op=op, name=policy_name)
            policy = self.registry.get_policy(policy_name)
            source = PolicySource(level="named-policy", path=policy.source.path, name=policy.name)
            return MergedPolicy(
                gates=[task.with_source(source) for task in policy.tasks],
                sources=[source],
                level="named-policy",
                fest_yaml_enabled=fest_yaml_enabled,
                exclude_patterns=merge_patterns([], policy.exclude_patterns),
                issues=issues,
            )

        base = self._default_base(op)
        base_level: PolicyLevel = "builtin" if base.source.path is None else "named-policy"
        base_source = PolicySource(level=base_level, path=base.source.path, name=base.name)
        merged = MergedPolicy(
            gates=[task.with_source(base_source) for task in base.tasks],
            sources=[base_source],
            level=base_level,
            fest_yaml_enabled=fest_yaml_enabled,
            exclude_patterns=merge_patterns([], base.exclude_patterns),
            issues=issues,
        )
        if festival_config is None:
            return merged

        config_path = festival_dir / self.festival_config_file
        festival_source = PolicySource(level="festival", path=config_path, name=festival_dir.name)
        section = festival_config.quality_gates
        if section is not None and section.enabled and section.tasks:
            merged.gates = []
            merged.sources = []
            for task in section.tasks:
                merged.gates = add_or_replace_gate(merged.gates, task.to_gate(festival_source))
        merged.exclude_patterns = merge_patterns(merged.exclude_patterns, festival_config.excluded_patterns)
        merged.sources.append(festival_source)
        merged.level = "festival"
        return merged

    def _default_base(self, op: str) -> NamedPolicy:
        # "default" always means the built-in set; a global default.yml is applied as its own level.
        if self.default_policy != DEFAULT_POLICY_NAME and self.registry is not None:
            return self.registry.get_policy(self.default_policy)
        factory = BUILTIN_POLICIES.get(self.default_policy)
        if factory is None:
            raise NotFoundError("default policy not found", op=op, name=self.default_policy)
        return factory()

    def _read_festival_config(self, festival_dir: Path, issues: list[ConfigIssue]) -> FestivalConfigDocument | None:
        path = festival_dir / self.festival_config_file
        try:
            return load_festival_config(path)
        except GateError as exc:
            self._logger.warning("merge.festival_config_invalid path=%s error=%s", path, exc)
            issues.append(ConfigIssue(level="festival", path=path, message=str(exc)))
            return None

    def _read_override(self, level: _OverrideLevel, merged: MergedPolicy) -> OverrideDocument | None:
        """Load one level's override; failures are recorded and the level is treated as absent."""

        try:
            return load_override(level.path)
        except GateError as exc:
            self._logger.warning("merge.override_invalid level=%s path=%s error=%s", level.level, level.path, exc)
            merged.issues.append(ConfigIssue(level=level.level, path=level.path, message=str(exc)))
            return None
