from __future__ import annotations

from pathlib import Path

import pytest

from fest_gates.cancel import CancelToken
from fest_gates.config import GatesConfig
from fest_gates.errors import CancelledError, NotFoundError, ValidationError
from fest_gates.policy.builtin import DEFAULT_EXCLUDE_PATTERNS
from fest_gates.policy.merger import ConfigMerger, add_or_replace_gate, tombstone_gate
from fest_gates.policy.models import GateTask, PolicySource
from fest_gates.policy.registry import PolicyRegistry


def _festival_with_gates(festival, gate_entry, ids: list[str]):
    festival.fest_yaml({"quality_gates": {"enabled": True, "tasks": [gate_entry(gate_id) for gate_id in ids]}})
    phase = festival.phase("002_IMPLEMENT", phase_type="implementation")
    sequence = festival.sequence("002_IMPLEMENT", "01_backend", tasks=("01_models.md",))
    return phase, sequence


def test_sequence_override_appends_after_inherited_gates(festival, gate_entry) -> None:
    phase, sequence = _festival_with_gates(festival, gate_entry, ["testing", "review", "iterate"])
    festival.override(sequence, {"append": [gate_entry("security_audit")]})

    merged = ConfigMerger().load_for_sequence(festival.root, phase, sequence)

    assert [gate.id for gate in merged.active_gates()] == ["testing", "review", "iterate", "security_audit"]
    security = merged.gate("security_audit")
    assert security is not None
    assert security.source is not None
    assert security.source.level == "sequence"
    assert merged.gate("testing").source.level == "festival"
    assert merged.level == "sequence"
    assert [source.level for source in merged.sources] == ["festival", "sequence"]


def test_inherit_false_with_remove_of_discarded_id_yields_nothing(festival, gate_entry) -> None:
    phase, _ = _festival_with_gates(festival, gate_entry, ["testing", "review"])
    festival.override(phase, {"inherit": False, "remove": ["testing"]})

    merged = ConfigMerger().load_for_phase(festival.root, phase)

    assert merged.gates == []
    assert merged.active_gates() == []
    assert merged.level == "phase"


def test_inherit_false_keeps_only_own_entries(festival, gate_entry) -> None:
    phase, sequence = _festival_with_gates(festival, gate_entry, ["testing", "review"])
    festival.override(phase, {"append": [gate_entry("docs_check")]})
    festival.override(sequence, {"inherit": False, "append": [gate_entry("smoke")]})

    merged = ConfigMerger().load_for_sequence(festival.root, phase, sequence)

    assert merged.gate_ids() == ["smoke"]
    assert all(gate.source.level == "sequence" for gate in merged.gates)


def test_append_with_existing_id_replaces_in_place(festival, gate_entry) -> None:
    phase, _ = _festival_with_gates(festival, gate_entry, ["testing", "review", "iterate"])
    festival.override(phase, {"append": [gate_entry("review", "STRICT_REVIEW"), gate_entry("lint")]})

    merged = ConfigMerger().load_for_phase(festival.root, phase)

    assert merged.gate_ids() == ["testing", "review", "iterate", "lint"]
    review = merged.gate("review")
    assert review.template == "STRICT_REVIEW"
    assert review.source.level == "phase"


def test_remove_tombstones_without_rewriting_source(festival, gate_entry) -> None:
    phase, sequence = _festival_with_gates(festival, gate_entry, ["testing", "review", "iterate"])
    festival.override(sequence, {"remove": ["review", "not_there"]})

    merged = ConfigMerger().load_for_sequence(festival.root, phase, sequence)

    assert merged.gate_ids() == ["testing", "review", "iterate"]
    assert [gate.id for gate in merged.active_gates()] == ["testing", "iterate"]
    review = merged.gate("review")
    assert review.removed is True
    assert review.source.level == "festival"
    assert review.removed_by is not None
    assert review.removed_by.level == "sequence"
    assert [gate.id for gate in merged.removed_gates()] == ["review"]


def test_disabled_gate_is_kept_but_not_active(festival, gate_entry) -> None:
    festival.fest_yaml(
        {"quality_gates": {"tasks": [gate_entry("testing"), gate_entry("review", enabled=False)]}}
    )
    merged = ConfigMerger().load_for_festival(festival.root)

    assert merged.gate_ids() == ["testing", "review"]
    assert [gate.id for gate in merged.active_gates()] == ["testing"]


def test_exclude_patterns_are_unioned_even_without_inherit(festival, gate_entry) -> None:
    festival.fest_yaml({"quality_gates": {"tasks": [gate_entry("testing")]}, "excluded_patterns": ["*_spike"]})
    phase = festival.phase("002_IMPLEMENT")
    sequence = festival.sequence("002_IMPLEMENT", "01_api")
    festival.override(phase, {"exclude_patterns": ["*_legacy", "*_spike"]})
    festival.override(sequence, {"inherit": False, "exclude_patterns": ["*_wip"]})

    merged = ConfigMerger().load_for_sequence(festival.root, phase, sequence)

    assert merged.exclude_patterns == [*DEFAULT_EXCLUDE_PATTERNS, "*_spike", "*_legacy", "*_wip"]


def test_builtin_default_is_used_without_project_config(festival) -> None:
    merged = ConfigMerger().load_for_festival(festival.root)

    assert merged.gate_ids() == ["testing_and_verify", "code_review", "review_results_iterate"]
    assert [source.level for source in merged.sources] == ["builtin"]
    assert merged.level == "builtin"
    assert merged.fest_yaml_enabled is True
    assert merged.exclude_patterns == list(DEFAULT_EXCLUDE_PATTERNS)


def test_fest_yaml_without_tasks_falls_back_to_builtin_gates(festival) -> None:
    festival.fest_yaml({"quality_gates": {"enabled": True}})

    merged = ConfigMerger().load_for_festival(festival.root)

    assert merged.gate_ids() == ["testing_and_verify", "code_review", "review_results_iterate"]
    assert [source.level for source in merged.sources] == ["builtin", "festival"]


def test_disabled_quality_gates_marks_policy(festival, gate_entry) -> None:
    festival.fest_yaml({"quality_gates": {"enabled": False, "tasks": [gate_entry("testing")]}})

    merged = ConfigMerger().load_for_festival(festival.root)

    assert merged.fest_yaml_enabled is False
    assert "testing" not in merged.gate_ids()


def test_festival_override_file_applies_before_phase(festival, gate_entry) -> None:
    festival.festival_override({"remove": ["code_review"]})
    phase = festival.phase("002_IMPLEMENT")
    festival.override(phase, {"append": [gate_entry("lint")]})

    merged = ConfigMerger().load_for_phase(festival.root, phase)

    assert [gate.id for gate in merged.active_gates()] == ["testing_and_verify", "review_results_iterate", "lint"]
    assert [source.level for source in merged.sources] == ["builtin", "festival", "phase"]


def test_global_default_policy_applies_before_festival_override(festival, tmp_path: Path) -> None:
    festivals_root = tmp_path / "festivals"
    global_file = festivals_root / ".festival" / "gates" / "policies" / "default.yml"
    global_file.parent.mkdir(parents=True)
    global_file.write_text("append:\n  - id: lint\n    template: LINT\n", encoding="utf-8")
    festival.festival_override({"remove": ["lint"]})

    merger = ConfigMerger(festivals_root=festivals_root)
    merged = merger.load_for_festival(festival.root)

    lint = merged.gate("lint")
    assert merged.gate_ids()[-1] == "lint"
    assert lint.source.level == "global"
    assert lint.removed_by.level == "festival"
    assert [source.level for source in merged.sources] == ["builtin", "global", "festival"]


def test_global_default_policy_append_is_active(festival, tmp_path: Path) -> None:
    festivals_root = tmp_path / "festivals"
    global_file = festivals_root / ".festival" / "gates" / "policies" / "default.yml"
    global_file.parent.mkdir(parents=True)
    global_file.write_text("append:\n  - id: lint\n", encoding="utf-8")

    merged = ConfigMerger(festivals_root=festivals_root).load_for_festival(festival.root)

    assert [gate.id for gate in merged.active_gates()] == [
        "testing_and_verify",
        "code_review",
        "review_results_iterate",
        "lint",
    ]
    assert merged.level == "global"


def test_configured_default_policy_is_the_base_without_fest_yaml_tasks(festival) -> None:
    merged = ConfigMerger(PolicyRegistry(), default_policy="strict").load_for_festival(festival.root)

    assert "security_audit" in merged.gate_ids()
    assert merged.sources[0].name == "strict"
    assert merged.gate("security_audit").source.level == "builtin"


def test_configured_default_policy_from_user_directory(festival, tmp_path: Path) -> None:
    policies = tmp_path / "user" / "policies" / "gates"
    policies.mkdir(parents=True)
    (policies / "team.yml").write_text("tasks:\n  - id: lint\n", encoding="utf-8")
    registry = PolicyRegistry(config_root=tmp_path / "user")

    merged = ConfigMerger(registry, default_policy="team").load_for_festival(festival.root)

    assert merged.gate_ids() == ["lint"]
    assert merged.level == "named-policy"


def test_from_settings_uses_configured_default_policy(festival) -> None:
    merger = ConfigMerger.from_settings(GatesConfig(default_policy="lightweight"), PolicyRegistry())

    assert merger.load_for_festival(festival.root).gate_ids() == ["code_review"]


def test_unknown_default_policy_is_fatal(festival) -> None:
    with pytest.raises(NotFoundError):
        ConfigMerger(default_policy="missing").load_for_festival(festival.root)


def test_named_policy_bypasses_festival_configuration(festival, gate_entry) -> None:
    festival.fest_yaml({"quality_gates": {"tasks": [gate_entry("testing")]}})
    festival.festival_override({"append": [gate_entry("from_festival_override")]})
    phase = festival.phase("002_IMPLEMENT")
    festival.override(phase, {"append": [gate_entry("phase_gate")]})

    merger = ConfigMerger(PolicyRegistry())
    merged = merger.load_for_phase(festival.root, phase, policy_name="lightweight")

    assert merged.gate_ids() == ["code_review", "phase_gate"]
    assert merged.gate("code_review").source.level == "named-policy"
    assert merged.sources[0].level == "named-policy"
    assert merged.sources[0].name == "lightweight"


def test_unknown_named_policy_is_fatal(festival) -> None:
    with pytest.raises(NotFoundError):
        ConfigMerger(PolicyRegistry()).load_for_festival(festival.root, policy_name="nope")


def test_named_policy_without_registry_is_fatal(festival) -> None:
    with pytest.raises(NotFoundError):
        ConfigMerger().load_for_festival(festival.root, policy_name="default")


def test_malformed_override_is_treated_as_absent(festival, gate_entry) -> None:
    phase, sequence = _festival_with_gates(festival, gate_entry, ["testing"])
    (phase / ".fest.gates.yml").write_text("append: [broken\n", encoding="utf-8")
    festival.override(sequence, {"append": [gate_entry("lint")]})

    merged = ConfigMerger().load_for_sequence(festival.root, phase, sequence)

    assert merged.gate_ids() == ["testing", "lint"]
    assert len(merged.issues) == 1
    assert merged.issues[0].level == "phase"
    assert merged.issues[0].path == phase / ".fest.gates.yml"


def test_strict_mode_collects_every_issue_then_raises(festival, gate_entry) -> None:
    phase, sequence = _festival_with_gates(festival, gate_entry, ["testing"])
    (phase / ".fest.gates.yml").write_text("append: [broken\n", encoding="utf-8")
    (sequence / ".fest.gates.yml").write_text("- not a mapping\n", encoding="utf-8")

    with pytest.raises(ValidationError) as excinfo:
        ConfigMerger().load_for_sequence(festival.root, phase, sequence, strict=True)

    assert [issue.level for issue in excinfo.value.issues] == ["phase", "sequence"]


def test_malformed_fest_yaml_falls_back_to_builtin(festival) -> None:
    (festival.root / "fest.yaml").write_text("quality_gates: [\n", encoding="utf-8")

    merged = ConfigMerger().load_for_festival(festival.root)

    assert merged.gate_ids() == ["testing_and_verify", "code_review", "review_results_iterate"]
    assert merged.issues and merged.issues[0].level == "festival"


def test_relative_phase_and_sequence_paths_resolve_under_parents(festival, gate_entry) -> None:
    _, sequence = _festival_with_gates(festival, gate_entry, ["testing"])
    festival.override(sequence, {"append": [gate_entry("lint")]})

    merged = ConfigMerger().load_for_sequence(festival.root, Path("002_IMPLEMENT"), Path("01_backend"))

    assert merged.gate_ids() == ["testing", "lint"]


def test_missing_directories_are_not_found(festival) -> None:
    festival.phase("002_IMPLEMENT")
    merger = ConfigMerger()
    with pytest.raises(NotFoundError):
        merger.load_for_festival(festival.root / "nope")
    with pytest.raises(NotFoundError):
        merger.load_for_phase(festival.root, Path("003_MISSING"))
    with pytest.raises(NotFoundError):
        merger.load_for_sequence(festival.root, Path("002_IMPLEMENT"), Path("09_missing"))


def test_cancelled_token_stops_resolution(festival) -> None:
    token = CancelToken()
    token.cancel()
    with pytest.raises(CancelledError):
        ConfigMerger().load_for_festival(festival.root, cancel=token)


def test_gate_list_helpers_do_not_mutate_input() -> None:
    source = PolicySource(level="phase", name="002_IMPLEMENT")
    gates = [GateTask(id="testing"), GateTask(id="review")]

    replaced = add_or_replace_gate(gates, GateTask(id="testing", template="NEW", source=source))
    removed = tombstone_gate(gates, "review", source)

    assert gates[0].template == ""
    assert replaced[0].template == "NEW"
    assert [gate.removed for gate in removed] == [False, True]
    assert [gate.removed for gate in gates] == [False, False]
