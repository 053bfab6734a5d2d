from __future__ import annotations

from pathlib import Path

import pytest
import yaml

from fest_gates.cancel import CancelToken
from fest_gates.errors import CancelledError, NotFoundError
from fest_gates.policy.registry import PolicyRegistry


def _write_policy(directory: Path, name: str, payload: dict) -> Path:
    directory.mkdir(parents=True, exist_ok=True)
    path = directory / f"{name}.yml"
    path.write_text(yaml.safe_dump(payload, sort_keys=False), encoding="utf-8")
    return path


def test_builtin_policies_are_always_registered() -> None:
    registry = PolicyRegistry()
    assert registry.list_names() == ["default", "lightweight", "strict"]
    assert [task.id for task in registry.get_policy("default").tasks] == [
        "testing_and_verify",
        "code_review",
        "review_results_iterate",
    ]
    info = registry.get("strict")
    assert info is not None
    assert info.source == "builtin"


def test_later_sources_shadow_earlier_ones(tmp_path: Path) -> None:
    festivals_root = tmp_path / "festivals"
    config_root = tmp_path / "user"
    festival_path = festivals_root / "active" / "demo"
    _write_policy(festivals_root / ".festival" / "gates" / "policies", "team", {"tasks": [{"id": "global_gate"}]})
    _write_policy(config_root / "policies" / "gates", "team", {"tasks": [{"id": "user_gate"}]})
    _write_policy(config_root / "policies" / "gates", "default", {"description": "mine", "tasks": [{"id": "lint"}]})
    _write_policy(festival_path / "policies" / "gates", "team", {"tasks": [{"id": "festival_gate"}]})

    registry = PolicyRegistry(festivals_root=festivals_root, config_root=config_root, festival_path=festival_path)

    team = registry.get("team")
    assert team is not None
    assert team.source == "festival"
    assert [task.id for task in registry.get_policy("team").tasks] == ["festival_gate"]

    default = registry.get("default")
    assert default is not None
    assert default.source == "user"
    assert default.description == "mine"
    assert [task.id for task in registry.get_policy("default").tasks] == ["lint"]


def test_yaml_extension_is_accepted(tmp_path: Path) -> None:
    directory = tmp_path / "user" / "policies" / "gates"
    directory.mkdir(parents=True)
    (directory / "quick.yaml").write_text("tasks:\n  - id: smoke\n", encoding="utf-8")
    (directory / "notes.txt").write_text("ignored", encoding="utf-8")

    registry = PolicyRegistry(config_root=tmp_path / "user")
    assert "quick" in registry
    assert "notes" not in registry


def test_get_policy_returns_independent_copies() -> None:
    registry = PolicyRegistry()
    first = registry.get_policy("strict")
    first.tasks.clear()
    first.exclude_patterns.append("*_mutated")

    second = registry.get_policy("strict")
    assert len(second.tasks) == 5
    assert "*_mutated" not in second.exclude_patterns


def test_unknown_policy_raises_not_found() -> None:
    registry = PolicyRegistry()
    assert registry.get("missing") is None
    with pytest.raises(NotFoundError):
        registry.get_policy("missing")


def test_malformed_policy_files_are_recorded_and_skipped(tmp_path: Path) -> None:
    directory = tmp_path / "user" / "policies" / "gates"
    directory.mkdir(parents=True)
    (directory / "broken.yml").write_text("tasks: [oops\n", encoding="utf-8")
    (directory / "invalid.yml").write_text("tasks:\n  - template: NO_ID\n", encoding="utf-8")
    _write_policy(directory, "good", {"tasks": [{"id": "ok"}]})

    registry = PolicyRegistry(config_root=tmp_path / "user")

    assert "good" in registry
    assert "broken" not in registry
    assert "invalid" not in registry
    assert sorted(issue.path.name for issue in registry.issues) == ["broken.yml", "invalid.yml"]
    assert all(issue.level == "user" for issue in registry.issues)


def test_registry_honours_cancellation() -> None:
    token = CancelToken()
    token.cancel()
    with pytest.raises(CancelledError):
        PolicyRegistry(cancel=token)
