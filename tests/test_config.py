from __future__ import annotations

from pathlib import Path

from fest_gates.config import DEFAULT_NON_IMPLEMENTATION_MARKERS, SETTINGS_FILE_ENV, load_settings


def _write_settings(root: Path, body: str) -> Path:
    settings_file = root / "configs" / "settings.yaml"
    settings_file.parent.mkdir(parents=True, exist_ok=True)
    settings_file.write_text(body, encoding="utf-8")
    return settings_file


def test_yaml_values_are_loaded_and_paths_resolved(tmp_path: Path) -> None:
    settings_file = _write_settings(
        tmp_path,
        "paths:\n  festivals_root: ./fests\n  config_root: ./user\n  logs_root: ./logs\n"
        "gates:\n  default_policy: strict\n"
        "generate:\n  force: true\n",
    )

    settings = load_settings(settings_file)

    assert settings.paths.festivals_root == (tmp_path / "fests").resolve()
    assert settings.paths.config_root == (tmp_path / "user").resolve()
    assert settings.gates.default_policy == "strict"
    assert settings.gates.override_file_name == ".fest.gates.yml"
    assert settings.gates.non_implementation_markers == list(DEFAULT_NON_IMPLEMENTATION_MARKERS)
    assert settings.generate.force is True


def test_env_overrides_yaml(tmp_path: Path, monkeypatch) -> None:
    settings_file = _write_settings(tmp_path, "gates:\n  default_policy: strict\n")
    monkeypatch.setenv("FEST_GATES_GATES__DEFAULT_POLICY", "lightweight")

    settings = load_settings(settings_file)

    assert settings.gates.default_policy == "lightweight"


def test_settings_file_env_is_used_when_no_path_given(tmp_path: Path, monkeypatch) -> None:
    settings_file = _write_settings(tmp_path, "gates:\n  override_file_name: .gates.yml\n")
    monkeypatch.setenv(SETTINGS_FILE_ENV, str(settings_file))

    settings = load_settings()

    assert settings.gates.override_file_name == ".gates.yml"


def test_home_relative_paths_are_expanded(tmp_path: Path, monkeypatch) -> None:
    monkeypatch.setenv("HOME", str(tmp_path / "home"))
    settings_file = _write_settings(tmp_path, "paths:\n  config_root: ~/fest-user\n")

    settings = load_settings(settings_file)

    assert settings.paths.config_root == tmp_path / "home" / "fest-user"
    assert settings.as_dict()["paths"]["config_root"] == str(tmp_path / "home" / "fest-user")
