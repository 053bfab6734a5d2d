"""On-disk YAML documents: override files, fest.yaml, named policies, frontmatter."""

from __future__ import annotations

from pathlib import Path
from typing import Any, TypeVar

import yaml
from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator
from pydantic import ValidationError as PydanticValidationError

from fest_gates.errors import GateIOError, ParseError, ValidationError
from fest_gates.policy.models import GateTask, PolicySource, is_safe_gate_id
from fest_gates.policy.patterns import validate_exclude_pattern

FRONTMATTER_DELIMITER = "---"

DocumentT = TypeVar("DocumentT", bound=BaseModel)


class GateTaskDocument(BaseModel):
    """One gate entry as written in YAML."""

    model_config = ConfigDict(extra="ignore")

    id: str = Field(min_length=1)
    template: str = ""
    name: str = ""
    enabled: bool = True
    customizations: dict[str, Any] = Field(default_factory=dict)

    @field_validator("id")
    @classmethod
    def _strip_id(cls, value: str) -> str:
        stripped = value.strip()
        if not stripped:
            raise ValueError("gate id must not be blank")
        if not is_safe_gate_id(stripped):
            raise ValueError(f"gate id {stripped!r} may only contain letters, digits, underscores and hyphens")
        return stripped

    def to_gate(self, source: PolicySource) -> GateTask:
        return GateTask(
            id=self.id,
            template=self.template,
            name=self.name,
            enabled=self.enabled,
            source=source,
            customizations=dict(self.customizations),
        )


def _validate_patterns(values: list[str]) -> list[str]:
    return [validate_exclude_pattern(value) for value in values]


class OverrideDocument(BaseModel):
    """Per-level override file (``.fest.gates.yml``)."""

    model_config = ConfigDict(extra="ignore")

    version: str | int | float | None = None
    inherit: bool = True
    append: list[GateTaskDocument] = Field(default_factory=list)
    remove: list[str] = Field(default_factory=list)
    exclude_patterns: list[str] = Field(default_factory=list)

    @field_validator("append", "remove", "exclude_patterns", mode="before")
    @classmethod
    def _none_as_empty(cls, value: Any) -> Any:
        return [] if value is None else value

    @field_validator("remove", mode="before")
    @classmethod
    def _accept_remove_mappings(cls, value: Any) -> Any:
        if not isinstance(value, list):
            return value
        return [item.get("id") if isinstance(item, dict) else item for item in value]

    @field_validator("exclude_patterns")
    @classmethod
    def _check_patterns(cls, value: list[str]) -> list[str]:
        return _validate_patterns(value)


class QualityGatesSection(BaseModel):
    """``quality_gates`` section of the festival ``fest.yaml``."""

    model_config = ConfigDict(extra="ignore")

    enabled: bool = True
    auto_append: bool = True
    tasks: list[GateTaskDocument] = Field(default_factory=list)

    @field_validator("tasks", mode="before")
    @classmethod
    def _none_as_empty(cls, value: Any) -> Any:
        return [] if value is None else value


class FestivalConfigDocument(BaseModel):
    """Festival-level ``fest.yaml``; only the gate-related keys are modelled."""

    model_config = ConfigDict(extra="ignore")

    version: str | int | float | None = None
    quality_gates: QualityGatesSection | None = None
    excluded_patterns: list[str] = Field(default_factory=list)

    @field_validator("excluded_patterns", mode="before")
    @classmethod
    def _none_as_empty(cls, value: Any) -> Any:
        return [] if value is None else value

    @field_validator("excluded_patterns")
    @classmethod
    def _check_patterns(cls, value: list[str]) -> list[str]:
        return _validate_patterns(value)


class NamedPolicyDocument(BaseModel):
    """Named policy file found in one of the registry's policy directories."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    version: str | int | float | None = None
    name: str = ""
    description: str = ""
    exclude_patterns: list[str] = Field(default_factory=list)
    tasks: list[GateTaskDocument] = Field(
        default_factory=list,
        validation_alias=AliasChoices("tasks", "append"),
    )

    @field_validator("tasks", "exclude_patterns", mode="before")
    @classmethod
    def _none_as_empty(cls, value: Any) -> Any:
        return [] if value is None else value

    @field_validator("exclude_patterns")
    @classmethod
    def _check_patterns(cls, value: list[str]) -> list[str]:
        return _validate_patterns(value)


class PhaseGoalFrontmatter(BaseModel):
    """Frontmatter keys of ``PHASE_GOAL.md`` used for phase-type detection."""

    model_config = ConfigDict(extra="ignore")

    fest_phase_type: str = ""


def read_yaml_mapping(path: Path) -> dict[str, Any]:
    """Read a YAML file whose root must be a mapping (an empty file is ``{}``)."""

    try:
        text = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise GateIOError("failed to read document", op="read_yaml", path=path, error=exc) from exc
    return parse_yaml_mapping(text, path=path)


def parse_yaml_mapping(text: str, *, path: Path | None = None) -> dict[str, Any]:
    """Parse YAML text into a mapping."""

    try:
        payload = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise ParseError("failed to parse YAML", op="parse_yaml", path=path, error=exc) from exc
    if payload is None:
        return {}
    if not isinstance(payload, dict):
        raise ParseError("document root must be a mapping", op="parse_yaml", path=path)
    return payload


def _summarize_validation_error(exc: PydanticValidationError) -> str:
    messages: list[str] = []
    for error in exc.errors():
        location = ".".join(str(part) for part in error.get("loc", ()))
        messages.append(f"{location}: {error.get('msg', 'invalid')}" if location else str(error.get("msg")))
    return "; ".join(messages)


def validate_document(payload: dict[str, Any], model: type[DocumentT], *, path: Path | None = None) -> DocumentT:
    """Validate a parsed mapping against a document model."""

    try:
        return model.model_validate(payload)
    except PydanticValidationError as exc:
        raise ValidationError(
            f"invalid {model.__name__}",
            op="validate_document",
            path=path,
            error=_summarize_validation_error(exc),
        ) from exc


def load_document(path: Path, model: type[DocumentT]) -> DocumentT:
    """Read, parse and validate one YAML document."""

    return validate_document(read_yaml_mapping(path), model, path=path)


def load_override(path: Path) -> OverrideDocument | None:
    """Load an override file, returning ``None`` when it does not exist."""

    if not path.is_file():
        return None
    return load_document(path, OverrideDocument)


def load_festival_config(path: Path) -> FestivalConfigDocument | None:
    """Load ``fest.yaml``, returning ``None`` when it does not exist."""

    if not path.is_file():
        return None
    return load_document(path, FestivalConfigDocument)


def split_frontmatter(text: str) -> tuple[dict[str, Any] | None, str]:
    """Split a markdown document into its YAML frontmatter mapping and body.

    Returns ``(None, text)`` when the document has no complete frontmatter block.
    """

    lines = text.split("\n")
    if not lines or lines[0].strip() != FRONTMATTER_DELIMITER:
        return None, text
    for index in range(1, len(lines)):
        if lines[index].strip() == FRONTMATTER_DELIMITER:
            header = "\n".join(lines[1:index])
            body = "\n".join(lines[index + 1:])
            return parse_yaml_mapping(header), body
    return None, text


def load_phase_goal_frontmatter(path: Path) -> PhaseGoalFrontmatter | None:
    """Read ``PHASE_GOAL.md`` frontmatter, returning ``None`` when absent."""

    if not path.is_file():
        return None
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise GateIOError("failed to read phase goal", op="load_phase_goal", path=path, error=exc) from exc
    header, _ = split_frontmatter(text)
    if header is None:
        return None
    return validate_document(header, PhaseGoalFrontmatter, path=path)
