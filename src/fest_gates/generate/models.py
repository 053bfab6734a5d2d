"""Typed models for gate task generation options and outcomes."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Literal

GenerateType = Literal["create", "skip", "exists"]

REASON_MODIFIED = "modified"
REASON_UP_TO_DATE = "up_to_date"
REASON_OVERWRITTEN = "overwritten"


@dataclass(frozen=True, slots=True)
class GenerateOptions:
    """Runtime switches for gate task generation."""

    dry_run: bool = False
    force: bool = False


@dataclass(frozen=True, slots=True)
class GenerateResult:
    """Outcome for one (sequence, gate) pair."""

    type: GenerateType
    path: Path
    reason: str = ""
    task_id: str = ""
    template: str = ""

    def as_dict(self) -> dict[str, str]:
        return {
            "type": self.type,
            "path": str(self.path),
            "reason": self.reason,
            "task_id": self.task_id,
            "template": self.template,
        }


@dataclass(slots=True)
class GenerateSummary:
    """Aggregate counts over all processed sequences."""

    total_sequences: int = 0
    sequences_updated: int = 0
    files_created: int = 0
    files_skipped: int = 0
    files_existing: int = 0

    def record_sequence(self, results: Iterable[GenerateResult]) -> None:
        """Fold one sequence's results into the counts."""

        created = 0
        for result in results:
            if result.type == "create":
                created += 1
            elif result.type == "skip":
                self.files_skipped += 1
            elif result.type == "exists":
                self.files_existing += 1
        self.files_created += created
        if created:
            self.sequences_updated += 1

    @property
    def files_attempted(self) -> int:
        return self.files_created + self.files_skipped + self.files_existing

    def as_dict(self) -> dict[str, int]:
        return {
            "total_sequences": self.total_sequences,
            "sequences_updated": self.sequences_updated,
            "files_created": self.files_created,
            "files_skipped": self.files_skipped,
            "files_existing": self.files_existing,
        }
