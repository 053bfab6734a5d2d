"""Error kinds raised by the gate engine."""

from __future__ import annotations

from typing import Any


class GateError(Exception):
    """Base error carrying the failing operation and structured context fields."""

    kind = "error"

    def __init__(self, message: str, *, op: str | None = None, **fields: Any) -> None:
        self.message = message
        self.op = op
        self.fields = fields
        super().__init__(self._render())

    def _render(self) -> str:
        parts = [self.message]
        if self.op:
            parts.insert(0, f"{self.op}:")
        for key, value in self.fields.items():
            parts.append(f"{key}={value}")
        return " ".join(parts)


class NotFoundError(GateError):
    """Raised when a festival, phase, sequence or named policy cannot be found."""

    kind = "not_found"


class ValidationError(GateError):
    """Raised for malformed documents, bad patterns or collected configuration issues."""

    kind = "validation"

    def __init__(self, message: str, *, op: str | None = None, issues: list[Any] | None = None, **fields: Any) -> None:
        self.issues = list(issues or [])
        if self.issues:
            fields.setdefault("issues", len(self.issues))
        super().__init__(message, op=op, **fields)


class GateIOError(GateError):
    """Raised when a file or directory cannot be read or written."""

    kind = "io"


class ParseError(GateError):
    """Raised when a structured document cannot be unmarshalled."""

    kind = "parse"


class CancelledError(GateError):
    """Raised when an entry point observes a cancelled token before starting work."""

    kind = "cancelled"
