"""Domain models for AsciiDoc batch conversion."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import IntEnum
from pathlib import Path


class Severity(IntEnum):
    """Renderer message levels, ordered so that higher means worse."""

    DEBUG = 0
    INFO = 1
    WARN = 2
    ERROR = 3
    FATAL = 4

    @classmethod
    def parse(cls, value: str) -> "Severity":
        normalized = value.strip().upper()
        if normalized == "WARNING":
            normalized = "WARN"
        if normalized in {"FAILED", "FAILURE"}:
            normalized = "FATAL"
        try:
            return cls[normalized]
        except KeyError as exc:
            raise ValueError(f"Unknown severity: {value!r}") from exc


@dataclass(slots=True, frozen=True)
class RenderMessage:
    severity: Severity
    text: str

    def __str__(self) -> str:
        return f"{self.severity.name}: {self.text}"


@dataclass(slots=True, frozen=True)
class SourceDocument:
    """A discovered document; only lives for the duration of one conversion."""

    path: Path

    @property
    def extension(self) -> str:
        return self.path.suffix.lower()


@dataclass(slots=True)
class OutputArtifact:
    """A rendered document written to disk."""

    source: Path
    path: Path
    size_bytes: int
    messages: list[RenderMessage] = field(default_factory=list)


@dataclass(slots=True, frozen=True)
class FileFailure:
    path: Path
    code: str
    reason: str


@dataclass(slots=True)
class BatchResult:
    """Aggregate outcome of a batch run."""

    total: int = 0
    artifacts: list[OutputArtifact] = field(default_factory=list)
    failures: list[FileFailure] = field(default_factory=list)
    cancelled: bool = False
    zip_path: Path | None = None
    batch_id: str | None = None

    @property
    def successes(self) -> int:
        return len(self.artifacts)

    @property
    def failed_paths(self) -> list[Path]:
        return [failure.path for failure in self.failures]


__all__ = [
    "BatchResult",
    "FileFailure",
    "OutputArtifact",
    "RenderMessage",
    "Severity",
    "SourceDocument",
]
