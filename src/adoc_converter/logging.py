from __future__ import annotations

import csv
import json
import threading
import time
from dataclasses import asdict, dataclass, field
from io import StringIO
from pathlib import Path
from typing import Any, Iterable

from .config import FailIf
from .models import RenderMessage, Severity
from .utils import atomic_write


@dataclass(slots=True)
class StageTimings:
    read_ms: float
    render_ms: float
    write_ms: float


@dataclass(slots=True)
class ConversionLogEntry:
    batch_id: str
    source: str
    destination: str | None
    status: str
    backend: str
    error_code: str | None
    messages: list[str]
    timings: StageTimings
    size_bytes: int

    def to_dict(self) -> dict[str, Any]:
        payload = asdict(self)
        payload["timings"] = asdict(self.timings)
        return payload


class RunLogger:
    def __init__(self, log_file: Path) -> None:
        self._log_file = log_file
        self._lock = threading.Lock()

    @property
    def path(self) -> Path:
        return self._log_file

    def append(self, entry: ConversionLogEntry) -> None:
        line = json.dumps(entry.to_dict(), ensure_ascii=False)
        with self._lock:
            self._log_file.parent.mkdir(parents=True, exist_ok=True)
            with self._log_file.open("a", encoding="utf-8") as handle:
                handle.write(line + "\n")


class MessageCollector:
    """Renderer messages captured for a single document."""

    def __init__(self, messages: Iterable[RenderMessage] = ()) -> None:
        self._records = list(messages)

    def __len__(self) -> int:
        return len(self._records)

    @property
    def records(self) -> list[RenderMessage]:
        return list(self._records)

    def filter(self, severity: Severity | None = None, text: str | None = None) -> list[RenderMessage]:
        return [
            record
            for record in self._records
            if (severity is None or record.severity >= severity)
            and (not text or not text.strip() or text in record.text)
        ]

    def failures(self, fail_if: FailIf | None) -> list[RenderMessage]:
        if fail_if is None or not fail_if.enabled:
            return []
        return self.filter(fail_if.severity, fail_if.contains_text)


def describe_fail_if(count: int, fail_if: FailIf) -> str:
    severity = fail_if.severity.name if fail_if.severity is not None else None
    text = fail_if.contains_text if fail_if.contains_text and fail_if.contains_text.strip() else None
    if severity and text:
        return f"Found {count} issue(s) matching severity {severity} or higher and text '{text}'"
    if severity:
        return f"Found {count} issue(s) of severity {severity} or higher during conversion"
    return f"Found {count} issue(s) containing '{text}'"


@dataclass(slots=True)
class BatchSummary:
    timestamp: float = field(default_factory=time.time)
    total: int = 0
    successes: int = 0
    failures: int = 0
    cancelled: bool = False

    def as_row(self, batch_id: str) -> list[str]:
        return [
            batch_id,
            time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime(self.timestamp)),
            str(self.total),
            str(self.successes),
            str(self.failures),
            "true" if self.cancelled else "false",
        ]


SUMMARY_HEADER = ["batch_id", "timestamp", "total", "successes", "failures", "cancelled"]


def write_summary_csv(path: Path, header: list[str], rows: list[list[str]]) -> None:
    buffer = StringIO()
    writer = csv.writer(buffer)
    writer.writerow(header)
    writer.writerows(rows)
    atomic_write(path, buffer.getvalue())


def append_summary_row(path: Path, summary: BatchSummary, batch_id: str) -> None:
    header = SUMMARY_HEADER
    rows: list[list[str]] = []
    if path.exists():
        with path.open("r", encoding="utf-8", newline="") as handle:
            existing = list(csv.reader(handle))
        if existing:
            header = existing[0]
            rows = existing[1:]
    rows.append(summary.as_row(batch_id))
    write_summary_csv(path, header, rows)
