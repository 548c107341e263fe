from __future__ import annotations

import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, Mapping, Protocol

from ..config import SafeMode
from ..models import RenderMessage, Severity


MESSAGE_RE = re.compile(
    r"^(?:asciidoc(?:tor)?:\s*)?(?P<severity>DEBUG|INFO|WARNING|WARN|ERROR|FAILED|FATAL|DEPRECATED):\s*(?P<text>.*)$"
)


class RenderError(RuntimeError):
    """The rendering engine rejected a document."""

    def __init__(
        self,
        message: str,
        *,
        code: str = "RENDER_FAILED",
        messages: Iterable[RenderMessage] = (),
    ) -> None:
        super().__init__(message)
        self.code = code
        self.messages = list(messages)


@dataclass(slots=True, frozen=True)
class RenderOptions:
    backend: str
    base_dir: Path
    safe_mode: SafeMode = SafeMode.UNSAFE
    doctype: str | None = None
    attributes: Mapping[str, str | None] = field(default_factory=dict)
    standalone: bool = True


@dataclass(slots=True)
class RenderResult:
    content: bytes
    messages: list[RenderMessage] = field(default_factory=list)


class Renderer(Protocol):
    def render(self, content: bytes, options: RenderOptions) -> RenderResult:  # pragma: no cover - interface
        ...


def parse_message(line: str) -> RenderMessage | None:
    match = MESSAGE_RE.match(line.strip())
    if not match:
        return None
    label = match.group("severity")
    severity = Severity.WARN if label == "DEPRECATED" else Severity.parse(label)
    return RenderMessage(severity=severity, text=match.group("text").strip())


def parse_messages(lines: Iterable[str]) -> list[RenderMessage]:
    messages: list[RenderMessage] = []
    for line in lines:
        message = parse_message(line)
        if message is not None:
            messages.append(message)
        elif line.strip():
            messages.append(RenderMessage(severity=Severity.INFO, text=line.strip()))
    return messages


def attribute_arguments(attributes: Mapping[str, str | None]) -> list[str]:
    arguments: list[str] = []
    for name, value in attributes.items():
        if value is None:
            arguments.append(f"{name}!")
        elif value == "":
            arguments.append(name)
        else:
            arguments.append(f"{name}={value}")
    return arguments
