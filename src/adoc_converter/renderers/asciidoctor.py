from __future__ import annotations

import shutil
import subprocess
from typing import Sequence

from .base import RenderError, RenderOptions, RenderResult, attribute_arguments, parse_messages


class AsciidoctorRenderer:
    """Pipes documents through the ``asciidoctor`` executable."""

    name = "asciidoctor"

    def __init__(self, executable: str = "asciidoctor", *, timeout_s: float | None = 300) -> None:
        self._executable = executable
        self._timeout_s = timeout_s

    def build_command(self, options: RenderOptions) -> list[str]:
        command = [
            self._executable,
            "--safe-mode",
            options.safe_mode.value,
            "--base-dir",
            str(options.base_dir.absolute()),
            "--backend",
            options.backend,
        ]
        if options.doctype:
            command.extend(["--doctype", options.doctype])
        if not options.standalone:
            command.append("--embedded")
        for argument in attribute_arguments(options.attributes):
            command.extend(["--attribute", argument])
        command.extend(["--out-file", "-", "-"])
        return command

    def _run(self, command: Sequence[str], content: bytes) -> subprocess.CompletedProcess[bytes]:
        if shutil.which(command[0]) is None:
            raise RenderError(f"{command[0]} executable not found", code="RENDERER_UNAVAILABLE")
        try:
            return subprocess.run(
                command,
                input=content,
                capture_output=True,
                check=False,
                timeout=self._timeout_s,
            )
        except subprocess.TimeoutExpired as exc:
            raise RenderError(f"{command[0]} timed out after {self._timeout_s}s") from exc

    def render(self, content: bytes, options: RenderOptions) -> RenderResult:
        completed = self._run(self.build_command(options), content)
        stderr = completed.stderr.decode("utf-8", errors="replace")
        messages = parse_messages(stderr.splitlines())
        if completed.returncode != 0:
            detail = stderr.strip().splitlines()[-1] if stderr.strip() else f"exit status {completed.returncode}"
            raise RenderError(detail, messages=messages)
        return RenderResult(content=completed.stdout, messages=messages)
