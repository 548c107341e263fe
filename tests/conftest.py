from __future__ import annotations

import threading
from pathlib import Path

import pytest

from adoc_converter.models import RenderMessage, Severity
from adoc_converter.renderers import RenderError, RenderOptions, RenderResult


class FakeRenderer:
    """Deterministic stand-in for a rendering engine.

    An odd number of ``----`` delimiters is treated as an unterminated block,
    and lines starting with ``WARN:`` are reported as warnings.
    """

    def __init__(self) -> None:
        self.calls: list[tuple[bytes, RenderOptions]] = []
        self._lock = threading.Lock()

    def render(self, content: bytes, options: RenderOptions) -> RenderResult:
        with self._lock:
            self.calls.append((content, options))
        text = content.decode("utf-8")
        if text.count("----") % 2:
            raise RenderError("unterminated listing block")
        messages = [
            RenderMessage(Severity.WARN, line[len("WARN:"):].strip())
            for line in text.splitlines()
            if line.startswith("WARN:")
        ]
        parts = [f"<!-- backend={options.backend} doctype={options.doctype} -->"]
        if "toc" in options.attributes and options.attributes["toc"] is not None:
            parts.append('<div id="toc" class="toc"></div>')
        parts.append(f"<pre>{text}</pre>")
        return RenderResult(content="\n".join(parts).encode("utf-8"), messages=messages)


@pytest.fixture
def fake_renderer() -> FakeRenderer:
    return FakeRenderer()


@pytest.fixture
def source_tree(tmp_path: Path) -> Path:
    """The a.adoc / b.txt / c.asc layout, with c.asc left unterminated."""

    source = tmp_path / "src"
    source.mkdir()
    (source / "a.adoc").write_text("= Title\n\ncontent\n", encoding="utf-8")
    (source / "b.txt").write_text("not a document\n", encoding="utf-8")
    (source / "c.asc").write_text("= Broken\n\n----\nnever closed\n", encoding="utf-8")
    return source
