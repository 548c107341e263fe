from __future__ import annotations

import io
import threading

from .base import RenderError, RenderOptions, RenderResult, parse_messages
from ..config import SafeMode
from ..utils import temporary_workdir


class AsciidocRenderer:
    """Renders through the ``asciidoc`` package's :class:`AsciiDocAPI`.

    The engine reloads module state on every run and includes are resolved
    against the working directory, so calls are serialized process-wide.
    """

    name = "asciidoc"
    _lock = threading.Lock()

    def __init__(self) -> None:
        try:
            from asciidoc.api import AsciiDocAPI, AsciiDocError
        except ModuleNotFoundError as exc:  # pragma: no cover - import guard
            raise RenderError(
                "asciidoc dependency is required for the default renderer",
                code="RENDERER_UNAVAILABLE",
            ) from exc

        self._api_factory = AsciiDocAPI
        self._error_type = AsciiDocError

    def _build_api(self, options: RenderOptions):  # type: ignore[no-untyped-def]
        api = self._api_factory()
        if options.safe_mode is not SafeMode.UNSAFE:
            api.options("--safe")
        if options.doctype:
            api.options("--doctype", options.doctype)
        if not options.standalone:
            api.options("--no-header-footer")
        api.attributes.update(dict(options.attributes))
        return api

    def render(self, content: bytes, options: RenderOptions) -> RenderResult:
        try:
            text = content.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise RenderError(f"Document is not valid UTF-8: {exc}") from exc

        source = io.StringIO(text)
        target = io.StringIO()
        with self._lock:
            api = self._build_api(options)
            try:
                with temporary_workdir(options.base_dir):
                    api.execute(source, target, backend=options.backend)
            except self._error_type as exc:
                messages = parse_messages(api.messages)
                raise RenderError(str(exc), messages=messages) from exc
            except OSError as exc:
                raise RenderError(f"Unable to render from {options.base_dir}: {exc}") from exc
            messages = parse_messages(api.messages)
        return RenderResult(content=target.getvalue().encode("utf-8"), messages=messages)
