from __future__ import annotations

from functools import lru_cache
from typing import Callable, Dict

from .asciidoc_py import AsciidocRenderer
from .asciidoctor import AsciidoctorRenderer
from .base import (
    RenderError,
    RenderOptions,
    RenderResult,
    Renderer,
    attribute_arguments,
    parse_message,
    parse_messages,
)

_RENDERER_FACTORIES: Dict[str, Callable[[], Renderer]] = {
    "asciidoc": AsciidocRenderer,
    "asciidoctor": AsciidoctorRenderer,
}


@lru_cache(maxsize=len(_RENDERER_FACTORIES))
def get_renderer(name: str) -> Renderer:
    factory = _RENDERER_FACTORIES.get(name.strip().lower())
    if not factory:
        raise KeyError(f"No renderer registered for {name!r}")
    return factory()


def available_renderers() -> tuple[str, ...]:
    return tuple(sorted(_RENDERER_FACTORIES))


__all__ = [
    "AsciidocRenderer",
    "AsciidoctorRenderer",
    "RenderError",
    "RenderOptions",
    "RenderResult",
    "Renderer",
    "attribute_arguments",
    "available_renderers",
    "get_renderer",
    "parse_message",
    "parse_messages",
]
