"""Copy non-document resources (images, stylesheets, ...) next to the rendered output."""

from __future__ import annotations

import shutil
from fnmatch import fnmatch
from pathlib import Path

from .config import ConversionConfig
from .discovery import is_source_document


# docinfo snippets are merged by the renderer, never published on their own
DOCINFO_PATTERNS: tuple[str, ...] = (
    "docinfo.html",
    "docinfo-header.html",
    "docinfo-footer.html",
    "*-docinfo.html",
    "*-docinfo-header.html",
    "*-docinfo-footer.html",
    "docinfo.xml",
    "docinfo-header.xml",
    "docinfo-footer.xml",
    "*-docinfo.xml",
    "*-docinfo-header.xml",
    "*-docinfo-footer.xml",
)


def is_resource(path: Path, root: Path, config: ConversionConfig) -> bool:
    relative = path.relative_to(root)
    if any(part.startswith(("_", ".")) for part in relative.parts):
        return False
    if is_source_document(path, config.extensions):
        return False
    return not any(fnmatch(path.name, pattern) for pattern in DOCINFO_PATTERNS)


def _inside(path: Path, directory: Path) -> bool:
    try:
        path.resolve().relative_to(directory.resolve())
    except ValueError:
        return False
    return True


def copy_resources(config: ConversionConfig) -> list[Path]:
    """Mirror every resource under the source tree into the output directory."""

    if config.in_place or config.output_dir is None:
        return []
    root = config.source_dir
    output_dir = config.output_dir
    copied: list[Path] = []
    for path in sorted(root.rglob("*")):
        if not path.is_file() or _inside(path, output_dir):
            continue
        if not is_resource(path, root, config):
            continue
        destination = output_dir / path.relative_to(root)
        destination.parent.mkdir(parents=True, exist_ok=True)
        shutil.copy2(path, destination)
        copied.append(destination)
    return copied


__all__ = ["DOCINFO_PATTERNS", "copy_resources", "is_resource"]
