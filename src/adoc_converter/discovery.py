from __future__ import annotations

from pathlib import Path
from typing import Iterable, Iterator

from .config import DEFAULT_EXTENSIONS, ConversionConfig, normalize_extensions
from .models import SourceDocument


class DiscoveryError(RuntimeError):
    """Raised when the source tree cannot be read."""

    code = "DISCOVERY_FAILED"

    def __init__(self, path: Path, message: str) -> None:
        super().__init__(f"{message}: {path}")
        self.path = path


def is_source_document(path: Path, extensions: Iterable[str] = DEFAULT_EXTENSIONS) -> bool:
    return path.suffix.lower() in tuple(extensions)


def _is_internal(path: Path, root: Path) -> bool:
    return any(part.startswith(("_", ".")) for part in path.relative_to(root).parts)


def _list_directory(directory: Path) -> list[Path]:
    try:
        return sorted(directory.iterdir())
    except OSError as exc:
        raise DiscoveryError(directory, f"Unable to list directory ({exc.strerror or exc})") from exc


def _walk(directory: Path, recursive: bool) -> Iterator[Path]:
    entries = _list_directory(directory)
    for entry in entries:
        if entry.is_file():
            yield entry
    if recursive:
        for entry in entries:
            if entry.is_dir() and not entry.is_symlink():
                yield from _walk(entry, recursive)


def discover_documents(
    root: Path,
    *,
    recursive: bool = True,
    extensions: Iterable[str] | None = None,
    skip_internal: bool = False,
) -> Iterator[Path]:
    """Lazily yield AsciiDoc sources below *root*.

    Files of one directory come before its subdirectories, each group sorted
    by name. A failure partway through raises ``DiscoveryError``; paths
    already yielded stay valid.
    """

    root = Path(root)
    if not root.exists():
        raise DiscoveryError(root, "Source directory does not exist")
    if not root.is_dir():
        raise DiscoveryError(root, "Source path is not a directory")
    allowed = normalize_extensions(extensions)
    for path in _walk(root, recursive):
        if not is_source_document(path, allowed):
            continue
        if skip_internal and _is_internal(path, root):
            continue
        yield path


def iter_source_documents(config: ConversionConfig) -> Iterator[SourceDocument]:
    if config.source_document_name:
        root = config.source_dir
        if not root.is_dir():
            raise DiscoveryError(root, "Source directory does not exist")
        candidate = root / config.source_document_name
        if not candidate.is_file():
            raise DiscoveryError(candidate, "Source document does not exist")
        yield SourceDocument(candidate)
        return
    for path in discover_documents(
        config.source_dir,
        recursive=config.recursive,
        extensions=config.extensions,
        skip_internal=config.skip_internal,
    ):
        yield SourceDocument(path)


__all__ = [
    "DiscoveryError",
    "discover_documents",
    "is_source_document",
    "iter_source_documents",
]
