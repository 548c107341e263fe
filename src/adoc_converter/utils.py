from __future__ import annotations

import hashlib
import os
import tempfile
import time
from contextlib import contextmanager
from pathlib import Path
from typing import Iterable, Iterator
from zipfile import ZIP_DEFLATED, ZipFile

from .config import ConversionConfig


DOCBOOK_BACKENDS = frozenset({"docbook", "docbook45", "docbook5"})


def output_extension(backend: str) -> str:
    return ".xml" if backend.strip().lower() in DOCBOOK_BACKENDS else ".html"


def output_path_for(source: Path, config: ConversionConfig) -> Path:
    """Where the rendered form of *source* is written."""

    filename = source.with_suffix(output_extension(config.backend)).name
    if config.in_place:
        return source.parent / filename
    output_dir = config.effective_output_dir
    if config.preserve_directories:
        try:
            relative_parent = source.parent.resolve().relative_to(config.source_dir.resolve())
        except ValueError:
            relative_parent = Path()
        return output_dir / relative_parent / filename
    return output_dir / filename


def generate_run_id(prefix: str = "batch") -> str:
    epoch_ms = int(time.time() * 1000)
    random_bits = hashlib.sha256(os.urandom(16)).hexdigest()[:8]
    return f"{prefix}-{epoch_ms}-{random_bits}"


def write_bytes(path: Path, data: bytes) -> None:
    # Concurrent workers may race on the parent directory; exist_ok covers it.
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(data)


def atomic_write(path: Path, data: str, encoding: str = "utf-8") -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    with tempfile.NamedTemporaryFile("w", delete=False, dir=path.parent, encoding=encoding) as tmp:
        tmp.write(data)
        tmp.flush()
        os.fsync(tmp.fileno())
    os.replace(tmp.name, path)


@contextmanager
def temporary_workdir(path: Path) -> Iterator[None]:
    original = Path.cwd()
    try:
        os.chdir(path)
        yield
    finally:
        os.chdir(original)


def zip_directory(directory: Path, zip_path: Path | None = None, *, exclude: Iterable[str] = ()) -> Path:
    """Archive *directory* next to itself, entries rooted at the directory name.

    Top-level files named in *exclude* are left out.
    """

    zip_path = zip_path or directory.with_name(f"{directory.name}.zip")
    excluded = {directory / name for name in exclude}
    files = sorted(
        p for p in directory.rglob("*") if p.is_file() and p != zip_path and p not in excluded
    )
    with ZipFile(zip_path, "w", compression=ZIP_DEFLATED) as archive:
        for file_path in files:
            relative = file_path.relative_to(directory)
            archive.write(file_path, (Path(directory.name) / relative).as_posix())
    return zip_path
