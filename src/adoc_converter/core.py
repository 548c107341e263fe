from __future__ import annotations

import concurrent.futures
import time
from dataclasses import dataclass
from pathlib import Path
from threading import Event
from typing import Sequence

from .config import ConversionConfig, RuntimeConfig
from .discovery import iter_source_documents
from .logging import (
    BatchSummary,
    ConversionLogEntry,
    MessageCollector,
    RunLogger,
    StageTimings,
    append_summary_row,
    describe_fail_if,
)
from .models import BatchResult, FileFailure, OutputArtifact, RenderMessage
from .renderers import RenderError, RenderOptions, RenderResult, Renderer, get_renderer
from .resources import copy_resources
from .utils import generate_run_id, output_path_for, write_bytes, zip_directory


class ConversionError(RuntimeError):
    def __init__(self, code: str, message: str) -> None:
        super().__init__(message)
        self.code = code


class SourceReadError(ConversionError):
    def __init__(self, path: Path, exc: OSError) -> None:
        super().__init__("READ_ERROR", f"Unable to read {path}: {exc.strerror or exc}")
        self.path = path


class OutputWriteError(ConversionError):
    def __init__(self, path: Path, exc: OSError) -> None:
        super().__init__("IO_ERROR", f"Unable to write {path}: {exc.strerror or exc}")
        self.path = path


@dataclass(slots=True)
class _BatchContext:
    batch_id: str
    config: ConversionConfig
    logger: RunLogger | None
    cancellation: Event | None


@dataclass(slots=True)
class _GroupOutcome:
    artifacts: list[OutputArtifact]
    failures: list[FileFailure]
    skipped: int = 0


class ConversionService:
    """Converts AsciiDoc sources through an injected renderer."""

    def __init__(self, renderer: Renderer | None = None, runtime: RuntimeConfig | None = None) -> None:
        self._runtime = runtime or RuntimeConfig()
        self._renderer = renderer

    @property
    def renderer(self) -> Renderer:
        if self._renderer is None:
            self._renderer = get_renderer(self._runtime.renderer)
        return self._renderer

    def render_options(self, source: Path, config: ConversionConfig) -> RenderOptions:
        if config.base_dir is not None:
            base_dir = config.base_dir
        elif config.relative_base_dir:
            base_dir = source.parent
        else:
            base_dir = config.source_dir
        return RenderOptions(
            backend=config.backend,
            base_dir=base_dir,
            safe_mode=config.safe_mode,
            doctype=config.doctype,
            attributes=config.attributes,
            standalone=config.standalone,
        )

    def logger_for(self, config: ConversionConfig) -> RunLogger | None:
        if not self._runtime.log_file:
            return None
        return RunLogger(config.effective_output_dir / self._runtime.log_file)

    def convert_document(
        self,
        path: Path,
        config: ConversionConfig,
        *,
        batch_id: str | None = None,
        logger: RunLogger | None = None,
    ) -> OutputArtifact:
        """Render one source and write it to its destination.

        Raises ``RenderError`` when the engine rejects the document and
        ``OutputWriteError`` when the destination cannot be written.
        """

        batch_id = batch_id or generate_run_id("doc")
        destination = output_path_for(path, config)
        timings = StageTimings(0.0, 0.0, 0.0)
        messages: list[RenderMessage] = []
        try:
            content = self._read_source(path, timings)
            result = self._render(path, content, config, timings)
            messages = result.messages
            self._write_output(destination, result.content, timings)
        except (ConversionError, RenderError) as exc:
            if isinstance(exc, RenderError):
                messages = exc.messages
            self._log(logger, batch_id, path, None, "failure", config, exc.code, messages, timings, 0)
            raise
        size = len(result.content)
        self._log(logger, batch_id, path, destination, "success", config, None, messages, timings, size)
        return OutputArtifact(source=path, path=destination, size_bytes=size, messages=messages)

    def _read_source(self, path: Path, timings: StageTimings) -> bytes:
        start = time.perf_counter()
        try:
            content = path.read_bytes()
        except OSError as exc:
            raise SourceReadError(path, exc) from exc
        timings.read_ms = (time.perf_counter() - start) * 1000
        return content

    def _render(
        self, path: Path, content: bytes, config: ConversionConfig, timings: StageTimings
    ) -> RenderResult:
        start = time.perf_counter()
        try:
            result = self.renderer.render(content, self.render_options(path, config))
        except RenderError:
            raise
        except Exception as exc:
            raise RenderError(f"{type(exc).__name__}: {exc}") from exc
        timings.render_ms = (time.perf_counter() - start) * 1000
        collector = MessageCollector(result.messages)
        if config.fail_if is not None:
            matched = collector.failures(config.fail_if)
            if matched:
                raise RenderError(
                    describe_fail_if(len(matched), config.fail_if),
                    code="FAIL_IF",
                    messages=collector.records,
                )
        return RenderResult(content=result.content, messages=collector.records)

    def _write_output(self, destination: Path, content: bytes, timings: StageTimings) -> None:
        start = time.perf_counter()
        try:
            write_bytes(destination, content)
        except OSError as exc:
            raise OutputWriteError(destination, exc) from exc
        timings.write_ms = (time.perf_counter() - start) * 1000

    def _log(
        self,
        logger: RunLogger | None,
        batch_id: str,
        source: Path,
        destination: Path | None,
        status: str,
        config: ConversionConfig,
        error_code: str | None,
        messages: Sequence[RenderMessage],
        timings: StageTimings,
        size_bytes: int,
    ) -> None:
        if logger is None:
            return
        logger.append(
            ConversionLogEntry(
                batch_id=batch_id,
                source=str(source),
                destination=str(destination) if destination is not None else None,
                status=status,
                backend=config.backend,
                error_code=error_code,
                messages=[str(message) for message in messages],
                timings=timings,
                size_bytes=size_bytes,
            )
        )

    def run_batch(
        self,
        config: ConversionConfig,
        *,
        parallelism: int | None = None,
        cancellation: Event | None = None,
    ) -> BatchResult:
        """Convert every discovered document, isolating per-file failures.

        ``DiscoveryError`` aborts the run; render and write failures are
        recorded and the batch moves on. Outputs already written are kept.
        """

        batch_id = generate_run_id("batch")
        sources = [document.path for document in iter_source_documents(config)]
        self._prepare_output_dir(config)
        logger = self.logger_for(config)
        context = _BatchContext(batch_id=batch_id, config=config, logger=logger, cancellation=cancellation)

        if config.copy_resources:
            copy_resources(config)

        groups = self._group_by_destination(sources, context)
        workers = max(1, parallelism or self._runtime.parallelism)
        if workers == 1 or len(groups) <= 1:
            outcomes = [self._convert_group(group, context) for group in groups]
        else:
            outcomes = self._run_parallel(groups, context, workers)

        result = BatchResult(total=len(sources), batch_id=batch_id)
        for outcome in outcomes:
            result.artifacts.extend(outcome.artifacts)
            result.failures.extend(outcome.failures)
            if outcome.skipped:
                result.cancelled = True
        result.artifacts.sort(key=lambda artifact: str(artifact.source))
        result.failures.sort(key=lambda failure: str(failure.path))

        if config.zip_output and config.output_dir is not None and not result.cancelled:
            result.zip_path = zip_directory(config.output_dir, exclude=self._bookkeeping_files())
        self._write_summary(config, result)
        return result

    def _prepare_output_dir(self, config: ConversionConfig) -> None:
        if config.in_place or config.output_dir is None:
            return
        try:
            config.output_dir.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise OutputWriteError(config.output_dir, exc) from exc

    def _group_by_destination(self, sources: Sequence[Path], context: _BatchContext) -> list[list[Path]]:
        # Sources sharing a destination run in one group, in discovery order, so the last one wins.
        groups: dict[Path, list[Path]] = {}
        for source in sources:
            destination = output_path_for(source, context.config)
            group = groups.setdefault(destination, [])
            if group:
                self._log(
                    context.logger,
                    context.batch_id,
                    source,
                    destination,
                    "duplicate",
                    context.config,
                    None,
                    [],
                    StageTimings(0.0, 0.0, 0.0),
                    0,
                )
            group.append(source)
        return list(groups.values())

    def _convert_group(self, group: Sequence[Path], context: _BatchContext) -> _GroupOutcome:
        outcome = _GroupOutcome(artifacts=[], failures=[])
        for index, path in enumerate(group):
            if context.cancellation is not None and context.cancellation.is_set():
                outcome.skipped += len(group) - index
                break
            try:
                artifact = self.convert_document(
                    path, context.config, batch_id=context.batch_id, logger=context.logger
                )
            except (ConversionError, RenderError) as exc:
                outcome.failures.append(FileFailure(path=path, code=exc.code, reason=str(exc)))
                continue
            outcome.artifacts.append(artifact)
        return outcome

    def _run_parallel(
        self, groups: Sequence[Sequence[Path]], context: _BatchContext, parallelism: int
    ) -> list[_GroupOutcome]:
        outcomes: list[_GroupOutcome] = []
        with concurrent.futures.ThreadPoolExecutor(max_workers=parallelism) as executor:
            futures = [executor.submit(self._convert_group, group, context) for group in groups]
            for future in concurrent.futures.as_completed(futures):
                outcomes.append(future.result())
        return outcomes

    def _bookkeeping_files(self) -> tuple[str, ...]:
        return tuple(name for name in (self._runtime.log_file, self._runtime.summary_csv) if name)

    def _write_summary(self, config: ConversionConfig, result: BatchResult) -> None:
        if not self._runtime.summary_csv or result.batch_id is None:
            return
        summary = BatchSummary(
            total=result.total,
            successes=result.successes,
            failures=len(result.failures),
            cancelled=result.cancelled,
        )
        append_summary_row(config.effective_output_dir / self._runtime.summary_csv, summary, result.batch_id)


__all__ = [
    "ConversionError",
    "ConversionService",
    "OutputWriteError",
    "SourceReadError",
]
