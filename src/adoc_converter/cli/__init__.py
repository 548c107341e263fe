from __future__ import annotations

from pathlib import Path

import typer
from rich.console import Console
from rich.table import Table

from ..config import (
    AppConfig,
    ConfigError,
    FailIf,
    FailIfSection,
    SafeMode,
    build_conversion_config,
    dump_config,
    load_config,
    parse_attribute_chain,
)
from ..core import ConversionError, ConversionService
from ..discovery import DiscoveryError
from ..renderers import RenderError, get_renderer
from ..settings import get_settings

console = Console()

app = typer.Typer(help="Batch conversion of AsciiDoc documents to HTML or DocBook")


def _load_config(path: Path | None) -> AppConfig:
    settings = get_settings()
    return settings.apply(load_config(path or settings.config_path))


def _fail_if_override(cfg: AppConfig, severity: str | None, text: str | None) -> FailIf | None:
    if severity is None and text is None:
        return None
    section = FailIfSection(
        severity=severity or cfg.fail_if.severity,
        contains_text=text or cfg.fail_if.contains_text,
    )
    return section.to_fail_if()


@app.command()
def convert(
    source_dir: Path | None = typer.Argument(None, help="Directory to scan for AsciiDoc sources"),
    output_dir: Path | None = typer.Option(None, "--output-dir", "-o", help="Directory receiving rendered files"),
    backend: str | None = typer.Option(None, "--backend", "-b", help="Renderer backend, e.g. html5 or docbook"),
    doctype: str | None = typer.Option(None, "--doctype", "-d", help="Document type passed to the renderer"),
    attribute: list[str] | None = typer.Option(None, "--attribute", "-a", help="Document attribute name=value"),
    in_place: bool = typer.Option(False, "--in-place", help="Write output beside each source"),
    shallow: bool = typer.Option(False, "--shallow", help="Do not descend into subdirectories"),
    preserve_directories: bool = typer.Option(
        False, "--preserve-directories", help="Mirror the source tree under the output directory"
    ),
    safe_mode: SafeMode | None = typer.Option(None, "--safe-mode", case_sensitive=False, help="Renderer safe mode"),
    renderer: str | None = typer.Option(None, "--renderer", help="Rendering engine: asciidoc or asciidoctor"),
    parallel: int | None = typer.Option(None, "--parallel", min=1, help="Parallel workers"),
    copy_resources: bool = typer.Option(False, "--copy-resources", help="Copy images and other resources"),
    zip_output: bool = typer.Option(False, "--zip", help="Archive the output directory"),
    document: str | None = typer.Option(
        None, "--document", help="Convert only this file name from the source directory"
    ),
    base_dir: Path | None = typer.Option(None, "--base-dir", help="Directory that includes resolve against"),
    relative_base_dir: bool = typer.Option(
        False, "--relative-base-dir", help="Resolve includes against each document's own directory"
    ),
    skip_internal: bool = typer.Option(False, "--skip-internal", help="Ignore paths starting with _ or ."),
    embedded: bool = typer.Option(False, "--embedded", help="Render without header and footer"),
    fail_if_severity: str | None = typer.Option(
        None, "--fail-if-severity", help="Fail a document on renderer messages at or above this severity"
    ),
    fail_if_text: str | None = typer.Option(
        None, "--fail-if-text", help="Fail a document on renderer messages containing this text"
    ),
    config: Path | None = typer.Option(None, "--config", help="Path to config.toml"),
) -> None:
    cfg = _load_config(config)
    # Flags only switch features on; anything left unset falls back to config.toml.
    try:
        conversion = build_conversion_config(
            cfg,
            source_dir=source_dir,
            output_dir=output_dir,
            backend=backend,
            doctype=doctype,
            attributes=parse_attribute_chain(attribute),
            in_place=in_place or None,
            recursive=False if shallow else None,
            preserve_directories=preserve_directories or None,
            safe_mode=safe_mode,
            copy_resources=copy_resources or None,
            zip_output=zip_output or None,
            source_document_name=document,
            base_dir=base_dir,
            relative_base_dir=relative_base_dir or None,
            skip_internal=skip_internal or None,
            standalone=False if embedded else None,
            fail_if=_fail_if_override(cfg, fail_if_severity, fail_if_text),
        )
    except ConfigError as exc:
        console.print(f"[red]Invalid configuration[/red]: {exc}")
        raise typer.Exit(2) from exc

    try:
        engine = get_renderer(renderer or cfg.runtime.renderer)
    except (KeyError, RenderError) as exc:
        console.print(f"[red]Renderer unavailable[/red]: {exc}")
        raise typer.Exit(2) from exc

    service = ConversionService(engine, cfg.runtime)
    try:
        result = service.run_batch(conversion, parallelism=parallel)
    except (DiscoveryError, ConversionError) as exc:
        console.print(f"[red]Batch aborted[/red]: {exc}")
        raise typer.Exit(1) from exc

    if result.failures:
        table = Table(title="Failed documents")
        table.add_column("Source")
        table.add_column("Code")
        table.add_column("Reason")
        for failure in result.failures:
            table.add_row(str(failure.path), failure.code, failure.reason)
        console.print(table)
    console.print(
        f"Found {result.total} documents: "
        f"{result.successes} converted, {len(result.failures)} failed."
    )
    if result.zip_path:
        console.print(f"Output archive: {result.zip_path}")
    if result.failures:
        raise typer.Exit(1)


@app.command()
def show_config(
    config: Path | None = typer.Option(None, "--config", help="Path to config.toml"),
) -> None:
    console.print_json(dump_config(_load_config(config)))


if __name__ == "__main__":
    app()
