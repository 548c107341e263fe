from __future__ import annotations

import asyncio
import tempfile
from pathlib import Path
from typing import Any

from fastapi import FastAPI, File, Form, HTTPException, UploadFile

from .config import ConfigError, ConversionConfig, build_conversion_config, load_config
from .core import ConversionError, ConversionService
from .discovery import DiscoveryError, is_source_document
from .renderers import RenderError, Renderer
from .settings import get_settings


def create_app(
    config_path: Path | None = None,
    *,
    require_enabled: bool = True,
    renderer: Renderer | None = None,
) -> FastAPI:
    settings = get_settings()
    config = settings.apply(load_config(config_path or settings.config_path))
    if require_enabled and not config.runtime.enable_local_api:
        raise RuntimeError("Local API is disabled. Enable it via config.runtime.enable_local_api")
    service = ConversionService(renderer, config.runtime)
    app = FastAPI(title="AsciiDoc Batch Converter", version="0.1.0")

    @app.get("/health")
    async def health() -> dict[str, str]:
        return {"status": "ok", "renderer": config.runtime.renderer}

    @app.post("/convert")
    async def convert(
        file: UploadFile = File(...),
        backend: str | None = Form(None),
        doctype: str | None = Form(None),
    ) -> dict[str, Any]:
        filename = Path(file.filename or "upload.adoc").name
        if not is_source_document(Path(filename), config.conversion.extensions):
            raise HTTPException(status_code=415, detail="UNSUPPORTED_EXTENSION")
        content = await file.read()
        max_bytes = config.runtime.max_file_size_mb * 1024 * 1024
        if len(content) > max_bytes:
            raise HTTPException(status_code=413, detail="SIZE_LIMIT")
        with tempfile.TemporaryDirectory() as workdir:
            source_dir = Path(workdir) / "src"
            source_dir.mkdir()
            source = source_dir / filename
            source.write_bytes(content)
            try:
                conversion = ConversionConfig(
                    source_dir=source_dir,
                    output_dir=Path(workdir) / "out",
                    backend=backend or config.conversion.backend,
                    doctype=doctype or config.conversion.doctype,
                    attributes=config.conversion.attributes,
                    safe_mode=config.conversion.safe_mode,
                    standalone=config.conversion.standalone,
                    fail_if=config.fail_if.to_fail_if(),
                )
            except ConfigError as exc:
                raise HTTPException(status_code=400, detail="INVALID_CONFIG") from exc
            try:
                artifact = await asyncio.to_thread(service.convert_document, source, conversion)
            except (ConversionError, RenderError) as exc:
                raise HTTPException(status_code=400, detail=exc.code) from exc
            rendered = artifact.path.read_text(encoding="utf-8", errors="replace")
        return {
            "filename": artifact.path.name,
            "content": rendered,
            "messages": [str(message) for message in artifact.messages],
        }

    @app.post("/batch")
    async def batch() -> dict[str, Any]:
        try:
            conversion = build_conversion_config(config)
        except ConfigError as exc:
            raise HTTPException(status_code=400, detail="INVALID_CONFIG") from exc
        try:
            result = await asyncio.to_thread(service.run_batch, conversion)
        except (DiscoveryError, ConversionError) as exc:
            raise HTTPException(status_code=400, detail=exc.code) from exc
        return {
            "batch_id": result.batch_id,
            "total": result.total,
            "successes": result.successes,
            "failures": [
                {"path": str(failure.path), "code": failure.code, "reason": failure.reason}
                for failure in result.failures
            ],
            "outputs": [str(artifact.path) for artifact in result.artifacts],
            "zip_path": str(result.zip_path) if result.zip_path else None,
        }

    return app
