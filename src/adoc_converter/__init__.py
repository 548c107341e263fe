"""Batch conversion of AsciiDoc sources to HTML or DocBook."""

from .config import AppConfig, ConversionConfig, FailIf, SafeMode, build_conversion_config, load_config
from .core import ConversionError, ConversionService, OutputWriteError, SourceReadError
from .discovery import DiscoveryError, discover_documents
from .models import BatchResult, FileFailure, OutputArtifact, RenderMessage, Severity
from .renderers import RenderError, RenderOptions, RenderResult, Renderer

__all__ = [
    "AppConfig",
    "BatchResult",
    "ConversionConfig",
    "ConversionError",
    "ConversionService",
    "DiscoveryError",
    "FailIf",
    "FileFailure",
    "OutputArtifact",
    "OutputWriteError",
    "RenderError",
    "RenderMessage",
    "RenderOptions",
    "RenderResult",
    "Renderer",
    "SafeMode",
    "Severity",
    "SourceReadError",
    "build_conversion_config",
    "discover_documents",
    "load_config",
]
