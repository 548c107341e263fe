from __future__ import annotations

import json
import shlex
import tomllib
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from types import MappingProxyType
from typing import Any, Iterable, Mapping

from .models import Severity


CONFIG_FILE = Path("config.toml")
DEFAULT_BACKEND = "html5"
DEFAULT_EXTENSIONS: tuple[str, ...] = (".adoc", ".asciidoc", ".asc", ".ad")


class ConfigError(ValueError):
    """Raised when a conversion configuration is inconsistent."""


class SafeMode(str, Enum):
    UNSAFE = "unsafe"
    SAFE = "safe"
    SERVER = "server"
    SECURE = "secure"


@dataclass(slots=True, frozen=True)
class FailIf:
    """Renderer messages that turn an otherwise successful conversion into a failure."""

    severity: Severity | None = None
    contains_text: str | None = None

    @property
    def enabled(self) -> bool:
        return self.severity is not None or bool(self.contains_text and self.contains_text.strip())


AttributeValue = str | bool | int | float | None


def normalize_attribute(value: AttributeValue) -> str | None:
    # An empty string sets an attribute, None unsets it.
    if value is None or value is True or value == "true":
        return ""
    if value is False or value == "false":
        return None
    return str(value)


def normalize_attributes(attributes: Mapping[str, AttributeValue] | None) -> dict[str, str | None]:
    if not attributes:
        return {}
    return {str(name): normalize_attribute(value) for name, value in attributes.items()}


def resolved_attributes(attributes: Mapping[str, AttributeValue] | None) -> dict[str, str | None]:
    """Like :func:`normalize_attributes` for maps that are already parsed: ``None`` stays unset."""

    if not attributes:
        return {}
    return {
        str(name): None if value is None else normalize_attribute(value)
        for name, value in attributes.items()
    }


def parse_attribute_chain(chain: str | Iterable[str] | None) -> dict[str, str | None]:
    """Parse ``name=value`` pairs; a bare ``name`` sets and ``name!`` unsets."""

    if not chain:
        return {}
    tokens = shlex.split(chain) if isinstance(chain, str) else list(chain)
    parsed: dict[str, str | None] = {}
    for token in tokens:
        token = token.strip()
        if not token:
            continue
        name, sep, value = token.partition("=")
        name = name.strip()
        if not name:
            raise ConfigError(f"Invalid attribute definition: {token!r}")
        if name.endswith("!"):
            parsed[name[:-1]] = None
        elif sep:
            parsed[name] = normalize_attribute(value)
        else:
            parsed[name] = ""
    return parsed


def normalize_extensions(extensions: Iterable[str] | None) -> tuple[str, ...]:
    if not extensions:
        return DEFAULT_EXTENSIONS
    normalized: list[str] = []
    for extension in extensions:
        value = str(extension).strip().lower()
        if not value:
            continue
        if not value.startswith("."):
            value = f".{value}"
        if value not in normalized:
            normalized.append(value)
    return tuple(normalized) or DEFAULT_EXTENSIONS


@dataclass(slots=True, frozen=True)
class ConversionConfig:
    """Parameters for one batch run. Built once and never mutated."""

    source_dir: Path
    output_dir: Path | None = None
    backend: str = DEFAULT_BACKEND
    doctype: str | None = None
    attributes: Mapping[str, str | None] = field(default_factory=dict)
    in_place: bool = False
    safe_mode: SafeMode = SafeMode.UNSAFE
    base_dir: Path | None = None
    relative_base_dir: bool = False
    preserve_directories: bool = False
    recursive: bool = True
    extensions: tuple[str, ...] = DEFAULT_EXTENSIONS
    source_document_name: str | None = None
    skip_internal: bool = False
    standalone: bool = True
    copy_resources: bool = False
    zip_output: bool = False
    fail_if: FailIf | None = None

    def __post_init__(self) -> None:
        # Stored absolute: the asciidoc renderer switches the process working directory while it runs.
        object.__setattr__(self, "source_dir", Path(self.source_dir).absolute())
        if self.output_dir is not None:
            object.__setattr__(self, "output_dir", Path(self.output_dir).absolute())
        if self.base_dir is not None:
            object.__setattr__(self, "base_dir", Path(self.base_dir).absolute())
        object.__setattr__(self, "safe_mode", SafeMode(self.safe_mode))
        object.__setattr__(self, "extensions", normalize_extensions(self.extensions))
        object.__setattr__(self, "attributes", MappingProxyType(resolved_attributes(self.attributes)))
        if not self.backend or not self.backend.strip():
            raise ConfigError("backend must be a non-empty string")
        if self.in_place and self.output_dir is not None:
            raise ConfigError("in_place conversion cannot also write to an output directory")
        if not self.in_place and self.output_dir is None:
            raise ConfigError("output_dir is required unless in_place is enabled")
        if self.in_place and self.zip_output:
            raise ConfigError("zip_output requires an output directory")

    @property
    def effective_output_dir(self) -> Path:
        """Directory that receives run logs: the output root, or the sources when in place."""

        return self.source_dir if self.in_place else self.output_dir  # type: ignore[return-value]


@dataclass(slots=True)
class ConversionSection:
    """Defaults for conversions, as read from ``[conversion]`` in config.toml."""

    source_dir: Path | None = None
    output_dir: Path | None = None
    backend: str = DEFAULT_BACKEND
    doctype: str | None = None
    attributes: dict[str, str | None] = field(default_factory=dict)
    in_place: bool = False
    safe_mode: SafeMode = SafeMode.UNSAFE
    base_dir: Path | None = None
    relative_base_dir: bool = False
    preserve_directories: bool = False
    recursive: bool = True
    extensions: tuple[str, ...] = DEFAULT_EXTENSIONS
    source_document_name: str | None = None
    skip_internal: bool = False
    standalone: bool = True
    copy_resources: bool = False
    zip_output: bool = False


@dataclass(slots=True)
class FailIfSection:
    severity: str | None = None
    contains_text: str | None = None

    def to_fail_if(self) -> FailIf | None:
        if self.severity is None and not self.contains_text:
            return None
        try:
            severity = Severity.parse(self.severity) if self.severity else None
        except ValueError as exc:
            raise ConfigError(f"Unknown fail_if severity: {self.severity!r}") from exc
        return FailIf(severity=severity, contains_text=self.contains_text)


@dataclass(slots=True)
class RuntimeConfig:
    renderer: str = "asciidoc"
    log_file: str = "conversion-log.jsonl"
    summary_csv: str = "summary.csv"
    parallelism: int = 1
    max_file_size_mb: int = 25
    enable_local_api: bool = False


@dataclass(slots=True)
class APIConfig:
    host: str = "127.0.0.1"
    port: int = 8000


@dataclass(slots=True)
class AppConfig:
    runtime: RuntimeConfig = field(default_factory=RuntimeConfig)
    conversion: ConversionSection = field(default_factory=ConversionSection)
    fail_if: FailIfSection = field(default_factory=FailIfSection)
    api: APIConfig = field(default_factory=APIConfig)


def _read_toml(path: Path) -> Mapping[str, object]:
    if not path.exists():
        return {}
    with path.open("rb") as handle:
        return tomllib.load(handle)


def _optional_path(value: object | None) -> Path | None:
    if value is None or value == "":
        return None
    return Path(str(value))


def _optional_str(value: object | None) -> str | None:
    if value is None or value == "":
        return None
    return str(value)


def _tuple_of_strings(value: object | None, default: Iterable[str]) -> tuple[str, ...]:
    if not value:
        return tuple(default)
    if isinstance(value, str):
        return (value,)
    if isinstance(value, Iterable):
        return tuple(str(item) for item in value)
    raise TypeError(f"Unsupported extensions configuration: {value!r}")


def _build_runtime(data: Mapping[str, object] | None) -> RuntimeConfig:
    if not data:
        return RuntimeConfig()
    return RuntimeConfig(
        renderer=str(data.get("renderer", "asciidoc")),
        log_file=str(data.get("log_file", "conversion-log.jsonl")),
        summary_csv=str(data.get("summary_csv", "summary.csv")),
        parallelism=int(data.get("parallelism", 1)),
        max_file_size_mb=int(data.get("max_file_size_mb", 25)),
        enable_local_api=bool(data.get("enable_local_api", False)),
    )


def _build_conversion(data: Mapping[str, object] | None) -> ConversionSection:
    if not data:
        return ConversionSection()
    attributes = data.get("attributes")
    return ConversionSection(
        source_dir=_optional_path(data.get("source_dir")),
        output_dir=_optional_path(data.get("output_dir")),
        backend=str(data.get("backend", DEFAULT_BACKEND)),
        doctype=_optional_str(data.get("doctype")),
        attributes=normalize_attributes(attributes if isinstance(attributes, Mapping) else None),
        in_place=bool(data.get("in_place", False)),
        safe_mode=SafeMode(str(data.get("safe_mode", SafeMode.UNSAFE.value)).lower()),
        base_dir=_optional_path(data.get("base_dir")),
        relative_base_dir=bool(data.get("relative_base_dir", False)),
        preserve_directories=bool(data.get("preserve_directories", False)),
        recursive=bool(data.get("recursive", True)),
        extensions=normalize_extensions(_tuple_of_strings(data.get("extensions"), DEFAULT_EXTENSIONS)),
        source_document_name=_optional_str(data.get("source_document_name")),
        skip_internal=bool(data.get("skip_internal", False)),
        standalone=bool(data.get("standalone", True)),
        copy_resources=bool(data.get("copy_resources", False)),
        zip_output=bool(data.get("zip_output", False)),
    )


def _build_fail_if(data: Mapping[str, object] | None) -> FailIfSection:
    if not data:
        return FailIfSection()
    return FailIfSection(
        severity=_optional_str(data.get("severity")),
        contains_text=_optional_str(data.get("contains_text")),
    )


def _build_api(data: Mapping[str, object] | None) -> APIConfig:
    if not data:
        return APIConfig()
    return APIConfig(host=str(data.get("host", "127.0.0.1")), port=int(data.get("port", 8000)))


def _section(raw: Mapping[str, object], name: str) -> Mapping[str, object] | None:
    value = raw.get(name) if isinstance(raw, Mapping) else None
    return value if isinstance(value, Mapping) else None


def load_config(path: Path | None = None) -> AppConfig:
    path = path or CONFIG_FILE
    raw = _read_toml(path)
    return AppConfig(
        runtime=_build_runtime(_section(raw, "runtime")),
        conversion=_build_conversion(_section(raw, "conversion")),
        fail_if=_build_fail_if(_section(raw, "fail_if")),
        api=_build_api(_section(raw, "api")),
    )


def build_conversion_config(config: AppConfig, **overrides: Any) -> ConversionConfig:
    """Merge the file defaults with explicit overrides; ``None`` overrides are ignored."""

    section = config.conversion
    values: dict[str, Any] = {
        "source_dir": section.source_dir,
        "output_dir": section.output_dir,
        "backend": section.backend,
        "doctype": section.doctype,
        "attributes": dict(section.attributes),
        "in_place": section.in_place,
        "safe_mode": section.safe_mode,
        "base_dir": section.base_dir,
        "relative_base_dir": section.relative_base_dir,
        "preserve_directories": section.preserve_directories,
        "recursive": section.recursive,
        "extensions": section.extensions,
        "source_document_name": section.source_document_name,
        "skip_internal": section.skip_internal,
        "standalone": section.standalone,
        "copy_resources": section.copy_resources,
        "zip_output": section.zip_output,
        "fail_if": config.fail_if.to_fail_if(),
    }
    extra_attributes = overrides.pop("attributes", None)
    if extra_attributes:
        values["attributes"].update(resolved_attributes(extra_attributes))
    for key, value in overrides.items():
        if value is not None:
            values[key] = value
    if values["in_place"]:
        if overrides.get("output_dir") is not None:
            raise ConfigError("in_place conversion cannot also write to an output directory")
        values["output_dir"] = None
        values["zip_output"] = False
    if values["source_dir"] is None:
        raise ConfigError("source_dir is required")
    return ConversionConfig(**values)


def dump_config(config: AppConfig) -> str:
    conversion = config.conversion
    payload = {
        "runtime": {
            "renderer": config.runtime.renderer,
            "log_file": config.runtime.log_file,
            "summary_csv": config.runtime.summary_csv,
            "parallelism": config.runtime.parallelism,
            "max_file_size_mb": config.runtime.max_file_size_mb,
            "enable_local_api": config.runtime.enable_local_api,
        },
        "conversion": {
            "source_dir": str(conversion.source_dir) if conversion.source_dir else None,
            "output_dir": str(conversion.output_dir) if conversion.output_dir else None,
            "backend": conversion.backend,
            "doctype": conversion.doctype,
            "attributes": dict(conversion.attributes),
            "in_place": conversion.in_place,
            "safe_mode": conversion.safe_mode.value,
            "base_dir": str(conversion.base_dir) if conversion.base_dir else None,
            "relative_base_dir": conversion.relative_base_dir,
            "preserve_directories": conversion.preserve_directories,
            "recursive": conversion.recursive,
            "extensions": list(conversion.extensions),
            "source_document_name": conversion.source_document_name,
            "skip_internal": conversion.skip_internal,
            "standalone": conversion.standalone,
            "copy_resources": conversion.copy_resources,
            "zip_output": conversion.zip_output,
        },
        "fail_if": {
            "severity": config.fail_if.severity,
            "contains_text": config.fail_if.contains_text,
        },
        "api": {
            "host": config.api.host,
            "port": config.api.port,
        },
    }
    return json.dumps(payload, indent=2)
