from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path

from .config import CONFIG_FILE, AppConfig

ENV_PREFIX = "ADOC_"

_TRUE = {"1", "true", "yes", "on"}
_FALSE = {"0", "false", "no", "off"}


@dataclass(frozen=True, slots=True)
class Settings:
    """Environment overrides layered on top of config.toml."""

    config_path: Path = CONFIG_FILE
    enable_local_api: bool | None = None
    renderer: str | None = None

    def apply(self, config: AppConfig) -> AppConfig:
        if self.enable_local_api is not None:
            config.runtime.enable_local_api = self.enable_local_api
        if self.renderer:
            config.runtime.renderer = self.renderer
        return config


def _env(name: str) -> str | None:
    value = os.getenv(f"{ENV_PREFIX}{name}")
    if value is None or not value.strip():
        return None
    return value.strip()


def _flag(value: str | None) -> bool | None:
    if value is None:
        return None
    if value.lower() in _TRUE:
        return True
    if value.lower() in _FALSE:
        return False
    return None


def read_settings() -> Settings:
    config_env = _env("CONFIG_PATH")
    return Settings(
        config_path=Path(config_env) if config_env else CONFIG_FILE,
        enable_local_api=_flag(_env("ENABLE_LOCAL_API")),
        renderer=_env("RENDERER"),
    )


@lru_cache
def get_settings() -> Settings:
    return read_settings()


__all__ = ["ENV_PREFIX", "Settings", "get_settings", "read_settings"]
