from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, Field, ValidationError, field_validator

from traffic_stats.core.constants import (
    DEFAULT_INTERFACES,
    DEFAULT_INTERVAL_SECONDS,
    MAX_REASONABLE_KBPS,
)
from traffic_stats.core.exceptions import ConfigError

_log = logging.getLogger("traffic_stats.config")


class MonitorConfig(BaseModel):
    interval_seconds: float = DEFAULT_INTERVAL_SECONDS
    max_reasonable_kbps: int = MAX_REASONABLE_KBPS
    interfaces: list[str] = Field(default_factory=lambda: list(DEFAULT_INTERFACES))
    nowrap: bool = False

    @field_validator("interval_seconds")
    @classmethod
    def _interval_positive(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("interval_seconds must be > 0")
        return v

    @field_validator("max_reasonable_kbps")
    @classmethod
    def _max_positive(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("max_reasonable_kbps must be > 0")
        return v

    @field_validator("interfaces")
    @classmethod
    def _interfaces_clean(cls, v: list[str]) -> list[str]:
        out: list[str] = []
        for name in v:
            name = name.strip()
            if not name:
                raise ValueError("interface names must not be blank")
            if name not in out:
                out.append(name)
        if not out:
            raise ValueError("interfaces must list at least one interface")
        return out


class LoggingConfig(BaseModel):
    level: str = "INFO"
    log_dir: str = "./logs"
    file_logging: bool = True

    @field_validator("level")
    @classmethod
    def _known_level(cls, v: str) -> str:
        v = v.strip().upper()
        if v not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"unknown log level: {v}")
        return v


class UIConfig(BaseModel):
    enabled: bool = True


class AppConfig(BaseModel):
    monitor: MonitorConfig = Field(default_factory=MonitorConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    ui: UIConfig = Field(default_factory=UIConfig)

    def monitor_kwargs(self) -> dict[str, Any]:
        return {
            "interval_seconds": float(self.monitor.interval_seconds),
            "max_reasonable_kbps": int(self.monitor.max_reasonable_kbps),
        }


def load_yaml(path: Path) -> dict[str, Any]:
    try:
        with path.open("r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except FileNotFoundError as exc:
        raise ConfigError(f"Config file not found: {path}") from exc
    except Exception as exc:
        raise ConfigError(f"Failed reading config yaml: {path}") from exc
    if not isinstance(data, dict):
        raise ConfigError(f"Config yaml must be a mapping: {path}")
    return data


def load_config(
    config_path: str | Path | None = None,
    overrides_json: str | None = None,
) -> AppConfig:
    load_dotenv(override=False)
    raw: dict[str, Any] = {}
    if config_path is not None:
        raw = load_yaml(Path(config_path))

    if overrides_json:
        try:
            override = json.loads(overrides_json)
        except json.JSONDecodeError as exc:
            _log.warning("ignoring corrupt config overrides", extra={"error": str(exc)})
        else:
            if isinstance(override, dict):
                raw = _deep_merge_dicts(raw, override)
            else:
                _log.warning("ignoring config overrides that are not an object")

    try:
        return AppConfig.model_validate(raw)
    except ValidationError as exc:
        raise ConfigError(str(exc)) from exc


def _deep_merge_dicts(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    out: dict[str, Any] = dict(base)
    for k, v in override.items():
        if k in out and isinstance(out[k], dict) and isinstance(v, dict):
            out[k] = _deep_merge_dicts(out[k], v)
        else:
            out[k] = v
    return out
