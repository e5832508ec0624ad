"""
prompt-refinery: runtime settings

File: src/prompt_refinery/config/settings.py
Last updated: 2026-10-17

Purpose
- Load effective refinement settings from defaults, a TOML file, environment
  variables, and explicit overrides.

What should be included in this file
- Precedence logic: overrides > env (REFINERY_) > file > defaults.
- TOML loading via ``tomllib`` (``[refinement]`` table).
- Deterministic environment variable mapping and coercion.
- Timeout clamping into the supported per-attempt range.

Functional requirements
- Unknown keys and values that cannot be coerced raise ``ConfigLoadError``.
- A relative ``template_path`` resolves against the config file directory.

Non-functional requirements
- The orchestrator never reads the environment; settings are injected.
"""

from __future__ import annotations

import os
import tomllib
from collections.abc import Mapping
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any, Final, Literal

from prompt_refinery.constants import (
    DEFAULT_MAX_RETRIES_429,
    DEFAULT_TIMEOUT_MS,
    MAX_TIMEOUT_MS,
    MIN_TIMEOUT_MS,
)

DEFAULT_CONFIG_FILE: Final[str] = "refinery.toml"
CONFIG_TABLE: Final[str] = "refinement"
ENV_PREFIX: Final[str] = "REFINERY_"

_BOOLEAN_TRUE: Final[frozenset[str]] = frozenset({"1", "true", "t", "yes", "y", "on"})
_BOOLEAN_FALSE: Final[frozenset[str]] = frozenset({"0", "false", "f", "no", "n", "off"})
_LOG_LEVELS: Final[frozenset[str]] = frozenset({"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"})

_ValueKind = Literal["str", "int", "bool", "path"]

_FIELD_KINDS: Final[dict[str, _ValueKind]] = {
    "timeout_ms": "int",
    "max_retries_429": "int",
    "auto_strip_additional_props": "bool",
    "template_path": "path",
    "log_level": "str",
}


class ConfigLoadError(ValueError):
    """Raised when settings cannot be loaded or values cannot be coerced."""


def clamp_timeout_ms(value: int) -> int:
    return max(MIN_TIMEOUT_MS, min(MAX_TIMEOUT_MS, int(value)))


@dataclass(frozen=True, slots=True)
class RefinementSettings:
    """Effective settings for one orchestrator instance."""

    timeout_ms: int = DEFAULT_TIMEOUT_MS
    max_retries_429: int = DEFAULT_MAX_RETRIES_429
    auto_strip_additional_props: bool = False
    template_path: Path | None = None
    log_level: str = "INFO"

    def __post_init__(self) -> None:
        if isinstance(self.timeout_ms, bool) or not isinstance(self.timeout_ms, int):
            raise ConfigLoadError("timeout_ms must be an integer")
        object.__setattr__(self, "timeout_ms", clamp_timeout_ms(self.timeout_ms))

        if isinstance(self.max_retries_429, bool) or not isinstance(self.max_retries_429, int):
            raise ConfigLoadError("max_retries_429 must be an integer")
        if self.max_retries_429 < 0:
            raise ConfigLoadError("max_retries_429 must be >= 0")

        if not isinstance(self.auto_strip_additional_props, bool):
            raise ConfigLoadError("auto_strip_additional_props must be a boolean")

        if self.template_path is not None:
            object.__setattr__(self, "template_path", Path(self.template_path))

        level = str(self.log_level).strip().upper()
        if level not in _LOG_LEVELS:
            raise ConfigLoadError(f"log_level must be one of {sorted(_LOG_LEVELS)}")
        object.__setattr__(self, "log_level", level)

    def to_dict(self) -> dict[str, Any]:
        payload = asdict(self)
        payload["template_path"] = None if self.template_path is None else str(self.template_path)
        return payload


def load_settings(
    config_path: str | Path | None = None,
    *,
    environ: Mapping[str, str] | None = None,
    overrides: Mapping[str, object] | None = None,
) -> RefinementSettings:
    """Load settings with deterministic precedence: overrides > env > file > defaults."""

    resolved_path = _resolve_config_path(config_path)
    env_map = dict(os.environ if environ is None else environ)

    merged: dict[str, Any] = {}
    file_payload = _load_toml_file(resolved_path, required=config_path is not None)
    merged.update(_coerce_file_values(file_payload, base_dir=resolved_path.parent))
    merged.update(_collect_env_overrides(env_map))
    merged.update(_coerce_overrides(overrides or {}))

    return RefinementSettings(**merged)


def _resolve_config_path(config_path: str | Path | None) -> Path:
    if config_path is None:
        return (Path.cwd() / DEFAULT_CONFIG_FILE).resolve()
    return Path(config_path).expanduser().resolve()


def _load_toml_file(path: Path, *, required: bool) -> dict[str, Any]:
    if not path.exists():
        if required:
            raise ConfigLoadError(f"config file not found: {path}")
        return {}

    try:
        with path.open("rb") as handle:
            parsed = tomllib.load(handle)
    except tomllib.TOMLDecodeError as exc:
        raise ConfigLoadError(f"invalid TOML in {path}: {exc}") from exc
    except OSError as exc:
        raise ConfigLoadError(f"unable to read config file {path}: {exc}") from exc

    table = parsed.get(CONFIG_TABLE, {})
    if not isinstance(table, dict):
        raise ConfigLoadError(f"[{CONFIG_TABLE}] must be a table: {path}")
    return table


def _coerce_file_values(payload: Mapping[str, object], *, base_dir: Path) -> dict[str, Any]:
    values: dict[str, Any] = {}
    for key in sorted(payload):
        kind = _kind_for_key(key, source="config file")
        value = payload[key]
        if kind == "path":
            if not isinstance(value, str):
                raise ConfigLoadError(f"{CONFIG_TABLE}.{key} must be a string path")
            candidate = Path(value).expanduser()
            values[key] = candidate if candidate.is_absolute() else (base_dir / candidate).resolve()
        else:
            values[key] = value
    return values


def _collect_env_overrides(environ: Mapping[str, str]) -> dict[str, Any]:
    overrides: dict[str, Any] = {}
    for key in sorted(_FIELD_KINDS):
        env_name = f"{ENV_PREFIX}{key.upper()}"
        raw = environ.get(env_name)
        if raw is None:
            continue
        overrides[key] = _coerce_env(raw, _FIELD_KINDS[key], env_name)
    return overrides


def _coerce_overrides(overrides: Mapping[str, object]) -> dict[str, Any]:
    values: dict[str, Any] = {}
    for key in sorted(overrides):
        kind = _kind_for_key(key, source="override")
        value = overrides[key]
        if kind == "path" and value is not None:
            value = Path(str(value)).expanduser()
        values[key] = value
    return values


def _kind_for_key(key: str, *, source: str) -> _ValueKind:
    kind = _FIELD_KINDS.get(key)
    if kind is None:
        raise ConfigLoadError(f"unknown {source} key {key!r}")
    return kind


def _coerce_env(raw: str, value_type: _ValueKind, env_name: str) -> object:
    value = raw.strip()
    if value_type == "str":
        return value
    if value_type == "path":
        return Path(value).expanduser() if value else None
    if value_type == "int":
        try:
            return int(value)
        except ValueError as exc:
            raise ConfigLoadError(f"{env_name} must be an integer") from exc

    return parse_bool(value, env_name)


def parse_bool(value: object, name: str) -> bool:
    """Accept a real boolean or one of the usual true/false spellings."""

    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in _BOOLEAN_TRUE:
            return True
        if lowered in _BOOLEAN_FALSE:
            return False
    raise ConfigLoadError(f"{name} must be a boolean (true/false/1/0/yes/no/on/off)")


__all__ = [
    "CONFIG_TABLE",
    "DEFAULT_CONFIG_FILE",
    "ENV_PREFIX",
    "ConfigLoadError",
    "RefinementSettings",
    "clamp_timeout_ms",
    "load_settings",
    "parse_bool",
]
