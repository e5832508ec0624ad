"""Configuration loading for the refinement pipeline."""

from prompt_refinery.config.settings import (
    CONFIG_TABLE,
    DEFAULT_CONFIG_FILE,
    ENV_PREFIX,
    ConfigLoadError,
    RefinementSettings,
    clamp_timeout_ms,
    load_settings,
    parse_bool,
)

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
