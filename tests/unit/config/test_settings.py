"""Unit tests for settings loading and precedence."""

from __future__ import annotations

from pathlib import Path

import pytest

from prompt_refinery.config.settings import (
    ConfigLoadError,
    RefinementSettings,
    load_settings,
)


def _write_config(tmp_path: Path, body: str) -> Path:
    path = tmp_path / "refinery.toml"
    path.write_text(body, encoding="utf-8")
    return path


@pytest.mark.unit
def test_defaults() -> None:
    settings = RefinementSettings()

    assert settings.timeout_ms == 8000
    assert settings.max_retries_429 == 1
    assert settings.auto_strip_additional_props is False
    assert settings.template_path is None
    assert settings.log_level == "INFO"


@pytest.mark.unit
def test_precedence_overrides_env_file_defaults(tmp_path: Path) -> None:
    config_path = _write_config(
        tmp_path,
        "[refinement]\ntimeout_ms = 4000\nmax_retries_429 = 0\nlog_level = 'debug'\n",
    )

    settings = load_settings(
        config_path,
        environ={"REFINERY_TIMEOUT_MS": "6000", "REFINERY_AUTO_STRIP_ADDITIONAL_PROPS": "yes"},
        overrides={"timeout_ms": 7000},
    )

    assert settings.timeout_ms == 7000
    assert settings.max_retries_429 == 0
    assert settings.auto_strip_additional_props is True
    assert settings.log_level == "DEBUG"


@pytest.mark.unit
def test_timeout_is_clamped() -> None:
    assert RefinementSettings(timeout_ms=10).timeout_ms == 1000
    assert RefinementSettings(timeout_ms=60_000).timeout_ms == 16_000


@pytest.mark.unit
def test_relative_template_path_resolves_against_config_dir(tmp_path: Path) -> None:
    config_path = _write_config(tmp_path, "[refinement]\ntemplate_path = 'prompts/custom.md.j2'\n")

    settings = load_settings(config_path, environ={})

    assert settings.template_path == (tmp_path / "prompts" / "custom.md.j2").resolve()


@pytest.mark.unit
def test_missing_default_file_is_optional(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.chdir(tmp_path)

    assert load_settings(environ={}) == RefinementSettings()


@pytest.mark.unit
def test_missing_explicit_file_raises(tmp_path: Path) -> None:
    with pytest.raises(ConfigLoadError, match="not found"):
        load_settings(tmp_path / "absent.toml", environ={})


@pytest.mark.unit
@pytest.mark.parametrize(
    ("body", "environ", "overrides", "message"),
    [
        ("[refinement]\nretries = 2\n", {}, None, "unknown config file key"),
        ("[refinement\n", {}, None, "invalid TOML"),
        ("refinement = 3\n", {}, None, "must be a table"),
        ("", {"REFINERY_TIMEOUT_MS": "soon"}, None, "must be an integer"),
        ("", {"REFINERY_AUTO_STRIP_ADDITIONAL_PROPS": "maybe"}, None, "must be a boolean"),
        ("", {}, {"colour": "blue"}, "unknown override key"),
        ("", {}, {"max_retries_429": -1}, "max_retries_429"),
        ("", {}, {"log_level": "chatty"}, "log_level"),
    ],
)
def test_invalid_settings_raise_config_load_error(
    tmp_path: Path,
    body: str,
    environ: dict[str, str],
    overrides: dict[str, object] | None,
    message: str,
) -> None:
    config_path = _write_config(tmp_path, body)

    with pytest.raises(ConfigLoadError, match=message):
        load_settings(config_path, environ=environ, overrides=overrides)


@pytest.mark.unit
def test_to_dict_is_plain_data(tmp_path: Path) -> None:
    settings = RefinementSettings(template_path=tmp_path / "t.j2")

    assert settings.to_dict()["template_path"] == str(tmp_path / "t.j2")
    assert ConfigLoadError.__mro__[1] is ValueError
