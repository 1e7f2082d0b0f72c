"""Tests for project configuration and settings loading."""

import json
from pathlib import Path

import pytest

from livepreview.config import (
    get_or_create_config,
    load_settings,
    project_config_path,
    read_project_config,
    write_project_config,
)
from livepreview.constants import DEFAULT_PORT, ENV_COMMAND, ENV_HOST, ENV_PORT
from livepreview.errors import PreviewConfigError
from livepreview.models import PreviewSettings, ProjectConfig, Prop, PropType


def test_defaults_without_config(tmp_path: Path) -> None:
    settings = load_settings(tmp_path)
    assert settings == PreviewSettings()
    assert settings.port == DEFAULT_PORT
    assert settings.server_url == "http://localhost:5174"
    assert settings.allow_function_props is False


def test_config_roundtrip_uses_camel_case_props(tmp_path: Path) -> None:
    path = project_config_path(tmp_path)
    config = ProjectConfig(
        preview=PreviewSettings(port=6000),
        props={"Button": [Prop(name="label", type=PropType.string, default_value="Hi")]},
    )
    write_project_config(path, config)

    raw = json.loads(path.read_text())
    assert raw["props"]["Button"][0] == {
        "propName": "label",
        "propType": "string",
        "defaultValue": "Hi",
    }
    assert read_project_config(path) == config


def test_read_missing_config_raises(tmp_path: Path) -> None:
    with pytest.raises(FileNotFoundError):
        read_project_config(tmp_path / "missing.json")


def test_invalid_config_is_reported(tmp_path: Path) -> None:
    path = project_config_path(tmp_path)
    path.parent.mkdir(parents=True)
    path.write_text('{"preview": {"port": "not-a-port"}}')
    with pytest.raises(PreviewConfigError, match="Invalid project config"):
        get_or_create_config(tmp_path)


def test_env_overrides(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv(ENV_HOST, "127.0.0.1")
    monkeypatch.setenv(ENV_PORT, "6123")
    monkeypatch.setenv(ENV_COMMAND, "npx vite --port {port}")

    settings = load_settings(tmp_path)

    assert settings.host == "127.0.0.1"
    assert settings.port == 6123
    assert settings.command == ["npx", "vite", "--port", "{port}"]


def test_dotenv_file_is_loaded(tmp_path: Path) -> None:
    (tmp_path / ".env").write_text(f"{ENV_PORT}=7001\n")
    assert load_settings(tmp_path).port == 7001


def test_invalid_port_override(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv(ENV_PORT, "abc")
    with pytest.raises(PreviewConfigError, match=ENV_PORT):
        load_settings(tmp_path)
