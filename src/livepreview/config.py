"""Project configuration: `.livepreview/project.json` plus environment overrides."""

import json
import os
import shlex
from pathlib import Path
from typing import Any

from dotenv import load_dotenv

from livepreview.constants import (
    ENV_COMMAND,
    ENV_HOST,
    ENV_PORT,
    PROJECT_CONFIG_NAME,
    PROJECT_DIR_NAME,
)
from livepreview.errors import PreviewConfigError
from livepreview.models import PreviewSettings, ProjectConfig
from livepreview.utils import ensure_dir


def project_config_path(workspace: Path) -> Path:
    """Location of the project config for a workspace."""
    return workspace / PROJECT_DIR_NAME / PROJECT_CONFIG_NAME


def read_project_config(file_path: Path) -> ProjectConfig:
    """Read project config from file.

    Args:
        file_path: Path to project.json

    Returns:
        ProjectConfig instance
    """
    if not file_path.exists():
        raise FileNotFoundError(f"Project config not found at {file_path}")

    data: dict[str, Any] = json.loads(  # pyright: ignore[reportExplicitAny]
        file_path.read_text(encoding="utf-8")
    )
    return ProjectConfig.model_validate(data)


def write_project_config(file_path: Path, config: ProjectConfig) -> None:
    """Write project config to file.

    Args:
        file_path: Path to project.json
        config: ProjectConfig instance to write
    """
    ensure_dir(file_path.parent)
    file_path.write_text(config.model_dump_json(indent=2, by_alias=True), encoding="utf-8")


def get_or_create_config(workspace: Path) -> ProjectConfig:
    """Read the workspace's project config, or return defaults if it has none.

    A config that fails to parse is reported rather than silently replaced, so
    a typo never discards stored props.
    """
    path = project_config_path(workspace)
    if not path.exists():
        return ProjectConfig()
    try:
        return read_project_config(path)
    except ValueError as e:
        raise PreviewConfigError(f"Invalid project config at {path}: {e}") from e


def _apply_env_overrides(settings: PreviewSettings) -> PreviewSettings:
    updates: dict[str, Any] = {}  # pyright: ignore[reportExplicitAny]

    host = os.environ.get(ENV_HOST)
    if host:
        updates["host"] = host

    port = os.environ.get(ENV_PORT)
    if port:
        try:
            updates["port"] = int(port)
        except ValueError:
            raise PreviewConfigError(f"{ENV_PORT} must be an integer, got {port!r}")

    command = os.environ.get(ENV_COMMAND)
    if command:
        updates["command"] = shlex.split(command)

    if not updates:
        return settings
    return settings.model_copy(update=updates)


def load_settings(workspace: Path) -> PreviewSettings:
    """Load preview settings for a workspace.

    Settings come from `.livepreview/project.json` (defaults when absent),
    then `LIVEPREVIEW_*` environment variables, after loading the workspace
    `.env` file if there is one.
    """
    dotenv_file = workspace / ".env"
    if dotenv_file.exists():
        load_dotenv(dotenv_file)

    config = get_or_create_config(workspace)
    return _apply_env_overrides(config.preview)
