"""Centralized Pydantic models, enums, and type aliases for livepreview."""

from __future__ import annotations

import re
from enum import Enum
from pathlib import Path
from typing import ClassVar

from pydantic import BaseModel, ConfigDict, Field, field_validator

from livepreview.constants import (
    DEFAULT_DEV_SERVER_COMMAND,
    DEFAULT_ENTRY_NAME,
    DEFAULT_HOST,
    DEFAULT_PORT,
    DEFAULT_READY_TIMEOUT,
    DEFAULT_STYLESHEET_NAME,
    DEFAULT_THEME_DIR,
    DEFAULT_WATCH_DEBOUNCE_MS,
)

JS_IDENTIFIER_RE = re.compile(r"^[A-Za-z_$][A-Za-z0-9_$]*$")


def _check_identifier(value: str) -> str:
    if not JS_IDENTIFIER_RE.match(value):
        raise ValueError(f"{value!r} is not a valid JavaScript identifier")
    return value


# === Enums ===


class PropType(str, Enum):
    """How a prop's textual default value is interpreted in the entry point."""

    string = "string"
    number = "number"
    boolean = "boolean"
    array = "array"
    object = "object"
    function = "function"

    @classmethod
    def from_string(cls, value: str) -> PropType:
        try:
            return cls(value.lower())
        except ValueError:
            raise ValueError(f"Invalid prop type: {value}")


class ServerState(str, Enum):
    """Dev server lifecycle state.

    Transitions are stopped -> starting -> running -> stopped.
    """

    stopped = "stopped"
    starting = "starting"
    running = "running"


# === Component Models ===


class Prop(BaseModel):
    """A single prop passed to the previewed component.

    The default value is always stored as text; `type` decides how it is
    serialized into the generated entry point.
    """

    name: str = Field(alias="propName")
    type: PropType = Field(alias="propType")
    default_value: str = Field(default="", alias="defaultValue")

    model_config: ClassVar[ConfigDict] = ConfigDict(
        frozen=True, populate_by_name=True
    )

    @field_validator("name")
    @classmethod
    def _validate_name(cls, value: str) -> str:
        return _check_identifier(value)


class ComponentDescriptor(BaseModel):
    """Identity, location and props of the component currently previewed."""

    name: str
    path: Path
    props: list[Prop] = Field(default_factory=list)
    default_export: bool = False

    model_config: ClassVar[ConfigDict] = ConfigDict(frozen=True)

    @field_validator("name")
    @classmethod
    def _validate_name(cls, value: str) -> str:
        return _check_identifier(value)

    @field_validator("path")
    @classmethod
    def _validate_path(cls, value: Path) -> Path:
        if not value.is_absolute():
            raise ValueError(f"Component path must be absolute: {value}")
        return value

    def with_props(self, props: list[Prop]) -> ComponentDescriptor:
        """Return a copy of this descriptor with its props replaced."""
        return self.model_copy(update={"props": list(props)})


# === Token Models ===


class TokenSet(BaseModel):
    """Categorized design tokens discovered from theme CSS.

    Token sets are immutable: scans build new sets and `union` returns a new
    instance, so regeneration is a pure function of the current file contents.
    """

    colors: frozenset[str] = frozenset()
    spacing: frozenset[str] = frozenset()
    text_sizes: frozenset[str] = frozenset()
    fonts: frozenset[str] = frozenset()
    utilities: frozenset[str] = frozenset()
    utility_definitions: tuple[str, ...] = ()

    model_config: ClassVar[ConfigDict] = ConfigDict(frozen=True)

    def union(self, *others: TokenSet) -> TokenSet:
        """Merge token sets; utility definitions keep first-seen order."""
        sets = (self, *others)
        definitions: list[str] = []
        for token_set in sets:
            for definition in token_set.utility_definitions:
                if definition not in definitions:
                    definitions.append(definition)
        return TokenSet(
            colors=frozenset().union(*(s.colors for s in sets)),
            spacing=frozenset().union(*(s.spacing for s in sets)),
            text_sizes=frozenset().union(*(s.text_sizes for s in sets)),
            fonts=frozenset().union(*(s.fonts for s in sets)),
            utilities=frozenset().union(*(s.utilities for s in sets)),
            utility_definitions=tuple(definitions),
        )

    @property
    def is_empty(self) -> bool:
        return not (
            self.colors
            or self.spacing
            or self.text_sizes
            or self.fonts
            or self.utilities
            or self.utility_definitions
        )


class ThemeScan(BaseModel):
    """Result of scanning a theme directory."""

    tokens: TokenSet = Field(default_factory=TokenSet)
    files: list[Path] = Field(default_factory=list)
    failed: list[Path] = Field(default_factory=list)


# === Process Models ===


class TrackedProcess(BaseModel):
    """A process we started and are allowed to manage.

    create_time protects against PID reuse. pgid enables POSIX process-group
    shutdown even if the original PID has already exited (bun -> node handoff).
    """

    pid: int | None = None
    create_time: float | None = None
    pgid: int | None = None

    model_config: ClassVar[ConfigDict] = ConfigDict(frozen=True)


# === Project Configuration Models ===


class PreviewSettings(BaseModel):
    """Preview pipeline configuration.

    This is the single source of truth for defaults; stored under the
    `preview` key of `.livepreview/project.json`.
    """

    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT
    command: list[str] = Field(
        default_factory=lambda: list(DEFAULT_DEV_SERVER_COMMAND)
    )
    theme_dir: str = DEFAULT_THEME_DIR
    stylesheet_name: str = DEFAULT_STYLESHEET_NAME
    entry_name: str = DEFAULT_ENTRY_NAME
    watch_debounce_ms: int = DEFAULT_WATCH_DEBOUNCE_MS
    ready_timeout: float = DEFAULT_READY_TIMEOUT
    allow_function_props: bool = False

    @property
    def server_url(self) -> str:
        return f"http://{self.host}:{self.port}"


class ProjectConfig(BaseModel):
    """Configuration stored in .livepreview/project.json."""

    preview: PreviewSettings = Field(default_factory=PreviewSettings)
    props: dict[str, list[Prop]] = Field(default_factory=dict)


# === Log Models ===


class LogEntry(BaseModel):
    """A buffered log line from the pipeline or the dev server."""

    timestamp: str
    level: str
    component: str
    content: str
