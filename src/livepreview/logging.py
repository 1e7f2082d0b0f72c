"""Centralized logging for livepreview (buffering, routing, and CLI formatting)."""

from __future__ import annotations

import logging
import time
from collections import deque
from enum import Enum
from typing import ClassVar, TypeAlias

from pydantic import BaseModel, ConfigDict
from rich.text import Text
from typing_extensions import override

from livepreview.models import LogEntry
from livepreview.utils import PrefixedLogHandler, console

LogBuffer: TypeAlias = deque[LogEntry]


class PreviewLogComponent(str, Enum):
    """Where a log originated (used for filtering and prefixes)."""

    SERVER = "server"
    VITE = "vite"
    TOKENS = "tokens"
    SAFELIST = "safelist"
    ENTRY = "entry"
    WATCHER = "watcher"
    PROCESS_CONTROL = "process_control"
    REGISTRY = "registry"


_COMPONENT_COLORS: dict[PreviewLogComponent, str] = {
    PreviewLogComponent.SERVER: "bright_blue",
    PreviewLogComponent.VITE: "cyan",
    PreviewLogComponent.TOKENS: "magenta",
    PreviewLogComponent.SAFELIST: "magenta",
    PreviewLogComponent.ENTRY: "green",
    PreviewLogComponent.WATCHER: "yellow",
    PreviewLogComponent.PROCESS_CONTROL: "bright_blue",
    PreviewLogComponent.REGISTRY: "bright_blue",
}


class _LogState(BaseModel):
    model_config: ClassVar[ConfigDict] = ConfigDict(arbitrary_types_allowed=True)

    buffer: LogBuffer | None = None
    configured: bool = False


_STATE = _LogState()


def _now_timestamp(created: float | None = None) -> str:
    t = time.localtime(created if created is not None else time.time())
    return time.strftime("%Y-%m-%d %H:%M:%S", t)


class _BufferedLogHandler(logging.Handler):
    buffer_component: PreviewLogComponent

    def __init__(self, *, component: PreviewLogComponent):
        super().__init__()
        self.buffer_component = component

    @override
    def emit(self, record: logging.LogRecord) -> None:
        try:
            if _STATE.buffer is None:
                return
            _STATE.buffer.append(
                LogEntry(
                    timestamp=_now_timestamp(record.created),
                    level=record.levelname,
                    component=self.buffer_component.value,
                    content=self.format(record),
                )
            )
        except Exception:
            self.handleError(record)


def configure_logging(
    *,
    buffer: LogBuffer | None = None,
    console_output: bool = True,
    level: int = logging.INFO,
) -> None:
    """Configure every component logger.

    Args:
        buffer: In-memory buffer receiving a LogEntry per record (None to skip)
        console_output: Also print records with a colored `[component]` prefix
        level: Minimum level for component loggers
    """
    _STATE.buffer = buffer

    for component in PreviewLogComponent:
        logger = logging.getLogger(f"livepreview.{component.value}")
        logger.setLevel(level)
        logger.handlers.clear()
        if buffer is not None:
            handler = _BufferedLogHandler(component=component)
            handler.setFormatter(logging.Formatter("%(message)s"))
            logger.addHandler(handler)
        if console_output:
            prefixed = PrefixedLogHandler(
                f"[{component.value}]", _COMPONENT_COLORS[component], width=17
            )
            prefixed.setFormatter(logging.Formatter("%(message)s"))
            logger.addHandler(prefixed)
        if not logger.handlers:
            logger.addHandler(logging.NullHandler())
        logger.propagate = False

    _STATE.configured = True


def get_logger(component: PreviewLogComponent) -> logging.Logger:
    """Get the logger for a component (do not call stdlib logging directly)."""
    logger = logging.getLogger(f"livepreview.{component.value}")
    if not _STATE.configured and not logger.handlers:
        # Avoid "No handlers could be found" in contexts that don't configure logging.
        logger.addHandler(logging.NullHandler())
    return logger


def print_log_entry(entry: LogEntry) -> None:
    """Print a single log entry with a `[component]` prefix."""
    try:
        style = _COMPONENT_COLORS[PreviewLogComponent(entry.component)]
    except ValueError:
        style = "white"
    if entry.level in ("ERROR", "CRITICAL"):
        style = "red"

    ts = Text(entry.timestamp, style="dim")
    sep = Text(" | ")
    prefix = Text(f"[{entry.component}]", style=style)
    console.print(ts + sep + prefix + sep + Text(entry.content))
