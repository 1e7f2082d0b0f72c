"""Exception hierarchy for the preview pipeline."""

from __future__ import annotations

from pathlib import Path


class PreviewError(Exception):
    """Base class for all livepreview errors."""


class PreviewConfigError(PreviewError, ValueError):
    """Raised when a manager is constructed with an empty or invalid path."""


class PreviewStartError(PreviewError):
    """Raised when the dev server fails to start.

    The message always embeds the workspace and staging paths.
    """

    def __init__(self, reason: str, *, workspace: Path, staging_dir: Path):
        self.reason: str = reason
        self.workspace: Path = workspace
        self.staging_dir: Path = staging_dir
        super().__init__(
            f"Failed to start preview server: {reason}. "
            f"Workspace path: {workspace}, staging path: {staging_dir}"
        )


class NoComponentLoadedError(PreviewError):
    """Raised when props are updated before any component was loaded."""

    def __init__(self) -> None:
        super().__init__("No component currently loaded")


class PropSerializationError(PreviewError, ValueError):
    """Raised when a prop default cannot be emitted into the entry point."""
