"""Live previews of UI components served by a bundler dev server."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("livepreview")
except PackageNotFoundError:
    __version__ = "0.0.0"
