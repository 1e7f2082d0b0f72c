"""Module-specifier paths from the staging directory to workspace files."""

from __future__ import annotations

import os
from pathlib import Path


def relative_import_path(from_dir: str | Path, target: str | Path) -> str:
    """Compute an import specifier for target relative to from_dir.

    Standard segment diffing (`os.path.relpath`), forward-slash separated and
    always starting with `./` or `../` so bundlers never treat it as a bare
    package name. Symlinks are not resolved.

    Args:
        from_dir: Directory the importing module lives in
        target: Absolute path of the imported file

    Returns:
        The relative specifier, or the absolute path with forward slashes when
        no relative path exists (e.g. different drives on Windows)
    """
    start = os.path.abspath(os.fspath(from_dir))
    destination = os.path.abspath(os.fspath(target))
    try:
        relative = os.path.relpath(destination, start)
    except ValueError:
        return Path(destination).as_posix()

    specifier = relative.replace(os.sep, "/")
    if specifier == ".." or specifier.startswith("../"):
        return specifier
    return f"./{specifier}"
