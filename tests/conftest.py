import socket
from pathlib import Path

import pytest

from livepreview.constants import ENV_COMMAND, ENV_HOST, ENV_PORT


@pytest.fixture(autouse=True)
def clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    # setenv first so teardown also removes values loaded from .env files
    for name in (ENV_HOST, ENV_PORT, ENV_COMMAND):
        monkeypatch.setenv(name, "")
        monkeypatch.delenv(name)


@pytest.fixture
def free_port() -> int:
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind(("127.0.0.1", 0))
        return int(sock.getsockname()[1])


@pytest.fixture
def workspace(tmp_path: Path) -> Path:
    """A workspace with a theme directory and one component."""
    root = tmp_path / "workspace"
    theme = root / "src" / "theme"
    theme.mkdir(parents=True)
    (theme / "colors.css").write_text(
        "@theme {\n  --color-ocean-500: #0077be;\n  --spacing-gutter: 2rem;\n}\n"
    )
    (theme / "utilities.css").write_text("@utility card-glow {\n  box-shadow: 0 0 4px red;\n}\n")
    components = root / "src" / "components"
    components.mkdir()
    (components / "Button.tsx").write_text(
        "export function Button({ label }: { label: string }) {\n"
        "  return <button>{label}</button>;\n}\n"
    )
    return root
