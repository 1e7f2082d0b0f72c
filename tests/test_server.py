"""Lifecycle tests for PreviewServerManager and PreviewRegistry.

A real `python -m http.server` stands in for the bundler dev server so that
spawning, readiness probing and process-group shutdown are exercised.
"""

from __future__ import annotations

import asyncio
import socket
import sys
from pathlib import Path
from unittest.mock import patch

import httpx
import pytest

from livepreview.errors import (
    NoComponentLoadedError,
    PreviewConfigError,
    PreviewStartError,
)
from livepreview.models import (
    ComponentDescriptor,
    PreviewSettings,
    Prop,
    PropType,
    ServerState,
)
from livepreview.process_control import is_port_available
from livepreview.server import PreviewRegistry, PreviewServerManager


def http_server_settings(port: int, **overrides: object) -> PreviewSettings:
    values: dict[str, object] = {
        "host": "127.0.0.1",
        "port": port,
        "command": [sys.executable, "-m", "http.server", "{port}", "--bind", "{host}"],
        "ready_timeout": 15.0,
        "watch_debounce_ms": 50,
    }
    values.update(overrides)
    return PreviewSettings.model_validate(values)


@pytest.fixture
def staging(workspace: Path) -> Path:
    path = workspace / ".livepreview" / "staging"
    path.mkdir(parents=True)
    return path


@pytest.fixture
def manager(workspace: Path, staging: Path, free_port: int) -> PreviewServerManager:
    return PreviewServerManager(
        workspace, staging, settings=http_server_settings(free_port)
    )


@pytest.fixture
def button(workspace: Path) -> ComponentDescriptor:
    return ComponentDescriptor(
        name="Button",
        path=workspace / "src" / "components" / "Button.tsx",
        props=[Prop(name="label", type=PropType.string, default_value="Click")],
    )


class TestConstruction:
    """Tests for manager construction."""

    @pytest.mark.parametrize("empty", ["", "   "])
    def test_empty_paths_rejected(self, tmp_path: Path, empty: str) -> None:
        with pytest.raises(PreviewConfigError, match="Workspace"):
            PreviewServerManager(empty, tmp_path)
        with pytest.raises(PreviewConfigError, match="Staging"):
            PreviewServerManager(tmp_path, empty)

    def test_initial_state(self, manager: PreviewServerManager, free_port: int) -> None:
        assert manager.state == ServerState.stopped
        assert manager.is_running() is False
        assert manager.get_current_component() is None
        assert manager.get_server_url() == f"http://127.0.0.1:{free_port}"


class TestLifecycle:
    """Tests for start/stop against a real server process."""

    @pytest.mark.asyncio
    async def test_start_and_stop(
        self, manager: PreviewServerManager, staging: Path, free_port: int
    ) -> None:
        try:
            await manager.start()
            assert manager.state == ServerState.running
            assert manager.is_running()

            for name in ("vite.config.js", "index.html", "tailwind.css", "index.jsx"):
                assert (staging / name).exists(), name

            async with httpx.AsyncClient() as client:
                response = await client.get(f"{manager.get_server_url()}/index.html")
            assert response.status_code == 200
        finally:
            await manager.stop()

        assert manager.state == ServerState.stopped
        assert is_port_available(free_port, "127.0.0.1")

    @pytest.mark.asyncio
    async def test_concurrent_start_spawns_one_process(
        self, manager: PreviewServerManager
    ) -> None:
        spawn = asyncio.create_subprocess_exec
        try:
            with patch.object(asyncio, "create_subprocess_exec", wraps=spawn) as spy:
                await asyncio.gather(manager.start(), manager.start())
            assert spy.call_count == 1
            assert manager.is_running()
        finally:
            await manager.stop()

    @pytest.mark.asyncio
    async def test_start_when_running_is_noop(
        self, manager: PreviewServerManager
    ) -> None:
        try:
            await manager.start()
            with patch.object(asyncio, "create_subprocess_exec") as spy:
                await manager.start()
            spy.assert_not_called()
        finally:
            await manager.stop()

    @pytest.mark.asyncio
    async def test_stop_when_stopped_is_noop(self, manager: PreviewServerManager) -> None:
        await manager.stop()
        assert manager.state == ServerState.stopped

    @pytest.mark.asyncio
    async def test_port_in_use(
        self, manager: PreviewServerManager, workspace: Path, staging: Path, free_port: int
    ) -> None:
        with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as blocker:
            blocker.bind(("127.0.0.1", free_port))
            blocker.listen(1)
            with pytest.raises(PreviewStartError, match="already in use") as exc_info:
                await manager.start()

        message = str(exc_info.value)
        assert str(workspace) in message
        assert str(staging) in message
        assert manager.state == ServerState.stopped

    @pytest.mark.asyncio
    async def test_process_exiting_early(
        self, workspace: Path, staging: Path, free_port: int
    ) -> None:
        manager = PreviewServerManager(
            workspace,
            staging,
            settings=http_server_settings(
                free_port, command=[sys.executable, "-c", "raise SystemExit(3)"]
            ),
        )
        with pytest.raises(PreviewStartError, match="exited with code 3"):
            await manager.start()
        assert manager.state == ServerState.stopped

    @pytest.mark.asyncio
    async def test_server_exit_after_start_is_noticed(
        self, workspace: Path, staging: Path, free_port: int
    ) -> None:
        serve_briefly = (
            "import http.server, sys, threading\n"
            "server = http.server.HTTPServer(\n"
            "    ('127.0.0.1', int(sys.argv[1])), http.server.SimpleHTTPRequestHandler\n"
            ")\n"
            "threading.Timer(3.0, server.shutdown).start()\n"
            "server.serve_forever()\n"
        )
        manager = PreviewServerManager(
            workspace,
            staging,
            settings=http_server_settings(
                free_port, command=[sys.executable, "-c", serve_briefly, "{port}"]
            ),
        )
        try:
            await manager.start()
            assert manager.is_running()

            for _ in range(100):
                if not manager.is_running():
                    break
                await asyncio.sleep(0.1)

            assert manager.state == ServerState.stopped

            await manager.start()
            assert manager.is_running()
        finally:
            await manager.stop()

    @pytest.mark.asyncio
    async def test_failed_watcher_error_is_logged(
        self, manager: PreviewServerManager
    ) -> None:
        async def watch_removed_directory() -> None:
            raise RuntimeError("theme directory removed")

        task = asyncio.create_task(watch_removed_directory())
        await asyncio.wait([task])
        manager._watch_task = task

        with patch("livepreview.server.watcher_logger") as watcher_log:
            await manager._cancel_watcher()

        watcher_log.error.assert_called_once()
        assert "theme directory removed" in watcher_log.error.call_args.args[0]

    @pytest.mark.asyncio
    async def test_missing_command(
        self, workspace: Path, staging: Path, free_port: int
    ) -> None:
        manager = PreviewServerManager(
            workspace,
            staging,
            settings=http_server_settings(free_port, command=["definitely-not-a-bundler"]),
        )
        with pytest.raises(PreviewStartError) as exc_info:
            await manager.start()
        assert isinstance(exc_info.value.__cause__, FileNotFoundError)
        assert manager.state == ServerState.stopped

    @pytest.mark.asyncio
    async def test_missing_workspace(self, tmp_path: Path, free_port: int) -> None:
        manager = PreviewServerManager(
            tmp_path / "missing",
            tmp_path,
            settings=http_server_settings(free_port),
        )
        with pytest.raises(PreviewStartError, match="workspace directory does not exist"):
            await manager.start()
        assert manager.state == ServerState.stopped

    @pytest.mark.asyncio
    async def test_theme_change_regenerates_stylesheet(
        self, manager: PreviewServerManager, workspace: Path
    ) -> None:
        try:
            await manager.start()
            await asyncio.sleep(0.5)
            (workspace / "src" / "theme" / "extra.css").write_text(
                ":root { --color-coral-500: #ff7f50; }\n"
            )

            stylesheet = manager.stylesheet_path
            for _ in range(100):
                if "coral" in stylesheet.read_text():
                    break
                await asyncio.sleep(0.1)

            css = stylesheet.read_text()
            assert "coral" in css
            assert '@import "../../src/theme/extra.css";' in css
        finally:
            await manager.stop()


class TestRegeneration:
    """Tests for the synchronous regeneration operations."""

    def test_update_component_writes_entry_and_stylesheet(
        self, manager: PreviewServerManager, button: ComponentDescriptor
    ) -> None:
        manager.update_component(button)

        assert manager.get_current_component() == button
        entry = manager.entry_path.read_text()
        assert 'import { Button } from "../../src/components/Button.tsx";' in entry
        assert '<Button label={"Click"} />' in entry

        css = manager.stylesheet_path.read_text()
        assert css.startswith('@import "tailwindcss";\n')
        assert '@import "../../src/theme/colors.css";' in css
        assert "ocean" in css
        assert "gutter" in css
        assert "card-glow" in css

    def test_unchanged_output_is_not_rewritten(
        self, manager: PreviewServerManager, button: ComponentDescriptor
    ) -> None:
        manager.update_component(button)
        assert manager.regenerate_stylesheet() is False

        (manager.theme_dir / "colors.css").write_text(":root { --color-sand-500: #c2b280; }")
        assert manager.regenerate_stylesheet() is True
        assert "sand" in manager.stylesheet_path.read_text()

    def test_update_props_without_component(self, manager: PreviewServerManager) -> None:
        with pytest.raises(NoComponentLoadedError, match="No component currently loaded"):
            manager.update_component_props([])

    def test_update_props_replaces_props(
        self, manager: PreviewServerManager, button: ComponentDescriptor
    ) -> None:
        manager.update_component(button)
        manager.update_component_props(
            [Prop(name="disabled", type=PropType.boolean, default_value="true")]
        )

        current = manager.get_current_component()
        assert current is not None
        assert [prop.name for prop in current.props] == ["disabled"]
        assert "<Button disabled={true} />" in manager.entry_path.read_text()

    def test_bad_prop_keeps_current_component(
        self, manager: PreviewServerManager, button: ComponentDescriptor
    ) -> None:
        manager.update_component(button)
        with pytest.raises(ValueError):
            manager.update_component_props(
                [Prop(name="count", type=PropType.number, default_value="many")]
            )
        assert manager.get_current_component() == button

    def test_set_test_component_clears_current(
        self, manager: PreviewServerManager, button: ComponentDescriptor
    ) -> None:
        manager.update_component(button)
        manager.set_test_component("Hello preview")

        assert manager.get_current_component() is None
        assert '{ "Hello preview" }' in manager.entry_path.read_text()

    def test_missing_theme_directory_gives_baseline(
        self, tmp_path: Path, free_port: int
    ) -> None:
        workspace = tmp_path / "bare"
        workspace.mkdir()
        manager = PreviewServerManager(
            workspace, tmp_path / "staging", settings=http_server_settings(free_port)
        )

        manager.regenerate_stylesheet()

        css = manager.stylesheet_path.read_text()
        assert css.splitlines()[1] == ""
        assert "slate" in css
        assert "@utility" not in css


class TestRegistry:
    """Tests for PreviewRegistry."""

    def test_one_manager_per_workspace(self, workspace: Path, staging: Path) -> None:
        registry = PreviewRegistry()
        first = registry.get_or_create(workspace, staging)
        second = registry.get_or_create(workspace / "src" / "..", staging)

        assert first is second
        assert len(registry) == 1
        assert workspace in registry
        assert registry.get(workspace) is first

    @pytest.mark.asyncio
    async def test_dispose_releases_manager(self, workspace: Path, staging: Path) -> None:
        registry = PreviewRegistry()
        manager = registry.get_or_create(workspace, staging)

        await manager.dispose()
        await manager.dispose()

        assert registry.get(workspace) is None
        assert registry.get_or_create(workspace, staging) is not manager
        with pytest.raises(PreviewStartError, match="disposed"):
            await manager.start()

    @pytest.mark.asyncio
    async def test_dispose_stops_running_server(
        self, workspace: Path, staging: Path, free_port: int
    ) -> None:
        registry = PreviewRegistry()
        manager = registry.get_or_create(
            workspace, staging, settings=http_server_settings(free_port)
        )
        await manager.start()

        await registry.dispose_all()

        assert manager.state == ServerState.stopped
        assert len(registry) == 0
        assert is_port_available(free_port, "127.0.0.1")
