"""Dev server lifecycle for live component previews.

A `PreviewServerManager` owns one bundler dev server per workspace, the theme
watcher, and the regeneration of the staging directory's stylesheet and entry
point. Managers are handed out by a `PreviewRegistry` keyed by workspace path.
"""

from __future__ import annotations

import asyncio
import json
import os
import subprocess
import time
from pathlib import Path

import httpx
import watchfiles
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception_type,
    stop_after_delay,
    wait_fixed,
)

from livepreview.constants import (
    INDEX_HTML_NAME,
    READY_POLL_INTERVAL,
    TEST_COMPONENT_MESSAGE,
    VITE_CONFIG_NAME,
)
from livepreview.entrypoint import EntryPointGenerator
from livepreview.errors import (
    NoComponentLoadedError,
    PreviewConfigError,
    PreviewStartError,
)
from livepreview.logging import PreviewLogComponent, get_logger
from livepreview.models import (
    ComponentDescriptor,
    PreviewSettings,
    Prop,
    ServerState,
    TrackedProcess,
)
from livepreview.paths import relative_import_path
from livepreview.process_control import (
    find_listeners_for_port,
    is_port_available,
    stop_tracked_process,
    track_process,
    wait_for_no_descendants,
)
from livepreview.safelist import SafelistGenerator, baseline_tokens
from livepreview.tokens import scan_theme_directory
from livepreview.utils import (
    ensure_dir,
    format_elapsed_ms,
    templates_environment,
    write_if_changed,
)

logger = get_logger(PreviewLogComponent.SERVER)
vite_logger = get_logger(PreviewLogComponent.VITE)
watcher_logger = get_logger(PreviewLogComponent.WATCHER)
registry_logger = get_logger(PreviewLogComponent.REGISTRY)


class _ServerExited(Exception):
    """The dev server process exited before it answered a readiness probe."""


def _log_probe_retry(retry_state: RetryCallState) -> None:
    if retry_state.outcome and retry_state.outcome.failed:
        logger.debug(
            f"Readiness probe {retry_state.attempt_number} failed: "
            f"{retry_state.outcome.exception()}"
        )


def _is_css_change(_: watchfiles.Change, path: str) -> bool:
    return path.endswith(".css")


def _require_path(value: str | Path | None, label: str) -> Path:
    if value is None or not str(value).strip():
        raise PreviewConfigError(f"{label} path must not be empty")
    return Path(value)


class PreviewServerManager:
    """Owns the dev server, the theme watcher and staging regeneration for a workspace.

    State transitions (stopped -> starting -> running -> stopped) happen under
    an asyncio lock, so concurrent `start()` calls spawn a single process.
    Regeneration methods are synchronous and never push to the embedding
    surface; the bundler's hot reload picks up the written files.
    """

    def __init__(
        self,
        workspace: str | Path,
        staging_dir: str | Path,
        *,
        settings: PreviewSettings | None = None,
        registry: PreviewRegistry | None = None,
    ):
        self.workspace: Path = _require_path(workspace, "Workspace")
        self.staging_dir: Path = _require_path(staging_dir, "Staging")
        self.settings: PreviewSettings = settings or PreviewSettings()

        self._registry: PreviewRegistry | None = registry
        self._lock: asyncio.Lock = asyncio.Lock()
        self._state: ServerState = ServerState.stopped
        self._disposed: bool = False
        self._current: ComponentDescriptor | None = None

        self._process: asyncio.subprocess.Process | None = None
        self._tracked: TrackedProcess | None = None
        self._reader_task: asyncio.Task[None] | None = None
        self._watch_task: asyncio.Task[None] | None = None

        self._safelist: SafelistGenerator = SafelistGenerator()
        self._entries: EntryPointGenerator = EntryPointGenerator(
            stylesheet_name=self.settings.stylesheet_name,
            allow_function_props=self.settings.allow_function_props,
        )

    # === Paths ===

    @property
    def theme_dir(self) -> Path:
        return self.workspace / self.settings.theme_dir

    @property
    def stylesheet_path(self) -> Path:
        return self.staging_dir / self.settings.stylesheet_name

    @property
    def entry_path(self) -> Path:
        return self.staging_dir / self.settings.entry_name

    # === Queries ===

    @property
    def state(self) -> ServerState:
        return self._state

    def is_running(self) -> bool:
        return self._state == ServerState.running

    def get_server_url(self) -> str:
        return self.settings.server_url

    def get_current_component(self) -> ComponentDescriptor | None:
        return self._current

    # === Lifecycle ===

    async def start(self) -> None:
        """Start the dev server if it is not already starting or running.

        Raises:
            PreviewStartError: If the paths are missing, the port is taken, or
                the server does not become ready. The process is stopped and
                the manager is back in the stopped state.
        """
        async with self._lock:
            if self._state != ServerState.stopped:
                logger.debug(f"Start requested while {self._state.value}, ignoring")
                return
            if self._disposed:
                raise self._start_error("manager has been disposed")

            self._state = ServerState.starting
            try:
                await self._start_locked()
            except asyncio.CancelledError:
                await self._terminate()
                self._state = ServerState.stopped
                raise
            except Exception as e:
                await self._terminate()
                self._state = ServerState.stopped
                if isinstance(e, PreviewStartError):
                    raise
                raise self._start_error(str(e) or type(e).__name__) from e

    async def stop(self) -> None:
        """Stop the watcher and then the dev server. No-op when already stopped."""
        async with self._lock:
            if self._state == ServerState.stopped:
                return
            await self._cancel_watcher()
            await self._terminate()
            self._state = ServerState.stopped
            logger.info("Preview server stopped")

    async def dispose(self) -> None:
        """Stop everything and release this manager from its registry.

        Safe to call more than once.
        """
        if self._disposed:
            return
        self._disposed = True
        await self.stop()
        self._current = None
        if self._registry is not None:
            self._registry.release(self)
            self._registry = None

    async def _start_locked(self) -> None:
        started_at = time.perf_counter()
        if not self.workspace.is_dir():
            raise self._start_error("workspace directory does not exist")
        if not self.staging_dir.is_dir():
            raise self._start_error("staging directory does not exist")

        self._prepare_staging()

        host, port = self.settings.host, self.settings.port
        if not await asyncio.to_thread(is_port_available, port, host):
            listeners = await asyncio.to_thread(find_listeners_for_port, port)
            owners = f" (pids: {', '.join(map(str, listeners))})" if listeners else ""
            raise self._start_error(f"port {port} is already in use{owners}")

        command = [
            part.replace("{host}", host).replace("{port}", str(port))
            for part in self.settings.command
        ]
        if not command:
            raise self._start_error("dev server command is empty")
        logger.info(f"Starting dev server: {' '.join(command)}")

        # New process group/session so the whole bundler tree can be stopped
        creationflags = 0
        start_new_session = False
        if os.name == "nt":
            creationflags = subprocess.CREATE_NEW_PROCESS_GROUP  # type: ignore[attr-defined]
        else:
            start_new_session = True

        process = await asyncio.create_subprocess_exec(
            *command,
            cwd=self.staging_dir,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.STDOUT,
            start_new_session=start_new_session,
            creationflags=creationflags,
        )
        self._process = process
        # Track immediately: bun may hand off to node and exit quickly
        self._tracked = track_process(process.pid)
        self._reader_task = asyncio.create_task(self._pump_output(process))

        await self._wait_until_ready(process)

        self._state = ServerState.running
        logger.info(
            f"Preview server running at {self.get_server_url()} "
            f"(ready in {format_elapsed_ms(started_at)})"
        )
        self._watch_task = self._start_watcher()

    async def _pump_output(self, process: asyncio.subprocess.Process) -> None:
        if process.stdout is not None:
            async for line in process.stdout:
                decoded = line.decode("utf-8", errors="replace").rstrip()
                if decoded:
                    vite_logger.info(decoded)

        returncode = await process.wait()
        if self._state != ServerState.running or process is not self._process:
            return
        logger.warning(f"Dev server exited unexpectedly with code {returncode}")
        async with self._lock:
            if process is not self._process:
                return
            # _terminate must not wait on this task
            self._reader_task = None
            await self._cancel_watcher()
            await self._terminate()
            self._state = ServerState.stopped
            logger.info("Preview server stopped")

    async def _wait_until_ready(self, process: asyncio.subprocess.Process) -> None:
        url = self.get_server_url()
        timeout = self.settings.ready_timeout
        try:
            async with httpx.AsyncClient(timeout=httpx.Timeout(2.0)) as client:
                async for attempt in AsyncRetrying(
                    stop=stop_after_delay(timeout),
                    wait=wait_fixed(READY_POLL_INTERVAL),
                    retry=retry_if_exception_type(httpx.TransportError),
                    before_sleep=_log_probe_retry,
                    reraise=True,
                ):
                    with attempt:
                        if process.returncode is not None:
                            raise _ServerExited(
                                f"dev server exited with code {process.returncode}"
                            )
                        response = await client.get(url)
                        logger.debug(f"Readiness probe answered {response.status_code}")
        except _ServerExited as e:
            raise self._start_error(str(e)) from e
        except httpx.TransportError as e:
            raise self._start_error(
                f"dev server did not respond at {url} within {timeout:g}s"
            ) from e

    async def _terminate(self) -> None:
        process, tracked = self._process, self._tracked
        self._process = None
        self._tracked = None
        if process is None:
            return

        if tracked is not None:
            await asyncio.to_thread(stop_tracked_process, tracked, name="dev-server")
            if not await asyncio.to_thread(wait_for_no_descendants, tracked, timeout=2.0):
                logger.warning("Dev server children still running after shutdown")
        if process.returncode is None:
            try:
                process.terminate()
            except ProcessLookupError:
                pass
        try:
            await asyncio.wait_for(process.wait(), timeout=5.0)
        except asyncio.TimeoutError:
            logger.warning(f"Dev server pid={process.pid} ignored terminate, killing")
            process.kill()
            await process.wait()

        reader, self._reader_task = self._reader_task, None
        if reader is not None:
            try:
                await asyncio.wait_for(reader, timeout=1.0)
            except asyncio.TimeoutError:
                # Output pipe inherited by a detached grandchild
                pass
        logger.debug(f"Dev server exited with code {process.returncode}")

    # === Theme watcher ===

    def _start_watcher(self) -> asyncio.Task[None] | None:
        if not self.theme_dir.is_dir():
            watcher_logger.info(f"No theme directory at {self.theme_dir}, not watching")
            return None
        return asyncio.create_task(self._watch_theme())

    async def _watch_theme(self) -> None:
        watcher_logger.info(f"Watching {self.theme_dir} for CSS changes")
        async for changes in watchfiles.awatch(
            self.theme_dir,
            watch_filter=_is_css_change,
            debounce=self.settings.watch_debounce_ms,
            step=50,
        ):
            watcher_logger.info(f"Detected changes in {len(changes)} theme file(s)")
            try:
                self.regenerate_stylesheet()
            except OSError as e:
                watcher_logger.error(f"Failed to regenerate stylesheet: {e}")

    async def _cancel_watcher(self) -> None:
        task, self._watch_task = self._watch_task, None
        if task is None:
            return
        if task.done():
            if not task.cancelled() and task.exception() is not None:
                watcher_logger.error(f"Theme watcher had stopped: {task.exception()!r}")
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    # === Regeneration ===

    def _prepare_staging(self) -> None:
        """Scaffold bundler files missing from the staging directory."""
        ensure_dir(self.staging_dir)
        env = templates_environment()

        vite_config = self.staging_dir / VITE_CONFIG_NAME
        if not vite_config.exists():
            vite_config.write_text(
                env.get_template("vite.config.js.jinja2").render(  # pyright:ignore[reportUnknownMemberType]
                    staging_dir=json.dumps(self.staging_dir.resolve().as_posix()),
                    workspace=json.dumps(self.workspace.resolve().as_posix()),
                    host=json.dumps(self.settings.host),
                    port=self.settings.port,
                ),
                encoding="utf-8",
            )
            logger.debug(f"Created {vite_config}")

        index_html = self.staging_dir / INDEX_HTML_NAME
        if not index_html.exists():
            index_html.write_text(
                env.get_template("index.html.jinja2").render(  # pyright:ignore[reportUnknownMemberType]
                    entry_name=self.settings.entry_name
                ),
                encoding="utf-8",
            )
            logger.debug(f"Created {index_html}")

        self.regenerate_stylesheet()
        if not self.entry_path.exists():
            write_if_changed(self.entry_path, self._entries.generate_test())

    def regenerate_stylesheet(self) -> bool:
        """Rescan the theme directory and rewrite the safelist stylesheet.

        Returns:
            True if the stylesheet content changed
        """
        scan = scan_theme_directory(self.theme_dir)
        sources = [relative_import_path(self.staging_dir, path) for path in scan.files]
        stylesheet = self._safelist.generate(
            baseline_tokens(), scan.tokens, sources=sources
        )
        written = write_if_changed(self.stylesheet_path, stylesheet)
        if written:
            logger.info(f"Wrote {self.stylesheet_path}")
        return written

    def update_component(self, descriptor: ComponentDescriptor) -> None:
        """Make descriptor the current component and regenerate staging files.

        Raises:
            PropSerializationError: If a prop default cannot be emitted; the
                current component is left unchanged
        """
        source = self._entries.generate(descriptor, self.staging_dir)
        self._current = descriptor
        self.regenerate_stylesheet()
        if write_if_changed(self.entry_path, source):
            logger.info(f"Loaded component {descriptor.name} from {descriptor.path}")

    def update_component_props(self, props: list[Prop]) -> None:
        """Re-render the current component with new props.

        Raises:
            NoComponentLoadedError: If no component has been loaded
        """
        if self._current is None:
            raise NoComponentLoadedError()
        self.update_component(self._current.with_props(props))

    def set_test_component(self, message: str = TEST_COMPONENT_MESSAGE) -> None:
        """Replace the entry with the placeholder and clear the current component."""
        self._current = None
        self.regenerate_stylesheet()
        write_if_changed(self.entry_path, self._entries.generate_test(message))
        logger.info("Loaded test component")

    def _start_error(self, reason: str) -> PreviewStartError:
        return PreviewStartError(
            reason, workspace=self.workspace, staging_dir=self.staging_dir
        )


class PreviewRegistry:
    """One preview manager per workspace, created on demand.

    Created by the embedding host and passed to whatever needs a manager, in
    place of a process-wide singleton.
    """

    def __init__(self) -> None:
        self._managers: dict[Path, PreviewServerManager] = {}

    @staticmethod
    def key(workspace: str | Path) -> Path:
        return Path(workspace).resolve()

    def __len__(self) -> int:
        return len(self._managers)

    def __contains__(self, workspace: object) -> bool:
        if not isinstance(workspace, (str, Path)):
            return False
        return self.key(workspace) in self._managers

    def get(self, workspace: str | Path) -> PreviewServerManager | None:
        return self._managers.get(self.key(workspace))

    def get_or_create(
        self,
        workspace: str | Path,
        staging_dir: str | Path,
        *,
        settings: PreviewSettings | None = None,
    ) -> PreviewServerManager:
        """Return the workspace's manager, creating it on first use.

        An existing manager is returned as is; staging_dir and settings only
        apply when a new manager is created.
        """
        _require_path(workspace, "Workspace")
        key = self.key(workspace)
        manager = self._managers.get(key)
        if manager is None:
            manager = PreviewServerManager(
                key, staging_dir, settings=settings, registry=self
            )
            self._managers[key] = manager
            registry_logger.debug(f"Created preview manager for {key}")
        return manager

    def release(self, manager: PreviewServerManager) -> None:
        """Forget a manager so the next `get_or_create` builds a fresh one."""
        key = self.key(manager.workspace)
        if self._managers.get(key) is manager:
            del self._managers[key]
            registry_logger.debug(f"Released preview manager for {key}")

    async def dispose_all(self) -> None:
        for manager in list(self._managers.values()):
            await manager.dispose()
