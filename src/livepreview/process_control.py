"""Tracking and shutdown of the dev server process tree.

Only processes we spawned are ever signalled: a process is identified by
pid + create_time, and on POSIX by the process group it was started in, so a
bundler launcher that hands off to a child (bun -> node) is still stopped.
"""

from __future__ import annotations

import os
import signal
import socket
import time

import psutil

from livepreview.logging import PreviewLogComponent, get_logger
from livepreview.models import TrackedProcess

logger = get_logger(PreviewLogComponent.PROCESS_CONTROL)


def _get_pgid_safe(pid: int) -> int | None:
    # Windows doesn't have pgid.
    if os.name == "nt":
        return None
    try:
        return os.getpgid(pid)
    except OSError:
        return None


def track_process(pid: int) -> TrackedProcess | None:
    """Record create_time and pgid for a freshly spawned PID."""
    try:
        proc = psutil.Process(pid)
        return TrackedProcess(
            pid=pid,
            create_time=float(proc.create_time()),
            pgid=_get_pgid_safe(pid),
        )
    except (psutil.NoSuchProcess, psutil.AccessDenied):
        return None


def validate_tracked(tp: TrackedProcess) -> psutil.Process | None:
    """Return a psutil.Process only if the PID still belongs to the tracked process."""
    if tp.pid is None or tp.create_time is None:
        return None
    try:
        proc = psutil.Process(tp.pid)
        if abs(float(proc.create_time()) - float(tp.create_time)) > 0.001:
            return None
        return proc
    except (psutil.NoSuchProcess, psutil.AccessDenied):
        return None


def _group_members(pgid: int) -> list[int]:
    members: list[int] = []
    for proc in psutil.process_iter(["pid"]):
        pid = int(proc.pid)
        if _get_pgid_safe(pid) != pgid:
            continue
        try:
            if proc.status() == psutil.STATUS_ZOMBIE:
                continue
        except (psutil.NoSuchProcess, psutil.AccessDenied):
            continue
        members.append(pid)
    return members


def _wait_for_group_empty(pgid: int, timeout: float, poll: float = 0.1) -> bool:
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if not _group_members(pgid):
            return True
        time.sleep(poll)
    return not _group_members(pgid)


def _signal_group(pgid: int, sig: signal.Signals) -> None:
    try:
        os.killpg(pgid, sig)
    except ProcessLookupError:
        pass
    except PermissionError as e:
        logger.warning(f"Cannot signal process group {pgid}: {e}")


def _terminate_tree(root: psutil.Process, timeout: float) -> None:
    """Terminate a process and its descendants, killing whatever survives."""
    try:
        children = root.children(recursive=True)
    except (psutil.NoSuchProcess, psutil.AccessDenied):
        children = []

    procs = children + [root]
    for proc in procs:
        try:
            proc.terminate()
        except (psutil.NoSuchProcess, psutil.AccessDenied):
            continue

    _, alive = psutil.wait_procs(procs, timeout=timeout)
    for proc in alive:
        try:
            proc.kill()
        except (psutil.NoSuchProcess, psutil.AccessDenied):
            continue
    if alive:
        psutil.wait_procs(alive, timeout=max(0.5, timeout / 2))


def stop_tracked_process(
    tp: TrackedProcess,
    *,
    name: str = "dev-server",
    sigint_timeout: float = 1.0,
    sigterm_timeout: float = 1.5,
    sigkill_timeout: float = 1.0,
) -> None:
    """Stop a tracked process and its children.

    On POSIX the whole process group is signalled SIGINT -> SIGTERM -> SIGKILL,
    waiting for the group to empty between steps. Elsewhere, or when no group
    is known, the process tree is terminated directly.

    Blocking; call through `asyncio.to_thread` from async code.
    """
    pgid = tp.pgid
    if pgid is None and tp.pid is not None:
        pgid = _get_pgid_safe(tp.pid)

    if pgid is None or os.name == "nt":
        proc = validate_tracked(tp)
        if proc is None:
            return
        logger.debug(f"Stopping {name} pid={tp.pid}")
        _terminate_tree(proc, timeout=sigterm_timeout + sigkill_timeout)
        return

    logger.debug(f"Stopping {name} pgid={pgid}")
    for sig, timeout in (
        (signal.SIGINT, sigint_timeout),
        (signal.SIGTERM, sigterm_timeout),
        (signal.SIGKILL, sigkill_timeout),
    ):
        _signal_group(pgid, sig)
        if _wait_for_group_empty(pgid, timeout):
            logger.debug(f"{name} stopped after {sig.name}")
            break
    else:
        logger.warning(f"{name} process group {pgid} still has members after SIGKILL")

    # Children that left the group still hang off the root if it is alive
    proc = validate_tracked(tp)
    if proc is not None:
        _terminate_tree(proc, timeout=0.5)


def wait_for_no_descendants(
    tp: TrackedProcess, *, timeout: float = 5.0, poll: float = 0.1
) -> bool:
    """Return True once the tracked process and its descendants are gone."""
    if tp.pgid is not None and os.name != "nt":
        return _wait_for_group_empty(tp.pgid, timeout=timeout, poll=poll)

    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        proc = validate_tracked(tp)
        if proc is None:
            return True
        try:
            if proc.status() == psutil.STATUS_ZOMBIE:
                return True
            if not proc.children(recursive=True) and not proc.is_running():
                return True
        except (psutil.NoSuchProcess, psutil.AccessDenied):
            return True
        time.sleep(poll)
    return False


def find_listeners_for_port(port: int) -> list[int]:
    """Return PIDs with a LISTEN socket on the port (best-effort).

    Used to name the offender in port-conflict errors; an empty list means
    unknown, not free.
    """
    pids: set[int] = set()
    try:
        for conn in psutil.net_connections(kind="inet"):
            if not conn.laddr or conn.laddr.port != port:
                continue
            if conn.status == psutil.CONN_LISTEN and conn.pid:
                pids.add(int(conn.pid))
    except (psutil.AccessDenied, PermissionError):
        logger.debug(f"Not permitted to list connections for port {port}")
    return sorted(pids)


def is_port_available(port: int, host: str = "127.0.0.1") -> bool:
    """Check whether something is already listening on host:port.

    Args:
        port: Port number to check
        host: Host to check on; "localhost" checks the IPv4 loopback

    Returns:
        True if nothing accepts connections on the port
    """
    address = "127.0.0.1" if host == "localhost" else host
    try:
        with socket.create_connection((address, port), timeout=0.2):
            return False
    except OSError:
        return True
