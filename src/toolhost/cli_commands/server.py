"""``toolhost start|stop|status|serve`` — manage the background server."""

from __future__ import annotations

import asyncio
import os
import signal
import subprocess
import sys
import time
from typing import TYPE_CHECKING, Any

import click
import psutil

from toolhost.cli_commands._output import console, print_error, print_status
from toolhost.errors import LockFileError, ServerAlreadyRunningError
from toolhost.lockfile import LockFileManager

if TYPE_CHECKING:
    from toolhost.config import ServiceConfig
    from toolhost.server import ToolServer

STDOUT_LOG = "toolhost.stdout.log"
STDERR_LOG = "toolhost.stderr.log"
STOP_GRACE_SECONDS = 3.0

_BACKEND_OPTION = click.option(
    "--backend",
    type=click.Choice(["native", "external"]),
    default=None,
    help="System command backend (overrides config).",
)


@click.command()
@_BACKEND_OPTION
@click.pass_obj
def start(config: ServiceConfig, backend: str | None) -> None:
    """Start the server in the background (no-op if already running)."""
    lock = LockFileManager(config.lock_file)
    record = lock.server_is_running()
    if record is not None:
        print_status(record)
        return

    if backend:
        config.backend = backend  # type: ignore[assignment]

    console.print("Server starting in background...", highlight=False)
    try:
        proc = _spawn_server(config)
    except OSError as exc:
        print_error("Cannot launch server", exc)
        sys.exit(1)

    deadline = time.monotonic() + config.start_timeout
    while time.monotonic() < deadline:
        record = lock.server_is_running()
        if record is not None or proc.poll() is not None:
            break
        time.sleep(0.1)

    # A concurrent start may have won; its record is just as good.
    record = record or lock.server_is_running()
    print_status(record)
    if record is None:
        print_error("Server failed to start", f"see {config.log_dir / STDERR_LOG}")
        sys.exit(1)


@click.command()
@click.pass_obj
def stop(config: ServiceConfig) -> None:
    """Stop the running server and remove the lock file."""
    lock = LockFileManager(config.lock_file)
    record = lock.server_is_running()

    try:
        if record is None:
            if lock.remove():
                console.print(f"Removed stale lock file {lock.path}.", highlight=False)
            console.print("Server is not running.", highlight=False)
            return

        console.print(f"Stopping server (PID: {record.pid})...", highlight=False)
        try:
            stopped = _terminate(record.pid)
        except psutil.AccessDenied as exc:
            print_error("Cannot stop server", exc)
            sys.exit(1)
        lock.remove()
        if not stopped:
            console.print(
                f"PID {record.pid} belongs to another program; removed stale lock file {lock.path}.",
                highlight=False,
            )
            return
    except LockFileError as exc:
        print_error("Lock file error", exc)
        sys.exit(1)

    console.print("Server stopped.", highlight=False)


@click.command()
@click.pass_obj
def status(config: ServiceConfig) -> None:
    """Show whether the server is running."""
    lock = LockFileManager(config.lock_file)
    print_status(lock.server_is_running())
    if lock.is_stale():
        console.print(
            f"Note: stale lock file at {lock.path} (run 'toolhost stop' to remove it).",
            highlight=False,
        )


@click.command(hidden=True)
@_BACKEND_OPTION
@click.pass_obj
def serve(config: ServiceConfig, backend: str | None) -> None:
    """Run the server in the foreground."""
    from toolhost.server import ToolServer
    from toolhost.system.backend import create_system_command
    from toolhost.tools.router import build_default_router

    if backend:
        config.backend = backend  # type: ignore[assignment]

    if config.otlp_endpoint:
        from toolhost.utils.telemetry import configure_telemetry

        try:
            configure_telemetry(otlp_endpoint=config.otlp_endpoint)
        except ImportError as exc:
            print_error("Tracing unavailable", exc)
            sys.exit(1)

    system = create_system_command(config.backend, command_timeout=config.command_timeout)
    server = ToolServer(
        build_default_router(system),
        LockFileManager(config.lock_file),
        host=config.host,
        idle_timeout=config.idle_timeout,
    )

    try:
        asyncio.run(_serve(server))
    except ServerAlreadyRunningError as exc:
        print_error("Not starting", exc)
        sys.exit(1)
    except LockFileError as exc:
        print_error("Lock file error", exc)
        sys.exit(1)
    except KeyboardInterrupt:
        pass


async def _serve(server: ToolServer) -> None:
    await server.start()

    loop = asyncio.get_running_loop()
    task = asyncio.current_task()
    if task is not None and sys.platform != "win32":
        loop.add_signal_handler(signal.SIGTERM, task.cancel)
    try:
        await server.serve_forever()
    except asyncio.CancelledError:
        pass


def _spawn_server(config: ServiceConfig) -> subprocess.Popen[bytes]:
    """Launch ``toolhost serve`` detached, logging to the temp directory."""
    config.log_dir.mkdir(parents=True, exist_ok=True)
    env = {
        **os.environ,
        "TOOLHOST_LOCK_FILE": str(config.lock_file),
        "TOOLHOST_BACKEND": config.backend,
        "TOOLHOST_LOG_LEVEL": config.log_level,
    }
    if config.otlp_endpoint:
        env["TOOLHOST_OTLP_ENDPOINT"] = config.otlp_endpoint
    kwargs: dict[str, Any] = {}
    if sys.platform == "win32":
        kwargs["creationflags"] = (
            subprocess.DETACHED_PROCESS | subprocess.CREATE_NEW_PROCESS_GROUP  # type: ignore[attr-defined]
        )
    else:
        kwargs["start_new_session"] = True

    with (
        open(config.log_dir / STDOUT_LOG, "wb") as stdout_log,
        open(config.log_dir / STDERR_LOG, "wb") as stderr_log,
    ):
        return subprocess.Popen(
            [sys.executable, "-m", "toolhost.cli", "serve"],
            stdin=subprocess.DEVNULL,
            stdout=stdout_log,
            stderr=stderr_log,
            env=env,
            **kwargs,
        )


def _terminate(pid: int) -> bool:
    """Terminate *pid*, escalating to kill after a grace period.

    Returns False without signalling when *pid* has been reused by a process
    that is not a toolhost server.
    """
    try:
        proc = psutil.Process(pid)
        if not any("toolhost" in part for part in proc.cmdline()):
            return False
        proc.terminate()
        try:
            proc.wait(timeout=STOP_GRACE_SECONDS)
        except psutil.TimeoutExpired:
            proc.kill()
    except psutil.NoSuchProcess:
        pass
    return True
